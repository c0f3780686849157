"""Gremlin Server HTTP implementation of :class:`~octograph.graph.store.GraphStore`.

Every request is a ``POST`` of ``{"gremlin": script, "bindings": {...}}``.
Ids and labels always travel as bindings and are never interpolated into the
script text. The resource charge is read from the response's request-charge
attribute when the server reports one (Cosmos DB does), otherwise it is zero.
"""

from __future__ import annotations

import dataclasses
import os
import typing as typ

import httpx

from octograph.common.env import parse_optional_str, parse_positive_float

from .errors import GraphStoreConfigError, GraphStoreError, GraphStoreResponseShapeError
from .store import MutationResult

_DEFAULT_TIMEOUT_S = 30.0
_HTTP_ERROR_STATUS_THRESHOLD = 400
_HTTP_NOT_FOUND = 404
_CHARGE_KEYS = ("x-ms-total-request-charge", "x-ms-request-charge")

_ADD_VERTEX = "g.addV(vertexLabel).property('id', vertexId)"
_ADD_EDGE = "g.V(fromId).addE(edgeLabel).to(g.V(toId))"
_DROP_ALL = "g.V().drop()"
_HAS_VERTEX = "g.V(vertexId).limit(1).count()"
_HAS_EDGE = "g.V(fromId).outE(edgeLabel).where(inV().hasId(toId)).limit(1).count()"


@dataclasses.dataclass(frozen=True, slots=True)
class GremlinConfig:
    """Configuration for the Gremlin HTTP client."""

    endpoint: str
    key: str | None = None
    timeout_s: float = _DEFAULT_TIMEOUT_S
    user_agent: str = "octograph/0.1"

    @classmethod
    def from_env(cls) -> GremlinConfig:
        """Build configuration from ``OCTOGRAPH_GREMLIN_*`` env vars.

        Raises
        ------
        GraphStoreConfigError
            If ``OCTOGRAPH_GREMLIN_ENDPOINT`` is unset or blank.
        ValueError
            If ``OCTOGRAPH_GREMLIN_TIMEOUT_S`` is malformed or not positive.

        """
        endpoint = os.environ.get("OCTOGRAPH_GREMLIN_ENDPOINT", "").strip()
        if not endpoint:
            raise GraphStoreConfigError.missing_endpoint()
        return cls(
            endpoint=endpoint,
            key=parse_optional_str("OCTOGRAPH_GREMLIN_KEY"),
            timeout_s=parse_positive_float(
                "OCTOGRAPH_GREMLIN_TIMEOUT_S", _DEFAULT_TIMEOUT_S
            ),
        )


def _charge_from(container: object) -> float | None:
    if not isinstance(container, dict):
        return None
    for key in _CHARGE_KEYS:
        value = container.get(key)
        if isinstance(value, int | float) and not isinstance(value, bool):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                continue
    return None


def _parse_charge(payload: dict[str, typ.Any]) -> float:
    """Return the request charge reported in ``payload``, or ``0.0``."""
    result = payload.get("result")
    status = payload.get("status")
    meta = result.get("meta") if isinstance(result, dict) else None
    attributes = status.get("attributes") if isinstance(status, dict) else None
    for container in (meta, attributes):
        charge = _charge_from(container)
        if charge is not None:
            return charge
    return 0.0


def _result_data(payload: dict[str, typ.Any]) -> list[typ.Any]:
    """Return ``result.data`` as a list, unwrapping GraphSON ``g:List``."""
    result = payload.get("result")
    if not isinstance(result, dict):
        raise GraphStoreResponseShapeError.missing("result")
    data = result.get("data")
    if isinstance(data, dict) and data.get("@type") == "g:List":
        data = data.get("@value")
    if data is None:
        return []
    if not isinstance(data, list):
        raise GraphStoreResponseShapeError.missing("result.data")
    return data


def _scalar(value: object) -> object:
    """Unwrap a GraphSON typed scalar such as ``{"@type": "g:Int64"}``."""
    if isinstance(value, dict) and "@value" in value:
        return value["@value"]
    return value


class GremlinGraphStore:
    """Talk to a Gremlin Server (or Cosmos DB Gremlin API) over HTTP."""

    def __init__(
        self,
        config: GremlinConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the store client with the provided configuration."""
        if not config.endpoint.strip():
            raise GraphStoreConfigError.empty_endpoint()

        self._config = config
        headers = {
            "User-Agent": config.user_agent,
            "Accept": "application/json",
        }
        if config.key:
            headers["Authorization"] = f"Bearer {config.key}"
        self._headers = headers
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            headers=headers,
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def create_vertex(self, label: str, vertex_id: str) -> MutationResult:
        """Add a vertex; the server assigns nothing, ``vertex_id`` is the id."""
        payload = await self._submit(
            _ADD_VERTEX, {"vertexLabel": label, "vertexId": vertex_id}
        )
        return MutationResult(resource_cost=_parse_charge(payload))

    async def create_edge(
        self, from_id: str, to_id: str, label: str
    ) -> MutationResult:
        """Add an edge between two existing vertices.

        Raises
        ------
        GraphStoreError
            If the traversal matched no endpoints and created nothing.

        """
        payload = await self._submit(
            _ADD_EDGE, {"fromId": from_id, "toId": to_id, "edgeLabel": label}
        )
        if not _result_data(payload):
            msg = f"no edge created between {from_id!r} and {to_id!r}"
            raise GraphStoreError.rejected(_HTTP_NOT_FOUND, msg)
        return MutationResult(resource_cost=_parse_charge(payload))

    async def reset(self) -> MutationResult:
        """Drop every vertex, and with them every edge."""
        payload = await self._submit(_DROP_ALL, {})
        return MutationResult(resource_cost=_parse_charge(payload))

    async def vertex_exists(self, vertex_id: str) -> bool:
        """Return whether ``vertex_id`` is present."""
        payload = await self._submit(_HAS_VERTEX, {"vertexId": vertex_id})
        return self._count(payload) > 0

    async def edge_exists(self, from_id: str, to_id: str, label: str) -> bool:
        """Return whether a ``label`` edge runs from ``from_id`` to ``to_id``."""
        payload = await self._submit(
            _HAS_EDGE, {"fromId": from_id, "toId": to_id, "edgeLabel": label}
        )
        return self._count(payload) > 0

    @staticmethod
    def _count(payload: dict[str, typ.Any]) -> int:
        data = _result_data(payload)
        if not data:
            return 0
        value = _scalar(data[0])
        if not isinstance(value, int) or isinstance(value, bool):
            raise GraphStoreResponseShapeError.missing("result.data[0] count")
        return value

    async def _submit(
        self, script: str, bindings: dict[str, str]
    ) -> dict[str, typ.Any]:
        """Execute ``script`` with ``bindings`` and return the decoded body."""
        try:
            response = await self._client.post(
                self._config.endpoint,
                json={"gremlin": script, "bindings": bindings},
                headers=self._headers,
            )
        except httpx.TimeoutException as exc:
            raise GraphStoreError.timeout() from exc
        except httpx.RequestError as exc:
            raise GraphStoreError.network_error(str(exc)) from exc

        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise GraphStoreError.http_error(response.status_code)
        try:
            payload = response.json()
        except ValueError as exc:
            raise GraphStoreResponseShapeError.missing("JSON body") from exc
        if not isinstance(payload, dict):
            raise GraphStoreResponseShapeError.missing("response object")
        return payload


__all__ = ["GremlinConfig", "GremlinGraphStore"]
