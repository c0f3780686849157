"""Repository slug utilities.

GitHub Archive events name repositories as ``owner/name`` slugs. The graph
stores repositories under an owner-qualified id in which the separator is
replaced by ``-`` (``bob/repo1`` becomes ``bob-repo1``), so the id is safe to
use as a vertex identifier.
"""

from __future__ import annotations


def repo_owner(slug: str) -> str:
    """Return the owner segment of a repository slug.

    Parameters
    ----------
    slug:
        Repository slug in ``owner/name`` format.

    Returns
    -------
    str
        The text before the first ``/`` with surrounding whitespace removed.

    Raises
    ------
    ValueError
        If the slug has no owner segment.

    Examples
    --------
    >>> repo_owner("bob/repo1")
    'bob'

    """
    owner = slug.split("/", 1)[0].strip()
    if not owner:
        msg = f"Invalid repository slug: expected 'owner/name', got {slug!r}"
        raise ValueError(msg)
    return owner


def repo_vertex_id(slug: str) -> str:
    """Return the graph vertex id for a repository slug.

    Examples
    --------
    >>> repo_vertex_id("bob/repo1")
    'bob-repo1'

    """
    return slug.replace("/", "-")
