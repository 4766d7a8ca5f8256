"""Per-index summary of which fields support exact (keyword) matching.

The summary only steers the query builder: ``term`` or ``match_phrase``,
and whether a clause needs a ``nested`` wrapper. A stale or empty summary
degrades match precision but never affects writes, so the cache is
refreshed lazily and without locking: concurrent refreshes race and the
last writer wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

from opensearchpy.exceptions import OpenSearchException

from . import config

log = logging.getLogger(__name__)

EXACT_TYPES = frozenset({"keyword", "constant_keyword"})

# Owner-email-like and name/title-like fields consulted by the query builder
CANDIDATE_FIELDS = (
    "userEmail",
    "members.email",
    "docType",
    "title",
    "name",
    "slug",
    "members.name",
    "teams.name",
)


def _walk(properties: dict, path: str) -> dict | None:
    """Return the mapping definition at a dot-separated *path*, or None."""
    node: dict | None = None
    current = properties
    for segment in path.split("."):
        if not isinstance(current, dict):
            return None
        node = current.get(segment)
        if not isinstance(node, dict):
            return None
        current = node.get("properties")
    return node


def nested_paths_for(properties: dict, path: str) -> tuple[str, ...]:
    """Return the ``nested`` ancestors of *path*, outermost first.

    Fields under a ``nested`` object only match inside a ``nested`` query
    on that object's path.
    """
    found = []
    segments = path.split(".")
    for depth in range(1, len(segments)):
        prefix = ".".join(segments[:depth])
        definition = _walk(properties, prefix)
        if definition is None:
            break
        if definition.get("type") == "nested":
            found.append(prefix)
    return tuple(found)


def exact_path_for(properties: dict, path: str) -> str | None:
    """Return the path to query for exact matches on *path*, if any.

    A field that is itself a keyword is exact. Otherwise a keyword
    sub-field qualifies, preferring one named ``keyword``.
    """
    definition = _walk(properties, path)
    if definition is None:
        return None
    if definition.get("type") in EXACT_TYPES:
        return path
    subfields = definition.get("fields") or {}
    preferred = subfields.get("keyword")
    if isinstance(preferred, dict) and preferred.get("type") in EXACT_TYPES:
        return f"{path}.keyword"
    for name, sub in subfields.items():
        if isinstance(sub, dict) and sub.get("type") in EXACT_TYPES:
            return f"{path}.{name}"
    return None


@dataclass
class MappingSummary:
    """index -> field path -> exact path (None when there is none).

    ``nested`` records, per index and field path, the ``nested`` object
    paths a clause on that field has to be wrapped in.
    """

    fields: dict[str, dict[str, str | None]] = field(default_factory=dict)
    loaded_at: str | None = None
    nested: dict[str, dict[str, tuple[str, ...]]] = field(default_factory=dict)

    def has_exact(self, index: str, path: str) -> bool:
        return self.exact_path(index, path) is not None

    def exact_path(self, index: str, path: str) -> str | None:
        return self.fields.get(index, {}).get(path)

    def nested_paths(self, index: str, path: str) -> tuple[str, ...]:
        return self.nested.get(index, {}).get(path, ())

    def as_dict(self) -> dict[str, dict[str, bool]]:
        return {
            index: {path: exact is not None for path, exact in paths.items()}
            for index, paths in self.fields.items()
        }


def summarize(
    raw: dict,
    indices: Iterable[str],
    fields: Iterable[str] = CANDIDATE_FIELDS,
) -> MappingSummary:
    """Build a summary from ``indices.get_mapping`` responses.

    *raw* maps each requested index name to its mapping entry.
    """
    fields = tuple(fields)
    summary: dict[str, dict[str, str | None]] = {}
    nested: dict[str, dict[str, tuple[str, ...]]] = {}
    for index in indices:
        properties = ((raw.get(index) or {}).get("mappings") or {}).get("properties") or {}
        summary[index] = {path: exact_path_for(properties, path) for path in fields}
        nested[index] = {path: nested_paths_for(properties, path) for path in fields}
    return MappingSummary(
        fields=summary,
        nested=nested,
        loaded_at=datetime.now(timezone.utc).isoformat(),
    )


async def fetch_mapping(store, index: str) -> dict:
    """Return the ``get_mapping`` entry for *index*, which may be an alias."""
    resp = await store.indices.get_mapping(index=index)
    # Aliases come back keyed by the concrete index name
    return resp.get(index) or next(iter(resp.values()), {})


class MappingSummaryCache:
    """Process-wide mapping summary with an explicit refresh lifecycle."""

    def __init__(
        self,
        store,
        indices: Iterable[str] | None = None,
        fields: Iterable[str] = CANDIDATE_FIELDS,
    ) -> None:
        self.store = store
        self.indices = tuple(indices or (config.TASKS_INDEX, config.ORGANIZATIONS_INDEX))
        self.fields = tuple(fields)
        self.raw: dict = {}
        self._summary: MappingSummary | None = None

    def get(self) -> MappingSummary | None:
        """Return the last successfully loaded snapshot."""
        return self._summary

    async def ensure(self) -> MappingSummary:
        """Return the snapshot, loading it first if none exists yet."""
        if self._summary is not None:
            return self._summary
        return await self.refresh()

    async def refresh(self) -> MappingSummary:
        """Reload the schema of every configured index.

        Never raises. If no index schema could be read, returns an empty
        summary (everything reported as having no exact sub-field) and
        leaves any previous snapshot in place.
        """
        raw: dict = {}
        for index in self.indices:
            try:
                raw[index] = await fetch_mapping(self.store, index)
            except OpenSearchException as exc:
                log.warning("Mapping lookup failed for %s: %s", index, exc)

        if not raw:
            return MappingSummary(fields={index: {} for index in self.indices})

        summary = summarize(raw, self.indices, self.fields)
        self.raw = raw
        self._summary = summary
        log.info("Mapping summary refreshed for %s", ", ".join(raw))
        return summary
