"""Build visibility-scoped full-text queries.

Every query pairs a prefix-tolerant text clause with a visibility filter:
a hit must match the text and belong to at least one branch of the filter
(tasks the caller owns, or organizations the caller is a member of).

Identity equality is expressed as a ``term`` on an exact (keyword) path
only when the mapping summary reports one. A ``term`` against a tokenized
text field silently matches nothing, so without an exact path the builder
falls back to ``match_phrase``. A plain ``match`` would accept tokens drawn
from different values of a multi-valued field (``a@y.com`` and ``b@x.com``
would pass for ``a@x.com``); a phrase cannot span two values.

Fields under a ``nested`` object are wrapped in a ``nested`` query on that
object's path, otherwise they match nothing.
"""

from __future__ import annotations

from . import config
from .errors import ValidationError
from .mappings import MappingSummary, MappingSummaryCache
from .models import DocKind

# Weighted fields for the text clause, highest weight first
SEARCH_FIELDS = (
    "title^3",
    "description^2",
    "category",
    "assignee",
    "invites",
    "name",
    "slug",
    "members.name",
    "members.email",
    "teams.name",
)

TASK_OWNER_FIELD = "userEmail"
MEMBER_EMAIL_FIELD = "members.email"
DOC_TYPE_FIELD = "docType"


def clamp_limit(limit) -> int:
    """Coerce a requested result size into ``[1, SEARCH_MAX_LIMIT]``."""
    try:
        size = int(limit)
    except (TypeError, ValueError):
        size = 0
    if size == 0:
        size = config.SEARCH_DEFAULT_LIMIT
    return max(1, min(size, config.SEARCH_MAX_LIMIT))


def equals_clause(summary: MappingSummary, index: str, path: str, value: str) -> dict:
    """Exact ``term`` if the index has a keyword path for *path*, else ``match_phrase``."""
    exact = summary.exact_path(index, path)
    if exact:
        clause = {"term": {exact: value}}
    else:
        clause = {"match_phrase": {path: value}}
    for nested_path in reversed(summary.nested_paths(index, path)):
        clause = {"nested": {"path": nested_path, "query": clause}}
    return clause


class VisibilityScopedQueryBuilder:
    def __init__(
        self,
        mapping_cache: MappingSummaryCache,
        tasks_index: str,
        organizations_index: str,
    ) -> None:
        self.mapping_cache = mapping_cache
        self.tasks_index = tasks_index
        self.organizations_index = organizations_index

    async def build(self, text: str, identity: str | None, *, scoped: bool = True) -> dict:
        summary = await self.mapping_cache.ensure()
        return self.compose(text, identity, summary, scoped=scoped)

    def text_clause(self, text: str) -> dict:
        return {
            "simple_query_string": {
                "query": f"{text.strip()}*",
                "fields": list(SEARCH_FIELDS),
                "default_operator": "and",
                "analyze_wildcard": True,
                "lenient": True,
            }
        }

    def visibility_filter(self, identity: str, summary: MappingSummary) -> dict:
        tasks_branch = {
            "bool": {
                "filter": [
                    equals_clause(summary, self.tasks_index, DOC_TYPE_FIELD, DocKind.TASK.value),
                    equals_clause(summary, self.tasks_index, TASK_OWNER_FIELD, identity),
                ]
            }
        }
        organizations_branch = {
            "bool": {
                "filter": [
                    equals_clause(
                        summary, self.organizations_index,
                        DOC_TYPE_FIELD, DocKind.ORGANIZATION.value,
                    ),
                    equals_clause(
                        summary, self.organizations_index, MEMBER_EMAIL_FIELD, identity,
                    ),
                ]
            }
        }
        return {
            "bool": {
                "should": [tasks_branch, organizations_branch],
                "minimum_should_match": 1,
            }
        }

    def compose(
        self,
        text: str,
        identity: str | None,
        summary: MappingSummary,
        *,
        scoped: bool = True,
    ) -> dict:
        """Return the ``query`` section for *text* as seen by *identity*.

        With ``scoped=False`` the visibility filter is left out; that form
        exists only for operator diagnostics.
        """
        identity = (identity or "").strip()
        if not identity:
            raise ValidationError("userEmail_required")

        query: dict = {"bool": {"must": [self.text_clause(text)]}}
        if scoped:
            query["bool"]["filter"] = [self.visibility_filter(identity, summary)]
        return query
