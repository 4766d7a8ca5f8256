"""Apply webhook events to the tasks and organizations indices.

Tasks and organizations are written as full replacements keyed by their
identifier. Teams and members have no document of their own: they live
inside their parent organization's aggregate, so an event for one of them
is merged into that aggregate (fetch, modify in memory, write back).

The fetch/write sequence of a child merge is not atomic. Two concurrent
merges into the same organization can interleave between the read and the
write, and the later write then discards the earlier change. Webhook
sources redeliver on failure only, so such a lost update is not repaired
automatically.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from opensearchpy.exceptions import NotFoundError, OpenSearchException

from .classifier import DEFAULT_RULE, classify_with_rule
from .errors import UpstreamError, ValidationError
from .events import WebhookEvent
from .models import (
    DocKind,
    EventKind,
    Member,
    OrganizationAggregate,
    Team,
    looks_like_member,
    looks_like_team,
    parent_org_id,
    task_document,
)

log = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    action: str
    id: str
    index: str
    kind: DocKind

    def to_response(self) -> dict:
        return {"ok": True, "action": self.action, "id": self.id, "index": self.index}


class DocumentReconciler:
    """Decide between upsert, merge-into-parent and delete for each event."""

    def __init__(
        self,
        store,
        tasks_index: str,
        organizations_index: str,
        *,
        refresh_after_write: bool = True,
    ) -> None:
        self.store = store
        self.tasks_index = tasks_index
        self.organizations_index = organizations_index
        self.refresh_after_write = refresh_after_write

    def index_for(self, kind: DocKind) -> str:
        if kind is DocKind.TASK:
            return self.tasks_index
        return self.organizations_index

    async def apply(self, event: WebhookEvent, kind: DocKind | None = None) -> ReconcileResult:
        """Reconcile one event. *kind* overrides classification."""
        unclassified = False
        if kind is None:
            kind, rule = classify_with_rule(event.document, event.hints)
            unclassified = rule == DEFAULT_RULE

        if event.kind is EventKind.DELETE:
            if unclassified:
                return await self._delete_everywhere(event)
            return await self._delete(event, kind)
        if kind is DocKind.TASK:
            return await self._upsert_task(event)
        if kind is DocKind.ORGANIZATION:
            return await self._upsert_organization(event)
        return await self._merge_child(event, kind)

    # ------------------------------------------------------------------
    # Deletes
    # ------------------------------------------------------------------

    async def _delete(self, event: WebhookEvent, kind: DocKind) -> ReconcileResult:
        index = self.index_for(kind)
        if kind in (DocKind.TASK, DocKind.ORGANIZATION):
            await self._delete_document(kind, event.doc_id)
            return ReconcileResult("deleted", event.doc_id, index, kind)

        parent_id = parent_org_id(event.document)
        if parent_id:
            try:
                await self._remove_child(parent_id, event.doc_id, kind)
            except OpenSearchException as exc:
                log.warning(
                    "Removing %s %s from organization %s failed: %s",
                    kind.value, event.doc_id, parent_id, exc,
                )
        return ReconcileResult("deleted", event.doc_id, index, kind)

    async def _delete_everywhere(self, event: WebhookEvent) -> ReconcileResult:
        """Delete an id whose kind the payload does not reveal from both indices."""
        found = None
        for kind in (DocKind.TASK, DocKind.ORGANIZATION):
            if await self._delete_document(kind, event.doc_id) and found is None:
                found = kind
        kind = found or DocKind.TASK
        return ReconcileResult("deleted", event.doc_id, self.index_for(kind), kind)

    async def _delete_document(self, kind: DocKind, doc_id: str) -> bool:
        """Best-effort delete; returns whether a document was removed."""
        index = self.index_for(kind)
        try:
            await self.store.delete(index=index, id=doc_id)
        except NotFoundError:
            log.info("Delete of absent %s %s ignored", kind.value, doc_id)
            return False
        except OpenSearchException as exc:
            log.warning("Delete of %s %s failed: %s", kind.value, doc_id, exc)
            return False
        await self._refresh(index)
        return True

    async def _remove_child(self, parent_id: str, child_id: str, kind: DocKind) -> None:
        try:
            resp = await self.store.get(index=self.organizations_index, id=parent_id)
        except NotFoundError:
            return
        aggregate = OrganizationAggregate.from_source(resp.get("_source"))
        if kind is DocKind.ORG_MEMBER:
            aggregate.remove_member(child_id)
        else:
            aggregate.remove_team(child_id)
        await self.store.index(
            index=self.organizations_index, id=parent_id, body=aggregate.to_doc(),
        )
        await self._refresh(self.organizations_index)

    # ------------------------------------------------------------------
    # Upserts
    # ------------------------------------------------------------------

    async def _upsert_task(self, event: WebhookEvent) -> ReconcileResult:
        await self._write(self.tasks_index, event.doc_id, task_document(event.document))
        log.info("Upserted task %s", event.doc_id)
        return ReconcileResult("upserted", event.doc_id, self.tasks_index, DocKind.TASK)

    async def _upsert_organization(self, event: WebhookEvent) -> ReconcileResult:
        payload = event.document
        has_aggregate_shape = bool(
            payload.get("name") or payload.get("members") or payload.get("teams")
        )
        if has_aggregate_shape:
            aggregate = OrganizationAggregate.from_payload(payload)
        else:
            aggregate = await self._load_aggregate(event.doc_id)
            aggregate.apply_fields(payload)

        await self._write(self.organizations_index, event.doc_id, aggregate.to_doc())
        log.info("Upserted organization %s", event.doc_id)
        return ReconcileResult(
            "upserted", event.doc_id, self.organizations_index, DocKind.ORGANIZATION,
        )

    async def _merge_child(self, event: WebhookEvent, kind: DocKind) -> ReconcileResult:
        payload = event.document
        parent_id = parent_org_id(payload)
        if not parent_id:
            raise ValidationError("missing_parent_org_id")

        aggregate = await self._load_aggregate(parent_id)
        if looks_like_member(payload):
            aggregate.upsert_member(Member.from_payload(payload))
        elif looks_like_team(payload) or kind is DocKind.TEAM:
            aggregate.upsert_team(Team.from_payload(payload))
        else:
            aggregate.upsert_member(Member.from_payload(payload))

        await self._write(self.organizations_index, parent_id, aggregate.to_doc())
        log.info("Merged %s %s into organization %s", kind.value, event.doc_id, parent_id)
        return ReconcileResult(
            "merged_into_organization", event.doc_id, self.organizations_index, kind,
        )

    # ------------------------------------------------------------------
    # Store helpers
    # ------------------------------------------------------------------

    async def _load_aggregate(self, org_id: str) -> OrganizationAggregate:
        """Fetch the stored aggregate, or an empty shell if there is none."""
        try:
            resp = await self.store.get(index=self.organizations_index, id=org_id)
        except NotFoundError:
            return OrganizationAggregate()
        except OpenSearchException as exc:
            raise UpstreamError("index_failed") from exc
        return OrganizationAggregate.from_source(resp.get("_source"))

    async def _write(self, index: str, doc_id: str, body: dict) -> None:
        try:
            await self.store.index(index=index, id=doc_id, body=body)
        except OpenSearchException as exc:
            raise UpstreamError("index_failed") from exc
        await self._refresh(index)

    async def _refresh(self, index: str) -> None:
        if not self.refresh_after_write:
            return
        try:
            await self.store.indices.refresh(index=index)
        except OpenSearchException as exc:
            log.warning("Refresh of %s failed: %s", index, exc)
