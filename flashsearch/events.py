"""Decode inbound webhook requests into a normalized event."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from .errors import ValidationError
from .models import EventKind, document_id

# Headers checked for the event string, in order
_EVENT_HEADERS = ("x-appwrite-event", "x-appwrite-webhook-event")
_TYPE_HINT_HEADER = "x-document-type"


@dataclass
class WebhookEvent:
    """A webhook delivery reduced to what the reconciler needs."""

    kind: EventKind
    document: dict
    doc_id: str
    raw_event: str = ""
    hints: list[str] = field(default_factory=list)


def event_kind(raw: str) -> EventKind:
    """Map an upstream event string (e.g. Appwrite's) to an EventKind."""
    text = raw.lower()
    if "delete" in text:
        return EventKind.DELETE
    if "create" in text:
        return EventKind.CREATE
    if "update" in text:
        return EventKind.UPDATE
    return EventKind.UPSERT


def _raw_event(headers: Mapping[str, str], body: dict) -> str:
    body_event = body.get("event") or body.get("events") or body.get("type")
    if isinstance(body_event, list):
        body_event = body_event[0] if body_event else None
    if body_event:
        return str(body_event)
    for name in _EVENT_HEADERS:
        value = headers.get(name)
        if value:
            return value
    return ""


def _extract_document(body: dict) -> dict | None:
    document = body.get("document")
    if isinstance(document, dict):
        return document
    payload = body.get("payload")
    if isinstance(payload, dict):
        nested = payload.get("document")
        if isinstance(nested, dict):
            return nested
        return payload
    if body.get("$id"):
        return body
    return None


def decode_event(headers: Mapping[str, str], body: dict) -> WebhookEvent:
    """Normalize a webhook delivery.

    Raises ``ValidationError("missing_document")`` when no identifiable
    document can be found in the body.
    """
    if not isinstance(body, dict):
        raise ValidationError("missing_document")
    document = _extract_document(body)
    doc_id = document_id(document) if document else None
    if not doc_id:
        raise ValidationError("missing_document")

    raw = _raw_event(headers, body)
    hints = [
        headers.get(_TYPE_HINT_HEADER) or "",
        str(body.get("docType") or ""),
        str(body.get("collection") or ""),
        str(body.get("collectionId") or ""),
        str(document.get("$collectionId") or ""),
        raw,
    ]
    return WebhookEvent(
        kind=event_kind(raw),
        document=document,
        doc_id=doc_id,
        raw_event=raw,
        hints=[h for h in hints if h],
    )
