"""Document models for the tasks and organizations indices."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum


class DocKind(Enum):
    TASK = "task"
    ORGANIZATION = "organization"
    TEAM = "team"
    ORG_MEMBER = "orgMember"


class EventKind(Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    UPSERT = "upsert"


# Fields copied verbatim from a task payload into the tasks index
TASK_FIELDS = (
    "title",
    "description",
    "category",
    "status",
    "priority",
    "dueDate",
    "userEmail",
    "$createdAt",
    "$updatedAt",
    "assignee",
    "invites",
)

# Payload keys that may reference the parent organization of a team/member
PARENT_REF_FIELDS = ("organizationId", "orgId", "parentOrgId", "organization")


def document_id(payload: dict) -> str | None:
    """Return the identifier of an inbound document, if it has one."""
    value = payload.get("$id") or payload.get("id")
    return str(value) if value else None


def task_document(payload: dict) -> dict:
    """Project a task payload onto the stored task shape."""
    doc = {key: payload[key] for key in TASK_FIELDS if key in payload}
    doc["docType"] = DocKind.TASK.value
    return doc


def parent_org_id(payload: dict) -> str | None:
    """Resolve the parent organization id referenced by a child payload."""
    for key in PARENT_REF_FIELDS:
        value = payload.get(key)
        if isinstance(value, dict):
            value = value.get("$id") or value.get("id")
        if value:
            return str(value)
    return None


def looks_like_member(payload: dict) -> bool:
    return "email" in payload or "role" in payload


def looks_like_team(payload: dict) -> bool:
    return bool(payload.get("name")) and isinstance(payload.get("members"), list)


@dataclass
class Member:
    """A member embedded in an organization aggregate."""

    id: str
    name: str | None = None
    email: str | None = None
    role: str | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> Member:
        """Build a member entry from a child payload.

        Webhook deliveries always carry ``$id`` or ``id`` (``decode_event``
        rejects anything else). The ``userId``, email and random fallbacks
        only apply when a member is built directly from a partial record.
        """
        email = payload.get("email")
        member_id = (
            payload.get("$id")
            or payload.get("id")
            or payload.get("userId")
            or (f"member-{email}" if email else None)
            or str(uuid.uuid4())
        )
        return cls(
            id=str(member_id),
            name=payload.get("name"),
            email=email,
            role=payload.get("role"),
        )

    def to_entry(self) -> dict:
        """Serialize, leaving out fields the payload did not carry."""
        entry = {"id": self.id}
        for key in ("name", "email", "role"):
            value = getattr(self, key)
            if value is not None:
                entry[key] = value
        return entry


@dataclass
class Team:
    """A team embedded in an organization aggregate."""

    id: str
    name: str | None = None
    members: list | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> Team:
        team_id = payload.get("$id") or payload.get("id") or str(uuid.uuid4())
        members = payload.get("members")
        return cls(
            id=str(team_id),
            name=payload.get("name"),
            members=list(members) if isinstance(members, list) else None,
        )

    def to_entry(self) -> dict:
        entry = {"id": self.id}
        if self.name is not None:
            entry["name"] = self.name
        if self.members is not None:
            entry["members"] = self.members
        return entry


def _entry_id(entry) -> str | None:
    if not isinstance(entry, dict):
        return None
    value = entry.get("id") or entry.get("$id")
    return str(value) if value else None


def _normalize_entries(entries) -> list:
    """Key embedded objects by ``id``; upstream payloads deliver ``$id``."""
    result = []
    for entry in entries or []:
        if isinstance(entry, dict) and "$id" in entry:
            entry_id = _entry_id(entry)
            entry = {k: v for k, v in entry.items() if k != "$id"}
            if entry_id:
                entry = {"id": entry_id, **entry}
        result.append(entry)
    return result


def _upsert_entry(entries: list[dict], entry: dict) -> list[dict]:
    """Replace the entry with the same id (shallow merge) or append it."""
    result = []
    found = False
    for existing in entries:
        if _entry_id(existing) == entry["id"]:
            result.append({**existing, **entry})
            found = True
        else:
            result.append(existing)
    if not found:
        result.append(entry)
    return result


def _remove_entry(entries: list, entry_id: str) -> list:
    return [e for e in entries if _entry_id(e) != entry_id]


@dataclass
class OrganizationAggregate:
    """The organization document with its embedded members and teams.

    Unknown top-level fields read from the store are kept in ``extra`` and
    written back untouched.
    """

    name: str = ""
    slug: str = ""
    description: str = ""
    members: list = field(default_factory=list)
    teams: list = field(default_factory=list)
    created_at: str | None = None
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_source(cls, source: dict | None) -> OrganizationAggregate:
        """Build from a stored ``_source``; ``None`` yields an empty shell."""
        if not source:
            return cls()
        known = {"name", "slug", "description", "members", "teams", "$createdAt", "docType"}
        return cls(
            name=source.get("name") or "",
            slug=source.get("slug") or "",
            description=source.get("description") or "",
            members=_normalize_entries(source.get("members")),
            teams=_normalize_entries(source.get("teams")),
            created_at=source.get("$createdAt"),
            extra={k: v for k, v in source.items() if k not in known},
        )

    @classmethod
    def from_payload(cls, payload: dict) -> OrganizationAggregate:
        """Full-replace shape of an organization payload."""
        return cls(
            name=payload.get("name") or "",
            slug=payload.get("slug") or "",
            description=payload.get("description") or "",
            members=_normalize_entries(payload.get("members")),
            teams=_normalize_entries(payload.get("teams")),
            created_at=payload.get("$createdAt"),
        )

    def apply_fields(self, payload: dict) -> None:
        """Shallow-update the top-level fields present in *payload*."""
        for key in ("name", "slug", "description"):
            if key in payload:
                setattr(self, key, payload[key] or "")
        if "$createdAt" in payload:
            self.created_at = payload["$createdAt"]

    def upsert_member(self, member: Member) -> None:
        self.members = _upsert_entry(self.members, member.to_entry())

    def upsert_team(self, team: Team) -> None:
        self.teams = _upsert_entry(self.teams, team.to_entry())

    def remove_member(self, member_id: str) -> None:
        self.members = _remove_entry(self.members, member_id)

    def remove_team(self, team_id: str) -> None:
        self.teams = _remove_entry(self.teams, team_id)

    def to_doc(self) -> dict:
        doc = dict(self.extra)
        doc.update({
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "members": self.members,
            "teams": self.teams,
            "docType": DocKind.ORGANIZATION.value,
        })
        if self.created_at is not None:
            doc["$createdAt"] = self.created_at
        return doc
