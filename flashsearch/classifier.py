"""Classify inbound webhook payloads into document kinds.

Explicit hints (header values, body fields, the event string) win over the
payload's shape. When no hint names a kind, the structural rules below are
tried in order; the first that matches decides. Their order matters: a
member or organization payload can carry task-like fields such as
``status``, so the task rule must come last.
"""

from __future__ import annotations

from typing import Callable, Iterable

from .models import DocKind, looks_like_member

Rule = tuple[str, Callable[[dict], bool], DocKind]

DEFAULT_RULE = "default"


def _hint_kind(hint: str) -> DocKind | None:
    text = hint.lower()
    if "task" in text:
        return DocKind.TASK
    if "org" in text and "member" in text:
        return DocKind.ORG_MEMBER
    if "org" in text:
        return DocKind.ORGANIZATION
    if "team" in text:
        return DocKind.TEAM
    return None


def _is_organization(payload: dict) -> bool:
    if "slug" in payload:
        return True
    teams = payload.get("teams")
    if isinstance(teams, list) and teams:
        return True
    members = payload.get("members")
    return isinstance(members, list) and bool(members) and isinstance(members[0], dict)


def _is_team(payload: dict) -> bool:
    members = payload.get("members")
    return (
        "name" in payload
        and isinstance(members, list)
        and all(isinstance(m, str) for m in members)
    )


def _is_task(payload: dict) -> bool:
    return any(key in payload for key in ("title", "userEmail", "description", "status"))


STRUCTURAL_RULES: tuple[Rule, ...] = (
    ("member", looks_like_member, DocKind.ORG_MEMBER),
    ("organization", _is_organization, DocKind.ORGANIZATION),
    ("team", _is_team, DocKind.TEAM),
    ("task", _is_task, DocKind.TASK),
)


def classify_with_rule(
    payload: dict, hints: Iterable[str | None] = (),
) -> tuple[DocKind, str]:
    """Return the document kind and the name of the rule that decided it.

    The rule is ``"hint"``, one of the ``STRUCTURAL_RULES`` names, or
    ``DEFAULT_RULE`` when nothing matched.
    """
    for hint in hints:
        if not hint:
            continue
        kind = _hint_kind(str(hint))
        if kind is not None:
            return kind, "hint"

    for name, matches, kind in STRUCTURAL_RULES:
        if matches(payload):
            return kind, name

    return DocKind.TASK, DEFAULT_RULE


def classify(payload: dict, hints: Iterable[str | None] = ()) -> DocKind:
    """Return the document kind for *payload*; never fails."""
    return classify_with_rule(payload, hints)[0]
