"""Tests for payload classification."""

from __future__ import annotations

import pytest

from flashsearch.classifier import DEFAULT_RULE, STRUCTURAL_RULES, classify, classify_with_rule
from flashsearch.models import DocKind


# ---------------------------------------------------------------------------
# Explicit hints
# ---------------------------------------------------------------------------

class TestHints:
    @pytest.mark.parametrize("hint,expected", [
        ("tasks", DocKind.TASK),
        ("TASK", DocKind.TASK),
        ("org_members", DocKind.ORG_MEMBER),
        ("OrganizationMember", DocKind.ORG_MEMBER),
        ("organizations", DocKind.ORGANIZATION),
        ("teams", DocKind.TEAM),
    ])
    def test_hint_names_kind(self, hint, expected):
        assert classify({"title": "x"}, [hint]) is expected

    def test_hint_beats_structure(self):
        payload = {"email": "a@x.com", "role": "admin"}
        assert classify(payload, ["tasks"]) is DocKind.TASK

    def test_unmatched_hint_falls_through(self):
        assert classify({"email": "a@x.com"}, ["widgets"]) is DocKind.ORG_MEMBER

    def test_first_matching_hint_wins(self):
        assert classify({}, ["", None, "something", "teams", "tasks"]) is DocKind.TEAM

    def test_appwrite_event_string(self):
        event = "databases.main.collections.org_members.documents.m1.update"
        assert classify({}, [event]) is DocKind.ORG_MEMBER


# ---------------------------------------------------------------------------
# Structural rules
# ---------------------------------------------------------------------------

class TestStructure:
    def test_email_and_title_is_member(self):
        assert classify({"email": "a@x.com", "title": "Design review"}) is DocKind.ORG_MEMBER

    def test_role_is_member(self):
        assert classify({"role": "owner", "status": "active"}) is DocKind.ORG_MEMBER

    def test_slug_is_organization(self):
        assert classify({"slug": "acme", "status": "active"}) is DocKind.ORGANIZATION

    def test_nonempty_teams_is_organization(self):
        assert classify({"name": "Acme", "teams": [{"id": "t1"}]}) is DocKind.ORGANIZATION

    def test_members_of_objects_is_organization(self):
        assert classify({"name": "Acme", "members": [{"id": "m1"}]}) is DocKind.ORGANIZATION

    def test_empty_teams_is_not_organization(self):
        assert classify({"teams": [], "title": "x"}) is DocKind.TASK

    def test_name_with_member_ids_is_team(self):
        assert classify({"name": "Platform", "members": ["m1", "m2"]}) is DocKind.TEAM

    def test_name_with_empty_members_is_team(self):
        assert classify({"name": "Platform", "members": []}) is DocKind.TEAM

    def test_mixed_member_list_is_not_team(self):
        payload = {"name": "Platform", "members": ["m1", 2], "status": "open"}
        assert classify(payload) is DocKind.TASK

    @pytest.mark.parametrize("field", ["title", "userEmail", "description", "status"])
    def test_task_fields(self, field):
        assert classify({field: "x"}) is DocKind.TASK

    def test_default_is_task(self):
        assert classify({"$id": "abc"}) is DocKind.TASK

    def test_rule_order(self):
        assert [name for name, _, _ in STRUCTURAL_RULES] == [
            "member", "organization", "team", "task",
        ]

    def test_reports_deciding_rule(self):
        assert classify_with_rule({"$id": "abc"}) == (DocKind.TASK, DEFAULT_RULE)
        assert classify_with_rule({"$id": "abc", "title": "x"}) == (DocKind.TASK, "task")
        assert classify_with_rule({"$id": "abc"}, ["tasks"]) == (DocKind.TASK, "hint")
        assert classify_with_rule({"email": "a@x.com"}) == (DocKind.ORG_MEMBER, "member")
