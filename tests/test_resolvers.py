"""Tests for entity reference resolution."""
import pytest

from doable_chat.context import (
    TeamContext,
    ProjectSummary,
    WorkflowStateSummary,
    LabelSummary,
    MemberSummary,
)
from doable_chat.resolvers import (
    resolve_workflow_state,
    resolve_project,
    resolve_assignee,
    resolve_member,
    resolve_label_ids,
)
from doable_chat.sentinels import is_missing, is_unassign, clean


@pytest.fixture
def team_context():
    return TeamContext(
        team_id="team-1",
        team_name="Acme",
        projects=(
            ProjectSummary(id="p-1", name="Website", key="WEB", description=None, status="active"),
            ProjectSummary(id="p-2", name="Website Redesign", key="WRD", description=None, status="active"),
            # A project whose name collides with another project's id
            ProjectSummary(id="p-3", name="p-1", key="ODD", description=None, status="active"),
        ),
        workflow_states=(
            WorkflowStateSummary(id="s-1", name="Todo", type="unstarted", position=0),
            WorkflowStateSummary(id="s-2", name="In Progress", type="started", position=1),
            WorkflowStateSummary(id="s-3", name="s-1", type="completed", position=2),
        ),
        labels=(
            LabelSummary(id="l-1", name="Bug", color="#f00"),
            LabelSummary(id="l-2", name="Feature", color="#0f0"),
            LabelSummary(id="l-3", name="Feature Flag", color="#00f"),
        ),
        members=(
            MemberSummary(user_id="u-1", user_name="Alice Admin", user_email="alice@acme.test", role="admin"),
            MemberSummary(user_id="u-2", user_name="Bob Builder", user_email="bob@acme.test", role="developer"),
        ),
    )


class TestWorkflowStateResolution:
    """Workflow states resolve by id or exact name only."""

    def test_id_wins_over_name(self, team_context):
        """An exact id match takes precedence over a state named like that id."""
        assert resolve_workflow_state(team_context, "s-1") == "s-1"

    def test_name_is_case_insensitive(self, team_context):
        assert resolve_workflow_state(team_context, "in progress") == "s-2"
        assert resolve_workflow_state(team_context, "  TODO ") == "s-1"

    def test_no_substring_fallback(self, team_context):
        """Partial names never resolve."""
        assert resolve_workflow_state(team_context, "prog") is None

    def test_sentinels_resolve_to_none(self, team_context):
        for ref in (None, "", "null", "undefined"):
            assert resolve_workflow_state(team_context, ref) is None


class TestProjectResolution:
    """Projects resolve by id, then key, then name substring."""

    def test_id_wins_over_name(self, team_context):
        assert resolve_project(team_context, "p-1").name == "Website"

    def test_key_match_is_case_insensitive(self, team_context):
        assert resolve_project(team_context, "wrd").id == "p-2"

    def test_substring_returns_first_in_team_order(self, team_context):
        """'websi' matches both Website projects; the first one wins."""
        assert resolve_project(team_context, "websi").name == "Website"

    def test_short_substring_prefers_team_order(self):
        ctx = TeamContext(
            team_id="team-2",
            team_name="Other",
            projects=(
                ProjectSummary(id="a", name="Website", key="AAA", description=None, status="active"),
                ProjectSummary(id="b", name="Website Redesign", key="BBB", description=None, status="active"),
            ),
        )
        assert resolve_project(ctx, "web").name == "Website"

    def test_substring_reaches_later_projects(self, team_context):
        assert resolve_project(team_context, "redesign").id == "p-2"

    def test_unknown_reference(self, team_context):
        assert resolve_project(team_context, "mobile") is None
        assert resolve_project(team_context, "null") is None


class TestAssigneeResolution:
    """Assignees resolve by user id, then name substring."""

    def test_user_id(self, team_context):
        assert resolve_assignee(team_context, "u-2").user_name == "Bob Builder"

    def test_name_substring(self, team_context):
        assert resolve_assignee(team_context, "alice").user_id == "u-1"
        assert resolve_assignee(team_context, "BUILD").user_id == "u-2"

    def test_unassign_sentinels(self, team_context):
        for ref in ("unassigned", "Unassigned", "null", "undefined", "", None):
            assert resolve_assignee(team_context, ref) is None

    def test_no_match(self, team_context):
        assert resolve_assignee(team_context, "Zed") is None


class TestMemberResolution:
    """Members resolve by the first identifier supplied."""

    def test_by_email_exact(self, team_context):
        assert resolve_member(team_context, email="BOB@acme.test").user_id == "u-2"

    def test_email_is_not_substring(self, team_context):
        assert resolve_member(team_context, email="bob@acme") is None

    def test_by_name(self, team_context):
        assert resolve_member(team_context, name="alice").user_id == "u-1"

    def test_user_id_takes_precedence(self, team_context):
        """When a user id is given, name and email are ignored."""
        assert resolve_member(team_context, user_id="u-2", name="alice").user_id == "u-2"

    def test_nothing_supplied(self, team_context):
        assert resolve_member(team_context) is None


class TestLabelResolution:
    """Labels resolve by id, exact name, then substring; misses are dropped."""

    def test_mixed_references(self, team_context):
        assert resolve_label_ids(team_context, ["l-1", "feature"]) == ["l-1", "l-2"]

    def test_exact_name_beats_earlier_substring(self, team_context):
        """'Feature' matches its own label, not 'Feature Flag'."""
        assert resolve_label_ids(team_context, ["FEATURE"]) == ["l-2"]

    def test_substring_fallback(self, team_context):
        assert resolve_label_ids(team_context, ["flag"]) == ["l-3"]

    def test_unresolved_dropped_and_deduplicated(self, team_context):
        assert resolve_label_ids(team_context, ["bug", "nope", "Bug", "l-1", "feature"]) == ["l-1", "l-2"]

    def test_empty_input(self, team_context):
        assert resolve_label_ids(team_context, None) == []
        assert resolve_label_ids(team_context, []) == []


class TestSentinels:
    """Placeholder detection shared by validators and resolvers."""

    def test_missing_values(self):
        for value in (None, "", "   ", "null", "NULL", "undefined"):
            assert is_missing(value)

    def test_present_values(self):
        for value in ("x", 0, False, [], "unassigned"):
            assert not is_missing(value)

    def test_unassign(self):
        assert is_unassign("unassigned")
        assert is_unassign(None)
        assert not is_unassign("Bob")

    def test_clean(self):
        assert clean("  hi ") == "hi"
        assert clean("undefined") is None
        assert clean(3) == 3
