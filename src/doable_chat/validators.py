"""Required-field checks and argument normalisation for tool calls."""
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from doable_core.models import IssuePriority, ProjectStatus, TeamRole

from .context import TeamContext
from .sentinels import is_missing

REQUIRED_ISSUE_FIELDS = ("title", "workflow_state_id", "priority", "project_id")
REQUIRED_PROJECT_FIELDS = ("name", "key")

PROJECT_KEY_LENGTH = 3

# alias -> canonical argument name
COMMON_ALIASES: dict[str, str] = {
    "issueId": "issue_id",
    "newTitle": "new_title",
    "projectId": "project_id",
    "projectName": "project_name",
    "newName": "new_name",
    "leadId": "lead_id",
    "userId": "user_id",
    "userEmail": "user_email",
    "userName": "user_name",
    "memberId": "member_id",
    "invitationId": "invitation_id",
}

ALIASES: dict[str, str] = {
    **COMMON_ALIASES,
    "project": "project_id",
    "status": "workflow_state_id",
    "state": "workflow_state_id",
    "workflow_state": "workflow_state_id",
    "workflowStateId": "workflow_state_id",
    "assignee": "assignee_id",
    "assigneeId": "assignee_id",
    "labels": "label_ids",
    "labelIds": "label_ids",
}

# Projects have their own status field, so "status" is not an alias here
PROJECT_ALIASES: dict[str, str] = {
    **COMMON_ALIASES,
    "project": "project_id",
    "lead": "lead_id",
}

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PROJECT_KEY_PATTERN = re.compile(r"^[A-Za-z0-9]{%d}$" % PROJECT_KEY_LENGTH)

FIELD_LABELS = {
    "title": "title",
    "workflow_state_id": "workflow state",
    "priority": "priority",
    "project_id": "project",
    "name": "name",
    "key": "key",
    "email": "email",
}


@dataclass
class FieldValidation:
    is_valid: bool
    missing_fields: list[str] = field(default_factory=list)


def normalize_aliases(arguments: Mapping[str, Any], table: Optional[Mapping[str, str]] = None) -> dict[str, Any]:
    """
    Rename alias keys to their canonical names.

    A canonical key that is already present is never overwritten by an
    alias. Unknown keys pass through unchanged.

    Args:
        arguments: Raw tool arguments
        table: alias -> canonical mapping (defaults to ALIASES)

    Returns:
        New dict with canonical keys
    """
    table = ALIASES if table is None else table
    normalized = {k: v for k, v in arguments.items() if k not in table}
    for alias, value in arguments.items():
        canonical = table.get(alias)
        if canonical is None:
            continue
        if canonical in normalized:
            continue
        normalized[canonical] = value
    return normalized


def _missing(candidate: Mapping[str, Any], required: tuple[str, ...]) -> list[str]:
    return [name for name in required if is_missing(candidate.get(name))]


def validate_issue_fields(candidate: Mapping[str, Any]) -> FieldValidation:
    """Report which required issue fields are absent.

    Priority is never defaulted: leaving it out is a validation failure.
    """
    missing = _missing(candidate, REQUIRED_ISSUE_FIELDS)
    return FieldValidation(is_valid=not missing, missing_fields=missing)


def validate_project_fields(candidate: Mapping[str, Any]) -> FieldValidation:
    """Report which required project fields are absent."""
    missing = _missing(candidate, REQUIRED_PROJECT_FIELDS)
    return FieldValidation(is_valid=not missing, missing_fields=missing)


def format_validation_error(missing_fields: list[str], team_context: Optional[TeamContext] = None) -> str:
    """
    Build a remediation message for missing fields.

    When the project is missing, the available projects are listed as
    "name (key)" so the assistant can ask a targeted question.
    """
    labels = ", ".join(FIELD_LABELS.get(name, name) for name in missing_fields)
    message = f"Missing required fields: {labels}. Please ask the user to provide them."
    if "project_id" in missing_fields and team_context is not None:
        if team_context.projects:
            available = ", ".join(f"{p.name} ({p.key})" for p in team_context.projects)
            message += f" Available projects: {available}."
        else:
            message += " No projects exist yet; create one first."
    return message


def format_batch_validation_error(
    problems: list[tuple[int, list[str]]],
    noun: str,
    team_context: Optional[TeamContext] = None,
) -> str:
    """
    Build one message for every batch item with missing fields.

    Args:
        problems: (1-based item position, missing field names) pairs
        noun: Item noun used in the report ("Issue", "Project")
        team_context: When given and a project is missing, projects are listed

    Returns:
        e.g. "Missing required fields - Issue 2: priority; Issue 3: project, title. ..."
    """
    report = "; ".join(
        f"{noun} {position}: {', '.join(FIELD_LABELS.get(name, name) for name in missing)}"
        for position, missing in problems
    )
    message = f"Missing required fields - {report}. Nothing was created; please ask the user to provide them."
    project_missing = any("project_id" in missing for _, missing in problems)
    if project_missing and team_context is not None and team_context.projects:
        available = ", ".join(f"{p.name} ({p.key})" for p in team_context.projects)
        message += f" Available projects: {available}."
    return message


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and bool(EMAIL_PATTERN.match(value.strip()))


def normalize_project_key(key: str) -> Optional[str]:
    """Return the upper-cased key, or None if it is not 3 letters/digits."""
    key = key.strip()
    if not PROJECT_KEY_PATTERN.match(key):
        return None
    return key.upper()


def parse_priority(value: Any) -> Optional[IssuePriority]:
    return _parse_enum(IssuePriority, value)


def parse_project_status(value: Any) -> Optional[ProjectStatus]:
    return _parse_enum(ProjectStatus, value)


def parse_role(value: Any) -> Optional[TeamRole]:
    return _parse_enum(TeamRole, value)


def _parse_enum(enum_cls, value):
    if is_missing(value):
        return None
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return None


def allowed_values(enum_cls) -> str:
    return ", ".join(member.value for member in enum_cls)
