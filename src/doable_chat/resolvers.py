"""Resolve human references (names, keys, partial titles) to team entities.

Resolvers never report ambiguity: each tier returns the first match in
snapshot order. Handlers that must refuse to guess re-query and count.
"""
from typing import Optional, Iterable

from .context import TeamContext, ProjectSummary, MemberSummary
from .sentinels import is_missing, is_unassign


def _norm(value: str) -> str:
    return value.strip().lower()


def resolve_workflow_state(ctx: TeamContext, ref: Optional[str]) -> Optional[str]:
    """Return the workflow state id for an id or exact (case-insensitive) name."""
    if is_missing(ref):
        return None
    for state in ctx.workflow_states:
        if state.id == ref:
            return state.id
    wanted = _norm(ref)
    for state in ctx.workflow_states:
        if state.name.lower() == wanted:
            return state.id
    return None


def resolve_project(ctx: TeamContext, ref: Optional[str]) -> Optional[ProjectSummary]:
    """Resolve a project by id, then key (exact), then name (substring)."""
    if is_missing(ref):
        return None
    for project in ctx.projects:
        if project.id == ref:
            return project
    wanted = _norm(ref)
    for project in ctx.projects:
        if project.key.lower() == wanted:
            return project
    for project in ctx.projects:
        if wanted in project.name.lower():
            return project
    return None


def resolve_assignee(ctx: TeamContext, ref: Optional[str]) -> Optional[MemberSummary]:
    """Resolve a member by user id, then name substring.

    Unassign placeholders ("unassigned", "null", ...) resolve to None.
    """
    if is_unassign(ref):
        return None
    for member in ctx.members:
        if member.user_id == ref:
            return member
    wanted = _norm(ref)
    for member in ctx.members:
        if wanted in member.user_name.lower():
            return member
    return None


def resolve_member(
    ctx: TeamContext,
    user_id: Optional[str] = None,
    email: Optional[str] = None,
    name: Optional[str] = None,
) -> Optional[MemberSummary]:
    """Find a team member by user id, else email (exact), else name (substring).

    Only the first supplied identifier is consulted.
    """
    if not is_missing(user_id):
        return next((m for m in ctx.members if m.user_id == user_id), None)
    if not is_missing(email):
        wanted = _norm(email)
        return next((m for m in ctx.members if m.user_email.lower() == wanted), None)
    if not is_missing(name):
        wanted = _norm(name)
        return next((m for m in ctx.members if wanted in m.user_name.lower()), None)
    return None


def resolve_label_ids(ctx: TeamContext, refs: Optional[Iterable[str]]) -> list[str]:
    """
    Resolve label ids or names to label ids.

    Each reference is tried as an id, an exact name, then a name substring.
    Unresolvable references are dropped and duplicates removed, keeping the
    order of first appearance.
    """
    resolved: list[str] = []
    for ref in refs or []:
        if is_missing(ref):
            continue
        label_id = _resolve_label(ctx, ref)
        if label_id and label_id not in resolved:
            resolved.append(label_id)
    return resolved


def _resolve_label(ctx: TeamContext, ref: str) -> Optional[str]:
    for label in ctx.labels:
        if label.id == ref:
            return label.id
    wanted = _norm(ref)
    for label in ctx.labels:
        if label.name.lower() == wanted:
            return label.id
    for label in ctx.labels:
        if wanted in label.name.lower():
            return label.id
    return None
