"""Tests for the project tool handlers."""
from doable_core import models
from doable_chat import handlers

from conftest import add_issue


class TestCreateProject:
    """Project creation with key validation."""

    async def test_key_is_uppercased(self, db, seed, ctx):
        result = await handlers.handle_create_project({"name": "Mobile App", "key": "mob"}, ctx)

        assert result.success, result.error
        assert result.data["key"] == "MOB"
        assert result.message == "Created project Mobile App (MOB)"

    async def test_defaults(self, db, seed, ctx):
        """Status defaults to active and colour to the configured default."""
        result = await handlers.handle_create_project({"name": "Mobile App", "key": "MOB"}, ctx)
        assert result.data["status"] == "active"
        assert result.data["color"] == "#6366f1"
        assert result.data["lead_id"] is None

    async def test_key_must_be_three_characters(self, db, seed, ctx):
        for key in ("MO", "MOBL", "M-B"):
            result = await handlers.handle_create_project({"name": "Mobile", "key": key}, ctx)
            assert not result.success
            assert "exactly 3" in result.error
        assert db.query(models.Project).count() == 2

    async def test_missing_key(self, ctx):
        result = await handlers.handle_create_project({"name": "Mobile"}, ctx)
        assert not result.success
        assert "key" in result.error

    async def test_duplicate_key_is_case_insensitive(self, db, seed, ctx):
        result = await handlers.handle_create_project({"name": "Web Two", "key": "web"}, ctx)
        assert not result.success
        assert 'key "WEB" already exists: Website (WEB)' in result.error

    async def test_lead_by_name(self, seed, ctx):
        result = await handlers.handle_create_project({"name": "Mobile", "key": "MOB", "lead_id": "bob"}, ctx)
        assert result.data["lead_id"] == seed.bob.id

    async def test_unknown_lead(self, db, seed, ctx):
        result = await handlers.handle_create_project({"name": "Mobile", "key": "MOB", "lead_id": "Zed"}, ctx)
        assert not result.success
        assert "Alice Admin" in result.error

    async def test_invalid_status(self, ctx):
        result = await handlers.handle_create_project({"name": "Mobile", "key": "MOB", "status": "paused"}, ctx)
        assert not result.success
        assert "active, completed, canceled" in result.error


class TestCreateProjects:
    """Batch project creation."""

    async def test_key_conflicts_fail_per_item(self, db, seed, ctx):
        result = await handlers.handle_create_projects(
            {
                "projects": [
                    {"name": "Mobile", "key": "MOB"},
                    {"name": "Mobile Two", "key": "mob"},
                    {"name": "Web Again", "key": "WEB"},
                    {"name": "Docs", "key": "DOC"},
                ]
            },
            ctx,
        )

        assert result.success
        assert result.created_count == 2
        assert result.failed_count == 2
        assert [e["item"] for e in result.data["errors"]] == ['"Mobile Two"', '"Web Again"']
        assert db.query(models.Project).count() == 4

    async def test_missing_fields_reject_batch(self, db, seed, ctx):
        result = await handlers.handle_create_projects(
            {"projects": [{"name": "Mobile", "key": "MOB"}, {"name": "Docs"}]}, ctx
        )
        assert not result.success
        assert "Project 2: key" in result.error
        assert db.query(models.Project).count() == 2


class TestUpdateProject:
    """Project updates by id, key or name."""

    async def test_update_by_key(self, db, seed, ctx):
        result = await handlers.handle_update_project(
            {"project_id": "WRD", "new_name": "Redesign 2024", "status": "completed"}, ctx
        )

        assert result.success, result.error
        db.refresh(seed.redesign)
        assert seed.redesign.name == "Redesign 2024"
        assert seed.redesign.status == models.ProjectStatus.COMPLETED

    async def test_ambiguous_name(self, db, seed, ctx):
        """'Website' is a substring of two project names and no key."""
        result = await handlers.handle_update_project({"name": "Website", "description": "x"}, ctx)

        assert not result.success
        assert "Website (WEB)" in result.error
        assert "Website Redesign (WRD)" in result.error
        db.refresh(seed.website)
        assert seed.website.description is None

    async def test_unique_name_substring(self, seed, ctx):
        result = await handlers.handle_update_project({"name": "redesign", "color": "#000000"}, ctx)
        assert result.success
        assert result.data["color"] == "#000000"

    async def test_clear_lead(self, db, seed, ctx):
        seed.website.lead_id = seed.bob.id
        db.commit()
        result = await handlers.handle_update_project({"project_id": seed.website.id, "lead_id": "unassigned"}, ctx)
        assert result.success
        assert result.data["lead_id"] is None

    async def test_not_found(self, ctx):
        result = await handlers.handle_update_project({"name": "Mobile", "new_name": "x"}, ctx)
        assert not result.success
        assert 'No project found with name "Mobile"' in result.error


class TestDeleteAndListProjects:
    """Deleting cascades to issues; listing carries counts."""

    async def test_delete_cascades_issues(self, db, seed, ctx):
        add_issue(db, seed, "On website", number=1, project=seed.website)
        add_issue(db, seed, "On redesign", number=2, project=seed.redesign)

        result = await handlers.handle_delete_project({"project_id": "WEB"}, ctx)

        assert result.success
        assert "all its issues" in result.message
        assert [i.title for i in db.query(models.Issue).all()] == ["On redesign"]

    async def test_list_with_counts(self, db, seed, ctx):
        add_issue(db, seed, "On website", number=1, project=seed.website)
        db.add(models.ProjectMember(project_id=seed.website.id, user_id=seed.bob.id))
        db.commit()

        result = await handlers.handle_list_projects({}, ctx)

        assert result.data["count"] == 2
        website = result.data["projects"][0]
        assert website["key"] == "WEB"
        assert website["issue_count"] == 1
        assert website["member_count"] == 1
        assert result.data["projects"][1]["issue_count"] == 0
