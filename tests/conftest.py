"""Shared test fixtures: in-memory database, seeded team, fakes."""
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from doable_core import models
from doable_chat.context import load_team_context
from doable_chat.handlers import ToolContext
from doable_chat.store import TeamStore


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def seed(db):
    """A team with two members, two projects, four states and two labels."""
    base = datetime(2024, 1, 1, 9, 0, 0)

    team = models.Team(name="Acme", slug="acme")
    alice = models.User(email="alice@acme.test", name="Alice Admin")
    bob = models.User(email="bob@acme.test", name="Bob Builder")
    outsider = models.User(email="olga@elsewhere.test", name="Olga Outsider")
    db.add_all([team, alice, bob, outsider])
    db.flush()

    alice_member = models.TeamMember(team_id=team.id, user_id=alice.id, role=models.TeamRole.ADMIN, joined_at=base)
    bob_member = models.TeamMember(
        team_id=team.id, user_id=bob.id, role=models.TeamRole.DEVELOPER, joined_at=base + timedelta(minutes=1)
    )

    website = models.Project(team_id=team.id, name="Website", key="WEB", created_at=base)
    redesign = models.Project(
        team_id=team.id, name="Website Redesign", key="WRD", created_at=base + timedelta(minutes=1)
    )

    backlog = models.WorkflowState(team_id=team.id, name="Backlog", type=models.WorkflowStateType.BACKLOG, position=0)
    todo = models.WorkflowState(team_id=team.id, name="Todo", type=models.WorkflowStateType.UNSTARTED, position=1)
    in_progress = models.WorkflowState(
        team_id=team.id, name="In Progress", type=models.WorkflowStateType.STARTED, position=2
    )
    done = models.WorkflowState(team_id=team.id, name="Done", type=models.WorkflowStateType.COMPLETED, position=3)

    bug = models.Label(team_id=team.id, name="Bug", color="#ef4444")
    feature = models.Label(team_id=team.id, name="Feature", color="#22c55e")

    db.add_all([alice_member, bob_member, website, redesign, backlog, todo, in_progress, done, bug, feature])
    db.commit()

    return SimpleNamespace(
        team=team,
        alice=alice,
        bob=bob,
        outsider=outsider,
        alice_member=alice_member,
        bob_member=bob_member,
        website=website,
        redesign=redesign,
        backlog=backlog,
        todo=todo,
        in_progress=in_progress,
        done=done,
        bug=bug,
        feature=feature,
    )


class FakeMailer:
    """Records invitation emails instead of sending them."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    async def __call__(self, **kwargs):
        if self.fail:
            raise RuntimeError("SMTP is down")
        self.sent.append(kwargs)
        return {"success": True}


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def make_ctx(db, seed, mailer):
    """Build a ToolContext with a fresh team snapshot, acting as Alice by default."""

    def _make(actor=None, mailer_override=None):
        actor = actor or seed.alice
        return ToolContext(
            team_id=seed.team.id,
            actor_id=actor.id,
            actor_name=actor.display_name,
            actor_email=actor.email,
            team_context=load_team_context(db, seed.team.id),
            store=TeamStore(db, seed.team.id),
            mailer=mailer_override or mailer,
            app_url="https://doable.test",
        )

    return _make


@pytest.fixture
def ctx(make_ctx):
    return make_ctx()


def add_issue(db, seed, title, number, state=None, project=None, priority=models.IssuePriority.MEDIUM):
    """Insert an issue directly, bypassing the handlers."""
    issue = models.Issue(
        team_id=seed.team.id,
        number=number,
        title=title,
        priority=priority,
        project_id=(project or seed.website).id,
        workflow_state_id=(state or seed.todo).id,
    )
    db.add(issue)
    db.commit()
    return issue


# ---------------------------------------------------------------------------
# Fake Anthropic client
# ---------------------------------------------------------------------------

def text_step(text):
    """A model step that only answers with text."""
    return {"texts": [text], "tool_calls": []}


def tool_step(name, arguments, text="", tool_id=None):
    """A model step that calls one tool."""
    return {"texts": [text] if text else [], "tool_calls": [(tool_id or f"toolu_{name}", name, arguments)]}


class FakeStream:
    def __init__(self, step):
        self.step = step

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    @property
    def text_stream(self):
        async def gen():
            for text in self.step["texts"]:
                yield text

        return gen()

    async def get_final_message(self):
        content = [SimpleNamespace(type="text", text=t) for t in self.step["texts"]]
        content += [
            SimpleNamespace(type="tool_use", id=tool_id, name=name, input=arguments)
            for tool_id, name, arguments in self.step["tool_calls"]
        ]
        return SimpleNamespace(content=content, stop_reason="tool_use" if self.step["tool_calls"] else "end_turn")


class FakeMessages:
    def __init__(self, script, error=None):
        self.script = list(script)
        self.error = error
        self.calls = []

    def stream(self, **kwargs):
        self.calls.append({**kwargs, "messages": list(kwargs["messages"])})
        if self.error:
            raise self.error
        step = self.script.pop(0) if self.script else text_step("Done.")
        return FakeStream(step)


class FakeAnthropic:
    """Stands in for AsyncAnthropic: scripted streaming steps."""

    def __init__(self, script=(), error=None):
        self.messages = FakeMessages(script, error=error)
