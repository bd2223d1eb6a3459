"""SQLAlchemy database models."""
from datetime import datetime
from uuid import uuid4
import enum

from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    Float,
    DateTime,
    ForeignKey,
    Enum,
    JSON,
    UniqueConstraint,
    Table,
)
from sqlalchemy.orm import relationship, declarative_base

# Base class for all models
Base = declarative_base()


def new_id() -> str:
    """Generate a new string primary key."""
    return str(uuid4())


# Association table for issue labels (many-to-many)
issue_labels = Table(
    'issue_labels',
    Base.metadata,
    Column('issue_id', String(36), ForeignKey('issues.id', ondelete='CASCADE'), primary_key=True),
    Column('label_id', String(36), ForeignKey('labels.id', ondelete='CASCADE'), primary_key=True),
)


class TeamRole(str, enum.Enum):
    """Team member role enum."""

    ADMIN = "admin"
    DEVELOPER = "developer"
    VIEWER = "viewer"


class WorkflowStateType(str, enum.Enum):
    """Semantic bucket of a workflow state.

    The display name of a state can be customised per team; the type is what
    reports and boards group by.
    """

    BACKLOG = "backlog"
    UNSTARTED = "unstarted"
    STARTED = "started"
    COMPLETED = "completed"
    CANCELED = "canceled"


class IssuePriority(str, enum.Enum):
    """Issue priority enum."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ProjectStatus(str, enum.Enum):
    """Project status enum."""

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELED = "canceled"


class InvitationStatus(str, enum.Enum):
    """Invitation lifecycle status enum."""

    PENDING = "pending"
    ACCEPTED = "accepted"


class Team(Base):
    """
    Team model for isolated workspaces.

    Every project, issue, label, workflow state and invitation belongs to
    exactly one team.
    """

    __tablename__ = "teams"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), nullable=False, unique=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    members = relationship("TeamMember", back_populates="team", cascade="all, delete-orphan")
    projects = relationship("Project", back_populates="team", cascade="all, delete-orphan")
    workflow_states = relationship("WorkflowState", back_populates="team", cascade="all, delete-orphan")
    labels = relationship("Label", back_populates="team", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Team {self.slug}: {self.name}>"


class User(Base):
    """User account. Authentication happens outside this service."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    memberships = relationship("TeamMember", back_populates="user", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        return self.name or self.email

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class TeamMember(Base):
    """Junction table linking users to teams with roles."""

    __tablename__ = "team_members"

    id = Column(String(36), primary_key=True, default=new_id)
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(
        Enum(TeamRole, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=TeamRole.DEVELOPER,
    )
    joined_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    team = relationship("Team", back_populates="members")
    user = relationship("User", back_populates="memberships")

    # Constraints
    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="unique_team_user"),
    )

    def __repr__(self) -> str:
        return f"<TeamMember {self.user_id} ({self.role.value})>"


class WorkflowState(Base):
    """Named, ordered status bucket for issues (e.g. Todo, In Progress, Done)."""

    __tablename__ = "workflow_states"

    id = Column(String(36), primary_key=True, default=new_id)
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    type = Column(
        Enum(WorkflowStateType, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    position = Column(Integer, nullable=False, default=0)
    color = Column(String(20))

    team = relationship("Team", back_populates="workflow_states")

    def __repr__(self) -> str:
        return f"<WorkflowState {self.name} ({self.type.value})>"


class Label(Base):
    """Issue label."""

    __tablename__ = "labels"

    id = Column(String(36), primary_key=True, default=new_id)
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    color = Column(String(20), nullable=False, default="#6b7280")

    team = relationship("Team", back_populates="labels")

    def __repr__(self) -> str:
        return f"<Label {self.name}>"


class Project(Base):
    """
    Project model grouping issues within a team.

    The key is a short identifier, unique within the team, that users also
    use to refer to the project in conversation.
    """

    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=new_id)
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)

    # Core fields
    name = Column(String(255), nullable=False)
    key = Column(String(10), nullable=False)
    description = Column(Text)
    color = Column(String(20), nullable=False, default="#6366f1")
    icon = Column(String(50))
    lead_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    status = Column(
        Enum(ProjectStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=ProjectStatus.ACTIVE,
    )

    # Audit fields
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    team = relationship("Team", back_populates="projects")
    lead = relationship("User", foreign_keys=[lead_id])
    members = relationship("ProjectMember", back_populates="project", cascade="all, delete-orphan")
    issues = relationship("Issue", back_populates="project", cascade="all, delete-orphan")

    # Constraints
    __table_args__ = (
        UniqueConstraint("team_id", "key", name="unique_team_project_key"),
    )

    def __repr__(self) -> str:
        return f"<Project {self.key}: {self.name}>"


class ProjectMember(Base):
    """Junction table linking team members to projects."""

    __tablename__ = "project_members"

    id = Column(String(36), primary_key=True, default=new_id)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    project = relationship("Project", back_populates="members")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="unique_project_user"),
    )

    def __repr__(self) -> str:
        return f"<ProjectMember {self.user_id} in {self.project_id}>"


class Issue(Base):
    """
    Issue model.

    number is sequential within the team and is what users see (#42).
    """

    __tablename__ = "issues"

    id = Column(String(36), primary_key=True, default=new_id)
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    number = Column(Integer, nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    priority = Column(
        Enum(IssuePriority, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=IssuePriority.NONE,
    )
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), index=True)
    workflow_state_id = Column(String(36), ForeignKey("workflow_states.id"), nullable=False, index=True)
    assignee_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), index=True)
    creator_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    creator_name = Column(String(255))
    estimate = Column(Float)

    # Audit fields
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    project = relationship("Project", back_populates="issues")
    workflow_state = relationship("WorkflowState")
    assignee = relationship("User", foreign_keys=[assignee_id])
    labels = relationship("Label", secondary=issue_labels, order_by="Label.name")

    __table_args__ = (
        UniqueConstraint("team_id", "number", name="unique_team_issue_number"),
    )

    def __repr__(self) -> str:
        return f"<Issue #{self.number}: {self.title}>"


class Invitation(Base):
    """
    Team invitation.

    One row per (team, email): re-inviting overwrites the row unless it is
    still pending and unexpired.
    """

    __tablename__ = "invitations"

    id = Column(String(36), primary_key=True, default=new_id)
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), nullable=False)
    role = Column(
        Enum(TeamRole, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=TeamRole.DEVELOPER,
    )
    status = Column(
        Enum(InvitationStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=InvitationStatus.PENDING,
    )
    invited_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("team_id", "email", name="unique_team_invitation_email"),
    )

    def __repr__(self) -> str:
        return f"<Invitation {self.email} ({self.status.value})>"


class ChatConversation(Base):
    """Conversation between a user and the chat assistant within a team."""

    __tablename__ = "chat_conversations"

    id = Column(String(36), primary_key=True, default=new_id)
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    messages = relationship(
        "ChatMessage",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="ChatMessage.position",
    )

    def __repr__(self) -> str:
        return f"<ChatConversation {self.id}: {self.title}>"


class ChatMessage(Base):
    """Single transcript entry, including tool call records for assistant turns."""

    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True, default=new_id)
    conversation_id = Column(
        String(36), ForeignKey("chat_conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role = Column(String(20), nullable=False)
    content = Column(Text, nullable=False, default="")
    tool_calls = Column(JSON)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    conversation = relationship("ChatConversation", back_populates="messages")

    def __repr__(self) -> str:
        return f"<ChatMessage {self.role} #{self.position}>"
