"""SQLAlchemy database models."""
from datetime import datetime, timezone
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
    CheckConstraint,
    Boolean,
    UniqueConstraint,
    Index,
    Table,
    JSON,
    Uuid,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship

from .scoring import idea_score

# Base class for all models
Base = declarative_base()

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Naive UTC timestamp, the format every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum(enum_cls):
    return Enum(enum_cls, values_callable=lambda obj: [e.value for e in obj])


# Association table for product <-> team assignment (many-to-many)
product_teams = Table(
    'product_teams',
    Base.metadata,
    Column('product_id', Uuid, ForeignKey('products.id', ondelete='CASCADE'), primary_key=True),
    Column('team_id', Uuid, ForeignKey('teams.id', ondelete='CASCADE'), primary_key=True),
    Column('created_at', DateTime, nullable=False, default=utcnow),
)


class Role(str, enum.Enum):
    """Organization member role, lowest to highest."""

    STAKEHOLDER = "STAKEHOLDER"
    CONTRIBUTOR = "CONTRIBUTOR"
    PRODUCT_MANAGER = "PRODUCT_MANAGER"
    ADMIN = "ADMIN"


class InvitationStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"


class LifecycleStage(str, enum.Enum):
    """Product lifecycle stage enum.

    Ordered from IDEATION to SUNSET. Display only: no transitions are enforced.
    """

    IDEATION = "IDEATION"
    DISCOVERY = "DISCOVERY"
    DEFINITION = "DEFINITION"
    DELIVERY = "DELIVERY"
    LAUNCH = "LAUNCH"
    GROWTH = "GROWTH"
    MATURITY = "MATURITY"
    SUNSET = "SUNSET"


class IdeaPriority(str, enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class IdeaStatus(str, enum.Enum):
    SUBMITTED = "SUBMITTED"
    REVIEWING = "REVIEWING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CONVERTED = "CONVERTED"


class SprintStatus(str, enum.Enum):
    """Sprint lifecycle: planned -> active -> completed/cancelled."""

    PLANNED = "PLANNED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TaskType(str, enum.Enum):
    STORY = "STORY"
    BUG = "BUG"
    TASK = "TASK"
    EPIC = "EPIC"
    SPIKE = "SPIKE"


class TaskPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class TaskStatus(str, enum.Enum):
    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    IN_REVIEW = "IN_REVIEW"
    DONE = "DONE"
    CANCELLED = "CANCELLED"


class OKRStatus(str, enum.Enum):
    """OKR lifecycle: active -> completed/cancelled/archived."""

    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    ARCHIVED = "ARCHIVED"


class KeyResultType(str, enum.Enum):
    INCREASE = "INCREASE"
    DECREASE = "DECREASE"
    MAINTAIN = "MAINTAIN"
    BINARY = "BINARY"


class KeyResultStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    AT_RISK = "AT_RISK"
    CANCELLED = "CANCELLED"


class ReleaseType(str, enum.Enum):
    MAJOR = "MAJOR"
    MINOR = "MINOR"
    PATCH = "PATCH"
    HOTFIX = "HOTFIX"


class ReleaseStatus(str, enum.Enum):
    """Release lifecycle: planned -> in_progress -> released/cancelled."""

    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    RELEASED = "RELEASED"
    CANCELLED = "CANCELLED"


class ChangelogType(str, enum.Enum):
    FEATURE = "FEATURE"
    IMPROVEMENT = "IMPROVEMENT"
    BUG_FIX = "BUG_FIX"
    BREAKING_CHANGE = "BREAKING_CHANGE"
    SECURITY = "SECURITY"
    DEPRECATED = "DEPRECATED"


class ChangelogVisibility(str, enum.Enum):
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"
    INTERNAL = "INTERNAL"


class ChecklistCategory(str, enum.Enum):
    PREPARATION = "PREPARATION"
    TESTING = "TESTING"
    DEPLOYMENT = "DEPLOYMENT"
    MONITORING = "MONITORING"
    COMMUNICATION = "COMMUNICATION"
    ROLLBACK = "ROLLBACK"


class InterviewStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class InsightSource(str, enum.Enum):
    INTERVIEW = "INTERVIEW"
    SURVEY = "SURVEY"
    ANALYTICS = "ANALYTICS"
    EXPERIMENT = "EXPERIMENT"
    FEEDBACK = "FEEDBACK"
    OBSERVATION = "OBSERVATION"


class InsightImpact(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class EpicStatus(str, enum.Enum):
    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class RoadmapItemType(str, enum.Enum):
    EPIC = "EPIC"
    FEATURE = "FEATURE"
    INITIATIVE = "INITIATIVE"
    MILESTONE = "MILESTONE"


class RoadmapItemStatus(str, enum.Enum):
    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    ON_HOLD = "ON_HOLD"


class RoadmapLane(str, enum.Enum):
    """Horizon buckets, nearest first."""

    NOW = "NOW"
    NEXT = "NEXT"
    LATER = "LATER"
    PARKED = "PARKED"


class ExperimentType(str, enum.Enum):
    AB_TEST = "AB_TEST"
    MULTIVARIATE = "MULTIVARIATE"
    FEATURE_FLAG = "FEATURE_FLAG"
    QUALITATIVE = "QUALITATIVE"


class ExperimentStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class DocumentType(str, enum.Enum):
    PRD = "PRD"
    RFC = "RFC"
    SPEC = "SPEC"
    DESIGN = "DESIGN"
    ANALYSIS = "ANALYSIS"
    PROPOSAL = "PROPOSAL"
    GUIDE = "GUIDE"
    OTHER = "OTHER"


class DocumentStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    REVIEW = "REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ARCHIVED = "ARCHIVED"


class SoftDeleteMixin:
    """Adds a ``deleted_at`` timestamp; records are marked, never removed."""

    deleted_at = Column(DateTime, nullable=True, default=None, index=True)

    def soft_delete(self) -> None:
        self.deleted_at = utcnow()

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @classmethod
    def active(cls):
        """Filter expression for live rows (``deleted_at IS NULL``)."""
        return cls.deleted_at.is_(None)


class TimestampMixin:
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


# =============================================================================
# Identity
# =============================================================================


class User(TimestampMixin, Base):
    """
    User account.

    Password auth is optional (``password_hash`` is NULL for OAuth-only users).
    Users are never hard-deleted.
    """

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255))
    password_hash = Column(String(255), nullable=True)

    # Relationships
    profile = relationship("UserProfile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    memberships = relationship("Membership", back_populates="user", cascade="all, delete-orphan")
    sessions = relationship("SessionToken", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class UserProfile(TimestampMixin, Base):
    __tablename__ = "user_profiles"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    title = Column(String(255))
    bio = Column(Text)
    timezone = Column(String(64), default="UTC")

    user = relationship("User", back_populates="profile")


class SessionToken(Base):
    """
    Authenticated session.

    Only the SHA-256 hash of the token is stored; the raw token is handed to the
    client once at sign-in.
    """

    __tablename__ = "session_tokens"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_used_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="sessions")

    @property
    def is_active(self) -> bool:
        """Check if the session is active (not revoked and not expired)."""
        if self.revoked_at:
            return False
        return self.expires_at > utcnow()

    def __repr__(self) -> str:
        return f"<SessionToken user_id={self.user_id}>"


# =============================================================================
# Tenancy
# =============================================================================


class Organization(SoftDeleteMixin, TimestampMixin, Base):
    """
    Tenant boundary. Owns teams, products and memberships.
    """

    __tablename__ = "organizations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), nullable=False, unique=True, index=True)
    description = Column(Text)
    website = Column(String(500))
    logo = Column(String(500))
    settings = Column(JSONType, default=dict)

    # Relationships
    memberships = relationship("Membership", back_populates="organization", cascade="all, delete-orphan")
    teams = relationship("Team", back_populates="organization", cascade="all, delete-orphan")
    products = relationship("Product", back_populates="organization", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Organization {self.slug}: {self.name}>"


class Team(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "teams"

    id = Column(Uuid, primary_key=True, default=uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), nullable=False)
    description = Column(Text)

    organization = relationship("Organization", back_populates="teams")
    memberships = relationship("Membership", back_populates="team")
    products = relationship("Product", secondary=product_teams, back_populates="teams")

    __table_args__ = (
        # Live teams only: a soft-deleted team frees its slug
        Index(
            "uq_teams_org_slug_live",
            "organization_id",
            "slug",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Team {self.slug}>"


class Membership(Base):
    """
    Join of user x organization (optionally x team) carrying exactly one role.
    """

    __tablename__ = "memberships"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(Uuid, ForeignKey("teams.id", ondelete="CASCADE"), nullable=True, index=True)
    role = Column(_enum(Role), nullable=False, default=Role.CONTRIBUTOR, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="memberships")
    organization = relationship("Organization", back_populates="memberships")
    team = relationship("Team", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", "team_id", name="uq_membership_user_org_team"),
        # NULL team_id never collides in a plain unique constraint
        Index(
            "uq_membership_org_level",
            "user_id",
            "organization_id",
            unique=True,
            postgresql_where=text("team_id IS NULL"),
            sqlite_where=text("team_id IS NULL"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Membership user={self.user_id} org={self.organization_id} team={self.team_id} {self.role.value}>"


class Invitation(Base):
    __tablename__ = "invitations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(Uuid, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    email = Column(String(255), nullable=False, index=True)
    role = Column(_enum(Role), nullable=False)
    token = Column(String(64), nullable=False, unique=True)
    status = Column(_enum(InvitationStatus), nullable=False, default=InvitationStatus.PENDING)
    invited_by_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    expires_at = Column(DateTime, nullable=False)
    accepted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    organization = relationship("Organization")


# =============================================================================
# Products and planning
# =============================================================================


class Product(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "products"

    id = Column(Uuid, primary_key=True, default=uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    key = Column(String(32), nullable=False, unique=True, index=True)
    description = Column(Text)
    vision = Column(Text)
    lifecycle = Column(_enum(LifecycleStage), nullable=False, default=LifecycleStage.IDEATION)
    settings = Column(JSONType, default=dict)
    metrics = Column(JSONType, default=dict)

    organization = relationship("Organization", back_populates="products")
    teams = relationship("Team", secondary=product_teams, back_populates="products")
    ideas = relationship("Idea", back_populates="product")
    features = relationship("Feature", back_populates="product")
    releases = relationship("Release", back_populates="product")
    sprints = relationship("Sprint", back_populates="product")

    def __repr__(self) -> str:
        return f"<Product {self.key}: {self.name}>"


class Idea(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "ideas"

    id = Column(Uuid, primary_key=True, default=uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    creator_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    problem = Column(Text)
    hypothesis = Column(Text)
    source = Column(String(255))
    tags = Column(JSONType, default=list)
    priority = Column(_enum(IdeaPriority), nullable=False, default=IdeaPriority.MEDIUM)
    status = Column(_enum(IdeaStatus), nullable=False, default=IdeaStatus.SUBMITTED, index=True)

    # RICE inputs, 1..5 each
    reach_score = Column(Integer)
    impact_score = Column(Integer)
    confidence_score = Column(Integer)
    effort_score = Column(Integer)
    votes = Column(Integer, nullable=False, default=0)

    product = relationship("Product", back_populates="ideas")
    creator = relationship("User")

    __table_args__ = (
        CheckConstraint("votes >= 0", name="chk_idea_votes_non_negative"),
    )

    @property
    def rice(self):
        return idea_score(self, "rice")

    @property
    def wsjf(self):
        return idea_score(self, "wsjf")


class Feature(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "features"

    id = Column(Uuid, primary_key=True, default=uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    release_id = Column(Uuid, ForeignKey("releases.id", ondelete="SET NULL"), nullable=True, index=True)
    epic_id = Column(Uuid, ForeignKey("epics.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)

    product = relationship("Product", back_populates="features")
    release = relationship("Release", back_populates="features")
    epic = relationship("Epic", back_populates="features")


class Epic(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "epics"

    id = Column(Uuid, primary_key=True, default=uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    status = Column(_enum(EpicStatus), nullable=False, default=EpicStatus.PLANNED)

    product = relationship("Product")
    features = relationship("Feature", back_populates="epic")
    roadmap_items = relationship("RoadmapItem", back_populates="epic")


class RoadmapItem(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "roadmap_items"

    id = Column(Uuid, primary_key=True, default=uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    epic_id = Column(Uuid, ForeignKey("epics.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    type = Column(_enum(RoadmapItemType), nullable=False, default=RoadmapItemType.FEATURE)
    status = Column(_enum(RoadmapItemStatus), nullable=False, default=RoadmapItemStatus.PLANNED, index=True)
    lane = Column(_enum(RoadmapLane), nullable=False, default=RoadmapLane.LATER, index=True)
    quarter = Column(String(20))
    start_date = Column(DateTime)
    end_date = Column(DateTime)
    effort = Column(Integer)
    confidence = Column(Integer)

    product = relationship("Product")
    epic = relationship("Epic", back_populates="roadmap_items")

    __table_args__ = (
        CheckConstraint("effort IS NULL OR (effort >= 0 AND effort <= 100)", name="chk_roadmap_effort_range"),
        CheckConstraint("confidence IS NULL OR (confidence >= 1 AND confidence <= 5)",
                        name="chk_roadmap_confidence_range"),
    )


class Sprint(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "sprints"

    id = Column(Uuid, primary_key=True, default=uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    goal = Column(Text)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    capacity = Column(Integer)
    velocity = Column(Integer)
    status = Column(_enum(SprintStatus), nullable=False, default=SprintStatus.PLANNED, index=True)

    product = relationship("Product", back_populates="sprints")
    tasks = relationship("Task", back_populates="sprint")


class Task(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "tasks"

    id = Column(Uuid, primary_key=True, default=uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    sprint_id = Column(Uuid, ForeignKey("sprints.id", ondelete="SET NULL"), nullable=True, index=True)
    feature_id = Column(Uuid, ForeignKey("features.id", ondelete="SET NULL"), nullable=True)
    assignee_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    type = Column(_enum(TaskType), nullable=False, default=TaskType.STORY)
    priority = Column(_enum(TaskPriority), nullable=False, default=TaskPriority.MEDIUM)
    status = Column(_enum(TaskStatus), nullable=False, default=TaskStatus.NEW, index=True)
    effort = Column(Integer)
    time_estimate = Column(Integer)
    time_spent = Column(Integer)
    acceptance_criteria = Column(Text)

    product = relationship("Product")
    sprint = relationship("Sprint", back_populates="tasks")
    feature = relationship("Feature")
    assignee = relationship("User")


class OKR(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "okrs"

    id = Column(Uuid, primary_key=True, default=uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    objective = Column(String(500), nullable=False)
    description = Column(Text)
    quarter = Column(String(10), nullable=False)
    year = Column(Integer, nullable=False)
    status = Column(_enum(OKRStatus), nullable=False, default=OKRStatus.ACTIVE, index=True)
    progress = Column(Float, nullable=False, default=0.0)

    product = relationship("Product")
    owner = relationship("User")
    key_results = relationship("KeyResult", back_populates="okr", order_by="KeyResult.created_at")


class KeyResult(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "key_results"

    id = Column(Uuid, primary_key=True, default=uuid4)
    okr_id = Column(Uuid, ForeignKey("okrs.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    target = Column(Float, nullable=False)
    current = Column(Float, nullable=False, default=0.0)
    unit = Column(String(50))
    type = Column(_enum(KeyResultType), nullable=False, default=KeyResultType.INCREASE)
    status = Column(_enum(KeyResultStatus), nullable=False, default=KeyResultStatus.ACTIVE)

    okr = relationship("OKR", back_populates="key_results")


# =============================================================================
# Delivery
# =============================================================================


class Release(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "releases"

    id = Column(Uuid, primary_key=True, default=uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    version = Column(String(50), nullable=False)
    description = Column(Text)
    notes = Column(Text)
    type = Column(_enum(ReleaseType), nullable=False, default=ReleaseType.MINOR)
    status = Column(_enum(ReleaseStatus), nullable=False, default=ReleaseStatus.PLANNED, index=True)
    release_date = Column(DateTime, nullable=True)
    artifacts = Column(JSONType, default=list)

    product = relationship("Product", back_populates="releases")
    features = relationship("Feature", back_populates="release")
    changelogs = relationship("Changelog", back_populates="release")
    checklist_items = relationship("LaunchChecklistItem", back_populates="release")


class Changelog(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "changelogs"

    id = Column(Uuid, primary_key=True, default=uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    release_id = Column(Uuid, ForeignKey("releases.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    type = Column(_enum(ChangelogType), nullable=False, default=ChangelogType.FEATURE)
    visibility = Column(_enum(ChangelogVisibility), nullable=False, default=ChangelogVisibility.PUBLIC)

    product = relationship("Product")
    release = relationship("Release", back_populates="changelogs")


class LaunchChecklistItem(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "launch_checklist_items"

    id = Column(Uuid, primary_key=True, default=uuid4)
    release_id = Column(Uuid, ForeignKey("releases.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(300), nullable=False)
    description = Column(Text)
    category = Column(_enum(ChecklistCategory), nullable=False, default=ChecklistCategory.PREPARATION)
    is_required = Column(Boolean, nullable=False, default=False)
    is_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)
    assignee_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    due_date = Column(DateTime, nullable=True)

    release = relationship("Release", back_populates="checklist_items")
    assignee = relationship("User")


class FeatureFlag(SoftDeleteMixin, TimestampMixin, Base):
    """
    Stored flag configuration. Rollout is a fraction in [0, 1]; nothing here
    evaluates flags for end users.
    """

    __tablename__ = "feature_flags"

    id = Column(Uuid, primary_key=True, default=uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    feature_id = Column(Uuid, ForeignKey("features.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(200), nullable=False)
    key = Column(String(100), nullable=False)
    description = Column(Text)
    enabled = Column(Boolean, nullable=False, default=False)
    rollout = Column(Float, nullable=False, default=0.0)
    targeting = Column(JSONType, default=dict)
    variants = Column(JSONType, default=dict)

    product = relationship("Product")
    feature = relationship("Feature")

    __table_args__ = (
        CheckConstraint("rollout >= 0 AND rollout <= 1", name="chk_flag_rollout_range"),
        Index(
            "uq_feature_flags_key_live",
            "key",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )


# =============================================================================
# Discovery
# =============================================================================


class Customer(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "customers"

    id = Column(Uuid, primary_key=True, default=uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255))
    company = Column(String(255))
    segment = Column(String(100))
    attributes = Column(JSONType, default=dict)

    product = relationship("Product")


class Interview(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "interviews"

    id = Column(Uuid, primary_key=True, default=uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(Uuid, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    conductor_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    scheduled_at = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False, default=60)
    location = Column(String(255))
    status = Column(_enum(InterviewStatus), nullable=False, default=InterviewStatus.SCHEDULED)
    objectives = Column(JSONType, default=list)
    questions = Column(JSONType, default=list)
    notes = Column(Text)

    product = relationship("Product")
    customer = relationship("Customer")
    conductor = relationship("User")
    insights = relationship("Insight", back_populates="interview")


class Insight(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "insights"

    id = Column(Uuid, primary_key=True, default=uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    interview_id = Column(Uuid, ForeignKey("interviews.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    source = Column(_enum(InsightSource), nullable=False, default=InsightSource.INTERVIEW)
    impact = Column(_enum(InsightImpact), nullable=False, default=InsightImpact.MEDIUM)
    confidence = Column(Integer, nullable=False, default=3)
    tags = Column(JSONType, default=list)

    product = relationship("Product")
    interview = relationship("Interview", back_populates="insights")


class Experiment(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "experiments"

    id = Column(Uuid, primary_key=True, default=uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    hypothesis = Column(Text, nullable=False)
    type = Column(_enum(ExperimentType), nullable=False, default=ExperimentType.AB_TEST)
    status = Column(_enum(ExperimentStatus), nullable=False, default=ExperimentStatus.DRAFT, index=True)
    audience = Column(String(255))
    start_date = Column(DateTime)
    end_date = Column(DateTime)
    # list of metric names; variants are {name, description, allocation}
    metrics = Column(JSONType, default=list)
    variants = Column(JSONType, default=list)
    results = Column(Text)
    conclusion = Column(Text)

    product = relationship("Product")
    owner = relationship("User")


class Document(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "documents"

    id = Column(Uuid, primary_key=True, default=uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    type = Column(_enum(DocumentType), nullable=False, default=DocumentType.OTHER)
    status = Column(_enum(DocumentStatus), nullable=False, default=DocumentStatus.DRAFT, index=True)
    version = Column(Integer, nullable=False, default=1)
    template = Column(String(100))

    product = relationship("Product")
    author = relationship("User")

    __table_args__ = (
        CheckConstraint("version >= 1", name="chk_document_version_positive"),
    )


class Persona(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "personas"

    id = Column(Uuid, primary_key=True, default=uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    demographics = Column(JSONType, default=dict)
    goals = Column(JSONType, default=list)
    pains = Column(JSONType, default=list)
    gains = Column(JSONType, default=list)
    behaviors = Column(JSONType, default=list)
    motivations = Column(JSONType, default=list)
    channels = Column(JSONType, default=list)

    product = relationship("Product")

    @property
    def is_primary(self) -> bool:
        return bool((self.demographics or {}).get("isPrimary", False))


# =============================================================================
# Audit
# =============================================================================


class AuditLog(Base):
    """
    Append-only audit trail. One row per mutating action; never updated or
    deleted, and kept when the described entity is soft-deleted.
    """

    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(100), nullable=False, index=True)
    entity = Column(String(100), nullable=False)
    entity_id = Column(Text, nullable=False)
    changes = Column(JSONType, nullable=True)
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSONType, nullable=True)
    ip_address = Column(String(64))
    user_agent = Column(String(500))
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    user = relationship("User")

    __table_args__ = (
        Index("idx_audit_entity", "entity", "entity_id"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} {self.entity}:{self.entity_id}>"
