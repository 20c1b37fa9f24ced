"""Pydantic schemas for submitted forms and API responses."""
import re
from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from .forms import FormModel, as_naive_utc, decode_json, split_list
from .models import (
    Role,
    InvitationStatus,
    LifecycleStage,
    IdeaPriority,
    IdeaStatus,
    SprintStatus,
    TaskType,
    TaskPriority,
    TaskStatus,
    OKRStatus,
    KeyResultType,
    KeyResultStatus,
    ReleaseType,
    ReleaseStatus,
    ChangelogType,
    ChangelogVisibility,
    ChecklistCategory,
    InterviewStatus,
    InsightSource,
    InsightImpact,
    EpicStatus,
    RoadmapItemType,
    RoadmapItemStatus,
    RoadmapLane,
    ExperimentType,
    ExperimentStatus,
    DocumentType,
    DocumentStatus,
    utcnow,
)

TEAM_SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"
PRODUCT_KEY_PATTERN = r"^[A-Z0-9]+$"
FLAG_KEY_PATTERN = r"^[a-zA-Z0-9_-]+$"
_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _check_email(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    if not _EMAIL.match(value):
        raise ValueError("Invalid email address")
    return value.lower()


# ============================================================================
# Account Schemas
# ============================================================================

class SignUpForm(FormModel):
    error_messages = {
        "email": "Email is required",
        "password.string_too_short": "Password must be at least 8 characters",
    }

    email: str
    password: str = Field(..., min_length=8, max_length=128)
    name: Optional[str] = Field(None, max_length=255)

    @field_validator("email")
    @classmethod
    def check_email(cls, value):
        return _check_email(value)


class SignInForm(FormModel):
    error_messages = {
        "email": "Email is required",
        "password": "Password is required",
    }

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, value):
        return _check_email(value)


class UserResponse(BaseModel):
    id: UUID
    email: str
    name: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SessionResponse(BaseModel):
    """Returned once at sign-in; the token is not stored in clear."""

    token: str
    user: UserResponse


# ============================================================================
# Organization Schemas
# ============================================================================

class OrganizationCreate(FormModel):
    """Schema for creating a new organization. The slug is derived from the name."""

    error_messages = {
        "name": "Organization name is required",
    }

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    website: Optional[str] = Field(None, max_length=500)


class OrganizationUpdate(FormModel):
    error_messages = {
        "name": "Organization name is required",
        "slug": "Invalid slug format",
    }

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    slug: Optional[str] = Field(None, min_length=1, max_length=100, pattern=TEAM_SLUG_PATTERN)
    description: Optional[str] = Field(None, max_length=500)
    website: Optional[str] = Field(None, max_length=500)


class InviteForm(FormModel):
    error_messages = {
        "email": "Email is required",
        "role": "Invalid role",
    }

    email: str
    role: Role = Role.CONTRIBUTOR
    team_id: Optional[UUID] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, value):
        return _check_email(value)


class AcceptInvitationForm(FormModel):
    error_messages = {"token": "Invitation token is required"}

    token: str


class MemberRoleForm(FormModel):
    error_messages = {"role": "Invalid role"}

    role: Role


class OrganizationResponse(BaseModel):
    id: UUID
    name: str
    slug: str
    description: Optional[str] = None
    website: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class MembershipResponse(BaseModel):
    id: UUID
    user_id: UUID
    organization_id: UUID
    team_id: Optional[UUID] = None
    role: Role
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class InvitationResponse(BaseModel):
    id: UUID
    organization_id: UUID
    email: str
    role: Role
    status: InvitationStatus
    token: str
    expires_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


# ============================================================================
# Team Schemas
# ============================================================================

class TeamCreate(FormModel):
    error_messages = {
        "name": "Team name is required",
        "name.string_too_long": "Team name must be at most 100 characters",
        "slug": "Invalid slug format",
        "slug.missing": "Team slug is required",
    }

    name: str = Field(..., min_length=1, max_length=100)
    slug: str = Field(..., min_length=1, max_length=100, pattern=TEAM_SLUG_PATTERN)
    description: Optional[str] = Field(None, max_length=500)


class TeamUpdate(FormModel):
    error_messages = TeamCreate.error_messages

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    slug: Optional[str] = Field(None, min_length=1, max_length=100, pattern=TEAM_SLUG_PATTERN)
    description: Optional[str] = Field(None, max_length=500)


class TeamMemberAdd(FormModel):
    error_messages = {
        "user_id": "User is required",
        "role": "Invalid role",
    }

    user_id: UUID
    role: Role = Role.CONTRIBUTOR


class TeamResponse(BaseModel):
    id: UUID
    organization_id: UUID
    name: str
    slug: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Product Schemas
# ============================================================================

class ProductCreate(FormModel):
    error_messages = {
        "name": "Product name is required",
        "key.missing": "Product key is required",
        "key": "Product key must be uppercase letters and numbers only",
        "lifecycle": "Invalid lifecycle stage",
    }

    name: str = Field(..., min_length=1, max_length=100)
    key: str = Field(..., min_length=1, max_length=32, pattern=PRODUCT_KEY_PATTERN)
    description: Optional[str] = None
    vision: Optional[str] = None
    lifecycle: LifecycleStage = LifecycleStage.IDEATION
    team_id: Optional[UUID] = None


class ProductUpdate(FormModel):
    error_messages = ProductCreate.error_messages

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    key: Optional[str] = Field(None, min_length=1, max_length=32, pattern=PRODUCT_KEY_PATTERN)
    description: Optional[str] = None
    vision: Optional[str] = None
    lifecycle: Optional[LifecycleStage] = None
    team_id: Optional[UUID] = None


class LifecycleForm(FormModel):
    error_messages = {"lifecycle": "Invalid lifecycle stage"}

    lifecycle: LifecycleStage


class ProductResponse(BaseModel):
    id: UUID
    organization_id: UUID
    name: str
    key: str
    description: Optional[str] = None
    vision: Optional[str] = None
    lifecycle: LifecycleStage
    team_ids: list[UUID] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    @model_validator(mode="before")
    @classmethod
    def collect_team_ids(cls, data):
        teams = getattr(data, "teams", None)
        if teams is not None and not isinstance(data, dict):
            return {
                **{name: getattr(data, name) for name in cls.model_fields if name != "team_ids"},
                "team_ids": [team.id for team in teams if team.deleted_at is None],
            }
        return data


# ============================================================================
# Idea Schemas
# ============================================================================

_SCORE_MESSAGES = {
    f"{name}.{kind}": "Scores must be between 1 and 5"
    for name in ("reach_score", "impact_score", "confidence_score", "effort_score")
    for kind in ("greater_than_equal", "less_than_equal")
}


class IdeaCreate(FormModel):
    error_messages = {
        "title": "Title is required",
        "title.string_too_long": "Title must be at most 200 characters",
        "description": "Description is required",
        "priority": "Invalid priority",
        **_SCORE_MESSAGES,
    }

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    problem: Optional[str] = None
    hypothesis: Optional[str] = None
    source: Optional[str] = Field(None, max_length=255)
    tags: list[str] = Field(default_factory=list)
    priority: IdeaPriority = IdeaPriority.MEDIUM
    reach_score: Optional[int] = Field(None, ge=1, le=5)
    impact_score: Optional[int] = Field(None, ge=1, le=5)
    confidence_score: Optional[int] = Field(None, ge=1, le=5)
    effort_score: Optional[int] = Field(None, ge=1, le=5)

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, value):
        return split_list(value)


class IdeaUpdate(FormModel):
    error_messages = IdeaCreate.error_messages

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    problem: Optional[str] = None
    hypothesis: Optional[str] = None
    source: Optional[str] = Field(None, max_length=255)
    tags: Optional[list[str]] = None
    priority: Optional[IdeaPriority] = None
    reach_score: Optional[int] = Field(None, ge=1, le=5)
    impact_score: Optional[int] = Field(None, ge=1, le=5)
    confidence_score: Optional[int] = Field(None, ge=1, le=5)
    effort_score: Optional[int] = Field(None, ge=1, le=5)

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, value):
        return split_list(value)


class IdeaStatusForm(FormModel):
    error_messages = {"status": "Invalid status"}

    status: IdeaStatus


class VoteForm(FormModel):
    error_messages = {"direction": "Vote must be up or down"}

    direction: Literal["up", "down"]


class IdeaResponse(BaseModel):
    id: UUID
    product_id: UUID
    creator_id: Optional[UUID] = None
    title: str
    description: str
    problem: Optional[str] = None
    hypothesis: Optional[str] = None
    source: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    priority: IdeaPriority
    status: IdeaStatus
    reach_score: Optional[int] = None
    impact_score: Optional[int] = None
    confidence_score: Optional[int] = None
    effort_score: Optional[int] = None
    votes: int
    rice: Optional[float] = None
    wsjf: Optional[float] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


# ============================================================================
# Feature Schemas
# ============================================================================

class FeatureCreate(FormModel):
    error_messages = {"title": "Title is required"}

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    epic_id: Optional[UUID] = None


class FeatureResponse(BaseModel):
    id: UUID
    product_id: UUID
    release_id: Optional[UUID] = None
    epic_id: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Epic / Roadmap Schemas
# ============================================================================

class EpicCreate(FormModel):
    error_messages = {
        "title": "Title is required",
        "status": "Invalid status",
    }

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    status: EpicStatus = EpicStatus.PLANNED


class EpicUpdate(FormModel):
    error_messages = EpicCreate.error_messages

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    status: Optional[EpicStatus] = None


class EpicResponse(BaseModel):
    id: UUID
    product_id: UUID
    title: str
    description: Optional[str] = None
    status: EpicStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


_ROADMAP_MESSAGES = {
    "title": "Title is required",
    "type": "Invalid roadmap item type",
    "lane": "Invalid lane",
    "status": "Invalid status",
    "start_date": "Invalid start date",
    "end_date": "Invalid end date",
    "effort": "Effort must be between 0 and 100",
    "confidence": "Confidence must be between 1 and 5",
}


class RoadmapItemCreate(FormModel):
    error_messages = _ROADMAP_MESSAGES

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    type: RoadmapItemType = RoadmapItemType.FEATURE
    lane: RoadmapLane = RoadmapLane.LATER
    quarter: Optional[str] = Field(None, max_length=20)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    effort: Optional[int] = Field(None, ge=0, le=100)
    confidence: Optional[int] = Field(None, ge=1, le=5)
    epic_id: Optional[UUID] = None


class RoadmapItemUpdate(FormModel):
    error_messages = _ROADMAP_MESSAGES

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    type: Optional[RoadmapItemType] = None
    status: Optional[RoadmapItemStatus] = None
    lane: Optional[RoadmapLane] = None
    quarter: Optional[str] = Field(None, max_length=20)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    effort: Optional[int] = Field(None, ge=0, le=100)
    confidence: Optional[int] = Field(None, ge=1, le=5)
    epic_id: Optional[UUID] = None


class RoadmapMoveForm(FormModel):
    """A submitted but empty ``quarter`` clears the item's quarter."""

    error_messages = {
        "lane.missing": "Lane is required",
        "lane": "Invalid lane",
    }

    lane: RoadmapLane
    quarter: Optional[str] = Field(None, max_length=20)


class RoadmapStatusForm(FormModel):
    error_messages = {"status.missing": "Status is required", "status": "Invalid status"}

    status: RoadmapItemStatus


class RoadmapBulkForm(FormModel):
    error_messages = {
        "item_ids": "Select at least one roadmap item",
        "lane": "Invalid lane",
        "status": "Invalid status",
    }

    item_ids: list[UUID] = Field(..., min_length=1)
    status: Optional[RoadmapItemStatus] = None
    lane: Optional[RoadmapLane] = None
    quarter: Optional[str] = Field(None, max_length=20)

    @field_validator("item_ids", mode="before")
    @classmethod
    def split_item_ids(cls, value):
        return split_list(value)


class RoadmapItemResponse(BaseModel):
    id: UUID
    product_id: UUID
    epic_id: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    type: RoadmapItemType
    status: RoadmapItemStatus
    lane: RoadmapLane
    quarter: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    effort: Optional[int] = None
    confidence: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class BulkUpdateResponse(BaseModel):
    count: int


# ============================================================================
# OKR Schemas
# ============================================================================

class KeyResultInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(..., min_length=1)
    target: float = Field(..., ge=0)
    current: float = 0.0
    unit: Optional[str] = Field(None, max_length=50)
    type: KeyResultType = KeyResultType.INCREASE


_KEY_RESULT_MESSAGES = {
    "key_results.description": "Key result description is required",
    "key_results.target": "Target must be positive",
    "key_results.type": "Invalid key result type",
}


class OKRCreate(FormModel):
    error_messages = {
        "objective": "Objective is required",
        "quarter": "Quarter is required",
        "year": "Year must be between 2020 and 2030",
        "year.missing": "Year is required",
        "owner_id": "Owner is required",
        "key_results.too_short": "At least one key result is required",
        "key_results.missing": "At least one key result is required",
        **_KEY_RESULT_MESSAGES,
    }

    objective: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    quarter: str = Field(..., min_length=1, max_length=10)
    year: int = Field(..., ge=2020, le=2030)
    owner_id: UUID
    key_results: list[KeyResultInput] = Field(..., min_length=1)

    @field_validator("key_results", mode="before")
    @classmethod
    def decode_key_results(cls, value):
        return decode_json(value)


class OKRUpdate(FormModel):
    error_messages = {
        "objective": "Objective is required",
        "year": "Year must be between 2020 and 2030",
        "status": "Invalid status",
    }

    objective: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    quarter: Optional[str] = Field(None, min_length=1, max_length=10)
    year: Optional[int] = Field(None, ge=2020, le=2030)
    owner_id: Optional[UUID] = None
    status: Optional[OKRStatus] = None


class KeyResultUpdate(FormModel):
    error_messages = {
        "current": "Current value must be a number",
        "target": "Target must be positive",
        "status": "Invalid status",
    }

    current: Optional[float] = None
    target: Optional[float] = Field(None, ge=0)
    description: Optional[str] = Field(None, min_length=1)
    status: Optional[KeyResultStatus] = None


class KeyResultResponse(BaseModel):
    id: UUID
    okr_id: UUID
    description: str
    target: float
    current: float
    unit: Optional[str] = None
    type: KeyResultType
    status: KeyResultStatus

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class OKRResponse(BaseModel):
    id: UUID
    product_id: UUID
    owner_id: Optional[UUID] = None
    objective: str
    description: Optional[str] = None
    quarter: str
    year: int
    status: OKRStatus
    progress: float
    key_results: list[KeyResultResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    @field_validator("key_results", mode="before")
    @classmethod
    def live_key_results(cls, value):
        return [kr for kr in value or [] if getattr(kr, "deleted_at", None) is None]


# ============================================================================
# Release / Changelog Schemas
# ============================================================================

class ReleaseCreate(FormModel):
    error_messages = {
        "name": "Name is required",
        "version": "Version is required",
        "type": "Invalid release type",
    }

    name: str = Field(..., min_length=1, max_length=200)
    version: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    notes: Optional[str] = None
    type: ReleaseType = ReleaseType.MINOR
    release_date: Optional[datetime] = None
    feature_ids: list[UUID] = Field(default_factory=list)

    @field_validator("feature_ids", mode="before")
    @classmethod
    def split_feature_ids(cls, value):
        return split_list(value)


class ReleaseUpdate(FormModel):
    error_messages = {
        "name": "Name is required",
        "version": "Version is required",
        "type": "Invalid release type",
        "status": "Invalid status",
    }

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    version: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = None
    notes: Optional[str] = None
    type: Optional[ReleaseType] = None
    status: Optional[ReleaseStatus] = None
    release_date: Optional[datetime] = None


class ReleaseStatusForm(FormModel):
    error_messages = {"status": "Invalid status"}

    status: ReleaseStatus


class ReleaseFeatureForm(FormModel):
    error_messages = {"feature_id": "Feature is required"}

    feature_id: UUID


class ReleaseResponse(BaseModel):
    id: UUID
    product_id: UUID
    name: str
    version: str
    description: Optional[str] = None
    notes: Optional[str] = None
    type: ReleaseType
    status: ReleaseStatus
    release_date: Optional[datetime] = None
    feature_ids: list[UUID] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    @model_validator(mode="before")
    @classmethod
    def collect_feature_ids(cls, data):
        features = getattr(data, "features", None)
        if features is not None and not isinstance(data, dict):
            return {
                **{name: getattr(data, name) for name in cls.model_fields if name != "feature_ids"},
                "feature_ids": [f.id for f in features if f.deleted_at is None],
            }
        return data


class ChangelogCreate(FormModel):
    error_messages = {
        "title": "Title is required",
        "description": "Description is required",
        "type": "Invalid changelog type",
        "visibility": "Invalid visibility",
    }

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    type: ChangelogType = ChangelogType.FEATURE
    visibility: ChangelogVisibility = ChangelogVisibility.PUBLIC
    release_id: Optional[UUID] = None


class ChangelogResponse(BaseModel):
    id: UUID
    product_id: UUID
    release_id: Optional[UUID] = None
    title: str
    description: str
    type: ChangelogType
    visibility: ChangelogVisibility
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


# ============================================================================
# Launch Checklist Schemas
# ============================================================================

class ChecklistItemCreate(FormModel):
    error_messages = {
        "title": "Title is required",
        "category": "Invalid category",
    }

    title: str = Field(..., min_length=1, max_length=300)
    description: Optional[str] = None
    category: ChecklistCategory = ChecklistCategory.PREPARATION
    is_required: bool = False
    assignee_id: Optional[UUID] = None
    due_date: Optional[datetime] = None


class ChecklistItemUpdate(FormModel):
    error_messages = ChecklistItemCreate.error_messages

    title: Optional[str] = Field(None, min_length=1, max_length=300)
    description: Optional[str] = None
    category: Optional[ChecklistCategory] = None
    is_required: Optional[bool] = None
    assignee_id: Optional[UUID] = None
    due_date: Optional[datetime] = None


class ChecklistTemplateForm(FormModel):
    error_messages = {"template": "Invalid template"}

    template: Literal["BASIC", "COMPREHENSIVE", "ENTERPRISE"]


class ChecklistItemResponse(BaseModel):
    id: UUID
    release_id: UUID
    title: str
    description: Optional[str] = None
    category: ChecklistCategory
    is_required: bool
    is_completed: bool
    completed_at: Optional[datetime] = None
    assignee_id: Optional[UUID] = None
    due_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class ChecklistProgress(BaseModel):
    total: int
    completed: int
    required: int
    required_completed: int
    percent: float
    ready: bool


# ============================================================================
# Feature Flag Schemas
# ============================================================================

_ROLLOUT_MESSAGES = {
    "rollout.greater_than_equal": "Rollout must be between 0 and 1",
    "rollout.less_than_equal": "Rollout must be between 0 and 1",
    "rollout": "Rollout must be a number",
}


class FeatureFlagCreate(FormModel):
    error_messages = {
        "name": "Name is required",
        "key.missing": "Key is required",
        "key": "Key must contain only alphanumeric characters, hyphens, and underscores",
        **_ROLLOUT_MESSAGES,
    }

    name: str = Field(..., min_length=1, max_length=200)
    key: str = Field(..., min_length=1, max_length=100, pattern=FLAG_KEY_PATTERN)
    description: Optional[str] = None
    enabled: bool = False
    rollout: float = Field(0.0, ge=0, le=1)
    targeting: dict = Field(default_factory=dict)
    variants: dict = Field(default_factory=dict)
    feature_id: Optional[UUID] = None

    @field_validator("targeting", "variants", mode="before")
    @classmethod
    def decode_json_fields(cls, value):
        return decode_json(value)


class FeatureFlagUpdate(FormModel):
    error_messages = FeatureFlagCreate.error_messages

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    key: Optional[str] = Field(None, min_length=1, max_length=100, pattern=FLAG_KEY_PATTERN)
    description: Optional[str] = None
    enabled: Optional[bool] = None
    rollout: Optional[float] = Field(None, ge=0, le=1)
    targeting: Optional[dict] = None
    variants: Optional[dict] = None
    feature_id: Optional[UUID] = None

    @field_validator("targeting", "variants", mode="before")
    @classmethod
    def decode_json_fields(cls, value):
        return decode_json(value)


class RolloutForm(FormModel):
    error_messages = {**_ROLLOUT_MESSAGES, "rollout.missing": "Rollout is required"}

    rollout: float = Field(..., ge=0, le=1)


class FeatureFlagResponse(BaseModel):
    id: UUID
    product_id: UUID
    feature_id: Optional[UUID] = None
    name: str
    key: str
    description: Optional[str] = None
    enabled: bool
    rollout: float
    targeting: Optional[dict] = None
    variants: Optional[dict] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Sprint / Task Schemas
# ============================================================================

class SprintCreate(FormModel):
    error_messages = {
        "name": "Sprint name is required",
        "start_date.missing": "Start date is required",
        "start_date": "Invalid start date",
        "end_date.missing": "End date is required",
        "end_date": "Invalid end date",
        "capacity": "Capacity must be a positive number",
    }

    name: str = Field(..., min_length=1, max_length=200)
    goal: Optional[str] = None
    start_date: datetime
    end_date: datetime
    capacity: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def end_after_start(self):
        if as_naive_utc(self.end_date) <= as_naive_utc(self.start_date):
            raise ValueError("End date must be after start date")
        return self


class SprintUpdate(FormModel):
    error_messages = {
        **SprintCreate.error_messages,
        "status": "Invalid status",
    }

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    goal: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    capacity: Optional[int] = Field(None, ge=0)
    status: Optional[SprintStatus] = None


class CompleteSprintForm(FormModel):
    error_messages = {"incomplete_task_action": "Invalid incomplete task action"}

    incomplete_task_action: Optional[Literal["move_to_backlog", "keep_in_sprint"]] = None


class SprintTasksForm(FormModel):
    error_messages = {
        "task_ids": "Select at least one task",
    }

    task_ids: list[UUID] = Field(..., min_length=1)

    @field_validator("task_ids", mode="before")
    @classmethod
    def split_task_ids(cls, value):
        return split_list(value)


class SprintResponse(BaseModel):
    id: UUID
    product_id: UUID
    name: str
    goal: Optional[str] = None
    start_date: datetime
    end_date: datetime
    capacity: Optional[int] = None
    velocity: Optional[int] = None
    status: SprintStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class TaskCreate(FormModel):
    error_messages = {
        "title": "Title is required",
        "type": "Invalid task type",
        "priority": "Invalid priority",
        "effort": "Effort must be between 0 and 100",
        "time_estimate": "Time estimate must be positive",
    }

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    type: TaskType = TaskType.STORY
    priority: TaskPriority = TaskPriority.MEDIUM
    effort: Optional[int] = Field(None, ge=0, le=100)
    time_estimate: Optional[int] = Field(None, ge=0)
    acceptance_criteria: Optional[str] = None
    sprint_id: Optional[UUID] = None
    feature_id: Optional[UUID] = None
    assignee_id: Optional[UUID] = None


class TaskUpdate(FormModel):
    error_messages = TaskCreate.error_messages

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    type: Optional[TaskType] = None
    priority: Optional[TaskPriority] = None
    effort: Optional[int] = Field(None, ge=0, le=100)
    time_estimate: Optional[int] = Field(None, ge=0)
    acceptance_criteria: Optional[str] = None
    feature_id: Optional[UUID] = None


class TaskStatusForm(FormModel):
    error_messages = {"status": "Invalid status"}

    status: TaskStatus


class TaskAssigneeForm(FormModel):
    """An absent ``assignee_id`` unassigns the task."""

    assignee_id: Optional[UUID] = None


class TaskSprintForm(FormModel):
    """An absent ``sprint_id`` moves the task to the backlog."""

    sprint_id: Optional[UUID] = None


class TaskTimeForm(FormModel):
    error_messages = {
        "time_spent": "Time spent must be positive",
        "time_estimate": "Time estimate must be positive",
    }

    time_spent: int = Field(..., ge=0)
    time_estimate: Optional[int] = Field(None, ge=0)


class TaskResponse(BaseModel):
    id: UUID
    product_id: UUID
    sprint_id: Optional[UUID] = None
    feature_id: Optional[UUID] = None
    assignee_id: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    type: TaskType
    priority: TaskPriority
    status: TaskStatus
    effort: Optional[int] = None
    time_estimate: Optional[int] = None
    time_spent: Optional[int] = None
    acceptance_criteria: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


# ============================================================================
# Discovery Schemas
# ============================================================================

class CustomerCreate(FormModel):
    error_messages = {"name": "Customer name is required"}

    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = None
    company: Optional[str] = Field(None, max_length=255)
    segment: Optional[str] = Field(None, max_length=100)
    attributes: dict = Field(default_factory=dict)

    @field_validator("email")
    @classmethod
    def check_email(cls, value):
        return _check_email(value)

    @field_validator("attributes", mode="before")
    @classmethod
    def decode_attributes(cls, value):
        return decode_json(value)


class CustomerResponse(BaseModel):
    id: UUID
    product_id: UUID
    name: str
    email: Optional[str] = None
    company: Optional[str] = None
    segment: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


def _scheduled_in_future(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return value
    value = as_naive_utc(value)
    if value <= utcnow():
        raise ValueError("Interview must be scheduled in the future")
    return value


_DURATION_MESSAGES = {
    "duration": "Duration must be between 15 and 180 minutes",
}


class InterviewCreate(FormModel):
    error_messages = {
        "customer_id": "Customer is required",
        "title": "Title is required",
        "scheduled_at.missing": "Scheduled date is required",
        "scheduled_at": "Invalid scheduled date",
        **_DURATION_MESSAGES,
    }

    customer_id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    scheduled_at: datetime
    duration: int = Field(60, ge=15, le=180)
    location: Optional[str] = Field(None, max_length=255)
    objectives: list[str] = Field(default_factory=list)
    questions: list[str] = Field(default_factory=list)

    @field_validator("scheduled_at")
    @classmethod
    def check_scheduled_at(cls, value):
        return _scheduled_in_future(value)

    @field_validator("objectives", "questions", mode="before")
    @classmethod
    def decode_lists(cls, value):
        return decode_json(value)


class InterviewUpdate(FormModel):
    error_messages = {
        "title": "Title is required",
        "scheduled_at": "Invalid scheduled date",
        "status": "Invalid status",
        **_DURATION_MESSAGES,
    }

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    duration: Optional[int] = Field(None, ge=15, le=180)
    location: Optional[str] = Field(None, max_length=255)
    status: Optional[InterviewStatus] = None
    notes: Optional[str] = None
    objectives: Optional[list[str]] = None
    questions: Optional[list[str]] = None

    @field_validator("scheduled_at")
    @classmethod
    def check_scheduled_at(cls, value):
        return _scheduled_in_future(value)

    @field_validator("objectives", "questions", mode="before")
    @classmethod
    def decode_lists(cls, value):
        return decode_json(value)


class InterviewResponse(BaseModel):
    id: UUID
    product_id: UUID
    customer_id: Optional[UUID] = None
    conductor_id: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    scheduled_at: datetime
    duration: int
    location: Optional[str] = None
    status: InterviewStatus
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class InsightCreate(FormModel):
    error_messages = {
        "interview_id": "Interview is required",
        "title": "Title is required",
        "description": "Description is required",
        "source": "Invalid source",
        "impact": "Invalid impact",
        "confidence": "Confidence must be between 1 and 5",
    }

    interview_id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    source: InsightSource = InsightSource.INTERVIEW
    impact: InsightImpact = InsightImpact.MEDIUM
    confidence: int = Field(3, ge=1, le=5)
    tags: list[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, value):
        return split_list(value)


class InsightResponse(BaseModel):
    id: UUID
    product_id: UUID
    interview_id: Optional[UUID] = None
    title: str
    description: str
    source: InsightSource
    impact: InsightImpact
    confidence: int
    tags: list[str] = Field(default_factory=list)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


# ============================================================================
# Experiment Schemas
# ============================================================================

class VariantInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    allocation: float = Field(..., ge=0, le=100)


_EXPERIMENT_MESSAGES = {
    "name": "Name is required",
    "hypothesis": "Hypothesis is required",
    "type": "Invalid experiment type",
    "status": "Invalid status",
    "owner_id": "Invalid owner",
    "start_date": "Invalid start date",
    "end_date": "Invalid end date",
    "variants.name": "Variant name is required",
    "variants.allocation": "Variant allocation must be between 0 and 100",
}


class ExperimentCreate(FormModel):
    error_messages = _EXPERIMENT_MESSAGES

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    hypothesis: str = Field(..., min_length=1)
    type: ExperimentType = ExperimentType.AB_TEST
    audience: Optional[str] = Field(None, max_length=255)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    owner_id: Optional[UUID] = None
    metrics: list[str] = Field(default_factory=list)
    variants: list[VariantInput] = Field(default_factory=list)

    @field_validator("metrics", mode="before")
    @classmethod
    def split_metrics(cls, value):
        return split_list(value)

    @field_validator("variants", mode="before")
    @classmethod
    def decode_variants(cls, value):
        return decode_json(value)


class ExperimentUpdate(FormModel):
    error_messages = _EXPERIMENT_MESSAGES

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    hypothesis: Optional[str] = Field(None, min_length=1)
    type: Optional[ExperimentType] = None
    status: Optional[ExperimentStatus] = None
    audience: Optional[str] = Field(None, max_length=255)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    owner_id: Optional[UUID] = None
    metrics: Optional[list[str]] = None
    variants: Optional[list[VariantInput]] = None
    results: Optional[str] = None
    conclusion: Optional[str] = None

    @field_validator("metrics", mode="before")
    @classmethod
    def split_metrics(cls, value):
        return split_list(value)

    @field_validator("variants", mode="before")
    @classmethod
    def decode_variants(cls, value):
        return decode_json(value)


class ExperimentStatusForm(FormModel):
    error_messages = {"status.missing": "Status is required", "status": "Invalid status"}

    status: ExperimentStatus


class ExperimentResponse(BaseModel):
    id: UUID
    product_id: UUID
    owner_id: Optional[UUID] = None
    name: str
    description: Optional[str] = None
    hypothesis: str
    type: ExperimentType
    status: ExperimentStatus
    audience: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    metrics: list[str] = Field(default_factory=list)
    variants: list[dict] = Field(default_factory=list)
    results: Optional[str] = None
    conclusion: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


# ============================================================================
# Document Schemas
# ============================================================================

_DOCUMENT_MESSAGES = {
    "title": "Title is required",
    "content": "Content is required",
    "type.missing": "Document type is required",
    "type": "Invalid document type",
    "status": "Invalid status",
}


class DocumentCreate(FormModel):
    error_messages = _DOCUMENT_MESSAGES

    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    type: DocumentType
    template: Optional[str] = Field(None, max_length=100)


class DocumentUpdate(FormModel):
    error_messages = _DOCUMENT_MESSAGES

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    type: Optional[DocumentType] = None
    status: Optional[DocumentStatus] = None


class DocumentApprovalForm(FormModel):
    error_messages = {"action": "Action must be APPROVE or REJECT"}

    action: Literal["APPROVE", "REJECT"]
    comment: Optional[str] = Field(None, max_length=2000)


class DocumentResponse(BaseModel):
    id: UUID
    product_id: UUID
    author_id: Optional[UUID] = None
    title: str
    content: str
    type: DocumentType
    status: DocumentStatus
    version: int
    template: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


# ============================================================================
# Persona Schemas
# ============================================================================

class PersonaDemographics(BaseModel):
    """Free-form profile facts; unknown keys are kept as submitted."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, str_strip_whitespace=True)

    age: Optional[str] = None
    location: Optional[str] = None
    occupation: Optional[str] = None
    income: Optional[str] = None
    education: Optional[str] = None
    family_status: Optional[str] = Field(None, alias="familyStatus")
    tech_savviness: Optional[Literal["LOW", "MEDIUM", "HIGH"]] = Field(None, alias="techSavviness")
    is_primary: bool = Field(False, alias="isPrimary")


_PERSONA_MESSAGES = {
    "name": "Name is required",
    "description": "Description is required",
    "demographics": "Invalid demographics",
    "demographics.techSavviness": "Tech savviness must be LOW, MEDIUM or HIGH",
    "demographics.isPrimary": "Primary flag must be true or false",
}

_PERSONA_LISTS = ("goals", "pains", "gains", "behaviors", "motivations", "channels")


class PersonaCreate(FormModel):
    error_messages = _PERSONA_MESSAGES

    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    demographics: PersonaDemographics = Field(default_factory=PersonaDemographics)
    goals: list[str] = Field(default_factory=list)
    pains: list[str] = Field(default_factory=list)
    gains: list[str] = Field(default_factory=list)
    behaviors: list[str] = Field(default_factory=list)
    motivations: list[str] = Field(default_factory=list)
    channels: list[str] = Field(default_factory=list)

    @field_validator("demographics", mode="before")
    @classmethod
    def decode_demographics(cls, value):
        return decode_json(value)

    @field_validator(*_PERSONA_LISTS, mode="before")
    @classmethod
    def split_lists(cls, value):
        return split_list(value)


class PersonaUpdate(FormModel):
    error_messages = _PERSONA_MESSAGES

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    demographics: Optional[PersonaDemographics] = None
    goals: Optional[list[str]] = None
    pains: Optional[list[str]] = None
    gains: Optional[list[str]] = None
    behaviors: Optional[list[str]] = None
    motivations: Optional[list[str]] = None
    channels: Optional[list[str]] = None

    @field_validator("demographics", mode="before")
    @classmethod
    def decode_demographics(cls, value):
        return decode_json(value)

    @field_validator(*_PERSONA_LISTS, mode="before")
    @classmethod
    def split_lists(cls, value):
        return split_list(value)


class PersonaPriorityForm(FormModel):
    error_messages = {
        "is_primary.missing": "Primary flag is required",
        "is_primary": "Primary flag must be true or false",
    }

    is_primary: bool


class PersonaResponse(BaseModel):
    id: UUID
    product_id: UUID
    name: str
    description: str
    demographics: dict = Field(default_factory=dict)
    is_primary: bool
    goals: list[str] = Field(default_factory=list)
    pains: list[str] = Field(default_factory=list)
    gains: list[str] = Field(default_factory=list)
    behaviors: list[str] = Field(default_factory=list)
    motivations: list[str] = Field(default_factory=list)
    channels: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Audit Schemas
# ============================================================================

class AuditLogResponse(BaseModel):
    id: UUID
    organization_id: UUID
    user_id: Optional[UUID] = None
    action: str
    entity: str
    entity_id: str
    changes: Optional[dict] = None
    metadata: Optional[dict] = Field(None, validation_alias="metadata_")
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogListResponse(BaseModel):
    items: list[AuditLogResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
