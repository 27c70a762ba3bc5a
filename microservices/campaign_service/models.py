"""
Campaign Service Data Models

Canonical data structures for the campaign service: persisted entities,
command requests and read models.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken to be UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# ENUMS
# =============================================================================

class CampaignStatus(str, Enum):
    """Campaign lifecycle status (moves forward only)"""
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    ENDED = "ENDED"


class CampaignType(str, Enum):
    """Admission policy"""
    AUTO_JOIN = "AUTO_JOIN"
    WAITLIST = "WAITLIST"


class Platform(str, Enum):
    """Social platforms a campaign accepts clips from"""
    TIKTOK = "TIKTOK"
    INSTAGRAM = "INSTAGRAM"
    YOUTUBE = "YOUTUBE"
    TWITTER = "TWITTER"


class ParticipantRole(str, Enum):
    """Campaign-scoped role, CREATOR > ADMIN > MEMBER > PENDING"""
    CREATOR = "CREATOR"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"
    PENDING = "PENDING"


class WaitlistResponseStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class InviteStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"


class JoinMethod(str, Enum):
    DIRECT = "DIRECT"
    WAITLIST = "WAITLIST"


class LeaveReason(str, Enum):
    KICKED = "KICKED"
    BANNED = "BANNED"


class EndReason(str, Enum):
    MANUAL = "MANUAL"
    DATE_REACHED = "DATE_REACHED"


class ManageAction(str, Enum):
    """Team management actions available to the campaign creator"""
    PROMOTE = "PROMOTE"
    DEMOTE = "DEMOTE"
    REMOVE = "REMOVE"


class ClipCounter(str, Enum):
    """Denormalized clip counters, valued by their column name"""
    PENDING = "pending_clips"
    APPROVED = "approved_clips"
    REJECTED = "rejected_clips"


# Roles that occupy one of the campaign's editor slots
SLOT_ROLES = (ParticipantRole.ADMIN, ParticipantRole.MEMBER)


# =============================================================================
# IDENTITY
# =============================================================================

class AuthUser(BaseModel):
    """Authenticated caller, verified upstream"""
    user_id: str = Field(..., min_length=1)
    is_staff: bool = False


# =============================================================================
# ENTITIES
# =============================================================================

class BaseContract(BaseModel):
    """Base model for all persisted entities"""

    model_config = ConfigDict(from_attributes=True)


class Campaign(BaseContract):
    """Campaign aggregate root"""
    campaign_id: str = Field(default_factory=lambda: f"cmp_{uuid4().hex[:16]}")

    # Descriptive
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    category: str = ""
    image: Optional[str] = None
    platforms: List[Platform] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    hashtags: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    requirements: List[str] = Field(default_factory=list)
    resources: List[str] = Field(default_factory=list)
    country_origin: Optional[str] = None
    geo_restrictions: List[str] = Field(default_factory=list)

    # Lifecycle
    status: CampaignStatus = CampaignStatus.DRAFT
    campaign_type: CampaignType = CampaignType.AUTO_JOIN
    published: bool = False
    is_private: bool = False
    start_date: datetime
    end_date: datetime
    archived_at: Optional[datetime] = None

    # Clip rules
    approval_time: str = "48h"
    clip_duration: str = "10s"
    min_resolution: str = "1080p"
    are_clips_public: bool = True
    min_view_count: int = Field(default=0, ge=0)
    limit_per_editor: int = Field(default=0, ge=0)
    limit_per_clip: int = Field(default=0, ge=0)
    limit_clips_per_clipper: int = Field(default=0, ge=0)

    # Payment terms
    payment_type: str = "CLIP"
    payment_method: str = "Transferencia"
    currency: str = "USD"
    base_pay: Decimal = Decimal("0")
    reward_per_view: Decimal = Decimal("0")
    max_pay: Decimal = Decimal("0")
    payment_cap: Optional[Decimal] = None
    payment_cap_metric: Optional[str] = None

    # Budget
    total_budget: Decimal = Field(default=Decimal("0"), ge=0)
    platform_fee: Decimal = Decimal("0")
    remaining_budget: Decimal = Decimal("0")
    spent_budget: Decimal = Decimal("0")
    is_funded: bool = False

    # Membership
    editor_slots: int = Field(default=5, ge=0)
    show_participant_count: bool = True

    # Counters
    approved_clips: int = 0
    pending_clips: int = 0
    rejected_clips: int = 0
    total_views: int = 0
    views_last_24h: int = 0
    enable_leaderboard: bool = False
    last_stats_refreshed_at: Optional[datetime] = None

    # Ownership
    created_by: str
    studio_id: Optional[str] = None

    # Timestamps
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class CampaignParticipant(BaseContract):
    campaign_id: str
    user_id: str
    role: ParticipantRole
    joined_at: datetime = Field(default_factory=_utcnow)


class WaitlistQuestion(BaseContract):
    question_id: str = Field(default_factory=lambda: f"wq_{uuid4().hex[:16]}")
    campaign_id: str
    question: str = Field(..., min_length=1)
    order: int
    created_at: datetime = Field(default_factory=_utcnow)


class WaitlistResponse(BaseContract):
    """Applicant answers and the review decision on them"""
    campaign_id: str
    user_id: str
    answers: Dict[str, Any] = Field(default_factory=dict)
    status: WaitlistResponseStatus = WaitlistResponseStatus.PENDING
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    note: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)


class WaitlistBan(BaseContract):
    campaign_id: str
    user_id: str
    reason: Optional[str] = None
    banned_by: str
    created_at: datetime = Field(default_factory=_utcnow)


class CampaignPermissions(BaseContract):
    """Per-campaign switches for what ADMIN participants may do"""
    campaign_id: Optional[str] = None
    admins_can_edit_campaign: bool = False
    admins_can_delete_campaign: bool = False
    admins_can_manage_team: bool = True
    admins_can_add_budget: bool = False
    admins_can_review_clips: bool = True
    updated_at: datetime = Field(default_factory=_utcnow)


class PrizeDistribution(BaseContract):
    campaign_id: str
    position: int = Field(..., ge=1)
    reward: Decimal = Field(..., ge=0)
    label: str


class CampaignInvite(BaseContract):
    campaign_id: str
    discord_user_id: str
    status: InviteStatus = InviteStatus.PENDING
    created_at: datetime = Field(default_factory=_utcnow)


class LeaderboardEntry(BaseContract):
    """Ranked participant score, written by the stats pipeline"""
    campaign_id: str
    user_id: str
    score: Decimal = Decimal("0")
    rank: Optional[int] = None
    updated_at: datetime = Field(default_factory=_utcnow)


class ProcessedEvent(BaseContract):
    """Inbound event already applied by a consumer"""
    consumer: str
    event_id: str
    processed_at: datetime = Field(default_factory=_utcnow)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class LeaderboardRank(BaseModel):
    """One prize tier as entered by the creator (e.g. position "1st", reward 500)"""
    position: str = Field(..., min_length=1)
    reward: Decimal = Field(..., ge=0)


class WaitlistQuestionInput(BaseModel):
    question: str = Field(..., min_length=1)
    order: Optional[int] = None


class CampaignCreateRequest(BaseModel):
    """Campaign creation request; unset optional fields take service defaults"""
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    category: str = ""
    image: Optional[str] = None
    platforms: List[str] = Field(..., min_length=1)
    start_date: datetime
    end_date: datetime

    tags: List[str] = Field(default_factory=list)
    hashtags: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    requirements: List[str] = Field(default_factory=list)
    resources: List[str] = Field(default_factory=list)
    country_origin: Optional[str] = None
    geo_restrictions: List[str] = Field(default_factory=list)

    campaign_type: Optional[CampaignType] = None
    editor_slots: Optional[int] = Field(None, ge=0)
    is_private: Optional[bool] = None
    enable_leaderboard: Optional[bool] = None
    are_clips_public: Optional[bool] = None
    show_participant_count: Optional[bool] = None

    approval_time: Optional[str] = None
    clip_duration: Optional[str] = None
    min_resolution: Optional[str] = None
    min_view_count: Optional[int] = Field(None, ge=0)
    limit_per_editor: Optional[int] = Field(None, ge=0)
    limit_per_clip: Optional[int] = Field(None, ge=0)
    limit_clips_per_clipper: Optional[int] = Field(None, ge=0)

    payment_type: Optional[str] = None
    payment_method: Optional[str] = None
    currency: Optional[str] = None
    base_pay: Optional[Decimal] = Field(None, ge=0)
    reward_per_view: Optional[Decimal] = Field(None, ge=0)
    max_pay: Optional[Decimal] = Field(None, ge=0)
    payment_cap: Optional[Decimal] = Field(None, ge=0)
    payment_cap_metric: Optional[str] = None
    total_budget: Optional[Decimal] = Field(None, ge=0)

    studio_id: Optional[str] = None
    leaderboard_ranks: List[LeaderboardRank] = Field(default_factory=list)
    invited_users: List[str] = Field(default_factory=list)

    @field_validator("start_date", "end_date")
    @classmethod
    def dates_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)


class CampaignUpdateRequest(BaseModel):
    """Partial campaign update; unknown fields are rejected"""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    image: Optional[str] = None
    platforms: Optional[List[str]] = Field(None, min_length=1)
    tags: Optional[List[str]] = None
    hashtags: Optional[List[str]] = None
    languages: Optional[List[str]] = None
    requirements: Optional[List[str]] = None
    resources: Optional[List[str]] = None
    country_origin: Optional[str] = None
    geo_restrictions: Optional[List[str]] = None

    status: Optional[CampaignStatus] = None
    published: Optional[bool] = None
    is_private: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    approval_time: Optional[str] = None
    clip_duration: Optional[str] = None
    min_resolution: Optional[str] = None
    are_clips_public: Optional[bool] = None
    min_view_count: Optional[int] = Field(None, ge=0)
    limit_per_editor: Optional[int] = Field(None, ge=0)
    limit_per_clip: Optional[int] = Field(None, ge=0)
    limit_clips_per_clipper: Optional[int] = Field(None, ge=0)

    payment_type: Optional[str] = None
    payment_method: Optional[str] = None
    currency: Optional[str] = None
    base_pay: Optional[Decimal] = Field(None, ge=0)
    reward_per_view: Optional[Decimal] = Field(None, ge=0)
    max_pay: Optional[Decimal] = Field(None, ge=0)
    payment_cap: Optional[Decimal] = Field(None, ge=0)
    payment_cap_metric: Optional[str] = None
    total_budget: Optional[Decimal] = Field(None, ge=0)

    editor_slots: Optional[int] = Field(None, ge=0)
    show_participant_count: Optional[bool] = None
    enable_leaderboard: Optional[bool] = None
    prize_distributions: Optional[List[LeaderboardRank]] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def dates_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)


class CampaignPermissionsUpdate(BaseModel):
    """Partial update of the admin permission switches"""

    model_config = ConfigDict(extra="forbid")

    admins_can_edit_campaign: Optional[bool] = None
    admins_can_delete_campaign: Optional[bool] = None
    admins_can_manage_team: Optional[bool] = None
    admins_can_add_budget: Optional[bool] = None
    admins_can_review_clips: Optional[bool] = None


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class CampaignListResponse(BaseModel):
    campaigns: List[Campaign]
    total: int
    page: int
    limit: int
    total_pages: int


class CampaignStats(BaseModel):
    """Public counters shown on a campaign page"""
    campaign_id: str
    total_views: int
    total_submissions: int
    approved_submissions: int
    campaign_start_date: datetime
    campaign_end_date: datetime
    is_active: bool
    last_stats_refreshed_at: Optional[datetime] = None
    participants_count: Optional[int] = None
    show_participant_count: bool
    total_budget: Decimal


class JoinResult(BaseModel):
    campaign_id: str
    user_id: str
    role: ParticipantRole
    join_method: JoinMethod
