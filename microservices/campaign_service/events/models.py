"""
Campaign Event Data Models

Event type definitions and data structures for campaign service events.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# =============================================================================
# Event Type Definitions
# =============================================================================


class CampaignEventType(str, Enum):
    """
    Events published by campaign_service.

    These are the authoritative event types for this service.
    Other services should reference these when subscribing.
    """
    # Campaign lifecycle events
    CREATED = "campaign.created"
    STATUS_CHANGED = "campaign.status_changed"
    FUNDED = "campaign.funded"
    ENDED = "campaign.ended"

    # Membership events
    PARTICIPANT_JOINED = "campaign.participant.joined"
    PARTICIPANT_LEFT = "campaign.participant.left"


class CampaignSubscribedEventType(str, Enum):
    """
    Events that campaign_service subscribes to from other services.
    """
    # Clip events (from clip_service)
    CLIP_SUBMITTED = "clip.submitted"
    CLIP_APPROVED = "clip.approved"
    CLIP_REJECTED = "clip.rejected"

    # Stats events (from stats pipeline)
    STATS_UPDATED = "stats.updated"


class CampaignStreamConfig:
    """Stream configuration for campaign_service"""
    STREAM_NAME = "campaign-stream"
    SUBJECTS = ["campaign.>"]
    CONSUMER_PREFIX = "campaign"

    # Subscription pattern -> durable consumer suffix
    SUBSCRIPTIONS = {
        "clip.>": "clip-counters",
        "stats.updated": "stats",
    }


# =============================================================================
# Event Data Models - Published Events
# =============================================================================


class CampaignCreatedEventData(BaseModel):
    """campaign.created event data"""
    campaign_id: str = Field(..., description="Campaign ID")
    owner_id: str = Field(..., description="User who created the campaign")
    title: str = Field(..., description="Campaign title")
    status: str = Field(..., description="Campaign status (DRAFT)")
    studio_id: Optional[str] = Field(None, description="Owning studio, if any")


class CampaignStatusChangedEventData(BaseModel):
    """campaign.status_changed event data"""
    campaign_id: str = Field(..., description="Campaign ID")
    old_status: str = Field(..., description="Status before the change")
    new_status: str = Field(..., description="Status after the change")
    changed_by: str = Field(..., description="User who changed the status")


class CampaignFundedEventData(BaseModel):
    """campaign.funded event data"""
    campaign_id: str = Field(..., description="Campaign ID")
    amount: Decimal = Field(..., description="Gross amount funded")
    total_budget: Decimal = Field(..., description="Campaign total budget")
    funded_by: str = Field(..., description="User who funded the campaign")


class CampaignEndedEventData(BaseModel):
    """campaign.ended event data"""
    campaign_id: str = Field(..., description="Campaign ID")
    end_reason: str = Field(..., description="MANUAL or DATE_REACHED")
    has_leaderboard: bool = Field(..., description="Whether prizes must be settled")
    total_clips: int = Field(..., description="Approved clips at close")
    total_views: int = Field(..., description="Total views at close")
    total_paid: Decimal = Field(..., description="Budget spent at close")


class ParticipantJoinedEventData(BaseModel):
    """campaign.participant.joined event data"""
    campaign_id: str = Field(..., description="Campaign ID")
    user_id: str = Field(..., description="Joining user")
    role: str = Field(..., description="Role after joining")
    join_method: str = Field(..., description="DIRECT or WAITLIST")


class ParticipantLeftEventData(BaseModel):
    """campaign.participant.left event data"""
    campaign_id: str = Field(..., description="Campaign ID")
    user_id: str = Field(..., description="User who left")
    reason: str = Field(..., description="KICKED or BANNED")


# =============================================================================
# Event Data Models - Subscribed Events
# =============================================================================


class ClipEventData(BaseModel):
    """clip.submitted / clip.approved / clip.rejected event data"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    campaign_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("campaign_id", "campaignId")
    )
    clip_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("clip_id", "clipId")
    )
    user_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("user_id", "userId")
    )


class StatsUpdatedEventData(BaseModel):
    """stats.updated event data"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    campaign_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("campaign_id", "campaignId")
    )
    clip_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("clip_id", "clipId")
    )
    refreshed_at: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("refreshed_at", "refreshedAt")
    )
