"""
Campaign Service Events

Event handlers and publishers for campaign service.
"""

from .models import (
    CampaignEventType,
    CampaignSubscribedEventType,
    CampaignStreamConfig,
    CampaignCreatedEventData,
    CampaignStatusChangedEventData,
    CampaignFundedEventData,
    CampaignEndedEventData,
    ParticipantJoinedEventData,
    ParticipantLeftEventData,
    ClipEventData,
    StatsUpdatedEventData,
)
from .handlers import CampaignEventHandler
from .publishers import CampaignEventPublisher

__all__ = [
    # Event Types
    "CampaignEventType",
    "CampaignSubscribedEventType",
    "CampaignStreamConfig",
    # Event Data Models
    "CampaignCreatedEventData",
    "CampaignStatusChangedEventData",
    "CampaignFundedEventData",
    "CampaignEndedEventData",
    "ParticipantJoinedEventData",
    "ParticipantLeftEventData",
    "ClipEventData",
    "StatsUpdatedEventData",
    # Handler and Publisher
    "CampaignEventHandler",
    "CampaignEventPublisher",
]
