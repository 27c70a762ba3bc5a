"""
Campaign Event Publishers

Publishes campaign events to NATS JetStream wrapped in the platform Event
envelope. Publishing is best effort: callers have already committed the
state change, so a failure is logged and reported as False.
"""

import logging
from typing import Optional

from pydantic import BaseModel

from core.nats_client import Event, ServiceSource

from ..models import (
    Campaign,
    CampaignStatus,
    EndReason,
    JoinMethod,
    LeaveReason,
    ParticipantRole,
)
from .models import (
    CampaignEventType,
    CampaignCreatedEventData,
    CampaignStatusChangedEventData,
    CampaignFundedEventData,
    CampaignEndedEventData,
    ParticipantJoinedEventData,
    ParticipantLeftEventData,
)

logger = logging.getLogger(__name__)


class CampaignEventPublisher:
    """Publisher for campaign service events"""

    def __init__(self, event_bus=None):
        self.event_bus = event_bus
        self.source = ServiceSource.CAMPAIGN_SERVICE

    async def publish(self, event_type: CampaignEventType, data: BaseModel) -> bool:
        """
        Publish an event to NATS.

        Args:
            event_type: The event type enum
            data: Event payload model

        Returns:
            True if published successfully, False otherwise
        """
        if not self.event_bus:
            logger.debug(f"Event bus not configured, skipping publish: {event_type.value}")
            return False

        try:
            event = Event(
                event_type=event_type,
                source=self.source,
                data=data.model_dump(mode="json"),
            )
            published = await self.event_bus.publish_event(event)
            if published:
                logger.debug(f"Published event: {event_type.value} [{event.id}]")
            else:
                logger.warning(f"Event bus rejected event: {event_type.value} [{event.id}]")
            return bool(published)

        except Exception as e:
            logger.error(f"Failed to publish event {event_type.value}: {e}")
            return False

    # ====================
    # Campaign Lifecycle Events
    # ====================

    async def publish_campaign_created(self, campaign: Campaign) -> bool:
        """Publish campaign.created event"""
        data = CampaignCreatedEventData(
            campaign_id=campaign.campaign_id,
            owner_id=campaign.created_by,
            title=campaign.title,
            status=campaign.status.value,
            studio_id=campaign.studio_id,
        )
        return await self.publish(CampaignEventType.CREATED, data)

    async def publish_status_changed(
        self,
        campaign_id: str,
        old_status: CampaignStatus,
        new_status: CampaignStatus,
        changed_by: str,
    ) -> bool:
        """Publish campaign.status_changed event"""
        data = CampaignStatusChangedEventData(
            campaign_id=campaign_id,
            old_status=old_status.value,
            new_status=new_status.value,
            changed_by=changed_by,
        )
        return await self.publish(CampaignEventType.STATUS_CHANGED, data)

    async def publish_campaign_funded(self, campaign: Campaign, funded_by: str) -> bool:
        """Publish campaign.funded event with the gross amount"""
        data = CampaignFundedEventData(
            campaign_id=campaign.campaign_id,
            amount=campaign.total_budget,
            total_budget=campaign.total_budget,
            funded_by=funded_by,
        )
        return await self.publish(CampaignEventType.FUNDED, data)

    async def publish_campaign_ended(self, campaign: Campaign, reason: EndReason) -> bool:
        """Publish campaign.ended event with the closing stats"""
        data = CampaignEndedEventData(
            campaign_id=campaign.campaign_id,
            end_reason=reason.value,
            has_leaderboard=campaign.enable_leaderboard,
            total_clips=campaign.approved_clips,
            total_views=campaign.total_views,
            total_paid=campaign.spent_budget,
        )
        return await self.publish(CampaignEventType.ENDED, data)

    # ====================
    # Membership Events
    # ====================

    async def publish_participant_joined(
        self,
        campaign_id: str,
        user_id: str,
        role: ParticipantRole,
        join_method: JoinMethod,
    ) -> bool:
        """Publish campaign.participant.joined event"""
        data = ParticipantJoinedEventData(
            campaign_id=campaign_id,
            user_id=user_id,
            role=role.value,
            join_method=join_method.value,
        )
        return await self.publish(CampaignEventType.PARTICIPANT_JOINED, data)

    async def publish_participant_left(
        self,
        campaign_id: str,
        user_id: str,
        reason: Optional[LeaveReason] = None,
    ) -> bool:
        """Publish campaign.participant.left event"""
        data = ParticipantLeftEventData(
            campaign_id=campaign_id,
            user_id=user_id,
            reason=(reason or LeaveReason.KICKED).value,
        )
        return await self.publish(CampaignEventType.PARTICIPANT_LEFT, data)
