"""
Campaign Event Handlers

Handles incoming clip and stats events from other services and keeps the
denormalized clip counters in step with them.

Handlers let storage errors propagate: the event bus naks the message and
JetStream redelivers it. Redelivery is safe because every increment is
recorded against (consumer, event id) in the same transaction.
"""

import logging
from typing import Awaitable, Callable, Dict

from core.nats_client import Event

from ..models import ClipCounter
from ..protocols import CampaignNotFoundError, CampaignRepositoryProtocol
from .models import (
    CampaignSubscribedEventType,
    ClipEventData,
    StatsUpdatedEventData,
)

logger = logging.getLogger(__name__)


class CampaignEventHandler:
    """Handler for campaign service subscribed events"""

    CONSUMER_NAME = "campaign-clip-counters"

    COUNTER_BY_EVENT = {
        CampaignSubscribedEventType.CLIP_SUBMITTED.value: ClipCounter.PENDING,
        CampaignSubscribedEventType.CLIP_APPROVED.value: ClipCounter.APPROVED,
        CampaignSubscribedEventType.CLIP_REJECTED.value: ClipCounter.REJECTED,
    }

    def __init__(self, campaign_repository: CampaignRepositoryProtocol):
        self.repository = campaign_repository

    def get_event_handlers(self) -> Dict[str, Callable[[Event], Awaitable[None]]]:
        """Event type -> handler"""
        return {
            CampaignSubscribedEventType.CLIP_SUBMITTED.value: self.handle_clip_event,
            CampaignSubscribedEventType.CLIP_APPROVED.value: self.handle_clip_event,
            CampaignSubscribedEventType.CLIP_REJECTED.value: self.handle_clip_event,
            CampaignSubscribedEventType.STATS_UPDATED.value: self.handle_stats_updated,
        }

    async def handle_event(self, event: Event) -> None:
        """Route event to appropriate handler"""
        handler = self.get_event_handlers().get(event.type)
        if handler is None:
            logger.debug(f"No handler for event type: {event.type}")
            return
        await handler(event)

    async def handle_clip_event(self, event: Event) -> bool:
        """
        Handle clip.submitted / clip.approved / clip.rejected.

        Returns:
            True when a counter was incremented, False for duplicates and
            events that cannot be applied
        """
        counter = self.COUNTER_BY_EVENT[event.type]
        data = ClipEventData.model_validate(event.data or {})

        if not data.campaign_id:
            logger.warning(f"{event.type} [{event.id}] missing campaign_id, skipping")
            return False

        try:
            applied = await self.repository.increment_clip_counter(
                campaign_id=data.campaign_id,
                counter=counter,
                consumer=self.CONSUMER_NAME,
                event_id=event.id,
            )
        except CampaignNotFoundError:
            logger.warning(f"{event.type} [{event.id}] for unknown campaign {data.campaign_id}, skipping")
            return False

        if applied:
            logger.info(f"Campaign {data.campaign_id}: {counter.value} +1 from {event.type} [{event.id}]")
        else:
            logger.debug(f"Duplicate {event.type} [{event.id}] ignored")
        return applied

    async def handle_stats_updated(self, event: Event) -> None:
        """Handle stats.updated; the stats pipeline writes its figures directly"""
        data = StatsUpdatedEventData.model_validate(event.data or {})
        logger.info(
            f"Stats updated for campaign {data.campaign_id or 'unknown'} "
            f"(clip {data.clip_id or 'n/a'}) [{event.id}]"
        )
