"""
Waitlist Service Business Logic

Screening questions for WAITLIST campaigns and the review of applicant
responses. Reviewing a response records the decision only; admitting the
applicant is a separate ``ParticipantService.approve_participant`` call.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from .models import (
    AuthUser,
    WaitlistQuestion,
    WaitlistQuestionInput,
    WaitlistResponse,
    WaitlistResponseStatus,
)
from .permissions import CampaignAction, check_access
from .protocols import (
    CampaignRepositoryProtocol,
    CampaignNotFoundError,
    InvalidInputError,
    WaitlistResponseNotFoundError,
)

logger = logging.getLogger(__name__)


class WaitlistService:
    """Waitlist questions and responses"""

    def __init__(self, repository: CampaignRepositoryProtocol):
        self.repository = repository

    async def _ensure_campaign(self, campaign_id: str) -> None:
        if not await self.repository.get_campaign(campaign_id):
            raise CampaignNotFoundError(campaign_id)

    async def get_questions(self, campaign_id: str) -> List[WaitlistQuestion]:
        await self._ensure_campaign(campaign_id)
        return await self.repository.get_questions(campaign_id)

    async def set_questions(
        self,
        campaign_id: str,
        questions: List[WaitlistQuestionInput],
        actor: AuthUser,
    ) -> List[WaitlistQuestion]:
        """Replace the campaign's questions; unset order falls back to list position"""
        await self._ensure_campaign(campaign_id)
        await check_access(self.repository, campaign_id, actor, CampaignAction.SET_WAITLIST_QUESTIONS)

        rows = [
            WaitlistQuestion(
                campaign_id=campaign_id,
                question=item.question,
                order=item.order if item.order is not None else index,
            )
            for index, item in enumerate(questions, start=1)
        ]
        saved = await self.repository.replace_questions(campaign_id, rows)
        logger.info(f"Campaign {campaign_id} waitlist questions replaced ({len(saved)}) by {actor.user_id}")
        return saved

    async def list_responses(
        self,
        campaign_id: str,
        actor: AuthUser,
        status: Optional[WaitlistResponseStatus] = None,
    ) -> List[WaitlistResponse]:
        await self._ensure_campaign(campaign_id)
        await check_access(self.repository, campaign_id, actor, CampaignAction.VIEW_WAITLIST_RESPONSES)
        return await self.repository.list_responses(campaign_id, status)

    async def review_response(
        self,
        campaign_id: str,
        target_user_id: str,
        decision: WaitlistResponseStatus,
        actor: AuthUser,
        note: Optional[str] = None,
    ) -> WaitlistResponse:
        """Record an APPROVED or REJECTED decision on an application"""
        await self._ensure_campaign(campaign_id)
        await check_access(self.repository, campaign_id, actor, CampaignAction.REVIEW_WAITLIST_RESPONSE)

        if decision == WaitlistResponseStatus.PENDING:
            raise InvalidInputError("A review decision must be APPROVED or REJECTED")

        reviewed = await self.repository.review_response(
            campaign_id,
            target_user_id,
            decision,
            reviewed_by=actor.user_id,
            reviewed_at=datetime.now(timezone.utc),
            note=note,
        )
        if reviewed is None:
            raise WaitlistResponseNotFoundError(campaign_id, target_user_id)

        logger.info(f"Waitlist response of {target_user_id} in {campaign_id} {decision.value} by {actor.user_id}")
        return reviewed


__all__ = ["WaitlistService"]
