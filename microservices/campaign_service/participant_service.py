"""
Participant Service Business Logic

Admission and team management for campaigns: direct joins, waitlist
applications and their approval, removal, bans, and role changes.

Editor slots are held by ADMIN and MEMBER participants only. Every write
that consumes a slot is made by the repository under a lock on the
campaign row, so concurrent joins cannot overfill a campaign.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .events.publishers import CampaignEventPublisher
from .models import (
    AuthUser,
    CampaignParticipant,
    CampaignStatus,
    CampaignType,
    JoinMethod,
    JoinResult,
    LeaveReason,
    ManageAction,
    ParticipantRole,
    WaitlistBan,
    WaitlistResponse,
    WaitlistResponseStatus,
)
from .permissions import CampaignAction, ROLE_RANK, check_access
from .protocols import (
    CampaignRepositoryProtocol,
    EventBusProtocol,
    CampaignNotFoundError,
    ParticipantNotFoundError,
    InvalidCampaignStateError,
    InvalidInputError,
    CampaignFullError,
    ParticipantBannedError,
    DuplicateParticipantError,
)

logger = logging.getLogger(__name__)


class ParticipantService:
    """Campaign membership business logic layer"""

    def __init__(
        self,
        repository: CampaignRepositoryProtocol,
        event_bus: Optional[EventBusProtocol] = None,
    ):
        self.repository = repository
        self.event_bus = event_bus
        self.publisher = CampaignEventPublisher(event_bus)

    async def _get_campaign(self, campaign_id: str):
        campaign = await self.repository.get_campaign(campaign_id)
        if not campaign:
            raise CampaignNotFoundError(campaign_id)
        return campaign

    # ====================
    # Queries
    # ====================

    async def get_participant_role(
        self, campaign_id: str, user_id: str
    ) -> Optional[ParticipantRole]:
        participant = await self.repository.get_participant(campaign_id, user_id)
        return participant.role if participant else None

    async def get_team_members(self, campaign_id: str) -> List[CampaignParticipant]:
        """Participants ordered by role (CREATOR first), then join time"""
        await self._get_campaign(campaign_id)
        participants = await self.repository.list_participants(campaign_id)
        return sorted(
            participants,
            key=lambda p: (-ROLE_RANK[p.role], p.joined_at),
        )

    # ====================
    # Admission
    # ====================

    async def join_campaign(
        self,
        campaign_id: str,
        user: AuthUser,
        answers: Optional[Dict[str, Any]] = None,
    ) -> JoinResult:
        """
        Join a campaign.

        AUTO_JOIN campaigns admit the user as MEMBER while a slot is free;
        WAITLIST campaigns record a PENDING application (with answers, when
        given) for later approval.
        """
        campaign = await self._get_campaign(campaign_id)
        if campaign.status != CampaignStatus.ACTIVE:
            raise InvalidCampaignStateError("Campaign is not active", campaign.status)

        if await self.repository.get_participant(campaign_id, user.user_id):
            raise DuplicateParticipantError(campaign_id, user.user_id)

        if await self.repository.get_ban(campaign_id, user.user_id):
            raise ParticipantBannedError(campaign_id, user.user_id)

        if campaign.campaign_type == CampaignType.AUTO_JOIN:
            participant = await self.repository.add_participant(
                campaign_id, user.user_id, ParticipantRole.MEMBER, enforce_capacity=True
            )
            if participant is None:
                raise CampaignFullError(campaign_id)
            join_method = JoinMethod.DIRECT
        else:
            participant = await self.repository.add_participant(
                campaign_id, user.user_id, ParticipantRole.PENDING
            )
            if answers:
                await self.repository.save_response(
                    WaitlistResponse(
                        campaign_id=campaign_id,
                        user_id=user.user_id,
                        answers=answers,
                    )
                )
            join_method = JoinMethod.WAITLIST

        logger.info(f"User {user.user_id} joined campaign {campaign_id} as {participant.role.value}")
        await self.publisher.publish_participant_joined(
            campaign_id, user.user_id, participant.role, join_method
        )
        return JoinResult(
            campaign_id=campaign_id,
            user_id=user.user_id,
            role=participant.role,
            join_method=join_method,
        )

    async def approve_participant(
        self,
        campaign_id: str,
        target_user_id: str,
        actor: AuthUser,
    ) -> CampaignParticipant:
        """Admit a PENDING applicant as MEMBER, if a slot is free"""
        await self._get_campaign(campaign_id)
        await check_access(self.repository, campaign_id, actor, CampaignAction.APPROVE_PARTICIPANT)

        target = await self.repository.get_participant(campaign_id, target_user_id)
        if target is None:
            raise ParticipantNotFoundError(campaign_id, target_user_id)
        if target.role != ParticipantRole.PENDING:
            raise InvalidInputError(
                f"User {target_user_id} is not pending approval (role {target.role.value})"
            )

        promoted = await self.repository.promote_pending(campaign_id, target_user_id)
        if promoted is None:
            raise CampaignFullError(campaign_id)

        await self.repository.review_response(
            campaign_id,
            target_user_id,
            WaitlistResponseStatus.APPROVED,
            reviewed_by=actor.user_id,
            reviewed_at=datetime.now(timezone.utc),
        )

        logger.info(f"User {target_user_id} approved into campaign {campaign_id} by {actor.user_id}")
        await self.publisher.publish_participant_joined(
            campaign_id, target_user_id, ParticipantRole.MEMBER, JoinMethod.WAITLIST
        )
        return promoted

    # ====================
    # Team Management
    # ====================

    async def remove_participant(
        self,
        campaign_id: str,
        target_user_id: str,
        actor: AuthUser,
        reason: Optional[LeaveReason] = None,
    ) -> None:
        """Remove a participant (creator or staff only)"""
        await self._get_campaign(campaign_id)
        await check_access(self.repository, campaign_id, actor, CampaignAction.REMOVE_PARTICIPANT)

        if target_user_id == actor.user_id:
            raise InvalidInputError("Cannot remove yourself")

        target = await self.repository.get_participant(campaign_id, target_user_id)
        if target is None:
            raise ParticipantNotFoundError(campaign_id, target_user_id)
        if target.role == ParticipantRole.CREATOR:
            raise InvalidInputError("The campaign creator cannot be removed")

        if not await self.repository.delete_participant(campaign_id, target_user_id):
            raise ParticipantNotFoundError(campaign_id, target_user_id)

        reason = reason or LeaveReason.KICKED
        logger.info(f"User {target_user_id} removed from campaign {campaign_id} by {actor.user_id} ({reason.value})")
        await self.publisher.publish_participant_left(campaign_id, target_user_id, reason)

    async def ban_participant(
        self,
        campaign_id: str,
        target_user_id: str,
        actor: AuthUser,
        reason: Optional[str] = None,
    ) -> WaitlistBan:
        """
        Ban a user from the campaign.

        Removes their participant row if any and rejects their pending
        waitlist application. The ban blocks every future join.
        """
        await self._get_campaign(campaign_id)
        await check_access(self.repository, campaign_id, actor, CampaignAction.BAN_PARTICIPANT)

        if target_user_id == actor.user_id:
            raise InvalidInputError("Cannot ban yourself")

        target = await self.repository.get_participant(campaign_id, target_user_id)
        if target is not None and target.role == ParticipantRole.CREATOR:
            raise InvalidInputError("The campaign creator cannot be banned")

        ban = await self.repository.create_ban(
            WaitlistBan(
                campaign_id=campaign_id,
                user_id=target_user_id,
                reason=reason,
                banned_by=actor.user_id,
            )
        )

        now = datetime.now(timezone.utc)
        await self.repository.delete_participant(campaign_id, target_user_id)
        rejected = await self.repository.reject_pending_responses(
            campaign_id, target_user_id, reviewed_by=actor.user_id, reviewed_at=now
        )

        logger.info(
            f"User {target_user_id} banned from campaign {campaign_id} by {actor.user_id}"
            f" ({rejected} pending application(s) rejected)"
        )
        await self.publisher.publish_participant_left(
            campaign_id, target_user_id, LeaveReason.BANNED
        )
        return ban

    async def manage_participant(
        self,
        campaign_id: str,
        target_user_id: str,
        action: ManageAction,
        actor: AuthUser,
    ) -> Optional[CampaignParticipant]:
        """
        Promote to ADMIN, demote to MEMBER, or remove a participant.

        Returns the updated participant, or None for REMOVE.
        """
        await self._get_campaign(campaign_id)
        await check_access(self.repository, campaign_id, actor, CampaignAction.MANAGE_PARTICIPANT)

        if action == ManageAction.REMOVE:
            await self.remove_participant(campaign_id, target_user_id, actor)
            return None

        target = await self.repository.get_participant(campaign_id, target_user_id)
        if target is None:
            raise ParticipantNotFoundError(campaign_id, target_user_id)
        if target.role == ParticipantRole.CREATOR:
            raise InvalidInputError("The campaign creator's role cannot be changed")
        if target.role == ParticipantRole.PENDING:
            raise InvalidInputError("Pending applicants must be approved before their role changes")

        new_role = ParticipantRole.ADMIN if action == ManageAction.PROMOTE else ParticipantRole.MEMBER
        updated = await self.repository.update_participant_role(campaign_id, target_user_id, new_role)
        if updated is None:
            raise ParticipantNotFoundError(campaign_id, target_user_id)

        logger.info(f"User {target_user_id} in campaign {campaign_id} set to {new_role.value} by {actor.user_id}")
        return updated


__all__ = ["ParticipantService"]
