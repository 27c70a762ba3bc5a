"""
Campaign Service Business Logic

Implements the campaign lifecycle: creation with defaults, guarded updates,
closing, funding, the date-based auto-close sweep, and the read models
(stats, prizes, leaderboard, admin permissions).
"""

import logging
import math
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional

from .events.publishers import CampaignEventPublisher
from .models import (
    AuthUser,
    Campaign,
    CampaignCreateRequest,
    CampaignListResponse,
    CampaignPermissions,
    CampaignPermissionsUpdate,
    CampaignStats,
    CampaignStatus,
    CampaignType,
    CampaignUpdateRequest,
    EndReason,
    LeaderboardEntry,
    LeaderboardRank,
    Platform,
    PrizeDistribution,
    as_utc,
)
from .permissions import CampaignAction, check_access, require_owner
from .protocols import (
    CampaignRepositoryProtocol,
    EventBusProtocol,
    CampaignNotFoundError,
    InvalidCampaignStateError,
    InvalidPlatformError,
    CampaignValidationError,
    PermissionDeniedError,
    CampaignAlreadyFundedError,
    CampaignAlreadyEndedError,
    ConcurrentModificationError,
)

logger = logging.getLogger(__name__)


# Substring each platform is recognised by, plus exact-match aliases
PLATFORM_ALIASES = {
    Platform.TIKTOK: ("tiktok", {"tik tok"}),
    Platform.INSTAGRAM: ("instagram", {"insta"}),
    Platform.YOUTUBE: ("youtube", {"yt"}),
    Platform.TWITTER: ("twitter", {"x"}),
}


def map_platform(value: str) -> Platform:
    """Map a free-form platform name (case-insensitive, alias tolerant)"""
    normalized = value.strip().lower()
    for platform, (name, aliases) in PLATFORM_ALIASES.items():
        if name in normalized or normalized in aliases:
            return platform
    raise InvalidPlatformError(value)


def map_platforms(values: Iterable[str]) -> List[Platform]:
    platforms: List[Platform] = []
    for value in values:
        platform = map_platform(value)
        if platform not in platforms:
            platforms.append(platform)
    if not platforms:
        raise CampaignValidationError("At least one platform is required", "platforms")
    return platforms


def calculate_platform_fee(total_budget: Decimal, rate: Decimal = Decimal("0.10")) -> Decimal:
    """Fee on the gross budget, rounded half-up to a whole currency unit"""
    return (Decimal(total_budget) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def build_prize_distributions(
    campaign_id: str, ranks: List[LeaderboardRank]
) -> List[PrizeDistribution]:
    """1-based positions in list order; the entered position text becomes the label"""
    return [
        PrizeDistribution(
            campaign_id=campaign_id,
            position=index,
            reward=rank.reward,
            label=rank.position,
        )
        for index, rank in enumerate(ranks, start=1)
    ]


# Lifecycle order; status never moves backwards
STATUS_ORDER = {
    CampaignStatus.DRAFT: 0,
    CampaignStatus.ACTIVE: 1,
    CampaignStatus.ENDED: 2,
}


class CampaignService:
    """Campaign lifecycle business logic layer"""

    MAX_PAGE_SIZE = 100

    # Values applied when the create request leaves a field unset
    CREATE_DEFAULTS: Dict[str, Any] = {
        "campaign_type": CampaignType.AUTO_JOIN,
        "editor_slots": 5,
        "is_private": False,
        "enable_leaderboard": False,
        "are_clips_public": True,
        "show_participant_count": True,
        "approval_time": "48h",
        "clip_duration": "10s",
        "min_resolution": "1080p",
        "min_view_count": 0,
        "limit_per_editor": 0,
        "limit_per_clip": 0,
        "limit_clips_per_clipper": 0,
        "payment_type": "CLIP",
        "payment_method": "Transferencia",
        "currency": "USD",
        "base_pay": Decimal("0"),
        "reward_per_view": Decimal("0"),
        "max_pay": Decimal("0"),
        "total_budget": Decimal("0"),
    }

    # Campaign columns that may be cleared through an update
    NULLABLE_FIELDS = {"image", "country_origin", "payment_cap", "payment_cap_metric"}

    def __init__(
        self,
        repository: CampaignRepositoryProtocol,
        event_bus: Optional[EventBusProtocol] = None,
        platform_fee_rate: Decimal = Decimal("0.10"),
    ):
        self.repository = repository
        self.event_bus = event_bus
        self.publisher = CampaignEventPublisher(event_bus)
        self.platform_fee_rate = platform_fee_rate

    # ====================
    # Campaign CRUD
    # ====================

    async def create_campaign(
        self,
        request: CampaignCreateRequest,
        creator: AuthUser,
    ) -> Campaign:
        """
        Create a new campaign in DRAFT.

        The creator becomes the CREATOR participant; prize rows are written
        when the leaderboard is enabled and invites when the campaign is
        private.
        """
        platforms = map_platforms(request.platforms)
        self._validate_dates(request.start_date, request.end_date)

        fields = request.model_dump(
            exclude={"platforms", "leaderboard_ranks", "invited_users"},
        )
        for key, default in self.CREATE_DEFAULTS.items():
            if fields.get(key) is None:
                fields[key] = default

        campaign = Campaign(
            **fields,
            platforms=platforms,
            status=CampaignStatus.DRAFT,
            published=False,
            created_by=creator.user_id,
        )

        prizes = None
        if campaign.enable_leaderboard and request.leaderboard_ranks:
            prizes = build_prize_distributions(campaign.campaign_id, request.leaderboard_ranks)

        invites = None
        if campaign.is_private and request.invited_users:
            invites = list(dict.fromkeys(request.invited_users))

        campaign = await self.repository.create_campaign(
            campaign, prizes=prizes, invited_user_ids=invites
        )
        logger.info(f"Campaign {campaign.campaign_id} created by {creator.user_id}")

        await self.publisher.publish_campaign_created(campaign)
        return campaign

    async def get_campaign(self, campaign_id: str) -> Campaign:
        """Get campaign by ID"""
        campaign = await self.repository.get_campaign(campaign_id)
        if not campaign:
            raise CampaignNotFoundError(campaign_id)
        return campaign

    async def list_campaigns(
        self,
        status: Optional[CampaignStatus] = None,
        studio_id: Optional[str] = None,
        created_by: Optional[str] = None,
        published: Optional[bool] = None,
        page: int = 1,
        limit: int = 20,
    ) -> CampaignListResponse:
        """List campaigns with filters, newest first"""
        if page < 1:
            raise CampaignValidationError("page must be at least 1", "page")
        if limit < 1 or limit > self.MAX_PAGE_SIZE:
            raise CampaignValidationError(
                f"limit must be between 1 and {self.MAX_PAGE_SIZE}", "limit"
            )

        campaigns, total = await self.repository.list_campaigns(
            status=status,
            studio_id=studio_id,
            created_by=created_by,
            published=published,
            limit=limit,
            offset=(page - 1) * limit,
        )
        return CampaignListResponse(
            campaigns=campaigns,
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if total else 0,
        )

    async def update_campaign(
        self,
        campaign_id: str,
        request: CampaignUpdateRequest,
        actor: AuthUser,
    ) -> Campaign:
        """
        Update campaign fields.

        Status only moves forward (DRAFT -> ACTIVE -> ENDED); the write is
        conditional on the status read, so a concurrent transition surfaces as
        a conflict.
        """
        campaign = await self.get_campaign(campaign_id)
        await check_access(self.repository, campaign_id, actor, CampaignAction.EDIT_CAMPAIGN)

        changes = {
            key: value
            for key, value in request.model_dump(exclude_unset=True).items()
            if value is not None or key in self.NULLABLE_FIELDS
        }
        prize_ranks = request.prize_distributions if "prize_distributions" in changes else None
        changes.pop("prize_distributions", None)

        if "platforms" in changes:
            changes["platforms"] = map_platforms(changes["platforms"])

        if (
            "total_budget" in changes
            and campaign.is_funded
            and Decimal(changes["total_budget"]) != campaign.total_budget
        ):
            raise CampaignValidationError(
                "total_budget cannot change once the campaign is funded", "total_budget"
            )

        self._validate_dates(
            changes.get("start_date", campaign.start_date),
            changes.get("end_date", campaign.end_date),
        )

        old_status = campaign.status
        new_status = changes.pop("status", None)
        expected_status = None
        if new_status is not None and new_status != old_status:
            if STATUS_ORDER[new_status] < STATUS_ORDER[old_status]:
                raise InvalidCampaignStateError(
                    f"Cannot change status from {old_status.value} to {new_status.value}",
                    old_status,
                )
            changes["status"] = new_status
            if new_status == CampaignStatus.ENDED:
                changes["archived_at"] = datetime.now(timezone.utc)
            expected_status = old_status

        updated = campaign
        if changes:
            changes["updated_at"] = datetime.now(timezone.utc)
            updated = await self.repository.update_campaign(
                campaign_id, changes, expected_status=expected_status
            )
            if updated is None:
                if expected_status is not None:
                    raise ConcurrentModificationError(
                        f"Campaign {campaign_id} changed status concurrently"
                    )
                raise CampaignNotFoundError(campaign_id)

        if prize_ranks is not None:
            await self.repository.replace_prize_distributions(
                campaign_id, build_prize_distributions(campaign_id, prize_ranks)
            )

        if expected_status is not None:
            logger.info(f"Campaign {campaign_id} status {old_status.value} -> {updated.status.value}")
            await self.publisher.publish_status_changed(
                campaign_id, old_status, updated.status, actor.user_id
            )

        return updated

    async def delete_campaign(self, campaign_id: str, actor: AuthUser) -> bool:
        """Delete a campaign and everything that belongs to it"""
        await self.get_campaign(campaign_id)
        await check_access(self.repository, campaign_id, actor, CampaignAction.DELETE_CAMPAIGN)

        deleted = await self.repository.delete_campaign(campaign_id)
        if not deleted:
            raise CampaignNotFoundError(campaign_id)
        logger.info(f"Campaign {campaign_id} deleted by {actor.user_id}")
        return True

    # ====================
    # Lifecycle
    # ====================

    async def close_campaign(self, campaign_id: str, actor: AuthUser) -> Campaign:
        """End a campaign manually (creator or staff only)"""
        campaign = await self.get_campaign(campaign_id)
        if campaign.status == CampaignStatus.ENDED:
            raise CampaignAlreadyEndedError(campaign_id)

        await check_access(self.repository, campaign_id, actor, CampaignAction.CLOSE_CAMPAIGN)

        ended = await self.repository.end_campaign(campaign_id, datetime.now(timezone.utc))
        if ended is None:
            raise CampaignAlreadyEndedError(campaign_id)

        logger.info(f"Campaign {campaign_id} closed by {actor.user_id}")
        await self.publisher.publish_campaign_ended(ended, EndReason.MANUAL)
        return ended

    async def fund_campaign(self, campaign_id: str, actor: AuthUser) -> Campaign:
        """Mark the campaign funded and split off the platform fee"""
        campaign = await self.get_campaign(campaign_id)
        require_owner(campaign, actor, "fund a campaign")

        if campaign.is_funded:
            raise CampaignAlreadyFundedError(campaign_id)

        platform_fee = calculate_platform_fee(campaign.total_budget, self.platform_fee_rate)
        remaining_budget = campaign.total_budget - platform_fee

        funded = await self.repository.mark_funded(campaign_id, platform_fee, remaining_budget)
        if funded is None:
            raise CampaignAlreadyFundedError(campaign_id)

        logger.info(f"Campaign {campaign_id} funded by {actor.user_id}, fee={platform_fee}")
        await self.publisher.publish_campaign_funded(funded, actor.user_id)
        return funded

    async def auto_close_expired(self, now: Optional[datetime] = None) -> int:
        """
        End every ACTIVE campaign whose end date has passed.

        Each campaign is closed independently; a failure is logged and the
        sweep moves on.

        Returns:
            Number of campaigns closed
        """
        now = now or datetime.now(timezone.utc)
        expired = await self.repository.list_expired_campaigns(now)

        closed = 0
        for campaign in expired:
            try:
                ended = await self.repository.end_campaign(
                    campaign.campaign_id, now, require_status=CampaignStatus.ACTIVE
                )
                if ended is None:
                    logger.info(f"Campaign {campaign.campaign_id} no longer ACTIVE, skipping auto-close")
                    continue
                closed += 1
                await self.publisher.publish_campaign_ended(ended, EndReason.DATE_REACHED)
            except Exception as e:
                logger.error(f"Failed to auto-close campaign {campaign.campaign_id}: {e}")

        if closed:
            logger.info(f"Auto-closed {closed} expired campaign(s)")
        return closed

    # ====================
    # Permissions
    # ====================

    async def authorize(
        self, campaign_id: str, actor: AuthUser, action: CampaignAction
    ) -> bool:
        """Whether the actor may perform ``action`` on the campaign"""
        await self.get_campaign(campaign_id)
        try:
            await check_access(self.repository, campaign_id, actor, action)
        except PermissionDeniedError:
            return False
        return True

    async def get_permissions(self, campaign_id: str) -> CampaignPermissions:
        """Admin switches, with defaults when never configured"""
        await self.get_campaign(campaign_id)
        permissions = await self.repository.get_permissions(campaign_id)
        return permissions or CampaignPermissions(campaign_id=campaign_id)

    async def set_permissions(
        self,
        campaign_id: str,
        request: CampaignPermissionsUpdate,
        actor: AuthUser,
    ) -> CampaignPermissions:
        await self.get_campaign(campaign_id)
        await check_access(self.repository, campaign_id, actor, CampaignAction.SET_PERMISSIONS)

        updates = request.model_dump(exclude_none=True)
        permissions = await self.repository.upsert_permissions(campaign_id, updates)
        logger.info(f"Campaign {campaign_id} permissions updated by {actor.user_id}: {updates}")
        return permissions

    # ====================
    # Read Models
    # ====================

    async def get_public_stats(self, campaign_id: str) -> CampaignStats:
        campaign = await self.get_campaign(campaign_id)

        participants_count = None
        if campaign.show_participant_count:
            participants_count = await self.repository.count_participants(campaign_id)

        return CampaignStats(
            campaign_id=campaign_id,
            total_views=campaign.total_views,
            total_submissions=(
                campaign.approved_clips + campaign.pending_clips + campaign.rejected_clips
            ),
            approved_submissions=campaign.approved_clips,
            campaign_start_date=campaign.start_date,
            campaign_end_date=campaign.end_date,
            is_active=campaign.status == CampaignStatus.ACTIVE,
            last_stats_refreshed_at=campaign.last_stats_refreshed_at,
            participants_count=participants_count,
            show_participant_count=campaign.show_participant_count,
            total_budget=campaign.total_budget,
        )

    async def get_prizes(self, campaign_id: str) -> List[PrizeDistribution]:
        await self.get_campaign(campaign_id)
        return await self.repository.get_prize_distributions(campaign_id)

    async def get_leaderboard(self, campaign_id: str) -> List[LeaderboardEntry]:
        campaign = await self.get_campaign(campaign_id)
        if not campaign.enable_leaderboard:
            raise InvalidCampaignStateError(
                "Leaderboard is not enabled for this campaign", campaign.status
            )
        return await self.repository.get_leaderboard(campaign_id)

    # ====================
    # Validation
    # ====================

    def _validate_dates(self, start_date: datetime, end_date: datetime) -> None:
        if as_utc(end_date) <= as_utc(start_date):
            raise CampaignValidationError("end_date must be after start_date", "end_date")


__all__ = [
    "CampaignService",
    "calculate_platform_fee",
    "map_platform",
    "map_platforms",
    "build_prize_distributions",
]
