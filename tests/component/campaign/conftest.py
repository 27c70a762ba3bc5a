"""
Component Test Fixtures for Campaign Service

Provides an in-memory repository with the same conditional-write semantics
as the PostgreSQL one, the mock event bus, and services wired to both.
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from microservices.campaign_service.campaign_service import CampaignService
from microservices.campaign_service.events.handlers import CampaignEventHandler
from microservices.campaign_service.models import (
    Campaign,
    CampaignInvite,
    CampaignParticipant,
    CampaignPermissions,
    CampaignStatus,
    CampaignType,
    ClipCounter,
    LeaderboardEntry,
    ParticipantRole,
    PrizeDistribution,
    ProcessedEvent,
    SLOT_ROLES,
    WaitlistBan,
    WaitlistQuestion,
    WaitlistResponse,
    WaitlistResponseStatus,
)
from microservices.campaign_service.participant_service import ParticipantService
from microservices.campaign_service.protocols import (
    CampaignNotFoundError,
    DuplicateParticipantError,
    ParticipantAlreadyBannedError,
    ParticipantBannedError,
)
from microservices.campaign_service.waitlist_service import WaitlistService
from tests.component.mocks import MockEventBus
from tests.contracts.campaign.data_contract import CampaignTestDataFactory


# ====================
# Mock Repository
# ====================


class MockCampaignRepository:
    """In-memory repository; conditional writes return None when their guard fails"""

    def __init__(self):
        self.campaigns: Dict[str, Campaign] = {}
        self.participants: Dict[Tuple[str, str], CampaignParticipant] = {}
        self.permissions: Dict[str, CampaignPermissions] = {}
        self.prizes: Dict[str, List[PrizeDistribution]] = {}
        self.invites: Dict[Tuple[str, str], CampaignInvite] = {}
        self.questions: Dict[str, List[WaitlistQuestion]] = {}
        self.responses: Dict[Tuple[str, str], WaitlistResponse] = {}
        self.bans: Dict[Tuple[str, str], WaitlistBan] = {}
        self.leaderboards: Dict[str, List[LeaderboardEntry]] = {}
        self.processed_events: Dict[Tuple[str, str], ProcessedEvent] = {}

        # campaign ids whose end_campaign raises, for sweep failure tests
        self.fail_end_for: Set[str] = set()

    async def initialize(self):
        pass

    async def close(self):
        pass

    async def health_check(self) -> bool:
        return True

    # Test helpers

    def save_campaign(self, campaign: Campaign) -> Campaign:
        """Store a campaign directly, bypassing creation side effects"""
        self.campaigns[campaign.campaign_id] = campaign
        return campaign

    def save_participant(self, participant: CampaignParticipant) -> CampaignParticipant:
        self.participants[(participant.campaign_id, participant.user_id)] = participant
        return participant

    def _occupied(self, campaign_id: str) -> int:
        return sum(
            1
            for (cid, _), p in self.participants.items()
            if cid == campaign_id and p.role in SLOT_ROLES
        )

    def _has_free_slot(self, campaign_id: str) -> bool:
        campaign = self.campaigns[campaign_id]
        return self._occupied(campaign_id) < campaign.editor_slots

    # Campaign CRUD

    async def create_campaign(
        self,
        campaign: Campaign,
        prizes: Optional[List[PrizeDistribution]] = None,
        invited_user_ids: Optional[List[str]] = None,
    ) -> Campaign:
        self.campaigns[campaign.campaign_id] = campaign
        self.participants[(campaign.campaign_id, campaign.created_by)] = CampaignParticipant(
            campaign_id=campaign.campaign_id,
            user_id=campaign.created_by,
            role=ParticipantRole.CREATOR,
            joined_at=campaign.created_at,
        )
        if prizes:
            self.prizes[campaign.campaign_id] = list(prizes)
        for uid in invited_user_ids or []:
            self.invites.setdefault(
                (campaign.campaign_id, uid),
                CampaignInvite(campaign_id=campaign.campaign_id, discord_user_id=uid),
            )
        return campaign.model_copy(deep=True)

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        campaign = self.campaigns.get(campaign_id)
        return campaign.model_copy(deep=True) if campaign else None

    async def list_campaigns(
        self,
        status: Optional[CampaignStatus] = None,
        studio_id: Optional[str] = None,
        created_by: Optional[str] = None,
        published: Optional[bool] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Campaign], int]:
        results = list(self.campaigns.values())
        if status is not None:
            results = [c for c in results if c.status == status]
        if studio_id is not None:
            results = [c for c in results if c.studio_id == studio_id]
        if created_by is not None:
            results = [c for c in results if c.created_by == created_by]
        if published is not None:
            results = [c for c in results if c.published == published]

        results.sort(key=lambda c: c.created_at, reverse=True)
        return results[offset : offset + limit], len(results)

    async def update_campaign(
        self,
        campaign_id: str,
        updates: Dict[str, Any],
        expected_status: Optional[CampaignStatus] = None,
    ) -> Optional[Campaign]:
        campaign = self.campaigns.get(campaign_id)
        if campaign is None:
            return None
        if expected_status is not None and campaign.status != expected_status:
            return None
        updated = campaign.model_copy(update=updates)
        self.campaigns[campaign_id] = updated
        return updated.model_copy(deep=True)

    async def delete_campaign(self, campaign_id: str) -> bool:
        if self.campaigns.pop(campaign_id, None) is None:
            return False
        for table in (self.participants, self.invites, self.responses, self.bans):
            for key in [k for k in table if k[0] == campaign_id]:
                del table[key]
        for table in (self.permissions, self.prizes, self.questions, self.leaderboards):
            table.pop(campaign_id, None)
        return True

    async def end_campaign(
        self,
        campaign_id: str,
        archived_at: datetime,
        require_status: Optional[CampaignStatus] = None,
    ) -> Optional[Campaign]:
        if campaign_id in self.fail_end_for:
            raise RuntimeError(f"storage unavailable for {campaign_id}")
        campaign = self.campaigns.get(campaign_id)
        if campaign is None or campaign.status == CampaignStatus.ENDED:
            return None
        if require_status is not None and campaign.status != require_status:
            return None
        return await self.update_campaign(
            campaign_id,
            {"status": CampaignStatus.ENDED, "archived_at": archived_at, "updated_at": archived_at},
        )

    async def mark_funded(
        self,
        campaign_id: str,
        platform_fee: Decimal,
        remaining_budget: Decimal,
    ) -> Optional[Campaign]:
        campaign = self.campaigns.get(campaign_id)
        if campaign is None or campaign.is_funded:
            return None
        return await self.update_campaign(
            campaign_id,
            {
                "is_funded": True,
                "platform_fee": platform_fee,
                "remaining_budget": remaining_budget,
                "updated_at": datetime.now(timezone.utc),
            },
        )

    async def list_expired_campaigns(self, now: datetime) -> List[Campaign]:
        return [
            c.model_copy(deep=True)
            for c in self.campaigns.values()
            if c.status == CampaignStatus.ACTIVE and c.end_date < now
        ]

    async def increment_clip_counter(
        self,
        campaign_id: str,
        counter: ClipCounter,
        consumer: str,
        event_id: str,
    ) -> bool:
        campaign = self.campaigns.get(campaign_id)
        if campaign is None:
            raise CampaignNotFoundError(campaign_id)
        if (consumer, event_id) in self.processed_events:
            return False
        self.processed_events[(consumer, event_id)] = ProcessedEvent(
            consumer=consumer, event_id=event_id
        )
        self.campaigns[campaign_id] = campaign.model_copy(
            update={counter.value: getattr(campaign, counter.value) + 1}
        )
        return True

    # Prizes, leaderboard

    async def replace_prize_distributions(
        self, campaign_id: str, prizes: List[PrizeDistribution]
    ) -> List[PrizeDistribution]:
        self.prizes[campaign_id] = list(prizes)
        return list(prizes)

    async def get_prize_distributions(self, campaign_id: str) -> List[PrizeDistribution]:
        return sorted(self.prizes.get(campaign_id, []), key=lambda p: p.position)

    async def get_leaderboard(self, campaign_id: str) -> List[LeaderboardEntry]:
        return sorted(self.leaderboards.get(campaign_id, []), key=lambda e: e.score, reverse=True)

    # Permissions

    async def get_permissions(self, campaign_id: str) -> Optional[CampaignPermissions]:
        return self.permissions.get(campaign_id)

    async def upsert_permissions(
        self, campaign_id: str, updates: Dict[str, bool]
    ) -> CampaignPermissions:
        current = self.permissions.get(campaign_id) or CampaignPermissions(campaign_id=campaign_id)
        updated = current.model_copy(update={**updates, "updated_at": datetime.now(timezone.utc)})
        self.permissions[campaign_id] = updated
        return updated

    # Participants

    async def get_participant(
        self, campaign_id: str, user_id: str
    ) -> Optional[CampaignParticipant]:
        return self.participants.get((campaign_id, user_id))

    async def list_participants(self, campaign_id: str) -> List[CampaignParticipant]:
        return [p for (cid, _), p in self.participants.items() if cid == campaign_id]

    async def count_participants(self, campaign_id: str) -> int:
        return sum(
            1
            for (cid, _), p in self.participants.items()
            if cid == campaign_id and p.role != ParticipantRole.PENDING
        )

    async def add_participant(
        self,
        campaign_id: str,
        user_id: str,
        role: ParticipantRole,
        enforce_capacity: bool = False,
    ) -> Optional[CampaignParticipant]:
        if campaign_id not in self.campaigns:
            raise CampaignNotFoundError(campaign_id)
        if (campaign_id, user_id) in self.participants:
            raise DuplicateParticipantError(campaign_id, user_id)
        if enforce_capacity and not self._has_free_slot(campaign_id):
            return None
        if (campaign_id, user_id) in self.bans:
            raise ParticipantBannedError(campaign_id, user_id)
        participant = CampaignParticipant(campaign_id=campaign_id, user_id=user_id, role=role)
        self.participants[(campaign_id, user_id)] = participant
        return participant

    async def promote_pending(
        self, campaign_id: str, user_id: str
    ) -> Optional[CampaignParticipant]:
        participant = self.participants.get((campaign_id, user_id))
        if participant is None or participant.role != ParticipantRole.PENDING:
            return None
        if not self._has_free_slot(campaign_id):
            return None
        return await self.update_participant_role(campaign_id, user_id, ParticipantRole.MEMBER)

    async def update_participant_role(
        self, campaign_id: str, user_id: str, role: ParticipantRole
    ) -> Optional[CampaignParticipant]:
        participant = self.participants.get((campaign_id, user_id))
        if participant is None:
            return None
        updated = participant.model_copy(update={"role": role})
        self.participants[(campaign_id, user_id)] = updated
        return updated

    async def delete_participant(self, campaign_id: str, user_id: str) -> bool:
        return self.participants.pop((campaign_id, user_id), None) is not None

    # Bans

    async def get_ban(self, campaign_id: str, user_id: str) -> Optional[WaitlistBan]:
        return self.bans.get((campaign_id, user_id))

    async def create_ban(self, ban: WaitlistBan) -> WaitlistBan:
        key = (ban.campaign_id, ban.user_id)
        if key in self.bans:
            raise ParticipantAlreadyBannedError(ban.campaign_id, ban.user_id)
        self.bans[key] = ban
        return ban

    # Waitlist

    async def replace_questions(
        self, campaign_id: str, questions: List[WaitlistQuestion]
    ) -> List[WaitlistQuestion]:
        self.questions[campaign_id] = list(questions)
        return list(questions)

    async def get_questions(self, campaign_id: str) -> List[WaitlistQuestion]:
        return sorted(self.questions.get(campaign_id, []), key=lambda q: q.order)

    async def save_response(self, response: WaitlistResponse) -> WaitlistResponse:
        saved = response.model_copy(
            update={
                "status": WaitlistResponseStatus.PENDING,
                "reviewed_by": None,
                "reviewed_at": None,
                "note": None,
            }
        )
        self.responses[(response.campaign_id, response.user_id)] = saved
        return saved

    async def list_responses(
        self,
        campaign_id: str,
        status: Optional[WaitlistResponseStatus] = None,
    ) -> List[WaitlistResponse]:
        results = [
            r for (cid, _), r in self.responses.items()
            if cid == campaign_id and (status is None or r.status == status)
        ]
        return sorted(results, key=lambda r: r.created_at)

    async def review_response(
        self,
        campaign_id: str,
        user_id: str,
        status: WaitlistResponseStatus,
        reviewed_by: str,
        reviewed_at: datetime,
        note: Optional[str] = None,
    ) -> Optional[WaitlistResponse]:
        response = self.responses.get((campaign_id, user_id))
        if response is None:
            return None
        updated = response.model_copy(
            update={
                "status": status,
                "reviewed_by": reviewed_by,
                "reviewed_at": reviewed_at,
                "note": note if note is not None else response.note,
            }
        )
        self.responses[(campaign_id, user_id)] = updated
        return updated

    async def reject_pending_responses(
        self,
        campaign_id: str,
        user_id: str,
        reviewed_by: str,
        reviewed_at: datetime,
    ) -> int:
        response = self.responses.get((campaign_id, user_id))
        if response is None or response.status != WaitlistResponseStatus.PENDING:
            return 0
        await self.review_response(
            campaign_id, user_id, WaitlistResponseStatus.REJECTED, reviewed_by, reviewed_at
        )
        return 1


# ====================
# Fixtures
# ====================


@pytest.fixture
def factory():
    """Test data factory"""
    return CampaignTestDataFactory()


@pytest.fixture
def mock_repository():
    """In-memory campaign repository"""
    return MockCampaignRepository()


@pytest.fixture
def mock_event_bus():
    """Mock event bus recording published events"""
    return MockEventBus()


@pytest.fixture
def campaign_service(mock_repository, mock_event_bus):
    return CampaignService(repository=mock_repository, event_bus=mock_event_bus)


@pytest.fixture
def participant_service(mock_repository, mock_event_bus):
    return ParticipantService(repository=mock_repository, event_bus=mock_event_bus)


@pytest.fixture
def waitlist_service(mock_repository):
    return WaitlistService(repository=mock_repository)


@pytest.fixture
def event_handler(mock_repository):
    return CampaignEventHandler(campaign_repository=mock_repository)


@pytest.fixture
def creator(factory):
    return factory.make_user(user_id="usr_creator")


@pytest.fixture
def staff(factory):
    return factory.make_user(user_id="usr_staff", is_staff=True)


@pytest.fixture
async def draft_campaign(campaign_service, creator, factory):
    """A DRAFT campaign created through the service"""
    return await campaign_service.create_campaign(factory.make_create_request(), creator)


@pytest.fixture
def make_active_campaign(mock_repository, creator, factory):
    """Store an ACTIVE campaign (with its CREATOR row) and return it"""

    def _make(
        campaign_type: CampaignType = CampaignType.AUTO_JOIN,
        editor_slots: int = 5,
        **overrides: Any,
    ) -> Campaign:
        campaign = factory.make_campaign(
            created_by=creator.user_id,
            status=CampaignStatus.ACTIVE,
            campaign_type=campaign_type,
            editor_slots=editor_slots,
            **overrides,
        )
        mock_repository.save_campaign(campaign)
        mock_repository.save_participant(
            factory.make_participant(campaign.campaign_id, creator.user_id, ParticipantRole.CREATOR)
        )
        return campaign

    return _make


@pytest.fixture
def add_member(mock_repository, factory):
    """Seed a participant row with the given role and return its AuthUser"""

    def _add(campaign_id: str, role: ParticipantRole = ParticipantRole.MEMBER, user_id: Optional[str] = None):
        user = factory.make_user(user_id=user_id)
        mock_repository.save_participant(
            factory.make_participant(campaign_id, user.user_id, role)
        )
        return user

    return _add
