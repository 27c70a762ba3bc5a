"""
Campaign Service Protocols

Defines interfaces for dependency injection and testing.
Following the protocol-based architecture pattern.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Tuple

from .models import (
    Campaign,
    CampaignParticipant,
    CampaignPermissions,
    CampaignStatus,
    ClipCounter,
    LeaderboardEntry,
    ParticipantRole,
    PrizeDistribution,
    WaitlistBan,
    WaitlistQuestion,
    WaitlistResponse,
    WaitlistResponseStatus,
)


# ====================
# Repository Protocol
# ====================


class CampaignRepositoryProtocol(Protocol):
    """
    Protocol for campaign data repository.

    Writes documented as conditional return ``None`` when their guard did not
    hold, so the caller can tell a lost race from success.
    """

    async def initialize(self) -> None:
        """Initialize repository connection"""
        ...

    async def close(self) -> None:
        """Close repository connection"""
        ...

    async def health_check(self) -> bool:
        """Check repository health"""
        ...

    # Campaign CRUD
    async def create_campaign(
        self,
        campaign: Campaign,
        prizes: Optional[List[PrizeDistribution]] = None,
        invited_user_ids: Optional[List[str]] = None,
    ) -> Campaign:
        """
        Insert a new campaign in one transaction with its CREATOR participant
        (campaign.created_by), its prize rows and its PENDING invites.
        """
        ...

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        """Get campaign by ID"""
        ...

    async def list_campaigns(
        self,
        status: Optional[CampaignStatus] = None,
        studio_id: Optional[str] = None,
        created_by: Optional[str] = None,
        published: Optional[bool] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Campaign], int]:
        """List campaigns with filters, newest first, plus the total match count"""
        ...

    async def update_campaign(
        self,
        campaign_id: str,
        updates: Dict[str, Any],
        expected_status: Optional[CampaignStatus] = None,
    ) -> Optional[Campaign]:
        """Apply field updates; conditional on the stored status when expected_status is given"""
        ...

    async def delete_campaign(self, campaign_id: str) -> bool:
        """Delete a campaign and, by cascade, everything that references it"""
        ...

    async def end_campaign(
        self,
        campaign_id: str,
        archived_at: datetime,
        require_status: Optional[CampaignStatus] = None,
    ) -> Optional[Campaign]:
        """Conditional write to ENDED: status <> ENDED (and = require_status when given)"""
        ...

    async def mark_funded(
        self,
        campaign_id: str,
        platform_fee: Decimal,
        remaining_budget: Decimal,
    ) -> Optional[Campaign]:
        """Conditional write is_funded false -> true"""
        ...

    async def list_expired_campaigns(self, now: datetime) -> List[Campaign]:
        """ACTIVE campaigns whose end_date is before now"""
        ...

    async def increment_clip_counter(
        self,
        campaign_id: str,
        counter: ClipCounter,
        consumer: str,
        event_id: str,
    ) -> bool:
        """
        Record (consumer, event_id) and increment the counter in one transaction.

        Returns False when the event was already processed.
        Raises CampaignNotFoundError when the campaign does not exist.
        """
        ...

    # Prizes, invites, leaderboard
    async def replace_prize_distributions(
        self, campaign_id: str, prizes: List[PrizeDistribution]
    ) -> List[PrizeDistribution]:
        """Delete all prize rows for a campaign and insert the given ones"""
        ...

    async def get_prize_distributions(self, campaign_id: str) -> List[PrizeDistribution]:
        """Prize rows ordered by position"""
        ...

    async def get_leaderboard(self, campaign_id: str) -> List[LeaderboardEntry]:
        """Leaderboard ordered by score descending"""
        ...

    # Permissions
    async def get_permissions(self, campaign_id: str) -> Optional[CampaignPermissions]:
        """Stored admin permission switches, None when never set"""
        ...

    async def upsert_permissions(
        self, campaign_id: str, updates: Dict[str, bool]
    ) -> CampaignPermissions:
        """Create or partially update the switches"""
        ...

    # Participants
    async def get_participant(
        self, campaign_id: str, user_id: str
    ) -> Optional[CampaignParticipant]:
        ...

    async def list_participants(self, campaign_id: str) -> List[CampaignParticipant]:
        ...

    async def count_participants(self, campaign_id: str) -> int:
        """Admitted participants (everyone but PENDING), creator included"""
        ...

    async def add_participant(
        self,
        campaign_id: str,
        user_id: str,
        role: ParticipantRole,
        enforce_capacity: bool = False,
    ) -> Optional[CampaignParticipant]:
        """
        Insert a participant row.

        With enforce_capacity, the campaign row is locked and the insert only
        happens while occupied slots < editor_slots; None otherwise.
        Raises DuplicateParticipantError on the (campaign_id, user_id) key.
        """
        ...

    async def promote_pending(
        self, campaign_id: str, user_id: str
    ) -> Optional[CampaignParticipant]:
        """PENDING -> MEMBER under the campaign row lock, only while a slot is free"""
        ...

    async def update_participant_role(
        self, campaign_id: str, user_id: str, role: ParticipantRole
    ) -> Optional[CampaignParticipant]:
        ...

    async def delete_participant(self, campaign_id: str, user_id: str) -> bool:
        ...

    # Bans
    async def get_ban(self, campaign_id: str, user_id: str) -> Optional[WaitlistBan]:
        ...

    async def create_ban(self, ban: WaitlistBan) -> WaitlistBan:
        """Raises ParticipantAlreadyBannedError on the (campaign_id, user_id) key"""
        ...

    # Waitlist
    async def replace_questions(
        self, campaign_id: str, questions: List[WaitlistQuestion]
    ) -> List[WaitlistQuestion]:
        ...

    async def get_questions(self, campaign_id: str) -> List[WaitlistQuestion]:
        """Questions ordered by order"""
        ...

    async def save_response(self, response: WaitlistResponse) -> WaitlistResponse:
        """Insert, or reset an earlier response to the given answers and PENDING"""
        ...

    async def list_responses(
        self,
        campaign_id: str,
        status: Optional[WaitlistResponseStatus] = None,
    ) -> List[WaitlistResponse]:
        """Responses ordered by created_at ascending"""
        ...

    async def review_response(
        self,
        campaign_id: str,
        user_id: str,
        status: WaitlistResponseStatus,
        reviewed_by: str,
        reviewed_at: datetime,
        note: Optional[str] = None,
    ) -> Optional[WaitlistResponse]:
        ...

    async def reject_pending_responses(
        self,
        campaign_id: str,
        user_id: str,
        reviewed_by: str,
        reviewed_at: datetime,
    ) -> int:
        """PENDING -> REJECTED for one applicant, returns rows changed"""
        ...


# ====================
# Event Bus Protocol
# ====================


class EventBusProtocol(Protocol):
    """Protocol for event bus"""

    async def publish_event(self, event: Any) -> bool:
        """Publish an event"""
        ...

    async def subscribe_to_events(
        self,
        pattern: str,
        handler: Callable[[Any], Awaitable[None]],
        durable: Optional[str] = None,
    ) -> Optional[str]:
        """Subscribe to events matching a subject pattern"""
        ...


# ====================
# Custom Exceptions
# ====================


class CampaignServiceError(Exception):
    """Base exception for campaign service errors"""
    pass


class NotFoundError(CampaignServiceError):
    """A referenced entity does not exist"""
    pass


class InvalidInputError(CampaignServiceError):
    """The request is malformed or not allowed in the current state"""
    pass


class ForbiddenError(CampaignServiceError):
    """The actor may not perform this operation"""
    pass


class ConflictError(CampaignServiceError):
    """The operation collides with existing or concurrently changed state"""
    pass


class CampaignNotFoundError(NotFoundError):
    """Raised when campaign is not found"""

    def __init__(self, campaign_id: str):
        super().__init__(f"Campaign not found: {campaign_id}")
        self.campaign_id = campaign_id


class ParticipantNotFoundError(NotFoundError):
    """Raised when a user has no participant row in the campaign"""

    def __init__(self, campaign_id: str, user_id: str):
        super().__init__(f"Participant {user_id} not found in campaign {campaign_id}")
        self.campaign_id = campaign_id
        self.user_id = user_id


class WaitlistResponseNotFoundError(NotFoundError):
    """Raised when an applicant has no waitlist response"""

    def __init__(self, campaign_id: str, user_id: str):
        super().__init__(f"Waitlist response for {user_id} not found in campaign {campaign_id}")
        self.campaign_id = campaign_id
        self.user_id = user_id


class InvalidPlatformError(InvalidInputError):
    """Raised when a platform string matches no supported platform"""

    def __init__(self, platform: str):
        super().__init__(f"Invalid platform: {platform}")
        self.platform = platform


class InvalidCampaignStateError(InvalidInputError):
    """Raised when campaign is in invalid state for operation"""

    def __init__(self, message: str, current_status: Optional[CampaignStatus] = None):
        super().__init__(message)
        self.current_status = current_status


class CampaignValidationError(InvalidInputError):
    """Raised when campaign validation fails"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class PermissionDeniedError(ForbiddenError):
    """Raised when the actor's role does not allow the action"""
    pass


class CampaignFullError(ForbiddenError):
    """Raised when every editor slot is taken"""

    def __init__(self, campaign_id: str):
        super().__init__(f"Campaign {campaign_id} is full")
        self.campaign_id = campaign_id


class ParticipantBannedError(ForbiddenError):
    """Raised when a banned user tries to join"""

    def __init__(self, campaign_id: str, user_id: str):
        super().__init__(f"User {user_id} is banned from campaign {campaign_id}")
        self.campaign_id = campaign_id
        self.user_id = user_id


class DuplicateParticipantError(ConflictError):
    """Raised when the user already has a participant row"""

    def __init__(self, campaign_id: str, user_id: str):
        super().__init__(f"User {user_id} is already a participant of campaign {campaign_id}")
        self.campaign_id = campaign_id
        self.user_id = user_id


class ParticipantAlreadyBannedError(ConflictError):
    """Raised when the user is already banned"""

    def __init__(self, campaign_id: str, user_id: str):
        super().__init__(f"User {user_id} is already banned from campaign {campaign_id}")
        self.campaign_id = campaign_id
        self.user_id = user_id


class CampaignAlreadyFundedError(ConflictError):
    """Raised when funding a campaign twice"""

    def __init__(self, campaign_id: str):
        super().__init__(f"Campaign {campaign_id} is already funded")
        self.campaign_id = campaign_id


class CampaignAlreadyEndedError(ConflictError):
    """Raised when closing a campaign that has ended"""

    def __init__(self, campaign_id: str):
        super().__init__(f"Campaign {campaign_id} has already ended")
        self.campaign_id = campaign_id


class ConcurrentModificationError(ConflictError):
    """Raised when a conditional write lost a race"""
    pass


__all__ = [
    "CampaignRepositoryProtocol",
    "EventBusProtocol",
    "CampaignServiceError",
    "NotFoundError",
    "InvalidInputError",
    "ForbiddenError",
    "ConflictError",
    "CampaignNotFoundError",
    "ParticipantNotFoundError",
    "WaitlistResponseNotFoundError",
    "InvalidPlatformError",
    "InvalidCampaignStateError",
    "CampaignValidationError",
    "PermissionDeniedError",
    "CampaignFullError",
    "ParticipantBannedError",
    "DuplicateParticipantError",
    "ParticipantAlreadyBannedError",
    "CampaignAlreadyFundedError",
    "CampaignAlreadyEndedError",
    "ConcurrentModificationError",
]
