"""
Campaign permission resolution

One table maps every campaign action to the minimum participant role it
needs and, for the admin-gated actions, the ``CampaignPermissions`` switch
that can grant or deny it to ADMIN participants. Staff users pass every
check; the CREATOR passes every check regardless of the switches.
"""

from enum import Enum
from typing import Dict, Optional, Tuple

from .models import AuthUser, Campaign, CampaignPermissions, ParticipantRole
from .protocols import CampaignRepositoryProtocol, PermissionDeniedError


class CampaignAction(str, Enum):
    # Admin-gated by CampaignPermissions
    EDIT_CAMPAIGN = "edit_campaign"
    DELETE_CAMPAIGN = "delete_campaign"
    MANAGE_TEAM = "manage_team"
    ADD_BUDGET = "add_budget"
    REVIEW_CLIPS = "review_clips"

    # Creator only
    CLOSE_CAMPAIGN = "close_campaign"
    SET_PERMISSIONS = "set_permissions"
    REMOVE_PARTICIPANT = "remove_participant"
    MANAGE_PARTICIPANT = "manage_participant"
    SET_WAITLIST_QUESTIONS = "set_waitlist_questions"

    # Admin and above
    APPROVE_PARTICIPANT = "approve_participant"
    BAN_PARTICIPANT = "ban_participant"
    VIEW_WAITLIST_RESPONSES = "view_waitlist_responses"
    REVIEW_WAITLIST_RESPONSE = "review_waitlist_response"


ROLE_RANK: Dict[ParticipantRole, int] = {
    ParticipantRole.PENDING: 0,
    ParticipantRole.MEMBER: 1,
    ParticipantRole.ADMIN: 2,
    ParticipantRole.CREATOR: 3,
}

# action -> (minimum role, CampaignPermissions switch consulted for ADMIN)
ACTION_RULES: Dict[CampaignAction, Tuple[ParticipantRole, Optional[str]]] = {
    CampaignAction.EDIT_CAMPAIGN: (ParticipantRole.ADMIN, "admins_can_edit_campaign"),
    CampaignAction.DELETE_CAMPAIGN: (ParticipantRole.ADMIN, "admins_can_delete_campaign"),
    CampaignAction.MANAGE_TEAM: (ParticipantRole.ADMIN, "admins_can_manage_team"),
    CampaignAction.ADD_BUDGET: (ParticipantRole.ADMIN, "admins_can_add_budget"),
    CampaignAction.REVIEW_CLIPS: (ParticipantRole.ADMIN, "admins_can_review_clips"),
    CampaignAction.CLOSE_CAMPAIGN: (ParticipantRole.CREATOR, None),
    CampaignAction.SET_PERMISSIONS: (ParticipantRole.CREATOR, None),
    CampaignAction.REMOVE_PARTICIPANT: (ParticipantRole.CREATOR, None),
    CampaignAction.MANAGE_PARTICIPANT: (ParticipantRole.CREATOR, None),
    CampaignAction.SET_WAITLIST_QUESTIONS: (ParticipantRole.CREATOR, None),
    CampaignAction.APPROVE_PARTICIPANT: (ParticipantRole.ADMIN, None),
    CampaignAction.BAN_PARTICIPANT: (ParticipantRole.ADMIN, None),
    CampaignAction.VIEW_WAITLIST_RESPONSES: (ParticipantRole.ADMIN, None),
    CampaignAction.REVIEW_WAITLIST_RESPONSE: (ParticipantRole.ADMIN, None),
}

DEFAULT_PERMISSIONS = CampaignPermissions()


def resolve(
    action: CampaignAction,
    role: Optional[ParticipantRole],
    is_staff: bool = False,
    permissions: Optional[CampaignPermissions] = None,
) -> bool:
    """Decide whether a participant with ``role`` may perform ``action``"""
    if is_staff:
        return True
    if role is None:
        return False

    min_role, switch = ACTION_RULES[action]
    if role == ParticipantRole.CREATOR:
        return True
    if ROLE_RANK[role] < ROLE_RANK[min_role]:
        return False
    if switch and role == ParticipantRole.ADMIN:
        return bool(getattr(permissions or DEFAULT_PERMISSIONS, switch))
    return True


def require(
    action: CampaignAction,
    role: Optional[ParticipantRole],
    is_staff: bool = False,
    permissions: Optional[CampaignPermissions] = None,
) -> None:
    """Raise PermissionDeniedError unless ``resolve`` allows the action"""
    if not resolve(action, role, is_staff, permissions):
        raise PermissionDeniedError(
            f"Role {role.value if role else 'none'} may not {action.value.replace('_', ' ')}"
        )


def require_owner(campaign: Campaign, actor: AuthUser, operation: str) -> None:
    """Only the user who created the campaign (or staff) may proceed"""
    if actor.is_staff or campaign.created_by == actor.user_id:
        return
    raise PermissionDeniedError(f"Only the campaign creator may {operation}")


async def check_access(
    repository: CampaignRepositoryProtocol,
    campaign_id: str,
    actor: AuthUser,
    action: CampaignAction,
) -> Optional[ParticipantRole]:
    """
    Look up the actor's role (and, for admins, the campaign's switches) and
    require ``action``. Returns the actor's role, None for staff outsiders.
    """
    participant = await repository.get_participant(campaign_id, actor.user_id)
    role = participant.role if participant else None
    if actor.is_staff:
        return role

    permissions = None
    if role == ParticipantRole.ADMIN and ACTION_RULES[action][1]:
        permissions = await repository.get_permissions(campaign_id)
    require(action, role, False, permissions)
    return role
