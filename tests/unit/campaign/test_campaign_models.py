"""
Unit Tests for Campaign Models

Pydantic validation, defaults and the inbound event payload aliases.
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from pydantic import ValidationError

from microservices.campaign_service.events.models import (
    CampaignStreamConfig,
    ClipEventData,
    StatsUpdatedEventData,
)
from microservices.campaign_service.models import (
    AuthUser,
    Campaign,
    CampaignCreateRequest,
    CampaignPermissions,
    CampaignPermissionsUpdate,
    CampaignStatus,
    CampaignType,
    CampaignUpdateRequest,
    ClipCounter,
    LeaderboardRank,
    ParticipantRole,
    SLOT_ROLES,
)


# ====================
# Enum Tests
# ====================

class TestEnums:

    def test_status_values(self):
        assert [s.value for s in CampaignStatus] == ["DRAFT", "ACTIVE", "ENDED"]

    def test_slot_roles_exclude_creator_and_pending(self):
        assert ParticipantRole.CREATOR not in SLOT_ROLES
        assert ParticipantRole.PENDING not in SLOT_ROLES
        assert set(SLOT_ROLES) == {ParticipantRole.ADMIN, ParticipantRole.MEMBER}

    def test_clip_counters_name_columns(self):
        assert {c.value for c in ClipCounter} == {"pending_clips", "approved_clips", "rejected_clips"}


# ====================
# Entity Tests
# ====================

class TestCampaign:

    def test_defaults(self):
        now = datetime.now(timezone.utc)
        campaign = Campaign(title="Launch", start_date=now, end_date=now, created_by="usr_1")

        assert campaign.campaign_id.startswith("cmp_")
        assert campaign.status == CampaignStatus.DRAFT
        assert campaign.campaign_type == CampaignType.AUTO_JOIN
        assert campaign.editor_slots == 5
        assert campaign.is_funded is False
        assert campaign.total_budget == Decimal("0")
        assert (campaign.pending_clips, campaign.approved_clips, campaign.rejected_clips) == (0, 0, 0)

    def test_negative_budget_rejected(self):
        now = datetime.now(timezone.utc)
        with pytest.raises(ValidationError):
            Campaign(
                title="Launch", start_date=now, end_date=now, created_by="usr_1",
                total_budget=Decimal("-1"),
            )

    def test_empty_title_rejected(self):
        now = datetime.now(timezone.utc)
        with pytest.raises(ValidationError):
            Campaign(title="", start_date=now, end_date=now, created_by="usr_1")


class TestCampaignPermissions:

    def test_defaults(self):
        permissions = CampaignPermissions()
        assert permissions.admins_can_edit_campaign is False
        assert permissions.admins_can_delete_campaign is False
        assert permissions.admins_can_manage_team is True
        assert permissions.admins_can_add_budget is False
        assert permissions.admins_can_review_clips is True


class TestAuthUser:

    def test_user_id_required(self):
        with pytest.raises(ValidationError):
            AuthUser(user_id="")

    def test_not_staff_by_default(self):
        assert AuthUser(user_id="usr_1").is_staff is False


# ====================
# Request Tests
# ====================

class TestCampaignCreateRequest:

    def test_unset_options_left_for_service_defaults(self, factory):
        request = factory.make_create_request()

        assert request.campaign_type is None
        assert request.editor_slots is None
        assert request.total_budget is None
        assert request.leaderboard_ranks == []

    def test_platforms_required(self, factory):
        start, end = factory.make_dates()
        with pytest.raises(ValidationError):
            CampaignCreateRequest(title="Launch", platforms=[], start_date=start, end_date=end)

    def test_negative_slots_rejected(self, factory):
        with pytest.raises(ValidationError):
            factory.make_create_request(editor_slots=-1)

    def test_negative_reward_rejected(self):
        with pytest.raises(ValidationError):
            LeaderboardRank(position="1st", reward=Decimal("-5"))


class TestCampaignUpdateRequest:

    def test_only_set_fields_dumped(self):
        request = CampaignUpdateRequest(title="New title", editor_slots=3)

        assert request.model_dump(exclude_unset=True) == {"title": "New title", "editor_slots": 3}

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            CampaignUpdateRequest(created_by="usr_other")

    def test_immutable_fields_rejected(self):
        with pytest.raises(ValidationError):
            CampaignUpdateRequest(campaign_id="cmp_other")

    def test_empty_platforms_rejected(self):
        with pytest.raises(ValidationError):
            CampaignUpdateRequest(platforms=[])


class TestCampaignPermissionsUpdate:

    def test_partial(self):
        update = CampaignPermissionsUpdate(admins_can_add_budget=True)
        assert update.model_dump(exclude_unset=True) == {"admins_can_add_budget": True}

    def test_unknown_switch_rejected(self):
        with pytest.raises(ValidationError):
            CampaignPermissionsUpdate(admins_can_fly=True)


# ====================
# Event Payload Tests
# ====================

class TestInboundEventData:

    def test_clip_event_snake_case(self):
        data = ClipEventData.model_validate({"campaign_id": "cmp_1", "clip_id": "clp_1"})
        assert (data.campaign_id, data.clip_id) == ("cmp_1", "clp_1")

    def test_clip_event_camel_case(self):
        data = ClipEventData.model_validate({"campaignId": "cmp_1", "clipId": "clp_1", "userId": "usr_1"})
        assert (data.campaign_id, data.clip_id, data.user_id) == ("cmp_1", "clp_1", "usr_1")

    def test_clip_event_extra_fields_kept(self):
        data = ClipEventData.model_validate({"campaign_id": "cmp_1", "platform": "tiktok"})
        assert data.model_extra == {"platform": "tiktok"}

    def test_clip_event_without_campaign(self):
        assert ClipEventData.model_validate({}).campaign_id is None

    def test_stats_event_parses_timestamp(self):
        data = StatsUpdatedEventData.model_validate(
            {"campaignId": "cmp_1", "refreshedAt": "2026-01-02T03:04:05+00:00"}
        )
        assert data.refreshed_at == datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_subscriptions(self):
        assert set(CampaignStreamConfig.SUBSCRIPTIONS) == {"clip.>", "stats.updated"}
