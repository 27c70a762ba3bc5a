"""
Campaign Service Data Repository

Data access layer - PostgreSQL (Async, asyncpg)

Race-prone writes are expressed as single conditional statements or as short
transactions holding a row lock on the campaign, and report a lost race by
returning None.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import asyncpg

from core.postgres_client import PostgresClientWrapper
from .models import (
    Campaign,
    CampaignInvite,
    CampaignParticipant,
    CampaignPermissions,
    CampaignStatus,
    ClipCounter,
    LeaderboardEntry,
    ParticipantRole,
    PrizeDistribution,
    SLOT_ROLES,
    WaitlistBan,
    WaitlistQuestion,
    WaitlistResponse,
    WaitlistResponseStatus,
)
from .protocols import (
    CampaignNotFoundError,
    DuplicateParticipantError,
    ParticipantAlreadyBannedError,
    ParticipantBannedError,
)

logger = logging.getLogger(__name__)


CAMPAIGN_COLUMNS = tuple(Campaign.model_fields)
IMMUTABLE_COLUMNS = {"campaign_id", "created_by", "created_at"}
PERMISSION_FLAGS = (
    "admins_can_edit_campaign",
    "admins_can_delete_campaign",
    "admins_can_manage_team",
    "admins_can_add_budget",
    "admins_can_review_clips",
)


def _db_value(value: Any) -> Any:
    """Enums are stored by value; lists element-wise"""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list):
        return [_db_value(v) for v in value]
    return value


class CampaignRepository:
    """Campaign service data repository - PostgreSQL (Async)"""

    def __init__(
        self,
        db: Optional[PostgresClientWrapper] = None,
    ):
        if db is None:
            db = PostgresClientWrapper("campaign_service")
        self.db = db
        self.schema = "campaign"

        # Table names
        self.campaigns_table = f"{self.schema}.campaigns"
        self.participants_table = f"{self.schema}.campaign_participants"
        self.permissions_table = f"{self.schema}.campaign_permissions"
        self.prizes_table = f"{self.schema}.prize_distributions"
        self.invites_table = f"{self.schema}.campaign_invites"
        self.questions_table = f"{self.schema}.waitlist_questions"
        self.responses_table = f"{self.schema}.waitlist_responses"
        self.bans_table = f"{self.schema}.waitlist_bans"
        self.leaderboard_table = f"{self.schema}.leaderboard_entries"
        self.processed_events_table = f"{self.schema}.processed_events"

    async def initialize(self):
        """Initialize database connection"""
        await self.db.connect()
        logger.info("Campaign repository initialized with PostgreSQL")

    async def close(self):
        """Close database connection"""
        await self.db.close()
        logger.info("Campaign repository database connection closed")

    async def health_check(self) -> bool:
        """Check repository health"""
        result = await self.db.health_check()
        return bool(result and result.get("healthy"))

    # ====================
    # Campaign CRUD
    # ====================

    async def create_campaign(
        self,
        campaign: Campaign,
        prizes: Optional[List[PrizeDistribution]] = None,
        invited_user_ids: Optional[List[str]] = None,
    ) -> Campaign:
        """Insert campaign, CREATOR participant, prizes and invites atomically"""
        data = campaign.model_dump()
        columns = list(data.keys())
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))

        query = f'''
            INSERT INTO {self.campaigns_table} ({", ".join(columns)})
            VALUES ({placeholders})
            RETURNING *
        '''

        try:
            async with self.db.transaction() as conn:
                row = await conn.fetchrow(query, *[_db_value(data[c]) for c in columns])
                await conn.execute(
                    f'''
                    INSERT INTO {self.participants_table} (campaign_id, user_id, role, joined_at)
                    VALUES ($1, $2, $3, $4)
                    ''',
                    campaign.campaign_id,
                    campaign.created_by,
                    ParticipantRole.CREATOR.value,
                    campaign.created_at,
                )
                if prizes:
                    await self._insert_prizes(conn, prizes)
                if invited_user_ids:
                    invites = [
                        CampaignInvite(campaign_id=campaign.campaign_id, discord_user_id=uid)
                        for uid in invited_user_ids
                    ]
                    await conn.executemany(
                        f'''
                        INSERT INTO {self.invites_table} (campaign_id, discord_user_id, status, created_at)
                        VALUES ($1, $2, $3, $4)
                        ON CONFLICT (campaign_id, discord_user_id) DO NOTHING
                        ''',
                        [(i.campaign_id, i.discord_user_id, i.status.value, i.created_at) for i in invites],
                    )
            return self._row_to_campaign(row)

        except asyncpg.PostgresError as e:
            logger.error(f"Error creating campaign {campaign.campaign_id}: {e}")
            raise

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        """Get campaign by ID"""
        result = await self.db.query_row(
            f"SELECT * FROM {self.campaigns_table} WHERE campaign_id = $1",
            [campaign_id],
        )
        return self._row_to_campaign(result) if result else None

    async def list_campaigns(
        self,
        status: Optional[CampaignStatus] = None,
        studio_id: Optional[str] = None,
        created_by: Optional[str] = None,
        published: Optional[bool] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Campaign], int]:
        """List campaigns with filters"""
        conditions = []
        params: List[Any] = []

        for column, value in (
            ("status", _db_value(status) if status else None),
            ("studio_id", studio_id),
            ("created_by", created_by),
            ("published", published),
        ):
            if value is None:
                continue
            params.append(value)
            conditions.append(f"{column} = ${len(params)}")

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        try:
            count_result = await self.db.query_row(
                f"SELECT COUNT(*) AS total FROM {self.campaigns_table} {where_clause}",
                params,
            )
            total = count_result["total"] if count_result else 0

            results = await self.db.query(
                f'''
                SELECT * FROM {self.campaigns_table}
                {where_clause}
                ORDER BY created_at DESC
                LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}
                ''',
                params + [limit, offset],
            )
            return [self._row_to_campaign(row) for row in results], total

        except asyncpg.PostgresError as e:
            logger.error(f"Error listing campaigns: {e}")
            raise

    async def update_campaign(
        self,
        campaign_id: str,
        updates: Dict[str, Any],
        expected_status: Optional[CampaignStatus] = None,
    ) -> Optional[Campaign]:
        """Update campaign fields, optionally conditional on the stored status"""
        if not updates:
            return await self.get_campaign(campaign_id)

        unknown = set(updates) - set(CAMPAIGN_COLUMNS) | (set(updates) & IMMUTABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Cannot update campaign columns: {sorted(unknown)}")

        params: List[Any] = []
        set_clauses = []
        for key, value in updates.items():
            params.append(_db_value(value))
            set_clauses.append(f"{key} = ${len(params)}")

        params.append(campaign_id)
        where = f"campaign_id = ${len(params)}"
        if expected_status is not None:
            params.append(expected_status.value)
            where += f" AND status = ${len(params)}"

        query = f'''
            UPDATE {self.campaigns_table}
            SET {", ".join(set_clauses)}
            WHERE {where}
            RETURNING *
        '''

        try:
            result = await self.db.query_row(query, params)
            return self._row_to_campaign(result) if result else None
        except asyncpg.PostgresError as e:
            logger.error(f"Error updating campaign {campaign_id}: {e}")
            raise

    async def delete_campaign(self, campaign_id: str) -> bool:
        """Hard delete; dependants go with it through ON DELETE CASCADE"""
        result = await self.db.execute(
            f"DELETE FROM {self.campaigns_table} WHERE campaign_id = $1",
            [campaign_id],
        )
        return result != "DELETE 0"

    async def end_campaign(
        self,
        campaign_id: str,
        archived_at: datetime,
        require_status: Optional[CampaignStatus] = None,
    ) -> Optional[Campaign]:
        params: List[Any] = [campaign_id, archived_at]
        where = "campaign_id = $1 AND status <> 'ENDED'"
        if require_status is not None:
            params.append(require_status.value)
            where += " AND status = $3"

        result = await self.db.query_row(
            f'''
            UPDATE {self.campaigns_table}
            SET status = 'ENDED', archived_at = $2, updated_at = $2
            WHERE {where}
            RETURNING *
            ''',
            params,
        )
        return self._row_to_campaign(result) if result else None

    async def mark_funded(
        self,
        campaign_id: str,
        platform_fee: Decimal,
        remaining_budget: Decimal,
    ) -> Optional[Campaign]:
        result = await self.db.query_row(
            f'''
            UPDATE {self.campaigns_table}
            SET is_funded = TRUE, platform_fee = $2, remaining_budget = $3, updated_at = $4
            WHERE campaign_id = $1 AND is_funded = FALSE
            RETURNING *
            ''',
            [campaign_id, platform_fee, remaining_budget, datetime.now(timezone.utc)],
        )
        return self._row_to_campaign(result) if result else None

    async def list_expired_campaigns(self, now: datetime) -> List[Campaign]:
        results = await self.db.query(
            f'''
            SELECT * FROM {self.campaigns_table}
            WHERE status = 'ACTIVE' AND end_date < $1
            ORDER BY end_date ASC
            ''',
            [now],
        )
        return [self._row_to_campaign(row) for row in results]

    async def increment_clip_counter(
        self,
        campaign_id: str,
        counter: ClipCounter,
        consumer: str,
        event_id: str,
    ) -> bool:
        """Dedup record and counter increment in one transaction"""
        column = ClipCounter(counter).value
        now = datetime.now(timezone.utc)

        async with self.db.transaction() as conn:
            inserted = await conn.fetchval(
                f'''
                INSERT INTO {self.processed_events_table} (consumer, event_id, processed_at)
                VALUES ($1, $2, $3)
                ON CONFLICT (consumer, event_id) DO NOTHING
                RETURNING event_id
                ''',
                consumer,
                event_id,
                now,
            )
            if inserted is None:
                return False

            status = await conn.execute(
                f'''
                UPDATE {self.campaigns_table}
                SET {column} = {column} + 1, updated_at = $2
                WHERE campaign_id = $1
                ''',
                campaign_id,
                now,
            )
            if status == "UPDATE 0":
                # Rolls back the dedup record too
                raise CampaignNotFoundError(campaign_id)
        return True

    # ====================
    # Prizes, Invites, Leaderboard
    # ====================

    async def _insert_prizes(self, conn: asyncpg.Connection, prizes: List[PrizeDistribution]):
        await conn.executemany(
            f'''
            INSERT INTO {self.prizes_table} (campaign_id, position, reward, label)
            VALUES ($1, $2, $3, $4)
            ''',
            [(p.campaign_id, p.position, p.reward, p.label) for p in prizes],
        )

    async def replace_prize_distributions(
        self, campaign_id: str, prizes: List[PrizeDistribution]
    ) -> List[PrizeDistribution]:
        async with self.db.transaction() as conn:
            await conn.execute(
                f"DELETE FROM {self.prizes_table} WHERE campaign_id = $1", campaign_id
            )
            if prizes:
                await self._insert_prizes(conn, prizes)
        return prizes

    async def get_prize_distributions(self, campaign_id: str) -> List[PrizeDistribution]:
        results = await self.db.query(
            f'''
            SELECT campaign_id, position, reward, label FROM {self.prizes_table}
            WHERE campaign_id = $1 ORDER BY position ASC
            ''',
            [campaign_id],
        )
        return [PrizeDistribution(**row) for row in results]

    async def get_leaderboard(self, campaign_id: str) -> List[LeaderboardEntry]:
        results = await self.db.query(
            f'''
            SELECT * FROM {self.leaderboard_table}
            WHERE campaign_id = $1 ORDER BY score DESC
            ''',
            [campaign_id],
        )
        return [LeaderboardEntry(**row) for row in results]

    # ====================
    # Permissions
    # ====================

    async def get_permissions(self, campaign_id: str) -> Optional[CampaignPermissions]:
        result = await self.db.query_row(
            f"SELECT * FROM {self.permissions_table} WHERE campaign_id = $1",
            [campaign_id],
        )
        return CampaignPermissions(**result) if result else None

    async def upsert_permissions(
        self, campaign_id: str, updates: Dict[str, bool]
    ) -> CampaignPermissions:
        """Insert with defaults for unset switches, or update only the given ones"""
        unknown = set(updates) - set(PERMISSION_FLAGS)
        if unknown:
            raise ValueError(f"Unknown permission flags: {sorted(unknown)}")

        values = CampaignPermissions(campaign_id=campaign_id, **updates)
        columns = ["campaign_id", *PERMISSION_FLAGS, "updated_at"]
        params = [getattr(values, c) for c in columns]
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        update_clause = ", ".join(
            [f"{flag} = EXCLUDED.{flag}" for flag in updates] + ["updated_at = EXCLUDED.updated_at"]
        )

        result = await self.db.query_row(
            f'''
            INSERT INTO {self.permissions_table} ({", ".join(columns)})
            VALUES ({placeholders})
            ON CONFLICT (campaign_id) DO UPDATE SET {update_clause}
            RETURNING *
            ''',
            params,
        )
        return CampaignPermissions(**result)

    # ====================
    # Participants
    # ====================

    async def get_participant(
        self, campaign_id: str, user_id: str
    ) -> Optional[CampaignParticipant]:
        result = await self.db.query_row(
            f"SELECT * FROM {self.participants_table} WHERE campaign_id = $1 AND user_id = $2",
            [campaign_id, user_id],
        )
        return CampaignParticipant(**result) if result else None

    async def list_participants(self, campaign_id: str) -> List[CampaignParticipant]:
        results = await self.db.query(
            f'''
            SELECT * FROM {self.participants_table}
            WHERE campaign_id = $1 ORDER BY joined_at ASC
            ''',
            [campaign_id],
        )
        return [CampaignParticipant(**row) for row in results]

    async def count_participants(self, campaign_id: str) -> int:
        result = await self.db.query_row(
            f'''
            SELECT COUNT(*) AS total FROM {self.participants_table}
            WHERE campaign_id = $1 AND role <> 'PENDING'
            ''',
            [campaign_id],
        )
        return result["total"] if result else 0

    async def _has_free_slot(self, conn: asyncpg.Connection, campaign_id: str) -> bool:
        """Lock the campaign row and compare occupied slots with editor_slots"""
        editor_slots = await conn.fetchval(
            f"SELECT editor_slots FROM {self.campaigns_table} WHERE campaign_id = $1 FOR UPDATE",
            campaign_id,
        )
        if editor_slots is None:
            raise CampaignNotFoundError(campaign_id)
        occupied = await conn.fetchval(
            f'''
            SELECT COUNT(*) FROM {self.participants_table}
            WHERE campaign_id = $1 AND role = ANY($2::text[])
            ''',
            campaign_id,
            [r.value for r in SLOT_ROLES],
        )
        return occupied < editor_slots

    async def add_participant(
        self,
        campaign_id: str,
        user_id: str,
        role: ParticipantRole,
        enforce_capacity: bool = False,
    ) -> Optional[CampaignParticipant]:
        try:
            async with self.db.transaction() as conn:
                if enforce_capacity and not await self._has_free_slot(conn, campaign_id):
                    return None
                # Bans recorded after the caller's own lookup still block the insert
                banned = await conn.fetchval(
                    f"SELECT 1 FROM {self.bans_table} WHERE campaign_id = $1 AND user_id = $2",
                    campaign_id,
                    user_id,
                )
                if banned:
                    raise ParticipantBannedError(campaign_id, user_id)
                row = await conn.fetchrow(
                    f'''
                    INSERT INTO {self.participants_table} (campaign_id, user_id, role, joined_at)
                    VALUES ($1, $2, $3, $4)
                    RETURNING *
                    ''',
                    campaign_id,
                    user_id,
                    role.value,
                    datetime.now(timezone.utc),
                )
            return CampaignParticipant(**dict(row))
        except asyncpg.UniqueViolationError:
            raise DuplicateParticipantError(campaign_id, user_id)
        except asyncpg.ForeignKeyViolationError:
            raise CampaignNotFoundError(campaign_id)

    async def promote_pending(
        self, campaign_id: str, user_id: str
    ) -> Optional[CampaignParticipant]:
        async with self.db.transaction() as conn:
            if not await self._has_free_slot(conn, campaign_id):
                return None
            row = await conn.fetchrow(
                f'''
                UPDATE {self.participants_table}
                SET role = 'MEMBER'
                WHERE campaign_id = $1 AND user_id = $2 AND role = 'PENDING'
                RETURNING *
                ''',
                campaign_id,
                user_id,
            )
        return CampaignParticipant(**dict(row)) if row else None

    async def update_participant_role(
        self, campaign_id: str, user_id: str, role: ParticipantRole
    ) -> Optional[CampaignParticipant]:
        result = await self.db.query_row(
            f'''
            UPDATE {self.participants_table}
            SET role = $3
            WHERE campaign_id = $1 AND user_id = $2 AND role <> 'CREATOR'
            RETURNING *
            ''',
            [campaign_id, user_id, role.value],
        )
        return CampaignParticipant(**result) if result else None

    async def delete_participant(self, campaign_id: str, user_id: str) -> bool:
        result = await self.db.execute(
            f'''
            DELETE FROM {self.participants_table}
            WHERE campaign_id = $1 AND user_id = $2 AND role <> 'CREATOR'
            ''',
            [campaign_id, user_id],
        )
        return result != "DELETE 0"

    # ====================
    # Bans
    # ====================

    async def get_ban(self, campaign_id: str, user_id: str) -> Optional[WaitlistBan]:
        result = await self.db.query_row(
            f"SELECT * FROM {self.bans_table} WHERE campaign_id = $1 AND user_id = $2",
            [campaign_id, user_id],
        )
        return WaitlistBan(**result) if result else None

    async def create_ban(self, ban: WaitlistBan) -> WaitlistBan:
        try:
            await self.db.execute(
                f'''
                INSERT INTO {self.bans_table} (campaign_id, user_id, reason, banned_by, created_at)
                VALUES ($1, $2, $3, $4, $5)
                ''',
                [ban.campaign_id, ban.user_id, ban.reason, ban.banned_by, ban.created_at],
            )
        except asyncpg.UniqueViolationError:
            raise ParticipantAlreadyBannedError(ban.campaign_id, ban.user_id)
        return ban

    # ====================
    # Waitlist
    # ====================

    async def replace_questions(
        self, campaign_id: str, questions: List[WaitlistQuestion]
    ) -> List[WaitlistQuestion]:
        async with self.db.transaction() as conn:
            await conn.execute(
                f"DELETE FROM {self.questions_table} WHERE campaign_id = $1", campaign_id
            )
            if questions:
                await conn.executemany(
                    f'''
                    INSERT INTO {self.questions_table}
                        (question_id, campaign_id, question, "order", created_at)
                    VALUES ($1, $2, $3, $4, $5)
                    ''',
                    [
                        (q.question_id, q.campaign_id, q.question, q.order, q.created_at)
                        for q in questions
                    ],
                )
        return sorted(questions, key=lambda q: q.order)

    async def get_questions(self, campaign_id: str) -> List[WaitlistQuestion]:
        results = await self.db.query(
            f'''
            SELECT * FROM {self.questions_table}
            WHERE campaign_id = $1 ORDER BY "order" ASC
            ''',
            [campaign_id],
        )
        return [WaitlistQuestion(**row) for row in results]

    async def save_response(self, response: WaitlistResponse) -> WaitlistResponse:
        result = await self.db.query_row(
            f'''
            INSERT INTO {self.responses_table}
                (campaign_id, user_id, answers, status, created_at)
            VALUES ($1, $2, $3, 'PENDING', $4)
            ON CONFLICT (campaign_id, user_id) DO UPDATE
            SET answers = EXCLUDED.answers, status = 'PENDING',
                reviewed_by = NULL, reviewed_at = NULL, note = NULL,
                created_at = EXCLUDED.created_at
            RETURNING *
            ''',
            [response.campaign_id, response.user_id, response.answers, response.created_at],
        )
        return WaitlistResponse(**result)

    async def list_responses(
        self,
        campaign_id: str,
        status: Optional[WaitlistResponseStatus] = None,
    ) -> List[WaitlistResponse]:
        params: List[Any] = [campaign_id]
        where = "campaign_id = $1"
        if status is not None:
            params.append(status.value)
            where += " AND status = $2"

        results = await self.db.query(
            f"SELECT * FROM {self.responses_table} WHERE {where} ORDER BY created_at ASC",
            params,
        )
        return [WaitlistResponse(**row) for row in results]

    async def review_response(
        self,
        campaign_id: str,
        user_id: str,
        status: WaitlistResponseStatus,
        reviewed_by: str,
        reviewed_at: datetime,
        note: Optional[str] = None,
    ) -> Optional[WaitlistResponse]:
        result = await self.db.query_row(
            f'''
            UPDATE {self.responses_table}
            SET status = $3, reviewed_by = $4, reviewed_at = $5, note = COALESCE($6, note)
            WHERE campaign_id = $1 AND user_id = $2
            RETURNING *
            ''',
            [campaign_id, user_id, status.value, reviewed_by, reviewed_at, note],
        )
        return WaitlistResponse(**result) if result else None

    async def reject_pending_responses(
        self,
        campaign_id: str,
        user_id: str,
        reviewed_by: str,
        reviewed_at: datetime,
    ) -> int:
        result = await self.db.execute(
            f'''
            UPDATE {self.responses_table}
            SET status = 'REJECTED', reviewed_by = $3, reviewed_at = $4
            WHERE campaign_id = $1 AND user_id = $2 AND status = 'PENDING'
            ''',
            [campaign_id, user_id, reviewed_by, reviewed_at],
        )
        return int(result.split()[-1]) if result else 0

    # ====================
    # Row Mapping
    # ====================

    def _row_to_campaign(self, row: Any) -> Campaign:
        data = dict(row)
        data["platforms"] = data.get("platforms") or []
        for key in ("tags", "hashtags", "languages", "requirements", "resources", "geo_restrictions"):
            data[key] = data.get(key) or []
        return Campaign(**data)


__all__ = ["CampaignRepository"]
