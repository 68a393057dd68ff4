"""
구독 저장소

구독 / 청구 기간 / 사용량 미터 레코드 저장 및 조회.
Ledger 엔진은 조회만 사용하며, 저장은 구독 관리 쪽(및 테스트)에서 사용.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, Sequence

from core.domain.billing import BillingPeriod, Subscription, UsageMeter
from core.ledger.errors import NotFoundError
from core.utils.timezone import from_db_ts, to_db_ts

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


def _row_to_billing_period(row: Sequence[Any]) -> BillingPeriod:
    return BillingPeriod(
        id=row[0],
        subscription_id=row[1],
        start_date=from_db_ts(row[2]),
        end_date=from_db_ts(row[3]),
        livemode=bool(row[4]),
    )


class SubscriptionStore:
    """구독 저장소

    Args:
        db: SQLite 어댑터
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    # -------------------------------------------------------------------------
    # Subscription
    # -------------------------------------------------------------------------

    async def insert_subscription(self, subscription: Subscription) -> Subscription:
        """구독 저장"""
        await self.db.execute(
            """
            INSERT INTO subscription (id, organization_id, livemode, renews)
            VALUES (?, ?, ?, ?)
            """,
            (
                subscription.id,
                subscription.organization_id,
                int(subscription.livemode),
                int(subscription.renews),
            ),
        )
        logger.debug(f"Subscription 저장: {subscription.id}")
        return subscription

    async def get_subscription(self, subscription_id: str) -> Subscription | None:
        """구독 조회 (없으면 None)"""
        row = await self.db.fetchone(
            "SELECT id, organization_id, livemode, renews FROM subscription WHERE id = ?",
            (subscription_id,),
        )
        if row is None:
            return None
        return Subscription(
            id=row[0],
            organization_id=row[1],
            livemode=bool(row[2]),
            renews=bool(row[3]),
        )

    async def select_subscription_by_id(self, subscription_id: str) -> Subscription:
        """구독 조회

        Raises:
            NotFoundError: 존재하지 않는 경우
        """
        subscription = await self.get_subscription(subscription_id)
        if subscription is None:
            raise NotFoundError("subscription", subscription_id)
        return subscription

    # -------------------------------------------------------------------------
    # BillingPeriod
    # -------------------------------------------------------------------------

    async def insert_billing_period(self, billing_period: BillingPeriod) -> BillingPeriod:
        """청구 기간 저장"""
        await self.db.execute(
            """
            INSERT INTO billing_period (id, subscription_id, start_date, end_date, livemode)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                billing_period.id,
                billing_period.subscription_id,
                to_db_ts(billing_period.start_date),
                to_db_ts(billing_period.end_date),
                int(billing_period.livemode),
            ),
        )
        logger.debug(f"BillingPeriod 저장: {billing_period.id}")
        return billing_period

    async def select_billing_period_by_id(self, billing_period_id: str) -> BillingPeriod:
        """청구 기간 조회

        Raises:
            NotFoundError: 존재하지 않는 경우
        """
        row = await self.db.fetchone(
            """
            SELECT id, subscription_id, start_date, end_date, livemode
            FROM billing_period WHERE id = ?
            """,
            (billing_period_id,),
        )
        if row is None:
            raise NotFoundError("billing_period", billing_period_id)
        return _row_to_billing_period(row)

    async def select_billing_periods(self, subscription_id: str) -> list[BillingPeriod]:
        """구독의 청구 기간 목록 (시작일 순)"""
        rows = await self.db.fetchall(
            """
            SELECT id, subscription_id, start_date, end_date, livemode
            FROM billing_period WHERE subscription_id = ?
            ORDER BY start_date
            """,
            (subscription_id,),
        )
        return [_row_to_billing_period(row) for row in rows]

    # -------------------------------------------------------------------------
    # UsageMeter
    # -------------------------------------------------------------------------

    async def insert_usage_meter(self, usage_meter: UsageMeter) -> UsageMeter:
        """사용량 미터 저장"""
        await self.db.execute(
            """
            INSERT INTO usage_meter (id, organization_id, name, livemode)
            VALUES (?, ?, ?, ?)
            """,
            (
                usage_meter.id,
                usage_meter.organization_id,
                usage_meter.name,
                int(usage_meter.livemode),
            ),
        )
        logger.debug(f"UsageMeter 저장: {usage_meter.id}")
        return usage_meter

    async def select_existing_usage_meter_ids(self, usage_meter_ids: Iterable[str]) -> set[str]:
        """주어진 ID 중 실제로 존재하는 사용량 미터 ID 집합"""
        ids = list(dict.fromkeys(usage_meter_ids))
        if not ids:
            return set()

        rows = await self.db.fetchall(
            f"SELECT id FROM usage_meter WHERE id IN ({', '.join('?' for _ in ids)})",
            tuple(ids),
        )
        return {row[0] for row in rows}
