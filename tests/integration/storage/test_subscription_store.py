"""SubscriptionStore 통합 테스트"""

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.domain.billing import BillingPeriod, Subscription, UsageMeter
from core.ledger.errors import NotFoundError
from core.storage import SubscriptionStore


JAN_1 = datetime(2025, 1, 1, tzinfo=timezone.utc)
FEB_1 = datetime(2025, 2, 1, tzinfo=timezone.utc)
MAR_1 = datetime(2025, 3, 1, tzinfo=timezone.utc)


class TestSubscription:
    """구독 저장/조회"""

    @pytest.mark.asyncio
    async def test_round_trip(self, db: SQLiteAdapter) -> None:
        """저장 후 같은 값으로 조회"""
        store = SubscriptionStore(db)
        subscription = Subscription(id="sub_1", organization_id="org_1", livemode=True, renews=False)

        async with db.transaction():
            await store.insert_subscription(subscription)

        assert await store.select_subscription_by_id("sub_1") == subscription

    @pytest.mark.asyncio
    async def test_missing(self, db: SQLiteAdapter) -> None:
        """없으면 get은 None, select는 NotFoundError"""
        store = SubscriptionStore(db)

        assert await store.get_subscription("sub_missing") is None
        with pytest.raises(NotFoundError) as exc_info:
            await store.select_subscription_by_id("sub_missing")

        assert exc_info.value.ids == ["sub_missing"]


class TestBillingPeriod:
    """청구 기간 저장/조회"""

    @pytest.mark.asyncio
    async def test_round_trip_and_order(self, db: SQLiteAdapter, seed) -> None:
        """UTC 시각 보존, 시작일 순 정렬"""
        await seed.subscription()
        store = SubscriptionStore(db)
        kst = timezone(timedelta(hours=9))

        async with db.transaction():
            await store.insert_billing_period(
                BillingPeriod(id="bp_2", subscription_id="sub_1", start_date=FEB_1, end_date=MAR_1)
            )
            await store.insert_billing_period(
                BillingPeriod(
                    id="bp_1",
                    subscription_id="sub_1",
                    start_date=JAN_1.astimezone(kst),
                    end_date=FEB_1.astimezone(kst),
                )
            )

        periods = await store.select_billing_periods("sub_1")

        assert [p.id for p in periods] == ["bp_1", "bp_2"]
        assert periods[0].start_date == JAN_1
        assert periods[0].start_date.tzinfo is not None
        assert (await store.select_billing_period_by_id("bp_2")).end_date == MAR_1

    @pytest.mark.asyncio
    async def test_missing(self, db: SQLiteAdapter) -> None:
        """없는 청구 기간 → NotFoundError"""
        with pytest.raises(NotFoundError) as exc_info:
            await SubscriptionStore(db).select_billing_period_by_id("bp_missing")

        assert exc_info.value.resource == "billing_period"

    @pytest.mark.asyncio
    async def test_unknown_subscription(self, db: SQLiteAdapter) -> None:
        """구독 FK 위반"""
        with pytest.raises(sqlite3.IntegrityError):
            async with db.transaction():
                await SubscriptionStore(db).insert_billing_period(
                    BillingPeriod(id="bp_1", subscription_id="sub_missing", start_date=JAN_1, end_date=FEB_1)
                )


class TestUsageMeter:
    """사용량 미터"""

    @pytest.mark.asyncio
    async def test_select_existing_ids(self, db: SQLiteAdapter) -> None:
        """존재하는 ID만 반환"""
        store = SubscriptionStore(db)

        async with db.transaction():
            await store.insert_usage_meter(UsageMeter(id="meter_a", organization_id="org_1"))

        assert await store.select_existing_usage_meter_ids(["meter_a", "meter_x"]) == {"meter_a"}
        assert await store.select_existing_usage_meter_ids([]) == set()
