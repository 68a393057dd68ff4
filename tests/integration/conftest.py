"""
통합 테스트 공통 fixture

임시 파일 SQLite DB + Ledger 스키마, 구독/미터/청구 기간 시드 헬퍼.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.domain.billing import BillingPeriod, Subscription, SubscriptionFeatureItem, UsageMeter
from core.domain.commands import (
    BillingPeriodTransitionLedgerCommand,
    NonRenewingTransitionPayload,
    StandardTransitionPayload,
)
from core.ledger.accounts import LedgerAccountStore
from core.ledger.models import (
    LedgerAccount,
    LedgerEntry,
    LedgerEntryInsert,
    LedgerTransaction,
    LedgerTransactionInsert,
)
from core.ledger.schema import init_ledger_schema
from core.ledger.store import LedgerStore
from core.ledger.types import (
    FeatureUsageGrantFrequency,
    LedgerEntryDirection,
    LedgerEntryStatus,
    LedgerEntryType,
    LedgerTransactionType,
)
from core.storage.subscription_store import SubscriptionStore


ORG_ID = "org_1"
SUBSCRIPTION_ID = "sub_1"
METER_A = "meter_a"
METER_B = "meter_b"

# 연속된 월 단위 청구 기간 (UTC)
JAN_1 = datetime(2025, 1, 1, tzinfo=timezone.utc)
FEB_1 = datetime(2025, 2, 1, tzinfo=timezone.utc)
MAR_1 = datetime(2025, 3, 1, tzinfo=timezone.utc)
APR_1 = datetime(2025, 4, 1, tzinfo=timezone.utc)


@pytest.fixture
def db_path(temp_dir: Path) -> Path:
    """테스트용 DB 파일 경로"""
    return temp_dir / "test_ledger.db"


@pytest_asyncio.fixture
async def db(db_path: Path) -> SQLiteAdapter:
    """Ledger 스키마가 초기화된 임시 DB"""
    adapter = SQLiteAdapter(db_path)
    await adapter.connect()
    await init_ledger_schema(adapter)

    yield adapter

    await adapter.close()


class LedgerSeed:
    """테스트 데이터 생성 헬퍼

    모든 쓰기는 커밋까지 완료하므로 이후 BEGIN IMMEDIATE 트랜잭션을 열 수 있음.
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db
        self.subscriptions = SubscriptionStore(db)
        self.store = LedgerStore(db)

    async def subscription(
        self,
        subscription_id: str = SUBSCRIPTION_ID,
        renews: bool = True,
        meters: tuple[str, ...] = (METER_A, METER_B),
    ) -> Subscription:
        subscription = Subscription(
            id=subscription_id,
            organization_id=ORG_ID,
            livemode=False,
            renews=renews,
        )
        async with self.db.transaction():
            await self.subscriptions.insert_subscription(subscription)
            for meter_id in meters:
                if await self.db.fetchone("SELECT id FROM usage_meter WHERE id = ?", (meter_id,)):
                    continue
                await self.subscriptions.insert_usage_meter(
                    UsageMeter(id=meter_id, organization_id=ORG_ID, name=meter_id, livemode=False)
                )
        return subscription

    async def billing_period(
        self,
        period_id: str,
        start: datetime,
        end: datetime,
        subscription_id: str = SUBSCRIPTION_ID,
    ) -> BillingPeriod:
        period = BillingPeriod(
            id=period_id,
            subscription_id=subscription_id,
            start_date=start,
            end_date=end,
            livemode=False,
        )
        async with self.db.transaction():
            await self.subscriptions.insert_billing_period(period)
        return period

    async def accounts(
        self,
        meter_ids: tuple[str, ...] = (METER_A,),
        subscription_id: str = SUBSCRIPTION_ID,
    ) -> list[LedgerAccount]:
        async with self.db.transaction():
            return await LedgerAccountStore(
                self.db
            ).find_or_create_ledger_accounts_for_subscription_and_usage_meters(
                subscription_id, meter_ids
            )

    async def ledger_transaction(
        self,
        transaction_type: LedgerTransactionType = LedgerTransactionType.USAGE_EVENT_PROCESSED,
        subscription_id: str = SUBSCRIPTION_ID,
    ) -> LedgerTransaction:
        async with self.db.transaction():
            return await self.store.insert_ledger_transaction(
                LedgerTransactionInsert(
                    organization_id=ORG_ID,
                    subscription_id=subscription_id,
                    type=transaction_type,
                    livemode=False,
                    initiating_source_type=transaction_type.value,
                    initiating_source_id="source_1",
                )
            )

    def entry(
        self,
        ledger_transaction: LedgerTransaction,
        account: LedgerAccount,
        amount: int,
        direction: LedgerEntryDirection = LedgerEntryDirection.DEBIT,
        entry_type: LedgerEntryType = LedgerEntryType.USAGE_CREDIT_APPLICATION_DEBIT_FROM_CREDIT_BALANCE,
        status: LedgerEntryStatus = LedgerEntryStatus.POSTED,
        entry_timestamp: datetime | None = None,
        **sources: Any,
    ) -> LedgerEntryInsert:
        if entry_type in (
            LedgerEntryType.USAGE_CREDIT_APPLICATION_DEBIT_FROM_CREDIT_BALANCE,
            LedgerEntryType.USAGE_CREDIT_APPLICATION_CREDIT_TOWARDS_USAGE_COST,
        ):
            sources.setdefault("source_credit_application_id", "app_1")
        return LedgerEntryInsert(
            ledger_transaction_id=ledger_transaction.id,
            ledger_account_id=account.id,
            organization_id=ORG_ID,
            subscription_id=account.subscription_id,
            livemode=False,
            status=status,
            direction=direction,
            entry_type=entry_type,
            amount=amount,
            entry_timestamp=entry_timestamp or datetime.now(timezone.utc),
            usage_meter_id=account.usage_meter_id,
            **sources,
        )

    async def entries(self, inserts: list[LedgerEntryInsert]) -> list[LedgerEntry]:
        async with self.db.transaction():
            return await self.store.bulk_insert_ledger_entries(inserts)

    async def consume(
        self,
        account: LedgerAccount,
        usage_credit_id: str,
        amount: int,
        status: LedgerEntryStatus = LedgerEntryStatus.POSTED,
    ) -> LedgerEntry:
        """크레딧 사용 (usage_credit_application Debit 항목)"""
        transaction = await self.ledger_transaction()
        [entry] = await self.entries(
            [
                self.entry(
                    transaction,
                    account,
                    amount,
                    status=status,
                    source_usage_credit_id=usage_credit_id,
                )
            ]
        )
        return entry


@pytest_asyncio.fixture
async def seed(db: SQLiteAdapter) -> LedgerSeed:
    """테스트 데이터 생성 헬퍼"""
    return LedgerSeed(db)


def feature_item(
    item_id: str,
    amount: int,
    usage_meter_id: str | None = METER_A,
    renewal_frequency: FeatureUsageGrantFrequency = FeatureUsageGrantFrequency.EVERY_BILLING_PERIOD,
) -> SubscriptionFeatureItem:
    return SubscriptionFeatureItem(
        id=item_id,
        usage_meter_id=usage_meter_id,
        amount=amount,
        renewal_frequency=renewal_frequency,
    )


def standard_command(
    subscription: Subscription,
    new_billing_period: BillingPeriod,
    items: list[SubscriptionFeatureItem],
    previous_billing_period: BillingPeriod | None = None,
) -> BillingPeriodTransitionLedgerCommand:
    return BillingPeriodTransitionLedgerCommand(
        organization_id=subscription.organization_id,
        subscription_id=subscription.id,
        livemode=subscription.livemode,
        payload=StandardTransitionPayload(
            subscription=subscription,
            previous_billing_period=previous_billing_period,
            new_billing_period=new_billing_period,
            subscription_feature_items=items,
        ),
    )


def non_renewing_command(
    subscription: Subscription,
    items: list[SubscriptionFeatureItem],
) -> BillingPeriodTransitionLedgerCommand:
    return BillingPeriodTransitionLedgerCommand(
        organization_id=subscription.organization_id,
        subscription_id=subscription.id,
        livemode=subscription.livemode,
        payload=NonRenewingTransitionPayload(
            subscription=subscription,
            subscription_feature_items=items,
        ),
    )


@pytest.fixture
def make_feature_item():
    """SubscriptionFeatureItem 생성 함수"""
    return feature_item


@pytest.fixture
def make_standard_command():
    """standard 전환 Command 생성 함수"""
    return standard_command


@pytest.fixture
def make_non_renewing_command():
    """non_renewing 전환 Command 생성 함수"""
    return non_renewing_command
