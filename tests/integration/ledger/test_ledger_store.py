"""LedgerStore 통합 테스트"""

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.credits import UsageCreditStore
from core.ledger.errors import NotFoundError, ValidationError
from core.ledger.models import UsageCreditInsert
from core.ledger.store import LedgerStore
from core.ledger.types import (
    BalanceType,
    LedgerEntryDirection,
    LedgerEntryStatus,
    LedgerEntryType,
    LedgerTransactionType,
    UsageCreditSourceReferenceType,
)


T0 = datetime(2025, 1, 10, tzinfo=timezone.utc)


async def _credit(db: SQLiteAdapter, amount: int = 1000, expires_at: datetime | None = None, ref: str = "promo_1"):
    async with db.transaction():
        [credit] = await UsageCreditStore(db).bulk_insert(
            [
                UsageCreditInsert(
                    organization_id="org_1",
                    subscription_id="sub_1",
                    usage_meter_id="meter_a",
                    livemode=False,
                    issued_amount=amount,
                    issued_at=T0,
                    source_reference_type=UsageCreditSourceReferenceType.MANUAL_ADJUSTMENT,
                    source_reference_id=ref,
                    expires_at=expires_at,
                )
            ]
        )
    return credit


class TestLedgerTransaction:
    """LedgerTransaction 저장/조회 테스트"""

    @pytest.mark.asyncio
    async def test_insert_and_select(self, db: SQLiteAdapter, seed) -> None:
        """저장 후 ID로 조회"""
        await seed.subscription()
        transaction = await seed.ledger_transaction(LedgerTransactionType.CREDIT_GRANT_RECOGNIZED)

        loaded = await LedgerStore(db).select_ledger_transaction_by_id(transaction.id)

        assert loaded.id == transaction.id
        assert loaded.type == LedgerTransactionType.CREDIT_GRANT_RECOGNIZED
        assert loaded.livemode is False
        assert loaded.initiating_source_id == "source_1"
        assert loaded.created_at is not None

    @pytest.mark.asyncio
    async def test_select_missing(self, db: SQLiteAdapter) -> None:
        """없는 ID → NotFoundError"""
        with pytest.raises(NotFoundError) as exc_info:
            await LedgerStore(db).select_ledger_transaction_by_id("missing")

        assert exc_info.value.resource == "ledger_transaction"
        assert exc_info.value.ids == ["missing"]

    @pytest.mark.asyncio
    async def test_select_by_filters(self, db: SQLiteAdapter, seed) -> None:
        """유형/구독 필터"""
        await seed.subscription()
        await seed.ledger_transaction(LedgerTransactionType.USAGE_EVENT_PROCESSED)
        await seed.ledger_transaction(LedgerTransactionType.CREDIT_GRANT_RECOGNIZED)

        store = LedgerStore(db)
        all_transactions = await store.select_ledger_transactions(subscription_id="sub_1")
        recognized = await store.select_ledger_transactions(
            transaction_type=LedgerTransactionType.CREDIT_GRANT_RECOGNIZED,
        )

        assert len(all_transactions) == 2
        assert [t.type for t in recognized] == [LedgerTransactionType.CREDIT_GRANT_RECOGNIZED]


class TestBulkInsertLedgerEntries:
    """항목 일괄 저장 테스트"""

    @pytest.mark.asyncio
    async def test_insert_preserves_fields(self, db: SQLiteAdapter, seed) -> None:
        """저장 후 조회 시 필드 보존"""
        await seed.subscription()
        [account] = await seed.accounts()
        credit = await _credit(db)
        transaction = await seed.ledger_transaction()

        [entry] = await seed.entries(
            [
                seed.entry(
                    transaction,
                    account,
                    400,
                    entry_timestamp=T0,
                    source_usage_credit_id=credit.id,
                )
            ]
        )

        [loaded] = await LedgerStore(db).select_ledger_entries(ledger_transaction_id=transaction.id)
        assert loaded == entry
        assert loaded.direction == LedgerEntryDirection.DEBIT
        assert loaded.signed_amount == -400
        assert loaded.entry_timestamp == T0
        assert loaded.source_credit_application_id == "app_1"

    @pytest.mark.asyncio
    async def test_empty(self, db: SQLiteAdapter) -> None:
        """빈 목록은 아무것도 하지 않음"""
        assert await LedgerStore(db).bulk_insert_ledger_entries([]) == []

    @pytest.mark.asyncio
    async def test_missing_source_column_rejected(self, db: SQLiteAdapter, seed) -> None:
        """주 source 컬럼 누락 → ValidationError, 아무것도 기록되지 않음"""
        await seed.subscription()
        [account] = await seed.accounts()
        credit = await _credit(db)
        transaction = await seed.ledger_transaction()

        valid = seed.entry(transaction, account, 100, source_usage_credit_id=credit.id)
        invalid = seed.entry(
            transaction,
            account,
            100,
            direction=LedgerEntryDirection.CREDIT,
            entry_type=LedgerEntryType.CREDIT_GRANT_RECOGNIZED,
        )

        with pytest.raises(ValidationError):
            await seed.entries([valid, invalid])

        assert await LedgerStore(db).select_ledger_entries(ledger_transaction_id=transaction.id) == []

    @pytest.mark.asyncio
    async def test_second_live_expiration_rejected(self, db: SQLiteAdapter, seed) -> None:
        """크레딧당 미폐기 만료 항목은 1건만 허용"""
        await seed.subscription()
        [account] = await seed.accounts()
        credit = await _credit(db)
        transaction = await seed.ledger_transaction(LedgerTransactionType.CREDIT_GRANT_EXPIRED)

        def expiration():
            return seed.entry(
                transaction,
                account,
                100,
                entry_type=LedgerEntryType.CREDIT_GRANT_EXPIRED,
                source_usage_credit_id=credit.id,
            )

        [first] = await seed.entries([expiration()])

        with pytest.raises(sqlite3.IntegrityError):
            await seed.entries([expiration()])

        # 폐기하면 다시 기록 가능
        async with db.transaction():
            await LedgerStore(db).discard_ledger_entries([first.id])
        await seed.entries([expiration()])


class TestDiscardLedgerEntries:
    """항목 폐기 테스트"""

    @pytest.mark.asyncio
    async def test_discard_once(self, db: SQLiteAdapter, seed) -> None:
        """이미 폐기된 항목은 다시 변경되지 않음"""
        await seed.subscription()
        [account] = await seed.accounts()
        credit = await _credit(db)
        entry = await seed.consume(account, credit.id, 100)
        store = LedgerStore(db)
        first_time = datetime(2025, 2, 1, tzinfo=timezone.utc)

        async with db.transaction():
            assert await store.discard_ledger_entries([entry.id, entry.id], discarded_at=first_time) == 1
        async with db.transaction():
            assert await store.discard_ledger_entries([entry.id]) == 0

        [loaded] = await store.select_ledger_entries(ledger_account_id=account.id)
        assert loaded.discarded_at == first_time
        assert await store.select_ledger_entries(ledger_account_id=account.id, include_discarded=False) == []


class TestAggregateAvailableBalanceForUsageCredit:
    """크레딧별 잔액 집계 테스트"""

    @pytest.mark.asyncio
    async def test_balance_per_credit(self, db: SQLiteAdapter, seed) -> None:
        """credit - debit, posted만, 폐기 제외"""
        await seed.subscription()
        [account] = await seed.accounts()
        expires_at = datetime(2025, 2, 1, tzinfo=timezone.utc)
        credit = await _credit(db, 1000, expires_at=expires_at)
        transaction = await seed.ledger_transaction(LedgerTransactionType.CREDIT_GRANT_RECOGNIZED)
        await seed.entries(
            [
                seed.entry(
                    transaction,
                    account,
                    1000,
                    direction=LedgerEntryDirection.CREDIT,
                    entry_type=LedgerEntryType.CREDIT_GRANT_RECOGNIZED,
                    source_usage_credit_id=credit.id,
                )
            ]
        )
        await seed.consume(account, credit.id, 300)
        await seed.consume(account, credit.id, 100, status=LedgerEntryStatus.PENDING)
        discarded = await seed.consume(account, credit.id, 50)
        async with db.transaction():
            await LedgerStore(db).discard_ledger_entries([discarded.id])

        [balance] = await LedgerStore(db).aggregate_available_balance_for_usage_credit([account.id])

        assert balance.ledger_account_id == account.id
        assert balance.usage_credit_id == credit.id
        assert balance.balance == 700
        assert balance.expires_at == expires_at

    @pytest.mark.asyncio
    async def test_zero_balance_omitted(self, db: SQLiteAdapter, seed) -> None:
        """합계 0인 크레딧은 결과에 없음"""
        await seed.subscription()
        [account] = await seed.accounts()
        credit = await _credit(db, 500)
        transaction = await seed.ledger_transaction(LedgerTransactionType.CREDIT_GRANT_RECOGNIZED)
        await seed.entries(
            [
                seed.entry(
                    transaction,
                    account,
                    500,
                    direction=LedgerEntryDirection.CREDIT,
                    entry_type=LedgerEntryType.CREDIT_GRANT_RECOGNIZED,
                    source_usage_credit_id=credit.id,
                )
            ]
        )
        await seed.consume(account, credit.id, 500)

        assert await LedgerStore(db).aggregate_available_balance_for_usage_credit([account.id]) == []

    @pytest.mark.asyncio
    async def test_as_of_and_credit_filter(self, db: SQLiteAdapter, seed) -> None:
        """as_of 이후 항목 제외, 특정 크레딧 한정"""
        await seed.subscription()
        [account] = await seed.accounts()
        credit_1 = await _credit(db, 1000, ref="promo_1")
        credit_2 = await _credit(db, 200, ref="promo_2")
        transaction = await seed.ledger_transaction(LedgerTransactionType.CREDIT_GRANT_RECOGNIZED)
        await seed.entries(
            [
                seed.entry(
                    transaction,
                    account,
                    credit.issued_amount,
                    direction=LedgerEntryDirection.CREDIT,
                    entry_type=LedgerEntryType.CREDIT_GRANT_RECOGNIZED,
                    entry_timestamp=T0,
                    source_usage_credit_id=credit.id,
                )
                for credit in (credit_1, credit_2)
            ]
            + [
                seed.entry(
                    transaction,
                    account,
                    250,
                    entry_timestamp=T0 + timedelta(days=5),
                    source_usage_credit_id=credit_1.id,
                )
            ]
        )
        store = LedgerStore(db)

        before = await store.aggregate_available_balance_for_usage_credit(
            [account.id], as_of=T0 + timedelta(days=1)
        )
        after = await store.aggregate_available_balance_for_usage_credit(
            [account.id], usage_credit_id=credit_1.id
        )

        assert {b.usage_credit_id: b.balance for b in before} == {credit_1.id: 1000, credit_2.id: 200}
        assert [(b.usage_credit_id, b.balance) for b in after] == [(credit_1.id, 750)]

    @pytest.mark.asyncio
    async def test_no_accounts(self, db: SQLiteAdapter) -> None:
        """계정 목록이 비면 빈 결과"""
        assert await LedgerStore(db).aggregate_available_balance_for_usage_credit([]) == []


class TestAggregateBalanceForLedgerAccount:
    """계정 잔액 유형별 집계 테스트"""

    @pytest.mark.asyncio
    async def test_balance_types(self, db: SQLiteAdapter, seed) -> None:
        """posted / pending / available"""
        await seed.subscription()
        [account] = await seed.accounts()
        credit = await _credit(db, 1000)
        transaction = await seed.ledger_transaction(LedgerTransactionType.CREDIT_GRANT_RECOGNIZED)
        await seed.entries(
            [
                seed.entry(
                    transaction,
                    account,
                    1000,
                    direction=LedgerEntryDirection.CREDIT,
                    entry_type=LedgerEntryType.CREDIT_GRANT_RECOGNIZED,
                    source_usage_credit_id=credit.id,
                ),
                seed.entry(
                    transaction,
                    account,
                    50,
                    direction=LedgerEntryDirection.CREDIT,
                    entry_type=LedgerEntryType.CREDIT_GRANT_RECOGNIZED,
                    status=LedgerEntryStatus.PENDING,
                    source_usage_credit_id=credit.id,
                ),
            ]
        )
        await seed.consume(account, credit.id, 300)
        await seed.consume(account, credit.id, 100, status=LedgerEntryStatus.PENDING)
        store = LedgerStore(db)

        assert await store.aggregate_balance_for_ledger_account(account.id, BalanceType.POSTED) == 700
        assert await store.aggregate_balance_for_ledger_account(account.id, BalanceType.PENDING) == 650
        assert await store.aggregate_balance_for_ledger_account(account.id, BalanceType.AVAILABLE) == 600

    @pytest.mark.asyncio
    async def test_empty_account(self, db: SQLiteAdapter, seed) -> None:
        """항목이 없으면 0"""
        await seed.subscription()
        [account] = await seed.accounts()

        for balance_type in BalanceType:
            assert await LedgerStore(db).aggregate_balance_for_ledger_account(account.id, balance_type) == 0
