"""
Ledger 저장소

LedgerTransaction / LedgerEntry 저장 및 조회, 잔액 집계.
잔액은 저장하지 않고 항상 항목 이력에서 계산.

이 저장소의 메서드는 커밋하지 않음. 트랜잭션 경계는 호출자가 관리.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable, Sequence

from core.ledger.entry_builder import validate_ledger_entry_insert
from core.ledger.errors import NotFoundError
from core.ledger.models import (
    LedgerEntry,
    LedgerEntryInsert,
    LedgerTransaction,
    LedgerTransactionInsert,
    UsageCreditBalance,
    new_id,
)
from core.ledger.types import (
    BalanceType,
    LedgerEntryDirection,
    LedgerEntryStatus,
    LedgerEntryType,
    LedgerTransactionType,
)
from core.utils.timezone import from_db_ts, now_utc, to_db_ts

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


ENTRY_COLUMNS = (
    "id",
    "ledger_transaction_id",
    "ledger_account_id",
    "organization_id",
    "subscription_id",
    "livemode",
    "status",
    "direction",
    "entry_type",
    "amount",
    "entry_timestamp",
    "description",
    "metadata",
    "billing_period_id",
    "usage_meter_id",
    "discarded_at",
    "source_usage_event_id",
    "source_usage_credit_id",
    "source_credit_application_id",
    "source_credit_balance_adjustment_id",
)

TRANSACTION_COLUMNS = (
    "id",
    "organization_id",
    "subscription_id",
    "type",
    "livemode",
    "initiating_source_type",
    "initiating_source_id",
    "description",
    "metadata",
    "created_at",
)


def dump_metadata(metadata: dict[str, Any] | None) -> str | None:
    """metadata dict → JSON 문자열 (None 유지)"""
    return json.dumps(metadata) if metadata is not None else None


def load_metadata(value: str | None) -> dict[str, Any] | None:
    """JSON 문자열 → metadata dict (None 유지)"""
    return json.loads(value) if value is not None else None


def placeholders(count: int) -> str:
    """IN 절용 플레이스홀더 ("?, ?, ?")"""
    return ", ".join("?" for _ in range(count))


def _row_to_entry(row: Sequence[Any]) -> LedgerEntry:
    data = dict(zip(ENTRY_COLUMNS, row))
    return LedgerEntry(
        id=data["id"],
        ledger_transaction_id=data["ledger_transaction_id"],
        ledger_account_id=data["ledger_account_id"],
        organization_id=data["organization_id"],
        subscription_id=data["subscription_id"],
        livemode=bool(data["livemode"]),
        status=LedgerEntryStatus(data["status"]),
        direction=LedgerEntryDirection(data["direction"]),
        entry_type=LedgerEntryType(data["entry_type"]),
        amount=data["amount"],
        entry_timestamp=from_db_ts(data["entry_timestamp"]),
        description=data["description"],
        metadata=load_metadata(data["metadata"]),
        billing_period_id=data["billing_period_id"],
        usage_meter_id=data["usage_meter_id"],
        discarded_at=from_db_ts(data["discarded_at"]),
        source_usage_event_id=data["source_usage_event_id"],
        source_usage_credit_id=data["source_usage_credit_id"],
        source_credit_application_id=data["source_credit_application_id"],
        source_credit_balance_adjustment_id=data["source_credit_balance_adjustment_id"],
    )


def _row_to_transaction(row: Sequence[Any]) -> LedgerTransaction:
    data = dict(zip(TRANSACTION_COLUMNS, row))
    return LedgerTransaction(
        id=data["id"],
        organization_id=data["organization_id"],
        subscription_id=data["subscription_id"],
        type=LedgerTransactionType(data["type"]),
        livemode=bool(data["livemode"]),
        initiating_source_type=data["initiating_source_type"],
        initiating_source_id=data["initiating_source_id"],
        description=data["description"],
        metadata=load_metadata(data["metadata"]),
        created_at=from_db_ts(data["created_at"]),
    )


class LedgerStore:
    """Ledger 저장소

    Append-only 항목 저장 (discarded_at 설정 외 수정/삭제 없음)과 잔액 집계.

    Args:
        db: SQLite 어댑터
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    # -------------------------------------------------------------------------
    # LedgerTransaction
    # -------------------------------------------------------------------------

    async def insert_ledger_transaction(
        self,
        insert: LedgerTransactionInsert,
    ) -> LedgerTransaction:
        """트랜잭션 헤더 저장

        Args:
            insert: 삽입 데이터

        Returns:
            저장된 LedgerTransaction (ID 발급됨)
        """
        transaction = LedgerTransaction(
            id=new_id(),
            organization_id=insert.organization_id,
            subscription_id=insert.subscription_id,
            type=insert.type,
            livemode=insert.livemode,
            initiating_source_type=insert.initiating_source_type,
            initiating_source_id=insert.initiating_source_id,
            description=insert.description,
            metadata=insert.metadata,
            created_at=now_utc(),
        )

        await self.db.execute(
            f"""
            INSERT INTO ledger_transaction ({", ".join(TRANSACTION_COLUMNS)})
            VALUES ({placeholders(len(TRANSACTION_COLUMNS))})
            """,
            (
                transaction.id,
                transaction.organization_id,
                transaction.subscription_id,
                transaction.type.value,
                int(transaction.livemode),
                transaction.initiating_source_type,
                transaction.initiating_source_id,
                transaction.description,
                dump_metadata(transaction.metadata),
                to_db_ts(transaction.created_at),
            ),
        )

        logger.debug(
            "LedgerTransaction 저장",
            extra={
                "ledger_transaction_id": transaction.id,
                "type": transaction.type.value,
                "subscription_id": transaction.subscription_id,
            },
        )
        return transaction

    async def select_ledger_transaction_by_id(self, transaction_id: str) -> LedgerTransaction:
        """ID로 트랜잭션 조회

        Raises:
            NotFoundError: 존재하지 않는 경우
        """
        row = await self.db.fetchone(
            f"SELECT {', '.join(TRANSACTION_COLUMNS)} FROM ledger_transaction WHERE id = ?",
            (transaction_id,),
        )
        if row is None:
            raise NotFoundError("ledger_transaction", transaction_id)
        return _row_to_transaction(row)

    async def select_ledger_transactions(
        self,
        subscription_id: str | None = None,
        transaction_type: LedgerTransactionType | None = None,
        initiating_source_id: str | None = None,
    ) -> list[LedgerTransaction]:
        """조건에 맞는 트랜잭션 목록 (생성 순)"""
        conditions: list[str] = []
        params: list[Any] = []

        if subscription_id is not None:
            conditions.append("subscription_id = ?")
            params.append(subscription_id)
        if transaction_type is not None:
            conditions.append("type = ?")
            params.append(LedgerTransactionType(transaction_type).value)
        if initiating_source_id is not None:
            conditions.append("initiating_source_id = ?")
            params.append(initiating_source_id)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = await self.db.fetchall(
            f"""
            SELECT {", ".join(TRANSACTION_COLUMNS)} FROM ledger_transaction
            {where}
            ORDER BY created_at, rowid
            """,
            tuple(params),
        )
        return [_row_to_transaction(row) for row in rows]

    # -------------------------------------------------------------------------
    # LedgerEntry
    # -------------------------------------------------------------------------

    async def bulk_insert_ledger_entries(
        self,
        inserts: Sequence[LedgerEntryInsert],
    ) -> list[LedgerEntry]:
        """항목 일괄 저장

        저장 전에 모든 항목의 source 컬럼 규칙을 검증하므로
        하나라도 잘못되면 아무것도 기록하지 않음.

        Args:
            inserts: 삽입 데이터 목록

        Returns:
            저장된 LedgerEntry 목록 (입력 순서 유지)

        Raises:
            ValidationError: source 컬럼 규칙 위반 또는 음수 금액
        """
        if not inserts:
            return []

        for insert in inserts:
            validate_ledger_entry_insert(insert)

        entries = [LedgerEntry.from_insert(new_id(), insert) for insert in inserts]

        await self.db.executemany(
            f"""
            INSERT INTO ledger_entry ({", ".join(ENTRY_COLUMNS)})
            VALUES ({placeholders(len(ENTRY_COLUMNS))})
            """,
            [
                (
                    entry.id,
                    entry.ledger_transaction_id,
                    entry.ledger_account_id,
                    entry.organization_id,
                    entry.subscription_id,
                    int(entry.livemode),
                    LedgerEntryStatus(entry.status).value,
                    LedgerEntryDirection(entry.direction).value,
                    LedgerEntryType(entry.entry_type).value,
                    entry.amount,
                    to_db_ts(entry.entry_timestamp),
                    entry.description,
                    dump_metadata(entry.metadata),
                    entry.billing_period_id,
                    entry.usage_meter_id,
                    to_db_ts(entry.discarded_at),
                    entry.source_usage_event_id,
                    entry.source_usage_credit_id,
                    entry.source_credit_application_id,
                    entry.source_credit_balance_adjustment_id,
                )
                for entry in entries
            ],
        )

        logger.debug(
            "LedgerEntry 일괄 저장",
            extra={
                "count": len(entries),
                "ledger_transaction_ids": sorted({e.ledger_transaction_id for e in entries}),
            },
        )
        return entries

    async def select_ledger_entries(
        self,
        ledger_transaction_id: str | None = None,
        ledger_account_id: str | None = None,
        source_usage_credit_id: str | None = None,
        source_credit_balance_adjustment_id: str | None = None,
        entry_type: LedgerEntryType | None = None,
        include_discarded: bool = True,
    ) -> list[LedgerEntry]:
        """조건에 맞는 항목 목록 (기록 순)"""
        conditions: list[str] = []
        params: list[Any] = []

        if ledger_transaction_id is not None:
            conditions.append("ledger_transaction_id = ?")
            params.append(ledger_transaction_id)
        if ledger_account_id is not None:
            conditions.append("ledger_account_id = ?")
            params.append(ledger_account_id)
        if source_usage_credit_id is not None:
            conditions.append("source_usage_credit_id = ?")
            params.append(source_usage_credit_id)
        if source_credit_balance_adjustment_id is not None:
            conditions.append("source_credit_balance_adjustment_id = ?")
            params.append(source_credit_balance_adjustment_id)
        if entry_type is not None:
            conditions.append("entry_type = ?")
            params.append(LedgerEntryType(entry_type).value)
        if not include_discarded:
            conditions.append("discarded_at IS NULL")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = await self.db.fetchall(
            f"""
            SELECT {", ".join(ENTRY_COLUMNS)} FROM ledger_entry
            {where}
            ORDER BY entry_timestamp, rowid
            """,
            tuple(params),
        )
        return [_row_to_entry(row) for row in rows]

    async def discard_ledger_entries(
        self,
        entry_ids: Iterable[str],
        discarded_at: datetime | None = None,
    ) -> int:
        """항목 폐기 (soft void)

        항목에 허용되는 유일한 변경. 이미 폐기된 항목은 건드리지 않음.
        폐기된 항목은 모든 잔액 집계에서 제외됨.

        Args:
            entry_ids: 폐기할 항목 ID 목록
            discarded_at: 폐기 시각 (기본: 현재 UTC)

        Returns:
            실제로 폐기된 항목 수
        """
        ids = list(dict.fromkeys(entry_ids))
        if not ids:
            return 0

        cursor = await self.db.execute(
            f"""
            UPDATE ledger_entry SET discarded_at = ?
            WHERE id IN ({placeholders(len(ids))}) AND discarded_at IS NULL
            """,
            (to_db_ts(discarded_at or now_utc()), *ids),
        )
        count = cursor.rowcount

        logger.info(
            "LedgerEntry 폐기",
            extra={"requested": len(ids), "discarded": count},
        )
        return count

    # -------------------------------------------------------------------------
    # 잔액 집계
    # -------------------------------------------------------------------------

    async def aggregate_available_balance_for_usage_credit(
        self,
        ledger_account_ids: Sequence[str],
        usage_credit_id: str | None = None,
        as_of: datetime | None = None,
    ) -> list[UsageCreditBalance]:
        """크레딧별 사용 가능 잔액 집계

        posted + 미폐기 항목만 대상으로 (ledger_account_id, source_usage_credit_id)
        단위 credit - debit 합계. 합계가 0인 크레딧은 결과에 포함하지 않음.

        Args:
            ledger_account_ids: 대상 계정 ID 목록
            usage_credit_id: 특정 크레딧으로 한정
            as_of: 지정 시 entry_timestamp <= as_of 인 항목만 집계

        Returns:
            크레딧별 잔액 (계정 ID, 크레딧 ID 순 정렬)
        """
        account_ids = list(dict.fromkeys(ledger_account_ids))
        if not account_ids:
            return []

        conditions = [
            f"le.ledger_account_id IN ({placeholders(len(account_ids))})",
            "le.status = ?",
            "le.discarded_at IS NULL",
        ]
        params: list[Any] = [*account_ids, LedgerEntryStatus.POSTED.value]

        if usage_credit_id is not None:
            conditions.append("le.source_usage_credit_id = ?")
            params.append(usage_credit_id)
        if as_of is not None:
            conditions.append("le.entry_timestamp <= ?")
            params.append(to_db_ts(as_of))

        rows = await self.db.fetchall(
            f"""
            SELECT
                le.ledger_account_id,
                le.source_usage_credit_id,
                SUM(CASE WHEN le.direction = 'credit' THEN le.amount ELSE -le.amount END) AS balance,
                uc.expires_at
            FROM ledger_entry le
            JOIN usage_credit uc ON uc.id = le.source_usage_credit_id
            WHERE {" AND ".join(conditions)}
            GROUP BY le.ledger_account_id, le.source_usage_credit_id
            HAVING balance != 0
            ORDER BY le.ledger_account_id, le.source_usage_credit_id
            """,
            tuple(params),
        )

        return [
            UsageCreditBalance(
                ledger_account_id=row[0],
                usage_credit_id=row[1],
                balance=row[2],
                expires_at=from_db_ts(row[3]),
            )
            for row in rows
        ]

    async def aggregate_balance_for_ledger_account(
        self,
        ledger_account_id: str,
        balance_type: BalanceType = BalanceType.AVAILABLE,
    ) -> int:
        """계정 잔액 집계

        - POSTED: 확정 credit - 확정 debit
        - PENDING: 확정 + pending 항목 모두 (credit - debit)
        - AVAILABLE: 확정 credit - 확정 debit - pending debit

        폐기된 항목은 모든 유형에서 제외.
        """
        row = await self.db.fetchone(
            """
            SELECT
                COALESCE(SUM(CASE WHEN status = 'posted' AND direction = 'credit' THEN amount END), 0),
                COALESCE(SUM(CASE WHEN status = 'posted' AND direction = 'debit' THEN amount END), 0),
                COALESCE(SUM(CASE WHEN status = 'pending' AND direction = 'credit' THEN amount END), 0),
                COALESCE(SUM(CASE WHEN status = 'pending' AND direction = 'debit' THEN amount END), 0)
            FROM ledger_entry
            WHERE ledger_account_id = ? AND discarded_at IS NULL
            """,
            (ledger_account_id,),
        )
        posted_credit, posted_debit, pending_credit, pending_debit = row or (0, 0, 0, 0)

        balance_type = BalanceType(balance_type)
        if balance_type == BalanceType.POSTED:
            return posted_credit - posted_debit
        if balance_type == BalanceType.PENDING:
            return posted_credit - posted_debit + pending_credit - pending_debit
        return posted_credit - posted_debit - pending_debit
