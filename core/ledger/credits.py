"""
UsageCredit 저장소

크레딧 지급 레코드 저장 및 조회.
멱등성은 (source_reference_id, source_reference_type, billing_period_id) UNIQUE 인덱스로 보장.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Sequence

from core.ledger.errors import NotFoundError
from core.ledger.models import UsageCredit, UsageCreditInsert, new_id
from core.ledger.store import dump_metadata, load_metadata, placeholders
from core.ledger.types import (
    UsageCreditSourceReferenceType,
    UsageCreditStatus,
    UsageCreditType,
)
from core.utils.timezone import from_db_ts, to_db_ts

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


USAGE_CREDIT_COLUMNS = (
    "id",
    "organization_id",
    "subscription_id",
    "usage_meter_id",
    "livemode",
    "status",
    "credit_type",
    "issued_amount",
    "issued_at",
    "expires_at",
    "billing_period_id",
    "source_reference_type",
    "source_reference_id",
    "payment_id",
    "notes",
    "metadata",
)


def _credit_params(credit: UsageCredit) -> tuple[Any, ...]:
    return (
        credit.id,
        credit.organization_id,
        credit.subscription_id,
        credit.usage_meter_id,
        int(credit.livemode),
        UsageCreditStatus(credit.status).value,
        UsageCreditType(credit.credit_type).value,
        credit.issued_amount,
        to_db_ts(credit.issued_at),
        to_db_ts(credit.expires_at),
        credit.billing_period_id,
        UsageCreditSourceReferenceType(credit.source_reference_type).value,
        credit.source_reference_id,
        credit.payment_id,
        credit.notes,
        dump_metadata(credit.metadata),
    )


def _row_to_credit(row: Sequence[Any]) -> UsageCredit:
    data = dict(zip(USAGE_CREDIT_COLUMNS, row))
    return UsageCredit(
        id=data["id"],
        organization_id=data["organization_id"],
        subscription_id=data["subscription_id"],
        usage_meter_id=data["usage_meter_id"],
        livemode=bool(data["livemode"]),
        status=UsageCreditStatus(data["status"]),
        credit_type=UsageCreditType(data["credit_type"]),
        issued_amount=data["issued_amount"],
        issued_at=from_db_ts(data["issued_at"]),
        expires_at=from_db_ts(data["expires_at"]),
        billing_period_id=data["billing_period_id"],
        source_reference_type=UsageCreditSourceReferenceType(data["source_reference_type"]),
        source_reference_id=data["source_reference_id"],
        payment_id=data["payment_id"],
        notes=data["notes"],
        metadata=load_metadata(data["metadata"]),
    )


_INSERT_SQL = f"""
    INSERT INTO usage_credit ({", ".join(USAGE_CREDIT_COLUMNS)})
    VALUES ({placeholders(len(USAGE_CREDIT_COLUMNS))})
"""


class UsageCreditStore:
    """UsageCredit 저장소

    Args:
        db: SQLite 어댑터
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def bulk_insert_or_do_nothing_by_source_reference_and_billing_period(
        self,
        inserts: Sequence[UsageCreditInsert],
    ) -> list[UsageCredit]:
        """멱등성 키 충돌 시 건너뛰는 일괄 저장

        같은 (source_reference_id, source_reference_type, billing_period_id)가
        이미 있으면 해당 행은 삽입하지 않음 (ON CONFLICT DO NOTHING).

        Args:
            inserts: 삽입 데이터 목록

        Returns:
            실제로 삽입된 크레딧만 (충돌로 건너뛴 행은 제외)
        """
        inserted: list[UsageCredit] = []
        skipped = 0

        for insert in inserts:
            credit = UsageCredit.from_insert(new_id(), insert)
            cursor = await self.db.execute(
                _INSERT_SQL + " ON CONFLICT DO NOTHING",
                _credit_params(credit),
            )
            if cursor.rowcount == 1:
                inserted.append(credit)
            else:
                skipped += 1
                logger.debug(
                    f"UsageCredit 중복 건너뜀: {insert.idempotency_key}",
                )

        logger.debug(
            "UsageCredit 멱등 저장",
            extra={"inserted": len(inserted), "skipped": skipped},
        )
        return inserted

    async def bulk_insert(self, inserts: Sequence[UsageCreditInsert]) -> list[UsageCredit]:
        """일괄 저장 (멱등성 키 충돌 시 sqlite3.IntegrityError)"""
        credits = [UsageCredit.from_insert(new_id(), insert) for insert in inserts]
        if credits:
            await self.db.executemany(_INSERT_SQL, [_credit_params(c) for c in credits])
        return credits

    async def select_usage_credit_by_id(self, usage_credit_id: str) -> UsageCredit:
        """ID로 크레딧 조회

        Raises:
            NotFoundError: 존재하지 않는 경우
        """
        row = await self.db.fetchone(
            f"SELECT {', '.join(USAGE_CREDIT_COLUMNS)} FROM usage_credit WHERE id = ?",
            (usage_credit_id,),
        )
        if row is None:
            raise NotFoundError("usage_credit", usage_credit_id)
        return _row_to_credit(row)

    async def select_usage_credits(
        self,
        subscription_id: str | None = None,
        usage_meter_id: str | None = None,
        billing_period_id: str | None = None,
        source_reference_id: str | None = None,
    ) -> list[UsageCredit]:
        """조건에 맞는 크레딧 목록 (지급 순)"""
        conditions: list[str] = []
        params: list[Any] = []

        if subscription_id is not None:
            conditions.append("subscription_id = ?")
            params.append(subscription_id)
        if usage_meter_id is not None:
            conditions.append("usage_meter_id = ?")
            params.append(usage_meter_id)
        if billing_period_id is not None:
            conditions.append("billing_period_id = ?")
            params.append(billing_period_id)
        if source_reference_id is not None:
            conditions.append("source_reference_id = ?")
            params.append(source_reference_id)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = await self.db.fetchall(
            f"""
            SELECT {", ".join(USAGE_CREDIT_COLUMNS)} FROM usage_credit
            {where}
            ORDER BY issued_at, rowid
            """,
            tuple(params),
        )
        return [_row_to_credit(row) for row in rows]
