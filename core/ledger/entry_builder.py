"""
Ledger 항목 생성기

LedgerTransaction 헤더와 UsageCredit/잔액 집계 결과를 LedgerEntryInsert로 변환.
항목 유형별 source 컬럼 규칙 검증 포함.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from core.ledger.errors import ValidationError
from core.ledger.models import (
    LedgerAccount,
    LedgerEntryInsert,
    LedgerTransaction,
    UsageCredit,
    UsageCreditBalance,
)
from core.ledger.types import (
    ALLOWED_SECONDARY_SOURCE_COLUMNS,
    SOURCE_COLUMN_BY_ENTRY_TYPE,
    SOURCE_COLUMNS,
    LedgerEntryDirection,
    LedgerEntryStatus,
    LedgerEntryType,
)
from core.utils.timezone import now_utc

logger = logging.getLogger(__name__)


def validate_ledger_entry_insert(insert: LedgerEntryInsert) -> None:
    """항목 삽입 데이터 검증

    - amount >= 0 (방향은 direction으로 표현)
    - entry_type의 주 source 컬럼은 반드시 채워져야 함
    - 그 외 source 컬럼은 허용 목록(ALLOWED_SECONDARY_SOURCE_COLUMNS)에 있는 것만 허용

    Raises:
        ValidationError: 규칙 위반
    """
    if insert.amount < 0:
        raise ValidationError(
            f"Ledger entry amount must be non-negative: {insert.amount}"
        )

    entry_type = LedgerEntryType(insert.entry_type)
    required = SOURCE_COLUMN_BY_ENTRY_TYPE.get(entry_type)
    if required is None:
        raise ValidationError(f"Unsupported ledger entry type: {entry_type.value}")

    if getattr(insert, required) is None:
        raise ValidationError(
            f"{entry_type.value} entry requires {required}"
        )

    allowed = ALLOWED_SECONDARY_SOURCE_COLUMNS.get(entry_type, frozenset())
    extra = [
        column
        for column in SOURCE_COLUMNS
        if column != required
        and column not in allowed
        and getattr(insert, column) is not None
    ]
    if extra:
        raise ValidationError(
            f"{entry_type.value} entry must not set {', '.join(extra)}"
        )


@dataclass
class LedgerEntryBuilder:
    """하나의 LedgerTransaction에 속하는 항목 생성

    같은 트랜잭션의 항목은 헤더 필드(조직/구독/livemode)와 entry_timestamp를 공유.

    Args:
        ledger_transaction: 항목이 속할 트랜잭션
        entry_timestamp: 항목 타임스탬프 (기본: 현재 UTC)
    """

    ledger_transaction: LedgerTransaction
    entry_timestamp: datetime = field(default_factory=now_utc)

    def _base(self, account: LedgerAccount) -> dict[str, Any]:
        return {
            "ledger_transaction_id": self.ledger_transaction.id,
            "ledger_account_id": account.id,
            "organization_id": self.ledger_transaction.organization_id,
            "subscription_id": self.ledger_transaction.subscription_id,
            "livemode": self.ledger_transaction.livemode,
            "entry_timestamp": self.entry_timestamp,
            "usage_meter_id": account.usage_meter_id,
        }

    def credit_grant_recognized(
        self,
        account: LedgerAccount,
        usage_credit: UsageCredit,
        metadata: dict[str, Any] | None = None,
        description: str | None = None,
    ) -> LedgerEntryInsert:
        """크레딧 지급 인식 항목 (Credit, posted)

        금액은 issued_amount, billing_period_id는 크레딧 값을 그대로 사용.
        """
        return LedgerEntryInsert(
            **self._base(account),
            status=LedgerEntryStatus.POSTED,
            direction=LedgerEntryDirection.CREDIT,
            entry_type=LedgerEntryType.CREDIT_GRANT_RECOGNIZED,
            amount=usage_credit.issued_amount,
            description=description,
            metadata=metadata if metadata is not None else {},
            billing_period_id=usage_credit.billing_period_id,
            source_usage_credit_id=usage_credit.id,
        )

    def credit_grant_expired(
        self,
        account: LedgerAccount,
        balance: UsageCreditBalance,
    ) -> LedgerEntryInsert:
        """크레딧 만료 항목 (Debit, posted)

        금액은 만료 시점의 남은 잔액.
        """
        if balance.ledger_account_id != account.id:
            raise ValidationError(
                f"usage credit {balance.usage_credit_id} balance belongs to "
                f"ledger account {balance.ledger_account_id}, not {account.id}"
            )

        return LedgerEntryInsert(
            **self._base(account),
            status=LedgerEntryStatus.POSTED,
            direction=LedgerEntryDirection.DEBIT,
            entry_type=LedgerEntryType.CREDIT_GRANT_EXPIRED,
            amount=balance.balance,
            description=f"Credit grant expired for usage credit {balance.usage_credit_id}",
            metadata={},
            source_usage_credit_id=balance.usage_credit_id,
        )

    def credit_balance_adjusted(
        self,
        account: LedgerAccount,
        usage_credit: UsageCredit,
        adjustment_id: str,
        amount: int,
        reason: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> LedgerEntryInsert:
        """관리자 잔액 조정 항목 (Debit, posted)

        조정 대상 크레딧을 source_usage_credit_id로 함께 기록하므로
        크레딧별 잔액(이후 만료 금액 포함)이 조정 수량만큼 줄어듦.
        """
        return LedgerEntryInsert(
            **self._base(account),
            status=LedgerEntryStatus.POSTED,
            direction=LedgerEntryDirection.DEBIT,
            entry_type=LedgerEntryType.CREDIT_BALANCE_ADJUSTED,
            amount=amount,
            description=f"Adjustment {adjustment_id} for credit {usage_credit.id}. Reason: {reason}",
            metadata=metadata if metadata is not None else {},
            source_credit_balance_adjustment_id=adjustment_id,
            source_usage_credit_id=usage_credit.id,
        )
