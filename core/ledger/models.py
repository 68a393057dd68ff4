"""
Ledger 레코드 모델

DB 행과 1:1 대응하는 불변 dataclass.
*Insert 클래스는 ID가 발급되기 전의 삽입 데이터.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from core.ledger.types import (
    LedgerEntryDirection,
    LedgerEntryStatus,
    LedgerEntryType,
    LedgerTransactionType,
    UsageCreditSourceReferenceType,
    UsageCreditStatus,
    UsageCreditType,
)
from core.utils.idempotency import make_usage_credit_idempotency_key


def new_id() -> str:
    """레코드 ID 발급 (UUID4 문자열)"""
    return str(uuid4())


@dataclass(frozen=True)
class LedgerAccount:
    """구독 x 사용량 미터 당 하나의 잔액 버킷

    잔액은 저장하지 않음. 항상 항목 이력에서 집계.
    """

    id: str
    organization_id: str
    subscription_id: str
    usage_meter_id: str | None
    livemode: bool
    created_at: datetime | None = None


@dataclass(frozen=True)
class LedgerTransactionInsert:
    """LedgerTransaction 삽입 데이터"""

    organization_id: str
    subscription_id: str
    type: LedgerTransactionType
    livemode: bool
    initiating_source_type: str
    initiating_source_id: str
    description: str | None = None
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class LedgerTransaction:
    """비즈니스 이벤트 하나에 대한 헤더 (생성 후 불변)"""

    id: str
    organization_id: str
    subscription_id: str
    type: LedgerTransactionType
    livemode: bool
    initiating_source_type: str
    initiating_source_id: str
    description: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class LedgerEntryInsert:
    """LedgerEntry 삽입 데이터

    source_* 컬럼은 상호 배타적이며 entry_type에 따라 필수 컬럼이 정해짐.
    """

    ledger_transaction_id: str
    ledger_account_id: str
    organization_id: str
    subscription_id: str
    livemode: bool
    status: LedgerEntryStatus
    direction: LedgerEntryDirection
    entry_type: LedgerEntryType
    amount: int
    entry_timestamp: datetime
    description: str | None = None
    metadata: dict[str, Any] | None = None
    billing_period_id: str | None = None
    usage_meter_id: str | None = None
    discarded_at: datetime | None = None

    # source 컬럼
    source_usage_event_id: str | None = None
    source_usage_credit_id: str | None = None
    source_credit_application_id: str | None = None
    source_credit_balance_adjustment_id: str | None = None


@dataclass(frozen=True)
class LedgerEntry(LedgerEntryInsert):
    """Append-only 원장 항목

    삽입 이후 discarded_at 설정 외에는 변경되지 않음.
    """

    id: str = field(default_factory=new_id)

    @classmethod
    def from_insert(cls, entry_id: str, insert: LedgerEntryInsert) -> LedgerEntry:
        return cls(id=entry_id, **asdict(insert))

    @property
    def signed_amount(self) -> int:
        """크레딧 잔액 관점 부호 적용 금액 (CREDIT +, DEBIT -)"""
        if self.direction == LedgerEntryDirection.CREDIT:
            return self.amount
        return -self.amount


@dataclass(frozen=True)
class UsageCreditInsert:
    """UsageCredit 삽입 데이터"""

    organization_id: str
    subscription_id: str
    usage_meter_id: str
    livemode: bool
    issued_amount: int
    issued_at: datetime
    source_reference_type: UsageCreditSourceReferenceType
    source_reference_id: str
    status: UsageCreditStatus = UsageCreditStatus.POSTED
    credit_type: UsageCreditType = UsageCreditType.GRANT
    expires_at: datetime | None = None
    billing_period_id: str | None = None
    payment_id: str | None = None
    notes: str | None = None
    metadata: dict[str, Any] | None = None

    @property
    def idempotency_key(self) -> str:
        """UNIQUE 인덱스와 같은 조합의 멱등성 키"""
        return make_usage_credit_idempotency_key(
            self.source_reference_type.value,
            self.source_reference_id,
            self.billing_period_id,
        )


@dataclass(frozen=True)
class UsageCredit(UsageCreditInsert):
    """크레딧 지급 한 건 (생성 후 불변)"""

    id: str = field(default_factory=new_id)

    @classmethod
    def from_insert(cls, credit_id: str, insert: UsageCreditInsert) -> UsageCredit:
        return cls(id=credit_id, **asdict(insert))


@dataclass(frozen=True)
class UsageCreditBalance:
    """크레딧별 잔여 잔액 집계 결과"""

    ledger_account_id: str
    usage_credit_id: str
    balance: int
    expires_at: datetime | None
