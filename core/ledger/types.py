"""
Ledger 타입 정의

LedgerEntryType 등 Ledger 시스템에서 사용하는 Enum 정의
"""

from enum import Enum


class LedgerTransactionType(str, Enum):
    """Ledger 트랜잭션 유형

    하나의 비즈니스 이벤트(청구 기간 전환, 사용량 이벤트 배치 등)를 분류.
    str을 상속하여 JSON 직렬화 가능.
    """

    USAGE_EVENT_PROCESSED = "usage_event_processed"
    CREDIT_GRANT_RECOGNIZED = "credit_grant_recognized"  # 프로모션/관리자 지급
    BILLING_PERIOD_TRANSITION = "billing_period_transition"
    ADMIN_CREDIT_ADJUSTED = "admin_credit_adjusted"
    CREDIT_GRANT_EXPIRED = "credit_grant_expired"
    PAYMENT_REFUNDED = "payment_refunded"
    BILLING_RECALCULATED = "billing_recalculated"
    SETTLE_INVOICE_USAGE_COSTS = "settle_invoice_usage_costs"


class LedgerEntryType(str, Enum):
    """Ledger 항목 유형 (판별자)

    항목 유형에 따라 채워야 하는 source_* 컬럼이 결정됨 (SOURCE_COLUMN_BY_ENTRY_TYPE).
    """

    USAGE_COST = "usage_cost"
    PAYMENT_INITIATED = "payment_initiated"
    PAYMENT_FAILED = "payment_failed"
    CREDIT_GRANT_RECOGNIZED = "credit_grant_recognized"
    CREDIT_BALANCE_ADJUSTED = "credit_balance_adjusted"
    CREDIT_GRANT_EXPIRED = "credit_grant_expired"
    PAYMENT_REFUNDED = "payment_refunded"
    BILLING_ADJUSTMENT = "billing_adjustment"
    USAGE_CREDIT_APPLICATION_DEBIT_FROM_CREDIT_BALANCE = (
        "usage_credit_application_debit_from_credit_balance"
    )
    USAGE_CREDIT_APPLICATION_CREDIT_TOWARDS_USAGE_COST = (
        "usage_credit_application_credit_towards_usage_cost"
    )


class LedgerEntryStatus(str, Enum):
    """Ledger 항목 상태"""

    PENDING = "pending"
    POSTED = "posted"


class LedgerEntryDirection(str, Enum):
    """항목 방향 (차변/대변)

    크레딧 잔액 관점: CREDIT 증가, DEBIT 감소
    """

    DEBIT = "debit"
    CREDIT = "credit"


class UsageCreditStatus(str, Enum):
    """UsageCredit 상태"""

    PENDING = "pending"
    POSTED = "posted"


class UsageCreditType(str, Enum):
    """UsageCredit 유형"""

    GRANT = "grant"  # 구독 라이프사이클 이벤트로 지급
    PAYMENT = "payment"  # 결제로 지급


class UsageCreditSourceReferenceType(str, Enum):
    """UsageCredit 출처 유형 (멱등성 키의 일부)"""

    INVOICE_SETTLEMENT = "invoice_settlement"
    MANUAL_ADJUSTMENT = "manual_adjustment"
    BILLING_PERIOD_TRANSITION = "billing_period_transition"


class FeatureUsageGrantFrequency(str, Enum):
    """엔타이틀먼트 지급 주기"""

    ONCE = "once"
    EVERY_BILLING_PERIOD = "every_billing_period"


class BalanceType(str, Enum):
    """계정 잔액 집계 유형

    - POSTED: 확정 credit - 확정 debit
    - PENDING: 확정 + 미폐기 pending 항목 모두 (credit - debit)
    - AVAILABLE: 확정 credit - 확정 debit - 미폐기 pending debit
    """

    POSTED = "posted"
    PENDING = "pending"
    AVAILABLE = "available"


# source 컬럼 목록 (상호 배타적, 항목 유형별로 필수 컬럼이 정해짐)
SOURCE_COLUMNS: tuple[str, ...] = (
    "source_usage_event_id",
    "source_usage_credit_id",
    "source_credit_application_id",
    "source_credit_balance_adjustment_id",
)


# 항목 유형 → 반드시 채워져야 하는 source 컬럼
SOURCE_COLUMN_BY_ENTRY_TYPE: dict[LedgerEntryType, str] = {
    LedgerEntryType.USAGE_COST: "source_usage_event_id",
    LedgerEntryType.CREDIT_GRANT_RECOGNIZED: "source_usage_credit_id",
    LedgerEntryType.CREDIT_GRANT_EXPIRED: "source_usage_credit_id",
    LedgerEntryType.CREDIT_BALANCE_ADJUSTED: "source_credit_balance_adjustment_id",
    LedgerEntryType.USAGE_CREDIT_APPLICATION_DEBIT_FROM_CREDIT_BALANCE: (
        "source_credit_application_id"
    ),
    LedgerEntryType.USAGE_CREDIT_APPLICATION_CREDIT_TOWARDS_USAGE_COST: (
        "source_credit_application_id"
    ),
}


# 주 source 컬럼 외에 함께 채울 수 있는 컬럼 (소비/조정 대상 크레딧 추적용)
ALLOWED_SECONDARY_SOURCE_COLUMNS: dict[LedgerEntryType, frozenset[str]] = {
    LedgerEntryType.CREDIT_BALANCE_ADJUSTED: frozenset({"source_usage_credit_id"}),
    LedgerEntryType.USAGE_CREDIT_APPLICATION_DEBIT_FROM_CREDIT_BALANCE: frozenset(
        {"source_usage_credit_id", "source_usage_event_id"}
    ),
    LedgerEntryType.USAGE_CREDIT_APPLICATION_CREDIT_TOWARDS_USAGE_COST: frozenset(
        {"source_usage_credit_id", "source_usage_event_id"}
    ),
}
