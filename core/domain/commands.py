"""
Ledger Command 도메인 모델

Ledger에 대한 모든 쓰기 요청은 Command로 표현됨.
Command는 idempotent해야 하며, 실행 결과는 하나의 LedgerTransaction으로 기록됨.

페이로드는 type 필드로 구분되는 tagged union.
standard 전용 필드(청구 기간)는 non_renewing 페이로드에 존재하지 않음.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from core.domain.billing import BillingPeriod, Subscription, SubscriptionFeatureItem
from core.ledger.errors import ValidationError
from core.ledger.types import LedgerTransactionType


class StandardTransitionPayload(BaseModel):
    """갱신형 구독의 청구 기간 전환

    previous_billing_period가 None이면 최초 지급 (Once 항목 포함).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["standard"] = "standard"
    subscription: Subscription
    previous_billing_period: BillingPeriod | None = None
    new_billing_period: BillingPeriod
    subscription_feature_items: list[SubscriptionFeatureItem] = Field(default_factory=list)


class NonRenewingTransitionPayload(BaseModel):
    """비갱신 구독의 크레딧 지급

    청구 기간 경계가 없으므로 만료되지 않는 크레딧만 지급.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["non_renewing"] = "non_renewing"
    subscription: Subscription
    subscription_feature_items: list[SubscriptionFeatureItem] = Field(default_factory=list)


BillingPeriodTransitionPayload = Annotated[
    Union[StandardTransitionPayload, NonRenewingTransitionPayload],
    Field(discriminator="type"),
]


class _LedgerCommandBase(BaseModel):
    """모든 Ledger Command 공통 필드"""

    model_config = ConfigDict(frozen=True)

    organization_id: str = Field(..., min_length=1)
    subscription_id: str = Field(..., min_length=1)
    livemode: bool
    transaction_description: str | None = None
    transaction_metadata: dict[str, Any] | None = None

    @property
    def transaction_type(self) -> LedgerTransactionType:
        return LedgerTransactionType(self.type)  # type: ignore[attr-defined]


class BillingPeriodTransitionLedgerCommand(_LedgerCommandBase):
    """청구 기간 전환 Command

    엔타이틀먼트 크레딧 지급 + 만료 크레딧 소멸을 하나의 트랜잭션으로 처리.
    """

    type: Literal["billing_period_transition"] = "billing_period_transition"
    payload: BillingPeriodTransitionPayload


class CreditGrantRecognizedPayload(BaseModel):
    """이미 생성된 UsageCredit (프로모션/관리자 지급)의 인식"""

    model_config = ConfigDict(frozen=True, extra="forbid")

    usage_credit_id: str = Field(..., min_length=1)


class CreditGrantRecognizedLedgerCommand(_LedgerCommandBase):
    """크레딧 지급 인식 Command"""

    type: Literal["credit_grant_recognized"] = "credit_grant_recognized"
    payload: CreditGrantRecognizedPayload


class CreditBalanceAdjustment(BaseModel):
    """관리자 크레딧 잔액 조정 (특정 크레딧의 남은 잔액 차감)

    id는 조정 건의 안정적인 식별자이며 항목의 source_credit_balance_adjustment_id로 기록됨.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=1, description="조정 ID")
    adjusted_usage_credit_id: str = Field(..., min_length=1, description="조정 대상 크레딧 ID")
    amount_adjusted: int = Field(..., gt=0, description="차감 수량")
    reason: str = Field(default="", description="조정 사유")


class AdminCreditAdjustedPayload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    usage_credit_balance_adjustment: CreditBalanceAdjustment


class AdminCreditAdjustedLedgerCommand(_LedgerCommandBase):
    """관리자 크레딧 조정 Command"""

    type: Literal["admin_credit_adjusted"] = "admin_credit_adjusted"
    payload: AdminCreditAdjustedPayload


LedgerCommand = Annotated[
    Union[
        BillingPeriodTransitionLedgerCommand,
        CreditGrantRecognizedLedgerCommand,
        AdminCreditAdjustedLedgerCommand,
    ],
    Field(discriminator="type"),
]

_ledger_command_adapter: TypeAdapter[Any] = TypeAdapter(LedgerCommand)


def parse_ledger_command(
    data: dict[str, Any],
) -> BillingPeriodTransitionLedgerCommand | CreditGrantRecognizedLedgerCommand | AdminCreditAdjustedLedgerCommand:
    """딕셔너리(큐 메시지 등)에서 Command 생성

    Args:
        data: Command 데이터 (type 필드로 Command 종류 구분)

    Returns:
        검증된 Command 인스턴스

    Raises:
        ValidationError: 형식이 잘못된 경우 (예: standard 페이로드에 new_billing_period 누락)
    """
    try:
        return _ledger_command_adapter.validate_python(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid ledger command: {e}") from e
