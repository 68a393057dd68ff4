"""
구독/청구 도메인 모델 (Pydantic)

Ledger 엔진이 읽기만 하는 외부 레코드.
Command 페이로드의 일부로 검증되므로 Pydantic 모델로 정의.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.ledger.types import FeatureUsageGrantFrequency


class Subscription(BaseModel):
    """구독"""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="구독 ID")
    organization_id: str = Field(..., min_length=1, description="조직 ID")
    livemode: bool = Field(..., description="livemode 여부")
    renews: bool = Field(default=True, description="기간 갱신 여부 (False = non-renewing)")


class BillingPeriod(BaseModel):
    """청구 기간 [start_date, end_date]"""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="청구 기간 ID")
    subscription_id: str = Field(..., min_length=1, description="구독 ID")
    start_date: datetime = Field(..., description="기간 시작")
    end_date: datetime = Field(..., description="기간 종료")
    livemode: bool = Field(default=True, description="livemode 여부")

    @model_validator(mode="after")
    def _check_range(self) -> "BillingPeriod":
        if self.end_date <= self.start_date:
            raise ValueError(
                f"billing period {self.id}: end_date must be after start_date"
            )
        return self


class UsageMeter(BaseModel):
    """사용량 미터"""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    organization_id: str = Field(..., min_length=1)
    name: str = Field(default="")
    livemode: bool = Field(default=True)


class SubscriptionFeatureItem(BaseModel):
    """구독에 부여된 사용량 크레딧 엔타이틀먼트

    id는 안정적인 식별자이며 UsageCredit.source_reference_id로 사용됨.
    usage_meter_id가 없는 항목(비계량 기능)은 크레딧 지급 대상이 아님.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="안정적 식별자 (멱등성 키)")
    usage_meter_id: str | None = Field(default=None, description="사용량 미터 ID")
    amount: int = Field(..., ge=0, description="지급 수량 (최소 단위)")
    renewal_frequency: FeatureUsageGrantFrequency = Field(..., description="지급 주기")
