"""
core/utils/idempotency.py 테스트

UsageCredit 멱등성 키 생성 테스트
"""

import pytest

from core.utils.idempotency import (
    NO_BILLING_PERIOD,
    make_usage_credit_idempotency_key,
)


class TestMakeUsageCreditIdempotencyKey:
    """make_usage_credit_idempotency_key 테스트"""

    def test_with_billing_period(self) -> None:
        """청구 기간 포함"""
        key = make_usage_credit_idempotency_key("billing_period_transition", "sif_1", "bp_1")

        assert key == "billing_period_transition:sif_1:bp_1"

    def test_without_billing_period(self) -> None:
        """non-renewing (청구 기간 없음)"""
        key = make_usage_credit_idempotency_key("billing_period_transition", "sif_1", None)

        assert key == f"billing_period_transition:sif_1:{NO_BILLING_PERIOD}"

    def test_deterministic(self) -> None:
        """같은 입력은 같은 키"""
        assert make_usage_credit_idempotency_key("a", "b", "c") == make_usage_credit_idempotency_key("a", "b", "c")

    def test_different_period_different_key(self) -> None:
        """청구 기간이 다르면 다른 키"""
        assert make_usage_credit_idempotency_key("a", "b", "bp_1") != make_usage_credit_idempotency_key("a", "b", "bp_2")

    @pytest.mark.parametrize("source_type, source_id", [("", "sif_1"), ("billing_period_transition", "")])
    def test_empty_parts(self, source_type: str, source_id: str) -> None:
        """빈 값은 ValueError"""
        with pytest.raises(ValueError):
            make_usage_credit_idempotency_key(source_type, source_id, "bp_1")
