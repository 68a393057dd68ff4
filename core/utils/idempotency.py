"""
Idempotency 유틸리티

UsageCredit 멱등성 키 생성 기능 제공
규칙: {source_reference_type}:{source_reference_id}:{billing_period_id 또는 '-'}

DB의 UNIQUE 인덱스(source_reference_id, source_reference_type, billing_period_id)와
같은 조합이며, 로그/중복 판별용 문자열 표현으로 사용.
"""

# billing_period_id가 없는 (non-renewing) 크레딧의 자리표시자
NO_BILLING_PERIOD: str = "-"


def make_usage_credit_idempotency_key(
    source_reference_type: str,
    source_reference_id: str,
    billing_period_id: str | None,
) -> str:
    """결정적 UsageCredit 멱등성 키 생성

    Args:
        source_reference_type: 크레딧 출처 유형 (예: billing_period_transition)
        source_reference_id: 출처의 고유 ID (feature item ID 등)
        billing_period_id: 청구 기간 ID (non-renewing이면 None)

    Returns:
        멱등성 키 문자열

    Example:
        >>> make_usage_credit_idempotency_key("billing_period_transition", "sif_1", "bp_1")
        'billing_period_transition:sif_1:bp_1'
        >>> make_usage_credit_idempotency_key("billing_period_transition", "sif_1", None)
        'billing_period_transition:sif_1:-'
    """
    if not source_reference_type:
        raise ValueError("source_reference_type은 비어 있을 수 없습니다")
    if not source_reference_id:
        raise ValueError("source_reference_id는 비어 있을 수 없습니다")

    period = billing_period_id or NO_BILLING_PERIOD
    return f"{source_reference_type}:{source_reference_id}:{period}"
