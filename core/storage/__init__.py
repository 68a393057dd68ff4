"""
스토리지 모듈

Ledger 엔진이 참조하는 구독/청구 기간/사용량 미터 저장소
"""

from core.storage.subscription_store import SubscriptionStore

__all__ = [
    "SubscriptionStore",
]
