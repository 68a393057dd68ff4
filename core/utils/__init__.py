"""
유틸리티 패키지

멱등성 키 생성, 타임존 처리 등 공통 유틸리티
"""

from core.utils.timezone import (
    from_db_ts,
    now_utc,
    to_db_ts,
    to_utc,
)

__all__ = [
    "from_db_ts",
    "now_utc",
    "to_db_ts",
    "to_utc",
]
