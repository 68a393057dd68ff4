"""
타임존 유틸리티

내부 저장: UTC 원칙 준수를 위한 헬퍼 함수.
DB에는 고정 포맷의 ISO 8601 문자열로 저장하여 문자열 비교 = 시간 비교가 되도록 함.
"""

from datetime import datetime, timezone

# DB 저장 포맷 (마이크로초까지 고정 자릿수, UTC 오프셋 포함)
DB_TIMESPEC = "microseconds"


def now_utc() -> datetime:
    """현재 UTC 시간 반환 (타임존 명시)

    datetime.now(timezone.utc)의 축약형.

    Returns:
        현재 UTC 시간 (tzinfo=timezone.utc)
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """datetime을 UTC로 변환

    Args:
        dt: datetime 객체 (naive면 UTC로 간주)

    Returns:
        UTC 타임존의 datetime
    """
    if dt.tzinfo is None:
        # naive datetime은 UTC로 간주
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_db_ts(dt: datetime | None) -> str | None:
    """datetime을 DB 저장용 문자열로 변환

    모든 값이 같은 자릿수/오프셋을 가지므로 SQL에서 문자열 비교로
    시간 순서 비교가 가능.

    Example:
        >>> to_db_ts(datetime(2024, 7, 1, tzinfo=timezone.utc))
        '2024-07-01T00:00:00.000000+00:00'
    """
    if dt is None:
        return None
    return to_utc(dt).isoformat(timespec=DB_TIMESPEC)


def from_db_ts(value: str | None) -> datetime | None:
    """DB 문자열을 UTC datetime으로 변환"""
    if value is None:
        return None
    return to_utc(datetime.fromisoformat(value))
