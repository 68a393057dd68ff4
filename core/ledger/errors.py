"""
Ledger 예외 정의

호출자가 복구 가능한 도메인 실패만 여기에 정의.
예상치 못한 DB 오류는 그대로 전파되어 트랜잭션을 중단시킴.
"""

from typing import Iterable


class LedgerError(Exception):
    """Ledger 도메인 예외 기본 클래스"""

    pass


class NotFoundError(LedgerError):
    """참조한 레코드(구독, 청구 기간, 사용량 미터, 계정 등)가 없음

    Args:
        resource: 레코드 종류 (예: "subscription")
        ids: 찾지 못한 ID 목록
    """

    def __init__(self, resource: str, ids: str | Iterable[str]):
        self.resource = resource
        self.ids = [ids] if isinstance(ids, str) else sorted(ids)
        super().__init__(f"{resource} not found: {', '.join(self.ids)}")


class ValidationError(LedgerError):
    """Command 페이로드 또는 Insert 데이터 형식 오류"""

    pass
