"""
타입 정의 모듈

Enum 등 애플리케이션 공통 타입 정의
모든 Enum은 str을 상속하여 문자열 직렬화 가능
"""

from enum import Enum


class LedgerMode(str, Enum):
    """운영 모드 (livemode / testmode)

    모든 Ledger 레코드의 livemode 플래그를 결정.
    """

    LIVEMODE = "livemode"
    TESTMODE = "testmode"

    @property
    def livemode(self) -> bool:
        """레코드에 기록할 livemode 값"""
        return self is LedgerMode.LIVEMODE
