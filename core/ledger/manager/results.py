"""
Ledger Command 실행 결과
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from core.ledger.errors import LedgerError
from core.ledger.models import LedgerEntry, LedgerTransaction, UsageCredit


@dataclass(frozen=True)
class GrantResult:
    """크레딧 지급 단계 결과 (이번 실행에서 새로 생성된 것만)"""

    usage_credits: list[UsageCredit] = field(default_factory=list)
    ledger_entries: list[LedgerEntry] = field(default_factory=list)


@dataclass(frozen=True)
class ExpireResult:
    """크레딧 만료 단계 결과"""

    ledger_entries: list[LedgerEntry] = field(default_factory=list)


@dataclass(frozen=True)
class LedgerCommandResult:
    """Command 처리 결과

    success=False면 ledger_transaction은 None이고 error에 원인이 담김.
    (트랜잭션은 롤백되어 아무것도 기록되지 않음)
    """

    ledger_transaction: LedgerTransaction | None
    ledger_entries: list[LedgerEntry] = field(default_factory=list)
    usage_credits: list[UsageCredit] = field(default_factory=list)
    success: bool = True
    error: LedgerError | None = None

    @classmethod
    def failed(cls, error: LedgerError) -> LedgerCommandResult:
        return cls(ledger_transaction=None, success=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        """로그/응답용 요약"""
        return {
            "success": self.success,
            "ledger_transaction_id": self.ledger_transaction.id if self.ledger_transaction else None,
            "entry_count": len(self.ledger_entries),
            "usage_credit_count": len(self.usage_credits),
            "error": str(self.error) if self.error else None,
        }
