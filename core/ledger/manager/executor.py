"""
Ledger Manager

Ledger Command를 받아 하나의 DB 트랜잭션에서 실행.
Command 타입별 처리 함수로 위임하고 결과(LedgerCommandResult) 반환.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from core.domain.commands import (
    AdminCreditAdjustedLedgerCommand,
    BillingPeriodTransitionLedgerCommand,
    CreditGrantRecognizedLedgerCommand,
    parse_ledger_command,
)
from core.ledger.errors import LedgerError, ValidationError
from core.ledger.manager.admin_credit_adjusted import (
    process_admin_credit_adjusted_ledger_command,
)
from core.ledger.manager.billing_period_transition import (
    process_billing_period_transition_ledger_command,
)
from core.ledger.manager.credit_grant_recognized import (
    process_credit_grant_recognized_ledger_command,
)
from core.ledger.manager.results import LedgerCommandResult

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


LedgerCommandType = (
    BillingPeriodTransitionLedgerCommand
    | CreditGrantRecognizedLedgerCommand
    | AdminCreditAdjustedLedgerCommand
)


async def process_ledger_command(
    command: LedgerCommandType,
    db: SQLiteAdapter,
) -> LedgerCommandResult:
    """Command 타입별 처리 함수로 위임

    트랜잭션을 직접 관리하는 호출자용. 커밋하지 않음.

    Raises:
        ValidationError: 지원하지 않는 Command
    """
    match command:
        case BillingPeriodTransitionLedgerCommand():
            return await process_billing_period_transition_ledger_command(command, db)
        case CreditGrantRecognizedLedgerCommand():
            return await process_credit_grant_recognized_ledger_command(command, db)
        case AdminCreditAdjustedLedgerCommand():
            return await process_admin_credit_adjusted_ledger_command(command, db)
        case _:
            raise ValidationError(f"Unsupported ledger command: {type(command).__name__}")


class LedgerManager:
    """Ledger Command 실행기

    Command마다 BEGIN IMMEDIATE 트랜잭션을 열어 실행.
    다른 연결의 writer는 SQLite write lock에서, 같은 어댑터를 공유하는 호출은
    어댑터 lock에서 대기하므로 같은 구독에 대한 전환이 동시에 들어와도 순차 처리됨.

    - 성공: 커밋 후 결과 반환
    - LedgerError (NotFound/Validation): 롤백 후 실패 결과 반환
    - 그 외 예외 (DB 오류 등): 롤백 후 그대로 전파

    Args:
        db: 연결된 SQLite 어댑터 (열린 트랜잭션이 없어야 함)

    사용 예시:
    ```python
    manager = LedgerManager(db)

    result = await manager.process(command)
    if not result.success:
        logger.warning(result.error)
    ```
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

        # 통계
        self._process_count = 0
        self._success_count = 0
        self._failed_count = 0

    async def process(
        self,
        command: LedgerCommandType | dict[str, Any],
    ) -> LedgerCommandResult:
        """Command 실행

        Args:
            command: Command 인스턴스 또는 딕셔너리 (큐 메시지 등)

        Returns:
            LedgerCommandResult
        """
        self._process_count += 1

        try:
            if isinstance(command, dict):
                command = parse_ledger_command(command)

            async with self.db.transaction(immediate=True) as db:
                result = await process_ledger_command(command, db)

        except LedgerError as e:
            self._failed_count += 1
            logger.warning(
                f"Ledger command failed: {e}",
                extra={
                    "command_type": getattr(command, "type", None),
                    "subscription_id": getattr(command, "subscription_id", None),
                    "error": str(e),
                },
            )
            return LedgerCommandResult.failed(e)

        except Exception as e:
            self._failed_count += 1
            logger.error(
                f"Ledger command error: {e}",
                extra={
                    "command_type": getattr(command, "type", None),
                    "subscription_id": getattr(command, "subscription_id", None),
                },
            )
            raise

        self._success_count += 1
        logger.debug(
            f"Ledger command executed: {command.type}",
            extra={"subscription_id": command.subscription_id, "result": result.to_dict()},
        )
        return result

    def get_stats(self) -> dict[str, Any]:
        """통계 반환"""
        return {
            "process_count": self._process_count,
            "success_count": self._success_count,
            "failed_count": self._failed_count,
        }
