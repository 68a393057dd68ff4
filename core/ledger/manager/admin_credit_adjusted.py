"""
관리자 크레딧 조정 Ledger Command

특정 UsageCredit의 남은 잔액을 차감하는 Debit 항목(credit_balance_adjusted) 기록.
조정 대상 크레딧을 함께 기록하므로 이후 만료 단계는 조정 후 잔액만 소멸시킴.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.domain.commands import AdminCreditAdjustedLedgerCommand
from core.ledger.accounts import LedgerAccountStore
from core.ledger.credits import UsageCreditStore
from core.ledger.entry_builder import LedgerEntryBuilder
from core.ledger.errors import NotFoundError, ValidationError
from core.ledger.manager.results import LedgerCommandResult
from core.ledger.models import LedgerTransactionInsert
from core.ledger.store import LedgerStore
from core.ledger.types import LedgerEntryType, LedgerTransactionType

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


async def process_admin_credit_adjusted_ledger_command(
    command: AdminCreditAdjustedLedgerCommand,
    db: SQLiteAdapter,
) -> LedgerCommandResult:
    """관리자 크레딧 조정 처리

    Raises:
        NotFoundError: 크레딧 또는 해당 미터의 계정이 없음
        ValidationError: 다른 구독의 크레딧, 이미 기록된 조정, 남은 잔액 초과
    """
    adjustment = command.payload.usage_credit_balance_adjustment

    usage_credit = await UsageCreditStore(db).select_usage_credit_by_id(
        adjustment.adjusted_usage_credit_id
    )
    if usage_credit.subscription_id != command.subscription_id:
        raise ValidationError(
            f"usage credit {usage_credit.id} belongs to subscription {usage_credit.subscription_id}"
        )

    accounts = await LedgerAccountStore(db).select_ledger_accounts(
        command.subscription_id,
        usage_meter_ids=[usage_credit.usage_meter_id],
    )
    if not accounts:
        raise NotFoundError(
            "ledger_account",
            f"{command.subscription_id}/{usage_credit.usage_meter_id}",
        )
    account = accounts[0]

    store = LedgerStore(db)
    applied = await store.select_ledger_entries(
        source_credit_balance_adjustment_id=adjustment.id,
        entry_type=LedgerEntryType.CREDIT_BALANCE_ADJUSTED,
        include_discarded=False,
    )
    if applied:
        raise ValidationError(f"credit balance adjustment {adjustment.id} is already recorded")

    balances = await store.aggregate_available_balance_for_usage_credit(
        [account.id],
        usage_credit_id=usage_credit.id,
    )
    remaining = sum(balance.balance for balance in balances)
    if adjustment.amount_adjusted > remaining:
        raise ValidationError(
            f"adjustment {adjustment.id} of {adjustment.amount_adjusted} exceeds "
            f"remaining balance {remaining} of usage credit {usage_credit.id}"
        )

    ledger_transaction = await store.insert_ledger_transaction(
        LedgerTransactionInsert(
            organization_id=command.organization_id,
            subscription_id=command.subscription_id,
            type=LedgerTransactionType.ADMIN_CREDIT_ADJUSTED,
            livemode=command.livemode,
            initiating_source_type=command.type,
            initiating_source_id=adjustment.id,
            description=command.transaction_description,
            metadata=command.transaction_metadata,
        )
    )

    ledger_entries = await store.bulk_insert_ledger_entries(
        [
            LedgerEntryBuilder(ledger_transaction).credit_balance_adjusted(
                account,
                usage_credit,
                adjustment.id,
                adjustment.amount_adjusted,
                reason=adjustment.reason,
                metadata={"ledger_command_type": command.type},
            )
        ]
    )

    logger.info(
        "크레딧 잔액 조정",
        extra={
            "subscription_id": command.subscription_id,
            "usage_credit_id": usage_credit.id,
            "adjustment_id": adjustment.id,
            "amount": adjustment.amount_adjusted,
        },
    )
    return LedgerCommandResult(
        ledger_transaction=ledger_transaction,
        ledger_entries=ledger_entries,
    )
