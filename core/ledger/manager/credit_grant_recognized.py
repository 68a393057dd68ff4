"""
크레딧 지급 인식 Ledger Command

이미 생성된 UsageCredit(프로모션/관리자 지급 등)을 해당 미터 계정에 Credit 항목으로 기록.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.domain.commands import CreditGrantRecognizedLedgerCommand
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


async def process_credit_grant_recognized_ledger_command(
    command: CreditGrantRecognizedLedgerCommand,
    db: SQLiteAdapter,
) -> LedgerCommandResult:
    """크레딧 지급 인식 처리

    Raises:
        NotFoundError: 크레딧 또는 해당 미터의 계정이 없음
        ValidationError: 다른 구독의 크레딧이거나 이미 인식된 크레딧
    """
    usage_credit = await UsageCreditStore(db).select_usage_credit_by_id(
        command.payload.usage_credit_id
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
    recognized = await store.select_ledger_entries(
        source_usage_credit_id=usage_credit.id,
        entry_type=LedgerEntryType.CREDIT_GRANT_RECOGNIZED,
        include_discarded=False,
    )
    if recognized:
        raise ValidationError(f"usage credit {usage_credit.id} is already recognized")

    ledger_transaction = await store.insert_ledger_transaction(
        LedgerTransactionInsert(
            organization_id=command.organization_id,
            subscription_id=command.subscription_id,
            type=LedgerTransactionType.CREDIT_GRANT_RECOGNIZED,
            livemode=command.livemode,
            initiating_source_type=command.type,
            initiating_source_id=usage_credit.id,
            description=command.transaction_description,
            metadata=command.transaction_metadata,
        )
    )

    builder = LedgerEntryBuilder(ledger_transaction)
    ledger_entries = await store.bulk_insert_ledger_entries(
        [
            builder.credit_grant_recognized(
                account,
                usage_credit,
                metadata={"ledger_command_type": command.type},
            )
        ]
    )

    logger.info(
        "크레딧 지급 인식",
        extra={
            "subscription_id": command.subscription_id,
            "usage_credit_id": usage_credit.id,
            "amount": usage_credit.issued_amount,
        },
    )
    return LedgerCommandResult(
        ledger_transaction=ledger_transaction,
        ledger_entries=ledger_entries,
    )
