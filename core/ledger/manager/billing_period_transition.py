"""
청구 기간 전환 Ledger Command

구독이 새 청구 기간으로 넘어갈 때 (또는 비갱신 구독에 크레딧을 지급할 때):
1. 엔타이틀먼트에 따라 새 UsageCredit 지급 (credit_grant_recognized, Credit)
2. 기간이 지난 크레딧의 남은 잔액 소멸 (credit_grant_expired, Debit)

두 단계 모두 호출자가 연 하나의 DB 트랜잭션 안에서 실행되며 커밋하지 않음.
순서는 항상 지급 → 만료.

멱등성:
- 지급: UsageCredit UNIQUE 키 (feature item ID, 출처 유형, 청구 기간)
- 만료: 잔액 기반 계산 (이미 만료된 크레딧은 잔액 0) + 크레딧당 만료 항목 1건 UNIQUE 인덱스
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.domain.commands import (
    BillingPeriodTransitionLedgerCommand,
    NonRenewingTransitionPayload,
    StandardTransitionPayload,
)
from core.domain.billing import BillingPeriod, Subscription, SubscriptionFeatureItem
from core.ledger.accounts import LedgerAccountStore
from core.ledger.credits import UsageCreditStore
from core.ledger.entry_builder import LedgerEntryBuilder
from core.ledger.errors import NotFoundError, ValidationError
from core.ledger.manager.results import ExpireResult, GrantResult, LedgerCommandResult
from core.ledger.models import (
    LedgerAccount,
    LedgerTransaction,
    LedgerTransactionInsert,
    UsageCreditInsert,
)
from core.ledger.store import LedgerStore
from core.ledger.types import (
    FeatureUsageGrantFrequency,
    LedgerTransactionType,
    UsageCreditSourceReferenceType,
    UsageCreditStatus,
    UsageCreditType,
)
from core.storage.subscription_store import SubscriptionStore
from core.utils.timezone import now_utc, to_utc

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


# =============================================================================
# 지급 단계
# =============================================================================


def _select_grantable_items(
    command: BillingPeriodTransitionLedgerCommand,
) -> tuple[list[SubscriptionFeatureItem], BillingPeriod | None]:
    """지급 대상 feature item과 귀속 청구 기간 결정

    - 사용량 미터가 없는 항목은 제외
    - 최초 지급(비갱신 또는 이전 기간 없음)이면 모든 항목
    - 갱신이면 EVERY_BILLING_PERIOD 항목만 (ONCE는 최초에만)
    """
    payload = command.payload
    match payload:
        case StandardTransitionPayload():
            is_initial_grant = payload.previous_billing_period is None
            billing_period: BillingPeriod | None = payload.new_billing_period
        case NonRenewingTransitionPayload():
            is_initial_grant = True
            billing_period = None
        case _:
            raise ValidationError(f"Unsupported transition payload: {type(payload).__name__}")

    items = [item for item in payload.subscription_feature_items if item.usage_meter_id is not None]
    if not is_initial_grant:
        items = [
            item
            for item in items
            if item.renewal_frequency == FeatureUsageGrantFrequency.EVERY_BILLING_PERIOD
        ]
    return items, billing_period


async def grant_entitlement_usage_credits(
    ledger_accounts_by_usage_meter_id: dict[str, LedgerAccount],
    ledger_transaction: LedgerTransaction,
    command: BillingPeriodTransitionLedgerCommand,
    db: SQLiteAdapter,
) -> GrantResult:
    """엔타이틀먼트 크레딧 지급

    feature item당 UsageCredit 하나와 credit_grant_recognized 항목 하나를 생성.
    이미 같은 키로 지급된 크레딧은 건너뛰므로 재실행해도 중복 지급 없음.

    Args:
        ledger_accounts_by_usage_meter_id: 미터 ID → 계정 (없는 미터는 생성)
        ledger_transaction: 항목이 속할 트랜잭션
        command: 청구 기간 전환 Command
        db: 트랜잭션이 열린 SQLite 어댑터

    Returns:
        새로 생성된 크레딧과 항목

    Raises:
        NotFoundError: 지급 대상 미터의 계정을 확보하지 못한 경우
    """
    items, billing_period = _select_grantable_items(command)
    if not items:
        return GrantResult()

    accounts = dict(ledger_accounts_by_usage_meter_id)
    missing_meter_ids = [
        item.usage_meter_id for item in items if item.usage_meter_id not in accounts
    ]
    if missing_meter_ids:
        resolved = await LedgerAccountStore(db).find_or_create_ledger_accounts_for_subscription_and_usage_meters(
            command.subscription_id,
            missing_meter_ids,
        )
        accounts.update({account.usage_meter_id: account for account in resolved})

    still_missing = sorted({item.usage_meter_id for item in items} - accounts.keys())
    if still_missing:
        raise NotFoundError("ledger_account", still_missing)

    issued_at = now_utc()
    inserts = [
        UsageCreditInsert(
            organization_id=command.organization_id,
            subscription_id=command.subscription_id,
            usage_meter_id=item.usage_meter_id,
            livemode=command.livemode,
            issued_amount=item.amount,
            issued_at=issued_at,
            source_reference_type=UsageCreditSourceReferenceType.BILLING_PERIOD_TRANSITION,
            source_reference_id=item.id,
            status=UsageCreditStatus.POSTED,
            credit_type=UsageCreditType.GRANT,
            expires_at=(
                billing_period.end_date
                if billing_period is not None
                and item.renewal_frequency == FeatureUsageGrantFrequency.EVERY_BILLING_PERIOD
                else None
            ),
            billing_period_id=billing_period.id if billing_period is not None else None,
        )
        for item in items
    ]

    usage_credits = await UsageCreditStore(
        db
    ).bulk_insert_or_do_nothing_by_source_reference_and_billing_period(inserts)

    builder = LedgerEntryBuilder(ledger_transaction, entry_timestamp=issued_at)
    entry_inserts = [
        builder.credit_grant_recognized(accounts[credit.usage_meter_id], credit)
        for credit in usage_credits
    ]
    ledger_entries = await LedgerStore(db).bulk_insert_ledger_entries(entry_inserts)

    logger.info(
        "엔타이틀먼트 크레딧 지급",
        extra={
            "subscription_id": command.subscription_id,
            "ledger_transaction_id": ledger_transaction.id,
            "candidates": len(inserts),
            "granted": len(usage_credits),
        },
    )
    return GrantResult(usage_credits=usage_credits, ledger_entries=ledger_entries)


# =============================================================================
# 만료 단계
# =============================================================================


async def expire_credits_at_end_of_billing_period(
    ledger_accounts_for_subscription: list[LedgerAccount],
    ledger_transaction: LedgerTransaction,
    command: BillingPeriodTransitionLedgerCommand,
    db: SQLiteAdapter,
) -> ExpireResult:
    """기간이 끝난 크레딧의 남은 잔액 소멸

    잔액 > 0 이고 expires_at이 새 청구 기간 시작 이전(같은 시각 포함)인 크레딧마다
    남은 잔액만큼 Debit 항목을 기록. expires_at이 없는 크레딧은 만료되지 않음.
    잔액은 기간 종료 시점이 아닌 전체 이력으로 집계 (만료 항목은 기간 종료 뒤에
    기록되므로 시점 집계로는 재실행 시 같은 잔액을 다시 만료시킴).
    비갱신 구독은 청구 기간 경계가 없으므로 아무것도 하지 않음.

    Args:
        ledger_accounts_for_subscription: 구독의 모든 계정
        ledger_transaction: 항목이 속할 트랜잭션
        command: 청구 기간 전환 Command
        db: 트랜잭션이 열린 SQLite 어댑터

    Returns:
        생성된 만료 항목
    """
    payload = command.payload
    match payload:
        case NonRenewingTransitionPayload():
            return ExpireResult()
        case StandardTransitionPayload():
            cutoff = to_utc(payload.new_billing_period.start_date)
        case _:
            raise ValidationError(f"Unsupported transition payload: {type(payload).__name__}")

    accounts_by_id = {account.id: account for account in ledger_accounts_for_subscription}
    if not accounts_by_id:
        return ExpireResult()

    store = LedgerStore(db)
    balances = await store.aggregate_available_balance_for_usage_credit(list(accounts_by_id))
    expiring = [
        balance
        for balance in balances
        if balance.balance > 0
        and balance.expires_at is not None
        and balance.expires_at <= cutoff
    ]
    if not expiring:
        return ExpireResult()

    builder = LedgerEntryBuilder(ledger_transaction)
    ledger_entries = await store.bulk_insert_ledger_entries(
        [
            builder.credit_grant_expired(accounts_by_id[balance.ledger_account_id], balance)
            for balance in expiring
        ]
    )

    logger.info(
        "크레딧 만료",
        extra={
            "subscription_id": command.subscription_id,
            "ledger_transaction_id": ledger_transaction.id,
            "expired": len(ledger_entries),
            "expired_amount": sum(entry.amount for entry in ledger_entries),
        },
    )
    return ExpireResult(ledger_entries=ledger_entries)


# =============================================================================
# 전환 처리
# =============================================================================


def validate_billing_period_transition_command(
    command: BillingPeriodTransitionLedgerCommand,
) -> None:
    """Command 내부 일관성 검증

    Raises:
        ValidationError: 구독/청구 기간 ID 불일치 또는 잘못된 기간
    """
    payload = command.payload
    subscription = payload.subscription

    if subscription.id != command.subscription_id:
        raise ValidationError(
            f"payload subscription {subscription.id} does not match command subscription "
            f"{command.subscription_id}"
        )
    if subscription.organization_id != command.organization_id:
        raise ValidationError(
            f"subscription {subscription.id} does not belong to organization {command.organization_id}"
        )

    if isinstance(payload, StandardTransitionPayload):
        periods = [payload.new_billing_period]
        if payload.previous_billing_period is not None:
            periods.append(payload.previous_billing_period)

        for period in periods:
            if period.subscription_id != subscription.id:
                raise ValidationError(
                    f"billing period {period.id} does not belong to subscription {subscription.id}"
                )
            if period.end_date <= period.start_date:
                raise ValidationError(f"billing period {period.id} ends before it starts")


def check_subscription_matches_command(
    subscription: Subscription,
    command: BillingPeriodTransitionLedgerCommand,
) -> None:
    """저장된 구독과 Command 비교

    - 갱신 구독은 standard, 비갱신 구독은 non_renewing 페이로드만 허용
    - livemode 일치 (크레딧/항목은 Command, 계정은 구독의 livemode를 따름)

    Raises:
        ValidationError: 불일치
    """
    is_standard = isinstance(command.payload, StandardTransitionPayload)
    if is_standard != subscription.renews:
        expected = "standard" if subscription.renews else "non_renewing"
        raise ValidationError(
            f"subscription {subscription.id} requires a {expected} payload, got {command.payload.type}"
        )
    if command.livemode != subscription.livemode:
        raise ValidationError(
            f"command livemode {command.livemode} does not match subscription {subscription.id} "
            f"livemode {subscription.livemode}"
        )


async def process_billing_period_transition_ledger_command(
    command: BillingPeriodTransitionLedgerCommand,
    db: SQLiteAdapter,
) -> LedgerCommandResult:
    """청구 기간 전환 처리 (지급 → 만료)

    Args:
        command: 청구 기간 전환 Command
        db: 트랜잭션이 열린 SQLite 어댑터 (커밋은 호출자 책임)

    Returns:
        LedgerTransaction과 이번 실행에서 생성된 모든 항목

    Raises:
        ValidationError: Command 불일치 (갱신 방식/livemode가 저장된 구독과 다른 경우 포함)
        NotFoundError: 구독 또는 새 청구 기간이 없음
    """
    validate_billing_period_transition_command(command)

    payload = command.payload
    subscriptions = SubscriptionStore(db)
    subscription = await subscriptions.select_subscription_by_id(payload.subscription.id)
    check_subscription_matches_command(subscription, command)

    match payload:
        case StandardTransitionPayload():
            await subscriptions.select_billing_period_by_id(payload.new_billing_period.id)
            initiating_source_id = payload.new_billing_period.id
        case NonRenewingTransitionPayload():
            initiating_source_id = payload.subscription.id
        case _:
            raise ValidationError(f"Unsupported transition payload: {type(payload).__name__}")

    ledger_transaction = await LedgerStore(db).insert_ledger_transaction(
        LedgerTransactionInsert(
            organization_id=command.organization_id,
            subscription_id=command.subscription_id,
            type=LedgerTransactionType.BILLING_PERIOD_TRANSITION,
            livemode=command.livemode,
            initiating_source_type=LedgerTransactionType.BILLING_PERIOD_TRANSITION.value,
            initiating_source_id=initiating_source_id,
            description=command.transaction_description,
            metadata=command.transaction_metadata,
        )
    )

    account_store = LedgerAccountStore(db)
    accounts = await account_store.select_ledger_accounts(command.subscription_id)
    usage_meter_ids = [
        item.usage_meter_id
        for item in payload.subscription_feature_items
        if item.usage_meter_id is not None
    ]
    resolved = await account_store.find_or_create_ledger_accounts_for_subscription_and_usage_meters(
        command.subscription_id,
        usage_meter_ids,
    )

    known_ids = {account.id for account in accounts}
    accounts.extend(account for account in resolved if account.id not in known_ids)
    accounts_by_usage_meter_id = {
        account.usage_meter_id: account for account in accounts if account.usage_meter_id is not None
    }

    grant = await grant_entitlement_usage_credits(
        accounts_by_usage_meter_id,
        ledger_transaction,
        command,
        db,
    )
    expire = await expire_credits_at_end_of_billing_period(
        accounts,
        ledger_transaction,
        command,
        db,
    )

    logger.info(
        "청구 기간 전환 처리 완료",
        extra={
            "subscription_id": command.subscription_id,
            "ledger_transaction_id": ledger_transaction.id,
            "payload_type": payload.type,
            "granted": len(grant.usage_credits),
            "expired": len(expire.ledger_entries),
        },
    )

    return LedgerCommandResult(
        ledger_transaction=ledger_transaction,
        ledger_entries=[*grant.ledger_entries, *expire.ledger_entries],
        usage_credits=grant.usage_credits,
    )
