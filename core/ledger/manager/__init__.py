"""
Ledger Manager 모듈

Ledger Command 처리 (청구 기간 전환, 크레딧 지급 인식, 관리자 크레딧 조정)
"""

from core.ledger.manager.admin_credit_adjusted import (
    process_admin_credit_adjusted_ledger_command,
)
from core.ledger.manager.billing_period_transition import (
    check_subscription_matches_command,
    expire_credits_at_end_of_billing_period,
    grant_entitlement_usage_credits,
    process_billing_period_transition_ledger_command,
    validate_billing_period_transition_command,
)
from core.ledger.manager.credit_grant_recognized import (
    process_credit_grant_recognized_ledger_command,
)
from core.ledger.manager.executor import LedgerManager, process_ledger_command
from core.ledger.manager.results import ExpireResult, GrantResult, LedgerCommandResult

__all__ = [
    "LedgerManager",
    "process_ledger_command",
    "process_billing_period_transition_ledger_command",
    "process_credit_grant_recognized_ledger_command",
    "process_admin_credit_adjusted_ledger_command",
    "grant_entitlement_usage_credits",
    "expire_credits_at_end_of_billing_period",
    "validate_billing_period_transition_command",
    "check_subscription_matches_command",
    "GrantResult",
    "ExpireResult",
    "LedgerCommandResult",
]
