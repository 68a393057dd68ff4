"""
Usage Credit Ledger

구독 x 사용량 미터 단위의 append-only 크레딧 원장.
잔액은 저장하지 않고 항상 항목 이력에서 집계.

사용 예시:
```python
from core.ledger import LedgerStore, init_ledger_schema
from core.ledger.manager import LedgerManager

# 초기화
await init_ledger_schema(db)
manager = LedgerManager(db)

# 청구 기간 전환 (지급 → 만료, 하나의 트랜잭션)
result = await manager.process(command)

# 계정 잔액 조회
balance = await LedgerStore(db).aggregate_balance_for_ledger_account(
    account_id,
    BalanceType.AVAILABLE,
)
```

구독/계정 저장소와 Command 처리(core.ledger.manager)는
core.storage에 의존하므로 여기서 re-export하지 않음.
"""

from core.ledger.credits import UsageCreditStore
from core.ledger.entry_builder import LedgerEntryBuilder, validate_ledger_entry_insert
from core.ledger.errors import LedgerError, NotFoundError, ValidationError
from core.ledger.models import (
    LedgerAccount,
    LedgerEntry,
    LedgerEntryInsert,
    LedgerTransaction,
    LedgerTransactionInsert,
    UsageCredit,
    UsageCreditBalance,
    UsageCreditInsert,
)
from core.ledger.schema import init_ledger_schema
from core.ledger.store import LedgerStore
from core.ledger.types import (
    BalanceType,
    FeatureUsageGrantFrequency,
    LedgerEntryDirection,
    LedgerEntryStatus,
    LedgerEntryType,
    LedgerTransactionType,
    UsageCreditSourceReferenceType,
    UsageCreditStatus,
    UsageCreditType,
)

__all__ = [
    # 저장소
    "LedgerStore",
    "UsageCreditStore",
    "LedgerEntryBuilder",
    "validate_ledger_entry_insert",
    "init_ledger_schema",
    # 레코드
    "LedgerAccount",
    "LedgerTransaction",
    "LedgerTransactionInsert",
    "LedgerEntry",
    "LedgerEntryInsert",
    "UsageCredit",
    "UsageCreditInsert",
    "UsageCreditBalance",
    # 예외
    "LedgerError",
    "NotFoundError",
    "ValidationError",
    # Enum
    "BalanceType",
    "FeatureUsageGrantFrequency",
    "LedgerEntryDirection",
    "LedgerEntryStatus",
    "LedgerEntryType",
    "LedgerTransactionType",
    "UsageCreditSourceReferenceType",
    "UsageCreditStatus",
    "UsageCreditType",
]
