"""
Usage Credit Ledger 스키마 초기화

엔진 시작 시 Ledger 테이블과 인덱스 생성.
CREATE IF NOT EXISTS 패턴으로 여러 번 호출해도 안전하게 동작.

멱등성은 UNIQUE 인덱스로 DB가 보장:
- usage_credit: (source_reference_id, source_reference_type, billing_period_id)
- ledger_account: (subscription_id, usage_meter_id)
- ledger_entry: 크레딧당 미폐기 만료 항목 1건

SQLite UNIQUE는 NULL을 서로 다른 값으로 취급하므로
nullable 컬럼은 COALESCE 표현식 인덱스로 NULL도 하나의 값으로 취급.
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


async def init_ledger_schema(db: "SQLiteAdapter") -> None:
    """Ledger 스키마 초기화 (테이블 + 인덱스)

    이미 존재하는 경우 안전하게 건너뜀 (IF NOT EXISTS).
    열린 트랜잭션 밖에서 호출해야 함 (마지막에 커밋).

    Args:
        db: SQLiteAdapter 인스턴스
    """
    await _create_reference_tables(db)
    await _create_ledger_tables(db)
    await _create_ledger_indexes(db)
    await db.commit()
    logger.info("Ledger 스키마 초기화 완료")


async def _create_reference_tables(db: "SQLiteAdapter") -> None:
    """구독/청구 기간/사용량 미터 테이블 생성

    Ledger 엔진은 읽기만 하며, 쓰기는 외부 구독 관리 쪽 책임.
    """

    await db.execute("""
        CREATE TABLE IF NOT EXISTS subscription (
            id               TEXT PRIMARY KEY,
            organization_id  TEXT NOT NULL,
            livemode         INTEGER NOT NULL,
            renews           INTEGER NOT NULL DEFAULT 1,
            created_at       TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS billing_period (
            id               TEXT PRIMARY KEY,
            subscription_id  TEXT NOT NULL,
            start_date       TEXT NOT NULL,
            end_date         TEXT NOT NULL,
            livemode         INTEGER NOT NULL,
            created_at       TEXT NOT NULL DEFAULT (datetime('now')),
            CHECK (end_date > start_date),
            FOREIGN KEY (subscription_id) REFERENCES subscription(id)
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS usage_meter (
            id               TEXT PRIMARY KEY,
            organization_id  TEXT NOT NULL,
            name             TEXT NOT NULL DEFAULT '',
            livemode         INTEGER NOT NULL,
            created_at       TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)


async def _create_ledger_tables(db: "SQLiteAdapter") -> None:
    """Ledger 테이블 생성"""

    # ledger_account 테이블 (잔액은 저장하지 않음)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS ledger_account (
            id               TEXT PRIMARY KEY,
            organization_id  TEXT NOT NULL,
            subscription_id  TEXT NOT NULL,
            usage_meter_id   TEXT,
            livemode         INTEGER NOT NULL,
            created_at       TEXT NOT NULL DEFAULT (datetime('now')),
            FOREIGN KEY (subscription_id) REFERENCES subscription(id),
            FOREIGN KEY (usage_meter_id) REFERENCES usage_meter(id)
        )
    """)

    # ledger_transaction 테이블
    await db.execute("""
        CREATE TABLE IF NOT EXISTS ledger_transaction (
            id                     TEXT PRIMARY KEY,
            organization_id        TEXT NOT NULL,
            subscription_id        TEXT NOT NULL,
            type                   TEXT NOT NULL,
            livemode               INTEGER NOT NULL,
            initiating_source_type TEXT NOT NULL,
            initiating_source_id   TEXT NOT NULL,
            description            TEXT,
            metadata               TEXT,
            created_at             TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)

    # usage_credit 테이블
    await db.execute("""
        CREATE TABLE IF NOT EXISTS usage_credit (
            id                    TEXT PRIMARY KEY,
            organization_id       TEXT NOT NULL,
            subscription_id       TEXT NOT NULL,
            usage_meter_id        TEXT NOT NULL,
            livemode              INTEGER NOT NULL,
            status                TEXT NOT NULL,
            credit_type           TEXT NOT NULL,
            issued_amount         INTEGER NOT NULL CHECK (issued_amount >= 0),
            issued_at             TEXT NOT NULL,
            expires_at            TEXT,
            billing_period_id     TEXT,
            source_reference_type TEXT NOT NULL,
            source_reference_id   TEXT NOT NULL,
            payment_id            TEXT,
            notes                 TEXT,
            metadata              TEXT,
            created_at            TEXT NOT NULL DEFAULT (datetime('now')),
            FOREIGN KEY (subscription_id) REFERENCES subscription(id),
            FOREIGN KEY (usage_meter_id) REFERENCES usage_meter(id)
        )
    """)

    # ledger_entry 테이블 (append-only, discarded_at 외 변경 없음)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS ledger_entry (
            id                                  TEXT PRIMARY KEY,
            ledger_transaction_id               TEXT NOT NULL,
            ledger_account_id                   TEXT NOT NULL,
            organization_id                     TEXT NOT NULL,
            subscription_id                     TEXT NOT NULL,
            livemode                            INTEGER NOT NULL,
            status                              TEXT NOT NULL CHECK (status IN ('pending', 'posted')),
            direction                           TEXT NOT NULL CHECK (direction IN ('debit', 'credit')),
            entry_type                          TEXT NOT NULL,
            amount                              INTEGER NOT NULL CHECK (amount >= 0),
            entry_timestamp                     TEXT NOT NULL,
            description                         TEXT,
            metadata                            TEXT,
            billing_period_id                   TEXT,
            usage_meter_id                      TEXT,
            discarded_at                        TEXT,
            source_usage_event_id               TEXT,
            source_usage_credit_id              TEXT,
            source_credit_application_id        TEXT,
            source_credit_balance_adjustment_id TEXT,
            created_at                          TEXT NOT NULL DEFAULT (datetime('now')),
            FOREIGN KEY (ledger_transaction_id) REFERENCES ledger_transaction(id),
            FOREIGN KEY (ledger_account_id) REFERENCES ledger_account(id)
        )
    """)

    logger.debug("Ledger 테이블 생성 완료")


async def _create_ledger_indexes(db: "SQLiteAdapter") -> None:
    """인덱스 생성 (멱등성 UNIQUE 인덱스 포함)"""

    # 멱등성 키
    await db.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_ledger_account_subscription_meter
        ON ledger_account(subscription_id, COALESCE(usage_meter_id, ''))
    """)
    await db.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_usage_credit_source_reference
        ON usage_credit(source_reference_id, source_reference_type, COALESCE(billing_period_id, ''))
    """)
    await db.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_ledger_entry_credit_expiration
        ON ledger_entry(source_usage_credit_id)
        WHERE entry_type = 'credit_grant_expired' AND discarded_at IS NULL
    """)

    # 크레딧별 잔액 집계
    await db.execute(
        "CREATE INDEX IF NOT EXISTS idx_ledger_entry_account_credit_status "
        "ON ledger_entry(ledger_account_id, source_usage_credit_id, status)"
    )
    await db.execute("CREATE INDEX IF NOT EXISTS idx_ledger_entry_transaction ON ledger_entry(ledger_transaction_id)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_ledger_entry_type ON ledger_entry(entry_type)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_ledger_transaction_subscription ON ledger_transaction(subscription_id)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_ledger_transaction_source ON ledger_transaction(initiating_source_id)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_usage_credit_subscription ON usage_credit(subscription_id)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_billing_period_subscription ON billing_period(subscription_id)")

    logger.debug("Ledger 인덱스 생성 완료")
