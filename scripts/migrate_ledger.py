"""
Ledger 스키마 마이그레이션

사용법:
    python -m scripts.migrate_ledger
    python -m scripts.migrate_ledger --config config/ledger.yaml
"""

import argparse
import asyncio
import logging
from pathlib import Path

# 프로젝트 루트를 Python 경로에 추가
import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.config.loader import get_settings
from core.ledger.schema import init_ledger_schema
from core.logging import setup_logging

logger = logging.getLogger(__name__)


LEDGER_TABLES = [
    "subscription",
    "billing_period",
    "usage_meter",
    "ledger_account",
    "ledger_transaction",
    "usage_credit",
    "ledger_entry",
]


async def verify_schema(db: SQLiteAdapter) -> bool:
    """모든 테이블 존재 여부 확인"""
    missing = [table for table in LEDGER_TABLES if not await db.table_exists(table)]
    if missing:
        logger.error(f"누락된 테이블: {missing}")
        return False
    return True


async def main(config_path: Path | None = None) -> None:
    """마이그레이션 실행

    Args:
        config_path: ledger.yaml 경로 (None이면 기본 경로)
    """
    settings = get_settings(config_path)
    setup_logging("migrate_ledger", settings.console_level, settings.file_level)

    logger.info(f"마이그레이션 시작: {settings.db_path} ({settings.mode.value})")

    async with SQLiteAdapter(settings.db_path) as db:
        await init_ledger_schema(db)

        if await verify_schema(db):
            logger.info("마이그레이션 완료")
        else:
            logger.error("마이그레이션 검증 실패!")
            raise RuntimeError("스키마 검증 실패")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Ledger 스키마 마이그레이션")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="ledger.yaml 경로 (기본: config/ledger.yaml)",
    )
    args = parser.parse_args()

    asyncio.run(main(args.config))
