"""
Ledger Command 일괄 실행

JSON 파일(Command 객체 하나 또는 배열)을 읽어 순서대로 LedgerManager로 실행.
Command마다 별도 트랜잭션이므로 실패한 Command만 롤백됨.

사용법:
    python -m scripts.process_commands commands.json
    python -m scripts.process_commands commands.json --config config/ledger.yaml
"""

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

# 프로젝트 루트를 Python 경로에 추가
import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.config.loader import get_settings
from core.ledger.manager import LedgerCommandResult, LedgerManager
from core.ledger.schema import init_ledger_schema
from core.logging import setup_logging

logger = logging.getLogger(__name__)


def load_commands(path: Path) -> list[dict[str, Any]]:
    """Command JSON 로드 (단일 객체도 허용)"""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        return [data]
    if not isinstance(data, list):
        raise ValueError(f"Command 파일은 객체 또는 배열이어야 합니다: {path}")
    return data


async def process_commands(
    db: SQLiteAdapter,
    commands: list[dict[str, Any]],
) -> list[LedgerCommandResult]:
    """Command 순차 실행"""
    manager = LedgerManager(db)
    results = []

    for i, command in enumerate(commands):
        result = await manager.process(command)
        results.append(result)
        logger.info(f"[{i + 1}/{len(commands)}] {result.to_dict()}")

    logger.info(f"실행 통계: {manager.get_stats()}")
    return results


async def main(commands_path: Path, config_path: Path | None = None) -> int:
    """실행 진입점

    Returns:
        종료 코드 (실패한 Command가 있으면 1)
    """
    settings = get_settings(config_path)
    setup_logging("process_commands", settings.console_level, settings.file_level)

    commands = load_commands(commands_path)

    async with SQLiteAdapter(settings.db_path) as db:
        await init_ledger_schema(db)
        results = await process_commands(db, commands)

    return 0 if all(result.success for result in results) else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Ledger Command 일괄 실행")
    parser.add_argument("commands", type=Path, help="Command JSON 파일")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="ledger.yaml 경로 (기본: config/ledger.yaml)",
    )
    args = parser.parse_args()

    sys.exit(asyncio.run(main(args.commands, args.config)))
