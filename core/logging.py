"""
로깅 설정

Ledger 스크립트와 Ledger를 임베드하는 워커의 공통 로깅 설정.
콘솔(stdout) + 일별 롤링 파일(logs/{process_name}.log).

사용법:
    from core.logging import setup_logging
    setup_logging("ledger", settings.console_level, settings.file_level)
"""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from core.constants import Paths


LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_BACKUP_COUNT = 7  # 일

# WARNING 이상만 남길 서드파티 로거
NOISY_LOGGERS = [
    "aiosqlite",  # 쿼리마다 executing/completed
    "asyncio",
]


def _to_level(level: int | str) -> int:
    """"DEBUG" 같은 레벨 이름도 허용"""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"유효하지 않은 로그 레벨입니다: '{level}'")
    return value


def _console_handler(level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _file_handler(log_file: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    """자정마다 새 파일 (백업: {name}.log.YYYY-MM-DD)"""
    log_file.parent.mkdir(parents=True, exist_ok=True)

    handler = TimedRotatingFileHandler(
        filename=log_file,
        when="midnight",
        interval=1,
        backupCount=LOG_FILE_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.suffix = "%Y-%m-%d"
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    process_name: str = "ledger",
    console_level: int | str = logging.INFO,
    file_level: int | str = logging.INFO,
    log_dir: Path | None = None,
) -> logging.Logger:
    """루트 로거 초기화

    기존 핸들러는 제거하므로 여러 번 호출해도 중복 출력되지 않음.

    Args:
        process_name: 로그 파일 이름
        console_level: 콘솔 레벨 (int 또는 "INFO" 같은 이름)
        file_level: 파일 레벨
        log_dir: 로그 디렉토리 (기본: logs/)

    Returns:
        루트 Logger

    Raises:
        ValueError: 알 수 없는 레벨 이름
    """
    console_level = _to_level(console_level)
    file_level = _to_level(file_level)
    log_file = get_log_file_path(process_name, log_dir)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # 필터링은 핸들러에서

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    root_logger.addHandler(_console_handler(console_level, formatter))
    root_logger.addHandler(_file_handler(log_file, file_level, formatter))

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    root_logger.info(
        f"로깅 초기화 완료: {process_name} "
        f"(콘솔 {logging.getLevelName(console_level)}, "
        f"파일 {log_file} {logging.getLevelName(file_level)})"
    )
    return root_logger


def get_log_file_path(process_name: str, log_dir: Path | None = None) -> Path:
    """로그 파일 경로 (기본: logs/{process_name}.log)"""
    return (log_dir or Paths.LOGS_DIR) / f"{process_name}.log"
