"""
core/logging.py 테스트
"""

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

import pytest

from core.logging import NOISY_LOGGERS, get_log_file_path, setup_logging


@pytest.fixture
def restore_root_logger():
    """테스트 후 루트 로거 핸들러 복원"""
    root_logger = logging.getLogger()
    saved_handlers = list(root_logger.handlers)
    saved_level = root_logger.level

    yield root_logger

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    for handler in saved_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(saved_level)


class TestSetupLogging:
    """setup_logging 테스트"""

    def test_handlers(self, temp_dir: Path, restore_root_logger: logging.Logger) -> None:
        """콘솔 + 일별 파일 핸들러"""
        root_logger = setup_logging("ledger", log_dir=temp_dir)

        assert root_logger is restore_root_logger
        assert len(root_logger.handlers) == 2
        file_handlers = [h for h in root_logger.handlers if isinstance(h, TimedRotatingFileHandler)]
        assert len(file_handlers) == 1
        assert (temp_dir / "ledger.log").exists()

    def test_levels_by_name(self, temp_dir: Path, restore_root_logger: logging.Logger) -> None:
        """레벨 이름 문자열 허용"""
        root_logger = setup_logging("ledger", console_level="warning", file_level="DEBUG", log_dir=temp_dir)

        levels = sorted(h.level for h in root_logger.handlers)
        assert levels == [logging.DEBUG, logging.WARNING]

    def test_invalid_level(self, temp_dir: Path) -> None:
        """알 수 없는 레벨 이름"""
        with pytest.raises(ValueError):
            setup_logging("ledger", console_level="LOUD", log_dir=temp_dir)

    def test_repeated_setup(self, temp_dir: Path, restore_root_logger: logging.Logger) -> None:
        """다시 호출해도 핸들러가 중복되지 않음"""
        setup_logging("ledger", log_dir=temp_dir)
        root_logger = setup_logging("ledger", log_dir=temp_dir)

        assert len(root_logger.handlers) == 2

    def test_noisy_loggers(self, temp_dir: Path, restore_root_logger: logging.Logger) -> None:
        """불필요한 로거는 WARNING"""
        setup_logging("ledger", log_dir=temp_dir)

        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_file_output(self, temp_dir: Path, restore_root_logger: logging.Logger) -> None:
        """모듈 로거 메시지가 파일에 기록됨"""
        setup_logging("ledger", log_dir=temp_dir)

        logging.getLogger("core.ledger.test").info("크레딧 만료")
        for handler in restore_root_logger.handlers:
            handler.flush()

        assert "크레딧 만료" in (temp_dir / "ledger.log").read_text(encoding="utf-8")


class TestGetLogFilePath:
    """get_log_file_path 테스트"""

    def test_custom_dir(self, temp_dir: Path) -> None:
        """프로세스 이름으로 파일명 결정"""
        assert get_log_file_path("worker", temp_dir) == temp_dir / "worker.log"
