"""
설정 로더

ledger.yaml 로드 및 운영 모드/DB 경로/로그 레벨 설정 생성
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from core.constants import Defaults, Paths
from core.types import LedgerMode


@dataclass(frozen=True)
class LedgerSettings:
    """Ledger 설정 (ledger.yaml에서 로드)

    불변 데이터 구조로 설정 변경 방지
    """

    mode: LedgerMode
    db_path: Path
    console_level: str = Defaults.LOG_LEVEL
    file_level: str = Defaults.LOG_LEVEL

    @property
    def livemode(self) -> bool:
        """레코드에 기록할 livemode 값"""
        return self.mode.livemode


class ConfigLoadError(Exception):
    """설정 로드 실패 예외"""

    pass


def get_db_path(mode: LedgerMode | str) -> Path:
    """모드에 따른 기본 DB 경로 반환

    Args:
        mode: 운영 모드 (LIVEMODE/TESTMODE, 문자열 허용)

    Returns:
        DB 파일 경로 (Path 타입)
    """
    mode = LedgerMode(mode)

    if mode == LedgerMode.LIVEMODE:
        return Paths.LIVE_DB
    else:
        return Paths.TEST_DB


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigLoadError(f"ledger.yaml의 '{name}' 섹션 형식이 잘못되었습니다")
    return value


def load_settings(path: Path | None = None) -> LedgerSettings:
    """ledger.yaml 파일 로드

    Args:
        path: ledger.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        LedgerSettings 인스턴스

    Raises:
        ConfigLoadError: 파일이 없거나 형식이 잘못된 경우
        ValueError: 유효하지 않은 mode인 경우
    """
    if path is None:
        path = Paths.CONFIG_FILE

    if not path.exists():
        raise ConfigLoadError(f"ledger.yaml 파일을 찾을 수 없습니다: {path}")

    try:
        content = path.read_text(encoding="utf-8")
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"ledger.yaml 파싱 실패: {e}") from e

    if data is None:
        raise ConfigLoadError("ledger.yaml이 비어 있습니다")

    if not isinstance(data, dict):
        raise ConfigLoadError("ledger.yaml 최상위는 매핑이어야 합니다")

    # mode 검증
    mode_str = data.get("mode", Defaults.MODE)

    try:
        mode = LedgerMode(mode_str)
    except ValueError as e:
        valid_modes = [m.value for m in LedgerMode]
        raise ValueError(
            f"유효하지 않은 mode입니다: '{mode_str}'. "
            f"유효한 값: {valid_modes}"
        ) from e

    # DB 경로 (지정하지 않으면 모드별 기본 경로)
    database = _section(data, "database")
    db_path_value = database.get("path")
    if db_path_value:
        db_path = Path(db_path_value)
        if not db_path.is_absolute():
            db_path = path.parent / db_path
    else:
        db_path = get_db_path(mode)

    # 로그 레벨
    logging_config = _section(data, "logging")

    return LedgerSettings(
        mode=mode,
        db_path=db_path,
        console_level=str(logging_config.get("console_level", Defaults.LOG_LEVEL)).upper(),
        file_level=str(logging_config.get("file_level", Defaults.LOG_LEVEL)).upper(),
    )


class Settings:
    """애플리케이션 설정 (싱글턴 패턴)

    ledger.yaml을 로드하고 관련 설정을 제공
    """

    _instance: "Settings | None" = None
    _settings: LedgerSettings | None = None

    def __new__(cls, config_path: Path | None = None) -> "Settings":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, config_path: Path | None = None) -> None:
        if self._settings is None:
            type(self)._settings = load_settings(config_path)

    @property
    def mode(self) -> LedgerMode:
        """현재 운영 모드"""
        assert self._settings is not None
        return self._settings.mode

    @property
    def livemode(self) -> bool:
        """livemode 여부"""
        assert self._settings is not None
        return self._settings.livemode

    @property
    def db_path(self) -> Path:
        """현재 모드의 DB 경로"""
        assert self._settings is not None
        return self._settings.db_path

    @property
    def console_level(self) -> str:
        """콘솔 로그 레벨"""
        assert self._settings is not None
        return self._settings.console_level

    @property
    def file_level(self) -> str:
        """파일 로그 레벨"""
        assert self._settings is not None
        return self._settings.file_level

    @classmethod
    def reset(cls) -> None:
        """싱글턴 인스턴스 초기화 (테스트용)"""
        cls._instance = None
        cls._settings = None


def get_settings(config_path: Path | None = None) -> Settings:
    """Settings 인스턴스 반환

    Args:
        config_path: ledger.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        Settings 싱글턴 인스턴스
    """
    return Settings(config_path)
