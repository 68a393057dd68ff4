"""
pytest 공통 fixture 정의

설정 파일 / 임시 디렉토리 fixture
"""

import tempfile
from pathlib import Path

import pytest


@pytest.fixture
def temp_dir() -> Path:
    """OS 독립적인 임시 디렉토리 생성"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_config_file(temp_dir: Path) -> Path:
    """테스트용 ledger.yaml 파일 생성 (testmode, 기본 DB 경로)"""
    config_content = """# 테스트용 ledger.yaml
mode: testmode

logging:
  console_level: debug
  file_level: INFO
"""
    config_path = temp_dir / "ledger.yaml"
    config_path.write_text(config_content, encoding="utf-8")
    return config_path


@pytest.fixture
def temp_config_file_livemode(temp_dir: Path) -> Path:
    """테스트용 ledger.yaml 파일 생성 (livemode, DB 경로 지정)"""
    config_content = """mode: livemode

database:
  path: db/custom_ledger.db
"""
    config_path = temp_dir / "ledger_live.yaml"
    config_path.write_text(config_content, encoding="utf-8")
    return config_path


@pytest.fixture
def temp_config_file_invalid_mode(temp_dir: Path) -> Path:
    """잘못된 모드의 ledger.yaml 파일 생성"""
    config_content = """mode: production

database:
  path: ledger.db
"""
    config_path = temp_dir / "ledger_invalid.yaml"
    config_path.write_text(config_content, encoding="utf-8")
    return config_path
