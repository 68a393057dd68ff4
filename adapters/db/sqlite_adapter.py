"""
SQLite 어댑터

WAL 모드로 SQLite 연결 관리.
Ledger writer 여러 개가 같은 DB에 접근해도 BEGIN IMMEDIATE로 직렬화되도록 설정.
같은 어댑터(연결)를 공유하는 태스크끼리는 asyncio.Lock으로 직렬화.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite

from core.config.loader import get_db_path
from core.constants import Defaults

__all__ = ["SQLiteAdapter", "create_connection", "get_db_path"]

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"

# 연결마다 적용하는 PRAGMA
CONNECTION_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    f"PRAGMA busy_timeout={Defaults.BUSY_TIMEOUT_MS}",  # 동시 writer 대기
    "PRAGMA foreign_keys=ON",
)


async def create_connection(db_path: Path | str) -> aiosqlite.Connection:
    """SQLite 연결 생성

    WAL, busy_timeout, 외래 키 제약을 설정한 연결 반환.
    파일 DB면 상위 디렉토리를 먼저 생성.

    Args:
        db_path: DB 파일 경로 (":memory:" 허용)
    """
    if str(db_path) != MEMORY_DB:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(str(db_path))
    for pragma in CONNECTION_PRAGMAS:
        await conn.execute(pragma)

    logger.info("SQLite 연결 생성", extra={"db_path": str(db_path)})
    return conn


class SQLiteAdapter:
    """SQLite 어댑터

    Ledger 저장소/Command 처리 함수는 이 어댑터로 쿼리만 실행하고 커밋하지 않음.
    커밋/롤백은 transaction()을 연 호출자의 책임.

    Args:
        db_path: DB 파일 경로 (":memory:" 허용)

    사용 예시:
    ```python
    async with SQLiteAdapter(db_path) as adapter:
        async with adapter.transaction(immediate=True) as db:
            await db.execute("INSERT INTO ...")
    ```
    """

    def __init__(self, db_path: Path | str):
        self.db_path = db_path if str(db_path) == MEMORY_DB else Path(db_path)
        self._conn: aiosqlite.Connection | None = None

        # 한 연결은 한 번에 하나의 immediate 트랜잭션만 가능
        self._write_lock = asyncio.Lock()
        self._writer: asyncio.Task[Any] | None = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    @property
    def in_transaction(self) -> bool:
        """열린 (커밋되지 않은) 트랜잭션 존재 여부"""
        return self._conn is not None and self._conn.in_transaction

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Not connected to database")
        return self._conn

    async def connect(self) -> None:
        if self._conn is None:
            self._conn = await create_connection(self.db_path)

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("SQLite 연결 종료", extra={"db_path": str(self.db_path)})

    async def execute(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> aiosqlite.Cursor:
        return await self._require_conn().execute(sql, parameters or ())

    async def executemany(
        self,
        sql: str,
        parameters: list[tuple[Any, ...]],
    ) -> aiosqlite.Cursor:
        return await self._require_conn().executemany(sql, parameters)

    async def fetchone(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> tuple[Any, ...] | None:
        cursor = await self.execute(sql, parameters)
        return await cursor.fetchone()

    async def fetchall(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> list[tuple[Any, ...]]:
        cursor = await self.execute(sql, parameters)
        return list(await cursor.fetchall())

    async def commit(self) -> None:
        await self._require_conn().commit()

    async def rollback(self) -> None:
        await self._require_conn().rollback()

    @asynccontextmanager
    async def transaction(self, immediate: bool = False) -> AsyncIterator["SQLiteAdapter"]:
        """트랜잭션 컨텍스트 매니저

        블록이 정상 종료되면 커밋, 예외(취소 포함)면 롤백 후 재발생.

        Args:
            immediate: True면 BEGIN IMMEDIATE로 write lock을 즉시 획득.
                같은 DB의 다른 연결은 커밋/롤백까지 busy_timeout 동안 대기하고,
                같은 어댑터를 공유하는 다른 태스크는 어댑터 lock에서 차례를 기다림.

        Raises:
            RuntimeError: 연결 전이거나, immediate인데 이미 트랜잭션이 열려 있는 경우
        """
        conn = self._require_conn()

        if immediate:
            await self._begin_immediate(conn)

        try:
            yield self
            await conn.commit()
        except BaseException:
            await conn.rollback()
            raise
        finally:
            if immediate:
                self._writer = None
                self._write_lock.release()

    async def _begin_immediate(self, conn: aiosqlite.Connection) -> None:
        """어댑터 lock 획득 후 BEGIN IMMEDIATE (실패 시 lock 반환)"""
        if self._writer is not None and self._writer is asyncio.current_task():
            raise RuntimeError("Cannot begin an immediate transaction inside an open transaction")

        await self._write_lock.acquire()
        try:
            if conn.in_transaction:
                raise RuntimeError("Cannot begin an immediate transaction inside an open transaction")
            await conn.execute("BEGIN IMMEDIATE")
        except BaseException:
            self._write_lock.release()
            raise
        self._writer = asyncio.current_task()

    async def _sqlite_master_has(self, object_type: str, name: str) -> bool:
        row = await self.fetchone(
            "SELECT 1 FROM sqlite_master WHERE type = ? AND name = ?",
            (object_type, name),
        )
        return row is not None

    async def table_exists(self, table_name: str) -> bool:
        return await self._sqlite_master_has("table", table_name)

    async def index_exists(self, index_name: str) -> bool:
        return await self._sqlite_master_has("index", index_name)

    async def __aenter__(self) -> "SQLiteAdapter":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
