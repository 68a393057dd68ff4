"""
LedgerAccount 저장소

구독 x 사용량 미터 당 하나의 계정을 조회하거나 지연 생성.
(subscription_id, usage_meter_id) UNIQUE 인덱스로 동시 생성 시에도 계정은 하나만 존재.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, Sequence

from core.ledger.errors import NotFoundError
from core.ledger.models import LedgerAccount, new_id
from core.ledger.store import placeholders
from core.storage.subscription_store import SubscriptionStore
from core.utils.timezone import from_db_ts, now_utc, to_db_ts

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


LEDGER_ACCOUNT_COLUMNS = (
    "id",
    "organization_id",
    "subscription_id",
    "usage_meter_id",
    "livemode",
    "created_at",
)


def _row_to_account(row: Sequence[Any]) -> LedgerAccount:
    return LedgerAccount(
        id=row[0],
        organization_id=row[1],
        subscription_id=row[2],
        usage_meter_id=row[3],
        livemode=bool(row[4]),
        created_at=from_db_ts(row[5]),
    )


class LedgerAccountStore:
    """LedgerAccount 저장소

    계정은 생성 후 수정/삭제되지 않음.

    Args:
        db: SQLite 어댑터
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db
        self.subscriptions = SubscriptionStore(db)

    async def select_ledger_accounts(
        self,
        subscription_id: str,
        usage_meter_ids: Iterable[str] | None = None,
        organization_id: str | None = None,
        livemode: bool | None = None,
    ) -> list[LedgerAccount]:
        """구독의 계정 목록

        Args:
            subscription_id: 구독 ID
            usage_meter_ids: 지정 시 해당 미터의 계정만
            organization_id: 조직 필터
            livemode: livemode 필터
        """
        conditions = ["subscription_id = ?"]
        params: list[Any] = [subscription_id]

        if usage_meter_ids is not None:
            meter_ids = list(dict.fromkeys(usage_meter_ids))
            if not meter_ids:
                return []
            conditions.append(f"usage_meter_id IN ({placeholders(len(meter_ids))})")
            params.extend(meter_ids)
        if organization_id is not None:
            conditions.append("organization_id = ?")
            params.append(organization_id)
        if livemode is not None:
            conditions.append("livemode = ?")
            params.append(int(livemode))

        rows = await self.db.fetchall(
            f"""
            SELECT {", ".join(LEDGER_ACCOUNT_COLUMNS)} FROM ledger_account
            WHERE {" AND ".join(conditions)}
            ORDER BY created_at, rowid
            """,
            tuple(params),
        )
        return [_row_to_account(row) for row in rows]

    async def find_or_create_ledger_accounts_for_subscription_and_usage_meters(
        self,
        subscription_id: str,
        usage_meter_ids: Iterable[str],
    ) -> list[LedgerAccount]:
        """미터별 계정 조회, 없으면 생성

        생성은 ON CONFLICT DO NOTHING 후 재조회하므로
        동시에 다른 writer가 만든 계정도 오류 없이 그대로 반환.

        Args:
            subscription_id: 구독 ID
            usage_meter_ids: 사용량 미터 ID 목록 (중복 허용)

        Returns:
            요청한 미터당 정확히 하나의 계정 (요청 순서, 중복 제거)

        Raises:
            NotFoundError: 구독 또는 사용량 미터가 없음
        """
        subscription = await self.subscriptions.select_subscription_by_id(subscription_id)

        meter_ids = list(dict.fromkeys(usage_meter_ids))
        if not meter_ids:
            return []

        existing_meters = await self.subscriptions.select_existing_usage_meter_ids(meter_ids)
        missing = [meter_id for meter_id in meter_ids if meter_id not in existing_meters]
        if missing:
            raise NotFoundError("usage_meter", missing)

        created_at = to_db_ts(now_utc())
        created = 0
        for meter_id in meter_ids:
            cursor = await self.db.execute(
                f"""
                INSERT INTO ledger_account ({", ".join(LEDGER_ACCOUNT_COLUMNS)})
                VALUES ({placeholders(len(LEDGER_ACCOUNT_COLUMNS))})
                ON CONFLICT DO NOTHING
                """,
                (
                    new_id(),
                    subscription.organization_id,
                    subscription.id,
                    meter_id,
                    int(subscription.livemode),
                    created_at,
                ),
            )
            created += cursor.rowcount

        accounts = await self.select_ledger_accounts(subscription_id, usage_meter_ids=meter_ids)
        by_meter = {account.usage_meter_id: account for account in accounts}

        if created:
            logger.info(
                "LedgerAccount 생성",
                extra={"subscription_id": subscription_id, "created": created},
            )

        return [by_meter[meter_id] for meter_id in meter_ids]
