"""
Deal store implementations.

Pattern: Protocol → Production impl → Test double → Factory

Writes are insert-or-ignore keyed by the event id: the first writer wins and
every later duplicate is a no-op, so redelivered queue messages can never
create a second row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

import psycopg

from tripstreamer.config import PostgresConfig
from tripstreamer.schemas.deals import DealEvent, DealSort

logger = logging.getLogger(__name__)

DEFAULT_FETCH_LIMIT = 50


@dataclass
class DealStoreConfig:
    """Configuration for the deal store."""

    connection_string: str = field(default_factory=lambda: PostgresConfig().conninfo)
    table_name: str = "deals"


def _row_to_deal(row: tuple) -> DealEvent:
    return DealEvent(
        id=row[0],
        destination=row[1],
        price=Decimal(row[2]),
        airline=row[3],
        created_at=row[4],
    )


# ---------------------------------------------------------------------------
# POSTGRES STORE (Production)
# ---------------------------------------------------------------------------


class PgDealStore:
    """PostgreSQL deal store."""

    def __init__(self, config: DealStoreConfig):
        self.config = config
        self._conn = None

    def connect(self) -> None:
        """Establish database connection."""
        self._conn = psycopg.connect(self.config.connection_string, autocommit=True)

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def create_schema(self) -> None:
        """Create the deals table and read-path indexes."""
        if not self._conn:
            self.connect()

        self._conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.config.table_name} (
                id TEXT PRIMARY KEY,
                destination TEXT NOT NULL,
                price NUMERIC NOT NULL,
                airline TEXT NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """
        )
        self._conn.execute(
            f"""
            CREATE INDEX IF NOT EXISTS {self.config.table_name}_destination_idx
            ON {self.config.table_name} (destination)
        """
        )

    def insert_deal(self, deal: DealEvent) -> bool:
        """Insert-or-ignore. Returns True if a new row was written."""
        if not self._conn:
            self.connect()

        cursor = self._conn.execute(
            f"""
            INSERT INTO {self.config.table_name} (id, destination, price, airline, created_at)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (id) DO NOTHING
            """,
            (deal.id, deal.destination, deal.price, deal.airline, deal.created_at),
        )
        return cursor.rowcount == 1

    def count_by_destination(self, destination: str) -> int:
        if not self._conn:
            self.connect()

        row = self._conn.execute(
            f"SELECT COUNT(*) FROM {self.config.table_name} WHERE destination = %s",
            (destination,),
        ).fetchone()
        return int(row[0]) if row else 0

    def fetch_deals(
        self,
        destination: str | None = None,
        max_price: float | None = None,
        sort_by: DealSort | None = None,
        limit: int = DEFAULT_FETCH_LIMIT,
    ) -> list[DealEvent]:
        """
        Read path for the active-deals query.

        Optional destination equality and price upper bound; NEWEST sorts by
        created_at desc, PRICE_ASC by price then created_at desc.
        """
        if not self._conn:
            self.connect()

        conditions = []
        params: list = []
        if destination:
            conditions.append("destination = %s")
            params.append(destination)
        if max_price is not None:
            conditions.append("price <= %s")
            params.append(max_price)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        if (sort_by or DealSort.NEWEST) == DealSort.PRICE_ASC:
            order = "ORDER BY price ASC, created_at DESC"
        else:
            order = "ORDER BY created_at DESC"
        params.append(limit)

        rows = self._conn.execute(
            f"""
            SELECT id, destination, price, airline, created_at
            FROM {self.config.table_name}
            {where}
            {order}
            LIMIT %s
            """,
            params,
        ).fetchall()
        return [_row_to_deal(row) for row in rows]

    def get_deal(self, deal_id: str) -> DealEvent | None:
        if not self._conn:
            self.connect()

        row = self._conn.execute(
            f"""
            SELECT id, destination, price, airline, created_at
            FROM {self.config.table_name}
            WHERE id = %s
            LIMIT 1
            """,
            (deal_id,),
        ).fetchone()
        return _row_to_deal(row) if row else None


# ---------------------------------------------------------------------------
# IN-MEMORY STORE (Testing)
# ---------------------------------------------------------------------------


class InMemoryDealStore:
    """Test deal store - same semantics, no database."""

    def __init__(self):
        self._deals: dict[str, DealEvent] = {}
        self.insert_calls = 0

    def connect(self) -> None:
        pass

    def close(self) -> None:
        pass

    def create_schema(self) -> None:
        pass

    def insert_deal(self, deal: DealEvent) -> bool:
        self.insert_calls += 1
        if deal.id in self._deals:
            return False
        self._deals[deal.id] = deal
        return True

    def count_by_destination(self, destination: str) -> int:
        return sum(1 for d in self._deals.values() if d.destination == destination)

    def fetch_deals(
        self,
        destination: str | None = None,
        max_price: float | None = None,
        sort_by: DealSort | None = None,
        limit: int = DEFAULT_FETCH_LIMIT,
    ) -> list[DealEvent]:
        deals = [
            d for d in self._deals.values()
            if (not destination or d.destination == destination)
            and (max_price is None or d.price <= Decimal(str(max_price)))
        ]
        # Newest first, then a stable price sort keeps newest-first within a price
        deals.sort(key=lambda d: d.created_at, reverse=True)
        if (sort_by or DealSort.NEWEST) == DealSort.PRICE_ASC:
            deals.sort(key=lambda d: d.price)
        return deals[:limit]

    def get_deal(self, deal_id: str) -> DealEvent | None:
        return self._deals.get(deal_id)

    def __len__(self) -> int:
        return len(self._deals)


# ---------------------------------------------------------------------------
# FACTORY FUNCTION
# ---------------------------------------------------------------------------


def get_deal_store(
    use_postgres: bool = True,
    config: DealStoreConfig | None = None,
) -> PgDealStore | InMemoryDealStore:
    """Factory function to get the appropriate deal store."""
    if not use_postgres:
        return InMemoryDealStore()

    if config is None:
        from tripstreamer.config import get_settings

        config = DealStoreConfig(connection_string=get_settings().postgres.conninfo)
    return PgDealStore(config)
