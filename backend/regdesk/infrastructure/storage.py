"""Storage Port — insert-if-absent over a unique key, without aborting the transaction.

Invariants:
    - A uniqueness conflict is an outcome (ALREADY_EXISTS), never an exception
    - The surrounding transaction stays usable after a conflict
    - Column defaults declared on the model still apply to the inserted row

Design Decisions:
    - Dialect INSERT ... ON CONFLICT DO NOTHING (PostgreSQL, SQLite) over
      catching IntegrityError: a failed INSERT poisons a PostgreSQL
      transaction, and savepoints are unreliable under aiosqlite
    - No conflict target: any unique index (primary key or partial) counts,
      so the ledger PK, the ACTIVE-ticket partial index and the waitlist
      indexes all share this one port
"""

import logging
from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from regdesk.core.domain_types import InsertOutcome

logger = logging.getLogger(__name__)

_INSERT_BY_DIALECT = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


async def insert_if_absent(
    db: AsyncSession, model: type, values: dict[str, Any],
) -> InsertOutcome:
    """Insert one row unless a unique constraint already holds an equal key."""
    dialect = db.get_bind().dialect.name
    insert_fn = _INSERT_BY_DIALECT.get(dialect)
    if insert_fn is None:
        raise NotImplementedError(
            f"insert_if_absent has no implementation for dialect '{dialect}'",
        )
    stmt = insert_fn(model.__table__).values(**values).on_conflict_do_nothing()
    result = await db.execute(stmt)
    if result.rowcount:
        return InsertOutcome.INSERTED
    logger.debug(f"insert_if_absent conflict on {model.__tablename__}")
    return InsertOutcome.ALREADY_EXISTS
