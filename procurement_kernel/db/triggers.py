"""
Module: procurement_kernel.db.triggers
Responsibility: Loading, installing, and verifying PostgreSQL immutability
    triggers.  This is the database-level complement to the ORM-level
    listeners in db/immutability.py.
Architecture position: Kernel > DB.  May import from db/ only.

Invariants enforced (PostgreSQL only):
    - inventory_transactions rows: no UPDATE, no DELETE.
    - purchase_orders rows: no DELETE.
    - purchase_order_items.received_quantity never decreases.

Failure modes:
    - PostgreSQL RAISE EXCEPTION on any trigger violation (surfaced by
      SQLAlchemy as IntegrityError or InternalError).
    - FileNotFoundError if SQL files are missing from the sql/ directory.
"""

from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import Engine


SQL_DIR = Path(__file__).parent / "sql"

# Installed in this order
TRIGGER_FILES = [
    "01_inventory_transaction.sql",
    "02_purchase_order.sql",
]

DROP_FILE = "99_drop_all.sql"

ALL_TRIGGER_NAMES = [
    "trg_inventory_transaction_immutability_update",
    "trg_inventory_transaction_immutability_delete",
    "trg_purchase_order_no_delete",
    "trg_purchase_order_item_received_monotonic",
]


def _load_sql_file(filename: str) -> str:
    """Load SQL content from a file in the sql/ directory."""
    return (SQL_DIR / filename).read_text(encoding="utf-8")


def _load_all_trigger_sql() -> str:
    sql_parts = []
    for filename in TRIGGER_FILES:
        sql_parts.append(f"-- Loading: {filename}")
        sql_parts.append(_load_sql_file(filename))
        sql_parts.append("")
    return "\n".join(sql_parts)


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install database-level immutability triggers.

    Preconditions: Tables must exist (call after create_all).
        Engine must be connected to PostgreSQL.
    Postconditions: All triggers in ALL_TRIGGER_NAMES are installed.
        Functions use CREATE OR REPLACE, so installation is idempotent.
    """
    with engine.connect() as conn:
        conn.execute(text(_load_all_trigger_sql()))
        conn.commit()


def uninstall_immutability_triggers(engine: Engine) -> None:
    """
    Remove database-level immutability triggers and their functions.

    Only for tests and migrations that must rewrite history.
    """
    with engine.connect() as conn:
        conn.execute(text(_load_sql_file(DROP_FILE)))
        conn.commit()


def get_installed_triggers(engine: Engine) -> list[str]:
    """List the immutability triggers currently present in pg_trigger."""
    trigger_list = ", ".join(f"'{name}'" for name in ALL_TRIGGER_NAMES)
    check_sql = f"""
    SELECT tgname FROM pg_trigger
    WHERE tgname IN ({trigger_list})
    ORDER BY tgname;
    """

    with engine.connect() as conn:
        result = conn.execute(text(check_sql))
        return [row[0] for row in result]


def triggers_installed(engine: Engine) -> bool:
    """True iff every trigger in ALL_TRIGGER_NAMES is installed."""
    return len(get_installed_triggers(engine)) == len(ALL_TRIGGER_NAMES)
