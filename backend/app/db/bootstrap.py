from __future__ import annotations

import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine

from app.db.base import Base
from app.db.session import engine as default_engine

logger = logging.getLogger(__name__)

# Earlier schemas enforced a globally unique uid, which breaks events shared between cohorts.
LEGACY_UID_INDEXES = ("idx_timetables_uid", "timetables_uid_key")
UID_ZENTURIE_INDEX = "idx_uid_zenturie"

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "tenants": {"id", "slug", "keycloak_realm_id", "is_active"},
    "timetables": {"id", "tenant_id", "uid", "zenturie_id", "start_time", "end_time"},
    "users": {"id", "tenant_id", "keycloak_user_id", "subscription_uuid"},
    "exams": {"id", "course_id", "user_id", "start_time", "is_verified"},
}


def _index_names(connection: Connection, table: str) -> set[str]:
    inspector = inspect(connection)
    names = {item["name"] for item in inspector.get_indexes(table)}
    names.update(item["name"] for item in inspector.get_unique_constraints(table) if item.get("name"))
    return names


def _drop_legacy_uid_index(connection: Connection) -> None:
    if "timetables" not in set(inspect(connection).get_table_names()):
        return
    existing = _index_names(connection, "timetables")
    for name in LEGACY_UID_INDEXES:
        if name not in existing:
            continue
        logger.info("Dropping legacy timetable index %s", name)
        if connection.dialect.name == "postgresql":
            # The *_key form is backed by a constraint, the other by a plain index.
            connection.execute(text(f'ALTER TABLE timetables DROP CONSTRAINT IF EXISTS "{name}"'))
            connection.execute(text(f'DROP INDEX IF EXISTS "{name}"'))
        else:
            connection.execute(text(f'DROP INDEX IF EXISTS "{name}"'))


def _ensure_uid_zenturie_index(connection: Connection) -> None:
    if UID_ZENTURIE_INDEX in _index_names(connection, "timetables"):
        return
    logger.info("Creating unique index %s on timetables(uid, zenturie_id)", UID_ZENTURIE_INDEX)
    connection.execute(
        text(f'CREATE UNIQUE INDEX IF NOT EXISTS "{UID_ZENTURIE_INDEX}" ON timetables (uid, zenturie_id)')
    )


def _assert_required_columns(connection: Connection) -> None:
    inspector = inspect(connection)
    table_names = set(inspector.get_table_names())
    missing_tables = [name for name in REQUIRED_COLUMNS if name not in table_names]
    if missing_tables:
        raise RuntimeError(f"Missing required tables: {', '.join(sorted(missing_tables))}")

    missing_columns: list[str] = []
    for table_name, required in REQUIRED_COLUMNS.items():
        existing = {item["name"] for item in inspector.get_columns(table_name)}
        for column_name in sorted(required - existing):
            missing_columns.append(f"{table_name}.{column_name}")
    if missing_columns:
        raise RuntimeError(f"Missing required columns: {', '.join(missing_columns)}")


def ensure_runtime_schema_compatibility(engine: Engine | None = None) -> None:
    bind = engine or default_engine
    try:
        Base.metadata.create_all(bind=bind)
        with bind.begin() as connection:
            _drop_legacy_uid_index(connection)
            _ensure_uid_zenturie_index(connection)
            _assert_required_columns(connection)
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
