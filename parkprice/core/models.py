"""Lightweight database helpers for parking events and spot groups."""
from __future__ import annotations

import json
import os
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Optional, Tuple
from urllib.parse import unquote, urlparse
from uuid import uuid4

import pymysql
from pymysql.cursors import DictCursor

from parkprice.core.abstractions import STATUSES, Coordinate, ParkingEvent, SpotCoordinate, SpotGroup

DB_ERRORS = (sqlite3.Error, pymysql.Error)


class PersistenceError(RuntimeError):
    """Raised when the event or group store cannot be read or written."""


class DatabaseSession:
    """Minimal DB-API session wrapper with context aware placeholders."""

    def __init__(self, connection, placeholder: str):
        self.connection = connection
        self.placeholder = placeholder

    # -- DB-API compatibility -------------------------------------------------
    def _prepare_sql(self, sql: str) -> str:
        if self.placeholder == "?":
            return sql
        return sql.replace("?", self.placeholder)

    def execute(self, sql: str, params: tuple = ()):
        cursor = self.connection.cursor()
        cursor.execute(self._prepare_sql(sql), params)
        return cursor

    def fetchone(self, sql: str, params: tuple = ()):
        cursor = self.execute(sql, params)
        row = cursor.fetchone()
        cursor.close()
        return row

    def fetchall(self, sql: str, params: tuple = ()):
        cursor = self.execute(sql, params)
        rows = cursor.fetchall()
        cursor.close()
        return rows

    def commit(self) -> None:
        self.connection.commit()

    def rollback(self) -> None:
        self.connection.rollback()

    def close(self) -> None:
        self.connection.close()


class SessionFactory:
    def __init__(self, url: str, placeholder: str, driver: str):
        self.url = url
        self.placeholder = placeholder
        self.driver = driver

    def __call__(self) -> DatabaseSession:
        connection = create_connection(self.url, self.driver)
        return DatabaseSession(connection, self.placeholder)


_engine_lock = threading.Lock()
_session_factory: Optional[SessionFactory] = None


# ---------------------------------------------------------------------------

def _default_database_url() -> str:
    return os.getenv("DATABASE_URL", "sqlite:///./parkprice.db")


def configure_engine(url: Optional[str] = None) -> SessionFactory:
    """Configure database access using the provided URL and create the tables."""

    global _session_factory
    database_url = url or _default_database_url()
    driver, placeholder = detect_driver(database_url)
    factory = SessionFactory(database_url, placeholder, driver)
    with _engine_lock:
        _session_factory = factory
    run_migrations(factory)
    return factory


def detect_driver(url: str) -> Tuple[str, str]:
    parsed = urlparse(url)
    if parsed.scheme.startswith("mysql"):
        return "mysql", "%s"
    if parsed.scheme.startswith("sqlite") or parsed.scheme == "":
        return "sqlite", "?"
    raise ValueError(f"Unsupported database scheme: {parsed.scheme}")


def create_connection(url: str, driver: str):
    parsed = urlparse(url)
    if driver == "sqlite":
        path = unquote(parsed.path or parsed.netloc or ":memory:")
        db_path = path if path.startswith("/") else os.path.abspath(path)
        connection = sqlite3.connect(db_path, check_same_thread=False)
        connection.row_factory = sqlite3.Row
        return connection

    if driver == "mysql":
        return pymysql.connect(
            host=parsed.hostname or "localhost",
            user=parsed.username,
            password=parsed.password or "",
            database=parsed.path.lstrip("/") or None,
            port=parsed.port or 3306,
            cursorclass=DictCursor,
            autocommit=False,
        )

    raise ValueError(f"Unsupported driver: {driver}")


def get_session_factory() -> SessionFactory:
    if _session_factory is None:
        return configure_engine()
    return _session_factory


@contextmanager
def session_scope(session_factory: Optional[SessionFactory] = None) -> Iterator[DatabaseSession]:
    """Yield a session that commits on success and rolls back on error.

    Driver errors surface as :class:`PersistenceError`.
    """
    factory = session_factory or get_session_factory()
    try:
        session = factory()
    except DB_ERRORS as exc:
        raise PersistenceError(f"cannot open database: {exc}") from exc
    try:
        yield session
        session.commit()
    except DB_ERRORS as exc:
        session.rollback()
        raise PersistenceError(str(exc)) from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------

def run_migrations(session_factory: Optional[SessionFactory] = None) -> None:
    factory = session_factory or get_session_factory()
    autoincrement = "AUTO_INCREMENT" if factory.driver == "mysql" else "AUTOINCREMENT"
    with session_scope(factory) as session:
        session.execute(
            f"""
            CREATE TABLE IF NOT EXISTS parking_events (
                id INTEGER PRIMARY KEY {autoincrement},
                event_id VARCHAR(64) NOT NULL UNIQUE,
                spot_id VARCHAR(128) NOT NULL,
                latitude DOUBLE PRECISION NOT NULL,
                longitude DOUBLE PRECISION NOT NULL,
                status VARCHAR(16) NOT NULL,
                ts_utc VARCHAR(40) NOT NULL,
                created_at VARCHAR(40) NOT NULL
            )
            """
        )
        session.execute(
            f"""
            CREATE TABLE IF NOT EXISTS spot_groups (
                id INTEGER PRIMARY KEY {autoincrement},
                group_id VARCHAR(64) NOT NULL UNIQUE,
                center_latitude DOUBLE PRECISION NOT NULL,
                center_longitude DOUBLE PRECISION NOT NULL,
                members TEXT NOT NULL,
                last_updated VARCHAR(40) NOT NULL
            )
            """
        )
        if factory.driver == "sqlite":
            session.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_parking_events_spot_ts
                ON parking_events (spot_id, ts_utc)
                """
            )


# ---------------------------------------------------------------------------

def utcnow_iso() -> str:
    return format_timestamp(datetime.now(timezone.utc))


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value)


def new_event_id() -> str:
    return f"evt_{uuid4().hex}"


def _event_from_row(row) -> ParkingEvent:
    return ParkingEvent(
        event_id=row["event_id"],
        spot_id=row["spot_id"],
        latitude=float(row["latitude"]),
        longitude=float(row["longitude"]),
        status=row["status"],
        timestamp=parse_timestamp(row["ts_utc"]),
    )


def _group_from_row(row) -> SpotGroup:
    return SpotGroup(
        group_id=row["group_id"],
        center=Coordinate(float(row["center_latitude"]), float(row["center_longitude"])),
        members=tuple(json.loads(row["members"])),
        last_updated=parse_timestamp(row["last_updated"]),
    )


def _count(row) -> int:
    if isinstance(row, dict):
        return int(row["cnt"])
    return int(row[0])


# -- Events -----------------------------------------------------------------

def insert_event(
    session: DatabaseSession,
    *,
    spot_id: str,
    latitude: float,
    longitude: float,
    status: str,
    timestamp: datetime,
    event_id: Optional[str] = None,
) -> ParkingEvent:
    if status not in STATUSES:
        raise ValueError(f"Unknown spot status: {status!r}")
    event = ParkingEvent(
        event_id=event_id or new_event_id(),
        spot_id=spot_id,
        latitude=latitude,
        longitude=longitude,
        status=status,
        timestamp=parse_timestamp(format_timestamp(timestamp)),
    )
    session.execute(
        """
        INSERT INTO parking_events (
            event_id, spot_id, latitude, longitude, status, ts_utc, created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            event.event_id,
            event.spot_id,
            event.latitude,
            event.longitude,
            event.status,
            format_timestamp(event.timestamp),
            utcnow_iso(),
        ),
    )
    return event


def spot_coordinates(session: DatabaseSession) -> List[SpotCoordinate]:
    """One entry per spot with its latest coordinate, ordered by first sighting."""
    rows = session.fetchall(
        """
        SELECT e.spot_id, e.latitude, e.longitude
        FROM parking_events e
        WHERE e.id = (
            SELECT p.id FROM parking_events p
            WHERE p.spot_id = e.spot_id
            ORDER BY p.ts_utc DESC, p.id DESC
            LIMIT 1
        )
        ORDER BY (
            SELECT MIN(f.id) FROM parking_events f WHERE f.spot_id = e.spot_id
        )
        """
    )
    return [
        SpotCoordinate(spot_id=row["spot_id"], latitude=float(row["latitude"]), longitude=float(row["longitude"]))
        for row in rows
    ]


def events_for_spot(session: DatabaseSession, spot_id: str) -> List[ParkingEvent]:
    rows = session.fetchall(
        "SELECT * FROM parking_events WHERE spot_id = ? ORDER BY ts_utc ASC, id ASC",
        (spot_id,),
    )
    return [_event_from_row(row) for row in rows]


def count_events(session: DatabaseSession) -> int:
    return _count(session.fetchone("SELECT COUNT(*) AS cnt FROM parking_events"))


# -- Groups -----------------------------------------------------------------

def upsert_group(session: DatabaseSession, group: SpotGroup) -> bool:
    """Replace the group with the same ``group_id`` or insert it.

    Returns ``True`` when a new row was created.
    """
    params = (
        group.center.latitude,
        group.center.longitude,
        json.dumps(list(group.members)),
        format_timestamp(group.last_updated),
        group.group_id,
    )
    existing = session.fetchone("SELECT id FROM spot_groups WHERE group_id = ?", (group.group_id,))
    if existing:
        session.execute(
            """
            UPDATE spot_groups
            SET center_latitude = ?, center_longitude = ?, members = ?, last_updated = ?
            WHERE group_id = ?
            """,
            params,
        )
        return False
    session.execute(
        """
        INSERT INTO spot_groups (
            center_latitude, center_longitude, members, last_updated, group_id
        ) VALUES (?, ?, ?, ?, ?)
        """,
        params,
    )
    return True


def list_groups(session: DatabaseSession) -> List[SpotGroup]:
    rows = session.fetchall("SELECT * FROM spot_groups ORDER BY id ASC")
    return [_group_from_row(row) for row in rows]


def delete_groups_except(session: DatabaseSession, keep: Iterable[str]) -> int:
    """Delete every group whose id is not in ``keep``; return how many went."""
    keep_ids = list(keep)
    if keep_ids:
        placeholders = ", ".join("?" for _ in keep_ids)
        cursor = session.execute(
            f"DELETE FROM spot_groups WHERE group_id NOT IN ({placeholders})",
            tuple(keep_ids),
        )
    else:
        cursor = session.execute("DELETE FROM spot_groups")
    deleted = cursor.rowcount
    cursor.close()
    return max(deleted, 0)


def count_groups(session: DatabaseSession) -> int:
    return _count(session.fetchone("SELECT COUNT(*) AS cnt FROM spot_groups"))


__all__ = [
    "DatabaseSession",
    "PersistenceError",
    "SessionFactory",
    "configure_engine",
    "count_events",
    "count_groups",
    "delete_groups_except",
    "events_for_spot",
    "get_session_factory",
    "insert_event",
    "list_groups",
    "new_event_id",
    "run_migrations",
    "session_scope",
    "spot_coordinates",
]
