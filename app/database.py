from __future__ import annotations

import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, List, Optional

from sqlalchemy import ForeignKey, Integer, String, create_engine, event, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from config import DATABASE_PATH
from errors import StorageError


logger = logging.getLogger(__name__)

TERMS_ACCEPTED_KEY = "termsAccepted"


class Base(DeclarativeBase):
    """Metadata for the employees/shifts/settings tables living in maneawa.sqlite."""

    pass


class Employee(Base):
    __tablename__ = "employees"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(collation="NOCASE"), nullable=False, unique=True)
    notes: Mapped[Optional[str]] = mapped_column(String, default="")

    shifts: Mapped[List["Shift"]] = relationship(
        back_populates="employee",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Shift(Base):
    __tablename__ = "shifts"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    work_date: Mapped[str] = mapped_column(String, nullable=False)  # YYYY-MM-DD
    start_time: Mapped[str] = mapped_column(String, nullable=False)  # HH:mm
    end_time: Mapped[str] = mapped_column(String, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    employee: Mapped[Employee] = relationship(back_populates="shifts")


class Setting(Base):
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(String, nullable=False)


@dataclass(frozen=True)
class EmployeeRecord:
    id: int
    name: str
    notes: str


@dataclass(frozen=True)
class ShiftRecord:
    id: int
    employee_id: int
    employee_name: str
    work_date: str
    start_time: str
    end_time: str
    duration_minutes: int


@dataclass(frozen=True)
class Settings:
    terms_accepted: bool


def _expect(value: Any, kind: type, column: str) -> Any:
    if not isinstance(value, kind) or isinstance(value, bool):
        raise StorageError(f"列 {column} の値が不正です: {value!r}")
    return value


def employee_from_row(row) -> EmployeeRecord:
    """Map an ``(id, name, notes)`` row onto an EmployeeRecord."""
    if len(row) != 3:
        raise StorageError(f"従業員データの形式が不正です: {tuple(row)!r}")
    employee_id, name, notes = row
    return EmployeeRecord(
        id=_expect(employee_id, int, "employees.id"),
        name=_expect(name, str, "employees.name"),
        notes=_expect(notes, str, "employees.notes") if notes is not None else "",
    )


def shift_from_row(row) -> ShiftRecord:
    """Map a joined shift row (shift columns plus the employee name) onto a ShiftRecord."""
    if len(row) != 7:
        raise StorageError(f"シフトデータの形式が不正です: {tuple(row)!r}")
    shift_id, employee_id, employee_name, work_date, start_time, end_time, duration = row
    return ShiftRecord(
        id=_expect(shift_id, int, "shifts.id"),
        employee_id=_expect(employee_id, int, "shifts.employee_id"),
        employee_name=_expect(employee_name, str, "employees.name"),
        work_date=_expect(work_date, str, "shifts.work_date"),
        start_time=_expect(start_time, str, "shifts.start_time"),
        end_time=_expect(end_time, str, "shifts.end_time"),
        duration_minutes=_expect(duration, int, "shifts.duration_minutes"),
    )


def shift_columns():
    """Columns selected for every shift read, in ShiftRecord field order."""
    return (
        Shift.id,
        Shift.employee_id,
        Employee.name,
        Shift.work_date,
        Shift.start_time,
        Shift.end_time,
        Shift.duration_minutes,
    )


class ComplianceDatabase:
    """In-memory SQLite database mirrored to a single file after every mutation.

    The in-memory copy is authoritative while the process runs. ``mutation()``
    brackets each write: commit, then rewrite the whole file. If the rewrite
    fails the in-memory copy is reloaded from the last file snapshot so both
    stay at the prior durable state.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.RLock()
        self.engine = create_engine(
            "sqlite://",
            echo=False,
            future=True,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        event.listen(self.engine, "connect", _enable_foreign_keys_on_connect)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False, future=True)

    @classmethod
    def initialize(cls, path: Path | str | None = None) -> "ComplianceDatabase":
        instance = cls(Path(path) if path else DATABASE_PATH)
        instance._bootstrap()
        return instance

    def get_database_file_path(self) -> Path:
        return self.path

    def _bootstrap(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"データフォルダを作成できませんでした: {exc}") from exc

        with self._lock:
            if self.path.exists():
                self._load_snapshot()
                self._create_schema()
                logger.info("Loaded database from %s", self.path)
            else:
                self._create_schema()
                self.persist()
                logger.info("Created new database at %s", self.path)
            self._enable_foreign_keys()

    def _create_schema(self) -> None:
        try:
            Base.metadata.create_all(self.engine)
            with self.engine.begin() as conn:
                conn.execute(
                    sqlite_insert(Setting)
                    .values(key=TERMS_ACCEPTED_KEY, value="false")
                    .on_conflict_do_nothing(index_elements=[Setting.key])
                )
        except SQLAlchemyError as exc:
            raise StorageError(f"データベースを初期化できませんでした: {exc}") from exc

    def _enable_foreign_keys(self) -> None:
        with self._driver_connection() as conn:
            conn.execute("PRAGMA foreign_keys = ON;")

    @contextmanager
    def _driver_connection(self) -> Iterator[sqlite3.Connection]:
        pooled = self.engine.raw_connection()
        try:
            yield pooled.driver_connection
        finally:
            pooled.close()

    def _load_snapshot(self) -> None:
        """Replace the in-memory database with the contents of the file."""
        try:
            source = sqlite3.connect(str(self.path))
            try:
                with self._driver_connection() as target:
                    source.backup(target)
            finally:
                source.close()
        except (OSError, sqlite3.Error) as exc:
            logger.error("Failed to load database from %s: %s", self.path, exc)
            raise StorageError(f"データベースを読み込めませんでした: {exc}") from exc

    def persist(self) -> None:
        """Serialize the whole in-memory database and replace the file with it."""
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            if tmp_path.exists():
                tmp_path.unlink()
            target = sqlite3.connect(str(tmp_path))
            try:
                with self._driver_connection() as source:
                    source.backup(target)
            finally:
                target.close()
            os.replace(tmp_path, self.path)
        except (OSError, sqlite3.Error) as exc:
            logger.error("Failed to persist database to %s: %s", self.path, exc)
            raise StorageError(f"データベースを保存できませんでした: {exc}") from exc
        logger.debug("Persisted database to %s", self.path)

    def copy_to(self, target_path: Path) -> Path:
        """Write a consistent copy of the current snapshot to ``target_path``."""
        target_path = Path(target_path)
        with self._lock:
            try:
                target_path.parent.mkdir(parents=True, exist_ok=True)
                target = sqlite3.connect(str(target_path))
                try:
                    with self._driver_connection() as source:
                        source.backup(target)
                finally:
                    target.close()
            except (OSError, sqlite3.Error) as exc:
                raise StorageError(f"バックアップを作成できませんでした: {exc}") from exc
        return target_path

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Read-only session; nothing written here is committed."""
        with self._lock:
            session = self._session_factory()
            try:
                yield session
            except SQLAlchemyError as exc:
                raise StorageError(f"データベースの読み取りに失敗しました: {exc}") from exc
            finally:
                session.rollback()
                session.close()

    @contextmanager
    def mutation(self) -> Iterator[Session]:
        """Session whose changes are committed and then flushed to disk.

        Anything raised inside the block rolls the session back. A failed
        flush restores the in-memory database from the file and raises
        StorageError.
        """
        with self._lock:
            session = self._session_factory()
            try:
                yield session
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise StorageError(f"データベースの更新に失敗しました: {exc}") from exc
            except BaseException:
                session.rollback()
                raise
            finally:
                session.close()

            try:
                self.persist()
            except StorageError:
                self._load_snapshot()
                self._enable_foreign_keys()
                raise

    def dispose(self) -> None:
        self.engine.dispose()


def _enable_foreign_keys_on_connect(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON;")
    cursor.close()


def get_settings(db: ComplianceDatabase) -> Settings:
    with db.session() as session:
        value = session.scalar(select(Setting.value).where(Setting.key == TERMS_ACCEPTED_KEY))
    return Settings(terms_accepted=value == "true")


def accept_terms(db: ComplianceDatabase) -> None:
    with db.mutation() as session:
        session.execute(
            sqlite_insert(Setting)
            .values(key=TERMS_ACCEPTED_KEY, value="true")
            .on_conflict_do_update(index_elements=[Setting.key], set_={"value": "true"})
        )
    logger.info("Terms accepted")
