"""
reports/store.py -- SQLAlchemy-backed persistence for compliance-scan reports.

Uses SQLAlchemy Core (not ORM) so the dataclasses in reports/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change, not a rewrite.

Pattern: Repository + Data Mapper. ReportStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly.

Ownership: every mutating or per-user query takes user_id. delete_report()
puts user_id in the WHERE clause so a user can never delete someone else's
report even if they guess its ID. get_report() returns the row regardless of
owner; the route compares user_id to tell "not found" (404) from "not yours"
(403).

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = ReportStore(engine)
    report_id = store.create_report(report)
    summaries, total = store.list_by_user(user_id, limit=50, offset=0)
    store.delete_report(report_id, user_id)
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    func,
    select,
)
from sqlalchemy.engine import Engine

from reports.models import Report, ReportSummary

logger = logging.getLogger("compliance.reports")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_reports = Table(
    "reports",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    # References users.id; the auth tables live in a separate MetaData so the
    # foreign key is not declared here (reports/ must not import auth/).
    Column("user_id", Integer, nullable=False),
    Column("scanned_url", String(2048), nullable=False),
    Column("scan_date", DateTime, nullable=False),
    Column("overall_status", String(50), nullable=False),
    Column("overall_score", Integer, nullable=False),
    Column("report_data", JSON, nullable=False),
    Column("created_at", DateTime, nullable=False),
    CheckConstraint("overall_score >= 0 AND overall_score <= 100", name="ck_reports_score_range"),
    Index("idx_reports_user_id", "user_id"),
    Index("idx_reports_created_at", "created_at"),
)

_SUMMARY_COLUMNS = (
    _reports.c.id,
    _reports.c.scanned_url,
    _reports.c.scan_date,
    _reports.c.overall_status,
    _reports.c.overall_score,
    _reports.c.created_at,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _utc_naive(value: Optional[datetime] = None) -> datetime:
    if value is None:
        value = datetime.now(timezone.utc)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _utc_aware(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def init_report_schema(engine: Engine) -> None:
    metadata.create_all(engine)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ReportStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        init_report_schema(engine)

    def create_report(self, report: Report) -> int:
        """Insert a report and return its assigned ID."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _reports.insert().values(
                    user_id=report.user_id,
                    scanned_url=report.scanned_url,
                    scan_date=_utc_naive(report.scan_date),
                    overall_status=report.overall_status,
                    overall_score=report.overall_score,
                    report_data=report.report_data,
                    created_at=_utc_naive(),
                )
            )
            conn.commit()
            report_id = result.inserted_primary_key[0]
        logger.info("Stored report id=%s for user id=%s", report_id, report.user_id)
        return report_id

    def list_by_user(self, user_id: int, limit: int = 50, offset: int = 0) -> tuple[list[ReportSummary], int]:
        """Return (page of summaries newest first, total count) for one user."""
        with self.engine.connect() as conn:
            total = conn.execute(
                select(func.count()).select_from(_reports).where(_reports.c.user_id == user_id)
            ).scalar()
            rows = conn.execute(
                select(*_SUMMARY_COLUMNS)
                .where(_reports.c.user_id == user_id)
                .order_by(_reports.c.created_at.desc(), _reports.c.id.desc())
                .limit(limit)
                .offset(offset)
            ).fetchall()
        return [_row_to_summary(r) for r in rows], total or 0

    def list_recent(self, limit: int = 10) -> list[ReportSummary]:
        """Return the newest reports across all users (summary fields only)."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(*_SUMMARY_COLUMNS).order_by(_reports.c.created_at.desc(), _reports.c.id.desc()).limit(limit)
            ).fetchall()
        return [_row_to_summary(r) for r in rows]

    def get_report(self, report_id: int) -> Optional[Report]:
        """Look up a report by ID regardless of owner. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_reports.select().where(_reports.c.id == report_id)).fetchone()
        return _row_to_report(row) if row is not None else None

    def delete_report(self, report_id: int, user_id: int) -> bool:
        """Delete a report owned by user_id. Returns False if not found or wrong owner."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _reports.delete().where((_reports.c.id == report_id) & (_reports.c.user_id == user_id))
            )
            conn.commit()
        deleted = result.rowcount > 0
        if deleted:
            logger.info("Deleted report id=%s for user id=%s", report_id, user_id)
        return deleted


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_report(row) -> Report:
    return Report(
        id=row.id,
        user_id=row.user_id,
        scanned_url=row.scanned_url,
        scan_date=_utc_aware(row.scan_date),
        overall_status=row.overall_status,
        overall_score=row.overall_score,
        report_data=row.report_data,
        created_at=_utc_aware(row.created_at),
    )


def _row_to_summary(row) -> ReportSummary:
    return ReportSummary(
        id=row.id,
        scanned_url=row.scanned_url,
        scan_date=_utc_aware(row.scan_date),
        overall_status=row.overall_status,
        overall_score=row.overall_score,
        created_at=_utc_aware(row.created_at),
    )
