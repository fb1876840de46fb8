"""
reports/models.py -- Domain dataclasses for stored compliance-scan reports.

Pure data containers. The report payload itself (report_data) is opaque to
this service: it is produced by the scanner client and stored as-is. Only the
four headline fields are lifted into columns so listings can be sorted and
summarized without parsing JSON.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class Report:
    """A compliance-scan report owned by one user.

    id and created_at are None before the record is written to the database.
    """

    user_id: int
    scanned_url: str
    scan_date: datetime
    overall_status: str  # "Compliant" | "Warning" | "Non-Compliant" | "Info"
    overall_score: int  # 0..100
    report_data: dict = field(default_factory=dict)
    id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass
class ReportSummary:
    """One row in a report listing -- everything except the payload."""

    id: int
    scanned_url: str
    scan_date: datetime
    overall_status: str
    overall_score: int
    created_at: datetime
