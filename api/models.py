"""
API request and response models for the compliance report REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
reports/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire format is camelCase (accessToken, fullName, scannedUrl) to match the
existing browser client. _CamelModel sets an alias generator so Python code
keeps snake_case attribute names; FastAPI serializes response_model output by
alias. The one exception is ReportDetail, which the client reads with the
stored column names (user_id, report_data).

Request models are deliberately lenient about presence: email/password/
refreshToken are Optional so AuthService can report every missing or invalid
field in one InvalidInputError instead of Pydantic rejecting the body on the
first missing key.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import AuthResult, PublicUser
from reports.models import ReportSummary


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class RegisterRequest(_CamelModel):
    """Request body for POST /api/auth/register."""

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=128)
    full_name: Optional[str] = Field(default=None, max_length=255)


class LoginRequest(_CamelModel):
    """Request body for POST /api/auth/login."""

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=128)


class RefreshTokenRequest(_CamelModel):
    """Request body for POST /api/auth/refresh and /auth/logout."""

    refresh_token: Optional[str] = Field(default=None, max_length=500)


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class UserView(_CamelModel):
    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    full_name: Optional[str]

    @classmethod
    def from_public(cls, user: PublicUser) -> "UserView":
        return cls(id=user.id, email=user.email, full_name=user.full_name)


class AuthResponse(_CamelModel):
    """Response for register (201) and login (200)."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    user: UserView

    @classmethod
    def from_result(cls, result: AuthResult) -> "AuthResponse":
        """Factory Method -- mapping lives beside the output model, not in routes."""
        return cls(
            access_token=result.access_token,
            refresh_token=result.refresh_token,
            user=UserView.from_public(result.user),
        )


class RefreshResponse(_CamelModel):
    """Response for POST /auth/refresh. refreshToken is present only when rotation is enabled."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: Optional[str] = None


class SuccessResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: Optional[str] = None


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class ReportPayload(_CamelModel):
    """The scanner-produced report. Only the headline fields are typed.

    Everything else (summary, checks, ...) is accepted as-is and stored in
    report_data untouched. Scoring and content validation belong to the
    scanner, not this service.
    """

    model_config = ConfigDict(extra="allow")

    scanned_url: str = Field(min_length=1, max_length=2048)
    scan_date: datetime
    overall_status: str = Field(min_length=1, max_length=50)
    overall_score: int = Field(ge=0, le=100)


class CreateReportRequest(BaseModel):
    """Request body for POST /api/reports.

    report stays a plain dict so it can be stored exactly as sent; the route
    validates it against ReportPayload separately.
    """

    report: dict[str, Any]


class CreateReportResponse(_CamelModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    report_id: int


class ReportSummaryRow(_CamelModel):
    """One row in a report listing."""

    model_config = ConfigDict(frozen=True)

    id: int
    scanned_url: str
    scan_date: datetime
    overall_status: str
    overall_score: int
    created_at: datetime

    @classmethod
    def from_summary(cls, summary: ReportSummary) -> "ReportSummaryRow":
        return cls(
            id=summary.id,
            scanned_url=summary.scanned_url,
            scan_date=summary.scan_date,
            overall_status=summary.overall_status,
            overall_score=summary.overall_score,
            created_at=summary.created_at,
        )


class ReportListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    reports: list[ReportSummaryRow]
    total: int


class RecentReportsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    reports: list[ReportSummaryRow]


class ReportDetail(BaseModel):
    """Full report as stored. Keys are the snake_case column names the
    existing client reads (user_id, scanned_url, report_data, ...).
    """

    model_config = ConfigDict(frozen=True)

    id: int
    user_id: int
    scanned_url: str
    scan_date: datetime
    overall_status: str
    overall_score: int
    report_data: dict[str, Any]
    created_at: datetime


class ReportDetailResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    report: ReportDetail


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response.

    error   -- human-readable message
    code    -- machine-readable code (invalid_input, unauthorized, ...)
    details -- optional list, e.g. every failed password rule
    """

    model_config = ConfigDict(frozen=True)

    error: str
    code: str
    details: Optional[list[str]] = None


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
