"""
api/routes/v1/reports.py -- Compliance report routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /reports/recent   -- newest reports across all users (public summary)
  POST   /reports          -- store a report for the caller
  GET    /reports          -- the caller's reports, newest first (limit/offset)
  GET    /reports/{id}     -- full report; 404 if missing, 403 if not the caller's
  DELETE /reports/{id}     -- delete the caller's report; 404 if missing or not theirs

Ownership comes from the verified access-token claims (claims.user_id), never
from the request body or query string.

/reports/recent must be registered before /reports/{report_id}; otherwise
"recent" would be captured as a report id and rejected as a non-integer.
"""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from api.limiter import limiter
from api.models import (
    CreateReportRequest,
    CreateReportResponse,
    RecentReportsResponse,
    ReportDetail,
    ReportDetailResponse,
    ReportListResponse,
    ReportPayload,
    ReportSummaryRow,
    SuccessResponse,
)
from auth.dependencies import get_current_claims
from auth.models import AccessTokenClaims
from core.errors import ForbiddenError, NotFoundError
from reports.models import Report
from reports.store import ReportStore

# Auth policy:
# - GET /api/reports/recent: public -- summary fields only, used for landing-page stats
# - every other route:       requires Bearer access token (get_current_claims)
router = APIRouter()


# ---------------------------------------------------------------------------
# GET /reports/recent -- public
# ---------------------------------------------------------------------------


@router.get("/reports/recent", response_model=RecentReportsResponse)
@limiter.limit("60/minute")
def recent_reports(request: Request, limit: int = Query(default=10, ge=1, le=50)) -> RecentReportsResponse:
    """Return the newest reports across all users without their payloads."""
    store: ReportStore = request.app.state.report_store
    return RecentReportsResponse(reports=[ReportSummaryRow.from_summary(s) for s in store.list_recent(limit)])


# ---------------------------------------------------------------------------
# POST /reports
# ---------------------------------------------------------------------------


@router.post("/reports", response_model=CreateReportResponse, status_code=201)
@limiter.limit("30/minute")
def create_report(
    request: Request,
    body: CreateReportRequest,
    claims: AccessTokenClaims = Depends(get_current_claims),
) -> CreateReportResponse:
    """Store a scanner-produced report for the authenticated user.

    The headline fields are validated through ReportPayload, but report_data
    is the dict the client sent, byte-for-byte in value: timestamps keep their
    original formatting and unknown fields are not touched.
    """
    store: ReportStore = request.app.state.report_store
    try:
        payload = ReportPayload.model_validate(body.report)
    except ValidationError as exc:
        raise RequestValidationError(
            [{**err, "loc": ("body", "report", *err["loc"])} for err in exc.errors()]
        ) from exc
    report = Report(
        user_id=claims.user_id,
        scanned_url=payload.scanned_url,
        scan_date=payload.scan_date,
        overall_status=payload.overall_status,
        overall_score=payload.overall_score,
        report_data=body.report,
    )
    report_id = store.create_report(report)
    return CreateReportResponse(report_id=report_id)


# ---------------------------------------------------------------------------
# GET /reports
# ---------------------------------------------------------------------------


@router.get("/reports", response_model=ReportListResponse)
@limiter.limit("60/minute")
def list_reports(
    request: Request,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    claims: AccessTokenClaims = Depends(get_current_claims),
) -> ReportListResponse:
    """Return one page of the caller's reports plus the total count."""
    store: ReportStore = request.app.state.report_store
    summaries, total = store.list_by_user(claims.user_id, limit=limit, offset=offset)
    return ReportListResponse(reports=[ReportSummaryRow.from_summary(s) for s in summaries], total=total)


# ---------------------------------------------------------------------------
# GET /reports/{report_id}
# ---------------------------------------------------------------------------


@router.get("/reports/{report_id}", response_model=ReportDetailResponse)
@limiter.limit("60/minute")
def get_report(
    request: Request,
    report_id: int,
    claims: AccessTokenClaims = Depends(get_current_claims),
) -> ReportDetailResponse:
    """Return a full report. The caller must own it."""
    store: ReportStore = request.app.state.report_store
    report = store.get_report(report_id)
    if report is None:
        raise NotFoundError("Report not found")
    if report.user_id != claims.user_id:
        raise ForbiddenError("You do not have access to this report")
    return ReportDetailResponse(
        report=ReportDetail(
            id=report.id,
            user_id=report.user_id,
            scanned_url=report.scanned_url,
            scan_date=report.scan_date,
            overall_status=report.overall_status,
            overall_score=report.overall_score,
            report_data=report.report_data,
            created_at=report.created_at,
        )
    )


# ---------------------------------------------------------------------------
# DELETE /reports/{report_id}
# ---------------------------------------------------------------------------


@router.delete("/reports/{report_id}", response_model=SuccessResponse)
@limiter.limit("30/minute")
def delete_report(
    request: Request,
    report_id: int,
    claims: AccessTokenClaims = Depends(get_current_claims),
) -> SuccessResponse:
    """Delete one of the caller's reports.

    The store checks ownership in the DELETE itself, so a report that exists
    but belongs to someone else is reported the same way as a missing one.
    """
    store: ReportStore = request.app.state.report_store
    if not store.delete_report(report_id, claims.user_id):
        raise NotFoundError("Report not found or unauthorized")
    return SuccessResponse(message="Report deleted successfully")
