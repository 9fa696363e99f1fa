"""
API endpoints for LLMO diagnosis.
Services are built once at startup and read from ``request.app.state``.
"""

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
import structlog

from ..core.config import settings
from ..core.errors import AuthenticationRequired, ClientInputError
from ..models.schemas import DiagnoseResponse, HealthResponse, HistoryPage
from ..services.auth import authorization_from_header

logger = structlog.get_logger()
router = APIRouter()


async def read_url_field(request: Request) -> str:
    """Parse the JSON body and return its ``url`` field."""
    try:
        body = await request.json()
    except ValueError as e:
        raise ClientInputError(detail=f"invalid JSON body: {e}") from e

    if not isinstance(body, dict):
        raise ClientInputError(detail="body is not a JSON object")

    url = body.get("url")
    if not isinstance(url, str) or not url.strip():
        raise ClientInputError("A URL is required.", detail="missing or blank url field")
    return url


@router.post("/diagnose", response_model=DiagnoseResponse, response_model_by_alias=True)
async def diagnose(request: Request):
    """
    Run an LLMO diagnosis for a URL.

    Body: ``{"url": "https://example.com"}``. An optional
    ``Authorization: Bearer <token>`` header unlocks the full report.
    """
    url = await read_url_field(request)
    auth = authorization_from_header(
        request.headers.get("authorization"),
        request.app.state.token_verifier,
    )

    logger.info("diagnose_request", url=url, authenticated=auth.is_authenticated)

    outcome = await request.app.state.workflow.run(url, auth)
    return outcome.to_response()


@router.get("/diagnose", response_model=HealthResponse)
async def diagnose_status():
    """Liveness probe for the diagnosis endpoint."""
    return HealthResponse(service=settings.SERVICE_NAME, version=settings.VERSION)


@router.api_route("/diagnose", methods=["PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"], include_in_schema=False)
async def diagnose_method_not_allowed():
    return JSONResponse(
        status_code=405,
        content={"error": "Method not allowed. Use POST to run a diagnosis."},
        headers={"Allow": "GET, POST"},
    )


@router.get("/history", response_model=HistoryPage)
async def diagnosis_history(
    request: Request,
    url_search: str = Query(None, max_length=2048),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """Paginated diagnosis history of the signed-in caller, newest first."""
    auth = authorization_from_header(
        request.headers.get("authorization"),
        request.app.state.token_verifier,
    )
    if not auth.is_authenticated:
        raise AuthenticationRequired()

    return await request.app.state.history.list_for_user(
        auth.user_id,
        url_search=url_search,
        page=page,
        limit=limit,
    )
