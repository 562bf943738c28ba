"""Scan, hint and team progress endpoints.

Every route acts as the signed-in team; naming another team is a 403.
"""
import logging
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from qrhunt.database import get_db
from qrhunt.dependencies import (
    ensure_same_team,
    get_client_ip,
    get_current_team,
    get_scan_service,
    run_service_call,
)
from qrhunt.models.team import Team
from qrhunt.schemas.scan import HintResult, ScanRequest, ScanResult, TeamProgress, WinnerStatus
from qrhunt.services.scan_service import ScanService
from qrhunt.utils.exceptions import PasswordRequiredError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/scans", response_model=ScanResult)
async def record_scan(
    scan_request: ScanRequest,
    request: Request,
    team: Team = Depends(get_current_team),
    db: AsyncSession = Depends(get_db),
    scan_service: ScanService = Depends(get_scan_service),
):
    """Record a scan.

    Rejected scans return the result body with status 400, except a missing
    password, which is a 200 asking the client to resubmit.
    """
    ensure_same_team(team, scan_request.team_id)

    # Same id on every retry so a scan whose commit landed is replayed, not rejected
    scan_id = uuid4()
    result = await run_service_call(
        db,
        lambda: scan_service.record_scan(
            team_id=scan_request.team_id,
            node_key=scan_request.node_key,
            password=scan_request.password,
            client_ip=get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
            scan_id=scan_id,
        ),
    )

    if result.success or result.error_code == PasswordRequiredError.code:
        return result
    return JSONResponse(status_code=400, content=result.to_payload())


@router.get("/teams/{team_id}/progress", response_model=TeamProgress)
async def get_team_progress(
    team_id: UUID,
    team: Team = Depends(get_current_team),
    db: AsyncSession = Depends(get_db),
    scan_service: ScanService = Depends(get_scan_service),
):
    ensure_same_team(team, team_id)
    return await run_service_call(db, lambda: scan_service.get_team_progress(team_id))


@router.get("/teams/{team_id}/winner", response_model=WinnerStatus)
async def check_if_winner(
    team_id: UUID,
    team: Team = Depends(get_current_team),
    db: AsyncSession = Depends(get_db),
    scan_service: ScanService = Depends(get_scan_service),
):
    ensure_same_team(team, team_id)
    return await run_service_call(db, lambda: scan_service.check_if_winner(team_id))


@router.post("/teams/{team_id}/hints/{node_id}", response_model=HintResult)
async def request_hint(
    team_id: UUID,
    node_id: UUID,
    team: Team = Depends(get_current_team),
    db: AsyncSession = Depends(get_db),
    scan_service: ScanService = Depends(get_scan_service),
):
    """Reveal a node's hint; only the first request for a node costs points."""
    ensure_same_team(team, team_id)
    return await run_service_call(db, lambda: scan_service.request_hint(team_id, node_id))
