from fastapi import APIRouter, Depends, Query, Body
from typing import Optional

from .models import ReportSubmit
from .manager import get_reports, refresh_reports, submit_report
from modules.services import Services, get_services

router = APIRouter()


@router.get("/")
async def list_reports(services: Services = Depends(get_services)):
    return await get_reports(services.reports)


@router.post("/refresh")
async def refresh(force: bool = Query(False), services: Services = Depends(get_services)):
    return await refresh_reports(services.reports, force)


@router.post("/submit")
async def submit(
    report: Optional[ReportSubmit] = Body(None),
    services: Services = Depends(get_services),
):
    """
    Submit a new report.
    With no body the persisted draft is submitted; the draft is cleared on success either way.
    """
    return await submit_report(services.reports, services.drafts, report)
