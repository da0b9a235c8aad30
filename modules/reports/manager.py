import logging
from typing import Optional, Union

from .models import Report, ReportSubmit
from .coordinator import ReportCoordinator
from modules.drafts.manager import DraftCoordinator
from modules.drafts.models import ReportDraft
from modules.shared.errors import StorageError, ReportContractError
from modules.shared.response import success_response, error_response
from modules.shared.utils import blank_to_none

logger = logging.getLogger("reports.manager")

REQUIRED_FIELDS = ("type", "description", "location")


def missing_fields(source: Union[ReportSubmit, ReportDraft]) -> list:
    return [name for name in REQUIRED_FIELDS if not getattr(source, name).strip()]


def build_report(source: Union[ReportSubmit, ReportDraft]) -> Report:
    """New report from form input, timestamped now."""
    return Report(
        type=source.type,
        description=source.description,
        location=source.location,
        image_url=blank_to_none(source.image_url),
    )


async def get_reports(coordinator: ReportCoordinator):
    """Current report list with loading and error state"""
    state = coordinator.state
    logger.debug(f"Serving {len(state.reports)} reports (loading={state.is_loading}, error={state.error})")
    return success_response(state, "Reports retrieved successfully")


async def refresh_reports(coordinator: ReportCoordinator, force: bool = False):
    """Fetch the collection once unless a refresh is already running"""
    task = coordinator.refresh(force)
    if task is None:
        logger.info("Refresh skipped: another refresh is in progress")
        return success_response({"scheduled": False, "state": coordinator.state}, "Refresh already in progress")
    await task
    state = coordinator.state
    if state.error:
        return error_response(state.error, 502, {"scheduled": True, "state": state})
    return success_response({"scheduled": True, "state": state}, "Reports refreshed successfully")


async def submit_report(
    coordinator: ReportCoordinator,
    drafts: DraftCoordinator,
    payload: Optional[ReportSubmit] = None,
):
    """Submit a report from the request body, or from the saved draft when there is none"""
    try:
        source = payload if payload is not None else await drafts.current()
    except StorageError as e:
        logger.error(f"Error reading draft for submission: {e}")
        return error_response(str(e), 503)

    missing = missing_fields(source)
    if missing:
        logger.warning(f"Report rejected, missing fields: {missing}")
        return error_response("Missing required fields", 400, {"missing": missing})

    report = build_report(source)
    logger.info(f"Submitting {report.type} report from {'request' if payload is not None else 'draft'}")
    try:
        submitted = await coordinator.submit(report)
    except StorageError as e:
        logger.error(f"Error reading identity for submission: {e}")
        return error_response(str(e), 503)
    except ReportContractError as e:
        logger.error(f"Invalid report: {e}")
        return error_response(str(e), 400)

    if not submitted:
        return error_response("Report could not be submitted, please try again", 502)

    draft_cleared = True
    try:
        await drafts.clear()
    except StorageError as e:
        # the report is stored already; resubmitting would duplicate it
        logger.error(f"Report submitted but draft could not be cleared: {e}")
        draft_cleared = False

    return success_response(
        {"submitted": True, "timestamp": report.timestamp, "draft_cleared": draft_cleared},
        "Report submitted successfully",
    )
