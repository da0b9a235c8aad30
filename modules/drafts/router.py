from fastapi import APIRouter, Depends

from .models import DraftUpdate
from .manager import get_draft, update_draft, clear_draft
from modules.services import Services, get_services

router = APIRouter()


@router.get("/")
async def read_draft(services: Services = Depends(get_services)):
    return await get_draft(services.drafts)


@router.patch("/")
async def patch_draft(update: DraftUpdate, services: Services = Depends(get_services)):
    return await update_draft(services.drafts, update)


@router.delete("/")
async def delete_draft(services: Services = Depends(get_services)):
    return await clear_draft(services.drafts)
