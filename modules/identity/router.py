from fastapi import APIRouter, Depends

from .models import IdentityUpdate
from .manager import get_identity, update_identity
from modules.services import Services, get_services

router = APIRouter()


@router.get("/")
async def get_me(services: Services = Depends(get_services)):
    """Get nickname, anonymous flag and effective display name"""
    return await get_identity(services.identity)


@router.put("/")
async def update_me(update: IdentityUpdate, services: Services = Depends(get_services)):
    """Update nickname and/or anonymous flag"""
    return await update_identity(services.identity, update)
