"""Tutor settings: the administrator's course context."""
from fastapi import APIRouter

from portal.api.deps import AdminOnly, AiConfigs
from portal.models.ai_config import AiConfig

router = APIRouter()


@router.get("/ai-config")
async def get_ai_config(configs: AiConfigs):
    return await configs.get()


@router.put("/ai-config")
async def update_ai_config(data: AiConfig, configs: AiConfigs, admin: AdminOnly):
    """Takes effect for new conversations (after a reset); open sessions keep their context."""
    return await configs.save(data)
