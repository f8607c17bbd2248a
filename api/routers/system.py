"""System/utility endpoints
"""

from __future__ import annotations

import logging

from fastapi import APIRouter
from pydantic import BaseModel

from app.settings import (
	ALLOWED_INPUT_TYPES,
	APP_TITLE,
	APP_VERSION,
	MAX_IMAGE_DATA_MB,
	POLL_INITIAL_DELAY_SECONDS,
	POLL_INTERVAL_SECONDS,
	POLL_MAX_ATTEMPTS,
)
from infra.utils.llm_utils import get_groq_api_key

logger = logging.getLogger(__name__)

router = APIRouter(tags=["system"])


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    ai_configured: bool


@router.get("/health", response_model=HealthResponse)
async def health_check():
    return {
        "status": "healthy",
        "service": APP_TITLE,
        "version": APP_VERSION,
        "ai_configured": get_groq_api_key() is not None,
    }

@router.get("/api/config")
async def get_config():
	return {
		"allowed_input_types": ALLOWED_INPUT_TYPES,
		"max_image_data_mb": MAX_IMAGE_DATA_MB,
		"poll_initial_delay_seconds": POLL_INITIAL_DELAY_SECONDS,
		"poll_interval_seconds": POLL_INTERVAL_SECONDS,
		"poll_max_attempts": POLL_MAX_ATTEMPTS,
	}


__all__ = ["router"]
