"""Backend settings (single source of truth).

This module loads `.env` (if present) and exposes typed-ish constants.
Keep it lightweight to avoid circular imports.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

_env_path = Path(__file__).resolve().parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)


APP_TITLE = "StudyLens Backend"
APP_VERSION = "1.0.0"
APP_DESCRIPTION = "Problem submission and AI solution service for the StudyLens learning app"


def _split_csv(value: str) -> List[str]:
    parts = [p.strip() for p in value.split(",")]
    return [p for p in parts if p]


# CORS
_CORS_RAW = os.getenv("CORS_ALLOW_ORIGINS", "*").strip()
CORS_ALLOW_ORIGINS: List[str] = ["*"] if _CORS_RAW == "*" else _split_csv(_CORS_RAW)


# Auth/JWT
JWT_ALGORITHM = "HS256"

# Nếu không set, giữ default dev deterministic để tránh crash.
# QUAN TRỌNG: set SECRET_KEY trong production.
SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-change-me")


# Database
DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./studylens.db")


# AI backend (Groq)
# GROQ_API_KEY không được đọc ở đây: key được kiểm tra lúc xử lý request,
# thiếu key => 503 thay vì crash lúc khởi động.
GROQ_MODEL: str = os.getenv("GROQ_MODEL", "openai/gpt-oss-20b")
AI_TEMPERATURE: float = float(os.getenv("AI_TEMPERATURE", "0.7"))
AI_MAX_OUTPUT_TOKENS: int = int(os.getenv("AI_MAX_OUTPUT_TOKENS", "2048"))
AI_REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("AI_REQUEST_TIMEOUT_SECONDS", "60"))
AI_MAX_RETRIES: int = int(os.getenv("AI_MAX_RETRIES", "2"))


# Submissions
ALLOWED_INPUT_TYPES: List[str] = ["text", "image", "voice"]
# image_data là base64; giới hạn kích thước để tránh request quá lớn.
MAX_IMAGE_DATA_MB: int = int(os.getenv("MAX_IMAGE_DATA_MB", "10"))

# Client polling parameters, exposed via /api/config so clients agree with the server.
POLL_INITIAL_DELAY_SECONDS: float = 1.0
POLL_INTERVAL_SECONDS: float = 2.0
POLL_MAX_ATTEMPTS: int = 60
