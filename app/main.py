import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routers import (
    submissions_router,
    submit_problem_router,
    system_router,
)
from infra.utils.llm_utils import get_groq_api_key
from .db import init_db
from .settings import APP_DESCRIPTION, APP_TITLE, APP_VERSION, CORS_ALLOW_ORIGINS

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

app = FastAPI(
    title=APP_TITLE,
    version=APP_VERSION,
    description=APP_DESCRIPTION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting {APP_TITLE} v{APP_VERSION}...")

    init_db()

    if get_groq_api_key():
        logger.info("Groq API key configured")
    else:
        logger.warning("GROQ_API_KEY not set - submissions will be stored with status 'error' (503)")

    logger.info("Startup complete")


app.include_router(submit_problem_router)
app.include_router(submissions_router)
app.include_router(system_router)


__all__ = ["app"]
