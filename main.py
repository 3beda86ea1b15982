from __future__ import annotations

import logging
import os
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might need env vars
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes.merges import router as merges_router
from middleware.rate_limit import RateLimitMiddleware, RateLimitConfig
from services.app_config import get_app_settings


logging.basicConfig(
    level=get_app_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Spreadsheet Merge Service")

# Rate limiting (can be disabled in dev with DISABLE_RATE_LIMIT=1)
if not os.getenv("DISABLE_RATE_LIMIT"):
    rate_config = RateLimitConfig(
        requests_per_minute=120,  # Cell edits arrive one request per keystroke batch
        requests_per_hour=2000,
        ai_requests_per_minute=10,
        ai_requests_per_hour=100,
        burst_limit=20,
    )
    app.add_middleware(RateLimitMiddleware, config=rate_config)

# Allow any origin in local dev mode.
# This should be tightened for production.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(merges_router)


@app.get("/")
async def root():
    return {"status": "ok"}
