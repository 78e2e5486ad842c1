"""
MarkBook — Primary School Marks & Report Engine
FastAPI backend entry point.
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load environment before the routers read their settings
load_dotenv()

from core.grading import GRADING_POLICY_VERSION  # noqa: E402
from routes.grading import router as grading_router  # noqa: E402
from routes.analyze import router as analyze_router  # noqa: E402
from routes.reports import router as reports_router  # noqa: E402

SCHOOL_NAME = os.getenv("SCHOOL_NAME", "My School")
CURRENT_TERM = int(os.getenv("CURRENT_TERM", "1"))
CURRENT_YEAR = int(os.getenv("CURRENT_YEAR", "2024"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()
# Comma-separated allowed origins, e.g. http://localhost:5173,https://app.example.com
raw_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
ALLOWED_ORIGINS = [o.strip() for o in raw_origins.split(",") if o.strip()]

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="MarkBook API",
    description=(
        "Grades, aggregates, divisions, class positions and report-card "
        "comments for primary school assessments."
    ),
    version="1.0.0",
)

# CORS — allow the React dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register route modules
app.include_router(grading_router, prefix="/api/grading", tags=["Grading"])
app.include_router(analyze_router, prefix="/api/analyze", tags=["Analytics"])
app.include_router(reports_router, prefix="/api/reports", tags=["Reports"])


@app.get("/api/health")
async def health_check():
    return {
        "status": "ok",
        "school_name": SCHOOL_NAME,
        "grading_policy": GRADING_POLICY_VERSION,
    }


@app.get("/api/config")
async def get_config():
    """Return server configuration to the frontend."""
    return {
        "school_name": SCHOOL_NAME,
        "current_term": CURRENT_TERM,
        "current_year": CURRENT_YEAR,
        "grading_policy": GRADING_POLICY_VERSION,
    }
