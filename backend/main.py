"""
Gradebook — Grading & Ranking API
FastAPI backend entry point.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import ALLOWED_ORIGINS, PODIUM_SIZE, RANKING_POLICY, SCHOOL_NAME, TERM_ALIASES
from core.logger import get_logger
from routes.schemes import router as schemes_router
from routes.grades import router as grades_router
from routes.reports import router as reports_router

log = get_logger()

app = FastAPI(
    title="Gradebook API",
    description=(
        "Grade resolution under configurable grading schemes, per-student "
        "aggregates, class positions and report cards."
    ),
    version="1.0.0",
)

# CORS: allow the dashboard dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register route modules
app.include_router(schemes_router, prefix="/api/grading-schemes", tags=["Grading Schemes"])
app.include_router(grades_router, prefix="/api/grades", tags=["Grades"])
app.include_router(reports_router, prefix="/api/reports", tags=["Reports"])

log.info("Gradebook API ready (ranking policy: %s)", RANKING_POLICY)


@app.get("/api/health")
async def health_check():
    return {
        "status": "ok",
        "school_name": SCHOOL_NAME,
    }


@app.get("/api/config")
async def get_config():
    """Return server configuration to the frontend."""
    return {
        "school_name": SCHOOL_NAME,
        "ranking_policy": RANKING_POLICY,
        "podium_size": PODIUM_SIZE,
        "term_aliases": TERM_ALIASES,
    }
