"""
Registrar Grades — grade averaging and academic standing service.
FastAPI backend entry point.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

# Load environment before route modules read their settings
load_dotenv()

from core.grading_scale import PASSING_GRADE, get_descriptive_scale, get_gwa_scale  # noqa: E402
from routes.cohort import router as cohort_router  # noqa: E402
from routes.grades import router as grades_router  # noqa: E402
from routes.reports import router as reports_router  # noqa: E402
from routes.transferee import router as transferee_router  # noqa: E402
from routes.upload import router as upload_router  # noqa: E402

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

SCHOOL_NAME = os.getenv("SCHOOL_NAME", "My School")
# Comma-separated allowed origins, e.g. http://localhost:5173,https://portal.example.edu
raw_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
ALLOWED_ORIGINS = [o.strip() for o in raw_origins.split(",") if o.strip()]
SERVE_REPORTS = os.getenv("SERVE_REPORTS", "false").strip().lower() in {"1", "true", "yes", "on"}
REPORTS_DIR = Path(__file__).resolve().parent / "uploads" / "reports"
REPORTS_DIR.mkdir(parents=True, exist_ok=True)

app = FastAPI(
    title="Registrar Grades API",
    description=(
        "Period averages, GWA conversion, descriptive ratings and academic "
        "standing for college, senior high and junior high students."
    ),
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Generated reports stay private unless explicitly enabled.
if SERVE_REPORTS:
    app.mount("/reports", StaticFiles(directory=str(REPORTS_DIR)), name="reports")

app.include_router(grades_router, prefix="/api/grades", tags=["Grades"])
app.include_router(cohort_router, prefix="/api/cohort", tags=["Cohort"])
app.include_router(upload_router, prefix="/api/upload", tags=["Upload"])
app.include_router(transferee_router, prefix="/api/transferee", tags=["Transferee"])
app.include_router(reports_router, prefix="/api/reports", tags=["Reports"])

logger.info("Registrar Grades API ready for %s", SCHOOL_NAME)


@app.get("/api/health")
async def health_check():
    return {
        "status": "ok",
        "school_name": SCHOOL_NAME,
        "passing_grade": PASSING_GRADE,
    }


@app.get("/api/config")
async def get_config():
    """Return server configuration to the frontend."""
    return {
        "school_name": SCHOOL_NAME,
        "passing_grade": PASSING_GRADE,
        "gwa_scale": get_gwa_scale(),
        "descriptive_scale": get_descriptive_scale(),
    }
