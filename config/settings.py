"""
Configuration for the Posyandu Growth Standards Engine.
"""
import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
LMS_DATA_DIR = Path(
    os.environ.get("LMS_DATA_DIR", PROJECT_ROOT / "growth_engine" / "data")
)

# ── Server ────────────────────────────────────────────────────
PORT = int(os.environ.get("PORT", 8000))
HOST = os.environ.get("HOST", "0.0.0.0")
DEBUG = os.environ.get("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG" if DEBUG else "INFO").upper()
CORS_ORIGINS = [
    o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()
]

# ── Reference curves ──────────────────────────────────────────
DEFAULT_CURVE_STEPS = int(os.environ.get("DEFAULT_CURVE_STEPS", 60))

# ── Anthropometry conventions (WHO Anthro) ────────────────────
AGE_DAYS_PER_MONTH = 30.4375
LENGTH_HEIGHT_SWITCH_MONTHS = 24
POSITION_ADJUSTMENT_CM = 0.7
