"""
Posyandu Growth Standards Engine — FastAPI Backend
==================================================

WHO Child Growth Standards classification and reference curves for the
posyandu dashboard.

REST API endpoints:
    POST   /classify                    Classify one measurement
    POST   /visits/assess               Classify every indicator of a visit
    GET    /who/reference-curve         Get the seven WHO SD reference curves
    GET    /health                      Health check
"""
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from config.settings import CORS_ORIGINS, DEFAULT_CURVE_STEPS, HOST, LOG_LEVEL, PORT
from growth_engine.models.assessor import VisitAssessor
from growth_engine.models.data_structures import VisitRecord
from growth_engine.models.errors import GrowthStandardsError
from growth_engine.models.lms_table import INDICATOR_SPECS, parse_indicator, parse_sex
from growth_engine.models.who_engine import WHOZScoreEngine, default_engine

logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# ── Global State ──────────────────────────────────────────────

_who_engine: Optional[WHOZScoreEngine] = None
_assessor: Optional[VisitAssessor] = None


def _load_system():
    """Load the WHO reference tables once for the process lifetime."""
    global _who_engine, _assessor
    _who_engine = default_engine()
    _assessor = VisitAssessor(who_engine=_who_engine)


def _engine() -> WHOZScoreEngine:
    if _who_engine is None:
        _load_system()
    return _who_engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Loading WHO growth reference tables...")
    _load_system()
    logger.info("Growth standards engine ready, indicators: %s",
                ", ".join(_who_engine.available_indicators))
    yield
    logger.info("Shutting down")


# ── App ──────────────────────────────────────────────────────

app = FastAPI(
    title="Posyandu Growth Standards API",
    description=(
        "WHO Child Growth Standards (2006) engine: LMS z-scores, "
        "nutritional-status classification and SD reference curves for "
        "weight-for-age, length/height-for-age, head-circumference-for-age "
        "and weight-for-length."
    ),
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GrowthStandardsError)
async def growth_error_handler(request: Request, exc: GrowthStandardsError):
    logger.debug("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=422, content=exc.to_dict())


# ── Request Models ────────────────────────────────────────────

class ClassifyRequest(BaseModel):
    indicator: str = Field(..., description="wfa | lhfa | hcfa | wfl (aliases accepted)")
    sex: str = Field(..., description="male | female (L/P accepted)")
    x: float = Field(..., description="Age in months, or length in cm for wfl")
    value: float = Field(..., description="Measured weight (kg), length (cm) or head circumference (cm)")


class VisitRequest(BaseModel):
    sex: str
    birth_date: date
    measurement_date: date
    weight_kg: Optional[float] = None
    length_cm: Optional[float] = None
    head_circumference_cm: Optional[float] = None
    position: Optional[str] = Field(None, description="recumbent | standing")


# ── Endpoints ─────────────────────────────────────────────────

@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "reference_loaded": _who_engine is not None,
        "indicators": _who_engine.available_indicators if _who_engine else [],
        "version": VERSION,
    }


@app.post("/classify")
async def classify(req: ClassifyRequest):
    result = _engine().classify_measurement(req.indicator, req.sex, req.x, req.value)
    return result.to_dict()


@app.post("/visits/assess")
async def assess_visit(req: VisitRequest):
    if _assessor is None:
        _load_system()
    visit = VisitRecord(
        sex=parse_sex(req.sex),
        birth_date=req.birth_date,
        measurement_date=req.measurement_date,
        weight_kg=req.weight_kg,
        length_cm=req.length_cm,
        head_circumference_cm=req.head_circumference_cm,
        position=req.position,
    )
    return _assessor.assess(visit).to_dict()


# ── WHO Reference Curves ──────────────────────────────────────

@app.get("/who/reference-curve")
async def get_reference_curve(
    indicator: str = Query("wfa"),
    sex: str = Query("male"),
    start: Optional[float] = Query(None, description="Defaults to the indicator's domain start"),
    end: Optional[float] = Query(None, description="Defaults to the indicator's domain end"),
    steps: int = Query(DEFAULT_CURVE_STEPS, ge=1, le=2000),
):
    ind = parse_indicator(indicator)
    lo, hi = INDICATOR_SPECS[ind].domain
    curve = _engine().generate_curve(
        ind, sex, lo if start is None else start, hi if end is None else end, steps
    )
    return {
        "indicator": curve.indicator.value,
        "sex": curve.sex.value,
        "x_name": INDICATOR_SPECS[ind].x_name,
        "points": [p.to_dict() for p in curve],
    }


# ── Run ───────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("growth_engine.api.server:app", host=HOST, port=PORT, reload=True)
