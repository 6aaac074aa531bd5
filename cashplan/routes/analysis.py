# cashplan/routes/analysis.py

from __future__ import annotations

from typing import Any, Dict, Optional
import logging
import math

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Query, UploadFile
from pydantic import BaseModel, Field

from cashplan import config
from cashplan.db.job_store import JobStore, get_job_store
from cashplan.services.diagnosis import diagnose as run_diagnosis
from cashplan.services.errors import InvalidInput, PlanNotFound
from cashplan.services.execution import find_plan, simulate
from cashplan.services.forecast import generate_forecast, validate_horizon
from cashplan.services.recommendations import recommend as run_recommend
from cashplan.utils.parsing import load_records_from_csv

router = APIRouter()
logger = logging.getLogger("cashplan")


# -------------------------
# Helpers
# -------------------------

def json_safe(obj: Any) -> Any:
    """Replace non-finite floats (e.g. an infinite payback period) with None for JSON."""
    if isinstance(obj, float) and not math.isfinite(obj):
        return None
    if isinstance(obj, dict):
        return {k: json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [json_safe(v) for v in obj]
    return obj


def _get_job_or_404(store: JobStore, job_id: str) -> Dict[str, Any]:
    job = store.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="job not found")
    return job


def _ensure_diagnosis(store: JobStore, job: Dict[str, Any]) -> Dict[str, Any]:
    if job.get("diagnosis"):
        return job["diagnosis"]
    logger.info("Computing diagnosis on demand for job %s", job["id"])
    try:
        diagnosis = run_diagnosis(job.get("data") or [])
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    store.update(job["id"], {"diagnosis": diagnosis})
    return diagnosis


def _ensure_forecast(store: JobStore, job: Dict[str, Any], horizon: int) -> Dict[str, Any]:
    cached = job.get("forecast")
    if cached and cached.get("horizon") == horizon:
        return cached
    forecast = generate_forecast(job.get("data") or [], horizon=horizon)
    store.update(job["id"], {"forecast": forecast})
    return forecast


def process_job(store: JobStore, job_id: str) -> None:
    """Background analysis after upload: diagnosis, then the default forecast."""
    with store.lock(job_id):
        job = store.get(job_id)
        if not job:
            logger.warning("Background processing skipped, job %s vanished", job_id)
            return
        store.update(job_id, {"status": "processing"})
        try:
            diagnosis = run_diagnosis(job.get("data") or [])
            store.update(job_id, {"diagnosis": diagnosis})

            forecast = generate_forecast(job.get("data") or [], horizon=config.DEFAULT_HORIZON)
            store.update(job_id, {"forecast": forecast, "status": "ready"})
            logger.info("All processing complete for job %s", job_id)
        except Exception as e:
            logger.exception("Processing failed for job %s", job_id)
            store.update(job_id, {"status": "error", "error": str(e)})


# -------------------------
# Upload / data
# -------------------------

@router.post("/upload")
async def upload(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    store: JobStore = Depends(get_job_store),
):
    if not (file.filename or "").lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="Upload a .csv file")

    raw = await file.read()
    if len(raw) > config.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail=f"File exceeds {config.MAX_UPLOAD_BYTES} bytes")

    try:
        records = load_records_from_csv(raw)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=f"CSV validation/parsing failed: {e}")

    job_id = store.create({"filename": file.filename, "data": records})
    logger.info("Uploaded %s (%s rows) as job %s", file.filename, len(records), job_id)

    background_tasks.add_task(process_job, store, job_id)

    return {"job_id": job_id, "filename": file.filename, "rows": len(records)}


@router.get("/jobs/{job_id}/status")
def job_status(job_id: str, store: JobStore = Depends(get_job_store)):
    job = _get_job_or_404(store, job_id)
    return {"job_id": job_id, "status": job.get("status"), "error": job.get("error")}


@router.get("/data")
def get_data(job_id: str, store: JobStore = Depends(get_job_store)):
    job = _get_job_or_404(store, job_id)
    return {"job_id": job_id, "data": json_safe(job.get("data") or [])}


# -------------------------
# Pipeline stages
# -------------------------

@router.get("/diagnose")
def diagnose(job_id: str, store: JobStore = Depends(get_job_store)):
    # 404 before locking: the lock registry only holds ids of stored jobs
    _get_job_or_404(store, job_id)
    with store.lock(job_id):
        job = _get_job_or_404(store, job_id)
        diagnosis = _ensure_diagnosis(store, job)
    return {"job_id": job_id, "diagnosis": diagnosis}


@router.get("/forecast")
def forecast(
    job_id: str,
    horizon: int = Query(config.DEFAULT_HORIZON),
    store: JobStore = Depends(get_job_store),
):
    try:
        horizon = validate_horizon(horizon)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))

    _get_job_or_404(store, job_id)
    with store.lock(job_id):
        job = _get_job_or_404(store, job_id)
        result = _ensure_forecast(store, job, horizon)
    return {"job_id": job_id, "forecast": result}


class RecommendRequest(BaseModel):
    job_id: str = Field(..., min_length=1)


@router.post("/recommend")
def recommend(body: RecommendRequest, store: JobStore = Depends(get_job_store)):
    job_id = body.job_id
    _get_job_or_404(store, job_id)
    with store.lock(job_id):
        job = _get_job_or_404(store, job_id)
        diagnosis = _ensure_diagnosis(store, job)
        fcst = job.get("forecast") or _ensure_forecast(store, job, config.DEFAULT_HORIZON)

        recommendations = run_recommend(diagnosis, fcst)
        store.update(job_id, {"recommendations": recommendations})

    return {"job_id": job_id, "recommendations": recommendations}


class ExecuteRequest(BaseModel):
    job_id: str = Field(..., min_length=1)
    plan_id: str = Field(..., min_length=1)


@router.post("/execute")
def execute(body: ExecuteRequest, store: JobStore = Depends(get_job_store)):
    job_id = body.job_id
    _get_job_or_404(store, job_id)
    with store.lock(job_id):
        job = _get_job_or_404(store, job_id)
        try:
            plan = find_plan(job, body.plan_id)
        except PlanNotFound:
            raise HTTPException(status_code=404, detail="plan not found")

        simulation = simulate(plan, job)
        store.update(job_id, {"lastExecution": simulation})

    return {"job_id": job_id, "simulation": json_safe(simulation)}
