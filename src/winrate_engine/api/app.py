"""In-process helpers and their FastAPI wrappers.

The synchronous helpers keep the test suite light-weight while the
FastAPI application exposes the same message contract over HTTP.
"""
from __future__ import annotations

import threading
import uuid
from concurrent.futures import Future
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException

from ..config import configure_logging
from . import dispatch, schemas
from .worker import EngineWorker

_jobs: Dict[str, "Future[schemas.EngineResponse]"] = {}
_worker: EngineWorker | None = None
_worker_lock = threading.Lock()


def _get_worker() -> EngineWorker:
    global _worker
    with _worker_lock:
        if _worker is None:
            _worker = EngineWorker()
        return _worker


def analyze(request: schemas.EngineRequest | Dict[str, Any]) -> Dict[str, Any]:
    """Run one request synchronously and return the response message."""

    return dispatch.handle(request).to_message()


def submit(request: schemas.EngineRequest | Dict[str, Any]) -> schemas.SubmitResponse:
    job_id = uuid.uuid4().hex
    _jobs[job_id] = _get_worker().submit(request)
    return schemas.SubmitResponse(id=job_id)


def status(job_id: str) -> schemas.StatusResponse:
    job = _jobs.get(job_id)
    if job is None:
        return schemas.StatusResponse(status="unknown")
    return schemas.StatusResponse(status="completed" if job.done() else "running")


def result(job_id: str) -> Dict[str, Any] | None:
    """Return the response for a finished job, ``None`` otherwise.

    A delivered job is forgotten; later lookups report it as unknown.
    """

    job = _jobs.get(job_id)
    if job is None or not job.done():
        return None
    _jobs.pop(job_id, None)
    return job.result().to_message()


def list_actions() -> List[str]:
    return dispatch.available_actions()


# ---------------------------------------------------------------------------


fastapi_app = FastAPI(title="Win-Rate Engine API", version="0.1.0")
configure_logging()


@fastapi_app.get("/health")
def health_endpoint() -> Dict[str, str]:
    return {"status": "ok"}


@fastapi_app.get("/v1/actions", response_model=List[str])
def actions_endpoint() -> List[str]:
    """List the actions understood by the engine."""

    return list_actions()


@fastapi_app.post("/v1/engine")
def engine_endpoint(request: schemas.EngineRequest) -> Dict[str, Any]:
    """Run one request; engine failures come back as ``success: false``."""

    return analyze(request)


@fastapi_app.post("/v1/jobs", response_model=schemas.SubmitResponse)
def submit_endpoint(request: schemas.EngineRequest) -> schemas.SubmitResponse:
    return submit(request)


@fastapi_app.get("/v1/jobs/{job_id}/status", response_model=schemas.StatusResponse)
def status_endpoint(job_id: str) -> schemas.StatusResponse:
    return status(job_id)


@fastapi_app.get("/v1/jobs/{job_id}")
def result_endpoint(job_id: str) -> Dict[str, Any]:
    payload = result(job_id)
    if payload is None:
        raise HTTPException(status_code=404, detail="Job not found or still running")
    return payload


app = fastapi_app
