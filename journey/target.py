"""Stub of the journey target service.

Run with ``uvicorn journey.target:app --port 8080`` and point the runner at it.
"""
import os, random, time
from collections import Counter
from typing import Any, Dict, Optional

from fastapi import FastAPI, Header, HTTPException
from pydantic import BaseModel

from .trace import TraceContext

app = FastAPI()
FAILURE_RATE = float(os.getenv("TARGET_FAILURE_RATE", "0"))   # share of /api/process calls answered with 500

# tiny metrics for demo
stats = {"requests": 0, "errors": 0, "lat": [], "steps": Counter(), "journeys": Counter()}


def reset_stats():
    stats.update(requests=0, errors=0, lat=[], steps=Counter(), journeys=Counter())


class JourneyComplete(BaseModel):
    eventType: str
    companyName: str
    testName: str
    scriptName: str
    vuserId: int
    sessionId: str
    timestamp: str
    totalSteps: int


def _trace(header: Optional[str]) -> Optional[TraceContext]:
    if header is None:
        return None
    try:
        return TraceContext.parse(header)
    except ValueError:
        raise HTTPException(400, "malformed X-Correlation header")


@app.post("/api/process")
async def process(payload: Dict[str, Any], x_correlation: Optional[str] = Header(None),
                  x_company: Optional[str] = Header(None)):
    t0 = time.time()
    stats["requests"] += 1
    trace = _trace(x_correlation)
    step = payload.get("stepName") or (trace.step if trace else "unknown")
    stats["steps"][step] += 1

    if FAILURE_RATE and random.random() < FAILURE_RATE:
        stats["errors"] += 1
        raise HTTPException(500, f"simulated failure in {step}")

    stats["lat"].append(time.time() - t0)
    return {
        "status": "processed",
        "stepName": step,
        "companyName": payload.get("companyName") or x_company,
        "correlation": trace.model_dump() if trace else None,
    }


@app.post("/api/journey-complete")
async def journey_complete(event: JourneyComplete, x_correlation: Optional[str] = Header(None)):
    stats["requests"] += 1
    _trace(x_correlation)
    if event.eventType != "JOURNEY_COMPLETE":
        stats["errors"] += 1
        raise HTTPException(400, f"unexpected eventType {event.eventType}")
    stats["journeys"][event.testName] += 1
    return {"status": "recorded", "testName": event.testName, "completed": stats["journeys"][event.testName]}


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    p95 = "n/a"
    if stats["lat"]:
        s = sorted(stats["lat"])
        p95 = s[int(0.95*(len(s)-1))]
    return {
        "requests": stats["requests"],
        "errors": stats["errors"],
        "p95_latency_seconds": p95,
        "failure_rate": FAILURE_RATE,
        "steps": dict(stats["steps"]),
        "completed_journeys": dict(stats["journeys"]),
    }
