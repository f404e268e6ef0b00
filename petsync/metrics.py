from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

REQS = Counter(
    "petsync_requests_total",
    "Requests",
    ["method", "path", "status"],
)
LAT = Histogram(
    "petsync_latency_seconds",
    "Latency",
    ["method", "path"],
)
API_CALLS = Counter(
    "petsync_api_calls_total",
    "Calls made to the remote records API",
    ["method", "status"],
)
API_LAT = Histogram(
    "petsync_api_latency_seconds",
    "Remote records API latency",
    ["method"],
)
SYNC_RUNS = Counter(
    "petsync_sync_runs_total",
    "Sync pipeline runs",
    ["outcome"],
)
ROWS_WRITTEN = Counter(
    "petsync_rows_written_total",
    "Rows written to the spreadsheet",
)


def router() -> APIRouter:
    r = APIRouter()

    @r.get("/metrics", include_in_schema=False)
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return r
