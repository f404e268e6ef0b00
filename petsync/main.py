from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager, suppress
from datetime import datetime
from typing import Callable, Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import Config, ConfigResolver
from .errors import PetSyncError
from .logging_setup import RequestLogMiddleware, init_logging
from .metrics import LAT, REQS, router as metrics_router
from .pipeline import SyncPipeline, build_pipeline
from .scheduler import run_triggers, state as sync_state
from .sheets import SyncResult
from .sidebar import router as sidebar_router

# error kind -> HTTP status for the /fetch surface
ERROR_STATUS = {
    "config": 422,
    "schema": 422,
    "format": 422,
    "decode": 502,
    "http_status": 502,
    "transport": 504,
}


class Health(BaseModel):
    status: str
    time: str


class TriggerSettings(BaseModel):
    period_minutes: Optional[int] = Field(default=None, ge=1)
    enabled: bool = True


def get_pipeline(request: Request) -> SyncPipeline:
    return request.app.state.pipeline


def _trigger_payload(trigger) -> dict:
    return {
        "id": trigger.id,
        "handler": trigger.handler,
        "period_minutes": trigger.period_minutes,
        "created_at": trigger.created_at,
        "last_run_at": trigger.last_run_at,
    }


def create_app(
    resolver: Optional[ConfigResolver] = None,
    pipeline_factory: Callable[[Config], SyncPipeline] = build_pipeline,
    run_scheduler: bool = True,
    poll_seconds: float = 30,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # a ConfigError here aborts startup
        config = (resolver or ConfigResolver()).resolve()
        init_logging(config.log_level)
        pipeline = pipeline_factory(config)
        pipeline.scheduler.store.init_db()
        app.state.config = config
        app.state.pipeline = pipeline
        tasks: list[asyncio.Task[None]] = []
        if run_scheduler:
            tasks.append(
                asyncio.create_task(
                    run_triggers(
                        pipeline.scheduler,
                        {config.trigger_name: pipeline.run},
                        poll_seconds,
                    )
                )
            )
        try:
            yield
        finally:
            for task in tasks:
                task.cancel()
                with suppress(asyncio.CancelledError, Exception):
                    await task
            pipeline.client.close()
            pipeline.scheduler.store.dispose()

    app = FastAPI(title="petsync", version="0.1.0", lifespan=lifespan)
    app.add_middleware(RequestLogMiddleware)
    app.include_router(metrics_router())
    app.include_router(sidebar_router())

    @app.middleware("http")
    async def _metrics(request: Request, call_next):
        method = request.method
        path = request.url.path
        start = time.time()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration = time.time() - start
            REQS.labels(method, path, str(status_code)).inc()
            LAT.labels(method, path).observe(duration)

    @app.exception_handler(PetSyncError)
    async def _sync_error(request: Request, exc: PetSyncError):
        return JSONResponse(
            {"detail": str(exc), "kind": exc.kind},
            status_code=ERROR_STATUS.get(exc.kind, 500),
        )

    @app.get("/health", response_model=Health)
    def health():
        return Health(status="ok", time=datetime.utcnow().isoformat())

    @app.post("/fetch", response_model=SyncResult)
    def fetch(pipeline: SyncPipeline = Depends(get_pipeline)):
        return pipeline.run()

    @app.get("/sync/status")
    def sync_status(pipeline: SyncPipeline = Depends(get_pipeline)):
        triggers = pipeline.scheduler.triggers(pipeline.config.trigger_name)
        return {
            "running": sync_state.running,
            "last_started": sync_state.last_started,
            "last_finished": sync_state.last_finished,
            "last_error": sync_state.last_error,
            "last_message": sync_state.last_message,
            "last_rows": sync_state.last_rows,
            "total_runs": sync_state.total_runs,
            "total_errors": sync_state.total_errors,
            "triggers": [_trigger_payload(t) for t in triggers],
        }

    @app.get("/triggers")
    def list_triggers(pipeline: SyncPipeline = Depends(get_pipeline)):
        triggers = pipeline.scheduler.triggers(pipeline.config.trigger_name)
        return {"triggers": [_trigger_payload(t) for t in triggers]}

    @app.put("/triggers")
    def configure_trigger(
        body: TriggerSettings = Body(...),
        pipeline: SyncPipeline = Depends(get_pipeline),
    ):
        trigger = pipeline.scheduler.configure(
            pipeline.config.trigger_name,
            body.period_minutes or pipeline.config.trigger_period_minutes,
            body.enabled,
        )
        return {"trigger": _trigger_payload(trigger) if trigger else None}

    @app.delete("/triggers")
    def remove_triggers(pipeline: SyncPipeline = Depends(get_pipeline)):
        pipeline.scheduler.configure(pipeline.config.trigger_name, enabled=False)
        return {"trigger": None}

    return app


app = create_app()
