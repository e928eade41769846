from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, suppress

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.settings import Settings
from health.health import uptime_seconds
from ingest.fetch import FetchError, client_timeout
from ingest.scheduler import Scheduler
from ingest.timestamps import InvalidTimestamp, utc_now, utc_now_iso


_MISSING_RANGE = "Both start and end parameters are required (ISO8601 format)"


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


def create_app(
    settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    start_scheduler: bool = True,
) -> FastAPI:
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(
            level=settings.log_level.upper(),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
        client = httpx.AsyncClient(
            follow_redirects=True,
            timeout=client_timeout(settings.http_timeout_seconds),
            transport=transport,
        )
        scheduler = Scheduler(settings=settings, client=client)
        app.state.settings = settings
        app.state.scheduler = scheduler

        scheduler_task = None
        if start_scheduler:
            scheduler_task = asyncio.create_task(scheduler.run())
        try:
            yield
        finally:
            if scheduler_task is not None:
                scheduler_task.cancel()
                with suppress(asyncio.CancelledError):
                    await scheduler_task
            await client.aclose()

    app = FastAPI(lifespan=lifespan)
    if settings.static_dir.is_dir():
        app.mount("/static", StaticFiles(directory=settings.static_dir), name="static")

    @app.get("/")
    def index(request: Request) -> JSONResponse:
        scheduler: Scheduler = request.app.state.scheduler
        return JSONResponse(
            {
                "name": "Tornado Warning Monitor",
                "description": "Monitors the Iowa State Mesonet feed for tornado warnings",
                "endpoints": {
                    "GET /api/tornado-warnings": "Get current tornado warnings",
                    "GET /api/tornado-warnings/range?start=ISO8601&end=ISO8601": "Get tornado warnings for time range",
                    "POST /api/simulate-tornado-warnings?start=ISO8601&end=ISO8601": "Send historical tornado warnings to the webhook",
                    "GET /api/all-warnings": "Get all current warnings",
                    "GET /api/time": "Check current time handling",
                    "GET /health": "Health check",
                },
                "lastUpdate": scheduler.last_update,
                "currentTornadoWarnings": len(scheduler.current_warnings),
            }
        )

    @app.get("/api/tornado-warnings")
    def api_tornado_warnings(request: Request) -> JSONResponse:
        scheduler: Scheduler = request.app.state.scheduler
        warnings = scheduler.current_warnings
        return JSONResponse(
            {
                "success": True,
                "count": len(warnings),
                "lastUpdate": scheduler.last_update,
                "warnings": [w.to_json() for w in warnings],
            }
        )

    @app.get("/api/tornado-warnings/range")
    async def api_tornado_warnings_range(
        request: Request, start: str | None = None, end: str | None = None
    ) -> JSONResponse:
        if not start or not end:
            return _error(_MISSING_RANGE, 400)
        scheduler: Scheduler = request.app.state.scheduler
        try:
            warnings = await scheduler.query_range(start, end)
        except InvalidTimestamp as e:
            return _error(str(e), 400)
        if isinstance(warnings, FetchError):
            return _error(str(warnings), 500)
        return JSONResponse(
            {
                "success": True,
                "count": len(warnings),
                "timeRange": {"start": start, "end": end},
                "warnings": [w.to_json() for w in warnings],
            }
        )

    @app.post("/api/simulate-tornado-warnings")
    async def api_simulate_tornado_warnings(
        request: Request, start: str | None = None, end: str | None = None
    ) -> JSONResponse:
        if not start or not end:
            return _error(_MISSING_RANGE, 400)
        scheduler: Scheduler = request.app.state.scheduler
        try:
            report = await scheduler.simulate(start, end)
        except InvalidTimestamp as e:
            return _error(str(e), 400)
        if isinstance(report, FetchError):
            return _error(str(report), 500)
        return JSONResponse(
            {
                "success": True,
                "sent": report.sent,
                "failed": report.failed,
                "count": report.count,
            }
        )

    @app.get("/api/all-warnings")
    async def api_all_warnings(request: Request) -> JSONResponse:
        scheduler: Scheduler = request.app.state.scheduler
        doc = await scheduler.fetch_active()
        if isinstance(doc, FetchError):
            return _error(f"Failed to fetch data from API: {doc}", 500)
        return JSONResponse(
            {
                "success": True,
                "count": len(doc.features),
                "lastUpdate": utc_now_iso(),
                "data": doc.raw,
            }
        )

    @app.get("/api/time")
    def api_time() -> JSONResponse:
        now = utc_now()
        local = now.astimezone()
        return JSONResponse(
            {
                "success": True,
                "localTime": local.strftime("%Y-%m-%d %H:%M:%S"),
                "localTimeISO": local.isoformat(),
                "utcTime": utc_now_iso(),
                "timezone": local.tzname(),
                "unixTimestamp": int(now.timestamp() * 1000),
                "note": "API uses UTC time with Z suffix",
            }
        )

    @app.get("/health")
    def health(request: Request) -> JSONResponse:
        scheduler: Scheduler = request.app.state.scheduler
        return JSONResponse(
            {
                "status": "healthy",
                "uptime": uptime_seconds(),
                "lastUpdate": scheduler.last_update,
                "currentWarnings": len(scheduler.current_warnings),
                "cycles": {
                    name: {"state": scheduler.state[name], **h.to_json()}
                    for name, h in scheduler.health.items()
                },
            }
        )

    return app


app = create_app()
