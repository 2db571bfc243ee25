"""
Who's That Pokémon? plugin server.

Run with:
    uvicorn whosthat.main:app
"""
import logging
from collections import deque
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from html import escape

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from whosthat.config import Settings
from whosthat.cycle import ConfigurationError, compute_cycle
from whosthat.markup import TITLE, render
from whosthat.resolver import IMAGE_STYLES, ItemCache, PokeApiResolver
from whosthat.settings_store import JsonFileSettingsStore, apply_update, current_config

logger = logging.getLogger(__name__)

router = APIRouter()

# Epoch seconds accepted by /markup?at=, up to 9999-12-31 UTC
MAX_AT_SECONDS = 253_402_214_400

STYLE_LABELS = {
    "gen1": "Gen I sprites",
    "modern": "Modern artwork",
    "simplified": "Simplified",
}


def utc_now():
    return datetime.now(timezone.utc)


# ============================================================================
# CACHE WARMER
# ============================================================================

async def warm_cache(app: FastAPI):
    """Resolve the current and the next cycle's creature ahead of requests."""
    state = app.state
    now = state.clock()
    try:
        cfg = current_config(state.store, state.settings)
        current = compute_cycle(now, cfg)
        upcoming = compute_cycle(now + timedelta(milliseconds=current.cycle_length_ms - current.elapsed_in_cycle_ms), cfg)
    except ConfigurationError as e:
        logger.error(f"Cache warmer skipped: {e}")
        msg = f"[{now.strftime('%Y-%m-%d %H:%M:%S')}] skipped - {e}"
    else:
        names = []
        for cycle in (current, upcoming):
            item = await state.resolver.resolve(cycle.item_id, cfg.image_style)
            names.append(item.name)
        msg = f"[{now.strftime('%Y-%m-%d %H:%M:%S')}] warmed {names[0]} (now), {names[1]} (next)"
    state.prefetch_history.append({"time": now.isoformat(), "message": msg})
    state.prefetch_stats["runs"] += 1
    state.prefetch_stats["last_run"] = now.isoformat()
    logger.debug(msg)


@asynccontextmanager
async def lifespan(app: FastAPI):
    state = app.state
    http_client = None
    if state.resolver is None:
        http_client = httpx.AsyncClient(timeout=state.settings.FETCH_TIMEOUT)
        state.resolver = PokeApiResolver(
            http_client,
            state.settings.POKEAPI_URL,
            cache=ItemCache(seconds=state.settings.CACHE_TTL_SECONDS),
        )

    scheduler = None
    if state.settings.PREFETCH_ENABLED:
        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            warm_cache,
            IntervalTrigger(seconds=state.settings.PREFETCH_INTERVAL_SECONDS),
            args=[app],
            id="prefetch",
            name="Cache warmer",
            replace_existing=True,
            next_run_time=utc_now(),
        )
        scheduler.start()
    state.scheduler = scheduler

    logger.info("Widget server started")
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.shutdown(wait=False)
        if http_client is not None:
            await http_client.aclose()
            state.resolver = None
        logger.info("Widget server stopped")


# ============================================================================
# PAGES
# ============================================================================

@router.get("/", response_class=HTMLResponse)
async def home():
    return f'''<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{TITLE}</title></head>
<body>
    <h1>{TITLE}</h1>
    <p>This server is running. Visit <a href="/markup">/markup</a> to see the current Pokémon.
    Manage settings at <a href="/manage">/manage</a>.</p>
</body>
</html>'''


@router.get("/markup", response_class=HTMLResponse)
async def markup(
    request: Request,
    snippet: str | None = None,
    at: float | None = Query(None, ge=0, le=MAX_AT_SECONDS, allow_inf_nan=False),
):
    """Render the widget for now, or for the epoch seconds given in ``at``."""
    state = request.app.state
    cfg = current_config(state.store, state.settings)
    cycle = compute_cycle(at if at is not None else state.clock(), cfg)
    item = await state.resolver.resolve(cycle.item_id, cfg.image_style)
    return HTMLResponse(render(item, cycle.reveal, snippet=snippet is not None))


@router.get("/manage", response_class=HTMLResponse)
async def manage_page(request: Request, msg: str | None = None):
    cfg = current_config(request.app.state.store, request.app.state.settings)
    notice = f'<div style="color: green;">{escape(msg)}</div>' if msg else ""

    options = ""
    for style in IMAGE_STYLES:
        selected = " selected" if style == cfg.image_style else ""
        options += f'<option value="{style}"{selected}>{STYLE_LABELS[style]}</option>'

    return f'''<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Manage Plugin</title></head>
<body>
    <h1>Manage {TITLE}</h1>
    {notice}
    <form method="POST" action="/manage">
        <label>Cycle length (minutes)<input type="number" name="cycle_minutes" min="1" value="{cfg.cycle_minutes}"></label><br>
        <label>Artwork style<select name="image_style">{options}</select></label><br>
        <label>Time zone<input type="text" name="timezone" value="{escape(cfg.timezone)}"></label><br>
        <label>Pool size<input type="number" name="pool_size" min="1" value="{cfg.pool_size}"></label><br>
        <button type="submit">Save</button>
    </form>
</body>
</html>'''


@router.post("/manage")
async def manage_update(request: Request):
    form = await request.form()
    apply_update(request.app.state.store, form)
    return RedirectResponse("/manage?msg=Settings%20updated", status_code=302)


# ============================================================================
# PLUGIN LIFECYCLE WEBHOOKS
# ============================================================================

@router.get("/install")
async def install(installation_callback_url: str | None = None):
    if installation_callback_url:
        return RedirectResponse(installation_callback_url, status_code=302)
    return PlainTextResponse("Installation endpoint")


@router.post("/install/success")
async def install_success(request: Request):
    body = await request.body()
    logger.info(f"Install success: {body.decode('utf-8', errors='replace')}")
    return Response(status_code=204)


@router.post("/uninstall")
async def uninstall(request: Request):
    body = await request.body()
    logger.info(f"Uninstall: {body.decode('utf-8', errors='replace')}")
    return Response(status_code=204)


@router.get("/health")
async def health(request: Request):
    state = request.app.state
    cfg = current_config(state.store, state.settings)
    cycle = compute_cycle(state.clock(), cfg)

    job = state.scheduler.get_job("prefetch") if state.scheduler else None
    next_run = job.next_run_time.isoformat() if job and job.next_run_time else None
    return {
        "status": "ok",
        "timestamp": state.clock().isoformat(),
        "cycle": {
            "bucket": cycle.bucket_index,
            "item_id": cycle.item_id,
            "reveal": cycle.reveal,
            "seconds_until_change": round(cycle.ms_until_phase_change / 1000, 1),
        },
        "prefetch": {**state.prefetch_stats, "next_run": next_run},
    }


# ============================================================================
# ERRORS
# ============================================================================

async def http_error(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return PlainTextResponse("Not found", status_code=404)
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code)


async def configuration_error(request: Request, exc: ConfigurationError):
    logger.error(f"Invalid widget configuration: {exc}")
    return PlainTextResponse(f"Configuration error: {exc}", status_code=500)


async def server_error(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return PlainTextResponse("Server error", status_code=500)


# ============================================================================
# APP
# ============================================================================

def create_app(settings=None, store=None, resolver=None, clock=utc_now) -> FastAPI:
    """Build the application.

    ``store``, ``resolver`` and ``clock`` default to the JSON settings file,
    a PokéAPI resolver created on startup and the system clock.
    """
    settings = settings or Settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="[%(asctime)s] [%(levelname)s] [%(name)s]: %(message)s",
    )

    app = FastAPI(
        title="Who's That Pokémon?",
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url=None,
    )
    app.state.settings = settings
    app.state.store = store if store is not None else JsonFileSettingsStore(settings.SETTINGS_FILE)
    app.state.resolver = resolver
    app.state.clock = clock
    app.state.scheduler = None
    app.state.prefetch_history = deque(maxlen=50)
    app.state.prefetch_stats = {"runs": 0, "last_run": None}

    app.include_router(router)
    app.add_exception_handler(StarletteHTTPException, http_error)
    app.add_exception_handler(ConfigurationError, configuration_error)
    app.add_exception_handler(Exception, server_error)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=app.state.settings.HOST, port=app.state.settings.PORT)
