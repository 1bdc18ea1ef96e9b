from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import quote, urlparse

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from .pool.manager import PoolManager
from .service import build_image_adapter, build_pool_manager, missing_credential_notice
from .settings import AppSettings, load_settings
from .storage.kv import SqliteKeyValueStore

LOGGER = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
WEB_DIR = BASE_DIR / "web"
TEMPLATES_DIR = WEB_DIR / "templates"
STATIC_DIR = WEB_DIR / "static"

CLEAR_CACHE_PARAM = "clear_cache"
# Characters left unencoded when a URL is placed inside CSS url('...').
CSS_URL_SAFE_CHARS = "/:?&=%#+,;@~!$*[]"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def _get_settings(request: Request) -> AppSettings:
    return request.app.state.settings


def _get_pool_manager(request: Request) -> PoolManager:
    return request.app.state.pool_manager


def _css_background_url(url: str, fallback_images: list[str]) -> str:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        LOGGER.warning("Refusing to render non-http image URL %r", url)
        url = fallback_images[0]
    return quote(url, safe=CSS_URL_SAFE_CHARS)


@asynccontextmanager
async def lifespan(application: FastAPI):
    settings = load_settings()
    logging.getLogger("backdrop").setLevel(settings.env.backdrop_log_level)
    storage = SqliteKeyValueStore(settings.db_path)
    storage.initialize()

    adapter = build_image_adapter(settings)
    application.state.settings = settings
    application.state.pool_manager = build_pool_manager(settings, adapter=adapter, storage=storage)
    application.state.config_notice = missing_credential_notice(settings, adapter)
    application.state.started_at_utc = datetime.now(timezone.utc)
    LOGGER.info(
        "Backdrop started with provider '%s' (configured=%s)",
        settings.yaml.source.provider,
        adapter.configured,
    )
    yield


app = FastAPI(title="Backdrop", version="0.1.0", lifespan=lifespan)
app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")


@app.get("/", response_class=HTMLResponse)
def background_page(request: Request) -> Response:
    manager = _get_pool_manager(request)
    if CLEAR_CACHE_PARAM in request.query_params:
        manager.clear()
        target = request.url.remove_query_params(CLEAR_CACHE_PARAM)
        return RedirectResponse(url=str(target), status_code=303)

    settings = _get_settings(request)
    selected = manager.run_load_cycle()
    return templates.TemplateResponse(
        request,
        "background.html",
        {
            "title": settings.yaml.ui.title,
            "image_url": _css_background_url(selected.url, settings.yaml.fallback_images),
            "from_fallback": selected.from_fallback,
            "config_notice": request.app.state.config_notice,
        },
    )


@app.post("/clear-cache")
def clear_cache(request: Request) -> RedirectResponse:
    _get_pool_manager(request).clear()
    return RedirectResponse(url="/", status_code=303)


@app.get("/api/background", response_class=JSONResponse)
def api_background(request: Request) -> JSONResponse:
    selected = _get_pool_manager(request).run_load_cycle()
    return JSONResponse(selected.model_dump(mode="json"))


@app.get("/api/pool", response_class=JSONResponse)
def api_pool(request: Request) -> JSONResponse:
    pool = _get_pool_manager(request).peek()
    return JSONResponse(pool.model_dump(mode="json", by_alias=True))


@app.delete("/api/pool", response_class=JSONResponse)
def api_reset_pool(request: Request) -> JSONResponse:
    selected = _get_pool_manager(request).reset()
    return JSONResponse(selected.model_dump(mode="json"))


@app.get("/health", response_class=JSONResponse)
def health(request: Request) -> JSONResponse:
    settings = _get_settings(request)
    manager = _get_pool_manager(request)
    return JSONResponse(
        {
            "status": "ok",
            "service": "backdrop",
            "environment": settings.env.backdrop_env,
            "provider": settings.yaml.source.provider,
            "configured": manager.adapter.configured,
            "db_path": str(settings.db_path),
            "started_at_utc": request.app.state.started_at_utc.isoformat(),
            "timestamp_utc": datetime.now(timezone.utc).isoformat(),
        }
    )
