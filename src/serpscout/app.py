"""FastAPI application setup for the SerpScout keyword research tool."""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from .config import Settings
from .credentials import CredentialProvider, EnvironmentCredentialProvider
from .generation import KeywordGenerator
from .models import KeywordInputError, validate_generation_input
from .observability import MetricsRecorder
from .presentation import build_page_context
from .session import KeywordResearchSession
from .storage import JsonFileKeyValueStore, PersistentStore, SavedKeywordRepository

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

logger = logging.getLogger(__name__)

BUSY_MESSAGE = "A generation request is already running. Please wait for it to finish."


_LOGGING_CONFIGURED = False


def _ensure_logging() -> None:
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    app_logger = logging.getLogger("serpscout")
    uvicorn_logger = logging.getLogger("uvicorn.error")

    handlers = list(uvicorn_logger.handlers)
    if handlers:
        app_logger.handlers = []
        for handler in handlers:
            app_logger.addHandler(handler)
    else:
        handler = logging.StreamHandler()
        handler.setLevel(logging.INFO)
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        app_logger.addHandler(handler)

    if app_logger.level == logging.NOTSET or app_logger.level > logging.INFO:
        app_logger.setLevel(logging.INFO)
    app_logger.propagate = False
    _LOGGING_CONFIGURED = True


class ApplicationState:
    """Container for runtime dependencies used by the FastAPI app."""

    def __init__(
        self,
        *,
        settings: Settings,
        session: KeywordResearchSession,
        metrics: MetricsRecorder | None,
    ) -> None:
        self.settings = settings
        self.session = session
        self.metrics = metrics


def build_session(
    settings: Settings,
    *,
    credentials: CredentialProvider | None = None,
    generator: KeywordGenerator | None = None,
    repository: SavedKeywordRepository | None = None,
    metrics: MetricsRecorder | None = None,
) -> KeywordResearchSession:
    """Wire a session from settings, filling in any collaborator not supplied."""

    credentials = credentials or EnvironmentCredentialProvider(settings)
    generator = generator or KeywordGenerator(settings, credentials=credentials, metrics=metrics)
    if repository is None:
        backend = JsonFileKeyValueStore(settings.storage_path())
        repository = SavedKeywordRepository(
            PersistentStore(backend, metrics=metrics),
            key=settings.saved_keywords_key,
        )
    return KeywordResearchSession(generator, repository, credentials, metrics=metrics)


def create_app(
    *,
    settings: Settings | None = None,
    session: KeywordResearchSession | None = None,
    metrics: MetricsRecorder | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    _ensure_logging()

    settings = settings or Settings.from_env()
    metrics = metrics or settings.build_metrics_recorder()
    session = session or build_session(settings, metrics=metrics)
    session.bootstrap()
    logger.info(
        "app.start backend=%s model=%s storage=%s",
        settings.chat_backend,
        settings.active_model,
        settings.storage_path(),
    )

    app = FastAPI()
    app.state.services = ApplicationState(settings=settings, session=session, metrics=metrics)

    templates = Jinja2Templates(directory=str(_TEMPLATES_DIR))
    templates.env.globals["settings"] = settings

    def get_state(request: Request) -> ApplicationState:
        return request.app.state.services

    def get_session(request: Request) -> KeywordResearchSession:
        return get_state(request).session

    def _render(request: Request, *, form_error: str | None = None, status_code: int = 200) -> HTMLResponse:
        context = build_page_context(get_session(request).snapshot(), form_error=form_error)
        context["default_count"] = settings.default_keyword_count
        return templates.TemplateResponse(request, "index.html", context, status_code=status_code)

    def _redirect_home() -> RedirectResponse:
        return RedirectResponse(url="/", status_code=303)

    def _state_response(session: KeywordResearchSession, *, status_code: int = 200) -> JSONResponse:
        return JSONResponse(session.snapshot().to_payload(), status_code=status_code)

    async def _read_json(request: Request) -> dict:
        try:
            payload = await request.json()
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Request body must be JSON") from exc
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Invalid payload")
        return payload

    # HTML pages -------------------------------------------------------------

    @app.get("/", response_class=HTMLResponse)
    async def index(request: Request) -> HTMLResponse:
        return _render(request)

    @app.post("/generate")
    async def generate_keywords(
        request: Request,
        seed: str = Form(""),
        count: str = Form(""),
        session: KeywordResearchSession = Depends(get_session),
    ):
        if session.busy:
            return _render(request, form_error=BUSY_MESSAGE, status_code=409)
        try:
            seed_value, count_value = validate_generation_input(seed, count)
        except KeywordInputError as exc:
            return _render(request, form_error=str(exc), status_code=400)
        await session.request_generation(seed_value, count_value)
        return _redirect_home()

    @app.post("/saved", response_class=RedirectResponse)
    async def save_keyword(
        record_id: str = Form(...),
        session: KeywordResearchSession = Depends(get_session),
    ) -> RedirectResponse:
        if session.save_generated(record_id) is None:
            raise HTTPException(status_code=404, detail="Keyword not found")
        return _redirect_home()

    @app.post("/saved/clear", response_class=RedirectResponse)
    async def clear_saved_keywords(
        session: KeywordResearchSession = Depends(get_session),
    ) -> RedirectResponse:
        session.clear_saved()
        return _redirect_home()

    @app.post("/filters", response_class=RedirectResponse)
    async def update_filters(
        difficulty: str | None = Form(None),
        searchVolume: str | None = Form(None),
        competitionLevel: str | None = Form(None),
        session: KeywordResearchSession = Depends(get_session),
    ) -> RedirectResponse:
        try:
            session.set_filter(
                difficulty=difficulty,
                search_volume=searchVolume,
                competition_level=competitionLevel,
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _redirect_home()

    @app.post("/credential", response_class=RedirectResponse)
    async def select_credential(
        session: KeywordResearchSession = Depends(get_session),
    ) -> RedirectResponse:
        session.select_credential()
        return _redirect_home()

    # JSON API ---------------------------------------------------------------

    @app.get("/api/state", response_class=JSONResponse)
    async def api_state(session: KeywordResearchSession = Depends(get_session)) -> JSONResponse:
        return _state_response(session)

    @app.post("/api/generate", response_class=JSONResponse)
    async def api_generate(
        request: Request,
        session: KeywordResearchSession = Depends(get_session),
    ) -> JSONResponse:
        payload = await _read_json(request)
        if session.busy:
            raise HTTPException(status_code=409, detail=BUSY_MESSAGE)
        try:
            seed, count = validate_generation_input(
                payload.get("seed"),
                payload.get("count", settings.default_keyword_count),
            )
        except KeywordInputError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        await session.request_generation(seed, count)
        if session.last_error:
            status_code = 401 if not session.credential_available else 502
            return _state_response(session, status_code=status_code)
        return _state_response(session)

    @app.post("/api/saved", response_class=JSONResponse)
    async def api_save_keyword(
        request: Request,
        session: KeywordResearchSession = Depends(get_session),
    ) -> JSONResponse:
        payload = await _read_json(request)
        record_id = str(payload.get("id", "")).strip()
        if not record_id:
            raise HTTPException(status_code=400, detail="id is required")
        already_saved = any(record.id == record_id for record in session.saved)
        if session.save_generated(record_id) is None:
            raise HTTPException(status_code=404, detail="Keyword not found")
        return _state_response(session, status_code=200 if already_saved else 201)

    @app.delete("/api/saved", response_class=JSONResponse)
    async def api_clear_saved(session: KeywordResearchSession = Depends(get_session)) -> JSONResponse:
        session.clear_saved()
        return _state_response(session)

    @app.post("/api/filters", response_class=JSONResponse)
    async def api_update_filters(
        request: Request,
        session: KeywordResearchSession = Depends(get_session),
    ) -> JSONResponse:
        payload = await _read_json(request)
        try:
            session.set_filter(**payload)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _state_response(session)

    @app.post("/api/credential", response_class=JSONResponse)
    async def api_select_credential(session: KeywordResearchSession = Depends(get_session)) -> JSONResponse:
        selected = session.select_credential()
        return _state_response(session, status_code=200 if selected else 503)

    return app


__all__ = ["ApplicationState", "build_session", "create_app"]
