"""StaticWiki FastAPI application."""

import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from staticwiki.config import settings
from staticwiki.core.editor import Selection
from staticwiki.core.errors import DuplicateTitle, EmptyTitle, InvalidFormat, UnknownCommand
from staticwiki.core.gate import CapabilityGate
from staticwiki.core.renderer import format_timestamp, load_about, render_article_body, render_markdown
from staticwiki.core.router import Redirect, Router, article_fragment
from staticwiki.core.snapshot import export_document, import_snapshot, load_snapshot
from staticwiki.core.state import AppState

logger = logging.getLogger(__name__)


def create_state() -> AppState:
    """Fresh application state configured from settings."""
    gate = CapabilityGate(
        threshold=settings.gate_taps,
        reset_after=settings.gate_reset_seconds,
    )
    return AppState(gate=gate)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: create the wiki state and read the startup snapshot."""
    app.state.wiki = create_state()
    result = await load_snapshot(settings.snapshot_source)
    app.state.wiki.apply_load(result)
    yield


# Initialize app
app = FastAPI(
    title=settings.app_title,
    debug=settings.debug,
    lifespan=lifespan,
)

# Setup templates and static files
templates_path = Path(__file__).parent / "templates"
static_path = Path(__file__).parent / "static"

templates = Jinja2Templates(directory=str(templates_path))
app.mount("/static", StaticFiles(directory=str(static_path)), name="static")

templates.env.filters["timestamp"] = format_timestamp
templates.env.filters["article_href"] = article_fragment


def get_state(request: Request) -> AppState:
    """The wiki state owned by the running application."""
    return request.app.state.wiki


def get_router(state: AppState = Depends(get_state)) -> Router:
    return Router(state)


def get_context(request: Request, state: AppState, **kwargs) -> dict:
    """Create base context for templates."""
    return {
        "request": request,
        "app_title": settings.app_title,
        "gate_unlocked": state.gate.unlocked,
        **kwargs,
    }


def navigate_headers(fragment: str, notice: str | None = None) -> dict[str, str]:
    """HTMX trigger headers telling the shell to change the fragment."""
    events: dict = {"navigate": {"fragment": fragment}}
    if notice:
        events["showToast"] = {"message": notice, "type": "info"}
    return {"HX-Trigger": json.dumps(events)}


def error_response(error: Exception, status_code: int) -> JSONResponse:
    return JSONResponse(
        {"error": type(error).__name__, "message": str(error)},
        status_code=status_code,
    )


def require_unlocked(state: AppState = Depends(get_state)) -> AppState:
    if not state.gate.unlocked:
        raise HTTPException(status_code=403, detail="Editor is locked")
    return state


@app.get("/", response_class=HTMLResponse)
async def index(request: Request, state: AppState = Depends(get_state)):
    """Application shell; views are loaded per location fragment."""
    return templates.TemplateResponse(
        request,
        "index.html",
        get_context(request, state, hint=state.hint),
    )


@app.get("/view", response_class=HTMLResponse)
async def view(
    request: Request,
    fragment: str = "#/",
    q: str = "",
    state: AppState = Depends(get_state),
    router: Router = Depends(get_router),
):
    """Render the view for a location fragment, or redirect to another."""
    outcome = router.handle(fragment, q)

    if isinstance(outcome, Redirect):
        return Response(
            status_code=204,
            headers=navigate_headers(outcome.fragment, outcome.notice),
        )

    context = dict(outcome.context)
    if outcome.view == "article":
        rendered = render_article_body(
            context["article"].content, exists=state.repository.exists
        )
        context.update(html_content=rendered.html, toc=rendered.toc)
    elif outcome.view == "about":
        context["html_content"] = render_markdown(load_about(settings.about_path))

    return templates.TemplateResponse(
        request,
        f"views/{outcome.view}.html",
        get_context(request, state, **context),
    )


# ========== Capability gate ==========


@app.post("/api/gate/tap")
async def gate_tap(state: AppState = Depends(get_state)):
    """Count one activation of the unlock gesture."""
    just_unlocked = state.gate.tap()
    body = {"unlocked": state.gate.unlocked, "taps": state.gate.taps}
    if just_unlocked:
        body["message"] = "Editor unlocked."
    return body


# ========== Editor API ==========


def _sync_draft(
    state: AppState,
    title: str | None,
    content: str | None,
    start: int | None,
    end: int | None,
) -> None:
    selection = None
    if start is not None:
        selection = Selection(start, end if end is not None else start)
    state.session.update_draft(title=title, content=content, selection=selection)


def _draft_body(state: AppState) -> dict:
    session = state.session
    return {
        "title": session.draft_title,
        "content": session.draft_content,
        "selection": {"start": session.selection.start, "end": session.selection.end},
    }


@app.post("/api/editor/command")
async def editor_command(
    token: str = Form(...),
    value: str | None = Form(None),
    caption: str | None = Form(None),
    title: str | None = Form(None),
    content: str | None = Form(None),
    start: int | None = Form(None),
    end: int | None = Form(None),
    state: AppState = Depends(require_unlocked),
):
    """Apply a toolbar command to the draft and return the new draft."""
    _sync_draft(state, title, content, start, end)
    try:
        changed = state.session.apply_command(token, value, caption)
    except UnknownCommand as e:
        return error_response(e, 400)
    return {"changed": changed, **_draft_body(state)}


@app.post("/api/editor/image")
async def editor_image(
    file: UploadFile = File(...),
    caption: str = Form(""),
    content: str | None = Form(None),
    start: int | None = Form(None),
    end: int | None = Form(None),
    state: AppState = Depends(require_unlocked),
):
    """Embed an uploaded image file into the draft."""
    _sync_draft(state, None, content, start, end)
    changed = await state.session.insert_image_file(file, caption)
    return {"changed": changed, **_draft_body(state)}


@app.post("/api/editor/save")
async def editor_save(
    title: str = Form(""),
    content: str = Form(""),
    state: AppState = Depends(require_unlocked),
):
    """Save the draft to the in-memory collection."""
    _sync_draft(state, title, content, None, None)
    try:
        article = state.session.save()
    except (EmptyTitle, DuplicateTitle) as e:
        return error_response(e, 422)
    return JSONResponse(
        {
            "id": article.id,
            "navigate": article_fragment(article.title),
            "message": "Saved in memory. Export to keep your changes.",
        }
    )


@app.post("/api/editor/cancel")
async def editor_cancel(state: AppState = Depends(get_state)):
    """Discard the draft."""
    return {"navigate": state.session.cancel()}


@app.get("/api/edit-current")
async def edit_current(
    state: AppState = Depends(require_unlocked),
    router: Router = Depends(get_router),
):
    """Fragment for editing the article being viewed."""
    fragment = router.edit_current_fragment()
    if fragment is None:
        raise HTTPException(status_code=404, detail="No article is being viewed")
    return {"navigate": fragment}


# ========== Snapshot export / import ==========


@app.get("/api/export")
async def export_articles(state: AppState = Depends(require_unlocked)):
    """Download the collection as articles.json."""
    return Response(
        content=export_document(state.repository),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="articles.json"'},
    )


@app.post("/api/import")
async def import_articles(
    file: UploadFile = File(...),
    state: AppState = Depends(get_state),
):
    """Replace the collection with an uploaded snapshot."""
    raw = await file.read()
    try:
        snapshot = import_snapshot(state.repository, raw)
    except InvalidFormat as e:
        logger.warning("Import rejected: %s", e)
        return error_response(e, 400)
    return {
        "imported": len(snapshot.articles),
        "navigate": "#/",
        "message": "Imported into memory.",
    }


def run() -> None:
    """Console entry point: serve the wiki with uvicorn."""
    import uvicorn

    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
    uvicorn.run("staticwiki.main:app", host=settings.host, port=settings.port)
