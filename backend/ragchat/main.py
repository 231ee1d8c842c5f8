from __future__ import annotations

from fastapi import Depends, FastAPI, Form, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles

from . import app_db
from .blob_store import BlobFetchError, BlobImageStore
from .completion import CompletionClient
from .config import STATIC_DIR, AppConfig
from .logging_utils import get_logger
from .pages import render_chat_page
from .schemas import ChatMessage, HealthResponse
from .session import ChatSessionContext, load_session
from .settings import get_defaults

log = get_logger(__name__)

app_config = AppConfig.from_env()

app = FastAPI(title="ragchat")
app.state.completion_client = CompletionClient(app_config)
app.state.blob_store = BlobImageStore(app_config.blob)

if (STATIC_DIR / "avatars").is_dir():
    app.mount("/avatars", StaticFiles(directory=str(STATIC_DIR / "avatars")), name="avatars")


@app.on_event("startup")
def _startup() -> None:
    app_db.init_db()
    get_defaults()
    log.info("AzureOpenAI Endpoint: %s", app_config.openai.endpoint)
    for group, names in app_config.missing().items():
        log.warning("Configuration group %s is missing: %s", group, ", ".join(names))


@app.on_event("shutdown")
async def _shutdown() -> None:
    await app.state.completion_client.aclose()
    app.state.blob_store.close()


def get_config() -> AppConfig:
    return app_config


def get_completion_client(request: Request) -> CompletionClient:
    return request.app.state.completion_client


def get_blob_store(request: Request) -> BlobImageStore:
    return request.app.state.blob_store


def _parse_max_response(raw: str | None) -> int | None:
    if raw is None or not raw.strip():
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        log.info("Ignoring non-numeric max response %r", raw)
        return None
    return value if value > 0 else None


@app.get("/health", response_model=HealthResponse)
def health(config: AppConfig = Depends(get_config)) -> HealthResponse:
    missing = config.missing()
    return HealthResponse(
        status="degraded" if missing else "ok",
        completion_endpoint=config.openai.endpoint,
        missing_config=missing,
    )


@app.get("/", response_class=HTMLResponse)
def index(request: Request, config: AppConfig = Depends(get_config)) -> HTMLResponse:
    ctx = load_session(request)
    page = render_chat_page(ctx.state, config.blob, title=get_defaults().page_title)
    resp = HTMLResponse(page)
    ctx.apply_cookie(resp)
    return resp


async def _answer(ctx: ChatSessionContext, user_input: str, client: CompletionClient) -> None:
    defaults = get_defaults()
    state = ctx.state
    ctx.append(ChatMessage(role="User", content=user_input, avatar_url=defaults.user_avatar))
    result = await client.complete(
        system_prompt=state.system_prompt,
        user_message=user_input,
        max_tokens=state.max_response,
        previous_usage=state.usage,
    )
    ctx.set_usage(result.usage)
    ctx.append(
        ChatMessage(
            role="AI",
            content=result.content,
            avatar_url=defaults.ai_avatar,
            citations=result.citations,
        )
    )
    log.info(
        "Session %s: answered turn %d (ok=%s, citations=%d, total_tokens=%d)",
        ctx.session_id[:8],
        len(state.chat_history) // 2,
        result.ok,
        len(result.citations),
        result.usage.total_tokens,
    )


@app.post("/")
async def ask(
    request: Request,
    user_input: str | None = Form(default=None),
    system_prompt_input: str | None = Form(default=None),
    max_response_input: str | None = Form(default=None),
    client: CompletionClient = Depends(get_completion_client),
) -> RedirectResponse:
    ctx = load_session(request)
    changed = False
    if system_prompt_input and system_prompt_input.strip():
        ctx.state.system_prompt = system_prompt_input
        changed = True
    max_response = _parse_max_response(max_response_input)
    if max_response is not None:
        ctx.state.max_response = max_response
        changed = True

    if user_input and user_input.strip():
        await _answer(ctx, user_input, client)
        changed = True

    if changed:
        ctx.save()
    resp = RedirectResponse("/", status_code=303)
    ctx.apply_cookie(resp)
    return resp


@app.post("/reset")
def reset(request: Request) -> RedirectResponse:
    ctx = load_session(request)
    ctx.reset()
    resp = RedirectResponse("/", status_code=303)
    ctx.apply_cookie(resp)
    return resp


@app.get("/blob-image")
def blob_image(
    blob_path: str | None = Query(default=None, alias="blobPath"),
    store: BlobImageStore = Depends(get_blob_store),
) -> StreamingResponse:
    if blob_path is None or not blob_path.strip():
        raise HTTPException(status_code=400, detail="Missing blobPath")
    try:
        content = store.fetch(blob_path)
    except BlobFetchError as e:
        log.exception("Error streaming blob image: %s", blob_path)
        raise HTTPException(status_code=404, detail="Blob not found") from e
    return StreamingResponse(content.chunks, media_type=content.content_type)


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(
        "ragchat.main:app",
        host=os.getenv("RAGCHAT_HOST", "127.0.0.1"),
        port=int(os.getenv("RAGCHAT_PORT", "8000")),
    )
