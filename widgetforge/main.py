import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple

import redis
from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from widgetforge import ratelimit, store
from widgetforge.auth import extract_client_key, require_api_key
from widgetforge.errors import WidgetGenerationError
from widgetforge.generator import generate_component, generate_widget_with_image
from widgetforge.llm_client import GenerationService, OpenAIService
from widgetforge.llm_client import status as llm_status
from widgetforge.models import SavedPrompt, SavedWidget, WidgetCode
from widgetforge.redis_ratelimit import RedisRateLimiter
from widgetforge.render import render_preview_page
from widgetforge.scraper import gather_context
from widgetforge.validators import collect_errors

if not logging.getLogger().handlers:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    service = OpenAIService()
    app.state.service = service
    if not service.has_token:
        log.warning("lifespan: OPENAI_API_KEY not set; /generate will answer 503")
    try:
        yield
    finally:
        await service.aclose()


app = FastAPI(lifespan=lifespan)

allow_origins = [o.strip() for o in os.getenv("ALLOW_ORIGINS", "*").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = str(uuid.uuid4())
    start = time.time()
    request.state.request_id = rid
    response = None
    try:
        response = await call_next(request)
        return response
    finally:
        dur_ms = int((time.time() - start) * 1000)
        log.info(
            "rid=%s method=%s path=%s status=%s dur_ms=%d",
            rid,
            request.method,
            request.url.path,
            getattr(response, "status_code", "?"),
            dur_ms,
        )


def get_service(request: Request) -> GenerationService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="generation service not initialised")
    return service


class GenerateRequest(BaseModel):
    prompt: str = Field("", description="What the widget should be about; URLs in it are scraped for context")
    with_image: bool = Field(False, description="Also generate a background image and themed wrapper")


class ValidateRequest(BaseModel):
    component: Dict[str, Any]
    require_theme: bool = False


class PromptCreate(BaseModel):
    content: str


class WidgetCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    data: WidgetCode
    prompt_id: Optional[int] = Field(default=None, alias="promptId")


class WidgetUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    data: Optional[Dict[str, str]] = None
    prompt_id: Optional[int] = Field(default=None, alias="promptId")


# Redis-backed limiter only when configured, never under pytest
_REDIS_URL = os.getenv("REDIS_URL", "").strip()
_rl_instance: Optional[RedisRateLimiter] = None
if _REDIS_URL and not os.getenv("PYTEST_CURRENT_TEST"):
    _rl_instance = RedisRateLimiter(_REDIS_URL)


def _rate_check(bucket: str, key: str) -> Tuple[bool, int, int]:
    """Return (allowed, remaining, reset_ts), preferring Redis when configured."""
    if _rl_instance is not None:
        try:
            return _rl_instance.check_and_increment(bucket, key)
        except redis.RedisError as e:
            log.warning("rate_limit: redis unavailable, using in-process limiter err=%r", e)
    return ratelimit.check_and_increment(bucket, key)


def _rate_limit_headers(remaining: int, reset_ts: int, *, limited: bool = False) -> Dict[str, str]:
    headers = {
        "X-RateLimit-Remaining": str(remaining),
        "X-RateLimit-Reset": str(reset_ts),
    }
    if limited:
        wait_seconds = max(0, reset_ts - int(time.time()))
        headers["Retry-After"] = str(wait_seconds)
    return headers


def _rate_limit_payload(reset_ts: int) -> Dict[str, Any]:
    wait_seconds = max(0, reset_ts - int(time.time()))
    return {
        "error": "rate limit exceeded",
        "reset": reset_ts,
        "retry_after_seconds": wait_seconds,
        "message": f"Rate limit exceeded. Try again in {wait_seconds} seconds.",
    }


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/llm/status")
def llm_status_endpoint(request: Request) -> Dict[str, Any]:
    return llm_status(getattr(request.app.state, "service", None))


@app.post("/generate")
async def generate_endpoint(
    req: GenerateRequest,
    request: Request,
    service: GenerationService = Depends(get_service),
    api_key: Optional[str] = Depends(require_api_key),
):
    prompt = (req.prompt or "").strip()
    if not prompt:
        return JSONResponse(status_code=400, content={"error": "Prompt is required"})

    if not getattr(service, "has_token", True):
        return JSONResponse(status_code=503, content={"error": "Missing LLM credentials"})

    client_key = extract_client_key(api_key, request.client.host if request.client else "anon")
    allowed, remaining, reset_ts = _rate_check("gen", client_key)
    log.info("rate_limit check allowed=%s remaining=%s", allowed, remaining)
    if not allowed:
        return JSONResponse(
            status_code=429,
            content=_rate_limit_payload(reset_ts),
            headers=_rate_limit_headers(remaining, reset_ts, limited=True),
        )

    context = await gather_context(prompt)
    log.info("generate.start with_image=%s prompt_len=%d context_len=%d", req.with_image, len(prompt), len(context))
    try:
        if req.with_image:
            result = await generate_widget_with_image(service, prompt, context)
        else:
            result = await generate_component(service, prompt, context)
    except WidgetGenerationError as e:
        log.error("generate.failed kind=%s err=%s context=%s", e.kind, e.message, e.context)
        return JSONResponse(
            status_code=502,
            content={"error": "Failed to generate content", "kind": e.kind},
            headers=_rate_limit_headers(remaining, reset_ts),
        )
    return JSONResponse(result.to_wire(), headers=_rate_limit_headers(remaining, reset_ts))


@app.post("/validate")
def validate_endpoint(req: ValidateRequest):
    """
    Check a component against the required shape.
    Returns 200 and {"detail":{"valid":true}} on success,
            422 and {"detail":{"valid":false,"errors":[...]}} on failure.
    """
    errors = collect_errors(req.component, require_theme=req.require_theme)
    detail: Dict[str, Any] = {"valid": not errors}
    if errors:
        detail["errors"] = errors
        return JSONResponse(status_code=422, content={"detail": detail})
    return {"detail": detail}


@app.get("/prompts")
def list_prompts() -> Dict[str, List[Dict[str, Any]]]:
    return {"prompts": store.list_prompts()}


@app.post("/prompts", status_code=201, response_model=SavedPrompt)
def create_prompt(req: PromptCreate, api_key: Optional[str] = Depends(require_api_key)) -> Dict[str, Any]:
    content = (req.content or "").strip()
    if not content:
        raise HTTPException(status_code=400, detail="Prompt content is required")
    return store.add_prompt(content)


@app.get("/prompts/{prompt_id}", response_model=SavedPrompt)
def get_prompt(prompt_id: int) -> Dict[str, Any]:
    try:
        return store.get_prompt(prompt_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Prompt not found")


@app.get("/widgets")
def list_widgets(prompt_id: Optional[int] = None) -> Dict[str, List[Dict[str, Any]]]:
    return {"widgets": store.list_widgets(prompt_id)}


@app.post("/widgets", status_code=201, response_model=SavedWidget, response_model_exclude_none=True)
def create_widget(req: WidgetCreate, api_key: Optional[str] = Depends(require_api_key)) -> Dict[str, Any]:
    name = (req.name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Widget name is required")
    return store.save_widget(name, req.data.model_dump(), req.prompt_id)


@app.get("/widgets/{widget_id}", response_model=SavedWidget, response_model_exclude_none=True)
def get_widget(widget_id: str) -> Dict[str, Any]:
    try:
        return store.get_widget(widget_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Widget not found")


@app.put("/widgets/{widget_id}", response_model=SavedWidget, response_model_exclude_none=True)
def update_widget(
    widget_id: str,
    req: WidgetUpdate,
    api_key: Optional[str] = Depends(require_api_key),
) -> Dict[str, Any]:
    changes = {"name": req.name, "data": req.data, "promptId": req.prompt_id}
    try:
        return store.update_widget(widget_id, changes)
    except KeyError:
        raise HTTPException(status_code=404, detail="Widget not found")


@app.delete("/widgets/{widget_id}", status_code=204)
def delete_widget(widget_id: str, api_key: Optional[str] = Depends(require_api_key)) -> Response:
    try:
        store.delete_widget(widget_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Widget not found")
    return Response(status_code=204)


@app.get("/widgets/{widget_id}/preview", response_class=HTMLResponse)
def preview_widget(widget_id: str) -> HTMLResponse:
    """Standalone page that replays a saved widget's html, css and script."""
    try:
        widget = store.get_widget(widget_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Widget not found")
    return HTMLResponse(render_preview_page(widget.get("name", ""), widget.get("data") or {}))
