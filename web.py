from fastapi import FastAPI, Request, APIRouter
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import json
from typing import Any
from apis.auth import router as auth_router
from apis.users import router as users_router
from apis.characters import router as characters_router
from apis.stories import router as stories_router
from apis.conversations import router as conversations_router
from apis.community import router as community_router
from apis.social import router as social_router
from apis.ai import router as ai_router
from apis.base import error_response
from core.config import cfg, VERSION, API_BASE
from core.db import DB
from core.errors import AppError
from core.events import log_event, E
from core.log import get_logger, set_trace_id

logger = get_logger(__name__)


class UnicodeJSONResponse(JSONResponse):
    """JSON 响应：不转义非 ASCII 字符"""
    def render(self, content: Any) -> bytes:
        return json.dumps(
            content,
            ensure_ascii=False,
            allow_nan=False,
            indent=None,
            separators=(",", ":"),
        ).encode("utf-8")


app = FastAPI(
    title="CharaChat API",
    description="Character chat, story generation and community feed",
    version=VERSION,
    docs_url=f"{API_BASE}/docs",
    redoc_url=f"{API_BASE}/redoc",
    openapi_url=f"{API_BASE}/openapi.json",
    swagger_ui_parameters={
        "persistAuthorization": True,
    },
    default_response_class=UnicodeJSONResponse,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_trace_and_headers(request: Request, call_next):
    trace_id = set_trace_id(request.headers.get("X-Trace-Id", ""))
    response = await call_next(request)
    response.headers["X-Trace-Id"] = trace_id
    response.headers["X-Version"] = VERSION
    response.headers["Server"] = str(cfg.get("app_name", "CharaChat"))
    return response


@app.exception_handler(AppError)
async def handle_app_error(request: Request, exc: AppError):
    return UnicodeJSONResponse(
        status_code=exc.status_code,
        content=error_response(code=exc.code, message=exc.message),
    )


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    logger.warning("请求体校验失败 path=%s errors=%s", request.url.path, exc.errors())
    return UnicodeJSONResponse(
        status_code=400,
        content=error_response(code=40001, message="Invalid request data", data=json.loads(json.dumps(exc.errors(), default=str))),
    )


api_router = APIRouter(prefix=f"{API_BASE}")
api_router.include_router(auth_router)
api_router.include_router(users_router)
api_router.include_router(characters_router)
api_router.include_router(stories_router)
api_router.include_router(conversations_router)
api_router.include_router(community_router)
api_router.include_router(social_router)
api_router.include_router(ai_router)
app.include_router(api_router)


@app.on_event("startup")
async def ensure_tables():
    DB.create_tables()
    log_event(logger, E.SYSTEM_DB_INIT)
    log_event(logger, E.SYSTEM_STARTUP, version=VERSION)


@app.get("/health", tags=["Default"], include_in_schema=False)
async def health():
    return {"status": "ok", "version": VERSION}
