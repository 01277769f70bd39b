"""
api/app.py — FastAPI 앱 인스턴스 + 세션 미들웨어 + 수명 주기(이력 로드, 세션 정리)
"""

import asyncio
import contextlib
import logging

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from api import routes
import api.session as session

SESSION_COOKIE = "examgen_session"

logger = logging.getLogger(__name__)


async def _cleanup_loop(interval: float = 300) -> None:
    """만료 세션 주기적 정리 (5분마다)."""
    while True:
        await asyncio.sleep(interval)
        removed = session.cleanup_expired()
        if removed:
            logger.info(f"만료 세션 {removed}개 정리")


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    routes.history.load()
    cleanup_task = asyncio.create_task(_cleanup_loop())
    try:
        yield
    finally:
        cleanup_task.cancel()
        session.discard_all()


def create_app() -> FastAPI:
    app = FastAPI(title="ExamGen CBT", docs_url=None, redoc_url=None, lifespan=lifespan)

    # CORS (프런트엔드가 다른 출처에서 호출)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 세션 미들웨어: 쿠키에서 세션 ID를 읽고, 없으면 새로 발급
    @app.middleware("http")
    async def session_middleware(request: Request, call_next):
        sid = request.cookies.get(SESSION_COOKIE)
        if not sid or session.get_session(sid) is None:
            sid = session.create_session()

        request.state.session_id = sid
        response: Response = await call_next(request)
        response.set_cookie(
            key=SESSION_COOKIE,
            value=sid,
            httponly=True,
            samesite="lax",
            max_age=session.SESSION_TTL,
        )
        return response

    app.include_router(routes.router)
    return app
