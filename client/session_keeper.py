"""
client/session_keeper.py — 会话保活

登录后 start()，登出/退出时 stop()。后台任务按固定间隔拉取 /auth/session，
把轮换后的 bearer token 写回 ApiClient；会话失效时清空 token。
单次刷新失败只记录日志，循环继续。
"""
import asyncio
from typing import Callable, Optional

from core.config import cfg
from core.events import log_event, E
from core.log import get_logger, trace_ctx
from .api_client import ApiClient

logger = get_logger(__name__)

DEFAULT_REFRESH_SECONDS = 300


def _refresh_interval() -> float:
    try:
        value = float(cfg.get("auth.session_refresh_seconds", DEFAULT_REFRESH_SECONDS) or DEFAULT_REFRESH_SECONDS)
    except Exception:
        value = DEFAULT_REFRESH_SECONDS
    return max(1.0, value)


class SessionKeeper:
    def __init__(
        self,
        client: ApiClient,
        interval: Optional[float] = None,
        on_user: Optional[Callable[[Optional[dict]], None]] = None,
    ):
        self.client = client
        self.interval = float(interval) if interval is not None else _refresh_interval()
        self.on_user = on_user
        self.user: Optional[dict] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh_now(self) -> Optional[dict]:
        data = await asyncio.to_thread(self.client.get_session) or {}
        user = data.get("user")
        token = (data.get("session") or {}).get("token")
        if user:
            if token:
                self.client.set_token(token)
            log_event(logger, E.AUTH_SESSION_SYNC, user_id=user.get("id"), token_rotated=bool(token))
        else:
            self.client.clear_token()
            log_event(logger, E.AUTH_SESSION_CLEAR)
        self.user = user
        if self.on_user is not None:
            self.on_user(user)
        return user

    async def _run(self) -> None:
        with trace_ctx():
            while True:
                try:
                    await self.refresh_now()
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception("会话刷新失败，%s 秒后重试", self.interval)
                await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        """需在事件循环中调用；重复调用返回同一个任务。"""
        if self.running:
            return self._task
        self._task = asyncio.get_running_loop().create_task(self._run(), name="session-keeper")
        log_event(logger, E.AUTH_SESSION_KEEPER_START, interval=self.interval)
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        log_event(logger, E.AUTH_SESSION_KEEPER_STOP)

    async def __aenter__(self) -> "SessionKeeper":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
