"""
client/optimistic.py — 点赞乐观更新

toggle_like() 先同步修改本地状态并通知订阅者，再异步发起远程请求：
成功时保持本地状态（reconcile=True 时以服务端返回为准），
任意失败都按同一变换反向回滚，并上报 RemoteToggleFailure。
serialize=True 时同一条目的下一次切换会等待上一次请求结束。
"""
import asyncio
import inspect
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, List, Optional

from core.errors import RemoteToggleFailure
from core.events import log_event, E
from core.log import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class LikeableItem:
    id: str
    likes_count: int = 0
    liked: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LikeableItem":
        return cls(
            id=str(data["id"]),
            likes_count=max(0, int(data.get("likes_count") or 0)),
            liked=bool(data.get("liked")),
        )


def apply_toggle(item: LikeableItem) -> LikeableItem:
    liked = not item.liked
    return replace(item, liked=liked, likes_count=item.likes_count + (1 if liked else -1))


class LikeController:
    def __init__(
        self,
        remote_toggle: Callable[[str], Any],
        reconcile: bool = False,
        serialize: bool = False,
        on_error: Optional[Callable[[RemoteToggleFailure], None]] = None,
    ):
        self._remote_toggle = remote_toggle
        self.reconcile = reconcile
        self.serialize = serialize
        self._on_error = on_error
        self._items: Dict[str, LikeableItem] = {}
        self._listeners: List[Callable[[LikeableItem], None]] = []
        self._pending: Dict[str, asyncio.Task] = {}

    # ── 状态 ──────────────────────────────────────────────────────────────────
    def hydrate(self, items: Iterable) -> None:
        """用一次 feed 拉取的结果整体替换本地状态。"""
        self._items = {}
        for raw in items or []:
            item = raw if isinstance(raw, LikeableItem) else LikeableItem.from_dict(raw)
            self._items[item.id] = item

    def get(self, item_id: str) -> LikeableItem:
        return self._items[item_id]

    def subscribe(self, listener: Callable[[LikeableItem], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return _unsubscribe

    def _set(self, item: LikeableItem) -> None:
        self._items[item.id] = item
        for listener in list(self._listeners):
            try:
                listener(item)
            except Exception:
                logger.exception("点赞状态监听器异常 item_id=%s", item.id)

    def in_flight(self, item_id: str) -> bool:
        task = self._pending.get(item_id)
        return bool(task and not task.done())

    # ── 切换 ──────────────────────────────────────────────────────────────────
    def toggle_like(self, item_id: str) -> asyncio.Task:
        """
        需在事件循环中调用。非串行模式下本地状态在返回前已更新；
        返回的 Task 结束时给出该条目的最终状态；除被取消外不会抛出异常。
        """
        previous = self._pending.get(item_id)
        if self.serialize and previous is not None and not previous.done():
            task = asyncio.ensure_future(self._toggle_after(previous, item_id))
        else:
            applied = apply_toggle(self.get(item_id))
            self._set(applied)
            task = asyncio.ensure_future(self._send(applied))
        self._pending[item_id] = task
        task.add_done_callback(lambda t, key=item_id: self._clear_pending(key, t))
        return task

    def _clear_pending(self, item_id: str, task: asyncio.Task) -> None:
        if self._pending.get(item_id) is task:
            self._pending.pop(item_id, None)

    async def _toggle_after(self, previous: asyncio.Task, item_id: str) -> LikeableItem:
        await asyncio.wait([previous])
        applied = apply_toggle(self.get(item_id))
        self._set(applied)
        return await self._send(applied)

    async def _call_remote(self, item_id: str) -> Any:
        if inspect.iscoroutinefunction(self._remote_toggle):
            return await self._remote_toggle(item_id)
        return await asyncio.to_thread(self._remote_toggle, item_id)

    async def _send(self, applied: LikeableItem) -> LikeableItem:
        try:
            result = await self._call_remote(applied.id)
        except asyncio.CancelledError:
            self._rollback(applied, RemoteToggleFailure(applied.id, None))
            raise
        except Exception as e:
            self._rollback(applied, RemoteToggleFailure(applied.id, e))
            return self.get(applied.id)

        if self.reconcile and isinstance(result, dict) and "liked" in result and "likes_count" in result:
            self._set(replace(applied, liked=bool(result["liked"]), likes_count=max(0, int(result["likes_count"]))))
        return self.get(applied.id)

    def _rollback(self, applied: LikeableItem, failure: RemoteToggleFailure) -> None:
        reverted = apply_toggle(applied)
        self._set(reverted)
        log_event(logger, E.POST_LIKE_ROLLBACK, level="warning", item_id=applied.id,
                  liked=reverted.liked, likes_count=reverted.likes_count, reason=failure.cause)
        if self._on_error is not None:
            try:
                self._on_error(failure)
            except Exception:
                logger.exception("点赞失败回调异常 item_id=%s", applied.id)
