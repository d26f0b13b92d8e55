"""
core/log.py — 统一日志

• 每条日志带 trace_id（ContextVar 传播，请求中间件负责设置）
• 格式: 时间 [级别] [trace_id] 模块.函数:行号 - 消息
• get_logger(__name__) 获取模块 logger
• trace_ctx() 供后台任务（如会话保活）使用
"""

import logging
import logging.handlers
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Generator, Optional

try:
    import colorlog
except ImportError:
    colorlog = None

_trace_id_var: ContextVar[str] = ContextVar("trace_id", default="-")

_FMT = "%(asctime)s [%(levelname)-5s] [%(trace_id)s] %(name)s.%(funcName)s:%(lineno)d - %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"
_HANDLER_MARKER = "_is_app_log_handler"
_LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


def new_trace_id() -> str:
    return uuid.uuid4().hex[:8]


def set_trace_id(tid: Optional[str] = None) -> str:
    """设置当前上下文 trace_id，返回实际值。"""
    tid = str(tid or "").strip()[:16] or new_trace_id()
    _trace_id_var.set(tid)
    return tid


def get_trace_id() -> str:
    return _trace_id_var.get()


@contextmanager
def trace_ctx(trace_id: Optional[str] = None) -> Generator[str, None, None]:
    token = _trace_id_var.set(str(trace_id or "").strip()[:16] or new_trace_id())
    try:
        yield _trace_id_var.get()
    finally:
        _trace_id_var.reset(token)


class _TraceIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = _trace_id_var.get()
        return True


def _console_handler() -> logging.Handler:
    if colorlog:
        handler = colorlog.StreamHandler(stream=sys.stdout)
        handler.setFormatter(
            colorlog.ColoredFormatter("%(log_color)s" + _FMT, datefmt=_DATE_FMT, log_colors=_LOG_COLORS)
        )
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FMT, datefmt=_DATE_FMT))
    return handler


def setup_logging(level: str = None, log_file: str = None) -> None:
    """向根日志器注册 handler（幂等，uvicorn --reload 不会重复添加）。"""
    root = logging.getLogger()
    if any(getattr(h, _HANDLER_MARKER, False) for h in root.handlers):
        return

    from core.config import cfg
    level_name = str(level or cfg.get("log.level", "INFO") or "INFO").upper()
    resolved = logging.getLevelName(level_name)
    if not isinstance(resolved, int):
        resolved = logging.INFO
    log_file = log_file if log_file is not None else str(cfg.get("log.file", "") or "")

    root.setLevel(resolved)
    handlers = [_console_handler()]
    if log_file:
        fh = logging.handlers.RotatingFileHandler(
            f"{log_file}.log",
            maxBytes=5 * 1024 * 1024,
            backupCount=7,
            encoding="utf-8",
        )
        fh.setFormatter(logging.Formatter(_FMT, datefmt=_DATE_FMT))
        handlers.append(fh)

    trace_filter = _TraceIdFilter()
    for handler in handlers:
        handler.setLevel(resolved)
        handler.addFilter(trace_filter)
        setattr(handler, _HANDLER_MARKER, True)
        root.addHandler(handler)


setup_logging()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
