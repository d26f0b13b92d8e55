"""
core/db.py — 数据库访问

DB.get_session() 返回独立 Session，调用方负责 commit/rollback/close。
"""
import os
import threading

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.config import cfg
from core.log import get_logger

logger = get_logger(__name__)

DEFAULT_DB_URL = "sqlite:///data/charachat.db"


class Db:
    def __init__(self, url: str = None):
        self._url = url
        self._engine = None
        self._session_factory = None
        self._lock = threading.Lock()
        self._tables_ready = False

    @property
    def url(self) -> str:
        return str(self._url or cfg.get("db", "") or os.getenv("DATABASE_URL", "") or DEFAULT_DB_URL)

    def _ensure_sqlite_dir(self, url: str) -> None:
        prefix = "sqlite:///"
        if not url.startswith(prefix) or ":memory:" in url:
            return
        folder = os.path.dirname(os.path.abspath(url[len(prefix):]))
        os.makedirs(folder, exist_ok=True)

    def get_engine(self):
        if self._engine is not None:
            return self._engine
        with self._lock:
            if self._engine is None:
                url = self.url
                kwargs = {"pool_pre_ping": True}
                if url.startswith("sqlite"):
                    self._ensure_sqlite_dir(url)
                    kwargs["connect_args"] = {"check_same_thread": False}
                    if ":memory:" in url:
                        kwargs["poolclass"] = StaticPool
                self._engine = create_engine(url, **kwargs)
                self._session_factory = sessionmaker(bind=self._engine, autoflush=False, expire_on_commit=False)
                logger.info("数据库已连接: %s", url.split("@")[-1])
        return self._engine

    def get_session(self):
        self.get_engine()
        return self._session_factory()

    def create_tables(self) -> None:
        if self._tables_ready:
            return
        from core.models.base import Base
        import core.models  # noqa: F401  注册全部模型
        Base.metadata.create_all(self.get_engine())
        self._tables_ready = True

    def reset(self, url: str = None) -> None:
        """切换数据库地址（测试用）"""
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
            self._url = url
            self._engine = None
            self._session_factory = None
            self._tables_ready = False


DB = Db()
