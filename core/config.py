"""
core/config.py — 配置中心

• YAML 配置文件（CONFIG_FILE 环境变量指定，默认 ./config.yaml）
• cfg.get("a.b.c", default) 按点号路径读取
• 环境变量覆盖：a.b.c → A_B_C
"""
import os
from typing import Any

import yaml

VERSION = "1.0.0"
API_BASE = "/api"


class Config:
    def __init__(self, config_path: str = None):
        self.config_path = config_path or os.getenv("CONFIG_FILE", "config.yaml")
        self.config = {}
        self.reload()

    def reload(self) -> dict:
        data = {}
        if self.config_path and os.path.exists(self.config_path):
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            data = {}
        self.config = data
        return self.config

    def save_config(self) -> None:
        folder = os.path.dirname(os.path.abspath(self.config_path))
        os.makedirs(folder, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.config, f, allow_unicode=True, sort_keys=False)

    def get(self, key: str, default: Any = None) -> Any:
        env_key = str(key or "").replace(".", "_").upper()
        env_value = os.getenv(env_key)
        if env_value not in (None, ""):
            return env_value
        cursor: Any = self.config
        for part in [x for x in str(key or "").split(".") if x]:
            if not isinstance(cursor, dict) or part not in cursor:
                return default
            cursor = cursor[part]
        return default if cursor is None else cursor

    def set(self, key: str, value: Any) -> None:
        keys = [x for x in str(key or "").split(".") if x]
        if not keys:
            return
        cursor = self.config
        for part in keys[:-1]:
            if not isinstance(cursor.get(part), dict):
                cursor[part] = {}
            cursor = cursor[part]
        cursor[keys[-1]] = value


cfg = Config()

DEBUG = str(cfg.get("debug", "false")).strip().lower() in ("1", "true", "yes")


def set_config(key: str, value: Any, save: bool = False) -> None:
    cfg.set(key, value)
    if save:
        cfg.save_config()
