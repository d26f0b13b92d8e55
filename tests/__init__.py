import os
import tempfile

# 测试使用独立的临时 SQLite 库与本地模拟模型，需在导入 core 之前设置
_TEST_DIR = tempfile.mkdtemp(prefix="charachat-test-")
os.environ.setdefault("DB", f"sqlite:///{os.path.join(_TEST_DIR, 'test.db')}")
os.environ.setdefault("AI_PROVIDER_BASE_URL", "mock://local")
os.environ.setdefault("AI_PROVIDER_API_KEY", "mock")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("CONFIG_FILE", os.path.join(_TEST_DIR, "config.yaml"))
