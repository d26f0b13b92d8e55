import copy
import os
import unittest
from datetime import datetime, timedelta

from core.config import Config, cfg, set_config
from core.quota_service import UsageRecord, daily_limit, decide


class ConfigTestCase(unittest.TestCase):
    def setUp(self):
        self._saved = copy.deepcopy(cfg.config)
        self._had_file = os.path.exists(cfg.config_path)

    def tearDown(self):
        cfg.config = self._saved
        if not self._had_file and os.path.exists(cfg.config_path):
            os.remove(cfg.config_path)

    def test_set_config_changes_quota_limit(self):
        set_config("quota.daily_limit", 3)
        self.assertEqual(daily_limit(), 3)
        now = datetime.now()
        record = UsageRecord(is_premium=False, daily_ai_conversations_used=3, last_conversation_reset=now - timedelta(hours=1))
        decision = decide(record, now=now)
        self.assertFalse(decision.allowed)
        self.assertEqual(decision.reason.limit, 3)

    def test_set_config_save_persists_yaml(self):
        set_config("auth.session_refresh_seconds", 120, save=True)
        reloaded = Config(cfg.config_path)
        self.assertEqual(reloaded.get("auth.session_refresh_seconds"), 120)

    def test_env_overrides_file_value(self):
        set_config("quota.window_hours", 12)
        os.environ["QUOTA_WINDOW_HOURS"] = "48"
        try:
            self.assertEqual(cfg.get("quota.window_hours"), "48")
        finally:
            del os.environ["QUOTA_WINDOW_HOURS"]
        self.assertEqual(cfg.get("quota.window_hours"), 12)


if __name__ == "__main__":
    unittest.main()
