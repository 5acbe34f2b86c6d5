import json
import os
import stat
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import pytest

from zcommit.config.loader import (
    ConfigError,
    delete_api_key,
    get_api_key,
    get_key_source,
    load_config,
    mask_key,
    save_config,
    set_api_key,
)


class TestConfigLoader(unittest.TestCase):
    """Tests for the configuration loader."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.config_dir = Path(self._tmp.name) / ".zcommit"
        patcher = patch("zcommit.config.loader._get_config_directory", return_value=self.config_dir)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.addCleanup(self._tmp.cleanup)
        env = patch.dict(os.environ, {}, clear=False)
        env.start()
        self.addCleanup(env.stop)
        os.environ.pop("CEREBRAS_API_KEY", None)

    def _write(self, content: str) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        (self.config_dir / "config.json").write_text(content)

    def test_load_config_missing_file_is_empty(self) -> None:
        self.assertEqual(load_config(), {})

    def test_load_config_success(self) -> None:
        self._write(json.dumps({"apiKey": "csk-123", "model": "llama3.1-8b", "requestTimeout": 20}))
        config = load_config()
        self.assertEqual(config["apiKey"], "csk-123")
        self.assertEqual(config["model"], "llama3.1-8b")
        self.assertEqual(config["requestTimeout"], 20)

    def test_load_config_invalid_json(self) -> None:
        self._write("{invalid}")
        with self.assertRaises(ConfigError):
            load_config()

    def test_load_config_not_an_object(self) -> None:
        self._write("[1, 2]")
        with self.assertRaises(ConfigError):
            load_config()

    def test_load_config_wrong_types(self) -> None:
        for bad in ({"apiKey": 5}, {"maxTokens": "many"}, {"requestTimeout": True}):
            self._write(json.dumps(bad))
            with self.assertRaises(ConfigError):
                load_config()

    def test_set_api_key_preserves_other_keys(self) -> None:
        self._write(json.dumps({"model": "m", "custom": 1}))
        set_api_key("csk-new")
        data = json.loads((self.config_dir / "config.json").read_text())
        self.assertEqual(data, {"model": "m", "custom": 1, "apiKey": "csk-new"})

    def test_set_api_key_replaces_corrupt_file(self) -> None:
        self._write("not json")
        set_api_key("csk-new")
        self.assertEqual(load_config(), {"apiKey": "csk-new"})

    def test_delete_api_key(self) -> None:
        self.assertFalse(delete_api_key())
        set_api_key("csk-new")
        self.assertTrue(delete_api_key())
        self.assertNotIn("apiKey", load_config())

    def test_env_takes_priority_over_file(self) -> None:
        set_api_key("csk-file")
        self.assertEqual(get_api_key(), "csk-file")
        self.assertEqual(get_key_source(), "file")
        os.environ["CEREBRAS_API_KEY"] = "csk-env"
        self.assertEqual(get_api_key(), "csk-env")
        self.assertEqual(get_key_source(), "env")

    def test_empty_values_count_as_missing(self) -> None:
        os.environ["CEREBRAS_API_KEY"] = "   "
        self._write(json.dumps({"apiKey": ""}))
        self.assertIsNone(get_api_key())
        self.assertIsNone(get_key_source())

    def test_get_api_key_ignores_corrupt_file(self) -> None:
        self._write("{oops")
        self.assertIsNone(get_api_key())


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions only")
def test_save_config_uses_owner_only_permissions(monkeypatch, tmp_path):
    config_dir = tmp_path / ".zcommit"
    monkeypatch.setattr("zcommit.config.loader._get_config_directory", lambda: config_dir)
    path = save_config({"apiKey": "secret"})
    assert stat.S_IMODE(path.stat().st_mode) == 0o600
    assert stat.S_IMODE(config_dir.stat().st_mode) == 0o700


def test_default_location_is_under_home(isolate_home_config):
    path = set_api_key("csk-home")
    assert path == isolate_home_config / ".zcommit" / "config.json"


def test_mask_key():
    assert mask_key("csk-1234567890abcdef") == "csk-1234...cdef"
    assert mask_key("short") == "*****"


if __name__ == "__main__":
    unittest.main()
