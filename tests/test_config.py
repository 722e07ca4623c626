from __future__ import annotations

import logging
import os

import pytest

from nexus.common.config import DEFAULTS, load_config, load_env_local, setup_logging
from tests.conftest import write_config


class TestLoadConfig:
    def test_file_values_merge_over_defaults(self, config_file, tmp_path) -> None:
        cfg = load_config(config_file)
        assert cfg["database"]["path"] == f"{tmp_path}/nexus.db"
        assert cfg["assistant"]["api_key"] == "sk-test-fake-key"
        assert cfg["assistant"]["chat_max_attempts"] == 5
        assert cfg["assistant"]["beta_header"] == DEFAULTS["assistant"]["beta_header"]
        assert cfg["auth"]["session_ttl_hours"] == 24

    def test_env_overrides_file(self, config_file, monkeypatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")
        monkeypatch.setenv("ASSISTANT_ID", "asst_env")
        monkeypatch.setenv("NEXUS_DB_PATH", "/tmp/other.db")
        cfg = load_config(config_file)
        assert cfg["assistant"]["api_key"] == "sk-from-env"
        assert cfg["assistant"]["assistant_id"] == "asst_env"
        assert cfg["database"]["path"] == "/tmp/other.db"

    def test_explicit_missing_path_raises(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_defaults_are_not_mutated(self, config_file) -> None:
        load_config(config_file)
        assert DEFAULTS["assistant"]["api_key"] is None
        assert DEFAULTS["assistant"]["chat_max_attempts"] == 30
        assert DEFAULTS["assistant"]["analyze_max_attempts"] == 60

    def test_missing_credentials_only_warn(self, tmp_path, caplog) -> None:
        path = write_config(tmp_path, api_key=None, assistant_id=None)
        with caplog.at_level(logging.WARNING, logger="nexus"):
            cfg = load_config(path)
        assert cfg["assistant"]["api_key"] is None
        assert "OPENAI_API_KEY is not set" in caplog.text

    @pytest.mark.parametrize(
        "line",
        ["  poll_interval: -1", "  chat_max_attempts: 0", "  analyze_max_attempts: lots"],
    )
    def test_invalid_polling_settings(self, tmp_path, line) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("assistant:\n" + line + "\n")
        with pytest.raises(ValueError):
            load_config(path)

    def test_non_mapping_file(self, tmp_path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            load_config(path)


class TestEnvLocal:
    def test_does_not_clobber_existing(self, tmp_path, monkeypatch) -> None:
        env_file = tmp_path / ".env.local"
        env_file.write_text("# comment\nOPENAI_API_KEY=sk-file\nASSISTANT_ID = asst_file\n\n")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-shell")
        load_env_local(env_file)
        assert os.environ["OPENAI_API_KEY"] == "sk-shell"
        assert os.environ["ASSISTANT_ID"] == "asst_file"

    def test_missing_file_is_ignored(self, tmp_path) -> None:
        load_env_local(tmp_path / "absent")


class TestLogging:
    def test_rotating_file_handler(self, tmp_path, monkeypatch) -> None:
        logger = logging.getLogger("nexus")
        monkeypatch.setattr(logger, "handlers", [])
        monkeypatch.setattr(logger, "level", logger.level)
        setup_logging({"log_dir": str(tmp_path / "logs"), "log_level": "debug"})
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 2
        assert (tmp_path / "logs" / "nexus.log").exists()
        for handler in logger.handlers:
            handler.close()
