"""Tests for config loading and validation."""
from __future__ import annotations

import json
import os
import sys
from datetime import date

import pytest

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from zillow_saves.config import DEFAULT_EMAIL_SUBJECT, EXAMPLE_CONFIG, load_config
from zillow_saves.errors import ConfigError
from zillow_saves.watermark import FALLBACK_WATERMARK

BASE = {
    "spreadsheet_id": "sheet-123",
    "range": "Sheet1!A:Z",
    "yahoo_username": "owner@yahoo.com",
    "yahoo_app_password": "app-pass",
}


def write_json(tmp_path, data, name="config.json"):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestLoadConfig:
    def test_minimal_json(self, tmp_path):
        cfg = load_config(write_json(tmp_path, BASE), env={})
        assert cfg.spreadsheet_id == "sheet-123"
        assert cfg.sheet_range == "Sheet1!A:Z"
        assert cfg.email_subject == DEFAULT_EMAIL_SUBJECT
        assert cfg.fallback_date == FALLBACK_WATERMARK
        assert cfg.imap_host == "imap.mail.yahoo.com"
        assert cfg.imap_port == 993
        assert cfg.mailbox == "INBOX"
        assert cfg.uses_sheets

    def test_example_config_is_valid(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(EXAMPLE_CONFIG, encoding="utf-8")
        assert load_config(str(path), env={}).spreadsheet_id == "your-google-sheet-id"

    def test_yaml_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "spreadsheet_id: sheet-123\n"
            "range: Sheet1!A:B\n"
            "yahoo_username: owner@yahoo.com\n"
            "yahoo_app_password: app-pass\n"
            "fallback_date: 2025-06-01\n"
            "extra_patterns:\n"
            "  - 'saved\\s+(\\d+)\\s+times?'\n",
            encoding="utf-8",
        )
        cfg = load_config(str(path), env={})
        assert cfg.fallback_date == date(2025, 6, 1)
        assert cfg.extra_patterns == [r"saved\s+(\d+)\s+times?"]

    def test_env_only(self):
        env = {
            "GOOGLE_SHEET_ID": "env-sheet",
            "GOOGLE_SHEET_RANGE": "Saves!A:B",
            "YAHOO_USERNAME": "env@yahoo.com",
            "YAHOO_APP_PASSWORD": "env-pass",
        }
        cfg = load_config(None, env=env)
        assert cfg.spreadsheet_id == "env-sheet"
        assert cfg.sheet_range == "Saves!A:B"

    def test_env_overrides_file(self, tmp_path):
        env = {"YAHOO_APP_PASSWORD": "rotated", "ZILLOW_EMAIL_SUBJECT": "Other report",
               "GOOGLE_SERVICE_ACCOUNT_JSON_PATH": "/secrets/sa.json"}
        cfg = load_config(write_json(tmp_path, BASE), env=env)
        assert cfg.yahoo_app_password == "rotated"
        assert cfg.email_subject == "Other report"
        assert cfg.google_service_account_path == "/secrets/sa.json"

    def test_blank_env_value_does_not_override(self, tmp_path):
        cfg = load_config(write_json(tmp_path, BASE), env={"YAHOO_USERNAME": "  "})
        assert cfg.yahoo_username == "owner@yahoo.com"

    def test_csv_path_instead_of_sheet(self, tmp_path):
        data = dict(BASE, spreadsheet_id="", csv_path="saves.csv")
        cfg = load_config(write_json(tmp_path, data), env={})
        assert not cfg.uses_sheets
        assert cfg.csv_path == "saves.csv"

    def test_unknown_keys_warn(self, tmp_path, caplog):
        with caplog.at_level("WARNING", logger="zillow_saves.config"):
            load_config(write_json(tmp_path, dict(BASE, colour="blue")), env={})
        assert "colour" in caplog.text

    def test_single_pattern_string_wrapped(self, tmp_path):
        cfg = load_config(write_json(tmp_path, dict(BASE, extra_patterns=r"(\d+) hearts")), env={})
        assert cfg.extra_patterns == [r"(\d+) hearts"]


class TestConfigErrors:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(str(tmp_path / "nope.json"), env={})

    def test_invalid_syntax(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text('{"range": "A:B",', encoding="utf-8")
        with pytest.raises(ConfigError, match="not valid JSON/YAML"):
            load_config(str(path), env={})

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")
        with pytest.raises(ConfigError, match="must contain a mapping"):
            load_config(str(path), env={})

    @pytest.mark.parametrize("key", ["range", "yahoo_username", "yahoo_app_password"])
    def test_missing_required_key(self, tmp_path, key):
        data = dict(BASE)
        del data[key]
        with pytest.raises(ConfigError, match=key):
            load_config(write_json(tmp_path, data), env={})

    def test_missing_table_target(self, tmp_path):
        data = dict(BASE)
        del data["spreadsheet_id"]
        with pytest.raises(ConfigError, match="spreadsheet_id"):
            load_config(write_json(tmp_path, data), env={})

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        with pytest.raises(ConfigError, match="Missing required config values"):
            load_config(str(path), env={})

    def test_bad_port(self, tmp_path):
        with pytest.raises(ConfigError, match="imap_port"):
            load_config(write_json(tmp_path, dict(BASE, imap_port="imaps")), env={})

    def test_bad_fallback_date(self, tmp_path):
        with pytest.raises(ConfigError, match="fallback_date"):
            load_config(write_json(tmp_path, dict(BASE, fallback_date="21/05/2025")), env={})

    def test_bad_patterns(self, tmp_path):
        with pytest.raises(ConfigError, match="extra_patterns"):
            load_config(write_json(tmp_path, dict(BASE, extra_patterns=[1, 2])), env={})


class TestFallbackDate:
    def test_yaml_timestamp_truncated_to_date(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "csv_path: saves.csv\n"
            "range: Sheet1!A:B\n"
            "yahoo_username: owner@yahoo.com\n"
            "yahoo_app_password: app-pass\n"
            "fallback_date: 2025-05-21 10:00:00\n",
            encoding="utf-8",
        )
        cfg = load_config(str(path), env={})
        assert cfg.fallback_date == date(2025, 5, 21)
        assert type(cfg.fallback_date) is date

    def test_iso_string(self, tmp_path):
        cfg = load_config(write_json(tmp_path, dict(BASE, fallback_date="2025-06-01")), env={})
        assert cfg.fallback_date == date(2025, 6, 1)
