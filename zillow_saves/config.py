"""
Configuration loader – reads the run config file (JSON or YAML) and
applies environment overrides.

All validation happens here, before any network access, so a bad config
fails fast with a ConfigError naming the offending keys.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import date, datetime

import yaml

from zillow_saves.errors import ConfigError
from zillow_saves.imap_reader import YAHOO_IMAP_HOST, YAHOO_IMAP_PORT
from zillow_saves.watermark import FALLBACK_WATERMARK

log = logging.getLogger(__name__)

DEFAULT_EMAIL_SUBJECT = "Your Daily Listing Report: 9121 Blackhawk Rd"

# env var -> config key
ENV_OVERRIDES = {
    "GOOGLE_SHEET_ID": "spreadsheet_id",
    "GOOGLE_SHEET_RANGE": "range",
    "YAHOO_USERNAME": "yahoo_username",
    "YAHOO_APP_PASSWORD": "yahoo_app_password",
    "GOOGLE_SERVICE_ACCOUNT_JSON_PATH": "google_service_account_path",
    "ZILLOW_EMAIL_SUBJECT": "email_subject",
}

KNOWN_KEYS = {
    "spreadsheet_id", "range", "yahoo_username", "yahoo_app_password",
    "email_subject", "fallback_date", "imap_host", "imap_port", "mailbox",
    "google_credentials_path", "google_token_path",
    "google_service_account_path", "csv_path", "extra_patterns", "log_dir",
}

EXAMPLE_CONFIG = """{
  "spreadsheet_id": "your-google-sheet-id",
  "range": "Sheet1!A:Z",
  "yahoo_username": "your-email@yahoo.com",
  "yahoo_app_password": "your-yahoo-app-password"
}"""


@dataclass
class SyncConfig:
    sheet_range: str
    yahoo_username: str
    yahoo_app_password: str
    spreadsheet_id: str = ""
    csv_path: str = ""
    email_subject: str = DEFAULT_EMAIL_SUBJECT
    fallback_date: date = FALLBACK_WATERMARK
    imap_host: str = YAHOO_IMAP_HOST
    imap_port: int = YAHOO_IMAP_PORT
    mailbox: str = "INBOX"
    google_credentials_path: str = "google-credentials.json"
    google_token_path: str = "google-token.json"
    google_service_account_path: str = ""
    extra_patterns: list = field(default_factory=list)
    log_dir: str = os.path.join("logs", "runs")

    @property
    def uses_sheets(self) -> bool:
        return bool(self.spreadsheet_id)


def _read_file(path):
    if not os.path.isfile(path):
        raise ConfigError(f"Config file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {path} is not valid JSON/YAML: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Unable to read config file {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return data


def _as_str(data, key, default=""):
    value = data.get(key)
    if value is None:
        return default
    return str(value).strip()


def load_config(path=None, env=None):
    """Build a validated SyncConfig from *path* plus *env* overrides."""
    if env is None:
        env = os.environ

    data = _read_file(path) if path else {}
    unknown = sorted(set(data) - KNOWN_KEYS)
    if unknown:
        log.warning("Ignoring unknown config keys: %s", unknown)

    for env_key, cfg_key in ENV_OVERRIDES.items():
        value = (env.get(env_key) or "").strip()
        if value:
            log.debug("Config %s overridden by %s", cfg_key, env_key)
            data[cfg_key] = value

    missing = [k for k in ("range", "yahoo_username", "yahoo_app_password")
               if not _as_str(data, k)]
    if not _as_str(data, "spreadsheet_id") and not _as_str(data, "csv_path"):
        missing.append("spreadsheet_id (or csv_path)")
    if missing:
        raise ConfigError(f"Missing required config values: {', '.join(missing)}",
                          {"config_path": path})

    try:
        imap_port = int(data.get("imap_port", YAHOO_IMAP_PORT))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"imap_port must be an integer, got {data.get('imap_port')!r}") from exc

    fallback_raw = data.get("fallback_date")
    if fallback_raw in (None, ""):
        fallback_date = FALLBACK_WATERMARK
    elif isinstance(fallback_raw, datetime):
        fallback_date = fallback_raw.date()   # YAML timestamp
    elif isinstance(fallback_raw, date):
        fallback_date = fallback_raw   # YAML parses bare dates itself
    else:
        try:
            fallback_date = date.fromisoformat(str(fallback_raw).strip())
        except ValueError as exc:
            raise ConfigError(f"fallback_date must be YYYY-MM-DD, got {fallback_raw!r}") from exc

    extra_patterns = data.get("extra_patterns") or []
    if isinstance(extra_patterns, str):
        extra_patterns = [extra_patterns]
    if not isinstance(extra_patterns, list) or not all(isinstance(p, str) for p in extra_patterns):
        raise ConfigError("extra_patterns must be a list of regex strings")

    return SyncConfig(
        sheet_range=_as_str(data, "range"),
        yahoo_username=_as_str(data, "yahoo_username"),
        yahoo_app_password=_as_str(data, "yahoo_app_password"),
        spreadsheet_id=_as_str(data, "spreadsheet_id"),
        csv_path=_as_str(data, "csv_path"),
        email_subject=_as_str(data, "email_subject", DEFAULT_EMAIL_SUBJECT),
        fallback_date=fallback_date,
        imap_host=_as_str(data, "imap_host", YAHOO_IMAP_HOST),
        imap_port=imap_port,
        mailbox=_as_str(data, "mailbox", "INBOX"),
        google_credentials_path=_as_str(data, "google_credentials_path", "google-credentials.json"),
        google_token_path=_as_str(data, "google_token_path", "google-token.json"),
        google_service_account_path=_as_str(data, "google_service_account_path"),
        extra_patterns=extra_patterns,
        log_dir=_as_str(data, "log_dir", os.path.join("logs", "runs")),
    )
