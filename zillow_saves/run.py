"""
Zillow saves sync – main entry point.

Pipeline:
  1) Load .env + config file, validate (no network yet)
  2) Set up the run log pack
  3) Build the table store (Google Sheets, or local CSV) and IMAP reader
  4) Run SavesSync: read table → watermark → fetch → sort → extract → append
  5) Print a console summary and flush the run log pack

Exit codes: 0 success, 1 fatal error, 2 batch aborted by an extraction gap.
"""

import argparse
import logging

from zillow_saves.config import EXAMPLE_CONFIG, load_config
from zillow_saves.errors import ConfigError, SyncError
from zillow_saves.google_auth import GoogleCredentialProvider
from zillow_saves.imap_reader import YahooImapReader
from zillow_saves.run_logger import RunLogger
from zillow_saves.saves_extractor import compile_patterns
from zillow_saves.sync import SavesSync
from zillow_saves.tables import CsvTable, GoogleSheetsTable
from zillow_saves.utils import load_env, safe_print

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_ABORTED = 2

EPILOG = f"""\
Example config.json:
{EXAMPLE_CONFIG}

Values may also come from the environment (or a .env file): GOOGLE_SHEET_ID,
GOOGLE_SHEET_RANGE, YAHOO_USERNAME, YAHOO_APP_PASSWORD,
GOOGLE_SERVICE_ACCOUNT_JSON_PATH, ZILLOW_EMAIL_SUBJECT.

IMPORTANT: You need a Yahoo App Password!
Get one at: https://login.yahoo.com/account/security
"""


def build_parser():
    parser = argparse.ArgumentParser(
        prog="zillow-saves",
        description="Append daily Zillow saves counts from Yahoo Mail reports to a Google Sheet.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("config", nargs="?", default=None,
                        help="Path to config file (JSON or YAML)")
    parser.add_argument("--dry-run", action="store_true",
                        help="Fetch and extract, but do not append to the table")
    parser.add_argument("--debug", action="store_true",
                        help="Show DEBUG output on the console")
    parser.add_argument("--log-dir", type=str, default=None,
                        help="Directory for run log packs (overrides config log_dir)")
    return parser


def build_table(config):
    if config.uses_sheets:
        provider = GoogleCredentialProvider(
            client_secrets_path=config.google_credentials_path,
            token_path=config.google_token_path,
            service_account_path=config.google_service_account_path or None,
        )
        log.info("Accessing Google Sheets...")
        return GoogleSheetsTable(config.spreadsheet_id, credentials=provider.acquire())
    log.info("No spreadsheet_id configured; using CSV table %s", config.csv_path)
    return CsvTable(config.csv_path)


def build_source(config):
    return YahooImapReader(
        config.yahoo_username,
        config.yahoo_app_password,
        host=config.imap_host,
        port=config.imap_port,
        mailbox=config.mailbox,
    )


def print_summary(run_logger, result):
    safe_print(f"\n{'='*60}")
    safe_print(f"  RUN COMPLETE: {run_logger.run_id}  status={result.status}")
    safe_print(f"{'='*60}")
    safe_print(f"  rows_read={result.rows_read}  watermark={result.watermark.isoformat()}  "
               f"emails={len(result.documents)}  skipped_subject={len(result.skipped_subjects)}  "
               f"appended={result.appended_count}  dry_run={result.dry_run}")
    if result.gap is not None:
        safe_print(f"  EXTRACTION GAP: id={result.gap.id} subject={result.gap.subject!r} "
                   f"date={result.gap.published_at.date().isoformat()}")
    safe_print(f"  Run log pack: {run_logger.run_dir}")
    safe_print(f"{'='*60}")


def main(argv=None, env=None, table_factory=build_table, source_factory=build_source):
    args = build_parser().parse_args(argv)

    if env is None:
        env = load_env()
    try:
        config = load_config(args.config, env=env)
        patterns = compile_patterns(config.extra_patterns)
    except ConfigError as exc:
        safe_print(f"Failed to load config: {exc}")
        return EXIT_FAILED

    run_logger = RunLogger(
        base_dir=args.log_dir or config.log_dir,
        console_level=logging.DEBUG if args.debug else logging.INFO,
    )
    log.info("=== Zillow saves sync - run %s ===", run_logger.run_id)
    log.info("Args: config=%s dry_run=%s table=%s subject=%r",
             args.config, args.dry_run,
             "sheets" if config.uses_sheets else "csv", config.email_subject)

    run_args = {"config": args.config, "dry_run": args.dry_run,
                "table": "sheets" if config.uses_sheets else "csv"}
    try:
        sync = SavesSync(
            table=table_factory(config),
            source=source_factory(config),
            range_spec=config.sheet_range,
            subject=config.email_subject,
            fallback_date=config.fallback_date,
            patterns=patterns,
            run_logger=run_logger,
            dry_run=args.dry_run,
        )
        result = sync.run()
    except SyncError as exc:
        log.error("Zillow saves sync failed: %s", exc)
        run_logger.record_error(exc)
        run_logger.flush(args=run_args)
        safe_print(f"\nERROR: {exc}")
        return EXIT_FAILED

    run_logger.flush(args=run_args)
    print_summary(run_logger, result)
    return EXIT_ABORTED if result.aborted else EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
