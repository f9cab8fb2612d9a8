"""
Command line entry point: ``hunt <command>``.
"""
import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime

from .config import AppConfig, ConfigError, load_config
from .email_report import compose_digest, send_digest
from .export import export_new_since_run, records_frame, save_output_rows
from .pipeline import build_report, compare_latest, process_batch
from .store import LockHeldError, RecordStore, ReportArchive, RunLock
from .summarize import LLMError, generate_summary, load_prompt_config
from .utils import init_logger, now_utc, parse_iso

logger = logging.getLogger("tracker")


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Classic Hunt: track avto.net listings, reports and new-listing diffs")
    ap.add_argument("--config", default=None, help="Path to config.json (default from env HUNT_CONFIG)")
    # Logging
    lvl_choices = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    ap.add_argument("--log-level", choices=lvl_choices, default=None,
                    help="Global log level for both console and file (overrides --log-console/--log-file).")
    ap.add_argument("--log-console", choices=lvl_choices, default=os.getenv("LOG_CONSOLE", "INFO"),
                    help="Console log level (default from env LOG_CONSOLE or INFO).")
    ap.add_argument("--log-file", choices=lvl_choices, default=os.getenv("LOG_FILE", "DEBUG"),
                    help="File log level (default from env LOG_FILE or DEBUG).")
    ap.add_argument("--log-file-path", default=os.getenv("LOG_FILE_PATH", "hunt.log"),
                    help="Path to log file (default from env LOG_FILE_PATH or hunt.log).")
    ap.add_argument("--no-file-log", action="store_true",
                    help="Disable file logging (only console output).")

    sub = ap.add_subparsers(dest="command", required=True)

    def add_browser_args(p):
        p.add_argument("--headless", action="store_true", help="Run without UI")
        p.add_argument("--profile-dir", default=".chrome-profile", help="Persistent browser profile directory")
        p.add_argument("--cdp-url", default=None, help="Attach to a running Chrome, e.g. http://127.0.0.1:9222")

    p = sub.add_parser("scrape", help="Scrape, update state, write a report and diff it")
    add_browser_args(p)
    sub.add_parser("report", help="Write a report from the stored state only")
    sub.add_parser("diff", help="Diff the two newest reports")
    sub.add_parser("summarize", help="Write the LLM summary and picks")
    sub.add_parser("email", help="Send the e-mail digest")
    p = sub.add_parser("export", help="Export stored records to CSV/XLSX")
    p.add_argument("--out", default="hunt_export.csv", help="CSV/XLSX path")
    p.add_argument("--since", default=None, help="Only records first seen at/after this ISO time")
    p = sub.add_parser("run", help="Scrape + summarize + e-mail when configured")
    add_browser_args(p)

    return ap.parse_args(argv)


def _scrape_and_report(cfg: AppConfig, args) -> None:
    from .core import run_scrape

    store = RecordStore(cfg.output_dir)
    archive = ReportArchive(cfg.reports_dir)
    searches = cfg.enabled_searches()
    logger.info(">>> Scraping %d/%d enabled models", len(searches), len(cfg.cars))

    with RunLock(cfg.lock_path):
        asyncio.run(run_scrape(
            searches,
            on_batch=lambda search, batch, observed_at: process_batch(store, search.key, batch, observed_at),
            headless=args.headless,
            profile_dir=args.profile_dir,
            cdp_url=args.cdp_url,
        ))
        build_report(store, archive, cfg.enabled_keys(), now_utc())
        compare_latest(archive)


def _report(cfg: AppConfig) -> None:
    with RunLock(cfg.lock_path):
        build_report(RecordStore(cfg.output_dir), ReportArchive(cfg.reports_dir), cfg.enabled_keys(), now_utc())


def _summarize(cfg: AppConfig) -> None:
    paths = generate_summary(ReportArchive(cfg.reports_dir), load_prompt_config(cfg.prompt_config_path))
    logger.info(">>> Summary: %s, picks: %s", paths.summary or "skipped", paths.picks)


def _email(cfg: AppConfig) -> None:
    if cfg.email is None:
        logger.info(">>> Email not configured in config.json; skipping")
        return
    archive = ReportArchive(cfg.reports_dir)
    latest, _ = archive.latest_pair()
    digest = compose_digest(
        snapshot=latest.snapshot if latest else None,
        new_urls=archive.latest_diff_urls(),
        summary=archive.latest_note("summary"),
        picks=archive.latest_note("picks"),
        today=datetime.now(),
    )
    send_digest(cfg.email, digest)


def _export(cfg: AppConfig, args) -> None:
    sets = RecordStore(cfg.output_dir).load_many(cfg.enabled_keys()).values()
    if args.since:
        df = export_new_since_run(sets, parse_iso(args.since))
    else:
        df = records_frame(sets)
    save_output_rows(df, args.out)


def main(argv=None) -> int:
    args = parse_args(argv)
    eff_console = args.log_level or args.log_console
    eff_file = args.log_level or args.log_file
    init_logger(
        console_level=eff_console,
        file_level=eff_file,
        log_file=None if args.no_file_log else args.log_file_path
    )
    started = now_utc()
    logger.info(">>> %s started at %s", args.command, started.isoformat())

    try:
        cfg = load_config(args.config)
        if args.command == "scrape":
            _scrape_and_report(cfg, args)
        elif args.command == "report":
            _report(cfg)
        elif args.command == "diff":
            compare_latest(ReportArchive(cfg.reports_dir))
        elif args.command == "summarize":
            _summarize(cfg)
        elif args.command == "email":
            _email(cfg)
        elif args.command == "export":
            _export(cfg, args)
        elif args.command == "run":
            _scrape_and_report(cfg, args)
            try:
                _summarize(cfg)
            except (LLMError, FileNotFoundError, ValueError) as e:
                logger.warning(">>> LLM summary skipped: %s", e)
            _email(cfg)
    except (ConfigError, LockHeldError) as e:
        logger.error(">>> %s", e)
        return 1
    except Exception:
        logger.exception(">>> %s failed", args.command)
        return 1

    minutes = (now_utc() - started).total_seconds() / 60
    logger.info(">>> Done in %.1f minutes", minutes)
    return 0


if __name__ == "__main__":
    sys.exit(main())
