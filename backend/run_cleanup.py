"""
Duplicate account cleanup for the identity and profile databases.

Merges identities that share an email into one canonical identity, deleting
the surplus profiles, their assignments and the surplus identities.

Usage:
    python run_cleanup.py --dry-run
    python run_cleanup.py
    python run_cleanup.py --log-level DEBUG --json-logs
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from cleanup import (
    CleanupCoordinator,
    CleanupError,
    CleanupResult,
    CommitError,
    ConfigurationError,
    LoggingAuditSink,
)
from config import Settings, get_settings
from database.connection import StoreAccessor
from logging_config import get_logger, set_run_context, setup_logging
from sentry_integration import capture_exception, init_sentry, set_tag

ROOT_DIR = Path(__file__).parent

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Merge duplicate identities across the identity and profile databases"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run every step, then roll back both databases instead of committing"
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    parser.add_argument("--json-logs", action="store_true", help="Structured JSON console output")
    parser.add_argument("--no-audit-file", action="store_true", help="Do not write cleanup_log_<timestamp>.txt")
    return parser


def build_coordinator(settings: Settings, dry_run: bool = False) -> CleanupCoordinator:
    """Wire both store accessors into a coordinator."""
    identity_descriptor, profile_descriptor = settings.get_connection_descriptors()
    return CleanupCoordinator(
        identity_store=StoreAccessor(identity_descriptor),
        profile_store=StoreAccessor(profile_descriptor),
        audit=LoggingAuditSink(),
        dry_run=dry_run,
    )


async def run(settings: Settings, dry_run: bool = False) -> CleanupResult:
    coordinator = build_coordinator(settings, dry_run=dry_run)
    set_run_context(coordinator.run_id)
    set_tag("cleanup_run_id", coordinator.run_id)
    return await coordinator.run()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    load_dotenv(ROOT_DIR / ".env")
    settings = get_settings()

    audit_path = setup_logging(
        level=args.log_level or settings.LOG_LEVEL,
        json_format=args.json_logs or settings.LOG_JSON,
        audit_dir=None if args.no_audit_file or not settings.AUDIT_LOG_ENABLED else settings.LOG_DIR,
    )
    init_sentry(settings.SENTRY_DSN, environment=settings.ENVIRONMENT)

    try:
        result = asyncio.run(run(settings, dry_run=args.dry_run))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG
    except CommitError as e:
        # Partial commit: the stores may disagree until someone looks at them
        logger.critical(f"Cleanup commit failed, manual review required: {e}")
        capture_exception(e, committed_stores=e.committed_stores, store=e.store)
        return EXIT_FAILED
    except CleanupError as e:
        logger.error(f"Cleanup failed: {e}", exc_info=True)
        capture_exception(e)
        return EXIT_FAILED
    finally:
        if audit_path is not None:
            print(f"Log saved to: {audit_path}")

    logger.debug("Cleanup result", extra={"result": result.to_dict()})
    if not result.totals.has_deletions:
        logger.info("No records needed removal")
    elif result.dry_run:
        logger.info("Dry run finished; no changes were committed")
    return EXIT_OK


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
