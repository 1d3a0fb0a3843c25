#!/usr/bin/env python3
"""Liveness check: connect with DB_* settings (or flags) and run SELECT 1."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from dotenv import load_dotenv

from dbkit.config import configure_logging, get_settings, parse_options
from dbkit.db import connect
from dbkit.errors import DatabaseError


def main() -> int:
    load_dotenv()
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Check that a database answers SELECT 1")
    parser.add_argument("--host", default=settings.DB_HOST)
    parser.add_argument("--database", default=settings.DB_NAME)
    parser.add_argument("--user", default=settings.DB_USER)
    parser.add_argument("--driver", default=settings.DB_DRIVER)
    parser.add_argument("--options", default=settings.DB_OPTIONS, help="key=value;key=value")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)
    args = parser.parse_args()

    configure_logging(args.log_level)

    try:
        db = connect(
            args.host,
            args.database,
            args.user,
            settings.DB_PASSWORD.get_secret_value(),
            driver_name=args.driver,
            extra_options=parse_options(args.options),
        )
    except (DatabaseError, ValueError) as e:
        print(f"Connection failed: {e}")
        return 1

    with db:
        alive = db.is_alive()
    print(f"{db.url}: {'alive' if alive else 'NOT alive'}")
    return 0 if alive else 1


if __name__ == "__main__":
    sys.exit(main())
