#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from sqlalchemy import inspect  # noqa: E402
from sqlalchemy.exc import SQLAlchemyError  # noqa: E402

from kirana_store.core.database import Base, engine  # noqa: E402
import kirana_store.models  # noqa: E402,F401


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Lists database tables and reports missing ones.")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 1 when a model table is missing",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    try:
        found = sorted(inspect(engine).get_table_names())
    except SQLAlchemyError as exc:
        print(f"Database check failed: {exc}")
        return 1

    expected = set(Base.metadata.tables)
    missing = sorted(expected - set(found))

    print(f"Found tables: {', '.join(found) if found else '<none>'}")
    if missing:
        print(f"Missing tables: {', '.join(missing)} (run: alembic upgrade head)")
        return 1 if args.strict else 0

    print("All model tables present.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
