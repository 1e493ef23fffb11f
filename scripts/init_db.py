from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from gatedraw.db.engine import get_sessionmaker, make_engine
from gatedraw.models import Base
from gatedraw.workflows import get_aggregate_counts


def upgrade_db(target_revision: str = "head") -> None:
    """Apply the drawing migrations up to ``target_revision``."""
    project_root = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    command.upgrade(alembic_cfg, target_revision)


def report(database_url: Optional[str] = None) -> None:
    """Print which drawing tables exist and how many drawings are in each status."""
    engine = make_engine(database_url)
    present = set(inspect(engine).get_table_names())
    expected = sorted(Base.metadata.tables)
    missing = [name for name in expected if name not in present]
    print("Drawing tables:", ", ".join(name for name in expected if name in present) or "-")
    if missing:
        print("Missing tables:", ", ".join(missing))
        return

    Session = get_sessionmaker(engine)
    with Session() as session:
        counts = get_aggregate_counts(session)
    print(
        "Drawings: {open} open, {finished} finished, {cancelled} cancelled "
        "({total} total)".format(**counts)
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Migrate the drawing tables.")
    parser.add_argument("revision", nargs="?", default="head")
    parser.add_argument(
        "--report-only", action="store_true", help="skip migrations, only report"
    )
    args = parser.parse_args()

    if not args.report_only:
        upgrade_db(args.revision)
    report()


if __name__ == "__main__":
    main()
