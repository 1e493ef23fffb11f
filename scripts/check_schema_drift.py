from __future__ import annotations

import argparse
import sys
from typing import Optional

from alembic.autogenerate import api as ag_api
from alembic.runtime.migration import MigrationContext

from gatedraw.db.engine import make_engine
from gatedraw.db.metadata import include_drawing_object
from gatedraw.models import Base


def _print_ops(ops, indent: int = 0) -> None:
    prefix = "  " * indent
    for op in ops:
        print(f"{prefix}- {op}")
        sub_ops = getattr(op, "ops", None)
        if sub_ops:
            _print_ops(sub_ops, indent + 1)


def check(database_url: Optional[str] = None) -> int:
    """Compare the drawing models with the live schema.

    Tables owned by a host application are ignored. Returns ``0`` when the
    schemas match, ``1`` on drift and ``2`` when the check itself failed.
    """
    engine = make_engine(database_url)
    url_display = engine.url.render_as_string(hide_password=True)
    try:
        with engine.connect() as connection:
            context = MigrationContext.configure(
                connection=connection,
                opts={
                    "compare_type": True,
                    "compare_server_default": True,
                    "include_object": include_drawing_object,
                    "render_as_batch": connection.dialect.name == "sqlite",
                },
            )
            upgrade_ops = ag_api.produce_migrations(context, Base.metadata).upgrade_ops
    except Exception as exc:
        print(f"Schema drift check: ERROR for {url_display}: {exc}", file=sys.stderr)
        return 2
    finally:
        engine.dispose()

    if upgrade_ops is None:
        print(f"Schema drift check: ERROR for {url_display}: missing upgrade ops.")
        return 2
    if upgrade_ops.is_empty():
        print(f"Schema drift check: OK for {url_display}.")
        return 0
    print(f"Schema drift check: drawing tables differ from the models on {url_display}:")
    _print_ops(upgrade_ops.ops or [])
    return 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Detect drift in the drawing tables.")
    parser.add_argument("--url", help="database URL (defaults to DB_URL)")
    args = parser.parse_args()
    return check(args.url)


if __name__ == "__main__":
    raise SystemExit(main())
