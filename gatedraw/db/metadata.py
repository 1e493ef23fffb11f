from sqlalchemy import MetaData

# Deterministic constraint names keep Alembic autogenerate stable across dialects.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata_obj = MetaData(naming_convention=NAMING_CONVENTION)

# Alembic bookkeeping table, kept apart from a host application's own.
VERSION_TABLE = "gatedraw_alembic_version"


def include_drawing_object(obj, name, type_, reflected, compare_to) -> bool:
    """Alembic ``include_object`` hook restricting migrations to gatedraw tables.

    Reflected tables (and their columns, indexes and constraints) that are not
    in :data:`metadata_obj` belong to the host application and are ignored.
    Models must be imported before the hook runs.
    """
    if type_ == "table":
        return name in metadata_obj.tables
    table = getattr(obj, "table", None)
    if table is not None:
        return table.name in metadata_obj.tables
    return True
