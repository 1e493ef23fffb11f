from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import DeclarativeBase

from gatedraw.db.metadata import metadata_obj

# BigInteger ids, with an Integer variant so SQLite still autoincrements them.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    """Declarative base for the drawing tables.

    All tables share :data:`~gatedraw.db.metadata.metadata_obj`, which lets
    them live in a host application's database next to tables gatedraw does
    not manage.
    """

    metadata = metadata_obj
