from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .drawing import (  # noqa: F401
    Drawing,
    Participant,
    STATUS_OPEN,
    STATUS_FINISHED,
    STATUS_CANCELLED,
    RULE_RANDOM,
    RULE_FIXED_POSITION,
    BACKUP_PROCEED,
    BACKUP_CANCEL,
)

__all__ = [
    "Base",
    "Drawing",
    "Participant",
    "STATUS_OPEN",
    "STATUS_FINISHED",
    "STATUS_CANCELLED",
    "RULE_RANDOM",
    "RULE_FIXED_POSITION",
    "BACKUP_PROCEED",
    "BACKUP_CANCEL",
]
