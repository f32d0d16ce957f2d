"""Transaction boundaries for the auth use-cases.

Services open a :class:`SQLAlchemyUnitOfWork` to change principals, devices or
session nodes atomically, and a :class:`SQLAlchemyReadOnlyUnitOfWork` for
lookups such as listing sessions.
"""

from .base import UnitOfWork
from .sqlalchemy_uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork

__all__ = [
    "UnitOfWork",
    "SQLAlchemyUnitOfWork",
    "SQLAlchemyReadOnlyUnitOfWork",
]
