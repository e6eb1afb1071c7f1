"""
BaseService -- common base for services that write through a Session.

Responsibility:
    Holds the caller's SQLAlchemy ``Session``.  Subclasses persist with
    ``session.flush()`` and never commit or roll back: the caller (normally
    ``session_scope()``) owns the transaction, so a multi-step operation such
    as "record real yield + update template" lands as one unit or not at all.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from yield_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
    """

    def __init__(self, session: Session):
        self.session = session
