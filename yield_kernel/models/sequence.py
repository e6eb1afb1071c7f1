"""
Module: yield_kernel.models.sequence
Responsibility: Named counter rows backing SequenceService.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - name is unique; current_value only ever grows, under a row lock.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from yield_kernel.db.base import Base


class SequenceCounter(Base):
    """One named, monotonically increasing counter."""

    __tablename__ = "sequence_counters"

    # e.g. "real_yield", "general_stock"
    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
