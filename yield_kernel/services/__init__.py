"""Kernel services: flush-only base class and sequence allocation."""

from yield_kernel.services.base import BaseService
from yield_kernel.services.sequence_service import SequenceService

__all__ = ["BaseService", "SequenceService"]
