"""
Module: yield_services
Responsibility:
    Stateful orchestration of the yield kernel: catalog reference data,
    templates, purchase projection, real-yield learning, the general stock
    ledger and the daily close.

Architecture position:
    Services -- may import yield_engines, yield_kernel and
    yield_config.schema.  Every service takes a Session and only flushes;
    the caller owns commit and rollback (see yield_kernel.db.session_scope).
"""

from yield_services.catalog_service import CatalogService
from yield_services.daily_close_service import (
    DailyCloseResult,
    DailyCloseService,
    total_scale_kg,
)
from yield_services.general_stock_ledger import (
    DeductionLine,
    DeductionResult,
    GeneralStockLedger,
)
from yield_services.learning_service import (
    CutChange,
    LearningReport,
    LearningService,
    RealYieldResult,
)
from yield_services.projection_service import ProjectionService, StockEstimate
from yield_services.stock_entry_service import PurchaseResult, StockEntryService
from yield_services.template_store import YieldTemplateStore

__all__ = [
    "CatalogService",
    "CutChange",
    "DailyCloseResult",
    "DailyCloseService",
    "DeductionLine",
    "DeductionResult",
    "GeneralStockLedger",
    "LearningReport",
    "LearningService",
    "ProjectionService",
    "PurchaseResult",
    "RealYieldResult",
    "StockEntryService",
    "StockEstimate",
    "YieldTemplateStore",
    "total_scale_kg",
]
