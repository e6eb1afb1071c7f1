"""ORM models for the yield kernel.  Importing this package registers every table."""

from yield_kernel.models.catalog import (
    AnimalCategory,
    Cut,
    CutCategory,
    CutRole,
    WeightRange,
)
from yield_kernel.models.general_stock import (
    DailyClose,
    GeneralStock,
    GeneralStockDeduction,
    GeneralStockStatus,
)
from yield_kernel.models.inventory import (
    AdjustmentReason,
    CutInventory,
    InventoryAdjustment,
    StockBatch,
    StockBatchProjection,
)
from yield_kernel.models.real_yield import RealYield, RealYieldItem
from yield_kernel.models.sequence import SequenceCounter
from yield_kernel.models.yield_template import (
    TemplateStatus,
    YieldTemplate,
    YieldTemplateItem,
)

__all__ = [
    "AnimalCategory",
    "WeightRange",
    "Cut",
    "CutRole",
    "CutCategory",
    "YieldTemplate",
    "YieldTemplateItem",
    "TemplateStatus",
    "RealYield",
    "RealYieldItem",
    "GeneralStock",
    "GeneralStockStatus",
    "DailyClose",
    "GeneralStockDeduction",
    "StockBatch",
    "StockBatchProjection",
    "CutInventory",
    "InventoryAdjustment",
    "AdjustmentReason",
    "SequenceCounter",
]
