"""
Module: yield_engines
Responsibility:
    Re-exports the pure calculation engines: weight bracket resolution,
    template projection, EMA learning, FIFO depletion planning and the
    bulk bone/fat estimate.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import yield_kernel.domain, yield_kernel.exceptions and
    yield_kernel.logging_config only.  MUST NOT import yield_services.

Invariants enforced:
    - Engines never read the clock or the database; dates and reference
      data are passed in.
    - Decimal-only arithmetic.
    - Every public engine call is traced with ``@traced_engine``
      (YIELD_ENGINE_TRACE).
"""

from yield_engines.fifo import (
    BatchCapacity,
    FifoAllocation,
    FifoPlan,
    FifoPlanner,
    is_depleted,
)
from yield_engines.learning import (
    AdaptiveLearner,
    CutUpdate,
    LearningLine,
    LearningOutcome,
    learning_rate,
    normalize_to_hundred,
)
from yield_engines.projection import (
    CutProjection,
    ProjectionResult,
    TemplateLine,
    TemplateSnapshot,
    YieldProjector,
)
from yield_engines.range_resolver import (
    RangeGap,
    RangeSpec,
    RangeValidation,
    WeightRangeResolver,
    resolve_range,
    validate_ranges,
)
from yield_engines.tracer import traced_engine
from yield_engines.yield_estimate import (
    BulkYieldEstimator,
    RoleLine,
    YieldEstimate,
    sellable_kg,
)

__all__ = [
    "AdaptiveLearner",
    "BatchCapacity",
    "BulkYieldEstimator",
    "CutProjection",
    "CutUpdate",
    "FifoAllocation",
    "FifoPlan",
    "FifoPlanner",
    "LearningLine",
    "LearningOutcome",
    "ProjectionResult",
    "RangeGap",
    "RangeSpec",
    "RangeValidation",
    "RoleLine",
    "TemplateLine",
    "TemplateSnapshot",
    "WeightRangeResolver",
    "YieldEstimate",
    "YieldProjector",
    "is_depleted",
    "learning_rate",
    "normalize_to_hundred",
    "resolve_range",
    "sellable_kg",
    "traced_engine",
    "validate_ranges",
]
