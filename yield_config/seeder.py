"""
Write a ShopConfiguration's catalog into the database.

Seeding is idempotent: rows are matched by natural key (category name,
range label, cut name, template pairing) and only missing ones are
created.  Existing templates are never overwritten, so learned
percentages survive a re-seed.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from yield_config.schema import ShopConfiguration
from yield_kernel.domain.values import ZERO
from yield_kernel.logging_config import get_logger
from yield_kernel.models.catalog import AnimalCategory, Cut, WeightRange
from yield_kernel.models.inventory import CutInventory
from yield_kernel.models.yield_template import YieldTemplate
from yield_services.catalog_service import CatalogService
from yield_services.template_store import YieldTemplateStore

logger = get_logger("config.seeder")


@dataclass
class SeedReport:
    categories: int = 0
    weight_ranges: int = 0
    cuts: int = 0
    templates: int = 0
    inventory_rows: int = 0

    @property
    def created(self) -> int:
        return (
            self.categories
            + self.weight_ranges
            + self.cuts
            + self.templates
            + self.inventory_rows
        )


def seed_catalog(session: Session, config: ShopConfiguration) -> SeedReport:
    """Create whatever part of ``config``'s catalog is missing."""
    catalog = CatalogService(session)
    store = YieldTemplateStore(session, config.settings)
    report = SeedReport()

    categories: dict[str, AnimalCategory] = {}
    for cdef in config.categories:
        category = catalog.get_category_by_name(cdef.name)
        if category is None:
            category = catalog.create_category(cdef.name, cdef.description)
            if not cdef.is_active:
                catalog.set_category_active(category.id, False)
            report.categories += 1
        categories[cdef.name] = category

    ranges: dict[str, WeightRange] = {}
    for rdef in config.weight_ranges:
        row = session.execute(
            select(WeightRange).where(WeightRange.label == rdef.label)
        ).scalars().first()
        if row is None:
            row = catalog.create_weight_range(rdef.min_weight, rdef.max_weight, rdef.label)
            report.weight_ranges += 1
        ranges[rdef.label] = row

    cuts: dict[str, Cut] = {}
    for cut_def in config.cuts:
        cut = session.execute(select(Cut).where(Cut.name == cut_def.name)).scalar_one_or_none()
        if cut is None:
            cut = catalog.create_cut(
                name=cut_def.name,
                cut_category=cut_def.cut_category,
                cut_role=cut_def.cut_role,
                is_sellable=cut_def.is_sellable,
                display_order=cut_def.display_order,
                description=cut_def.description,
            )
            report.cuts += 1
        cuts[cut_def.name] = cut

        inventory = session.execute(
            select(CutInventory).where(CutInventory.cut_id == cut.id)
        ).scalar_one_or_none()
        if inventory is None:
            session.add(
                CutInventory(
                    cut_id=cut.id,
                    current_qty=ZERO,
                    min_stock_alert=cut_def.min_stock_alert,
                )
            )
            report.inventory_rows += 1

    for tdef in config.templates:
        category = categories[tdef.category]
        weight_range = ranges[tdef.weight_range]
        existing = session.execute(
            select(YieldTemplate).where(
                YieldTemplate.category_id == category.id,
                YieldTemplate.range_id == weight_range.id,
            )
        ).scalar_one_or_none()
        if existing is not None:
            logger.info(
                "seed_template_kept",
                extra={"template_id": str(existing.id), "version": existing.version},
            )
            continue
        store.create_template(
            category_id=category.id,
            range_id=weight_range.id,
            items=[(cuts[item.cut].id, item.percentage) for item in tdef.items],
            name=tdef.name,
            status=tdef.status,
            reference_weight=tdef.reference_weight,
            notes=tdef.notes,
        )
        report.templates += 1

    session.flush()
    logger.info(
        "catalog_seeded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "categories": report.categories,
            "weight_ranges": report.weight_ranges,
            "cuts": report.cuts,
            "templates": report.templates,
            "inventory_rows": report.inventory_rows,
        },
    )
    return report
