"""
yield_config -- single public entrypoint for shop configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains the
    configuration set: it loads ``sets/<name>.yaml``, validates it, and
    returns a frozen ``ShopConfiguration``.  Services receive only its
    ``EngineSettings``; the seeder writes its catalog to the database.

Invariants enforced:
    - A configuration with validation errors is never returned.
    - Same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- no such configuration set.
    - ``ValueError`` -- validation failed (every error listed).

Audit relevance:
    Every successful call emits ``YIELD_CONFIG_TRACE`` with the config id,
    version and checksum, tying learning and ledger activity back to the
    exact tuning in force.
"""

from __future__ import annotations

import logging
from pathlib import Path

from yield_config.loader import load_configuration
from yield_config.schema import EngineSettings, ShopConfiguration
from yield_config.validator import validate_configuration

_logger = logging.getLogger("yield_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
DEFAULT_CONFIG_NAME = "default"


def get_active_config(
    config_name: str = DEFAULT_CONFIG_NAME,
    config_dir: Path | None = None,
) -> ShopConfiguration:
    """
    Load, validate and return the named configuration set.

    Args:
        config_name: File stem under the sets directory.
        config_dir: Override of the sets directory (defaults to
            yield_config/sets/).
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{config_name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Configuration set not found: {path}")

    config = load_configuration(path)

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={"warning": warning})

    _logger.info(
        "YIELD_CONFIG_TRACE",
        extra={
            "trace_type": "YIELD_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "category_count": len(config.categories),
            "cut_count": len(config.cuts),
            "template_count": len(config.templates),
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_NAME",
    "EngineSettings",
    "ShopConfiguration",
    "get_active_config",
]
