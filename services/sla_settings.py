"""
Process-wide SLA configuration holder.

The active `SlaConfig` is swapped by reference; readers take the current value
once per request and pass it explicitly into every due-date computation.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from domain.sla import DEFAULT_SLA_CONFIG, SlaConfig

logger = logging.getLogger(__name__)


class SlaSettings:
    def __init__(self, config: SlaConfig = DEFAULT_SLA_CONFIG):
        self._config = config

    @property
    def current(self) -> SlaConfig:
        return self._config

    def replace(self, data: Mapping[str, Any]) -> SlaConfig:
        """Validate and install a new configuration. Raises ValidationError."""

        config = SlaConfig.from_mapping(data)
        self._config = config
        logger.info("SLA configuration updated", extra={"sla_config": config.to_mapping()})
        return config


__all__ = ["SlaSettings"]
