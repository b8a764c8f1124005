"""Energy modes: trade detection richness for CPU/battery."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

logger = logging.getLogger("gesture_control.energy")


class EnergyMode(Enum):
    HIGH_PERFORMANCE = "high_performance"
    BALANCED = "balanced"
    ENERGY_SAVER = "energy_saver"

    @classmethod
    def parse(cls, value: str) -> EnergyMode:
        """Parse a mode name; unknown names fall back to balanced."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning("Unknown energy mode '%s', using balanced", value)
            return cls.BALANCED


class EnergyModeController:
    """Decides which detector tiers run.

    Advanced (landmark geometry) detectors only run in high-performance mode
    unless explicitly overridden. Energy-saver additionally suggests a
    ``frame_stride`` the capture side may use to thin its sampling rate.
    Changes apply from the next processed frame.
    """

    def __init__(self, mode: EnergyMode = EnergyMode.BALANCED):
        self._mode = mode
        self._advanced_override: Optional[bool] = None

    @property
    def mode(self) -> EnergyMode:
        return self._mode

    def set_mode(self, mode: EnergyMode):
        if mode != self._mode:
            logger.info("Energy mode: %s → %s", self._mode.value, mode.value)
        self._mode = mode
        self._advanced_override = None

    def cycle(self) -> EnergyMode:
        """Toggle between high-performance and balanced."""
        if self.advanced_patterns:
            self.set_mode(EnergyMode.BALANCED)
        else:
            self.set_mode(EnergyMode.HIGH_PERFORMANCE)
        return self._mode

    @property
    def advanced_patterns(self) -> bool:
        if self._advanced_override is not None:
            return self._advanced_override
        return self._mode == EnergyMode.HIGH_PERFORMANCE

    @advanced_patterns.setter
    def advanced_patterns(self, enabled: bool):
        self._advanced_override = bool(enabled)
        logger.info("Advanced patterns: %s", "enabled" if enabled else "disabled")

    @property
    def frame_stride(self) -> int:
        return 2 if self._mode == EnergyMode.ENERGY_SAVER else 1
