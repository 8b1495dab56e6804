"""
Per-project calculation settings.

Settings are passed explicitly into every pipeline call; the engine never
reads process-wide state or environment variables. Defaults come from the
SANS 10142-1 standards table.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

from cable_engine.errors import InvalidInput
from cable_engine.knowledge.sans_10142 import (
    PARALLEL_RUNS,
    SANS_10142_REQUIREMENTS,
    VOLTAGE_DROP,
    grouping_factor,
    is_three_phase,
)
from cable_engine.models import CalculationRequest, InstallationMethod, Material

logger = logging.getLogger(__name__)

_GROUPING = SANS_10142_REQUIREMENTS["grouping_factors"]


@dataclass
class CalculationSettings:
    voltage_drop_limit_400v: float = VOLTAGE_DROP["limit_percent_three_phase"]
    voltage_drop_limit_230v: float = VOLTAGE_DROP["limit_percent_single_phase"]
    voltage_drop_warning_buffer: float = VOLTAGE_DROP["warning_buffer_percent"]
    grouping_factor_2_circuits: float = _GROUPING[2]
    grouping_factor_3_circuits: float = _GROUPING[3]
    grouping_factor_4plus_circuits: float = _GROUPING[4]
    cable_safety_margin: float = SANS_10142_REQUIREMENTS["cable_safety_margin"]
    max_amps_per_cable: float = PARALLEL_RUNS["max_amps_per_cable"]
    preferred_amps_per_cable: float = PARALLEL_RUNS["preferred_amps_per_cable"]
    max_parallel_cables: int = PARALLEL_RUNS["max_parallel_cables_optimizer"]
    min_amps_per_cable: float = PARALLEL_RUNS["min_practical_amps_per_cable"]
    default_installation_method: InstallationMethod = InstallationMethod.AIR
    default_cable_material: Material = Material.COPPER

    def __post_init__(self):
        self.default_installation_method = InstallationMethod.parse(self.default_installation_method)
        self.default_cable_material = Material.parse(self.default_cable_material)
        if self.max_parallel_cables < 1:
            raise InvalidInput("max_parallel_cables must be at least 1", field="max_parallel_cables")

    @classmethod
    def from_mapping(cls, row: Optional[Mapping[str, Any]]) -> "CalculationSettings":
        """
        Build settings from a persistence-layer row.

        Values may be strings or numbers; blanks fall back to defaults and
        unknown keys are ignored.
        """
        if not row:
            return cls()

        kwargs: Dict[str, Any] = {}
        known = {f.name: f for f in fields(cls)}
        for key, value in row.items():
            f = known.get(key)
            if f is None:
                logger.debug("Ignoring unknown settings key: %s", key)
                continue
            if value is None or (isinstance(value, str) and not value.strip()):
                continue
            try:
                if key == "max_parallel_cables":
                    kwargs[key] = int(float(value))
                elif key in ("default_installation_method", "default_cable_material"):
                    kwargs[key] = value
                else:
                    kwargs[key] = float(value)
            except (TypeError, ValueError):
                raise InvalidInput(f"Invalid value for {key}: {value!r}", field=key) from None
        return cls(**kwargs)

    def voltage_drop_limit_for(self, voltage: float) -> float:
        if is_three_phase(voltage):
            return self.voltage_drop_limit_400v
        return self.voltage_drop_limit_230v

    def grouping_factors(self) -> Dict[int, float]:
        return {
            1: 1.0,
            2: self.grouping_factor_2_circuits,
            3: self.grouping_factor_3_circuits,
            4: self.grouping_factor_4plus_circuits,
        }

    def grouping_factor_for(self, parallel_count: int) -> float:
        return grouping_factor(parallel_count, self.grouping_factors())

    def request_for(
        self,
        load_amps: float,
        voltage: float,
        length_m: Optional[float] = None,
        material: Any = None,
        installation_method: Any = None,
        derating_factor: float = 1.0,
    ) -> CalculationRequest:
        """CalculationRequest carrying these settings' limits and margins."""
        return CalculationRequest(
            load_amps=load_amps,
            voltage=voltage,
            length_m=length_m,
            material=material or self.default_cable_material,
            installation_method=installation_method or self.default_installation_method,
            derating_factor=derating_factor,
            safety_margin=self.cable_safety_margin,
            max_amps_per_cable=self.max_amps_per_cable,
            preferred_amps_per_cable=self.preferred_amps_per_cable,
            voltage_drop_limit=self.voltage_drop_limit_for(voltage),
        )
