"""
Value objects shared by the sizing, validation, optimization and cost-report
pipelines.

Everything here is computed fresh from request parameters and reference
tables; nothing holds back-references or is persisted by the engine.
"""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from cable_engine.errors import InvalidInput


def _plain(value: Any) -> Any:
    """Convert Decimals and Enums for JSON-friendly dicts."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


# -------------------------------------------------------------------
# Enumerations
# -------------------------------------------------------------------
class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class Material(str, Enum):
    COPPER = "copper"
    ALUMINIUM = "aluminium"

    @classmethod
    def parse(cls, value: Any) -> "Material":
        """Accept enum members and schedule text such as "Cu/PVC" or "Aluminium"."""
        if isinstance(value, Material):
            return value
        text = str(value or "").strip().lower()
        tokens = [t for t in re.split(r"[^a-z]+", text) if t]
        for token in tokens:
            if token in ("cu", "copper"):
                return cls.COPPER
            if token in ("al", "alu", "aluminium", "aluminum"):
                return cls.ALUMINIUM
        raise InvalidInput(f"Unknown conductor material: {value!r}", field="material")


class InstallationMethod(str, Enum):
    AIR = "air"
    DUCTS = "ducts"
    GROUND = "ground"

    @classmethod
    def parse(cls, value: Any) -> "InstallationMethod":
        if isinstance(value, InstallationMethod):
            return value
        text = str(value or "").strip().lower()
        aliases = {
            "air": cls.AIR,
            "open air": cls.AIR,
            "free air": cls.AIR,
            "tray": cls.AIR,
            "ducts": cls.DUCTS,
            "duct": cls.DUCTS,
            "ducted": cls.DUCTS,
            "conduit": cls.DUCTS,
            "ground": cls.GROUND,
            "buried": cls.GROUND,
            "direct buried": cls.GROUND,
            "underground": cls.GROUND,
        }
        if text in aliases:
            return aliases[text]
        raise InvalidInput(f"Unknown installation method: {value!r}", field="installation_method")


# -------------------------------------------------------------------
# Reference data
# -------------------------------------------------------------------
@dataclass(frozen=True)
class CableRatingRow:
    """One cable size of a material table (SANS 1507-3 figures)."""
    size: str
    cross_section_mm2: float
    rating_ground: float  # A
    rating_ducts: float  # A
    rating_air: float  # A
    impedance: float  # Ω/km at 20°C
    volt_drop_3ph: float  # mV/A/m
    volt_drop_1ph: float  # mV/A/m
    d1_3c: float  # mm
    d1_4c: float
    d_3c: float
    d_4c: float
    d2_3c: float
    d2_4c: float
    mass_3c: float  # kg/km
    mass_4c: float
    supply_cost: Decimal  # per metre
    install_cost: Decimal  # per metre

    def rating_for(self, method: InstallationMethod) -> float:
        method = InstallationMethod.parse(method)
        if method is InstallationMethod.AIR:
            return self.rating_air
        if method is InstallationMethod.GROUND:
            return self.rating_ground
        return self.rating_ducts

    def volt_drop_factor(self, three_phase: bool) -> float:
        return self.volt_drop_3ph if three_phase else self.volt_drop_1ph

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))


# -------------------------------------------------------------------
# Sizing
# -------------------------------------------------------------------
@dataclass
class CalculationRequest:
    """Inputs for a single cable run."""
    load_amps: float
    voltage: float
    length_m: Optional[float] = None
    material: Material = Material.COPPER
    installation_method: InstallationMethod = InstallationMethod.AIR
    derating_factor: float = 1.0
    safety_margin: Optional[float] = None
    max_amps_per_cable: float = 400.0
    preferred_amps_per_cable: float = 300.0
    voltage_drop_limit: Optional[float] = None
    termination_cost_per_end: Optional[Decimal] = None
    cable_type: Optional[str] = None

    def __post_init__(self):
        self.material = Material.parse(self.material)
        self.installation_method = InstallationMethod.parse(self.installation_method)

    @property
    def effective_margin(self) -> float:
        return self.safety_margin if self.safety_margin is not None else 1.0


@dataclass
class ValidationWarning:
    severity: Severity
    message: str
    field: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"severity": self.severity.value, "message": self.message, "field": self.field}


@dataclass
class ValidationReport:
    warnings: List[ValidationWarning] = field(default_factory=list)
    requires_verification: bool = False

    @property
    def errors(self) -> List[ValidationWarning]:
        return [w for w in self.warnings if w.severity == Severity.ERROR]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def errors_for(self, *fields: str) -> List[ValidationWarning]:
        return [w for w in self.errors if w.field in fields]


@dataclass
class CostBreakdown:
    supply: Decimal = Decimal("0.00")
    install: Decimal = Decimal("0.00")
    termination: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))


@dataclass
class CableAlternative:
    size: str
    parallel_count: int
    load_per_cable: Decimal
    volt_drop_percentage: Decimal
    supply_cost: Decimal
    install_cost: Decimal
    termination_cost: Decimal
    total_cost: Decimal
    savings: Decimal = Decimal("0.00")
    is_recommended: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))


@dataclass
class CalculationResult:
    """Selector output for one cable run."""
    recommended_size: str
    parallel_count: int
    ohm_per_km: float
    effective_impedance: Decimal
    volt_drop: Decimal
    volt_drop_percentage: Decimal
    supply_cost: Decimal
    install_cost: Decimal
    termination_cost: Decimal
    total_cost: Decimal
    load_per_cable: Decimal
    voltage_drop_limit: Decimal
    capacity_sufficient: bool = True
    requires_engineer_verification: bool = False
    warnings: List[ValidationWarning] = field(default_factory=list)
    alternatives: List[CableAlternative] = field(default_factory=list)
    cost_savings: Decimal = Decimal("0.00")

    def to_dict(self) -> Dict[str, Any]:
        data = _plain(asdict(self))
        data["warnings"] = [w.to_dict() for w in self.warnings]
        return data


# -------------------------------------------------------------------
# Optimization
# -------------------------------------------------------------------
@dataclass
class CableScheduleEntry:
    """One row of a project cable schedule, as supplied by persistence."""
    id: str
    cable_tag: str
    from_location: str = ""
    to_location: str = ""
    voltage: Optional[float] = None
    load_amps: Optional[float] = None
    cable_size: Optional[str] = None
    cable_type: Optional[str] = None
    total_length: Optional[float] = None
    base_cable_tag: Optional[str] = None
    parallel_group_id: Optional[str] = None
    parallel_total_count: Optional[int] = None
    grouping_factor: Optional[float] = None
    installation_method: Optional[str] = None
    protection_device_rating: Optional[float] = None

    @property
    def group_key(self) -> str:
        return self.parallel_group_id or self.base_cable_tag or self.cable_tag


@dataclass
class CableRate:
    cable_size: str
    cable_type: str
    supply_rate_per_meter: Decimal
    install_rate_per_meter: Decimal
    termination_cost_per_end: Decimal = Decimal("0")


@dataclass
class ConfigurationOption:
    size: str
    parallel_count: int
    cost: CostBreakdown
    savings: Decimal
    savings_percent: Decimal
    volt_drop_percentage: Decimal
    is_current_config: bool = False
    compliance_report: Optional[str] = None

    @property
    def total_cost(self) -> Decimal:
        return self.cost.total

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))


@dataclass
class CurrentConfiguration:
    size: str
    parallel_count: int
    cost: CostBreakdown
    voltage: float
    load_amps: float


@dataclass
class OptimizationResult:
    cable_id: str
    cable_tag: str
    from_location: str
    to_location: str
    total_length: float
    current: CurrentConfiguration
    alternatives: List[ConfigurationOption] = field(default_factory=list)
    compliance_notes: str = ""

    @property
    def best_alternative(self) -> Optional[ConfigurationOption]:
        return self.alternatives[0] if self.alternatives else None

    @property
    def max_savings(self) -> Decimal:
        best = self.best_alternative
        if best is None or best.savings < 0:
            return Decimal("0.00")
        return best.savings

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))


# -------------------------------------------------------------------
# Cost reports
# -------------------------------------------------------------------
@dataclass
class CostCategory:
    id: str
    code: str
    description: str = ""


@dataclass
class CostLineItem:
    category_id: str
    original_budget: Decimal = Decimal("0")
    previous_report: Decimal = Decimal("0")
    anticipated_final: Decimal = Decimal("0")
    code: str = ""
    description: str = ""


@dataclass
class CostVariation:
    id: str
    amount: Decimal
    code: str = ""
    description: str = ""
    is_credit: bool = False
    category_id: Optional[str] = None


@dataclass
class CategoryTotal:
    category_id: Optional[str]
    code: str
    description: str
    original_budget: Decimal
    previous_report: Decimal
    anticipated_final: Decimal
    current_variance: Decimal
    original_variance: Decimal
    percentage_of_total: Decimal = Decimal("0.00")

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))


@dataclass
class GrandTotals:
    original_budget: Decimal
    previous_report: Decimal
    anticipated_final: Decimal
    current_variance: Decimal
    original_variance: Decimal
    percentage_of_total: Decimal = Decimal("0.00")

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))


@dataclass
class TotalsComparison:
    matches: bool
    mismatched_fields: List[str] = field(default_factory=list)
    differences: Dict[str, Decimal] = field(default_factory=dict)
