"""
SIFIS-Home Hazard Taxonomy

Hazards describe the risks an operation may cause when executed on a
device. The set is closed: adding a hazard is a protocol change.

Every hazard belongs to one category:
- SAFETY    : physical harm to people or property
- PRIVACY   : information about the household may leak
- FINANCIAL : the action costs money (energy, water, ...)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class HazardCategory(Enum):
    """Hazard categories."""
    SAFETY = "Safety"
    PRIVACY = "Privacy"
    FINANCIAL = "Financial"


@dataclass(frozen=True)
class HazardInfo:
    """Immutable description attached to every hazard."""
    name: str
    category: HazardCategory
    description: str
    severity: Optional[str] = None


class Hazard(Enum):
    """
    Hazard identifiers.

    The enum value is the wire name of the hazard.
    """
    FIRE_HAZARD = "FireHazard"
    ELECTRIC_ENERGY_CONSUMPTION = "ElectricEnergyConsumption"
    LOG_ENERGY_CONSUMPTION = "LogEnergyConsumption"
    POWER_OUTAGE = "PowerOutage"
    WATER_FLOODING = "WaterFlooding"
    SCALD_HAZARD = "ScaldHazard"
    WATER_CONSUMPTION = "WaterConsumption"
    UNAUTHORISED_PHYSICAL_ACCESS = "UnauthorisedPhysicalAccess"
    SPOILED_FOOD = "SpoiledFood"
    LOG_USAGE_TIME = "LogUsageTime"

    @property
    def info(self) -> HazardInfo:
        return _HAZARD_INFO[self]

    @property
    def category(self) -> HazardCategory:
        return _HAZARD_INFO[self].category

    @property
    def description(self) -> str:
        return _HAZARD_INFO[self].description

    @property
    def severity(self) -> Optional[str]:
        return _HAZARD_INFO[self].severity

    @classmethod
    def from_name(cls, name: str) -> 'Hazard':
        """
        Resolve a hazard from its wire name.

        Raises:
            ValueError: If the name is not part of the taxonomy
        """
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"Unknown hazard: {name!r}") from None


_HAZARD_INFO = {
    Hazard.FIRE_HAZARD: HazardInfo(
        "FireHazard", HazardCategory.SAFETY,
        "The execution may cause fire", "high",
    ),
    Hazard.ELECTRIC_ENERGY_CONSUMPTION: HazardInfo(
        "ElectricEnergyConsumption", HazardCategory.FINANCIAL,
        "The execution enables a device that consumes electricity",
    ),
    Hazard.LOG_ENERGY_CONSUMPTION: HazardInfo(
        "LogEnergyConsumption", HazardCategory.PRIVACY,
        "Information about energy consumption may be leaked",
    ),
    Hazard.POWER_OUTAGE: HazardInfo(
        "PowerOutage", HazardCategory.SAFETY,
        "The execution may cause a power outage", "medium",
    ),
    Hazard.WATER_FLOODING: HazardInfo(
        "WaterFlooding", HazardCategory.SAFETY,
        "Water can overflow and flood the building", "high",
    ),
    Hazard.SCALD_HAZARD: HazardInfo(
        "ScaldHazard", HazardCategory.SAFETY,
        "The execution may boil water or heat up a surface", "medium",
    ),
    Hazard.WATER_CONSUMPTION: HazardInfo(
        "WaterConsumption", HazardCategory.FINANCIAL,
        "The execution enables a device that consumes water",
    ),
    Hazard.UNAUTHORISED_PHYSICAL_ACCESS: HazardInfo(
        "UnauthorisedPhysicalAccess", HazardCategory.SAFETY,
        "The execution may allow unauthorised people into the building", "high",
    ),
    Hazard.SPOILED_FOOD: HazardInfo(
        "SpoiledFood", HazardCategory.SAFETY,
        "The execution may cause food to spoil", "low",
    ),
    Hazard.LOG_USAGE_TIME: HazardInfo(
        "LogUsageTime", HazardCategory.PRIVACY,
        "Information about when a device is used may be leaked",
    ),
}
