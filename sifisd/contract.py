"""
SIFIS-Home Device Contract

The fixed mapping of device classes to their callable operations, the
parameter and return types of each operation, and the hazards each
operation declares.

The registry is built once at import time and exposed read-only.
Hazard declarations are a safety contract, not configuration: adding a
device class or an operation is a protocol change, and changes the
schema fingerprint exchanged in every frame.
"""

import json
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, FrozenSet, List, Mapping, Optional, Tuple

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes

from .errors import UnknownOperation
from .hazards import Hazard


# Schema fingerprint size in bytes
FINGERPRINT_SIZE = 8


class DeviceClass(Enum):
    """Supported device classes."""
    LAMP = "lamp"
    SINK = "sink"
    DOOR = "door"
    FRIDGE = "fridge"

    @classmethod
    def from_name(cls, name: str) -> 'DeviceClass':
        try:
            return cls(name.lower())
        except (ValueError, AttributeError):
            raise ValueError(f"Unknown device class: {name!r}") from None


class ParamType(Enum):
    """Types of operation parameters and return values."""
    BOOL = "bool"
    U8 = "u8"
    I8 = "i8"
    STR = "str"
    STR_LIST = "str_list"

    def accepts(self, value: Any) -> bool:
        """Check whether a decoded wire value has this type."""
        if self is ParamType.BOOL:
            return isinstance(value, bool)
        if self is ParamType.STR:
            return isinstance(value, str)
        if self is ParamType.STR_LIST:
            return isinstance(value, list) and all(isinstance(v, str) for v in value)
        # bool is a subclass of int, never accept it as a number
        if not isinstance(value, int) or isinstance(value, bool):
            return False
        if self is ParamType.U8:
            return 0 <= value <= 255
        return -128 <= value <= 127


@dataclass(frozen=True)
class OperationDescriptor:
    """
    One callable operation.

    Attributes:
        device_class: Owning class (None for directory operations)
        name: Operation name on the wire
        params: Ordered (name, type) pairs
        returns: Return value type
        hazards: Hazards the operation may trigger
        safe: Explicit declaration that an empty hazard set is intended
        doc: Short description
    """
    device_class: Optional[DeviceClass]
    name: str
    params: Tuple[Tuple[str, ParamType], ...]
    returns: ParamType
    hazards: FrozenSet[Hazard]
    safe: bool = False
    doc: str = ""

    def __post_init__(self):
        if not self.hazards and not self.safe:
            raise ValueError(
                f"Operation {self.name} declares no hazards and is not marked safe"
            )
        if self.hazards and self.safe:
            raise ValueError(f"Operation {self.name} is marked safe but declares hazards")

    @property
    def arity(self) -> int:
        return len(self.params)

    def describe(self) -> dict:
        """Canonical description, used for the schema fingerprint and listings."""
        return {
            "device_class": self.device_class.value if self.device_class else None,
            "name": self.name,
            "params": [[name, ptype.value] for name, ptype in self.params],
            "returns": self.returns.value,
            "hazards": sorted(h.value for h in self.hazards),
            "safe": self.safe,
        }


def _op(device_class, name, returns, hazards=(), params=(), doc=""):
    return OperationDescriptor(
        device_class=device_class,
        name=name,
        params=tuple(params),
        returns=returns,
        hazards=frozenset(hazards),
        safe=not hazards,
        doc=doc,
    )


_LAMP_POWER_HAZARDS = (
    Hazard.FIRE_HAZARD,
    Hazard.ELECTRIC_ENERGY_CONSUMPTION,
    Hazard.LOG_ENERGY_CONSUMPTION,
)

_LAMP = DeviceClass.LAMP
_SINK = DeviceClass.SINK
_DOOR = DeviceClass.DOOR
_FRIDGE = DeviceClass.FRIDGE

_OPERATIONS = (
    # Lamp
    _op(_LAMP, "turn_on", ParamType.BOOL, _LAMP_POWER_HAZARDS,
        doc="Turn the light on"),
    _op(_LAMP, "turn_off", ParamType.BOOL, (Hazard.LOG_ENERGY_CONSUMPTION,),
        doc="Turn the light off"),
    _op(_LAMP, "toggle", ParamType.BOOL, _LAMP_POWER_HAZARDS,
        doc="Flip the on/off state"),
    _op(_LAMP, "get_on_off", ParamType.BOOL,
        doc="Current on/off status"),
    _op(_LAMP, "set_brightness", ParamType.U8, _LAMP_POWER_HAZARDS,
        params=(("brightness", ParamType.U8),),
        doc="Change the brightness (0-100)"),
    _op(_LAMP, "get_brightness", ParamType.U8,
        doc="Current brightness level"),
    _op(_LAMP, "get_power_draw", ParamType.U8, (Hazard.LOG_ENERGY_CONSUMPTION,),
        doc="Current power draw in watts"),

    # Sink
    _op(_SINK, "set_flow", ParamType.U8,
        (Hazard.WATER_FLOODING, Hazard.WATER_CONSUMPTION),
        params=(("flow", ParamType.U8),),
        doc="Change the water flow (0-100)"),
    _op(_SINK, "get_flow", ParamType.U8,
        doc="Current water flow"),
    _op(_SINK, "set_temperature", ParamType.U8, (Hazard.SCALD_HAZARD,),
        params=(("temperature", ParamType.U8),),
        doc="Set the water temperature"),
    _op(_SINK, "get_temperature", ParamType.U8,
        doc="Current water temperature"),
    _op(_SINK, "close_drain", ParamType.BOOL, (Hazard.WATER_FLOODING,),
        doc="Close the drain"),
    _op(_SINK, "open_drain", ParamType.BOOL,
        doc="Open the drain"),
    _op(_SINK, "get_level", ParamType.U8,
        doc="Water level in the basin"),

    # Door
    _op(_DOOR, "open", ParamType.BOOL, (Hazard.UNAUTHORISED_PHYSICAL_ACCESS,),
        doc="Open the door"),
    _op(_DOOR, "close", ParamType.BOOL,
        doc="Close the door"),
    _op(_DOOR, "is_open", ParamType.BOOL,
        doc="Whether the door is open"),
    _op(_DOOR, "lock", ParamType.BOOL,
        doc="Lock the door"),
    _op(_DOOR, "unlock", ParamType.BOOL, (Hazard.UNAUTHORISED_PHYSICAL_ACCESS,),
        doc="Unlock the door"),
    _op(_DOOR, "lock_status", ParamType.STR,
        doc="Lock status: locked, unlocked or jammed"),

    # Fridge
    _op(_FRIDGE, "get_temperature", ParamType.I8,
        doc="Current temperature inside the fridge"),
    _op(_FRIDGE, "get_target_temperature", ParamType.I8,
        doc="Target temperature"),
    _op(_FRIDGE, "set_target_temperature", ParamType.I8,
        (Hazard.SPOILED_FOOD, Hazard.ELECTRIC_ENERGY_CONSUMPTION),
        params=(("target", ParamType.I8),),
        doc="Change the target temperature"),
    _op(_FRIDGE, "is_open", ParamType.BOOL,
        doc="Whether the fridge door is open"),
)

# Directory operations are addressed to the runtime, not to a device
FIND_DEVICES = _op(
    None, "find_devices", ParamType.STR_LIST,
    params=(("kind", ParamType.STR),),
    doc="List the identifiers of every device of a class",
)

CONTRACT: Mapping[Tuple[DeviceClass, str], OperationDescriptor] = MappingProxyType(
    {(op.device_class, op.name): op for op in _OPERATIONS}
)

DIRECTORY: Mapping[str, OperationDescriptor] = MappingProxyType(
    {FIND_DEVICES.name: FIND_DEVICES}
)


def lookup(device_class: DeviceClass, name: str) -> OperationDescriptor:
    """
    Find the descriptor of an operation.

    Raises:
        UnknownOperation: If the class has no such operation
    """
    try:
        return CONTRACT[(device_class, name)]
    except KeyError:
        raise UnknownOperation(
            f"{device_class.value} has no operation {name!r}"
        ) from None


def operations_for(device_class: DeviceClass) -> List[OperationDescriptor]:
    """All operations of a class, in declaration order."""
    return [op for op in _OPERATIONS if op.device_class is device_class]


def _canonical_schema() -> bytes:
    ops = [op.describe() for op in _OPERATIONS] + [FIND_DEVICES.describe()]
    return json.dumps(ops, sort_keys=True, separators=(",", ":")).encode()


def _compute_fingerprint() -> bytes:
    hasher = hashes.Hash(hashes.BLAKE2b(64), backend=default_backend())
    hasher.update(b"sifis-contract-v1")
    hasher.update(_canonical_schema())
    return hasher.finalize()[:FINGERPRINT_SIZE]


_FINGERPRINT = _compute_fingerprint()


def schema_fingerprint() -> bytes:
    """Digest identifying this exact contract on the wire."""
    return _FINGERPRINT
