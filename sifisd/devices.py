"""
SIFIS-Home Simulated Devices

Device state for each device class and the transition function that
applies an operation to it.

Design:
- Every device carries a state payload tagged by its DeviceClass
- apply_operation() dispatches once over the class and never mutates
  the state it is given: it returns a new state which the runtime
  commits by replacement, so a half-applied operation is never visible
- Continuous levels are bounded; out-of-range requests are clamped or
  rejected depending on the ClampPolicy of the class
"""

import copy
from dataclasses import asdict, dataclass, field, fields
from enum import Enum, auto
from typing import Any, Dict, List, Tuple, Union

from .contract import DeviceClass, OperationDescriptor
from .errors import InvalidArguments, InvalidState, UnknownOperation


# Lamp brightness range (percent)
BRIGHTNESS_RANGE = (0, 100)

# Lamp rated power at full brightness (watts)
LAMP_RATED_POWER = 60

# Sink flow range (percent of the tap opening)
FLOW_RANGE = (0, 100)

# Sink water temperature range (Celsius)
SINK_TEMPERATURE_RANGE = (10, 80)

# Sink basin level range (percent)
LEVEL_RANGE = (0, 100)

# Fridge target temperature range (Celsius)
FRIDGE_TARGET_RANGE = (-20, 20)

# Fridge measured temperature, bounded by its i8 wire type
FRIDGE_TEMPERATURE_RANGE = (-128, 127)


class DeviceStatus(Enum):
    """Execution status of one device."""
    IDLE = auto()       # No operation in flight
    EXECUTING = auto()  # An operation is being applied


class ClampPolicy(Enum):
    """What to do with a value outside the physical range."""
    CLAMP = "clamp"     # Commit the nearest bound and report it
    REJECT = "reject"   # Fail with InvalidArguments, commit nothing


class LockStatus(Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    JAMMED = "jammed"


@dataclass
class LampState:
    on: bool = False
    brightness: int = 0


@dataclass
class SinkState:
    flow: int = 0
    temperature: int = 20
    level: int = 0
    drain_open: bool = True


@dataclass
class DoorState:
    is_open: bool = False
    lock: LockStatus = LockStatus.UNLOCKED


@dataclass
class FridgeState:
    is_open: bool = False
    temperature: int = 5
    target_temperature: int = 4


DeviceState = Union[LampState, SinkState, DoorState, FridgeState]

# Bounds of every numeric state field, checked when loading configuration
FIELD_RANGES = {
    (DeviceClass.LAMP, "brightness"): BRIGHTNESS_RANGE,
    (DeviceClass.SINK, "flow"): FLOW_RANGE,
    (DeviceClass.SINK, "temperature"): SINK_TEMPERATURE_RANGE,
    (DeviceClass.SINK, "level"): LEVEL_RANGE,
    (DeviceClass.FRIDGE, "temperature"): FRIDGE_TEMPERATURE_RANGE,
    (DeviceClass.FRIDGE, "target_temperature"): FRIDGE_TARGET_RANGE,
}

STATE_TYPES = {
    DeviceClass.LAMP: LampState,
    DeviceClass.SINK: SinkState,
    DeviceClass.DOOR: DoorState,
    DeviceClass.FRIDGE: FridgeState,
}


@dataclass
class Device:
    """One simulated device owned by the runtime."""
    device_id: str
    name: str
    kind: DeviceClass
    state: DeviceState = field(default=None)

    def __post_init__(self):
        if self.state is None:
            self.state = STATE_TYPES[self.kind]()
        elif not isinstance(self.state, STATE_TYPES[self.kind]):
            raise ValueError(
                f"Device {self.device_id}: {type(self.state).__name__} "
                f"is not a {self.kind.value} state"
            )

    def to_dict(self) -> dict:
        return {
            "id": self.device_id,
            "name": self.name,
            "kind": self.kind.value,
            "state": state_to_dict(self.state),
        }


def state_to_dict(state: DeviceState) -> Dict[str, Any]:
    data = asdict(state)
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in data.items()}


def state_from_dict(kind: DeviceClass, data: Dict[str, Any]) -> DeviceState:
    """
    Build a device state from configuration values.

    Fields not given keep their defaults.

    Raises:
        ValueError: On unknown fields, values of the wrong type or
            values outside the physical range
    """
    state_type = STATE_TYPES[kind]
    state = state_type()
    known = {f.name for f in fields(state_type)}
    for key, value in data.items():
        if key not in known:
            raise ValueError(f"Unknown {kind.value} state field: {key}")
        current = getattr(state, key)
        if isinstance(current, LockStatus):
            value = LockStatus(value)
        elif isinstance(current, bool):
            if not isinstance(value, bool):
                raise ValueError(f"{kind.value}.{key} must be a boolean")
        elif not isinstance(value, int) or isinstance(value, bool):
            raise ValueError(f"{kind.value}.{key} must be an integer")
        else:
            low, high = FIELD_RANGES[(kind, key)]
            if not low <= value <= high:
                raise ValueError(f"{kind.value}.{key} {value} outside {low}..{high}")
        setattr(state, key, value)
    return state


def _bounded(value: int, bounds: Tuple[int, int], policy: ClampPolicy, what: str) -> int:
    low, high = bounds
    if low <= value <= high:
        return value
    if policy is ClampPolicy.REJECT:
        raise InvalidArguments(f"{what} {value} outside {low}..{high}")
    return max(low, min(high, value))


# === Transition functions ===

def _lamp_power(state: LampState) -> int:
    if not state.on:
        return 0
    return LAMP_RATED_POWER * state.brightness // 100


def _apply_lamp(state: LampState, op: str, args: List[Any], policy: ClampPolicy):
    if op == "turn_on":
        state.on = True
        return True
    if op == "turn_off":
        state.on = False
        return False
    if op == "toggle":
        state.on = not state.on
        return state.on
    if op == "get_on_off":
        return state.on
    if op == "set_brightness":
        state.brightness = _bounded(args[0], BRIGHTNESS_RANGE, policy, "brightness")
        return state.brightness
    if op == "get_brightness":
        return state.brightness
    if op == "get_power_draw":
        return _lamp_power(state)
    raise UnknownOperation(f"lamp has no operation {op!r}")


def _apply_sink(state: SinkState, op: str, args: List[Any], policy: ClampPolicy):
    if op == "set_flow":
        state.flow = _bounded(args[0], FLOW_RANGE, policy, "flow")
        if not state.drain_open:
            state.level = min(LEVEL_RANGE[1], state.level + state.flow)
        return state.flow
    if op == "get_flow":
        return state.flow
    if op == "set_temperature":
        state.temperature = _bounded(
            args[0], SINK_TEMPERATURE_RANGE, policy, "temperature"
        )
        return state.temperature
    if op == "get_temperature":
        return state.temperature
    if op == "close_drain":
        state.drain_open = False
        state.level = min(LEVEL_RANGE[1], state.level + state.flow)
        return False
    if op == "open_drain":
        state.drain_open = True
        state.level = 0
        return True
    if op == "get_level":
        return state.level
    raise UnknownOperation(f"sink has no operation {op!r}")


def _apply_door(state: DoorState, op: str, args: List[Any], policy: ClampPolicy):
    if op == "open":
        if state.is_open:
            raise InvalidState("door is already open")
        if state.lock is not LockStatus.UNLOCKED:
            raise InvalidState(f"door is {state.lock.value}")
        state.is_open = True
        return True
    if op == "close":
        # Pushing a closed door shut again changes nothing
        state.is_open = False
        return False
    if op == "is_open":
        return state.is_open
    if op == "lock":
        if state.lock is LockStatus.JAMMED:
            return False
        if state.is_open:
            raise InvalidState("cannot lock an open door")
        state.lock = LockStatus.LOCKED
        return True
    if op == "unlock":
        if state.lock is LockStatus.JAMMED:
            return False
        state.lock = LockStatus.UNLOCKED
        return True
    if op == "lock_status":
        return state.lock.value
    raise UnknownOperation(f"door has no operation {op!r}")


def _apply_fridge(state: FridgeState, op: str, args: List[Any], policy: ClampPolicy):
    if op == "get_temperature":
        return state.temperature
    if op == "get_target_temperature":
        return state.target_temperature
    if op == "set_target_temperature":
        state.target_temperature = _bounded(
            args[0], FRIDGE_TARGET_RANGE, policy, "target temperature"
        )
        return state.target_temperature
    if op == "is_open":
        return state.is_open
    raise UnknownOperation(f"fridge has no operation {op!r}")


def apply_operation(
    device: Device,
    operation: OperationDescriptor,
    args: List[Any],
    policy: ClampPolicy = ClampPolicy.CLAMP,
) -> Tuple[DeviceState, Any]:
    """
    Compute the effect of an operation on a device.

    The device is left untouched; the caller commits the returned state.

    Args:
        device: Target device
        operation: Validated operation descriptor of the device's class
        args: Validated arguments
        policy: Out-of-range handling for continuous levels

    Returns:
        (new_state, value) tuple

    Raises:
        InvalidArguments: Out-of-range value under ClampPolicy.REJECT
        InvalidState: Physically impossible transition
        UnknownOperation: The class does not implement the operation
    """
    state = copy.deepcopy(device.state)
    kind = device.kind

    if kind is DeviceClass.LAMP:
        value = _apply_lamp(state, operation.name, args, policy)
    elif kind is DeviceClass.SINK:
        value = _apply_sink(state, operation.name, args, policy)
    elif kind is DeviceClass.DOOR:
        value = _apply_door(state, operation.name, args, policy)
    elif kind is DeviceClass.FRIDGE:
        value = _apply_fridge(state, operation.name, args, policy)
    else:
        raise UnknownOperation(f"unsupported device class {kind}")

    return state, value
