"""
SIFIS-Home Runtime Service

The authoritative holder of device state. Every call goes through
execute():

1. Resolve the device                      -> UnknownDevice
2. Resolve the operation for its class     -> UnknownOperation
3. Validate argument count and types       -> InvalidArguments
4. Take the device's lock
5. Apply the transition and commit it      -> InvalidState / InvalidArguments
6. Release the lock and answer with the value and the declared hazards

Steps 1-3 never touch state. Each device has its own lock, so calls to
one device are serialized while calls to different devices proceed
independently. Once a call has been handed to step 4 it completes even
if the session that sent it goes away.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .contract import DIRECTORY, DeviceClass, OperationDescriptor, lookup
from .devices import (
    ClampPolicy,
    Device,
    DeviceStatus,
    apply_operation,
    state_to_dict,
)
from .errors import (
    InternalError,
    InvalidArguments,
    RequestError,
    UnknownDevice,
    UnknownOperation,
)
from .rpc.envelope import CallEnvelope, ResponseEnvelope


logger = logging.getLogger("sifisd.runtime")


@dataclass
class DeviceSlot:
    """A device and the lock guarding it."""
    device: Device
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    status: DeviceStatus = DeviceStatus.IDLE
    applied: int = 0  # Operations committed


def default_devices() -> List[Device]:
    """The mock device set used when no configuration is given."""
    return [
        Device("lamp1", "Safe lamp", DeviceClass.LAMP),
        Device("lamp2", "Unsafe lamp", DeviceClass.LAMP),
        Device("sink 1", "Kitchen Sink", DeviceClass.SINK),
        Device("door 1", "Bedroom Door", DeviceClass.DOOR),
        Device("fridge 1", "Kitchen Fridge", DeviceClass.FRIDGE),
    ]


def validate_args(operation: OperationDescriptor, args: List[Any]) -> None:
    """
    Check arity and types of call arguments.

    Raises:
        InvalidArguments: On any mismatch
    """
    if len(args) != operation.arity:
        raise InvalidArguments(
            f"{operation.name} expects {operation.arity} argument(s), got {len(args)}"
        )
    for (name, ptype), value in zip(operation.params, args):
        if not ptype.accepts(value):
            raise InvalidArguments(f"{name} must be {ptype.value}, got {value!r}")


class RuntimeService:
    """
    Mock runtime simulating a fixed set of devices.

    Usage:
        runtime = RuntimeService(default_devices())
        response = await runtime.execute(CallEnvelope("lamp1", "turn_on"))
    """

    def __init__(
        self,
        devices: Iterable[Device],
        clamp_policies: Optional[Dict[DeviceClass, ClampPolicy]] = None,
        actuation_delay: float = 0.0,
    ):
        """
        Initialize the runtime.

        Args:
            devices: Devices to simulate, identifiers must be unique
            clamp_policies: Out-of-range handling per class (default: clamp)
            actuation_delay: Simulated time spent applying an operation (seconds)
        """
        self._slots: Dict[str, DeviceSlot] = {}
        for device in devices:
            if device.device_id in self._slots:
                raise ValueError(f"Duplicate device id: {device.device_id}")
            self._slots[device.device_id] = DeviceSlot(device)

        self._policies = {kind: ClampPolicy.CLAMP for kind in DeviceClass}
        self._policies.update(clamp_policies or {})
        self._actuation_delay = actuation_delay

        # Statistics
        self._calls = 0
        self._succeeded = 0
        self._failed: Dict[str, int] = {}

    @property
    def device_ids(self) -> List[str]:
        return sorted(self._slots)

    def clamp_policy(self, kind: DeviceClass) -> ClampPolicy:
        return self._policies[kind]

    def find_devices(self, kind: DeviceClass) -> List[str]:
        """Identifiers of every device of a class."""
        return sorted(
            device_id for device_id, slot in self._slots.items()
            if slot.device.kind is kind
        )

    def snapshot(self, device_id: str) -> dict:
        """Committed state of a device."""
        return self._slot(device_id).device.to_dict()

    def status(self, device_id: str) -> DeviceStatus:
        return self._slot(device_id).status

    def stats(self) -> dict:
        return {
            "devices": len(self._slots),
            "calls": self._calls,
            "succeeded": self._succeeded,
            "failed": dict(self._failed),
            "applied": {
                device_id: slot.applied for device_id, slot in self._slots.items()
            },
        }

    async def execute(self, call: CallEnvelope) -> ResponseEnvelope:
        """
        Execute one call.

        Never raises for request problems: every outcome, including
        unexpected faults, is returned as a ResponseEnvelope.
        """
        self._calls += 1
        try:
            if call.device_id is None:
                value, hazards = self._execute_directory(call)
            else:
                value, hazards = await self._execute_device(call)
        except RequestError as e:
            logger.warning(f"{call.operation} on {call.device_id!r} failed: {e}")
            return self._failure(call, e)
        except Exception as e:
            logger.exception(f"Internal error in {call.operation} on {call.device_id!r}")
            return self._failure(call, InternalError(str(e)))

        self._succeeded += 1
        return ResponseEnvelope.success(call.call_id, value, hazards)

    # === Internals ===

    def _slot(self, device_id: str) -> DeviceSlot:
        slot = self._slots.get(device_id)
        if slot is None:
            raise UnknownDevice(f"Device {device_id} not found")
        return slot

    def _failure(self, call: CallEnvelope, error: RequestError) -> ResponseEnvelope:
        kind = error.kind.value
        self._failed[kind] = self._failed.get(kind, 0) + 1
        return ResponseEnvelope.failure(call.call_id, error)

    def _execute_directory(self, call: CallEnvelope) -> Tuple[Any, frozenset]:
        operation = DIRECTORY.get(call.operation)
        if operation is None:
            raise UnknownOperation(f"{call.operation!r} needs a device id")
        validate_args(operation, call.args)
        try:
            kind = DeviceClass.from_name(call.args[0])
        except ValueError as e:
            raise InvalidArguments(str(e)) from None
        return self.find_devices(kind), operation.hazards

    def _resolve(self, call: CallEnvelope) -> Tuple[DeviceSlot, OperationDescriptor]:
        slot = self._slot(call.device_id)
        kind = slot.device.kind
        try:
            operation = lookup(kind, call.operation)
        except UnknownOperation:
            owners = [
                other.value for other in DeviceClass
                if other is not kind and _has_operation(other, call.operation)
            ]
            if owners:
                raise UnknownOperation(
                    f"Device of kind {kind.value} found, "
                    f"{call.operation} requires {'/'.join(owners)}"
                ) from None
            raise
        validate_args(operation, call.args)
        return slot, operation

    async def _execute_device(self, call: CallEnvelope) -> Tuple[Any, frozenset]:
        slot, operation = self._resolve(call)
        # A dropped session must not abort a call that reached the device
        apply = asyncio.ensure_future(self._apply(slot, operation, call.args))
        try:
            value = await asyncio.shield(apply)
        except asyncio.CancelledError:
            apply.add_done_callback(lambda task: self._record_detached(call, task))
            raise
        return value, operation.hazards

    def _record_detached(self, call: CallEnvelope, task: asyncio.Future) -> None:
        """Account for an apply that outlived its cancelled caller."""
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            self._succeeded += 1
            logger.debug(f"{call.operation} on {call.device_id!r} completed after caller left")
        elif isinstance(error, RequestError):
            logger.warning(f"{call.operation} on {call.device_id!r} failed after caller left: {error}")
            self._failure(call, error)
        else:
            logger.error(
                f"Internal error in {call.operation} on {call.device_id!r} "
                f"after caller left: {error}"
            )
            self._failure(call, InternalError(str(error)))

    async def _apply(self, slot: DeviceSlot, operation: OperationDescriptor, args: List[Any]) -> Any:
        device = slot.device
        async with slot.lock:
            slot.status = DeviceStatus.EXECUTING
            try:
                if self._actuation_delay > 0:
                    await asyncio.sleep(self._actuation_delay)

                new_state, value = apply_operation(
                    device, operation, args, self._policies[device.kind]
                )

                if new_state != device.state:
                    logger.info(
                        f"{device.kind.value} {device.device_id}: {operation.name}"
                        f"{tuple(args)} {state_to_dict(device.state)} -> "
                        f"{state_to_dict(new_state)}"
                    )
                device.state = new_state
                slot.applied += 1
            finally:
                slot.status = DeviceStatus.IDLE
        return value


def _has_operation(kind: DeviceClass, name: str) -> bool:
    try:
        lookup(kind, name)
    except UnknownOperation:
        return False
    return True
