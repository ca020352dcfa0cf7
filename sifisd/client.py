"""
SIFIS-Home Client Stub

Used by applications to control devices through the runtime.

The stub only builds envelopes and decodes responses. All validation
happens in the runtime, so both ends can never disagree on what is a
valid call.

Usage:
    async with await SifisClient.connect(resolve_socket_path()) as sifis:
        for lamp in await sifis.lamps():
            result = await lamp.turn_on()
            print(result.value, result.hazards)
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, FrozenSet, List, Union

from .config import resolve_socket_path
from .contract import DeviceClass, operations_for
from .errors import error_for
from .hazards import Hazard
from .rpc.envelope import CallEnvelope
from .rpc.session import Session, connect


@dataclass(frozen=True)
class CallResult:
    """Value returned by an operation and the hazards it incurred."""
    value: Any
    hazards: FrozenSet[Hazard]


class DeviceProxy:
    """
    Handle on one device.

    Every operation of the device's class is available as a coroutine
    method, e.g. ``await lamp.set_brightness(50)``.
    """

    def __init__(self, client: 'SifisClient', kind: DeviceClass, device_id: str):
        self._client = client
        self.kind = kind
        self.id = device_id
        self._operations = {op.name for op in operations_for(kind)}

    def __getattr__(self, name: str):
        if name.startswith("_") or name not in self._operations:
            raise AttributeError(f"{self.kind.value} has no operation {name!r}")

        async def invoke(*args: Any) -> CallResult:
            return await self._client.call(self.id, name, *args)

        invoke.__name__ = name
        return invoke

    def __str__(self) -> str:
        return f"{self.kind.value.capitalize()} - {self.id}"

    def __repr__(self) -> str:
        return f"DeviceProxy({self.kind.value!r}, {self.id!r})"


class SifisClient:
    """Typed client over one runtime session."""

    def __init__(self, session: Session):
        self._session = session

    @classmethod
    async def connect(cls, path: Union[str, Path, None] = None) -> 'SifisClient':
        """
        Connect to the runtime.

        Args:
            path: Socket path (default: resolve_socket_path())

        Raises:
            TransportUnavailable: If the runtime cannot be reached
        """
        session = await connect(path or resolve_socket_path())
        return cls(session)

    @classmethod
    def from_session(cls, session: Session) -> 'SifisClient':
        """Wrap an already open session."""
        return cls(session)

    @property
    def session(self) -> Session:
        return self._session

    async def close(self) -> None:
        await self._session.close()

    async def __aenter__(self) -> 'SifisClient':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def call(self, device_id: str, operation: str, *args: Any) -> CallResult:
        """
        Call an operation on a device.

        Raises:
            UnknownDevice, UnknownOperation, InvalidArguments, InvalidState:
                As reported by the runtime
            ConnectionClosed, ProtocolError: On transport failures
        """
        response = await self._session.call(CallEnvelope(device_id, operation, list(args)))
        if not response.ok:
            raise error_for(response.error_kind, response.detail)
        return CallResult(response.value, response.hazards)

    async def find(self, kind: Union[DeviceClass, str]) -> List[str]:
        """Identifiers of every device of a class."""
        kind = kind.value if isinstance(kind, DeviceClass) else kind
        response = await self._session.call(CallEnvelope(None, "find_devices", [kind]))
        if not response.ok:
            raise error_for(response.error_kind, response.detail)
        return response.value

    def device(self, kind: DeviceClass, device_id: str) -> DeviceProxy:
        return DeviceProxy(self, kind, device_id)

    async def devices(self, kind: DeviceClass) -> List[DeviceProxy]:
        return [self.device(kind, device_id) for device_id in await self.find(kind)]

    async def lamps(self) -> List[DeviceProxy]:
        return await self.devices(DeviceClass.LAMP)

    async def sinks(self) -> List[DeviceProxy]:
        return await self.devices(DeviceClass.SINK)

    async def doors(self) -> List[DeviceProxy]:
        return await self.devices(DeviceClass.DOOR)

    async def fridges(self) -> List[DeviceProxy]:
        return await self.devices(DeviceClass.FRIDGE)
