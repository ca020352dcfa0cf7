"""
SIFIS-Home RPC Envelopes

One message type per direction:

    Call     {call_id, device_id, operation, args[]}
    Response {call_id, ok: true,  value, hazards[]}
             {call_id, ok: false, error: {kind, detail}}

Directory calls (find_devices) carry a null device_id.

Decoding validates the shape of every field and raises ProtocolError on
any mismatch: a peer speaking a different schema is not something a
session can recover from.
"""

from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, List, Optional

from ..errors import ErrorKind, ProtocolError, SifisError
from ..hazards import Hazard


def _require(data: dict, key: str, types, allow_none: bool = False):
    if key not in data:
        raise ProtocolError(f"missing field {key!r}")
    value = data[key]
    if value is None and allow_none:
        return None
    if not isinstance(value, types) or (isinstance(value, bool) and types is int):
        raise ProtocolError(f"field {key!r} has wrong type {type(value).__name__}")
    return value


@dataclass
class CallEnvelope:
    """A single call from a client to the runtime."""
    device_id: Optional[str]
    operation: str
    args: List[Any] = field(default_factory=list)
    call_id: int = 0

    def to_dict(self) -> dict:
        return {
            "call_id": self.call_id,
            "device_id": self.device_id,
            "operation": self.operation,
            "args": list(self.args),
        }

    @classmethod
    def from_dict(cls, data: Any) -> 'CallEnvelope':
        if not isinstance(data, dict):
            raise ProtocolError("call must be an object")
        if set(data) != {"call_id", "device_id", "operation", "args"}:
            raise ProtocolError(f"unexpected call fields: {sorted(data)}")
        return cls(
            call_id=_require(data, "call_id", int),
            device_id=_require(data, "device_id", str, allow_none=True),
            operation=_require(data, "operation", str),
            args=_require(data, "args", list),
        )


@dataclass
class ResponseEnvelope:
    """
    The outcome of one call.

    Successful responses always carry the hazards declared by the
    operation, even when the set is empty.
    """
    call_id: int
    ok: bool
    value: Any = None
    hazards: FrozenSet[Hazard] = frozenset()
    error_kind: Optional[ErrorKind] = None
    detail: str = ""

    @classmethod
    def success(cls, call_id: int, value: Any, hazards: Iterable[Hazard]) -> 'ResponseEnvelope':
        return cls(call_id=call_id, ok=True, value=value, hazards=frozenset(hazards))

    @classmethod
    def failure(cls, call_id: int, error: SifisError) -> 'ResponseEnvelope':
        return cls(call_id=call_id, ok=False, error_kind=error.kind, detail=error.detail)

    def to_dict(self) -> dict:
        if self.ok:
            return {
                "call_id": self.call_id,
                "ok": True,
                "value": self.value,
                "hazards": sorted(h.value for h in self.hazards),
            }
        return {
            "call_id": self.call_id,
            "ok": False,
            "error": {"kind": self.error_kind.value, "detail": self.detail},
        }

    @classmethod
    def from_dict(cls, data: Any) -> 'ResponseEnvelope':
        if not isinstance(data, dict):
            raise ProtocolError("response must be an object")
        call_id = _require(data, "call_id", int)
        ok = _require(data, "ok", bool)

        if ok:
            if set(data) != {"call_id", "ok", "value", "hazards"}:
                raise ProtocolError(f"unexpected response fields: {sorted(data)}")
            names = _require(data, "hazards", list)
            try:
                hazards = frozenset(Hazard.from_name(n) for n in names)
            except (ValueError, TypeError) as e:
                raise ProtocolError(str(e)) from None
            return cls.success(call_id, data["value"], hazards)

        if set(data) != {"call_id", "ok", "error"}:
            raise ProtocolError(f"unexpected response fields: {sorted(data)}")
        error = _require(data, "error", dict)
        try:
            kind = ErrorKind(_require(error, "kind", str))
        except ValueError:
            raise ProtocolError(f"unknown error kind {error['kind']!r}") from None
        return cls(
            call_id=call_id,
            ok=False,
            error_kind=kind,
            detail=_require(error, "detail", str),
        )
