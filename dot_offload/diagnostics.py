"""
Device error taxonomy and the checked-device-operation wrapper.

Every fallible device call on the host side goes through `checked_device_op`:
it runs the call, and on failure raises one of the `DeviceOpError` subclasses
carrying the failing operation, the caller's source location and the
underlying status string. Nothing is retried and nothing is swallowed.

Formatting is plain text (no color dependencies), Clang-like:

    ERROR: launch failed at pipeline/run.py:88: threads_per_block=2048 exceeds device limit 1024
    Hint: use threads_per_block <= 1024
"""

from __future__ import annotations

import inspect
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional, Type, TypeVar


Level = Literal["error", "warning", "info"]

T = TypeVar("T")


@dataclass(frozen=True)
class SourceLocation:
    file: str
    line: int
    function: str = ""

    def __str__(self) -> str:
        return f"{self.file}:{self.line}"


@dataclass
class Diagnostic:
    level: Level
    message: str
    location: Optional[SourceLocation] = None
    op: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)


def format_rich(diag: Diagnostic) -> str:
    lines: List[str] = []
    head = f"{diag.level.upper()}: "
    if diag.op:
        head += f"{diag.op} failed"
        if diag.location is not None:
            head += f" at {diag.location}"
        head += f": {diag.message}"
    else:
        head += diag.message
    lines.append(head)
    for n in diag.notes:
        lines.append(f"Note: {n}")
    for s in diag.suggestions:
        lines.append(f"Hint: {s}")
    return "\n".join(lines)


class DeviceOpError(RuntimeError):
    """Base class for every fatal failure of a device operation."""

    kind = "device"

    def __init__(
        self,
        status: str,
        *,
        op: Optional[str] = None,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
    ) -> None:
        self.status = str(status)
        self.op = op
        self.location = location
        self.hint = hint
        super().__init__(self.status)

    def __str__(self) -> str:
        head = f"{self.op or self.kind} failed"
        if self.location is not None:
            head += f" at {self.location}"
        return f"{head}: {self.status}"

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(
            level="error",
            message=self.status,
            location=self.location,
            op=self.op or self.kind,
            suggestions=[self.hint] if self.hint else [],
            notes=[f"error kind: {self.kind}"],
        )


class AllocationError(DeviceOpError):
    kind = "alloc"


class TransferError(DeviceOpError):
    kind = "memcpy"


class LaunchConfigError(DeviceOpError):
    kind = "launch"


class ExecutionFaultError(DeviceOpError):
    kind = "synchronize"


class ResultMismatchError(DeviceOpError):
    kind = "validate"

    def __init__(self, got: int, expected: int, **kwargs: Any) -> None:
        self.got = int(got)
        self.expected = int(expected)
        super().__init__(f"result mismatch: got {self.got}, expected {self.expected}", **kwargs)


# Operation name prefix (before any "(...)" qualifier) -> error class.
_OP_ERRORS: Dict[str, Type[DeviceOpError]] = {
    "alloc": AllocationError,
    "memcpy_h2d": TransferError,
    "memcpy_d2h": TransferError,
    "launch": LaunchConfigError,
    "synchronize": ExecutionFaultError,
    "validate": ResultMismatchError,
}


def error_class_for(op: str) -> Type[DeviceOpError]:
    kind = str(op).split("(", 1)[0].strip()
    return _OP_ERRORS.get(kind, DeviceOpError)


def _caller_location(depth: int = 2) -> Optional[SourceLocation]:
    frame = inspect.currentframe()
    try:
        for _ in range(depth):
            if frame is None:
                return None
            frame = frame.f_back
        if frame is None:
            return None
        info = inspect.getframeinfo(frame, context=0)
        try:
            path = os.path.relpath(info.filename)
        except ValueError:
            path = info.filename
        return SourceLocation(file=path, line=int(info.lineno), function=str(info.function))
    finally:
        del frame


def _is_oom(exc: BaseException) -> bool:
    if type(exc).__name__ == "OutOfMemoryError" or isinstance(exc, MemoryError):
        return True
    return "out of memory" in str(exc).lower()


def checked_device_op(op: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """
    Perform a device operation and inspect its status immediately.

    `op` names the operation (`alloc(a)`, `memcpy_h2d(b)`, `launch`, ...); its
    prefix selects the error class raised on failure. Errors already in the
    taxonomy keep their class and get the operation/location filled in.
    """
    location = _caller_location()
    try:
        return fn(*args, **kwargs)
    except DeviceOpError as e:
        if e.op is None:
            e.op = op
        if e.location is None:
            e.location = location
        raise
    except Exception as e:
        cls = AllocationError if _is_oom(e) else error_class_for(op)
        if cls is ResultMismatchError:
            cls = DeviceOpError
        raise cls(f"{type(e).__name__}: {e}", op=op, location=location) from e


__all__ = [
    "SourceLocation",
    "Diagnostic",
    "format_rich",
    "DeviceOpError",
    "AllocationError",
    "TransferError",
    "LaunchConfigError",
    "ExecutionFaultError",
    "ResultMismatchError",
    "error_class_for",
    "checked_device_op",
]
