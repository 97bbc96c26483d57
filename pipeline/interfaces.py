"""
Cross-module interfaces shared by pipeline/backends/verify.

Keep this module dependency-light (no torch/triton) so it can be imported from
core logic without pulling heavy runtime requirements.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Literal, Protocol, Tuple

import numpy as np

from dot_offload.launch import DeviceLimits, LaunchConfig


BackendName = Literal["cuda", "triton", "sim"]


@dataclass
class DotRunResult:
    got: int
    expected: int
    ok: bool
    n: int
    dtype: str
    strategy: str
    backend: str
    launch: Dict[str, Any] = field(default_factory=dict)
    limits: Dict[str, Any] = field(default_factory=dict)
    elapsed_ms: float = 0.0

    def to_json_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DeviceBackend(Protocol):
    """
    Device memory allocator / copy primitive / kernel launcher.

    Launch is asynchronous: failures of the launch itself may surface from
    `launch` or only from the next `synchronize`, and faults during execution
    surface from `synchronize`. Buffers are opaque to the host program.
    """

    name: BackendName
    strategies: Tuple[str, ...]

    def is_available(self) -> bool: ...

    def limits(self) -> DeviceLimits: ...

    def alloc(self, n: int, dtype: str) -> Any: ...

    def free(self, buf: Any) -> None: ...

    def copy_to_device(self, buf: Any, host: np.ndarray) -> None: ...

    def copy_to_host(self, buf: Any) -> np.ndarray: ...

    def launch(self, strategy: str, launch: LaunchConfig, a: Any, b: Any, res: Any, n: int) -> None: ...

    def synchronize(self) -> None: ...


__all__ = ["BackendName", "DotRunResult", "DeviceBackend"]
