"""
Core types for the host/device dot-product offload.

- `launch`: launch configuration, device limits, single-group validation
- `diagnostics`: device error taxonomy + `checked_device_op`
- `config`: run configuration (env + CLI)
- `dtypes`: fixed-width integer element types
"""

from .config import RunConfig
from .diagnostics import (
    AllocationError,
    DeviceOpError,
    ExecutionFaultError,
    LaunchConfigError,
    ResultMismatchError,
    TransferError,
    checked_device_op,
)
from .launch import DeviceLimits, LaunchConfig, validate_launch

__all__ = [
    "RunConfig",
    "AllocationError",
    "DeviceOpError",
    "ExecutionFaultError",
    "LaunchConfigError",
    "ResultMismatchError",
    "TransferError",
    "checked_device_op",
    "DeviceLimits",
    "LaunchConfig",
    "validate_launch",
]
