"""
Device layer for PyFastScan.

Everything the core consumes from the device lives here, behind an explicit
context object instead of global state:

- DeviceContext: work-group capability, buffer pool, synchronous dispatch
- StageResult: record returned by every dispatch (name, sizes, elapsed time)
- initialise / reboot: Taichi runtime lifecycle

Usage:
    import taichi as ti
    import pyfastscan as pf

    pf.device.initialise(ti.gpu)
    ctx = pf.device.DeviceContext(max_workgroup_size=1024)
    print(ctx.block_elements, ctx.scan_capacity)

Author: B.G.
"""

from .context import DeviceContext, StageResult, total_time_ns
from .environment import initialise, is_initialised, reboot

__all__ = [
    "DeviceContext",
    "StageResult",
    "initialise",
    "is_initialised",
    "reboot",
    "total_time_ns",
]
