"""
Device buffer pooling for PyFastScan.

Every pipeline of the package takes its temporaries (padded scan output, carry
buffer, bin counts, cursors, sorted points) from a BufferPool and releases them
on the way out, including when a stage fails. Buffers with the same dtype,
length and number of components are reused across invocations.

Core Classes:
- DeviceBuffer: pooled 1D field (scalar or small vector per element)
- BufferPool: pool manager with allocate / zeros / upload / download

Usage:
    import taichi as ti
    import pyfastscan as pf

    pool = pf.pool.bufpool
    with pool.zeros(ti.u32, 1024) as counts:
        some_kernel(counts.field)
    print(pf.pool.pool_stats())

Author: B. Gailleton
"""

from .pool import (
    BufferPool,
    DeviceBuffer,
    bufpool,
    clear_pool,
    forget_pool,
    pool_stats,
)

__all__ = [
    "BufferPool",
    "DeviceBuffer",
    "bufpool",
    "clear_pool",
    "forget_pool",
    "pool_stats",
]
