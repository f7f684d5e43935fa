"""
General Algorithms Module

GPU building blocks shared by the bucketing pipeline and by any caller that
needs a prefix sum.

Available Algorithms:
    - scan_planner: padding / block decomposition of a scan (pure host code)
    - parallel_scan: two-level work-efficient exclusive scan (Blelloch)
    - atomics: fetch-and-add counters used for counting and scatter cursors

Example Usage:
    ```python
    import numpy as np
    import taichi as ti
    import pyfastscan as pf

    pf.device.initialise(ti.gpu)
    ctx = pf.device.DeviceContext(max_workgroup_size=256)

    # Buffer sizing without running anything
    padded, blocks = pf.general_algorithms.ceil_elements_for_scan(10_000, 256)

    # Exclusive scan of a host array
    offsets = pf.general_algorithms.scan_numpy(ctx, np.ones(10, dtype=np.uint32))
    # -> [0, 1, 2, ..., 9]
    ```

Author: B. Gailleton
"""

from .scan_planner import ScanPlan, ceil_elements_for_scan, next_pow2, plan_scan
from .parallel_scan import ScanResult, block_scan, scan, scan_numpy
from .atomics import AtomicCounters, fetch_add

__all__ = [
    'ScanPlan',
    'ceil_elements_for_scan',
    'next_pow2',
    'plan_scan',
    'ScanResult',
    'block_scan',
    'scan',
    'scan_numpy',
    'AtomicCounters',
    'fetch_add',
]
