"""
PyFastScan - GPU parallel prefix sum and counting-sort spatial bucketing.

A Python package built on Taichi providing a work-efficient, two-level
parallel scan (prefix sum) and its main application: grouping 3D point clouds
into a uniform grid with a two-pass counting sort, as used by fixed-radius
nearest-neighbour search and per-cell point statistics.

Key Features:
- Blelloch up-sweep / down-sweep scan over work-group sized blocks
- Hierarchical composition: block scans, scan of block totals, carry propagation
- Explicit capacity bound (B^2 elements) with a typed rejection
- Counting sort with atomic counting and atomic scatter cursors
- Fixed-radius nearest neighbours and neighbourhood centroids
- Per-cell mean / covariance statistics
- Per-dispatch timing records, no global device state
- Pooled device buffers

Core Components:
- device: DeviceContext, synchronous dispatch, Taichi runtime lifecycle
- pool: device buffer pooling (allocate, zero-fill, upload, download)
- general_algorithms: scan planner, parallel scan, atomic counters
- binning: uniform grid, counting pass, scatter, bucket_sort
- neighbours: nearest neighbours, centroids, cell statistics
- visu: occupancy views of bin counts
- constants: defaults (work-group size, grid resolutions, radius)
- errors: exception taxonomy

Basic Usage:
    import numpy as np
    import taichi as ti
    import pyfastscan as pf

    pf.device.initialise(ti.gpu)
    ctx = pf.device.DeviceContext(max_workgroup_size=1024)

    # Prefix sum
    offsets = pf.general_algorithms.scan_numpy(ctx, np.ones(10, dtype=np.uint32))

    # Bucketing
    points = np.random.rand(100_000, 3)
    res = pf.binning.bucket_sort(ctx, points, pf.constants.NN_BINS_DIM)
    nn = pf.neighbours.nearest_neighbours(ctx, res, radius=0.01)

Author: B.G.
"""

__version__ = "0.1.0"
__author__ = "B.G."

# Import submodules, leaves first
from . import constants
from . import errors
from . import pool
from . import device
from . import general_algorithms
from . import binning
from . import neighbours
from . import visu

from .general_algorithms import ceil_elements_for_scan, scan
from .binning import bucket_sort

__all__ = [
    "binning",
    "bucket_sort",
    "ceil_elements_for_scan",
    "constants",
    "device",
    "errors",
    "general_algorithms",
    "neighbours",
    "pool",
    "scan",
    "visu",
]
