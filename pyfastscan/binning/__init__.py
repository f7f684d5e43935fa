"""
Spatial bucketing of point clouds for PyFastScan.

This submodule groups 3D points into the bins of a uniform grid with a two-pass
counting sort built on the parallel scan. The sorted points together with the
per-bin counts and offsets are the input of every per-cell algorithm
(neighbour search, cell statistics).

Core Classes:
- BinGrid: Uniform D x D x D grid over the normalised unit cube
- BucketSortResult: Sorted points, bin counts, bin offsets, per-point bins

Pipeline:
- count_bins: bin id per point and atomic per-bin occupancy
- scan (general_algorithms): bin offsets from bin counts
- scatter: collision-free placement through per-bin atomic cursors
- bucket_sort: the three stages above, host arrays in and out

Usage:
    import numpy as np
    import taichi as ti
    import pyfastscan as pf

    pf.device.initialise(ti.gpu)
    ctx = pf.device.DeviceContext()

    points = np.random.rand(100_000, 3)
    res = pf.binning.bucket_sort(ctx, points, pf.constants.NN_BINS_DIM)

    assert res.bin_counts.sum() == len(points)
    first_cell = res.points_in_bin(0)

Author: B.G.
"""

from .grid import BinGrid
from .binner import count_bins
from .counting_sort import BucketSortResult, bucket_sort, scatter, sorted_entries

__all__ = [
    "BinGrid",
    "BucketSortResult",
    "bucket_sort",
    "count_bins",
    "scatter",
    "sorted_entries",
]
