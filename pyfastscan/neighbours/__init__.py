"""
Per-point and per-cell queries over bucket-sorted point clouds.

Every query consumes a BucketSortResult (sorted points, bin counts and bin
offsets) and only ever reads contiguous per-bin ranges of the sorted points.

Available Functions:
- nearest_neighbours: closest other point within a fixed radius (D=100 grid)
- neighbour_centroids: centroid of the fixed-radius neighbourhood
- cell_statistics: per-bin mean and covariance (D=40 grid)

Usage:
    import pyfastscan as pf

    ctx = pf.device.DeviceContext()
    res = pf.binning.bucket_sort(ctx, points, pf.constants.NN_BINS_DIM)
    nn = pf.neighbours.nearest_neighbours(ctx, res, radius=0.01)

    cells = pf.binning.bucket_sort(ctx, points, pf.constants.STATS_BINS_DIM)
    mean, cov = pf.neighbours.cell_statistics(ctx, cells)

Author: B.G.
"""

from .frnn import nearest_neighbours, neighbour_centroids, search_window
from .cell_stats import cell_statistics

__all__ = [
    "cell_statistics",
    "nearest_neighbours",
    "neighbour_centroids",
    "search_window",
]
