"""
Spatial binning: first pass of the counting sort.

One flat parallel pass over the points. Every thread computes the bin of its
point, records it in bin_ids and atomically bumps BinCounts[bin]. No ordering
between points is required, only the atomicity of the increment.

Author: B.G.
"""

import taichi as ti

from ..general_algorithms.atomics import fetch_add
from .grid import point_bin


@ti.kernel
def kernel_ins_cnt(points: ti.template(), n: int, dim: int, bin_ids: ti.template(), bin_counts: ti.template()):
	"""
	Bin id of every point and per-bin occupancy.

	Args:
		points: Vector field (3) of normalised coordinates
		n: Number of points
		dim: Bins per axis
		bin_ids: Per-point bin index (output)
		bin_counts: Zero-initialised u32 per-bin counters (output)

	Author: B.G.
	"""
	for i in range(n):
		b = point_bin(points[i], dim)
		bin_ids[i] = b
		fetch_add(bin_counts, b, ti.u32(1))


def count_bins(ctx, points, n:int, grid, bin_ids, bin_counts):
	"""
	Dispatch the counting pass.

	Args:
		ctx (DeviceContext): Device context
		points (DeviceBuffer): n points, 3 components
		n (int): Number of points
		grid (BinGrid): Target grid
		bin_ids (DeviceBuffer): n int32 slots for the bin of each point
		bin_counts (DeviceBuffer): zero-filled counters, at least grid.bins long

	Returns:
		StageResult: record of the dispatch

	Author: B.G.
	"""
	return ctx.dispatch("kernel_ins_cnt", kernel_ins_cnt,
		points.field, n, grid.dim, bin_ids.field, bin_counts.field,
		global_size=n)
