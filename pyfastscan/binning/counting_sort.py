"""
Counting-sort bucketing of 3D points into a uniform grid.

The full pipeline is three dependent dispatch stages with a strict
happens-before order:

1. count   : bin id per point, atomic per-bin occupancy (BinCounts)
2. scan    : exclusive prefix sum of BinCounts (BinOffsets)
3. scatter : every point fetches-and-increments the cursor of its bin to get
             a rank, and lands at BinOffsets[bin] + rank

Every point is placed exactly once and no two points collide, because the
cursor of a bin hands out 0..BinCounts[bin]-1 exactly once each. The output is
contiguous per bin and ordered by ascending bin index; the order inside a bin
is whatever order the atomic increments happened in.

Author: B.G.
"""

import logging
from dataclasses import dataclass, field as dc_field
from typing import List

import numpy as np
import taichi as ti

from ..device.context import StageResult
from ..general_algorithms.atomics import AtomicCounters, fetch_add
from ..general_algorithms.parallel_scan import scan
from ..general_algorithms.scan_planner import plan_scan
from .binner import count_bins
from .grid import BinGrid

logger = logging.getLogger(__name__)


@ti.kernel
def kernel_reindex(points: ti.template(), n: int, bin_ids: ti.template(), bin_offsets: ti.template(),
		cursor: ti.template(), sorted_points: ti.template(), sorted_bins: ti.template()):
	"""
	Scatter every point to its collision-free slot in the sorted output.

	Args:
		points: Input points (vector field, 3)
		n: Number of points
		bin_ids: Bin of every input point (from the counting pass)
		bin_offsets: Exclusive scan of the bin counts
		cursor: Zero-initialised per-bin counters
		sorted_points: Output points, grouped by bin
		sorted_bins: Output bin index of every sorted point

	Author: B.G.
	"""
	for i in range(n):
		b = bin_ids[i]
		rank = fetch_add(cursor, b, ti.u32(1))
		dst = ti.cast(bin_offsets[b] + rank, ti.i32)
		sorted_points[dst] = points[i]
		sorted_bins[dst] = b


def scatter(ctx, points, n:int, bin_ids, bin_offsets, cursor, sorted_points, sorted_bins):
	"""
	Dispatch the scatter pass. The cursor must be zeroed beforehand.

	Returns:
		StageResult: record of the dispatch

	Author: B.G.
	"""
	return ctx.dispatch("kernel_reindex", kernel_reindex,
		points.field, n, bin_ids.field, bin_offsets.field, cursor.field,
		sorted_points.field, sorted_bins.field,
		global_size=n)


@dataclass
class BucketSortResult:
	"""
	Grid-sorted point set and the per-bin tables that index it.

	Attributes:
		sorted_points (np.ndarray): (N, 3) float32, contiguous per bin, ascending bin
		bin_counts (np.ndarray): (D^3,) uint32 occupancy of every bin
		bin_offsets (np.ndarray): (D^3,) uint32 exclusive scan of bin_counts
		sorted_bins (np.ndarray): (N,) int32 bin index of every sorted point
		grid (BinGrid): The grid the points were bucketed into
		stages (list[StageResult]): Every dispatch of the pipeline, in order

	Author: B.G.
	"""

	sorted_points: np.ndarray
	bin_counts: np.ndarray
	bin_offsets: np.ndarray
	sorted_bins: np.ndarray
	grid: BinGrid
	stages: List[StageResult] = dc_field(default_factory=list)

	@property
	def grid_resolution(self) -> int:
		return self.grid.dim

	@property
	def n_points(self) -> int:
		return self.sorted_points.shape[0]

	def points_in_bin(self, b:int) -> np.ndarray:
		"""Slice of sorted_points belonging to bin b."""
		start = int(self.bin_offsets[b])
		return self.sorted_points[start:start + int(self.bin_counts[b])]

	def elapsed_ns(self) -> int:
		return sum(s.elapsed_ns for s in self.stages)


def sorted_entries(bin_counts:np.ndarray, bin_offsets:np.ndarray, bins:int = None) -> int:
	'''
	Number of points that landed in the grid: offset + count of the last bin.
	'''
	last = (len(bin_counts) if bins is None else bins) - 1
	if last < 0:
		return 0
	return int(bin_offsets[last]) + int(bin_counts[last])


def bucket_sort(ctx, points:np.ndarray, grid_resolution:int) -> BucketSortResult:
	"""
	Sort points into the bins of a uniform grid with a counting sort.

	Args:
		ctx (DeviceContext): Device context
		points (np.ndarray): (N, 3) coordinates, normalised to [0, 1)
		grid_resolution (int): Bins per axis (D)

	Returns:
		BucketSortResult: sorted points, bin counts, bin offsets, per-point bins

	Raises:
		PointOutOfGrid: If a coordinate is outside [0, 1) (checked before any
			dispatch)
		CapacityExceeded: If D^3 bins do not fit the two-level scan
		AllocationFailure, KernelCompileFailure, ArgumentBindingFailure,
		DispatchFailure: propagated from the device layer

	Example:
		ctx = pf.device.DeviceContext()
		res = pf.binning.bucket_sort(ctx, np.random.rand(10000, 3), 100)
		cell = res.points_in_bin(0)

	Author: B.G.
	"""
	points = np.asarray(points)
	if points.ndim != 2 or points.shape[1] != 3:
		raise ValueError(f"points must have shape (N, 3), got {points.shape}")

	grid = BinGrid(grid_resolution)
	n = points.shape[0]
	if n == 0:
		empty = np.zeros(grid.bins, dtype=np.uint32)
		return BucketSortResult(np.zeros((0, 3), dtype=np.float32), empty, empty.copy(),
			np.zeros(0, dtype=np.int32), grid)

	# Preconditions, before any allocation or dispatch
	grid.check_points(points)
	plan_scan(grid.bins, ctx.max_workgroup_size)
	points = points.astype(np.float32, copy=False)

	padded_bins = grid.padded_bins(ctx.max_workgroup_size)
	pool = ctx.pool
	stages = []

	d_points = bin_ids = bin_counts = sorted_points = sorted_bins = None
	offsets = None
	cursor = None
	try:
		d_points = pool.upload(points, ti.f32)
		bin_ids = pool.allocate(ti.i32, n)
		bin_counts = pool.zeros(ti.u32, padded_bins)
		sorted_points = pool.allocate(ti.f32, n, 3)
		sorted_bins = pool.allocate(ti.i32, n)

		# Pass 1: occupancy
		stages.append(count_bins(ctx, d_points, n, grid, bin_ids, bin_counts))

		# Prefix sum to determine bin offsets
		offsets = scan(ctx, bin_counts, grid.bins)
		stages += offsets.stages

		# Pass 2: reorder into the sorted buffer
		cursor = AtomicCounters(ctx, ti.u32, padded_bins)
		stages.append(scatter(ctx, d_points, n, bin_ids, offsets.values, cursor,
			sorted_points, sorted_bins))

		result = BucketSortResult(
			sorted_points.to_numpy(),
			bin_counts.to_numpy()[:grid.bins],
			offsets.values.to_numpy()[:grid.bins],
			sorted_bins.to_numpy(),
			grid,
			stages,
		)
	finally:
		pool.release(d_points, bin_ids, bin_counts, sorted_points, sorted_bins)
		if offsets is not None:
			offsets.release()
		if cursor is not None:
			cursor.release()

	logger.debug("Bucketed %i points into %i bins in %ins", n, grid.bins, result.elapsed_ns())
	return result
