"""
Fixed-radius near neighbours over a grid-sorted point set.

Both queries walk the same search window: the bins within b = ceil(radius * D)
cells of the query point on every axis, clamped to the grid. Each visited bin
is read as the contiguous range [BinOffsets[bin], BinOffsets[bin] + BinCounts[bin])
of the sorted points, which is what the counting sort buys.

Only the single closest neighbour is reported; a search for all neighbours would
need either per-point dynamic lists or an N x N table.

Author: B.G.
"""

import math

import numpy as np
import taichi as ti

from .. import constants as cte
from ..binning.grid import cell_bin, point_cell


@ti.kernel
def kernel_nn(points: ti.template(), n: int, dim: int, rsquare: ti.f32, b: int,
		bin_counts: ti.template(), bin_offsets: ti.template(), nn: ti.template()):
	"""
	Index (in sorted order) of the closest other point within the radius, -1 if none.

	Ties go to the smallest sorted index: bins are visited in ascending index
	order and the comparison is strict.

	Author: B.G.
	"""
	for i in range(n):
		p = points[i]
		c = point_cell(p, dim)
		best = rsquare
		best_j = -1

		for dz in range(-b, b + 1):
			z = c[2] + dz
			if z < 0 or z >= dim:
				continue
			for dy in range(-b, b + 1):
				y = c[1] + dy
				if y < 0 or y >= dim:
					continue
				for dx in range(-b, b + 1):
					x = c[0] + dx
					if x < 0 or x >= dim:
						continue
					cb = cell_bin(x, y, z, dim)
					start = ti.cast(bin_offsets[cb], ti.i32)
					end = start + ti.cast(bin_counts[cb], ti.i32)
					for j in range(start, end):
						if j != i:
							d2 = (points[j] - p).norm_sqr()
							# First hit may sit exactly on the radius
							if d2 < best or (best_j == -1 and d2 <= best):
								best = d2
								best_j = j
		nn[i] = best_j


@ti.kernel
def kernel_nn_centroids(points: ti.template(), n: int, dim: int, rsquare: ti.f32, b: int,
		bin_counts: ti.template(), bin_offsets: ti.template(), centroids: ti.template()):
	"""
	Mean of every point (the query point included) within the radius.

	Author: B.G.
	"""
	for i in range(n):
		p = points[i]
		c = point_cell(p, dim)
		acc = ti.Vector([0., 0., 0.])
		count = 0

		for dz in range(-b, b + 1):
			z = c[2] + dz
			if z < 0 or z >= dim:
				continue
			for dy in range(-b, b + 1):
				y = c[1] + dy
				if y < 0 or y >= dim:
					continue
				for dx in range(-b, b + 1):
					x = c[0] + dx
					if x < 0 or x >= dim:
						continue
					cb = cell_bin(x, y, z, dim)
					start = ti.cast(bin_offsets[cb], ti.i32)
					end = start + ti.cast(bin_counts[cb], ti.i32)
					for j in range(start, end):
						q = points[j]
						if (q - p).norm_sqr() <= rsquare:
							acc += q
							count += 1
		centroids[i] = acc / count


def search_window(radius:float, dim:int) -> int:
	'''
	Number of neighbouring bins to visit on each side of the query bin.
	'''
	if radius < 0:
		raise ValueError(f"radius must be non-negative, got {radius}")
	return int(math.ceil(radius * dim))


class _SortedTables:
	"""
	Device copies of the sorted points, bin counts and bin offsets of a
	BucketSortResult, released together.
	"""

	def __init__(self, ctx, result):
		self.pool = ctx.pool
		self.points = self.counts = self.offsets = None
		try:
			self.points = self.pool.upload(result.sorted_points, ti.f32)
			self.counts = self.pool.upload(result.bin_counts, ti.u32)
			self.offsets = self.pool.upload(result.bin_offsets, ti.u32)
		except Exception:
			self.release()
			raise

	def release(self):
		self.pool.release(self.points, self.counts, self.offsets)

	def __enter__(self):
		return self

	def __exit__(self, exc_type, exc_val, exc_tb):
		self.release()
		return False


def nearest_neighbours(ctx, result, radius:float = cte.RADIUS) -> np.ndarray:
	"""
	Closest neighbour of every sorted point within a fixed radius.

	Args:
		ctx (DeviceContext): Device context
		result (BucketSortResult): Output of binning.bucket_sort
		radius (float, optional): Search radius in normalised units.
			Default: constants.RADIUS

	Returns:
		np.ndarray: (N,) int32, index into result.sorted_points of the
			closest other point with squared distance <= radius^2, or -1

	Author: B.G.
	"""
	n = result.n_points
	if n == 0:
		return np.zeros(0, dtype=np.int32)

	dim = result.grid.dim
	b = search_window(radius, dim)
	nn = ctx.pool.allocate(ti.i32, n)
	try:
		with _SortedTables(ctx, result) as tab:
			ctx.dispatch("kernel_nn", kernel_nn,
				tab.points.field, n, dim, radius * radius, b,
				tab.counts.field, tab.offsets.field, nn.field,
				global_size=n)
		return nn.to_numpy()
	finally:
		nn.release()


def neighbour_centroids(ctx, result, radius:float = cte.RADIUS) -> np.ndarray:
	"""
	Centroid of the fixed-radius neighbourhood of every sorted point.

	Args:
		ctx (DeviceContext): Device context
		result (BucketSortResult): Output of binning.bucket_sort
		radius (float, optional): Search radius. Default: constants.RADIUS

	Returns:
		np.ndarray: (N, 3) float32 centroids, in sorted order

	Author: B.G.
	"""
	n = result.n_points
	if n == 0:
		return np.zeros((0, 3), dtype=np.float32)

	dim = result.grid.dim
	b = search_window(radius, dim)
	out = ctx.pool.allocate(ti.f32, n, 3)
	try:
		with _SortedTables(ctx, result) as tab:
			ctx.dispatch("kernel_nn_centroids", kernel_nn_centroids,
				tab.points.field, n, dim, radius * radius, b,
				tab.counts.field, tab.offsets.field, out.field,
				global_size=n)
		return out.to_numpy()
	finally:
		out.release()
