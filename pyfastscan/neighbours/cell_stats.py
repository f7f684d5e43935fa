"""
Per-cell point statistics.

For every bin of a grid-sorted point set, the mean and the population
covariance of the points it holds. One thread per bin reads its contiguous
range of sorted points; empty bins report zeros.

Author: B.G.
"""

import numpy as np
import taichi as ti

from .frnn import _SortedTables


@ti.kernel
def kernel_cell_qC(points: ti.template(), bins: int, bin_counts: ti.template(), bin_offsets: ti.template(),
		out_q: ti.template(), out_C: ti.template()):
	"""
	Mean q (3) and covariance C (3x3, flattened row-major) of every bin.

	Author: B.G.
	"""
	for cb in range(bins):
		count = ti.cast(bin_counts[cb], ti.i32)
		start = ti.cast(bin_offsets[cb], ti.i32)
		q = ti.Vector([0., 0., 0.])
		C = ti.Vector([0., 0., 0., 0., 0., 0., 0., 0., 0.])

		if count > 0:
			for j in range(start, start + count):
				q += points[j]
			q /= count

			for j in range(start, start + count):
				d = points[j] - q
				for r in ti.static(range(3)):
					for c in ti.static(range(3)):
						C[3 * r + c] += d[r] * d[c]
			C /= count

		out_q[cb] = q
		out_C[cb] = C


def cell_statistics(ctx, result):
	"""
	Per-bin mean and covariance of a bucket-sorted point set.

	Args:
		ctx (DeviceContext): Device context
		result (BucketSortResult): Output of binning.bucket_sort, typically on
			a constants.STATS_BINS_DIM grid

	Returns:
		tuple: (mean, covariance)
			mean (np.ndarray): (D^3, 3) float32
			covariance (np.ndarray): (D^3, 3, 3) float32, population covariance

	Author: B.G.
	"""
	bins = result.grid.bins
	if result.n_points == 0:
		return np.zeros((bins, 3), dtype=np.float32), np.zeros((bins, 3, 3), dtype=np.float32)

	out_q = out_C = None
	try:
		out_q = ctx.pool.allocate(ti.f32, bins, 3)
		out_C = ctx.pool.allocate(ti.f32, bins, 9)
		with _SortedTables(ctx, result) as tab:
			ctx.dispatch("kernel_cell_qC", kernel_cell_qC,
				tab.points.field, bins, tab.counts.field, tab.offsets.field,
				out_q.field, out_C.field,
				global_size=bins)
		return out_q.to_numpy(), out_C.to_numpy().reshape(bins, 3, 3)
	finally:
		ctx.pool.release(out_q, out_C)
