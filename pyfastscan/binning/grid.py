"""
Uniform binning grid over the normalised unit cube.

Device-side helpers (point_cell, cell_bin, point_bin) give the bin of a point
inside kernels; BinGrid does the same on the host, with the same float32
arithmetic and the same clamp to D-1, and validates point sets before
anything is dispatched.

Bin numbering: bin = ix + D*iy + D^2*iz (x fastest).

Author: B.G.
"""

import numpy as np
import taichi as ti

from ..errors import PointOutOfGrid
from ..general_algorithms.scan_planner import ceil_elements_for_scan


@ti.func
def point_cell(p, dim: ti.i32):
	'''
	Integer cell coordinates [ix, iy, iz] of a normalised point.
	Each coordinate is clamped to dim-1 so that float rounding of values just
	below 1 cannot leave the grid.
	'''
	D = ti.cast(dim, ti.f32)
	ix = ti.min(ti.cast(ti.floor(p[0] * D), ti.i32), dim - 1)
	iy = ti.min(ti.cast(ti.floor(p[1] * D), ti.i32), dim - 1)
	iz = ti.min(ti.cast(ti.floor(p[2] * D), ti.i32), dim - 1)
	return ti.Vector([ix, iy, iz])


@ti.func
def cell_bin(ix, iy, iz, dim: ti.i32) -> ti.i32:
	return ix + dim * iy + dim * dim * iz


@ti.func
def point_bin(p, dim: ti.i32) -> ti.i32:
	'''
	bin = floor(x*D) + D*floor(y*D) + D^2*floor(z*D)
	'''
	c = point_cell(p, dim)
	return cell_bin(c[0], c[1], c[2], dim)


class BinGrid:
	"""
	Uniform 3D grid of ``dim`` bins per axis over the normalised unit cube.

	Bins are numbered x fastest, then y, then z. Points are expected in
	[0, 1)^3; anything else is a precondition violation reported by
	check_points().

	Attributes:
		dim (int): Bins per axis (D)
		bins (int): Total number of bins (D^3)

	Author: B.G.
	"""

	def __init__(self, dim:int):
		if dim < 1:
			raise ValueError(f"Grid resolution must be >= 1, got {dim}")
		self.dim = int(dim)
		self.bins = self.dim ** 3

	def padded_bins(self, max_workgroup_size:int) -> int:
		"""
		Length of a BinCounts buffer for this grid, i.e. the bin count padded
		the way the scan will pad it.
		"""
		padded, _ = ceil_elements_for_scan(self.bins, max_workgroup_size)
		return padded

	def cells(self, points:np.ndarray) -> np.ndarray:
		"""
		Host-side cell coordinates, same float32 arithmetic as the kernels.
		"""
		pts = np.asarray(points, dtype=np.float32)
		c = np.floor(pts * np.float32(self.dim)).astype(np.int64)
		return np.minimum(c, self.dim - 1)

	def bin_index(self, points:np.ndarray) -> np.ndarray:
		"""
		Host-side bin index of every point.
		"""
		c = self.cells(points)
		return c[:, 0] + self.dim * c[:, 1] + self.dim * self.dim * c[:, 2]

	@staticmethod
	def check_points(points:np.ndarray):
		"""
		Raise PointOutOfGrid if any coordinate is outside [0, 1) or not finite.
		Checked in the caller's dtype: a float64 value just below 1 is valid
		even if it rounds to 1 in float32, the cell clamp absorbs it.
		"""
		pts = np.asarray(points)
		bad = np.any(~np.isfinite(pts) | (pts < 0.) | (pts >= 1.), axis=1)
		if bad.any():
			raise PointOutOfGrid(int(bad.sum()), int(np.argmax(bad)))

	def __repr__(self):
		return f"BinGrid(dim={self.dim}, bins={self.bins})"
