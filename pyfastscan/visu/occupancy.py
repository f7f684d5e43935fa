"""
Occupancy views of bin counts.

Author: B.G.
"""

import numpy as np


def occupancy_volume(bin_counts:np.ndarray, dim:int) -> np.ndarray:
	'''
	Bin counts as a (D, D, D) volume indexed [z, y, x].
	Padding past D^3 is ignored.
	'''
	counts = np.asarray(bin_counts)[:dim ** 3]
	return counts.reshape(dim, dim, dim)


def occupancy_slice(bin_counts:np.ndarray, dim:int, z:int = None, axis:str = 'z') -> np.ndarray:
	"""
	2D occupancy map of the grid.

	Args:
		bin_counts (np.ndarray): Per-bin counts (BucketSortResult.bin_counts)
		dim (int): Bins per axis
		z (int, optional): Index of the slice along ``axis``. When None the
			counts are summed along the axis instead. Default: None
		axis (str, optional): 'x', 'y' or 'z'. Default: 'z'

	Returns:
		np.ndarray: (D, D) array

	Author: B.G.
	"""
	vol = occupancy_volume(bin_counts, dim)
	ax = {'z': 0, 'y': 1, 'x': 2}.get(axis)
	if ax is None:
		raise ValueError(f"Unknown axis '{axis}'. Available axes: x, y, z")
	if z is None:
		return vol.sum(axis=ax)
	return np.take(vol, z, axis=ax)


def plot_occupancy(bin_counts:np.ndarray, dim:int, z:int = None, axis:str = 'z', ax = None, cmap:str = 'viridis'):
	"""
	Plot an occupancy slice (or projection) with matplotlib.

	Args:
		bin_counts, dim, z, axis: see occupancy_slice
		ax (matplotlib.axes.Axes, optional): Axes to draw into. Default: new figure
		cmap (str, optional): Colormap name. Default: 'viridis'

	Returns:
		matplotlib.axes.Axes: the axes drawn into

	Author: B.G.
	"""
	import matplotlib.pyplot as plt

	img = occupancy_slice(bin_counts, dim, z, axis)
	if ax is None:
		_, ax = plt.subplots()
	im = ax.imshow(img, origin='lower', cmap=cmap, interpolation='nearest')
	ax.figure.colorbar(im, ax=ax, label='points per bin')
	title = f"{axis} projection" if z is None else f"{axis} = {z}"
	ax.set_title(f"Bin occupancy, D={dim}, {title}")
	return ax
