"""
Taichi runtime initialisation for PyFastScan.

Author: B.G.
"""

import taichi as ti

from ..pool.pool import forget_pool

_INITIALISED = False


def initialise(arch=ti.gpu, **kwargs):
	"""
	Initialise the Taichi runtime used by every kernel of the package.

	Args:
		arch: Taichi backend (ti.gpu falls back to CPU if no GPU is present)
		**kwargs: Forwarded to ti.init (debug, default_ip, ...)

	Raises:
		RuntimeError: If already initialised

	Author: B.G.
	"""
	global _INITIALISED
	if(_INITIALISED):
		raise RuntimeError("PyFastScan already initialized")

	ti.init(arch=arch, **kwargs)
	_INITIALISED = True


def is_initialised():
	return _INITIALISED


def reboot():
	"""
	Reset the Taichi runtime. All device buffers become invalid.

	Author: B.G.
	"""
	global _INITIALISED
	ti.reset()
	forget_pool()
	_INITIALISED = False
