"""
Device Buffer Pool Module

Pooling of the temporary device buffers used by the scan and bucketing
pipelines (padded scan output, carry buffer, bin counts, cursors, sorted
points). Buffers are built with the FieldsBuilder pattern so that each one owns
its own SNodeTree and can be destroyed independently.

Buffers are keyed by (dtype, size, components) so that repeated invocations of
the same pipeline on same-sized data reuse the same memory instead of growing
the Taichi runtime.

Provides the allocate / zero-fill / write / read primitives the core consumes:
- allocate: uninitialised buffer, marked in use
- zeros: allocated and zero-filled
- upload: allocated and filled from a numpy array
- download: numpy copy of (a prefix of) a buffer

Author: B. Gailleton
"""

import logging
from typing import Any, Optional

import numpy as np
import taichi as ti
from taichi.lang.util import to_numpy_type

from ..errors import AllocationFailure

logger = logging.getLogger(__name__)


class DeviceBuffer:
    """
    Pooled 1D device buffer wrapping a Taichi field.

    A buffer holds ``size`` elements; each element is a scalar when
    ``components == 1`` and a ``ti.Vector`` of that many lanes otherwise (used
    for 3D points and 3x3 covariance rows).

    Attributes:
        id: Unique buffer identifier
        field: Underlying Taichi field
        in_use: Current usage status
        dtype: Element data type
        size: Number of elements
        components: Vector lanes per element (1 for scalars)
        snodetree: Finalized field structure for memory management

    Author: B. Gailleton
    """

    _next_id = 0

    def __init__(self, dtype: Any, size: int, components: int = 1):
        """
        Build the field with its own FieldsBuilder.

        Args:
            dtype: Taichi data type (ti.f32, ti.u32, ...)
            size: Number of elements, must be >= 1
            components: Vector lanes per element

        Raises:
            AllocationFailure: If the size is invalid or Taichi cannot
                materialise the field

        Author: B. Gailleton
        """
        if size < 1:
            raise AllocationFailure(f"Cannot allocate a device buffer of {size} elements")
        if components < 1:
            raise AllocationFailure(f"Invalid number of components: {components}")

        DeviceBuffer._next_id += 1
        self.id = DeviceBuffer._next_id
        self.in_use = False
        self.dtype = dtype
        self.size = int(size)
        self.components = int(components)

        try:
            self.fb = ti.FieldsBuilder()
            if self.components == 1:
                self.field = ti.field(dtype)
            else:
                self.field = ti.Vector.field(self.components, dtype)
            self.fb.dense(ti.i, self.size).place(self.field)
            self.snodetree = self.fb.finalize()
        except RuntimeError as exc:
            raise AllocationFailure(
                f"Could not create device buffer ({dtype}, {self.size}x{self.components}): {exc}"
            ) from exc

    def acquire(self):
        """Mark the buffer as in use."""
        self.in_use = True

    def release(self):
        """Return the buffer to its pool. Memory is kept for reuse."""
        self.in_use = False

    def destroy(self):
        """
        Destroy the buffer and free device memory.

        Only called by the pool when permanently removing buffers.

        Author: B. Gailleton
        """
        if getattr(self, 'snodetree', None) is not None:
            self.snodetree.destroy()
            self.snodetree = None

    def fill(self, value):
        self.field.fill(value)

    def to_numpy(self):
        return self.field.to_numpy()

    def from_numpy(self, val):
        return self.field.from_numpy(val)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False

    def __str__(self):
        return (f"Device buffer id:{self.id} - in_use:{self.in_use} - dtype:{self.dtype}"
                f" - size:{self.size} - components:{self.components}")


class BufferPool:
    """
    Pool manager for temporary device buffers.

    Organises DeviceBuffer objects by (dtype, size, components). A request
    returns the first free buffer of the right key, or builds a new one.

    Usage:
        pool = BufferPool()
        counts = pool.zeros(ti.u32, 1024)
        try:
            some_kernel(counts.field)
        finally:
            counts.release()

    Author: B. Gailleton
    """

    def __init__(self):
        self._pools = {}  # (dtype, size, components) -> [DeviceBuffer]

    def allocate(self, dtype: Any, size: int, components: int = 1) -> DeviceBuffer:
        """
        Get a free buffer or create a new one. Content is undefined.

        Args:
            dtype: Taichi data type
            size: Number of elements
            components: Vector lanes per element

        Returns:
            DeviceBuffer: buffer marked as in use

        Author: B. Gailleton
        """
        key = (dtype, int(size), int(components))
        pool = self._pools.setdefault(key, [])

        for buf in pool:
            if not buf.in_use:
                buf.acquire()
                return buf

        buf = DeviceBuffer(dtype, size, components)
        logger.debug("Allocated %s", buf)
        pool.append(buf)
        buf.acquire()
        return buf

    def zeros(self, dtype: Any, size: int, components: int = 1) -> DeviceBuffer:
        """Allocate a buffer and zero-fill it."""
        buf = self.allocate(dtype, size, components)
        buf.fill(0)
        return buf

    def upload(self, array: np.ndarray, dtype: Any, size: Optional[int] = None) -> DeviceBuffer:
        """
        Allocate a buffer and write a host array into its first rows.

        Args:
            array: 1D array of scalars or 2D array of shape (n, components)
            dtype: Taichi data type of the device buffer
            size: Buffer length, at least len(array). Trailing elements are
                zero-filled. Defaults to len(array).

        Returns:
            DeviceBuffer: buffer marked as in use

        Author: B. Gailleton
        """
        array = np.asarray(array)
        n = array.shape[0]
        components = 1 if array.ndim == 1 else array.shape[1]
        size = n if size is None else size
        if size < n:
            raise AllocationFailure(f"Buffer of {size} elements cannot hold {n} values")

        buf = self.allocate(dtype, size, components)
        npdtype = to_numpy_type(dtype)
        if size == n:
            buf.from_numpy(array.astype(npdtype, copy=False))
        else:
            shape = (size,) if components == 1 else (size, components)
            padded = np.zeros(shape, dtype=npdtype)
            padded[:n] = array
            buf.from_numpy(padded)
        return buf

    @staticmethod
    def download(buf: DeviceBuffer, count: Optional[int] = None) -> np.ndarray:
        """Read a buffer back to the host, truncated to ``count`` elements."""
        data = buf.to_numpy()
        return data if count is None else data[:count]

    def release(self, *buffers):
        for buf in buffers:
            if buf is not None:
                buf.release()

    def clear_unused(self):
        """
        Destroy every buffer not currently in use and free its memory.

        Author: B. Gailleton
        """
        for pool in self._pools.values():
            for buf in pool[:]:
                if not buf.in_use:
                    buf.destroy()
                    pool.remove(buf)

    def clear_all(self):
        """
        Destroy every buffer, EVEN IF POTENTIALLY STILL IN USE.

        Author: B. Gailleton
        """
        for pool in self._pools.values():
            for buf in pool[:]:
                buf.destroy()
                pool.remove(buf)

    def stats(self) -> dict:
        """
        Pool usage statistics.

        Returns:
            dict: total, in_use and available buffer counts

        Author: B. Gailleton
        """
        total = sum(len(pool) for pool in self._pools.values())
        in_use = sum(1 for pool in self._pools.values() for buf in pool if buf.in_use)
        return {"total": total, "in_use": in_use, "available": total - in_use}


# Global pool instance
bufpool = BufferPool()


def pool_stats() -> dict:
    """Statistics of the global pool."""
    return bufpool.stats()


def clear_pool():
    """Free every unused buffer of the global pool."""
    bufpool.clear_unused()


def forget_pool():
    """
    Drop every buffer of the global pool without destroying it.

    Used after ti.reset(), when the underlying SNodeTrees are already gone.
    """
    bufpool._pools = {}
