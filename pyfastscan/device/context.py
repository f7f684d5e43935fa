"""
Explicit device context and synchronous dispatch.

A DeviceContext is passed into every core operation. It carries the device
capability that drives the scan block size (maximum threads per work-group),
the buffer pool temporaries are taken from, and the dispatch primitive:
run one kernel, block until the device has finished, and hand back a
StageResult describing what ran and how long it took.

The dispatch boundary is the only cross-block ordering guarantee in the
engine; every pipeline here is a sequence of dispatches.

Author: B.G.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import taichi as ti
from taichi.lang.exception import (
    TaichiCompilationError,
    TaichiRuntimeError,
    TaichiRuntimeTypeError,
)

from .. import constants as cte
from ..pool.pool import BufferPool, bufpool
from ..errors import ArgumentBindingFailure, DispatchFailure, KernelCompileFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageResult:
    """
    Record of one completed dispatch.

    Attributes:
        name: Kernel / stage name
        global_size: Number of threads launched
        local_size: Threads per work-group (None when the kernel is flat)
        elapsed_ns: Wall time from launch to device completion
    """

    name: str
    global_size: int
    local_size: Optional[int]
    elapsed_ns: int


def _is_pow2(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


class DeviceContext:
    """
    Explicit execution context for the scan engine.

    Args:
        max_workgroup_size (int, optional): Maximum threads per work-group.
            Must be a power of two. Default: constants.DEFAULT_WORKGROUP_SIZE
        pool (BufferPool, optional): Pool for temporaries. Default: the
            global pool

    Attributes:
        max_workgroup_size (int): threads per work-group (T)
        block_elements (int): scan block size B = 2 * T
        scan_capacity (int): largest scan the two-level engine accepts (B^2)

    Author: B.G.
    """

    def __init__(self, max_workgroup_size: Optional[int] = None, pool: Optional[BufferPool] = None):
        if max_workgroup_size is None:
            max_workgroup_size = cte.DEFAULT_WORKGROUP_SIZE
        if not _is_pow2(max_workgroup_size):
            raise ValueError(f"max_workgroup_size must be a power of two, got {max_workgroup_size}")

        self.max_workgroup_size = int(max_workgroup_size)
        self.pool = bufpool if pool is None else pool

    @property
    def block_elements(self) -> int:
        return 2 * self.max_workgroup_size

    @property
    def scan_capacity(self) -> int:
        return self.block_elements * self.block_elements

    def dispatch(self, name: str, kernel, *args, global_size: int = 0,
                 local_size: Optional[int] = None) -> StageResult:
        """
        Run a kernel and wait for it to complete.

        Args:
            name: Stage name reported in the StageResult and in the logs
            kernel: A ``ti.kernel``
            *args: Kernel arguments
            global_size: Number of threads the kernel launches
            local_size: Work-group size the kernel indexes with, if any

        Returns:
            StageResult: timing record of this dispatch

        Raises:
            ArgumentBindingFailure: Taichi could not bind the arguments
            KernelCompileFailure: The kernel failed to compile
            DispatchFailure: The kernel failed while running

        Author: B.G.
        """
        start = time.perf_counter_ns()
        try:
            kernel(*args)
            ti.sync()
        except TaichiRuntimeTypeError as exc:
            raise ArgumentBindingFailure(f"{name}: {exc}") from exc
        except TaichiCompilationError as exc:
            raise KernelCompileFailure(str(exc)) from exc
        except TaichiRuntimeError as exc:
            raise DispatchFailure(f"Could not execute {name}: {exc}") from exc
        elapsed = time.perf_counter_ns() - start

        logger.debug("Time %s: %ins (global=%i, local=%s)", name, elapsed, global_size, local_size)
        return StageResult(name, global_size, local_size, elapsed)

    def __repr__(self):
        return f"DeviceContext(max_workgroup_size={self.max_workgroup_size})"


def total_time_ns(stages) -> int:
    """Sum of elapsed times over a sequence of StageResult."""
    return sum(s.elapsed_ns for s in stages)
