"""
Parallel Scan Implementation

This module implements the work-efficient parallel exclusive scan (prefix sum)
using the Blelloch approach, composed hierarchically over blocks so that a
single dispatch never needs more than one work-group of threads per block.

Algorithm Details:
    - Based on Blelloch (1990) work-efficient scan
    - Two-phase approach per block: up-sweep (reduce) + down-sweep (distribute)
    - Each thread owns two elements, a block holds B = 2 * T elements
    - Every sweep step is one dispatch over all blocks; the dispatch boundary
      plays the role of the work-group barrier
    - At most two levels: block-local scans, then one scan of the block
      totals, then a carry propagation pass. Capacity is B^2 elements.

Mathematical Operation:
    Given input array [a0, a1, a2, ..., an-1], produces output:
    [0, a0, a0+a1, ..., a0+a1+...+an-2]

Pipeline (one dispatch per line):
    load      : copy input into the padded output, zero the tail
    up-sweep  : log2(B) steps over every block
    totals    : move each block root into the carry buffer, clear the root
    down-sweep: log2(B) steps over every block
    (two-level only)
    carry scan: the same up/totals/down sweep over the carry buffer
    post      : add carry[block] to every element of blocks 1..n-1

Author: B. Gailleton
Reference: Blelloch, G. E. (1990). "Prefix sums and their applications"
"""

import logging
from dataclasses import dataclass, field as dc_field
from typing import List, Optional

import numpy as np
import taichi as ti

from ..device.context import DeviceContext, StageResult
from ..pool.pool import DeviceBuffer
from .scan_planner import ScanPlan, plan_scan

logger = logging.getLogger(__name__)


@ti.kernel
def copy_input_to_work(src: ti.template(), dst: ti.template(), n: int, work_size: int):
    """
    Copy input data to the padded working buffer.

    Ensures: dst[i] = src[i] for i < n, dst[i] = 0 for n <= i < work_size
    """
    for i in range(work_size):
        if i < n:
            dst[i] = src[i]
        else:
            dst[i] = 0


@ti.kernel
def upsweep_step(data: ti.template(), n_threads: int, block_elements: int, offset: int):
    """
    One step of the up-sweep (reduce) phase, applied to every block at once.

    Thread tid of a block is active while tid < T / offset and folds the left
    child of its pair into the right one:
        data[base + offset*(2*tid+2) - 1] += data[base + offset*(2*tid+1) - 1]

    Args:
        data: Working array (modified in-place)
        n_threads: block_count * T threads launched
        block_elements: Elements per block (power of 2)
        offset: Current tree level distance (1, 2, 4, ..., B/2)
    """
    for t in range(n_threads):
        threads = block_elements // 2
        b = t // threads
        tid = t - b * threads
        if tid < threads // offset:
            base = b * block_elements
            ai = base + offset * (2 * tid + 1) - 1
            bi = base + offset * (2 * tid + 2) - 1
            data[bi] += data[ai]


@ti.kernel
def extract_block_totals(data: ti.template(), block_sums: ti.template(), block_count: int, block_elements: int):
    """
    Move the root of every block sum tree into block_sums and clear it.

    After the up-sweep the last element of each block holds the block total.
    Clearing it is what turns the down-sweep into an exclusive scan.
    """
    for b in range(block_count):
        last = b * block_elements + block_elements - 1
        block_sums[b] = data[last]
        data[last] = 0


@ti.kernel
def downsweep_step(data: ti.template(), n_threads: int, block_elements: int, offset: int):
    """
    One step of the down-sweep (distribute) phase, applied to every block at once.

    For every active pair: temp = data[ai]; data[ai] = data[bi]; data[bi] += temp

    Args:
        data: Working array (modified in-place)
        n_threads: block_count * T threads launched
        block_elements: Elements per block (power of 2)
        offset: Current tree level distance (B/2, ..., 2, 1)
    """
    for t in range(n_threads):
        threads = block_elements // 2
        b = t // threads
        tid = t - b * threads
        if tid < threads // offset:
            base = b * block_elements
            ai = base + offset * (2 * tid + 1) - 1
            bi = base + offset * (2 * tid + 2) - 1
            temp = data[ai]
            data[ai] = data[bi]
            data[bi] += temp


@ti.kernel
def propagate_carry(data: ti.template(), carry: ti.template(), block_elements: int, work_size: int):
    """
    Add the scanned carry of each block to every element of that block.

    Block 0 has a carry of zero and is skipped.
    """
    for i in range(block_elements, work_size):
        data[i] += carry[i // block_elements]


def block_scan(ctx: DeviceContext, data, block_sums, block_count: int, block_elements: int,
               name: str = "block_scan") -> List[StageResult]:
    """
    Exclusive scan of every block of ``data`` in place.

    Args:
        ctx: Device context used for dispatching
        data: Taichi field holding block_count * block_elements values
        block_sums: Taichi field receiving the total of each block
        block_count: Number of blocks
        block_elements: Elements per block (power of 2, 1 allowed)
        name: Prefix of the stage names

    Returns:
        list[StageResult]: one record per dispatch

    Author: B. Gailleton
    """
    threads = block_elements // 2
    n_threads = block_count * threads
    local = max(threads, 1)
    stages = []

    # Up-sweep phase (build sum tree)
    offset = 1
    while offset < block_elements:
        stages.append(ctx.dispatch(f"{name}_upsweep_{offset}", upsweep_step,
                                   data, n_threads, block_elements, offset,
                                   global_size=n_threads, local_size=local))
        offset *= 2

    stages.append(ctx.dispatch(f"{name}_totals", extract_block_totals,
                               data, block_sums, block_count, block_elements,
                               global_size=block_count))

    # Down-sweep phase (traverse down tree)
    offset = block_elements // 2
    while offset > 0:
        stages.append(ctx.dispatch(f"{name}_downsweep_{offset}", downsweep_step,
                                   data, n_threads, block_elements, offset,
                                   global_size=n_threads, local_size=local))
        offset //= 2

    return stages


@dataclass
class ScanResult:
    """
    Output of scan().

    Attributes:
        values: Pooled buffer of plan.padded_count scanned values (None when
            the input was empty). The caller owns it and must release it.
        plan: The ScanPlan that was executed
        total: Sum of all input elements
        stages: Per-dispatch records, in execution order
    """

    values: Optional[DeviceBuffer]
    plan: ScanPlan
    total: object = 0
    stages: List[StageResult] = dc_field(default_factory=list)

    def to_numpy(self) -> np.ndarray:
        """The first element_count scanned values."""
        if self.values is None:
            return np.zeros(0, dtype=np.uint32)
        return self.values.to_numpy()[:self.plan.element_count]

    def release(self):
        if self.values is not None:
            self.values.release()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


def scan(ctx: DeviceContext, buffer, element_count: int) -> ScanResult:
    """
    Compute the exclusive scan (prefix sum) of the first element_count values.

    Single-level when the input fits one block: one block scan and the result
    is final. Two-level otherwise: block scans emitting block totals into the
    carry buffer, a block scan of the carry buffer, then carry propagation.
    The capacity check happens before anything is dispatched, so nothing is
    returned for a dataset that would need a third level.

    Args:
        ctx: Device context
        buffer: DeviceBuffer or Taichi field holding at least element_count values
        element_count: Number of values to scan (N >= 0)

    Returns:
        ScanResult: padded output buffer, plan, grand total and stage records

    Raises:
        CapacityExceeded: element_count > B^2
        AllocationFailure, KernelCompileFailure, ArgumentBindingFailure,
        DispatchFailure: propagated from the device layer

    Example:
        Input:  [3, 1, 7, 0, 4, 1, 6, 3]
        Output: [0, 3, 4, 11, 11, 15, 16, 22], total 25

    Author: B. Gailleton
    """
    plan = plan_scan(element_count, ctx.max_workgroup_size)
    if plan.levels == 0:
        return ScanResult(None, plan)

    src = buffer.field if isinstance(buffer, DeviceBuffer) else buffer
    if element_count > src.shape[0]:
        raise ValueError(f"Cannot scan {element_count} elements of a buffer holding {src.shape[0]}")
    dtype = src.dtype

    out = ctx.pool.allocate(dtype, plan.padded_count)
    carry = None
    total = ctx.pool.allocate(dtype, 1)
    stages = []
    try:
        stages.append(ctx.dispatch("prefix_sum_load", copy_input_to_work,
                                   src, out.field, element_count, plan.padded_count,
                                   global_size=plan.padded_count))

        if plan.two_level:
            carry = ctx.pool.zeros(dtype, plan.carry_count)
            stages += block_scan(ctx, out.field, carry.field, plan.block_count,
                                 plan.block_elements, "prefix_sum")
            stages += block_scan(ctx, carry.field, total.field, 1,
                                 plan.carry_count, "prefix_sum_carry")
            stages.append(ctx.dispatch("prefix_sum_post", propagate_carry,
                                       out.field, carry.field, plan.block_elements, plan.padded_count,
                                       global_size=plan.padded_count - plan.block_elements,
                                       local_size=plan.threads_per_block))
        else:
            stages += block_scan(ctx, out.field, total.field, 1,
                                 plan.block_elements, "prefix_sum")

        grand_total = total.field[0]
    except Exception:
        out.release()
        raise
    finally:
        ctx.pool.release(carry, total)

    logger.debug("Scanned %i elements in %i dispatches", element_count, len(stages))
    return ScanResult(out, plan, grand_total, stages)


_NUMPY_TO_TAICHI = {
    np.dtype(np.uint32): ti.u32,
    np.dtype(np.int32): ti.i32,
    np.dtype(np.int64): ti.i64,
    np.dtype(np.uint64): ti.u64,
    np.dtype(np.float32): ti.f32,
    np.dtype(np.float64): ti.f64,
}


def scan_numpy(ctx: DeviceContext, array) -> np.ndarray:
    """
    Host convenience: upload, scan and read back a 1D numpy array.

    Integer inputs without an explicit supported dtype are scanned as int64.

    Returns:
        np.ndarray: exclusive prefix sum, same length as the input

    Author: B. Gailleton
    """
    array = np.asarray(array)
    if array.ndim != 1:
        raise ValueError("scan_numpy expects a 1D array")
    if array.dtype not in _NUMPY_TO_TAICHI:
        array = array.astype(np.int64)
    n = array.shape[0]
    if n == 0:
        return np.zeros(0, dtype=array.dtype)

    dtype = _NUMPY_TO_TAICHI[array.dtype]
    src = ctx.pool.upload(array, dtype)
    try:
        with scan(ctx, src, n) as result:
            return result.to_numpy()
    finally:
        src.release()
