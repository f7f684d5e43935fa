"""
Scan Planner

Work decomposition for the two-level parallel scan. Given an element count and
the maximum work-group size T of the device, decides how the input is padded,
how many blocks of B = 2T elements it spans and whether the per-block totals
need a second scan level.

Everything here is pure host-side arithmetic: callers use it both to drive
the scan and to size buffers that will later be scanned (e.g. bin counts).

Author: B. Gailleton
"""

import logging
from dataclasses import dataclass

from .. import constants as cte
from ..errors import CapacityExceeded

logger = logging.getLogger(__name__)


def next_pow2(n: int) -> int:
    """
    Smallest power of two >= n. next_pow2(0) == 0, next_pow2(1) == 1.
    """
    if n <= 1:
        return max(n, 0)
    return 1 << (n - 1).bit_length()


def ceil_elements_for_scan(elements: int, max_workgroup_size: int):
    """
    Padded element count and number of blocks for a scan of ``elements``.

    Each thread of a work-group handles two elements, so one block covers
    B = 2 * max_workgroup_size elements. A multi-block scan is padded to a
    whole number of blocks; a single-block scan is padded to the next power
    of two only, and runs with a work-group of half that size.

    Args:
        elements (int): Number of valid elements (N >= 0)
        max_workgroup_size (int): Maximum threads per work-group (T)

    Returns:
        tuple: (padded_count, block_count)

    Example:
        ceil_elements_for_scan(5, 256)    -> (8, 1)
        ceil_elements_for_scan(1000, 256) -> (1024, 2)

    Author: B. Gailleton
    """
    if elements < 0:
        raise ValueError(f"Element count must be non-negative, got {elements}")

    threads = (elements + 1) // 2
    block_count = (threads + max_workgroup_size - 1) // max_workgroup_size

    if block_count > 1:
        padded_count = 2 * block_count * max_workgroup_size
    else:
        padded_count = next_pow2(elements)

    return padded_count, block_count


@dataclass(frozen=True)
class ScanPlan:
    """
    Complete decomposition of one scan.

    Attributes:
        element_count: Valid elements N
        padded_count: Elements actually scanned (N padded with zeros)
        block_count: Number of blocks of the first level
        block_elements: Elements per block of the first level
        threads_per_block: Work-group size of the first level
        carry_count: Length of the carry buffer (0 for single-level scans)
        levels: 0 (empty), 1 or 2
    """

    element_count: int
    padded_count: int
    block_count: int
    block_elements: int
    threads_per_block: int
    carry_count: int
    levels: int

    @property
    def two_level(self) -> bool:
        return self.levels == 2


def plan_scan(elements: int, max_workgroup_size: int) -> ScanPlan:
    """
    Build the ScanPlan for ``elements`` on a device with the given work-group size.

    Raises:
        CapacityExceeded: If the block totals do not fit a single block, i.e.
            the scan would need a third level (more than B^2 elements)

    Author: B. Gailleton
    """
    padded_count, block_count = ceil_elements_for_scan(elements, max_workgroup_size)
    block = 2 * max_workgroup_size

    if padded_count == 0:
        return ScanPlan(0, 0, 0, 0, 0, 0, 0)

    if block_count <= 1:
        # One block sized to the padded input
        return ScanPlan(elements, padded_count, 1, padded_count, padded_count // 2, 0, 1)

    carry_count = next_pow2(block_count)
    if carry_count > block:
        logger.warning("Scan of %i elements needs more than %i levels", elements, cte.MAX_SCAN_LEVELS)
        raise CapacityExceeded(elements, block * block)

    plan = ScanPlan(elements, padded_count, block_count, block, max_workgroup_size,
                    carry_count, cte.MAX_SCAN_LEVELS)
    logger.debug("Scan plan: %s", plan)
    return plan
