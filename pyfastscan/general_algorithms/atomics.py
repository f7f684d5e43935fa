"""
Atomic counters.

Bin counting and scatter-cursor allocation both rely on the same primitive: an
integer counter per bin that many threads increment concurrently, each thread
getting back the value the counter held before its own increment. Lost updates
are a correctness bug, so every increment goes through ti.atomic_add.

Author: B. Gailleton
"""

import taichi as ti


@ti.func
def fetch_add(counters: ti.template(), index, value):
    """
    Atomically add value to counters[index] and return the previous value.

    ti.atomic_add already returns the old value, which is exactly the
    fetch-and-add contract.
    """
    return ti.atomic_add(counters[index], value)


class AtomicCounters:
    """
    Zero-initialised array of per-bin atomic counters taken from the pool.

    Usage:
        with AtomicCounters(ctx, ti.u32, bins) as cursor:
            scatter_kernel(..., cursor.field)

    Author: B. Gailleton
    """

    def __init__(self, ctx, dtype, size: int):
        self.buffer = ctx.pool.zeros(dtype, size)

    @property
    def field(self):
        return self.buffer.field

    def release(self):
        self.buffer.release()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False
