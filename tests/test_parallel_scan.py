import numpy as np
import pytest
import taichi as ti

import pyfastscan as pf
from pyfastscan.errors import CapacityExceeded
from pyfastscan.general_algorithms import scan, scan_numpy


def exclusive_cumsum(a):
    a = np.asarray(a)
    out = np.zeros_like(a)
    if len(a) > 1:
        out[1:] = np.cumsum(a)[:-1]
    return out


def test_all_ones(ctx):
    data = np.ones(10, dtype=np.uint32)
    src = ctx.pool.upload(data, ti.u32)
    try:
        with scan(ctx, src, 10) as result:
            assert result.to_numpy().tolist() == list(range(10))
            assert result.total == 10
            assert result.plan.levels == 1
    finally:
        src.release()


def test_all_ones_two_level(small_ctx):
    out = scan_numpy(small_ctx, np.ones(10, dtype=np.uint32))
    assert out.tolist() == list(range(10))


def test_blelloch_example(ctx):
    out = scan_numpy(ctx, np.array([3, 1, 7, 0, 4, 1, 6, 3], dtype=np.uint32))
    assert out.tolist() == [0, 3, 4, 11, 11, 15, 16, 22]


def test_single_element(ctx):
    assert scan_numpy(ctx, np.array([7], dtype=np.uint32)).tolist() == [0]


def test_empty(ctx):
    assert scan_numpy(ctx, np.zeros(0, dtype=np.uint32)).shape == (0,)
    result = scan(ctx, None, 0)
    assert result.values is None
    assert result.stages == []


@pytest.mark.parametrize("n", [2, 3, 7, 8, 9, 16, 17, 31, 33, 63, 64])
def test_matches_sequential_reference(small_ctx, rng, n):
    data = rng.integers(0, 1000, size=n).astype(np.uint32)
    out = scan_numpy(small_ctx, data)
    np.testing.assert_array_equal(out, exclusive_cumsum(data))


def test_large_default_context(ctx, rng):
    data = rng.integers(0, 50, size=100_000).astype(np.uint32)
    out = scan_numpy(ctx, data)
    np.testing.assert_array_equal(out, exclusive_cumsum(data))


def test_int64_input(small_ctx):
    data = np.arange(40)
    np.testing.assert_array_equal(scan_numpy(small_ctx, data), exclusive_cumsum(data))


def test_float_input_small_integers(small_ctx):
    data = np.arange(20, dtype=np.float32)
    np.testing.assert_array_equal(scan_numpy(small_ctx, data), exclusive_cumsum(data))


def test_scan_is_pure(small_ctx, rng):
    data = rng.integers(0, 100, size=50).astype(np.uint32)
    first = scan_numpy(small_ctx, data)
    second = scan_numpy(small_ctx, data)
    np.testing.assert_array_equal(first, second)


def test_scan_of_raw_field(small_ctx):
    field = ti.field(ti.u32, shape=20)
    field.from_numpy(np.full(20, 2, dtype=np.uint32))
    with scan(small_ctx, field, 20) as result:
        assert result.to_numpy().tolist() == list(range(0, 40, 2))
        assert result.total == 40


def test_scan_prefix_of_buffer(small_ctx):
    # Only the first element_count values take part, the rest is zero padding
    src = small_ctx.pool.upload(np.ones(30, dtype=np.uint32), ti.u32)
    try:
        with scan(small_ctx, src, 12) as result:
            assert result.total == 12
            assert result.to_numpy().tolist() == list(range(12))
            padded = result.values.to_numpy()
            assert len(padded) == result.plan.padded_count
    finally:
        src.release()


def test_stage_records(small_ctx):
    src = small_ctx.pool.upload(np.ones(40, dtype=np.uint32), ti.u32)
    try:
        with scan(small_ctx, src, 40) as result:
            names = [s.name for s in result.stages]
            assert names[0] == "prefix_sum_load"
            assert names[-1] == "prefix_sum_post"
            assert any(name.startswith("prefix_sum_carry") for name in names)
            assert all(s.elapsed_ns >= 0 for s in result.stages)
    finally:
        src.release()

    single = small_ctx.pool.upload(np.ones(8, dtype=np.uint32), ti.u32)
    try:
        with scan(small_ctx, single, 8) as result:
            assert "prefix_sum_post" not in [s.name for s in result.stages]
    finally:
        single.release()


def test_capacity_exceeded(small_ctx):
    data = np.ones(small_ctx.scan_capacity + 1, dtype=np.uint32)
    before = pf.pool.pool_stats()["in_use"]
    with pytest.raises(CapacityExceeded):
        scan_numpy(small_ctx, data)
    assert pf.pool.pool_stats()["in_use"] == before


def test_exactly_at_capacity(small_ctx, rng):
    data = rng.integers(0, 10, size=small_ctx.scan_capacity).astype(np.uint32)
    np.testing.assert_array_equal(scan_numpy(small_ctx, data), exclusive_cumsum(data))


def test_scan_rejects_2d(ctx):
    with pytest.raises(ValueError):
        scan_numpy(ctx, np.ones((2, 2), dtype=np.uint32))


def test_element_count_beyond_buffer(small_ctx):
    src = small_ctx.pool.upload(np.ones(4, dtype=np.uint32), ti.u32)
    before = pf.pool.pool_stats()["in_use"]
    try:
        with pytest.raises(ValueError):
            scan(small_ctx, src, 40)
        assert pf.pool.pool_stats()["in_use"] == before
    finally:
        src.release()
