import numpy as np
import pytest
import taichi as ti

from pyfastscan.errors import AllocationFailure
from pyfastscan.pool import BufferPool, DeviceBuffer


@pytest.fixture
def pool():
    p = BufferPool()
    yield p
    p.clear_all()


def test_release_then_reuse(pool):
    a = pool.allocate(ti.u32, 16)
    a.release()
    b = pool.allocate(ti.u32, 16)
    assert a is b
    assert pool.stats() == {"total": 1, "in_use": 1, "available": 0}


def test_distinct_keys_do_not_share(pool):
    a = pool.allocate(ti.u32, 16)
    b = pool.allocate(ti.u32, 16)
    c = pool.allocate(ti.f32, 16)
    d = pool.allocate(ti.f32, 16, 3)
    assert len({a.id, b.id, c.id, d.id}) == 4
    assert pool.stats()["in_use"] == 4


def test_zeros(pool):
    buf = pool.allocate(ti.u32, 8)
    buf.fill(7)
    buf.release()
    buf = pool.zeros(ti.u32, 8)
    assert buf.to_numpy().tolist() == [0] * 8


def test_upload_pads_with_zeros(pool):
    buf = pool.upload(np.array([1, 2, 3], dtype=np.uint32), ti.u32, size=8)
    assert buf.size == 8
    assert buf.to_numpy().tolist() == [1, 2, 3, 0, 0, 0, 0, 0]


def test_upload_vectors(pool):
    pts = np.arange(12, dtype=np.float32).reshape(4, 3)
    buf = pool.upload(pts, ti.f32)
    assert buf.components == 3
    np.testing.assert_array_equal(buf.to_numpy(), pts)


def test_upload_too_small(pool):
    with pytest.raises(AllocationFailure):
        pool.upload(np.ones(10), ti.f32, size=4)


def test_download_prefix(pool):
    buf = pool.upload(np.arange(10, dtype=np.int32), ti.i32)
    assert BufferPool.download(buf, 4).tolist() == [0, 1, 2, 3]
    assert len(BufferPool.download(buf)) == 10


def test_context_manager_releases(pool):
    with pool.zeros(ti.i32, 4) as buf:
        assert buf.in_use
    assert not buf.in_use
    assert pool.stats()["available"] == 1


def test_release_skips_none(pool):
    a = pool.allocate(ti.i32, 4)
    pool.release(None, a, None)
    assert not a.in_use


def test_clear_unused_keeps_buffers_in_use(pool):
    kept = pool.allocate(ti.i32, 4)
    pool.allocate(ti.i32, 4).release()
    pool.clear_unused()
    assert pool.stats() == {"total": 1, "in_use": 1, "available": 0}
    assert kept.in_use


@pytest.mark.parametrize("size", [0, -3])
def test_empty_buffer_rejected(size):
    with pytest.raises(AllocationFailure):
        DeviceBuffer(ti.u32, size)
