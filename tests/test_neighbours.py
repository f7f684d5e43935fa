import numpy as np
import pytest

from pyfastscan.binning import bucket_sort
from pyfastscan.neighbours import cell_statistics, nearest_neighbours, neighbour_centroids, search_window


@pytest.fixture
def sorted_cloud(ctx, rng):
    points = rng.random((500, 3), dtype=np.float32)
    return bucket_sort(ctx, points, 20)


def brute_force_d2(points):
    p = points.astype(np.float64)
    diff = p[:, None, :] - p[None, :, :]
    return (diff ** 2).sum(axis=-1)


def test_nearest_neighbours_match_brute_force(ctx, sorted_cloud):
    radius = 0.05
    nn = nearest_neighbours(ctx, sorted_cloud, radius)
    pts = sorted_cloud.sorted_points
    d2 = brute_force_d2(pts)
    np.fill_diagonal(d2, np.inf)
    d2[d2 > radius * radius] = np.inf

    assert nn.shape == (500,)
    assert nn.dtype == np.int32
    best = d2.min(axis=1)
    none = np.isinf(best)
    np.testing.assert_array_equal(nn == -1, none)

    found = ~none
    got = d2[np.flatnonzero(found), nn[found]]
    np.testing.assert_allclose(got, best[found], rtol=1e-4)


def test_nearest_neighbour_never_self(ctx, sorted_cloud):
    nn = nearest_neighbours(ctx, sorted_cloud, 0.1)
    idx = np.arange(len(nn))
    assert not np.any(nn == idx)


def test_isolated_points_have_no_neighbour(ctx):
    points = np.array([[0.1, 0.1, 0.1], [0.9, 0.9, 0.9]], dtype=np.float32)
    res = bucket_sort(ctx, points, 10)
    assert nearest_neighbours(ctx, res, 0.05).tolist() == [-1, -1]


def test_pair_points_at_each_other(ctx):
    points = np.array([[0.5, 0.5, 0.5], [0.52, 0.5, 0.5], [0.9, 0.1, 0.1]], dtype=np.float32)
    res = bucket_sort(ctx, points, 10)
    nn = nearest_neighbours(ctx, res, 0.05)
    for i, j in enumerate(nn):
        if j >= 0:
            assert nn[j] == i
    assert (nn >= 0).sum() == 2


def test_centroids_match_brute_force(ctx, sorted_cloud):
    radius = 0.05
    centroids = neighbour_centroids(ctx, sorted_cloud, radius)
    pts = sorted_cloud.sorted_points
    within = brute_force_d2(pts) <= radius * radius
    expected = (within[:, :, None] * pts[None, :, :]).sum(axis=1) / within.sum(axis=1)[:, None]

    assert centroids.shape == (500, 3)
    np.testing.assert_allclose(centroids, expected, atol=1e-5)


def test_centroid_of_isolated_point_is_itself(ctx):
    points = np.array([[0.2, 0.3, 0.4]], dtype=np.float32)
    res = bucket_sort(ctx, points, 10)
    np.testing.assert_allclose(neighbour_centroids(ctx, res, 0.05), points)


def test_empty_queries(ctx):
    res = bucket_sort(ctx, np.zeros((0, 3), dtype=np.float32), 10)
    assert nearest_neighbours(ctx, res).shape == (0,)
    assert neighbour_centroids(ctx, res).shape == (0, 3)


def test_cell_statistics_match_numpy(ctx, rng):
    points = rng.random((400, 3), dtype=np.float32)
    res = bucket_sort(ctx, points, 4)
    mean, cov = cell_statistics(ctx, res)

    assert mean.shape == (64, 3)
    assert cov.shape == (64, 3, 3)
    for b in range(64):
        cell = res.points_in_bin(b).astype(np.float64)
        if len(cell) == 0:
            assert not mean[b].any()
            assert not cov[b].any()
            continue
        np.testing.assert_allclose(mean[b], cell.mean(axis=0), atol=1e-5)
        d = cell - cell.mean(axis=0)
        np.testing.assert_allclose(cov[b], d.T @ d / len(cell), atol=1e-5)


def test_cell_statistics_single_point_cell(ctx):
    points = np.array([[0.1, 0.1, 0.1]], dtype=np.float32)
    res = bucket_sort(ctx, points, 2)
    mean, cov = cell_statistics(ctx, res)
    np.testing.assert_allclose(mean[0], points[0])
    assert not cov.any()
    assert not mean[1:].any()


def test_search_window():
    assert search_window(0.01, 100) == 1
    assert search_window(0.05, 20) == 1
    assert search_window(0.051, 20) == 2
    assert search_window(0., 100) == 0
    with pytest.raises(ValueError):
        search_window(-0.1, 10)
