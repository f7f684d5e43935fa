import numpy as np
import pytest

from pyfastscan.visu import occupancy_slice, occupancy_volume, plot_occupancy


@pytest.fixture
def counts():
    # bin = x + D*y + D^2*z with D = 3
    c = np.zeros(27, dtype=np.uint32)
    c[0] = 5     # (0, 0, 0)
    c[1] = 2     # (1, 0, 0)
    c[13] = 4    # (1, 1, 1)
    c[26] = 1    # (2, 2, 2)
    return c


def test_volume_indexed_zyx(counts):
    vol = occupancy_volume(counts, 3)
    assert vol.shape == (3, 3, 3)
    assert vol[0, 0, 1] == 2
    assert vol[1, 1, 1] == 4
    assert vol[2, 2, 2] == 1


def test_volume_ignores_padding(counts):
    padded = np.concatenate([counts, np.full(5, 99, dtype=np.uint32)])
    assert occupancy_volume(padded, 3).sum() == 12


def test_slice(counts):
    assert occupancy_slice(counts, 3, z=0).tolist() == [[5, 2, 0], [0, 0, 0], [0, 0, 0]]
    assert occupancy_slice(counts, 3, z=1, axis='x')[1, 1] == 4


@pytest.mark.parametrize("axis", ['x', 'y', 'z'])
def test_projection_keeps_total(counts, axis):
    proj = occupancy_slice(counts, 3, axis=axis)
    assert proj.shape == (3, 3)
    assert proj.sum() == counts.sum()


def test_unknown_axis(counts):
    with pytest.raises(ValueError):
        occupancy_slice(counts, 3, axis='w')


def test_plot(counts):
    matplotlib = pytest.importorskip("matplotlib")
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    ax = plot_occupancy(counts, 3, z=0)
    assert "z = 0" in ax.get_title()
    plt.close(ax.figure)
