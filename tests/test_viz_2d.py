"""
matplotlib figures: band structure, DOS, convergence, matrix.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from wannier_plots import viz_2d


@pytest.fixture
def bands():
    x = np.linspace(0.0, 3.0, 31)
    E = np.stack([np.cos(x) - 2, np.sin(x), np.cos(x) + 2], axis=1)
    return x, E


# =============================================================================
# Band structure
# =============================================================================

def test_plot_band_lines_and_ticks(bands):
    x, E = bands
    fig, ax = viz_2d.plot_band(
        x, E,
        fermi_energy=0.5,
        symm_point_indices=[0, 10, 11, 30],
        symm_point_labels=["GAMMA", "X", "U", "K"],
    )
    # 3 bands + 3 high-symmetry lines + Fermi line
    assert len(ax.lines) == 7
    assert [t.get_text() for t in ax.get_xticklabels()] == ["Γ", "X|U", "K"]
    assert_allclose(ax.get_xticks(), [x[0], x[10], x[30]])
    assert_allclose(ax.get_ylim(), (E.min() - 0.5, E.max() + 0.5))
    assert_allclose(ax.lines[-1].get_ydata(), [0.5, 0.5])


def test_plot_band_shift_fermi(bands):
    x, E = bands
    _, ax = viz_2d.plot_band(x, E, fermi_energy=1.0, shift_fermi=True)
    assert_allclose(ax.lines[0].get_ydata(), E[:, 0] - 1.0)
    assert_allclose(ax.lines[-1].get_ydata(), [0.0, 0.0])
    assert "E_F" in ax.get_ylabel()


def test_plot_band_color_array_adds_colorbar(bands):
    x, E = bands
    fig, ax = viz_2d.plot_band(x, E, color=np.abs(E))
    assert len(ax.collections) == 3
    assert len(fig.axes) == 2


def test_plot_band_single_band_vector():
    x = np.arange(5.0)
    _, ax = viz_2d.plot_band(x, x**2)
    assert len(ax.lines) == 1


@pytest.mark.parametrize("kwargs, match", [
    (dict(shift_fermi=True), "fermi_energy"),
    (dict(symm_point_indices=[0, 1], symm_point_labels=["A"]), "same length"),
    (dict(symm_point_indices=[0, 1]), "together"),
    (dict(color=np.zeros((2, 2))), "shape"),
])
def test_plot_band_argument_errors(bands, kwargs, match):
    x, E = bands
    with pytest.raises(ValueError, match=match):
        viz_2d.plot_band(x, E, **kwargs)


def test_plot_band_rejects_empty_and_mismatch():
    with pytest.raises(ValueError, match="empty"):
        viz_2d.plot_band([], [])
    with pytest.raises(ValueError, match="kpoints"):
        viz_2d.plot_band(np.arange(3.0), np.zeros((4, 2)))


def test_plot_band_diff_legend(bands, tmp_path):
    x, E = bands
    out = tmp_path / "diff.png"
    fig, ax = viz_2d.plot_band_diff(x, E, E + 0.1, fermi_energy=0.0, save_path=str(out))
    texts = [t.get_text() for t in ax.get_legend().get_texts()]
    assert texts == ["DFT", "Wan"]
    assert out.exists()
    assert ax.get_ylim()[1] == pytest.approx(E.max() + 0.1 + 0.5)


# =============================================================================
# DOS
# =============================================================================

def test_plot_dos_basic():
    x = np.linspace(-5, 5, 101)
    y = np.exp(-x**2)
    fig, ax = viz_2d.plot_dos(x, y, fermi_energy=1.0)
    assert_allclose(ax.lines[0].get_xdata(), x)
    assert len(fig.axes) == 1
    assert_allclose(ax.get_xlim(), (-5, 5))


def test_plot_dos_shift_and_swap():
    x = np.linspace(-5, 5, 101)
    y = np.exp(-x**2)
    _, ax = viz_2d.plot_dos(x, y, fermi_energy=1.0, shift_fermi=True, swap_axes=True)
    assert_allclose(ax.lines[0].get_xdata(), y)
    assert_allclose(ax.lines[0].get_ydata(), x - 1.0)
    assert_allclose(ax.get_ylim(), (-6, 4))


def test_plot_dos_cumdos_twin_axis():
    x = np.linspace(0, 1, 11)
    y = np.ones_like(x)
    fig, ax = viz_2d.plot_dos(x, y, cumdos=True)
    assert len(fig.axes) == 2
    twin = fig.axes[1]
    assert_allclose(twin.lines[0].get_ydata(), np.cumsum(y) * 0.1)
    assert twin.get_ylabel() == "Number of electrons"


def test_plot_dos_errors():
    with pytest.raises(ValueError):
        viz_2d.plot_dos([0, 1], [1])
    with pytest.raises(ValueError, match="fermi_energy"):
        viz_2d.plot_dos([0, 1], [1, 2], shift_fermi=True)
    with pytest.raises(ValueError, match="two"):
        viz_2d.plot_dos([0], [1], cumdos=True)


# =============================================================================
# Convergence / matrix
# =============================================================================

def _iterations(with_dis=True):
    n = 10
    it = {
        "wannierize": {
            "iter": np.arange(n),
            "omega_total": 10.0 / (1 + np.arange(n)),
            "sum_centers": np.random.default_rng(0).normal(size=(n, 3)),
        }
    }
    if with_dis:
        it["disentangle"] = {"iter": np.arange(1, 6), "omega_i": [5, 4, 3.5, 3.2, 3.1]}
    return it


def test_convergence_with_disentanglement():
    fig, axes = viz_2d.plot_wannier_convergence(_iterations())
    assert len(axes) == 2
    # two panels plus the twin axis for the centres
    assert len(fig.axes) == 3
    assert axes[0].get_title() == "Disentanglement convergence"
    assert len(axes[1].get_legend().get_texts()) == 4


def test_convergence_log_scale_shifts_zero():
    _, axes = viz_2d.plot_wannier_convergence(_iterations(with_dis=False), xscale="log")
    assert len(axes) == 1
    assert axes[0].get_xscale() == "log"
    assert axes[0].lines[0].get_xdata()[0] == 1


def test_convergence_requires_wannierize():
    with pytest.raises(ValueError, match="wannierize"):
        viz_2d.plot_wannier_convergence({})


def test_plot_matrix_symmetric_range():
    m = np.array([[1.0, -3.0], [0.5, 2.0], [0.0, 0.0]])
    fig, ax = viz_2d.plot_matrix(m)
    im = ax.images[0]
    assert im.get_clim() == (-3.0, 3.0)
    assert [t.get_text() for t in ax.get_yticklabels()] == ["1", "2", "3"]
    assert len(fig.axes) == 2


# =============================================================================
# k-path axis and symlog heatmap
# =============================================================================

def test_plot_band_path_uses_path_distance():
    k = np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [5, 5, 5], [5, 6, 5]], float)
    E = np.arange(5.0)
    fig, ax = viz_2d.plot_band_path(k, E, break_indices=[3])
    assert_allclose(ax.lines[0].get_xdata(), [0, 1, 2, 2, 3])
    assert ax.get_xlim() == (0.0, 3.0)


def test_plot_band_path_fractional_with_basis():
    k = [[0.0, 0.0, 0.0], [0.5, 0.0, 0.0], [0.5, 0.5, 0.0]]
    fig, ax = viz_2d.plot_band_path(k, [[0.0], [1.0], [2.0]], basis=2 * np.eye(3),
                                    symm_point_indices=[0, 1, 2], symm_point_labels=["GAMMA", "X", "M"])
    assert_allclose(ax.lines[0].get_xdata(), [0, 1, 2])
    assert [t.get_text() for t in ax.get_xticklabels()] == ["Γ", "X", "M"]


def test_plot_matrix_symlog():
    m = np.array([[10.0, -0.05]])
    fig, ax = viz_2d.plot_matrix(m, symlog_threshold=0.1)
    data = np.asarray(ax.images[0].get_array())
    assert_allclose(data, [[np.log(100.0) + 1.0, -0.5]])
    assert_allclose(ax.images[0].get_clim(), (-(np.log(100.0) + 1.0), np.log(100.0) + 1.0))
