"""
Element lookup, k-point labels and small numeric helpers.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from wannier_plots.errors import MalformedMeshError
from wannier_plots.utils import (
    DEFAULT_ATOM_COLOR,
    Element,
    atom_radius,
    cpk_color,
    energy_label,
    linear_path,
    merge_consecutive_labels,
    resolve_element,
    symlog,
    to_unicode,
)


# =============================================================================
# Elements
# =============================================================================

@pytest.mark.parametrize("atom_id", [14, np.int64(14), "Si", "si", " Si ", "14"])
def test_resolve_element_forms(atom_id):
    assert resolve_element(atom_id) == Element(14, "Si")


@pytest.mark.parametrize("atom_id", [0, 119, -3, "Xx", True, 1.5, None])
def test_resolve_element_rejects(atom_id):
    with pytest.raises(ValueError):
        resolve_element(atom_id)


def test_cpk_color():
    assert cpk_color(Element(8, "O")) == "#FF0D0D"
    assert cpk_color(Element(99, "Es")) == DEFAULT_ATOM_COLOR


def test_atom_radius_scales():
    si = resolve_element("Si")
    h = resolve_element("H")
    assert atom_radius(si, 1.0) > atom_radius(h, 1.0) > 0
    assert_allclose(atom_radius(si, 0.5), 0.5 * atom_radius(si, 1.0))


# =============================================================================
# Labels
# =============================================================================

def test_merge_consecutive_labels():
    idxs, labels = merge_consecutive_labels([0, 10, 11, 20], ["G", "X", "U", "K"])
    assert idxs == [0, 10, 20]
    assert labels == ["G", "X|U", "K"]


def test_merge_consecutive_labels_chain():
    idxs, labels = merge_consecutive_labels([0, 1, 2, 9], ["A", "B", "C", "D"])
    assert idxs == [0, 9]
    assert labels == ["A|B|C", "D"]


def test_merge_consecutive_labels_length_mismatch():
    with pytest.raises(ValueError, match="same length"):
        merge_consecutive_labels([0, 1], ["A"])


def test_to_unicode():
    assert to_unicode(["GAMMA", "DELTA_0", "X", "SIGMA_12", "K_a"]) == ["Γ", "Δ₀", "X", "Σ₁₂", "Ka"]


def test_energy_label():
    assert "E_F" in energy_label(True)
    assert energy_label(False) == "Energy (eV)"


def test_linear_path_breaks():
    k = np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [5, 5, 5], [5, 5, 7]], float)
    assert_allclose(linear_path(k), [0, 1, 2, 2 + np.linalg.norm([4, 4, 5]), 4 + np.linalg.norm([4, 4, 5])])
    assert_allclose(linear_path(k, break_indices=[3]), [0, 1, 2, 2, 4])
    assert linear_path(np.empty((0, 3))).shape == (0,)


# =============================================================================
# symlog
# =============================================================================

def test_symlog():
    f = symlog(0.1)
    assert_allclose(f([0.05, -0.05, 0.1]), [0.5, -0.5, 1.0])
    assert_allclose(f([1.0, -1.0]), [np.log(10) + 1, -(np.log(10) + 1)])
    with pytest.raises(ValueError):
        symlog(0.0)


def test_malformed_mesh_error_context_is_truncated():
    e = MalformedMeshError("bad", {"data": "x" * 500})
    s = str(e)
    assert s.startswith("bad | data=")
    assert s.endswith("...")
