from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple, Union

import numpy as np
from rdkit import Chem

logger = logging.getLogger(__name__)

AtomId = Union[int, str]

# Jmol CPK colours; elements not listed fall back to grey
CPK_COLORS = {
    'H': '#FFFFFF', 'He': '#D9FFFF', 'Li': '#CC80FF', 'Be': '#C2FF00', 'B': '#FFB5B5',
    'C': '#909090', 'N': '#3050F8', 'O': '#FF0D0D', 'F': '#90E050', 'Ne': '#B3E3F5',
    'Na': '#AB5CF2', 'Mg': '#8AFF00', 'Al': '#BFA6A6', 'Si': '#F0C8A0', 'P': '#FF8000',
    'S': '#FFFF30', 'Cl': '#1FF01F', 'Ar': '#80D1E3', 'K': '#8F40D4', 'Ca': '#3DFF00',
    'Sc': '#E6E6E6', 'Ti': '#BFC2C7', 'V': '#A6A6AB', 'Cr': '#8A99C7', 'Mn': '#9C7AC7',
    'Fe': '#E06633', 'Co': '#F090A0', 'Ni': '#50D050', 'Cu': '#C88033', 'Zn': '#7D80B0',
    'Ga': '#C28F8F', 'Ge': '#668F8F', 'As': '#BD80E3', 'Se': '#FFA100', 'Br': '#A62929',
    'Kr': '#5CB8D1', 'Rb': '#702EB0', 'Sr': '#00FF00', 'Y': '#94FFFF', 'Zr': '#94E0E0',
    'Nb': '#73C2C9', 'Mo': '#54B5B5', 'Tc': '#3B9E9E', 'Ru': '#248F8F', 'Rh': '#0A7D8C',
    'Pd': '#006985', 'Ag': '#C0C0C0', 'Cd': '#FFD98F', 'In': '#A67573', 'Sn': '#668080',
    'Sb': '#9E63B5', 'Te': '#D47A00', 'I': '#940094', 'Xe': '#429EB0', 'Cs': '#57178F',
    'Ba': '#00C900', 'La': '#70D4FF', 'Hf': '#4DC2FF', 'Ta': '#4DA6FF', 'W': '#2194D6',
    'Re': '#267DAB', 'Os': '#266696', 'Ir': '#175487', 'Pt': '#D0D0E0', 'Au': '#FFD123',
    'Hg': '#B8B8D0', 'Tl': '#A6544D', 'Pb': '#575961', 'Bi': '#9E4FB5',
}
DEFAULT_ATOM_COLOR = '#808080'

_LABEL_MAP = {
    'GAMMA': 'Γ', 'DELTA': 'Δ', 'LAMBDA': 'Λ', 'SIGMA': 'Σ',
    '0': '₀', '1': '₁', '2': '₂', '3': '₃', '4': '₄',
    '5': '₅', '6': '₆', '7': '₇', '8': '₈', '9': '₉',
}


# ----------------------------------------------------------------------------
# Elements
# ----------------------------------------------------------------------------

@dataclass(frozen=True)
class Element:
    number: int
    symbol: str


def resolve_element(atom_id: AtomId) -> Element:
    """Resolve an atomic number (14, "14") or symbol ("Si", "si") to an Element."""
    pt = Chem.GetPeriodicTable()
    if isinstance(atom_id, (bool, np.bool_)):
        raise ValueError(f"not an atom identifier: {atom_id!r}")
    if isinstance(atom_id, str) and atom_id.strip().isdigit():
        atom_id = int(atom_id.strip())
    if isinstance(atom_id, (int, np.integer)):
        z = int(atom_id)
        if not 1 <= z <= 118:
            raise ValueError(f"atomic number out of range: {z}")
        return Element(z, pt.GetElementSymbol(z))
    if isinstance(atom_id, str):
        sym = atom_id.strip().capitalize()
        try:
            z = pt.GetAtomicNumber(sym)
        except (RuntimeError, ValueError) as e:
            raise ValueError(f"unknown element symbol: {atom_id!r}") from e
        if z < 1:
            raise ValueError(f"unknown element symbol: {atom_id!r}")
        return Element(int(z), pt.GetElementSymbol(int(z)))
    raise ValueError(f"not an atom identifier: {atom_id!r}")


def cpk_color(element: Element) -> str:
    return CPK_COLORS.get(element.symbol, DEFAULT_ATOM_COLOR)


def atom_radius(element: Element, scale: float = 0.5) -> float:
    """Covalent radius (Å, RDKit) times `scale`."""
    return scale * float(Chem.GetPeriodicTable().GetRcovalent(element.number))


# ----------------------------------------------------------------------------
# Band-structure labels
# ----------------------------------------------------------------------------

def merge_consecutive_labels(symm_point_indices: Sequence[int],
                             symm_point_labels: Sequence[str]) -> Tuple[List[int], List[str]]:
    """Merge neighbouring high-symmetry k-points (i, i+1) into one tick labelled 'X|Y'."""
    if len(symm_point_indices) != len(symm_point_labels):
        raise ValueError("symm_point_indices and symm_point_labels must have the same length")
    idxs: List[int] = []
    labels: List[str] = []
    for i, (k, lab) in enumerate(zip(symm_point_indices, symm_point_labels)):
        if i > 0 and k == symm_point_indices[i - 1] + 1:
            labels[-1] += f"|{lab}"
        else:
            idxs.append(int(k))
            labels.append(str(lab))
    return idxs, labels


def to_unicode(labels: Iterable[str]) -> List[str]:
    """GAMMA -> Γ, DELTA_0 -> Δ₀; unknown labels pass through."""
    out = []
    for lab in labels:
        if '_' in lab:
            base, sub = lab.split('_', 1)
            sub = ''.join(_LABEL_MAP.get(c, c) for c in sub) if sub.isdigit() else _LABEL_MAP.get(sub, sub)
            out.append(_LABEL_MAP.get(base, base) + sub)
        else:
            out.append(_LABEL_MAP.get(lab, lab))
    return out


def energy_label(shift_fermi: bool) -> str:
    return r"$E - E_F$ (eV)" if shift_fermi else "Energy (eV)"


def linear_path(kpoints_cart, break_indices: Iterable[int] = ()) -> np.ndarray:
    """Cumulative distance along a k-path; a point listed in `break_indices` starts a new segment."""
    K = np.asarray(kpoints_cart, float).reshape(-1, 3)
    if len(K) == 0:
        return np.zeros(0)
    steps = np.linalg.norm(np.diff(K, axis=0), axis=1)
    for b in break_indices:
        if 0 < b < len(K):
            steps[b - 1] = 0.0
    return np.concatenate([[0.0], np.cumsum(steps)])


# ----------------------------------------------------------------------------
# Colour scaling
# ----------------------------------------------------------------------------

def symlog(a: float):
    """Symmetric log: linear x/a inside [-a, a], ±(log(|x|/a) + 1) outside."""
    if a <= 0:
        raise ValueError("symlog threshold must be positive")

    def f(x):
        x = np.asarray(x, float)
        ax = np.abs(x)
        outer = np.sign(x) * (np.log(np.maximum(ax, a) / a) + 1.0)
        return np.where(ax > a, outer, x / a)

    return f
