import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pyvista as pv
from matplotlib import colormaps
from matplotlib.colors import to_hex

from .core import (
    KPath,
    bvector_shells,
    check_lattice,
    fermi_surface_meshes,
    guess_isolevel,
    lattice_lines,
    mesh3d,
    supercell_kpoints,
    wigner_seitz_cell,
)
from .utils import Element, atom_radius, cpk_color, resolve_element

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SceneStyle:
    """Colours and lighting for 3D scenes; pass a modified copy to any plot_* function."""
    background: str = 'white'
    lattice_color: str = 'black'
    lattice_width: float = 3.0
    vector_colors: Tuple[str, str, str] = ('red', 'green', 'blue')
    positive_color: str = '#C3423F'
    negative_color: str = '#5BC0EB'
    fermi_colormap: str = 'tab10'
    bz_color: str = 'black'
    kpath_color: str = 'red'
    bvector_colormap: str = 'tab10'
    atom_scale: float = 0.5
    opacity: float = 1.0
    ambient: float = 0.3
    diffuse: float = 0.8
    specular: float = 0.8
    specular_power: float = 20.0


DEFAULT_STYLE = SceneStyle()


# ----------------------------------------------------------------------------
# PolyData builders (no rendering)
# ----------------------------------------------------------------------------

def lattice_polydata(lattice, origin=(0.0, 0.0, 0.0)) -> pv.PolyData:
    """Wireframe of the cell spanned by the columns of `lattice`."""
    return pv.lines_from_points(lattice_lines(lattice, origin))


def lattice_vector_arrows(lattice, origin=(0.0, 0.0, 0.0)) -> List[pv.PolyData]:
    """One arrow per lattice vector (column), starting at `origin`, with the vector's length."""
    L = np.asarray(lattice, float)
    O = np.asarray(origin, float)
    arrows = []
    for a in L.T:
        length = float(np.linalg.norm(a))
        arrows.append(pv.Arrow(start=O, direction=a, tip_length=0.15, tip_radius=0.04,
                               shaft_radius=0.015, scale=length))
    return arrows


def atoms_polydata(lattice, atom_positions, atom_ids, scale: float = 0.5) -> List[Tuple[pv.PolyData, Element, np.ndarray]]:
    """Spheres for atoms at fractional `atom_positions` (N, 3).

    Returns (sphere, element, cartesian_position) per atom; radii are scaled
    covalent radii.
    """
    L = np.asarray(lattice, float)
    P = np.asarray(atom_positions, float).reshape(-1, 3)
    if len(P) != len(atom_ids):
        raise ValueError(f"{len(P)} atom positions but {len(atom_ids)} atom identifiers")
    atoms = []
    for frac, atom in zip(P, atom_ids):
        el = resolve_element(atom)
        cart = L @ frac
        sphere = pv.Sphere(radius=atom_radius(el, scale), center=cart,
                           theta_resolution=32, phi_resolution=32)
        atoms.append((sphere, el, cart))
    return atoms


def mesh_polydata(vertices, faces) -> pv.PolyData:
    """Triangle mesh from (N, 3) vertices and (M, 3) faces."""
    V = np.asarray(vertices, float).reshape(-1, 3)
    F = np.asarray(faces, int).reshape(-1, 3)
    if len(V) == 0:
        return pv.PolyData()
    if len(F) == 0:
        return pv.PolyData(V)
    cells = np.hstack([np.full((len(F), 1), 3, dtype=int), F]).ravel()
    return pv.PolyData(V, faces=cells)


def wigner_seitz_polydata(basis) -> pv.PolyData:
    """Wigner-Seitz cell (first Brillouin zone for a reciprocal basis) as polygon faces."""
    verts, faces = wigner_seitz_cell(basis)
    cells = np.concatenate([[len(f), *f] for f in faces]).astype(int)
    return pv.PolyData(verts, faces=cells)


def kpath_polydata(kpath: KPath) -> Tuple[List[pv.PolyData], np.ndarray, List[str]]:
    """Polylines for each segment of `kpath`, plus the labelled high-symmetry points."""
    lines = []
    for segment in kpath.paths:
        pts = np.array([kpath.cartesian(lab) for lab in segment])
        if len(pts) >= 2:
            lines.append(pv.lines_from_points(pts))
    labels = list(kpath.points)
    pts = np.array([kpath.cartesian(lab) for lab in labels]).reshape(-1, 3)
    return lines, pts, labels


# ----------------------------------------------------------------------------
# Scene helpers
# ----------------------------------------------------------------------------

def _new_plotter(plotter, style, off_screen):
    p = plotter or pv.Plotter(off_screen=off_screen)
    p.set_background(style.background)
    return p


def _finish(p, show, screenshot):
    p.show_axes()
    if screenshot:
        p.show(screenshot=screenshot)
        logger.info("saved screenshot to %s", screenshot)
    elif show:
        p.show()
    return p


def _add_lattice(p, lattice, origin, style):
    p.add_mesh(lattice_polydata(lattice, origin), color=style.lattice_color,
               line_width=style.lattice_width)
    for arrow, color in zip(lattice_vector_arrows(lattice, origin), style.vector_colors):
        p.add_mesh(arrow, color=color)


def _add_atoms(p, lattice, atom_positions, atom_ids, style, show_labels=False):
    atoms = atoms_polydata(lattice, atom_positions, atom_ids, scale=style.atom_scale)
    for sphere, el, _ in atoms:
        p.add_mesh(sphere, color=cpk_color(el), smooth_shading=True)
    if show_labels and atoms:
        pts = np.array([cart for *_, cart in atoms])
        p.add_point_labels(pts, [el.symbol for _, el, _ in atoms], point_size=0,
                           shape_opacity=0.3, always_visible=True)
    return atoms


def _add_surface(p, vertices, faces, color, style):
    if len(faces) == 0:
        return None
    return p.add_mesh(
        mesh_polydata(vertices, faces),
        color=color,
        opacity=style.opacity,
        smooth_shading=True,
        ambient=style.ambient,
        diffuse=style.diffuse,
        specular=style.specular,
        specular_power=style.specular_power,
    )


def _palette(name: str, n: int) -> List[str]:
    cmap = colormaps[name]
    N = getattr(cmap, 'N', 256)
    if N <= 20:
        return [to_hex(cmap(i % N)) for i in range(n)]
    return [to_hex(cmap(x)) for x in np.linspace(0.0, 1.0, max(n, 1))]


# ----------------------------------------------------------------------------
# Scenes
# ----------------------------------------------------------------------------

def plot_crystal(
    lattice,
    atom_positions,
    atom_ids: Sequence,
    *,
    origin=(0.0, 0.0, 0.0),
    show_labels: bool = False,
    style: SceneStyle = DEFAULT_STYLE,
    plotter: Optional[pv.Plotter] = None,
    show: bool = True,
    off_screen: bool = False,
    screenshot: Optional[str] = None,
):
    """Unit cell, lattice vectors and atoms.

    `lattice` columns are the lattice vectors, `atom_positions` are fractional
    (N, 3), `atom_ids` are atomic numbers or symbols.
    """
    L = check_lattice(lattice)
    p = _new_plotter(plotter, style, off_screen)
    _add_lattice(p, L, origin, style)
    _add_atoms(p, L, atom_positions, atom_ids, style, show_labels=show_labels)
    return _finish(p, show, screenshot)


def plot_wannierfunction(
    origin,
    span_vectors,
    W,
    lattice,
    atom_positions,
    atom_ids: Sequence,
    *,
    iso: Optional[float] = None,
    style: SceneStyle = DEFAULT_STYLE,
    plotter: Optional[pv.Plotter] = None,
    show: bool = True,
    off_screen: bool = False,
    screenshot: Optional[str] = None,
):
    """Real-space Wannier function: crystal plus isosurfaces at +iso and -iso.

    `W` is sampled on the grid spanned by the columns of `span_vectors`
    starting at `origin`. Without `iso` the level is guessed from the
    histogram of `W`. Each surface is drawn only when its level lies inside
    the data range.
    """
    L = check_lattice(lattice)
    W = np.asarray(W, float)
    if iso is None:
        iso = guess_isolevel(W)
        logger.info("guessed isolevel %.6g", iso)

    p = _new_plotter(plotter, style, off_screen)
    _add_lattice(p, L, (0.0, 0.0, 0.0), style)
    _add_atoms(p, L, atom_positions, atom_ids, style)

    lo, hi = float(W.min()), float(W.max())
    drawn = 0
    for level, color in ((iso, style.positive_color), (-iso, style.negative_color)):
        if not lo <= level <= hi:
            logger.debug("isolevel %g outside [%g, %g], skipped", level, lo, hi)
            continue
        verts, faces = mesh3d(origin, span_vectors, W, level)
        if _add_surface(p, verts, faces, color, style) is not None:
            drawn += 1
    if not drawn:
        logger.warning("no isosurface at +/-%g for data in [%g, %g]", iso, lo, hi)

    return _finish(p, show, screenshot)


def plot_fermi_surface(
    origin,
    recip_lattice,
    fermi_energy: float,
    E,
    *,
    kpath: Optional[KPath] = None,
    style: SceneStyle = DEFAULT_STYLE,
    plotter: Optional[pv.Plotter] = None,
    show: bool = True,
    off_screen: bool = False,
    screenshot: Optional[str] = None,
):
    """Fermi surface folded into the first Brillouin zone.

    `E` is (n_bands, nx, ny, nz) on the parallelepiped spanned by the columns
    of `recip_lattice`. The k-path, if given, must share the reciprocal basis.
    """
    B = check_lattice(recip_lattice)
    if kpath is not None and not np.allclose(np.asarray(kpath.basis, float), B, atol=1e-5):
        # bxsf files often carry only 7 significant digits
        raise ValueError("kpath has a different reciprocal lattice")

    p = _new_plotter(plotter, style, off_screen)
    p.add_mesh(wigner_seitz_polydata(B), style='wireframe', color=style.bz_color, line_width=2)

    if kpath is not None:
        lines, pts, labels = kpath_polydata(kpath)
        for line in lines:
            p.add_mesh(line, color=style.kpath_color, line_width=3)
        if labels:
            p.add_point_labels(pts, labels, point_color=style.kpath_color, point_size=8,
                               render_points_as_spheres=True, shape_opacity=0.0)

    sheets = fermi_surface_meshes(origin, B, fermi_energy, E)
    if not sheets:
        logger.warning("no band crosses the Fermi energy %g", fermi_energy)
    colors = _palette(style.fermi_colormap, len(sheets))
    for (ib, verts, faces), color in zip(sheets, colors):
        logger.debug("band %d: %d vertices, %d faces", ib, len(verts), len(faces))
        _add_surface(p, verts, faces, color, style)

    return _finish(p, show, screenshot)


def plot_bvectors(
    recip_lattice,
    kpoints,
    bvectors,
    weights,
    *,
    n_k: int = 1,
    style: SceneStyle = DEFAULT_STYLE,
    plotter: Optional[pv.Plotter] = None,
    show: bool = True,
    off_screen: bool = False,
    screenshot: Optional[str] = None,
):
    """Finite-difference b-vectors.

    Reciprocal lattice as arrows, k-points (fractional, replicated `n_k` times
    per direction) as grey dots, and b-vectors (Cartesian, (n_bvecs, 3)) as
    spheres whose radius scales with the weight; one colour per shell.
    """
    B = check_lattice(recip_lattice)
    bvecs = np.asarray(bvectors, float).reshape(-1, 3)
    w = np.asarray(weights, float).ravel()
    if len(bvecs) != len(w):
        raise ValueError(f"{len(bvecs)} b-vectors but {len(w)} weights")

    p = _new_plotter(plotter, style, off_screen)
    _add_lattice(p, B, (0.0, 0.0, 0.0), style)

    kcart = supercell_kpoints(kpoints, n_k) @ B.T
    if len(kcart):
        p.add_points(kcart, color='grey', point_size=6, render_points_as_spheres=True)

    shells = bvector_shells(w)
    colors = _palette(style.bvector_colormap, len(shells))
    for idx, color in zip(shells, colors):
        for i in idx:
            sphere = pv.Sphere(radius=1e-2 * abs(w[i]), center=bvecs[i])
            p.add_mesh(sphere, color=color, smooth_shading=True)
    return _finish(p, show, screenshot)
