from __future__ import annotations

import logging
from itertools import product
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.spatial import Voronoi
from skimage.measure import marching_cubes

from .errors import InvalidLatticeError, MalformedMeshError

logger = logging.getLogger(__name__)

# closed walk over the 12 edges of the unit parallelepiped (fractional)
_PARALLELEPIPED_WALK = np.array([
    [0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0],
    [0, 0, 0], [0, 0, 1], [1, 0, 1], [1, 0, 0],
    [1, 1, 0], [1, 1, 1], [1, 0, 1], [1, 1, 1],
    [0, 1, 1], [0, 1, 0], [0, 1, 1], [0, 0, 1],
], float)


# ----------------------------------------------------------------------------
# Input validation
# ----------------------------------------------------------------------------

def check_lattice(basis, tol: float = 1e-8) -> np.ndarray:
    """Return `basis` as a float (3, 3) array; columns are the lattice vectors.

    Raises InvalidLatticeError if the matrix is not finite or if the volume
    normalised by the vector lengths, |det B| / (|b1| |b2| |b3|), is below `tol`.
    """
    B = np.asarray(basis, float)
    if B.shape != (3, 3):
        raise InvalidLatticeError("lattice basis must be a 3x3 matrix", {"shape": B.shape})
    if not np.all(np.isfinite(B)):
        raise InvalidLatticeError("lattice basis contains non-finite entries")
    norms = np.linalg.norm(B, axis=0)
    if np.any(norms == 0.0):
        raise InvalidLatticeError("lattice basis has a zero-length vector", {"norms": norms.tolist()})
    skew = abs(np.linalg.det(B)) / float(np.prod(norms))
    if skew < tol:
        raise InvalidLatticeError("lattice basis is singular or ill-conditioned",
                                  {"normalized_det": skew, "tol": tol})
    return B


def _check_vertices(vertices) -> np.ndarray:
    V = np.asarray(vertices, float)
    if V.size == 0:
        return np.empty((0, 3), float)
    if V.ndim != 2 or V.shape[1] != 3:
        raise MalformedMeshError("vertices must be shaped (N, 3)", {"shape": V.shape})
    bad = ~np.all(np.isfinite(V), axis=1)
    if np.any(bad):
        raise MalformedMeshError("vertices contain non-finite coordinates",
                                 {"first_bad": int(np.flatnonzero(bad)[0])})
    return V


def _check_faces(faces, n_vertices: int) -> np.ndarray:
    F = np.asarray(faces)
    if F.size == 0:
        return np.empty((0, 3), int)
    if F.ndim != 2 or F.shape[1] != 3:
        raise MalformedMeshError("faces must be shaped (M, 3)", {"shape": F.shape})
    if not np.issubdtype(F.dtype, np.integer):
        if not np.issubdtype(F.dtype, np.floating) or np.any(np.mod(F, 1) != 0):
            raise MalformedMeshError("faces must hold integer vertex indices", {"dtype": str(F.dtype)})
        F = F.astype(int)
    if F.min() < 0 or F.max() >= n_vertices:
        raise MalformedMeshError("face index out of range",
                                 {"min": int(F.min()), "max": int(F.max()), "n_vertices": n_vertices})
    return F


# ----------------------------------------------------------------------------
# Wigner-Seitz reduction
# ----------------------------------------------------------------------------

def _neighbour_shifts(n_shell: int) -> np.ndarray:
    """Integer shifts in [-n_shell, n_shell]^3, zero shift first."""
    rng = range(-n_shell, n_shell + 1)
    shifts = [s for s in product(rng, repeat=3) if any(s)]
    return np.array([(0, 0, 0)] + shifts, float)


def _gram_schmidt(R: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Orthogonalised columns of `R` and the projection coefficients mu[i, j]."""
    Bs = np.zeros_like(R)
    mu = np.eye(3)
    for i in range(3):
        v = R[:, i].copy()
        for j in range(i):
            mu[i, j] = (R[:, i] @ Bs[:, j]) / (Bs[:, j] @ Bs[:, j])
            v -= mu[i, j] * Bs[:, j]
        Bs[:, i] = v
    return Bs, mu


def reduce_basis(basis, delta: float = 0.75, tol: float = 1e-8) -> Tuple[np.ndarray, np.ndarray]:
    """LLL-reduce the lattice vectors (columns) of `basis`.

    Returns (reduced, U) with reduced = basis @ U and U a unimodular integer
    matrix. The reduced basis spans the same lattice with short, nearly
    orthogonal vectors.
    """
    B = check_lattice(basis, tol=tol)
    R = B.copy()
    U = np.eye(3, dtype=int)
    k = 1
    while k < 3:
        for j in range(k - 1, -1, -1):
            _, mu = _gram_schmidt(R)
            q = int(np.rint(mu[k, j]))
            if q:
                R[:, k] -= q * R[:, j]
                U[:, k] -= q * U[:, j]
        Bs, mu = _gram_schmidt(R)
        if Bs[:, k] @ Bs[:, k] >= (delta - mu[k, k - 1] ** 2) * (Bs[:, k - 1] @ Bs[:, k - 1]):
            k += 1
        else:
            R[:, [k - 1, k]] = R[:, [k, k - 1]]
            U[:, [k - 1, k]] = U[:, [k, k - 1]]
            k = max(k - 1, 1)
    return B @ U, U


def _descent_shifts(R: np.ndarray, n_shell: Optional[int] = None) -> np.ndarray:
    """Integer shifts along `R` (zero first) holding every Voronoi-relevant vector.

    A relevant vector is at most twice the covering radius long, which is
    bounded by sqrt(sum |r_i|^2).
    """
    reach = float(np.sqrt(np.sum(R ** 2)))
    if n_shell is None:
        rows = np.linalg.norm(np.linalg.inv(R), axis=1)
        n_shell = max(1, int(np.ceil(reach * rows.max() - 1e-9)))
    shifts = _neighbour_shifts(n_shell)
    keep = np.linalg.norm(shifts @ R.T, axis=1) <= reach * (1.0 + 1e-9)
    return shifts[keep]


def _descend(g: np.ndarray, R: np.ndarray, shifts: np.ndarray, atol: float) -> np.ndarray:
    """Step each point to a closer image until no shift improves it (in place)."""
    active = np.ones(len(g), bool)
    while active.any():
        idx = np.flatnonzero(active)
        cand = g[idx][:, None, :] + shifts[None, :, :]
        cart = cand @ R.T
        d2 = np.einsum("nsi,nsi->ns", cart, cart)
        dmin = d2.min(axis=1)
        thr = dmin + atol * np.maximum(1.0, dmin)
        best = np.argmax(d2 <= thr[:, None], axis=1)
        g[idx] = cand[np.arange(len(idx)), best]
        active[idx] = best != 0
    return g


def reduce_to_wigner_seitz(frac, basis, n_shell: Optional[int] = None, atol: float = 1e-10,
                           tol: float = 1e-8, chunk: int = 4096) -> np.ndarray:
    """Map fractional coordinates onto their image closest to the origin.

    `frac` is a single point (3,) or an array (N, 3); `basis` holds the lattice
    vectors as columns. The returned points differ from the input by integer
    vectors.

    The search runs in the LLL-reduced basis: points are wrapped into
    [-0.5, 0.5) along the reduced vectors, then moved by Voronoi-relevant
    shifts while that brings them closer. Ties within `atol` keep the input
    point itself, then the current image, then the first shift in `product`
    order. `n_shell` overrides the shift range derived from the reduced basis.
    """
    B = np.asarray(basis, float)
    pts = np.asarray(frac, float)
    single = pts.ndim == 1
    pts = np.atleast_2d(pts)
    if len(pts) == 0:
        return pts.reshape(0, 3)

    R, U = reduce_basis(B, tol=tol)
    shifts = _descent_shifts(R, n_shell)

    # coordinates along the reduced vectors
    g = pts @ np.rint(np.linalg.inv(U)).T
    g = g - np.floor(g + 0.5)
    for lo in range(0, len(g), chunk):
        _descend(g[lo:lo + chunk], R, shifts, atol)
    reduced = g @ U.T

    c_in, c_out = pts @ B.T, reduced @ B.T
    d_in = np.einsum("ni,ni->n", c_in, c_in)
    d_out = np.einsum("ni,ni->n", c_out, c_out)
    keep = d_in <= d_out + atol * np.maximum(1.0, d_out)
    reduced[keep] = pts[keep]
    return reduced[0] if single else reduced


def lattice_translations(basis, vertices, *, tol: float = 1e-8) -> Tuple[np.ndarray, np.ndarray]:
    """Move Cartesian `vertices` into the Wigner-Seitz cell of `basis`.

    Returns the moved vertices (N, 3) and the integer fractional translation
    applied to each of them (N, 3).
    """
    B = check_lattice(basis, tol=tol)
    V = _check_vertices(vertices)
    if len(V) == 0:
        return V.copy(), np.empty((0, 3), int)
    frac = V @ np.linalg.inv(B).T
    reduced = reduce_to_wigner_seitz(frac, B, tol=tol)
    trans = np.rint(reduced - frac).astype(int)
    return reduced @ B.T, trans


def translate_into_cell(basis, vertices, faces, *, tol: float = 1e-8) -> Tuple[np.ndarray, np.ndarray]:
    """Translate a periodic isosurface into the first Wigner-Seitz cell.

    The mesh comes from a parallelepiped spanned by `basis` (columns). Every
    vertex is moved to its periodic image closest to the origin; faces whose
    three vertices were not moved by the same lattice translation would join
    different periodic images and are dropped. Vertices are never removed or
    reindexed, and surviving faces keep their order.

    The sampling grid stores the periodic images of its left edge as its right
    edge, so dropping faces leaves no holes and nothing is reconnected.
    """
    B = check_lattice(basis, tol=tol)
    V = _check_vertices(vertices)
    F = _check_faces(faces, len(V))

    moved, trans = lattice_translations(B, V, tol=tol)
    if len(F) == 0:
        return moved, F

    t = trans[F]
    intact = np.all(t[:, 0] == t[:, 1], axis=1) & np.all(t[:, 0] == t[:, 2], axis=1)
    logger.debug("translate_into_cell: %d vertices, %d/%d faces broken",
                 len(V), int((~intact).sum()), len(F))
    return moved, F[intact]


def wigner_seitz_cell(basis, n_shell: int = 2) -> Tuple[np.ndarray, List[List[int]]]:
    """Vertices and polygon faces of the Wigner-Seitz cell around the origin.

    Faces are vertex-index lists ordered counter-clockwise seen from outside.
    For a reciprocal basis this is the first Brillouin zone. Lattice points
    are generated along the LLL-reduced basis.
    """
    B, _ = reduce_basis(basis)
    ns = np.array(list(product(range(-n_shell, n_shell + 1), repeat=3)), float)
    points = ns @ B.T
    center = len(points) // 2
    vor = Voronoi(points)

    polys, normals = [], []
    for (p, q), ridge in zip(vor.ridge_points, vor.ridge_vertices):
        if center not in (p, q) or -1 in ridge:
            continue
        other = q if p == center else p
        polys.append(list(ridge))
        normals.append(points[other] - points[center])

    # qhull splits degenerate corners (e.g. cubic lattices) into coincident
    # vertices; merge them and drop ridges that collapse to an edge or point
    used = sorted({i for poly in polys for i in poly})
    scale = float(np.linalg.norm(B, axis=0).max())
    keys = np.round(vor.vertices[used] / scale, 8)
    _, first, inverse = np.unique(keys, axis=0, return_index=True, return_inverse=True)
    inverse = np.ravel(inverse)
    remap = {old: int(inverse[k]) for k, old in enumerate(used)}
    verts = vor.vertices[used][first]

    faces = []
    for poly, n in zip(polys, normals):
        idx = np.array(list(dict.fromkeys(remap[i] for i in poly)))
        if len(idx) < 3:
            continue
        pts = verts[idx]
        c = pts.mean(axis=0)
        n = n / np.linalg.norm(n)
        u = pts[0] - c
        u /= np.linalg.norm(u)
        w = np.cross(n, u)
        ang = np.arctan2((pts - c) @ w, (pts - c) @ u)
        faces.append(idx[np.argsort(ang)].tolist())
    return verts, faces


# ----------------------------------------------------------------------------
# Isosurfaces
# ----------------------------------------------------------------------------

def guess_isolevel(W, percent: float = 0.97, nbins: int = 100) -> float:
    """Isovalue at the upper edge of the histogram bin where the cumulative fraction reaches `percent`."""
    data = np.ravel(np.asarray(W, float))
    counts, edges = np.histogram(data, bins=nbins)
    cum = np.cumsum(counts) / data.size
    i = int(np.argmax(cum >= percent))
    return float(edges[i + 1])


def mesh3d(origin, lattice, W, iso: float) -> Tuple[np.ndarray, np.ndarray]:
    """Marching-cubes isosurface of `W` sampled on a parallelepiped grid.

    Grid point (i, j, k) sits at origin + lattice @ (i/(nx-1), j/(ny-1), k/(nz-1)),
    i.e. the columns of `lattice` span the whole grid. Returns Cartesian
    vertices (N, 3) and faces (M, 3); both are empty when `iso` lies outside
    the data range.
    """
    W = np.asarray(W, float)
    if W.ndim != 3 or min(W.shape) < 2:
        raise ValueError(f"need a 3D grid with at least 2 points per axis, got shape {W.shape}")
    O = np.asarray(origin, float).reshape(3)
    L = np.asarray(lattice, float)

    lo, hi = float(W.min()), float(W.max())
    if not lo <= iso <= hi:
        logger.debug("mesh3d: iso=%g outside data range [%g, %g]", iso, lo, hi)
        return np.empty((0, 3), float), np.empty((0, 3), int)

    direction = "descent" if iso >= 0 else "ascent"
    verts, faces, _, _ = marching_cubes(W, level=iso, gradient_direction=direction)
    frac = verts / (np.array(W.shape, float) - 1.0)
    return O + frac @ L.T, faces.astype(int)


# ----------------------------------------------------------------------------
# Lattice helpers
# ----------------------------------------------------------------------------

def lattice_lines(lattice, origin=(0.0, 0.0, 0.0)) -> np.ndarray:
    """(16, 3) points walking every edge of the cell spanned by the columns of `lattice`."""
    L = np.asarray(lattice, float)
    return _PARALLELEPIPED_WALK @ L.T + np.asarray(origin, float)


def supercell_kpoints(kpoints, n_k: int = 1) -> np.ndarray:
    """Replicate fractional k-points (N, 3) over n_k images along each reciprocal vector."""
    K = np.asarray(kpoints, float).reshape(-1, 3)
    if n_k < 1:
        raise ValueError("n_k must be >= 1")
    shifts = np.array(list(product(range(n_k), repeat=3)), float)
    return (shifts[:, None, :] + K[None, :, :]).reshape(-1, 3)


def bvector_shells(weights, rtol: float = 1e-5, atol: float = 1e-8) -> List[np.ndarray]:
    """Group b-vector indices into shells of equal weight, in order of first appearance."""
    w = np.asarray(weights, float).ravel()
    seen = np.zeros(len(w), bool)
    shells = []
    for i in range(len(w)):
        if seen[i]:
            continue
        mask = np.isclose(w, w[i], rtol=rtol, atol=atol) & ~seen
        seen |= mask
        shells.append(np.flatnonzero(mask))
    return shells


# ----------------------------------------------------------------------------
# Fermi surfaces
# ----------------------------------------------------------------------------

@dataclass
class KPath:
    """High-symmetry path in reciprocal space.

    `basis` holds the reciprocal lattice vectors as columns, `points` maps a
    label to fractional coordinates and `paths` lists the label sequences to
    connect (one list per continuous segment).
    """
    basis: np.ndarray
    points: Dict[str, Sequence[float]]
    paths: List[List[str]] = field(default_factory=list)

    def cartesian(self, label: str) -> np.ndarray:
        return np.asarray(self.basis, float) @ np.asarray(self.points[label], float)


def fermi_surface_meshes(origin, recip_lattice, fermi_energy: float, E) -> List[Tuple[int, np.ndarray, np.ndarray]]:
    """Fermi-surface sheets folded into the first Brillouin zone.

    `E` is (n_bands, nx, ny, nz) sampled on the parallelepiped spanned by the
    columns of `recip_lattice`. Returns (band_index, vertices, faces) for every
    band that crosses `fermi_energy`.
    """
    B = check_lattice(recip_lattice)
    E = np.asarray(E, float)
    if E.ndim != 4:
        raise ValueError(f"E must be (n_bands, nx, ny, nz), got shape {E.shape}")

    sheets = []
    for ib in range(E.shape[0]):
        Ei = E[ib]
        if Ei.max() < fermi_energy or Ei.min() > fermi_energy:
            logger.debug("band %d does not cross the Fermi level", ib)
            continue
        verts, faces = mesh3d(origin, B, Ei, fermi_energy)
        verts, faces = translate_into_cell(B, verts, faces)
        sheets.append((ib, verts, faces))
    logger.info("%d of %d bands cross the Fermi level", len(sheets), E.shape[0])
    return sheets
