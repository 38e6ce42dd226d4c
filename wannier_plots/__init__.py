"""
wannier_plots — plots for Wannier-function and band-structure calculations.

`wannier_plots` turns in-memory results of electronic-structure codes into
figures: band structures and density of states with matplotlib, crystal
structures, real-space Wannier functions, Fermi surfaces and b-vector
stencils with PyVista. Reading the physics files (bxsf, xsf, cube, wout)
is left to the caller; everything here takes numpy arrays.

Typical usage (CLI):
    python -m wannier_plots fermi bands.npz
    python -m wannier_plots band bands.npz --shift-fermi --save band.png

Lattice matrices hold their vectors as columns; point sets are (N, 3) rows.

Fermi surfaces are computed on the parallelepiped spanned by the reciprocal
lattice, so each band's isosurface is folded into the first Brillouin zone
(`core.translate_into_cell`): vertices move to their periodic image nearest
to Gamma and faces straddling two images are dropped.

Internal modules:
- cli.py       : argument parsing and the command-line interface.
- core.py      : lattice checks, Wigner-Seitz reduction, mesh folding,
                 marching-cubes isosurfaces, Brillouin zone polyhedron.
- errors.py    : InvalidLatticeError, MalformedMeshError.
- utils.py     : element lookup, k-point labels, colour helpers.
- viz_2d.py    : band structure, DOS, convergence and matrix figures.
- viz_3d.py    : crystal, Wannier function, Fermi surface, b-vector scenes.

Version: 0.1.0
"""

__all__ = [
    "cli",
    "core",
    "errors",
    "utils",
    "viz_2d",
    "viz_3d",
]

__version__ = "0.1.0"
