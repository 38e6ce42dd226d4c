"""
CLI for wannier_plots.

Every command reads arrays from an .npz bundle (numpy.savez) and either
shows the figure or writes it with --save.
"""

from __future__ import annotations

from typing import Optional, Sequence
import argparse
import logging

import numpy as np

from . import viz_2d, viz_3d
from .core import KPath

logger = logging.getLogger("wannier_plots")


def _add_common(p: argparse.ArgumentParser):
    p.add_argument("npz", help="Input .npz bundle (see command help for keys)")
    p.add_argument("--save", help="Write the figure/screenshot here instead of only showing it.")
    p.add_argument("--no-show", action="store_true", help="Do not open a window.")


def parse_args(argv: Optional[Sequence[str]] = None):
    p = argparse.ArgumentParser(prog="wannier-plots",
                                description="Plot band structures, DOS, Fermi surfaces and Wannier functions")
    p.add_argument("-v", "--verbose", action="count", default=0,
                   help="-v for INFO, -vv for DEBUG logging.")
    sub = p.add_subparsers(dest="command", required=True)

    # -------------------------------------------------------------------------
    # 2D
    # -------------------------------------------------------------------------
    b = sub.add_parser("band", help="Band structure. Keys: x, eigenvalues (n_kpts, n_bands); "
                                    "optional fermi_energy, symm_point_indices, symm_point_labels.")
    _add_common(b)
    b.add_argument("--shift-fermi", action="store_true", help="Put the Fermi energy at 0.")
    b.add_argument("--compare", help="Second .npz whose eigenvalues are overlaid as dashed red bands.")
    b.add_argument("--color", default="black", help="Line colour for the bands.")

    d = sub.add_parser("dos", help="Density of states. Keys: energies, dos; optional fermi_energy.")
    _add_common(d)
    d.add_argument("--shift-fermi", action="store_true", help="Put the Fermi energy at 0.")
    d.add_argument("--cumdos", action="store_true", help="Overlay the integrated DOS on a twin axis.")
    d.add_argument("--swap-axes", action="store_true", help="Energy on the vertical axis.")

    # -------------------------------------------------------------------------
    # 3D
    # -------------------------------------------------------------------------
    f = sub.add_parser("fermi", help="Fermi surface. Keys: origin, recip_lattice (columns), "
                                     "fermi_energy, E (n_bands, nx, ny, nz); optional kpath_labels, "
                                     "kpath_points (n, 3 fractional).")
    _add_common(f)
    f.add_argument("--fermi-energy", type=float, help="Override the Fermi energy stored in the bundle.")

    w = sub.add_parser("wf", help="Wannier function. Keys: origin, span_vectors, W, lattice, "
                                  "atom_positions (fractional), atom_numbers.")
    _add_common(w)
    w.add_argument("--iso", type=float, help="Isovalue; guessed from the histogram if not given.")

    c = sub.add_parser("crystal", help="Crystal structure. Keys: lattice, atom_positions (fractional), "
                                       "atom_numbers (numbers or symbols).")
    _add_common(c)
    c.add_argument("--labels", action="store_true", help="Label atoms with their symbols.")

    return p.parse_args(argv)


def _optional_float(data, key):
    return float(data[key]) if key in data else None


def _run(args) -> None:
    with np.load(args.npz) as data:
        _dispatch(args, data)


def _dispatch(args, data) -> None:
    show = not args.no_show

    if args.command == "band":
        kwargs = dict(
            fermi_energy=_optional_float(data, "fermi_energy"),
            shift_fermi=args.shift_fermi,
        )
        if "symm_point_indices" in data:
            kwargs["symm_point_indices"] = [int(i) for i in data["symm_point_indices"]]
            kwargs["symm_point_labels"] = [str(s) for s in data["symm_point_labels"]]
        if args.compare:
            with np.load(args.compare) as other:
                compare = other["eigenvalues"]
            viz_2d.plot_band_diff(data["x"], data["eigenvalues"], compare,
                                  save_path=args.save, show=show, **kwargs)
        else:
            viz_2d.plot_band(data["x"], data["eigenvalues"], color=args.color,
                             save_path=args.save, show=show, **kwargs)

    elif args.command == "dos":
        viz_2d.plot_dos(
            data["energies"],
            data["dos"],
            fermi_energy=_optional_float(data, "fermi_energy"),
            shift_fermi=args.shift_fermi,
            cumdos=args.cumdos,
            swap_axes=args.swap_axes,
            save_path=args.save,
            show=show,
        )

    elif args.command == "fermi":
        ef = args.fermi_energy if args.fermi_energy is not None else float(data["fermi_energy"])
        kpath = None
        if "kpath_labels" in data:
            labels = [str(s) for s in data["kpath_labels"]]
            kpath = KPath(
                basis=data["recip_lattice"],
                points=dict(zip(labels, data["kpath_points"])),
                paths=[labels],
            )
        viz_3d.plot_fermi_surface(
            data["origin"],
            data["recip_lattice"],
            ef,
            data["E"],
            kpath=kpath,
            show=show,
            off_screen=not show,
            screenshot=args.save,
        )

    elif args.command == "wf":
        viz_3d.plot_wannierfunction(
            data["origin"],
            data["span_vectors"],
            data["W"],
            data["lattice"],
            data["atom_positions"],
            list(data["atom_numbers"]),
            iso=args.iso,
            show=show,
            off_screen=not show,
            screenshot=args.save,
        )

    elif args.command == "crystal":
        viz_3d.plot_crystal(
            data["lattice"],
            data["atom_positions"],
            list(data["atom_numbers"]),
            show_labels=args.labels,
            show=show,
            off_screen=not show,
            screenshot=args.save,
        )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    level = {0: logging.WARNING, 1: logging.INFO}.get(args.verbose, logging.DEBUG)
    logging.basicConfig(level=level, format="%(levelname)s:%(name)s:%(message)s")

    try:
        _run(args)
    except (OSError, KeyError, ValueError) as e:
        logger.error("%s failed: %s", args.command, e)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
