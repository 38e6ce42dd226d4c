import logging
from typing import Optional, Sequence

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.colors import Normalize

from .utils import energy_label, linear_path, merge_consecutive_labels, symlog, to_unicode

logger = logging.getLogger(__name__)

COLOR_DOS = 'blue'
COLOR_CUMDOS = 'red'


def _get_axes(ax, figsize):
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure
    return fig, ax


def _finish(fig, save_path=None, show=False):
    if save_path:
        fig.savefig(save_path, dpi=300, bbox_inches='tight')
        logger.info("saved figure to %s", save_path)
    if show:
        plt.show()


def _as_band_matrix(eigenvalues) -> np.ndarray:
    E = np.array(eigenvalues, float)
    if E.size == 0:
        raise ValueError("empty eigenvalues")
    if E.ndim == 1:
        E = E[:, None]
    if E.ndim != 2:
        raise ValueError(f"eigenvalues must be (n_kpts, n_bands), got shape {E.shape}")
    return E


def plot_band(
    x,
    eigenvalues,
    *,
    fermi_energy: Optional[float] = None,
    shift_fermi: bool = False,
    symm_point_indices: Optional[Sequence[int]] = None,
    symm_point_labels: Optional[Sequence[str]] = None,
    color='black',
    ylabel: Optional[str] = None,
    label: Optional[str] = None,
    cmap: str = 'RdBu',
    ax=None,
    figsize=(6, 5),
    save_path=None,
    show=False,
    **line_kwargs,
):
    """Band structure along a k-path.

    `eigenvalues` is (n_kpts, n_bands). A string `color` draws every band as a
    line; an array of the same shape as `eigenvalues` draws coloured markers
    with a colorbar instead (e.g. projectabilities). `symm_point_indices` are
    0-based indices into `x`. Extra keyword arguments go to ``ax.plot`` (or
    ``ax.scatter`` in marker mode). `label` is attached to the first band only.
    """
    x = np.asarray(x, float)
    E = _as_band_matrix(eigenvalues)
    nkpts, nbands = E.shape
    if len(x) != nkpts:
        raise ValueError(f"x has {len(x)} points but eigenvalues has {nkpts} kpoints")
    if (symm_point_indices is None) != (symm_point_labels is None):
        raise ValueError("symm_point_indices and symm_point_labels must be given together")
    if symm_point_indices is not None and len(symm_point_indices) != len(symm_point_labels):
        raise ValueError("symm_point_indices and symm_point_labels must have the same length")
    if shift_fermi and fermi_energy is None:
        raise ValueError("shift_fermi is True, but fermi_energy is not given")
    if ylabel is None:
        ylabel = energy_label(shift_fermi)

    if shift_fermi:
        E = E - fermi_energy

    fig, ax = _get_axes(ax, figsize)

    if isinstance(color, str):
        for ib in range(nbands):
            ax.plot(x, E[:, ib], color=color, label=label if ib == 0 else None, **line_kwargs)
    else:
        C = np.asarray(color, float)
        if C.shape != E.shape:
            raise ValueError(f"color array shape {C.shape} does not match eigenvalues {E.shape}")
        norm = Normalize(vmin=float(C.min()), vmax=float(C.max()))
        line_kwargs.setdefault('s', 4)
        sc = None
        for ib in range(nbands):
            sc = ax.scatter(x, E[:, ib], c=C[:, ib], cmap=cmap, norm=norm,
                            label=label if ib == 0 else None, **line_kwargs)
        fig.colorbar(sc, ax=ax)

    ax.set_xlim(x[0], x[-1])
    ax.set_ylim(float(E.min()) - 0.5, float(E.max()) + 0.5)
    ax.set_ylabel(ylabel)
    ax.tick_params(direction='out', top=True, right=True)

    if symm_point_indices is not None:
        labels = to_unicode(symm_point_labels)
        idxs, labels = merge_consecutive_labels(symm_point_indices, labels)
        for i in idxs:
            ax.axvline(x[i], color='black', linewidth=0.2, zorder=0)
        ax.set_xticks([x[i] for i in idxs])
        ax.set_xticklabels(labels)

    if fermi_energy is not None:
        ef = 0.0 if shift_fermi else fermi_energy
        ax.axhline(ef, linestyle='--', color='deepskyblue', zorder=0)

    _finish(fig, save_path, show)
    return fig, ax


def plot_band_path(kpoints, eigenvalues, *, basis=None, break_indices: Sequence[int] = (), **kwargs):
    """Band structure against the distance travelled along a k-path.

    `kpoints` is (n_kpts, 3), Cartesian, or fractional when the reciprocal
    `basis` (columns) is given. A k-point listed in `break_indices` starts a
    new segment and adds no distance. Remaining keyword arguments go to
    `plot_band`.
    """
    K = np.asarray(kpoints, float).reshape(-1, 3)
    if basis is not None:
        K = K @ np.asarray(basis, float).T
    return plot_band(linear_path(K, break_indices), eigenvalues, **kwargs)


def plot_band_diff(x, eigenvalues_1, eigenvalues_2, *, ax=None, figsize=(6, 5),
                   save_path=None, show=False, **kwargs):
    """Overlay two band structures: `eigenvalues_1` grey ("DFT"), `eigenvalues_2` dashed red ("Wan")."""
    fig, ax = plot_band(x, eigenvalues_1, color='grey', label='DFT', ax=ax, figsize=figsize, **kwargs)
    plot_band(x, eigenvalues_2, color='red', linestyle='--', linewidth=0.9, label='Wan', ax=ax, **kwargs)

    E1 = _as_band_matrix(eigenvalues_1)
    E2 = _as_band_matrix(eigenvalues_2)
    shift = kwargs.get('fermi_energy') if kwargs.get('shift_fermi') else 0.0
    lo = min(E1.min(), E2.min()) - shift
    hi = max(E1.max(), E2.max()) - shift
    ax.set_ylim(lo - 0.5, hi + 0.5)

    ax.legend(loc='upper right', framealpha=0.7, edgecolor='lightgrey')
    _finish(fig, save_path, show)
    return fig, ax


def plot_dos(
    x,
    y,
    *,
    fermi_energy: Optional[float] = None,
    shift_fermi: bool = False,
    xlabel: Optional[str] = None,
    ylabel: str = 'DOS (states/eV)',
    cumdos: bool = False,
    swap_axes: bool = False,
    ax=None,
    figsize=(6, 4),
    save_path=None,
    show=False,
):
    """Density of states.

    `cumdos` adds the integrated DOS (number of electrons) on a twin axis;
    `swap_axes` puts energy on the vertical axis.
    """
    x = np.asarray(x, float)
    y = np.asarray(y, float)
    if x.ndim != 1 or x.shape != y.shape or x.size == 0:
        raise ValueError("x and y must be non-empty 1D arrays of equal length")
    if shift_fermi and fermi_energy is None:
        raise ValueError("shift_fermi is True, but fermi_energy is not given")
    if cumdos and x.size < 2:
        raise ValueError("cumdos needs at least two energy points")
    if xlabel is None:
        xlabel = energy_label(shift_fermi)

    ef = None
    if fermi_energy is not None:
        if shift_fermi:
            x = x - fermi_energy
            ef = 0.0
        else:
            ef = fermi_energy

    fig, ax = _get_axes(ax, figsize)
    line_color = COLOR_DOS if cumdos else None
    if swap_axes:
        ax.plot(y, x, color=line_color)
    else:
        ax.plot(x, y, color=line_color)

    e_lim = (x[0], x[-1])
    d_lim = (float(y.min()) - 0.5, float(y.max()) + 0.5)
    e_label, d_label = xlabel, ylabel
    if swap_axes:
        ax.set_xlim(d_lim); ax.set_ylim(e_lim)
        ax.set_xlabel(d_label); ax.set_ylabel(e_label)
        ax.axvline(0.0, linestyle='--', color='grey', linewidth=0.5, zorder=0)
        if ef is not None:
            ax.axhline(ef, linestyle='--', color='black', linewidth=0.5, label='Fermi energy')
    else:
        ax.set_xlim(e_lim); ax.set_ylim(d_lim)
        ax.set_xlabel(e_label); ax.set_ylabel(d_label)
        ax.axhline(0.0, linestyle='--', color='grey', linewidth=0.5, zorder=0)
        if ef is not None:
            ax.axvline(ef, linestyle='--', color='black', linewidth=0.5, label='Fermi energy')

    if cumdos:
        dE = x[1] - x[0]
        cdos = np.cumsum(y) * dE
        if swap_axes:
            ax2 = ax.twiny()
            ax2.plot(cdos, x, color=COLOR_CUMDOS, label='n_electrons')
            ax2.set_xlabel('Number of electrons', color=COLOR_CUMDOS)
            ax.xaxis.label.set_color(COLOR_DOS)
        else:
            ax2 = ax.twinx()
            ax2.plot(x, cdos, color=COLOR_CUMDOS, label='n_electrons')
            ax2.set_ylabel('Number of electrons', color=COLOR_CUMDOS)
            ax.yaxis.label.set_color(COLOR_DOS)

    _finish(fig, save_path, show)
    return fig, ax


def plot_wannier_convergence(iterations: dict, *, xscale: str = 'linear', figsize=(7, 6),
                             save_path=None, show=False):
    """Convergence of disentanglement and maximal localisation.

    `iterations` mirrors a parsed .wout file::

        {"disentangle": {"iter": [...], "omega_i": [...]},          # optional
         "wannierize": {"iter": [...], "omega_total": [...], "sum_centers": (n, 3)}}
    """
    if 'wannierize' not in iterations:
        raise ValueError("iterations must contain a 'wannierize' entry")
    has_dis = 'disentangle' in iterations
    nrows = 2 if has_dis else 1
    fig, axes = plt.subplots(nrows, 1, figsize=figsize, squeeze=False)
    axes = axes[:, 0]

    def _x(it):
        x = np.asarray(it, float)
        if xscale == 'log' and x.size and x[0] == 0:
            x = x + 1
        return x

    if has_dis:
        dis = iterations['disentangle']
        ax = axes[0]
        ax.plot(_x(dis['iter']), dis['omega_i'], label=r'$\Omega_{\mathrm{I}}$')
        ax.set_title('Disentanglement convergence')
        ax.set_xlabel('Iteration')
        ax.set_ylabel(r'$\Omega_{\mathrm{I}}~(\AA^2)$')
        ax.set_xscale(xscale)

    wan = iterations['wannierize']
    x = _x(wan['iter'])
    ax1 = axes[-1]
    ax1.set_title('Maximal localization convergence')
    ax1.set_xlabel('Iteration')
    ax1.set_ylabel(r'$\Omega~(\AA^2)$')
    ax1.set_xscale(xscale)
    lines = ax1.plot(x, wan['omega_total'], color='black', label=r'$\Omega$')

    ax2 = ax1.twinx()
    ax2.set_ylabel(r'$r~(\AA)$')
    centers = np.asarray(wan['sum_centers'], float).reshape(-1, 3)
    for c, name in enumerate('xyz'):
        lines += ax2.plot(x, centers[:, c], label=f'$r_{name}$')
    ax1.legend(lines, [ln.get_label() for ln in lines])

    fig.tight_layout()
    _finish(fig, save_path, show)
    return fig, axes


def plot_matrix(m, *, cmap: str = 'RdBu_r', symlog_threshold: Optional[float] = None, ax=None,
                figsize=(6, 5), save_path=None, show=False):
    """Heatmap of a real matrix with a colour range symmetric around zero.

    With `symlog_threshold` the entries are shown on a symmetric log scale,
    linear inside [-threshold, threshold].
    """
    M = np.asarray(m, float)
    if M.ndim != 2:
        raise ValueError("plot_matrix expects a 2D array")
    if symlog_threshold is not None:
        M = symlog(symlog_threshold)(M)
    nr, nc = M.shape
    mc = float(np.abs(M).max()) if M.size else 0.0
    if mc == 0.0:
        mc = 1.0

    fig, ax = _get_axes(ax, figsize)
    im = ax.imshow(M, cmap=cmap, vmin=-mc, vmax=mc, origin='upper', aspect='auto')
    ax.set_xticks(range(nc))
    ax.set_xticklabels([str(i + 1) for i in range(nc)])
    ax.set_yticks(range(nr))
    ax.set_yticklabels([str(i + 1) for i in range(nr)])
    fig.colorbar(im, ax=ax)
    _finish(fig, save_path, show)
    return fig, ax
