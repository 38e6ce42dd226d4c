"""
Pytest configuration: headless matplotlib and shared lattice fixtures.
"""

import matplotlib
matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pytest


@pytest.fixture(autouse=True)
def _close_figures():
    yield
    plt.close("all")


@pytest.fixture
def cubic():
    return np.eye(3)


@pytest.fixture
def fcc_reciprocal():
    """Reciprocal lattice of fcc (a bcc lattice), columns are b1, b2, b3."""
    return np.array([
        [-1.0, 1.0, 1.0],
        [1.0, -1.0, 1.0],
        [1.0, 1.0, -1.0],
    ]).T * 2 * np.pi


def periodic_band(n=17, shift=0.0):
    """Simple-cubic tight-binding band on a grid that includes both cell edges."""
    k = np.linspace(0.0, 1.0, n)
    kx, ky, kz = np.meshgrid(k, k, k, indexing="ij")
    return -(np.cos(2 * np.pi * kx) + np.cos(2 * np.pi * ky) + np.cos(2 * np.pi * kz)) + shift


@pytest.fixture
def band_grid():
    return periodic_band
