import logging

import numpy as np
import pytest

from leedpy.core.harmonics import lm_arrays
from leedpy.core.lattice_sum import (
    R_MAX_WARNING,
    cutoff_radius,
    lattice_sum_between_layers,
    lattice_sum_same_layer,
)
from leedpy.core.types import SurfaceLattice


def _lattice() -> SurfaceLattice:
    return SurfaceLattice(a1=np.array([4.8, 0.0]), a2=np.array([0.0, 4.8]), dmin=3.4)


def _wave_number() -> complex:
    return complex(np.sqrt(2.0 * (2.0 + 0.5j)))


def test_cutoff_radius_requires_damping() -> None:
    with pytest.raises(ValueError):
        cutoff_radius(2.0 + 0.0j, 1e-3)
    assert cutoff_radius(2.0 + 0.5j, 1e-3) == pytest.approx(-np.log(1e-3) / 0.5)
    assert cutoff_radius(2.0 + 0.5j, 20.0) == pytest.approx(20.0)


def test_minus_sum_equals_plus_sum_of_reversed_vector() -> None:
    k = _wave_number()
    k_in = np.array([0.3, 0.1])
    d = np.array([1.2, 0.7, 2.5])
    _, llm_m = lattice_sum_between_layers(k, k_in, _lattice(), d, 4, 1e-3)
    llm_p_rev, _ = lattice_sum_between_layers(k, k_in, _lattice(), -d, 4, 1e-3)
    assert llm_m.shape == (25,)
    assert np.allclose(llm_m, llm_p_rev, rtol=1e-10, atol=1e-12)


def test_same_layer_sum_is_zero_vector_limit() -> None:
    k = _wave_number()
    k_in = np.array([0.2, -0.4])
    llm_ii = lattice_sum_same_layer(k, k_in, _lattice(), 4, 1e-3)
    llm_p, llm_m = lattice_sum_between_layers(k, k_in, _lattice(), np.zeros(3), 4, 1e-3)
    assert np.allclose(llm_ii, llm_p)
    assert np.allclose(llm_p, llm_m, rtol=1e-10, atol=1e-12)


def test_in_plane_sum_vanishes_for_odd_l_plus_m() -> None:
    llm = lattice_sum_same_layer(_wave_number(), np.array([0.2, 0.1]), _lattice(), 5, 1e-3)
    ls, ms = lm_arrays(5)
    odd = (ls + ms) % 2 == 1
    scale = np.max(np.abs(llm))
    assert scale > 0.0
    assert np.all(np.abs(llm[odd]) < 1e-10 * scale)
    assert np.any(np.abs(llm[~odd]) > 1e-6 * scale)


def test_between_layers_rejects_bad_vector() -> None:
    with pytest.raises(ValueError):
        lattice_sum_between_layers(_wave_number(), np.zeros(2), _lattice(), np.zeros(2), 2, 1e-3)


def test_weak_damping_cutoff_is_logged(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="leedpy.core.lattice_sum"):
        r_max = cutoff_radius(2.0 + 0.001j, 1e-3)
    assert r_max == pytest.approx(-np.log(1e-3) / 0.001)
    assert r_max > R_MAX_WARNING
    assert "is very large" in caplog.text

    caplog.clear()
    with caplog.at_level(logging.WARNING, logger="leedpy.core.lattice_sum"):
        cutoff_radius(2.0 + 0.5j, 1e-3)
    assert caplog.text == ""


def test_monopole_sum_over_nearest_neighbour_shell() -> None:
    # a 5 Bohr cutoff keeps only the four neighbours at distance a = 4.8
    a = 4.8
    k = _wave_number()
    k_in = np.array([0.3, 0.1])
    llm = lattice_sum_same_layer(k, k_in, _lattice(), 2, 5.0)

    # -8 pi k i * Y00 * h0(ka), summed with the Bloch phases exp(-i k_in . p)
    bloch = 2.0 * np.cos(k_in[0] * a) + 2.0 * np.cos(k_in[1] * a)
    expected = -8.0 * np.pi / np.sqrt(4.0 * np.pi) * np.exp(1j * k * a) / a * bloch
    assert llm[0] == pytest.approx(expected, rel=1e-12)
