import logging
import math

import numpy as np
import pytest

from leedpy.core.beams import _beam_sets, generate_beams, incident_k_parallel, select_beams
from leedpy.core.types import K_TOLERANCE, SurfaceLattice


def _square_lattice(a: float = 4.8, superstructure=None, dmin: float = 3.4) -> SurfaceLattice:
    if superstructure is None:
        superstructure = np.eye(2)
    return SurfaceLattice(a1=np.array([a, 0.0]), a2=np.array([0.0, a]), superstructure=superstructure, dmin=dmin)


def test_incident_k_parallel_normal_and_oblique() -> None:
    assert np.allclose(incident_k_parallel(3.0, 0.0, 0.0), [0.0, 0.0])
    k_in = incident_k_parallel(2.0, math.pi / 6.0, math.pi / 2.0)
    assert np.allclose(k_in, [0.0, 1.0], atol=1e-12)


def test_generate_beams_specular_first_and_ordered() -> None:
    lattice = _square_lattice()
    beams = generate_beams(4.0, lattice, 0.0, 0.0, 0.0, 1e-3)

    assert len(beams) > 1
    assert beams[0].ind1 == 0.0 and beams[0].ind2 == 0.0
    k_par = beams.k_par
    assert np.all(np.diff(k_par) > -K_TOLERANCE)

    # within equal-|g| bands the indices ascend lexicographically
    for prev, cur in zip(beams.beams[:-1], beams.beams[1:]):
        if abs(cur.k_par - prev.k_par) < K_TOLERANCE:
            assert (prev.ind1, prev.ind2) < (cur.ind1, cur.ind2)


def test_generate_beams_matches_brute_force_count() -> None:
    lattice = _square_lattice()
    energy = 4.0
    epsilon = 1e-3
    beams = generate_beams(energy, lattice, 0.0, 0.0, 0.0, epsilon)

    k_max_2 = (math.log(epsilon) / lattice.dmin) ** 2 + 2.0 * energy
    g1, g2 = lattice.reciprocal
    expected = 0
    for n1 in range(-30, 31):
        for n2 in range(-30, 31):
            g = n1 * g1 + n2 * g2
            if g @ g <= k_max_2:
                expected += 1
    assert len(beams) == expected
    assert np.allclose(beams.akz, 1.0 / lattice.area)


def test_generate_beams_superstructure_sets() -> None:
    lattice = _square_lattice(superstructure=np.array([[2.0, 0.0], [0.0, 1.0]]))
    beams = generate_beams(3.0, lattice, 0.0, 0.0, 0.0, 1e-3)

    assert set(beams.set_id.tolist()) == {0, 1}
    for beam in beams:
        frac = beam.ind1 - math.floor(beam.ind1)
        if beam.set_id == 0:
            assert frac == pytest.approx(0.0)
        else:
            assert frac == pytest.approx(0.5)
        assert beam.ind2 == pytest.approx(round(beam.ind2))


def test_generate_beams_rejects_negative_inner_energy() -> None:
    with pytest.raises(ValueError):
        generate_beams(0.1, _square_lattice(), 0.0, 0.0, 0.5, 1e-3)


def test_select_beams_keeps_order_and_damps_evanescent_waves() -> None:
    lattice = _square_lattice()
    all_beams = generate_beams(4.0, lattice, 0.0, 0.0, 0.0, 1e-3)
    k_in = incident_k_parallel(2.0, math.radians(10.0), 0.0)
    selected = select_beams(all_beams, 2.0 + 0.15j, 1e-3, lattice.dmin, k_in)

    assert 0 < len(selected) <= len(all_beams)
    order = {(b.ind1, b.ind2): i for i, b in enumerate(all_beams)}
    positions = [order[(b.ind1, b.ind2)] for b in selected]
    assert positions == sorted(positions)

    assert np.all(selected.kz.imag >= 0.0)
    assert np.allclose(selected.kx, [b.g[0] + k_in[0] for b in selected])
    assert np.allclose(selected.akz * selected.kz, 1.0 / lattice.area)
    assert np.allclose(selected.kz**2 + selected.k_par_total, 2.0 * (2.0 + 0.15j))
    assert np.allclose(selected.k, np.sqrt(2.0 * (2.0 + 0.15j)))
    assert np.allclose(selected.k_par, [b.g @ b.g for b in selected])


def test_select_beams_ordered_by_k_par_at_oblique_incidence() -> None:
    lattice = _square_lattice()
    energy = 4.0 + 0.15j
    all_beams = generate_beams(energy.real, lattice, 0.0, 0.0, 0.0, 1e-3)
    k_in = incident_k_parallel(energy.real, math.radians(30.0), 0.0)
    selected = select_beams(all_beams, energy, 1e-3, lattice.dmin, k_in)

    assert selected[0].ind1 == 0.0 and selected[0].ind2 == 0.0
    assert np.all(np.diff(selected.k_par) > -K_TOLERANCE)
    # the specular beam carries the full incident momentum
    assert selected[0].k_par_total == pytest.approx(float(k_in @ k_in))
    assert np.allclose(selected.k_par_total, selected.kx**2 + selected.ky**2)


@pytest.mark.parametrize(
    "superstructure",
    [
        [[-1, 0], [-2, 3]],
        [[4, 4], [-2, -3]],
        [[-2, 4], [1, 4]],
        [[2, 1], [-1, 2]],
        [[3, -1], [1, 1]],
        [[0, 2], [-3, 1]],
    ],
)
def test_beam_sets_complete_for_skewed_superstructures(superstructure, caplog) -> None:
    mat = np.array(superstructure, dtype=float)
    lattice = _square_lattice(superstructure=mat)
    with caplog.at_level(logging.WARNING, logger="leedpy.core.beams"):
        sets = _beam_sets(lattice)

    assert len(sets) == round(abs(np.linalg.det(mat)))
    assert "Wrong number of beam sets" not in caplog.text
    assert np.allclose(sets[0][0], 0.0)
    offsets = np.array([ind for ind, _ in sets])
    assert np.all(offsets >= 0.0) and np.all(offsets < 1.0)
    # every set is an integer combination of the superstructure reciprocal rows
    for ind in offsets[1:]:
        coeff = ind @ np.linalg.inv(lattice.m_recip)
        assert np.allclose(coeff, np.round(coeff), atol=1e-8)


def test_beam_set_count_mismatch_is_logged(caplog) -> None:
    # a non-integer matrix yields more offsets than round(|det M|)
    lattice = _square_lattice(superstructure=np.array([[1.5, 0.0], [0.0, 1.0]]))
    with caplog.at_level(logging.WARNING, logger="leedpy.core.beams"):
        sets = _beam_sets(lattice)
    assert "Wrong number of beam sets found: 3, expected 2" in caplog.text
    assert len(sets) == 3
