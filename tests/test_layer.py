import numpy as np
import pytest

from leedpy.core import matrix
from leedpy.core.beams import generate_beams, select_beams
from leedpy.core.context import LeedContext
from leedpy.core.doubling import combine_layers
from leedpy.core.errors import InvalidInputMatrix
from leedpy.core.layer import assemble_composite, coupling_mask, sort_atoms_by_plane, working_l_max
from leedpy.core.tmatrix import tl_from_phase_shifts
from leedpy.core.types import Atom, Layer, LayerMatrices, SurfaceLattice


ENERGY = 2.0 + 0.5j
EPSILON = 1e-3


def _lattice(superstructure=None) -> SurfaceLattice:
    if superstructure is None:
        superstructure = np.eye(2)
    return SurfaceLattice(a1=np.array([4.8, 0.0]), a2=np.array([0.0, 4.8]), superstructure=superstructure, dmin=3.4)


def _beams(lattice: SurfaceLattice):
    k_in = np.zeros(2)
    all_beams = generate_beams(ENERGY.real, lattice, 0.0, 0.0, 0.0, EPSILON)
    return select_beams(all_beams, ENERGY, EPSILON, lattice.dmin, k_in), k_in


def _layer(atoms, lattice=None) -> Layer:
    return Layer(atoms=tuple(atoms), lattice=lattice or _lattice())


def _tmatrices():
    return [tl_from_phase_shifts(np.array([1.1, 0.7, 0.35, 0.12])), np.zeros(4, dtype=complex)]


def test_sort_atoms_by_plane_moves_largest_plane_first() -> None:
    atoms = [
        Atom(0, np.array([0.0, 0.0, 0.0])),
        Atom(1, np.array([1.0, 0.0, 2.0])),
        Atom(0, np.array([2.0, 0.0, 2.0])),
        Atom(1, np.array([3.0, 0.0, 4.0])),
    ]
    ordered, n_plane = sort_atoms_by_plane(tuple(atoms))
    assert n_plane == 2
    assert [a.position[0] for a in ordered] == [1.0, 2.0, 0.0, 3.0]

    ordered, n_plane = sort_atoms_by_plane((atoms[0], atoms[3]))
    assert n_plane == 1
    assert ordered[0] is atoms[0]


def test_working_l_max_drops_weak_channels() -> None:
    tl = np.array([0.5, 0.3, 1e-6, 1e-7])
    assert working_l_max([tl], {0}, 3, 1e-4) == 1
    assert working_l_max([tl, _tmatrices()[0]], {0, 1}, 3, 1e-4) == 3
    assert working_l_max([np.zeros(4)], {0}, 3, 1e-4) == 1


def test_non_scattering_layer_only_propagates() -> None:
    beams, k_in = _beams(_lattice())
    layer = _layer([Atom(1, np.array([0.0, 0.0, 0.0])), Atom(1, np.array([2.4, 2.4, 1.5]))])
    mats = assemble_composite(LeedContext(), layer, beams, _tmatrices(), k_in, EPSILON, 3)

    assert np.allclose(mats.rpm, 0.0)
    assert np.allclose(mats.rmp, 0.0)
    assert np.allclose(mats.tpp, np.diag(np.exp(1j * beams.kz * 1.5)))
    assert np.allclose(mats.tmm, mats.tpp)


def test_layer_matrices_refer_to_outermost_planes() -> None:
    beams, k_in = _beams(_lattice())
    ctx = LeedContext()
    low = _layer([Atom(0, np.array([0.0, 0.0, 0.0])), Atom(0, np.array([2.4, 2.4, 1.2]))])
    high = _layer([Atom(0, np.array([0.0, 0.0, 5.0])), Atom(0, np.array([2.4, 2.4, 6.2]))])

    m_low = assemble_composite(ctx, low, beams, _tmatrices(), k_in, EPSILON, 3)
    m_high = assemble_composite(ctx, high, beams, _tmatrices(), k_in, EPSILON, 3)

    assert m_low.n_beams == len(beams)
    for name in ("tpp", "tmm", "rpm", "rmp"):
        a = getattr(m_low, name)
        assert np.all(np.isfinite(a))
        assert np.allclose(a, getattr(m_high, name), rtol=1e-7, atol=1e-10)
    assert np.max(np.abs(m_low.rpm)) > 1e-6


def test_zero_t_spectator_does_not_change_layer() -> None:
    beams, k_in = _beams(_lattice())
    ctx = LeedContext()
    bare = _layer([Atom(0, np.array([0.0, 0.0, 0.0])), Atom(0, np.array([2.4, 2.4, 2.0]))])
    dressed = _layer(
        [
            Atom(0, np.array([0.0, 0.0, 0.0])),
            Atom(1, np.array([1.0, 0.5, 1.0])),
            Atom(0, np.array([2.4, 2.4, 2.0])),
        ]
    )
    m_bare = assemble_composite(ctx, bare, beams, _tmatrices(), k_in, EPSILON, 3)
    m_dressed = assemble_composite(ctx, dressed, beams, _tmatrices(), k_in, EPSILON, 3)
    for name in ("tpp", "tmm", "rpm", "rmp"):
        assert np.allclose(getattr(m_dressed, name), getattr(m_bare, name), rtol=1e-8, atol=1e-12)


def test_output_buffers_are_validated_and_reused() -> None:
    beams, k_in = _beams(_lattice())
    layer = _layer([Atom(0, np.array([0.0, 0.0, 0.0]))])
    n = len(beams)

    bad = LayerMatrices(*(np.full((n, n), np.nan, dtype=complex) for _ in range(4)))
    with pytest.raises(InvalidInputMatrix):
        assemble_composite(LeedContext(), layer, beams, _tmatrices(), k_in, EPSILON, 3, out=bad)

    buffers = LayerMatrices(*(np.zeros((n, n), dtype=complex) for _ in range(4)))
    mats = assemble_composite(LeedContext(), layer, beams, _tmatrices(), k_in, EPSILON, 3, out=buffers)
    assert mats.tpp is buffers.tpp
    assert mats.rpm is buffers.rpm


def test_unknown_atom_type_is_rejected() -> None:
    beams, k_in = _beams(_lattice())
    layer = _layer([Atom(5, np.array([0.0, 0.0, 0.0]))])
    with pytest.raises(ValueError):
        assemble_composite(LeedContext(), layer, beams, _tmatrices(), k_in, EPSILON, 3)


def test_coupling_mask_separates_beam_sets() -> None:
    sup = _lattice(np.array([[2.0, 0.0], [0.0, 1.0]]))
    beams, _ = _beams(sup)
    assert len(set(beams.set_id.tolist())) == 2

    mask_1x1 = coupling_mask(_layer([Atom(0, np.zeros(3))]), beams)
    same_set = beams.set_id[:, None] == beams.set_id[None, :]
    assert np.array_equal(mask_1x1, same_set)

    mask_sup = coupling_mask(_layer([Atom(0, np.zeros(3))], lattice=sup), beams)
    assert np.all(mask_sup)


def test_two_plane_layer_matches_doubling_of_single_atoms() -> None:
    eps = 1e-6
    gap = 3.0
    shift = np.array([1.2, 0.6])
    lattice = SurfaceLattice(a1=np.array([4.8, 0.0]), a2=np.array([0.0, 4.8]), dmin=gap)
    all_beams = generate_beams(ENERGY.real, lattice, 0.0, 0.0, 0.0, eps)
    k_in = np.zeros(2)
    beams = select_beams(all_beams, ENERGY, eps, gap, k_in)
    ctx = LeedContext()
    tmats = _tmatrices()

    composite = _layer(
        [Atom(0, np.array([0.0, 0.0, 0.0])), Atom(0, np.array([shift[0], shift[1], gap]))], lattice=lattice
    )
    bottom = _layer([Atom(0, np.array([0.0, 0.0, 0.0]))], lattice=lattice)
    top = _layer([Atom(0, np.array([shift[0], shift[1], 0.0]))], lattice=lattice)

    m_comp = assemble_composite(ctx, composite, beams, tmats, k_in, eps, 3)
    m_a = assemble_composite(ctx, bottom, beams, tmats, k_in, eps, 3)
    m_b = assemble_composite(ctx, top, beams, tmats, k_in, eps, 3)
    m_ab = combine_layers(m_a, m_b, beams, np.array([0.0, 0.0, gap]))

    assert np.max(np.abs(m_comp.rpm)) > 1e-2
    for name in ("tpp", "tmm", "rpm", "rmp"):
        assert np.max(np.abs(getattr(m_comp, name) - getattr(m_ab, name))) < 1e-3


def test_partitioned_inverse_of_giant_matrix_matches_plain_inverse(monkeypatch) -> None:
    beams, k_in = _beams(_lattice())
    layer = _layer(
        [
            Atom(0, np.array([0.0, 0.0, 0.0])),
            Atom(0, np.array([2.4, 2.4, 0.0])),
            Atom(0, np.array([1.2, 2.4, 1.5])),
        ]
    )
    seen = []
    original = matrix.partitioned_inverse

    def recording(a, split):
        seen.append((a.copy(), split))
        return original(a, split)

    monkeypatch.setattr(matrix, "partitioned_inverse", recording)
    assemble_composite(LeedContext(), layer, beams, _tmatrices(), k_in, EPSILON, 3)

    (giant, split), = seen
    assert split < giant.shape[0]
    assert split == 2 * giant.shape[0] // 3
    assert np.allclose(original(giant, split), matrix.invert(giant), rtol=1e-9, atol=1e-11)
