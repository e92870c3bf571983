"""Composite-layer diffraction matrices from a combined-space giant matrix.

Every atom of the layer forms its own Bravais sublattice. Multiple
scattering within each sublattice is folded into ``tau`` per atom type;
scattering between sublattices is handled by inverting the giant matrix

    M = I - [tau_i X(r_j - r_i)]_{ij}

and the result is projected onto plane waves for the four propagation
directions ++, --, +- and -+.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from . import matrix
from .harmonics import lm_arrays, n_channels, ylm, ylm_conjugate
from .lattice_sum import lattice_sum_between_layers, lattice_sum_same_layer
from .types import GEO_TOLERANCE, K_TOLERANCE, Atom, BeamList, Layer, LayerMatrices

if TYPE_CHECKING:
    from .context import LeedContext


Array = np.ndarray

logger = logging.getLogger(__name__)


def sort_atoms_by_plane(atoms: tuple[Atom, ...]) -> tuple[list[Atom], int]:
    """Move the atoms of the most populated z-plane to the front.

    Ties go to the plane of the earliest atom; the relative order within
    both groups is kept. Returns the reordered atoms and the plane size.
    """

    z = np.array([atom.position[2] for atom in atoms])
    counts = np.sum(np.abs(z[:, None] - z[None, :]) < GEO_TOLERANCE, axis=1)
    i_plane = int(np.argmax(counts))
    in_plane = np.abs(z - z[i_plane]) < GEO_TOLERANCE
    front = [atom for atom, flag in zip(atoms, in_plane) if flag]
    back = [atom for atom, flag in zip(atoms, in_plane) if not flag]
    return front + back, int(counts[i_plane])


def _channel_magnitudes(tmat: Array, l_max: int) -> Array:
    tmat = np.asarray(tmat)
    if tmat.ndim == 1:
        mags = np.zeros(l_max + 1)
        n = min(tmat.size, l_max + 1)
        mags[:n] = np.abs(tmat[:n])
        return mags
    ls, _ = lm_arrays(l_max)
    diag = np.zeros(ls.size)
    n = min(tmat.shape[0], ls.size)
    diag[:n] = np.abs(np.diag(tmat))[:n]
    return np.array([diag[ls == l].max() for l in range(l_max + 1)])


def working_l_max(tmatrices: list[Array], type_ids: set[int], l_max: int, epsilon: float) -> int:
    """Largest angular momentum whose scattering amplitude is not below ``epsilon``."""

    result = 1
    for i_type in sorted(type_ids):
        mags = _channel_magnitudes(tmatrices[i_type], l_max)
        l_type = l_max
        while l_type > 1 and mags[l_type] < epsilon:
            l_type -= 1
        result = max(result, l_type)
    return min(result, l_max)


def _truncated_tmatrix(tmat: Array, l_max: int) -> Array:
    """Full ``(l_max+1)**2`` square t-matrix in natural order."""

    tmat = np.asarray(tmat, dtype=np.complex128)
    n = n_channels(l_max)
    if tmat.ndim == 1:
        ls, _ = lm_arrays(l_max)
        padded = np.zeros(l_max + 1, dtype=np.complex128)
        m = min(tmat.size, l_max + 1)
        padded[:m] = tmat[:m]
        return np.diag(padded[ls])
    out = np.zeros((n, n), dtype=np.complex128)
    m = min(tmat.shape[0], n)
    out[:m, :m] = tmat[:m, :m]
    return out


def propagator_matrix(coupling: Array, llm: Array) -> Array:
    """X[L', L] = sum_L'' C[L', L, L''] Llm[L'']."""

    return np.einsum("abc,c->ab", coupling, llm[: coupling.shape[2]])


def bravais_tau(tmat: Array, x_ii: Array, k: complex) -> Array:
    """Sublattice scattering matrix ``(I - t~ X_ii)^-1 t~`` with ``t~ = -t / 2k``."""

    t_tilde = -tmat / (2.0 * k)
    n = t_tilde.shape[0]
    return matrix.multiply(matrix.invert(np.eye(n) - t_tilde @ x_ii), t_tilde)


def coupling_mask(layer: Layer, beams: BeamList) -> Array:
    """Beams ``g``, ``g'`` couple only if ``g - g'`` is a reciprocal vector of the layer."""

    ind = beams.indices
    diff = ind[:, None, :] - ind[None, :, :]
    cells = diff @ layer.lattice.superstructure.T
    return np.all(np.abs(cells - np.round(cells)) < K_TOLERANCE, axis=2)


def _check_out(out: LayerMatrices | None) -> None:
    if out is None:
        return
    for name in ("tpp", "tmm", "rpm", "rmp"):
        matrix.check(getattr(out, name))


def assemble_composite(
    ctx: LeedContext,
    layer: Layer,
    beams: BeamList,
    tmatrices: list[Array],
    k_in: Array,
    epsilon: float,
    l_max: int,
    out: LayerMatrices | None = None,
) -> LayerMatrices:
    """Diffraction matrices of a composite layer for the active ``beams``.

    ``tmatrices`` holds one scattering matrix per atom type (as returned by
    ``build_scattering_matrices``); ``k_in`` is the incident parallel wave
    vector. All phases of the result refer to the outermost atomic planes of
    the layer. Buffers in ``out`` are validated and reused when they fit.
    """

    _check_out(out)
    n_beams = len(beams)
    if n_beams == 0:
        raise ValueError("At least one beam is required to assemble layer matrices.")
    for atom in layer.atoms:
        if atom.type_id >= len(tmatrices):
            raise ValueError(f"Atom type {atom.type_id} has no scattering matrix ({len(tmatrices)} loaded).")

    atoms, n_plane = sort_atoms_by_plane(layer.atoms)
    n_atoms = len(atoms)
    z_min = layer.z_min
    z_max = layer.z_max

    type_ids = {atom.type_id for atom in atoms}
    l_work = working_l_max(tmatrices, type_ids, l_max, epsilon)
    n_lm = n_channels(l_work)
    ls, _ = lm_arrays(l_work)
    logger.debug(
        "Layer %d: l_max = %d, %d beams, %d atoms (%d in the leading plane).",
        layer.index,
        l_work,
        n_beams,
        n_atoms,
        n_plane,
    )

    k = complex(beams.k[0])
    k_in = np.asarray(k_in, dtype=float)
    lattice = layer.lattice
    coupling = ctx.coupling_tensor(l_work)

    llm_ii = lattice_sum_same_layer(k, k_in, lattice, 2 * l_work, epsilon)
    x_ii = propagator_matrix(coupling, llm_ii)
    tau = {
        i_type: bravais_tau(_truncated_tmatrix(tmatrices[i_type], l_work), x_ii, k) for i_type in sorted(type_ids)
    }

    size = n_lm * n_atoms
    mbg = matrix.allocate(size, size)
    lsum_cache: dict[tuple[int, int, int], tuple[Array, Array]] = {}
    for i in range(n_atoms):
        for j in range(i + 1, n_atoms):
            d = atoms[j].position - atoms[i].position
            key = tuple(int(v) for v in np.round(d / GEO_TOLERANCE))
            sums = lsum_cache.get(key)
            if sums is None:
                sums = lattice_sum_between_layers(k, k_in, lattice, d, 2 * l_work, epsilon)
                lsum_cache[key] = sums
            llm_p, llm_m = sums
            block_ji = -tau[atoms[j].type_id] @ propagator_matrix(coupling, llm_p)
            block_ij = -tau[atoms[i].type_id] @ propagator_matrix(coupling, llm_m)
            matrix.insert(mbg, block_ji, j * n_lm, i * n_lm)
            matrix.insert(mbg, block_ij, i * n_lm, j * n_lm)
    logger.debug("Computed %d distinct interlayer lattice sums.", len(lsum_cache))

    mbg[np.diag_indices(size)] += 1.0
    mbg_inv = matrix.partitioned_inverse(mbg, n_plane * n_lm)

    # Plane-wave conversion
    kx = beams.kx
    ky = beams.ky
    kz = beams.kz
    cos_theta = beams.cos_theta
    phi = beams.phi
    akz = beams.akz
    pref = -16.0j * np.pi * np.pi / layer.rel_area

    i_pow = (1j) ** ls
    y_plus = ylm(l_work, cos_theta, phi)
    y_minus = ylm(l_work, -cos_theta, phi)
    out_plus = pref * akz[:, None] * np.conj(i_pow)[None, :] * y_plus
    out_minus = pref * akz[:, None] * np.conj(i_pow)[None, :] * y_minus
    in_plus = i_pow[:, None] * ylm_conjugate(l_work, cos_theta, phi).T
    in_minus = i_pow[:, None] * ylm_conjugate(l_work, -cos_theta, phi).T

    l_p = matrix.allocate(n_beams, size)
    l_m = matrix.allocate(n_beams, size)
    r_p = matrix.allocate(size, n_beams)
    r_m = matrix.allocate(size, n_beams)
    for i_atom, atom in enumerate(atoms):
        x, y, z = atom.position
        k_dot_par = kx * x + ky * y
        phase_plus = np.exp(1j * (k_dot_par + kz * z))
        phase_minus = np.exp(1j * (k_dot_par - kz * z))
        off = i_atom * n_lm
        matrix.insert(l_p, out_plus / phase_plus[:, None], 0, off)
        matrix.insert(l_m, out_minus / phase_minus[:, None], 0, off)
        tau_i = tau[atom.type_id]
        matrix.insert(r_p, tau_i @ (in_plus * phase_plus[None, :]), off, 0)
        matrix.insert(r_m, tau_i @ (in_minus * phase_minus[None, :]), off, 0)

    aux = matrix.multiply(mbg_inv, r_p)
    tpp = matrix.multiply(l_p, aux)
    rmp = matrix.multiply(l_m, aux)
    aux = matrix.multiply(mbg_inv, r_m)
    tmm = matrix.multiply(l_m, aux)
    rpm = matrix.multiply(l_p, aux)

    # Origin shift to the outermost planes
    shift_top = np.exp(1j * kz * z_max)
    shift_bottom = np.exp(-1j * kz * z_min)
    tpp = matrix.multiply(matrix.multiply(shift_top, tpp), shift_bottom)
    rmp = matrix.multiply(matrix.multiply(shift_bottom, rmp), shift_bottom)
    tmm = matrix.multiply(matrix.multiply(shift_bottom, tmm), shift_top)
    rpm = matrix.multiply(matrix.multiply(shift_top, rpm), shift_top)

    mask = coupling_mask(layer, beams)
    if not np.all(mask):
        logger.debug("Layer %d: decoupling beams of different sets.", layer.index)
        for mat in (tpp, tmm, rpm, rmp):
            mat[~mask] = 0.0

    propagator = shift_top * shift_bottom
    tpp[np.diag_indices(n_beams)] += propagator
    tmm[np.diag_indices(n_beams)] += propagator

    if out is not None:
        return LayerMatrices(
            tpp=matrix.copy(tpp, out=out.tpp),
            tmm=matrix.copy(tmm, out=out.tmm),
            rpm=matrix.copy(rpm, out=out.rpm),
            rmp=matrix.copy(rmp, out=out.rmp),
        )
    return LayerMatrices(tpp=tpp, tmm=tmm, rpm=rpm, rmp=rmp)
