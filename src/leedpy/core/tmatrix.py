"""Atomic scattering (t-)matrices from tabulated phase shifts."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

import numpy as np
from scipy.special import spherical_in

from .cumulant import cumulant_tmatrix
from .errors import EnergyBelowRange, InvalidMatrixKind
from .harmonics import wigner_3j
from .types import GEO_TOLERANCE, AnisotropicDisplacement, IsotropicDisplacement, PhaseShiftSet, TMatrixKind

if TYPE_CHECKING:
    from .context import LeedContext


Array = np.ndarray

logger = logging.getLogger(__name__)


def interpolate_phase_shifts(pset: PhaseShiftSet, energy: float) -> Array:
    """Linearly interpolated phase shifts delta_l(E), ``l = 0..pset.l_max``.

    Energies above the grid are extrapolated from the last two points;
    energies below the grid are rejected.
    """

    energy = float(energy)
    eng = pset.energies
    if energy < pset.eng_min:
        raise EnergyBelowRange(
            f"Energy {energy:.4f} H is below the phase-shift range [{pset.eng_min:.4f}, {pset.eng_max:.4f}] H"
            f" of '{pset.source}'."
        )
    if energy >= pset.eng_max:
        if energy > pset.eng_max:
            logger.warning(
                "Energy %.4f H is above the phase-shift range of '%s' (max %.4f H); extrapolating.",
                energy,
                pset.source,
                pset.eng_max,
            )
        i_eng = pset.n_eng - 1
    else:
        i_eng = int(np.searchsorted(eng, energy, side="right"))
        i_eng = max(i_eng, 1)

    upper = pset.phase_shifts[i_eng]
    lower = pset.phase_shifts[i_eng - 1]
    slope = (upper - lower) / (eng[i_eng] - eng[i_eng - 1])
    return upper - slope * (eng[i_eng] - energy)


def tl_from_phase_shifts(delta: Array) -> Array:
    """Diagonal scattering amplitudes ``sin(delta_l) exp(i delta_l)``."""

    delta = np.asarray(delta, dtype=float)
    return np.sin(delta) * np.exp(1j * delta)


def debye_waller_tl(tl: Array, dr2: float, energy: float, l_max: int) -> Array:
    """Isotropic thermal correction of the diagonal t-matrix.

    ``dr2`` is the mean-square displacement <dr^2> [Bohr^2]. With
    ``x = 2/3 * E * dr2`` the corrected amplitudes are

        t_l(T) = sum_{l',l''} (2l'+1)(2l''+1) (l'' l' l; 0 0 0)^2 exp(-x) i_l''(x) t_l'
    """

    tl = np.asarray(tl, dtype=np.complex128)
    out = np.zeros(l_max + 1, dtype=np.complex128)
    if dr2 < GEO_TOLERANCE:
        n = min(tl.size, l_max + 1)
        out[:n] = tl[:n]
        return out

    x = 2.0 / 3.0 * float(energy) * float(dr2)
    l_src = tl.size - 1
    l2_top = l_max + l_src
    bessel = np.exp(-x) * spherical_in(np.arange(l2_top + 1), x)
    for l in range(l_max + 1):
        acc = 0.0j
        for lp in range(l_src + 1):
            for l2 in range(abs(l - lp), l + lp + 1):
                w = wigner_3j(l2, lp, l, 0, 0, 0)
                if w == 0.0:
                    continue
                acc += (2 * lp + 1) * (2 * l2 + 1) * w * w * bessel[l2] * tl[lp]
        out[l] = acc
    return out


def build_scattering_matrices(ctx: LeedContext, l_max: int, energy: float) -> list[Array]:
    """Atomic t-matrices of every loaded phase-shift set at ``energy`` [Hartree].

    Diagonal sets yield a vector of ``l_max + 1`` amplitudes; cumulant sets
    yield a ``(l_max+1)**2`` square matrix. Displacements given in the other
    representation are converted with ``<dr^2> = 2 (ux^2 + uy^2 + uz^2)``,
    which makes both treatments agree for isotropic vibrations.
    """

    result: list[Array] = []
    for i_set, pset in enumerate(ctx.phase_sets):
        delta = interpolate_phase_shifts(pset, energy)
        tl = tl_from_phase_shifts(delta)
        disp = pset.displacement
        if pset.kind is TMatrixKind.DIAGONAL:
            if isinstance(disp, AnisotropicDisplacement):
                dr2 = 2.0 * (disp.ux**2 + disp.uy**2 + disp.uz**2)
            else:
                dr2 = disp.dr2
            result.append(debye_waller_tl(tl, dr2, energy, l_max))
        elif pset.kind is TMatrixKind.CUMULANT:
            if isinstance(disp, IsotropicDisplacement):
                u = math.sqrt(disp.dr2 / 6.0)
                ux = uy = uz = u
            else:
                ux, uy, uz = disp.ux, disp.uy, disp.uz
            result.append(cumulant_tmatrix(ctx, tl, ux, uy, uz, energy, l_max, pset.l_max))
        else:
            raise InvalidMatrixKind(f"Phase-shift set {i_set} has unknown t-matrix kind {pset.kind!r}.")
        logger.debug("t-matrix for set %d (%s) at E = %.4f H.", i_set, pset.kind.value, energy)
    return result
