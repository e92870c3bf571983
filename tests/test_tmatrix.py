from pathlib import Path

import numpy as np
import pytest

from leedpy.core.context import LeedContext
from leedpy.core.errors import InvalidMatrixKind
from leedpy.core.tmatrix import build_scattering_matrices, debye_waller_tl, tl_from_phase_shifts
from leedpy.core.types import AnisotropicDisplacement, IsotropicDisplacement, TMatrixKind


def _write_phs(path: Path) -> Path:
    lines = ["3 2"]
    for i_eng, eng in enumerate([1.0, 3.0, 6.0]):
        lines.append(f"{eng}")
        lines.append(f"{0.9 - 0.1 * i_eng:.3f} {0.4 + 0.05 * i_eng:.3f} {0.1 * i_eng:.3f}")
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def test_tl_from_phase_shifts() -> None:
    delta = np.array([0.0, np.pi / 2.0, 0.3])
    tl = tl_from_phase_shifts(delta)
    assert np.allclose(tl, [0.0, 1j, np.sin(0.3) * np.exp(0.3j)])


def test_debye_waller_without_vibration_pads_input() -> None:
    tl = tl_from_phase_shifts(np.array([0.5, 0.2]))
    out = debye_waller_tl(tl, 0.0, 3.0, 4)
    assert out.shape == (5,)
    assert np.allclose(out[:2], tl)
    assert np.all(out[2:] == 0.0)
    assert np.allclose(debye_waller_tl(tl, 0.0, 3.0, 0), tl[:1])


def test_debye_waller_damps_and_spreads_amplitudes() -> None:
    tl = tl_from_phase_shifts(np.array([1.0, 0.6, 0.3]))
    out = debye_waller_tl(tl, 0.05, 4.0, 5)
    assert abs(out[0]) < abs(tl[0])
    assert abs(out[3]) > 0.0
    # tiny vibrations are a small perturbation
    assert np.allclose(debye_waller_tl(tl, 1e-3, 4.0, 2), tl, atol=1e-2)


def test_build_scattering_matrices_shapes(tmp_path: Path) -> None:
    path = _write_phs(tmp_path / "Ni.phs")
    ctx = LeedContext(phase_dir=tmp_path)
    ctx.load_phase_shifts("Ni", IsotropicDisplacement(0.02))
    ctx.load_phase_shifts(path, AnisotropicDisplacement(0.05, 0.05, 0.1), kind=TMatrixKind.CUMULANT)
    ctx.load_phase_shifts("Ni", IsotropicDisplacement(0.03), kind="cumulant")
    ctx.load_phase_shifts("Ni", AnisotropicDisplacement(0.1, 0.1, 0.1))

    tmats = build_scattering_matrices(ctx, 3, 2.0)
    assert len(tmats) == 4
    assert tmats[0].shape == (4,)
    assert tmats[1].shape == (16, 16)
    assert tmats[2].shape == (16, 16)
    assert tmats[3].shape == (4,)
    assert all(np.all(np.isfinite(t)) for t in tmats)


def test_isotropic_sets_agree_between_representations(tmp_path: Path) -> None:
    _write_phs(tmp_path / "Ni.phs")
    ctx = LeedContext(phase_dir=tmp_path)
    ctx.load_phase_shifts("Ni", IsotropicDisplacement(0.015))
    ctx.load_phase_shifts("Ni", IsotropicDisplacement(0.015), kind="cumulant")

    diag, full = build_scattering_matrices(ctx, 6, 2.0)
    assert np.allclose(np.diag(full)[:4], diag[[0, 1, 1, 1]], rtol=1e-4, atol=1e-8)


def test_unknown_kind_is_rejected() -> None:
    with pytest.raises(InvalidMatrixKind):
        TMatrixKind.resolve("tensor")
    with pytest.raises(InvalidMatrixKind):
        LeedContext().load_phase_shifts("/nonexistent/Ni.phs", kind="full")
