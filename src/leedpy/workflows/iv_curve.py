"""JSON-driven LEED I(V) curve calculation."""

from __future__ import annotations

import argparse
import json
import logging
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import numpy as np

from leedpy.core import (
    LeedContext,
    assemble_composite,
    build_scattering_matrices,
    bulk_reflection,
    combine_rpm,
    generate_beams,
    incident_k_parallel,
    select_beams,
)
from leedpy.core.types import BeamList, Layer
from leedpy.modeling import (
    CalcConfig,
    bohr_to_angstrom,
    build_lattice,
    build_layers,
    ev_to_hartree,
    hartree_to_ev,
    load_phase_shift_types,
    structure_from_dict,
)


logger = logging.getLogger(__name__)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _sanitize_token(value: str) -> str:
    token = re.sub(r"[^A-Za-z0-9._-]+", "_", value.strip())
    return token if token else "unnamed"


def _resolve_path(base_dir: Path, path_like: str | Path) -> Path:
    p = Path(path_like)
    return p if p.is_absolute() else (base_dir / p)


def _to_builtin(value: Any) -> Any:
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, (np.floating, np.integer)):
        return value.item()
    if isinstance(value, complex):
        return [value.real, value.imag]
    if isinstance(value, dict):
        return {str(k): _to_builtin(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_builtin(v) for v in value]
    return value


def _load_json_config(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8-sig") as fh:
        cfg = json.load(fh)
    if not isinstance(cfg, dict):
        raise ValueError("Input config must be a JSON object.")
    return cfg


def _save_json(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(_to_builtin(payload), fh, indent=2, sort_keys=True)
        fh.write("\n")


def _build_energy_grid(ecfg: dict[str, Any]) -> np.ndarray:
    start = float(ecfg.get("start", 40.0))
    stop = float(ecfg.get("stop", 200.0))
    step = float(ecfg.get("step", 4.0))
    if step <= 0.0:
        raise ValueError("energy.step must be positive.")
    if stop < start:
        raise ValueError("energy.stop must not be below energy.start.")
    n = int(np.floor((stop - start) / step + 1e-9)) + 1
    return start + step * np.arange(n)


def _beam_label(ind1: float, ind2: float) -> str:
    return f"({ind1:.2f},{ind2:.2f})"


def _beam_key(ind1: float, ind2: float) -> tuple[int, int]:
    return (int(round(ind1 * 1000)), int(round(ind2 * 1000)))


def _vacuum_kz(energy: float, beams: BeamList) -> np.ndarray:
    """Normal wave-vector component in vacuum; zero for non-emerging beams."""

    kz2 = 2.0 * energy - (beams.kx**2 + beams.ky**2)
    return np.sqrt(np.clip(kz2, 0.0, None))


def _beam_intensities(rpm: np.ndarray, energy: float, beams: BeamList) -> np.ndarray:
    """Reflected intensities ``|Rpm[g, 0]|^2 kz_g / kz_0`` of the emerging beams."""

    kz = _vacuum_kz(energy, beams)
    if kz[0] <= 0.0:
        raise ValueError("The specular beam does not propagate in vacuum.")
    return np.abs(rpm[:, 0]) ** 2 * kz / kz[0]


def _gap_vector(lower: Layer, upper: Layer) -> np.ndarray:
    return np.array([0.0, 0.0, upper.z_min - lower.z_max])


def _bulk_gap_vector(bulk: Layer) -> np.ndarray:
    return bulk.repeat - np.array([0.0, 0.0, bulk.thickness])


def compute_surface_reflection(
    ctx: LeedContext,
    layers: list[Layer],
    beams: BeamList,
    energy: complex,
    config: CalcConfig,
) -> np.ndarray:
    """Reflection matrix R+- of the whole surface at the inner energy ``energy``.

    ``layers`` is ordered from the bulk layer upwards; the matrix refers to
    the topmost atomic plane of the last layer.
    """

    tmatrices = build_scattering_matrices(ctx, config.l_max, float(np.real(energy)))
    bulk = layers[0]
    bulk_layer = assemble_composite(ctx, bulk, beams, tmatrices, beams.k_in, config.epsilon, config.l_max)
    bulk_stack = bulk_reflection(
        bulk_layer,
        beams,
        _bulk_gap_vector(bulk),
        tol=config.bulk_tol,
        maxiter=config.bulk_maxiter,
    )
    rpm = bulk_stack.rpm
    for lower, upper in zip(layers[:-1], layers[1:]):
        over = assemble_composite(ctx, upper, beams, tmatrices, beams.k_in, config.epsilon, config.l_max)
        rpm = combine_rpm(rpm, over, beams, _gap_vector(lower, upper))
    return rpm


def _save_iv_data(path: Path, energies_ev: np.ndarray, labels: list[str], values: np.ndarray) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        cols = "\t".join(labels)
        fh.write(f"# energy_ev\t{cols}\n")
        for energy, row in zip(energies_ev, values):
            vals = "\t".join("nan" if not np.isfinite(v) else f"{float(v):.8e}" for v in row)
            fh.write(f"{float(energy):.4f}\t{vals}\n")


def _plot_iv_curves(path: Path, energies_ev: np.ndarray, labels: list[str], values: np.ndarray, *, title: str) -> None:
    import matplotlib.pyplot as plt

    path.parent.mkdir(parents=True, exist_ok=True)
    fig, ax = plt.subplots(figsize=(7.2, 4.6))
    for i_col, label in enumerate(labels):
        ax.plot(energies_ev, values[:, i_col], lw=1.2, label=label)
    ax.set_xlabel("Energy (eV)")
    ax.set_ylabel("Intensity")
    ax.set_title(title)
    ax.grid(alpha=0.3)
    if labels:
        ax.legend(fontsize="small", ncol=2)
    fig.tight_layout()
    fig.savefig(path, dpi=220)
    plt.close(fig)


def _default_template() -> dict[str, Any]:
    return {
        "run": {
            "name": "iv_run",
            "output_dir": "outputs/iv_runs",
            "write_plot": True,
            "write_data": True,
            "write_report": True,
        },
        "energy": {
            "start": 40.0,
            "stop": 200.0,
            "step": 4.0,
            "vr": -8.0,
            "vi": 4.0,
            "theta": 0.0,
            "phi": 0.0,
        },
        "model": {
            "l_max": 6,
            "epsilon": 1e-4,
            "phase_dir": "phase",
            "bulk_tol": 1e-6,
            "bulk_maxiter": 40,
        },
        "structure": {
            "a1": [2.55, 0.0],
            "a2": [0.0, 2.55],
            "superstructure": [[1, 0], [0, 1]],
            "phase_shifts": [
                {"tag": "Cu", "kind": "diagonal", "dr2": 0.01},
            ],
            "layers": [
                {
                    "role": "bulk",
                    "repeat": [1.275, 1.275, 1.805],
                    "atoms": [{"type": "Cu", "position": [0.0, 0.0, 0.0]}],
                },
                {
                    "role": "overlayer",
                    "atoms": [{"type": "Cu", "position": [1.275, 1.275, 1.805]}],
                },
            ],
        },
    }


def write_input_template(path: str | Path) -> Path:
    out = Path(path)
    _save_json(out, _default_template())
    return out


def run_iv_curve(config_path: str | Path) -> dict[str, Any]:
    cfg_path = Path(config_path)
    cfg_dir = cfg_path.parent if cfg_path.parent != Path("") else Path(".")
    cfg = _load_json_config(cfg_path)

    run_cfg = dict(cfg.get("run", {}))
    run_name = str(run_cfg.get("name", f"iv_{cfg_path.stem}"))
    run_name_safe = _sanitize_token(run_name)
    output_dir = _resolve_path(cfg_dir, run_cfg.get("output_dir", "outputs/iv_runs"))
    write_plot = bool(run_cfg.get("write_plot", True))
    write_data = bool(run_cfg.get("write_data", True))
    write_report = bool(run_cfg.get("write_report", True))

    ecfg = dict(cfg.get("energy", {}))
    energies_ev = _build_energy_grid(ecfg)
    vr = float(ev_to_hartree(float(ecfg.get("vr", -8.0))))
    vi = float(ev_to_hartree(float(ecfg.get("vi", 4.0))))
    if vi <= 0.0:
        raise ValueError("energy.vi must be positive (damping is required for the lattice sums).")
    theta = float(np.deg2rad(float(ecfg.get("theta", 0.0))))
    phi = float(np.deg2rad(float(ecfg.get("phi", 0.0))))

    mcfg = dict(cfg.get("model", {}))
    phase_dir = mcfg.get("phase_dir", None)
    config = CalcConfig(
        l_max=int(mcfg.get("l_max", 6)),
        epsilon=float(mcfg.get("epsilon", 1e-4)),
        phase_dir=None if phase_dir is None else _resolve_path(cfg_dir, phase_dir),
        reader=str(mcfg.get("reader", "cleed")),
        bulk_tol=float(mcfg.get("bulk_tol", 1e-6)),
        bulk_maxiter=int(mcfg.get("bulk_maxiter", 40)),
    )

    t0 = time.perf_counter()
    started = _utc_now_iso()

    structure = structure_from_dict(cfg.get("structure", {}))
    ctx = LeedContext(phase_dir=config.phase_dir, reader=config.reader)
    type_ids = load_phase_shift_types(ctx, structure)
    layers = build_layers(structure, type_ids)
    lattice = build_lattice(structure)
    logger.info("Loaded %d phase-shift sets and %d layers.", ctx.n_sets, len(layers))

    energies = np.asarray(ev_to_hartree(energies_ev), dtype=float)
    all_beams = generate_beams(float(energies[-1]), lattice, theta, phi, vr, config.epsilon)

    # Columns: beams emerging into vacuum at the highest energy
    k_in_top = incident_k_parallel(float(energies[-1]), theta, phi)
    k_top = all_beams.indices
    emerging = [
        i
        for i, beam in enumerate(all_beams)
        if float(np.sum((beam.g + k_in_top) ** 2)) < 2.0 * float(energies[-1])
    ]
    columns = [_beam_key(*k_top[i]) for i in emerging]
    labels = [_beam_label(*k_top[i]) for i in emerging]
    col_index = {key: i for i, key in enumerate(columns)}

    values = np.zeros((energies.size, len(columns)))
    n_beams_used: list[int] = []
    for i_eng, energy in enumerate(energies):
        k_in = incident_k_parallel(float(energy), theta, phi)
        inner = complex(energy - vr, vi)
        beams = select_beams(all_beams, inner, config.epsilon, lattice.dmin, k_in)
        rpm = compute_surface_reflection(ctx, layers, beams, inner, config)
        intensities = _beam_intensities(rpm, float(energy), beams)
        for i_beam, beam in enumerate(beams):
            col = col_index.get(_beam_key(beam.ind1, beam.ind2))
            if col is not None:
                values[i_eng, col] = intensities[i_beam]
        n_beams_used.append(len(beams))
        logger.info(
            "E = %.2f eV: %d beams (%d evanescent), I(0,0) = %.4e",
            float(hartree_to_ev(energy)),
            len(beams),
            int(np.count_nonzero(beams.evanescent)),
            intensities[0],
        )

    output_dir.mkdir(parents=True, exist_ok=True)
    outputs: dict[str, str] = {}
    if write_data:
        data_path = output_dir / run_cfg.get("data_filename", f"{run_name_safe}_iv.tsv")
        _save_iv_data(data_path, energies_ev, labels, values)
        outputs["data"] = str(data_path)
    if write_plot:
        plot_path = output_dir / run_cfg.get("plot_filename", f"{run_name_safe}_iv.png")
        _plot_iv_curves(plot_path, energies_ev, labels, values, title=f"I(V) curves ({run_name})")
        outputs["plot"] = str(plot_path)

    runtime = time.perf_counter() - t0
    finished = _utc_now_iso()
    report = {
        "run": {
            "name": run_name,
            "input_config": str(cfg_path.resolve()),
            "started_utc": started,
            "finished_utc": finished,
            "runtime_seconds": float(runtime),
            "run_dir": str(output_dir.resolve()),
        },
        "energy": {
            "start_ev": float(energies_ev[0]),
            "stop_ev": float(energies_ev[-1]),
            "n_energies": int(energies_ev.size),
            "vr_ev": float(hartree_to_ev(vr)),
            "vi_ev": float(hartree_to_ev(vi)),
            "theta_deg": float(np.rad2deg(theta)),
            "phi_deg": float(np.rad2deg(phi)),
        },
        "model": {
            "l_max": config.l_max,
            "epsilon": config.epsilon,
            "phase_dir": config.phase_dir,
            "bulk_tol": config.bulk_tol,
            "bulk_maxiter": config.bulk_maxiter,
            "phase_shift_sources": [pset.source for pset in ctx.phase_sets],
        },
        "structure": {
            "n_layers": len(layers),
            "n_atoms": [layer.n_atoms for layer in layers],
            "dmin_bohr": float(lattice.dmin),
            "dmin_angstrom": float(bohr_to_angstrom(lattice.dmin)),
            "rel_area_sup": float(lattice.rel_area_sup),
        },
        "beams": {
            "n_generated": len(all_beams),
            "n_used": n_beams_used,
            "columns": labels,
        },
        "outputs": outputs,
    }
    if write_report:
        report_path = output_dir / run_cfg.get("report_filename", f"{run_name_safe}_report.json")
        _save_json(report_path, report)
        report["outputs"]["report"] = str(report_path)
    report["intensities"] = values
    return report


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--input", type=Path, default=None, help="Path to JSON run configuration.")
    parser.add_argument("--write-template", type=Path, default=None, help="Write template config and exit.")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...).")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    if args.write_template is not None:
        out = write_input_template(args.write_template)
        print(f"Wrote template: {out}")
        return
    if args.input is None:
        raise ValueError("Provide --input <config.json> or --write-template <path>.")

    report = run_iv_curve(args.input)
    print(f"Run complete: {report['run']['name']}")
    print(f"runtime_seconds={report['run']['runtime_seconds']:.3f}")
    print(f"outputs={report['outputs']}")


if __name__ == "__main__":
    main()
