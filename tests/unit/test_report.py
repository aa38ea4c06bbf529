from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def sweep_result(coloc_results):
    from instrument_examples import make_instrument
    from tpmr.density import density_models_from_coloc
    from tpmr.pph4 import make_source
    from tpmr.sweep import run_sweep

    models, _ = density_models_from_coloc(coloc_results, n_points=200)
    instrument = make_instrument(np.random.default_rng(5).normal(0, 0.2, size=50))
    return run_sweep(
        instrument,
        make_source(density_models=models),
        ["Liver", "Muscle", "Brain"],
        n_rep=3,
        thresholds=[0.5, 1.0],
    )


def test_summarize_sweep(sweep_result) -> None:
    from tpmr.report import summarize_sweep

    summary, counts = summarize_sweep(sweep_result)

    assert counts == {"n_success": 6, "n_failed": 6, "n_skipped_tissues": 1}
    assert summary.shape[0] == 2
    assert (summary["n_rep"] == 3).all()
    row = summary[summary["tissue_1"] == "Liver"].iloc[0]
    subset = sweep_result.results[sweep_result.results["tissue_1"] == "Liver"]
    assert row["b_diff"] == pytest.approx(subset["b_diff"].mean())
    assert row["b_1_sd"] == pytest.approx(subset["b_1"].std())
    assert 0 <= row["prop_diff_significant"] <= 1


def test_summarize_empty_sweep() -> None:
    from tpmr.report import summarize_sweep
    from tpmr.sweep import SweepResult

    summary, counts = summarize_sweep(SweepResult(results=pd.DataFrame()))
    assert summary.empty
    assert counts == {"n_success": 0, "n_failed": 0, "n_skipped_tissues": 0}


def test_write_report(sweep_result, tmp_path: Path) -> None:
    from tpmr.report import write_report

    paths = write_report(sweep_result, tmp_path / "report", name="ldl_cad")

    assert set(paths) == {"results", "diagnostics", "summary", "counts"}
    for path in paths.values():
        assert Path(path).is_file()
    diagnostics = pd.read_csv(paths["diagnostics"])
    assert set(diagnostics["error"]) == {"EstimationFailure", "SkippedTissue"}
    counts = pd.read_csv(paths["counts"])
    assert counts.loc[0, "n_success"] == 6
