import os

import numpy as np
import pandas as pd

SUMMARY_KEYS = ["tissue_1", "tissue_2", "label_1", "label_2", "threshold", "method"]


def summarize_sweep(sweep_result):
    """
    Summarise the replicates of a sweep for each tissue pair, threshold and method.

    Args:
        sweep_result (SweepResult): Output of :func:`sweep.run_sweep`.

    Returns:
        tuple: (summary dataframe, counts dictionary with n_success, n_failed and n_skipped_tissues).
        The summary has the number of replicates, the mean and sd of b_1, b_2 and b_diff, the share of
        replicates with a nominally significant b_diff and the mean overlap fraction.
    """
    res = sweep_result.results
    counts = {
        "n_success": int(res.shape[0]),
        "n_failed": sweep_result.n_failed,
        "n_skipped_tissues": sweep_result.n_skipped,
    }
    if res.empty:
        return pd.DataFrame(columns=SUMMARY_KEYS + ["n_rep"]), counts

    res = res.copy()
    # Difference between the two correlated estimates, treated as independent
    res["se_diff"] = np.sqrt(res["se_1"] ** 2 + res["se_2"] ** 2)
    res["diff_significant"] = (res["b_diff"] / res["se_diff"]).abs() > 1.96

    summary = (
        res.groupby(SUMMARY_KEYS, sort=False, dropna=False)
        .agg(
            n_rep=("seed", "size"),
            nSNP=("nSNP", "mean"),
            b_1=("b_1", "mean"),
            b_1_sd=("b_1", "std"),
            b_2=("b_2", "mean"),
            b_2_sd=("b_2", "std"),
            b_diff=("b_diff", "mean"),
            b_diff_sd=("b_diff", "std"),
            prop_diff_significant=("diff_significant", "mean"),
            frac_overlap=("frac_overlap", "mean"),
        )
        .reset_index()
    )
    return summary, counts


def write_report(sweep_result, directory, name="tpmr"):
    """
    Write the results, diagnostics, summary and counts of a sweep as csv files.

    Returns:
        dict: Kind of table -> path of the file written.
    """
    os.makedirs(directory, exist_ok=True)
    summary, counts = summarize_sweep(sweep_result)
    tables = {
        "results": sweep_result.results,
        "diagnostics": sweep_result.errors,
        "summary": summary,
        "counts": pd.DataFrame([counts]),
    }
    paths = {}
    for kind, table in tables.items():
        path = os.path.join(directory, f"{name}_{kind}.csv")
        table.to_csv(path, index=False)
        paths[kind] = path
    print(f"Report of the sweep written to {directory}: {', '.join(os.path.basename(p) for p in paths.values())}")
    return paths
