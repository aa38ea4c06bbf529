import warnings
from functools import partial

import numpy as np
import pandas as pd

from .constants import DEFAULT_THRESHOLD, PAIR_LABELS, COMPARATOR_LABEL, MVMR_METHODS_NAMES
from .exceptions import EstimationFailure
from .pph4 import sample_pph4
from .MR_tools import MR_func, MVMR_func, _check_methods

WEIGHTINGS = ["pph4", "none"]


def pair_labels(tissue_1, reference=False):
    """Exposure labels of a tissue pair: generic, or reference tissue vs comparator."""
    if reference:
        return (f"Ref: {tissue_1}", COMPARATOR_LABEL)
    return PAIR_LABELS


def weight_instrument(instrument, pph4_1, pph4_2, threshold=DEFAULT_THRESHOLD, labels=PAIR_LABELS, weighting="pph4"):
    """
    Build the instrument of a tissue pair: select the variants colocalising in either tissue and weight the
    exposure effects by the PPH4 of each tissue.

    Args:
        instrument (Instrument): Instrument with one exposure (duplicated for both tissues) or exactly two
            exposures (first -> tissue 1, second -> tissue 2).
        pph4_1, pph4_2 (array-like): PPH4 of each variant in tissue 1 and tissue 2.
        threshold (float, optional): Colocalisation threshold. A variant is included if its PPH4 exceeds the
            threshold in at least one of the tissues.
        labels (tuple, optional): Exposure labels of tissue 1 and tissue 2.
        weighting (str, optional): "pph4" multiplies the effects of every variant (included or not) by its PPH4,
            "none" leaves the effects unchanged and only applies the selection.

    Returns:
        Instrument: New instrument with the two labelled exposures and the inclusion mask.
    """
    if weighting not in WEIGHTINGS:
        raise ValueError(f"weighting must be one of {WEIGHTINGS}")
    labels = tuple(labels)
    pph4_1 = np.asarray(pph4_1, dtype=float)
    pph4_2 = np.asarray(pph4_2, dtype=float)
    if len(pph4_1) != instrument.n_snps or len(pph4_2) != instrument.n_snps:
        raise ValueError("There must be one PPH4 value per variant of the instrument for each tissue.")

    if len(instrument.exposures) == 1:
        paired = instrument.split_exposure(instrument.exposures[0], labels)
    elif len(instrument.exposures) == 2:
        paired = instrument.rename_exposures(dict(zip(instrument.exposures, labels)))
    else:
        raise ValueError("The instrument must have one or two exposures to be weighted for a tissue pair.")

    include = (pph4_1 > threshold) | (pph4_2 > threshold)
    beta_e = paired.beta_e.copy()
    if weighting == "pph4":
        beta_e[labels[0]] = beta_e[labels[0]] * pph4_1
        beta_e[labels[1]] = beta_e[labels[1]] * pph4_2

    return paired.with_betas(beta_e).with_mask(include)


def pph4_summary(weighted, pph4_1, pph4_2, threshold):
    """
    Colocalisation summary of a weighted tissue-pair instrument, over its included variants.

    Returns:
        dict: nSNP (included), n_above_1, n_above_2, n_overlap, frac_overlap, mean_pph4_1, mean_pph4_2,
        rmse_pph4 (root mean square PPH4 difference) and rmse_beta (root mean square difference of the weighted
        exposure effects).
    """
    mask = weighted.include.values
    p1 = np.asarray(pph4_1, dtype=float)[mask]
    p2 = np.asarray(pph4_2, dtype=float)[mask]
    label_1, label_2 = weighted.exposures
    b1 = weighted.beta_e[label_1].values[mask]
    b2 = weighted.beta_e[label_2].values[mask]

    n = int(mask.sum())
    above_1, above_2 = p1 > threshold, p2 > threshold
    n_overlap = int((above_1 & above_2).sum())
    if n == 0:
        return {
            "nSNP": 0, "n_above_1": 0, "n_above_2": 0, "n_overlap": 0, "frac_overlap": np.nan,
            "mean_pph4_1": np.nan, "mean_pph4_2": np.nan, "rmse_pph4": np.nan, "rmse_beta": np.nan,
        }
    return {
        "nSNP": n,
        "n_above_1": int(above_1.sum()),
        "n_above_2": int(above_2.sum()),
        "n_overlap": n_overlap,
        "frac_overlap": n_overlap / n,
        "mean_pph4_1": p1.mean(),
        "mean_pph4_2": p2.mean(),
        "rmse_pph4": np.sqrt(np.mean((p1 - p2) ** 2)),
        "rmse_beta": np.sqrt(np.mean((b1 - b2) ** 2)),
    }


def tpmr(
    instrument,
    tissue_1,
    tissue_2,
    source,
    threshold=DEFAULT_THRESHOLD,
    seed=0,
    methods=["IVW"],
    weighting="pph4",
    reference=False,
    estimator=None,
    failures=None,
):
    """
    Tissue-partitioned MR for one pair of tissues.

    PPH4 values are obtained for both tissues (sampled or observed), the instrument is weighted with
    :func:`weight_instrument` and both tissue-specific effects are estimated jointly by multivariable MR.

    Args:
        instrument (Instrument): Harmonised instrument (one exposure, or one column per tissue).
        tissue_1, tissue_2 (str): Tissues of the pair.
        source (DensitySource or ObservedSource): PPH4 source.
        threshold (float, optional): Colocalisation threshold. Default is 0.8.
        seed (int, optional): Seed of the PPH4 sampling (ignored for observed values).
        methods (list, optional): Multivariable methods ("IVW", "IVW-FE", "Egger").
        weighting (str, optional): "pph4" or "none", see :func:`weight_instrument`.
        reference (bool, optional): Label tissue_1 as the reference tissue and tissue_2 as the comparator.
        estimator (callable, optional): Replaces the multivariable MR call. Receives the weighted instrument and
            must return a dataframe with "exposure", "method", "b", "se" and "pval" columns.
        failures (list, optional): Collects the methods that failed (method, error, message). Without it, a
            failed method is reported with a warning when another method succeeded.

    Returns:
        list of dict: One result row per method that produced estimates.

    Raises:
        EstimationFailure: If no variant is included, or if every method failed and failures is not given.
        InsufficientData: If the source has no model for one of the tissues.
    """
    pph4_1 = sample_pph4(source, instrument, tissue_1, seed)
    pph4_2 = sample_pph4(source, instrument, tissue_2, seed)
    labels = pair_labels(tissue_1, reference)
    weighted = weight_instrument(instrument, pph4_1, pph4_2, threshold, labels, weighting)

    summary = pph4_summary(weighted, pph4_1, pph4_2, threshold)
    if summary["nSNP"] == 0:
        raise EstimationFailure(f"No variant has a PPH4 above {threshold} in {tissue_1} or {tissue_2}.")

    if estimator is None:
        methods = _check_methods(methods, MVMR_METHODS_NAMES)
        calls = [(_method_name(method), partial(MVMR_func, weighted, [method])) for method in methods]
    else:
        calls = [(None, partial(estimator, weighted))]

    rows, method_failures = [], []
    for name, call in calls:
        try:
            rows.extend(_pair_rows(call(), labels))
        except EstimationFailure as e:
            method_failures.append({"method": name, "error": type(e).__name__, "message": str(e)})

    if method_failures and not rows and failures is None:
        raise EstimationFailure("; ".join(f["message"] for f in method_failures))
    for failure in method_failures:
        if failures is None:
            warnings.warn(f"{failure['method']} failed for {tissue_1} and {tissue_2}: {failure['message']}")
        else:
            failures.append(failure)

    scenario = {
        "tissue_1": tissue_1,
        "tissue_2": tissue_2,
        "label_1": labels[0],
        "label_2": labels[1],
        "seed": seed,
        "threshold": threshold,
        "weighting": weighting,
        **summary,
    }
    return [{**scenario, **row} for row in rows]


def _method_name(method):
    name = MVMR_METHODS_NAMES[method]
    return name[0] if isinstance(name, tuple) else name


def _pair_rows(res, labels):
    """Tissue 1 and tissue 2 estimates of each method of a multivariable MR result."""
    # Egger intercept rows carry no tissue estimate
    res = res[res["exposure"] != "intercept"]
    rows = []
    for method, res_method in res.groupby("method", sort=False):
        by_label = res_method.set_index("exposure")
        if not all(label in by_label.index for label in labels):
            raise EstimationFailure(f"The {method} estimator did not return an estimate for both tissues.")
        est_1, est_2 = by_label.loc[labels[0]], by_label.loc[labels[1]]
        rows.append(
            {
                "method": method,
                "b_1": est_1["b"],
                "se_1": est_1["se"],
                "pval_1": est_1["pval"],
                "b_2": est_2["b"],
                "se_2": est_2["se"],
                "pval_2": est_2["pval"],
                "b_diff": est_1["b"] - est_2["b"],
            }
        )
    return rows


def tissue_mr(
    instrument,
    tissue,
    source,
    threshold=DEFAULT_THRESHOLD,
    seed=0,
    methods=["IVW"],
    weighting="pph4",
    exposure=None,
    nboot=1000,
    outcome_name="outcome",
):
    """
    Univariable MR with a tissue-specific instrument: variants with a PPH4 above the threshold in the tissue,
    exposure effects weighted by the PPH4 (weighting="pph4") or left unchanged (weighting="none").

    Returns:
        pd.DataFrame: MR results (see :func:`MR_tools.MR_func`) with the tissue, threshold, seed and mean PPH4
        of the selected variants.
    """
    if weighting not in WEIGHTINGS:
        raise ValueError(f"weighting must be one of {WEIGHTINGS}")
    exposure = instrument.exposures[0] if exposure is None else exposure
    pph4 = sample_pph4(source, instrument, tissue, seed)
    selected = instrument.select_exposures([exposure]).with_mask(pph4 > threshold)
    if weighting == "pph4":
        selected = selected.with_betas(pd.DataFrame({exposure: selected.beta_e[exposure] * pph4}))

    res = MR_func(selected, exposure, methods, nboot=nboot, seed=seed, outcome_name=outcome_name)
    res.insert(0, "tissue", tissue)
    res["threshold"] = threshold
    res["seed"] = seed
    res["mean_pph4"] = pph4[pph4 > threshold].mean() if (pph4 > threshold).any() else np.nan
    return res
