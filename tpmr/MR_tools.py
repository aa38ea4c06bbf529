import pandas as pd
from functools import partial

from .MR import (
    mr_ivw,
    mr_ivw_fe,
    mr_egger_regression,
    mr_weighted_median,
    mr_simple_median,
    mr_mv_ivw,
    mr_mv_ivw_fe,
    mr_mv_egger,
)
from .constants import MR_METHODS_NAMES, MVMR_METHODS_NAMES

RESULT_COLUMNS = ["exposure", "outcome", "method", "nSNP", "b", "se", "pval", "Q", "Q_df", "Q_pval"]


def _check_methods(methods, valid):
    methods = methods if isinstance(methods, list) else [methods]
    if "all" in methods:
        return list(valid)
    if not all(m in valid for m in methods):
        raise ValueError(f"The list of methods can only contain strings in {list(valid) + ['all']}")
    return methods


def MR_func(instrument, exposure=None, methods=["IVW"], nboot=1000, seed=None, outcome_name="outcome"):
    """
    Univariable MR on the included variants of an :class:`Instrument`.
    Corresponds to the :meth:`TissueMR.MR` and :meth:`TissueMR.tissue_MR` methods.

    Args:
        instrument (Instrument): Harmonised instrument.
        exposure (str, optional): Exposure column to use. Defaults to the first exposure.
        methods (list, optional): Any of "IVW", "IVW-FE", "Egger", "WM", "Simple-median" or "all".
        nboot (int, optional): Bootstrap replications of the median methods.
        seed (int, optional): Seed of the median bootstraps.
        outcome_name (str, optional): Outcome name reported in the results.

    Returns:
        pd.DataFrame: One row per method (two for Egger: slope and intercept).
    """
    methods = _check_methods(methods, MR_METHODS_NAMES)
    exposure = instrument.exposures[0] if exposure is None else exposure
    if exposure not in instrument.exposures:
        raise ValueError(f"{exposure} is not an exposure of the instrument ({instrument.exposures}).")

    mask = instrument.include.values
    BETA_e = instrument.beta_e.loc[mask, exposure].values
    SE_e = instrument.se_e.loc[mask, exposure].values
    BETA_o = instrument.beta_o[mask].values
    SE_o = instrument.se_o[mask].values

    print(
        f"Running Mendelian Randomization with {exposure} as exposure and {outcome_name} as outcome ({len(BETA_e)} SNPs)."
    )
    FUNCTION_MAP = {
        "IVW": partial(mr_ivw, BETA_e, SE_e, BETA_o, SE_o),
        "IVW-FE": partial(mr_ivw_fe, BETA_e, SE_e, BETA_o, SE_o),
        "Egger": partial(mr_egger_regression, BETA_e, SE_e, BETA_o, SE_o),
        "WM": partial(mr_weighted_median, BETA_e, SE_e, BETA_o, SE_o, nboot, seed),
        "Simple-median": partial(mr_simple_median, BETA_e, SE_e, BETA_o, SE_o, nboot, seed),
    }

    results = []
    for method in methods:
        results.extend(FUNCTION_MAP[method]())

    res = pd.DataFrame(results).reindex(columns=RESULT_COLUMNS)
    res["exposure"], res["outcome"] = exposure, outcome_name
    res["Q_df"] = res["Q_df"].astype("Int64")
    return res


MVMR_FUNCTIONS = {
    "IVW": mr_mv_ivw,
    "IVW-FE": mr_mv_ivw_fe,
    "Egger": mr_mv_egger,
}


def MVMR_func(instrument, methods=["IVW"], outcome_name="outcome"):
    """
    Multivariable MR on the included variants of an :class:`Instrument`, all exposures estimated jointly.

    Args:
        instrument (Instrument): Instrument with one column per exposure.
        methods (list, optional): Any of "IVW", "IVW-FE", "Egger" or "all".
        outcome_name (str, optional): Outcome name reported in the results.

    Returns:
        pd.DataFrame: One row per exposure and method.

    Raises:
        EstimationFailure: If a method cannot produce estimates for the included variants.
    """
    methods = _check_methods(methods, MVMR_METHODS_NAMES)
    mask = instrument.include.values
    BETA_e = instrument.beta_e[mask]
    BETA_o = instrument.beta_o[mask].values
    SE_o = instrument.se_o[mask].values

    results = []
    for method in methods:
        results.extend(MVMR_FUNCTIONS[method](BETA_e, SE_o, BETA_o))

    res = pd.DataFrame(results).reindex(columns=RESULT_COLUMNS)
    res["outcome"] = outcome_name
    res["Q_df"] = res["Q_df"].astype("Int64")
    return res
