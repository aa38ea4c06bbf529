import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy.stats import norm, chi2, t

from .constants import MR_METHODS_NAMES, MVMR_METHODS_NAMES
from .exceptions import EstimationFailure


def _null_result(name):
    return {"method": name, "b": np.nan, "se": np.nan, "pval": np.nan, "nSNP": np.nan}


def _as_arrays(*columns):
    return [np.asarray(col, dtype=float) for col in columns]


"""
Regression methods
"""

def mr_ivw(BETA_e, SE_e, BETA_o, SE_o):
    """
    Perform a Mendelian Randomization analysis using the Inverse Variance Weighted (IVW) method with
    multiplicative random effects. The standard error is corrected for under dispersion.

    Args:
        BETA_e (numpy array): Effect sizes of genetic variants on the exposure.
        SE_e (numpy array): Standard errors corresponding to `BETA_e`.
        BETA_o (numpy array): Effect sizes of the same genetic variants on the outcome.
        SE_o (numpy array): Standard errors corresponding to `BETA_o`.

    Returns:
        list of dict: A list containing a dictionary with the results:
            - "method": Name of the analysis method.
            - "b": Coefficient of the regression, representing the causal estimate.
            - "se": Adjusted standard error of the coefficient.
            - "pval": P-value for the causal estimate.
            - "nSNP": Number of genetic variants used in the analysis.
            - "Q", "Q_df", "Q_pval": Cochran's Q heterogeneity statistic, degrees of freedom and p-value.
    """
    return _ivw(BETA_e, BETA_o, SE_o, fixed_effects=False)


def mr_ivw_fe(BETA_e, SE_e, BETA_o, SE_o):
    """
    Perform a Mendelian Randomization analysis using the Inverse Variance Weighted (IVW) method with fixed effects.
    Same arguments and return value as :func:`mr_ivw`.
    """
    return _ivw(BETA_e, BETA_o, SE_o, fixed_effects=True)


def _ivw(BETA_e, BETA_o, SE_o, fixed_effects):
    name = MR_METHODS_NAMES["IVW-FE" if fixed_effects else "IVW"]
    BETA_e, BETA_o, SE_o = _as_arrays(BETA_e, BETA_o, SE_o)
    l = len(BETA_e)
    if l < 2:
        return [_null_result(name)]

    model = sm.WLS(BETA_o, BETA_e, weights=1 / SE_o**2).fit()
    b = model.params[0]
    if fixed_effects:
        se = model.bse[0] / np.sqrt(model.mse_resid)
    else:
        se = model.bse[0] / min(1, np.sqrt(model.mse_resid))
    Q_df = l - 1
    Q = model.scale * Q_df

    return [
        {
            "method": name,
            "nSNP": l,
            "b": b,
            "se": se,
            "pval": 2 * norm.sf(abs(b / se)),
            "Q": Q,
            "Q_df": Q_df,
            "Q_pval": chi2.sf(Q, Q_df),
        }
    ]


def mr_egger_regression(BETA_e, SE_e, BETA_o, SE_o):
    """
    Perform a Mendelian Randomization analysis using the egger regression method.

    Variants are oriented so that their effect on the exposure is positive, then the outcome effects are regressed
    on the exposure effects with an intercept (weights 1/SE_o**2).

    Returns:
        list of dict: Two dictionaries, for the causal estimate (slope) and for the intercept
        (horizontal pleiotropy estimate), with the same keys as :func:`mr_ivw`.
    """
    names = MR_METHODS_NAMES["Egger"]
    BETA_e, BETA_o, SE_o = _as_arrays(BETA_e, BETA_o, SE_o)
    l = len(BETA_e)
    if l < 3:
        return [_null_result(names[0]), _null_result(names[1])]

    sign0 = np.sign(np.where(BETA_e == 0, 1, BETA_e))
    X = sm.add_constant(np.abs(BETA_e), has_constant="add")
    mod = sm.WLS(BETA_o * sign0, X, weights=1 / SE_o**2).fit()

    correction = min(1, np.sqrt(mod.mse_resid))
    Q_df = l - 2
    Q = mod.mse_resid * Q_df
    results = []
    for name, idx in zip(names, (1, 0)):
        b = mod.params[idx]
        se = mod.bse[idx] / correction
        results.append(
            {
                "method": name,
                "nSNP": l,
                "b": b,
                "se": se,
                "pval": 2 * t.sf(abs(b / se), Q_df),
                "Q": Q,
                "Q_df": Q_df,
                "Q_pval": chi2.sf(Q, Q_df),
            }
        )
    return results


"""
Median methods
"""

def weighted_median(b_iv, weights):
    """Weighted median of the ratio estimates, interpolated as in Bowden et al. (2016)."""
    order = np.argsort(b_iv)
    b_sorted = np.asarray(b_iv)[order]
    w_sorted = np.asarray(weights)[order]
    w_sum = np.cumsum(w_sorted) - 0.5 * w_sorted
    w_sum /= np.sum(w_sorted)
    below = np.max(np.where(w_sum < 0.5))
    return b_sorted[below] + (b_sorted[below + 1] - b_sorted[below]) * (0.5 - w_sum[below]) / (
        w_sum[below + 1] - w_sum[below]
    )


def weighted_median_bootstrap(BETA_e, SE_e, BETA_o, SE_o, weights, nboot, rng):
    """Standard deviation of the weighted median over parametric bootstrap replications."""
    med = np.zeros(nboot)
    for i in range(nboot):
        BETA_e_boot = rng.normal(loc=BETA_e, scale=SE_e)
        BETA_o_boot = rng.normal(loc=BETA_o, scale=SE_o)
        med[i] = weighted_median(BETA_o_boot / BETA_e_boot, weights)
    return np.std(med)


def mr_weighted_median(BETA_e, SE_e, BETA_o, SE_o, nboot=1000, seed=None):
    """
    Perform a Mendelian Randomization analysis using the weighted median method.

    Args:
        BETA_e, SE_e, BETA_o, SE_o (numpy array): Exposure and outcome effects with their standard errors.
        nboot (int): Number of boostrap iterations to obtain the standard error.
        seed (int, optional): Seed of the bootstrap random number generator.

    Returns:
        list of dict: A list containing a dictionary with the results (method, b, se, pval, nSNP).
    """
    BETA_e, SE_e, BETA_o, SE_o = _as_arrays(BETA_e, SE_e, BETA_o, SE_o)
    l = len(BETA_e)
    if l < 3:
        return [_null_result(MR_METHODS_NAMES["WM"])]

    b_iv = BETA_o / BETA_e
    VBj = (SE_o**2) / (BETA_e**2) + ((BETA_o**2) * (SE_e**2)) / (BETA_e**4)
    b = weighted_median(b_iv, 1 / VBj)
    se = weighted_median_bootstrap(BETA_e, SE_e, BETA_o, SE_o, 1 / VBj, nboot, np.random.default_rng(seed))
    return [{"method": MR_METHODS_NAMES["WM"], "nSNP": l, "b": b, "se": se, "pval": 2 * norm.sf(abs(b / se))}]


def mr_simple_median(BETA_e, SE_e, BETA_o, SE_o, nboot=1000, seed=None):
    """Perform a Mendelian Randomization analysis using the simple (unweighted) median method."""
    BETA_e, SE_e, BETA_o, SE_o = _as_arrays(BETA_e, SE_e, BETA_o, SE_o)
    l = len(BETA_e)
    if l < 3:
        return [_null_result(MR_METHODS_NAMES["Simple-median"])]

    weights = np.repeat(1 / l, l)
    b = weighted_median(BETA_o / BETA_e, weights)
    se = weighted_median_bootstrap(BETA_e, SE_e, BETA_o, SE_o, weights, nboot, np.random.default_rng(seed))
    return [
        {"method": MR_METHODS_NAMES["Simple-median"], "nSNP": l, "b": b, "se": se, "pval": 2 * norm.sf(abs(b / se))}
    ]


"""
Multivariable methods
"""

def _check_design(X, min_rows):
    n, k = X.shape
    if n < min_rows:
        raise EstimationFailure(
            f"{n} variants available but at least {min_rows} are required to estimate {k} exposure effects."
        )
    if np.linalg.matrix_rank(X) < X.shape[1]:
        raise EstimationFailure("The exposure effects are collinear across the included variants.")


def _check_estimates(*values):
    if not all(np.all(np.isfinite(v)) for v in values):
        raise EstimationFailure("The estimator returned non-finite estimates or standard errors.")


def mr_mv_ivw(BETA_e, SE_o, BETA_o, fixed_effects=False):
    """
    Multivariable inverse-variance weighted MR.

    The outcome effects are regressed on the matrix of exposure effects (no intercept) with weights 1/SE_o**2,
    so that each estimate is adjusted for the other exposures. The standard errors are corrected for under
    dispersion (random effects) unless fixed_effects=True.

    Args:
        BETA_e (pd.DataFrame): Effect sizes on the exposures, one column per exposure.
        SE_o (numpy array): Standard errors of the outcome effects.
        BETA_o (numpy array): Effect sizes on the outcome.
        fixed_effects (bool, optional): Use fixed-effect standard errors. Default is False.

    Returns:
        list of dict: One dictionary per exposure with "exposure", "method", "nSNP", "b", "se", "pval",
        "Q", "Q_df" and "Q_pval".

    Raises:
        EstimationFailure: Not enough variants, collinear exposures or non-finite estimates.
    """
    BETA_e = pd.DataFrame(BETA_e)
    X = BETA_e.to_numpy(dtype=float)
    BETA_o, SE_o = _as_arrays(BETA_o, SE_o)
    n, k = X.shape
    _check_design(X, k + 1)

    try:
        model = sm.WLS(BETA_o, X, weights=1 / SE_o**2).fit()
    except np.linalg.LinAlgError as e:
        raise EstimationFailure(f"Weighted regression failed: {e}")

    if fixed_effects:
        se = model.bse / np.sqrt(model.mse_resid)
    else:
        se = model.bse / min(1, np.sqrt(model.mse_resid))
    b = np.asarray(model.params)
    se = np.asarray(se)
    _check_estimates(b, se)

    Q_df = n - k
    Q = model.scale * Q_df
    name = MVMR_METHODS_NAMES["IVW-FE" if fixed_effects else "IVW"]
    return [
        {
            "exposure": exposure,
            "method": name,
            "nSNP": n,
            "b": b[i],
            "se": se[i],
            "pval": 2 * norm.sf(abs(b[i] / se[i])),
            "Q": Q,
            "Q_df": Q_df,
            "Q_pval": chi2.sf(Q, Q_df),
        }
        for i, exposure in enumerate(BETA_e.columns)
    ]


def mr_mv_ivw_fe(BETA_e, SE_o, BETA_o):
    """Multivariable IVW with fixed-effect standard errors. See :func:`mr_mv_ivw`."""
    return mr_mv_ivw(BETA_e, SE_o, BETA_o, fixed_effects=True)


def mr_mv_egger(BETA_e, SE_o, BETA_o):
    """
    Multivariable MR-Egger. Variants are oriented on the first exposure, and an intercept is estimated
    alongside the exposure effects. Returns one dictionary per exposure plus one for the intercept.
    """
    BETA_e = pd.DataFrame(BETA_e)
    X = BETA_e.to_numpy(dtype=float)
    BETA_o, SE_o = _as_arrays(BETA_o, SE_o)
    n, k = X.shape
    _check_design(X, k + 2)

    sign0 = np.sign(np.where(X[:, 0] == 0, 1, X[:, 0]))
    X = X * sign0[:, None]
    design = sm.add_constant(X, has_constant="add")
    try:
        model = sm.WLS(BETA_o * sign0, design, weights=1 / SE_o**2).fit()
    except np.linalg.LinAlgError as e:
        raise EstimationFailure(f"Weighted regression failed: {e}")

    b = np.asarray(model.params)
    se = np.asarray(model.bse) / min(1, np.sqrt(model.mse_resid))
    _check_estimates(b, se)

    Q_df = n - k - 1
    Q = model.scale * Q_df
    names = MVMR_METHODS_NAMES["Egger"]
    labels = [(exposure, names[0]) for exposure in BETA_e.columns] + [("intercept", names[1])]
    return [
        {
            "exposure": exposure,
            "method": method,
            "nSNP": n,
            "b": b[i],
            "se": se[i],
            "pval": 2 * t.sf(abs(b[i] / se[i]), Q_df),
            "Q": Q,
            "Q_df": Q_df,
            "Q_pval": chi2.sf(Q, Q_df),
        }
        # the constant is the first column of the design
        for i, (exposure, method) in zip([*range(1, k + 1), 0], labels)
    ]
