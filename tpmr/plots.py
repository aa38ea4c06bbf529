from __future__ import annotations

import warnings

import numpy as np
import pandas as pd
from plotnine import (
    aes,
    element_text,
    facet_wrap,
    geom_errorbarh,
    geom_hline,
    geom_line,
    geom_point,
    geom_tile,
    geom_vline,
    ggplot,
    labs,
    scale_fill_gradient2,
    theme,
    theme_bw,
)

from .constants import MR_METHODS_NAMES


def _validate_figure_size(figure_size):
    if figure_size is None:
        return None
    if not isinstance(figure_size, (tuple, list)) or len(figure_size) != 2:
        raise ValueError("figure_size must be a tuple like (width, height) in inches.")
    fig_width, fig_height = figure_size
    if not isinstance(fig_width, (int, float)) or not isinstance(fig_height, (int, float)):
        raise ValueError("figure_size must be a tuple of two numbers (width, height) in inches.")
    if fig_width <= 0 or fig_height <= 0:
        raise ValueError("figure_size values must be > 0.")
    return float(fig_width), float(fig_height)


def _save(plot, filename, figure_size_norm):
    if filename:
        plot.save(
            f"{filename}.png",
            dpi=500,
            width=figure_size_norm[0],
            height=figure_size_norm[1],
            verbose=False,
        )


def density_plot(models, tissues=None, filename=None, figure_size=None):
    """
    Plot the PPH4 density model of each tissue, one panel per tissue.

    Args:
        models (dict): tissue -> DensityModel.
        tissues (list, optional): Tissues to plot. Defaults to all.
    """
    if not models:
        raise ValueError("No density model to plot. Build them with build_density_models first.")
    tissues = list(models) if tissues is None else tissues
    missing = [t for t in tissues if t not in models]
    if missing:
        warnings.warn(f"No density model for {missing}, they will be excluded from the plot.")
    data = pd.concat([models[t].to_frame() for t in tissues if t in models], ignore_index=True)
    figure_size_norm = _validate_figure_size(figure_size) or (10, 6)

    plot = (
        ggplot(data, aes("PPH4", "density"))
        + geom_line()
        + facet_wrap("~tissue", scales="free_y")
        + labs(x="PPH4", y="Density")
        + theme_bw()
        + theme(
            axis_title=element_text(size=12),
            axis_text=element_text(size=8),
            figure_size=figure_size_norm,
        )
    )
    _save(plot, filename, figure_size_norm)
    return plot


def sweep_plot(results, x="threshold", y="b_diff", method=None, filename=None, figure_size=None):
    """
    Scatter plot of a result column of a sweep against another (by default b_diff against the threshold),
    one panel per tissue pair.
    """
    if results is None or results.empty:
        raise ValueError("The sweep has no successful scenario to plot.")
    for col in [x, y]:
        if col not in results.columns:
            raise ValueError(f"The column {col} is not in the sweep results.")
    data = results if method is None else results[results["method"] == method]
    data = data.assign(pair=data["tissue_1"].astype(str) + " vs " + data["tissue_2"].astype(str))
    figure_size_norm = _validate_figure_size(figure_size) or (10, 6)

    plot = (
        ggplot(data, aes(x, y))
        + geom_point(size=0.8, alpha=0.6)
        + geom_hline(yintercept=0, linetype="dashed", color="gray")
        + facet_wrap("~pair")
        + labs(x=x, y=y)
        + theme_bw()
        + theme(
            axis_title=element_text(size=12),
            axis_text=element_text(size=8),
            figure_size=figure_size_norm,
        )
    )
    _save(plot, filename, figure_size_norm)
    return plot


def tissue_pair_heatmap(summary, value="b_diff", threshold=None, filename=None, figure_size=None):
    """Heatmap of a summarised value (mean b_diff by default) for every tissue pair at one threshold."""
    if summary is None or summary.empty:
        raise ValueError("The summary is empty.")
    if value not in summary.columns:
        raise ValueError(f"The column {value} is not in the summary.")
    if threshold is None:
        threshold = summary["threshold"].iloc[0]
    data = summary[np.isclose(summary["threshold"], threshold)]
    figure_size_norm = _validate_figure_size(figure_size) or (8, 7)

    plot = (
        ggplot(data, aes("tissue_2", "tissue_1", fill=value))
        + geom_tile(color="white")
        + scale_fill_gradient2(low="#2166AC", mid="white", high="#B2182B", midpoint=0)
        + labs(x="Tissue 2", y="Tissue 1", fill=value, title=f"PPH4 threshold {threshold}")
        + theme_bw()
        + theme(
            axis_text_x=element_text(rotation=45, hjust=1, size=8),
            axis_text_y=element_text(size=8),
            figure_size=figure_size_norm,
        )
    )
    _save(plot, filename, figure_size_norm)
    return plot


def mr_forest(
    res,
    methods,
    exposure_name=None,
    outcome_name=None,
    odds=False,
    filename=None,
    figure_size=None,
):
    """
    Creates and returns a forest plot of MR results, with one row per method (and per tissue when the
    results hold a "tissue" column, as those of :meth:`TissueMR.tissue_MR`).
    """
    if res is None:
        raise ValueError(
            "You need to run an MR analysis with the MR or tissue_MR method before calling the MR_forest function."
        )
    exposure_name = "Exposure" if not exposure_name else exposure_name
    outcome_name = "Outcome" if not outcome_name else outcome_name
    figure_size_norm = _validate_figure_size(figure_size) or (10, 6)

    plot_data = []
    for method in methods:
        if method not in MR_METHODS_NAMES.keys():
            warnings.warn(
                f"{method} is not an appropriate MR method. MR methods can be IVW, WM, Egger... Please refer to the documentation for more."
            )
            continue

        method_name = MR_METHODS_NAMES[method]
        if isinstance(method_name, tuple):
            method_name = method_name[0]

        res_rows = res[res.method == method_name]
        if res_rows.shape[0] == 0:
            warnings.warn(
                f"The {method_name} ({method}) method was not included in the MR method call and will be excluded from the plot."
            )
        for _, row in res_rows.iterrows():
            label = method_name if "tissue" not in res.columns else f"{row['tissue']}: {method_name}"
            plot_data.append({"Method": label, "Estimate": row["b"], "SE": row["se"], "nSNP": row["nSNP"]})

    plot_df = pd.DataFrame(plot_data, columns=["Method", "Estimate", "SE", "nSNP"])
    if odds:
        plot_df["CI_lower"] = np.exp(plot_df["Estimate"] - 1.96 * plot_df["SE"])
        plot_df["CI_upper"] = np.exp(plot_df["Estimate"] + 1.96 * plot_df["SE"])
        plot_df["Estimate"] = np.exp(plot_df["Estimate"])
        x_label = f"Odds Ratio for {outcome_name} per unit increase in {exposure_name}"
        null_line = 1
    else:
        plot_df["CI_lower"] = plot_df["Estimate"] - 1.96 * plot_df["SE"]
        plot_df["CI_upper"] = plot_df["Estimate"] + 1.96 * plot_df["SE"]
        x_label = f"Effect on {outcome_name} per unit increase in {exposure_name}"
        null_line = 0

    plot_df["Method"] = pd.Categorical(
        plot_df["Method"], categories=list(dict.fromkeys(plot_df["Method"].values[::-1])), ordered=True
    )

    plot = (
        ggplot(plot_df, aes(x="Estimate", y="Method"))
        + geom_point(size=3)
        + geom_errorbarh(aes(xmin="CI_lower", xmax="CI_upper"), height=0.2)
        + theme(
            axis_title=element_text(size=12),
            axis_text=element_text(size=10),
            figure_size=figure_size_norm,
        )
        + labs(x=x_label, y="")
        + geom_vline(xintercept=null_line, linetype="dashed", color="gray")
    )
    _save(plot, filename, figure_size_norm)
    return plot
