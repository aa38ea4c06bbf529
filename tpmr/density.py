from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd
from sklearn.neighbors import KernelDensity

from .constants import KDE_GRID_POINTS, KDE_CUT, DEFAULT_GENE_TYPE
from .exceptions import InsufficientData


@dataclass(frozen=True, eq=False)
class DensityModel:
    """
    Smoothed distribution of the PPH4 values observed for one tissue.

    Attributes:
        tissue (str): Tissue name.
        support (np.ndarray): Grid of PPH4 values, spanning exactly [0, 1].
        density (np.ndarray): Non-negative, unnormalised sampling weights of each support value.
        n_obs (int): Number of observations the model was estimated from.
    """

    tissue: str
    support: np.ndarray
    density: np.ndarray
    n_obs: int

    def sample(self, n, rng):
        """Draw n PPH4 values with replacement, using the density as relative probabilities."""
        return rng.choice(self.support, size=n, replace=True, p=self.density / self.density.sum())

    def to_frame(self):
        return pd.DataFrame({"tissue": self.tissue, "PPH4": self.support, "density": self.density})


def bandwidth_nrd0(x):
    """Silverman's rule of thumb, as R's bw.nrd0."""
    hi = np.std(x, ddof=1)
    q75, q25 = np.percentile(x, [75, 25])
    lo = min(hi, (q75 - q25) / 1.34)
    if not lo:
        lo = hi or abs(x[0]) or 1
    return 0.9 * lo * len(x) ** (-0.2)


def build_density_model(pph4, tissue="tissue", n_points=KDE_GRID_POINTS):
    """
    Estimate the distribution of PPH4 values of a tissue with a gaussian kernel density estimate.

    The density is evaluated on n_points over [min - 3h, max + 3h] (h being the bandwidth) and the support is then
    min-max rescaled to [0, 1], which corrects the leakage of the kernels beyond the bounds of a probability.

    Args:
        pph4 (array-like): Observed PPH4 values in [0, 1]. Missing values are ignored.
        tissue (str, optional): Tissue name stored in the model.
        n_points (int, optional): Size of the evaluation grid. Default is 1000.

    Returns:
        DensityModel

    Raises:
        InsufficientData: If fewer than 2 distinct values are observed.
        ValueError: If values lie outside [0, 1].
    """
    x = pd.to_numeric(pd.Series(pph4, dtype="float64"), errors="coerce").dropna().to_numpy()
    if ((x < 0) | (x > 1)).any():
        raise ValueError(f"PPH4 values of {tissue} must lie in [0, 1].")
    if np.unique(x).size < 2:
        raise InsufficientData(
            f"{tissue}: {np.unique(x).size} distinct PPH4 value(s) observed, at least 2 are required to estimate a density."
        )

    h = bandwidth_nrd0(x)
    kde = KernelDensity(bandwidth=h, kernel="gaussian")
    kde.fit(x.reshape(-1, 1))

    grid = np.linspace(x.min() - KDE_CUT * h, x.max() + KDE_CUT * h, n_points)
    density = np.exp(kde.score_samples(grid[:, np.newaxis]))
    support = (grid - grid.min()) / (grid.max() - grid.min())

    return DensityModel(tissue=tissue, support=support, density=density, n_obs=len(x))


def locus_max_pph4(coloc, gene_type=DEFAULT_GENE_TYPE):
    """
    Reduce colocalisation results to one PPH4 per locus and tissue: the maximum over the candidate genes
    of the requested type.

    Args:
        coloc (pd.DataFrame): Colocalisation results with at least "tissue" and "PPH4" columns, a "locus" column
            or "CHR"/"POS" columns, and a "gene_type" column if gene_type is not None.
        gene_type (str, optional): Gene type kept ("protein_coding" by default). None keeps every gene.

    Returns:
        pd.DataFrame: tissue, locus key column(s) and PPH4.
    """
    for col in ["tissue", "PPH4"]:
        if col not in coloc.columns:
            raise ValueError(f"The column {col} is not found in the colocalisation results.")
    if "locus" in coloc.columns:
        keys = ["locus"]
    elif {"CHR", "POS"} <= set(coloc.columns):
        keys = ["CHR", "POS"]
    else:
        raise ValueError("The colocalisation results need a locus column or CHR and POS columns.")

    if gene_type is not None:
        if "gene_type" not in coloc.columns:
            raise ValueError("gene_type filtering requested but the colocalisation results have no gene_type column.")
        n_initial = coloc.shape[0]
        coloc = coloc[coloc["gene_type"] == gene_type]
        print(f"{coloc.shape[0]} out of {n_initial} colocalisation results are for {gene_type} genes.")

    return coloc.groupby(["tissue"] + keys, as_index=False, observed=True)["PPH4"].max()


def density_models_from_coloc(coloc, tissues=None, gene_type=DEFAULT_GENE_TYPE, n_points=KDE_GRID_POINTS):
    """
    Build one :class:`DensityModel` per tissue from colocalisation results.

    Tissues without enough observations are skipped rather than failing the whole set.

    Args:
        coloc (pd.DataFrame): Colocalisation results, see :func:`locus_max_pph4`.
        tissues (list, optional): Tissues to model. Defaults to all tissues present.
        gene_type (str, optional): Gene type kept before taking the locus maximum.
        n_points (int, optional): Size of the evaluation grid.

    Returns:
        tuple: (dict tissue -> DensityModel, dict of skipped tissue -> reason)
    """
    per_locus = locus_max_pph4(coloc, gene_type)
    if tissues is None:
        tissues = sorted(per_locus["tissue"].unique())

    models, skipped = {}, {}
    for tissue in tissues:
        values = per_locus.loc[per_locus["tissue"] == tissue, "PPH4"]
        try:
            models[tissue] = build_density_model(values, tissue=tissue, n_points=n_points)
        except InsufficientData as e:
            print(f"Skipping {tissue}: {e}")
            skipped[tissue] = str(e)

    print(f"Density models built for {len(models)} tissue(s), {len(skipped)} skipped.")
    return models, skipped
