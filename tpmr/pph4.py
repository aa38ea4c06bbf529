from __future__ import annotations

import zlib
from dataclasses import dataclass

import numpy as np
import pandas as pd

from .constants import COLOC_COLUMNS, DEFAULT_GENE_TYPE
from .density import locus_max_pph4
from .exceptions import ConfigurationError, InsufficientData
from .gwas_tools import check_int_column, to_int_column


@dataclass(frozen=True, eq=False)
class DensitySource:
    """PPH4 values drawn at random from one :class:`DensityModel` per tissue."""

    models: dict

    stochastic = True

    @property
    def tissues(self):
        return list(self.models)


@dataclass(frozen=True, eq=False)
class ObservedSource:
    """Observed PPH4 values looked up by (CHR, POS, tissue)."""

    table: pd.DataFrame

    stochastic = False

    def __post_init__(self):
        missing = [col for col in COLOC_COLUMNS if col not in self.table.columns]
        if missing:
            raise ValueError(f"The observed PPH4 table is missing the columns {missing}.")
        table = _normalise_positions(self.table[COLOC_COLUMNS])
        table = (
            table.dropna(subset=["CHR", "POS", "tissue"])
            .astype({"CHR": "int64", "POS": "int64"})
            .groupby(["CHR", "POS", "tissue"], as_index=False)["PPH4"]
            .max()
        )
        object.__setattr__(self, "table", table)

    @property
    def tissues(self):
        return sorted(self.table["tissue"].unique())


def _normalise_positions(table):
    """Copy of a table with integer CHR and POS columns, NA where no integer can be read ("chr1" -> 1)."""
    table = table.copy()
    for col in ["CHR", "POS"]:
        check_int_column(table, col)
    return table


def make_source(density_models=None, observed=None):
    """
    Build the PPH4 source of an analysis. Exactly one of density_models or observed must be given.

    Args:
        density_models (dict, optional): tissue -> DensityModel.
        observed (pd.DataFrame, optional): Table with CHR, POS, tissue and PPH4 columns.

    Raises:
        ConfigurationError: If both or none are given.
    """
    if (density_models is None) == (observed is None):
        raise ConfigurationError(
            "Provide either density models or an observed PPH4 table (exactly one of them)."
        )
    if density_models is not None:
        return DensitySource(dict(density_models))
    return ObservedSource(observed)


def observed_table_from_coloc(coloc, gene_type=DEFAULT_GENE_TYPE):
    """Observed PPH4 table (CHR, POS, tissue, PPH4) from colocalisation results, max over candidate genes."""
    if not {"CHR", "POS"} <= set(coloc.columns):
        raise ValueError("The colocalisation results need CHR and POS columns to be matched to the instrument.")
    coloc = _normalise_positions(coloc.drop(columns="locus", errors="ignore"))
    coloc = coloc.dropna(subset=["CHR", "POS"])
    return locus_max_pph4(coloc, gene_type)[COLOC_COLUMNS]


def position_keys(instrument):
    """
    Integer CHR and POS of the variants of an instrument, used to look up observed PPH4 values.

    Raises:
        ConfigurationError: If no variant has both a CHR and a POS.
    """
    keys = pd.DataFrame({col: to_int_column(instrument.variants[col]).values for col in ["CHR", "POS"]})
    if keys.isna().any(axis=1).all():
        raise ConfigurationError(
            "Observed PPH4 values are matched by CHR and POS but no variant of the instrument has both."
        )
    return keys


def tissue_rng(seed, tissue):
    """Random generator specific to a (seed, tissue) pair, stable across processes."""
    return np.random.default_rng([int(seed), zlib.crc32(str(tissue).encode())])


def sample_pph4(source, instrument, tissue, seed=0):
    """
    One PPH4 value per variant of the instrument for a tissue.

    With a :class:`DensitySource` the values are drawn from the tissue's density model, deterministically for a
    given (seed, tissue). With an :class:`ObservedSource` they are looked up by CHR/POS; variants without an
    observed value get a PPH4 of 0.

    Returns:
        np.ndarray: Array of length instrument.n_snps.
    """
    if isinstance(source, DensitySource):
        if tissue not in source.models:
            raise InsufficientData(f"No density model available for {tissue}.")
        return source.models[tissue].sample(instrument.n_snps, tissue_rng(seed, tissue))

    if isinstance(source, ObservedSource):
        keys = position_keys(instrument)
        observed = source.table[source.table["tissue"] == tissue]
        merged = keys.merge(
            observed[["CHR", "POS", "PPH4"]].astype({"CHR": "Int64", "POS": "Int64"}),
            on=["CHR", "POS"],
            how="left",
        )
        return merged["PPH4"].fillna(0.0).to_numpy(dtype=float)

    raise TypeError(f"Unknown PPH4 source: {type(source).__name__}")
