from __future__ import annotations

from dataclasses import dataclass, replace

import numpy as np
import pandas as pd


@dataclass(frozen=True, eq=False)
class Instrument:
    """
    Harmonised set of genetic variants used as instrumental variables.

    The variants (SNP, CHR, POS) are fixed once harmonised. Scenarios never modify an Instrument:
    every transformation returns a new object holding its own copies of the effect sizes and of
    the inclusion flag.

    Attributes:
        variants (pd.DataFrame): SNP, CHR and POS of each variant.
        beta_e (pd.DataFrame): Effect sizes on the exposures, one column per exposure label.
        se_e (pd.DataFrame): Standard errors of beta_e (same columns).
        beta_o (pd.Series): Effect sizes on the outcome.
        se_o (pd.Series): Standard errors of beta_o.
        include (pd.Series): Boolean inclusion flag of each variant.
    """

    variants: pd.DataFrame
    beta_e: pd.DataFrame
    se_e: pd.DataFrame
    beta_o: pd.Series
    se_o: pd.Series
    include: pd.Series = None

    def __post_init__(self):
        n = len(self.variants)
        include = self.include
        if include is None:
            include = np.ones(n, dtype=bool)
        parts = {
            "variants": pd.DataFrame(self.variants),
            "beta_e": pd.DataFrame(self.beta_e),
            "se_e": pd.DataFrame(self.se_e),
            "beta_o": pd.Series(self.beta_o, dtype=float, name="BETA_o"),
            "se_o": pd.Series(self.se_o, dtype=float, name="SE_o"),
            "include": pd.Series(np.asarray(include, dtype=bool), name="include"),
        }
        for key, value in parts.items():
            if len(value) != n:
                raise ValueError(f"{key} has {len(value)} rows but the instrument has {n} variants.")
            object.__setattr__(self, key, value.reset_index(drop=True).copy())
        if list(self.beta_e.columns) != list(self.se_e.columns):
            raise ValueError("beta_e and se_e must have the same exposure columns.")
        if self.beta_e.columns.duplicated().any():
            raise ValueError("Exposure labels must be unique.")

    @classmethod
    def from_frame(cls, df, exposures=None, exposure_name="exposure"):
        """
        Build an Instrument from a harmonised dataframe.

        Args:
            df (pd.DataFrame): Must contain SNP, BETA_o, SE_o and either BETA_e_<name>/SE_e_<name> columns
                for each exposure in exposures, or a single pair of BETA_e/SE_e columns. CHR and POS are used if present.
            exposures (list, optional): Exposure names. Inferred from the BETA_e_<name> columns if None.
            exposure_name (str, optional): Label of the exposure when the single BETA_e/SE_e columns are used.
        """
        for col in ["SNP", "BETA_o", "SE_o"]:
            if col not in df.columns:
                raise ValueError(f"The column {col} is not found in the data and is necessary.")

        if exposures is None:
            exposures = [col[len("BETA_e_"):] for col in df.columns if col.startswith("BETA_e_")]
        if exposures:
            beta_cols = [f"BETA_e_{name}" for name in exposures]
            se_cols = [f"SE_e_{name}" for name in exposures]
        elif "BETA_e" in df.columns and "SE_e" in df.columns:
            exposures, beta_cols, se_cols = [exposure_name], ["BETA_e"], ["SE_e"]
        else:
            raise ValueError("No exposure columns (BETA_e or BETA_e_<name>) found in the data.")
        missing = [col for col in beta_cols + se_cols if col not in df.columns]
        if missing:
            raise ValueError(f"The columns {', '.join(missing)} are not found in the data.")

        variants = pd.DataFrame(
            {
                "SNP": df["SNP"].values,
                "CHR": df["CHR"].values if "CHR" in df.columns else pd.NA,
                "POS": df["POS"].values if "POS" in df.columns else pd.NA,
            }
        )
        beta_e = pd.DataFrame(df[beta_cols].values, columns=exposures, dtype=float)
        se_e = pd.DataFrame(df[se_cols].values, columns=exposures, dtype=float)
        include = df["include"].values if "include" in df.columns else None
        return cls(variants, beta_e, se_e, df["BETA_o"].values, df["SE_o"].values, include)

    @property
    def exposures(self):
        return list(self.beta_e.columns)

    @property
    def n_snps(self):
        return len(self.variants)

    @property
    def n_included(self):
        return int(self.include.sum())

    def with_betas(self, beta_e):
        """Return a new Instrument with the exposure effect sizes replaced."""
        beta_e = pd.DataFrame(beta_e)
        if list(beta_e.columns) != self.exposures:
            raise ValueError(f"The new effect sizes must have the exposure columns {self.exposures}.")
        return replace(self, beta_e=beta_e)

    def with_mask(self, mask):
        """Return a new Instrument with the inclusion flag replaced."""
        return replace(self, include=np.asarray(mask, dtype=bool))

    def select_exposures(self, names):
        names = list(names)
        return replace(self, beta_e=self.beta_e[names], se_e=self.se_e[names])

    def rename_exposures(self, mapping):
        return replace(
            self,
            beta_e=self.beta_e.rename(columns=mapping),
            se_e=self.se_e.rename(columns=mapping),
        )

    def split_exposure(self, exposure, labels):
        """Duplicate the effect sizes of one exposure into one column per label."""
        if exposure not in self.exposures:
            raise ValueError(f"{exposure} is not an exposure of this instrument ({self.exposures}).")
        beta_e = pd.DataFrame({label: self.beta_e[exposure] for label in labels})
        se_e = pd.DataFrame({label: self.se_e[exposure] for label in labels})
        return replace(self, beta_e=beta_e, se_e=se_e)

    def to_frame(self):
        """Wide dataframe with one row per variant."""
        df = self.variants.copy()
        for name in self.exposures:
            df[f"BETA_e_{name}"] = self.beta_e[name]
            df[f"SE_e_{name}"] = self.se_e[name]
        df["BETA_o"] = self.beta_o
        df["SE_o"] = self.se_o
        df["include"] = self.include
        return df

    def included(self):
        """Wide dataframe restricted to the included variants."""
        return self.to_frame()[self.include.values].reset_index(drop=True)
