import numpy as np
import pandas as pd

from .constants import REQUIRED_COLUMNS
from .instrument import Instrument

PALINDROMES = {("A", "T"), ("T", "A"), ("C", "G"), ("G", "C")}


def harmonize_MR(df_exposure, df_outcome, action=2, eaf_threshold=0.42):
    """
    Harmonize exposure and outcome for MR analyses.

    Args:
        df_exposure (pd.DataFrame): Exposure data with "SNP","BETA","SE","EA","NEA" and "EAF" if action=2
        df_outcome (pd.DataFrame): Outcome data with "SNP","BETA","SE","EA","NEA" and "EAF" if action=2
        action (int, optional): Determines how to treat palindromes. Defaults to 2.
            1: Doesn't attempt to flip them (= Assume all alleles are coded on the forward strand)
            2: Use allele frequencies (EAF) to attempt to flip them (conservative, default)
            3: Remove all palindromic SNPs (very conservative).
        eaf_threshold (float, optional): Maximal effect allele frequency accepted when attempting to flip
            palindromic SNPs (only applied if action = 2). Defaults to 0.42.

    Returns:
        pd.DataFrame: Harmonized data with _e (exposure) and _o (outcome) suffixed columns.

    Notes:
        - SNPs absent from the outcome are dropped
        - SNPs are classified into aligned / inverted / to be strand-flipped
        - Inverted SNPs have their outcome BETA and EAF switched
        - SNPs that are still not aligned are removed (allele mismatch)
        - Palindromes are treated according to the action parameter
    """
    if action not in [1, 2, 3]:
        raise ValueError("The action argument only takes 1,2 or 3 as value")
    check_required_columns(df_exposure, REQUIRED_COLUMNS)
    check_required_columns(df_outcome, REQUIRED_COLUMNS)

    df_exposure = df_exposure.rename(
        columns={col: f"{col}_e" for col in ["EA", "NEA", "EAF", "BETA", "SE", "P"]}
    )
    df_outcome = df_outcome.rename(
        columns={col: f"{col}_o" for col in ["EA", "NEA", "EAF", "BETA", "SE", "P"]}
    )
    df_outcome = df_outcome[
        df_outcome.columns.intersection(["SNP", "EA_o", "NEA_o", "EAF_o", "BETA_o", "SE_o", "P_o"])
    ]

    df = df_exposure.merge(df_outcome, on="SNP", how="inner")
    n_absent = df_exposure.shape[0] - df.shape[0]
    if n_absent > 0:
        print(f"{n_absent} SNPs out of {df_exposure.shape[0]} are absent from the outcome data and are excluded.")

    if "EAF_e" not in df.columns:
        df["EAF_e"] = 0.5
    if "EAF_o" not in df.columns:
        df["EAF_o"] = 0.5

    df["palindrome"] = [(ea, nea) in PALINDROMES for ea, nea in zip(df["EA_e"], df["NEA_e"])]
    df["aligned"] = (df.EA_e == df.EA_o) & (df.NEA_e == df.NEA_o)
    df["inverted"] = (df.EA_e == df.NEA_o) & (df.NEA_e == df.EA_o)
    df["to_flip"] = ~df["aligned"] & ~df["inverted"] & ~df["palindrome"]

    # Strand flips
    if df["to_flip"].any():
        flip = df["to_flip"]
        df.loc[flip, "EA_o"] = flip_alleles(df.loc[flip, "EA_o"])
        df.loc[flip, "NEA_o"] = flip_alleles(df.loc[flip, "NEA_o"])

    # Inverted SNPs (possibly after the strand flip)
    df["inverted"] = (df["EA_e"] == df["NEA_o"]) & (df["NEA_e"] == df["EA_o"])
    if df["inverted"].any():
        inv = df["inverted"]
        df.loc[inv, ["EA_o", "NEA_o"]] = df.loc[inv, ["NEA_o", "EA_o"]].values
        df.loc[inv, "BETA_o"] *= -1
        df.loc[inv, "EAF_o"] = 1 - df.loc[inv, "EAF_o"]

    df["aligned"] = (df["EA_e"] == df["EA_o"]) & (df["NEA_e"] == df["NEA_o"])
    n_mismatch = (~df["aligned"]).sum()
    if n_mismatch > 0:
        print(
            f"{n_mismatch} SNPs have been excluded due to a mismatch between the exposure and outcome alleles data."
        )
    df = df[df["aligned"]].reset_index(drop=True)

    if action == 3:
        snps_deleted = df[df.palindrome].SNP.values
        df = df[~df.palindrome].reset_index(drop=True)
        print(f"Action = 3: excluding {len(snps_deleted)} palindromic SNPs: {', '.join(snps_deleted)}")
    elif action == 2:
        df = apply_action_2(df, eaf_threshold)
    else:
        print("Action = 1: Keeping all palindromic SNPs without attempting to flip them.")

    return df


def harmonize_mv(exposures, df_outcome, snps=None, action=2, eaf_threshold=0.42):
    """
    Harmonize several exposures and one outcome into a multi-exposure :class:`Instrument`.

    The alleles of the first exposure are the reference: the other exposures and the outcome are aligned to it.

    Args:
        exposures (dict): Exposure name -> summary statistics dataframe. Must contain the instrument SNPs.
        df_outcome (pd.DataFrame): Outcome summary statistics.
        snps (list, optional): Instrument SNPs. Defaults to all SNPs of the first exposure.
        action (int, optional): Palindrome treatment, see :func:`harmonize_MR`.
        eaf_threshold (float, optional): See :func:`harmonize_MR`.

    Returns:
        Instrument: One exposure column per exposure name, all variants included.
    """
    if not exposures:
        raise ValueError("At least one exposure is required.")
    names = list(exposures)
    reference = exposures[names[0]]
    if snps is not None:
        reference = reference[reference["SNP"].isin(snps)]

    df = harmonize_MR(reference, df_outcome, action=action, eaf_threshold=eaf_threshold)
    df = df.rename(columns={"BETA_e": f"BETA_e_{names[0]}", "SE_e": f"SE_e_{names[0]}"})

    for name in names[1:]:
        print(f"Aligning {name} to the alleles of {names[0]}.")
        other = harmonize_MR(reference, exposures[name], action=action, eaf_threshold=eaf_threshold)
        other = other[["SNP", "BETA_o", "SE_o"]].rename(
            columns={"BETA_o": f"BETA_e_{name}", "SE_o": f"SE_e_{name}"}
        )
        df = df.merge(other, on="SNP", how="inner")

    value_columns = [f"{kind}_e_{name}" for name in names for kind in ("BETA", "SE")] + ["BETA_o", "SE_o"]
    df = df_mr_formatting(df, value_columns)
    print(f"{df.shape[0]} SNPs harmonized across {len(names)} exposure(s) and the outcome.")
    return Instrument.from_frame(df, exposures=names)


def df_mr_formatting(df_mr, value_columns):
    """Delete rows with NA or infinite effect values, or null standard errors, and report them."""
    df_mr = df_mr.copy()
    values = df_mr[value_columns].replace([np.inf, -np.inf], np.nan)
    se_columns = [col for col in value_columns if col.startswith("SE")]
    values[se_columns] = values[se_columns].replace(0, np.nan)
    invalid = values.isna().any(axis=1)
    if invalid.any():
        print(
            f"Deleting {invalid.sum()} SNPs with NA or infinite values in BETA/SE columns, or null values in SE columns: {df_mr.loc[invalid, 'SNP'].tolist()}"
        )
    df_mr[value_columns] = values
    return df_mr[~invalid].reset_index(drop=True)


def flip_alleles(x):
    """Flip the alleles."""
    return x.str.upper().map({"A": "T", "T": "A", "C": "G", "G": "C"})


def check_required_columns(df, columns):
    """Check if the required columns are present in the dataframe."""
    missing_columns = [col for col in columns if col not in df.columns]
    if missing_columns:
        raise ValueError(
            f"The columns {', '.join(missing_columns)} are not found in the data and are necessary."
        )


def apply_action_2(df, eaf_threshold):
    """
    Use EAF_e and EAF_o to align palindromes if both EAFs are outside the intermediate allele frequency range.
        - NA values in EAF columns are set to 0.5 (and the SNP is then removed as ambiguous)
        - Palindromes with an intermediate allele frequency are deleted
        - Remaining palindromes with discordant frequencies are flipped
    """
    df = df.copy()
    df["EAF_e"] = df["EAF_e"].fillna(0.5)
    df["EAF_o"] = df["EAF_o"].fillna(0.5)

    minf = np.minimum(eaf_threshold, 1 - eaf_threshold)
    maxf = 1 - minf

    df["ambiguous"] = df["palindrome"] & (
        df["EAF_e"].between(minf, maxf) | df["EAF_o"].between(minf, maxf)
    )
    snps_deleted = df[df.ambiguous].SNP.values
    df = df[~df.ambiguous]
    if len(snps_deleted) > 0:
        print(
            f"Action = 2: {len(snps_deleted)} SNPs excluded for being palindromic with intermediate allele frequencies: {', '.join(snps_deleted)}"
        )
    else:
        print("Action = 2: None of the SNPs are palindromic with intermediate allele frequency, keeping all of them.")

    to_flip = df["palindrome"] & ((df.EAF_e - 0.5) * (df.EAF_o - 0.5) < 0)
    if to_flip.any():
        df.loc[to_flip, "BETA_o"] *= -1
        df.loc[to_flip, "EAF_o"] = 1 - df.loc[to_flip, "EAF_o"]
        print(f"Action = 2: {to_flip.sum()} palindromic SNPs have been flipped.")

    return df.reset_index(drop=True)
