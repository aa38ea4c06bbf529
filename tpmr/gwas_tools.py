import os
import numpy as np
import pandas as pd
import scipy.stats as st
from collections import Counter

from .constants import STANDARD_COLUMNS


def load_gwas(
    data,
    CHR="CHR",
    POS="POS",
    SNP="SNP",
    EA="EA",
    NEA="NEA",
    BETA="BETA",
    SE="SE",
    P="P",
    EAF="EAF",
    keep_columns=True,
    sep=None,
    delete_na=True,
):
    """
    Load GWAS summary statistics and bring them to the standard column names used by tpmr.

    Args:
        data (str or pd.DataFrame): Path to a .csv/.tsv/.txt (optionally gzipped), .parquet or .h5 file,
            or a DataFrame with one row per variant.
        CHR, POS, SNP, EA, NEA, BETA, SE, P, EAF (str, optional): Column names in the input data.
            Columns absent from the data are simply not renamed.
        keep_columns (bool, optional): Keep the non-standard columns. Defaults to True.
        sep (str, optional): Separator for delimited files. Inferred by pandas if None.
        delete_na (bool, optional): Delete rows with missing values in the standard columns. Defaults to True.

    Returns:
        pd.DataFrame: Cleaned summary statistics.
    """
    if isinstance(data, pd.DataFrame):
        df = data.copy()
    elif isinstance(data, str):
        df = read_sumstats(data, sep)
    else:
        raise TypeError("data needs to be a pandas dataframe or a path to a file.")

    df = adjust_column_names(df, CHR, POS, SNP, EA, NEA, BETA, SE, P, EAF, keep_columns)

    for int_col in ["CHR", "POS"]:
        if int_col in df.columns:
            check_int_column(df, int_col)
    for allele_col in ["EA", "NEA"]:
        if allele_col in df.columns:
            check_allele_column(df, allele_col)
    if "BETA" in df.columns:
        df["BETA"] = pd.to_numeric(df["BETA"], errors="coerce")
    fill_se_p(df)
    if "P" in df.columns:
        check_p_column(df)
    if "SNP" in df.columns:
        check_snp_column(df)
    if delete_na:
        remove_na(df)

    df.reset_index(drop=True, inplace=True)
    return df


def read_sumstats(path, sep=None):
    """Read a summary statistics file based on its extension."""
    if not os.path.isfile(path):
        raise ValueError(f"The path provided doesn't lead to a file: {path}")
    if path.endswith((".h5", ".hdf5")):
        return pd.read_hdf(path, key="data")
    if path.endswith(".parquet"):
        return pd.read_parquet(path)
    if sep is None:
        sep = "," if ".csv" in path else "\t"
    return pd.read_csv(path, sep=sep, compression="infer")


def adjust_column_names(data, CHR, POS, SNP, EA, NEA, BETA, SE, P, EAF, keep_columns):
    """
    Rename columns to the standard names making sure that there are no duplicated names.
    Delete other columns if keep_columns=False.
    """
    if not isinstance(keep_columns, bool):
        raise TypeError(f"{keep_columns} only accepts values: True or False.")

    rename_dict = {
        CHR: "CHR",
        POS: "POS",
        SNP: "SNP",
        EA: "EA",
        NEA: "NEA",
        BETA: "BETA",
        SE: "SE",
        P: "P",
        EAF: "EAF",
    }
    for key, value in rename_dict.items():
        if key != value and key not in data.columns:
            raise TypeError(f"Column {key} is not found in the dataframe.")

    if not keep_columns:
        data = data[[col for col in data.columns if col in rename_dict]]

    data = data.rename(columns=rename_dict)

    column_counts = Counter(data.columns)
    duplicated_columns = [
        col for col, count in column_counts.items() if count > 1 and col in rename_dict.values()
    ]
    if duplicated_columns:
        raise ValueError(
            f"After adjusting the column names, the resulting dataframe has duplicated columns. Make sure your dataframe does not have a different column named {duplicated_columns}."
        )

    print(f"The following columns were found: {sorted(set(rename_dict.values()) & set(data.columns))}")
    return data


def to_int_column(values):
    """Integer part of CHR or POS values ("chr1" -> 1) as Int64, NA where there is none."""
    values = pd.Series(values)
    digits = values.astype(str).str.extract(r"(\d+)", expand=False).where(values.notna())
    return pd.to_numeric(digits, errors="coerce").round().astype("Int64")


def check_int_column(data, int_col):
    """Set the type of the int_col column to Int64 and non-numeric values to NA (CHR and POS columns)."""
    nrows = data.shape[0]
    data[int_col] = to_int_column(data[int_col])
    n_nan = data[int_col].isna().sum()
    if n_nan > 0:
        print(
            f"The {int_col} column contains {n_nan}({n_nan/nrows*100:.3f}%) values set to NaN (due to being missing or non-integer)."
        )
    return


def check_allele_column(data, allele_col):
    """Upper-case the allele column and set values that are not single A, T, C, G letters to NA."""
    nrows = data.shape[0]
    data[allele_col] = data[allele_col].astype(str).str.upper()
    valid = data[allele_col].str.fullmatch("[ATCG]", na=False)
    n_invalid = nrows - valid.sum()
    if n_invalid > 0:
        data.loc[~valid, allele_col] = np.nan
        print(
            f"{n_invalid}({n_invalid/nrows*100:.3f}%) rows contain values other than single A, T, C, G letters in the {allele_col} column (including insertions/deletions) and are set to NA."
        )
    return


def fill_se_p(data):
    """If either P or SE is missing but the other and BETA are present, fill it."""
    if {"P", "BETA"} <= set(data.columns) and "SE" not in data.columns:
        data["SE"] = np.where(data["P"] < 1, np.abs(data.BETA / st.norm.ppf(data.P / 2)), 0)
        print("The SE (Standard Error) column has been created.")
    if {"SE", "BETA"} <= set(data.columns) and "P" not in data.columns:
        data["P"] = np.where(data["SE"] > 0, 2 * st.norm.sf(np.abs(data.BETA) / data.SE), 1)
        print("The P (P-value) column has been created.")
    return


def check_p_column(data):
    """Verify that the P column contains numeric values in the range [0,1]. Set inappropriate values to NA."""
    nrows = data.shape[0]
    data["P"] = pd.to_numeric(data["P"], errors="coerce")
    data.loc[(data["P"] < 0) | (data["P"] > 1), "P"] = np.nan
    n_missing = data["P"].isna().sum()
    if n_missing > 0:
        print(
            f"{n_missing}({n_missing/nrows*100:.3f}%) values in the P column have been set to nan for being missing, non numeric or out of range [0,1]."
        )
    return


def check_snp_column(data):
    """Remove duplicates in the SNP column."""
    n_initial = data.shape[0]
    duplicate_indices = data[data.duplicated(subset=["SNP"], keep="first")].index
    n_del = len(duplicate_indices)
    if n_del > 0:
        data.drop(index=duplicate_indices, inplace=True)
        print(f"{n_del}({n_del/n_initial*100:.3f}%) SNPs with duplicated IDs (SNP column) have been removed.")
    return


def remove_na(data):
    """Delete rows with NA values in the standard columns."""
    nrows = data.shape[0]
    present = [col for col in STANDARD_COLUMNS if col in data.columns]
    columns_na = data[present].columns[data[present].isna().any()].tolist()
    data.dropna(subset=present, inplace=True)
    n_del = nrows - data.shape[0]
    if n_del > 0:
        print(f"Deleted {n_del}({n_del/nrows*100:.3f}%) rows containing NA values in columns {columns_na}.")
    return
