from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd
import pytest


def test_remove_na_drops_rows_in_standard_columns() -> None:
    from tpmr.gwas_tools import remove_na

    df = pd.DataFrame(
        {
            "SNP": ["rs1", "rs2", "rs3"],
            "BETA": [0.1, np.nan, 0.3],
            "extra": [np.nan, np.nan, np.nan],
        }
    )
    remove_na(df)
    assert df["SNP"].tolist() == ["rs1", "rs3"]


def test_check_snp_column_deduplicates() -> None:
    from tpmr.gwas_tools import check_snp_column

    df = pd.DataFrame({"SNP": ["rs1", "rs1", "rs2"], "P": [0.1, 0.2, 0.3]})
    check_snp_column(df)
    assert df["SNP"].tolist() == ["rs1", "rs2"]
    assert df["P"].tolist() == [0.1, 0.3]


def test_check_allele_column_validates_and_handles_indels() -> None:
    from tpmr.gwas_tools import check_allele_column

    df = pd.DataFrame({"EA": ["a", "AT", "G", "-"]})
    check_allele_column(df, "EA")
    assert df["EA"].tolist()[0] == "A"
    assert df["EA"].isna().tolist() == [False, True, False, True]


def test_fill_se_p_creates_missing_column() -> None:
    from tpmr.gwas_tools import fill_se_p

    df = pd.DataFrame({"BETA": [0.2, -0.1], "SE": [0.1, 0.05]})
    fill_se_p(df)
    assert df["P"].tolist() == pytest.approx([0.0455, 0.0455], abs=1e-3)

    df = pd.DataFrame({"BETA": [0.2], "P": [0.04550026]})
    fill_se_p(df)
    assert df["SE"].iloc[0] == pytest.approx(0.1, rel=1e-4)


def test_check_p_column_sanitizes_range() -> None:
    from tpmr.gwas_tools import check_p_column

    df = pd.DataFrame({"P": [0.5, -1, 2, "x"]})
    check_p_column(df)
    assert df["P"].isna().tolist() == [False, True, True, True]


def test_check_int_column_extracts_digits() -> None:
    from tpmr.gwas_tools import check_int_column

    df = pd.DataFrame({"CHR": ["chr1", "2", "X"]})
    check_int_column(df, "CHR")
    assert str(df["CHR"].dtype) == "Int64"
    assert df["CHR"].tolist()[:2] == [1, 2]
    assert pd.isna(df["CHR"].iloc[2])


def test_adjust_column_names_validates_duplicates() -> None:
    from tpmr.gwas_tools import adjust_column_names

    df = pd.DataFrame({"beta": [0.1], "BETA": [0.2]})
    with pytest.raises(ValueError, match="duplicated"):
        adjust_column_names(df, "CHR", "POS", "SNP", "EA", "NEA", "beta", "SE", "P", "EAF", True)
    with pytest.raises(TypeError, match="not found"):
        adjust_column_names(df, "CHR", "POS", "rsid", "EA", "NEA", "BETA", "SE", "P", "EAF", True)


def test_load_gwas_from_dataframe_renames_and_cleans() -> None:
    from tpmr.gwas_tools import load_gwas

    df = pd.DataFrame(
        {
            "chrom": ["1", "1", "2", "2"],
            "pos": [100, 200, 300, 300],
            "rsid": ["rs1", "rs2", "rs3", "rs3"],
            "a1": ["A", "C", "AT", "G"],
            "a2": ["G", "T", "A", "C"],
            "beta": [0.1, 0.2, 0.3, 0.4],
            "se": [0.01, 0.02, 0.03, 0.04],
            "note": ["x", "y", "z", "w"],
        }
    )
    out = load_gwas(df, CHR="chrom", POS="pos", SNP="rsid", EA="a1", NEA="a2", BETA="beta", SE="se", keep_columns=False)

    assert "note" not in out.columns
    assert set(["CHR", "POS", "SNP", "EA", "NEA", "BETA", "SE", "P"]) <= set(out.columns)
    # rs3 is duplicated (first copy is an indel) and is dropped
    assert out["SNP"].tolist() == ["rs1", "rs2"]
    assert out["P"].notna().all()
    assert df.columns[0] == "chrom"


def test_load_gwas_from_file(tmp_path: Path) -> None:
    from instrument_examples import make_exposure
    from tpmr.gwas_tools import load_gwas

    path = tmp_path / "exposure.tsv"
    make_exposure(10).to_csv(path, sep="\t", index=False)
    out = load_gwas(str(path), sep="\t")
    assert out.shape[0] == 10
    assert str(out["POS"].dtype) == "Int64"


def test_load_gwas_rejects_other_types() -> None:
    from tpmr.gwas_tools import load_gwas

    with pytest.raises(TypeError):
        load_gwas(42)
