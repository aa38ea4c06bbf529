from __future__ import annotations

import pandas as pd
import pytest


def _exposure() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "SNP": ["rs_aligned", "rs_inverted", "rs_to_flip", "rs_mismatch", "rs_pal"],
            "CHR": [1, 1, 1, 1, 1],
            "POS": [100, 200, 300, 400, 500],
            "EA": ["A", "A", "A", "A", "A"],
            "NEA": ["C", "G", "C", "C", "T"],
            "BETA": [0.10, 0.20, 0.30, 0.40, 0.50],
            "SE": [0.01, 0.01, 0.01, 0.01, 0.01],
            "EAF": [0.10, 0.20, 0.30, 0.40, 0.10],
        }
    )


def _outcome() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "SNP": ["rs_aligned", "rs_inverted", "rs_to_flip", "rs_mismatch", "rs_pal"],
            "EA": ["A", "G", "T", "A", "T"],
            "NEA": ["C", "A", "G", "T", "A"],
            "BETA": [1.0, 2.0, 3.0, 4.0, 5.0],
            "SE": [0.02, 0.02, 0.02, 0.02, 0.02],
            "EAF": [0.11, 0.21, 0.31, 0.41, 0.91],
        }
    )


def test_harmonize_mr_flips_and_filters() -> None:
    from tpmr.harmonize import harmonize_MR

    out = harmonize_MR(_exposure(), _outcome(), action=3)
    assert set(out["SNP"]) == {"rs_aligned", "rs_inverted", "rs_to_flip"}

    inv = out[out["SNP"] == "rs_inverted"].iloc[0]
    assert inv["BETA_o"] == pytest.approx(-2.0)
    assert inv["EAF_o"] == pytest.approx(0.79)

    flipped = out[out["SNP"] == "rs_to_flip"].iloc[0]
    assert flipped["BETA_o"] == pytest.approx(3.0)


def test_harmonize_mr_action_2_flips_palindrome_with_discordant_frequencies() -> None:
    from tpmr.harmonize import harmonize_MR

    exposure = _exposure()
    outcome = _outcome()
    # rs_pal is coded on the same alleles but with opposite frequencies: the outcome strand is flipped
    outcome.loc[outcome["SNP"] == "rs_pal", ["EA", "NEA"]] = ["A", "T"]
    out = harmonize_MR(exposure, outcome, action=2)

    pal = out[out["SNP"] == "rs_pal"].iloc[0]
    assert pal["BETA_o"] == pytest.approx(-5.0)


def test_harmonize_mr_action_1_keeps_palindromes() -> None:
    from tpmr.harmonize import harmonize_MR

    out = harmonize_MR(_exposure(), _outcome(), action=1)
    assert "rs_pal" in set(out["SNP"])


def test_harmonize_mr_validates_arguments() -> None:
    from tpmr.harmonize import harmonize_MR

    with pytest.raises(ValueError, match="action"):
        harmonize_MR(_exposure(), _outcome(), action=4)
    with pytest.raises(ValueError, match="BETA"):
        harmonize_MR(_exposure().drop(columns="BETA"), _outcome())


def test_harmonize_mv_aligns_every_exposure_to_the_first() -> None:
    from tpmr.harmonize import harmonize_mv

    liver = _exposure().iloc[:3]
    # second exposure coded on the other allele for every variant
    adipose = liver.rename(columns={"EA": "NEA", "NEA": "EA"}).assign(BETA=[0.5, 0.6, 0.7], EAF=[0.9, 0.8, 0.7])
    instrument = harmonize_mv({"liver": liver, "adipose": adipose}, _outcome(), action=1)

    assert instrument.exposures == ["liver", "adipose"]
    assert instrument.n_snps == 3
    assert instrument.beta_e["adipose"].tolist() == pytest.approx([-0.5, -0.6, -0.7])
    assert instrument.beta_o.tolist() == pytest.approx([1.0, -2.0, 3.0])
    assert instrument.variants["POS"].tolist() == [100, 200, 300]


def test_harmonize_mv_restricts_to_snps() -> None:
    from tpmr.harmonize import harmonize_mv

    instrument = harmonize_mv({"liver": _exposure()}, _outcome(), snps=["rs_aligned", "rs_inverted"], action=3)
    assert instrument.variants["SNP"].tolist() == ["rs_aligned", "rs_inverted"]


def test_apply_action_2_removes_ambiguous_and_flips() -> None:
    from tpmr.harmonize import apply_action_2

    df = pd.DataFrame(
        {
            "SNP": ["rs_ambiguous", "rs_flip", "rs_ok"],
            "palindrome": [True, True, False],
            "EAF_e": [0.5, 0.1, 0.2],
            "EAF_o": [0.1, 0.9, 0.2],
            "BETA_o": [1.0, 2.0, 3.0],
        }
    )
    out = apply_action_2(df, eaf_threshold=0.42)
    assert "rs_ambiguous" not in set(out["SNP"])

    flip = out[out["SNP"] == "rs_flip"].iloc[0]
    assert flip["BETA_o"] == pytest.approx(-2.0)
    assert flip["EAF_o"] == pytest.approx(0.1)


def test_flip_alleles_complements() -> None:
    from tpmr.harmonize import flip_alleles

    s = pd.Series(["A", "C", "G", "T"])
    assert flip_alleles(s).tolist() == ["T", "G", "C", "A"]


def test_df_mr_formatting_drops_invalid_rows() -> None:
    import numpy as np
    from tpmr.harmonize import df_mr_formatting

    df = pd.DataFrame(
        {"SNP": ["rs1", "rs2", "rs3"], "BETA_o": [0.1, np.inf, 0.3], "SE_o": [0.1, 0.1, 0.0]}
    )
    out = df_mr_formatting(df, ["BETA_o", "SE_o"])
    assert out["SNP"].tolist() == ["rs1"]
