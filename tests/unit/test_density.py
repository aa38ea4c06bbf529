from __future__ import annotations

import numpy as np
import pandas as pd
import pytest


def test_density_model_support_spans_unit_interval() -> None:
    from tpmr.density import build_density_model

    pph4 = np.array([0.05, 0.1, 0.3, 0.5, 0.85, 0.9, 0.95, 0.99])
    model = build_density_model(pph4, tissue="Liver")

    assert model.tissue == "Liver"
    assert model.n_obs == len(pph4)
    assert len(model.support) == 1000
    assert len(model.density) == 1000
    assert model.support[0] == pytest.approx(0.0, abs=1e-12)
    assert model.support[-1] == pytest.approx(1.0, abs=1e-12)
    assert np.all(np.diff(model.support) > 0)
    assert np.all(model.density >= 0)


def test_density_model_ignores_missing_values() -> None:
    from tpmr.density import build_density_model

    model = build_density_model([0.1, np.nan, 0.4, 0.9, None], n_points=50)
    assert model.n_obs == 3
    assert len(model.support) == 50


@pytest.mark.parametrize("values", [[], [0.7], [0.3, 0.3, 0.3]])
def test_density_model_needs_two_distinct_values(values) -> None:
    from tpmr.density import build_density_model
    from tpmr.exceptions import InsufficientData

    with pytest.raises(InsufficientData):
        build_density_model(values, tissue="Brain")


def test_density_model_rejects_values_outside_unit_interval() -> None:
    from tpmr.density import build_density_model

    with pytest.raises(ValueError, match=r"\[0, 1\]"):
        build_density_model([0.2, 0.5, 1.2])


def test_bandwidth_follows_silverman_rule() -> None:
    from tpmr.density import bandwidth_nrd0

    x = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
    # IQR / 1.34 is smaller than the standard deviation here
    expected = 0.9 * (2.0 / 1.34) * 5 ** (-0.2)
    assert bandwidth_nrd0(x) == pytest.approx(expected, rel=1e-12)


def test_sample_draws_support_values_deterministically() -> None:
    from tpmr.density import build_density_model

    model = build_density_model([0.1, 0.2, 0.8, 0.9, 0.95], n_points=200)
    a = model.sample(100, np.random.default_rng(3))
    b = model.sample(100, np.random.default_rng(3))

    assert len(a) == 100
    np.testing.assert_array_equal(a, b)
    assert np.isin(a, model.support).all()
    assert ((a >= 0) & (a <= 1)).all()


def test_locus_max_pph4_filters_gene_type_and_takes_max() -> None:
    from tpmr.density import locus_max_pph4

    coloc = pd.DataFrame(
        {
            "tissue": ["Liver", "Liver", "Liver", "Liver"],
            "locus": ["L1", "L1", "L1", "L2"],
            "gene_type": ["protein_coding", "protein_coding", "lncRNA", "protein_coding"],
            "PPH4": [0.2, 0.6, 0.99, 0.4],
        }
    )
    out = locus_max_pph4(coloc).set_index("locus")["PPH4"]
    assert out.to_dict() == {"L1": 0.6, "L2": 0.4}

    out_all = locus_max_pph4(coloc, gene_type=None).set_index("locus")["PPH4"]
    assert out_all["L1"] == 0.99


def test_locus_max_pph4_requires_locus_key() -> None:
    from tpmr.density import locus_max_pph4

    with pytest.raises(ValueError, match="locus"):
        locus_max_pph4(pd.DataFrame({"tissue": ["Liver"], "PPH4": [0.5]}), gene_type=None)


def test_density_models_from_coloc_skips_tissues_without_enough_data(coloc_results) -> None:
    from tpmr.density import density_models_from_coloc

    sparse = pd.DataFrame(
        {"CHR": 1, "POS": [1000, 2000], "tissue": "Testis", "gene_type": "protein_coding", "PPH4": [0.4, 0.4]}
    )
    coloc = pd.concat([coloc_results, sparse], ignore_index=True)
    models, skipped = density_models_from_coloc(coloc, n_points=100)

    assert sorted(models) == ["Adipose", "Liver", "Muscle"]
    assert list(skipped) == ["Testis"]
    # the lncRNA rows (PPH4 = 1) are filtered out before taking the max per locus
    assert all(model.n_obs == 40 for model in models.values())


def test_density_models_from_coloc_restricts_tissues(coloc_results) -> None:
    from tpmr.density import density_models_from_coloc

    models, skipped = density_models_from_coloc(coloc_results, tissues=["Liver"], n_points=100)
    assert list(models) == ["Liver"]
    assert skipped == {}
