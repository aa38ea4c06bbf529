from __future__ import annotations

from pathlib import Path


def test_import_tpmr_creates_config_under_test_home(reset_tpmr_config, tests_dir: Path) -> None:
    import os
    import tpmr
    from tpmr.constants import CONFIG_DIR

    config_dir = Path(CONFIG_DIR).resolve()
    home_dir = Path(os.environ["HOME"]).resolve()

    assert config_dir.is_relative_to(home_dir)
    assert config_dir.is_dir()
    assert (config_dir / "config.json").is_file()
    assert tpmr.__version__


def test_import_is_from_repo_sources() -> None:
    import tpmr

    tpmr_path = Path(tpmr.__file__).resolve()
    assert "site-packages" not in tpmr_path.parts


def test_public_names() -> None:
    import tpmr

    for name in ["TissueMR", "Instrument", "make_source", "sample_pph4", "run_sweep", "ConfigurationError"]:
        assert hasattr(tpmr, name)
