from __future__ import annotations

import json
import os
import sys
from pathlib import Path
import shutil

import numpy as np
import pandas as pd
import pytest

TESTS_DIR = Path(__file__).resolve().parent
REPO_ROOT = TESTS_DIR.parent

# Ensure local sources are importable even when running from another CWD.
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

sys.dont_write_bytecode = True
os.environ.setdefault("PYTHONDONTWRITEBYTECODE", "1")

# Force tpmr's "~/.tpmr" config and any matplotlib caches to stay under tests/.
# When running under xdist, isolate per worker to avoid cross-test config races.
worker_id = os.environ.get("PYTEST_XDIST_WORKER", "local")
TEST_HOME = TESTS_DIR / ".tpmr_test_home" / worker_id
TEST_HOME.mkdir(parents=True, exist_ok=True)
os.environ["HOME"] = str(TEST_HOME)
os.environ.setdefault("MPLBACKEND", "Agg")


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "plink: test needs the plink2 executable")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if not shutil.which("plink2"):
        skip_plink = pytest.mark.skip(reason="plink tests skipped (plink2 not available)")
        for item in items:
            if "plink" in item.keywords:
                item.add_marker(skip_plink)


def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:  # noqa: ARG001
    """Clean up the test HOME created during the run."""
    if os.environ.get("PYTEST_XDIST_WORKER"):
        return
    shutil.rmtree(TESTS_DIR / ".tpmr_test_home", ignore_errors=True)


@pytest.fixture(autouse=True)
def _isolate_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep any relative-path writes (tmp_TPMR, reports) inside the test's tmp_path."""
    monkeypatch.chdir(tmp_path)


@pytest.fixture(scope="session")
def tests_dir() -> Path:
    return TESTS_DIR


@pytest.fixture
def synthetic_mr_data() -> tuple[pd.DataFrame, pd.DataFrame, float]:
    """Generate a synthetic exposure/outcome pair for MR tests."""
    from instrument_examples import make_exposure, make_outcome_from_exposure

    exposure = make_exposure(50)
    causal_beta = 2.0
    outcome = make_outcome_from_exposure(exposure, causal_beta=causal_beta, noise_seed=0, noise_sd=0.01)
    return exposure, outcome, causal_beta


@pytest.fixture
def coloc_results() -> pd.DataFrame:
    from instrument_examples import make_coloc

    return make_coloc(["Liver", "Adipose", "Muscle"], n_loci=40, seed=1)


@pytest.fixture()
def reset_tpmr_config() -> Path:
    """
    Reset tpmr's config.json to defaults inside the test HOME.
    """
    from tpmr.tools import default_config
    from tpmr.constants import CONFIG_DIR

    config_dir = Path(CONFIG_DIR)
    config_dir.mkdir(parents=True, exist_ok=True)
    config_path = config_dir / "config.json"
    config_path.write_text(json.dumps(default_config(), indent=4))
    return config_path
