from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest


def _touch_panel(prefix: Path, extensions) -> None:
    prefix.parent.mkdir(parents=True, exist_ok=True)
    for ext in extensions:
        Path(f"{prefix}.{ext}").write_text("")


def test_check_bfiles_and_pfiles(tmp_path: Path) -> None:
    from tpmr.tools import check_bfiles, check_pfiles

    prefix = tmp_path / "panel"
    _touch_panel(prefix, ["bed", "bim", "fam"])

    assert check_bfiles(str(prefix)) is True
    assert check_pfiles(str(prefix)) is False
    assert check_bfiles(str(tmp_path / "does_not_exist")) is False


def test_config_round_trip(reset_tpmr_config) -> None:
    from tpmr.tools import read_config, write_config

    config = read_config()
    assert config["paths"]["plink2_path"] == ""
    config["paths"]["plink2_path"] = "/opt/plink2"
    write_config(config)

    assert json.loads(reset_tpmr_config.read_text())["paths"]["plink2_path"] == "/opt/plink2"
    assert read_config() == config


def test_get_plink_path_requires_configuration(reset_tpmr_config) -> None:
    from tpmr.tools import get_plink_path

    with pytest.raises(ValueError, match="set_plink"):
        get_plink_path()


def test_set_plink_rejects_non_executable(reset_tpmr_config, tmp_path: Path) -> None:
    from tpmr.tools import set_plink

    with pytest.raises(TypeError):
        set_plink("")
    not_executable = tmp_path / "plink2"
    not_executable.write_text("")
    with pytest.raises(TypeError, match="not an executable"):
        set_plink(str(not_executable))


def test_create_and_delete_tmp_folder() -> None:
    from tpmr.tools import create_tmp, delete_tmp

    create_tmp()
    assert Path("tmp_TPMR").is_dir()
    delete_tmp()
    assert not Path("tmp_TPMR").exists()


def test_get_reference_panel_path_local_prefix(tmp_path: Path) -> None:
    from tpmr.tools import get_reference_panel_path

    prefix = tmp_path / "my_panel"
    _touch_panel(prefix, ["pgen", "pvar", "psam"])
    out_path, out_type = get_reference_panel_path(str(prefix) + ".pgen")

    assert out_path == str(prefix)
    assert out_type == "pgen"


def test_get_reference_panel_path_from_reference_folder(reset_tpmr_config, tmp_path: Path) -> None:
    from tpmr.tools import get_reference_panel_path, set_reference_folder

    folder = tmp_path / "refs"
    set_reference_folder(str(folder))
    _touch_panel(folder / "EUR_38" / "EUR_38", ["bed", "bim", "fam"])

    out_path, out_type = get_reference_panel_path("eur_38")
    assert out_path == str(folder / "EUR_38" / "EUR_38")
    assert out_type == "bed"

    with pytest.raises(FileNotFoundError, match="AFR_37"):
        get_reference_panel_path("AFR_37")


def test_get_reference_panel_path_rejects_unknown_names(reset_tpmr_config) -> None:
    from tpmr.tools import get_reference_panel_path

    with pytest.raises(ValueError, match="Invalid reference panel"):
        get_reference_panel_path("MARS_37")


def test_run_plink_command_error_branches() -> None:
    from tpmr.tools import run_plink_command

    with pytest.raises(ValueError):
        cmd_fail = f"PYTHONDONTWRITEBYTECODE=1 {sys.executable} -c \"import sys; sys.exit(1)\""
        run_plink_command(cmd_fail)

    cmd_oom = (
        f"PYTHONDONTWRITEBYTECODE=1 {sys.executable} -c "
        "\"import sys; sys.stderr.write('Out of memory'); sys.exit(1)\""
    )
    with pytest.raises(RuntimeError):
        run_plink_command(cmd_oom)
