import os, subprocess
import json
import shutil

from .constants import REF_PANELS, CONFIG_DIR, TMP_DIR

config_path = os.path.join(CONFIG_DIR, "config.json")
default_ref_path = os.path.join(CONFIG_DIR, "Reference_files")


def default_config():
    """Returns default config values"""
    return {
        "paths": {
            "plink2_path": "",
            "ref_path": default_ref_path,
        }
    }


def read_config():
    """Get config file data"""
    with open(config_path, "r") as f:
        config = json.load(f)
    return config


def write_config(config):
    """Write data to config file"""
    with open(config_path, "w") as f:
        json.dump(config, f, indent=4)
    return


def check_bfiles(filepath):
    """Check if the path specified leads to a bed/bim/fam triple."""
    return all(os.path.exists(f"{filepath}.{ext}") for ext in ("bed", "bim", "fam"))


def check_pfiles(filepath):
    """Check if the path specified leads to a pgen/pvar/psam triple."""
    return all(os.path.exists(f"{filepath}.{ext}") for ext in ("pgen", "pvar", "psam"))


def create_tmp():
    """Create the temporary folder if not present"""
    if not os.path.exists(TMP_DIR):
        try:
            os.makedirs(TMP_DIR)
        except OSError:
            raise OSError(f"Unable to create the '{TMP_DIR}' directory. Check permissions.")


def delete_tmp():
    """Delete the tmp folder."""
    if os.path.isdir(TMP_DIR):
        shutil.rmtree(TMP_DIR)
        print(f"The {TMP_DIR} folder has been successfully deleted.")
    else:
        print(f"There is no {TMP_DIR} folder to delete in the current directory.")
    return


def set_reference_folder(path=""):
    """
    Set the folder where reference panels (one sub-folder per panel, e.g. EUR_37/EUR_37.pgen) are stored.

    Args:
        path (str, optional): Directory path. Defaults to the Reference_files folder in ~/.tpmr.

    Raises:
        OSError: If the directory cannot be created.
    """
    if not path:
        path = default_ref_path
        print(f"No path provided, defaulting to {default_ref_path}.")

    if not os.path.isdir(path):
        try:
            os.makedirs(path)
            print(f"Creating the '{path}' directory.")
        except OSError:
            raise OSError(f"Unable to create the '{path}' directory. Check permissions.")

    config = read_config()
    config["paths"]["ref_path"] = path
    write_config(config)
    print(f"Reference panels will be looked up in: '{path}'")


def get_reference_panel_path(reference_panel="EUR_37"):
    """
    Retrieve the path of the specified reference panel.

    Args:
        reference_panel (str): Reference panel identifier (e.g. "EUR_37") looked up in the reference folder,
            or a path to a bed/bim/fam or pgen/pvar/psam triple.

    Returns:
        tuple: (path to reference panel, filetype ['bed' or 'pgen'])
    """
    reference_panel = os.path.splitext(reference_panel)[0]
    if check_bfiles(reference_panel):
        print("Using the provided path as the reference panel (bed format).")
        return reference_panel, "bed"
    if check_pfiles(reference_panel):
        print("Using the provided path as the reference panel (pgen format).")
        return reference_panel, "pgen"

    panel = reference_panel.upper()
    if panel not in REF_PANELS:
        raise ValueError(
            f"Invalid reference panel: {reference_panel}. Must be one of: {', '.join(REF_PANELS)} "
            "or a path to a valid reference panel in bed/bim/fam or pgen/pvar/psam format."
        )

    ref_path = read_config()["paths"]["ref_path"]
    panel_path = os.path.join(ref_path, panel, panel)
    population, build = panel.split("_")
    if check_pfiles(panel_path):
        print(f"Using the {population} (build {build}) reference panel (pgen format).")
        return panel_path, "pgen"
    if check_bfiles(panel_path):
        print(f"Using the {population} (build {build}) reference panel (bed format).")
        return panel_path, "bed"
    raise FileNotFoundError(
        f"The {panel} reference panel was not found in '{ref_path}'. "
        "Place it there or use tpmr.set_reference_folder(path) to point to the folder containing it."
    )


def set_plink(path=""):
    """Set the plink 2.0 path and verify that it is the correct version."""
    if not path:
        raise TypeError("You need to provide a path.")

    if not os.path.isfile(path):
        path = os.path.join(path, "plink2")

    if not os.access(path, os.X_OK):
        raise TypeError(f"'{path}' is not an executable file.")

    try:
        process = subprocess.run(
            [path], stdout=subprocess.PIPE, stderr=subprocess.PIPE, timeout=5, text=True
        )
    except (OSError, subprocess.SubprocessError) as e:
        raise TypeError(f"Unable to run '{path}': {e}")

    if "PLINK v2" not in process.stdout:
        raise TypeError(
            "The path provided is an executable, but not the plink 2.0 executable. Check the path and plink version."
        )

    config = read_config()
    config["paths"]["plink2_path"] = path
    write_config(config)

    print(f"Path to plink 2.0 successfully set: '{path}'")
    return


def get_plink_path():
    """Return the plink2 path if it exists in the config file."""
    config = read_config()
    if not config["paths"]["plink2_path"]:
        raise ValueError(
            "The path to plink 2.0 has not been set yet. Use tpmr.set_plink(path_to_plink) first."
        )
    return config["paths"]["plink2_path"]


def run_plink_command(command):
    """
    Execute a PLINK command.

    Raises:
        RuntimeError: If PLINK ran out of memory.
        ValueError: For any other PLINK failure (stdout and stderr are printed).
    """
    try:
        subprocess.run(command, shell=True, capture_output=True, text=True, check=True)
    except subprocess.CalledProcessError as e:
        if "Out of memory" in (e.stderr or ""):
            raise RuntimeError(
                "PLINK command failed due to insufficient memory.\n"
                "Try increasing the RAM allocation, e.g. analysis.ram = 25000 (in MB)."
            )
        print(f"Error running PLINK command: {e}")
        print(f"PLINK stdout: {e.stdout}")
        print(f"PLINK stderr: {e.stderr}")
        raise ValueError("PLINK command failed. Check the error messages above for details.")
