import os
from .tools import default_config, write_config, set_plink, set_reference_folder, delete_tmp, get_reference_panel_path, get_plink_path
from .constants import CONFIG_DIR

__version__ = "0.1.0"

config_path = os.path.join(CONFIG_DIR, "config.json")

if not os.path.exists(CONFIG_DIR):
    os.makedirs(CONFIG_DIR)


if not os.path.exists(config_path):
    write_config(default_config())
    print(f"Configuration file for tpmr placed at '{config_path}'")

from .exceptions import ConfigurationError, InsufficientData, EstimationFailure
from .instrument import Instrument
from .gwas_tools import load_gwas
from .harmonize import harmonize_MR, harmonize_mv
from .density import DensityModel, build_density_model, density_models_from_coloc
from .pph4 import DensitySource, ObservedSource, make_source, sample_pph4, observed_table_from_coloc
from .weighting import weight_instrument, tpmr, tissue_mr
from .sweep import Scenario, SweepResult, expand_scenarios, run_sweep
from .report import summarize_sweep, write_report
from .TissueMR import TissueMR
