import os

STANDARD_COLUMNS = ["CHR", "POS", "SNP", "EA", "NEA", "BETA", "SE", "P"]
REQUIRED_COLUMNS = ["SNP", "BETA", "SE", "EA", "NEA"]
COLOC_COLUMNS = ["CHR", "POS", "tissue", "PPH4"]
BUILDS = ["37", "38"]
POPULATIONS = ["EUR", "AFR", "EAS", "AMR", "SAS"]
REF_PANELS = [f"{pop}_{build}" for pop in POPULATIONS for build in BUILDS]
CONFIG_DIR = os.path.expanduser("~/.tpmr/")
TMP_DIR = "tmp_TPMR"

# Colocalisation defaults
DEFAULT_THRESHOLD = 0.8
DEFAULT_GENE_TYPE = "protein_coding"
KDE_GRID_POINTS = 1000
KDE_CUT = 3

# Exposure labels used when a pair of tissues is estimated jointly
PAIR_LABELS = ("Tissue 1", "Tissue 2")
COMPARATOR_LABEL = "Comparator"

MR_METHODS_NAMES = {
    "IVW": "Inverse-Variance Weighted",
    "IVW-FE": "Inverse Variance Weighted (Fixed Effects)",
    "WM": "Weighted Median",
    "Simple-median": "Simple Median",
    "Egger": ("MR Egger", "Egger Intercept"),
}
MVMR_METHODS_NAMES = {
    "IVW": "Multivariable IVW",
    "IVW-FE": "Multivariable IVW (Fixed Effects)",
    "Egger": ("Multivariable MR Egger", "Multivariable Egger Intercept"),
}
