import os
import re
import uuid
import pandas as pd

from .constants import TMP_DIR
from .tools import get_reference_panel_path, get_plink_path, run_plink_command, create_tmp


def clump_data_plink2(
    data,
    reference_panel="EUR_37",
    kb=10000,
    r2=0.001,
    p1=5e-8,
    p2=0.01,
    name=None,
    ram=10000,
):
    """
    Select independent lead variants with plink2 clumping. Corresponds to the :meth:`TissueMR.clump` method.

    Args:
        data (pd.DataFrame): Input data with at least 'SNP' and 'P' columns.
        reference_panel (str, optional): Reference panel name (e.g. "EUR_37") or path to a bed/bim/fam or
            pgen/pvar/psam panel used for linkage disequilibrium. Default is "EUR_37".
        kb (int, optional): Clumping window in kb. Default is 10000.
        r2 (float, optional): Linkage disequilibrium threshold. Default is 0.001.
        p1 (float, optional): P-value threshold for index variants. Default is 5e-8.
        p2 (float, optional): P-value threshold for clumped variants. Default is 0.01.
        name (str, optional): Prefix of the files written in the tmp_TPMR folder.
        ram (int, optional): Amount of RAM in MB to be used by plink.

    Returns:
        pd.DataFrame: Lead variants, with a boolean LEAD column. None if no variant passes p1.
    """
    if name is None:
        name = str(uuid.uuid4())[:8]
    create_tmp()

    to_clump_filename = os.path.join(TMP_DIR, f"{name}_to_clump.txt")
    data[["SNP", "P"]].to_csv(to_clump_filename, index=False, sep="\t")

    ref_path, filetype = get_reference_panel_path(reference_panel)
    output_path = os.path.join(TMP_DIR, name)

    base_cmd = f"{get_plink_path()} --memory {ram}"
    base_cmd += f" --bfile {ref_path}" if filetype == "bed" else f" --pfile {ref_path}"
    plink_command = (
        f"{base_cmd} --rm-dup force-first --clump {to_clump_filename} --clump-kb {kb} "
        f"--clump-r2 {r2} --clump-p1 {p1} --clump-p2 {p2} --out {output_path}"
    )
    run_plink_command(plink_command)

    with open(os.path.join(TMP_DIR, f"{name}.log")) as f:
        log_content = f.read()
    return parse_clump_output(data, log_content, os.path.join(TMP_DIR, f"{name}.clumps"))


def parse_clump_output(data, log_content, clumped_filename):
    """Read the plink log and .clumps file and flag the lead variants in data."""
    match = re.search(r"(\d+)\s+top\s+variant\s+ID", log_content)
    if match:
        print(f"Warning: {match.group(1)} top variant IDs missing")

    if "No significant --clump results." in log_content:
        print("No SNPs remaining after clumping.")
        return None

    match = re.search(r"(\d+)\s+clump[s]?\s+formed\s+from\s+(\d+)\s+index", log_content)
    if match:
        print(f"{match.group(1)} clumps formed from {match.group(2)} top variants.")

    if not os.path.exists(clumped_filename):
        raise FileNotFoundError(f"'{clumped_filename}' is missing.")
    lead_ids = pd.read_csv(clumped_filename, sep=r"\s+", usecols=["ID"])["ID"]

    clumped = data.copy()
    clumped["LEAD"] = clumped["SNP"].isin(lead_ids)
    clumped = clumped[clumped["LEAD"]].reset_index(drop=True)
    return clumped
