import pandas as pd
import numpy as np
import os
import uuid
import psutil

from .gwas_tools import load_gwas, check_snp_column, check_p_column
from .clump import clump_data_plink2
from .harmonize import harmonize_mv
from .MR_tools import MR_func
from .density import density_models_from_coloc
from .pph4 import make_source, observed_table_from_coloc
from .weighting import tpmr, tissue_mr
from .sweep import run_sweep
from .report import summarize_sweep, write_report
from .plots import density_plot, sweep_plot, mr_forest
from .tools import create_tmp
from .constants import DEFAULT_THRESHOLD, DEFAULT_GENE_TYPE, KDE_GRID_POINTS

PPH4_SOURCES = ["density", "observed"]


class TissueMR:
    """
    A class to run tissue-partitioned Mendelian Randomization: the effect of an exposure on an outcome is
    decomposed into tissue-specific effects, using the colocalisation posterior probabilities (PPH4) of
    the instruments with tissue-specific gene expression.

    Attributes:
        exposure (pd.DataFrame): Exposure summary statistics (standard column names).
        outcome (pd.DataFrame): Outcome summary statistics (standard column names).
        exposure_name, outcome_name (str): Names used in the results.
        coloc (pd.DataFrame): Colocalisation results (tissue, PPH4, gene_type and CHR/POS or locus).
        instrument (Instrument): Harmonised instrument. Assigned by the harmonize method.
        density_models (dict): tissue -> DensityModel. Assigned by the build_density_models method.
        observed (pd.DataFrame): Observed PPH4 table. Assigned by the observed_pph4 method.
        MR_results (pd.DataFrame): Results of the last MR or tissue_MR call.
        sweep_results (SweepResult): Results of the last sweep.
        ram (int): Available memory.
        cpus (int): Number of available CPUs.
        name (str): ID of the object (prefix of the temporary files).

    Methods:
        clump: Select independent instruments of the exposure with plink.
        harmonize: Align exposure and outcome alleles and build the instrument.
        MR: Univariable MR of the exposure on the outcome.
        tissue_MR: Univariable MR restricted to the instruments colocalising in each tissue.
        build_density_models: Estimate the PPH4 distribution of each tissue.
        observed_pph4: Build the table of observed PPH4 values of the instruments.
        tpmr: Tissue-partitioned MR for one pair of tissues.
        sweep: Tissue-partitioned MR over tissue pairs, replicates and thresholds.
        sweep_summary, sweep_plot, density_plot, MR_forest, save_report: Reporting.
    """

    def __init__(
        self,
        exposure,
        outcome,
        exposure_name="exposure",
        outcome_name="outcome",
        coloc=None,
        **column_names,
    ):
        """
        Initializes the TissueMR object.

        Args:
            exposure (pd.DataFrame or str): Exposure summary statistics or path to them.
            outcome (pd.DataFrame or str): Outcome summary statistics or path to them.
            exposure_name (str, optional): Name of the exposure. Defaults to "exposure".
            outcome_name (str, optional): Name of the outcome. Defaults to "outcome".
            coloc (pd.DataFrame or str, optional): Colocalisation results or path to a csv/tsv file.
            **column_names: Column names of the summary statistics passed to :func:`load_gwas`
                (e.g. BETA="beta", P="pval").
        """
        self.exposure = load_gwas(exposure, **column_names)
        self.outcome = load_gwas(outcome, **column_names)
        self.exposure_name = exposure_name
        self.outcome_name = outcome_name
        if isinstance(coloc, str):
            coloc = pd.read_csv(coloc, sep=None, engine="python")
        self.coloc = coloc
        self.name = str(uuid.uuid4())[:8]

        self.instrument = None
        self.density_models = None
        self.skipped_tissues = {}
        self.observed = None
        self.MR_results = None
        self.sweep_results = None

        # Set the maximal amount of ram/cpu to be used by the methods
        self.cpus = int(os.environ.get("SLURM_CPUS_PER_TASK", default=os.cpu_count()))
        non_hpc_ram_per_cpu = psutil.virtual_memory().total / (1024**2 * self.cpus)
        ram_per_cpu = int(os.environ.get("SLURM_MEM_PER_CPU", default=non_hpc_ram_per_cpu))
        self.ram = int(ram_per_cpu * self.cpus * 0.8)

        create_tmp()

    def clump(self, kb=10000, r2=0.001, p1=5e-8, p2=0.01, reference_panel="EUR_37"):
        """
        Clump the exposure data based on linkage disequilibrium. The clumped data replaces the exposure data.
        The clumping process is executed using plink.

        Args:
            kb (int, optional): Clumping window in kb. Default is 10000.
            r2 (float, optional): Linkage disequilibrium threshold. Default is 0.001.
            p1 (float, optional): P-value threshold of the lead variants. Default is 5e-8.
            p2 (float, optional): P-value threshold of the clumped variants. Default is 0.01.
            reference_panel (str, optional): Reference population ("EUR_37", "AFR_38"...) or path to a
                bed/bim/fam or pgen/pvar/psam panel. Default is "EUR_37".

        Returns:
            pd.DataFrame: The clumped exposure data, or None if no variant passes p1.
        """
        for column in ["SNP", "P"]:
            if column not in self.exposure.columns:
                raise ValueError(f"The column {column} is not found in the exposure data")
        check_snp_column(self.exposure)
        check_p_column(self.exposure)

        clumped = clump_data_plink2(self.exposure, reference_panel, kb, r2, p1, p2, self.name, self.ram)
        if clumped is not None:
            self.exposure = clumped
            self.instrument = None
        return clumped

    def harmonize(self, action=2, eaf_threshold=0.42, exposures=None):
        """
        Align the exposure and outcome alleles and build the instrument.

        Args:
            action (int, optional): Treatment of palindromes (1: keep, 2: use allele frequencies, 3: remove).
                Default is 2.
            eaf_threshold (float, optional): Maximal allele frequency of the palindromes flipped with action=2.
            exposures (dict, optional): Additional exposure summary statistics (name -> dataframe), for instance one
                per tissue, aligned to the instruments of the main exposure. With exactly one additional exposure,
                the main exposure is tissue 1 and the other one tissue 2 in :meth:`tpmr`.

        Returns:
            Instrument
        """
        all_exposures = {self.exposure_name: self.exposure}
        if exposures:
            all_exposures.update({name: load_gwas(df) for name, df in exposures.items()})
        self.instrument = harmonize_mv(all_exposures, self.outcome, action=action, eaf_threshold=eaf_threshold)
        return self.instrument

    def _get_instrument(self):
        if self.instrument is None:
            print("Harmonizing the exposure and outcome data with the default parameters.")
            self.harmonize()
        if self.instrument.n_snps == 0:
            raise ValueError("No variant left after harmonization.")
        return self.instrument

    def MR(self, methods=["IVW", "IVW-FE", "WM", "Simple-median", "Egger"], nboot=1000, seed=None, odds=False):
        """
        Univariable MR of the exposure on the outcome, using all the instruments.

        Args:
            methods (list, optional): MR methods ("IVW", "IVW-FE", "WM", "Simple-median", "Egger" or "all").
            nboot (int, optional): Bootstrap replications of the median methods. Default is 1000.
            seed (int, optional): Seed of the bootstraps.
            odds (bool, optional): Add a column with the odds ratio and its 95% confidence interval.

        Returns:
            pd.DataFrame: MR results.
        """
        instrument = self._get_instrument()
        res = MR_func(instrument, self.exposure_name, methods, nboot=nboot, seed=seed, outcome_name=self.outcome_name)
        if odds and not res.empty:
            res["OR_95CI"] = res.apply(
                lambda row: f"{np.exp(row['b']):.3f} ({np.exp(row['b'] - 1.96*row['se']):.3f}-{np.exp(row['b'] + 1.96*row['se']):.3f})"
                if not pd.isna(row["b"]) and not pd.isna(row["se"])
                else np.nan,
                axis=1,
            )
        self.MR_results = res
        return res

    def build_density_models(self, tissues=None, gene_type=DEFAULT_GENE_TYPE, n_points=KDE_GRID_POINTS):
        """
        Estimate the distribution of PPH4 values of each tissue from the colocalisation results
        (maximum PPH4 per locus over the genes of gene_type). Tissues with fewer than 2 distinct values are skipped.

        Returns:
            dict: tissue -> DensityModel
        """
        if self.coloc is None:
            raise ValueError("Colocalisation results are needed: provide them with the coloc argument.")
        self.density_models, self.skipped_tissues = density_models_from_coloc(
            self.coloc, tissues=tissues, gene_type=gene_type, n_points=n_points
        )
        return self.density_models

    def observed_pph4(self, gene_type=DEFAULT_GENE_TYPE):
        """
        Build the table of observed PPH4 values (CHR, POS, tissue, PPH4) from the colocalisation results.

        Returns:
            pd.DataFrame
        """
        if self.coloc is None:
            raise ValueError("Colocalisation results are needed: provide them with the coloc argument.")
        self.observed = observed_table_from_coloc(self.coloc, gene_type)
        return self.observed

    def _get_source(self, pph4):
        if pph4 not in PPH4_SOURCES:
            raise ValueError(f"pph4 must be one of {PPH4_SOURCES}")
        if pph4 == "density":
            if self.density_models is None:
                self.build_density_models()
            return make_source(density_models=self.density_models)
        if self.observed is None:
            self.observed_pph4()
        return make_source(observed=self.observed)

    def tissue_MR(
        self,
        tissues=None,
        threshold=DEFAULT_THRESHOLD,
        seed=0,
        methods=["IVW"],
        weighting="pph4",
        pph4="density",
        nboot=1000,
    ):
        """
        Univariable MR for each tissue, with the instruments whose PPH4 in the tissue exceeds the threshold.

        Args:
            tissues (list, optional): Tissues. Defaults to all the tissues of the PPH4 source.
            threshold (float, optional): Colocalisation threshold. Default is 0.8.
            seed (int, optional): Seed of the PPH4 sampling.
            methods (list, optional): MR methods.
            weighting (str, optional): "pph4" weights the exposure effects by the PPH4, "none" only selects.
            pph4 (str, optional): "density" (sampled from the density models) or "observed".
            nboot (int, optional): Bootstrap replications of the median methods.

        Returns:
            pd.DataFrame: MR results with a tissue column.
        """
        instrument = self._get_instrument().select_exposures([self.exposure_name])
        source = self._get_source(pph4)
        tissues = source.tissues if tissues is None else tissues
        res = pd.concat(
            [
                tissue_mr(
                    instrument,
                    tissue,
                    source,
                    threshold=threshold,
                    seed=seed,
                    methods=methods,
                    weighting=weighting,
                    nboot=nboot,
                    outcome_name=self.outcome_name,
                )
                for tissue in tissues
            ],
            ignore_index=True,
        )
        self.MR_results = res
        return res

    def tpmr(
        self,
        tissue_1,
        tissue_2,
        threshold=DEFAULT_THRESHOLD,
        seed=0,
        methods=["IVW"],
        weighting="pph4",
        reference=False,
        pph4="density",
    ):
        """
        Tissue-partitioned MR for one pair of tissues: both tissue-specific effects are estimated jointly by
        multivariable MR on the instruments colocalising in either tissue, weighted by their PPH4.

        Args:
            tissue_1, tissue_2 (str): Tissues of the pair.
            threshold (float, optional): Colocalisation threshold. Default is 0.8.
            seed (int, optional): Seed of the PPH4 sampling.
            methods (list, optional): Multivariable MR methods ("IVW", "IVW-FE", "Egger").
            weighting (str, optional): "pph4" or "none".
            reference (bool, optional): Label tissue_1 as reference and tissue_2 as comparator.
            pph4 (str, optional): "density" or "observed".

        Returns:
            pd.DataFrame: One row per method.
        """
        instrument = self._get_instrument()
        if len(instrument.exposures) > 2:
            raise ValueError("Tissue-partitioned MR needs an instrument with one or two exposures.")
        source = self._get_source(pph4)
        rows = tpmr(
            instrument,
            tissue_1,
            tissue_2,
            source,
            threshold=threshold,
            seed=seed,
            methods=methods,
            weighting=weighting,
            reference=reference,
        )
        return pd.DataFrame(rows)

    def sweep(
        self,
        tissues_1=None,
        tissues_2=None,
        n_rep=1,
        seed=0,
        thresholds=[DEFAULT_THRESHOLD],
        methods=["IVW"],
        weighting="pph4",
        reference=False,
        pph4="density",
        cpus=-1,
    ):
        """
        Tissue-partitioned MR over every pair of tissues, replicate and threshold. Failed scenarios are reported
        in the diagnostics of the result instead of interrupting the sweep.

        Args:
            tissues_1 (list, optional): First tissues of the pairs. Defaults to all the tissues of the PPH4 source.
            tissues_2 (list, optional): Second tissues of the pairs. Defaults to tissues_1.
            n_rep (int, optional): Number of replicates (seeds seed, seed + 1...). Must be 1 with observed PPH4.
            seed (int, optional): Seed of the first replicate.
            thresholds (list, optional): Colocalisation thresholds.
            methods (list, optional): Multivariable MR methods.
            weighting (str, optional): "pph4" or "none".
            reference (bool, optional): Label tissue_1 as reference and tissue_2 as comparator.
            pph4 (str, optional): "density" or "observed".
            cpus (int, optional): Number of processes. -1 uses all the available cpus.

        Returns:
            SweepResult
        """
        instrument = self._get_instrument()
        source = self._get_source(pph4)
        tissues_1 = source.tissues if tissues_1 is None else tissues_1
        cpus = self.cpus if cpus == -1 else cpus
        self.sweep_results = run_sweep(
            instrument,
            source,
            tissues_1,
            tissues_2,
            n_rep=n_rep,
            seed=seed,
            thresholds=thresholds,
            methods=methods,
            weighting=weighting,
            reference=reference,
            cpus=cpus,
        )
        return self.sweep_results

    def _get_sweep_results(self):
        if self.sweep_results is None:
            raise ValueError("You must first call sweep().")
        return self.sweep_results

    def sweep_summary(self):
        """
        Summary of the sweep per tissue pair, threshold and method.

        Returns:
            tuple: (summary dataframe, counts dictionary)
        """
        return summarize_sweep(self._get_sweep_results())

    def sweep_plot(self, x="threshold", y="b_diff", method=None, filename=None, figure_size=None):
        """Plot a result column of the sweep against another, one panel per tissue pair."""
        return sweep_plot(self._get_sweep_results().results, x, y, method, filename, figure_size)

    def density_plot(self, tissues=None, filename=None, figure_size=None):
        """Plot the PPH4 density model of each tissue."""
        if self.density_models is None:
            self.build_density_models()
        return density_plot(self.density_models, tissues, filename, figure_size)

    def MR_forest(
        self,
        methods=["IVW", "WM", "Simple-median", "Egger"],
        exposure_name=None,
        outcome_name=None,
        odds=False,
        filename=None,
        figure_size=None,
    ):
        """
        Creates and returns a forest plot of the results of the last MR or tissue_MR call.

        Args:
            methods (list of str, optional): MR methods to be included in the plot.
            exposure_name (str, optional): Label of the exposure. Defaults to the exposure name.
            outcome_name (str, optional): Label of the outcome. Defaults to the outcome name.
            odds (bool, optional): Plot odds ratios instead of effects. Default is False.
            filename (str, optional): If given, the plot is saved as filename.png.
            figure_size (tuple, optional): (width, height) in inches.
        """
        return mr_forest(
            self.MR_results,
            methods,
            exposure_name or self.exposure_name,
            outcome_name or self.outcome_name,
            odds,
            filename,
            figure_size,
        )

    def save_report(self, directory=""):
        """
        Write the results, diagnostics, summary and counts of the sweep as csv files.

        Args:
            directory (str, optional): Output folder. Defaults to the current directory.

        Returns:
            dict: Kind of table -> path.
        """
        directory = directory or os.getcwd()
        return write_report(self._get_sweep_results(), directory, name=f"{self.exposure_name}_{self.outcome_name}")
