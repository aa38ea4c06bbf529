from __future__ import annotations

import itertools
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from functools import partial

import pandas as pd
from tqdm import tqdm

from .constants import DEFAULT_THRESHOLD
from .exceptions import ConfigurationError, EstimationFailure, InsufficientData
from .pph4 import DensitySource, ObservedSource, position_keys
from .weighting import tpmr

DIAGNOSTIC_COLUMNS = ["tissue_1", "tissue_2", "seed", "threshold", "method", "error", "message"]


@dataclass(frozen=True)
class Scenario:
    """One tissue pair analysed with one seed and one colocalisation threshold."""

    tissue_1: str
    tissue_2: str
    seed: int = 0
    threshold: float = DEFAULT_THRESHOLD


@dataclass
class SweepResult:
    """
    Outcome of a sweep.

    Attributes:
        results (pd.DataFrame): One row per successful scenario and method.
        errors (pd.DataFrame): Diagnostics rows (tissue_1, tissue_2, seed, threshold, method, error, message)
            for the failed scenarios, the failed methods (method set) and the skipped tissues.
        skipped (dict): Tissues removed before the sweep -> reason.
    """

    results: pd.DataFrame
    errors: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=DIAGNOSTIC_COLUMNS))
    skipped: dict = field(default_factory=dict)

    @property
    def n_failed(self):
        return int((self.errors["error"] != "SkippedTissue").sum()) if not self.errors.empty else 0

    @property
    def n_skipped(self):
        return len(self.skipped)


def expand_scenarios(tissues_1, tissues_2=None, seeds=[0], thresholds=[DEFAULT_THRESHOLD]):
    """
    Cartesian product of tissue pairs, seeds and thresholds. Pairs of a tissue with itself are dropped.

    Args:
        tissues_1 (list): First tissue of the pairs (reference tissues in reference mode).
        tissues_2 (list, optional): Second tissue of the pairs. Defaults to tissues_1.
        seeds (list, optional): Seeds of the PPH4 sampling.
        thresholds (list, optional): Colocalisation thresholds.

    Returns:
        list of Scenario
    """
    tissues_2 = tissues_1 if tissues_2 is None else tissues_2
    return [
        Scenario(t1, t2, seed, threshold)
        for t1, t2, seed, threshold in itertools.product(tissues_1, tissues_2, seeds, thresholds)
        if t1 != t2
    ]


def run_scenario(scenario, instrument, source, methods=["IVW"], weighting="pph4", reference=False, estimator=None):
    """
    Run one scenario. Data and estimation failures are returned as diagnostics rows instead of raised. A method
    that fails only costs its own rows: the other methods of the scenario are still reported.

    Returns:
        tuple: (list of result rows, list of diagnostics rows)
    """
    where = {
        "tissue_1": scenario.tissue_1,
        "tissue_2": scenario.tissue_2,
        "seed": scenario.seed,
        "threshold": scenario.threshold,
    }
    failures = []
    try:
        rows = tpmr(
            instrument,
            scenario.tissue_1,
            scenario.tissue_2,
            source,
            threshold=scenario.threshold,
            seed=scenario.seed,
            methods=methods,
            weighting=weighting,
            reference=reference,
            estimator=estimator,
            failures=failures,
        )
    except (InsufficientData, EstimationFailure) as e:
        return [], [{**where, "method": None, "error": type(e).__name__, "message": str(e)}]
    return rows, [{**where, **failure} for failure in failures]


def run_sweep(
    instrument,
    source,
    tissues_1,
    tissues_2=None,
    n_rep=1,
    seed=0,
    thresholds=[DEFAULT_THRESHOLD],
    methods=["IVW"],
    weighting="pph4",
    reference=False,
    estimator=None,
    cpus=1,
    chunksize=None,
):
    """
    Run tissue-partitioned MR over every pair of tissues, replicate (seed) and threshold.

    Args:
        instrument (Instrument): Harmonised instrument.
        source (DensitySource or ObservedSource): PPH4 source.
        tissues_1 (list): First tissue of the pairs.
        tissues_2 (list, optional): Second tissue of the pairs. Defaults to tissues_1.
        n_rep (int, optional): Number of replicates. Replicate i uses the seed seed + i. Must be 1 with observed
            PPH4 values, which do not vary between replicates.
        seed (int, optional): Seed of the first replicate.
        thresholds (list, optional): Colocalisation thresholds.
        methods (list, optional): Multivariable MR methods.
        weighting (str, optional): "pph4" or "none".
        reference (bool, optional): Label tissue_1 as reference and tissue_2 as comparator.
        estimator (callable, optional): Replaces the multivariable MR estimator, see :func:`weighting.tpmr`.
            Must be picklable when cpus > 1.
        cpus (int, optional): Number of processes. 1 runs the scenarios in the current process.
        chunksize (int, optional): Scenarios sent to a process at once. Defaults to a split in 4 chunks per process.

    Returns:
        SweepResult

    Raises:
        ConfigurationError: If the sweep is misconfigured, before any scenario is run.
    """
    if not isinstance(source, (DensitySource, ObservedSource)):
        raise ConfigurationError(f"Unknown PPH4 source: {type(source).__name__}")
    if n_rep < 1:
        raise ConfigurationError("n_rep must be at least 1.")
    if n_rep > 1 and not source.stochastic:
        raise ConfigurationError(
            "Observed PPH4 values are identical across replicates: use n_rep=1 or density models."
        )
    if cpus < 1:
        raise ConfigurationError("cpus must be at least 1.")
    if isinstance(source, ObservedSource):
        position_keys(instrument)

    tissues_1 = list(tissues_1)
    tissues_2 = tissues_1 if tissues_2 is None else list(tissues_2)
    available = set(source.tissues)
    skipped = {}
    for tissue in dict.fromkeys(tissues_1 + tissues_2):
        if tissue not in available:
            skipped[tissue] = f"No PPH4 data available for {tissue}."
    if skipped:
        print(f"{len(skipped)} tissue(s) without PPH4 data are skipped: {', '.join(map(str, skipped))}")

    scenarios = expand_scenarios(
        [t for t in tissues_1 if t not in skipped],
        [t for t in tissues_2 if t not in skipped],
        seeds=[seed + i for i in range(n_rep)],
        thresholds=thresholds,
    )
    print(f"Running {len(scenarios)} scenario(s) on {cpus} core(s).")

    task = partial(
        run_scenario,
        instrument=instrument,
        source=source,
        methods=methods,
        weighting=weighting,
        reference=reference,
        estimator=estimator,
    )
    if cpus == 1 or len(scenarios) <= 1:
        outputs = [task(scenario) for scenario in tqdm(scenarios, desc="Tissue pairs", ncols=100)]
    else:
        if chunksize is None:
            chunksize = max(1, len(scenarios) // (cpus * 4))
        with ProcessPoolExecutor(max_workers=cpus) as executor:
            outputs = list(
                tqdm(
                    executor.map(task, scenarios, chunksize=chunksize),
                    total=len(scenarios),
                    desc="Tissue pairs",
                    ncols=100,
                )
            )

    rows = [row for res, _ in outputs for row in res]
    errors = [error for _, errs in outputs for error in errs]
    n_failed = len(errors)
    errors += [
        {
            "tissue_1": tissue, "tissue_2": None, "seed": None, "threshold": None, "method": None,
            "error": "SkippedTissue", "message": reason,
        }
        for tissue, reason in skipped.items()
    ]

    results = pd.DataFrame(rows)
    errors = pd.DataFrame(errors, columns=DIAGNOSTIC_COLUMNS)
    if n_failed:
        print(f"{n_failed} scenario(s) or method(s) failed, see the diagnostics table.")
    return SweepResult(results=results, errors=errors, skipped=skipped)
