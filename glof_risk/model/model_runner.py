#!/usr/bin/env python3
"""
Model Runner System for the GLOF Risk Analysis.

This orchestration module runs the four GLOF models end to end, from the
two raw lake tables to saved posterior summaries, diagnostics and plots.

PURPOSE:
- Provide one interface for fitting any of the four model specifications
- Manage the pipeline from data to results
- Record sampling problems without stopping the remaining models
- Persist every table and report of a model under results_dir/<model>/

EXECUTION FLOW:
1. Load, join and correct the lake tables
2. Derive predictors once over the full working set
3. For each model: fit, diagnose, summarize, evaluate, save
4. Write a cross-model overview table

ASSUMPTIONS:
- The prepared dataset fits in memory and is shared read-only by all models
- Models are independent and can run in separate processes

EDGE CASES:
- Divergent or non-converged fits are still summarized; their status and
  problems are recorded in the result
- A model whose data or sampler fails outright is reported as failed when
  running several models and re-raised when running one
"""
import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd

from glof_risk.utils.logging_utils import get_logger, log_step, LoggingManager
from glof_risk.utils.decorators import log_errors, timed
from glof_risk.utils.file_utils import ensure_dir_exists
from glof_risk.utils.results_manager import ResultsManager
from glof_risk.config.config_manager import ConfigManager
from glof_risk.data.data_loader import DataLoader
from glof_risk.data.data_preprocessor import DataPreprocessor, PreparedDataset
from glof_risk.model.exceptions import (
    GlofError, DataError, ConfigurationError, ModelEvaluationError, SamplingDivergenceError,
    SamplingNonConvergenceError, ResultsError,
)
from glof_risk.model.constants import RHAT_THRESHOLD
from glof_risk.model.model_spec import MODEL_SPECS, get_model_spec
from glof_risk.model.sampling import BayesianSampler, MCMCConfig
from glof_risk.model.posterior import PosteriorDraws
from glof_risk.model.diagnostics import (
    BayesianDiagnostics, rhat, nonconverged, rhat_frame,
    posterior_predictive_check, approximate_loo,
)
from glof_risk.model.summarizer import PosteriorSummarizer
from glof_risk.model.predictive import PredictiveEvaluator
from glof_risk.model.visualization import BayesianVisualizer

logger = get_logger()

STATUS_OK = "ok"
STATUS_DIVERGENT = "divergent"
STATUS_NONCONVERGED = "nonconverged"
STATUS_FAILED = "failed"


@dataclass
class ModelResult:
    """
    Outcome of running one model.

    Holds tables and plain reports only, so results can cross process
    boundaries.
    """
    name: str
    status: str = STATUS_OK
    problems: List[str] = field(default_factory=list)
    n_obs: int = 0
    n_filtered_out: int = 0
    n_incomplete: int = 0
    fixed_effects: Optional[pd.DataFrame] = None
    group_effects: Dict[str, pd.DataFrame] = field(default_factory=dict)
    rhat: Dict[str, float] = field(default_factory=dict)
    diagnostics: Dict[str, Any] = field(default_factory=dict)
    loo: Dict[str, Any] = field(default_factory=dict)
    ppc: Dict[str, Any] = field(default_factory=dict)
    predictive: Dict[str, Any] = field(default_factory=dict)
    output_dir: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status != STATUS_FAILED

    def overview(self) -> Dict[str, Any]:
        """One-line summary for the cross-model table."""
        return {
            "model": self.name,
            "status": self.status,
            "n_obs": self.n_obs,
            "rhat_max": max(self.rhat.values()) if self.rhat else None,
            "n_divergent": self.diagnostics.get("n_divergent"),
            "elpd_loo": self.loo.get("elpd_loo"),
            "ppc_p_value": self.ppc.get("p_value"),
            "true_positive_rate": self.predictive.get("true_positive_rate"),
            "true_negative_rate": self.predictive.get("true_negative_rate"),
            "problems": "; ".join(self.problems),
        }


def _run_model_in_worker(settings: Dict[str, Any], name: str, dataset: PreparedDataset) -> ModelResult:
    runner = GlofModelRunner(log_to_file=False, **settings)
    return runner.run_model(name, dataset)


class GlofModelRunner:
    """Main runner class for the GLOF risk models"""

    def __init__(
        self,
        results_dir: Optional[Union[str, Path]] = None,
        config_manager: Optional[ConfigManager] = None,
        mcmc_config: Optional[MCMCConfig] = None,
        create_plots: Optional[bool] = None,
        save_traces: Optional[bool] = None,
        rhat_threshold: Optional[float] = None,
        log_to_file: Optional[bool] = None
    ):
        """
        Initialize the model runner.

        Args:
            results_dir: Directory to save results (config value when omitted)
            config_manager: Configuration manager; defaults are used when omitted
            mcmc_config: Sampler settings overriding the configuration
            create_plots: Whether to write plots
            save_traces: Whether to write posterior traces as NetCDF
            rhat_threshold: Rhat above which a parameter is flagged
            log_to_file: Whether to add a run.log handler in the results directory
        """
        self.config_manager = config_manager
        app_config = config_manager.app_config if config_manager else None

        self.results_dir = Path(results_dir or (app_config.results_dir if app_config else "results"))
        self.mcmc_config = mcmc_config or (
            MCMCConfig.from_dict(app_config.mcmc_settings()) if app_config else MCMCConfig()
        )
        self.create_plots = create_plots if create_plots is not None else (
            app_config.create_plots if app_config else True
        )
        self.save_traces = save_traces if save_traces is not None else (
            app_config.save_traces if app_config else False
        )
        self.rhat_threshold = rhat_threshold or (
            app_config.model_rhat_threshold if app_config else RHAT_THRESHOLD
        )
        if log_to_file is None:
            log_to_file = app_config.log_to_file if app_config else True

        self.sampler = BayesianSampler(rhat_threshold=self.rhat_threshold)
        self.summarizer = PosteriorSummarizer()
        self.evaluator = PredictiveEvaluator()

        ensure_dir_exists(self.results_dir)
        self._file_handler: Optional[logging.Handler] = None
        if log_to_file:
            log_file = self.results_dir / "run.log"
            try:
                self._file_handler = LoggingManager.add_file_handler(logger, str(log_file))
                logger.info(f"Added log file: {log_file}")
            except OSError as e:
                logger.warning(f"Could not set up logging to file {log_file}: {str(e)}")
        logger.info(f"GlofModelRunner initialized with results directory: {self.results_dir}")

    def close(self) -> None:
        """Detach the run.log handler."""
        if self._file_handler is not None:
            logger.removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def _worker_settings(self) -> Dict[str, Any]:
        return {
            "results_dir": str(self.results_dir),
            "mcmc_config": replace(self.mcmc_config, cores=1),
            "create_plots": self.create_plots,
            "save_traces": self.save_traces,
            "rhat_threshold": self.rhat_threshold,
        }

    def _fit(self, name: str, dataset: PreparedDataset, result: ModelResult) -> PosteriorDraws:
        spec = get_model_spec(name)
        try:
            return self.sampler.fit(spec, dataset, self.mcmc_config)
        except SamplingDivergenceError as e:
            result.status = STATUS_DIVERGENT
            result.problems.append(str(e))
            logger.warning(f"Model '{name}' flagged: {str(e)}")
            return e.draws
        except SamplingNonConvergenceError as e:
            result.status = STATUS_NONCONVERGED
            result.problems.append(str(e))
            logger.warning(f"Model '{name}' flagged: {str(e)}")
            return e.draws

    def _evaluate(self, draws: PosteriorDraws, result: ModelResult, results: ResultsManager) -> None:
        diagnostics = BayesianDiagnostics(results_dir=results.results_dir)
        result.diagnostics = diagnostics.compute_diagnostics(draws, self.rhat_threshold)
        result.rhat = rhat(draws)
        flagged = nonconverged(result.rhat, self.rhat_threshold)
        if flagged:
            if result.status == STATUS_OK:
                result.status = STATUS_NONCONVERGED
            result.problems.append(f"Rhat above {self.rhat_threshold}: {flagged}")

        try:
            loo = approximate_loo(draws)
            result.loo = loo.to_dict()
            result.problems.extend(loo.warnings)
        except ModelEvaluationError as e:
            result.problems.append(str(e))
            logger.warning(f"LOO skipped for '{result.name}': {str(e)}")

        try:
            result.ppc = posterior_predictive_check(draws, random_seed=self.mcmc_config.random_seed).to_dict()
        except ModelEvaluationError as e:
            result.problems.append(str(e))
            logger.warning(f"Posterior predictive check skipped for '{result.name}': {str(e)}")

        if self.create_plots:
            diagnostics.plot_trace(draws)
            if draws.model is not None:
                diagnostics.plot_ppc(draws, random_seed=self.mcmc_config.random_seed)

    @log_step("Running model")
    def run_model(self, name: str, dataset: PreparedDataset) -> ModelResult:
        """
        Fit, diagnose, summarize, evaluate and save one model.

        Args:
            name: One of the registered model names
            dataset: Shared prepared dataset (read-only)

        Returns:
            ModelResult of the model

        Raises:
            ConfigurationError: If the model name is unknown
            DataIntegrityError: If the model's rows cannot be selected
            SamplingError: If the sampler fails outright
        """
        result = ModelResult(name=name)
        results = ResultsManager(self.results_dir, name)
        result.output_dir = results.results_dir

        draws = self._fit(name, dataset, result)
        result.n_obs = draws.model_data.n_obs
        result.n_filtered_out = draws.model_data.n_filtered_out
        result.n_incomplete = draws.model_data.n_incomplete

        self._evaluate(draws, result, results)

        result.fixed_effects = self.summarizer.fixed_effects(draws)
        for factor in draws.spec.group_factors:
            result.group_effects[factor] = self.summarizer.group_effects_with_pooled(draws, factor)

        report = None
        try:
            report = self.evaluator.evaluate(draws)
            result.predictive = report.to_dict()
        except ModelEvaluationError as e:
            result.problems.append(str(e))
            logger.warning(f"Predictive evaluation skipped for '{name}': {str(e)}")

        self._save(result, draws, report, results)
        LoggingManager.log_dict(logger, f"Model '{name}' finished", result.overview())
        return result

    @log_errors(ResultsError, msg="Error saving results")
    def _save(self, result: ModelResult, draws: PosteriorDraws, report: Any, results: ResultsManager) -> None:
        results.save_dataframe(result.fixed_effects, "fixed_effects")
        for factor, table in result.group_effects.items():
            results.save_dataframe(table, f"group_effects_{factor}")
        results.save_dataframe(rhat_frame(result.rhat, self.rhat_threshold), "rhat")
        if report is not None:
            results.save_dataframe(report.predictions, "predictions", index=False)

        results.save_dict({
            "model": result.name,
            "description": draws.spec.description,
            "status": result.status,
            "problems": result.problems,
            "priors": draws.spec.prior_table(),
            "mcmc": self.mcmc_config.to_dict(),
            "n_obs": result.n_obs,
            "n_filtered_out": result.n_filtered_out,
            "n_incomplete": result.n_incomplete,
            "diagnostics": result.diagnostics,
            "loo": result.loo,
            "ppc": result.ppc,
            "predictive": result.predictive,
        }, "summary")

        if self.save_traces:
            results.save_inference_data(draws.idata, name="trace")

        if self.create_plots:
            visualizer = BayesianVisualizer(results_dir=results.results_dir)
            visualizer.plot_fixed_effects(result.fixed_effects, model_name=result.name)
            for factor, table in result.group_effects.items():
                visualizer.plot_group_effects(table, factor, model_name=result.name)
            if report is not None:
                visualizer.plot_log_odds(report)

        results.write_metadata()

    @timed("All models")
    def run_all(
        self,
        dataset: PreparedDataset,
        models: Optional[Sequence[str]] = None,
        max_workers: int = 1
    ) -> Dict[str, ModelResult]:
        """
        Run several models independently on the same dataset.

        Args:
            dataset: Shared prepared dataset (read-only)
            models: Model names; all registered models when omitted
            max_workers: Worker processes; models run sequentially when 1

        Returns:
            Mapping from model name to its result
        """
        names = list(models or MODEL_SPECS)
        for name in names:
            get_model_spec(name)

        results: Dict[str, ModelResult] = {}
        if max_workers > 1 and len(names) > 1:
            logger.info(f"Running {len(names)} models in {max_workers} worker processes")
            settings = self._worker_settings()
            with ProcessPoolExecutor(max_workers=max_workers) as pool:
                futures = {name: pool.submit(_run_model_in_worker, settings, name, dataset) for name in names}
                for name, future in futures.items():
                    try:
                        results[name] = future.result()
                    except GlofError as e:
                        results[name] = self._failed(name, e)
        else:
            for name in names:
                try:
                    results[name] = self.run_model(name, dataset)
                except GlofError as e:
                    results[name] = self._failed(name, e)

        overview = pd.DataFrame([r.overview() for r in results.values()])
        overview.to_csv(self.results_dir / "models_overview.csv", index=False)
        statuses = {n: r.status for n, r in results.items()}
        logger.info(f"Finished {len(results)} models: {statuses}")
        return results

    @staticmethod
    def _failed(name: str, error: Exception) -> ModelResult:
        logger.error(f"Model '{name}' failed: {str(error)}")
        return ModelResult(name=name, status=STATUS_FAILED, problems=[str(error)])

    @log_step("Running GLOF pipeline")
    @log_errors(DataError, msg="Error preparing lake data")
    def run_pipeline(
        self,
        primary_path: Optional[Union[str, Path]] = None,
        secondary_path: Optional[Union[str, Path]] = None,
        models: Optional[Sequence[str]] = None,
        max_workers: Optional[int] = None
    ) -> Dict[str, ModelResult]:
        """
        Load, merge, correct and prepare the lake data, then run the models.

        Args:
            primary_path: Lake inventory table (config value when omitted)
            secondary_path: Climate / mass-balance table (config value when omitted)
            models: Model names (config value, then all models, when omitted)
            max_workers: Worker processes (config value, then 1, when omitted)

        Returns:
            Mapping from model name to its result
        """
        app_config = self.config_manager.app_config if self.config_manager else None

        loader_kwargs: Dict[str, Any] = {}
        if app_config is not None:
            loader_kwargs.update(
                primary_key=app_config.data_primary_key,
                secondary_key=app_config.data_secondary_key,
                column_mapping=app_config.data_column_mappings,
            )
            if not app_config.data_apply_corrections:
                loader_kwargs["corrections"] = ()

        primary_path = primary_path or (app_config.data_primary_path if app_config else None)
        secondary_path = secondary_path or (app_config.data_secondary_path if app_config else None)
        if not primary_path or not secondary_path:
            raise ConfigurationError("Both the lake table and the climate table paths are required")

        loader = DataLoader(primary_path, secondary_path, **loader_kwargs)
        lakes = loader.load_data()
        dataset = DataPreprocessor().prepare(lakes)

        if models is None and app_config is not None:
            models = app_config.model_names
        if max_workers is None:
            max_workers = app_config.max_workers if app_config else 1
        return self.run_all(dataset, models=models, max_workers=max_workers)
