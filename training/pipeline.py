"""End-to-end walk-forward pipeline orchestrator."""

import threading
from dataclasses import dataclass
from typing import Optional, Tuple

import pandas as pd

from config.run import RunConfig
from data.loader import PanelLoader
from data.schemas import PanelSchema
from data.time_index import TimeIndex
from training.engine import RollingFitPredictEngine, WalkForwardResult
from training.models import model_factory_from_config
from training.targets import forward_return_labels
from training.tuning import TuningSpec
from training.validation.backtest import BacktestAccumulator, BacktestResult
from training.validation.walk_forward import WalkForwardScheduler, WindowSchedule
from utils.determinism import validate_run_consistency
from utils.logger import get_training_logger

logger = get_training_logger()


@dataclass
class PipelineResult:
    """Result of a pipeline run."""

    walk_forward: WalkForwardResult
    schedule: WindowSchedule
    backtest: Optional[BacktestResult] = None
    cost_sweep: Optional[pd.DataFrame] = None


class WalkForwardPipeline:
    """
    Orchestrates a complete walk-forward evaluation.

    This class coordinates data loading, label construction, window
    scheduling, the rolling fit/predict engine and the optional
    downstream backtest.

    Attributes:
        config: Run configuration
        schema: Column names shared by all panels
        scheduler: Window scheduler built from the config
        engine: Rolling fit/predict engine
    """

    def __init__(self, config: RunConfig):
        """
        Initialize pipeline.

        Args:
            config: Run configuration
        """
        validate_run_consistency(config)

        self.config = config
        self.schema = PanelSchema.from_config(config.data)
        self.scheduler = WalkForwardScheduler.from_config(config.walk_forward)

        factory = model_factory_from_config(
            config.model.type,
            config.model.params,
            use_proba=config.model.use_proba,
        )
        tuning_spec = None
        if config.tuning is not None:
            tuning_spec = TuningSpec.from_config(config.tuning)

        self.engine = RollingFitPredictEngine(
            model_factory=factory,
            config=config.walk_forward,
            tuning_spec=tuning_spec,
            groups=config.groups,
            schema=self.schema,
            feature_columns=config.data.feature_columns,
        )

        logger.info(f"Initialized WalkForwardPipeline for {config.name}")

    def load_data(self) -> Tuple[pd.DataFrame, Optional[pd.DataFrame], Optional[pd.DataFrame]]:
        """
        Load panels named in the data config.

        Returns:
            (features, labels or None, prices or None)
        """
        loader = PanelLoader(self.config.data)
        return loader.load_features(), loader.load_labels(), loader.load_prices()

    def build_labels(self, prices: pd.DataFrame, time_index: Optional[TimeIndex] = None) -> pd.DataFrame:
        """
        Forward-return labels over ``label_horizon`` positions.

        Positions are counted on ``time_index`` when given; ``run`` passes
        the feature panel's TimeIndex so label horizons match the windows.

        Raises:
            ValueError: If the config has no positive label_horizon
        """
        horizon = self.config.walk_forward.label_horizon
        if horizon < 1:
            raise ValueError("Building labels from prices requires walk_forward.label_horizon >= 1")
        kind = "binary" if self.config.tuning is not None and self.config.tuning.scorer == "accuracy" else "return"
        return forward_return_labels(prices, horizon, schema=self.schema, kind=kind, time_index=time_index)

    def run(
        self,
        panel: Optional[pd.DataFrame] = None,
        labels: Optional[pd.DataFrame] = None,
        prices: Optional[pd.DataFrame] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> PipelineResult:
        """
        Run the complete pipeline.

        Args:
            panel: Feature panel (loaded from the data config when omitted)
            labels: Label panel (built from prices when omitted)
            prices: Price panel for labels and the backtest
            cancel_event: Cooperative cancellation signal

        Returns:
            PipelineResult
        """
        logger.info("Starting walk-forward pipeline...")

        if panel is None:
            panel, loaded_labels, loaded_prices = self.load_data()
            labels = labels if labels is not None else loaded_labels
            prices = prices if prices is not None else loaded_prices

        # Step 1: Build the TimeIndex from the feature panel
        time_index = TimeIndex.from_panel(panel, self.schema.date_column)

        # Step 2: Labels
        if labels is None:
            if prices is None:
                raise ValueError("Either labels or prices must be provided")
            labels = self.build_labels(prices, time_index)

        # Step 3: Schedule windows (raises InsufficientHistory eagerly)
        schedule = self.scheduler.schedule(time_index)

        # Step 4: Fit and score every window
        wf_result = self.engine.run(panel, labels, schedule, time_index=time_index, cancel_event=cancel_event)

        # Step 5: Optional downstream backtest
        backtest = sweep = None
        if self.config.backtest is not None and prices is not None and len(wf_result.scores) > 0:
            accumulator = BacktestAccumulator(self.config.backtest, schema=self.schema)
            backtest = accumulator.run(wf_result.scores, prices)
            if self.config.backtest.cost_sweep_bps:
                sweep = accumulator.cost_sweep(wf_result.scores, prices)

        logger.info(
            "Walk-forward pipeline completed",
            extra_data={
                "windows": len(wf_result.windows),
                "diagnostics": len(wf_result.diagnostics),
                "backtest": backtest is not None,
            },
        )
        return PipelineResult(walk_forward=wf_result, schedule=schedule, backtest=backtest, cost_sweep=sweep)

