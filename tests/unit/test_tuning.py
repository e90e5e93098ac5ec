"""Unit tests for hyper-parameter selection."""

import numpy as np
import pandas as pd
import pytest

from training.tuning import SCORERS, HyperparameterTuner, TuningSpec
from training.validation.purged_kfold import PurgedEmbargoedFoldGenerator


class ConstantModel:
    """Predicts a fixed value given as hyper-parameter."""

    def __init__(self, value=0.0, fail=False):
        self.value = value
        self.fail = fail

    def fit(self, X, y):
        if self.fail:
            raise ValueError("cannot fit")
        return self.value

    def predict(self, state, X):
        return np.full(len(X), state)


@pytest.fixture
def tuning_data():
    positions = np.arange(40, dtype=np.int64)
    X = pd.DataFrame({"f1": np.linspace(-1, 1, 40)})
    y = pd.Series(np.full(40, 1.0))
    folds = PurgedEmbargoedFoldGenerator(k=4, purge_horizon=1, embargo_horizon=1).generate_folds(range(40))
    return X, y, positions, folds


def constant_factory(**params):
    return ConstantModel(**params)


class TestTuningSpec:
    """Test suite for TuningSpec."""

    def test_named_scorer_resolved(self):
        spec = TuningSpec(candidates=[{"value": 1.0}], scorer="neg_mse")

        assert spec.scorer is SCORERS["neg_mse"]

    def test_unknown_scorer(self):
        with pytest.raises(ValueError, match="Unknown scorer"):
            TuningSpec(candidates=[{}], scorer="f1_macro")

    def test_requires_candidates(self):
        with pytest.raises(ValueError):
            TuningSpec(candidates=[])

    def test_complexity_length_checked(self):
        with pytest.raises(ValueError):
            TuningSpec(candidates=[{}, {}], complexity=[0])


class TestHyperparameterTuner:
    """Test suite for HyperparameterTuner."""

    def test_highest_mean_score_wins(self, tuning_data):
        spec = TuningSpec(candidates=[{"value": 0.0}, {"value": 1.0}, {"value": 3.0}], scorer="neg_mse")
        outcome = HyperparameterTuner(spec, constant_factory).select(*tuning_data)

        assert outcome.best_params == {"value": 1.0}
        assert outcome.best_index == 1
        assert len(outcome.fold_scores[0]) == 4

    def test_tie_goes_to_lowest_complexity(self, tuning_data):
        spec = TuningSpec(
            candidates=[{"value": 1.0}, {"value": 1.0, "fail": False}],
            scorer="neg_mse",
            complexity=[5, 1],
        )
        outcome = HyperparameterTuner(spec, constant_factory).select(*tuning_data)

        assert outcome.best_index == 1

    def test_tie_without_complexity_goes_to_first(self, tuning_data):
        spec = TuningSpec(candidates=[{"value": 1.0}, {"value": 1.0, "fail": False}], scorer="neg_mse")
        outcome = HyperparameterTuner(spec, constant_factory).select(*tuning_data)

        assert outcome.best_index == 0

    def test_failing_candidate_never_selected(self, tuning_data):
        spec = TuningSpec(candidates=[{"value": 1.0, "fail": True}, {"value": 2.0}], scorer="neg_mse")
        outcome = HyperparameterTuner(spec, constant_factory).select(*tuning_data)

        assert np.isnan(outcome.mean_scores[0])
        assert outcome.best_index == 1

    def test_fold_failures_recorded(self, tuning_data):
        spec = TuningSpec(candidates=[{"value": 1.0, "fail": True}, {"value": 2.0}], scorer="neg_mse")
        outcome = HyperparameterTuner(spec, constant_factory).select(*tuning_data)

        assert len(outcome.failures) == 4
        assert {f["candidate"] for f in outcome.failures} == {0}
        assert sorted(f["fold_id"] for f in outcome.failures) == [0, 1, 2, 3]
        assert outcome.failures[0]["error_type"] == "ValueError"
        assert outcome.failures[0]["params"] == {"value": 1.0, "fail": True}

    def test_no_failures_recorded_when_all_fit(self, tuning_data):
        spec = TuningSpec(candidates=[{"value": 0.0}, {"value": 1.0}], scorer="neg_mse")
        outcome = HyperparameterTuner(spec, constant_factory).select(*tuning_data)

        assert outcome.failures == []

    def test_factory_rejecting_params_is_a_failed_candidate(self, tuning_data):
        spec = TuningSpec(candidates=[{"depth": 3}, {"value": 1.0}], scorer="neg_mse")
        outcome = HyperparameterTuner(spec, constant_factory, n_jobs=2).select(*tuning_data)

        assert np.isnan(outcome.mean_scores[0])
        assert outcome.best_index == 1
        assert {f["error_type"] for f in outcome.failures} == {"TypeError"}

    def test_all_candidates_failing_falls_back(self, tuning_data):
        spec = TuningSpec(
            candidates=[{"fail": True}],
            scorer="neg_mse",
            default_params={"value": 0.5},
        )
        outcome = HyperparameterTuner(spec, constant_factory).select(*tuning_data)

        assert outcome.fallback
        assert outcome.best_params == {"value": 0.5}

    def test_parallel_matches_sequential(self, tuning_data):
        spec = TuningSpec(candidates=[{"value": v} for v in (0.0, 0.5, 1.0, 2.0)], scorer="neg_mse")

        sequential = HyperparameterTuner(spec, constant_factory, n_jobs=1).select(*tuning_data)
        parallel = HyperparameterTuner(spec, constant_factory, n_jobs=4).select(*tuning_data)

        assert sequential.mean_scores == parallel.mean_scores
        assert sequential.best_params == parallel.best_params


class TestScorers:
    """Test suite for the built-in scorers."""

    def test_accuracy_rounds_predictions(self):
        assert SCORERS["accuracy"](np.array([1, 0, 1]), np.array([0.9, 0.2, 0.4])) == pytest.approx(2 / 3)

    def test_correlation_constant_is_nan(self):
        assert np.isnan(SCORERS["correlation"](np.array([1.0, 2.0, 3.0]), np.array([1.0, 1.0, 1.0])))
