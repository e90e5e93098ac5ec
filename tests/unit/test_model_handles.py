"""Unit tests for scikit-learn model handles."""

import numpy as np
import pandas as pd
import pytest
from sklearn.linear_model import LogisticRegression, Ridge

from training.errors import FitError
from training.models import ModelHandle, SklearnModelHandle, create_model, model_factory_from_config


@pytest.fixture
def xy():
    rng = np.random.RandomState(0)
    X = pd.DataFrame({"f1": rng.normal(size=60), "f2": rng.normal(size=60)})
    y = pd.Series((X["f1"] > 0).astype(int))
    return X, y


class TestSklearnModelHandle:
    """Test suite for SklearnModelHandle."""

    def test_satisfies_protocol(self):
        assert isinstance(SklearnModelHandle(Ridge()), ModelHandle)

    def test_fit_returns_independent_clone(self, xy):
        X, y = xy
        template = Ridge()
        handle = SklearnModelHandle(template)

        state_a = handle.fit(X, y)
        state_b = handle.fit(X.iloc[:30], y.iloc[:30])

        assert state_a is not state_b
        assert not hasattr(template, "coef_")

    def test_predict_one_score_per_row(self, xy):
        X, y = xy
        handle = SklearnModelHandle(Ridge())

        preds = handle.predict(handle.fit(X, y), X.iloc[:7])
        assert preds.shape == (7,)

    def test_predict_proba(self, xy):
        X, y = xy
        handle = SklearnModelHandle(LogisticRegression(), use_proba=True)

        preds = handle.predict(handle.fit(X, y), X)
        assert ((preds >= 0) & (preds <= 1)).all()

    def test_fit_failure_wrapped(self, xy):
        X, _ = xy
        single_class = pd.Series(np.ones(len(X), dtype=int))

        with pytest.raises(FitError) as excinfo:
            SklearnModelHandle(LogisticRegression()).fit(X, single_class)
        assert excinfo.value.stage == "fit"

    def test_predict_failure_wrapped(self, xy):
        X, y = xy
        handle = SklearnModelHandle(Ridge())
        state = handle.fit(X, y)

        with pytest.raises(FitError) as excinfo:
            handle.predict(state, X[["f1"]])
        assert excinfo.value.stage == "predict"


class TestModelFactory:
    """Test suite for model construction from config."""

    def test_create_model(self):
        assert isinstance(create_model("ridge", alpha=2.0), Ridge)
        assert create_model("logistic_regression").max_iter == 1000

    def test_unknown_model(self):
        with pytest.raises(ValueError, match="Unsupported model type"):
            create_model("svm")

    def test_factory_overrides_defaults(self):
        factory = model_factory_from_config("ridge", {"alpha": 1.0})

        assert factory().estimator.alpha == 1.0
        assert factory(alpha=0.1).estimator.alpha == 0.1
