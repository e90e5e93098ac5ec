"""Model handles satisfying the engine's fit/predict contract.

The engine never looks inside a model. A handle exposes

    fit(X, y) -> state
    predict(state, X) -> one score per row, same order as X

and the engine keeps ``state`` only for the window it was trained in.
"""

from typing import Any, Callable, Dict, Protocol, runtime_checkable

import numpy as np
import pandas as pd
from sklearn.base import clone

from training.errors import FitError


@runtime_checkable
class ModelHandle(Protocol):
    """Fit/predict contract expected from caller-supplied models."""

    def fit(self, X: pd.DataFrame, y: pd.Series) -> Any:
        ...

    def predict(self, state: Any, X: pd.DataFrame) -> np.ndarray:
        ...


class SklearnModelHandle:
    """
    Adapts a scikit-learn style estimator to the fit/predict contract.

    Each ``fit`` clones the template estimator, so states from different
    windows never share fitted attributes.
    """

    def __init__(self, estimator, use_proba: bool = False):
        """
        Args:
            estimator: Unfitted estimator used as a template
            use_proba: Score with the last-class probability from
                ``predict_proba`` instead of ``predict``
        """
        self.estimator = estimator
        self.use_proba = use_proba

    def fit(self, X: pd.DataFrame, y: pd.Series):
        model = clone(self.estimator)
        try:
            model.fit(X, y)
        except (ValueError, TypeError, ArithmeticError) as e:
            raise FitError(f"{type(self.estimator).__name__} fit failed: {e}", stage="fit") from e
        return model

    def predict(self, state, X: pd.DataFrame) -> np.ndarray:
        try:
            if self.use_proba:
                return np.asarray(state.predict_proba(X))[:, -1]
            return np.asarray(state.predict(X), dtype=np.float64)
        except (ValueError, TypeError, AttributeError) as e:
            raise FitError(f"{type(self.estimator).__name__} predict failed: {e}", stage="predict") from e

    def __repr__(self) -> str:
        return f"SklearnModelHandle({self.estimator!r}, use_proba={self.use_proba})"


def create_model(model_type: str, **params):
    """
    Factory for the estimators a run config can name.

    Args:
        model_type: logistic_regression, ridge, random_forest, extra_trees,
            xgboost or lightgbm
        **params: Estimator hyper-parameters

    Returns:
        Unfitted estimator
    """
    if model_type == "logistic_regression":
        from sklearn.linear_model import LogisticRegression
        return LogisticRegression(**{"max_iter": 1000, **params})
    elif model_type == "ridge":
        from sklearn.linear_model import Ridge
        return Ridge(**params)
    elif model_type == "random_forest":
        from sklearn.ensemble import RandomForestClassifier
        return RandomForestClassifier(**{"random_state": 42, **params})
    elif model_type == "extra_trees":
        from sklearn.ensemble import ExtraTreesClassifier
        return ExtraTreesClassifier(**{"random_state": 42, **params})
    elif model_type == "xgboost":
        import xgboost as xgb
        return xgb.XGBClassifier(**{"random_state": 42, **params})
    elif model_type == "lightgbm":
        import lightgbm as lgb
        return lgb.LGBMClassifier(**{"random_state": 42, "verbose": -1, **params})
    else:
        raise ValueError(
            f"Unsupported model type: {model_type}. "
            "Supported types: logistic_regression, ridge, random_forest, extra_trees, xgboost, lightgbm"
        )


def model_factory_from_config(
    model_type: str,
    params: Dict[str, Any] = None,
    use_proba: bool = False,
) -> Callable[..., SklearnModelHandle]:
    """
    Build a ``**overrides -> ModelHandle`` factory.

    Tuning candidates are passed as keyword overrides on top of the
    configured default parameters.
    """
    base_params = dict(params or {})

    def factory(**overrides) -> SklearnModelHandle:
        return SklearnModelHandle(create_model(model_type, **{**base_params, **overrides}), use_proba=use_proba)

    return factory
