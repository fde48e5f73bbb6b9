"""
Ensemble Classifier Backends
============================
Registry of tree-ensemble classifiers that can be swept over the number of
features considered at each split.

Every backend is built from the same hyperparameters:
    n_estimators  - number of trees
    max_features  - features considered per split (integer)
    n_features    - width of the predictor matrix
    random_state  - seed
    n_jobs        - parallel workers
"""

import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin, clone
from sklearn.ensemble import RandomForestClassifier, ExtraTreesClassifier
from sklearn.preprocessing import LabelEncoder
from xgboost import XGBClassifier


DEFAULT_BACKEND = 'random_forest'


class EncodedLabelClassifier(ClassifierMixin, BaseEstimator):
    """
    Wraps an estimator that needs labels 0..k-1 (XGBoost) so it can be fit on
    any label subset, e.g. a small subsample that misses a star type.
    """

    def __init__(self, estimator=None):
        self.estimator = estimator

    def fit(self, X, y):
        self.label_encoder_ = LabelEncoder()
        y_encoded = self.label_encoder_.fit_transform(np.asarray(y))
        self.classes_ = self.label_encoder_.classes_
        self.estimator_ = clone(self.estimator)
        self.estimator_.fit(X, y_encoded)
        return self

    def predict(self, X):
        y_pred_encoded = np.asarray(self.estimator_.predict(X)).astype(int)
        return self.label_encoder_.inverse_transform(y_pred_encoded)

    def predict_proba(self, X):
        return self.estimator_.predict_proba(X)

    @property
    def feature_importances_(self):
        return self.estimator_.feature_importances_


def _random_forest(n_estimators, max_features, n_features, random_state, n_jobs):
    return RandomForestClassifier(
        n_estimators=n_estimators,
        max_features=max_features,
        random_state=random_state,
        n_jobs=n_jobs
    )


def _extra_trees(n_estimators, max_features, n_features, random_state, n_jobs):
    return ExtraTreesClassifier(
        n_estimators=n_estimators,
        max_features=max_features,
        random_state=random_state,
        n_jobs=n_jobs
    )


def _xgboost(n_estimators, max_features, n_features, random_state, n_jobs):
    # Per-split feature sampling is a fraction in XGBoost
    xgb_model = XGBClassifier(
        n_estimators=n_estimators,
        colsample_bynode=max_features / n_features,
        max_depth=6,
        learning_rate=0.1,
        random_state=random_state,
        n_jobs=n_jobs,
        eval_metric='mlogloss'
    )
    return EncodedLabelClassifier(xgb_model)


ENSEMBLE_BACKENDS = {
    'random_forest': _random_forest,
    'extra_trees': _extra_trees,
    'xgboost': _xgboost,
}


def validate_max_features(candidate, n_features):
    """Candidates must be whole numbers of features in [1, n_features]."""
    if isinstance(candidate, bool) or not isinstance(candidate, (int, np.integer)):
        raise ValueError(f"max_features candidate must be an integer, got {candidate!r}")
    if not 1 <= candidate <= n_features:
        raise ValueError(
            f"max_features candidate {candidate} outside [1, {n_features}]"
        )


def build_ensemble(backend=DEFAULT_BACKEND, n_estimators=500, max_features=2,
                   n_features=6, random_state=123, n_jobs=-1):
    """Create an unfitted ensemble classifier for the given backend."""
    if backend not in ENSEMBLE_BACKENDS:
        raise ValueError(
            f"Unknown backend '{backend}'. Available: {sorted(ENSEMBLE_BACKENDS)}"
        )
    validate_max_features(max_features, n_features)

    factory = ENSEMBLE_BACKENDS[backend]
    return factory(
        n_estimators=n_estimators,
        max_features=int(max_features),
        n_features=n_features,
        random_state=random_state,
        n_jobs=n_jobs
    )


def fit_ensemble(X, y, backend=DEFAULT_BACKEND, **hyperparameters):
    """
    Fit a fresh ensemble classifier.

    Args:
        X: Predictor matrix
        y: Labels
        backend: Key of ENSEMBLE_BACKENDS
        **hyperparameters: n_estimators, max_features, random_state, n_jobs.
            n_features is taken from X; if given, it must match X.

    Returns:
        Fitted model
    """
    n_features = hyperparameters.pop('n_features', X.shape[1])
    if n_features != X.shape[1]:
        raise ValueError(
            f"n_features={n_features} does not match X with {X.shape[1]} columns"
        )

    model = build_ensemble(backend=backend, n_features=n_features, **hyperparameters)
    model.fit(X, y)
    return model


def predict_labels(model, X):
    """Point predictions of a fitted ensemble."""
    return np.asarray(model.predict(X))
