"""
Tests for the max_features sweep, final evaluation, learning curve and the
end-to-end training run
"""

import os

import numpy as np
import pandas as pd
import pytest
from sklearn.metrics import precision_recall_fscore_support

from star_data import FEATURE_COLUMNS, STAR_TYPES, encode_features, split_train_test
from train_star_type import (
    CONFIG,
    StarTypePredictor,
    evaluate_model,
    feature_importance_ranking,
    learning_curve_probe,
    macro_scores_from_confusion,
    main,
    select_best_candidate,
    sweep_max_features,
    train_final_model,
)


@pytest.fixture
def partitions(star_df):
    train_df, test_df = split_train_test(star_df, test_size=0.3, random_state=123)
    X_train, y_train = encode_features(train_df)
    X_test, y_test = encode_features(test_df)
    return X_train, y_train, X_test, y_test


@pytest.fixture
def small_config(star_csv, tmp_path):
    config = dict(CONFIG)
    config.update({
        'data_path': str(star_csv),
        'output_dir': str(tmp_path / 'outputs'),
        'n_estimators': 20,
        'max_features_candidates': [2, 3, 4],
        'learning_curve_fractions': [0.5, 1.0],
        'n_jobs': 1,
        'run_exploration': False,
    })
    return config


def test_sweep_returns_one_accuracy_per_candidate(partitions):
    X_train, y_train, X_test, y_test = partitions

    results = sweep_max_features(X_train, y_train, X_test, y_test, [2, 3, 4, 5, 6],
                                 n_estimators=20, n_jobs=1)

    assert [c for c, _ in results] == [2, 3, 4, 5, 6]
    assert all(0.0 <= acc <= 1.0 for _, acc in results)


def test_sweep_is_reproducible(partitions):
    X_train, y_train, X_test, y_test = partitions

    first = sweep_max_features(X_train, y_train, X_test, y_test, [1, 2], n_estimators=15, n_jobs=1)
    second = sweep_max_features(X_train, y_train, X_test, y_test, [1, 2], n_estimators=15, n_jobs=1)

    assert first == second


def test_sweep_rejects_candidates_wider_than_feature_set(partitions):
    X_train, y_train, X_test, y_test = partitions

    with pytest.raises(ValueError, match='outside'):
        sweep_max_features(X_train, y_train, X_test, y_test, [2, 7], n_estimators=5)


def test_sweep_rejects_empty_candidates(partitions):
    X_train, y_train, X_test, y_test = partitions

    with pytest.raises(ValueError, match='No max_features'):
        sweep_max_features(X_train, y_train, X_test, y_test, [])


def test_select_best_candidate_breaks_ties_by_first_occurrence():
    results = [(2, 0.90), (3, 0.95), (4, 0.95), (5, 0.93)]
    assert select_best_candidate(results) == (3, 0.95)


def test_select_best_candidate_empty():
    with pytest.raises(ValueError):
        select_best_candidate([])


def test_confusion_matrix_rows_match_test_class_counts(partitions):
    X_train, y_train, X_test, y_test = partitions
    model = train_final_model(X_train, y_train, max_features=2, n_estimators=20, n_jobs=1)

    results = evaluate_model(model, X_test, y_test)
    cm = results['confusion_matrix']

    assert cm.shape == (6, 6)
    assert list(cm.index) == STAR_TYPES
    expected_counts = y_test.value_counts().reindex(STAR_TYPES, fill_value=0)
    assert cm.sum(axis=1).tolist() == expected_counts.tolist()


def test_confusion_matrix_keeps_classes_absent_from_test(partitions):
    X_train, y_train, X_test, y_test = partitions
    model = train_final_model(X_train, y_train, max_features=2, n_estimators=20, n_jobs=1)

    mask = (y_test != 0).to_numpy()
    results = evaluate_model(model, X_test[mask], y_test[mask])

    assert results['confusion_matrix'].shape == (6, 6)
    assert results['confusion_matrix'].loc[0].sum() == 0


def test_macro_scores_from_confusion_match_raw_predictions(partitions):
    X_train, y_train, X_test, y_test = partitions
    model = train_final_model(X_train, y_train, max_features=1, n_estimators=10, n_jobs=1)

    results = evaluate_model(model, X_test, y_test)
    from_cm = macro_scores_from_confusion(results['confusion_matrix'])

    assert from_cm['precision'] == pytest.approx(results['precision_macro'])
    assert from_cm['recall'] == pytest.approx(results['recall_macro'])
    assert from_cm['f1'] == pytest.approx(results['f1_macro'])


def test_macro_scores_from_confusion_with_unpredicted_class():
    y_true = np.array([0, 0, 1, 1, 2, 2])
    y_pred = np.array([0, 1, 1, 1, 0, 1])
    cm = pd.crosstab(y_true, y_pred).reindex(index=[0, 1, 2], columns=[0, 1, 2], fill_value=0)

    precision, recall, f1, _ = precision_recall_fscore_support(
        y_true, y_pred, labels=[0, 1, 2], average='macro', zero_division=0
    )
    scores = macro_scores_from_confusion(cm.to_numpy())

    assert scores['precision'] == pytest.approx(precision)
    assert scores['recall'] == pytest.approx(recall)
    assert scores['f1'] == pytest.approx(f1)


def test_evaluation_recomputes_predictions_from_model(partitions):
    X_train, y_train, X_test, y_test = partitions
    model = train_final_model(X_train, y_train, max_features=3, n_estimators=20, n_jobs=1)

    results = evaluate_model(model, X_test, y_test)

    np.testing.assert_array_equal(results['predictions'], model.predict(X_test))
    assert results['accuracy'] == pytest.approx(np.mean(results['predictions'] == y_test.to_numpy()))


def test_well_separated_stars_are_learned(partitions):
    X_train, y_train, X_test, y_test = partitions
    model = train_final_model(X_train, y_train, max_features=2, n_estimators=50, n_jobs=1)

    assert evaluate_model(model, X_test, y_test)['accuracy'] > 0.8


@pytest.mark.parametrize('method', ['impurity', 'permutation'])
def test_feature_importance_ranking(partitions, method):
    X_train, y_train, X_test, y_test = partitions
    model = train_final_model(X_train, y_train, max_features=2, n_estimators=20, n_jobs=1)

    ranking = feature_importance_ranking(model, FEATURE_COLUMNS, method=method,
                                         X_test=X_test, y_test=y_test, n_repeats=3)

    assert sorted(ranking['feature']) == sorted(FEATURE_COLUMNS)
    assert ranking['importance'].is_monotonic_decreasing


def test_feature_importance_unknown_method(partitions):
    X_train, y_train, _, _ = partitions
    model = train_final_model(X_train, y_train, max_features=2, n_estimators=5, n_jobs=1)

    with pytest.raises(ValueError, match='Unknown importance method'):
        feature_importance_ranking(model, FEATURE_COLUMNS, method='shap')


def test_learning_curve_covers_each_fraction(partitions):
    X_train, y_train, X_test, y_test = partitions

    curve = learning_curve_probe(X_train, y_train, X_test, y_test,
                                 fractions=[round(0.1 * i, 1) for i in range(1, 11)],
                                 max_features=2, n_estimators=10, n_jobs=1)

    assert curve['fraction'].tolist() == [round(0.1 * i, 1) for i in range(1, 11)]
    assert curve['n_samples'].is_monotonic_increasing
    assert curve['n_samples'].iloc[-1] == len(X_train)
    assert curve[['train_accuracy', 'test_accuracy']].stack().between(0, 1).all()


def test_learning_curve_xgboost_small_subsamples(partitions):
    X_train, y_train, X_test, y_test = partitions

    curve = learning_curve_probe(X_train, y_train, X_test, y_test, fractions=[0.1, 1.0],
                                 max_features=3, n_estimators=10, backend='xgboost', n_jobs=1)

    assert curve['n_samples'].tolist() == [17, 168]
    assert curve[['train_accuracy', 'test_accuracy']].stack().between(0, 1).all()


def test_learning_curve_rejects_bad_fraction(partitions):
    X_train, y_train, X_test, y_test = partitions

    with pytest.raises(ValueError, match='fraction'):
        learning_curve_probe(X_train, y_train, X_test, y_test, fractions=[0.0])


@pytest.mark.parametrize('overrides', [
    {},
    {'backend': 'xgboost', 'importance_method': 'permutation', 'stratify': True},
    {'backend': 'extra_trees', 'importance_method': 'permutation'},
])
def test_full_pipeline(small_config, overrides):
    small_config.update(overrides)
    predictor = StarTypePredictor(small_config)
    results = predictor.run_full_pipeline()

    assert [c for c, _ in results['sweep']] == [2, 3, 4]
    assert all(0.0 <= acc <= 1.0 for _, acc in results['sweep'])
    assert sorted(results['feature_importance']['feature']) == sorted(FEATURE_COLUMNS)
    assert results['best_max_features'] in (2, 3, 4)
    assert results['confusion_matrix'].to_numpy().sum() == 72
    assert len(results['learning_curve']) == 2
    assert os.path.exists(results['plot_path'])


def test_main_exits_on_validation_error(tmp_path, raw_star_table):
    path = tmp_path / 'broken.csv'
    raw_star_table.drop(columns=['Star.type']).to_csv(path, index=False)

    with pytest.raises(SystemExit) as exc_info:
        main(['--data', str(path), '--output-dir', str(tmp_path / 'out'), '--skip-eda'])

    assert exc_info.value.code == 2


def test_main_runs_with_cli_overrides(star_csv, tmp_path):
    predictor, results = main([
        '--data', str(star_csv),
        '--output-dir', str(tmp_path / 'out'),
        '--n-estimators', '10',
        '--candidates', '2', '3',
        '--backend', 'extra_trees',
        '--skip-eda',
    ])

    assert predictor.config['backend'] == 'extra_trees'
    assert [c for c, _ in results['sweep']] == [2, 3]
