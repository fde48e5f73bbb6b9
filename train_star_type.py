"""
Random Forest Training for Star Type Prediction
===============================================
This script trains a tree-ensemble classifier to predict one of six star
types from temperature, luminosity, radius, absolute magnitude, color and
spectral class.

Pipeline:
    load -> quality check -> exploration -> split -> max_features sweep
    -> final fit -> evaluation -> feature importance -> learning curve

Usage:
    python train_star_type.py --data data/stars.csv --output-dir model_outputs

Author: Star Classification Team
"""

import argparse
import os
from datetime import datetime

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from sklearn.inspection import permutation_importance
from sklearn.metrics import (
    accuracy_score,
    classification_report,
    confusion_matrix,
    precision_recall_fscore_support,
)

from ensemble_backends import DEFAULT_BACKEND, fit_ensemble, predict_labels, validate_max_features
from explore_stars import run_exploration
from star_data import (
    FEATURE_COLUMNS,
    STAR_TYPE_NAMES,
    STAR_TYPES,
    TARGET_COLUMN,
    StarDataValidationError,
    check_data_quality,
    encode_features,
    load_star_data,
    split_train_test,
)

RANDOM_STATE = 123

# Configuration
CONFIG = {
    'data_path': 'data/stars.csv',
    'output_dir': 'model_outputs',
    'test_size': 0.3,
    'random_state': RANDOM_STATE,
    'stratify': False,
    'n_estimators': 500,
    'max_features_candidates': [1, 2, 3, 4, 5, 6],
    'backend': DEFAULT_BACKEND,
    'importance_method': 'impurity',
    'learning_curve_fractions': [round(0.1 * i, 1) for i in range(1, 11)],
    'n_jobs': -1,
    'run_exploration': True,
}


# ---------------- sweep / evaluation ----------------

def sweep_max_features(X_train, y_train, X_test, y_test, candidates,
                       n_estimators=500, backend=DEFAULT_BACKEND,
                       random_state=RANDOM_STATE, n_jobs=-1):
    """
    Fit one model per max_features candidate and score it on the test partition.

    Every candidate is scored on the same single held-out partition, so the
    accuracies are point estimates.

    Returns:
        List of (candidate, accuracy) pairs in candidate order
    """
    candidates = list(candidates)
    if not candidates:
        raise ValueError("No max_features candidates given")
    for candidate in candidates:
        validate_max_features(candidate, X_train.shape[1])

    results = []
    for candidate in candidates:
        model = fit_ensemble(
            X_train, y_train,
            backend=backend,
            n_estimators=n_estimators,
            max_features=candidate,
            random_state=random_state,
            n_jobs=n_jobs
        )
        accuracy = accuracy_score(y_test, predict_labels(model, X_test))
        results.append((candidate, float(accuracy)))

    return results


def select_best_candidate(results):
    """Candidate with the highest accuracy; ties go to the first one seen."""
    if not results:
        raise ValueError("No sweep results to select from")

    best_candidate, best_accuracy = results[0]
    for candidate, accuracy in results[1:]:
        if accuracy > best_accuracy:
            best_candidate, best_accuracy = candidate, accuracy
    return best_candidate, best_accuracy


def train_final_model(X_train, y_train, max_features, n_estimators=500,
                      backend=DEFAULT_BACKEND, random_state=RANDOM_STATE, n_jobs=-1):
    """Refit once on the whole train partition with the selected max_features."""
    return fit_ensemble(
        X_train, y_train,
        backend=backend,
        n_estimators=n_estimators,
        max_features=max_features,
        random_state=random_state,
        n_jobs=n_jobs
    )


def macro_scores_from_confusion(cm):
    """
    Macro precision, recall and F1 from a confusion matrix
    (rows = true class, columns = predicted class).

    Undefined per-class ratios count as 0.
    """
    cm = np.asarray(cm, dtype=float)
    tp = np.diag(cm)
    predicted = cm.sum(axis=0)
    actual = cm.sum(axis=1)

    precision = np.divide(tp, predicted, out=np.zeros_like(tp), where=predicted > 0)
    recall = np.divide(tp, actual, out=np.zeros_like(tp), where=actual > 0)
    denom = precision + recall
    f1 = np.divide(2 * precision * recall, denom, out=np.zeros_like(tp), where=denom > 0)

    return {
        'precision': float(precision.mean()),
        'recall': float(recall.mean()),
        'f1': float(f1.mean()),
    }


def evaluate_model(model, X_test, y_test, labels=STAR_TYPES):
    """
    Score the final model on the test partition.

    Predictions are recomputed from the given model. Per-class metrics are
    macro-averaged over all labels, so unbalanced classes weigh equally.

    Returns:
        Dict with accuracy, macro precision/recall/F1, per-class report,
        labelled confusion matrix and predictions
    """
    y_pred = predict_labels(model, X_test)

    accuracy = accuracy_score(y_test, y_pred)
    precision, recall, f1, _ = precision_recall_fscore_support(
        y_test, y_pred, labels=labels, average='macro', zero_division=0
    )

    cm = confusion_matrix(y_test, y_pred, labels=labels)
    cm_df = pd.DataFrame(
        cm,
        index=pd.Index(labels, name='true'),
        columns=pd.Index(labels, name='predicted')
    )

    report = classification_report(
        y_test, y_pred,
        labels=labels,
        target_names=[STAR_TYPE_NAMES.get(label, str(label)) for label in labels],
        output_dict=True,
        zero_division=0
    )

    return {
        'accuracy': float(accuracy),
        'precision_macro': float(precision),
        'recall_macro': float(recall),
        'f1_macro': float(f1),
        'confusion_matrix': cm_df,
        'classification_report': report,
        'predictions': y_pred,
    }


def feature_importance_ranking(model, feature_names, method='impurity',
                               X_test=None, y_test=None, random_state=RANDOM_STATE,
                               n_repeats=10):
    """
    Rank predictors by importance.

    Args:
        method: 'impurity' (mean decrease in impurity) or 'permutation'
            (accuracy drop on X_test/y_test when a column is shuffled)

    Returns:
        DataFrame with columns feature, importance sorted descending
    """
    if method == 'impurity':
        importances = model.feature_importances_
    elif method == 'permutation':
        if X_test is None or y_test is None:
            raise ValueError("Permutation importance needs X_test and y_test")
        result = permutation_importance(
            model, X_test, y_test,
            n_repeats=n_repeats,
            random_state=random_state,
            scoring='accuracy'
        )
        importances = result.importances_mean
    else:
        raise ValueError(f"Unknown importance method '{method}'")

    return pd.DataFrame({
        'feature': list(feature_names),
        'importance': np.asarray(importances, dtype=float)
    }).sort_values('importance', ascending=False, kind='stable').reset_index(drop=True)


def learning_curve_probe(X_train, y_train, X_test, y_test, fractions=None,
                         max_features=2, n_estimators=500, backend=DEFAULT_BACKEND,
                         random_state=RANDOM_STATE, n_jobs=-1):
    """
    Fit a fresh model on growing seeded subsamples of the train partition.

    Returns:
        DataFrame with columns fraction, n_samples, train_accuracy, test_accuracy
    """
    if fractions is None:
        fractions = CONFIG['learning_curve_fractions']

    rows = []
    for fraction in fractions:
        if not 0 < fraction <= 1:
            raise ValueError(f"Subsample fraction {fraction} outside (0, 1]")

        X_sub = X_train.sample(frac=fraction, random_state=random_state)
        y_sub = y_train.loc[X_sub.index]

        model = fit_ensemble(
            X_sub, y_sub,
            backend=backend,
            n_estimators=n_estimators,
            max_features=max_features,
            random_state=random_state,
            n_jobs=n_jobs
        )

        rows.append({
            'fraction': float(fraction),
            'n_samples': int(len(X_sub)),
            'train_accuracy': float(accuracy_score(y_sub, predict_labels(model, X_sub))),
            'test_accuracy': float(accuracy_score(y_test, predict_labels(model, X_test))),
        })

    return pd.DataFrame(rows, columns=['fraction', 'n_samples', 'train_accuracy', 'test_accuracy'])


# ---------------- pipeline ----------------

class StarTypePredictor:
    """
    The star type training run, one step after the other.
    """

    def __init__(self, config):
        self.config = config
        self.df = None
        self.model = None
        self.sweep_results = None
        self.best_max_features = None
        self.feature_importance = None
        self.learning_curve = None

        os.makedirs(config['output_dir'], exist_ok=True)

    def load_and_explore_data(self):
        """Load data, check quality and optionally render the exploratory plots."""
        print("="*70)
        print("STEP 1: LOADING AND EXPLORING DATA")
        print("="*70)

        df = load_star_data(self.config['data_path'])
        print(f"\n✓ Data loaded successfully: {df.shape[0]} rows, {df.shape[1]} columns")

        check_data_quality(df)

        print(f"\nTarget variable distribution:")
        print(df[TARGET_COLUMN].value_counts().sort_index().to_string())

        if self.config.get('run_exploration', True):
            run_exploration(df, os.path.join(self.config['output_dir'], 'eda'))

        self.df = df
        return df

    def split_data(self, df):
        print("\n" + "="*70)
        print("STEP 2: DATA SPLITTING")
        print("="*70)

        train_df, test_df = split_train_test(
            df,
            test_size=self.config['test_size'],
            random_state=self.config['random_state'],
            stratify=self.config.get('stratify', False)
        )

        print(f"\n✓ Data split complete:")
        print(f"   - Training set: {len(train_df)} samples ({len(train_df)/len(df)*100:.1f}%)")
        print(f"   - Test set: {len(test_df)} samples ({len(test_df)/len(df)*100:.1f}%)")

        X_train, y_train = encode_features(train_df)
        X_test, y_test = encode_features(test_df)
        return X_train, y_train, X_test, y_test

    def tune_max_features(self, X_train, y_train, X_test, y_test):
        print("\n" + "="*70)
        print("STEP 3: MAX_FEATURES SWEEP")
        print("="*70)

        print(f"\n   - Backend: {self.config['backend']}")
        print(f"   - Trees per model: {self.config['n_estimators']}")
        print(f"   - Candidates: {self.config['max_features_candidates']}")

        self.sweep_results = sweep_max_features(
            X_train, y_train, X_test, y_test,
            self.config['max_features_candidates'],
            n_estimators=self.config['n_estimators'],
            backend=self.config['backend'],
            random_state=self.config['random_state'],
            n_jobs=self.config['n_jobs']
        )

        table = pd.DataFrame(self.sweep_results, columns=['max_features', 'accuracy'])
        print("\n" + table.to_string(index=False))

        self.best_max_features, best_accuracy = select_best_candidate(self.sweep_results)
        print(f"\n✓ Best max_features: {self.best_max_features} (accuracy = {best_accuracy:.4f})")

        return self.best_max_features

    def train_model(self, X_train, y_train):
        print("\n" + "="*70)
        print("STEP 4: FINAL MODEL TRAINING")
        print("="*70)

        self.model = train_final_model(
            X_train, y_train,
            max_features=self.best_max_features,
            n_estimators=self.config['n_estimators'],
            backend=self.config['backend'],
            random_state=self.config['random_state'],
            n_jobs=self.config['n_jobs']
        )

        print(f"\n✓ Training complete!")
        print(f"   - Training samples: {len(X_train)}")
        print(f"   - max_features: {self.best_max_features}")
        return self.model

    def evaluate(self, X_test, y_test):
        print("\n" + "="*70)
        print("STEP 5: MODEL EVALUATION")
        print("="*70)

        results = evaluate_model(self.model, X_test, y_test)

        print(f"\n✓ Test Set Accuracy: {results['accuracy']:.4f}")
        print(f"   - Macro Precision: {results['precision_macro']:.4f}")
        print(f"   - Macro Recall: {results['recall_macro']:.4f}")
        print(f"   - Macro F1: {results['f1_macro']:.4f}")

        print("\n" + "-"*70)
        print("CONFUSION MATRIX (rows = true, columns = predicted)")
        print("-"*70)
        print(results['confusion_matrix'].to_string())

        self.feature_importance = feature_importance_ranking(
            self.model, FEATURE_COLUMNS,
            method=self.config['importance_method'],
            X_test=X_test, y_test=y_test,
            random_state=self.config['random_state']
        )

        print("\n" + "-"*70)
        print("FEATURE IMPORTANCE")
        print("-"*70)
        print(self.feature_importance.to_string(index=False))

        return results

    def probe_learning_curve(self, X_train, y_train, X_test, y_test):
        print("\n" + "="*70)
        print("STEP 6: LEARNING CURVE")
        print("="*70)

        self.learning_curve = learning_curve_probe(
            X_train, y_train, X_test, y_test,
            fractions=self.config['learning_curve_fractions'],
            max_features=self.best_max_features,
            n_estimators=self.config['n_estimators'],
            backend=self.config['backend'],
            random_state=self.config['random_state'],
            n_jobs=self.config['n_jobs']
        )

        print("\n" + self.learning_curve.to_string(index=False))
        return self.learning_curve

    def visualize_results(self, results):
        """Confusion matrix, importances, sweep, learning curve and per-class scores."""
        print("\n" + "="*70)
        print("STEP 7: GENERATING VISUALIZATIONS")
        print("="*70)

        class_names = [STAR_TYPE_NAMES[t] for t in STAR_TYPES]
        fig = plt.figure(figsize=(20, 12))

        # 1. Confusion Matrix
        ax1 = plt.subplot(2, 3, 1)
        sns.heatmap(
            results['confusion_matrix'],
            annot=True,
            fmt='d',
            cmap='Blues',
            xticklabels=class_names,
            yticklabels=class_names,
            ax=ax1
        )
        ax1.set_title('Confusion Matrix', fontsize=14, fontweight='bold')
        ax1.set_ylabel('True Label', fontsize=12)
        ax1.set_xlabel('Predicted Label', fontsize=12)

        # 2. Feature Importance
        ax2 = plt.subplot(2, 3, 2)
        ax2.barh(range(len(self.feature_importance)), self.feature_importance['importance'])
        ax2.set_yticks(range(len(self.feature_importance)))
        ax2.set_yticklabels(self.feature_importance['feature'], fontsize=10)
        ax2.invert_yaxis()
        ax2.set_xlabel('Importance', fontsize=12)
        ax2.set_title('Feature Importances', fontsize=14, fontweight='bold')
        ax2.grid(axis='x', alpha=0.3)

        # 3. Sweep
        ax3 = plt.subplot(2, 3, 3)
        candidates = [c for c, _ in self.sweep_results]
        accuracies = [a for _, a in self.sweep_results]
        colors = ['#2ecc71' if c == self.best_max_features else '#95a5a6' for c in candidates]
        ax3.bar([str(c) for c in candidates], accuracies, color=colors, alpha=0.8)
        ax3.set_xlabel('max_features', fontsize=12)
        ax3.set_ylabel('Test Accuracy', fontsize=12)
        ax3.set_title('max_features Sweep', fontsize=14, fontweight='bold')
        ax3.grid(axis='y', alpha=0.3)
        ax3.set_ylim([max(0.0, min(accuracies) - 0.05), min(1.05, max(accuracies) + 0.05)])

        # 4. Learning Curve
        ax4 = plt.subplot(2, 3, 4)
        ax4.plot(self.learning_curve['fraction'], self.learning_curve['train_accuracy'],
                 marker='o', label='Train', linewidth=2)
        ax4.plot(self.learning_curve['fraction'], self.learning_curve['test_accuracy'],
                 marker='o', label='Test', linewidth=2)
        ax4.set_xlabel('Fraction of Training Set', fontsize=12)
        ax4.set_ylabel('Accuracy', fontsize=12)
        ax4.set_title('Learning Curve', fontsize=14, fontweight='bold')
        ax4.legend()
        ax4.grid(alpha=0.3)

        # 5. Headline scores, macro-averaged over the six types
        ax5 = plt.subplot(2, 3, 5)
        summary = {
            'Accuracy': results['accuracy'],
            'Precision': results['precision_macro'],
            'Recall': results['recall_macro'],
            'F1': results['f1_macro'],
        }
        bars = ax5.bar(list(summary), list(summary.values()), color='#3498db', alpha=0.8)
        ax5.bar_label(bars, fmt='%.3f')
        ax5.set_ylabel('Score', fontsize=12)
        ax5.set_title('Test Scores (macro)', fontsize=14, fontweight='bold')
        ax5.grid(axis='y', alpha=0.3)
        ax5.set_ylim([0, 1.1])

        # 6. Performance Metrics by Class
        ax6 = plt.subplot(2, 3, 6)
        class_report = results['classification_report']
        metrics = ['precision', 'recall', 'f1-score']

        x = np.arange(len(class_names))
        width = 0.25

        for i, metric in enumerate(metrics):
            values = [class_report[c][metric] for c in class_names]
            ax6.bar(x + i*width, values, width, label=metric.capitalize())

        ax6.set_ylabel('Score', fontsize=12)
        ax6.set_title('Performance Metrics by Class', fontsize=14, fontweight='bold')
        ax6.set_xticks(x + width)
        ax6.set_xticklabels(class_names, rotation=45, ha='right')
        ax6.legend()
        ax6.grid(axis='y', alpha=0.3)
        ax6.set_ylim([0, 1.1])

        plt.tight_layout()

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        plot_path = os.path.join(self.config['output_dir'], f'model_evaluation_{timestamp}.png')
        plt.savefig(plot_path, dpi=300, bbox_inches='tight')
        print(f"\n✓ Visualizations saved to: {plot_path}")

        plt.close(fig)
        return plot_path

    def run_full_pipeline(self):
        """Execute the complete training pipeline."""
        print("\n")
        print("="*70)
        print(" STAR TYPE PREDICTION - ENSEMBLE MODEL TRAINING")
        print("="*70)
        print(f"\nStarted at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

        df = self.load_and_explore_data()
        X_train, y_train, X_test, y_test = self.split_data(df)

        self.tune_max_features(X_train, y_train, X_test, y_test)
        self.train_model(X_train, y_train)
        results = self.evaluate(X_test, y_test)
        self.probe_learning_curve(X_train, y_train, X_test, y_test)
        plot_path = self.visualize_results(results)

        print("\n" + "="*70)
        print(" TRAINING COMPLETE - SUMMARY")
        print("="*70)
        print(f"\nKey Metrics:")
        print(f"   - Best max_features: {self.best_max_features}")
        print(f"   - Test Accuracy: {results['accuracy']:.4f}")
        print(f"   - Macro F1: {results['f1_macro']:.4f}")
        print(f"   - Most important feature: {self.feature_importance['feature'].iloc[0]}")
        print(f"\nCompleted at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        print("="*70)

        results['sweep'] = self.sweep_results
        results['best_max_features'] = self.best_max_features
        results['feature_importance'] = self.feature_importance
        results['learning_curve'] = self.learning_curve
        results['plot_path'] = plot_path
        return results


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description='Train a tree-ensemble classifier to predict star types'
    )

    parser.add_argument('--data', type=str, default=CONFIG['data_path'],
                        help='Path to input CSV file')
    parser.add_argument('--output-dir', type=str, default=CONFIG['output_dir'],
                        help='Directory for plots')
    parser.add_argument('--test-size', type=float, default=CONFIG['test_size'],
                        help='Fraction of rows held out for testing')
    parser.add_argument('--seed', type=int, default=CONFIG['random_state'],
                        help='Random seed for split, models and subsamples')
    parser.add_argument('--n-estimators', type=int, default=CONFIG['n_estimators'],
                        help='Trees per ensemble')
    parser.add_argument('--candidates', type=int, nargs='+',
                        default=CONFIG['max_features_candidates'],
                        help='max_features values to sweep')
    parser.add_argument('--backend', type=str, default=CONFIG['backend'],
                        choices=['random_forest', 'extra_trees', 'xgboost'],
                        help='Ensemble classifier backend')
    parser.add_argument('--importance', type=str, default=CONFIG['importance_method'],
                        choices=['impurity', 'permutation'],
                        help='Feature importance method')
    parser.add_argument('--stratify', action='store_true',
                        help='Stratify the train/test split by star type')
    parser.add_argument('--skip-eda', action='store_true',
                        help='Skip the exploratory plots')

    return parser.parse_args(argv)


def build_config(args):
    config = dict(CONFIG)
    config.update({
        'data_path': args.data,
        'output_dir': args.output_dir,
        'test_size': args.test_size,
        'random_state': args.seed,
        'n_estimators': args.n_estimators,
        'max_features_candidates': list(args.candidates),
        'backend': args.backend,
        'importance_method': args.importance,
        'stratify': args.stratify,
        'run_exploration': not args.skip_eda,
    })
    return config


def main(argv=None):
    """Main execution function."""
    config = build_config(parse_args(argv))
    predictor = StarTypePredictor(config)

    try:
        results = predictor.run_full_pipeline()
    except StarDataValidationError as e:
        print(f"\n❌ Data validation failed: {e}")
        raise SystemExit(2)

    return predictor, results


if __name__ == "__main__":
    predictor, results = main()
