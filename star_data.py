"""
Star Dataset Loading and Splitting
==================================
Loads the six-class star table, renames its columns, coerces the categorical
columns and derives the seeded train/test partition used by every training
step.

Author: Star Classification Team
Dataset: 240 stars, six types (Brown Dwarf .. Hypergiant)
"""

import pandas as pd
from sklearn.model_selection import train_test_split


# Raw CSV header -> analysis column names
COLUMN_RENAMES = {
    'Temperature (K)': 'Temperature',
    'Luminosity (L/Lo)': 'Luminosity',
    'Radius (R/Ro)': 'Radius',
    'Absolute magnitude (Mv)': 'AbsoluteMagnitude',
    'Star.color': 'Star.color',
    'Spectral.Class': 'Spectral.Class',
    'Star.type': 'Star.type',
}
RAW_COLUMNS = list(COLUMN_RENAMES.keys())

NUMERIC_COLUMNS = ['Temperature', 'Luminosity', 'Radius', 'AbsoluteMagnitude']
CATEGORICAL_PREDICTORS = ['Star.color', 'Spectral.Class']
TARGET_COLUMN = 'Star.type'
CATEGORICAL_COLUMNS = CATEGORICAL_PREDICTORS + [TARGET_COLUMN]
FEATURE_COLUMNS = NUMERIC_COLUMNS + CATEGORICAL_PREDICTORS

STAR_TYPE_NAMES = {
    0: 'Brown Dwarf',
    1: 'Red Dwarf',
    2: 'White Dwarf',
    3: 'Main Sequence',
    4: 'Supergiant',
    5: 'Hypergiant',
}
STAR_TYPES = sorted(STAR_TYPE_NAMES)


class StarDataValidationError(ValueError):
    """Raised when the star table does not match the expected schema."""


def load_star_data(path):
    """
    Load the star table and bring it into analysis form.

    - Check the raw header for every required column
    - Rename columns to their analysis names
    - Coerce the measurements to numeric
    - Coerce color, spectral class and star type to categorical

    Args:
        path: Path to the CSV file

    Returns:
        DataFrame with the renamed, typed columns
    """
    df = pd.read_csv(path)

    missing = [c for c in RAW_COLUMNS if c not in df.columns]
    if missing:
        raise StarDataValidationError(f"Missing required columns: {sorted(missing)}")

    df = df[RAW_COLUMNS].rename(columns=COLUMN_RENAMES)

    for col in NUMERIC_COLUMNS:
        try:
            df[col] = pd.to_numeric(df[col])
        except (ValueError, TypeError) as e:
            raise StarDataValidationError(f"Column '{col}' is not numeric: {e}") from e

    if df[TARGET_COLUMN].isna().any():
        raise StarDataValidationError(f"Target column '{TARGET_COLUMN}' has nulls")

    unknown_types = set(df[TARGET_COLUMN].dropna().unique()) - set(STAR_TYPES)
    if unknown_types:
        raise StarDataValidationError(
            f"Unknown values in '{TARGET_COLUMN}': {sorted(unknown_types, key=str)}"
        )

    for col in CATEGORICAL_COLUMNS:
        df[col] = df[col].astype('category')

    return df


def check_data_quality(df):
    """
    Report missing values and duplicate rows.

    The table is never modified; problems are reported, not repaired.
    """
    missing_per_column = df.isnull().sum()
    report = {
        'rows': int(len(df)),
        'missing_values': {col: int(n) for col, n in missing_per_column.items() if n > 0},
        'total_missing': int(missing_per_column.sum()),
        'duplicate_rows': int(df.duplicated().sum()),
    }

    if report['total_missing']:
        print(f"⚠ Warning: {report['total_missing']} missing values: {report['missing_values']}")
    else:
        print("✓ No missing values")

    if report['duplicate_rows']:
        print(f"⚠ Warning: {report['duplicate_rows']} duplicate rows")
    else:
        print("✓ No duplicate rows")

    return report


def encode_features(df):
    """
    Build the predictor matrix and target vector.

    Categorical predictors are replaced by their category codes. Categories are
    fixed when the table is loaded, so codes agree across partitions.

    Returns:
        X: DataFrame of FEATURE_COLUMNS
        y: Series of integer star types
    """
    X = df[NUMERIC_COLUMNS].astype('float64').copy()
    for col in CATEGORICAL_PREDICTORS:
        X[col] = df[col].cat.codes.astype('int64')
    X = X[FEATURE_COLUMNS]

    y = df[TARGET_COLUMN].astype('int64')
    return X, y


def ensure_classes_present(labels, expected):
    """Raise if any expected class is missing from labels."""
    absent = sorted(set(expected) - set(pd.unique(pd.Series(labels))))
    if absent:
        raise StarDataValidationError(
            f"Classes absent from training partition: {absent}"
        )


def split_train_test(df, test_size=0.3, random_state=123, stratify=False):
    """
    Seeded random partition of the rows into train and test.

    Args:
        df: Star table from load_star_data
        test_size: Fraction of rows held out
        random_state: Seed of the partition
        stratify: Preserve class proportions in both partitions

    Returns:
        (train_df, test_df), disjoint and together covering df
    """
    train_df, test_df = train_test_split(
        df,
        test_size=test_size,
        random_state=random_state,
        shuffle=True,
        stratify=df[TARGET_COLUMN] if stratify else None
    )

    ensure_classes_present(
        train_df[TARGET_COLUMN].astype('int64'),
        df[TARGET_COLUMN].astype('int64').unique()
    )

    return train_df, test_df
