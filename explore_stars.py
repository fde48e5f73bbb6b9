"""
Exploratory Analysis of the Star Dataset
========================================
Summarizes the star table and renders the descriptive plots:
- Temperature histogram
- Boxplots of each measurement by star type
- Hertzsprung-Russell diagram (temperature vs absolute magnitude)
- Star color counts
- Correlation heatmap

Usage:
    python explore_stars.py --data data/stars.csv --output-dir eda_outputs
"""

import argparse
import os

import matplotlib.pyplot as plt
import numpy as np
import seaborn as sns

from star_data import (
    NUMERIC_COLUMNS,
    STAR_TYPE_NAMES,
    TARGET_COLUMN,
    StarDataValidationError,
    check_data_quality,
    load_star_data,
)


def correlation_matrix(df):
    """Pearson correlation of the measurements and the star type code."""
    numeric = df[NUMERIC_COLUMNS].copy()
    numeric[TARGET_COLUMN] = df[TARGET_COLUMN].astype('int64')
    return numeric.corr()


def summarize_dataset(df):
    """Print descriptive statistics and class counts."""
    print("\nDescriptive statistics:")
    print(df[NUMERIC_COLUMNS].describe().T.to_string())

    type_counts = df[TARGET_COLUMN].value_counts().sort_index()
    print(f"\nStar type distribution:")
    for star_type, count in type_counts.items():
        print(f"   {star_type} ({STAR_TYPE_NAMES.get(int(star_type), '?')}): {count}")

    print(f"\nStar colors: {df['Star.color'].nunique()} distinct")
    print(f"Spectral classes: {sorted(df['Spectral.Class'].cat.categories.tolist())}")

    return type_counts


def _save(fig, output_dir, name):
    path = os.path.join(output_dir, name)
    fig.savefig(path, dpi=300, bbox_inches='tight')
    plt.close(fig)
    return path


def plot_temperature_histogram(df, output_dir):
    fig, ax = plt.subplots(figsize=(10, 6))
    sns.histplot(df['Temperature'], bins=30, kde=True, ax=ax, color='#e67e22')
    ax.set_xlabel('Temperature (K)', fontsize=12)
    ax.set_ylabel('Count', fontsize=12)
    ax.set_title('Temperature Distribution', fontsize=14, fontweight='bold')
    ax.grid(alpha=0.3)
    return _save(fig, output_dir, 'temperature_histogram.png')


def plot_feature_boxplots(df, output_dir):
    """One boxplot per measurement, grouped by star type."""
    fig, axes = plt.subplots(2, 2, figsize=(16, 10))

    for ax, col in zip(axes.ravel(), NUMERIC_COLUMNS):
        sns.boxplot(x=TARGET_COLUMN, y=col, data=df, ax=ax, palette='Set3',
                    hue=TARGET_COLUMN, legend=False)
        # Luminosity and radius span several orders of magnitude
        if col in ('Luminosity', 'Radius'):
            ax.set_yscale('log')
        ax.set_title(f'{col} by Star Type', fontsize=14, fontweight='bold')
        ax.set_xlabel('Star Type', fontsize=12)
        ax.grid(axis='y', alpha=0.3)

    plt.tight_layout()
    return _save(fig, output_dir, 'feature_boxplots.png')


def plot_hr_diagram(df, output_dir):
    """Hertzsprung-Russell diagram: hot stars left, bright stars on top."""
    fig, ax = plt.subplots(figsize=(10, 8))

    palette = sns.color_palette('tab10', n_colors=len(STAR_TYPE_NAMES))
    for star_type, name in STAR_TYPE_NAMES.items():
        subset = df[df[TARGET_COLUMN].astype('int64') == star_type]
        if subset.empty:
            continue
        ax.scatter(subset['Temperature'], subset['AbsoluteMagnitude'],
                   label=name, alpha=0.7, edgecolors='k', color=palette[star_type])

    ax.invert_xaxis()
    ax.invert_yaxis()
    ax.set_xlabel('Temperature (K)', fontsize=12)
    ax.set_ylabel('Absolute Magnitude (Mv)', fontsize=12)
    ax.set_title('Hertzsprung-Russell Diagram', fontsize=14, fontweight='bold')
    ax.legend()
    ax.grid(alpha=0.3)
    return _save(fig, output_dir, 'hr_diagram.png')


def plot_star_color_counts(df, output_dir):
    counts = df['Star.color'].value_counts()

    fig, ax = plt.subplots(figsize=(12, 6))
    ax.bar(counts.index.astype(str), counts.values, color='#3498db', alpha=0.8)
    ax.set_xticks(np.arange(len(counts)))
    ax.set_xticklabels(counts.index.astype(str), rotation=45, ha='right')
    ax.set_ylabel('Count', fontsize=12)
    ax.set_title('Star Color Counts', fontsize=14, fontweight='bold')
    ax.grid(axis='y', alpha=0.3)
    return _save(fig, output_dir, 'star_color_counts.png')


def plot_correlation_heatmap(corr, output_dir):
    fig, ax = plt.subplots(figsize=(9, 7))
    sns.heatmap(corr, annot=True, fmt='.2f', cmap='coolwarm', vmin=-1, vmax=1,
                square=True, ax=ax)
    ax.set_title('Correlation Matrix', fontsize=14, fontweight='bold')
    return _save(fig, output_dir, 'correlation_heatmap.png')


def run_exploration(df, output_dir):
    """
    Produce the full exploratory summary.

    Args:
        df: Star table from load_star_data
        output_dir: Directory for the plot files

    Returns:
        corr: Correlation matrix
        plot_paths: Dict of plot name -> saved file path
    """
    print("\n" + "="*70)
    print("EXPLORATORY DATA ANALYSIS")
    print("="*70)

    os.makedirs(output_dir, exist_ok=True)

    summarize_dataset(df)

    corr = correlation_matrix(df)
    print("\nCorrelation matrix:")
    print(corr.round(3).to_string())

    plot_paths = {
        'temperature_histogram': plot_temperature_histogram(df, output_dir),
        'feature_boxplots': plot_feature_boxplots(df, output_dir),
        'hr_diagram': plot_hr_diagram(df, output_dir),
        'star_color_counts': plot_star_color_counts(df, output_dir),
        'correlation_heatmap': plot_correlation_heatmap(corr, output_dir),
    }

    print(f"\n✓ {len(plot_paths)} plots saved to: {output_dir}/")
    return corr, plot_paths


def main(argv=None):
    """Main execution function."""
    parser = argparse.ArgumentParser(
        description='Exploratory analysis of the six-class star dataset'
    )

    parser.add_argument(
        '--data',
        type=str,
        default='data/stars.csv',
        help='Path to input CSV file'
    )

    parser.add_argument(
        '--output-dir',
        type=str,
        default='eda_outputs',
        help='Directory for the plot files'
    )

    args = parser.parse_args(argv)

    try:
        df = load_star_data(args.data)
    except StarDataValidationError as e:
        print(f"❌ Data validation failed: {e}")
        raise SystemExit(2)

    print(f"✓ Data loaded successfully: {df.shape[0]} rows, {df.shape[1]} columns")
    check_data_quality(df)

    return run_exploration(df, args.output_dir)


if __name__ == "__main__":
    main()
