"""
Shared fixtures: a synthetic six-class star table with the raw CSV header.
"""

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pandas as pd
import pytest

from star_data import RAW_COLUMNS, load_star_data


# (temperature, luminosity, radius, abs. magnitude) ranges, colors, spectral classes
STAR_TYPE_PROFILES = {
    0: ((1900, 3200), (1e-4, 3e-3), (0.06, 0.13), (16.0, 20.0), ['Red'], ['M']),
    1: ((2600, 3800), (1e-4, 5e-3), (0.15, 0.70), (10.5, 14.0), ['Red'], ['M']),
    2: ((7000, 25000), (1e-4, 1e-2), (0.008, 0.015), (10.5, 14.0), ['Blue White', 'White'], ['B', 'A']),
    3: ((4500, 39000), (0.5, 2e5), (0.8, 10.0), (-3.0, 6.0), ['Blue', 'Yellow-White', 'Blue White'], ['O', 'B', 'F', 'G']),
    4: ((3000, 40000), (1e5, 6e5), (12.0, 100.0), (-7.0, -4.0), ['Blue', 'Red'], ['O', 'M']),
    5: ((3000, 38000), (1e5, 8e5), (500.0, 2000.0), (-12.0, -8.0), ['Red', 'Blue'], ['M', 'O']),
}


def make_star_table(rows_per_type=40, seed=7):
    """Deterministic star table with the raw header, rows_per_type rows per class."""
    rng = np.random.default_rng(seed)
    records = []
    for star_type, (temp, lum, rad, mag, colors, classes) in STAR_TYPE_PROFILES.items():
        for _ in range(rows_per_type):
            records.append({
                'Temperature (K)': int(rng.integers(*temp)),
                'Luminosity (L/Lo)': float(rng.uniform(*lum)),
                'Radius (R/Ro)': float(rng.uniform(*rad)),
                'Absolute magnitude (Mv)': float(rng.uniform(*mag)),
                'Star.color': str(rng.choice(colors)),
                'Spectral.Class': str(rng.choice(classes)),
                'Star.type': star_type,
            })
    return pd.DataFrame(records, columns=RAW_COLUMNS)


@pytest.fixture
def raw_star_table():
    return make_star_table()


@pytest.fixture
def star_csv(tmp_path, raw_star_table):
    path = tmp_path / 'stars.csv'
    raw_star_table.to_csv(path, index=False)
    return path


@pytest.fixture
def star_df(star_csv):
    return load_star_data(star_csv)
