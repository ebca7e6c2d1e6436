import pandas as pd
import pytest

from pipeline_config import PipelineConfig


def _alkane_spectrum(n):
    molecular_ion = 14 * n + 2
    return f"{molecular_ion} 90; 57 100; 43 80; 71 40; 29 30"


def _alcohol_spectrum(n):
    molecular_ion = 14 * n + 18
    return f"31 100; {molecular_ion - 18} 70; 45 35; 59 25; 29 10"


def make_training_corpus(n_rows=40):
    rows = []
    for i in range(n_rows):
        n_carbon = 4 + i % 8
        if i % 2:
            rows.append({
                'Name': f"alkane_{i}",
                'MS': _alkane_spectrum(n_carbon),
                'ChemFormula': f"C{n_carbon}H{2 * n_carbon + 2}",
                'Class': 'alkane',
                'VP': 10.0 - n_carbon,
            })
        else:
            rows.append({
                'Name': f"alcohol_{i}",
                'MS': _alcohol_spectrum(n_carbon),
                'ChemFormula': f"C{n_carbon}H{2 * n_carbon + 2}O",
                'Class': 'alcohol',
                'VP': 6.0 - n_carbon,
            })
    return pd.DataFrame(rows)


def make_unknown_corpus():
    return pd.DataFrame([
        {'Name': 'unk_alkane', 'MS': _alkane_spectrum(6), 'RI': 600.0},
        {'Name': 'unk_alcohol', 'MS': _alcohol_spectrum(5), 'RI': 770.0},
        {'Name': 'unk_unrelated', 'MS': "999 100; 996.5 50", 'RI': 1500.0},
    ])


@pytest.fixture
def training_corpus():
    return make_training_corpus()


@pytest.fixture
def unknown_corpus():
    return make_unknown_corpus()


@pytest.fixture
def small_config():
    return PipelineConfig(
        top_per_compound_peaks=3,
        top_corpus_peaks=20,
        top_per_compound_losses=4,
        top_corpus_losses=20,
        targets=['C'],
        max_feature_subset_size=5,
        n_estimators=10,
        cv_folds=2,
        random_seed=0,
    )
