import os

import numpy as np
import pandas as pd
import pytest

from loneliness_mi.imputation import impute
from loneliness_mi.tables import (
    ENSEMBLE_FILE, METADATA_FILE, load_ensemble, load_labels, load_sources, load_table,
    load_cohort, save_cohort, save_ensemble, save_predictors
)


def test_load_table_formats(tmp_path):
    df = pd.DataFrame({'visit_id': ['v1', 'v2'], 'x': [1.0, np.nan]})
    df.to_csv(tmp_path / 'a.csv', index=False)
    df.to_pickle(tmp_path / 'a.pkl')

    pd.testing.assert_frame_equal(load_table(str(tmp_path / 'a.csv')), df)
    pd.testing.assert_frame_equal(load_table(str(tmp_path / 'a.pkl')), df)


def test_load_table_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_table(str(tmp_path / 'missing.csv'))
    (tmp_path / 'a.xlsx').write_text('')
    with pytest.raises(ValueError):
        load_table(str(tmp_path / 'a.xlsx'))


def test_load_sources_parses_dates(tmp_path):
    pd.DataFrame({'visit_id': ['v1'], 'visit_date': ['2020-01-02']}).to_csv(tmp_path / 'gh.csv', index=False)
    sources = load_sources(str(tmp_path), {'general_health': 'gh.csv'}, time_cols=['visit_date'])
    assert pd.api.types.is_datetime64_any_dtype(sources['general_health']['visit_date'])


def test_load_labels(tmp_path):
    labels = pd.DataFrame({
        'variable': ['age', 'age', 'bmi', 'sex'],
        'label': ['Age (years)', 'Age again', 'Body mass index', np.nan],
    })
    lookup = load_labels(labels)
    assert lookup == {'age': 'Age (years)', 'bmi': 'Body mass index', 'sex': 'sex'}

    labels.to_csv(tmp_path / 'labels.csv', index=False)
    assert load_labels(str(tmp_path / 'labels.csv')) == lookup


def test_save_predictors(tmp_path, numeric_table):
    path = save_predictors(numeric_table, str(tmp_path / 'out' / 'predictors.pkl'))
    pd.testing.assert_frame_equal(pd.read_pickle(path), numeric_table)


def test_ensemble_round_trip(tmp_path, numeric_table):
    ensemble = impute(numeric_table, m=2, seed=3, max_iterations=3, exclude=['visit_id'])

    path = save_ensemble(ensemble, str(tmp_path))
    assert os.path.basename(path) == ENSEMBLE_FILE

    loaded = load_ensemble(path)
    assert loaded.m == 2
    assert loaded.metadata() == ensemble.metadata()
    for a, b in zip(loaded, ensemble):
        pd.testing.assert_frame_equal(a, b)

    text = (tmp_path / METADATA_FILE).read_text(encoding='utf-8')
    assert 'Number of imputations: 2' in text
    assert 'Random seed: 3' in text
    assert '  - x2' in text


def test_cohort_round_trip(tmp_path, numeric_table):
    start = pd.Timestamp('2019-01-01')
    path = save_cohort(numeric_table, str(tmp_path / 'cohort.pkl'), start, ['P00007'])

    cohort, loaded_start, dropped = load_cohort(path)
    pd.testing.assert_frame_equal(cohort, numeric_table)
    assert loaded_start == start
    assert dropped == ['P00007']


def test_load_cohort_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_cohort(str(tmp_path / 'cohort.pkl'))
