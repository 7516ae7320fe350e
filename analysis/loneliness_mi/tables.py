"""
Loading Source Tables and Persisting Pipeline Artifacts
=======================================================

Artifacts:

- cohort: cohort.pkl (assembled table + collection start + dropped persons)
- predictor table (pre-imputation): pickled DataFrame
- imputation ensemble: imputed_datasets.pkl (completed tables + run
  metadata) with a plain-text imputation_metadata.txt next to it
"""

import os
import pickle

import pandas as pd

from loneliness_mi.errors import check_columns
from loneliness_mi.imputation import Ensemble

ENSEMBLE_FILE = 'imputed_datasets.pkl'
METADATA_FILE = 'imputation_metadata.txt'


def load_table(path):
    """Read one tabular snapshot (.csv, .pkl/.pickle or .parquet)"""
    if not os.path.exists(path):
        raise FileNotFoundError(f"File not found: {path}")

    ext = os.path.splitext(path)[1].lower()
    if ext == '.csv':
        return pd.read_csv(path, low_memory=False)
    if ext in ('.pkl', '.pickle'):
        return pd.read_pickle(path)
    if ext == '.parquet':
        return pd.read_parquet(path)
    raise ValueError(f"Unsupported table format {ext!r}: {path}")


def load_sources(data_dir, filenames, time_cols=(), verbose=False):
    """
    Load every logical dataset

    Parameters
    ----------
    data_dir : str
    filenames : dict
        Dataset name -> file name inside `data_dir`
    time_cols : list of str
        Columns parsed to datetime wherever present

    Returns
    -------
    dict
        Dataset name -> DataFrame
    """
    sources = {}
    for name, filename in filenames.items():
        df = load_table(os.path.join(data_dir, filename))
        for col in time_cols:
            if col in df.columns:
                df[col] = pd.to_datetime(df[col])
        sources[name] = df
        if verbose:
            print(f"  ✓ {name}: {len(df):,} rows, {len(df.columns)} columns")
    return sources


def load_labels(source, variable_col='variable', label_col='label'):
    """
    Variable label lookup (column name -> human-readable label)

    `source` is a path or an already loaded two-column table. The first
    label wins when a variable is listed twice.
    """
    table = load_table(source) if isinstance(source, (str, os.PathLike)) else source
    check_columns(table, [variable_col, label_col])
    table = table.dropna(subset=[variable_col]).drop_duplicates(subset=variable_col, keep='first')
    return dict(zip(table[variable_col], table[label_col].fillna(table[variable_col])))


def save_cohort(cohort, path, start, dropped_persons=(), verbose=False):
    """
    Persist the assembled cohort with the collection start it was built with

    Later stages read the start back instead of deriving it again from
    the raw sources.
    """
    os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
    bundle = {'cohort': cohort, 'start': start, 'dropped_persons': list(dropped_persons)}
    with open(path, 'wb') as f:
        pickle.dump(bundle, f)
    if verbose:
        print(f"  ✓ Cohort: {path}")
        print(f"    Shape: {cohort.shape}, collection start: {start}")
    return path


def load_cohort(path):
    """
    Read a bundle written by save_cohort

    Returns
    -------
    cohort : DataFrame
    start : timestamp
    dropped_persons : list
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"File not found: {path} (run 00_assemble_cohort.py first)")
    with open(path, 'rb') as f:
        bundle = pickle.load(f)
    return bundle['cohort'], bundle['start'], bundle['dropped_persons']


def save_predictors(table, path, verbose=False):
    """Persist the pre-imputation predictor table"""
    os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
    table.to_pickle(path)
    if verbose:
        print(f"  ✓ Predictors: {path}")
        print(f"    Shape: {table.shape}")
        print(f"    Missing values: {int(table.isna().sum().sum()):,}")
    return path


def save_ensemble(ensemble, output_dir, verbose=False):
    """
    Persist the ensemble bundle and its metadata

    Returns
    -------
    str
        Path of the pickled bundle
    """
    os.makedirs(output_dir, exist_ok=True)

    bundle = {'datasets': ensemble.datasets, 'metadata': ensemble.metadata()}
    pickle_path = os.path.join(output_dir, ENSEMBLE_FILE)
    with open(pickle_path, 'wb') as f:
        pickle.dump(bundle, f)

    meta = ensemble.metadata()
    meta_path = os.path.join(output_dir, METADATA_FILE)
    with open(meta_path, 'w', encoding='utf-8') as f:
        f.write("Multiple Imputation Metadata\n")
        f.write("=" * 60 + "\n\n")
        f.write(f"Number of imputations: {meta['m']}\n")
        f.write(f"Observations per dataset: {meta['n_rows']:,}\n")
        f.write(f"Variables: {len(meta['columns'])}\n")
        f.write(f"Method: {meta['method']} (IterativeImputer)\n")
        f.write(f"Random seed: {meta['seed']} (run i uses seed + i)\n")
        f.write(f"Max iterations: {meta['max_iterations']}\n")
        f.write("\nImputed variables:\n")
        for col in meta['imputed_columns']:
            f.write(f"  - {col}\n")
        f.write("\nCarried through unchanged:\n")
        for col in meta['passthrough']:
            f.write(f"  - {col}\n")

    if verbose:
        size_mb = os.path.getsize(pickle_path) / (1024 ** 2)
        print(f"  ✓ Pickle: {pickle_path} ({size_mb:.1f} MB)")
        print(f"  ✓ Metadata: {meta_path}")

    return pickle_path


def load_ensemble(path):
    """Read a bundle written by save_ensemble"""
    if not os.path.exists(path):
        raise FileNotFoundError(f"File not found: {path}")
    with open(path, 'rb') as f:
        bundle = pickle.load(f)

    meta = bundle['metadata']
    return Ensemble(
        bundle['datasets'],
        seed=meta['seed'],
        max_iterations=meta['max_iterations'],
        imputed_columns=meta['imputed_columns'],
        method=meta['method'],
        passthrough=meta.get('passthrough', ()),
    )
