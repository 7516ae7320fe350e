"""
Stage Composition
=================

Each stage takes the tables it needs and returns its outputs; there is
no shared workspace between stages.

    sources → assemble_cohort → cohort, start, dropped persons
    cohort  → analyze_missingness → {group: (pattern, summary)}
    cohort  → build_predictors → predictors
    predictors → run_imputation → Ensemble
"""

import os

import pandas as pd

from loneliness_mi import columns as C
from loneliness_mi import config
from loneliness_mi.assembly import (
    attach_person_ids, collection_start, derive_total_score, first_observation,
    flip_binary, left_join_many
)
from loneliness_mi.imputation import impute, select_predictors
from loneliness_mi.missingness import missing_by_group
from loneliness_mi.report import plot_histogram, render_report, write_report
from loneliness_mi.synthetic import VARIABLE_LABELS, CohortDGP
from loneliness_mi.tables import (
    load_labels, load_sources, save_cohort, save_ensemble, save_predictors
)

# Scale totals: (items, total column, per-item recodes)
SCALE_TOTALS = [
    (C.UCLA_ITEMS, C.UCLA_TOTAL, None),
    (C.PHQ2_ITEMS, C.PHQ2_TOTAL, None),
    (C.GAD2_ITEMS, C.GAD2_TOTAL, None),
    (C.SOCIAL_ISOLATION_ITEMS, C.SOCIAL_ISOLATION_TOTAL,
     {item: flip_binary for item in C.SOCIAL_ISOLATION_ITEMS}),
]


def load_inputs(demo=False, data_dir=config.DATA_DIR, verbose=False):
    """Source tables and the label lookup, from disk or from the synthetic cohort"""
    if demo:
        sources, labels = CohortDGP(random_state=config.RANDOM_SEED).generate()
        if verbose:
            for name, df in sources.items():
                print(f"  ✓ {name} (synthetic): {len(df):,} rows, {len(df.columns)} columns")
        return sources, load_labels(labels)

    sources = load_sources(data_dir, config.SOURCE_FILES, time_cols=[C.TIME_KEY], verbose=verbose)
    return sources, load_variable_labels(demo, data_dir)


def load_variable_labels(demo=False, data_dir=config.DATA_DIR):
    """Label lookup alone, for stages that start from a saved cohort"""
    if demo:
        return dict(VARIABLE_LABELS)
    return load_labels(os.path.join(data_dir, config.LABELS_FILE))


def assemble_cohort(sources, start=None, on_empty='drop', auxiliary=None, verbose=False):
    """
    One row per person: first qualifying UCLA visit plus auxiliary measures

    Every scale in SCALE_TOTALS is derived; a source lacking one of its
    items raises ColumnNotFound.

    Returns
    -------
    cohort : DataFrame
    start : timestamp
        Collection start that was applied
    dropped_persons : list
        Persons without a qualifying visit (empty unless on_empty='drop')
    """
    auxiliary = config.AUXILIARY_SOURCES if auxiliary is None else auxiliary

    visits = attach_person_ids(sources['general_health'], sources['identity'],
                               C.VISIT_KEY, C.PERSON_KEY, verbose=verbose)
    if start is None:
        start = collection_start(visits, C.TIME_KEY, C.UCLA_ITEMS)
    if verbose:
        print(f"  ✓ Collection start: {start}")

    first = first_observation(visits, C.PERSON_KEY, C.VISIT_KEY, C.TIME_KEY, C.UCLA_ITEMS,
                              start=start, on_empty=on_empty, verbose=verbose)
    kept = set(first[C.PERSON_KEY])
    dropped_persons = [p for p in pd.unique(visits[C.PERSON_KEY]) if p not in kept]

    cohort = left_join_many(first, [(sources[name], C.VISIT_KEY) for name in auxiliary],
                            verbose=verbose)

    for items, total_col, recodes in SCALE_TOTALS:
        cohort = derive_total_score(cohort, items, recodes, total_col=total_col)

    return cohort, start, dropped_persons


def analyze_missingness(cohort, labels=None, groups=None):
    """Pattern and summary for every measure group; all group columns are required"""
    groups = C.MEASURE_GROUPS if groups is None else groups
    return missing_by_group(cohort, groups, labels)


def build_predictors(cohort, drop_cols=None, max_missing_pct=config.MAX_MISSING_PCT, verbose=False):
    """Predictor table keyed by visit id"""
    drop_cols = C.IMPUTATION_DROP if drop_cols is None else drop_cols
    keep = [C.VISIT_KEY] + C.PREDICTORS
    return select_predictors(cohort, keep, drop_cols=drop_cols,
                             max_missing_pct=max_missing_pct, verbose=verbose)


def run_imputation(
    predictors,
    m=config.N_IMPUTATIONS,
    seed=config.RANDOM_SEED,
    max_iterations=config.MAX_ITER,
    n_jobs=config.N_JOBS,
    verbose=False
):
    categorical = [c for c in C.CATEGORICAL if c in predictors.columns]
    return impute(predictors, m=m, seed=seed, max_iterations=max_iterations,
                  exclude=[C.VISIT_KEY], categorical=categorical,
                  n_jobs=n_jobs, verbose=verbose)


def write_missing_data_report(cohort, group_results, output_dir, start=None, dropped_persons=None,
                              verbose=False):
    """Histogram + Markdown report; returns the report path"""
    histogram = plot_histogram(cohort[C.UCLA_TOTAL], os.path.join(output_dir, config.HISTOGRAM_FILE),
                               xlabel='UCLA 3-item loneliness total (3-9)')
    notes = []
    if start is not None:
        notes.append(f"Visits before the UCLA rollout ({start:%Y-%m-%d}) are outside the "
                     f"collection window and are not counted as missing.")
    if dropped_persons:
        notes.append(f"{len(dropped_persons):,} person(s) had no visit with all three UCLA items "
                     f"answered on or after the rollout and are not part of the cohort.")
    text = render_report(cohort, group_results, histogram_path=os.path.basename(histogram),
                         notes=notes, score_col=C.UCLA_TOTAL)
    path = write_report(os.path.join(output_dir, config.REPORT_FILE), text)
    if verbose:
        print(f"  ✓ Histogram: {histogram}")
        print(f"  ✓ Report: {path}")
    return path


def run(
    sources,
    labels,
    output_dir,
    m=config.N_IMPUTATIONS,
    seed=config.RANDOM_SEED,
    max_iterations=config.MAX_ITER,
    n_jobs=config.N_JOBS,
    verbose=False
):
    """All stages end to end, persisting cohort, predictors, ensemble and report"""
    cohort, start, dropped_persons = assemble_cohort(sources, verbose=verbose)
    cohort_path = save_cohort(cohort, os.path.join(output_dir, config.COHORT_FILE), start,
                              dropped_persons, verbose=verbose)

    group_results = analyze_missingness(cohort, labels)
    report_path = write_missing_data_report(cohort, group_results, output_dir, start,
                                            dropped_persons, verbose=verbose)

    predictors = build_predictors(cohort, verbose=verbose)
    predictors_path = save_predictors(predictors, os.path.join(output_dir, config.PREDICTORS_FILE),
                                      verbose=verbose)

    ensemble = run_imputation(predictors, m=m, seed=seed, max_iterations=max_iterations,
                              n_jobs=n_jobs, verbose=verbose)
    ensemble_path = save_ensemble(ensemble, output_dir, verbose=verbose)

    return {
        'cohort': cohort,
        'start': start,
        'dropped_persons': dropped_persons,
        'missingness': group_results,
        'predictors': predictors,
        'ensemble': ensemble,
        'paths': {
            'cohort': cohort_path,
            'report': report_path,
            'predictors': predictors_path,
            'ensemble': ensemble_path,
        },
    }
