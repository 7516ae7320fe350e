"""
Dataset Assembler
=================

Builds the analysis cohort from visit-keyed source tables:

1. attach person identifiers to visits (identity table)
2. derive the collection start (instrument rollout date)
3. keep each person's first chronological qualifying visit
4. left-join the auxiliary measure tables onto the cohort
5. derive scale totals from their items

Every function returns a new DataFrame; inputs are never modified.
"""

import numpy as np
import pandas as pd

from loneliness_mi.errors import (
    AmbiguousJoin, ColumnNotFound, EmptyQualifyingGroup, check_columns
)

_ORDER_COL = '__row_order__'


def attach_person_ids(table, identity, visit_key, person_key, verbose=False):
    """
    Add the person identifier to a visit-keyed table

    Every visit must map to exactly one person: duplicated visit ids in
    `identity` raise AmbiguousJoin, visits absent from `identity` raise
    ValueError.
    """
    check_columns(table, [visit_key])
    check_columns(identity, [visit_key, person_key])
    if person_key in table.columns:
        raise ValueError(f"Table already has a {person_key!r} column")

    lookup = identity[[visit_key, person_key]]
    lookup = lookup[lookup[visit_key].notna()]
    duplicated = lookup[visit_key].duplicated(keep=False)
    if duplicated.any():
        raise AmbiguousJoin(visit_key, pd.unique(lookup.loc[duplicated, visit_key]))

    result = table.merge(lookup, on=visit_key, how='left')
    result.index = table.index

    unmatched = result[person_key].isna()
    if unmatched.any():
        visits = result.loc[unmatched, visit_key].tolist()
        raise ValueError(
            f"{len(visits)} visit(s) without a {person_key!r} in the identity table: "
            f"{', '.join(map(str, visits[:5]))}"
        )

    if verbose:
        n_persons = result[person_key].nunique()
        print(f"  ✓ {len(result):,} visits → {n_persons:,} persons")

    return result


def collection_start(table, time_key, target_cols):
    """
    Earliest timestamp among rows with every target column observed

    This is the instrument rollout date: visits before it predate the
    questionnaire and are outside the collection window. A table without a
    single complete row raises EmptyQualifyingGroup.
    """
    target_cols = list(target_cols)
    check_columns(table, [time_key] + target_cols)

    complete = table[target_cols].notna().all(axis=1) & table[time_key].notna()
    if not complete.any():
        raise EmptyQualifyingGroup(
            [], f"No row has all of {target_cols} observed; cannot derive a collection start"
        )
    return table.loc[complete, time_key].min()


def first_observation(
    table,
    person_key,
    visit_key,
    time_key,
    required_cols,
    start=None,
    on_empty='raise',
    verbose=False
):
    """
    Keep each person's first chronological qualifying visit

    Parameters
    ----------
    table : DataFrame
        Visit-level rows with a person identifier attached
    person_key, visit_key, time_key : str
        Person identifier, visit identifier and visit timestamp columns
    required_cols : list of str
        Columns that must all be observed for a visit to qualify
    start : timestamp or None
        Collection start. Visits before it (and visits without a timestamp)
        are excluded from consideration entirely.
    on_empty : {'raise', 'drop'}
        Persons without a qualifying visit raise EmptyQualifyingGroup, or
        are dropped from the cohort with 'drop'

    Returns
    -------
    DataFrame
        One row per person ordered by `person_key`, same columns as `table`.
        Ties on `time_key` are broken by `visit_key`, then by input order.
    """
    if on_empty not in ('raise', 'drop'):
        raise ValueError(f"on_empty must be 'raise' or 'drop', got {on_empty!r}")

    required_cols = list(required_cols)
    check_columns(table, [person_key, visit_key, time_key] + required_cols)

    if table[person_key].isna().any():
        raise ValueError(f"{int(table[person_key].isna().sum())} row(s) without a {person_key!r}")

    in_window = table[time_key].notna()
    if start is not None:
        in_window &= table[time_key] >= start
    qualifying = in_window & table[required_cols].notna().all(axis=1)

    candidates = table[qualifying].assign(**{_ORDER_COL: np.arange(int(qualifying.sum()))})
    ordered = candidates.sort_values([person_key, time_key, visit_key, _ORDER_COL])
    first = ordered.drop_duplicates(subset=person_key, keep='first')
    first = first.drop(columns=_ORDER_COL).reset_index(drop=True)

    all_persons = pd.unique(table[person_key])
    selected = set(first[person_key])
    empty = [p for p in all_persons if p not in selected]
    if empty:
        if on_empty == 'raise':
            raise EmptyQualifyingGroup(sorted(empty))
        if verbose:
            print(f"  ⚠️  {len(empty):,} person(s) without a qualifying visit dropped")

    if verbose:
        n_before = int((~in_window).sum())
        print(f"  ✓ {n_before:,} visit(s) outside the collection window")
        print(f"  ✓ {len(first):,} persons with a first qualifying visit")

    return first


def left_join_many(base, joins, verbose=False):
    """
    Sequentially left-join auxiliary tables onto `base`

    Parameters
    ----------
    base : DataFrame
        Cohort table; its row count, order and index are preserved
    joins : list of (DataFrame, str)
        Auxiliary tables with the key to join on. Aux rows with a missing
        key are ignored. Non-key column names that already exist in the
        result get the suffix ``_<position>`` (1-based).

    Returns
    -------
    DataFrame
        `base` enriched with the auxiliary columns; unmatched rows get
        missing values.
    """
    result = base
    for position, (aux, key) in enumerate(joins, 1):
        check_columns(result, [key])
        check_columns(aux, [key])

        aux = aux[aux[key].notna()]
        duplicated = aux[key].duplicated(keep=False)
        if duplicated.any():
            raise AmbiguousJoin(key, pd.unique(aux.loc[duplicated, key]), position)

        merged = result.merge(aux, on=key, how='left', suffixes=('', f'_{position}'))
        merged.index = result.index
        result = merged

        if verbose:
            matched = int(result[key].isin(aux[key]).sum())
            print(f"  ✓ join {position} on {key!r}: {matched:,}/{len(result):,} rows matched, "
                  f"+{aux.shape[1] - 1} columns")

    if result is base:
        result = base.copy()
    return result


def flip_binary(series):
    """Recode 0 ↔ 1, keeping missing values missing"""
    observed = series.dropna()
    if not observed.isin([0, 1]).all():
        bad = pd.unique(observed[~observed.isin([0, 1])])
        raise ValueError(f"{series.name!r} is not binary: unexpected values {list(bad)[:5]}")
    return 1 - series


def reverse_scored(low, high):
    """Return a recode that reverses a `low`..`high` Likert item"""

    def _reverse(series):
        return (low + high) - series

    return _reverse


def derive_total_score(table, component_cols, transform_per_col=None, total_col='total'):
    """
    Sum scale items row-wise into a total score

    Optional per-column recodes (e.g. `flip_binary`) are applied to the
    components first. Any missing component makes the total missing; there
    are no partial sums. The components themselves are left untouched.
    """
    component_cols = list(component_cols)
    if not component_cols:
        raise ValueError("derive_total_score needs at least one component column")
    check_columns(table, component_cols)

    components = table[component_cols].copy()
    for col, transform in (transform_per_col or {}).items():
        if col not in component_cols:
            raise ColumnNotFound(col, component_cols)
        components[col] = transform(components[col])

    total = components.apply(pd.to_numeric).sum(axis=1, skipna=False)
    return table.assign(**{total_col: total})
