"""
Missing Data Patterns and Summaries
===================================

Two pure functions of (table, columns):

- missing_pattern: every distinct observed/missing combination across the
  columns with its count, most frequent first
- missing_summary: per-column missing counts and percentages plus the
  complete-case count

`labels` only renames columns for display. Percentages are relative to
the total number of rows and rounded to PERCENT_DECIMALS in both outputs.
"""

from collections import Counter
from collections.abc import Mapping

import pandas as pd

from loneliness_mi.errors import check_columns

PERCENT_DECIMALS = 2


def _percent(count, total):
    if total == 0:
        return 0.0
    return round(100.0 * count / total, PERCENT_DECIMALS)


def _prepare(table, columns, labels):
    columns = list(columns)
    if not columns:
        raise ValueError("At least one column is required")
    if len(set(columns)) != len(columns):
        raise ValueError(f"Duplicated column names in {columns}")
    check_columns(table, columns)

    if labels is None:
        names = list(columns)
    elif isinstance(labels, Mapping):
        names = [labels.get(col, col) for col in columns]
    else:
        names = list(labels)
        if len(names) != len(columns):
            raise ValueError(f"Got {len(names)} labels for {len(columns)} columns")

    if len(set(names)) != len(names):
        raise ValueError(f"Display names are not unique: {names}")
    return columns, names


def missing_pattern(table, columns, labels=None):
    """
    Enumerate missingness patterns across `columns`

    Parameters
    ----------
    table : DataFrame
    columns : list of str
        Columns to inspect, in display order
    labels : None, mapping or sequence
        Display names for the pattern columns

    Returns
    -------
    DataFrame
        One row per distinct pattern: a boolean column per selected column
        (True = missing), `n_missing_vars`, `count` and `percent`. Sorted by
        descending count; ties are ordered by the pattern itself with
        observed before missing, so the all-observed pattern leads its tie.
    """
    columns, names = _prepare(table, columns, labels)
    n_rows = len(table)

    flags = table[columns].isna().to_numpy()
    counts = Counter(tuple(bool(v) for v in row) for row in flags)
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))

    records = []
    for pattern, count in ordered:
        records.append({
            **dict(zip(names, pattern)),
            'n_missing_vars': sum(pattern),
            'count': count,
            'percent': _percent(count, n_rows),
        })

    result = pd.DataFrame(records, columns=names + ['n_missing_vars', 'count', 'percent'])
    return result.astype({**{name: bool for name in names},
                          'n_missing_vars': int, 'count': int, 'percent': float})


class MissingSummary:
    """Per-column missing counts plus complete-case statistics"""

    def __init__(self, per_column, n_rows, n_complete):
        self.per_column = per_column
        self.n_rows = n_rows
        self.n_complete = n_complete
        self.percent_complete = _percent(n_complete, n_rows)

    def to_frame(self):
        """Display table: one row per column, then a 'Complete cases' row"""
        frame = pd.DataFrame({
            'Variable': self.per_column['label'],
            'N': self.per_column['n_missing'],
            'Percent': self.per_column['percent_missing'],
        })
        complete = pd.DataFrame([{
            'Variable': 'Complete cases',
            'N': self.n_complete,
            'Percent': self.percent_complete,
        }])
        return pd.concat([frame, complete], ignore_index=True)

    def __repr__(self):
        return (f"MissingSummary(n_rows={self.n_rows}, n_complete={self.n_complete}, "
                f"percent_complete={self.percent_complete})")


def missing_summary(table, columns, labels=None):
    """
    Summarize missing values in `columns`

    Returns
    -------
    MissingSummary
        `per_column` has `variable`, `label`, `n_missing`, `percent_missing`
        in the order the columns were given; `n_complete` counts rows with
        all of `columns` observed.
    """
    columns, names = _prepare(table, columns, labels)
    n_rows = len(table)

    missing = table[columns].isna()
    n_missing = [int(missing[col].sum()) for col in columns]
    per_column = pd.DataFrame({
        'variable': columns,
        'label': names,
        'n_missing': n_missing,
        'percent_missing': [_percent(n, n_rows) for n in n_missing],
    })
    per_column = per_column.astype({'n_missing': int, 'percent_missing': float})

    n_complete = int((~missing.any(axis=1)).sum())
    return MissingSummary(per_column, n_rows, n_complete)


def missing_by_group(table, groups, labels=None):
    """
    Pattern and summary tables for every measure group

    Parameters
    ----------
    groups : dict
        Group name -> list of columns (see columns.MEASURE_GROUPS)

    Returns
    -------
    dict
        Group name -> (pattern DataFrame, MissingSummary)
    """
    results = {}
    for name, group_cols in groups.items():
        results[name] = (
            missing_pattern(table, group_cols, labels),
            missing_summary(table, group_cols, labels),
        )
    return results
