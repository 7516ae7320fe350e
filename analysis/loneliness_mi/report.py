"""
Missing Data Report
===================

Renders the pipeline outputs into a Markdown document: cohort
description, a histogram of the UCLA total score, and the pattern and
summary tables for every measure group. Only consumes tables and the
saved plot; computes nothing itself.
"""

import os

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402

from loneliness_mi.missingness import PERCENT_DECIMALS  # noqa: E402


def plot_histogram(series, path, title=None, xlabel=None, bins=None):
    """Histogram of the observed values of `series`, saved as PNG"""
    values = pd.to_numeric(series, errors='coerce').dropna()
    if bins is None:
        # One bar per integer score for short scales
        if len(values) and (values % 1 == 0).all() and values.nunique() <= 30:
            bins = [v - 0.5 for v in range(int(values.min()), int(values.max()) + 2)]
        else:
            bins = 20

    os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
    fig, ax = plt.subplots(figsize=(8, 5))
    ax.hist(values, bins=bins, color='steelblue', edgecolor='white')
    ax.set_xlabel(xlabel or str(series.name))
    ax.set_ylabel('Participants')
    ax.set_title(title or f"Distribution of {series.name} (n={len(values):,})")
    fig.savefig(path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    return path


def _pattern_display(pattern):
    display = pattern.copy()
    flag_cols = [c for c in display.columns if c not in ('n_missing_vars', 'count', 'percent')]
    for col in flag_cols:
        display[col] = display[col].map({True: 'missing', False: 'observed'})
    return display


def _markdown_table(frame):
    """Pipe table (tabulate through pandas), percentages at report precision"""
    return frame.to_markdown(index=False, floatfmt=f".{PERCENT_DECIMALS}f")


def render_report(
    cohort,
    group_results,
    histogram_path=None,
    title='UCLA Loneliness Cohort: Missing Data Report',
    notes=None,
    score_col=None
):
    """
    Build the report text

    Parameters
    ----------
    cohort : DataFrame
        Assembled cohort (one row per person)
    group_results : dict
        Output of missingness.missing_by_group
    histogram_path : str or None
        Image embedded by relative path
    notes : list of str
        Additional descriptive paragraphs
    score_col : str or None
        Score described in the opening section

    Returns
    -------
    str
        Markdown document
    """
    lines = [f"# {title}", ""]
    lines.append(f"The assembled cohort has {len(cohort):,} participants and "
                 f"{len(cohort.columns)} variables (first qualifying visit per person).")
    if score_col is not None and score_col in cohort.columns:
        scores = pd.to_numeric(cohort[score_col], errors='coerce')
        observed = scores.dropna()
        if len(observed):
            lines.append(f"`{score_col}` is observed for {len(observed):,} participants "
                         f"(mean {observed.mean():.2f}, SD {observed.std():.2f}, "
                         f"range {observed.min():g}-{observed.max():g}).")
    lines.append("")

    for note in notes or []:
        lines.extend([note, ""])

    if histogram_path is not None:
        lines.extend(["## Score distribution", "", f"![Histogram]({histogram_path})", ""])

    lines.extend(["## Missing data by measure group", ""])
    for name, (pattern, summary) in group_results.items():
        lines.extend([f"### {name}", ""])
        lines.append(f"{summary.n_complete:,} of {summary.n_rows:,} participants "
                     f"({summary.percent_complete}%) have every item observed; "
                     f"{len(pattern)} distinct missingness pattern(s).")
        lines.extend(["", "**Summary**", "", _markdown_table(summary.to_frame()), ""])
        lines.extend(["**Patterns**", "", _markdown_table(_pattern_display(pattern)), ""])

    return '\n'.join(lines)


def write_report(path, text):
    os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(text)
    return path
