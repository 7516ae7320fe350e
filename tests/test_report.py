import os

import numpy as np
import pandas as pd

from loneliness_mi.missingness import missing_by_group
from loneliness_mi.report import plot_histogram, render_report, write_report


def table_rows(text):
    """Cells of every pipe-table line, stripped of padding"""
    return [[cell.strip() for cell in line.strip().strip("|").split("|")]
            for line in text.splitlines() if line.startswith("|")]


def test_plot_histogram(tmp_path):
    scores = pd.Series([3, 4, 4, 5, 9, np.nan], name='ucla_total')
    path = plot_histogram(scores, str(tmp_path / 'plots' / 'hist.png'))
    assert os.path.exists(path)
    assert os.path.getsize(path) > 0


def test_render_report(tmp_path, five_rows):
    results = missing_by_group(five_rows, {'Scale': ['A', 'B', 'C']}, labels={'A': 'Item A'})
    text = render_report(five_rows, results, histogram_path='hist.png',
                         notes=['Visits before the rollout are excluded.'], score_col='C')

    assert text.startswith('# ')
    assert '5 participants' in text
    assert '![Histogram](hist.png)' in text
    assert '### Scale' in text
    assert '2 of 5 participants (40.0%)' in text
    rows = table_rows(text)
    assert ["Variable", "N", "Percent"] in rows
    assert ["Complete cases", "2", "40.00"] in rows
    assert ["Item A", "2", "40.00"] in rows
    assert ["Item A", "B", "C", "n_missing_vars", "count", "percent"] in rows
    assert ["observed", "observed", "observed", "0", "2", "40.00"] in rows
    assert ["missing", "missing", "missing", "3", "1", "20.00"] in rows
    assert 'Visits before the rollout are excluded.' in text

    path = write_report(str(tmp_path / 'report.md'), text)
    with open(path, encoding='utf-8') as f:
        assert f.read() == text
