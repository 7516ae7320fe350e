#!/usr/bin/env python3
"""
Stage 1: Missing Data Report
- Pattern and summary tables for every measure group
- Histogram of the UCLA total score
- Collection start is the one stage 0 derived (stored in cohort.pkl)
- Output: missing_data_report.md + ucla_total_histogram.png
"""

import os
import sys
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from loneliness_mi import config
from loneliness_mi.pipeline import analyze_missingness, load_variable_labels, write_missing_data_report
from loneliness_mi.tables import load_cohort


def main():
    demo = '--demo' in sys.argv[1:]

    print("=" * 60)
    print("Missing Data Report")
    print("=" * 60)

    cohort, start, dropped_persons = load_cohort(os.path.join(config.OUTPUT_DIR, config.COHORT_FILE))
    print(f"✓ Cohort: {len(cohort):,} persons (collection start {start})")
    labels = load_variable_labels(demo=demo)

    print(f"\n{'='*60}")
    print("Step 1: Patterns and summaries by measure group")
    print(f"{'='*60}")
    group_results = analyze_missingness(cohort, labels)
    for name, (pattern, summary) in group_results.items():
        print(f"\n[{name}] {len(pattern)} pattern(s), "
              f"complete cases {summary.n_complete:,} ({summary.percent_complete}%)")
        print(summary.to_frame().to_string(index=False))

    print(f"\n{'='*60}")
    print("Step 2: Report")
    print(f"{'='*60}")
    write_missing_data_report(cohort, group_results, config.OUTPUT_DIR, start=start,
                              dropped_persons=dropped_persons, verbose=True)
    print(f"\nNext: python analysis/02_imputation.py")


if __name__ == "__main__":
    main()
