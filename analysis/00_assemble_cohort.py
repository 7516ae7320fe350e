#!/usr/bin/env python3
"""
Stage 0: Cohort Assembly
- Sources: general health (UCLA items), participant identity,
  sociodemographic, self-report, administrative, panel assessment
- One row per person: first visit on/after the UCLA rollout with all
  three UCLA items answered
- Output: cohort.pkl (cohort + collection start + dropped persons)

Usage:
    python analysis/00_assemble_cohort.py           # raw data/ snapshots
    python analysis/00_assemble_cohort.py --demo    # synthetic cohort
"""

import os
import sys
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from loneliness_mi import columns as C
from loneliness_mi import config
from loneliness_mi.pipeline import assemble_cohort, load_inputs
from loneliness_mi.tables import save_cohort


def main():
    demo = '--demo' in sys.argv[1:]

    print("=" * 60)
    print("Cohort Assembly" + (" (synthetic demo)" if demo else ""))
    print("=" * 60)

    print(f"\n{'='*60}")
    print("Step 1: Load sources")
    print(f"{'='*60}")
    sources, _ = load_inputs(demo=demo, verbose=True)

    print(f"\n{'='*60}")
    print("Step 2: First qualifying visit per person + auxiliary joins")
    print(f"{'='*60}")
    cohort, start, dropped_persons = assemble_cohort(sources, verbose=True)

    print(f"\nCohort: {len(cohort):,} persons, {len(cohort.columns)} columns")
    if dropped_persons:
        print(f"⚠️  {len(dropped_persons):,} person(s) without a qualifying visit dropped")
    print(f"{C.UCLA_TOTAL}: mean={cohort[C.UCLA_TOTAL].mean():.2f}, "
          f"observed={cohort[C.UCLA_TOTAL].notna().sum():,}")

    print(f"\n{'='*60}")
    print("Step 3: Save")
    print(f"{'='*60}")
    path = save_cohort(cohort, os.path.join(config.OUTPUT_DIR, config.COHORT_FILE), start,
                       dropped_persons, verbose=True)
    print(f"✅ Saved: {path}")
    print(f"\nNext: python analysis/01_missing_data_report.py")


if __name__ == "__main__":
    main()
