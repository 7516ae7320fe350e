#!/usr/bin/env python3
"""
Stage 2: Multiple Imputation (MICE)
- Predictor table: UCLA total + covariates, drop list applied
  (income_band: high missingness, prescriptions_12m: collinear)
- Method: IterativeImputer, Bayesian regression with posterior draws,
  ordered categories imputed as codes, unordered ones by multinomial
  logistic draws
- Output: predictors_before_mice.pkl, imputed_datasets.pkl,
  imputation_metadata.txt
"""

import os
import sys
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from loneliness_mi import config
from loneliness_mi.pipeline import build_predictors, run_imputation
from loneliness_mi.tables import load_cohort, save_ensemble, save_predictors


def main():
    print("=" * 60)
    print("Multiple Imputation Pipeline")
    print("=" * 60)

    cohort, _, _ = load_cohort(os.path.join(config.OUTPUT_DIR, config.COHORT_FILE))
    print(f"✓ Cohort: {len(cohort):,} persons")

    print(f"\n{'='*60}")
    print("Step 1: Predictor selection")
    print(f"{'='*60}")
    predictors = build_predictors(cohort, verbose=True)

    print(f"\n{'='*60}")
    print("Step 2: Save predictors (before MICE)")
    print(f"{'='*60}")
    save_predictors(predictors, os.path.join(config.OUTPUT_DIR, config.PREDICTORS_FILE), verbose=True)

    print(f"\n{'='*60}")
    print("Step 3: Multiple Imputation (MICE)")
    print(f"{'='*60}")
    ensemble = run_imputation(predictors, verbose=True)

    print(f"\n{'='*60}")
    print("Step 4: Save imputed datasets")
    print(f"{'='*60}")
    save_ensemble(ensemble, config.OUTPUT_DIR, verbose=True)

    print("\n" + "=" * 60)
    print("✅ Multiple Imputation complete")
    print("=" * 60)
    print(f"  - {ensemble.m} imputed datasets, seed {ensemble.seed}")
    print(f"  - Output: {config.OUTPUT_DIR}/")
    print(f"\nNext: python analysis/03_pooled_regression.py")


if __name__ == "__main__":
    main()
