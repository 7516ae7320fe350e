#!/usr/bin/env python3
"""
Stage 3: Pooled Regression
- OLS of the UCLA total on covariates in every imputed dataset
- Rubin's rules for pooled estimates and 95% CIs
- Output: pooled_regression.csv
"""

import os
import sys
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from loneliness_mi import columns as C
from loneliness_mi import config
from loneliness_mi.pooling import pooled_regression
from loneliness_mi.tables import ENSEMBLE_FILE, load_ensemble

COVARIATES = [
    'age', 'sex', 'living_alone', 'self_rated_health',
    C.PHQ2_TOTAL, C.GAD2_TOTAL, C.SOCIAL_ISOLATION_TOTAL,
]


def main():
    print("=" * 60)
    print("Pooled Regression (Rubin's rules)")
    print("=" * 60)

    ensemble = load_ensemble(os.path.join(config.OUTPUT_DIR, ENSEMBLE_FILE))
    print(f"✓ {ensemble.m} imputed datasets, {len(ensemble[0]):,} rows each")

    covariates = [c for c in COVARIATES if c in ensemble[0].columns]
    pooled = pooled_regression(ensemble, C.UCLA_TOTAL, covariates)

    print(f"\nOutcome: {C.UCLA_TOTAL}")
    print(pooled[['estimate', 'se', 'ci_lower', 'ci_upper', 'p_value']].round(4).to_string())

    path = os.path.join(config.OUTPUT_DIR, config.POOLED_FILE)
    pooled.to_csv(path)
    print(f"\n✓ Saved: {path}")


if __name__ == "__main__":
    main()
