"""
Pipeline Settings
=================
"""

import os

DATA_DIR = "raw data"
OUTPUT_DIR = os.path.join("analysis", "processed_data")

# Logical dataset -> snapshot file inside DATA_DIR
SOURCE_FILES = {
    'general_health': 'general_health.csv',
    'identity': 'participant_identity.csv',
    'sociodemographic': 'sociodemographic.csv',
    'self_report': 'self_report.csv',
    'administrative': 'administrative_investigation.csv',
    'panel': 'panel_assessment.csv',
}
LABELS_FILE = 'variable_labels.csv'

# Auxiliary tables joined onto the cohort, in join order
AUXILIARY_SOURCES = ['sociodemographic', 'self_report', 'administrative', 'panel']

# Artifacts inside OUTPUT_DIR
COHORT_FILE = 'cohort.pkl'
PREDICTORS_FILE = 'predictors_before_mice.pkl'
REPORT_FILE = 'missing_data_report.md'
HISTOGRAM_FILE = 'ucla_total_histogram.png'
POOLED_FILE = 'pooled_regression.csv'

# Multiple imputation
N_IMPUTATIONS = 10
RANDOM_SEED = 42
MAX_ITER = 10
N_JOBS = -1

# Predictors missing in more than this share of the cohort are not imputed
MAX_MISSING_PCT = 40.0
