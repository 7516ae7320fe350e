"""
Named Column Groups
===================

Every column contract in the pipeline is spelled out here once and passed
to the stage functions as parameters. Nothing selects columns by prefix or
suffix matching.
"""

# Identity
VISIT_KEY = 'visit_id'
PERSON_KEY = 'person_id'
TIME_KEY = 'visit_date'

ID_COLS = [VISIT_KEY, PERSON_KEY, TIME_KEY]

# UCLA 3-Item Loneliness Scale (1 = hardly ever, 2 = some of the time, 3 = often)
UCLA_ITEMS = [
    'ucla_companionship',  # How often do you feel that you lack companionship?
    'ucla_left_out',       # How often do you feel left out?
    'ucla_isolated',       # How often do you feel isolated from others?
]
UCLA_TOTAL = 'ucla_total'

# General health (primary cohort table)
GENERAL_HEALTH = [
    'self_rated_health',
    'bmi',
    'chronic_conditions',
    'sleep_hours',
]

# Sociodemographic
SOCIODEMOGRAPHIC = [
    'age',
    'sex',
    'education',
    'marital_status',
    'living_alone',
    'income_band',
]

# Self-report questionnaires
PHQ2_ITEMS = ['phq_interest', 'phq_depressed']
PHQ2_TOTAL = 'phq2_total'
GAD2_ITEMS = ['gad_nervous', 'gad_worry']
GAD2_TOTAL = 'gad2_total'

# Social isolation index: items are coded 1 = yes and flipped so 1 = isolated
SOCIAL_ISOLATION_ITEMS = [
    'lives_with_partner',
    'monthly_contact',
    'group_participation',
]
SOCIAL_ISOLATION_TOTAL = 'social_isolation_index'

SELF_REPORT = PHQ2_ITEMS + GAD2_ITEMS + SOCIAL_ISOLATION_ITEMS

# Administrative investigation (registry counts, previous 12 months)
ADMINISTRATIVE = [
    'gp_visits_12m',
    'hospital_admissions_12m',
    'prescriptions_12m',
]

# Panel assessment (physical and cognitive tests)
PANEL_ASSESSMENT = [
    'grip_strength',
    'gait_speed',
    'cognitive_score',
]

DERIVED_TOTALS = [UCLA_TOTAL, PHQ2_TOTAL, GAD2_TOTAL, SOCIAL_ISOLATION_TOTAL]

# Measure groups reported in the missing-data section of the report
MEASURE_GROUPS = {
    'UCLA loneliness': UCLA_ITEMS,
    'General health': GENERAL_HEALTH,
    'Sociodemographic': SOCIODEMOGRAPHIC,
    'Depression (PHQ-2)': PHQ2_ITEMS,
    'Anxiety (GAD-2)': GAD2_ITEMS,
    'Social isolation': SOCIAL_ISOLATION_ITEMS,
    'Administrative': ADMINISTRATIVE,
    'Panel assessment': PANEL_ASSESSMENT,
    'Derived totals': DERIVED_TOTALS,
}

# Predictor table handed to the imputer
PREDICTORS = (
    [UCLA_TOTAL]
    + GENERAL_HEALTH
    + SOCIODEMOGRAPHIC
    + [PHQ2_TOTAL, GAD2_TOTAL, SOCIAL_ISOLATION_TOTAL]
    + ADMINISTRATIVE
    + PANEL_ASSESSMENT
)

# Excluded before imputation:
# - income_band: >40% missing in the source survey
# - prescriptions_12m: near-collinear with gp_visits_12m, stalls the chained equations
IMPUTATION_DROP = ['income_band', 'prescriptions_12m']

# Categorical predictors (unordered: one-hot + multinomial logistic draw;
# ordered Categorical dtypes such as self_rated_health: category codes)
CATEGORICAL = ['self_rated_health', 'sex', 'education', 'marital_status', 'living_alone', 'income_band']
