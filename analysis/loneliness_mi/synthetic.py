"""
Synthetic Cohort Generator
==========================

Generates the six visit-keyed source tables and the variable-label table
with:

- repeated visits per person (first visit not always qualifying)
- a UCLA instrument rollout date: visits before it have no UCLA items
- MAR item missingness driven by age and latent loneliness
- a high-missingness income variable and a near-collinear prescription
  count (both on the imputation drop list)
- self-report and panel tables covering only part of the visits

Used by the tests and by the scripts' --demo mode.
"""

import numpy as np
import pandas as pd
from scipy.special import expit

from loneliness_mi import columns as C

VARIABLE_LABELS = {
    'ucla_companionship': 'Lack of companionship (UCLA)',
    'ucla_left_out': 'Feels left out (UCLA)',
    'ucla_isolated': 'Feels isolated (UCLA)',
    'ucla_total': 'UCLA 3-item loneliness total',
    'self_rated_health': 'Self-rated health',
    'bmi': 'Body mass index',
    'chronic_conditions': 'Number of chronic conditions',
    'sleep_hours': 'Sleep duration (hours)',
    'age': 'Age (years)',
    'sex': 'Sex',
    'education': 'Highest education',
    'marital_status': 'Marital status',
    'living_alone': 'Lives alone',
    'income_band': 'Household income band',
    'phq_interest': 'Little interest or pleasure (PHQ-2)',
    'phq_depressed': 'Feeling down or depressed (PHQ-2)',
    'phq2_total': 'PHQ-2 total',
    'gad_nervous': 'Feeling nervous or anxious (GAD-2)',
    'gad_worry': 'Unable to stop worrying (GAD-2)',
    'gad2_total': 'GAD-2 total',
    'lives_with_partner': 'Lives with partner',
    'monthly_contact': 'Monthly contact with friends or family',
    'group_participation': 'Takes part in group activities',
    'social_isolation_index': 'Social isolation index',
    'gp_visits_12m': 'GP visits, previous 12 months',
    'hospital_admissions_12m': 'Hospital admissions, previous 12 months',
    'prescriptions_12m': 'Prescriptions, previous 12 months',
    'grip_strength': 'Grip strength (kg)',
    'gait_speed': 'Gait speed (m/s)',
    'cognitive_score': 'Cognitive screening score',
}


class CohortDGP:
    """Data Generating Process for the loneliness cohort sources"""

    def __init__(
        self,
        n_persons=500,
        max_visits=4,
        missing_rate=0.15,
        study_start='2018-01-01',
        rollout_date='2019-01-01',
        random_state=None
    ):
        """
        Parameters
        ----------
        n_persons : int
            Number of individuals
        max_visits : int
            Each person has 1..max_visits visits
        missing_rate : float
            Baseline item nonresponse probability
        study_start : str
            Date of the first possible visit
        rollout_date : str
            Date the UCLA items were added to the questionnaire
        random_state : int or None
            Random seed for reproducibility
        """
        self.n_persons = n_persons
        self.max_visits = max_visits
        self.missing_rate = missing_rate
        self.study_start = pd.Timestamp(study_start)
        self.rollout_date = pd.Timestamp(rollout_date)
        self.random_state = random_state

    def generate(self, seed=None):
        """
        Generate one set of source tables

        Returns
        -------
        sources : dict
            'general_health', 'identity', 'sociodemographic', 'self_report',
            'administrative', 'panel' -> DataFrame keyed by visit_id
        labels : DataFrame
            Two columns: variable, label
        """
        if seed is None:
            seed = self.random_state
        rng = np.random.RandomState(seed)

        persons = self._generate_persons(rng)
        visits = self._generate_visits(persons, rng)

        sources = {
            'general_health': self._general_health(visits, rng),
            'identity': visits[[C.VISIT_KEY, C.PERSON_KEY]].copy(),
            'sociodemographic': self._sociodemographic(visits, rng),
            'self_report': self._self_report(visits, rng),
            'administrative': self._administrative(visits, rng),
            'panel': self._panel(visits, rng),
        }
        labels = pd.DataFrame({
            'variable': list(VARIABLE_LABELS),
            'label': list(VARIABLE_LABELS.values()),
        })
        return sources, labels

    def _generate_persons(self, rng):
        n = self.n_persons
        return pd.DataFrame({
            C.PERSON_KEY: [f"P{i:05d}" for i in range(n)],
            'age0': rng.uniform(50, 90, size=n).round(0),
            'sex': rng.choice(['female', 'male'], size=n, p=[0.55, 0.45]),
            'education': rng.choice(['primary', 'secondary', 'tertiary'], size=n, p=[0.3, 0.45, 0.25]),
            'loneliness': rng.normal(0, 1, size=n),
        })

    def _generate_visits(self, persons, rng):
        span_days = (self.rollout_date - self.study_start).days * 3
        rows = []
        for _, person in persons.iterrows():
            n_visits = rng.randint(1, self.max_visits + 1)
            days = np.sort(rng.randint(0, span_days, size=n_visits))
            for day in days:
                rows.append({
                    C.PERSON_KEY: person[C.PERSON_KEY],
                    C.TIME_KEY: self.study_start + pd.Timedelta(days=int(day)),
                    'age': person['age0'] + day / 365.25,
                    'sex': person['sex'],
                    'education': person['education'],
                    'loneliness': person['loneliness'] + rng.normal(0, 0.3),
                })
        visits = pd.DataFrame(rows)
        # Visit ids are issued in calendar order across the whole study
        visits = visits.sort_values(C.TIME_KEY, kind='mergesort').reset_index(drop=True)
        visits[C.VISIT_KEY] = [f"V{i:06d}" for i in range(len(visits))]
        return visits

    def _mask(self, values, prob, rng):
        """Set entries to NaN with probability `prob` (scalar or per-row)"""
        values = np.asarray(values, dtype=float).copy()
        hit = rng.uniform(size=len(values)) < prob
        values[hit] = np.nan
        return values

    def _likert(self, latent, rng, levels):
        cuts = np.linspace(-1, 1, levels - 1)
        noisy = latent + rng.normal(0, 0.6, size=len(latent))
        return 1 + np.searchsorted(cuts, noisy).astype(float)

    def _general_health(self, visits, rng):
        n = len(visits)
        lonely = visits['loneliness'].to_numpy()
        age_std = (visits['age'].to_numpy() - 70) / 10

        # MAR: older and lonelier respondents skip items more often
        p_miss = expit(np.log(self.missing_rate / (1 - self.missing_rate)) + 0.4 * age_std + 0.3 * lonely)
        before_rollout = (visits[C.TIME_KEY] < self.rollout_date).to_numpy()

        df = pd.DataFrame({C.VISIT_KEY: visits[C.VISIT_KEY], C.TIME_KEY: visits[C.TIME_KEY]})
        for item in C.UCLA_ITEMS:
            values = self._mask(self._likert(lonely, rng, 3), p_miss, rng)
            values[before_rollout] = np.nan
            df[item] = values

        health = self._mask(self._likert(-0.5 * age_std + rng.normal(0, 1, n), rng, 5), self.missing_rate / 2, rng)
        df['self_rated_health'] = pd.Categorical(health, categories=[1.0, 2.0, 3.0, 4.0, 5.0], ordered=True)
        df['bmi'] = self._mask(rng.normal(27, 4, size=n).round(1), self.missing_rate, rng)
        df['chronic_conditions'] = self._mask(rng.poisson(np.exp(0.3 + 0.3 * age_std)), self.missing_rate / 2, rng)
        df['sleep_hours'] = self._mask((7 - 0.4 * lonely + rng.normal(0, 1, n)).round(1), p_miss, rng)
        return df

    def _sociodemographic(self, visits, rng):
        n = len(visits)
        lonely = visits['loneliness'].to_numpy()
        living_alone = (rng.uniform(size=n) < expit(-0.8 + 0.8 * lonely)).astype(float)
        marital = np.where(
            living_alone == 1,
            rng.choice(['widowed', 'divorced', 'single'], size=n),
            rng.choice(['married', 'cohabiting'], size=n, p=[0.8, 0.2]),
        ).astype(object)
        marital[rng.uniform(size=n) < self.missing_rate / 3] = None

        income = rng.choice(['low', 'middle', 'high'], size=n).astype(object)
        income[rng.uniform(size=n) < 0.45] = None

        return pd.DataFrame({
            C.VISIT_KEY: visits[C.VISIT_KEY],
            'age': visits['age'].round(1),
            'sex': pd.Categorical(visits['sex']),
            'education': pd.Categorical(visits['education'], categories=['primary', 'secondary', 'tertiary']),
            'marital_status': marital,
            'living_alone': self._mask(living_alone, self.missing_rate / 3, rng),
            'income_band': income,
        })

    def _self_report(self, visits, rng):
        # Roughly 85% of visits returned the questionnaire booklet
        returned = visits[rng.uniform(size=len(visits)) < 0.85]
        n = len(returned)
        lonely = returned['loneliness'].to_numpy()

        df = pd.DataFrame({C.VISIT_KEY: returned[C.VISIT_KEY].to_numpy()})
        for item in C.PHQ2_ITEMS + C.GAD2_ITEMS:
            score = np.clip(np.round(1 + 0.6 * lonely + rng.normal(0, 0.8, n)), 0, 3)
            df[item] = self._mask(score, self.missing_rate, rng)
        for item in C.SOCIAL_ISOLATION_ITEMS:
            yes = (rng.uniform(size=n) < expit(0.8 - 0.9 * lonely)).astype(float)
            df[item] = self._mask(yes, self.missing_rate, rng)
        return df

    def _administrative(self, visits, rng):
        n = len(visits)
        age_std = (visits['age'].to_numpy() - 70) / 10
        gp = rng.poisson(np.exp(1.2 + 0.3 * age_std))
        return pd.DataFrame({
            C.VISIT_KEY: visits[C.VISIT_KEY],
            'gp_visits_12m': gp.astype(float),
            'hospital_admissions_12m': rng.poisson(np.exp(-1.5 + 0.4 * age_std)).astype(float),
            'prescriptions_12m': (2 * gp + rng.poisson(1, size=n)).astype(float),
        })

    def _panel(self, visits, rng):
        # Panel assessments are scheduled for a random 75% of visits
        assessed = visits[rng.uniform(size=len(visits)) < 0.75]
        n = len(assessed)
        age_std = (assessed['age'].to_numpy() - 70) / 10
        return pd.DataFrame({
            C.VISIT_KEY: assessed[C.VISIT_KEY].to_numpy(),
            'grip_strength': self._mask((32 - 4 * age_std + rng.normal(0, 6, n)).round(1), self.missing_rate, rng),
            'gait_speed': self._mask((1.1 - 0.15 * age_std + rng.normal(0, 0.2, n)).round(2), self.missing_rate, rng),
            'cognitive_score': self._mask(np.clip(np.round(27 - 1.5 * age_std + rng.normal(0, 2, n)), 0, 30),
                                          self.missing_rate, rng),
        })
