"""
Pooled Analysis over an Imputation Ensemble
===========================================

Fits the same OLS model on every completed dataset and combines the
results with Rubin's rules:

    Q_bar = mean(Q_m)
    W     = mean(U_m)                 (within-imputation variance)
    B     = var(Q_m, ddof=1)          (between-imputation variance)
    T     = W + (1 + 1/M) * B
    df    = (M - 1) * (1 + W / ((1 + 1/M) * B))^2
"""

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy.stats import t as t_dist

from loneliness_mi.errors import check_columns


def _design_matrix(df, predictors):
    X = pd.get_dummies(df[predictors], drop_first=True, dtype=float).astype(float)
    return sm.add_constant(X, has_constant='add')


def fit_per_imputation(ensemble, outcome, predictors):
    """
    OLS of `outcome` on `predictors` in each completed dataset

    Categorical predictors are dummy coded (first level dropped).

    Returns
    -------
    estimates : DataFrame, shape (m, k)
    variances : DataFrame, shape (m, k)
        Squared standard errors
    """
    predictors = list(predictors)
    estimates = []
    variances = []

    for df in ensemble:
        check_columns(df, [outcome] + predictors)
        X = _design_matrix(df, predictors)
        y = pd.to_numeric(df[outcome]).astype(float)
        fit = sm.OLS(y, X).fit()
        estimates.append(fit.params)
        variances.append(fit.bse ** 2)

    return pd.DataFrame(estimates).reset_index(drop=True), pd.DataFrame(variances).reset_index(drop=True)


def pool_rubin(estimates, variances, alpha=0.05):
    """
    Combine per-imputation estimates with Rubin's rules

    Parameters
    ----------
    estimates, variances : DataFrame, shape (m, k)
        One row per imputation, one column per term
    alpha : float
        1 - confidence level

    Returns
    -------
    DataFrame
        Indexed by term: estimate, within, between, total_variance, se, df,
        ci_lower, ci_upper, p_value
    """
    estimates = pd.DataFrame(estimates)
    variances = pd.DataFrame(variances)
    m = len(estimates)
    if m == 0:
        raise ValueError("No estimates to pool")

    q_bar = estimates.mean(axis=0)
    within = variances.mean(axis=0)
    between = estimates.var(axis=0, ddof=1) if m > 1 else q_bar * 0.0
    total = within + (1 + 1 / m) * between
    se = np.sqrt(total)

    with np.errstate(divide='ignore', invalid='ignore'):
        r = within / ((1 + 1 / m) * between)
        dof = (m - 1) * (1 + r) ** 2
    dof = dof.where(between > 0, np.inf)

    crit = t_dist.ppf(1 - alpha / 2, dof)
    t_stat = q_bar / se
    p_value = 2 * t_dist.sf(np.abs(t_stat), dof)

    return pd.DataFrame({
        'estimate': q_bar,
        'within': within,
        'between': between,
        'total_variance': total,
        'se': se,
        'df': dof,
        'ci_lower': q_bar - crit * se,
        'ci_upper': q_bar + crit * se,
        'p_value': p_value,
    })


def pooled_regression(ensemble, outcome, predictors, alpha=0.05):
    """Fit per imputation, then pool"""
    estimates, variances = fit_per_imputation(ensemble, outcome, predictors)
    return pool_rubin(estimates, variances, alpha=alpha)
