"""
Multiple Imputation by Chained Equations
=========================================

Orchestrates scikit-learn's IterativeImputer (MICE) over the predictor
table:

- predictor policy: documented drop list + missingness threshold
- column typing: numeric columns are modeled by Bayesian linear
  regression with posterior draws; ordered categoricals as category codes
  snapped back to a valid category; unordered categoricals enter the
  chained loop as dummies and are drawn from a multinomial logistic model
- seeding: run i uses random_state = seed + i, so the ensemble does not
  depend on n_jobs or execution order
"""

import warnings
from abc import ABC, abstractmethod

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.base import clone
from sklearn.exceptions import ConvergenceWarning
from sklearn.experimental import enable_iterative_imputer  # noqa: F401
from sklearn.impute import IterativeImputer
from sklearn.linear_model import BayesianRidge, LogisticRegression
from sklearn.pipeline import make_pipeline
from sklearn.preprocessing import StandardScaler

from loneliness_mi.errors import ImputationNonconvergence, check_columns


def select_predictors(table, keep_cols, drop_cols=(), max_missing_pct=None, verbose=False):
    """
    Project the cohort to the predictor table handed to the imputer

    Parameters
    ----------
    table : DataFrame
    keep_cols : list of str
        Identifier and predictor columns, in output order
    drop_cols : list of str
        Documented exclusions (collinear or high-missingness variables)
    max_missing_pct : float or None
        Additionally drop any kept column missing in more than this
        percentage of rows

    Returns
    -------
    DataFrame
    """
    keep_cols = list(keep_cols)
    check_columns(table, keep_cols)

    drop = set(drop_cols)
    dropped = [c for c in keep_cols if c in drop]
    selected = [c for c in keep_cols if c not in drop]

    too_sparse = []
    if max_missing_pct is not None and len(table) > 0:
        pct_missing = table[selected].isna().mean() * 100
        too_sparse = [c for c in selected if pct_missing[c] > max_missing_pct]
        selected = [c for c in selected if c not in too_sparse]

    if verbose:
        print(f"  ✓ {len(selected)} columns kept")
        for col in dropped:
            print(f"  ✗ {col}: drop list")
        for col in too_sparse:
            print(f"  ✗ {col}: more than {max_missing_pct}% missing")

    return table[selected].copy()


class BaseImputer(ABC):
    """One completed copy of a numeric matrix per call"""

    name = 'base'

    @abstractmethod
    def fit_transform(self, X, random_state, max_iterations):
        """
        Parameters
        ----------
        X : ndarray, shape (n, p)
            Matrix with missing values (np.nan)
        random_state : int
            Seed for this run
        max_iterations : int
            Maximum number of chained-equation rounds

        Returns
        -------
        ndarray, shape (n, p)
            Completed matrix
        """
        pass


class ChainedEquationsImputer(BaseImputer):
    """
    MICE through sklearn's IterativeImputer

    With the default estimator (BayesianRidge) imputations are drawn from
    the posterior predictive distribution. A custom estimator (e.g.
    RandomForestRegressor) is used for point predictions instead.
    """

    name = 'mice'

    def __init__(self, estimator=None, initial_strategy='median', n_nearest_features=None, tol=1e-3):
        self.estimator = estimator
        self.initial_strategy = initial_strategy
        self.n_nearest_features = n_nearest_features
        self.tol = tol

    def _make_estimator(self, random_state):
        if self.estimator is None:
            return BayesianRidge()
        estimator = clone(self.estimator)
        if 'random_state' in estimator.get_params():
            estimator.set_params(random_state=random_state)
        return estimator

    def fit_transform(self, X, random_state, max_iterations):
        imputer = IterativeImputer(
            estimator=self._make_estimator(random_state),
            sample_posterior=self.estimator is None,
            max_iter=max_iterations,
            tol=self.tol,
            n_nearest_features=self.n_nearest_features,
            initial_strategy=self.initial_strategy,
            skip_complete=True,
            random_state=random_state,
        )
        with warnings.catch_warnings():
            warnings.simplefilter('ignore', category=ConvergenceWarning)
            return imputer.fit_transform(X)


class Ensemble:
    """M completed copies of the predictor table plus run metadata"""

    def __init__(self, datasets, seed, max_iterations, imputed_columns, method, passthrough=()):
        self.datasets = list(datasets)
        self.seed = seed
        self.max_iterations = max_iterations
        self.imputed_columns = list(imputed_columns)
        self.method = method
        self.passthrough = list(passthrough)

    @property
    def m(self):
        return len(self.datasets)

    def metadata(self):
        return {
            'm': self.m,
            'seed': self.seed,
            'max_iterations': self.max_iterations,
            'method': self.method,
            'imputed_columns': list(self.imputed_columns),
            'passthrough': list(self.passthrough),
            'n_rows': len(self.datasets[0]) if self.datasets else 0,
            'columns': list(self.datasets[0].columns) if self.datasets else [],
        }

    def __len__(self):
        return self.m

    def __iter__(self):
        return iter(self.datasets)

    def __getitem__(self, i):
        return self.datasets[i]

    def __repr__(self):
        return f"Ensemble(m={self.m}, seed={self.seed}, max_iterations={self.max_iterations})"


def _is_categorical(series):
    return (
        isinstance(series.dtype, pd.CategoricalDtype)
        or pd.api.types.is_object_dtype(series)
        or pd.api.types.is_bool_dtype(series)
        or pd.api.types.is_string_dtype(series)
    )


def _encode(frame, categorical):
    """
    Numeric matrix for the chained loop plus one block per column

    Ordered categoricals enter as category codes. Unordered categoricals
    (and numeric-coded columns named in `categorical`) enter as one-hot
    dummies, first category dropped; rows missing the category are
    missing in every dummy.

    Returns
    -------
    encoded : DataFrame
    blocks : dict
        column -> {'kind', 'columns', 'categories', 'dtype', 'codes'}
    """
    encoded = {}
    blocks = {}
    for col in frame.columns:
        series = frame[col]
        if not (col in categorical or _is_categorical(series)):
            encoded[col] = pd.to_numeric(series).astype(float)
            blocks[col] = {'kind': 'numeric', 'columns': [col]}
            continue

        if isinstance(series.dtype, pd.CategoricalDtype):
            cat = series
        else:
            cat = series.astype(pd.CategoricalDtype(sorted(series.dropna().unique())))
        codes = cat.cat.codes.to_numpy().astype(float)
        codes[codes < 0] = np.nan
        block = {'categories': cat.cat.categories, 'dtype': series.dtype, 'codes': codes}

        if isinstance(series.dtype, pd.CategoricalDtype) and series.cat.ordered:
            encoded[col] = pd.Series(codes, index=frame.index)
            block.update(kind='ordinal', columns=[col])
        else:
            dummies = []
            for k, category in enumerate(cat.cat.categories[1:], 1):
                name = f"{col}[{category}]"
                encoded[name] = pd.Series(np.where(np.isnan(codes), np.nan, codes == k).astype(float),
                                          index=frame.index)
                dummies.append(name)
            block.update(kind='nominal', columns=dummies)
        blocks[col] = block
    return pd.DataFrame(encoded, index=frame.index), blocks


def _decode(codes, categories, dtype, index, name):
    codes = np.clip(np.rint(codes), 0, len(categories) - 1).astype(int)
    decoded = pd.Series(pd.Categorical.from_codes(codes, categories), index=index, name=name)
    if isinstance(dtype, pd.CategoricalDtype):
        return decoded.astype(dtype)
    return decoded.astype(object if pd.api.types.is_object_dtype(dtype) else categories.dtype)


def _draw_categories(features, codes, n_categories, rng):
    """
    Polytomous imputation of one unordered column

    A multinomial LogisticRegression is fitted on the observed rows against
    the completed other columns; each missing row gets a category drawn
    from its predicted probabilities.
    """
    observed = ~np.isnan(codes)
    missing = ~observed
    y = codes[observed].astype(int)
    classes = np.unique(y)

    if features.shape[1] == 0 or len(classes) < 2:
        shares = np.bincount(y, minlength=n_categories) / len(y)
        probs = np.tile(shares, (int(missing.sum()), 1))
    else:
        model = make_pipeline(StandardScaler(), LogisticRegression(max_iter=1000))
        with warnings.catch_warnings():
            warnings.simplefilter('ignore', category=ConvergenceWarning)
            model.fit(features[observed], y)
        probs = np.zeros((int(missing.sum()), n_categories))
        probs[:, model.classes_] = model.predict_proba(features[missing])

    u = rng.uniform(size=(len(probs), 1))
    draws = np.minimum((u > probs.cumsum(axis=1)).sum(axis=1), n_categories - 1)

    completed = codes.copy()
    completed[missing] = draws
    return completed


def _impute_once(imputer, X, random_state, max_iterations):
    return imputer.fit_transform(X, random_state, max_iterations)


def impute(
    table,
    m,
    seed,
    max_iterations,
    exclude=(),
    categorical=(),
    imputer=None,
    n_jobs=1,
    verbose=False
):
    """
    Multiple imputation over the predictor table

    Parameters
    ----------
    table : DataFrame
        Predictor table with missing values
    m : int
        Number of completed datasets
    seed : int
        Base seed; run i uses seed + i
    max_iterations : int
        Maximum chained-equation rounds per run
    exclude : list of str
        Columns carried through unchanged and not used as predictors
        (identifiers). Datetime columns are always carried through.
    categorical : list of str
        Numeric-coded columns to treat as unordered categories in addition
        to category/object/bool dtypes
    imputer : BaseImputer or None
        Algorithm; defaults to ChainedEquationsImputer()
    n_jobs : int
        joblib workers for the m independent runs

    Returns
    -------
    Ensemble
    """
    if m < 1:
        raise ValueError(f"m must be at least 1, got {m}")
    if max_iterations < 1:
        raise ValueError(f"max_iterations must be at least 1, got {max_iterations}")
    if len(table) == 0:
        raise ValueError("Cannot impute an empty table")

    exclude = list(exclude)
    categorical = list(categorical)
    check_columns(table, exclude + categorical)

    excluded = set(exclude)
    passthrough = [
        c for c in table.columns
        if c in excluded or pd.api.types.is_datetime64_any_dtype(table[c])
    ]
    modeled = [c for c in table.columns if c not in passthrough]
    if not modeled:
        raise ValueError("No columns left to model after exclusions")

    targets = [c for c in modeled if table[c].isna().any()]
    empty = [c for c in targets if table[c].isna().all()]
    if empty:
        raise ImputationNonconvergence(empty)

    encoded, blocks = _encode(table[modeled], set(categorical))
    X = encoded.to_numpy(dtype=float)
    owners = [col for col in modeled for _ in blocks[col]['columns']]
    positions = {col: [encoded.columns.get_loc(c) for c in blocks[col]['columns']] for col in modeled}
    imputer = imputer if imputer is not None else ChainedEquationsImputer()

    if verbose:
        n_nominal = sum(b['kind'] == 'nominal' for b in blocks.values())
        n_ordinal = sum(b['kind'] == 'ordinal' for b in blocks.values())
        print(f"  - Variables modeled: {len(modeled)} "
              f"({n_nominal} unordered categorical, {n_ordinal} ordered categorical)")
        print(f"  - Variables with missing values: {len(targets)}")
        print(f"  - Passthrough: {passthrough}")
        print(f"  - Observations: {X.shape[0]:,}")
        print(f"  - Imputations: {m} (seed {seed}..{seed + m - 1}, max_iter={max_iterations})")

    seeds = [seed + i for i in range(m)]
    completed = Parallel(n_jobs=n_jobs)(
        delayed(_impute_once)(imputer, X, s, max_iterations) for s in seeds
    )

    datasets = []
    for run, (run_seed, values) in enumerate(zip(seeds, completed), 1):
        if values.shape != X.shape:
            raise ImputationNonconvergence(targets, run)
        leftover = np.isnan(values).any(axis=0)
        still_missing = list(dict.fromkeys(owners[j] for j in np.where(leftover)[0]))
        if still_missing:
            raise ImputationNonconvergence(still_missing, run)

        rng = np.random.RandomState(run_seed)
        result = table.copy()
        for col in modeled:
            if col not in targets:
                continue
            block = blocks[col]
            if block['kind'] == 'numeric':
                result[col] = pd.Series(values[:, positions[col][0]], index=table.index, name=col)
                continue
            if block['kind'] == 'ordinal':
                codes = values[:, positions[col][0]]
            else:
                features = np.delete(values, positions[col], axis=1)
                codes = _draw_categories(features, block['codes'], len(block['categories']), rng)
            result[col] = _decode(codes, block['categories'], block['dtype'], table.index, col)
        datasets.append(result)

        if verbose:
            print(f"  ✓ Imputation {run}/{m} complete")

    return Ensemble(datasets, seed, max_iterations, targets, imputer.name, passthrough)
