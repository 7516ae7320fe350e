import numpy as np
import pandas as pd
import pytest

from loneliness_mi.assembly import (
    attach_person_ids, collection_start, derive_total_score, first_observation,
    flip_binary, left_join_many, reverse_scored
)
from loneliness_mi.errors import AmbiguousJoin, ColumnNotFound, EmptyQualifyingGroup

START = pd.Timestamp('2019-01-01')
KEYS = dict(person_key='person_id', visit_key='visit_id', time_key='visit_date',
            required_cols=['ucla_1', 'ucla_2'])


class TestFirstObservation:

    def test_first_qualifying_visit_after_start(self, visits):
        first = first_observation(visits, start=START, on_empty='drop', **KEYS)

        # p1: v1 predates the start, v2 has a missing item -> v3
        # p2: v5 is earlier than v4 even though it comes later in the table
        # p3: only visit predates the start -> dropped
        assert first['visit_id'].tolist() == ['v3', 'v5']
        assert first['person_id'].tolist() == ['p1', 'p2']
        assert list(first.columns) == list(visits.columns)
        assert first.index.tolist() == [0, 1]

    def test_empty_group_raises_by_default(self, visits):
        with pytest.raises(EmptyQualifyingGroup) as excinfo:
            first_observation(visits, start=START, **KEYS)
        assert excinfo.value.groups == ['p3']

    def test_without_start_every_visit_counts(self, visits):
        first = first_observation(visits, **KEYS)
        assert first['visit_id'].tolist() == ['v1', 'v5', 'v6']

    def test_idempotent(self, visits):
        first = first_observation(visits, start=START, on_empty='drop', **KEYS)
        again = first_observation(first, start=START, on_empty='drop', **KEYS)
        pd.testing.assert_frame_equal(first, again)

    def test_input_not_modified(self, visits):
        before = visits.copy()
        first_observation(visits, start=START, on_empty='drop', **KEYS)
        pd.testing.assert_frame_equal(visits, before)

    def test_ties_broken_by_visit_id(self):
        df = pd.DataFrame({
            'visit_id': ['b', 'a'],
            'person_id': ['p1', 'p1'],
            'visit_date': pd.to_datetime(['2020-01-01', '2020-01-01']),
            'ucla_1': [1, 2],
            'ucla_2': [1, 2],
        })
        assert first_observation(df, **KEYS)['visit_id'].tolist() == ['a']

    def test_missing_timestamp_excluded(self):
        df = pd.DataFrame({
            'visit_id': ['a', 'b'],
            'person_id': ['p1', 'p1'],
            'visit_date': pd.to_datetime([None, '2020-06-01']),
            'ucla_1': [1, 2],
            'ucla_2': [1, 2],
        })
        assert first_observation(df, **KEYS)['visit_id'].tolist() == ['b']

    def test_bad_policy(self, visits):
        with pytest.raises(ValueError):
            first_observation(visits, on_empty='ignore', **KEYS)

    def test_missing_required_column(self, visits):
        with pytest.raises(ColumnNotFound):
            first_observation(visits, person_key='person_id', visit_key='visit_id',
                              time_key='visit_date', required_cols=['ucla_3'])


def test_collection_start_is_first_complete_visit():
    df = pd.DataFrame({
        'visit_date': pd.to_datetime(['2018-01-01', '2018-06-01', '2019-03-01', '2019-02-01']),
        'ucla_1': [np.nan, 1, 2, 3],
        'ucla_2': [np.nan, np.nan, 2, 3],
    })
    assert collection_start(df, 'visit_date', ['ucla_1', 'ucla_2']) == pd.Timestamp('2019-02-01')


def test_collection_start_needs_a_complete_row():
    df = pd.DataFrame({'visit_date': pd.to_datetime(['2018-01-01']), 'ucla_1': [np.nan]})
    with pytest.raises(EmptyQualifyingGroup) as excinfo:
        collection_start(df, 'visit_date', ['ucla_1'])
    assert excinfo.value.groups == []
    assert 'collection start' in str(excinfo.value)


class TestLeftJoinMany:

    def test_preserves_rows_and_order(self):
        base = pd.DataFrame({'visit_id': ['v3', 'v1', 'v2'], 'x': [3, 1, 2]}, index=[10, 20, 30])
        aux1 = pd.DataFrame({'visit_id': ['v1', 'v2', 'v9'], 'a': [1.0, 2.0, 9.0]})
        aux2 = pd.DataFrame({'visit_id': ['v3'], 'b': ['three']})

        joined = left_join_many(base, [(aux1, 'visit_id'), (aux2, 'visit_id')])

        assert len(joined) == len(base)
        assert joined.index.tolist() == [10, 20, 30]
        assert joined['visit_id'].tolist() == ['v3', 'v1', 'v2']
        assert joined['a'].tolist()[1:] == [1.0, 2.0]
        assert np.isnan(joined['a'].iloc[0])
        assert joined['b'].tolist()[0] == 'three'
        assert joined['b'].isna().tolist() == [False, True, True]

    def test_duplicate_keys_raise(self):
        base = pd.DataFrame({'visit_id': ['v1', 'v2']})
        aux1 = pd.DataFrame({'visit_id': ['v1', 'v2'], 'a': [1, 2]})
        aux2 = pd.DataFrame({'visit_id': ['v1', 'v1', 'v2'], 'b': [1, 2, 3]})

        with pytest.raises(AmbiguousJoin) as excinfo:
            left_join_many(base, [(aux1, 'visit_id'), (aux2, 'visit_id')])
        assert excinfo.value.key == 'visit_id'
        assert excinfo.value.position == 2
        assert excinfo.value.duplicates == ['v1']

    def test_missing_aux_keys_ignored(self):
        base = pd.DataFrame({'visit_id': ['v1', None]})
        aux = pd.DataFrame({'visit_id': [None, None, 'v1'], 'a': [7, 8, 1]})
        joined = left_join_many(base, [(aux, 'visit_id')])
        assert len(joined) == 2
        assert joined['a'].iloc[0] == 1
        assert np.isnan(joined['a'].iloc[1])

    def test_missing_key_column(self):
        base = pd.DataFrame({'visit_id': ['v1']})
        with pytest.raises(ColumnNotFound):
            left_join_many(base, [(pd.DataFrame({'id': ['v1']}), 'visit_id')])

    def test_name_collision_suffixed(self):
        base = pd.DataFrame({'visit_id': ['v1'], 'age': [70]})
        aux = pd.DataFrame({'visit_id': ['v1'], 'age': [71]})
        joined = left_join_many(base, [(aux, 'visit_id')])
        assert joined['age'].tolist() == [70]
        assert joined['age_1'].tolist() == [71]

    def test_no_joins_returns_copy(self):
        base = pd.DataFrame({'visit_id': ['v1']})
        joined = left_join_many(base, [])
        assert joined is not base
        pd.testing.assert_frame_equal(joined, base)


class TestDeriveTotalScore:

    def test_sum_of_components(self):
        df = pd.DataFrame({'i1': [1], 'i2': [2], 'i3': [0]})
        assert derive_total_score(df, ['i1', 'i2', 'i3'])['total'].tolist() == [3]

    def test_any_missing_component_gives_missing_total(self):
        df = pd.DataFrame({'i1': [1.0, 1.0], 'i2': [2.0, np.nan], 'i3': [0.0, 0.0]})
        total = derive_total_score(df, ['i1', 'i2', 'i3'], total_col='score')['score']
        assert total.iloc[0] == 3
        assert np.isnan(total.iloc[1])

    def test_recode_before_sum(self):
        df = pd.DataFrame({'i1': [1.0, 0.0], 'i2': [0.0, 0.0], 'i3': [1.0, np.nan]})
        recodes = {col: flip_binary for col in ['i1', 'i2', 'i3']}
        result = derive_total_score(df, ['i1', 'i2', 'i3'], recodes)
        assert result['total'].iloc[0] == 1
        assert np.isnan(result['total'].iloc[1])
        # components are not recoded in the output
        assert result['i1'].tolist() == [1.0, 0.0]

    def test_reverse_scored(self):
        df = pd.DataFrame({'i1': [1, 3], 'i2': [2, 2]})
        result = derive_total_score(df, ['i1', 'i2'], {'i1': reverse_scored(1, 3)})
        assert result['total'].tolist() == [5, 3]

    def test_recode_for_unknown_column(self):
        df = pd.DataFrame({'i1': [1]})
        with pytest.raises(ColumnNotFound):
            derive_total_score(df, ['i1'], {'i9': flip_binary})

    def test_no_components(self):
        with pytest.raises(ValueError):
            derive_total_score(pd.DataFrame({'i1': [1]}), [])


def test_flip_binary_rejects_non_binary():
    with pytest.raises(ValueError):
        flip_binary(pd.Series([0, 1, 2], name='item'))


def test_attach_person_ids():
    table = pd.DataFrame({'visit_id': ['v2', 'v1'], 'x': [2, 1]})
    identity = pd.DataFrame({'visit_id': ['v1', 'v2'], 'person_id': ['p1', 'p1']})
    result = attach_person_ids(table, identity, 'visit_id', 'person_id')
    assert result['person_id'].tolist() == ['p1', 'p1']
    assert result['visit_id'].tolist() == ['v2', 'v1']


def test_attach_person_ids_duplicate_visit():
    table = pd.DataFrame({'visit_id': ['v1']})
    identity = pd.DataFrame({'visit_id': ['v1', 'v1'], 'person_id': ['p1', 'p2']})
    with pytest.raises(AmbiguousJoin):
        attach_person_ids(table, identity, 'visit_id', 'person_id')


def test_attach_person_ids_unknown_visit():
    table = pd.DataFrame({'visit_id': ['v1', 'v2']})
    identity = pd.DataFrame({'visit_id': ['v1'], 'person_id': ['p1']})
    with pytest.raises(ValueError):
        attach_person_ids(table, identity, 'visit_id', 'person_id')
