import pandas as pd
import pytest

from question_pairs.exceptions import ColumnCountMismatch, ConfigurationError
from question_pairs.multi_column import MultiColumnOperator
from question_pairs.operators import CountVectorizerOperator, RegexTokenizer
from question_pairs.schema import TEXT, TOKENS


def frame():
    return pd.DataFrame({
        'q1': ["how do magnets work", "what is rust"],
        'q2': ["why is the sky blue", "who wrote hamlet"],
        'q3': ["unused column", "left alone"],
    })


@pytest.mark.parametrize("n", [0, 1, 2])
def test_n_pairs_add_exactly_n_columns(n):
    df = frame()
    inputs = ['q1', 'q2'][:n]
    outputs = [f"{c}_tok" for c in inputs]
    op = MultiColumnOperator(stage=RegexTokenizer(), input_cols=inputs, output_cols=outputs).fit(df)
    out = op.transform(df)
    assert len(out) == len(df)
    assert list(out.columns) == list(df.columns) + outputs
    pd.testing.assert_frame_equal(out[df.columns], df)


def test_zero_pairs_is_a_no_op():
    df = frame()
    op = MultiColumnOperator(stage=RegexTokenizer())
    assert op.fit(df).transform(df) is df
    assert op.transform_schema({'q1': TEXT}) == {'q1': TEXT}


def test_column_count_mismatch():
    with pytest.raises(ColumnCountMismatch):
        MultiColumnOperator(stage=RegexTokenizer(), input_cols=['q1', 'q2'], output_cols=['q1_tok'])
    assert issubclass(ColumnCountMismatch, ConfigurationError)


def test_unknown_fit_mode():
    with pytest.raises(ConfigurationError):
        MultiColumnOperator(stage=RegexTokenizer(), input_cols=['q1'], output_cols=['o'], fit_mode='joint')


def test_transform_schema_adds_outputs():
    op = MultiColumnOperator(stage=RegexTokenizer(), input_cols=['q1', 'q2'], output_cols=['a', 'b'])
    schema = op.transform_schema({'q1': TEXT, 'q2': TEXT})
    assert schema == {'q1': TEXT, 'q2': TEXT, 'a': TOKENS, 'b': TOKENS}


def test_no_cross_column_leakage():
    df = frame()
    op = MultiColumnOperator(stage=RegexTokenizer(), input_cols=['q1', 'q2'], output_cols=['a', 'b']).fit(df)
    out = op.transform(df)
    changed = df.assign(q2=["completely different words", "nothing alike"])
    out_changed = op.transform(changed)
    assert out_changed['a'].tolist() == out['a'].tolist()
    assert out_changed['b'].tolist() != out['b'].tolist()


def tokenized():
    df = frame()
    tok = MultiColumnOperator(stage=RegexTokenizer(), input_cols=['q1', 'q2'], output_cols=['t1', 't2'])
    return tok.fit(df).transform(df)


def test_independent_fit_learns_one_vocabulary_per_column():
    df = tokenized()
    op = MultiColumnOperator(stage=CountVectorizerOperator(), input_cols=['t1', 't2'],
                             output_cols=['v1', 'v2']).fit(df)
    first = op.model_for('t1').vocabulary_
    second = op.model_for('t2').vocabulary_
    assert 'magnets' in first and 'magnets' not in second
    assert 'hamlet' in second and 'hamlet' not in first
    assert op.model_for('t1') is not op.model_for('t2')
    with pytest.raises(KeyError):
        op.model_for('t3')


def test_shared_fit_uses_one_vocabulary():
    df = tokenized()
    op = MultiColumnOperator(stage=CountVectorizerOperator(), input_cols=['t1', 't2'],
                             output_cols=['v1', 'v2'], fit_mode='shared').fit(df)
    assert op.model_for('t1').vocabulary_ == op.model_for('t2').vocabulary_
    assert {'magnets', 'hamlet'} <= set(op.model_for('t1').vocabulary_)
    out = op.transform(df)
    assert out['v1'].iloc[0].shape == out['v2'].iloc[0].shape
    assert len(op.fitted_models) == 2
