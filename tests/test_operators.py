import warnings

import numpy as np
import pandas as pd
import pytest
import scipy.sparse as sp

from question_pairs.config import DEFAULT_TOKEN_PATTERN
from question_pairs.exceptions import SchemaError
from question_pairs.operators import (
    ClassWeighter, CountVectorizerOperator, DuplicateLabeler, IdfOperator, LdaOperator,
    LogisticRegressionClassifier, RegexTokenizer, StopWordsRemover, TextCleaner, VectorAssembler, clean_text,
)
from question_pairs.schema import infer_schema, to_column


def token_frame(docs):
    return pd.DataFrame({'q_tokens': to_column(docs, pd.RangeIndex(len(docs)))})


def test_clean_text_collapses_whitespace_and_keeps_nulls():
    assert clean_text("  What\tis \x00 this?\n ") == "What is this?"
    assert clean_text(None) is None
    assert np.isnan(clean_text(np.nan))


def test_text_cleaner_in_place():
    df = pd.DataFrame({'q': ["  a\t b ", None]})
    out = TextCleaner(input_col='q').transform(df)
    assert out['q'].iloc[0] == "a b"
    assert pd.isna(out['q'].iloc[1])
    assert list(out.columns) == ['q']


def test_regex_tokenizer_splits_on_punctuation_and_space():
    tok = RegexTokenizer(input_col='q', output_col='t')
    assert tok.tokenize("What's the best way to learn Python?") == ['what', 's', 'the', 'best', 'way', 'to', 'learn', 'python']
    assert tok.tokenize(None) == []
    assert RegexTokenizer(pattern=DEFAULT_TOKEN_PATTERN, to_lowercase=False).tokenize("A,B") == ['A', 'B']


def test_regex_tokenizer_min_token_length():
    tok = RegexTokenizer(input_col='q', output_col='t', min_token_length=2)
    out = tok.transform(pd.DataFrame({'q': ["a bb ccc"]}))
    assert out['t'].iloc[0] == ['bb', 'ccc']


def test_stopwords_remover_case_insensitive_by_default():
    df = pd.DataFrame({'t': to_column([['The', 'cat', 'and', 'dog']], pd.RangeIndex(1))})
    out = StopWordsRemover(input_col='t', output_col='s', stop_words=['the', 'and']).transform(df)
    assert out['s'].iloc[0] == ['cat', 'dog']
    sensitive = StopWordsRemover(input_col='t', output_col='s', stop_words=['the'], case_sensitive=True)
    assert sensitive.transform(df)['s'].iloc[0] == ['The', 'cat', 'and', 'dog']


def test_stopwords_remover_requires_tokens():
    df = pd.DataFrame({'t': ["not tokenized"]})
    with pytest.raises(SchemaError):
        StopWordsRemover(input_col='t', output_col='s').transform(df)


def test_count_vectorizer_vocabulary_and_min_df():
    df = token_frame([['a', 'b'], ['a', 'c'], ['a', 'b', 'b']])
    op = CountVectorizerOperator(input_col='q_tokens', output_col='q_tf', min_df=2).fit(df)
    assert op.vocabulary_ == ['a', 'b']
    out = op.transform(df)
    row = out['q_tf'].iloc[2]
    assert sp.issparse(row)
    assert row.shape == (1, 2)
    assert row.toarray().tolist() == [[1, 2]]
    assert infer_schema(out)['q_tf'] == 'sparse_vector'


def test_count_vectorizer_vocab_size_bound():
    df = token_frame([['a', 'b', 'c', 'd'], ['a', 'b'], ['a']])
    op = CountVectorizerOperator(input_col='q_tokens', output_col='q_tf', vocab_size=2).fit(df)
    assert len(op.vocabulary_) == 2
    assert set(op.vocabulary_) == {'a', 'b'}


def test_idf_downweights_common_terms():
    df = token_frame([['a', 'b'], ['a', 'c'], ['a']])
    tf = CountVectorizerOperator(input_col='q_tokens', output_col='q_tf').fit(df)
    df = tf.transform(df)
    idf = IdfOperator(input_col='q_tf', output_col='q_tfidf').fit(df)
    weights = dict(zip(tf.vocabulary_, idf.idf_))
    assert weights['a'] < weights['b']
    out = idf.transform(df)
    assert out['q_tfidf'].iloc[0].shape == (1, 3)


def test_lda_topics_and_description():
    docs = [['apple', 'banana'], ['apple', 'cherry'], ['dog', 'cat'], ['cat', 'mouse']] * 3
    df = token_frame(docs)
    df = CountVectorizerOperator(input_col='q_tokens', output_col='q_tf').fit(df).transform(df)
    lda = LdaOperator(input_col='q_tf', output_col='q_lda', k=2, max_iter=5).fit(df)
    out = lda.transform(df)
    dist = out['q_lda'].iloc[0]
    assert dist.shape == (2,)
    assert dist.sum() == pytest.approx(1.0)
    assert np.allclose(lda.topics_matrix().sum(axis=1), 1.0)
    topics = lda.describe_topics(3)
    assert list(topics['topic']) == [0, 1]
    for weights in topics['termWeights']:
        assert len(weights) == 3
        assert all(a >= b for a, b in zip(weights, weights[1:]))


def test_vector_assembler_keeps_column_order():
    index = pd.RangeIndex(2)
    df = pd.DataFrame({
        'a': to_column([np.array([1.0, 2.0]), np.array([3.0, 4.0])], index),
        'b': to_column([np.array([5.0]), np.array([6.0])], index),
    })
    out = VectorAssembler(input_cols=['b', 'a'], output_col='m').transform(df)
    assert out['m'].iloc[0].tolist() == [5.0, 1.0, 2.0]
    assert out['m'].iloc[1].tolist() == [6.0, 3.0, 4.0]


def test_labeler_and_weighter():
    df = pd.DataFrame({'isDuplicate': [True, False, True]})
    df = DuplicateLabeler().transform(df)
    df = ClassWeighter().transform(df)
    assert df['isDuplicateLabel'].tolist() == [1, 0, 1]
    assert df['lrw'].tolist() == [0.47, 1.3, 0.47]


def test_labeler_and_weighter_pass_unlabelled_data_through():
    df = pd.DataFrame({'question1': ['a']})
    assert DuplicateLabeler().transform(df) is df
    assert ClassWeighter().transform(df) is df


def features_frame(features, labels):
    index = pd.RangeIndex(len(labels))
    return pd.DataFrame({
        'mergedlda': to_column([np.asarray(f, dtype=float) for f in features], index),
        'isDuplicateLabel': labels,
        'lrw': [1.0] * len(labels),
    })


def test_logistic_regression_outputs():
    features = [[0.9, 0.1], [0.8, 0.2], [0.2, 0.8], [0.1, 0.9]]
    df = features_frame(features, [1, 1, 0, 0])
    clf = LogisticRegressionClassifier(max_iter=100).fit(df)
    out = clf.transform(df)
    for p, raw in zip(out['p'], out['raw']):
        assert p.shape == (2,)
        assert p.sum() == pytest.approx(1.0)
        assert raw[0] == pytest.approx(-raw[1])
    assert out['prediction'].tolist() == [1, 1, 0, 0]
    assert clf.coefficients.shape == (2,)


def test_logistic_regression_single_class_is_constant():
    df = features_frame([[0.5, 0.5], [0.4, 0.6]], [0, 0])
    clf = LogisticRegressionClassifier().fit(df)
    out = clf.transform(df)
    assert [p.tolist() for p in out['p']] == [[1.0, 0.0], [1.0, 0.0]]
    assert out['prediction'].tolist() == [0, 0]
    assert clf.intercept == -np.inf


def test_logistic_regression_transform_without_label():
    df = features_frame([[0.9, 0.1], [0.1, 0.9]], [1, 0])
    clf = LogisticRegressionClassifier().fit(df)
    out = clf.transform(df[['mergedlda']])
    assert 'p' in out.columns


def test_unregularized_classifier_uses_infinite_c():
    df = features_frame([[0.9, 0.1], [0.7, 0.4], [0.3, 0.6], [0.1, 0.9]], [1, 0, 1, 0])
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        clf = LogisticRegressionClassifier(reg_param=0.0).fit(df)
    assert clf.model_.C == np.inf
    assert not [w for w in caught if "penalty" in str(w.message)]
    assert LogisticRegressionClassifier(reg_param=0.5).fit(df).model_.C == pytest.approx(2.0)
