import numpy as np
import pandas as pd
import pytest

from question_pairs.config import CrossValidationConfig, default_pipeline_config, default_stopwords_path
from question_pairs.exceptions import ConfigurationError, FitFailure, SchemaError
from question_pairs.tuning import GridPoint, GridSearchCrossValidator, SearchState

BASE = default_pipeline_config().with_overrides(lda={'k': 2, 'max_iter': 5})


def small_cv(**overrides):
    params = dict(vocab_size=(50, 100), num_topics=(2, 3), min_df=(1.0,), lda_max_iter=(5,),
                  classifier_max_iter=(20,))
    params.update(overrides)
    return CrossValidationConfig(**params)


def test_default_cross_validation_config():
    config = CrossValidationConfig()
    assert config.num_folds == 2
    assert config.vocab_size == (10000,)
    assert config.num_topics == (20,)
    assert config.min_df == (2.0,)
    assert config.lda_max_iter == (100,)
    assert config.classifier_max_iter == (100,)
    assert config.stopwords == (default_stopwords_path(),)


def test_grid_is_cartesian_product(tmp_path):
    extra = tmp_path / 'stop.txt'
    extra.write_text("what,how\nwhy")
    cv = GridSearchCrossValidator(small_cv(stopwords=(default_stopwords_path(), str(extra))), BASE)
    grid = cv.build_grid()
    assert len(grid) == 2 * 2 * 2
    assert len(set(grid)) == len(grid)
    assert cv.stopword_sets[str(extra)] == ('what', 'how', 'why')
    assert cv.state == SearchState.CONFIGURED


def test_empty_candidate_list_is_rejected():
    with pytest.raises(ConfigurationError, match='vocab_size'):
        small_cv(vocab_size=[])
    with pytest.raises(ConfigurationError):
        small_cv(num_folds=1)


def test_malformed_stopwords_source_fails_before_fitting(tmp_path):
    missing = str(tmp_path / 'missing.txt')
    with pytest.raises(ConfigurationError):
        GridSearchCrossValidator(small_cv(stopwords=(missing,)), BASE)


def test_grid_point_applies_overrides():
    point = GridPoint(stopwords='s', vocab_size=50, num_topics=3, min_df=2.0, lda_max_iter=7,
                      classifier_max_iter=9)
    config = point.apply(BASE, {'s': ('foo',)})
    assert config.stopwords.stop_words == ('foo',)
    assert config.vectorizer.vocab_size == 50
    assert config.lda.k == 3
    assert config.lda.max_iter == 7
    assert config.classifier.max_iter == 9
    assert BASE.lda.k == 2
    assert 'num_topics=3' in point.describe()


def test_folds_are_stratified(question_pairs):
    cv = GridSearchCrossValidator(small_cv(), BASE)
    folds = cv.split(question_pairs)
    assert len(folds) == 2
    for _, val_idx in folds:
        assert question_pairs['isDuplicate'].iloc[val_idx].nunique() == 2


def test_search_selects_best_and_refits(question_pairs):
    cv = GridSearchCrossValidator(small_cv(), BASE)
    result = cv.fit(question_pairs)
    assert cv.state == SearchState.SELECTED
    assert len(result.fold_results) == 4 * 2
    assert result.best_index == int(np.argmax(result.average_scores))
    assert result.best_config.lda.k == result.best_point.num_topics
    matrix = result.score_matrix
    assert list(matrix.index) == [0, 1, 2, 3]
    assert {'fold_0', 'fold_1', 'mean'} <= set(matrix.columns)
    assert ((matrix[['fold_0', 'fold_1']] >= 0) & (matrix[['fold_0', 'fold_1']] <= 1)).all().all()
    assert len(result.best_model.predict_proba(question_pairs)) == len(question_pairs)


def test_search_is_deterministic(question_pairs):
    first = GridSearchCrossValidator(small_cv(), BASE).fit(question_pairs)
    second = GridSearchCrossValidator(small_cv(), BASE).fit(question_pairs)
    assert first.best_index == second.best_index
    pd.testing.assert_frame_equal(first.score_matrix, second.score_matrix)


def test_log_loss_search_minimizes(question_pairs):
    result = GridSearchCrossValidator(small_cv(metric='logLoss', vocab_size=(50,)), BASE).fit(question_pairs)
    assert not result.is_larger_better
    assert result.best_index == int(np.argmin(result.average_scores))


def test_failing_grid_point_aborts_search(question_pairs):
    cv = GridSearchCrossValidator(small_cv(vocab_size=(50,), num_topics=(2,), min_df=(1000,)), BASE)
    with pytest.raises(FitFailure, match='min_df=1000'):
        cv.fit(question_pairs)
    assert cv.state == SearchState.FITTING


def test_search_requires_labels(question_pairs):
    cv = GridSearchCrossValidator(small_cv(), BASE)
    with pytest.raises(SchemaError):
        cv.fit(question_pairs.drop(columns=['isDuplicate']))
