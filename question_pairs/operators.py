"""
Single-column fit/transform operators for the question pairs pipeline.

Every operator reads one (or a few) DataFrame columns and appends its output
column(s); existing columns are never removed. The numerical work is delegated
to scikit-learn.
"""
import logging
import re
import unicodedata
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.decomposition import LatentDirichletAllocation
from sklearn.feature_extraction.text import CountVectorizer, TfidfTransformer
from sklearn.linear_model import LogisticRegression
from sklearn.utils.validation import check_is_fitted

from question_pairs.config import DEFAULT_TOKEN_PATTERN, default_stopwords
from question_pairs.schema import (
    TEXT, TOKENS, SPARSE_VECTOR, VECTOR, BOOLEAN, INTEGER, DOUBLE, Schema,
    infer_schema, is_null, require_column, split_rows, stack_dense, stack_sparse, to_column,
)

logger = logging.getLogger(__name__)

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f\u200b-\u200f\ufeff]")
_WHITESPACE = re.compile(r"\s+")


class ColumnOperator(BaseEstimator, TransformerMixin):
    """Base class: reads ``input_col`` and writes ``output_col``."""
    input_kinds = (TEXT,)
    output_kind = TEXT

    def _input_columns(self) -> List[str]:
        return [self.input_col]

    def _transform_columns(self) -> List[str]:
        return self._input_columns()

    def _output_schema(self) -> Schema:
        return {self.output_col: self.output_kind}

    def _check(self, schema: Schema, columns: Sequence[str]) -> None:
        for col in columns:
            require_column(schema, col, self.input_kinds, type(self).__name__)

    def transform_schema(self, schema: Schema) -> Schema:
        self._check(schema, self._input_columns())
        out = dict(schema)
        out.update(self._output_schema())
        return out

    def fit(self, df: pd.DataFrame, y=None):
        self._check(infer_schema(df), self._input_columns())
        self._fit(df)
        return self

    def _fit(self, df: pd.DataFrame) -> None:
        pass

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        self._check(infer_schema(df), self._transform_columns())
        return df.assign(**self._transform(df))

    def _transform(self, df: pd.DataFrame) -> Dict[str, pd.Series]:
        raise NotImplementedError


def clean_text(value):
    """Normalize unicode, drop control characters and collapse whitespace. Nulls are returned as is."""
    if is_null(value):
        return value
    text = unicodedata.normalize('NFKC', str(value))
    text = _CONTROL_CHARS.sub(' ', text)
    return _WHITESPACE.sub(' ', text).strip()


class TextCleaner(ColumnOperator):
    """Strips noisy characters from a text column; writes in place unless ``output_col`` is given."""
    # CSV readers give a column of bare numbers a numeric dtype; values are read back as text.
    input_kinds = (TEXT, INTEGER, DOUBLE)

    def __init__(self, input_col: str = 'question1', output_col: Optional[str] = None):
        self.input_col = input_col
        self.output_col = output_col

    def _output_schema(self) -> Schema:
        return {self.output_col or self.input_col: TEXT}

    def _transform(self, df):
        cleaned = df[self.input_col].astype(object).map(clean_text)
        return {self.output_col or self.input_col: cleaned}


class RegexTokenizer(ColumnOperator):
    """Splits text on a gap pattern. Null text becomes an empty token list."""
    input_kinds = (TEXT, INTEGER, DOUBLE)
    output_kind = TOKENS

    def __init__(self, input_col: str = 'question1', output_col: str = 'question1_all_tokens',
                 pattern: str = DEFAULT_TOKEN_PATTERN, to_lowercase: bool = True, min_token_length: int = 1):
        self.input_col = input_col
        self.output_col = output_col
        self.pattern = pattern
        self.to_lowercase = to_lowercase
        self.min_token_length = min_token_length

    def tokenize(self, text) -> List[str]:
        if is_null(text):
            return []
        text = str(text)
        if self.to_lowercase:
            text = text.lower()
        return [t for t in re.split(self.pattern, text) if len(t) >= max(self.min_token_length, 1)]

    def _transform(self, df):
        tokens = [self.tokenize(v) for v in df[self.input_col]]
        return {self.output_col: to_column(tokens, df.index)}


class StopWordsRemover(ColumnOperator):
    input_kinds = (TOKENS,)
    output_kind = TOKENS

    def __init__(self, input_col: str = 'question1_all_tokens', output_col: str = 'question1_tokens',
                 stop_words: Optional[Sequence[str]] = None, case_sensitive: bool = False):
        self.input_col = input_col
        self.output_col = output_col
        self.stop_words = stop_words
        self.case_sensitive = case_sensitive

    def _stop_set(self):
        words = default_stopwords() if self.stop_words is None else self.stop_words
        if self.case_sensitive:
            return frozenset(words)
        return frozenset(w.lower() for w in words)

    def _transform(self, df):
        stops = self._stop_set()
        if self.case_sensitive:
            kept = [[t for t in tokens if t not in stops] for tokens in df[self.input_col]]
        else:
            kept = [[t for t in tokens if t.lower() not in stops] for tokens in df[self.input_col]]
        return {self.output_col: to_column(kept, df.index)}


def _identity_analyzer(tokens):
    return tokens


class CountVectorizerOperator(ColumnOperator):
    """Maps token lists to sparse term count vectors over a bounded vocabulary."""
    input_kinds = (TOKENS,)
    output_kind = SPARSE_VECTOR

    def __init__(self, input_col: str = 'question1_tokens', output_col: str = 'question1_tf',
                 vocab_size: int = 1 << 18, min_df: float = 1.0):
        self.input_col = input_col
        self.output_col = output_col
        self.vocab_size = vocab_size
        self.min_df = min_df

    def _sklearn_min_df(self):
        # scikit-learn reads floats as proportions, so whole document counts must be ints.
        return int(self.min_df) if self.min_df >= 1 else float(self.min_df)

    def _fit(self, df):
        self.vectorizer_ = CountVectorizer(analyzer=_identity_analyzer, max_features=self.vocab_size,
                                           min_df=self._sklearn_min_df())
        self.vectorizer_.fit(list(df[self.input_col]))
        self.vocabulary_ = [str(t) for t in self.vectorizer_.get_feature_names_out()]
        logger.info(f"[CountVectorizer] {self.input_col}: vocabulary of {len(self.vocabulary_)} terms")

    def _transform(self, df):
        check_is_fitted(self, 'vectorizer_')
        counts = self.vectorizer_.transform(list(df[self.input_col]))
        return {self.output_col: to_column(split_rows(counts), df.index)}


class IdfOperator(ColumnOperator):
    """Rescales term counts by inverse document frequency."""
    input_kinds = (SPARSE_VECTOR,)
    output_kind = SPARSE_VECTOR

    def __init__(self, input_col: str = 'question1_tf', output_col: str = 'question1_tfidf',
                 smooth_idf: bool = True, sublinear_tf: bool = False):
        self.input_col = input_col
        self.output_col = output_col
        self.smooth_idf = smooth_idf
        self.sublinear_tf = sublinear_tf

    def _fit(self, df):
        self.transformer_ = TfidfTransformer(norm=None, use_idf=True, smooth_idf=self.smooth_idf,
                                             sublinear_tf=self.sublinear_tf)
        self.transformer_.fit(stack_sparse(df[self.input_col]))

    @property
    def idf_(self) -> np.ndarray:
        return self.transformer_.idf_

    def _transform(self, df):
        check_is_fitted(self, 'transformer_')
        weighted = self.transformer_.transform(stack_sparse(df[self.input_col]))
        return {self.output_col: to_column(split_rows(weighted), df.index)}


class LdaOperator(ColumnOperator):
    """Fits an LDA topic model and writes a dense topic distribution per row."""
    input_kinds = (SPARSE_VECTOR,)
    output_kind = VECTOR

    def __init__(self, input_col: str = 'question1_tfidf', output_col: str = 'question1_lda',
                 k: int = 10, max_iter: int = 20, optimizer: str = 'online', random_state: int = 0):
        self.input_col = input_col
        self.output_col = output_col
        self.k = k
        self.max_iter = max_iter
        self.optimizer = optimizer
        self.random_state = random_state

    def _fit(self, df):
        self.lda_ = LatentDirichletAllocation(n_components=self.k, max_iter=self.max_iter,
                                              learning_method=self.optimizer, random_state=self.random_state)
        self.lda_.fit(stack_sparse(df[self.input_col]))

    def _transform(self, df):
        check_is_fitted(self, 'lda_')
        topics = self.lda_.transform(stack_sparse(df[self.input_col]))
        return {self.output_col: to_column(split_rows(topics), df.index)}

    def topics_matrix(self) -> np.ndarray:
        """Topic-term weights, each topic row normalized to sum to one."""
        check_is_fitted(self, 'lda_')
        components = self.lda_.components_
        return components / components.sum(axis=1)[:, np.newaxis]

    def describe_topics(self, max_terms_per_topic: int = 10) -> pd.DataFrame:
        """One row per topic with the indices and weights of its heaviest terms, heaviest first."""
        rows = []
        for topic, weights in enumerate(self.topics_matrix()):
            order = np.argsort(-weights, kind='stable')[:max_terms_per_topic]
            rows.append({'topic': topic, 'termIndices': order.tolist(), 'termWeights': weights[order].tolist()})
        return pd.DataFrame(rows, columns=['topic', 'termIndices', 'termWeights'])


class VectorAssembler(ColumnOperator):
    """Concatenates dense vector columns, in the given column order."""
    input_kinds = (VECTOR, DOUBLE, INTEGER)
    output_kind = VECTOR

    def __init__(self, input_cols: Sequence[str] = ('question1_lda', 'question2_lda'), output_col: str = 'mergedlda'):
        self.input_cols = input_cols
        self.output_col = output_col

    def _input_columns(self):
        return list(self.input_cols)

    def _transform(self, df):
        blocks = [stack_dense(df[col]) if df[col].dtype == object else df[col].to_numpy(dtype=float)[:, np.newaxis]
                  for col in self.input_cols]
        merged = np.hstack(blocks) if blocks else np.empty((len(df), 0))
        return {self.output_col: to_column(split_rows(merged), df.index)}


class DuplicateLabeler(ColumnOperator):
    """Casts the duplicate flag to an integer label."""
    input_kinds = (BOOLEAN, INTEGER)
    output_kind = INTEGER

    def __init__(self, input_col: str = 'isDuplicate', output_col: str = 'isDuplicateLabel'):
        self.input_col = input_col
        self.output_col = output_col

    def transform(self, df):
        # Unlabelled data, such as a submission set, has no label to derive.
        if self.input_col not in df.columns:
            return df
        return super().transform(df)

    def _transform(self, df):
        return {self.output_col: df[self.input_col].astype(bool).astype(int)}


class ClassWeighter(ColumnOperator):
    """Derives a per-row training weight from the duplicate flag."""
    input_kinds = (BOOLEAN, INTEGER)
    output_kind = DOUBLE

    def __init__(self, input_col: str = 'isDuplicate', output_col: str = 'lrw',
                 positive_weight: float = 0.47, negative_weight: float = 1.3):
        self.input_col = input_col
        self.output_col = output_col
        self.positive_weight = positive_weight
        self.negative_weight = negative_weight

    def transform(self, df):
        if self.input_col not in df.columns:
            return df
        return super().transform(df)

    def _transform(self, df):
        flags = df[self.input_col].astype(bool).to_numpy()
        weights = np.where(flags, self.positive_weight, self.negative_weight).astype(float)
        return {self.output_col: pd.Series(weights, index=df.index)}


class LogisticRegressionClassifier(ColumnOperator):
    """Weighted binary logistic regression writing probability, raw score and prediction columns."""
    def __init__(self, features_col: str = 'mergedlda', label_col: str = 'isDuplicateLabel',
                 weight_col: Optional[str] = 'lrw', probability_col: str = 'p',
                 raw_prediction_col: str = 'raw', prediction_col: str = 'prediction',
                 max_iter: int = 100, reg_param: float = 0.0, tol: float = 1e-6, fit_intercept: bool = True):
        self.features_col = features_col
        self.label_col = label_col
        self.weight_col = weight_col
        self.probability_col = probability_col
        self.raw_prediction_col = raw_prediction_col
        self.prediction_col = prediction_col
        self.max_iter = max_iter
        self.reg_param = reg_param
        self.tol = tol
        self.fit_intercept = fit_intercept

    def _input_columns(self):
        return [c for c in (self.features_col, self.label_col, self.weight_col) if c]

    def _transform_columns(self):
        return [self.features_col]

    def _check(self, schema, columns):
        kinds = {self.features_col: (VECTOR,), self.label_col: (INTEGER, BOOLEAN), self.weight_col: (DOUBLE, INTEGER)}
        for col in columns:
            require_column(schema, col, kinds[col], type(self).__name__)

    def _output_schema(self):
        return {self.probability_col: VECTOR, self.raw_prediction_col: VECTOR, self.prediction_col: INTEGER}

    def _build_model(self) -> LogisticRegression:
        # An infinite C is the unpenalized model; ``penalty`` is deprecated in scikit-learn.
        C = 1.0 / self.reg_param if self.reg_param > 0 else np.inf
        return LogisticRegression(C=C, max_iter=self.max_iter, tol=self.tol, fit_intercept=self.fit_intercept)

    def _fit(self, df):
        X = stack_dense(df[self.features_col])
        y = df[self.label_col].to_numpy(dtype=int)
        sample_weight = df[self.weight_col].to_numpy(dtype=float) if self.weight_col else None
        classes = np.unique(y)
        if len(classes) < 2:
            # No decision boundary to learn: every row gets the observed class with certainty.
            self.constant_label_ = int(classes[0]) if len(classes) else 0
            self.model_ = None
            logger.warning(f"[LogisticRegression] All labels are {self.constant_label_}; "
                           f"fitting a constant model on {len(y)} rows")
            return
        self.constant_label_ = None
        self.model_ = self._build_model()
        self.model_.fit(X, y, sample_weight=sample_weight)

    @property
    def coefficients(self) -> np.ndarray:
        check_is_fitted(self, 'constant_label_')
        if self.model_ is None:
            return np.zeros(0)
        return self.model_.coef_[0]

    @property
    def intercept(self) -> float:
        check_is_fitted(self, 'constant_label_')
        if self.model_ is None:
            return np.inf if self.constant_label_ == 1 else -np.inf
        return float(self.model_.intercept_[0]) if self.fit_intercept else 0.0

    def _transform(self, df):
        check_is_fitted(self, 'constant_label_')
        X = stack_dense(df[self.features_col])
        if self.model_ is None:
            proba = np.zeros((len(X), 2))
            proba[:, self.constant_label_] = 1.0
            margin = np.full(len(X), self.intercept)
            prediction = np.full(len(X), self.constant_label_, dtype=int)
        else:
            proba = self.model_.predict_proba(X)
            margin = self.model_.decision_function(X)
            prediction = self.model_.predict(X).astype(int)
        raw = np.column_stack([-margin, margin])
        return {
            self.probability_col: to_column(split_rows(proba), df.index),
            self.raw_prediction_col: to_column(split_rows(raw), df.index),
            self.prediction_col: pd.Series(prediction, index=df.index),
        }
