"""
Ordered, schema-checked stage pipelines and the canonical question pair feature pipeline.
"""
import time
import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import pandas as pd
from sklearn.base import clone

from question_pairs.config import LABEL_SOURCE_COL, PipelineConfig
from question_pairs.exceptions import FitFailure, QuestionPairsError
from question_pairs.multi_column import MultiColumnOperator
from question_pairs.operators import (
    ClassWeighter, CountVectorizerOperator, DuplicateLabeler, IdfOperator, LdaOperator,
    LogisticRegressionClassifier, RegexTokenizer, StopWordsRemover, TextCleaner, VectorAssembler,
)
from question_pairs.schema import Schema, infer_schema

logger = logging.getLogger(__name__)

Step = Tuple[str, object]

LABEL_COL = 'isDuplicateLabel'
WEIGHT_COL = 'lrw'
FEATURES_COL = 'mergedlda'
PROBABILITY_COL = 'p'
RAW_PREDICTION_COL = 'raw'
PREDICTION_COL = 'prediction'


def _format_param(value) -> str:
    if isinstance(value, (list, tuple, set, frozenset)) and len(value) > 10:
        return f"<{len(value)} values>"
    if isinstance(value, tuple):
        value = list(value)
    return repr(value)


def question_columns(questions: Sequence[str], suffix: str) -> List[str]:
    if not suffix:
        return list(questions)
    return [f"{q}_{suffix}" for q in questions]


class Pipeline:
    """An ordered list of named stages, fitted strictly one after another."""

    def __init__(self, steps: Sequence[Step]):
        self.steps = list(steps)
        names = [name for name, _ in self.steps]
        if len(set(names)) != len(names):
            raise ValueError(f"Pipeline step names must be unique, got {names}")

    def transform_schema(self, schema: Schema) -> Schema:
        for _, stage in self.steps:
            schema = stage.transform_schema(schema)
        return schema

    def fit(self, df: pd.DataFrame) -> 'PipelineModel':
        logger.info(f"[Pipeline] Fitting {len(self.steps)} stages on {len(df)} rows")
        start_time = time.time()
        # Dry run: a misconfigured stage list fails here, before any data is touched.
        self.transform_schema(infer_schema(df))
        fitted = []
        current = df
        for i, (name, stage) in enumerate(self.steps):
            stage_start = time.time()
            try:
                model = clone(stage).fit(current)
                if i < len(self.steps) - 1:
                    current = model.transform(current)
            except QuestionPairsError:
                raise
            except Exception as e:
                logger.error(f"Error fitting stage {name}: {e}")
                raise FitFailure(f"Stage '{name}' failed to fit: {e}") from e
            fitted.append((name, model))
            logger.debug(f"[Pipeline] Stage {name} fitted in {time.time() - stage_start:.2f}s")
        logger.info(f"[Pipeline] Fit complete. Time: {time.time() - start_time:.2f}s")
        return PipelineModel(fitted)


class PipelineModel:
    """Fitted counterpart of :class:`Pipeline`; stages are reachable by name."""

    def __init__(self, steps: Sequence[Step]):
        self.steps = list(steps)
        self.named_steps: Dict[str, object] = dict(self.steps)

    def __getitem__(self, name: str):
        return self.named_steps[name]

    def __len__(self):
        return len(self.steps)

    def transform_schema(self, schema: Schema) -> Schema:
        for _, stage in self.steps:
            schema = stage.transform_schema(schema)
        return schema

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        for _, stage in self.steps:
            df = stage.transform(df)
        return df


@dataclass
class FeatureStages:
    """Named handles on every stage of the question pair pipeline, in pipeline order."""
    cleaner: MultiColumnOperator
    tokenizer: MultiColumnOperator
    stopwords_remover: MultiColumnOperator
    count_vectorizer: MultiColumnOperator
    idf: MultiColumnOperator
    lda: MultiColumnOperator
    assembler: VectorAssembler
    labeler: DuplicateLabeler
    weighter: ClassWeighter
    classifier: LogisticRegressionClassifier

    ORDER = ('cleaner', 'tokenizer', 'stopwords_remover', 'count_vectorizer', 'idf', 'lda',
             'assembler', 'labeler', 'weighter', 'classifier')

    @property
    def steps(self) -> List[Step]:
        return [(name, getattr(self, name)) for name in self.ORDER]

    def to_pipeline(self) -> Pipeline:
        return Pipeline(self.steps)

    def explain(self) -> str:
        """One line per stage with its effective parameters, in pipeline order."""
        lines = []
        for name, stage in self.steps:
            if isinstance(stage, MultiColumnOperator):
                inner = stage.stage
                params = {k: v for k, v in inner.get_params(deep=False).items()
                          if k not in ("input_col", "output_col")}
                params.update(input_cols=list(stage.input_cols), output_cols=list(stage.output_cols),
                              fit_mode=stage.fit_mode)
            else:
                inner = stage
                params = stage.get_params(deep=False)
            body = ", ".join(f"{k}={_format_param(v)}" for k, v in sorted(params.items()))
            lines.append(f"{name} ({type(inner).__name__}): {body}")
        return "\n".join(lines)


class FeaturePipelineBuilder:
    """Builds the fixed stage sequence for pair classification from a :class:`PipelineConfig`.

    Stage order: clean, tokenize, remove stopwords, count terms, weight by IDF, fit topics,
    assemble question1 then question2 topic vectors, derive label and weight, classify.
    Building is pure: no data is read.
    """

    def build(self, config: PipelineConfig) -> FeatureStages:
        questions = config.question_cols

        def multi(stage, inputs: str, outputs: str, fit_mode: str = 'independent'):
            return MultiColumnOperator(stage=stage, input_cols=question_columns(questions, inputs),
                                       output_cols=question_columns(questions, outputs), fit_mode=fit_mode)

        tok = config.tokenizer
        vec = config.vectorizer
        lda = config.lda
        clf = config.classifier
        return FeatureStages(
            cleaner=multi(TextCleaner(), '', ''),
            tokenizer=multi(RegexTokenizer(pattern=tok.pattern, to_lowercase=tok.to_lowercase,
                                           min_token_length=tok.min_token_length), '', 'all_tokens'),
            stopwords_remover=multi(StopWordsRemover(stop_words=config.stopwords.stop_words,
                                                     case_sensitive=config.stopwords.case_sensitive),
                                    'all_tokens', 'tokens'),
            count_vectorizer=multi(CountVectorizerOperator(vocab_size=vec.vocab_size, min_df=vec.min_df),
                                   'tokens', 'tf', config.fit_mode),
            idf=multi(IdfOperator(smooth_idf=config.idf.smooth_idf, sublinear_tf=config.idf.sublinear_tf),
                      'tf', 'tfidf', config.fit_mode),
            lda=multi(LdaOperator(k=lda.k, max_iter=lda.max_iter, optimizer=lda.optimizer,
                                  random_state=lda.random_state),
                      'tfidf', 'lda', config.fit_mode),
            assembler=VectorAssembler(input_cols=question_columns(questions, 'lda'), output_col=FEATURES_COL),
            labeler=DuplicateLabeler(input_col=LABEL_SOURCE_COL, output_col=LABEL_COL),
            weighter=ClassWeighter(input_col=LABEL_SOURCE_COL, output_col=WEIGHT_COL,
                                   positive_weight=config.weights.positive,
                                   negative_weight=config.weights.negative),
            classifier=LogisticRegressionClassifier(
                features_col=FEATURES_COL, label_col=LABEL_COL, weight_col=WEIGHT_COL,
                probability_col=PROBABILITY_COL, raw_prediction_col=RAW_PREDICTION_COL,
                prediction_col=PREDICTION_COL, max_iter=clf.max_iter, reg_param=clf.reg_param,
                tol=clf.tol, fit_intercept=clf.fit_intercept),
        )
