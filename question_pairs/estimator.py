"""
Top-level estimator for the question pair duplicate classifier.
"""
import time
import logging
from typing import List, Optional

import joblib
import numpy as np
import pandas as pd

from question_pairs.config import PipelineConfig, default_pipeline_config
from question_pairs.metrics import MetricsReporter
from question_pairs.pipeline import (
    FeaturePipelineBuilder, FeatureStages, PipelineModel, PROBABILITY_COL, question_columns,
)
from question_pairs.schema import Schema

logger = logging.getLogger(__name__)


class FittedPairModel:
    """A fitted pair pipeline with named access to the sub-models worth inspecting."""

    def __init__(self, pipeline_model: PipelineModel, config: PipelineConfig):
        self.pipeline_model = pipeline_model
        self.config = config

    @property
    def question_cols(self) -> List[str]:
        return list(self.config.question_cols)

    def _question(self, question: Optional[str]) -> str:
        question = question or self.question_cols[0]
        if question not in self.question_cols:
            raise KeyError(f"Unknown question column '{question}', expected one of {self.question_cols}")
        return question

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        return self.pipeline_model.transform(df)

    def predict_proba(self, df: pd.DataFrame) -> np.ndarray:
        """Probability of the duplicate class per row."""
        transformed = self.transform(df)
        return np.array([float(p[-1]) for p in transformed[PROBABILITY_COL]])

    def topic_model(self, question: Optional[str] = None):
        question = self._question(question)
        return self.pipeline_model['lda'].model_for(question_columns([question], 'tfidf')[0])

    def vectorizer_vocabulary(self, question: Optional[str] = None) -> List[str]:
        question = self._question(question)
        return self.pipeline_model['count_vectorizer'].model_for(question_columns([question], 'tokens')[0]).vocabulary_

    @property
    def classifier(self):
        return self.pipeline_model['classifier']

    def save(self, path: str) -> None:
        joblib.dump(self, path)
        logger.info(f"Saved fitted model to {path}")

    @classmethod
    def load(cls, path: str) -> 'FittedPairModel':
        model = joblib.load(path)
        if not isinstance(model, cls):
            raise TypeError(f"{path} does not hold a {cls.__name__}, found {type(model).__name__}")
        return model


class PairPipelineEstimator:
    """Fits the full question pair pipeline and reports metrics and topics of the result.

    Args:
        config: effective configuration of every stage; defaults to ``default_pipeline_config()``.
        report: whether ``fit`` logs metrics and topics of the fitted model on the training data.
        reporter: metrics reporter to use; one is built from the config when omitted. A reporter
            passed here is kept by ``with_config`` and ``with_overrides``; a built one is rebuilt
            from the new config.
    """

    def __init__(self, config: Optional[PipelineConfig] = None, report: bool = True,
                 reporter: Optional[MetricsReporter] = None):
        self.config = config if config is not None else default_pipeline_config()
        self.report = report
        self.custom_reporter = reporter
        self.reporter = reporter if reporter is not None else MetricsReporter(
            terms_per_topic=self.config.lda.terms_per_topic)
        self.builder = FeaturePipelineBuilder()

    def with_config(self, config: PipelineConfig) -> 'PairPipelineEstimator':
        return PairPipelineEstimator(config, report=self.report, reporter=self.custom_reporter)

    def with_overrides(self, **sections) -> 'PairPipelineEstimator':
        return self.with_config(self.config.with_overrides(**sections))

    def build_stages(self) -> FeatureStages:
        return self.builder.build(self.config)

    def transform_schema(self, schema: Schema) -> Schema:
        return self.build_stages().to_pipeline().transform_schema(schema)

    def explain_params(self) -> str:
        stopwords = self.config.stopwords
        source = stopwords.source or 'inline list'
        lines = [
            f"stopwords source: {source} ({len(stopwords.stop_words)} words)",
            self.build_stages().explain(),
            f"terms per topic: {self.config.lda.terms_per_topic}",
        ]
        return "\n".join(lines)

    def fit(self, df: pd.DataFrame) -> FittedPairModel:
        params = self.explain_params()
        logger.info(f"Preparing to fit question pairs pipeline with params:\n{params}")
        start_time = time.time()
        pipeline_model = self.build_stages().to_pipeline().fit(df)
        model = FittedPairModel(pipeline_model, self.config)
        logger.info(f"[PairPipelineEstimator] Fit complete on {len(df)} rows. Time: {time.time() - start_time:.2f}s")
        if self.report:
            self._report(model, df, params)
        return model

    def _report(self, model: FittedPairModel, df: pd.DataFrame, params: str) -> None:
        # The fit already succeeded; a reporting error is logged and the model still returned.
        try:
            self.reporter.log_metrics(model, df, params)
            self.reporter.log_topics(model)
        except Exception as e:
            logger.error(f"Reporting failed after a successful fit: {type(e).__name__}: {e}")
