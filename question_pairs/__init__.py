"""
Question pair duplicate classification: multi-column text feature pipeline, topic features,
weighted logistic regression and cross-validated grid search.
"""
from question_pairs.config import PipelineConfig, CrossValidationConfig, default_pipeline_config
from question_pairs.estimator import FittedPairModel, PairPipelineEstimator
from question_pairs.multi_column import MultiColumnOperator
from question_pairs.pipeline import FeaturePipelineBuilder
from question_pairs.tuning import GridSearchCrossValidator

__version__ = "0.1"
