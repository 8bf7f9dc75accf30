"""
Single-number evaluators used to score held-out folds.
"""
import pandas as pd

from question_pairs.exceptions import ConfigurationError
from question_pairs.metrics import area_under_pr, area_under_roc, log_loss, scores_and_labels


class BinaryClassificationEvaluator:
    """Ranking metrics on the positive-class probability; larger is better."""
    METRICS = {
        'areaUnderROC': area_under_roc,
        'areaUnderPR': area_under_pr,
    }

    def __init__(self, metric_name: str = 'areaUnderROC', label_col: str = 'isDuplicateLabel',
                 probability_col: str = 'p'):
        if metric_name not in self.METRICS:
            raise ConfigurationError(f"Unknown metric {metric_name!r}, expected one of {list(self.METRICS)}")
        self.metric_name = metric_name
        self.label_col = label_col
        self.probability_col = probability_col

    def evaluate(self, df: pd.DataFrame) -> float:
        scores, labels = scores_and_labels(df, self.probability_col, self.label_col)
        return self.METRICS[self.metric_name](scores, labels)

    def is_larger_better(self) -> bool:
        return True


class LogLossEvaluator(BinaryClassificationEvaluator):
    """Log-loss of the positive-class probability; smaller is better."""
    METRICS = {'logLoss': log_loss}

    def __init__(self, label_col: str = 'isDuplicateLabel', probability_col: str = 'p', complete: bool = False):
        super().__init__('logLoss', label_col=label_col, probability_col=probability_col)
        self.complete = complete

    def evaluate(self, df: pd.DataFrame) -> float:
        scores, labels = scores_and_labels(df, self.probability_col, self.label_col)
        return log_loss(scores, labels, complete=self.complete)

    def is_larger_better(self) -> bool:
        return False


def make_evaluator(metric_name: str):
    if metric_name == 'logLoss':
        return LogLossEvaluator()
    return BinaryClassificationEvaluator(metric_name)
