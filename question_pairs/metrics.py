"""
Post-fit metrics and topic reports for fitted question pair models.
"""
import math
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from sklearn.metrics import auc, f1_score, jaccard_score, precision_recall_curve, roc_auc_score
from sklearn.preprocessing import MultiLabelBinarizer

from question_pairs.exceptions import MetricComputationError

logger = logging.getLogger(__name__)

LOG_LOSS_EPS = 1e-15


def scores_and_labels(df: pd.DataFrame, probability_col: str = 'p',
                      label_col: str = 'isDuplicateLabel') -> Tuple[np.ndarray, np.ndarray]:
    """Positive-class probability (last element of each probability vector) and label per row."""
    scores = np.array([float(np.asarray(p)[-1]) for p in df[probability_col]], dtype=float)
    labels = df[label_col].to_numpy(dtype=float)
    return scores, labels


def _require_both_classes(labels: np.ndarray, metric: str) -> None:
    if len(labels) == 0:
        raise MetricComputationError(f"{metric} is undefined for an empty dataset")
    present = np.unique(labels)
    if len(present) < 2:
        raise MetricComputationError(f"{metric} is undefined: only class {present[0]:g} is present in the labels")


def log_loss(scores: Sequence[float], labels: Sequence[float], complete: bool = False) -> float:
    """Mean negative log likelihood of the labels.

    By default only the positive-class term ``-mean(label * log(p))`` is summed, which is
    what the pipeline has always reported. ``complete=True`` adds the
    ``(1 - label) * log(1 - p)`` term of the usual binary log-loss. Probabilities are
    clipped to ``[1e-15, 1 - 1e-15]``.
    """
    scores = np.clip(np.asarray(scores, dtype=float), LOG_LOSS_EPS, 1 - LOG_LOSS_EPS)
    labels = np.asarray(labels, dtype=float)
    if len(scores) == 0:
        raise MetricComputationError("logLoss is undefined for an empty dataset")
    total = labels * np.log(scores)
    if complete:
        total = total + (1 - labels) * np.log(1 - scores)
    return float(-total.mean())


def area_under_roc(scores: Sequence[float], labels: Sequence[float]) -> float:
    labels = np.asarray(labels, dtype=float)
    _require_both_classes(labels, 'areaUnderROC')
    return float(roc_auc_score(labels, np.asarray(scores, dtype=float)))


def area_under_pr(scores: Sequence[float], labels: Sequence[float]) -> float:
    """Trapezoidal area under the precision-recall curve."""
    labels = np.asarray(labels, dtype=float)
    _require_both_classes(labels, 'areaUnderPR')
    precision, recall, _ = precision_recall_curve(labels, np.asarray(scores, dtype=float))
    return float(auc(recall, precision))


def multilabel_metrics(scores: Sequence[float], labels: Sequence[float]) -> Tuple[float, float]:
    """Accuracy and F1 with each row's rounded prediction and label treated as singleton label sets."""
    scores = np.asarray(scores, dtype=float)
    if len(scores) == 0:
        raise MetricComputationError("accuracy/f1 are undefined for an empty dataset")
    # Half rounds up.
    predicted = np.floor(scores + 0.5).astype(int)
    actual = (np.asarray(labels, dtype=float) > 0).astype(int)
    binarizer = MultiLabelBinarizer(classes=[0, 1])
    y_pred = binarizer.fit_transform([[p] for p in predicted])
    y_true = binarizer.transform([[a] for a in actual])
    accuracy = jaccard_score(y_true, y_pred, average='samples')
    f1 = f1_score(y_true, y_pred, average='samples')
    return float(accuracy), float(f1)


@dataclass
class MetricsSummary:
    area_under_pr: float = math.nan
    area_under_roc: float = math.nan
    accuracy: float = math.nan
    f1: float = math.nan
    log_loss: float = math.nan
    failures: Dict[str, str] = field(default_factory=dict)

    def describe(self) -> str:
        return (f"area under pr {self.area_under_pr} and area under roc curve {self.area_under_roc}, "
                f"accuracy {self.accuracy} and f1 {self.f1}, log loss {self.log_loss}")


@dataclass
class TopicSummary:
    topic: int
    terms: List[str]
    weights: List[float]

    def describe(self) -> str:
        pairs = " ".join(f"{term} {weight:.3f}" for term, weight in zip(self.terms, self.weights))
        return f"{self.topic}: {pairs}"


class MetricsReporter:
    """Scores a fitted model on a dataset and reports its topics through the log."""

    def __init__(self, label_col: str = 'isDuplicateLabel', probability_col: str = 'p',
                 terms_per_topic: int = 10):
        self.label_col = label_col
        self.probability_col = probability_col
        self.terms_per_topic = terms_per_topic

    def score_arrays(self, model, df: pd.DataFrame) -> Tuple[np.ndarray, np.ndarray]:
        """Transform once and keep only the score and label arrays.

        Nothing returned references the transformed frame, so it is freed when this returns.
        """
        transformed = model.transform(df)
        scores, labels = scores_and_labels(transformed, self.probability_col, self.label_col)
        return scores, labels.copy()

    def compute(self, model, df: pd.DataFrame) -> MetricsSummary:
        summary = MetricsSummary()
        scores, labels = self.score_arrays(model, df)
        metrics = {
            'area_under_pr': lambda: area_under_pr(scores, labels),
            'area_under_roc': lambda: area_under_roc(scores, labels),
            'log_loss': lambda: log_loss(scores, labels),
        }
        for name, compute in metrics.items():
            try:
                setattr(summary, name, compute())
            except MetricComputationError as e:
                summary.failures[name] = str(e)
                logger.error(f"MetricComputationError for {name}: {e}")
        try:
            summary.accuracy, summary.f1 = multilabel_metrics(scores, labels)
        except MetricComputationError as e:
            summary.failures['accuracy'] = summary.failures['f1'] = str(e)
            logger.error(f"MetricComputationError for accuracy/f1: {e}")
        return summary

    def log_metrics(self, model, df: pd.DataFrame, params: str = '') -> MetricsSummary:
        summary = self.compute(model, df)
        logger.info(f"Trained a model with {summary.describe()}.\nParams are: {params}")
        return summary

    def describe_topics(self, model, question: Optional[str] = None,
                        max_terms: Optional[int] = None) -> List[TopicSummary]:
        """Heaviest terms of every topic of the question's topic model, heaviest first."""
        max_terms = max_terms or self.terms_per_topic
        vocabulary = model.vectorizer_vocabulary(question)
        topics = model.topic_model(question).describe_topics(max_terms)
        return [TopicSummary(topic=int(row.topic),
                             terms=[vocabulary[i] for i in row.termIndices],
                             weights=[float(w) for w in row.termWeights])
                for row in topics.itertuples(index=False)]

    @staticmethod
    def format_topics(topics: Sequence[TopicSummary]) -> str:
        return "\n".join(t.describe() for t in topics)

    def log_topics(self, model, questions: Optional[Sequence[str]] = None) -> Dict[str, List[TopicSummary]]:
        reports = {}
        for question in questions or model.question_cols:
            topics = self.describe_topics(model, question)
            logger.info(f"LDA model topics for {question} are:\n{self.format_topics(topics)}")
            reports[question] = topics
        return reports


def plot_topic_terms(topic: TopicSummary, max_display: int = 20):
    """Bar plot of one topic's heaviest terms."""
    data = pd.DataFrame({'term': topic.terms[:max_display], 'weight': topic.weights[:max_display]})
    plt.figure(figsize=(10, 6))
    sns.barplot(x='weight', y='term', data=data)
    plt.title(f"Top {len(data)} terms of topic {topic.topic}")
    plt.tight_layout()
    return plt.gcf()
