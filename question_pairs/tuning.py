"""
Grid search over pipeline hyperparameters with k-fold cross-validation.
"""
import time
import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.model_selection import KFold, ParameterGrid, StratifiedKFold

from question_pairs.config import (
    LABEL_SOURCE_COL, CrossValidationConfig, PipelineConfig, StopwordsConfig,
    default_cross_validation_config, default_pipeline_config, load_stopwords,
)
from question_pairs.estimator import FittedPairModel, PairPipelineEstimator
from question_pairs.evaluation import make_evaluator
from question_pairs.exceptions import FitFailure
from question_pairs.schema import BOOLEAN, INTEGER, infer_schema, require_column

logger = logging.getLogger(__name__)


class SearchState(Enum):
    CONFIGURED = 'configured'
    FITTING = 'fitting'
    SCORING = 'scoring'
    SELECTED = 'selected'


@dataclass(frozen=True)
class GridPoint:
    """One value for every searched hyperparameter."""
    stopwords: str
    vocab_size: int
    num_topics: int
    min_df: float
    lda_max_iter: int
    classifier_max_iter: int

    def apply(self, config: PipelineConfig, stopword_sets: Dict[str, Tuple[str, ...]]) -> PipelineConfig:
        return config.with_overrides(
            stopwords=StopwordsConfig(stop_words=stopword_sets[self.stopwords],
                                      case_sensitive=config.stopwords.case_sensitive, source=self.stopwords),
            vectorizer={'vocab_size': self.vocab_size, 'min_df': self.min_df},
            lda={'k': self.num_topics, 'max_iter': self.lda_max_iter},
            classifier={'max_iter': self.classifier_max_iter},
        )

    def describe(self) -> str:
        return ", ".join(f"{k}={v}" for k, v in asdict(self).items())


@dataclass(frozen=True)
class FoldResult:
    grid_index: int
    grid_point: GridPoint
    fold: int
    score: float


@dataclass
class CrossValidatorResult:
    grid: List[GridPoint]
    fold_results: List[FoldResult]
    average_scores: List[float]
    best_index: int
    best_model: FittedPairModel
    metric_name: str
    is_larger_better: bool

    @property
    def best_point(self) -> GridPoint:
        return self.grid[self.best_index]

    @property
    def best_config(self) -> PipelineConfig:
        return self.best_model.config

    @property
    def score_matrix(self) -> pd.DataFrame:
        """Grid point x fold validation scores, with the grid point's values and the mean score."""
        rows = []
        for index, point in enumerate(self.grid):
            row = {'grid_index': index, **asdict(point)}
            for result in self.fold_results:
                if result.grid_index == index:
                    row[f"fold_{result.fold}"] = result.score
            row['mean'] = self.average_scores[index]
            rows.append(row)
        return pd.DataFrame(rows).set_index('grid_index')


def _fit_and_score(estimator: PairPipelineEstimator, evaluator, df: pd.DataFrame, train_idx, val_idx,
                   grid_index: int, point: GridPoint, fold: int) -> FoldResult:
    logger.info(f"[CrossValidator] Fitting grid point {grid_index} on fold {fold}: {point.describe()}")
    try:
        model = estimator.fit(df.iloc[train_idx])
        score = evaluator.evaluate(model.transform(df.iloc[val_idx]))
    except Exception as e:
        logger.error(f"Grid point {grid_index} failed on fold {fold}: {e}")
        raise FitFailure(f"Grid point {grid_index} ({point.describe()}) failed on fold {fold}: "
                         f"{type(e).__name__}: {e}") from e
    logger.info(f"[CrossValidator] Grid point {grid_index} fold {fold}: {evaluator.metric_name}={score}")
    return FoldResult(grid_index=grid_index, grid_point=point, fold=fold, score=score)


class GridSearchCrossValidator:
    """Exhaustive search of a Cartesian hyperparameter grid, scored by k-fold cross-validation.

    Every grid point is fitted once per fold on that fold's training split and scored on its
    held-out split. The grid point with the best mean score is refit on the full dataset.
    Any failing fit aborts the whole search.
    """

    def __init__(self, config: Optional[CrossValidationConfig] = None,
                 base_config: Optional[PipelineConfig] = None):
        self.config = config if config is not None else default_cross_validation_config()
        self.base_config = base_config if base_config is not None else default_pipeline_config()
        self.evaluator = make_evaluator(self.config.metric)
        self.stopword_sets = {path: load_stopwords(path) for path in self.config.stopwords}
        self.state = SearchState.CONFIGURED

    def _set_state(self, state: SearchState) -> None:
        logger.info(f"[CrossValidator] {self.state.name} -> {state.name}")
        self.state = state

    def build_grid(self) -> List[GridPoint]:
        return [GridPoint(**params) for params in ParameterGrid(self.config.grid())]

    def split(self, df: pd.DataFrame) -> List[Tuple[np.ndarray, np.ndarray]]:
        if self.config.stratified:
            kf = StratifiedKFold(n_splits=self.config.num_folds, shuffle=True, random_state=self.config.seed)
            return list(kf.split(df, df[LABEL_SOURCE_COL].astype(int)))
        kf = KFold(n_splits=self.config.num_folds, shuffle=True, random_state=self.config.seed)
        return list(kf.split(df))

    def fit(self, df: pd.DataFrame) -> CrossValidatorResult:
        require_column(infer_schema(df), LABEL_SOURCE_COL, (BOOLEAN, INTEGER), type(self).__name__)
        start_time = time.time()
        grid = self.build_grid()
        # Build every configuration up front so an invalid grid value fails before any fitting.
        configs = [point.apply(self.base_config, self.stopword_sets) for point in grid]
        folds = self.split(df)
        logger.info(f"[CrossValidator] Searching {len(grid)} grid points x {len(folds)} folds "
                    f"scored by {self.evaluator.metric_name}")

        self._set_state(SearchState.FITTING)
        tasks = [
            delayed(_fit_and_score)(PairPipelineEstimator(configs[index], report=self.config.report_folds),
                                    self.evaluator, df, train_idx, val_idx, index, point, fold)
            for fold, (train_idx, val_idx) in enumerate(folds)
            for index, point in enumerate(grid)
        ]
        fold_results = Parallel(n_jobs=self.config.n_jobs)(tasks)

        self._set_state(SearchState.SCORING)
        scores = np.full((len(grid), len(folds)), np.nan)
        for result in fold_results:
            scores[result.grid_index, result.fold] = result.score
        average_scores = scores.mean(axis=1)
        larger_is_better = self.evaluator.is_larger_better()
        best_index = int(np.argmax(average_scores) if larger_is_better else np.argmin(average_scores))
        logger.info(f"[CrossValidator] Best grid point {best_index} ({grid[best_index].describe()}) "
                    f"with mean {self.evaluator.metric_name} {average_scores[best_index]}")

        best_model = PairPipelineEstimator(configs[best_index]).fit(df)
        self._set_state(SearchState.SELECTED)
        logger.info(f"[CrossValidator] Search complete. Time: {time.time() - start_time:.2f}s")
        return CrossValidatorResult(
            grid=grid,
            fold_results=sorted(fold_results, key=lambda r: (r.grid_index, r.fold)),
            average_scores=[float(s) for s in average_scores],
            best_index=best_index,
            best_model=best_model,
            metric_name=self.evaluator.metric_name,
            is_larger_better=larger_is_better,
        )
