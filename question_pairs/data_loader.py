"""
Loading of question pair CSV files into the dataset layout the pipeline expects.
"""
import logging
from typing import Optional

import pandas as pd

from question_pairs.config import LABEL_SOURCE_COL, QUESTION_COLS
from question_pairs.exceptions import SchemaError

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = list(QUESTION_COLS) + [LABEL_SOURCE_COL]
# Kaggle files spell the label column differently.
COLUMN_ALIASES = {'is_duplicate': LABEL_SOURCE_COL}


def validate_dataset(df: pd.DataFrame, require_label: bool = True) -> None:
    required = REQUIRED_COLUMNS if require_label else list(QUESTION_COLS)
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise SchemaError(f"Missing required columns: {missing}")


class QuestionPairsLoader:
    """Reads a question pairs CSV. Null questions are kept as they are."""
    def __init__(self, filepath: str, chunksize: Optional[int] = None):
        self.filepath = filepath
        self.chunksize = chunksize

    def _prepare(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.rename(columns=COLUMN_ALIASES)
        validate_dataset(df, require_label=LABEL_SOURCE_COL in df.columns)
        if LABEL_SOURCE_COL in df.columns:
            df[LABEL_SOURCE_COL] = df[LABEL_SOURCE_COL].astype(int).astype(bool)
        return df

    def load(self):
        if self.chunksize:
            return (self._prepare(chunk) for chunk in pd.read_csv(self.filepath, chunksize=self.chunksize))
        df = self._prepare(pd.read_csv(self.filepath))
        logger.info(f"Loaded {len(df)} question pairs from {self.filepath}")
        return df
