"""
Generalization of single-column operators to ordered lists of columns.
"""
import copy
import logging
from typing import List, Sequence

import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin, clone
from sklearn.utils.validation import check_is_fitted

from question_pairs.config import FIT_MODES
from question_pairs.exceptions import ColumnCountMismatch, ConfigurationError
from question_pairs.schema import Schema, infer_schema

logger = logging.getLogger(__name__)


class MultiColumnOperator(BaseEstimator, TransformerMixin):
    """Applies one operator template to each ``(input_cols[k], output_cols[k])`` pair.

    In ``independent`` mode every pair gets its own clone of ``stage`` fitted only on its
    input column. In ``shared`` mode a single clone is fitted on all input columns stacked
    row-wise and then applied to each pair, so all pairs share learned state (for instance
    one vocabulary for both questions).
    """

    def __init__(self, stage=None, input_cols: Sequence[str] = (), output_cols: Sequence[str] = (),
                 fit_mode: str = 'independent'):
        self.stage = stage
        self.input_cols = input_cols
        self.output_cols = output_cols
        self.fit_mode = fit_mode
        self._validate()

    def _validate(self):
        if len(self.input_cols) != len(self.output_cols):
            raise ColumnCountMismatch(f"Got {len(self.input_cols)} input columns {list(self.input_cols)} "
                                      f"but {len(self.output_cols)} output columns {list(self.output_cols)}")
        if self.fit_mode not in FIT_MODES:
            raise ConfigurationError(f"Unknown fit_mode {self.fit_mode!r}, expected one of {FIT_MODES}")
        if self.input_cols and self.stage is None:
            raise ConfigurationError("MultiColumnOperator needs a stage to apply")

    def _pairs(self):
        return list(zip(self.input_cols, self.output_cols))

    def _instance(self, input_col: str, output_col: str):
        return clone(self.stage).set_params(input_col=input_col, output_col=output_col)

    def transform_schema(self, schema: Schema) -> Schema:
        self._validate()
        for input_col, output_col in self._pairs():
            schema = self._instance(input_col, output_col).transform_schema(schema)
        return schema

    def fit(self, df: pd.DataFrame, y=None):
        self.transform_schema(infer_schema(df))
        pairs = self._pairs()
        if self.fit_mode == 'shared' and pairs:
            first_in, first_out = pairs[0]
            stacked = pd.concat([df[col] for col in self.input_cols], ignore_index=True).to_frame(first_in)
            shared = self._instance(first_in, first_out).fit(stacked)
            self.models_ = [copy.deepcopy(shared).set_params(input_col=i, output_col=o) for i, o in pairs]
        else:
            self.models_ = [self._instance(i, o).fit(df) for i, o in pairs]
        logger.debug(f"[MultiColumnOperator] Fitted {len(self.models_)} {type(self.stage).__name__} "
                     f"instance(s) in {self.fit_mode} mode")
        return self

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        check_is_fitted(self, 'models_')
        for model in self.models_:
            df = model.transform(df)
        return df

    def model_for(self, input_col: str):
        """Fitted operator reading ``input_col``."""
        check_is_fitted(self, 'models_')
        for (col, _), model in zip(self._pairs(), self.models_):
            if col == input_col:
                return model
        raise KeyError(f"No fitted model reads column '{input_col}', inputs are {list(self.input_cols)}")

    @property
    def fitted_models(self) -> List:
        check_is_fitted(self, 'models_')
        return list(self.models_)
