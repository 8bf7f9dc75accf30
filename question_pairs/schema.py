"""
Column kinds, schema inference and vector column helpers.

A schema is an ordered mapping of column name to column kind. Operators use it
for a dry-run check of the whole pipeline before any data is touched.
"""
from typing import Dict, Iterable, List, Sequence

import numpy as np
import pandas as pd
import scipy.sparse as sp

from question_pairs.exceptions import SchemaError

TEXT = 'text'
TOKENS = 'tokens'
SPARSE_VECTOR = 'sparse_vector'
VECTOR = 'vector'
BOOLEAN = 'boolean'
INTEGER = 'integer'
DOUBLE = 'double'

Schema = Dict[str, str]


def is_null(value) -> bool:
    return value is None or value is pd.NA or (isinstance(value, float) and np.isnan(value))


def _object_kind(series: pd.Series) -> str:
    value = next((v for v in series if not is_null(v)), None)
    if value is None:
        return TEXT
    if isinstance(value, str):
        return TEXT
    if isinstance(value, (list, tuple)):
        return TOKENS
    if sp.issparse(value):
        return SPARSE_VECTOR
    if isinstance(value, np.ndarray):
        return VECTOR
    if isinstance(value, (bool, np.bool_)):
        return BOOLEAN
    return TEXT


def infer_schema(df: pd.DataFrame) -> Schema:
    schema = {}
    for col in df.columns:
        dtype = df[col].dtype
        if len(df) and df[col].isna().all():
            # pandas reads a column with no values as float64; it is null text.
            schema[col] = TEXT
        elif pd.api.types.is_bool_dtype(dtype):
            schema[col] = BOOLEAN
        elif pd.api.types.is_integer_dtype(dtype):
            schema[col] = INTEGER
        elif pd.api.types.is_float_dtype(dtype):
            schema[col] = DOUBLE
        elif pd.api.types.is_string_dtype(dtype) and not pd.api.types.is_object_dtype(dtype):
            schema[col] = TEXT
        else:
            schema[col] = _object_kind(df[col])
    return schema


def require_column(schema: Schema, column: str, kinds: Sequence[str], stage: str) -> None:
    if column not in schema:
        raise SchemaError(f"{stage} requires column '{column}' which is not in the schema {list(schema)}")
    if schema[column] not in kinds:
        raise SchemaError(f"{stage} requires column '{column}' to be one of {list(kinds)}, "
                          f"but it is {schema[column]}")


def stack_sparse(values: Iterable) -> sp.csr_matrix:
    return sp.vstack(list(values), format='csr')


def stack_dense(values: Iterable) -> np.ndarray:
    return np.vstack([np.asarray(v, dtype=float) for v in values])


def split_rows(matrix) -> List:
    """Split a 2-D matrix into one row per list element, keeping sparse rows sparse."""
    if sp.issparse(matrix):
        # csr_matrix rows stay 2-D (1 x n); sparse array rows would not.
        matrix = sp.csr_matrix(matrix)
        return [matrix[i] for i in range(matrix.shape[0])]
    return [row for row in np.asarray(matrix)]


def to_column(values: Sequence, index: pd.Index) -> pd.Series:
    """Wrap per-row objects (token lists, vectors) in an object Series without numpy broadcasting them."""
    cells = np.empty(len(values), dtype=object)
    for i, value in enumerate(values):
        cells[i] = value
    return pd.Series(cells, index=index, dtype=object)
