"""
Custom exceptions for the question pairs pipeline.
"""

class QuestionPairsError(Exception):
    """Base class for all question pairs pipeline errors."""
    pass

class ConfigurationError(QuestionPairsError):
    """Raised when a stage, stopword source or search grid is misconfigured."""
    pass

class ColumnCountMismatch(ConfigurationError):
    """Raised when a multi-column operator gets unequal input and output column lists."""
    pass

class SchemaError(QuestionPairsError):
    """Raised when a stage's required input column is missing or has the wrong kind."""
    pass

class FitFailure(QuestionPairsError):
    """Raised when fitting an operator, a pipeline or a grid point fails."""
    pass

class MetricComputationError(QuestionPairsError):
    """Raised when a metric is undefined for its inputs (e.g. a single class)."""
    pass
