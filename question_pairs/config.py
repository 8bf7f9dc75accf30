"""
Immutable configuration objects and default values for the question pairs pipeline.
"""
import os
import re
import string
import logging
from dataclasses import dataclass, field, replace, asdict
from typing import Any, Dict, Optional, Sequence, Tuple

import yaml

from question_pairs.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

QUESTION_COLS = ('question1', 'question2')
LABEL_SOURCE_COL = 'isDuplicate'

# Any ASCII punctuation character or a space is a token boundary.
DEFAULT_TOKEN_PATTERN = "[" + re.escape(string.punctuation) + " ]"

LDA_OPTIMIZERS = ('online', 'batch')
FIT_MODES = ('independent', 'shared')


def default_stopwords_path() -> str:
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), 'resources', 'stopwords.txt')


def default_stopwords() -> Tuple[str, ...]:
    """Words of the packaged stopword file, the default for both fitting and cross-validation."""
    return load_stopwords(default_stopwords_path())


def load_stopwords(path: str) -> Tuple[str, ...]:
    """Read a stopword source: comma separated normalized words, possibly over several lines."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            content = ",".join(line.strip() for line in f)
    except OSError as e:
        raise ConfigurationError(f"Could not read stopwords file {path}: {e}") from e
    words = [w.strip() for w in content.split(",") if w.strip()]
    if not words:
        raise ConfigurationError(f"Stopwords file {path} contains no stopwords")
    malformed = [w for w in words if re.search(r"\s", w)]
    if malformed:
        raise ConfigurationError(f"Stopwords file {path} has entries with inner whitespace: {malformed[:5]}")
    return tuple(words)


@dataclass(frozen=True)
class TokenizerConfig:
    pattern: str = DEFAULT_TOKEN_PATTERN
    to_lowercase: bool = True
    min_token_length: int = 1

    def __post_init__(self):
        try:
            re.compile(self.pattern)
        except re.error as e:
            raise ConfigurationError(f"Invalid tokenizer pattern {self.pattern!r}: {e}") from e
        if self.min_token_length < 0:
            raise ConfigurationError(f"min_token_length must be >= 0, got {self.min_token_length}")


@dataclass(frozen=True)
class StopwordsConfig:
    stop_words: Tuple[str, ...] = field(default_factory=default_stopwords)
    case_sensitive: bool = False
    # None when the words were given inline.
    source: Optional[str] = field(default_factory=default_stopwords_path)

    def __post_init__(self):
        if isinstance(self.stop_words, str):
            raise ConfigurationError("stop_words must be a sequence of words, not a single string")
        object.__setattr__(self, 'stop_words', tuple(self.stop_words))

    @classmethod
    def from_file(cls, path: str, case_sensitive: bool = False) -> 'StopwordsConfig':
        return cls(stop_words=load_stopwords(path), case_sensitive=case_sensitive, source=path)


@dataclass(frozen=True)
class VectorizerConfig:
    # Large enough to keep the full vocabulary of the Quora training questions.
    vocab_size: int = 1 << 18
    # >= 1 is an absolute number of documents, < 1 a fraction of them.
    min_df: float = 1.0

    def __post_init__(self):
        if self.vocab_size < 1:
            raise ConfigurationError(f"vocab_size must be positive, got {self.vocab_size}")
        if self.min_df < 0:
            raise ConfigurationError(f"min_df must be >= 0, got {self.min_df}")


@dataclass(frozen=True)
class IdfConfig:
    smooth_idf: bool = True
    sublinear_tf: bool = False


@dataclass(frozen=True)
class LdaConfig:
    k: int = 10
    max_iter: int = 20
    # "online" runs in memory and is fast; "batch" passes over all documents every iteration.
    optimizer: str = 'online'
    terms_per_topic: int = 10
    random_state: int = 0

    def __post_init__(self):
        if self.k < 2:
            raise ConfigurationError(f"LDA needs at least 2 topics, got k={self.k}")
        if self.max_iter < 1:
            raise ConfigurationError(f"LDA max_iter must be positive, got {self.max_iter}")
        if self.optimizer not in LDA_OPTIMIZERS:
            raise ConfigurationError(f"Unknown LDA optimizer {self.optimizer!r}, expected one of {LDA_OPTIMIZERS}")
        if self.terms_per_topic < 1:
            raise ConfigurationError(f"terms_per_topic must be positive, got {self.terms_per_topic}")


@dataclass(frozen=True)
class WeightConfig:
    # Duplicates are oversampled in the training set relative to the scored population.
    # See https://www.kaggle.com/davidthaler/how-many-1-s-are-in-the-public-lb
    positive: float = 0.47
    negative: float = 1.3

    def __post_init__(self):
        if self.positive <= 0 or self.negative <= 0:
            raise ConfigurationError(f"Class weights must be positive, got {self.positive}/{self.negative}")


@dataclass(frozen=True)
class ClassifierConfig:
    max_iter: int = 100
    reg_param: float = 0.0
    tol: float = 1e-6
    fit_intercept: bool = True

    def __post_init__(self):
        if self.max_iter < 1:
            raise ConfigurationError(f"Classifier max_iter must be positive, got {self.max_iter}")
        if self.reg_param < 0:
            raise ConfigurationError(f"reg_param must be >= 0, got {self.reg_param}")


SECTIONS = {
    'tokenizer': TokenizerConfig,
    'stopwords': StopwordsConfig,
    'vectorizer': VectorizerConfig,
    'idf': IdfConfig,
    'lda': LdaConfig,
    'weights': WeightConfig,
    'classifier': ClassifierConfig,
}


@dataclass(frozen=True)
class PipelineConfig:
    """Effective configuration of every stage of the pair pipeline."""
    tokenizer: TokenizerConfig = field(default_factory=TokenizerConfig)
    stopwords: StopwordsConfig = field(default_factory=StopwordsConfig)
    vectorizer: VectorizerConfig = field(default_factory=VectorizerConfig)
    idf: IdfConfig = field(default_factory=IdfConfig)
    lda: LdaConfig = field(default_factory=LdaConfig)
    weights: WeightConfig = field(default_factory=WeightConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    fit_mode: str = 'independent'
    question_cols: Tuple[str, ...] = QUESTION_COLS

    def __post_init__(self):
        for name, cls in SECTIONS.items():
            if not isinstance(getattr(self, name), cls):
                raise ConfigurationError(f"Section {name!r} must be a {cls.__name__}")
        if self.fit_mode not in FIT_MODES:
            raise ConfigurationError(f"Unknown fit_mode {self.fit_mode!r}, expected one of {FIT_MODES}")
        object.__setattr__(self, 'question_cols', tuple(self.question_cols))

    def with_overrides(self, **sections: Any) -> 'PipelineConfig':
        """Return a copy with whole sections replaced or, given a dict, individual fields of a section.

        >>> cfg = default_pipeline_config().with_overrides(lda={'k': 20}, classifier=ClassifierConfig(max_iter=5))
        """
        changes = {}
        for name, value in sections.items():
            if name in SECTIONS and isinstance(value, dict):
                try:
                    value = replace(getattr(self, name), **value)
                except TypeError as e:
                    raise ConfigurationError(f"Invalid override for {name!r}: {e}") from e
            elif name not in SECTIONS and name not in ('fit_mode', 'question_cols'):
                raise ConfigurationError(f"Unknown configuration section {name!r}")
            changes[name] = value
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def default_pipeline_config() -> PipelineConfig:
    return PipelineConfig()


def pipeline_config_from_dict(data: Optional[Dict[str, Any]]) -> PipelineConfig:
    """Build a PipelineConfig from the ``pipeline`` section of a YAML config."""
    data = dict(data or {})
    overrides: Dict[str, Any] = {}
    stopwords = data.pop('stopwords', None)
    if stopwords:
        source = stopwords.get('source')
        case_sensitive = stopwords.get('case_sensitive', False)
        if source:
            overrides['stopwords'] = StopwordsConfig.from_file(source, case_sensitive=case_sensitive)
        else:
            section = {k: v for k, v in stopwords.items() if k != 'source'}
            if 'stop_words' in section:
                section['source'] = None
            overrides['stopwords'] = section
    for name, value in data.items():
        overrides[name] = value
    return default_pipeline_config().with_overrides(**overrides)


@dataclass(frozen=True)
class CrossValidationConfig:
    """Candidate values for every searched hyperparameter plus the search settings."""
    stopwords: Tuple[str, ...] = field(default_factory=lambda: (default_stopwords_path(),))
    vocab_size: Tuple[int, ...] = (10000,)
    num_topics: Tuple[int, ...] = (20,)
    min_df: Tuple[float, ...] = (2.0,)
    lda_max_iter: Tuple[int, ...] = (100,)
    classifier_max_iter: Tuple[int, ...] = (100,)
    num_folds: int = 2
    metric: str = 'areaUnderROC'
    seed: int = 42
    stratified: bool = True
    n_jobs: int = 1
    report_folds: bool = False

    GRID_FIELDS = ('stopwords', 'vocab_size', 'num_topics', 'min_df', 'lda_max_iter', 'classifier_max_iter')

    def __post_init__(self):
        for name in self.GRID_FIELDS:
            values = getattr(self, name)
            if isinstance(values, (str, int, float)):
                values = (values,)
            values = tuple(values)
            if not values:
                raise ConfigurationError(f"Grid candidate list {name!r} is empty")
            object.__setattr__(self, name, values)
        if self.num_folds < 2:
            raise ConfigurationError(f"num_folds must be at least 2, got {self.num_folds}")

    def grid(self) -> Dict[str, Sequence]:
        return {name: list(getattr(self, name)) for name in self.GRID_FIELDS}


def default_cross_validation_config() -> CrossValidationConfig:
    return CrossValidationConfig()


def cross_validation_config_from_dict(data: Optional[Dict[str, Any]]) -> CrossValidationConfig:
    try:
        return CrossValidationConfig(**(data or {}))
    except TypeError as e:
        raise ConfigurationError(f"Invalid cross_validation section: {e}") from e


def load_config(path: str) -> Dict[str, Any]:
    with open(path, 'r') as f:
        config = yaml.safe_load(f)
    if not isinstance(config, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return config
