"""
trainhog: train SVM-based HOG detectors.

Parses sparse training files, trains an SVM through a configurable
backend, and collapses the trained support vectors into a single linear
detector vector.
"""

from .errors import (
    DimensionMismatchWarning,
    EmptyModelError,
    MalformedInputError,
    PersistenceError,
    TrainHOGError,
    TrainingFailedError,
    UnsupportedKernelError,
)

__version__ = '1.0.0'

__all__ = [
    'DimensionMismatchWarning',
    'EmptyModelError',
    'MalformedInputError',
    'PersistenceError',
    'TrainHOGError',
    'TrainingFailedError',
    'UnsupportedKernelError',
]
