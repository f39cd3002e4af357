"""Training data package: sparse sample parsing and the in-memory problem."""

from .problem import TrainingProblem, TrainingSample, format_real
from .sparse_parser import SparseVectorParser

__all__ = ['TrainingProblem', 'TrainingSample', 'SparseVectorParser', 'format_real']
