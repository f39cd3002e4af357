"""
Error taxonomy for the HOG detector training toolkit.

Parse and persistence errors abort the current operation and carry enough
context (line number, file path) for the caller to act on. Dimension
mismatches during detector synthesis are recovered locally and only
reported through DimensionMismatchWarning.
"""

from typing import Optional, Union
from pathlib import Path


class TrainHOGError(Exception):
    """Base class for all toolkit errors."""


class MalformedInputError(TrainHOGError, ValueError):
    """A training file line violates the sparse sample format."""

    def __init__(self, message: str, line_number: int, path: Optional[Union[str, Path]] = None):
        self.line_number = line_number
        self.path = str(path) if path is not None else None
        location = f"{self.path}:{line_number}" if self.path else f"line {line_number}"
        super().__init__(f"Wrong input format at {location}: {message}")


class EmptyModelError(TrainHOGError, ValueError):
    """Detector synthesis was requested on a model without support vectors."""


class UnsupportedKernelError(TrainHOGError, ValueError):
    """Linear accumulation was requested on a model trained with a non-linear kernel."""


class TrainingFailedError(TrainHOGError, RuntimeError):
    """The SVM solver rejected its parameters or did not converge."""


class PersistenceError(TrainHOGError, OSError):
    """Saving or loading a model or detector failed."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        self.path = str(path) if path is not None else None
        super().__init__(f"{message}: {self.path}" if self.path else message)


class DimensionMismatchWarning(UserWarning):
    """A support vector reaches past the dimensionality fixed by the first one."""
