"""
Detector vector export.

The file holds one line of space-separated reals: the weights, optionally
followed by the bias. Numbers are always written with '.' as decimal
point and in their shortest exact form, so the file reads back bit for bit.
"""

import logging
from pathlib import Path
from typing import Union

import numpy as np

from ..data.problem import format_real
from ..errors import PersistenceError
from ..training.model_persistence import atomic_write
from .synthesizer import DenseDetector

logger = logging.getLogger(__name__)


def save_detector(detector: DenseDetector, path: Union[str, Path], include_bias: bool = True) -> Path:
    """
    Save a detector vector to a text file.

    Args:
        detector: Detector to save
        path: Output file
        include_bias: Append the bias as trailing value

    Returns:
        Path to the written file

    Raises:
        PersistenceError: if the file could not be written
    """
    path = Path(path)
    values = list(detector.weights)
    if include_bias:
        values.append(detector.bias)
    line = " ".join(format_real(v) for v in values) + "\n"

    def write(tmp: Path) -> None:
        with open(tmp, 'w', encoding='ascii') as f:
            f.write(line)

    atomic_write(path, write)
    logger.info(f"Saved {detector.dimension} descriptor vector features"
                f"{' plus bias' if include_bias else ''} to {path}")
    return path


def load_detector(path: Union[str, Path], has_bias: bool = True) -> DenseDetector:
    """
    Load a detector vector written by save_detector.

    Args:
        path: Detector file
        has_bias: The last value is the bias

    Raises:
        PersistenceError: if the file is missing or not a list of reals
    """
    path = Path(path)
    try:
        text = path.read_text(encoding='ascii')
    except (OSError, UnicodeDecodeError) as e:
        raise PersistenceError(f"Could not read detector file ({e})", path) from e

    try:
        values = np.array([float(token) for token in text.split()], dtype=np.float64)
    except ValueError as e:
        raise PersistenceError(f"Detector file contains a non-numeric value ({e})", path) from e

    minimum = 2 if has_bias else 1
    if len(values) < minimum:
        raise PersistenceError(f"Detector file holds {len(values)} values, expected at least {minimum}", path)

    if has_bias:
        return DenseDetector(weights=values[:-1], bias=values[-1])
    return DenseDetector(weights=values, bias=0.0)
