"""
Training file writer.

Writes feature vectors in the sparse sample format read by
SparseVectorParser: '+1'/'-1' labels and 1-based 'index:value' pairs.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

import numpy as np

from ..data.problem import format_real
from ..training.model_persistence import atomic_write

logger = logging.getLogger(__name__)


def format_label(label: float) -> str:
    """'+1'/'-1' for the two detector classes, shortest exact form otherwise."""
    if label == 1:
        return '+1'
    if label == -1:
        return '-1'
    return format_real(label)


def format_sample(label: float, features: np.ndarray, skip_zeros: bool = False) -> str:
    """Format one dense feature vector as a sparse training line."""
    parts = [format_label(label)]
    for index, value in enumerate(np.asarray(features, dtype=np.float64), start=1):
        if skip_zeros and value == 0:
            continue
        parts.append(f"{index}:{format_real(value)}")
    return " ".join(parts)


class TrainingFileWriter:
    """
    Streams (label, feature vector) pairs into a training file.

    Empty feature vectors (failed extractions) are skipped.
    """

    def __init__(self, comment_header: Optional[str] = None, skip_zeros: bool = False):
        """
        Args:
            comment_header: '#' line written first; leave None for backends
                that reject comments
            skip_zeros: Omit zero-valued components
        """
        self.comment_header = comment_header
        self.skip_zeros = skip_zeros

    @classmethod
    def from_config(cls, data_config: dict) -> 'TrainingFileWriter':
        header = None
        if data_config.get('allow_comments', False):
            header = data_config.get('comment_header', 'HOG training features, one sample per line')
        return cls(comment_header=header, skip_zeros=data_config.get('skip_zeros', False))

    def write(self, path: Union[str, Path], samples: Iterable[Tuple[float, np.ndarray]]) -> int:
        """
        Write samples to path.

        Returns:
            Number of samples written

        Raises:
            PersistenceError: if the file could not be written
        """
        path = Path(path)
        written = 0
        skipped = 0

        def write_lines(tmp: Path) -> None:
            nonlocal written, skipped
            with open(tmp, 'w', encoding='ascii') as f:
                if self.comment_header:
                    f.write(f"# {self.comment_header}\n")
                for label, features in samples:
                    if len(features) == 0:
                        skipped += 1
                        continue
                    f.write(format_sample(label, features, self.skip_zeros))
                    f.write("\n")
                    written += 1

        atomic_write(path, write_lines)
        logger.info(f"Wrote {written} samples to {path}" + (f" ({skipped} skipped)" if skipped else ""))
        return written
