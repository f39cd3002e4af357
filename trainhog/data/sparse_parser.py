"""
Sparse training file parser.

Reads the SVMlight/libsvm sample format, one sample per line:

    <label> <index1>:<value1> <index2>:<value2> ...

Indices are 1-based and strictly increasing within a line. In
precomputed-kernel mode every line starts with 0:<sample serial number>.

Parsing runs in two passes: the first counts samples and feature tokens
so the numpy storage can be sized exactly, the second fills and validates
it. Number conversion follows a fixed grammar, so the result never depends
on the host locale.
"""

import io
import logging
import math
import re
from pathlib import Path
from typing import Any, BinaryIO, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from ..errors import MalformedInputError
from .problem import TrainingProblem

logger = logging.getLogger(__name__)

_REAL = re.compile(r'[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?', re.ASCII)
_INDEX = re.compile(r'\d+', re.ASCII)


class SparseVectorParser:
    """
    Parses sparse training samples into a TrainingProblem.

    Comment handling differs between SVM packages (SVMlight accepts '#'
    comments, libsvm does not), so it is a constructor switch.
    """

    def __init__(self, allow_comments: bool = False, precomputed: bool = False):
        """
        Args:
            allow_comments: Skip '#' comment lines and trailing '# ...' remarks
            precomputed: Expect 0:<serial> as the first feature of every line
        """
        self.allow_comments = allow_comments
        self.precomputed = precomputed

    @classmethod
    def from_config(cls, data_config: Dict[str, Any], kernel: str = 'linear') -> 'SparseVectorParser':
        """Create a parser from the 'data' config section and the configured kernel."""
        return cls(
            allow_comments=data_config.get('allow_comments', False),
            precomputed=(kernel == 'precomputed'),
        )

    def parse(self, lines: Union[str, Iterable[str]], path: Optional[Union[str, Path]] = None) -> TrainingProblem:
        """
        Parse training samples from text lines.

        Args:
            lines: A string, or an iterable of lines (a one-shot iterator is
                buffered so it can be read twice)
            path: Source file name, only used in error messages

        Returns:
            The validated training problem

        Raises:
            MalformedInputError: with the 1-based line number of the first bad line
        """
        if isinstance(lines, str):
            # '\n' only, like file iteration; splitlines() would also break on form feeds and U+2028
            lines = list(io.StringIO(lines, newline='\n'))
        elif not isinstance(lines, Sequence):
            lines = list(lines)

        n_samples, n_elements = self._count(lines)
        return self._fill(lines, n_samples, n_elements, path)

    def parse_file(self, path: Union[str, Path]) -> TrainingProblem:
        """
        Parse a training file, reading it twice instead of buffering it.

        Raises:
            FileNotFoundError: if the file does not exist
            MalformedInputError: also for a line that is not valid UTF-8
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Training file not found: {path}")

        with open(path, 'rb') as f:
            n_samples, n_elements = self._count(self._decode(f, path))
            f.seek(0)
            problem = self._fill(self._decode(f, path), n_samples, n_elements, path)

        logger.info(f"Read {len(problem)} samples ({problem.n_elements} features, "
                    f"max index {problem.max_feature_index}) from {path}")
        return problem

    @staticmethod
    def _decode(raw_lines: BinaryIO, path: Path) -> Iterator[str]:
        """Decode a binary file line by line, so a bad byte is reported with its line number."""
        for line_number, raw in enumerate(raw_lines, start=1):
            try:
                yield raw.decode('utf-8')
            except UnicodeDecodeError as e:
                raise MalformedInputError(f"invalid encoding ({e.reason})", line_number, path) from e

    def _tokenize(self, line: str) -> Optional[List[str]]:
        """Split a line into tokens; None marks a comment-only line."""
        if self.allow_comments:
            hash_pos = line.find('#')
            if hash_pos >= 0:
                if not line[:hash_pos].strip():
                    return None
                line = line[:hash_pos]
        return line.split()

    def _count(self, lines: Iterable[str]) -> Tuple[int, int]:
        """First pass: number of samples and feature tokens."""
        n_samples = 0
        n_elements = 0
        for line in lines:
            tokens = self._tokenize(line)
            if tokens is None:
                continue
            n_samples += 1
            n_elements += max(len(tokens) - 1, 0)
        return n_samples, n_elements

    def _fill(self,
              lines: Iterable[str],
              n_samples: int,
              n_elements: int,
              path: Optional[Union[str, Path]]) -> TrainingProblem:
        """Second pass: validate every token and fill the preallocated arrays."""
        labels = np.empty(n_samples, dtype=np.float64)
        indptr = np.zeros(n_samples + 1, dtype=np.int64)
        indices = np.empty(n_elements, dtype=np.int64)
        values = np.empty(n_elements, dtype=np.float64)
        line_numbers = np.empty(n_samples, dtype=np.int64)

        max_index = 0
        sample = 0
        element = 0
        for line_number, line in enumerate(lines, start=1):
            tokens = self._tokenize(line)
            if tokens is None:
                continue
            if sample >= n_samples or element + len(tokens) - 1 > n_elements:
                raise ValueError("Training input changed between parser passes")
            if not tokens:
                raise MalformedInputError("empty line where a label is expected", line_number, path)

            labels[sample] = self._parse_real(tokens[0], "label", line_number, path)
            line_numbers[sample] = line_number

            previous = -1
            for position, token in enumerate(tokens[1:]):
                index, value = self._parse_feature(token, line_number, path)
                if index <= previous:
                    raise MalformedInputError(
                        f"feature index {index} is not greater than previous index {previous}",
                        line_number, path)
                if self.precomputed and position == 0:
                    if index != 0:
                        raise MalformedInputError(
                            "first column must be 0:sample_serial_number", line_number, path)
                elif index < 1:
                    raise MalformedInputError(
                        f"feature index must be a positive integer, got '{token}'", line_number, path)
                indices[element] = index
                values[element] = value
                previous = index
                element += 1

            if self.precomputed and len(tokens) == 1:
                raise MalformedInputError(
                    "first column must be 0:sample_serial_number", line_number, path)

            max_index = max(max_index, previous)
            sample += 1
            indptr[sample] = element

        if sample != n_samples:
            raise ValueError("Training input changed between parser passes")

        if self.precomputed:
            self._check_serial_numbers(indptr, values, line_numbers, max_index, path)

        return TrainingProblem(
            labels=labels,
            indptr=indptr,
            indices=indices[:element],
            values=values[:element],
            max_feature_index=max_index,
            precomputed=self.precomputed,
        )

    @staticmethod
    def _parse_real(token: str, what: str, line_number: int, path) -> float:
        if not _REAL.fullmatch(token):
            raise MalformedInputError(f"invalid {what} '{token}'", line_number, path)
        value = float(token)
        if not math.isfinite(value):
            raise MalformedInputError(f"{what} '{token}' is out of range", line_number, path)
        return value

    def _parse_feature(self, token: str, line_number: int, path) -> Tuple[int, float]:
        index_str, sep, value_str = token.partition(':')
        if not sep or not _INDEX.fullmatch(index_str):
            raise MalformedInputError(
                f"feature '{token}' is not of the form <index>:<value>", line_number, path)
        return int(index_str), self._parse_real(value_str, "feature value", line_number, path)

    @staticmethod
    def _check_serial_numbers(indptr: np.ndarray,
                              values: np.ndarray,
                              line_numbers: np.ndarray,
                              max_index: int,
                              path) -> None:
        """Every 0:<serial> must name a sample between 1 and max_index."""
        for sample in range(len(line_numbers)):
            serial = values[indptr[sample]]
            if serial != int(serial) or not 1 <= serial <= max_index:
                raise MalformedInputError(
                    f"sample_serial_number {serial:g} out of range 1..{max_index}",
                    int(line_numbers[sample]), path)
