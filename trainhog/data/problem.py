"""
In-memory training problem for SVM detector training.

Samples are held in compressed sparse row layout (one label array plus the
indptr/indices/values triple) so that a training set of several thousand
HOG descriptors does not turn into several thousand Python objects.
"""

from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

import numpy as np
import scipy.sparse as sp


def format_real(value: float) -> str:
    """Shortest exact decimal form of a float, always with '.' as decimal point."""
    return repr(float(value))


def _readonly(array: np.ndarray) -> np.ndarray:
    array.flags.writeable = False
    return array


@dataclass(frozen=True, eq=False)
class TrainingSample:
    """One parsed training line: a real label and its sparse features."""
    label: float
    indices: np.ndarray
    values: np.ndarray

    @property
    def features(self) -> List[Tuple[int, float]]:
        """Sparse features as (index, value) pairs in ascending index order."""
        return [(int(i), float(v)) for i, v in zip(self.indices, self.values)]

    @property
    def max_index(self) -> int:
        return int(self.indices[-1]) if len(self.indices) else 0

    def to_line(self) -> str:
        """Serialize back to the sparse training file format."""
        parts = [format_real(self.label)]
        parts.extend(f"{int(i)}:{format_real(v)}" for i, v in zip(self.indices, self.values))
        return " ".join(parts)


class TrainingProblem:
    """
    Validated, owned collection of (label, sparse vector) pairs.

    Built once per training run by SparseVectorParser and consumed by
    the SVM trainer. Sparse index k maps to matrix column k-1.
    """

    def __init__(self,
                 labels: np.ndarray,
                 indptr: np.ndarray,
                 indices: np.ndarray,
                 values: np.ndarray,
                 max_feature_index: int,
                 precomputed: bool = False):
        if len(indptr) != len(labels) + 1:
            raise ValueError(f"indptr length {len(indptr)} does not match {len(labels)} labels")
        if indptr[-1] != len(indices) or len(indices) != len(values):
            raise ValueError("indices/values do not match indptr")

        self.labels = _readonly(np.asarray(labels, dtype=np.float64))
        self.indptr = _readonly(np.asarray(indptr, dtype=np.int64))
        self.indices = _readonly(np.asarray(indices, dtype=np.int64))
        self.values = _readonly(np.asarray(values, dtype=np.float64))
        self.max_feature_index = int(max_feature_index)
        self.precomputed = precomputed

    def __len__(self) -> int:
        return len(self.labels)

    def __getitem__(self, i: int) -> TrainingSample:
        if i < 0:
            i += len(self)
        if not 0 <= i < len(self):
            raise IndexError(f"sample index {i} out of range")
        start, end = self.indptr[i], self.indptr[i + 1]
        return TrainingSample(
            label=float(self.labels[i]),
            indices=self.indices[start:end],
            values=self.values[start:end],
        )

    def __iter__(self) -> Iterator[TrainingSample]:
        for i in range(len(self)):
            yield self[i]

    @property
    def n_features(self) -> int:
        return self.max_feature_index

    @property
    def n_elements(self) -> int:
        return len(self.indices)

    def class_counts(self) -> dict:
        """Number of samples per distinct label."""
        labels, counts = np.unique(self.labels, return_counts=True)
        return {float(label): int(count) for label, count in zip(labels, counts)}

    def to_csr(self, n_features: Optional[int] = None) -> sp.csr_matrix:
        """
        Build a scipy CSR matrix with sparse index k in column k-1.

        Args:
            n_features: Column count; defaults to max_feature_index. Entries
                beyond it are dropped.
        """
        if self.precomputed:
            raise ValueError("precomputed-kernel problems have no feature matrix; use to_kernel_matrix()")
        n_features = self.max_feature_index if n_features is None else int(n_features)

        keep = self.indices <= n_features
        if keep.all():
            return sp.csr_matrix(
                (self.values.copy(), self.indices - 1, self.indptr.copy()),
                shape=(len(self), n_features)
            )
        rows = np.repeat(np.arange(len(self)), np.diff(self.indptr))
        return sp.csr_matrix(
            (self.values[keep], (rows[keep], self.indices[keep] - 1)),
            shape=(len(self), n_features)
        )

    def serial_numbers(self) -> np.ndarray:
        """1-based sample serial numbers of a precomputed-kernel problem."""
        if not self.precomputed:
            raise ValueError("serial numbers only exist in precomputed-kernel mode")
        return self.values[self.indptr[:-1]].astype(np.int64)

    def to_kernel_matrix(self) -> np.ndarray:
        """
        Build the (n_samples, n_samples) Gram matrix of a precomputed-kernel problem.

        Row i holds K(x_i, x_j) for every training sample j, taken from the
        column named by sample j's serial number.
        """
        serials = self.serial_numbers()
        dense = np.zeros((len(self), self.max_feature_index), dtype=np.float64)
        for i, sample in enumerate(self):
            # skip the leading 0:serial entry
            dense[i, sample.indices[1:] - 1] = sample.values[1:]
        return dense[:, serials - 1]

    def to_lines(self) -> List[str]:
        return [sample.to_line() for sample in self]
