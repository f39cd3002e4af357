# tests/conftest.py
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

import numpy as np
import pytest

from trainhog.data import SparseVectorParser, TrainingProblem, format_real
from trainhog.training import SupportVector, TrainedModel

POSITIVE_CENTER = np.array([2.0, 2.0, 1.0, -1.0])
NEGATIVE_CENTER = -POSITIVE_CENTER


def to_line(label: float, features: Sequence[float]) -> str:
    parts = ['+1' if label > 0 else '-1']
    parts.extend(f"{i}:{format_real(v)}" for i, v in enumerate(features, start=1))
    return " ".join(parts)


@pytest.fixture(scope="session")
def separable_lines() -> List[str]:
    """
    40 samples in 4 dimensions, two well separated clusters.

    Every feature is non-zero, so every sample lists all four indices.
    """
    rng = np.random.RandomState(0)
    lines = []
    for _ in range(20):
        lines.append(to_line(+1, POSITIVE_CENTER + 0.3 * rng.randn(4)))
        lines.append(to_line(-1, NEGATIVE_CENTER + 0.3 * rng.randn(4)))
    return lines


@pytest.fixture
def separable_problem(separable_lines) -> TrainingProblem:
    return SparseVectorParser().parse(separable_lines)


@pytest.fixture
def features_file(tmp_path: Path, separable_lines) -> Path:
    p = tmp_path / "features.dat"
    p.write_text("\n".join(separable_lines) + "\n", encoding="utf-8")
    return p


@pytest.fixture
def make_model():
    """
    Factory for TrainedModel objects built by hand.

    Usage:
        model = make_model([(2.0, [(1, 1.0)]), (-1.0, [(1, 3.0)])], bias=0.5)
    """

    def _make(support_vectors: Iterable[Tuple[float, Sequence[Tuple[int, float]]]],
              bias: float = 0.0,
              kernel: str = 'linear') -> TrainedModel:
        svs = []
        for coefficient, pairs in support_vectors:
            indices = np.array([i for i, _ in pairs], dtype=np.int64)
            values = np.array([v for _, v in pairs], dtype=np.float64)
            svs.append(SupportVector(coefficient, indices, values))
        n_features = max((sv.max_index for sv in svs), default=0)
        return TrainedModel(
            support_vectors=tuple(svs),
            bias=bias,
            kernel=kernel,
            backend='kernel',
            n_features=n_features,
        )

    return _make
