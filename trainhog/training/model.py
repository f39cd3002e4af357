"""
Trained SVM model as seen by the rest of the toolkit.

The solver's own estimator object is carried along for prediction, but
everything detector synthesis needs (support vectors, their signed
coefficients and the bias) is extracted into plain read-only fields.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np


@dataclass(frozen=True, eq=False)
class SupportVector:
    """A retained training sample with its signed weight alpha_i * y_i."""
    coefficient: float
    indices: np.ndarray
    values: np.ndarray

    def __post_init__(self):
        indices = np.array(self.indices, dtype=np.int64)
        values = np.array(self.values, dtype=np.float64)
        indices.flags.writeable = False
        values.flags.writeable = False
        object.__setattr__(self, 'indices', indices)
        object.__setattr__(self, 'values', values)
        object.__setattr__(self, 'coefficient', float(self.coefficient))

    @property
    def features(self) -> List[Tuple[int, float]]:
        return [(int(i), float(v)) for i, v in zip(self.indices, self.values)]

    @property
    def max_index(self) -> int:
        return int(self.indices[-1]) if len(self.indices) else 0


@dataclass(frozen=True, eq=False)
class TrainedModel:
    """
    Solver output consumed by detector synthesis and prediction.

    Attributes:
        support_vectors: Support vectors in solver order
        bias: Intercept b of the decision function f(x) = sum(coef_i K(sv_i, x)) + b
        kernel: Kernel the model was trained with
        backend: Name of the SVM backend that produced the model
        n_features: Largest feature index of the training problem
        probability_calibration: Platt scaling constants (A, B), if enabled
        classes: Class labels for classification backends
        parameters: Training parameters used
        estimator: Opaque solver object used for prediction
        serials: Training sample serial numbers (precomputed kernel only)
    """
    support_vectors: Tuple[SupportVector, ...]
    bias: float
    kernel: str
    backend: str
    n_features: int
    probability_calibration: Optional[Tuple[float, float]] = None
    classes: Optional[Tuple[float, ...]] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    estimator: Any = None
    serials: Optional[np.ndarray] = None

    @property
    def n_support_vectors(self) -> int:
        return len(self.support_vectors)

    @property
    def coefficients(self) -> np.ndarray:
        return np.array([sv.coefficient for sv in self.support_vectors], dtype=np.float64)

    @property
    def is_linear(self) -> bool:
        return self.kernel == 'linear'
