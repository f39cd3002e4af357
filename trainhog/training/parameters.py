"""
SVM training parameters shared by every backend.
"""

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..errors import TrainingFailedError

logger = logging.getLogger(__name__)

KERNELS = ('linear', 'poly', 'rbf', 'sigmoid', 'precomputed')

# Spellings accepted in config files
KERNEL_ALIASES = {
    'polynomial': 'poly',
    'radial': 'rbf',
    'radial_basis': 'rbf',
}


@dataclass(frozen=True)
class TrainingParameters:
    """
    Solver configuration.

    Defaults follow the HOG paper setup: linear kernel and a soft margin
    (C = 0.01). A gamma of 0 means "unset" and is replaced by
    1 / max_feature_index once the training problem is known.
    """
    kernel: str = 'linear'
    degree: int = 3
    gamma: float = 0.0
    coef0: float = 0.0
    C: float = 0.01
    epsilon: float = 0.1
    tol: float = 1e-3
    cache_size: float = 512.0
    probability: bool = False
    shrinking: bool = False
    max_iter: int = -1
    random_state: Optional[int] = 42

    @classmethod
    def from_config(cls, svm_config: Dict[str, Any]) -> 'TrainingParameters':
        """Build parameters from the 'training.svm' config section."""
        known = {f.name for f in dataclasses.fields(cls)}
        values = {}
        for key, value in svm_config.items():
            if key in known:
                values[key] = value
            elif key != 'backend':
                logger.warning(f"Ignoring unknown SVM parameter '{key}'")

        if 'kernel' in values:
            kernel = str(values['kernel']).lower()
            values['kernel'] = KERNEL_ALIASES.get(kernel, kernel)
        return cls(**values)

    @property
    def is_linear(self) -> bool:
        return self.kernel == 'linear'

    def validate(self) -> None:
        """Reject parameter sets the solver cannot work with."""
        if self.kernel not in KERNELS:
            raise TrainingFailedError(f"Unknown kernel '{self.kernel}', expected one of {KERNELS}")
        if self.C <= 0:
            raise TrainingFailedError(f"C must be positive, got {self.C}")
        if self.epsilon < 0:
            raise TrainingFailedError(f"epsilon must not be negative, got {self.epsilon}")
        if self.tol <= 0:
            raise TrainingFailedError(f"tol must be positive, got {self.tol}")
        if self.cache_size <= 0:
            raise TrainingFailedError(f"cache_size must be positive, got {self.cache_size}")
        if self.gamma < 0:
            raise TrainingFailedError(f"gamma must not be negative, got {self.gamma}")
        if self.kernel == 'poly' and self.degree < 0:
            raise TrainingFailedError(f"degree must not be negative, got {self.degree}")

    def resolve_gamma(self, max_feature_index: int) -> 'TrainingParameters':
        """
        Derive gamma from the feature dimensionality if it was left unset.

        Args:
            max_feature_index: Largest feature index seen in the training problem

        Returns:
            Parameters with gamma = 1 / max_feature_index when gamma is 0 and
            max_feature_index > 0, otherwise self
        """
        if self.gamma == 0 and max_feature_index > 0:
            return dataclasses.replace(self, gamma=1.0 / max_feature_index)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)
