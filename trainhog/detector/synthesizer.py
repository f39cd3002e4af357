"""
Single detector vector synthesis.

For a linear kernel the SVM decision function

    f(x) = sum_i (alpha_i * y_i) <x_i, x> + b

collapses to f(x) = <w, x> + b with w = sum_i (alpha_i * y_i) x_i. This
module computes w from the support vectors of a trained model so it can be
used as a sliding-window detector (e.g. OpenCV's HOGDescriptor). For any
other kernel the sum has no meaning and synthesis is refused.

Sparse index k always lands in dense position k-1. The dense length is
fixed by the first support vector (or by the caller); entries of later
support vectors beyond it are dropped with a DimensionMismatchWarning.
"""

import logging
import warnings
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np
import scipy.sparse as sp

from ..errors import DimensionMismatchWarning, EmptyModelError, UnsupportedKernelError
from ..training.model import TrainedModel
from ..training.backends import SparseSample, as_sparse_arrays

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class DenseDetector:
    """
    Linear weight vector plus bias.

    Attributes:
        weights: Read-only float64 weights; position k-1 belongs to feature index k
        bias: Decision function offset, score = <weights, x> + bias
        skipped_entries: Out-of-range support vector entries dropped during synthesis
    """
    weights: np.ndarray
    bias: float
    skipped_entries: int = 0

    def __post_init__(self):
        weights = np.array(self.weights, dtype=np.float64)
        weights.flags.writeable = False
        object.__setattr__(self, 'weights', weights)
        object.__setattr__(self, 'bias', float(self.bias))

    def __len__(self) -> int:
        return len(self.weights)

    @property
    def dimension(self) -> int:
        return len(self.weights)

    def score(self, features: np.ndarray) -> float:
        """Decision value of one dense feature vector."""
        features = np.asarray(features, dtype=np.float64)
        if features.shape != self.weights.shape:
            raise ValueError(f"Feature vector has shape {features.shape}, detector expects {self.weights.shape}")
        return float(np.dot(self.weights, features) + self.bias)

    def score_sparse(self, sample: SparseSample) -> float:
        """Decision value of one sparse sample; indices beyond the detector count as zero weight."""
        indices, values = as_sparse_arrays(sample)
        keep = (indices >= 1) & (indices <= self.dimension)
        return float(np.dot(self.weights[indices[keep] - 1], values[keep]) + self.bias)

    def score_many(self, features: Any) -> np.ndarray:
        """Decision values for a (n_samples, dimension) dense array or sparse matrix."""
        if sp.issparse(features):
            return np.asarray(features @ self.weights).ravel() + self.bias
        return np.asarray(features, dtype=np.float64) @ self.weights + self.bias

    def as_hog_detector(self) -> np.ndarray:
        """
        Weights followed by the bias, as float32 for HOGDescriptor.setSVMDetector.

        Only meaningful when the training features came from cv2.HOGDescriptor
        with the same window parameters.
        """
        return np.append(self.weights, self.bias).astype(np.float32)


class DetectorVectorSynthesizer:
    """
    Collapses the support vectors of a linear SVM into one DenseDetector.
    """

    def __init__(self, dimension: Optional[int] = None):
        """
        Args:
            dimension: Known feature dimensionality; when set it replaces the
                length taken from the first support vector
        """
        self.dimension = dimension

    @classmethod
    def from_config(cls, detector_config: dict) -> 'DetectorVectorSynthesizer':
        return cls(dimension=detector_config.get('dimension'))

    def synthesize(self, model: TrainedModel, dimension: Optional[int] = None) -> DenseDetector:
        """
        Build the dense detector w = sum_i coef_i * x_i and copy the bias.

        Args:
            model: Trained model with a linear kernel
            dimension: Per-call override of the dense length

        Returns:
            Dense detector independent of the model

        Raises:
            EmptyModelError: if the model has no support vectors
            UnsupportedKernelError: if the model was not trained with a linear kernel
        """
        if not model.support_vectors:
            raise EmptyModelError("Model has no support vectors, cannot build a detector")
        if not model.is_linear:
            raise UnsupportedKernelError(
                f"Cannot collapse support vectors of a '{model.kernel}' kernel model into a "
                "linear detector; retrain with kernel 'linear'")

        if dimension is None:
            dimension = self.dimension
        if dimension is None:
            dimension = model.support_vectors[0].max_index
        if dimension <= 0:
            raise EmptyModelError("First support vector has no features, detector dimension is undefined")

        logger.info(f"Calculating single detecting feature vector of length {dimension} "
                    f"out of {model.n_support_vectors} support vectors")

        weights = np.zeros(dimension, dtype=np.float64)
        skipped = 0
        for number, sv in enumerate(model.support_vectors):
            positions = sv.indices - 1
            in_range = (positions >= 0) & (positions < dimension)
            if not in_range.all():
                dropped = int(np.count_nonzero(~in_range))
                skipped += dropped
                message = (f"Support vector {number}: {dropped} component(s) out of range, "
                           f"should have the same size as the first vector ({dimension})")
                logger.warning(message)
                warnings.warn(message, DimensionMismatchWarning, stacklevel=2)
            # indices are unique within a support vector, so fancy-index += is exact
            weights[positions[in_range]] += sv.values[in_range] * sv.coefficient

        if skipped:
            logger.warning(f"Skipped {skipped} out-of-range support vector entries in total")

        return DenseDetector(weights=weights, bias=model.bias, skipped_entries=skipped)
