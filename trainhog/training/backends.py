"""
SVM backends.

Both backends wrap the libsvm solver bundled with scikit-learn:

- 'kernel': C-support-vector classification (SVC) on binary labels
- 'regression': epsilon-support-vector regression (SVR), regressing the
  +1/-1 labels directly

The backend is picked at runtime from configuration; callers only depend
on the SVMBackend interface.
"""

import logging
import warnings
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional, Tuple, Type, Union

import numpy as np
import scipy.sparse as sp
from scipy.special import expit
from sklearn.calibration import CalibratedClassifierCV
from sklearn.exceptions import ConvergenceWarning
from sklearn.svm import SVC, SVR

from ..data.problem import TrainingProblem, TrainingSample
from ..errors import TrainingFailedError
from .model import SupportVector, TrainedModel
from .parameters import TrainingParameters

logger = logging.getLogger(__name__)

SparseSample = Union[TrainingSample, SupportVector, Iterable[Tuple[int, float]]]


def as_sparse_arrays(sample: SparseSample) -> Tuple[np.ndarray, np.ndarray]:
    """Return (indices, values) arrays for a sample or a sequence of (index, value) pairs."""
    if hasattr(sample, 'indices') and hasattr(sample, 'values'):
        return np.asarray(sample.indices, dtype=np.int64), np.asarray(sample.values, dtype=np.float64)
    pairs = list(sample)
    if not pairs:
        return np.empty(0, dtype=np.int64), np.empty(0, dtype=np.float64)
    indices, values = zip(*pairs)
    return np.asarray(indices, dtype=np.int64), np.asarray(values, dtype=np.float64)


class SVMBackend(ABC):
    """Train/predict capability over one SVM formulation."""

    name = 'abstract'

    @abstractmethod
    def create_estimator(self, params: TrainingParameters) -> Any:
        """Create an unfitted solver configured with params."""

    def check_parameters(self, params: TrainingParameters) -> None:
        """Backend-specific parameter checks, on top of TrainingParameters.validate()."""

    def check_labels(self, labels: np.ndarray) -> None:
        """Backend-specific label checks."""

    def calibrate(self, params: TrainingParameters, X: Any, y: np.ndarray) -> Optional[Tuple[float, float]]:
        """Platt scaling constants (A, B) for probability estimates, or None when disabled."""
        return None

    def train(self, problem: TrainingProblem, params: TrainingParameters) -> TrainedModel:
        """
        Fit the solver on a training problem.

        Args:
            problem: Parsed training problem
            params: Training parameters (gamma already resolved)

        Returns:
            Trained model with extracted support vectors and bias

        Raises:
            TrainingFailedError: on invalid parameters, unusable labels,
                solver errors or non-convergence
        """
        params.validate()
        self.check_parameters(params)

        if len(problem) == 0:
            raise TrainingFailedError("Training problem contains no samples")
        precomputed = params.kernel == 'precomputed'
        if problem.precomputed != precomputed:
            raise TrainingFailedError(
                "Training problem and kernel disagree on precomputed-kernel mode "
                f"(problem precomputed={problem.precomputed}, kernel={params.kernel})")
        self.check_labels(problem.labels)

        X = problem.to_kernel_matrix() if precomputed else problem.to_csr()

        logger.info(f"Training {self.name} SVM ({params.kernel} kernel, C={params.C}) "
                    f"on {len(problem)} samples with {problem.n_features} features")
        with warnings.catch_warnings():
            warnings.simplefilter('error', ConvergenceWarning)
            try:
                estimator = self.create_estimator(params)
                estimator.fit(X, problem.labels)
                calibration = self.calibrate(params, X, problem.labels)
            except ConvergenceWarning as e:
                raise TrainingFailedError(f"Solver did not converge: {e}") from e
            except (ValueError, TypeError) as e:
                raise TrainingFailedError(f"Solver rejected training input: {e}") from e

        model = self._to_model(estimator, problem, params, calibration)
        logger.info(f"Training done: {model.n_support_vectors} support vectors, bias {model.bias:.6f}")
        return model

    def _to_model(self,
                  estimator: Any,
                  problem: TrainingProblem,
                  params: TrainingParameters,
                  calibration: Optional[Tuple[float, float]] = None) -> TrainedModel:
        """Copy support vectors, coefficients and bias out of a fitted estimator."""
        dual_coef = estimator.dual_coef_
        # sparse when the estimator was fit on a CSR matrix
        if sp.issparse(dual_coef):
            dual_coef = dual_coef.toarray()
        coefficients = np.asarray(dual_coef, dtype=np.float64)[0]
        support_vectors = []
        for k, sample_index in enumerate(estimator.support_):
            sample = problem[int(sample_index)]
            support_vectors.append(SupportVector(
                coefficient=float(coefficients[k]),
                indices=sample.indices,
                values=sample.values,
            ))

        return TrainedModel(
            support_vectors=tuple(support_vectors),
            bias=float(np.ravel(estimator.intercept_)[0]),
            kernel=params.kernel,
            backend=self.name,
            n_features=problem.n_features,
            probability_calibration=calibration,
            classes=self._classes(estimator),
            parameters=params.to_dict(),
            estimator=estimator,
            serials=problem.serial_numbers() if problem.precomputed else None,
        )

    @staticmethod
    def _classes(estimator: Any) -> Optional[Tuple[float, ...]]:
        classes = getattr(estimator, 'classes_', None)
        return tuple(float(c) for c in classes) if classes is not None else None

    def _sample_matrix(self, model: TrainedModel, sample: SparseSample) -> Any:
        """Shape one sparse sample the way the fitted estimator expects it."""
        indices, values = as_sparse_arrays(sample)
        if model.kernel == 'precomputed':
            row = np.zeros(model.n_features, dtype=np.float64)
            keep = (indices >= 1) & (indices <= model.n_features)
            row[indices[keep] - 1] = values[keep]
            return row[model.serials - 1][np.newaxis, :]

        keep = (indices >= 1) & (indices <= model.n_features)
        if not keep.all():
            logger.debug(f"Ignoring {int((~keep).sum())} features outside the trained dimensionality")
        return sp.csr_matrix(
            (values[keep], indices[keep] - 1, np.array([0, int(keep.sum())])),
            shape=(1, model.n_features)
        )

    def predict(self, model: TrainedModel, sample: SparseSample) -> Tuple[float, Optional[float]]:
        """
        Predict one sample.

        Returns:
            (label, probability estimate of that label or None)
        """
        if model.estimator is None:
            raise TrainingFailedError("Model carries no fitted estimator to predict with")
        X = self._sample_matrix(model, sample)
        label = float(model.estimator.predict(X)[0])
        return label, None


class KernelSVMBackend(SVMBackend):
    """Binary C-support-vector classification."""

    name = 'kernel'

    def create_estimator(self, params: TrainingParameters) -> SVC:
        return SVC(
            C=params.C,
            kernel=params.kernel,
            degree=params.degree,
            gamma=params.gamma,
            coef0=params.coef0,
            tol=params.tol,
            cache_size=params.cache_size,
            shrinking=params.shrinking,
            max_iter=params.max_iter,
            random_state=params.random_state,
        )

    def check_labels(self, labels: np.ndarray) -> None:
        classes = np.unique(labels)
        if len(classes) != 2:
            raise TrainingFailedError(
                f"Detector training needs exactly two classes, found {len(classes)}: {classes.tolist()}")

    def calibrate(self, params: TrainingParameters, X: Any, y: np.ndarray) -> Optional[Tuple[float, float]]:
        """
        Fit a sigmoid on cross-validated decision values (Platt scaling).

        Only the two sigmoid constants are kept; the detector itself stays
        the plain SVC decision function.
        """
        if not params.probability:
            return None
        calibrated = CalibratedClassifierCV(self.create_estimator(params), method='sigmoid', ensemble=False)
        calibrated.fit(X, y)
        sigmoid = calibrated.calibrated_classifiers_[0].calibrators[0]
        return float(sigmoid.a_), float(sigmoid.b_)

    def predict(self, model: TrainedModel, sample: SparseSample) -> Tuple[float, Optional[float]]:
        label, _ = super().predict(model, sample)
        if model.probability_calibration is None:
            return label, None
        a, b = model.probability_calibration
        decision = float(model.estimator.decision_function(self._sample_matrix(model, sample))[0])
        # P(classes[1] | x) = 1 / (1 + exp(A * f(x) + B))
        positive = float(expit(-(a * decision + b)))
        return label, positive if label == model.classes[-1] else 1.0 - positive


class RegressionSVMBackend(SVMBackend):
    """Epsilon-support-vector regression on the sample labels."""

    name = 'regression'

    def create_estimator(self, params: TrainingParameters) -> SVR:
        return SVR(
            kernel=params.kernel,
            degree=params.degree,
            gamma=params.gamma,
            coef0=params.coef0,
            tol=params.tol,
            C=params.C,
            epsilon=params.epsilon,
            shrinking=params.shrinking,
            cache_size=params.cache_size,
            max_iter=params.max_iter,
        )

    def check_parameters(self, params: TrainingParameters) -> None:
        if params.probability:
            raise TrainingFailedError("Probability calibration is not available with the regression backend")


BACKENDS: Dict[str, Type[SVMBackend]] = {
    KernelSVMBackend.name: KernelSVMBackend,
    RegressionSVMBackend.name: RegressionSVMBackend,
}


def create_backend(name: str) -> SVMBackend:
    """Instantiate a backend by its config name ('kernel' or 'regression')."""
    try:
        return BACKENDS[name]()
    except KeyError:
        raise ValueError(f"Unknown SVM backend '{name}'. Available: {sorted(BACKENDS)}") from None
