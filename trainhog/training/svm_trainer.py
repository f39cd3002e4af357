"""
SVM trainer facade.

Hides which SVM backend is in use behind one train/predict/save/load
surface. A trainer is an ordinary object built from configuration and
handed to whoever needs it; there is no process-wide instance.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from ..data.problem import TrainingProblem
from .backends import SVMBackend, SparseSample, create_backend
from .model import TrainedModel
from .model_persistence import ModelPersistence
from .parameters import TrainingParameters

logger = logging.getLogger(__name__)

DEFAULT_BACKEND = 'regression'


class SVMTrainer:
    """
    Trains detector SVMs through a configurable backend.

    Supports:
    - 'kernel' backend (C-SVC, optional probability calibration)
    - 'regression' backend (epsilon-SVR on +1/-1 labels)
    """

    def __init__(self,
                 training_config: Dict[str, Any],
                 models_dir: Optional[Union[str, Path]] = None):
        """
        Initialize SVM trainer.

        Args:
            training_config: The 'training' config section
            models_dir: Directory for timestamped model files
        """
        self.config = training_config
        self.svm_config = training_config.get('svm', {})

        self.backend: SVMBackend = create_backend(self.svm_config.get('backend', DEFAULT_BACKEND))
        self.parameters = TrainingParameters.from_config(self.svm_config)
        self.persistence = ModelPersistence(models_dir)

        logger.info(f"SVM trainer initialized: backend={self.backend.name}, kernel={self.parameters.kernel}")

    @property
    def backend_name(self) -> str:
        return self.backend.name

    def train(self, problem: TrainingProblem, params: Optional[TrainingParameters] = None) -> TrainedModel:
        """
        Train a model on a parsed training problem.

        Args:
            problem: Training problem from SparseVectorParser
            params: Override the configured parameters

        Returns:
            Trained model

        Raises:
            TrainingFailedError: if the solver rejects the problem or parameters
        """
        params = params or self.parameters
        resolved = params.resolve_gamma(problem.max_feature_index)
        if resolved.gamma != params.gamma:
            logger.info(f"gamma unset, derived 1/{problem.max_feature_index} = {resolved.gamma:.6g}")
        return self.backend.train(problem, resolved)

    def predict(self, model: TrainedModel, sample: SparseSample) -> Tuple[float, Optional[float]]:
        """
        Predict one sparse sample.

        Returns:
            (label, probability estimate or None)
        """
        return self.backend.predict(model, sample)

    def save(self, model: TrainedModel, model_path: Union[str, Path]) -> Path:
        """Save a model; raises PersistenceError on failure."""
        return self.persistence.save(model, model_path)

    def load(self, model_path: Union[str, Path]) -> TrainedModel:
        """Load a model; raises PersistenceError on missing or incomplete files."""
        model = self.persistence.load(model_path)
        if model.backend != self.backend.name:
            logger.warning(f"Loaded model was trained with the '{model.backend}' backend, "
                           f"trainer is configured for '{self.backend.name}'")
        return model
