"""
Model persistence module for saving and loading trained SVM models.

Models are stored as joblib packages with a JSON metadata sidecar for
human readability. Saving is atomic (write to a temporary file, then
rename), and loading refuses any package that does not carry everything
detector synthesis depends on.
"""

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import joblib
import numpy as np

from ..errors import PersistenceError
from .model import SupportVector, TrainedModel

logger = logging.getLogger(__name__)

PACKAGE_FORMAT = 'trainhog-svm-model'
PACKAGE_VERSION = 1

REQUIRED_KEYS = ('format', 'backend', 'kernel', 'bias', 'n_features',
                 'sv_indices', 'sv_values', 'coefficients')


def atomic_write(path: Path, writer) -> None:
    """
    Write a file through a temporary sibling and rename it into place.

    Args:
        path: Final file path
        writer: Callable receiving the temporary path to write to

    Raises:
        PersistenceError: if writing or renaming fails; no partial file is left behind
    """
    path = Path(path)
    tmp_path = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f'.{path.name}.', suffix='.tmp')
        os.close(fd)
        tmp_path = Path(tmp_name)
        writer(tmp_path)
        os.replace(tmp_path, path)
    except Exception as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise PersistenceError(f"Could not write file ({e})", path) from e


class ModelPersistence:
    """
    Handles saving and loading of trained SVM models and their metadata.
    """

    def __init__(self, models_dir: Optional[Union[str, Path]] = None):
        """
        Initialize model persistence handler.

        Args:
            models_dir: Directory for timestamped model files (used by save_model)
        """
        self.models_dir = Path(models_dir) if models_dir is not None else None

    def _to_package(self, model: TrainedModel) -> Dict[str, Any]:
        return {
            'format': PACKAGE_FORMAT,
            'version': PACKAGE_VERSION,
            'backend': model.backend,
            'kernel': model.kernel,
            'bias': float(model.bias),
            'n_features': int(model.n_features),
            'probability_calibration': model.probability_calibration,
            'classes': model.classes,
            'parameters': dict(model.parameters),
            'sv_indices': [sv.indices for sv in model.support_vectors],
            'sv_values': [sv.values for sv in model.support_vectors],
            'coefficients': model.coefficients,
            'serials': model.serials,
            'estimator': model.estimator,
            'timestamp': datetime.now().isoformat(),
        }

    def _metadata(self, model: TrainedModel) -> Dict[str, Any]:
        return {
            'backend': model.backend,
            'kernel': model.kernel,
            'bias': float(model.bias),
            'n_features': int(model.n_features),
            'n_support_vectors': model.n_support_vectors,
            'probability_calibration': model.probability_calibration,
            'classes': model.classes,
            'parameters': dict(model.parameters),
            'timestamp': datetime.now().isoformat(),
        }

    def save(self, model: TrainedModel, model_path: Union[str, Path], write_metadata: bool = True) -> Path:
        """
        Save a trained model to an explicit path.

        Args:
            model: Trained model
            model_path: Target .pkl file
            write_metadata: Also write <name>.json next to the model

        Returns:
            Path to the saved model file

        Raises:
            PersistenceError: if the model or its metadata could not be written
        """
        model_path = Path(model_path)
        package = self._to_package(model)
        atomic_write(model_path, lambda tmp: joblib.dump(package, tmp))

        if write_metadata:
            metadata = self._metadata(model)

            def write_json(tmp: Path) -> None:
                with open(tmp, 'w', encoding='utf-8') as f:
                    json.dump(metadata, f, indent=2, default=str)

            atomic_write(model_path.with_suffix('.json'), write_json)

        logger.info(f"Model saved: {model_path} ({model.n_support_vectors} support vectors)")
        return model_path

    def save_model(self, model: TrainedModel, name: str = 'detector') -> Path:
        """
        Save a model under a timestamped name in models_dir.

        Args:
            model: Trained model
            name: Name stem for the file

        Returns:
            Path to the saved model file
        """
        if self.models_dir is None:
            raise PersistenceError("No models directory configured")
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        model_filename = f"svm_{name}_model_{timestamp}.pkl"
        return self.save(model, self.models_dir / model_filename)

    def load(self, model_path: Union[str, Path]) -> TrainedModel:
        """
        Load a previously saved model.

        Args:
            model_path: Path to saved model file

        Returns:
            Fully populated trained model

        Raises:
            PersistenceError: if the file is missing, unreadable or incomplete
        """
        model_path = Path(model_path)
        if not model_path.exists():
            raise PersistenceError("Model file not found", model_path)

        try:
            package = joblib.load(model_path)
        except Exception as e:
            raise PersistenceError(f"Could not read model package ({e})", model_path) from e

        model = self._from_package(package, model_path)
        logger.info(f"Model loaded: {model.backend}/{model.kernel} with {model.n_support_vectors} "
                    f"support vectors, bias {model.bias:.5f} from {model_path.name}")
        return model

    def _from_package(self, package: Any, model_path: Path) -> TrainedModel:
        if not isinstance(package, dict) or package.get('format') != PACKAGE_FORMAT:
            raise PersistenceError("Not a trainhog model package", model_path)
        missing = [key for key in REQUIRED_KEYS if package.get(key) is None]
        if missing:
            raise PersistenceError(f"Model package is missing {missing}", model_path)

        sv_indices = package['sv_indices']
        sv_values = package['sv_values']
        coefficients = np.asarray(package['coefficients'], dtype=np.float64)
        if not (len(sv_indices) == len(sv_values) == len(coefficients)):
            raise PersistenceError(
                f"Model package has {len(sv_indices)} support vectors but "
                f"{len(coefficients)} coefficients", model_path)

        support_vectors = []
        for indices, values, coefficient in zip(sv_indices, sv_values, coefficients):
            indices = np.asarray(indices, dtype=np.int64)
            values = np.asarray(values, dtype=np.float64)
            if len(indices) != len(values):
                raise PersistenceError("Support vector indices and values differ in length", model_path)
            support_vectors.append(SupportVector(float(coefficient), indices, values))

        bias = float(package['bias'])
        if not np.isfinite(bias):
            raise PersistenceError(f"Model bias is not finite: {bias}", model_path)

        calibration = package.get('probability_calibration')
        classes = package.get('classes')
        return TrainedModel(
            support_vectors=tuple(support_vectors),
            bias=bias,
            kernel=package['kernel'],
            backend=package['backend'],
            n_features=int(package['n_features']),
            probability_calibration=tuple(calibration) if calibration is not None else None,
            classes=tuple(classes) if classes is not None else None,
            parameters=package.get('parameters') or {},
            estimator=package.get('estimator'),
            serials=package.get('serials'),
        )

    def list_available_models(self, pattern: str = "svm_*_model_*.pkl") -> List[Path]:
        """
        List all available model files in the models directory.

        Args:
            pattern: Glob pattern for model files

        Returns:
            List of model file paths
        """
        if self.models_dir is None or not self.models_dir.exists():
            return []
        return sorted(self.models_dir.glob(pattern))
