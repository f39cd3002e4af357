"""
Training module for the HOG detector pipeline.

This module provides:
- Runtime-selectable SVM backends (kernel classification, regression)
- Training parameters with automatic gamma derivation
- Model persistence and loading
"""

from .backends import BACKENDS, KernelSVMBackend, RegressionSVMBackend, SVMBackend, create_backend
from .model import SupportVector, TrainedModel
from .model_persistence import ModelPersistence
from .parameters import TrainingParameters
from .svm_trainer import SVMTrainer

__all__ = [
    'BACKENDS',
    'KernelSVMBackend',
    'ModelPersistence',
    'RegressionSVMBackend',
    'SVMBackend',
    'SVMTrainer',
    'SupportVector',
    'TrainedModel',
    'TrainingParameters',
    'create_backend',
]
