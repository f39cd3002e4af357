"""
Evaluation Module for the HOG Detector Pipeline
===============================================

Training-set dry run of a synthesized detector.
"""

from .training_set_test import TrainingSetTester

__all__ = ['TrainingSetTester']
