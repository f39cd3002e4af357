"""Detector package: dense detector synthesis and export."""

from .export import load_detector, save_detector
from .synthesizer import DenseDetector, DetectorVectorSynthesizer

__all__ = ['DenseDetector', 'DetectorVectorSynthesizer', 'load_detector', 'save_detector']
