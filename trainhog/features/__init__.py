"""Features package: sample scanning, HOG extraction and training file output."""

from .file_scanner import list_files
from .hog_extractor import HOGExtractor
from .training_file import TrainingFileWriter, format_sample

__all__ = ['HOGExtractor', 'TrainingFileWriter', 'format_sample', 'list_files']
