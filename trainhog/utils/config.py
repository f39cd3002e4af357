"""
YAML configuration for the detector training pipeline.

The file is split into sections (paths, data, features, training,
detector, evaluation, system); every section is a mapping and may be left
out, in which case an empty dict is returned and each consumer falls back
to its own defaults.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, Union

SECTIONS = ('paths', 'data', 'features', 'training', 'detector', 'evaluation', 'system')


class Config:
    """Lazily loaded YAML configuration with one accessor per section."""

    def __init__(self, config_path: Union[str, Path] = "config.yaml"):
        self.config_path = Path(config_path)
        self._config = None

    def load(self) -> Dict[str, Any]:
        """
        Read and check the YAML file.

        Raises:
            FileNotFoundError: if the file does not exist
            ValueError: if the document or one of its sections is not a mapping
        """
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        with open(self.config_path, 'r', encoding='utf-8') as f:
            document = yaml.safe_load(f)

        if document is None:
            document = {}
        if not isinstance(document, dict):
            raise ValueError(f"Config file {self.config_path} must contain a mapping of sections")
        for section in SECTIONS:
            value = document.get(section)
            if value is not None and not isinstance(value, dict):
                raise ValueError(f"Config section '{section}' in {self.config_path} must be a mapping, "
                                 f"got {type(value).__name__}")

        self._config = document
        return self._config

    def get(self, section: str, default: Any = None) -> Any:
        """Return a section, or default when it is missing or empty."""
        if self._config is None:
            self.load()
        value = self._config.get(section)
        return default if value is None else value

    def to_dict(self) -> Dict[str, Any]:
        if self._config is None:
            self.load()
        return self._config

    @property
    def paths(self) -> Dict[str, Any]:
        """Sample directories and output file names."""
        return self.get('paths', {})

    @property
    def data(self) -> Dict[str, Any]:
        """Training file format options."""
        return self.get('data', {})

    @property
    def features(self) -> Dict[str, Any]:
        return self.get('features', {})

    @property
    def training(self) -> Dict[str, Any]:
        """SVM backend and solver parameters."""
        return self.get('training', {})

    @property
    def detector(self) -> Dict[str, Any]:
        return self.get('detector', {})

    @property
    def evaluation(self) -> Dict[str, Any]:
        return self.get('evaluation', {})

    @property
    def system(self) -> Dict[str, Any]:
        return self.get('system', {})


def load_config(config_path: Union[str, Path] = "config.yaml") -> Config:
    """Load and check configuration from a YAML file."""
    config = Config(config_path)
    config.load()
    return config
