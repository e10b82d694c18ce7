"""Configuration loader for emotion_recognition"""

import yaml
from pathlib import Path
from typing import Any, Dict
import os


PROJECT_ROOT = Path(__file__).resolve().parents[2]


class Config:
    """Configuration manager for emotion_recognition"""

    def __init__(self, config_path: str = None):
        if config_path is None:
            config_path = self._default_path()

        self.config_path = Path(config_path)
        self._config = self._load_config()

    @staticmethod
    def _default_path() -> Path:
        """Pick the config file for the current environment.

        Looks in ./config first, then in the project's own config directory;
        an environment-specific file wins over the default one in either place.
        """
        env = os.getenv('EMOTION_ENV', 'development')
        for base in (Path("config"), PROJECT_ROOT / "config"):
            env_config = base / f"config.{env}.yaml"
            if env_config.exists():
                return env_config
            default_config = base / "config.yaml"
            if default_config.exists():
                return default_config
        return Path("config/config.yaml")

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file"""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        with open(self.config_path, 'r') as f:
            return yaml.safe_load(f) or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation

        Args:
            key: Configuration key in dot notation (e.g., 'benchmark.repeats')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split('.')
        value = self._config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default

    def __getitem__(self, key: str) -> Any:
        """Allow dictionary-style access"""
        return self.get(key)

    def validate(self) -> None:
        """Validate configuration values"""
        from emotion_recognition.models.enums import FeatureVariant
        from emotion_recognition.models.errors import ConfigurationError

        test_fraction = self.get('training.test_fraction')
        if test_fraction is not None and not 0 < test_fraction < 1:
            raise ValueError(f"Invalid test_fraction: {test_fraction}, must be in (0, 1)")

        repeats = self.get('benchmark.repeats')
        if repeats is not None and repeats <= 0:
            raise ValueError(f"Invalid benchmark repeats: {repeats}, must be positive")

        exponents = self.get('benchmark.iteration_exponents')
        if exponents is not None:
            if not exponents:
                raise ValueError("benchmark.iteration_exponents must not be empty")
            if any(b <= a for a, b in zip(exponents, exponents[1:])):
                raise ValueError(
                    f"benchmark.iteration_exponents must be strictly ascending: {exponents}"
                )

        max_iterations = self.get('training.max_iterations', {})
        for name, budget in max_iterations.items():
            try:
                FeatureVariant.parse(name)
            except ConfigurationError as e:
                raise ValueError(f"Invalid training.max_iterations key: {e}") from e
            if budget <= 0:
                raise ValueError(f"Invalid max_iterations for {name}: {budget}, must be positive")


# Global config instance
config = Config()
