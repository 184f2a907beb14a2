"""
Configuration management for H2GNN.

This module provides the configuration objects for the hyperbolic network and
its layers, with validation, defaults and JSON round-tripping. A configuration
object is always passed explicitly to the network constructor; nothing here is
process-wide state.
"""

import json
import logging
from dataclasses import dataclass, asdict, fields
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional, Sequence, Union, TYPE_CHECKING

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from .core.types import TrainingData


class LogLevel(Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class GeometryMode(Enum):
    """Geometry the network reports and regularises against."""
    EUCLIDEAN = "euclidean"
    HYPERBOLIC = "hyperbolic"
    ADAPTIVE = "adaptive"

    @classmethod
    def coerce(cls, value: Union[str, "GeometryMode"]) -> "GeometryMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigurationError(
                f"Unsupported geometry mode: {value}",
                {"supported": [m.value for m in cls]}
            ) from None


def _require_positive(name: str, value) -> None:
    if value is None or value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")


def _require_dropout(value: float) -> None:
    if not (0.0 <= value < 1.0):
        raise ConfigurationError(f"Dropout must be in [0, 1), got {value}")


@dataclass
class LayerConfig:
    """Configuration shared by the hyperbolic layers."""
    input_dim: int
    output_dim: int
    learning_rate: float = 0.01
    dropout: float = 0.0
    num_heads: int = 1

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Validate layer configuration parameters."""
        _require_positive("Input dimension", self.input_dim)
        _require_positive("Output dimension", self.output_dim)
        _require_positive("Learning rate", self.learning_rate)
        _require_positive("Number of heads", self.num_heads)
        _require_dropout(self.dropout)


@dataclass
class H2GNNConfig:
    """Configuration of the hyperbolic graph network and its training loop."""
    curvature: float = -1.0
    learning_rate: float = 0.01
    embedding_dim: int = 8
    num_layers: int = 3
    num_heads: int = 4
    dropout: float = 0.1
    batch_size: int = 32
    max_epochs: int = 100
    tolerance: float = 1e-6
    geometry_mode: GeometryMode = GeometryMode.HYPERBOLIC
    geometric_loss_weight: float = 0.1
    clustering_threshold: float = 1.0
    weight_decay: float = 0.0
    clip_norm: Optional[float] = 1.0
    seed: Optional[int] = None

    def __post_init__(self):
        self.geometry_mode = GeometryMode.coerce(self.geometry_mode)
        self.validate()

    def validate(self) -> None:
        """Validate network configuration parameters."""
        _require_positive("Embedding dimension", self.embedding_dim)
        _require_positive("Number of layers", self.num_layers)
        _require_positive("Number of heads", self.num_heads)
        _require_positive("Batch size", self.batch_size)
        _require_positive("Max epochs", self.max_epochs)
        _require_positive("Learning rate", self.learning_rate)
        _require_dropout(self.dropout)

        if self.tolerance < 0:
            raise ConfigurationError(f"Tolerance must be non-negative, got {self.tolerance}")
        if self.geometric_loss_weight < 0:
            raise ConfigurationError(
                f"Geometric loss weight must be non-negative, got {self.geometric_loss_weight}"
            )
        if self.clustering_threshold <= 0:
            raise ConfigurationError(
                f"Clustering threshold must be positive, got {self.clustering_threshold}"
            )
        if self.weight_decay < 0:
            raise ConfigurationError(f"Weight decay must be non-negative, got {self.weight_decay}")
        if self.clip_norm is not None and self.clip_norm <= 0:
            raise ConfigurationError(f"Clip norm must be positive, got {self.clip_norm}")

        if self.curvature > 0:
            raise ConfigurationError(f"Curvature must not be positive, got {self.curvature}")
        if self.geometry_mode is GeometryMode.HYPERBOLIC and self.curvature >= 0:
            raise ConfigurationError(
                f"Hyperbolic geometry requires negative curvature, got {self.curvature}"
            )
        if self.embedding_dim % self.num_heads != 0:
            raise ConfigurationError(
                "Embedding dimension must be divisible by the number of heads",
                {"embedding_dim": self.embedding_dim, "num_heads": self.num_heads}
            )

    def layer_config(self, **overrides) -> LayerConfig:
        """Layer configuration for a square embedding_dim -> embedding_dim layer."""
        params = dict(
            input_dim=self.embedding_dim,
            output_dim=self.embedding_dim,
            learning_rate=self.learning_rate,
            dropout=self.dropout,
            num_heads=self.num_heads,
        )
        params.update(overrides)
        return LayerConfig(**params)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "H2GNNConfig":
        """Create configuration from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(config_dict) - known
        if unknown:
            logging.getLogger(__name__).warning(f"Ignoring unknown config keys: {sorted(unknown)}")
        return cls(**{k: v for k, v in config_dict.items() if k in known})

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> "H2GNNConfig":
        """Load configuration from JSON file."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        with open(config_path, "r") as f:
            config_dict = json.load(f)

        return cls.from_dict(config_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a JSON-serialisable dictionary."""
        config_dict = asdict(self)
        config_dict["geometry_mode"] = self.geometry_mode.value
        return config_dict

    def save(self, config_path: Union[str, Path]) -> None:
        """Save configuration to JSON file."""
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    def replace(self, **changes) -> "H2GNNConfig":
        """Return a validated copy with the given fields changed."""
        config_dict = self.to_dict()
        config_dict.update(changes)
        return H2GNNConfig.from_dict(config_dict)


@dataclass
class TrainingConfig:
    """Per-call overrides accepted by ``H2GNN.train``."""
    learning_rate: Optional[float] = None
    batch_size: Optional[int] = None
    epochs: Optional[int] = None
    validation_data: Optional[Sequence["TrainingData"]] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Validate the overrides that were supplied."""
        if self.learning_rate is not None:
            _require_positive("Learning rate", self.learning_rate)
        if self.batch_size is not None:
            _require_positive("Batch size", self.batch_size)
        if self.epochs is not None:
            _require_positive("Epochs", self.epochs)

    def apply(self, config: H2GNNConfig) -> H2GNNConfig:
        """Merge these overrides into a network configuration."""
        changes = {}
        if self.learning_rate is not None:
            changes["learning_rate"] = self.learning_rate
        if self.batch_size is not None:
            changes["batch_size"] = self.batch_size
        if self.epochs is not None:
            changes["max_epochs"] = self.epochs
        return config.replace(**changes) if changes else config


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: LogLevel = LogLevel.INFO
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_handler: Optional[Path] = None
    console_handler: bool = True
    logger_name: str = "h2gnn"

    def configure_logging(self) -> logging.Logger:
        """Configure the package logger and return it."""
        logger = logging.getLogger(self.logger_name)
        logger.handlers.clear()

        logger.setLevel(getattr(logging, self.level.value))

        formatter = logging.Formatter(self.format)

        if self.console_handler:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(formatter)
            logger.addHandler(console_handler)

        if self.file_handler:
            file_handler = logging.FileHandler(self.file_handler)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

        return logger


def get_default_config() -> H2GNNConfig:
    """Get default configuration."""
    return H2GNNConfig()


def load_config(config_path: Optional[Union[str, Path]] = None) -> H2GNNConfig:
    """Load configuration from file or return default."""
    if config_path is None:
        default_paths = [
            Path("h2gnn.json"),
            Path("~/.h2gnn/config.json").expanduser(),
        ]

        for path in default_paths:
            if path.exists():
                config_path = path
                break

    if config_path and Path(config_path).exists():
        return H2GNNConfig.from_file(config_path)
    else:
        return get_default_config()
