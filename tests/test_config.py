"""
Unit tests for the H2GNN configuration system.

Tests cover:
- Configuration creation and validation
- Serialization and deserialization
- Per-call training overrides
- Logging setup
"""

import json
import logging
import unittest

from h2gnn.config import (
    GeometryMode,
    H2GNNConfig,
    LayerConfig,
    LoggingConfig,
    LogLevel,
    TrainingConfig,
    get_default_config,
    load_config,
)
from h2gnn.exceptions import ConfigurationError
from tests import TestFixtures


class TestLayerConfig(unittest.TestCase):
    """Test LayerConfig class."""

    def test_default_creation(self):
        """Test creating LayerConfig with default values."""
        config = LayerConfig(input_dim=8, output_dim=4)

        self.assertEqual(config.input_dim, 8)
        self.assertEqual(config.output_dim, 4)
        self.assertEqual(config.learning_rate, 0.01)
        self.assertEqual(config.dropout, 0.0)
        self.assertEqual(config.num_heads, 1)

    def test_validation_dimensions(self):
        """Test that non-positive dimensions are rejected."""
        with self.assertRaises(ConfigurationError):
            LayerConfig(input_dim=0, output_dim=4)

        with self.assertRaises(ConfigurationError):
            LayerConfig(input_dim=8, output_dim=-1)

    def test_validation_learning_rate(self):
        """Test that a non-positive learning rate is rejected."""
        with self.assertRaises(ConfigurationError):
            LayerConfig(input_dim=8, output_dim=8, learning_rate=0.0)

    def test_validation_dropout(self):
        """Test dropout range validation."""
        with self.assertRaises(ConfigurationError):
            LayerConfig(input_dim=8, output_dim=8, dropout=1.0)

        config = LayerConfig(input_dim=8, output_dim=8, dropout=0.5)
        self.assertEqual(config.dropout, 0.5)


class TestH2GNNConfig(unittest.TestCase):
    """Test main H2GNNConfig class."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = TestFixtures.create_temp_dir()

    def tearDown(self):
        """Clean up test fixtures."""
        TestFixtures.cleanup_temp_dir(self.temp_dir)

    def test_default_creation(self):
        """Test creating H2GNNConfig with default values."""
        config = H2GNNConfig()

        self.assertEqual(config.curvature, -1.0)
        self.assertEqual(config.learning_rate, 0.01)
        self.assertEqual(config.embedding_dim, 8)
        self.assertEqual(config.num_layers, 3)
        self.assertEqual(config.num_heads, 4)
        self.assertEqual(config.dropout, 0.1)
        self.assertEqual(config.batch_size, 32)
        self.assertEqual(config.max_epochs, 100)
        self.assertEqual(config.tolerance, 1e-6)
        self.assertEqual(config.geometry_mode, GeometryMode.HYPERBOLIC)

    def test_geometry_mode_from_string(self):
        """Test that geometry modes given as strings are coerced."""
        config = H2GNNConfig(geometry_mode="Adaptive")
        self.assertIs(config.geometry_mode, GeometryMode.ADAPTIVE)

        with self.assertRaises(ConfigurationError):
            H2GNNConfig(geometry_mode="spherical")

    def test_validation_embedding_dim(self):
        """Test that a negative embedding dimension is rejected."""
        with self.assertRaises(ConfigurationError):
            H2GNNConfig(embedding_dim=-1)

    def test_validation_num_layers(self):
        """Test that zero layers are rejected."""
        with self.assertRaises(ConfigurationError):
            H2GNNConfig(num_layers=0)

    def test_validation_learning_rate(self):
        """Test that a negative learning rate is rejected."""
        with self.assertRaises(ConfigurationError):
            H2GNNConfig(learning_rate=-0.1)

    def test_validation_curvature(self):
        """Test curvature sign rules."""
        with self.assertRaises(ConfigurationError):
            H2GNNConfig(curvature=0.5)

        with self.assertRaises(ConfigurationError):
            H2GNNConfig(curvature=0.0, geometry_mode="hyperbolic")

        config = H2GNNConfig(curvature=0.0, geometry_mode="euclidean")
        self.assertEqual(config.curvature, 0.0)

    def test_validation_heads_divide_embedding(self):
        """Test that the number of heads must divide the embedding dimension."""
        with self.assertRaises(ConfigurationError):
            H2GNNConfig(embedding_dim=8, num_heads=3)

    def test_configuration_error_is_value_error(self):
        """Test that configuration errors can be caught as ValueError."""
        with self.assertRaises(ValueError):
            H2GNNConfig(batch_size=0)

    def test_layer_config(self):
        """Test deriving a layer configuration."""
        config = H2GNNConfig(embedding_dim=16, num_heads=2, dropout=0.2)
        layer_config = config.layer_config(dropout=0.0)

        self.assertEqual(layer_config.input_dim, 16)
        self.assertEqual(layer_config.output_dim, 16)
        self.assertEqual(layer_config.num_heads, 2)
        self.assertEqual(layer_config.dropout, 0.0)

    def test_from_dict(self):
        """Test creating config from dictionary."""
        config = H2GNNConfig.from_dict({
            "embedding_dim": 16,
            "num_layers": 2,
            "geometry_mode": "adaptive",
        })

        self.assertEqual(config.embedding_dim, 16)
        self.assertEqual(config.num_layers, 2)
        self.assertIs(config.geometry_mode, GeometryMode.ADAPTIVE)

    def test_from_dict_ignores_unknown_keys(self):
        """Test that unknown keys are dropped with a warning."""
        with self.assertLogs("h2gnn.config", level="WARNING"):
            config = H2GNNConfig.from_dict({"embedding_dim": 4, "num_heads": 2, "colour": "red"})

        self.assertEqual(config.embedding_dim, 4)

    def test_to_dict(self):
        """Test converting config to a JSON-serialisable dictionary."""
        config_dict = H2GNNConfig().to_dict()

        self.assertIsInstance(config_dict, dict)
        self.assertEqual(config_dict["geometry_mode"], "hyperbolic")
        json.dumps(config_dict)

    def test_replace(self):
        """Test copying a configuration with changes."""
        config = H2GNNConfig()
        changed = config.replace(num_layers=5)

        self.assertEqual(changed.num_layers, 5)
        self.assertEqual(config.num_layers, 3)

        with self.assertRaises(ConfigurationError):
            config.replace(num_layers=0)

    def test_save_and_load(self):
        """Test saving and loading configuration."""
        config = H2GNNConfig(embedding_dim=16, seed=7, geometry_mode="euclidean", curvature=0.0)
        config_path = self.temp_dir / "config.json"

        config.save(config_path)
        self.assertTrue(config_path.exists())

        loaded_config = H2GNNConfig.from_file(config_path)

        self.assertEqual(loaded_config, config)

    def test_file_not_found(self):
        """Test loading from non-existent file."""
        with self.assertRaises(ConfigurationError):
            H2GNNConfig.from_file(self.temp_dir / "nonexistent.json")


class TestTrainingConfig(unittest.TestCase):
    """Test per-call training overrides."""

    def test_apply(self):
        """Test merging overrides into a network configuration."""
        base = H2GNNConfig()
        merged = TrainingConfig(learning_rate=0.05, batch_size=4, epochs=7).apply(base)

        self.assertEqual(merged.learning_rate, 0.05)
        self.assertEqual(merged.batch_size, 4)
        self.assertEqual(merged.max_epochs, 7)
        self.assertEqual(base.max_epochs, 100)

    def test_apply_without_overrides(self):
        """Test that an empty override returns the base configuration."""
        base = H2GNNConfig()
        self.assertIs(TrainingConfig().apply(base), base)

    def test_validation(self):
        """Test that invalid overrides are rejected."""
        with self.assertRaises(ConfigurationError):
            TrainingConfig(epochs=0)

        with self.assertRaises(ConfigurationError):
            TrainingConfig(learning_rate=-1.0)


class TestLoggingConfig(unittest.TestCase):
    """Test logging configuration."""

    def test_configure_logging(self):
        """Test configuring the package logger."""
        temp_dir = TestFixtures.create_temp_dir()

        try:
            log_path = temp_dir / "h2gnn.log"
            logger = LoggingConfig(
                level=LogLevel.DEBUG,
                file_handler=log_path,
                console_handler=False,
                logger_name="h2gnn.test",
            ).configure_logging()

            self.assertEqual(logger.level, logging.DEBUG)
            self.assertEqual(len(logger.handlers), 1)

            logger.debug("hello")
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()

            self.assertIn("hello", log_path.read_text())

        finally:
            TestFixtures.cleanup_temp_dir(temp_dir)


class TestConfigUtils(unittest.TestCase):
    """Test configuration utility functions."""

    def test_get_default_config(self):
        """Test get_default_config function."""
        config = get_default_config()

        self.assertIsInstance(config, H2GNNConfig)
        self.assertEqual(config.embedding_dim, 8)

    def test_load_config_with_path(self):
        """Test load_config with specific path."""
        temp_dir = TestFixtures.create_temp_dir()

        try:
            config_path = temp_dir / "config.json"
            with open(config_path, 'w') as f:
                json.dump({"embedding_dim": 12, "num_heads": 3}, f)

            config = load_config(config_path)

            self.assertEqual(config.embedding_dim, 12)
            self.assertEqual(config.num_heads, 3)

        finally:
            TestFixtures.cleanup_temp_dir(temp_dir)


if __name__ == '__main__':
    unittest.main()
