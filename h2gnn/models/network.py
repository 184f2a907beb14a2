"""
Hyperbolic geometric graph network.

``H2GNN`` is the entry point of the package. It owns the configuration, the
trainable layer stack, the training history and the model curvature, and
exposes forward, train, predict, geometry-mode switching and model
export/import.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pytorch_lightning as pl
import torch
from torch.utils.data import DataLoader

from ..config import GeometryMode, H2GNNConfig, TrainingConfig
from ..core.math_ops import project
from ..core.types import (
    GeometricInsights,
    GraphTensors,
    PredictionResult,
    TrainingData,
    TrainingHistoryEntry,
    Vector,
)
from ..exceptions import (
    ConfigurationError,
    EmptyDataError,
    ErrorHandler,
    InvalidInputError,
    UntrainedModelError,
)
from ..utils.datasets import DataSource
from ..utils.metrics import HyperbolicMetrics
from .callbacks import TrainingHistoryCallback
from .encoder import H2GNNModule


logger = logging.getLogger(__name__)


EXPORT_FORMAT_VERSION = 1

TrainingInput = Union[TrainingData, Sequence[TrainingData], DataSource]


def collate_graphs(examples: List[TrainingData]) -> List[GraphTensors]:
    """Turn a batch of examples into graph tensors with nodes projected into the ball."""
    graphs = []
    for example in examples:
        graph = example.to_graph()
        graph.nodes = project(graph.nodes)
        graphs.append(graph)
    return graphs


class H2GNN:
    """
    Hyperbolic Geometric Graph Neural Network.

    The network runs ``num_layers`` rounds of message passing, batch norm,
    ReLU and dropout, then global attention and an output projection, all
    inside the Poincaré ball. It is trained on the composite loss
    ``task + 0.1 * (boundary + geodesic + curvature)``.

    Args:
        config: Network configuration. Defaults to ``H2GNNConfig()``.
        **overrides: Configuration fields to override

    Raises:
        ConfigurationError: If the resulting configuration is invalid

    Example:
        >>> network = H2GNN(embedding_dim=8, num_layers=2, max_epochs=10)
        >>> data = create_hierarchical_dataset(15, dim=8, seed=0)
        >>> history = network.train([data])
        >>> result = network.predict(data)
        >>> result.predictions[:3]
    """

    def __init__(self, config: Optional[H2GNNConfig] = None, **overrides):
        if config is None:
            try:
                config = H2GNNConfig(**overrides)
            except TypeError as e:
                raise ConfigurationError(f"Invalid configuration field: {e}") from e
        else:
            config = config.replace(**overrides)

        self.config = config
        if config.seed is not None:
            pl.seed_everything(config.seed)

        self.module = H2GNNModule(self.config)
        self.training_history: List[TrainingHistoryEntry] = []
        self._geometric_metrics: Optional[GeometricInsights] = None
        self._trained = False

        logger.info(f"Initialized H2GNN(embedding_dim={config.embedding_dim}, "
                    f"num_layers={config.num_layers}, geometry={config.geometry_mode.value})")

    @property
    def embedding_dim(self) -> int:
        return self.config.embedding_dim

    @property
    def current_curvature(self) -> float:
        return float(self.module.curvature.detach())

    @property
    def geometry_mode(self) -> GeometryMode:
        return self.config.geometry_mode

    @property
    def is_trained(self) -> bool:
        return self._trained

    def get_training_history(self) -> List[TrainingHistoryEntry]:
        return list(self.training_history)

    def get_geometric_metrics(self) -> Optional[GeometricInsights]:
        """Insights of the most recent ``predict`` call, if any."""
        return self._geometric_metrics

    def set_geometry_mode(self, mode: Union[str, GeometryMode]) -> None:
        """
        Switch geometry mode.

        'euclidean' forces the curvature to 0, 'hyperbolic' forces -1.0 and
        'adaptive' lets training update it. Learned weights are kept.
        """
        self.module.set_geometry_mode(mode)
        logger.info(f"Switched to {self.geometry_mode.value} geometry "
                    f"(curvature: {self.current_curvature})")

    def _validated(self, data: TrainingData) -> TrainingData:
        if not isinstance(data, TrainingData):
            raise InvalidInputError(f"Expected TrainingData, got {type(data).__name__}")
        data.validate(expected_dim=self.embedding_dim)
        return data

    def _collect(self, data: TrainingInput) -> List[TrainingData]:
        if isinstance(data, DataSource):
            examples = data.get_training_data()
        elif isinstance(data, TrainingData):
            examples = [data]
        else:
            examples = list(data)
        if not examples:
            raise EmptyDataError("No training examples given")
        return [self._validated(example) for example in examples]

    def forward(self, data: TrainingData, training: bool = True) -> torch.Tensor:
        """
        Embed the nodes of one graph.

        Input nodes are projected into the ball first, so slightly
        out-of-range inputs are corrected rather than rejected. No gradients
        are recorded. With ``training=True`` dropout is active and batch
        norm uses (and updates) batch statistics, so the result is random.

        Args:
            data: Graph to embed
            training: Run the layers in training mode

        Returns:
            Embeddings of shape (num_nodes, embedding_dim), all inside the ball
        """
        graph = collate_graphs([self._validated(data)])[0]

        was_training = self.module.training
        self.module.train(training)
        try:
            with torch.no_grad():
                return self.module(graph.nodes, graph.adjacency)
        finally:
            self.module.train(was_training)

    def _build_trainer(self, config: H2GNNConfig, callback: TrainingHistoryCallback) -> pl.Trainer:
        return pl.Trainer(
            max_epochs=config.max_epochs,
            accelerator="cpu",
            devices=1,
            logger=False,
            enable_checkpointing=False,
            enable_progress_bar=False,
            enable_model_summary=False,
            num_sanity_val_steps=0,
            gradient_clip_val=config.clip_norm,
            callbacks=[callback],
        )

    def _loader(self, examples: List[TrainingData], batch_size: int) -> DataLoader:
        return DataLoader(examples, batch_size=batch_size, shuffle=False, collate_fn=collate_graphs)

    def train(
        self,
        data: TrainingInput,
        config: Optional[TrainingConfig] = None
    ) -> List[TrainingHistoryEntry]:
        """
        Train the network.

        Each epoch partitions the examples into batches of ``batch_size``; the
        parameters are updated after every batch. One history entry is
        recorded per epoch, and training stops early once the mean loss falls
        below ``tolerance``.

        Args:
            data: One example, a sequence of examples or a DataSource
            config: Optional per-call overrides (learning rate, batch size,
                epochs, validation data)

        Returns:
            A copy of the full training history
        """
        examples = self._collect(data)
        run_config = config.apply(self.config) if config is not None else self.config
        validation = None
        if config is not None and config.validation_data:
            validation = self._collect(config.validation_data)

        if run_config.seed is not None:
            pl.seed_everything(run_config.seed)

        callback = TrainingHistoryCallback(
            tolerance=run_config.tolerance,
            start_epoch=len(self.training_history),
        )
        trainer = self._build_trainer(run_config, callback)

        logger.info(f"Training on {len(examples)} examples for up to {run_config.max_epochs} epochs "
                    f"(batch_size={run_config.batch_size}, lr={run_config.learning_rate})")

        self.module.learning_rate = run_config.learning_rate
        try:
            with ErrorHandler("training"):
                trainer.fit(
                    self.module,
                    train_dataloaders=self._loader(examples, run_config.batch_size),
                    val_dataloaders=(
                        self._loader(validation, run_config.batch_size) if validation else None
                    ),
                )
        finally:
            self.module.learning_rate = self.config.learning_rate
            self.training_history.extend(callback.history)

        self._trained = True
        if callback.history:
            logger.info(f"Training finished after {len(callback.history)} epochs, "
                        f"final loss {callback.history[-1].loss:.6f}")
        return self.get_training_history()

    def predict(self, data: TrainingData) -> PredictionResult:
        """
        Embed a graph with dropout disabled and report predictions.

        ``predictions[i]`` is the norm of embedding i and ``confidence[i]`` is
        ``exp(-predictions[i])``, so confidence is higher near the origin.

        Raises:
            UntrainedModelError: If the network was never trained or loaded
        """
        if not self._trained:
            raise UntrainedModelError("predict called before the network was trained")

        embeddings = self.forward(data, training=False)
        norms = torch.linalg.vector_norm(embeddings, dim=-1)

        metrics = HyperbolicMetrics(
            curvature=self.current_curvature,
            clustering_threshold=self.config.clustering_threshold,
        )
        insights = metrics.geometric_insights(embeddings, edges=data.edge_pairs())
        self._geometric_metrics = insights

        return PredictionResult(
            embeddings=[Vector.from_tensor(e) for e in embeddings],
            predictions=norms.tolist(),
            confidence=torch.exp(-norms).tolist(),
            geometric_insights=insights,
        )

    def export_model(self) -> Dict[str, Any]:
        """JSON-serialisable model state, layer weights included."""
        return {
            "format_version": EXPORT_FORMAT_VERSION,
            "config": self.config.to_dict(),
            "current_curvature": self.current_curvature,
            "geometry_mode": self.geometry_mode.value,
            "training_history": [entry.to_dict() for entry in self.training_history],
            "trained": self._trained,
            "weights": {
                name: tensor.detach().cpu().tolist()
                for name, tensor in self.module.state_dict().items()
            },
        }

    def import_model(self, state: Dict[str, Any]) -> None:
        """
        Restore a state produced by :meth:`export_model`.

        A new layer stack is built from the imported configuration and the
        weights are loaded into it. The network is only modified once the
        whole state has been read, so a failed import leaves it unchanged.

        Raises:
            InvalidInputError: If the state is malformed or its weights do not fit
        """
        if "config" not in state:
            raise InvalidInputError("Model state has no config")

        config = H2GNNConfig.from_dict(state["config"])
        if "geometry_mode" in state:
            config.geometry_mode = GeometryMode.coerce(state["geometry_mode"])
        module = H2GNNModule(config)

        weights = state.get("weights")
        if weights:
            self._load_weights(module, weights)

        with torch.no_grad():
            module.curvature.fill_(float(state.get("current_curvature", config.curvature)))

        history = [
            TrainingHistoryEntry.from_dict(entry) for entry in state.get("training_history", [])
        ]

        self.config = config
        self.module = module
        self.training_history = history
        self._geometric_metrics = None
        self._trained = bool(weights) and bool(state.get("trained", True))

        logger.info(f"Imported model (embedding_dim={self.embedding_dim}, "
                    f"curvature={self.current_curvature}, weights={'yes' if weights else 'no'}, "
                    f"trained={self._trained})")

    @staticmethod
    def _load_weights(module: H2GNNModule, weights: Dict[str, Any]) -> None:
        reference = module.state_dict()
        missing = sorted(set(reference) - set(weights))
        unexpected = sorted(set(weights) - set(reference))
        if missing or unexpected:
            raise InvalidInputError(
                "Model weights do not match the configured layer stack",
                {"missing": missing[:5], "unexpected": unexpected[:5]}
            )

        state_dict = {}
        for name, tensor in reference.items():
            value = torch.tensor(weights[name], dtype=tensor.dtype)
            if value.shape != tensor.shape:
                raise InvalidInputError(
                    f"Weight {name} has shape {tuple(value.shape)}, expected {tuple(tensor.shape)}"
                )
            state_dict[name] = value
        module.load_state_dict(state_dict)

    def save(self, path: Union[str, Path]) -> None:
        """Write the exported model state to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.export_model(), f)
        logger.info(f"Saved model to {path}")

    def load(self, path: Union[str, Path]) -> "H2GNN":
        """Import a model state from a JSON file written by :meth:`save`."""
        path = Path(path)
        if not path.exists():
            raise InvalidInputError(f"Model file not found: {path}")
        with open(path, "r") as f:
            self.import_model(json.load(f))
        return self


def create_h2gnn(config: Optional[H2GNNConfig] = None, **overrides) -> H2GNN:
    """Convenience factory for :class:`H2GNN`."""
    return H2GNN(config, **overrides)
