"""
Trainable layer stack of the hyperbolic graph network.

``H2GNNModule`` chains ``num_layers`` blocks of
message passing -> batch norm -> ReLU -> dropout, then one global attention
pass and an output projection. It is a LightningModule so that the training
loop, optimizer stepping and gradient clipping are handled by a ``Trainer``.
"""

import logging
from typing import Any, Dict, List, Sequence, Tuple, Union

import pytorch_lightning as pl
import torch
import torch.nn as nn

from ..config import GeometryMode, H2GNNConfig
from ..core.manifolds import PoincareManifold
from ..core.types import GraphTensors
from ..layers import (
    HyperbolicAttention,
    HyperbolicBatchNorm,
    HyperbolicDropout,
    HyperbolicLinear,
    HyperbolicMessagePassing,
    HyperbolicReLU,
)
from .losses import LossComponents, composite_loss, label_accuracy, mean_components


logger = logging.getLogger(__name__)


MIN_CURVATURE = -10.0
MAX_CURVATURE = -1e-3


class H2GNNModule(pl.LightningModule):
    """
    Layer stack and training step of the hyperbolic graph network.

    Layers operate in the unit Poincaré ball. The model curvature K is a
    separate parameter used by the curvature-consistency loss; it is
    trainable only in adaptive geometry mode and then kept in
    ``[MIN_CURVATURE, MAX_CURVATURE]``.

    Args:
        config: Network configuration

    Example:
        >>> module = H2GNNModule(H2GNNConfig(embedding_dim=8, num_layers=2))
        >>> graph = TrainingData(nodes=[[0.1] * 8, [0.2] * 8], edges=[(0, 1)]).to_graph()
        >>> embeddings = module(graph.nodes, graph.adjacency)  # Shape: (2, 8)
    """

    def __init__(self, config: H2GNNConfig):
        super().__init__()

        self.config = config
        self.learning_rate = config.learning_rate
        self.save_hyperparameters(config.to_dict())

        self.manifold = PoincareManifold(curvature=1.0)
        block_config = config.layer_config(dropout=0.0)
        dropout_config = config.layer_config()

        self.message_passing = nn.ModuleList()
        self.batch_norms = nn.ModuleList()
        self.dropouts = nn.ModuleList()
        for _ in range(config.num_layers):
            self.message_passing.append(
                HyperbolicMessagePassing.from_config(block_config, manifold=self.manifold)
            )
            self.batch_norms.append(
                HyperbolicBatchNorm.from_config(block_config, manifold=self.manifold)
            )
            self.dropouts.append(
                HyperbolicDropout.from_config(dropout_config, manifold=self.manifold)
            )
        self.activation = HyperbolicReLU(manifold=self.manifold)

        self.attention = HyperbolicAttention.from_config(block_config, manifold=self.manifold)
        self.output_projection = HyperbolicLinear.from_config(block_config, manifold=self.manifold)

        self.curvature = nn.Parameter(torch.tensor(float(config.curvature)), requires_grad=False)
        self.set_geometry_mode(config.geometry_mode)

        # Filled by training/validation steps, drained by TrainingHistoryCallback
        self.batch_records: List[Dict[str, Any]] = []
        self.validation_records: List[Dict[str, Any]] = []

        logger.info(f"Initialized H2GNNModule(embedding_dim={config.embedding_dim}, "
                    f"num_layers={config.num_layers}, num_heads={config.num_heads}, "
                    f"curvature={config.curvature})")

    @property
    def geometry_mode(self) -> GeometryMode:
        return self.config.geometry_mode

    def set_geometry_mode(self, mode: Union[str, GeometryMode]) -> None:
        """
        Switch geometry mode without touching the learned layer weights.

        'euclidean' fixes the curvature at 0, 'hyperbolic' fixes it at -1 and
        'adaptive' makes it trainable.
        """
        mode = GeometryMode.coerce(mode)
        with torch.no_grad():
            if mode is GeometryMode.EUCLIDEAN:
                self.curvature.fill_(0.0)
            elif mode is GeometryMode.HYPERBOLIC:
                self.curvature.fill_(-1.0)
            else:
                self.curvature.clamp_(MIN_CURVATURE, MAX_CURVATURE)
        self.curvature.requires_grad_(mode is GeometryMode.ADAPTIVE)

        # The config curvature must stay valid for the new mode
        in_range = MIN_CURVATURE <= self.config.curvature <= MAX_CURVATURE
        if mode is not GeometryMode.ADAPTIVE or not in_range:
            self.config.curvature = float(self.curvature.detach())
        self.config.geometry_mode = mode
        self.hparams["curvature"] = self.config.curvature
        self.hparams["geometry_mode"] = mode.value

    def forward(
        self,
        nodes: torch.Tensor,
        adjacency: Union[torch.Tensor, Sequence[Sequence[int]]]
    ) -> torch.Tensor:
        """
        Embed the nodes of one graph.

        Args:
            nodes: Node points inside the ball, shape (n, embedding_dim)
            adjacency: Boolean (n, n) neighbour mask or adjacency list

        Returns:
            Embeddings inside the ball, shape (n, embedding_dim)
        """
        x = nodes
        for mp, bn, dropout in zip(self.message_passing, self.batch_norms, self.dropouts):
            x = mp(x, adjacency)
            x = bn(x)
            x = self.activation(x)
            x = dropout(x)

        # Möbius residual around global attention
        x = self.manifold.mobius_add(x, self.attention(x))
        return self.output_projection(x)

    def graph_loss(self, graph: GraphTensors) -> Tuple[LossComponents, torch.Tensor]:
        """Composite loss of one graph together with its embeddings."""
        embeddings = self(graph.nodes, graph.adjacency)
        return composite_loss(
            embeddings,
            graph.edge_index,
            graph.labels,
            self.curvature,
            geometric_weight=self.config.geometric_loss_weight,
        ), embeddings

    def _batch_loss(self, batch: List[GraphTensors]) -> Dict[str, Any]:
        components = []
        correct = 0.0
        labelled = 0
        for graph in batch:
            loss, embeddings = self.graph_loss(graph)
            components.append(loss)
            accuracy = label_accuracy(embeddings, graph.labels)
            if accuracy is not None:
                correct += accuracy * graph.labels.numel()
                labelled += graph.labels.numel()

        mean = mean_components(components)
        record = mean.as_floats()
        record.update(num_examples=len(batch), correct=correct, labelled=labelled)
        return {"loss": mean.total, "record": record}

    def training_step(self, batch: List[GraphTensors], batch_idx: int) -> torch.Tensor:
        """Mean composite loss over the graphs of the batch."""
        result = self._batch_loss(batch)
        self.batch_records.append(result["record"])
        self.log('train_loss', result["loss"], on_step=False, on_epoch=True, batch_size=len(batch))
        logger.debug(f"Batch {batch_idx}: loss={result['record']['loss']:.6f}")
        return result["loss"]

    def validation_step(self, batch: List[GraphTensors], batch_idx: int) -> torch.Tensor:
        result = self._batch_loss(batch)
        self.validation_records.append(result["record"])
        self.log('val_loss', result["loss"], on_step=False, on_epoch=True, batch_size=len(batch))
        return result["loss"]

    def on_train_batch_end(self, outputs, batch, batch_idx) -> None:
        if self.geometry_mode is GeometryMode.ADAPTIVE:
            with torch.no_grad():
                self.curvature.clamp_(MIN_CURVATURE, MAX_CURVATURE)

    def configure_optimizers(self) -> torch.optim.Optimizer:
        """Adam over every trainable parameter, curvature included in adaptive mode."""
        return torch.optim.Adam(
            [p for p in self.parameters() if p.requires_grad],
            lr=self.learning_rate,
            weight_decay=self.config.weight_decay,
        )
