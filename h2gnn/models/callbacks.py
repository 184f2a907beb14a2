"""Training history callback.

Collects the per-batch loss records of ``H2GNNModule`` into one
``TrainingHistoryEntry`` per epoch and stops training once the mean loss
falls below the configured tolerance.
"""
import logging
from typing import Any, Dict, List, Optional

import pytorch_lightning as pl

from ..core.types import TrainingHistoryEntry


logger = logging.getLogger(__name__)


def _weighted_mean(records: List[Dict[str, Any]], key: str) -> float:
    total = sum(r["num_examples"] for r in records)
    return sum(r[key] * r["num_examples"] for r in records) / total


class TrainingHistoryCallback(pl.Callback):
    """Record one history entry per completed epoch.

    Args:
        tolerance: Training stops once the epoch's mean loss is below this value
        start_epoch: Epoch number given to the first recorded entry, so that
            repeated ``train`` calls keep numbering where the last one stopped
    """

    def __init__(self, tolerance: float = 0.0, start_epoch: int = 0):
        self.tolerance = tolerance
        self.start_epoch = start_epoch
        self.history: List[TrainingHistoryEntry] = []

    def on_train_epoch_start(self, trainer: pl.Trainer, pl_module: pl.LightningModule) -> None:
        pl_module.batch_records.clear()
        pl_module.validation_records.clear()

    def on_train_epoch_end(self, trainer: pl.Trainer, pl_module: pl.LightningModule) -> None:
        records = pl_module.batch_records
        if not records:
            return

        labelled = sum(r["labelled"] for r in records)
        accuracy: Optional[float] = None
        if labelled:
            accuracy = sum(r["correct"] for r in records) / labelled

        validation_loss: Optional[float] = None
        if pl_module.validation_records:
            validation_loss = _weighted_mean(pl_module.validation_records, "loss")

        entry = TrainingHistoryEntry(
            epoch=self.start_epoch + trainer.current_epoch,
            loss=_weighted_mean(records, "loss"),
            geometric_loss=_weighted_mean(records, "geometric_loss"),
            task_loss=_weighted_mean(records, "task_loss"),
            boundary_loss=_weighted_mean(records, "boundary_loss"),
            geodesic_loss=_weighted_mean(records, "geodesic_loss"),
            curvature_loss=_weighted_mean(records, "curvature_loss"),
            accuracy=accuracy,
            validation_loss=validation_loss,
        )
        self.history.append(entry)

        logger.info(
            f"Epoch {entry.epoch}: loss={entry.loss:.6f}, "
            f"geometric={entry.geometric_loss:.6f}, boundary={entry.boundary_loss:.6f}"
            + (f", accuracy={entry.accuracy:.3f}" if entry.accuracy is not None else "")
        )

        if entry.loss < self.tolerance:
            logger.info(f"Converged at epoch {entry.epoch} (loss {entry.loss:.3e} < {self.tolerance})")
            trainer.should_stop = True
