"""
Utilities: geometric insights and training data sources.
"""

from .metrics import HyperbolicMetrics, betti_numbers, persistence_barcode
from .datasets import (
    DataSource,
    StaticDataSource,
    HierarchicalDataSource,
    create_hierarchical_dataset,
)

__all__ = [
    "HyperbolicMetrics",
    "betti_numbers",
    "persistence_barcode",
    "DataSource",
    "StaticDataSource",
    "HierarchicalDataSource",
    "create_hierarchical_dataset",
]
