"""
Exception classes for H2GNN.

This module defines custom exception classes for the errors that can occur
while validating configuration and training data, running geometric
operations in the Poincaré ball, and training or querying a network.
"""

from typing import Optional


class H2GNNError(Exception):
    """Base exception for all H2GNN errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(H2GNNError, ValueError):
    """Raised when a network or layer configuration is invalid."""
    pass


class InvalidInputError(H2GNNError, ValueError):
    """Raised when input validation fails."""
    pass


class EmptyDataError(InvalidInputError):
    """Raised when training data contains no nodes."""
    pass


class LabelMismatchError(InvalidInputError):
    """Raised when the number of labels differs from the number of nodes."""

    def __init__(self, num_labels: int, num_nodes: int, message: Optional[str] = None):
        self.num_labels = num_labels
        self.num_nodes = num_nodes
        if message is None:
            message = f"Got {num_labels} labels for {num_nodes} nodes"
        super().__init__(message, {"num_labels": num_labels, "num_nodes": num_nodes})


class NodeIndexError(H2GNNError, IndexError):
    """Raised when an edge or hyperedge references a node that does not exist."""

    def __init__(self, index: int, num_nodes: int, message: Optional[str] = None):
        self.index = index
        self.num_nodes = num_nodes
        if message is None:
            message = f"Node index {index} out of range for {num_nodes} nodes"
        super().__init__(message, {"index": index, "num_nodes": num_nodes})


class GeometryViolation(H2GNNError, ValueError):
    """Raised when a point lies on or outside the Poincaré ball boundary."""
    pass


class DomainError(GeometryViolation):
    """Raised when a geometric formula is evaluated outside its domain."""
    pass


class NumericalInstability(H2GNNError, ArithmeticError):
    """Raised when NaN or infinite values appear mid-computation."""
    pass


class UntrainedModelError(H2GNNError, RuntimeError):
    """Raised when predictions are requested from a network that was never trained."""
    pass


class TrainingError(H2GNNError, RuntimeError):
    """Raised when the training loop fails for a reason not covered above."""
    pass


def handle_error(error: Exception, context: str = "") -> H2GNNError:
    """
    Convert generic exceptions to H2GNN exceptions.

    Args:
        error: The original exception
        context: Additional context about where the error occurred

    Returns:
        An appropriate H2GNNError subclass
    """
    if isinstance(error, H2GNNError):
        return error

    error_type = type(error).__name__
    message = f"{context}: {error_type}: {str(error)}" if context else f"{error_type}: {str(error)}"

    # Map common Python exceptions to H2GNN exceptions
    if isinstance(error, (FloatingPointError, OverflowError, ZeroDivisionError)):
        return NumericalInstability(message)
    elif isinstance(error, ValueError):
        return InvalidInputError(message)
    elif isinstance(error, ImportError):
        return ConfigurationError(message)
    else:
        return TrainingError(message)


class ErrorHandler:
    """Context manager for handling errors in a consistent way."""

    def __init__(self, context: str, reraise: bool = True):
        self.context = context
        self.reraise = reraise
        self.error: Optional[Exception] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            if not issubclass(exc_type, Exception):
                # KeyboardInterrupt and friends pass through untouched
                return False
            self.error = handle_error(exc_val, self.context)
            if self.reraise:
                if self.error is exc_val:
                    return False
                raise self.error from exc_val
            return True
        return False

    def has_error(self) -> bool:
        """Check if an error occurred."""
        return self.error is not None
