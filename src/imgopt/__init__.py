"""imgopt - lossless batch optimizer for PNG, JPEG and GIF images."""

__version__: str = "0.1.0"

from .config import EngineConfig, OptimizerConfig, ValidationConfig
from .error_handling import (
    ConfigurationError,
    ImageOptimizationError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolTimeoutError,
    UnsupportedImageError,
)
from .models import ConversionMode, ImageFormat, OptimizationResult, TransparencyClass
from .service import ImageOptimizationService, summarize_results

__all__ = [
    "ConfigurationError",
    "ConversionMode",
    "EngineConfig",
    "ImageFormat",
    "ImageOptimizationError",
    "ImageOptimizationService",
    "OptimizationResult",
    "OptimizerConfig",
    "ToolExecutionError",
    "ToolNotFoundError",
    "ToolTimeoutError",
    "TransparencyClass",
    "UnsupportedImageError",
    "ValidationConfig",
    "summarize_results",
]
