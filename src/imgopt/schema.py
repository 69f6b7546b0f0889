from __future__ import annotations

"""Schemas for exported optimization results."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

# --------------------------------------------------------------------------- #
# Result record schema
# --------------------------------------------------------------------------- #


class OptimizationRecord(BaseModel):
    """Exported form of one optimization result.

    ``metadata`` carries the caller's opaque attachment; anything that is not
    JSON-serialisable is stringified before it reaches this model.
    """

    original_file: str
    optimized_file: str
    original_file_size: int = Field(ge=0, description="Size of the master file in bytes")
    optimized_file_size: int = Field(ge=0, description="Size of the output file in bytes")
    optimized: bool = True
    file_type_changed: bool = False
    browser_specific: bool = False
    failed_automated_test: bool = False
    metadata: Any = None

    model_config = ConfigDict(extra="forbid")


class BatchSummary(BaseModel):
    """Aggregate numbers for one batch invocation."""

    results: int = Field(ge=0)
    primary_results: int = Field(ge=0)
    webp_results: int = Field(ge=0)
    file_type_changes: int = Field(ge=0)
    failed_automated_tests: int = Field(ge=0)
    original_bytes: int = Field(ge=0, description="Summed master sizes of primary results")
    optimized_bytes: int = Field(ge=0, description="Summed output sizes of primary results")

    @property
    def bytes_saved(self) -> int:
        return self.original_bytes - self.optimized_bytes

    @property
    def percent_saved(self) -> float:
        if self.original_bytes == 0:
            return 0.0
        return 100.0 * self.bytes_saved / self.original_bytes


# --------------------------------------------------------------------------- #
# Convenience helpers
# --------------------------------------------------------------------------- #


def validate_record(data: dict) -> OptimizationRecord:
    """Validate *data* against :class:`OptimizationRecord`.

    Raises ``pydantic.ValidationError`` if the record is invalid.
    """
    return OptimizationRecord.model_validate(data)


def is_valid_record(data: dict) -> bool:
    """Return *True* if *data* passes :class:`OptimizationRecord` validation."""
    try:
        validate_record(data)
        return True
    except ValidationError:
        return False
