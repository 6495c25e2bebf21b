"""
Pipelines Package

Record transformation pipeline and its validation rules.
"""
from src.parcelflow.pipelines.transformation import (
    BatchResult,
    TransformationPipeline,
    TransformationStep,
)
from src.parcelflow.pipelines.validation import ValidationRule, required_fields_rule

__all__ = [
    "BatchResult",
    "TransformationPipeline",
    "TransformationStep",
    "ValidationRule",
    "required_fields_rule",
]
