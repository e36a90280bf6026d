"""Backend services."""

from services.field_normalizer import FieldNormalizer
from services.generation import GenerationFacade, GenerationRequest

__all__ = [
    "FieldNormalizer",
    "GenerationFacade",
    "GenerationRequest",
]
