"""
Error taxonomy for the estimation pipeline.

Every error carries a sanitized ``user_message``; that string is the only thing
that crosses the boundary to the caller. Diagnostic detail stays in the logs.
"""
from typing import Optional


class EstimationError(Exception):
    default_message = "Failed to estimate crop yield. Please try again."

    def __init__(self, user_message: Optional[str] = None, field: Optional[str] = None):
        self.user_message = user_message or self.default_message
        self.field = field
        super().__init__(self.user_message)


class ValidationError(EstimationError):
    """Missing or invalid required input. Never reaches the model."""
    default_message = "Invalid input."


class GenerationError(EstimationError):
    """Base for all model-generation failures."""


class GenerationSafetyError(GenerationError):
    default_message = (
        "The AI model could not provide an estimation due to safety concerns. "
        "Please revise your input or check safety settings."
    )


class GenerationLengthError(GenerationError):
    default_message = (
        "The AI model response was too long. "
        "Please try with more specific inputs or a smaller plot size."
    )


class GenerationFormatError(GenerationError):
    default_message = (
        "The AI model response was not in the expected format. "
        "Please try again or check server logs."
    )


class GenerationUnknownError(GenerationError):
    default_message = (
        "An unexpected issue occurred with the AI model during generation. "
        "Please try again later or check server logs."
    )


class PersistenceError(EstimationError):
    """History write failed. Logged only, never surfaced to the estimation caller."""
    default_message = "Failed to save estimation history."
