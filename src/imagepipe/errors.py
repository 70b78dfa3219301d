"""Error taxonomy for the image pipeline.

Every failure the pipeline can produce is one of the classes below. Each class
carries a stable ``kind`` string and the HTTP status the request handler
answers with, so the outer surfaces (web server, CLI) never need their own
mapping tables.
"""

from decimal import Decimal
from typing import Optional


class ImagePipeError(Exception):
    kind: str = "ImagePipeError"
    status_code: int = 500
    default_message: str = "Image generation failed."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        self.estimated_cost: Optional[Decimal] = None
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind}


class ValidationError(ImagePipeError):
    status_code = 400


class EmptyPrompt(ValidationError):
    kind = "EmptyPrompt"
    default_message = "Prompt is required"


class PromptTooLong(ValidationError):
    kind = "PromptTooLong"
    default_message = "Prompt is too long for the selected model."


class UnsupportedSize(ValidationError):
    kind = "UnsupportedSize"
    default_message = "Image size is not supported."


class InvalidParameter(ValidationError):
    kind = "InvalidParameter"
    default_message = "Invalid generation parameter."


class UnsupportedOperation(ValidationError):
    kind = "UnsupportedOperation"
    default_message = "This operation is only available for dall-e-2."


class ProviderError(ImagePipeError):
    """A failure reported by (or while reaching) the image provider."""


class Unauthenticated(ProviderError):
    kind = "Unauthenticated"
    status_code = 500
    default_message = (
        "OpenAI API key not configured. Please add OPENAI_API_KEY to your environment."
    )


class ContentPolicyViolation(ProviderError):
    kind = "ContentPolicyViolation"
    status_code = 400
    default_message = (
        "The prompt violates OpenAI content policy. Please modify your prompt."
    )


class BillingLimitReached(ProviderError):
    kind = "BillingLimitReached"
    status_code = 402
    default_message = "OpenAI billing limit reached. Please check your OpenAI account."


class RateLimitExceeded(ProviderError):
    kind = "RateLimitExceeded"
    status_code = 429
    default_message = "Rate limit exceeded. Please try again later."


class ProviderUnavailable(ProviderError):
    kind = "ProviderUnavailable"
    status_code = 500
    default_message = "Failed to generate image"
