"""Request normalization against per-model capabilities.

``normalize`` applies defaults and the tier-specific constraints to a raw
request. Its output is itself a valid input, and normalizing it again returns
an equal request.

Size handling is a UX normalization rather than a hard check: a size that
belongs to the other model tier (typical when a caller switches models
mid-session) is silently replaced with the active tier's default size. Only
sizes that no tier supports are rejected with ``UnsupportedSize``.
"""

import logging
from typing import Dict, List, Optional

from imagepipe.errors import (
    EmptyPrompt,
    InvalidParameter,
    PromptTooLong,
    UnsupportedOperation,
    UnsupportedSize,
)
from imagepipe.models import (
    EditRequest,
    GenerationRequest,
    ModelCapability,
    ModelTier,
    VariationRequest,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = ModelTier.DALL_E_3.value
DEFAULT_SIZE = "1024x1024"
DEFAULT_QUALITY = "standard"
DEFAULT_STYLE = "vivid"
DEFAULT_RESPONSE_FORMAT = "url"
RESPONSE_FORMATS = ("url", "b64_json")
LEGACY_MAX_IMAGES = 10

CAPABILITIES: Dict[str, ModelCapability] = {
    ModelTier.DALL_E_3.value: ModelCapability(
        id=ModelTier.DALL_E_3.value,
        name="DALL-E 3",
        sizes=["1024x1024", "1024x1792", "1792x1024"],
        qualities=["standard", "hd"],
        styles=["vivid", "natural"],
        max_prompt_length=4000,
        max_images=1,
        default_size=DEFAULT_SIZE,
        supports_edit=False,
    ),
    ModelTier.DALL_E_2.value: ModelCapability(
        id=ModelTier.DALL_E_2.value,
        name="DALL-E 2",
        sizes=["256x256", "512x512", "1024x1024"],
        qualities=["standard"],
        styles=[],
        max_prompt_length=1000,
        max_images=LEGACY_MAX_IMAGES,
        default_size=DEFAULT_SIZE,
        supports_edit=True,
    ),
}

KNOWN_SIZES = {size for capability in CAPABILITIES.values() for size in capability.sizes}


def capabilities() -> List[ModelCapability]:
    return list(CAPABILITIES.values())


def get_capability(model: Optional[str]) -> ModelCapability:
    model = model or DEFAULT_MODEL
    try:
        return CAPABILITIES[model]
    except KeyError:
        raise InvalidParameter(
            f"Unknown model '{model}'. Supported models: {', '.join(CAPABILITIES)}"
        ) from None


def _check_prompt(prompt: Optional[str], capability: ModelCapability) -> str:
    if prompt is None or not prompt.strip():
        raise EmptyPrompt()
    if len(prompt) > capability.max_prompt_length:
        raise PromptTooLong(
            f"Prompt is {len(prompt)} characters; {capability.name} accepts at most "
            f"{capability.max_prompt_length}."
        )
    return prompt


def _normalize_size(size: Optional[str], capability: ModelCapability) -> str:
    if not size:
        return capability.default_size
    if size in capability.sizes:
        return size
    if size in KNOWN_SIZES:
        logger.info(
            "Size %s is not available for %s; using %s",
            size,
            capability.id,
            capability.default_size,
        )
        return capability.default_size
    raise UnsupportedSize(
        f"Size '{size}' is not supported. {capability.name} sizes: "
        f"{', '.join(capability.sizes)}"
    )


def _normalize_choice(value: Optional[str], allowed: List[str], default: str, field: str) -> str:
    if value is None:
        return default
    if value not in allowed:
        raise InvalidParameter(
            f"Invalid {field} '{value}'. Expected one of: {', '.join(allowed)}"
        )
    return value


def _normalize_count(n: Optional[int], capability: ModelCapability) -> int:
    if capability.max_images == 1:
        # dall-e-3 generates a single image per call.
        return 1
    if n is None:
        return 1
    if n < 1 or n > capability.max_images:
        raise InvalidParameter(
            f"Number of images must be between 1 and {capability.max_images}."
        )
    return n


def _normalize_response_format(response_format: Optional[str], default: str) -> str:
    return _normalize_choice(
        response_format, list(RESPONSE_FORMATS), default, "response_format"
    )


def normalize(
    request: GenerationRequest,
    default_response_format: str = DEFAULT_RESPONSE_FORMAT,
) -> GenerationRequest:
    capability = get_capability(request.model)
    prompt = _check_prompt(request.prompt, capability)

    if capability.id == ModelTier.DALL_E_3.value:
        quality = _normalize_choice(
            request.quality, capability.qualities, DEFAULT_QUALITY, "quality"
        )
        style = _normalize_choice(
            request.style, capability.styles, DEFAULT_STYLE, "style"
        )
    else:
        # dall-e-2 accepts quality and style but ignores them.
        quality = DEFAULT_QUALITY
        style = None

    return request.model_copy(
        update={
            "prompt": prompt,
            "model": capability.id,
            "size": _normalize_size(request.size, capability),
            "quality": quality,
            "style": style,
            "n": _normalize_count(request.n, capability),
            "response_format": _normalize_response_format(
                request.response_format, default_response_format
            ),
        }
    )


def _edit_capability(model: Optional[str], operation: str) -> ModelCapability:
    capability = get_capability(model or ModelTier.DALL_E_2.value)
    if not capability.supports_edit:
        raise UnsupportedOperation(
            f"Image {operation} is only available for dall-e-2, not {capability.id}."
        )
    return capability


def normalize_edit(
    request: EditRequest,
    default_response_format: str = DEFAULT_RESPONSE_FORMAT,
) -> EditRequest:
    capability = _edit_capability(request.model, "editing")
    if not request.image:
        raise InvalidParameter("An image is required for editing.")
    return request.model_copy(
        update={
            "prompt": _check_prompt(request.prompt, capability),
            "model": capability.id,
            "size": _normalize_size(request.size, capability),
            "n": _normalize_count(request.n, capability),
            "response_format": _normalize_response_format(
                request.response_format, default_response_format
            ),
        }
    )


def normalize_variation(
    request: VariationRequest,
    default_response_format: str = DEFAULT_RESPONSE_FORMAT,
) -> VariationRequest:
    capability = _edit_capability(request.model, "variations")
    if not request.image:
        raise InvalidParameter("An image is required for variations.")
    return request.model_copy(
        update={
            "model": capability.id,
            "size": _normalize_size(request.size, capability),
            "n": _normalize_count(request.n, capability),
            "response_format": _normalize_response_format(
                request.response_format, default_response_format
            ),
        }
    )
