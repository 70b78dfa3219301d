import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from imagepipe import pricing, prompt as prompt_enhancer
from imagepipe.config import Settings
from imagepipe.errors import (
    EmptyPrompt,
    ImagePipeError,
    InvalidParameter,
    ProviderUnavailable,
)
from imagepipe.models import (
    EditRequest,
    GenerationRequest,
    GenerationResult,
    VariationRequest,
)
from imagepipe.providers.base_provider import BaseImageProvider
from imagepipe.validation import (
    capabilities,
    get_capability,
    normalize,
    normalize_edit,
    normalize_variation,
)

logger = logging.getLogger(__name__)

# The HTTP endpoint returns a single image, so it never forwards an image count.
REQUEST_FIELDS = ("prompt", "model", "size", "quality", "style", "enhance", "response_format")


@dataclass(frozen=True)
class PreparedGeneration:
    """Everything that is decided before the provider is called."""

    request: GenerationRequest
    original_prompt: str
    effective_prompt: str
    estimated_cost: Decimal


class ImagePipeline:
    """normalize -> enhance -> price -> one provider call.

    Built once by the composition root (web server, CLI) with the provider it
    should use. Holds no per-request state, so one instance serves concurrent
    requests.
    """

    def __init__(self, provider: BaseImageProvider, config: Settings):
        self.provider = provider
        self.config = config

    def prepare(self, request: GenerationRequest) -> PreparedGeneration:
        normalized = normalize(request, self.config.default_response_format)
        effective_prompt = normalized.prompt
        if normalized.enhance:
            enhanced = prompt_enhancer.enhance(normalized.prompt)
            if len(enhanced) <= get_capability(normalized.model).max_prompt_length:
                effective_prompt = enhanced
            else:
                logger.info("Skipping prompt enhancement: result exceeds the model's limit")
        estimated_cost = pricing.total_cost(
            normalized.model, normalized.quality, normalized.size, normalized.n
        )
        return PreparedGeneration(
            request=normalized,
            original_prompt=request.prompt,
            effective_prompt=effective_prompt,
            estimated_cost=estimated_cost,
        )

    async def generate(
        self, request: GenerationRequest, credential: Optional[str]
    ) -> GenerationResult:
        prepared = self.prepare(request)
        outbound = prepared.request.model_copy(update={"prompt": prepared.effective_prompt})
        try:
            images = await self.provider.generate(outbound, credential)
        except ImagePipeError as e:
            e.estimated_cost = prepared.estimated_cost
            raise
        return GenerationResult(
            images=images,
            estimated_cost=prepared.estimated_cost,
            original_prompt=prepared.original_prompt,
            effective_prompt=prepared.effective_prompt,
            request=prepared.request,
        )

    async def edit(self, request: EditRequest, credential: Optional[str]) -> GenerationResult:
        normalized = normalize_edit(request, self.config.default_response_format)
        estimated_cost = pricing.total_cost(
            normalized.model, "standard", normalized.size, normalized.n
        )
        try:
            images = await self.provider.edit(normalized, credential)
        except ImagePipeError as e:
            e.estimated_cost = estimated_cost
            raise
        return GenerationResult(
            images=images,
            estimated_cost=estimated_cost,
            original_prompt=request.prompt,
            effective_prompt=normalized.prompt,
            request=GenerationRequest(
                prompt=normalized.prompt,
                model=normalized.model,
                size=normalized.size,
                quality="standard",
                n=normalized.n,
                enhance=False,
                response_format=normalized.response_format,
            ),
        )

    async def create_variation(
        self, request: VariationRequest, credential: Optional[str]
    ) -> GenerationResult:
        normalized = normalize_variation(request, self.config.default_response_format)
        estimated_cost = pricing.total_cost(
            normalized.model, "standard", normalized.size, normalized.n
        )
        try:
            images = await self.provider.create_variation(normalized, credential)
        except ImagePipeError as e:
            e.estimated_cost = estimated_cost
            raise
        return GenerationResult(
            images=images,
            estimated_cost=estimated_cost,
            original_prompt="",
            effective_prompt="",
            request=GenerationRequest(
                prompt="",
                model=normalized.model,
                size=normalized.size,
                quality="standard",
                n=normalized.n,
                enhance=False,
                response_format=normalized.response_format,
            ),
        )

    def describe_configuration(self, credential: Optional[str]) -> Dict[str, Any]:
        return {
            "configured": bool(credential),
            "models": [
                capability.model_dump(by_alias=True, mode="json")
                for capability in capabilities()
            ],
            "pricing": pricing.pricing_table(),
        }


def image_payload(result: GenerationResult, index: int = 0) -> Dict[str, Any]:
    image = result.images[index]
    payload: Dict[str, Any] = {}
    if image.url:
        payload["url"] = image.url
    if image.b64_json:
        payload["b64"] = image.b64_json
    if image.revised_prompt:
        payload["revisedPrompt"] = image.revised_prompt
    return payload


def success_payload(result: GenerationResult) -> Dict[str, Any]:
    first = result.images[0]
    return {
        "success": True,
        "image": image_payload(result),
        "cost": float(result.estimated_cost),
        "originalPrompt": result.original_prompt,
        "revisedPrompt": first.revised_prompt or result.effective_prompt,
    }


def error_payload(error: ImagePipeError) -> Tuple[Dict[str, Any], int]:
    return {"error": error.message}, error.status_code


def parse_generation_body(body: Any) -> GenerationRequest:
    if not isinstance(body, dict) or not body.get("prompt"):
        raise EmptyPrompt()
    fields = {key: body[key] for key in REQUEST_FIELDS if body.get(key) is not None}
    try:
        return GenerationRequest(**fields)
    except PydanticValidationError as e:
        raise InvalidParameter(f"Invalid generation request: {e.errors()[0]['msg']}") from e


def log_generation(result: GenerationResult) -> None:
    request = result.request
    logger.info(
        "Image generated: prompt=%r model=%s size=%s quality=%s n=%s cost=%s timestamp=%s",
        result.effective_prompt,
        request.model,
        request.size,
        request.quality,
        request.n,
        result.estimated_cost,
        datetime.now(timezone.utc).isoformat(),
    )


async def _run(
    action: str, operation: Callable[[], Awaitable[GenerationResult]]
) -> Tuple[Optional[GenerationResult], Optional[Tuple[Dict[str, Any], int]]]:
    try:
        return await operation(), None
    except ImagePipeError as e:
        if e.estimated_cost is not None:
            logger.warning(
                "Failed to %s (%s) after estimating cost %s: %s",
                action,
                e.kind,
                e.estimated_cost,
                e.message,
            )
        else:
            logger.info("Rejected %s request (%s): %s", action, e.kind, e.message)
        return None, error_payload(e)
    except Exception as e:
        logger.exception(f"Unexpected error while trying to {action}: {e}")
        return None, error_payload(ProviderUnavailable(f"Failed to {action}: {e}"))


async def handle_generate(
    body: Any, pipeline: ImagePipeline, credential: Optional[str]
) -> Tuple[Dict[str, Any], int]:
    """Run one generation request and map the outcome onto an HTTP payload.

    Failure payloads carry no cost; the estimate computed before the provider
    call is logged instead.
    """

    async def operation() -> GenerationResult:
        return await pipeline.generate(parse_generation_body(body), credential)

    result, failure = await _run("generate image", operation)
    if failure:
        return failure
    log_generation(result)
    return success_payload(result), 200


def batch_payload(result: GenerationResult) -> Dict[str, Any]:
    return {
        "success": True,
        "images": [image_payload(result, i) for i in range(len(result.images))],
        "cost": float(result.estimated_cost),
    }


async def handle_edit(
    request: EditRequest, pipeline: ImagePipeline, credential: Optional[str]
) -> Tuple[Dict[str, Any], int]:
    result, failure = await _run(
        "edit image", lambda: pipeline.edit(request, credential)
    )
    if failure:
        return failure
    log_generation(result)
    return batch_payload(result), 200


async def handle_variation(
    request: VariationRequest, pipeline: ImagePipeline, credential: Optional[str]
) -> Tuple[Dict[str, Any], int]:
    result, failure = await _run(
        "create variation", lambda: pipeline.create_variation(request, credential)
    )
    if failure:
        return failure
    log_generation(result)
    return batch_payload(result), 200
