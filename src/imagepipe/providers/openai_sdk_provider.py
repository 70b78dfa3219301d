import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, List, Optional

import openai
from openai import AsyncOpenAI

from imagepipe.config import Settings
from imagepipe.errors import (
    BillingLimitReached,
    ContentPolicyViolation,
    ImagePipeError,
    ProviderError,
    ProviderUnavailable,
    RateLimitExceeded,
    Unauthenticated,
    UnsupportedOperation,
)
from imagepipe.models import (
    EditRequest,
    GeneratedImage,
    GenerationRequest,
    ModelTier,
    VariationRequest,
)
from imagepipe.providers.base_provider import BaseImageProvider

logger = logging.getLogger(__name__)

CONTENT_POLICY_MARKERS = ("content_policy_violation",)
BILLING_MARKERS = ("billing_hard_limit_reached", "insufficient_quota")
RATE_LIMIT_MARKERS = ("rate_limit_exceeded",)
AUTH_MARKERS = ("invalid_api_key", "incorrect api key")


def classify_provider_error(error: BaseException, action: str = "generate image") -> ProviderError:
    """Map a raw SDK/network failure onto the pipeline's provider error kinds.

    Billing markers are checked before the 429 status because OpenAI reports
    an exhausted quota as a 429 as well.
    """
    if isinstance(error, ProviderError):
        return error
    status = getattr(error, "status_code", None)
    code = getattr(error, "code", None) or ""
    text = f"{code} {error}".lower()

    if any(marker in text for marker in CONTENT_POLICY_MARKERS):
        return ContentPolicyViolation()
    if any(marker in text for marker in BILLING_MARKERS):
        return BillingLimitReached()
    if status == 429 or any(marker in text for marker in RATE_LIMIT_MARKERS):
        return RateLimitExceeded()
    if (
        status == 401
        or isinstance(error, openai.AuthenticationError)
        or any(marker in text for marker in AUTH_MARKERS)
    ):
        return Unauthenticated("OpenAI rejected the configured API key.")
    if isinstance(error, (openai.APITimeoutError, asyncio.TimeoutError)):
        return ProviderUnavailable(f"Failed to {action}: the provider timed out.")
    return ProviderUnavailable(f"Failed to {action}: {error}")


def _to_generated_image(entry: Any) -> GeneratedImage:
    url = getattr(entry, "url", None)
    b64_json = getattr(entry, "b64_json", None)
    if not url and not b64_json:
        raise ProviderUnavailable("No image data found in API response.")
    return GeneratedImage(
        url=url or None,
        b64_json=None if url else b64_json,
        revised_prompt=getattr(entry, "revised_prompt", None),
    )


def _upload(name: str, data: bytes) -> tuple:
    return (name, data, "image/png")


class OpenAISDKProvider(BaseImageProvider):
    """Images API provider built on the official ``openai`` SDK.

    The instance only holds connection settings. A client is created for the
    credential passed to each call and closed when that call ends; SDK retries
    are disabled so that every invocation is exactly one provider request.
    """

    def __init__(self, config: Settings):
        self.base_url = str(config.base_url) if config.base_url else None
        self.timeout = config.request_timeout

    def _client(self, credential: Optional[str]) -> AsyncOpenAI:
        if not credential:
            raise Unauthenticated()
        client_params = {
            "api_key": credential,
            "timeout": self.timeout,
            "max_retries": 0,
        }
        if self.base_url:
            client_params["base_url"] = self.base_url
        return AsyncOpenAI(**client_params)

    async def _call(
        self,
        action: str,
        credential: Optional[str],
        call: Callable[[AsyncOpenAI], Awaitable[Any]],
    ) -> List[GeneratedImage]:
        client = self._client(credential)
        try:
            api_response = await call(client)
        except ImagePipeError:
            raise
        except Exception as e:
            error = classify_provider_error(e, action)
            logger.error(f"Failed to {action} ({error.kind}): {e}")
            raise error from e
        finally:
            await client.close()

        images = [_to_generated_image(entry) for entry in api_response.data or []]
        if not images:
            raise ProviderUnavailable("No image generated")
        return images

    async def generate(
        self, request: GenerationRequest, credential: Optional[str]
    ) -> List[GeneratedImage]:
        kwargs = {
            "model": request.model,
            "prompt": request.prompt,
            "n": request.n or 1,
            "size": request.size,
            "response_format": request.response_format,
        }
        if request.model == ModelTier.DALL_E_3.value:
            kwargs["quality"] = request.quality
            kwargs["style"] = request.style

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Images API request body: %s", json.dumps(kwargs, default=str))

        return await self._call(
            "generate image",
            credential,
            lambda client: client.images.generate(**kwargs),
        )

    async def edit(
        self, request: EditRequest, credential: Optional[str]
    ) -> List[GeneratedImage]:
        if request.model == ModelTier.DALL_E_3.value:
            raise UnsupportedOperation("Image editing is only available for dall-e-2.")
        kwargs = {
            "image": _upload("image.png", request.image),
            "prompt": request.prompt,
            "model": ModelTier.DALL_E_2.value,
            "n": request.n or 1,
            "size": request.size or "1024x1024",
            "response_format": request.response_format or "url",
        }
        if request.mask:
            kwargs["mask"] = _upload("mask.png", request.mask)

        return await self._call(
            "edit image",
            credential,
            lambda client: client.images.edit(**kwargs),
        )

    async def create_variation(
        self, request: VariationRequest, credential: Optional[str]
    ) -> List[GeneratedImage]:
        if request.model == ModelTier.DALL_E_3.value:
            raise UnsupportedOperation(
                "Image variations are only available for dall-e-2."
            )
        kwargs = {
            "image": _upload("image.png", request.image),
            "model": ModelTier.DALL_E_2.value,
            "n": request.n or 1,
            "size": request.size or "1024x1024",
            "response_format": request.response_format or "url",
        }

        return await self._call(
            "create variation",
            credential,
            lambda client: client.images.create_variation(**kwargs),
        )
