from abc import ABC, abstractmethod
from imagepipe.models import (
    EditRequest,
    GeneratedImage,
    GenerationRequest,
    VariationRequest,
)
from typing import List, Optional


class BaseImageProvider(ABC):
    @abstractmethod
    async def generate(
        self, request: GenerationRequest, credential: Optional[str]
    ) -> List[GeneratedImage]:
        """
        Generates images for an already-normalized request.
        Makes exactly one provider call and raises an ``ImagePipeError``
        subclass on failure.
        """

    @abstractmethod
    async def edit(
        self, request: EditRequest, credential: Optional[str]
    ) -> List[GeneratedImage]:
        """Edits an image with an optional mask (dall-e-2 only)."""

    @abstractmethod
    async def create_variation(
        self, request: VariationRequest, credential: Optional[str]
    ) -> List[GeneratedImage]:
        """Creates variations of an image (dall-e-2 only)."""
