from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional


class ModelTier(str, Enum):
    DALL_E_3 = "dall-e-3"
    DALL_E_2 = "dall-e-2"


class GenerationRequest(BaseModel):
    """A generation request as received; option values are checked by
    ``imagepipe.validation.normalize``, not by the model itself."""

    model_config = ConfigDict(frozen=True)

    prompt: str
    model: Optional[str] = None
    size: Optional[str] = None
    quality: Optional[str] = None
    style: Optional[str] = None
    n: Optional[int] = None
    enhance: bool = True
    response_format: Optional[str] = None


class EditRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    image: bytes
    prompt: str
    mask: Optional[bytes] = None
    model: Optional[str] = None
    size: Optional[str] = None
    n: Optional[int] = None
    response_format: Optional[str] = None


class VariationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    image: bytes
    model: Optional[str] = None
    size: Optional[str] = None
    n: Optional[int] = None
    response_format: Optional[str] = None


class GeneratedImage(BaseModel):
    url: Optional[str] = None
    b64_json: Optional[str] = None
    revised_prompt: Optional[str] = None


class GenerationResult(BaseModel):
    images: List[GeneratedImage] = Field(..., min_length=1)
    estimated_cost: Decimal
    original_prompt: str
    effective_prompt: str
    request: GenerationRequest


class ModelCapability(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    sizes: List[str]
    qualities: List[str]
    styles: List[str]
    max_prompt_length: int
    max_images: int
    default_size: str
    supports_edit: bool
