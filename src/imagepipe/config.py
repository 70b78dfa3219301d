from pydantic import AliasChoices, Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal, Optional

PLACEHOLDER_API_KEY = "YOUR_OPENAI_API_KEY"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="IMAGEPIPE__",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    openai_api_key: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("IMAGEPIPE__OPENAI_API_KEY", "OPENAI_API_KEY"),
        description="Credential for the image provider. May be absent.",
    )
    base_url: Optional[HttpUrl] = Field(
        None, description="Base URL for an OpenAI-compatible Images API."
    )
    request_timeout: float = Field(
        60.0, gt=0, description="Seconds to wait for a single provider call."
    )
    output_dir: str = Field(
        "generated_images", description="Default directory to save generated images."
    )
    log_level: str = Field("INFO", description="Logging level for the web server.")
    default_response_format: Literal["url", "b64_json"] = Field(
        "url", description="Response format used when a request does not set one."
    )

    @property
    def credential(self) -> Optional[str]:
        """The configured API key, or None when unset or left at the placeholder."""
        key = (self.openai_api_key or "").strip()
        if not key or key == PLACEHOLDER_API_KEY:
            return None
        return key

    @property
    def configured(self) -> bool:
        return self.credential is not None


settings = Settings()


def get_settings() -> Settings:
    return settings
