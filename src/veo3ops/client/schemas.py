"""
Pydantic schemas for Veo API payloads.

GenerationRequest validates what we send; OperationResponse and
ErrorEnvelope parse what the long-running operations endpoint returns.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MAX_PROMPT_WORDS = 1024
SUPPORTED_ASPECT_RATIOS = ("16:9", "9:16")
SUPPORTED_RESOLUTIONS = ("720p", "1080p")
SUPPORTED_DURATIONS = (4, 6, 8)
PERSON_GENERATION_VALUES = ("allow_all", "allow_adult", "dont_allow")


# =============================================================================
# REQUESTS
# =============================================================================

class GenerationRequest(BaseModel):
    """Parameters for a text-to-video generation job."""
    prompt: str = Field(description="What the video should show")
    model: str = Field(description="Model name, e.g. veo-3.1-generate-preview")
    aspect_ratio: str = Field(default="16:9", description="16:9 or 9:16")
    resolution: str = Field(default="720p", description="720p or 1080p")
    duration_seconds: int = Field(default=8, description="Clip length: 4, 6 or 8")
    negative_prompt: Optional[str] = None
    seed: Optional[int] = None
    person_generation: Optional[str] = None

    @field_validator("prompt")
    @classmethod
    def _check_prompt(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("prompt cannot be empty")
        words = len(value.split())
        if words > MAX_PROMPT_WORDS:
            raise ValueError(
                f"prompt exceeds {MAX_PROMPT_WORDS} tokens (approximately {words} tokens)"
            )
        return value

    @field_validator("model")
    @classmethod
    def _check_model(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("model cannot be empty")
        return value.strip()

    @field_validator("aspect_ratio")
    @classmethod
    def _check_aspect_ratio(cls, value: str) -> str:
        if value not in SUPPORTED_ASPECT_RATIOS:
            raise ValueError("aspect ratio must be 16:9 or 9:16")
        return value

    @field_validator("resolution")
    @classmethod
    def _check_resolution(cls, value: str) -> str:
        if value not in SUPPORTED_RESOLUTIONS:
            raise ValueError("resolution must be 720p or 1080p")
        return value

    @field_validator("duration_seconds")
    @classmethod
    def _check_duration(cls, value: int) -> int:
        if value not in SUPPORTED_DURATIONS:
            raise ValueError("duration must be 4, 6, or 8 seconds")
        return value

    @field_validator("person_generation")
    @classmethod
    def _check_person_generation(cls, value: Optional[str]) -> Optional[str]:
        if value and value not in PERSON_GENERATION_VALUES:
            raise ValueError(
                "person_generation must be one of: " + ", ".join(PERSON_GENERATION_VALUES)
            )
        return value or None

    @model_validator(mode="after")
    def _check_resolution_duration(self) -> "GenerationRequest":
        if self.resolution == "1080p" and self.duration_seconds != 8:
            raise ValueError("1080p resolution requires 8 seconds duration")
        return self

    def to_payload(self) -> Dict[str, Any]:
        """Build the predictLongRunning request body."""
        parameters: Dict[str, Any] = {
            "aspectRatio": self.aspect_ratio,
            "durationSeconds": self.duration_seconds,
            "resolution": self.resolution,
        }
        if self.negative_prompt:
            parameters["negativePrompt"] = self.negative_prompt
        if self.seed is not None:
            parameters["seed"] = self.seed
        if self.person_generation:
            parameters["personGeneration"] = self.person_generation

        return {
            "instances": [{"prompt": self.prompt}],
            "parameters": parameters,
        }

    def to_metadata(self) -> Dict[str, Any]:
        """Operation metadata used later to enrich the downloaded video."""
        return {
            "model": self.model,
            "prompt": self.prompt,
            "duration_seconds": self.duration_seconds,
            "resolution": self.resolution,
            "aspect_ratio": self.aspect_ratio,
        }


# =============================================================================
# RESPONSES
# =============================================================================

class ApiError(BaseModel):
    """The ``error`` object of a Google API reply."""
    model_config = ConfigDict(extra="allow")

    code: int = 0
    message: str = ""
    status: str = ""
    details: List[Dict[str, Any]] = Field(default_factory=list)


class ErrorEnvelope(BaseModel):
    """Top-level body of a non-2xx reply."""
    error: ApiError


class OperationMetadata(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str = Field(default="", alias="@type")
    state: str = ""
    progress_percent: float = Field(default=0.0, alias="progressPercent")
    create_time: Optional[str] = Field(default=None, alias="createTime")


class OperationResponse(BaseModel):
    """Long-running operation resource as returned by GET {name}."""
    model_config = ConfigDict(extra="allow")

    name: str = ""
    done: bool = False
    metadata: OperationMetadata = Field(default_factory=OperationMetadata)
    response: Optional[Dict[str, Any]] = None
    error: Optional[ApiError] = None
