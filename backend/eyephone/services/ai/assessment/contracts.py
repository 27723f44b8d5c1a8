"""Assessment scope contracts: model output schema and request bodies."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

RiskLevel = Literal["Low Risk", "Medium Risk", "High Risk"]
RISK_LEVELS: tuple[str, ...] = ("Low Risk", "Medium Risk", "High Risk")

MIN_EXPLANATION_LENGTH = 50


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python; unknown keys are dropped."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class DetailedAnalysis(CamelModel):
    eye_alignment: str
    pupil_response: str
    corneal_clarity: str
    squinting_strain: str
    overall_eye_health: str


class ImageQuality(CamelModel):
    resolution: str
    sharpness_score: float = Field(ge=0, le=100)
    contrast_ratio: float = Field(ge=0, le=10)
    brightness_level: float = Field(ge=0, le=255)


class EyeGeometry(CamelModel):
    pupil_diameter_left: float = Field(ge=0, le=20)
    pupil_diameter_right: float = Field(ge=0, le=20)
    pupil_asymmetry_ratio: float = Field(ge=0, le=2)
    eye_alignment_angle: float = Field(ge=-45, le=45)
    inter_pupillary_distance: float = Field(ge=0, le=80)


class RiskIndicators(CamelModel):
    squinting_probability: float = Field(ge=0, le=100)
    alignment_deviation: float = Field(ge=0, le=100)
    corneal_reflex_symmetry: float = Field(ge=0, le=100)
    focus_accuracy: float = Field(ge=0, le=100)


class Interval(CamelModel):
    lower: float = Field(ge=0, le=100)
    upper: float = Field(ge=0, le=100)


class ConfidenceIntervals(CamelModel):
    overall_assessment: Interval
    myopia_risk: Interval


class TechnicalMetrics(CamelModel):
    image_quality: ImageQuality
    eye_geometry: EyeGeometry
    risk_indicators: RiskIndicators
    confidence_intervals: ConfidenceIntervals


class ProgressionAnalysis(CamelModel):
    overall_trend: str
    image_comparison: str
    temporal_changes: list[str] = []


class AssessmentResult(CamelModel):
    """Structured output expected from the vision model."""

    risk_level: RiskLevel
    explanation: str = Field(min_length=MIN_EXPLANATION_LENGTH)
    confidence: float = Field(ge=0, le=1)
    detected_features: list[str] = []
    recommendations: list[str] = []
    visual_aid_suggestions: list[str] = []
    detailed_analysis: DetailedAnalysis
    technical_metrics: TechnicalMetrics
    progression_analysis: Optional[ProgressionAnalysis] = None

    @field_validator("detected_features", "recommendations", "visual_aid_suggestions", mode="before")
    @classmethod
    def _null_list_as_empty(cls, v):
        return [] if v is None else v

    def to_response(self, **envelope) -> dict:
        """Wire payload with confidence rounded to two decimals plus *envelope* keys."""
        payload = self.model_dump(by_alias=True, exclude_none=True)
        payload["confidence"] = round(self.confidence, 2)
        payload.update(envelope)
        return payload


class AssessRequest(CamelModel):
    """JSON body for ``POST /api/assess-eyes``."""

    image: Optional[str] = None
    child_age: Optional[str] = None
    additional_notes: Optional[str] = None

    @field_validator("child_age", mode="before")
    @classmethod
    def _age_as_text(cls, v):
        if v is None or v == "":
            return None
        return str(v).strip() or None


def normalize_gender(value: Optional[str]) -> Optional[str]:
    """m/male/boy → Male, f/female/girl → Female, blank → None, else as sent."""
    if value is None:
        return None
    cleaned = str(value).strip()
    if not cleaned:
        return None
    lower = cleaned.lower()
    if lower in {"m", "male", "boy"}:
        return "Male"
    if lower in {"f", "female", "girl"}:
        return "Female"
    return cleaned


class BatchAssessRequest(CamelModel):
    """JSON body for ``POST /api/assess-eyes-batch`` (image count is checked by the handler)."""

    images: list[str]
    child_age: Optional[int] = Field(default=None, ge=0, le=120)
    gender: Optional[str] = None
    additional_notes: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _accept_age_alias(cls, data):
        # Older clients send ``age`` instead of ``childAge``.
        if isinstance(data, dict) and "childAge" not in data and "age" in data:
            data = {**data, "childAge": data["age"]}
        return data

    @field_validator("child_age", mode="before")
    @classmethod
    def _blank_age(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("gender", mode="before")
    @classmethod
    def _normalize_gender(cls, v):
        return normalize_gender(v)
