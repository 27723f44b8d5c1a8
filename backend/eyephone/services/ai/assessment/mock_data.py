"""Canned assessments used by the mock provider and as a fallback result."""

from __future__ import annotations

import random
from typing import Any, Optional, Sequence

LARGE_IMAGE_BYTES = 1_000_000
CONFIDENCE_JITTER = 0.1
CONFIDENCE_FLOOR = 0.6
CONFIDENCE_CEILING = 0.99

MOCK_RESULTS: list[dict[str, Any]] = [
    {
        "riskLevel": "Low Risk",
        "explanation": (
            "Eye alignment appears normal with no significant concerns detected. "
            "Both eyes show proper coordination and focus."
        ),
        "confidence": 0.92,
        "detectedFeatures": ["Normal eye alignment", "Symmetric pupil response", "Clear corneal reflex"],
    },
    {
        "riskLevel": "Low Risk",
        "explanation": (
            "Eyes appear healthy with good alignment. Minor asymmetry detected but within "
            "normal range for child development."
        ),
        "confidence": 0.88,
        "detectedFeatures": ["Good eye coordination", "Normal pupil size", "Healthy eye appearance"],
    },
    {
        "riskLevel": "Medium Risk",
        "explanation": (
            "Subtle eye alignment variations detected. One eye may turn slightly inward or "
            "outward, which could indicate early strabismus."
        ),
        "callToAction": (
            "Schedule a comprehensive eye exam to ensure optimal eye health and rule out any "
            "developing conditions."
        ),
        "confidence": 0.76,
        "detectedFeatures": ["Mild eye misalignment", "Possible strabismus indicators", "Asymmetric light reflex"],
    },
    {
        "riskLevel": "Medium Risk",
        "explanation": (
            "Possible signs of refractive error detected. Child may be experiencing difficulty "
            "focusing, which could affect vision development."
        ),
        "callToAction": "Consider scheduling an eye exam to assess for nearsightedness, farsightedness, or astigmatism.",
        "confidence": 0.71,
        "detectedFeatures": ["Potential refractive error", "Focusing difficulties", "Eye strain indicators"],
    },
    {
        "riskLevel": "High Risk",
        "explanation": (
            "Significant eye alignment concerns detected requiring immediate attention. "
            "Possible strabismus or amblyopia risk identified."
        ),
        "callToAction": (
            "Please schedule an appointment with an eye care professional as soon as possible "
            "for proper evaluation and treatment."
        ),
        "confidence": 0.89,
        "detectedFeatures": ["Significant misalignment", "Strabismus indicators", "Amblyopia risk factors"],
    },
    {
        "riskLevel": "High Risk",
        "explanation": (
            "Concerning asymmetry in pupil response and eye positioning detected. This may "
            "indicate neurological or muscular issues affecting eye movement."
        ),
        "callToAction": "Immediate professional evaluation recommended. Contact an ophthalmologist or pediatric eye specialist.",
        "confidence": 0.94,
        "detectedFeatures": ["Pupil asymmetry", "Eye movement concerns", "Neurological indicators"],
    },
]

# Neutral metrics per risk level so mock results validate against the full schema.
_METRICS_BY_RISK: dict[str, dict[str, float]] = {
    "Low Risk": {"squint": 10, "deviation": 5, "reflex": 92, "focus": 90, "angle": 0.5, "asym": 1.02},
    "Medium Risk": {"squint": 45, "deviation": 30, "reflex": 70, "focus": 65, "angle": 4.0, "asym": 1.12},
    "High Risk": {"squint": 75, "deviation": 65, "reflex": 45, "focus": 40, "angle": 9.0, "asym": 1.3},
}

_RECOMMENDATIONS_BY_RISK: dict[str, list[str]] = {
    "Low Risk": ["Continue routine annual eye examinations", "Encourage outdoor play and screen breaks"],
    "Medium Risk": ["Schedule a comprehensive eye exam", "Monitor for squinting or eye rubbing"],
    "High Risk": ["See a pediatric ophthalmologist promptly", "Avoid delaying professional evaluation"],
}


def _weighted_pool(image_count: int, image_sizes: Sequence[int]) -> list[dict[str, Any]]:
    pool = list(MOCK_RESULTS)
    has_large = any(size > LARGE_IMAGE_BYTES for size in image_sizes)
    if image_count > 1 and has_large:
        low = [r for r in MOCK_RESULTS if r["riskLevel"] == "Low Risk"]
        pool = (
            low
            + low
            + [r for r in MOCK_RESULTS if r["riskLevel"] == "Medium Risk"]
            + [r for r in MOCK_RESULTS if r["riskLevel"] == "High Risk"]
        )
    return pool


def jitter_confidence(base: float, rng: random.Random) -> float:
    variation = (rng.random() - 0.5) * CONFIDENCE_JITTER
    return round(max(CONFIDENCE_FLOOR, min(CONFIDENCE_CEILING, base + variation)), 2)


def _expand(selected: dict[str, Any], confidence: float, image_count: int, include_progression: bool) -> dict[str, Any]:
    risk = selected["riskLevel"]
    m = _METRICS_BY_RISK[risk]
    summary = selected["explanation"]
    pct = round(confidence * 100)
    payload: dict[str, Any] = {
        **selected,
        "confidence": confidence,
        "recommendations": list(_RECOMMENDATIONS_BY_RISK[risk]),
        "visualAidSuggestions": [],
        "detailedAnalysis": {
            "eyeAlignment": summary,
            "pupilResponse": "Pupil response estimated from the simulated screening.",
            "cornealClarity": "Corneal clarity estimated from the simulated screening.",
            "squintingStrain": "Squinting and strain estimated from the simulated screening.",
            "overallEyeHealth": f"Simulated result for {image_count} image(s); not a medical finding.",
        },
        "technicalMetrics": {
            "imageQuality": {
                "resolution": "unknown",
                "sharpnessScore": 75,
                "contrastRatio": 4.5,
                "brightnessLevel": 128,
            },
            "eyeGeometry": {
                "pupilDiameterLeft": 4.0,
                "pupilDiameterRight": round(4.0 * m["asym"], 2),
                "pupilAsymmetryRatio": m["asym"],
                "eyeAlignmentAngle": m["angle"],
                "interPupillaryDistance": 52,
            },
            "riskIndicators": {
                "squintingProbability": m["squint"],
                "alignmentDeviation": m["deviation"],
                "cornealReflexSymmetry": m["reflex"],
                "focusAccuracy": m["focus"],
            },
            "confidenceIntervals": {
                "overallAssessment": {"lower": max(0, pct - 10), "upper": min(100, pct + 5)},
                "myopiaRisk": {"lower": m["squint"] * 0.5, "upper": min(100, m["squint"] * 1.2)},
            },
        },
    }
    if include_progression:
        payload["progressionAnalysis"] = {
            "overallTrend": "Simulated result; no trend analysis was performed.",
            "imageComparison": f"{image_count} images were received and treated as one set.",
            "temporalChanges": [],
        }
    return payload


def build_mock_assessment(
    *,
    image_count: int = 1,
    image_sizes: Sequence[int] = (),
    include_progression: bool = False,
    rng: Optional[random.Random] = None,
) -> dict[str, Any]:
    """Pick a canned result and expand it into the full assessment shape.

    Multi-image submissions with at least one image over 1 MB are weighted
    toward Low Risk. Confidence gets ±5 % jitter, clamped to 0.60–0.99.
    """
    rng = rng or random.Random()
    pool = _weighted_pool(image_count, image_sizes)
    selected = pool[rng.randrange(len(pool))]
    confidence = jitter_confidence(selected["confidence"], rng)
    return _expand(selected, confidence, image_count, include_progression)
