"""Prompt text for eye assessments.

Kept in one module so prompt wording can be reviewed and edited without
touching request handling. Every prompt ends with a JSON format instruction;
responses are validated against ``contracts.AssessmentResult``.
"""

from __future__ import annotations

from typing import Optional

_CRITERIA = """1. Eye Alignment: Assess coordination, symmetry, and any signs of strabismus or misalignment
2. Pupil Response: Evaluate size, shape, symmetry, and light reflex patterns
3. Corneal Clarity: Check transparency, reflection patterns, and any cloudiness
4. Squinting/Strain: Look for signs of difficulty focusing, partial eye closure, or strain
5. Overall Eye Health: Note any other visible abnormalities, inflammation, or concerns"""

SINGLE_IMAGE_PROMPT = f"""You are a pediatric eye health screening AI assistant. Analyze this photo for signs of myopia and other eye conditions in children.

IMPORTANT MEDICAL CONTEXT:
- Look for subtle markers like squinting, abnormal eye alignment, reduced corneal clarity
- Check for asymmetric pupil response, eye positioning, and focus patterns
- Consider signs of refractive errors, strabismus, or amblyopia
- Base assessment on research showing 80% accuracy for myopia detection from photos

DETAILED ANALYSIS REQUIRED:
For each criterion, provide specific observations:

{_CRITERIA}"""


def batch_images_prompt(image_count: int) -> str:
    return f"""You are a pediatric eye health screening AI assistant. You have been provided with {image_count} photos to analyze for signs of myopia and other eye conditions in children.

IMPORTANT MEDICAL CONTEXT:
- Analyze ALL {image_count} images together to form a comprehensive assessment
- Look for patterns across multiple photos (consistency, progression, different angles)
- Check for subtle markers like squinting, abnormal eye alignment, reduced corneal clarity
- Assess pupil response, eye positioning, and focus patterns across images
- Consider signs of refractive errors, strabismus, or amblyopia
- Base assessment on research showing 80% accuracy for myopia detection from photos

MULTI-IMAGE ANALYSIS APPROACH:
- Compare findings across all images for consistency
- Note any variations or changes between photos
- Use multiple angles/perspectives to improve accuracy
- Identify patterns that may not be visible in a single image

DETAILED ANALYSIS REQUIRED:
For each criterion, provide specific observations synthesized from ALL images:

{_CRITERIA}

PROGRESSION ANALYSIS (since you have multiple images):
- Describe any patterns or trends visible across the images
- Note consistency or variations in findings
- Identify any temporal changes if images appear to be from different times"""


def _json_format_instruction(*, note: str = "", average: bool = False, progression: bool = False) -> str:
    avg = ", average" if average else ""
    synthesized = " (synthesized from all images)" if average else ""
    body = f"""
IMPORTANT: You must respond with ONLY valid JSON in this exact format, no additional text:
{{
  "riskLevel": "Low Risk" | "Medium Risk" | "High Risk",
  "explanation": "string (minimum 50 characters{', ' + note if note else ''})",
  "confidence": number (0-1),
  "detectedFeatures": ["string"],
  "recommendations": ["string"],
  "visualAidSuggestions": ["string"],
  "detailedAnalysis": {{
    "eyeAlignment": "string{synthesized}",
    "pupilResponse": "string{synthesized}",
    "cornealClarity": "string{synthesized}",
    "squintingStrain": "string{synthesized}",
    "overallEyeHealth": "string{synthesized}"
  }},
  "technicalMetrics": {{
    "imageQuality": {{
      "resolution": "string{' (average or range across images)' if average else ''}",
      "sharpnessScore": number (0-100{avg}),
      "contrastRatio": number (0-10{avg}),
      "brightnessLevel": number (0-255{avg})
    }},
    "eyeGeometry": {{
      "pupilDiameterLeft": number (0-20{avg}),
      "pupilDiameterRight": number (0-20{avg}),
      "pupilAsymmetryRatio": number (0-2{avg}),
      "eyeAlignmentAngle": number (-45 to 45{avg}),
      "interPupillaryDistance": number (0-80{avg})
    }},
    "riskIndicators": {{
      "squintingProbability": number (0-100),
      "alignmentDeviation": number (0-100),
      "cornealReflexSymmetry": number (0-100),
      "focusAccuracy": number (0-100)
    }},
    "confidenceIntervals": {{
      "overallAssessment": {{
        "lower": number (0-100),
        "upper": number (0-100)
      }},
      "myopiaRisk": {{
        "lower": number (0-100),
        "upper": number (0-100)
      }}
    }}
  }}"""
    if progression:
        body += """,
  "progressionAnalysis": {
    "overallTrend": "string (describe patterns across images)",
    "imageComparison": "string (note differences/similarities between images)",
    "temporalChanges": ["string (any changes if images from different times)"]
  }"""
    return body + "\n}"


JSON_SCHEMA_INSTRUCTION = _json_format_instruction()


def batch_json_schema_instruction(image_count: int) -> str:
    return _json_format_instruction(
        note=f"synthesize findings from all {image_count} images",
        average=True,
        progression=True,
    )


def _context_lines(
    child_age: Optional[object] = None,
    gender: Optional[str] = None,
    additional_notes: Optional[str] = None,
) -> str:
    lines = []
    if child_age not in (None, ""):
        lines.append(f"Child's age: {child_age} years")
    if gender:
        lines.append(f"Child's gender: {gender}")
    if additional_notes:
        lines.append(f"Additional notes: {additional_notes}")
    return "\n".join(lines)


def build_single_prompt(child_age: Optional[str] = None, additional_notes: Optional[str] = None) -> str:
    context = _context_lines(child_age=child_age, additional_notes=additional_notes)
    parts = [SINGLE_IMAGE_PROMPT]
    if context:
        parts.append(context)
    parts.append(JSON_SCHEMA_INSTRUCTION)
    return "\n\n".join(parts)


def build_batch_prompt(
    image_count: int,
    child_age: Optional[int] = None,
    gender: Optional[str] = None,
    additional_notes: Optional[str] = None,
) -> str:
    context = _context_lines(child_age=child_age, gender=gender, additional_notes=additional_notes)
    parts = [batch_images_prompt(image_count)]
    if context:
        parts.append(context)
    parts.append(batch_json_schema_instruction(image_count))
    return "\n\n".join(parts)


GEMINI_TEST_PROMPT = 'Respond with exactly: "Gemini API is working correctly"'
