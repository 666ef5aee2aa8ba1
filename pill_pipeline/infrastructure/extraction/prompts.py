"""
Extraction Prompts

Prompt text for the vision attribute extractor.
"""

from typing import Optional

from ...domain.normalization import SHAPE_OPTIONS, COLOR_OPTIONS, SCORING_OPTIONS, UNCLEAR


SYSTEM_PROMPT = (
    "You are a vision assistant that describes the visible physical attributes "
    "of a single pill. Output valid JSON only. Do not include any text outside of the JSON."
)


def build_extraction_prompt(context_hint: Optional[str] = None) -> str:
    """
    Build the user prompt for one crop.

    Args:
        context_hint: Optional free-text context supplied by the user
    """
    allowed_shapes = " | ".join(SHAPE_OPTIONS)
    allowed_colors = " | ".join(COLOR_OPTIONS)
    allowed_scoring = " | ".join(SCORING_OPTIONS)

    prompt = f"""
Return a single JSON object with exactly these keys (valid JSON, no extra keys, no missing keys):

{{
  "shape": string,          // one of: {allowed_shapes}, or "{UNCLEAR}"
  "color": string,          // one of: {allowed_colors}, or "{UNCLEAR}"
  "size_mm": number|null,   // longest visible dimension in millimetres, 0 or null if not estimable
  "thickness_mm": number|null,
  "front_imprint": string,  // characters exactly as printed on the visible face, or "{UNCLEAR}"
  "back_imprint": string,   // characters on the other face if visible, or "{UNCLEAR}"
  "scoring": string,        // one of: {allowed_scoring}, or "{UNCLEAR}"
  "coating": string|null,   // e.g. film-coated, sugar-coated, or "{UNCLEAR}"
  "notes": string|null,     // short observations about the image itself
  "confidence": number      // 0.0 - 1.0, see banding below
}}

Rules:
- Describe only what is visible in this image. Never invent or complete imprint characters;
  if any character is unreadable, use "{UNCLEAR}" for that imprint.
- Use "{UNCLEAR}" whenever visual evidence for a field is missing. Never guess.
- Do not identify the medicine and do not claim to have looked anything up in a database.
- Confidence banding (be conservative):
  0.90-1.00 only when imprint, shape and color are all clearly readable and consistent;
  0.70-0.89 when shape and color are clear and the imprint is mostly readable;
  0.40-0.69 when only shape and color are reliable;
  0.11-0.39 when the pill is partly visible or blurred;
  0.00-0.10 when there is no reliable signal.
- Output JSON only.
""".strip()

    if context_hint:
        prompt += f"\n\nUser-supplied context (may be wrong, do not copy it into imprints): {context_hint.strip()}"

    return prompt
