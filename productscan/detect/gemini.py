"""Gemini vision-model defect detector."""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import ValidationError

from productscan.detect.errors import DetectionAPIError, DetectionParseError, NotAProductError
from productscan.types import DetectionResult, ImageArtifact

INSPECTION_PROMPT = """\
You are an expert inspection AI for building products such as windows, doors, frames, \
sliding systems, and glass panels. Analyze images for any visible defects and classify the product type.

Respond ONLY with valid JSON in this exact format:
{
  "is_window": true|false,
  "non_window_reason": "Short reason when is_window is false, otherwise empty string",
  "cracks": [
    {
      "type": "crack|chip|scratch|shatter|dent|warp|misalignment|broken_frame|glass_breakage|other_defect",
      "severity": "minor|moderate|severe",
      "location": {"x": 0-100, "y": 0-100, "width": 0-100, "height": 0-100},
      "confidence": 0-100
    }
  ],
  "window_type": "window|door|frame|sliding|glass_panel|other|unknown",
  "overall_confidence": 0-100,
  "analysis": "Brief description of findings, including whether the product is defective overall",
  "is_defective": true|false
}

Location coordinates are percentages (0-100) of image dimensions. If no cracks found, return empty cracks array.

If the image does NOT contain a relevant product (for example: random objects, people, scenery, documents, etc.), then:
- Set "is_window" to false
- Set "non_window_reason" to a short explanation
- Set "cracks" to an empty array
- Set "window_type" to "unknown"
- Set "overall_confidence" to 0
- Set "analysis" to a short sentence explaining that no relevant product was detected.
- Set "is_defective" to false.

Now analyze this image for defects, classify the product type (window/door/frame/sliding/glass panel/etc.), \
and decide if the product is defective overall. Provide bounding box coordinates for any defects found."""

DEFAULT_NON_PRODUCT_REASON = "The uploaded image does not appear to contain a window."

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


class GeminiDetector:
    """Defect classification via Gemini (``google-genai`` SDK).

    The API key is passed in explicitly; resolve it from the environment with
    ``DetectionConfig.resolve_api_key`` at the entry point.

    Satisfies the ``DefectDetector`` protocol.
    """

    def __init__(
        self,
        api_key: str | None,
        model: str = "gemini-2.0-flash",
        temperature: float = 0.3,
        max_output_tokens: int = 1000,
    ) -> None:
        if not api_key:
            raise ValueError(
                "No Gemini API key provided. Set the environment variable named by "
                "detection.api_key_env_var (default GEMINI_API_KEY)."
            )
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._client: Any = None

    @property
    def model(self) -> str:
        return self._model

    def analyze(self, artifact: ImageArtifact) -> DetectionResult:
        """Send the image with the inspection prompt and parse the JSON answer.

        Raises:
            DetectionAPIError: The API call failed (``retryable`` for 429/5xx/timeouts).
            DetectionParseError: No valid result could be extracted.
            NotAProductError: The model says the image shows no relevant product.
        """
        genai = self._get_genai()
        client = self._get_client(genai)

        try:
            response = client.models.generate_content(
                model=self._model,
                contents=[
                    INSPECTION_PROMPT,
                    genai.types.Part.from_bytes(data=artifact.data, mime_type=artifact.mime_type),
                ],
                config=genai.types.GenerateContentConfig(
                    temperature=self._temperature,
                    max_output_tokens=self._max_output_tokens,
                ),
            )
        except Exception as exc:
            raise DetectionAPIError("gemini", str(exc), retryable=_is_retryable(exc)) from exc

        return parse_detection_response(response.text or "")

    # ------------------------------------------------------------------

    def _get_genai(self) -> Any:
        try:
            import google.genai as genai  # type: ignore[import-untyped]
            return genai
        except ImportError as exc:
            raise ImportError(
                "google-genai is required for the Gemini detector. "
                "Install it with: pip install 'google-genai>=1.0'"
            ) from exc

    def _get_client(self, genai: Any) -> Any:
        if self._client is None:
            self._client = genai.Client(api_key=self._api_key)
        return self._client


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def parse_detection_response(text: str) -> DetectionResult:
    """Extract and validate the JSON object embedded in a model reply.

    Models often wrap the JSON in a Markdown fence or add prose around it, so
    everything from the first ``{`` to the last ``}`` is taken.
    """
    match = _JSON_BLOCK.search(text)
    if not match:
        raise DetectionParseError("Failed to parse AI response")
    try:
        result = DetectionResult.model_validate(json.loads(match.group(0)))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise DetectionParseError(f"Failed to parse AI response: {exc}") from exc

    if result.is_window is False:
        raise NotAProductError(result.non_window_reason or DEFAULT_NON_PRODUCT_REASON)
    return result


def _is_retryable(exc: Exception) -> bool:
    msg = str(exc).lower()
    return any(kw in msg for kw in ("rate limit", "429", "500", "503", "timeout", "unavailable"))
