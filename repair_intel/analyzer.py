import json
import re
from typing import Any, Optional

import anthropic
import httpx
from pydantic import ValidationError

from .config import DEFAULT_ANALYZER_MAX_INPUT_CHARS, DEFAULT_CLAUDE_MODEL
from .errors import MalformedResponse, UpstreamServiceFailure
from .models import CostEstimate

# ---------------- Prompt ----------------
ESTIMATE_SYSTEM_PROMPT = """You are a home repair cost estimator for a real estate negotiation tool.

Analyze the home inspection report you are given and create repair cost estimates,
grouped into repair categories. For each category give a HANDYMAN cost (low end)
and a CONTRACTOR cost (high end) in USD, reference the inspection report sections
the category covers, and name the trade best suited to do the work.

Return JSON ONLY, no prose and no markdown, with exactly this structure:
{
  "repair_categories": [
    {
      "category_name": "string",
      "inspection_items": [{"section_number": "string", "description": "string"}],
      "handyman_cost": number,
      "contractor_cost": number,
      "recommended_trade": "string"
    }
  ],
  "termites_mentioned": boolean,
  "pests_mentioned": boolean,
  "rot_mentioned": boolean
}
"""

_FENCE_OPEN = re.compile(r"^```[\w-]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")


def truncate_for_analysis(text: str, max_chars: int = DEFAULT_ANALYZER_MAX_INPUT_CHARS) -> str:
    """Hard cut, not a summary: it may split a sentence and drop trailing findings."""
    text = text or ""
    return text[:max_chars]


def parse_estimate(raw: str) -> CostEstimate:
    s = (raw or "").strip()
    if s.startswith("```"):
        s = _FENCE_OPEN.sub("", s)
        s = _FENCE_CLOSE.sub("", s)
    if not s:
        raise MalformedResponse("Claude returned an empty response", raw=raw or "")
    try:
        parsed = json.loads(s)
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"Claude response is not valid JSON: {e}", raw=raw) from e
    if not isinstance(parsed, dict):
        raise MalformedResponse("Claude response is not a JSON object", raw=raw)
    if not isinstance(parsed.get("repair_categories"), list):
        raise MalformedResponse("Claude response is missing the repair_categories list", raw=raw)
    try:
        return CostEstimate.model_validate(parsed)
    except ValidationError as e:
        raise MalformedResponse(f"Claude response does not match the estimate schema: {e}", raw=raw) from e


class ClaudeEstimateAnalyzer:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_CLAUDE_MODEL,
        max_tokens: int = 4000,
        timeout_seconds: float = 120.0,
        max_input_chars: int = DEFAULT_ANALYZER_MAX_INPUT_CHARS,
        client: Any = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.max_input_chars = max_input_chars
        self._client = client
        if self._client is None and api_key:
            self._client = anthropic.Anthropic(
                api_key=api_key,
                timeout=httpx.Timeout(timeout_seconds),
                max_retries=0,
            )
        print("DEBUG[analyzer]: Anthropic client initialized:", bool(self._client))

    def analyze(self, text: str) -> CostEstimate:
        if not self._client:
            raise UpstreamServiceFailure("Anthropic API not configured", service="anthropic")

        clipped = truncate_for_analysis(text, self.max_input_chars)
        if len(clipped) < len(text or ""):
            print(f"DEBUG[analyzer]: input truncated from {len(text)} to {len(clipped)} chars")

        user_message = f"""Analyze this home inspection report and create repair cost estimates.

Inspection text:
{clipped}
"""
        try:
            resp = self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=0,
                system=ESTIMATE_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": user_message}],
            )
        except anthropic.APIError as e:
            print("DEBUG[analyzer]: exception:", e)
            raise UpstreamServiceFailure(f"Claude request failed: {e}", service="anthropic") from e

        raw = "".join(getattr(block, "text", "") or "" for block in (resp.content or []))
        print("\n=== DEBUG: Raw Claude Estimate (first 700 chars) ===")
        print(raw[:700])
        print("=" * 50)
        return parse_estimate(raw)
