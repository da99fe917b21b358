import json

import anthropic
import httpx
import pytest

from conftest import INSPECTION_TEXT, PLUMBING_CATEGORY, FakeAnthropicClient, estimate_payload

from repair_intel.analyzer import ClaudeEstimateAnalyzer, parse_estimate, truncate_for_analysis
from repair_intel.errors import MalformedResponse, UpstreamServiceFailure


def test_analyze_returns_estimate_and_sends_prompt():
    client = FakeAnthropicClient(raw=json.dumps(estimate_payload(termites=True)))
    analyzer = ClaudeEstimateAnalyzer(client=client, model="claude-test")

    estimate = analyzer.analyze(INSPECTION_TEXT)

    assert [c.category_name for c in estimate.repair_categories] == ["Roof Repair"]
    assert estimate.termites_mentioned is True
    assert estimate.pest_lead is True
    call = client.messages.calls[0]
    assert call["model"] == "claude-test"
    assert call["temperature"] == 0
    assert "repair_categories" in call["system"]
    assert "Missing shingles observed" in call["messages"][0]["content"]


def test_input_is_hard_truncated_to_configured_limit():
    client = FakeAnthropicClient(raw=json.dumps(estimate_payload()))
    analyzer = ClaudeEstimateAnalyzer(client=client, max_input_chars=50)
    long_text = "A" * 50 + "TRAILING-FINDING"

    analyzer.analyze(long_text)

    content = client.messages.calls[0]["messages"][0]["content"]
    assert "A" * 50 in content
    assert "TRAILING-FINDING" not in content


def test_truncate_default_is_forty_thousand_chars():
    assert len(truncate_for_analysis("x" * 40010)) == 40000
    assert truncate_for_analysis("short") == "short"
    assert truncate_for_analysis(None) == ""


def test_code_fences_are_stripped():
    raw = "```json\n" + json.dumps(estimate_payload(categories=[PLUMBING_CATEGORY])) + "\n```"

    estimate = parse_estimate(raw)

    assert estimate.repair_categories[0].recommended_trade == "Plumber"
    assert estimate.handyman_total == 250


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "Here is your estimate: {not json}",
        "[]",
        json.dumps({"termites_mentioned": True}),
        json.dumps({"repair_categories": None}),
        json.dumps({"repair_categories": [{"category_name": "Roof", "handyman_cost": "lots"}]}),
        json.dumps({"repair_categories": [{"category_name": "Roof", "handyman_cost": -5}]}),
    ],
)
def test_malformed_replies_raise(raw):
    with pytest.raises(MalformedResponse):
        parse_estimate(raw)


def test_missing_optional_fields_are_tolerated():
    estimate = parse_estimate(json.dumps({"repair_categories": [{"category_name": "Gutters", "handyman_cost": "$1,100"}]}))

    category = estimate.repair_categories[0]
    assert category.inspection_items == []
    assert category.handyman_cost == 1100
    assert category.contractor_cost == 0
    assert category.recommended_trade == ""
    assert estimate.termites_mentioned is False
    assert estimate.pest_lead is False


def test_api_errors_become_upstream_failures():
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    client = FakeAnthropicClient(error=anthropic.APITimeoutError(request=request))
    analyzer = ClaudeEstimateAnalyzer(client=client)

    with pytest.raises(UpstreamServiceFailure) as excinfo:
        analyzer.analyze(INSPECTION_TEXT)

    assert excinfo.value.service == "anthropic"
    assert not isinstance(excinfo.value, MalformedResponse)


def test_unconfigured_analyzer_fails_upstream():
    analyzer = ClaudeEstimateAnalyzer(api_key=None)

    with pytest.raises(UpstreamServiceFailure, match="not configured"):
        analyzer.analyze(INSPECTION_TEXT)


def test_real_client_gets_bounded_timeout_and_no_retries():
    analyzer = ClaudeEstimateAnalyzer(api_key="x", timeout_seconds=45)

    assert isinstance(analyzer._client, anthropic.Anthropic)
    assert analyzer._client.timeout == httpx.Timeout(45)
    assert analyzer._client.max_retries == 0
