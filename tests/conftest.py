"""Shared fixtures: real pipeline code wired to in-memory stand-ins for Claude, Stripe and SMTP."""
import json
import sys
from datetime import date
from pathlib import Path
from types import SimpleNamespace
from typing import List, Optional

import pytest

# Ensure repository root is on sys.path for module resolution
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from repair_intel.analyzer import ClaudeEstimateAnalyzer
from repair_intel.config import Settings
from repair_intel.errors import UpstreamServiceFailure
from repair_intel.notifications import NotificationDispatcher, OutgoingEmail
from repair_intel.payments import StripeCheckout
from repair_intel.pipeline import ReportPipeline, Services
from repair_intel.storage import ReportStore

FIXED_DATE = date(2025, 3, 14)

INSPECTION_TEXT = """3.2 Roof Covering
Missing shingles observed on the north slope. Recommend repair by a qualified roofer.
7.1 Crawlspace
Evidence of subterranean termite tubes on the sill plate.
"""

ROOF_CATEGORY = {
    "category_name": "Roof Repair",
    "inspection_items": [{"section_number": "3.2", "description": "Missing shingles"}],
    "handyman_cost": 500,
    "contractor_cost": 1200,
    "recommended_trade": "Roofer",
}

PLUMBING_CATEGORY = {
    "category_name": "Plumbing",
    "inspection_items": [
        {"section_number": "9.1", "description": "Leaking trap under kitchen sink"},
        {"section_number": "9.4", "description": "Water heater TPR valve missing extension"},
    ],
    "handyman_cost": 250,
    "contractor_cost": 650,
    "recommended_trade": "Plumber",
}


def estimate_payload(categories=None, termites=False, pests=False, rot=False) -> dict:
    return {
        "repair_categories": [ROOF_CATEGORY] if categories is None else categories,
        "termites_mentioned": termites,
        "pests_mentioned": pests,
        "rot_mentioned": rot,
    }


# ---------------- Fakes ----------------
class FakeExtractor:
    def __init__(self, text: str = INSPECTION_TEXT, error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.calls: List[bytes] = []

    def extract_text(self, file_bytes: bytes) -> str:
        self.calls.append(file_bytes)
        if self.error:
            raise self.error
        return self.text


class FakeMessages:
    def __init__(self, raw: str = "", error: Optional[Exception] = None):
        self.raw = raw
        self.error = error
        self.calls: List[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=self.raw)])


class FakeAnthropicClient:
    def __init__(self, raw: str = "", error: Optional[Exception] = None):
        self.messages = FakeMessages(raw=raw, error=error)


class RecordingMailer:
    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.sent: List[OutgoingEmail] = []

    def send(self, message: OutgoingEmail) -> None:
        if message.kind in self.fail_on:
            raise UpstreamServiceFailure(f"Email to {message.to} failed: connection refused", service="smtp")
        self.sent.append(message)

    def kinds(self) -> List[str]:
        return [m.kind for m in self.sent]


class FakeStripeSessions:
    def __init__(self, error: Optional[Exception] = None, payment_status: str = "paid", amount_total: int = 4999):
        self.error = error
        self.payment_status = payment_status
        self.amount_total = amount_total
        self.created: List[dict] = []
        self.retrieved: List[str] = []

    def create(self, **kwargs):
        if self.error:
            raise self.error
        self.created.append(kwargs)
        return SimpleNamespace(id="cs_test_123", url="https://checkout.stripe.test/pay/cs_test_123")

    def retrieve(self, session_id, **kwargs):
        if self.error:
            raise self.error
        self.retrieved.append(session_id)
        return SimpleNamespace(id=session_id, payment_status=self.payment_status, amount_total=self.amount_total)


# ---------------- Fixtures ----------------
@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        anthropic_api_key="test-key",
        stripe_secret_key="sk_test_dummy",
        database_path=str(tmp_path / "reports.db"),
        ocr_enabled=False,
        from_email="reports@repairintel.test",
        admin_notify_email="admin@repairintel.test",
        pest_lead_email="leads@greenmantis.test",
    )


@pytest.fixture
def store(settings: Settings):
    s = ReportStore(settings.database_path)
    yield s
    s.close()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def stripe_sessions() -> FakeStripeSessions:
    return FakeStripeSessions()


@pytest.fixture
def make_services(settings, store, mailer, stripe_sessions):
    """Build Services around a canned Claude reply (dict payload or raw string)."""

    def _make(reply=None, extractor=None, analyzer_error=None, notifier_mailer=None, **overrides):
        if reply is None:
            reply = estimate_payload()
        raw = reply if isinstance(reply, str) else json.dumps(reply)
        effective = settings.model_copy(update=overrides) if overrides else settings
        client = FakeAnthropicClient(raw=raw, error=analyzer_error)
        return Services(
            settings=effective,
            extractor=extractor or FakeExtractor(),
            analyzer=ClaudeEstimateAnalyzer(client=client, max_input_chars=effective.analyzer_max_input_chars),
            store=store,
            notifier=NotificationDispatcher(
                notifier_mailer or mailer,
                admin_email=effective.admin_notify_email,
                pest_lead_email=effective.pest_lead_email,
                price_display=effective.report_price_display,
            ),
            checkout=StripeCheckout(
                api_key=effective.stripe_secret_key,
                unit_amount=effective.report_price,
                session_api=stripe_sessions,
            ),
        )

    return _make


@pytest.fixture
def make_pipeline(make_services):
    def _make(**kwargs) -> ReportPipeline:
        return ReportPipeline(make_services(**kwargs), today=lambda: FIXED_DATE)

    return _make


@pytest.fixture
def make_pdf():
    """Return a small but valid single-page PDF with the given lines of text."""

    def _make(lines: List[str]) -> bytes:
        content = "BT /F1 12 Tf 14 TL 72 720 Td " + " ".join(f"({line}) Tj T*" for line in lines) + " ET"
        stream = content.encode("latin-1")
        objects = [
            b"<< /Type /Catalog /Pages 2 0 R >>",
            b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
            b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R "
            b"/Resources << /Font << /F1 5 0 R >> >> >>",
            b"<< /Length " + str(len(stream)).encode() + b" >>\nstream\n" + stream + b"\nendstream",
            b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
        ]
        out = b"%PDF-1.4\n"
        offsets = []
        for number, body in enumerate(objects, start=1):
            offsets.append(len(out))
            out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"
        xref_at = len(out)
        out += f"xref\n0 {len(objects) + 1}\n".encode()
        out += b"0000000000 65535 f \n"
        for off in offsets:
            out += f"{off:010d} 00000 n \n".encode()
        out += f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref_at}\n%%EOF\n".encode()
        return out

    return _make
