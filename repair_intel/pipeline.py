"""End-to-end "process a report" workflow.

Stages run strictly in order::

    RECEIVED -> EXTRACTED -> ANALYZED -> FORMATTED -> STORED -> NOTIFIED -> COMPLETE

Anything up to FORMATTED is fatal: the error propagates tagged with the last
stage reached, and nothing is stored or sent. Once a report exists, storage and
notification failures are collected instead and the run ends ``partial``.
"""
import asyncio
import re
import time
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Callable, Dict, List, Optional

from .analyzer import ClaudeEstimateAnalyzer
from .config import Settings
from .errors import PaymentRequired, RepairIntelError, ValidationFailure
from .extraction import PdfTextExtractor
from .models import CheckoutSession, ProcessResult, StepFailure, StoredRecord, Submission
from .notifications import NotificationDispatcher, SmtpMailer
from .payments import StripeCheckout
from .report import format_report
from .storage import ReportStore

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_TEXT_CHARS = 20


class Stage(str, Enum):
    RECEIVED = "received"
    EXTRACTED = "extracted"
    ANALYZED = "analyzed"
    FORMATTED = "formatted"
    STORED = "stored"
    NOTIFIED = "notified"
    COMPLETE = "complete"
    FAILED = "failed"


def _elapsed_s(start: float) -> float:
    return round(time.perf_counter() - start, 3)


def _print_timing_summary(timings: Dict[str, float]) -> None:
    print(
        "TIMING[/api/process-report]:\n"
        f"  extract_text={timings.get('extract_text', 0.0):.3f}s\n"
        f"  analysis={timings.get('analysis', 0.0):.3f}s\n"
        f"  format={timings.get('format', 0.0):.3f}s\n"
        f"  store={timings.get('store', 0.0):.3f}s\n"
        f"  notify={timings.get('notify', 0.0):.3f}s\n"
        f"  total={timings.get('total', 0.0):.3f}s"
    )


@dataclass
class Services:
    """Collaborators built once at startup and handed to the pipeline."""

    settings: Settings
    extractor: PdfTextExtractor
    analyzer: ClaudeEstimateAnalyzer
    store: ReportStore
    notifier: NotificationDispatcher
    checkout: StripeCheckout

    @classmethod
    def from_settings(cls, settings: Settings) -> "Services":
        mailer = SmtpMailer(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_pass,
            from_email=settings.from_email,
            starttls=settings.smtp_starttls,
            timeout_seconds=settings.smtp_timeout_seconds,
        )
        return cls(
            settings=settings,
            extractor=PdfTextExtractor(ocr_enabled=settings.ocr_enabled),
            analyzer=ClaudeEstimateAnalyzer(
                api_key=settings.anthropic_api_key,
                model=settings.claude_model,
                max_tokens=settings.claude_response_max_tokens,
                timeout_seconds=settings.claude_timeout_seconds,
                max_input_chars=settings.analyzer_max_input_chars,
            ),
            store=ReportStore(settings.database_path),
            notifier=NotificationDispatcher(
                mailer,
                admin_email=settings.admin_notify_email,
                pest_lead_email=settings.pest_lead_email,
                price_display=settings.report_price_display,
            ),
            checkout=StripeCheckout(
                api_key=settings.stripe_secret_key,
                unit_amount=settings.report_price,
                currency=settings.currency,
            ),
        )

    def close(self) -> None:
        self.store.close()


class ReportPipeline:
    def __init__(self, services: Services, today: Optional[Callable[[], date]] = None):
        self.services = services
        self.settings = services.settings
        self._today = today or date.today

    # ---------------- Validation ----------------
    def validate(self, submission: Submission) -> None:
        missing: List[str] = []
        if not submission.first_name.strip():
            missing.append("firstName")
        if not submission.last_name.strip():
            missing.append("lastName")
        if not submission.email.strip():
            missing.append("email")
        if not submission.property_address.strip():
            missing.append("propertyAddress")
        if missing:
            raise ValidationFailure(f"Missing required fields: {', '.join(missing)}")
        if not EMAIL_PATTERN.match(submission.email.strip()):
            raise ValidationFailure(f"Invalid email address: {submission.email}")

        data = submission.pdf_bytes
        if not data:
            raise ValidationFailure("No PDF uploaded (expected a file in the 'pdf' field)")
        max_bytes = self.settings.max_upload_mb * 1024 * 1024
        if len(data) > max_bytes:
            raise ValidationFailure(f"PDF is larger than {self.settings.max_upload_mb} MB")
        name = (submission.filename or "").lower()
        if not (name.endswith(".pdf") or data[:5] == b"%PDF-"):
            raise ValidationFailure("Supported: .pdf")

    def _payment_amount(self, submission: Submission) -> Optional[float]:
        if not submission.payment_reference:
            if self.settings.require_payment:
                raise PaymentRequired("Payment is required before a report can be generated")
            return None
        if not self.settings.require_payment:
            # open mode: an unverified reference is kept, but only a paid session records an amount
            try:
                payment = self.services.checkout.retrieve_payment(submission.payment_reference)
            except RepairIntelError as e:
                print("DEBUG[payments]: payment lookup skipped:", e.message)
                return None
            return payment.amount if payment.paid else None
        payment = self.services.checkout.retrieve_payment(submission.payment_reference)
        if not payment.paid:
            raise PaymentRequired("Checkout session has not been paid")
        return payment.amount

    # ---------------- Workflows ----------------
    async def start_checkout(self, origin_url: str) -> CheckoutSession:
        return await asyncio.to_thread(self.services.checkout.create_checkout_session, origin_url)

    async def process(self, submission: Submission) -> ProcessResult:
        req_start = time.perf_counter()
        timings: Dict[str, float] = {
            "extract_text": 0.0,
            "analysis": 0.0,
            "format": 0.0,
            "store": 0.0,
            "notify": 0.0,
            "total": 0.0,
        }
        stage = Stage.RECEIVED
        print("\n=== DEBUG[/api/process-report]: new request ===")
        print("DEBUG[/api/process-report]: filename:", submission.filename, "bytes:", len(submission.pdf_bytes))

        try:
            self.validate(submission)
            payment_amount = await asyncio.to_thread(self._payment_amount, submission)

            start = time.perf_counter()
            text = await asyncio.to_thread(self.services.extractor.extract_text, submission.pdf_bytes)
            timings["extract_text"] = _elapsed_s(start)
            if not text or len(text.strip()) < MIN_TEXT_CHARS:
                raise ValidationFailure("No meaningful text could be extracted from the file.")
            stage = Stage.EXTRACTED

            start = time.perf_counter()
            estimate = await asyncio.to_thread(self.services.analyzer.analyze, text)
            timings["analysis"] = _elapsed_s(start)
            stage = Stage.ANALYZED
            print("DEBUG[/api/process-report]: categories:", len(estimate.repair_categories),
                  "pest_lead:", estimate.pest_lead)

            start = time.perf_counter()
            report = format_report(submission, estimate, self._today(), prepared_by=self.settings.prepared_by)
            timings["format"] = _elapsed_s(start)
            stage = Stage.FORMATTED
        except RepairIntelError as e:
            e.stage = e.stage or stage.value
            print(f"DEBUG[/api/process-report]: {Stage.FAILED.value} after {e.stage}: {e.message}")
            raise
        except Exception as e:
            print(f"DEBUG[/api/process-report]: {Stage.FAILED.value} after {stage.value}: {e}")
            raise

        failures: List[StepFailure] = []

        record_id: Optional[int] = None
        start = time.perf_counter()
        try:
            record = StoredRecord.from_submission(submission, estimate, payment_amount=payment_amount)
            record_id = await asyncio.to_thread(self.services.store.insert_record, record)
            stage = Stage.STORED
        except Exception as e:
            print("DEBUG[/api/process-report]: storage failed:", e)
            failures.append(StepFailure(step="store", error=str(e)))
        timings["store"] = _elapsed_s(start)

        start = time.perf_counter()
        sent, notify_failures = await asyncio.to_thread(
            self.services.notifier.dispatch, submission, estimate, report
        )
        failures.extend(notify_failures)
        if not notify_failures:
            stage = Stage.NOTIFIED
        timings["notify"] = _elapsed_s(start)

        status = Stage.COMPLETE.value if not failures else "partial"
        timings["total"] = _elapsed_s(req_start)
        _print_timing_summary(timings)
        print("DEBUG[/api/process-report]: finished with status:", status, "last stage:", stage.value)
        return ProcessResult(
            status=status,
            report=report,
            record_id=record_id,
            notifications_sent=sent,
            failures=failures,
            timings=timings,
        )

    def regenerate_report(self, record_id: int, today: Optional[date] = None) -> Optional[str]:
        record = self.services.store.get_record(record_id)
        if record is None:
            return None
        return format_report(
            record.identity(),
            record.estimate(),
            today or self._today(),
            prepared_by=self.settings.prepared_by,
        )
