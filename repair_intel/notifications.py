import smtplib
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import List, Optional, Protocol, Tuple

from jinja2 import Environment, select_autoescape
from pydantic import BaseModel, Field

from .errors import UpstreamServiceFailure
from .models import CostEstimate, StepFailure, Submission

SENDER_NAME = "The Repair Intel"
REPORT_ATTACHMENT_NAME = "RepairIntel_Report.txt"

_env = Environment(autoescape=select_autoescape(default=True, default_for_string=True))

CLIENT_TEMPLATE = _env.from_string("""<h2>Hi {{ first_name }},</h2>
<p>Your Repair Intel report for {{ address }} is ready!</p>
<p>See the attached report.</p>
<p>Best,<br>The Repair Intel Team</p>
""")

ADMIN_TEMPLATE = _env.from_string("""<h3>NEW CUSTOMER</h3>
<p><strong>Name:</strong> {{ first_name }} {{ last_name }}</p>
<p><strong>Email:</strong> {{ email }}</p>
<p><strong>Phone:</strong> {{ phone }}</p>
<p><strong>Property:</strong> {{ address }}</p>
""")

LEAD_TEMPLATE = _env.from_string("""<h3>NEW PEST OPPORTUNITY</h3>
<p><strong>Client:</strong> {{ first_name }} {{ last_name }}</p>
<p><strong>Phone:</strong> {{ phone }}</p>
<p><strong>Email:</strong> {{ email }}</p>
<p><strong>Property:</strong> {{ address }}</p>
<p><strong>Findings:</strong> {{ findings }}</p>
""")


class Attachment(BaseModel):
    filename: str
    content: str


class OutgoingEmail(BaseModel):
    kind: str
    to: str
    subject: str
    html: str
    attachments: List[Attachment] = Field(default_factory=list)


class Mailer(Protocol):
    def send(self, message: OutgoingEmail) -> None: ...


# ---------------- Transport ----------------
class SmtpMailer:
    def __init__(
        self,
        host: Optional[str],
        port: int = 587,
        user: Optional[str] = None,
        password: Optional[str] = None,
        from_email: Optional[str] = None,
        starttls: bool = True,
        timeout_seconds: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_email = from_email or user
        self.starttls = starttls
        self.timeout_seconds = timeout_seconds

    def build_mime(self, message: OutgoingEmail) -> MIMEMultipart:
        msg = MIMEMultipart()
        msg["From"] = formataddr((SENDER_NAME, self.from_email or ""))
        msg["To"] = message.to
        msg["Subject"] = message.subject
        msg.attach(MIMEText(message.html, "html", "utf-8"))
        for att in message.attachments:
            part = MIMEApplication(att.content.encode("utf-8"), _subtype="octet-stream")
            part.add_header("Content-Disposition", "attachment", filename=att.filename)
            msg.attach(part)
        return msg

    def send(self, message: OutgoingEmail) -> None:
        if not self.host:
            raise UpstreamServiceFailure("SMTP not configured", service="smtp")
        mime = self.build_mime(message)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds) as server:
                server.ehlo()
                if self.starttls and server.has_extn("starttls"):
                    server.starttls()
                    server.ehlo()
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.send_message(mime)
        except (smtplib.SMTPException, OSError) as e:
            raise UpstreamServiceFailure(f"Email to {message.to} failed: {e}", service="smtp") from e
        print(f"DEBUG[mailer]: sent {message.kind} email to {message.to}")


# ---------------- Composition ----------------
class NotificationDispatcher:
    """Builds the three outgoing messages and sends them one after another.

    A failed send is recorded and the remaining messages still go out.
    """

    def __init__(
        self,
        mailer: Mailer,
        admin_email: Optional[str] = None,
        pest_lead_email: Optional[str] = None,
        price_display: str = "$49.99",
    ):
        self.mailer = mailer
        self.admin_email = admin_email
        self.pest_lead_email = pest_lead_email
        self.price_display = price_display

    def client_message(self, submission: Submission, report_text: str) -> OutgoingEmail:
        return OutgoingEmail(
            kind="client",
            to=submission.email,
            subject=f"Your Repair Intel Report - {submission.property_address}",
            html=CLIENT_TEMPLATE.render(first_name=submission.first_name, address=submission.property_address),
            attachments=[Attachment(filename=REPORT_ATTACHMENT_NAME, content=report_text)],
        )

    def admin_message(self, submission: Submission) -> OutgoingEmail:
        return OutgoingEmail(
            kind="admin",
            to=self.admin_email or "",
            subject=f"✅ New Report Generated - {self.price_display}",
            html=ADMIN_TEMPLATE.render(
                first_name=submission.first_name,
                last_name=submission.last_name,
                email=submission.email,
                phone=submission.phone,
                address=submission.property_address,
            ),
        )

    def lead_message(self, submission: Submission, estimate: CostEstimate) -> OutgoingEmail:
        found = []
        if estimate.termites_mentioned:
            found.append("termite")
        if estimate.pests_mentioned:
            found.append("pest")
        return OutgoingEmail(
            kind="lead",
            to=self.pest_lead_email or "",
            subject=f"🐜 Pest Lead - {submission.property_address}",
            html=LEAD_TEMPLATE.render(
                first_name=submission.first_name,
                last_name=submission.last_name,
                email=submission.email,
                phone=submission.phone,
                address=submission.property_address,
                findings=f"{'/'.join(found).capitalize()} activity detected",
            ),
        )

    def dispatch(
        self,
        submission: Submission,
        estimate: CostEstimate,
        report_text: str,
    ) -> Tuple[List[str], List[StepFailure]]:
        messages = [
            self.client_message(submission, report_text),
            self.admin_message(submission),
        ]
        if estimate.pest_lead:
            messages.append(self.lead_message(submission, estimate))

        sent: List[str] = []
        failures: List[StepFailure] = []
        for message in messages:
            step = f"notify_{message.kind}"
            if not message.to:
                print(f"DEBUG[notify]: no recipient configured for {message.kind} email")
                failures.append(StepFailure(step=step, error=f"No recipient configured for {message.kind} email"))
                continue
            try:
                self.mailer.send(message)
                sent.append(message.kind)
            except Exception as e:
                print(f"DEBUG[notify]: {message.kind} email failed:", e)
                failures.append(StepFailure(step=step, error=str(e)))
        return sent, failures
