import os
from typing import List, Optional

from pydantic import BaseModel

DEFAULT_CLAUDE_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_REPORT_PRICE = 4999
# Hard cut on the text sent to Claude. Anything past this is never analyzed,
# so very long reports can lose their trailing inspection items.
DEFAULT_ANALYZER_MAX_INPUT_CHARS = 40000


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [part.strip() for part in raw.split(",") if part.strip()]


class Settings(BaseModel):
    # ---------------- Claude ----------------
    anthropic_api_key: Optional[str] = None
    claude_model: str = DEFAULT_CLAUDE_MODEL
    claude_response_max_tokens: int = 4000
    claude_timeout_seconds: float = 120.0
    analyzer_max_input_chars: int = DEFAULT_ANALYZER_MAX_INPUT_CHARS

    # ---------------- Stripe ----------------
    stripe_secret_key: Optional[str] = None
    report_price: int = DEFAULT_REPORT_PRICE
    currency: str = "usd"
    require_payment: bool = False
    app_base_url: Optional[str] = None

    # ---------------- Mail ----------------
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_pass: Optional[str] = None
    smtp_starttls: bool = True
    smtp_timeout_seconds: float = 30.0
    from_email: Optional[str] = None
    admin_notify_email: Optional[str] = None
    pest_lead_email: Optional[str] = None

    # ---------------- Storage / uploads ----------------
    database_path: str = "./repair_intel.db"
    max_upload_mb: int = 25
    ocr_enabled: bool = True

    # ---------------- Presentation ----------------
    prepared_by: str = "Anarumo Inspection Services"
    cors_origins: List[str] = ["*"]

    @classmethod
    def from_env(cls) -> "Settings":
        from_email = os.getenv("FROM_EMAIL")
        return cls(
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            claude_model=os.getenv("CLAUDE_MODEL", DEFAULT_CLAUDE_MODEL),
            claude_response_max_tokens=int(os.getenv("CLAUDE_RESPONSE_MAX_TOKENS", "4000")),
            claude_timeout_seconds=float(os.getenv("CLAUDE_TIMEOUT_SECONDS", "120")),
            analyzer_max_input_chars=max(1, int(os.getenv("ANALYZER_MAX_INPUT_CHARS", str(DEFAULT_ANALYZER_MAX_INPUT_CHARS)))),
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY"),
            report_price=int(os.getenv("REPORT_PRICE", str(DEFAULT_REPORT_PRICE))),
            currency=os.getenv("REPORT_CURRENCY", "usd"),
            require_payment=_env_bool("REQUIRE_PAYMENT", False),
            app_base_url=os.getenv("APP_BASE_URL") or None,
            smtp_host=os.getenv("SMTP_HOST"),
            smtp_port=int(os.getenv("SMTP_PORT", "587")),
            smtp_user=os.getenv("SMTP_USER"),
            smtp_pass=os.getenv("SMTP_PASS"),
            smtp_starttls=_env_bool("SMTP_STARTTLS", True),
            smtp_timeout_seconds=float(os.getenv("SMTP_TIMEOUT_SECONDS", "30")),
            from_email=from_email,
            admin_notify_email=os.getenv("ADMIN_NOTIFY_EMAIL") or from_email,
            pest_lead_email=os.getenv("PEST_LEAD_EMAIL") or os.getenv("ADMIN_EMAIL"),
            database_path=os.getenv("DATABASE_PATH", "./repair_intel.db"),
            max_upload_mb=max(1, int(os.getenv("MAX_UPLOAD_MB", "25"))),
            ocr_enabled=_env_bool("OCR_ENABLED", True),
            prepared_by=os.getenv("PREPARED_BY", "Anarumo Inspection Services"),
            cors_origins=_env_list("CORS_ORIGINS", "*"),
        )

    @property
    def report_price_display(self) -> str:
        return f"${self.report_price / 100:,.2f}"

    def print_summary(self) -> None:
        print("DEBUG[config]: CLAUDE_MODEL =", self.claude_model)
        print("DEBUG[config]: ANTHROPIC_API_KEY present:", bool(self.anthropic_api_key))
        print("DEBUG[config]: CLAUDE_RESPONSE_MAX_TOKENS =", self.claude_response_max_tokens,
              "CLAUDE_TIMEOUT_SECONDS =", self.claude_timeout_seconds)
        print("DEBUG[config]: ANALYZER_MAX_INPUT_CHARS =", self.analyzer_max_input_chars)
        print("DEBUG[config]: STRIPE_SECRET_KEY present:", bool(self.stripe_secret_key),
              "REPORT_PRICE =", self.report_price, "REQUIRE_PAYMENT =", self.require_payment)
        print("DEBUG[config]: SMTP_HOST =", self.smtp_host, "SMTP_PORT =", self.smtp_port,
              "SMTP credentials present:", bool(self.smtp_user and self.smtp_pass))
        print("DEBUG[config]: PEST_LEAD_EMAIL configured:", bool(self.pest_lead_email))
        print("DEBUG[config]: DATABASE_PATH =", self.database_path, "OCR_ENABLED =", self.ocr_enabled)
