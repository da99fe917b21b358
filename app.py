# app.py — The Repair Intel API
# Paid checkout, then inspection PDF -> Claude cost estimate -> text report -> emails.
from dotenv import load_dotenv
load_dotenv()

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from repair_intel.config import Settings
from repair_intel.errors import RepairIntelError
from repair_intel.models import CheckoutResponse, ProcessReportResponse, Submission
from repair_intel.pipeline import ReportPipeline, Services


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    """Build the API. Pass ``services`` to inject collaborators (tests do);
    otherwise they are built from ``settings`` at startup and closed at shutdown."""
    if settings is None:
        settings = services.settings if services else Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned: Optional[Services] = None
        if app.state.pipeline is None:
            owned = Services.from_settings(settings)
            app.state.pipeline = ReportPipeline(owned)
        try:
            yield
        finally:
            if owned is not None:
                owned.close()
                app.state.pipeline = None

    app = FastAPI(title="The Repair Intel – Inspection Cost Analysis", lifespan=lifespan)
    app.state.pipeline = ReportPipeline(services) if services else None
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------------- Error mapping ----------------
    @app.exception_handler(RepairIntelError)
    async def repair_intel_error(request: Request, exc: RepairIntelError):
        print(f"DEBUG[{request.url.path}]: {type(exc).__name__} ({exc.status_code}): {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": f"Invalid request: {exc.errors()}"})

    def _pipeline() -> ReportPipeline:
        pipeline = app.state.pipeline
        if pipeline is None:
            raise RuntimeError("Services are not initialized")
        return pipeline

    # ---------------- Routes ----------------
    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    @app.post("/api/create-stripe-checkout", response_model=CheckoutResponse)
    async def create_stripe_checkout(request: Request):
        origin = request.headers.get("origin") or settings.app_base_url or ""
        try:
            session = await _pipeline().start_checkout(origin)
        except RepairIntelError:
            raise
        except Exception as e:
            print("DEBUG[/api/create-stripe-checkout]: unexpected error:", e)
            return JSONResponse(status_code=500, content={"error": str(e)})
        return CheckoutResponse(sessionId=session.session_id, url=session.url)

    @app.post("/api/process-report", response_model=ProcessReportResponse)
    async def process_report(
        pdf: Optional[UploadFile] = File(default=None),
        firstName: str = Form(default=""),
        lastName: str = Form(default=""),
        email: str = Form(default=""),
        phone: str = Form(default=""),
        propertyAddress: str = Form(default=""),
        sessionId: str = Form(default=""),
    ):
        data = await pdf.read() if pdf is not None else b""
        submission = Submission(
            first_name=firstName.strip(),
            last_name=lastName.strip(),
            email=email.strip(),
            phone=phone.strip(),
            property_address=propertyAddress.strip(),
            payment_reference=sessionId.strip() or None,
            filename=(pdf.filename or "") if pdf is not None else "",
            pdf_bytes=data,
        )
        try:
            result = await _pipeline().process(submission)
        except RepairIntelError:
            raise
        except Exception as e:
            print("DEBUG[/api/process-report]: unexpected error:", e)
            return JSONResponse(status_code=500, content={"error": str(e)})
        return ProcessReportResponse.from_result(result)

    return app


settings = Settings.from_env()
settings.print_summary()
app = create_app(settings)

# Run: uvicorn app:app --reload
