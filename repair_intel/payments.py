from typing import Any, Optional

import stripe

from .config import DEFAULT_REPORT_PRICE
from .errors import UpstreamServiceFailure, ValidationFailure
from .models import CheckoutSession, PaymentInfo

PRODUCT_NAME = "Repair Intel Report"
PRODUCT_DESCRIPTION = "AI-Powered Home Inspection Cost Analysis"


class StripeCheckout:
    def __init__(
        self,
        api_key: Optional[str] = None,
        unit_amount: int = DEFAULT_REPORT_PRICE,
        currency: str = "usd",
        session_api: Any = None,
    ):
        self.api_key = api_key
        self.unit_amount = int(unit_amount)
        self.currency = currency
        # stripe.checkout.Session, swappable so tests never hit the network
        self._sessions = session_api or stripe.checkout.Session

    def create_checkout_session(self, origin_url: str) -> CheckoutSession:
        if not origin_url:
            raise ValidationFailure("Missing request origin for checkout redirect URLs")
        if not self.api_key:
            raise UpstreamServiceFailure("Stripe API not configured", service="stripe")
        origin = origin_url.rstrip("/")
        try:
            session = self._sessions.create(
                api_key=self.api_key,
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": self.currency,
                            "product_data": {
                                "name": PRODUCT_NAME,
                                "description": PRODUCT_DESCRIPTION,
                            },
                            "unit_amount": self.unit_amount,
                        },
                        "quantity": 1,
                    }
                ],
                mode="payment",
                success_url=f"{origin}/success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{origin}/cancel",
            )
        except stripe.StripeError as e:
            print(f"DEBUG[payments]: Stripe error: {e}")
            raise UpstreamServiceFailure(f"Payment error: {getattr(e, 'user_message', None) or str(e)}", service="stripe") from e
        print("DEBUG[payments]: created checkout session:", session.id)
        return CheckoutSession(session_id=session.id, url=getattr(session, "url", None))

    def retrieve_payment(self, session_id: str) -> PaymentInfo:
        if not self.api_key:
            raise UpstreamServiceFailure("Stripe API not configured", service="stripe")
        try:
            session = self._sessions.retrieve(session_id, api_key=self.api_key)
        except stripe.InvalidRequestError as e:
            raise ValidationFailure(f"Unknown checkout session: {session_id}") from e
        except stripe.StripeError as e:
            print(f"DEBUG[payments]: Stripe error: {e}")
            raise UpstreamServiceFailure(f"Payment lookup failed: {getattr(e, 'user_message', None) or str(e)}", service="stripe") from e
        amount_total = getattr(session, "amount_total", None)
        return PaymentInfo(
            session_id=session_id,
            paid=getattr(session, "payment_status", None) == "paid",
            amount=(amount_total / 100) if amount_total is not None else None,
        )
