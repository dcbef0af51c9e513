import logging
from cinema_booking.core.config import settings
from cinema_booking.core.exceptions import PaymentFailedError
from cinema_booking.models import Booking


class PaymentService:
    """
    Stand-in for the payment gateway. Real gateways are integrated elsewhere;
    here a charge only fails for unsupported methods or impossible amounts.
    """

    def __init__(self, supported_methods: list[str] | None = None):
        self.supported_methods = [m.upper() for m in (supported_methods or settings.SUPPORTED_PAYMENT_METHODS)]

    async def charge(self, booking: Booking, payment_method: str, idempotency_key: str | None = None) -> str:
        # the gateway receives the booking code as its idempotency reference so a retried
        # confirmation can never charge twice
        method = payment_method.upper()
        if method not in self.supported_methods:
            logging.warning(f"payment method {payment_method} rejected for booking {booking.booking_code}")
            raise PaymentFailedError(booking.id, payment_method, "unsupported payment method")
        if booking.final_amount < 0:
            raise PaymentFailedError(booking.id, payment_method, "invalid amount")
        reference = f"PAY-{booking.booking_code}-{idempotency_key or 'direct'}"
        logging.info(f"charged {booking.final_amount} for booking {booking.booking_code} via {method}")
        return reference


payment_service = PaymentService()
