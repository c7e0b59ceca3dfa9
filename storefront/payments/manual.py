# storefront/payments/manual.py
from storefront.domain.errors import ValidationError
from storefront.payments.base import PaymentProcessor


class ManualProcessor(PaymentProcessor):
    """Platnosci offline (np. za pobraniem) - bez bramki i bez intencji."""

    name = "manual"
    online = False

    def create_intention(self, order, email, user_id):
        raise ValidationError(
            f"Payment method '{order.payment_method}' does not use an online payment gateway",
            field="paymentMethod",
        )

    def normalize_result(self, callback_data, transaction_id=None):
        raise ValidationError(
            "Offline payment methods cannot be confirmed through the gateway",
            field="paymentMethod",
        )

    def parse_webhook(self, body, query):
        raise ValidationError("Offline payment methods do not receive webhooks")
