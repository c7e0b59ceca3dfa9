from storefront.payments.base import IntentionResult, PaymentProcessor, PaymentResult
from storefront.payments.registry import (
    PaymentMethod,
    PaymentMethodRegistry,
    build_payment_registry,
    load_payment_methods,
)

__all__ = [
    "IntentionResult",
    "PaymentProcessor",
    "PaymentResult",
    "PaymentMethod",
    "PaymentMethodRegistry",
    "build_payment_registry",
    "load_payment_methods",
]
