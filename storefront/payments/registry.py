"""
Payment-method registry.

Maps a payment-method id (the tag stored on the order) to the processor
adapter that handles it plus the metadata shown to clients. Built once at
startup from configuration and handed to the checkout orchestrator.
"""
from dataclasses import dataclass
from typing import Mapping

from storefront.domain.errors import ValidationError
from storefront.payments.base import PaymentProcessor


@dataclass(frozen=True)
class PaymentMethod:
    id: str
    name: str
    processor_name: str
    processor: PaymentProcessor
    description: str | None = None
    icon: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "processor": self.processor_name,
            "icon": self.icon,
        }


class PaymentMethodRegistry:
    def __init__(self, methods: Mapping[str, PaymentMethod]):
        self._methods = dict(methods)

    def get(self, method_id: str | None) -> PaymentMethod:
        if not method_id:
            raise ValidationError("Payment method is required", field="paymentMethod")
        method = self._methods.get(method_id)
        if method is None:
            raise ValidationError("Invalid payment method", field="paymentMethod")
        return method

    def processor_for(self, method_id: str) -> PaymentProcessor:
        return self.get(method_id).processor

    def processor_named(self, processor_name: str) -> PaymentProcessor | None:
        for method in self._methods.values():
            if method.processor_name == processor_name:
                return method.processor
        return None

    def list_methods(self) -> list[PaymentMethod]:
        return list(self._methods.values())

    def __contains__(self, method_id: str) -> bool:
        return method_id in self._methods


def load_payment_methods(
    config: Mapping[str, Mapping],
    processors: Mapping[str, PaymentProcessor],
) -> PaymentMethodRegistry:
    methods = {}
    for method_id, meta in config.items():
        processor_name = meta.get("processor")
        if processor_name not in processors:
            raise ValueError(
                f"Payment method '{method_id}' references unknown processor '{processor_name}'"
            )
        methods[method_id] = PaymentMethod(
            id=method_id,
            name=meta.get("name", method_id),
            description=meta.get("description"),
            icon=meta.get("icon"),
            processor_name=processor_name,
            processor=processors[processor_name],
        )
    return PaymentMethodRegistry(methods)


def build_payment_registry(config: Mapping[str, Mapping] | None = None) -> PaymentMethodRegistry:
    """Rejestr z konfiguracji (PAYMENT_METHODS) i domyslnych adapterow."""
    from storefront.payments.manual import ManualProcessor
    from storefront.payments.paymob import PaymobAdapter
    from storefront.utils.settings import PAYMENT_METHODS

    processors = {
        "paymob": PaymobAdapter(),
        "manual": ManualProcessor(),
    }
    return load_payment_methods(config or PAYMENT_METHODS, processors)
