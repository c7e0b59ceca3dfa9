# storefront/payments/paymob.py
import hashlib
import hmac
from decimal import Decimal
from typing import Any

import requests
from requests import RequestException

from storefront.domain.errors import GatewayError, ValidationError
from storefront.payments.base import (
    CONFIRMED,
    FAILED,
    PENDING,
    REFUNDED,
    IntentionResult,
    PaymentProcessor,
    PaymentResult,
    to_minor_units,
)
from storefront.utils.logging import get_logger
from storefront.utils.retry import http_retry
from storefront.utils.settings import (
    PAYMOB_API_BASE_URL,
    PAYMOB_CHECKOUT_URL,
    PAYMOB_CURRENCY,
    PAYMOB_HMAC_SECRET,
    PAYMOB_INTEGRATION_ID,
    PAYMOB_PUBLIC_KEY,
    PAYMOB_SECRET_KEY,
    PAYMOB_TIMEOUT_SECONDS,
)

logger = get_logger(__name__)

# kolejnosc pol w podpisie HMAC callbacku transakcji (dokumentacja Paymob)
HMAC_FIELDS = (
    "amount_cents",
    "created_at",
    "currency",
    "error_occured",
    "has_parent_transaction",
    "id",
    "integration_id",
    "is_3d_secure",
    "is_auth",
    "is_capture",
    "is_refunded",
    "is_standalone_payment",
    "is_voided",
    "order.id",
    "owner",
    "pending",
    "source_data.pan",
    "source_data.sub_type",
    "source_data.type",
    "success",
)

_STATUS_MAP = {
    "success": CONFIRMED,
    "paid": CONFIRMED,
    "captured": CONFIRMED,
    "approved": CONFIRMED,
    "pending": PENDING,
    "unpaid": PENDING,
    "voided": REFUNDED,
    "refunded": REFUNDED,
    "declined": FAILED,
    "failed": FAILED,
}


def standardize_status(raw_status: Any) -> str:
    status = str(raw_status or "").strip().lower()
    return _STATUS_MAP.get(status, FAILED if not status else status)


def format_billing_data(address: dict, email: str | None) -> dict:
    """Adres z zamowienia -> billing_data w formacie Paymob ("NA" dla brakow)."""
    name = (address.get("name") or "").split()
    return {
        "apartment": address.get("address2") or "NA",
        "first_name": name[0] if name else "NA",
        "last_name": " ".join(name[1:]) or "NA",
        "street": address.get("address") or "NA",
        "building": "NA",
        "phone_number": address.get("phone") or "NA",
        "city": address.get("city") or "NA",
        "country": address.get("country") or "EG",
        "email": email or address.get("email") or "customer@example.com",
        "floor": "NA",
        "state": address.get("state") or "NA",
    }


def _as_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


class PaymobClient:
    """Klient HTTP API intencji Paymob."""

    def __init__(
        self,
        base_url: str | None = None,
        secret_key: str | None = None,
        timeout: float = PAYMOB_TIMEOUT_SECONDS,
    ):
        self.base_url = (base_url or PAYMOB_API_BASE_URL).rstrip("/")
        self.secret_key = secret_key if secret_key is not None else PAYMOB_SECRET_KEY
        self.timeout = timeout

    @http_retry()
    def _post(self, url: str, payload: dict) -> requests.Response:
        return requests.post(
            url,
            json=payload,
            headers={
                "Authorization": f"Token {self.secret_key}",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )

    def create_intention(self, payload: dict) -> dict:
        url = f"{self.base_url}/intention/"
        logger.info(f"PaymobClient POST {url} amount={payload.get('amount')}")

        try:
            resp = self._post(url, payload)
        except RequestException as e:
            logger.error(f"Paymob request failed: {e}")
            raise GatewayError(str(e) or "Failed to reach payment gateway") from e

        try:
            data = resp.json()
        except ValueError:
            data = None

        if resp.status_code >= 400:
            detail = data.get("detail") if isinstance(data, dict) else None
            logger.error(f"Paymob API error {resp.status_code}: {data or resp.text}")
            raise GatewayError(
                detail or f"Payment gateway returned HTTP {resp.status_code}",
                status=resp.status_code,
                data=data,
            )

        if not isinstance(data, dict) or not data.get("client_secret"):
            logger.error(f"Paymob returned an unusable intention payload: {data}")
            raise GatewayError("Failed to create payment intention", status=resp.status_code, data=data)

        return data


class PaymobAdapter(PaymentProcessor):
    """
    Adapter Paymob: zamowienie -> intencja platnosci, callback -> PaymentResult.

    Id zamowienia jest osadzane w ``extras`` intencji i wraca w callbacku
    jako ``obj.payment_key_claims.extra.orderId`` - to jedyny pewny klucz
    do powiazania webhooka z zamowieniem.
    """

    name = "paymob"
    online = True

    def __init__(
        self,
        client: PaymobClient | None = None,
        integration_id: int = PAYMOB_INTEGRATION_ID,
        currency: str = PAYMOB_CURRENCY,
        public_key: str = PAYMOB_PUBLIC_KEY,
        checkout_url: str = PAYMOB_CHECKOUT_URL,
        hmac_secret: str = PAYMOB_HMAC_SECRET,
    ):
        self.client = client or PaymobClient()
        self.integration_id = integration_id
        self.currency = currency
        self.public_key = public_key
        self.checkout_url = checkout_url
        self.hmac_secret = hmac_secret

    # ------------------------------------------------------------------
    # intencja
    # ------------------------------------------------------------------
    def build_intention_payload(self, order, email: str | None, user_id: int | None) -> dict:
        items = [
            {
                "name": item.name,
                "amount": to_minor_units(item.price),
                "description": item.name,
                "quantity": item.quantity,
            }
            for item in order.items
        ]

        shipping = to_minor_units(order.shipping_price or 0)
        if shipping > 0:
            items.append({
                "name": "Shipping Fee",
                "amount": shipping,
                "description": "Shipping and handling fee",
                "quantity": 1,
            })

        tax = to_minor_units(order.tax_price or 0)
        if tax > 0:
            items.append({
                "name": "Tax",
                "amount": tax,
                "description": "Tax amount",
                "quantity": 1,
            })

        amount = to_minor_units(order.total)
        itemized = sum(i["amount"] * i["quantity"] for i in items)
        if itemized != amount:
            # Paymob wymaga zgodnosci sumy pozycji z kwota (np. przy rabacie)
            logger.warning(
                f"Order {order.id}: itemized total {itemized} != amount {amount}, "
                f"sending a single summary line"
            )
            items = [{
                "name": f"Order {order.id}",
                "amount": amount,
                "description": f"Order {order.id}",
                "quantity": 1,
            }]

        billing = format_billing_data(order.shipping_address or {}, email)
        extras = {
            "orderId": str(order.id),
            "userId": str(user_id) if user_id is not None else "guest",
        }

        return {
            "amount": amount,
            "currency": self.currency,
            "payment_methods": [self.integration_id],
            "items": items,
            "billing_data": billing,
            "customer": {
                "first_name": billing["first_name"],
                "last_name": billing["last_name"],
                "email": billing["email"],
                "extras": extras,
            },
            "extras": extras,
            "special_reference": f"order-{order.id}",
        }

    def generate_checkout_url(self, client_secret: str) -> str:
        if not self.public_key:
            logger.warning("PAYMOB_PUBLIC_KEY is not set")
        return f"{self.checkout_url}?publicKey={self.public_key}&clientSecret={client_secret}"

    def create_intention(self, order, email: str | None, user_id: int | None) -> IntentionResult:
        payload = self.build_intention_payload(order, email, user_id)
        data = self.client.create_intention(payload)

        reference = data.get("intention_order_id")
        return IntentionResult(
            checkout_url=self.generate_checkout_url(data["client_secret"]),
            client_secret=data["client_secret"],
            intention_id=str(data["id"]) if data.get("id") is not None else None,
            gateway_reference=str(reference) if reference is not None else None,
        )

    # ------------------------------------------------------------------
    # wyniki platnosci
    # ------------------------------------------------------------------
    def normalize_result(self, callback_data: Any, transaction_id: str | None = None) -> PaymentResult:
        """Wynik przekazany przez klienta po powrocie z checkoutu Paymob."""
        if not isinstance(callback_data, dict):
            logger.warning("Invalid callback data received from client")
            return PaymentResult(status=FAILED, id=transaction_id, raw_status=None)

        raw_status = callback_data.get("status") or callback_data.get("payment_status")
        if raw_status is None and "success" in callback_data:
            # ksztalt parametrow z przekierowania Paymob
            if _truthy(callback_data.get("pending")):
                raw_status = "pending"
            elif _truthy(callback_data.get("is_voided")) or _truthy(callback_data.get("is_refunded")):
                raw_status = "refunded"
            else:
                raw_status = "success" if _truthy(callback_data.get("success")) else "failed"

        extras = (callback_data.get("extras") or {}).get("creation_extras") or {}
        order_ref = extras.get("orderId") or callback_data.get("merchant_order_id")
        tx_id = transaction_id or callback_data.get("id") or callback_data.get("transaction_id")

        result = PaymentResult(
            status=standardize_status(raw_status),
            id=str(tx_id) if tx_id is not None else None,
            raw_status=raw_status,
            order_id=_as_int(order_ref),
            gateway_reference=str(callback_data["order"]) if callback_data.get("order") is not None else None,
            amount_cents=_as_int(callback_data.get("amount_cents")),
            currency=callback_data.get("currency"),
            source_type=callback_data.get("source_data_type") or callback_data.get("source_data.type"),
        )
        logger.info(f"Paymob payment processed: {result.status} ({raw_status}), ID: {result.id}")
        return result

    def verify_hmac(self, obj: dict, received: str | None) -> bool:
        if not self.hmac_secret:
            logger.warning("PAYMOB_HMAC_SECRET is not set, webhook signature not verified")
            return True
        if not received:
            return False

        message = "".join(_hmac_value(_lookup(obj, path)) for path in HMAC_FIELDS)
        expected = hmac.new(
            self.hmac_secret.encode("utf-8"),
            message.encode("utf-8"),
            hashlib.sha512,
        ).hexdigest()
        return hmac.compare_digest(expected, received.lower())

    def parse_webhook(self, body: Any, query: dict[str, str]) -> PaymentResult:
        """
        Callback transakcji Paymob -> PaymentResult.

        Status wyznaczany jest wylacznie z obiektu transakcji (flagi
        ``success``, ``pending``, ``is_voided``, ``is_refunded``,
        ``error_occured``); parametry query poza ``hmac`` sa ignorowane.

        Korelacja z zamowieniem, w kolejnosci:
          1. ``obj.payment_key_claims.extra.orderId`` (extras intencji),
          2. ``obj.order.merchant_order_id``,
          3. ``obj.order.id`` jako gateway_reference - dopasowywany do
             referencji zapisanej przy tworzeniu intencji.
        """
        if not isinstance(body, dict) or not isinstance(body.get("obj"), dict):
            raise ValidationError("Webhook payload has no transaction object", field="obj")

        obj = body["obj"]
        if body.get("type") not in (None, "TRANSACTION"):
            raise ValidationError(f"Unsupported webhook type: {body.get('type')}", field="type")

        if not self.verify_hmac(obj, (query or {}).get("hmac") or body.get("hmac")):
            raise ValidationError("Webhook HMAC signature mismatch", field="hmac")

        if _truthy(obj.get("is_refunded")) or _truthy(obj.get("is_voided")):
            raw_status = "refunded" if _truthy(obj.get("is_refunded")) else "voided"
        elif _truthy(obj.get("pending")):
            raw_status = "pending"
        elif _truthy(obj.get("success")) and not _truthy(obj.get("error_occured")):
            raw_status = "success"
        else:
            raw_status = "declined"

        claims_extra = (obj.get("payment_key_claims") or {}).get("extra") or {}
        gateway_order = obj.get("order") if isinstance(obj.get("order"), dict) else {}
        order_ref = claims_extra.get("orderId") or gateway_order.get("merchant_order_id")
        reference = gateway_order.get("id")

        result = PaymentResult(
            status=standardize_status(raw_status),
            id=str(obj["id"]) if obj.get("id") is not None else None,
            raw_status=raw_status,
            order_id=_as_int(order_ref),
            gateway_reference=str(reference) if reference is not None else None,
            amount_cents=_as_int(obj.get("amount_cents")),
            currency=obj.get("currency"),
            source_type=(obj.get("source_data") or {}).get("type"),
        )
        logger.info(
            f"Paymob webhook parsed: status={result.status} ({raw_status}) "
            f"tx={result.id} order={result.order_id} reference={result.gateway_reference}"
        )
        return result


def _lookup(obj: dict, path: str):
    value: Any = obj
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _hmac_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return str(int(value))
    return str(value)
