# storefront/api/deps.py
from fastapi import Header, Request

from storefront.domain.actor import Actor
from storefront.domain.errors import AuthenticationError
from storefront.payments.registry import PaymentMethodRegistry
from storefront.services.lock_service import LockService


def get_current_actor(
    x_user_id: int | None = Header(None),
    x_user_role: str | None = Header(None),
) -> Actor:
    """Tozsamosc ustawiona przez warstwe auth przed serwisem."""
    if x_user_id is None:
        raise AuthenticationError("Not authorized, no user identity")
    return Actor(id=x_user_id, role=x_user_role or "user")


def get_payment_methods(request: Request) -> PaymentMethodRegistry:
    return request.app.state.payment_methods


def get_lock_service(request: Request) -> LockService:
    return request.app.state.lock_service
