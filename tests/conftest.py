import os
import tempfile
import uuid
from decimal import Decimal

_TMP_DIR = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "1"
os.environ["PAYMOB_HMAC_SECRET"] = ""
os.environ["PAYMOB_PUBLIC_KEY"] = "pk_test"
os.environ["TAX_RATE"] = "0"
for _method in ("STANDARD", "EXPRESS", "OVERNIGHT"):
    os.environ[f"SHIPPING_FEE_{_method}"] = "0"
os.environ.pop("FREE_SHIPPING_THRESHOLD", None)
os.environ.pop("PAYMENT_METHODS_JSON", None)

import pytest  # noqa: E402

from storefront.data.database import Base, SessionLocal, engine  # noqa: E402
from storefront.data.models import ProductModel, UserModel  # noqa: E402
from storefront.domain.actor import Actor  # noqa: E402
from storefront.domain.schemas import ShippingAddressIn  # noqa: E402
from storefront.payments.manual import ManualProcessor  # noqa: E402
from storefront.payments.paymob import PaymobAdapter  # noqa: E402
from storefront.payments.registry import load_payment_methods  # noqa: E402
from storefront.services.cart_service import CartService  # noqa: E402
from storefront.services.checkout_service import CheckoutService  # noqa: E402
from storefront.utils.settings import DEFAULT_PAYMENT_METHODS  # noqa: E402


class FakeLockService:
    """Lock platnosci w pamieci, ten sam kontrakt co LockService."""

    def __init__(self):
        self.held = {}
        self.busy = False

    @staticmethod
    def new_token():
        return uuid.uuid4().hex

    def acquire_payment_lock(self, order_id, token, ttl=30):
        if self.busy or order_id in self.held:
            return False
        self.held[order_id] = token
        return True

    def release_payment_lock(self, order_id, token):
        if self.held.get(order_id) == token:
            del self.held[order_id]
            return True
        return False


class FakePaymobClient:
    def __init__(self):
        self.payloads = []
        self.error = None
        self.reference = 9001

    def create_intention(self, payload):
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        return {"id": "int_123", "client_secret": "cs_test", "intention_order_id": self.reference}


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def lock_service():
    return FakeLockService()


@pytest.fixture
def gateway():
    return FakePaymobClient()


@pytest.fixture
def paymob(gateway):
    return PaymobAdapter(
        client=gateway,
        integration_id=42,
        currency="EGP",
        public_key="pk_test",
        checkout_url="https://accept.paymob.com/unifiedcheckout/",
        hmac_secret="",
    )


@pytest.fixture
def registry(paymob):
    return load_payment_methods(
        DEFAULT_PAYMENT_METHODS,
        {"paymob": paymob, "manual": ManualProcessor()},
    )


@pytest.fixture
def user(db):
    u = UserModel(id=1, name="Jane Doe", email="jane@example.com")
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def actor(user):
    return Actor(id=user.id)


@pytest.fixture
def admin():
    return Actor(id=99, role="admin")


@pytest.fixture
def product(db):
    p = ProductModel(name="Cotton T-Shirt", price=Decimal("100.00"), quantity=10, sold=0, image="/t.jpg")
    db.add(p)
    db.commit()
    return p


@pytest.fixture
def shipping_address():
    return ShippingAddressIn(
        name="Jane Doe",
        address="1 Nile St",
        city="Cairo",
        state="Cairo",
        postal_code="11511",
        country="EG",
        phone="01000000000",
    )


@pytest.fixture
def checkout(db, registry, lock_service):
    return CheckoutService(db, registry, lock_service)


@pytest.fixture
def place_order(db, actor, product, checkout, shipping_address):
    """Koszyk z `quantity` sztukami produktu -> zamowienie Initialized."""

    def _place(quantity=2, payment_method="credit_card"):
        CartService(db).add_item(actor, product.id, quantity)
        return checkout.create_order(
            actor,
            shipping_address=shipping_address,
            payment_method=payment_method,
        )

    return _place
