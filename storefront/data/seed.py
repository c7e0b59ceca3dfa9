# storefront/data/seed.py
from decimal import Decimal

from storefront.data.database import Base, SessionLocal, engine
from storefront.data.models import ProductModel, UserModel
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

DEMO_PRODUCTS = [
    {"name": "Cotton T-Shirt", "price": Decimal("100.00"), "quantity": 10, "image": "/images/tshirt.jpg"},
    {"name": "Denim Jacket", "price": Decimal("450.00"), "quantity": 5, "image": "/images/jacket.jpg"},
    {"name": "Canvas Sneakers", "price": Decimal("320.50"), "quantity": 8, "image": "/images/sneakers.jpg"},
]


def seed():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.query(ProductModel).first():
            logger.info("Products already present, skipping seed")
            return
        db.add(UserModel(id=1, name="Demo User", email="demo@example.com"))
        for data in DEMO_PRODUCTS:
            db.add(ProductModel(**data))
        db.commit()
        logger.info(f"Seeded {len(DEMO_PRODUCTS)} products and a demo user")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
