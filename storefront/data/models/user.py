from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from storefront.data.database import Base


class UserModel(Base):
    __tablename__ = "users"

    # id nadaje zewnetrzna warstwa auth
    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String, nullable=False)
    # uzywany jako billing email w intencji platnosci
    email = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
