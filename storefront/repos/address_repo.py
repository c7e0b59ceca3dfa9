# storefront/repos/address_repo.py
from typing import Iterable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.address import AddressModel


class AddressRepo:
    def __init__(self, db: Session):
        self.db = db

    def list_addresses(self, user_id: int) -> list[AddressModel]:
        return list(
            self.db.execute(
                select(AddressModel)
                .where(AddressModel.user_id == user_id)
                .order_by(AddressModel.id)
            ).scalars().all()
        )

    def get_address(self, address_id: int, user_id: int) -> AddressModel | None:
        return self.db.execute(
            select(AddressModel).where(
                AddressModel.id == address_id,
                AddressModel.user_id == user_id,
            )
        ).scalar_one_or_none()

    def get_default_address(self, user_id: int, types: Iterable[str]) -> AddressModel | None:
        return self.db.execute(
            select(AddressModel)
            .where(
                AddressModel.user_id == user_id,
                AddressModel.is_default.is_(True),
                AddressModel.type.in_(list(types)),
            )
            .order_by(AddressModel.id)
            .limit(1)
        ).scalar_one_or_none()

    def unset_defaults(self, user_id: int, types: Iterable[str], exclude_id: int | None = None) -> int:
        stmt = update(AddressModel).where(
            AddressModel.user_id == user_id,
            AddressModel.type.in_(list(types)),
            AddressModel.is_default.is_(True),
        )
        if exclude_id is not None:
            stmt = stmt.where(AddressModel.id != exclude_id)
        res = self.db.execute(
            stmt.values(is_default=False).execution_options(synchronize_session="fetch")
        )
        return res.rowcount

    def add_address(self, address: AddressModel) -> AddressModel:
        self.db.add(address)
        self.db.flush()
        return address

    def delete_address(self, address: AddressModel) -> None:
        self.db.delete(address)

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

    def refresh(self, obj):
        self.db.refresh(obj)
