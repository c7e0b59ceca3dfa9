# storefront/services/address_service.py
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.address import AddressModel
from storefront.domain.actor import Actor
from storefront.domain.errors import NotFoundError, PersistenceError
from storefront.domain.schemas import AddressIn, AddressUpdate
from storefront.repos.address_repo import AddressRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def overlapping_types(address_type: str) -> list[str]:
    """Typy adresow, z ktorymi dany typ dzieli flage domyslnego."""
    types = []
    if address_type in ("both", "shipping"):
        types += ["shipping", "both"]
    if address_type in ("both", "billing"):
        types += ["billing", "both"]
    return sorted(set(types))


class AddressService:
    """
    Ksiazka adresowa. Co najwyzej jeden domyslny adres na typ - odznaczenie
    pozostalych i zapis nowego domyslnego sa w jednej transakcji.
    """

    def __init__(self, db: Session):
        self.repo = AddressRepo(db)

    def list_addresses(self, actor: Actor) -> list[AddressModel]:
        return self.repo.list_addresses(actor.id)

    def get_address(self, actor: Actor, address_id: int) -> AddressModel:
        address = self.repo.get_address(address_id, actor.id)
        if not address:
            raise NotFoundError("Address not found")
        return address

    def create_address(self, actor: Actor, payload: AddressIn) -> AddressModel:
        try:
            if payload.is_default:
                cleared = self.repo.unset_defaults(actor.id, overlapping_types(payload.type))
                logger.info(f"User {actor.id}: cleared {cleared} default addresses before insert")

            address = self.repo.add_address(
                AddressModel(
                    user_id=actor.id,
                    name=payload.name,
                    address_line1=payload.address_line1,
                    address_line2=payload.address_line2,
                    city=payload.city,
                    state=payload.state,
                    postal_code=payload.postal_code,
                    country=payload.country,
                    phone=payload.phone,
                    is_default=payload.is_default,
                    type=payload.type,
                )
            )
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            raise PersistenceError("Failed to create address") from e

        self.repo.refresh(address)
        return address

    def update_address(self, actor: Actor, address_id: int, payload: AddressUpdate) -> AddressModel:
        address = self.get_address(actor, address_id)

        new_type = payload.type or address.type
        becomes_default = payload.is_default if payload.is_default is not None else address.is_default

        try:
            if becomes_default and (not address.is_default or new_type != address.type):
                self.repo.unset_defaults(actor.id, overlapping_types(new_type), exclude_id=address.id)

            for field in ("name", "address_line1", "city", "state", "postal_code", "country", "phone"):
                value = getattr(payload, field)
                if value:
                    setattr(address, field, value)
            if "address_line2" in payload.model_fields_set:
                address.address_line2 = payload.address_line2
            address.is_default = becomes_default
            address.type = new_type

            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            raise PersistenceError("Failed to update address") from e

        self.repo.refresh(address)
        return address

    def delete_address(self, actor: Actor, address_id: int) -> None:
        address = self.get_address(actor, address_id)
        self.repo.delete_address(address)
        self.repo.commit()
