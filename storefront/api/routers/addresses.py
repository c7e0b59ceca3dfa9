# storefront/api/routers/addresses.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_actor
from storefront.data.database import get_db
from storefront.domain.actor import Actor
from storefront.domain.schemas import AddressIn, AddressOut, AddressUpdate
from storefront.services.address_service import AddressService

router = APIRouter(prefix="/addresses", tags=["addresses"])


@router.get("", response_model=list[AddressOut])
def list_addresses(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return AddressService(db).list_addresses(actor)


@router.post("", response_model=AddressOut, status_code=201)
def create_address(
    payload: AddressIn,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return AddressService(db).create_address(actor, payload)


@router.get("/{address_id}", response_model=AddressOut)
def get_address(
    address_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return AddressService(db).get_address(actor, address_id)


@router.put("/{address_id}", response_model=AddressOut)
def update_address(
    address_id: int,
    payload: AddressUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return AddressService(db).update_address(actor, address_id, payload)


@router.delete("/{address_id}")
def delete_address(
    address_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    AddressService(db).delete_address(actor, address_id)
    return {"message": "Address removed"}
