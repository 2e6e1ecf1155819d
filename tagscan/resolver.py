"""
Entity resolver: pet id -> (pet, owner).

Pure reads against the ``pets`` and ``users`` collections.
"""

import logging

from tagscan.data_store import DocumentStore
from tagscan.errors import (
    MissingEmailError,
    MissingOwnerLinkError,
    OwnerNotFoundError,
    PetNotFoundError,
)
from tagscan.models import Owner, Pet

logger = logging.getLogger("resolver")

PETS_COLLECTION = "pets"
USERS_COLLECTION = "users"


class EntityResolver:
    """Looks up a pet and the owner who should hear about its scans."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def get_pet(self, pet_id: str) -> Pet:
        doc = self.store.get_document(PETS_COLLECTION, pet_id)
        if doc is None:
            raise PetNotFoundError(f"Pet not found: {pet_id}")
        return Pet(**{**doc, "id": pet_id})

    def get_owner(self, owner_id: str) -> Owner:
        doc = self.store.get_document(USERS_COLLECTION, owner_id)
        if doc is None:
            raise OwnerNotFoundError(f"Owner not found: {owner_id}")
        return Owner(**{**doc, "id": owner_id})

    def resolve(self, pet_id: str) -> tuple[Pet, Owner]:
        """
        Resolve a scanned pet to its owner.

        Raises:
            PetNotFoundError: No pet document with this id
            MissingOwnerLinkError: Pet has no ``ownerID`` (owner is not looked up)
            OwnerNotFoundError: ``ownerID`` does not match a user
            MissingEmailError: Owner has no contact address
        """
        pet = self.get_pet(pet_id)
        if not pet.owner_id:
            raise MissingOwnerLinkError(f"Pet {pet_id} has no ownerID")

        owner = self.get_owner(pet.owner_id)
        if not owner.email:
            raise MissingEmailError(f"Owner {owner.id} has no email address")

        logger.debug(f"Resolved pet {pet_id} -> owner {owner.id}")
        return pet, owner
