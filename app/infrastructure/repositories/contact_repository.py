"""
SQLAlchemy Implementation of Contact Repository.
"""

from typing import Optional

from app.domain.models.contact import Contact
from app.domain.repositories.contact_repository import ContactRepository
from app.infrastructure.repositories.base_repository import SQLAlchemyRepository


class SQLAlchemyContactRepository(SQLAlchemyRepository[Contact], ContactRepository):

    def get_by_e164(self, e164: str) -> Optional[Contact]:
        return self.db.get(Contact, e164)
