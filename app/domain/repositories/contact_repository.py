"""Contact Repository Interface."""

from typing import Optional

from app.domain.repositories.base import BaseRepository
from app.domain.models.contact import Contact


class ContactRepository(BaseRepository[Contact]):
    """Read-only lookups of caller reference data."""

    def get_by_e164(self, e164: str) -> Optional[Contact]:
        ...
