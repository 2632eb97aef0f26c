"""Domain binding repository for DynamoDB operations."""

from datetime import datetime
from typing import Any

from sitekit.models.base import utc_now
from sitekit.models.domain import Domain
from sitekit.repositories.base import BaseRepository


class DomainRepository(BaseRepository[Domain]):
    """Repository for Domain binding entities.

    The record key is the normalized domain, so "one record per domain" is
    enforced by the table itself; every claim is a conditional write.
    """

    def __init__(self, table_name: str | None = None):
        """Initialize domain repository."""
        super().__init__(Domain, table_name)

    def get_by_domain(self, domain: str, consistent_read: bool = False) -> Domain | None:
        """Get the binding for a normalized domain.

        Args:
            domain: The normalized domain.
            consistent_read: Use a strongly consistent read.

        Returns:
            Domain or None if the domain is unbound.
        """
        return self.get(pk=f"DOMAIN#{domain}", sk="BINDING", consistent_read=consistent_read)

    def get_by_id(self, domain_id: str) -> Domain | None:
        """Get a binding by its record ID using GSI2.

        The index is eventually consistent, so the record is re-read by
        primary key and discarded if it was replaced in the meantime.
        """
        items, _ = self.query(
            pk=f"DOMAIN_ID#{domain_id}",
            index_name="GSI2",
            limit=1,
        )
        if not items:
            return None

        current = self.get_by_domain(items[0].domain, consistent_read=True)
        if current is None or current.id != domain_id:
            return None
        return current

    def list_by_user(self, user_id: str, limit: int = 100) -> list[Domain]:
        """List domains claimed by a user using GSI1."""
        items, _ = self.query(
            pk=f"USER#{user_id}#DOMAINS",
            sk_begins_with="DOMAIN#",
            index_name="GSI1",
            limit=limit,
        )
        return items

    # -----------------------------------------------------------------
    # Transaction operations
    # -----------------------------------------------------------------

    def claim_operation(self, domain: Domain) -> dict[str, Any]:
        """Create the binding only if nobody holds the domain."""
        return self.put_operation(domain, condition_expression="attribute_not_exists(PK)")

    def replace_operation(self, new: Domain, old: Domain) -> dict[str, Any]:
        """Overwrite ``old`` with ``new`` at the same key.

        The swap is a single write, so the domain is never unowned or owned
        twice. It fails if ``old`` was replaced or moved since it was read.
        """
        return self.put_operation(
            new,
            condition_expression="#id = :old_id AND site_id = :old_site_id",
            expression_names={"#id": "id"},
            expression_values={":old_id": old.id, ":old_site_id": old.site_id},
        )

    def release_operation(self, domain: Domain) -> dict[str, Any]:
        """Delete a binding, provided it is still the record that was read."""
        return self.delete_operation(
            pk=domain.get_pk(),
            sk=domain.get_sk(),
            condition_expression="#id = :id",
            expression_names={"#id": "id"},
            expression_values={":id": domain.id},
        )

    def mark_verified_operation(self, domain: Domain, verified_at: datetime | None = None) -> dict[str, Any]:
        """Flip a binding to verified."""
        verified_at = verified_at or utc_now()
        return self.update_operation(
            pk=domain.get_pk(),
            sk=domain.get_sk(),
            update_expression=(
                "SET verified = :true, verified_at = :verified_at, "
                "updated_at = :verified_at ADD #version :one"
            ),
            condition_expression="#id = :id AND site_id = :site_id",
            expression_names={"#id": "id", "#version": "version"},
            expression_values={
                ":true": True,
                ":verified_at": verified_at.isoformat(),
                ":id": domain.id,
                ":site_id": domain.site_id,
                ":one": 1,
            },
        )
