"""Site repository for DynamoDB operations."""

from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from sitekit.models.base import utc_now
from sitekit.models.site import DeploymentStatus, Site
from sitekit.repositories.base import BaseRepository
from sitekit.utils.exceptions import ConflictError


class SiteRepository(BaseRepository[Site]):
    """Repository for Site entities."""

    def __init__(self, table_name: str | None = None):
        """Initialize site repository."""
        super().__init__(Site, table_name)

    def get_by_site_id(self, site_id: str, consistent_read: bool = False) -> Site | None:
        """Get a site by its ID.

        Args:
            site_id: The site ID.
            consistent_read: Use a strongly consistent read.

        Returns:
            Site or None if not found.
        """
        key = f"SITE#{site_id}"
        return self.get(pk=key, sk=key, consistent_read=consistent_read)

    def list_by_user(
        self,
        user_id: str,
        limit: int = 50,
        last_key: dict | None = None,
    ) -> tuple[list[Site], dict | None]:
        """List sites owned by a user using GSI1."""
        return self.query(
            pk=f"USER#{user_id}#SITES",
            sk_begins_with="SITE#",
            index_name="GSI1",
            limit=limit,
            last_key=last_key,
        )

    def create_site(self, site: Site) -> Site:
        """Create a new site.

        Raises:
            ConflictError: If a site with this ID already exists.
        """
        return self.create(site)

    def update_site(self, site: Site) -> Site:
        """Update an existing site with optimistic locking."""
        return self.update(site, check_version=True)

    def set_deployment_status(
        self,
        site_id: str,
        status: DeploymentStatus,
        expected_status: DeploymentStatus,
    ) -> bool:
        """Move a site from ``expected_status`` to ``status``.

        Used to roll back a publish; the condition keeps it from clobbering
        a status some other writer already moved on.

        Returns:
            True if the status changed, False if the site was not in
            ``expected_status``.
        """
        key = f"SITE#{site_id}"
        try:
            self.table.update_item(
                Key=self._build_key(key, key),
                UpdateExpression="SET #status = :status, updated_at = :now ADD #version :one",
                ConditionExpression="#status = :expected",
                ExpressionAttributeNames={
                    "#status": "deployment_status",
                    "#version": "version",
                },
                ExpressionAttributeValues={
                    ":status": DeploymentStatus(status).value,
                    ":expected": DeploymentStatus(expected_status).value,
                    ":now": utc_now().isoformat(),
                    ":one": 1,
                },
            )
        except ClientError as e:
            try:
                self._raise_store_error(e, "update_item", site_id=site_id)
            except ConflictError:
                return False
        except BotoCoreError as e:
            self._raise_store_error(e, "update_item", site_id=site_id)
        return True

    # -----------------------------------------------------------------
    # Transaction operations for domain binding
    # -----------------------------------------------------------------

    def set_domain_operation(
        self,
        site_id: str,
        domain: str,
        previous_domain: str | None = None,
    ) -> dict[str, Any]:
        """Point a site at a new, unverified custom domain.

        Fails unless the site still has ``previous_domain`` (or no domain
        when it is None), so a concurrent domain change is not overwritten.
        """
        key = f"SITE#{site_id}"
        values: dict[str, Any] = {
            ":domain": domain,
            ":false": False,
            ":now": utc_now().isoformat(),
            ":one": 1,
        }
        if previous_domain:
            condition = "attribute_exists(PK) AND custom_domain = :previous"
            values[":previous"] = previous_domain
        else:
            condition = "attribute_exists(PK) AND attribute_not_exists(custom_domain)"

        return self.update_operation(
            pk=key,
            sk=key,
            update_expression=(
                "SET custom_domain = :domain, domain_verified = :false, "
                "updated_at = :now ADD #version :one"
            ),
            condition_expression=condition,
            expression_names={"#version": "version"},
            expression_values=values,
        )

    def clear_domain_operation(self, site_id: str, domain: str) -> dict[str, Any]:
        """Clear a site's custom domain, provided it still points at ``domain``."""
        key = f"SITE#{site_id}"
        return self.update_operation(
            pk=key,
            sk=key,
            update_expression=(
                "SET domain_verified = :false, updated_at = :now "
                "REMOVE custom_domain ADD #version :one"
            ),
            condition_expression="custom_domain = :domain",
            expression_names={"#version": "version"},
            expression_values={
                ":domain": domain,
                ":false": False,
                ":now": utc_now().isoformat(),
                ":one": 1,
            },
        )

    def mark_domain_verified_operation(self, site_id: str, domain: str) -> dict[str, Any]:
        """Flag a site's custom domain as verified."""
        key = f"SITE#{site_id}"
        return self.update_operation(
            pk=key,
            sk=key,
            update_expression="SET domain_verified = :true, updated_at = :now ADD #version :one",
            condition_expression="custom_domain = :domain",
            expression_names={"#version": "version"},
            expression_values={
                ":domain": domain,
                ":true": True,
                ":now": utc_now().isoformat(),
                ":one": 1,
            },
        )
