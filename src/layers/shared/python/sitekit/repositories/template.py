"""Template repository for DynamoDB operations."""

from sitekit.models.template import Template, parse_version
from sitekit.repositories.base import BaseRepository


class TemplateRepository(BaseRepository[Template]):
    """Repository for Template entities (one item per template version)."""

    def __init__(self, table_name: str | None = None):
        """Initialize template repository."""
        super().__init__(Template, table_name)

    def get_version(self, template_id: str, version: str) -> Template | None:
        """Get a specific template version."""
        return self.get(pk=f"TEMPLATE#{template_id}", sk=f"VERSION#{version}")

    def list_versions(self, template_id: str) -> list[Template]:
        """List all stored versions of a template, oldest first."""
        items, _ = self.query(
            pk=f"TEMPLATE#{template_id}",
            sk_begins_with="VERSION#",
        )
        return sorted(items, key=lambda t: parse_version(t.template_version))

    def get_latest(self, template_id: str) -> Template | None:
        """Get the newest active version of a template.

        Args:
            template_id: The template ID.

        Returns:
            Latest active Template or None if the template does not exist.
        """
        active = [t for t in self.list_versions(template_id) if t.is_active]
        return active[-1] if active else None

    def list_latest(self) -> list[Template]:
        """List the newest active version of every template, by name."""
        latest: dict[str, Template] = {}
        last_key = None

        while True:
            items, last_key = self.query(
                pk="TEMPLATES",
                index_name="GSI1",
                last_key=last_key,
            )
            for template in items:
                if not template.is_active:
                    continue
                current = latest.get(template.template_id)
                if current is None or parse_version(template.template_version) > parse_version(
                    current.template_version
                ):
                    latest[template.template_id] = template
            if not last_key:
                break

        return sorted(latest.values(), key=lambda t: t.name.lower())

    def create_template(self, template: Template) -> Template:
        """Store a new template version.

        Raises:
            ConflictError: If this version already exists (versions are immutable).
        """
        return self.create(template)
