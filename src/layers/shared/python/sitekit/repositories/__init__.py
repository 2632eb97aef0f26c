"""DynamoDB repositories for data access."""

from sitekit.repositories.base import BaseRepository
from sitekit.repositories.domain import DomainRepository
from sitekit.repositories.site import SiteRepository
from sitekit.repositories.template import TemplateRepository

__all__ = [
    "BaseRepository",
    "DomainRepository",
    "SiteRepository",
    "TemplateRepository",
]
