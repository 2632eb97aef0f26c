"""Domain binding service: claims, verification and reassignment of custom domains.

Every mutation is a single DynamoDB transaction spanning the Domain record
and the Site records it affects, so two sites can never both hold a domain
and a domain is never left half-moved. Conflicts are surfaced to the caller
as "try again" rather than retried here, since a retry could race a
legitimate concurrent claim.
"""

import structlog

from sitekit.config import Settings, get_settings
from sitekit.models.base import utc_now
from sitekit.models.domain import (
    DnsRecord,
    Domain,
    DomainSetupInfo,
    VerificationResult,
    is_valid_domain,
    normalize_domain,
)
from sitekit.models.site import Site
from sitekit.repositories.domain import DomainRepository
from sitekit.repositories.site import SiteRepository
from sitekit.services.dns_verifier import DnsVerifier, get_dns_verifier
from sitekit.services.host_cache import HostCache, get_host_cache
from sitekit.utils.exceptions import (
    CollisionError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnverifiedError,
    ValidationError,
)

logger = structlog.get_logger()


class DomainBindingService:
    """Manages the binding between custom domains and sites."""

    def __init__(
        self,
        settings: Settings | None = None,
        domain_repo: DomainRepository | None = None,
        site_repo: SiteRepository | None = None,
        dns_verifier: DnsVerifier | None = None,
        cache: HostCache | None = None,
    ):
        """Initialize domain binding service.

        Args:
            settings: Platform settings.
            domain_repo: Domain repository.
            site_repo: Site repository.
            dns_verifier: DNS verifier. Defaults to the deployment's verifier.
            cache: Host routing cache to invalidate on binding changes.
        """
        self.settings = settings or get_settings()
        self.domain_repo = domain_repo or DomainRepository()
        self.site_repo = site_repo or SiteRepository()
        self._dns_verifier = dns_verifier
        self.cache = cache if cache is not None else get_host_cache(self.settings)

    @property
    def dns_verifier(self) -> DnsVerifier:
        """Get DNS verifier (lazy initialization)."""
        if self._dns_verifier is None:
            self._dns_verifier = get_dns_verifier(self.settings)
        return self._dns_verifier

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    def validate_domain(self, domain_string: str) -> str:
        """Validate a user-supplied domain and return its normalized form.

        Raises:
            ValidationError: If the domain is malformed or belongs to the platform.
        """
        domain = normalize_domain(domain_string or "")
        if not is_valid_domain(domain_string or "") or not is_valid_domain(domain):
            raise ValidationError(
                message=f"Invalid domain: {domain_string}",
                errors=[{"field": "domain", "message": "Enter a domain like example.com"}],
            )

        # Apex and www share one binding, so the key itself cannot be a www host
        if domain.startswith("www."):
            raise ValidationError(
                message=f"Invalid domain: {domain_string}",
                errors=[{"field": "domain", "message": "Domains cannot start with more than one www"}],
            )

        builder_host = self.settings.builder_host
        if domain == builder_host or domain.endswith(f".{builder_host}"):
            raise ValidationError(
                message="Platform subdomains cannot be bound as custom domains",
                errors=[{"field": "domain", "message": "Use a domain you own"}],
            )
        return domain

    def get_domain(self, domain_id: str) -> Domain:
        """Get a binding by ID or raise NotFoundError."""
        binding = self.domain_repo.get_by_id(domain_id)
        if binding is None:
            raise NotFoundError("Domain", domain_id)
        return binding

    def list_domains(self, user_id: str) -> list[Domain]:
        """List the bindings claimed by a user."""
        return self.domain_repo.list_by_user(user_id)

    def setup_info(self, binding: Domain) -> DomainSetupInfo:
        """Build the DNS instructions for a binding."""
        txt_name = self.settings.txt_record_name(binding.domain)
        cname_target = self.settings.site_hostname(binding.site_id)

        return DomainSetupInfo(
            domain_id=binding.id,
            domain=binding.domain,
            site_id=binding.site_id,
            verification_token=binding.verification_token,
            verified=binding.verified,
            records=[
                DnsRecord(record_type="TXT", name=txt_name, value=binding.verification_token),
                DnsRecord(record_type="CNAME", name=binding.domain, value=cname_target),
            ],
            instructions=(
                f"Add a TXT record at {txt_name} with value {binding.verification_token} "
                f"to prove ownership, and point {binding.domain} (or www.{binding.domain}) "
                f"at {cname_target} with a CNAME record. Then run verification."
            ),
        )

    def check_dns(self, domain_id: str) -> VerificationResult:
        """Report what DNS currently publishes for a binding, without changing it."""
        binding = self.get_domain(domain_id)
        result = self.dns_verifier.check(
            binding.domain,
            self.settings.txt_record_name(binding.domain),
            binding.verification_token,
        )
        return VerificationResult(
            domain_id=binding.id,
            domain=binding.domain,
            verified=binding.verified,
            verified_at=binding.verified_at,
            message="TXT record found" if result.verified else result.reason,
            txt_values=result.txt_values,
            cname_target=result.cname_target,
        )

    # -----------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------

    def request_binding(self, site_id: str, domain_string: str | None) -> DomainSetupInfo | None:
        """Claim a custom domain for a site.

        An empty domain removes the site's current binding. Re-requesting a
        domain the site already holds returns its existing setup info.

        Args:
            site_id: The requesting site.
            domain_string: The domain as typed by the user.

        Returns:
            DomainSetupInfo with the DNS records to publish, or None when the
            request removed the binding.

        Raises:
            ValidationError: If the domain is malformed.
            NotFoundError: If the site does not exist.
            CollisionError: If another site holds the domain.
            ConflictError: If the site or binding changed concurrently.
        """
        if not domain_string or not domain_string.strip():
            self.remove(site_id)
            return None

        domain = self.validate_domain(domain_string)
        site = self._get_site(site_id)

        existing = self.domain_repo.get_by_domain(domain, consistent_read=True)
        if existing is not None:
            if existing.site_id == site_id:
                logger.info("Domain already bound to site", domain=domain, site_id=site_id)
                return self.setup_info(existing)
            raise self._collision(existing, site)

        binding = Domain(domain=domain, site_id=site_id, user_id=site.user_id)
        operations = [
            self.domain_repo.claim_operation(binding),
            self.site_repo.set_domain_operation(site_id, domain, previous_domain=site.custom_domain),
        ]
        previous = self._previous_binding(site, domain)
        if previous is not None:
            operations.append(self.domain_repo.release_operation(previous))

        try:
            self.domain_repo.transact_write(operations)
        except ConflictError:
            winner = self.domain_repo.get_by_domain(domain, consistent_read=True)
            if winner is not None and winner.site_id != site_id:
                logger.info(
                    "Lost domain claim race",
                    domain=domain,
                    site_id=site_id,
                    winner_site_id=winner.site_id,
                )
                raise self._collision(winner, site)
            if winner is not None:
                return self.setup_info(winner)
            raise ConflictError("Domain binding changed concurrently, please try again")

        if previous is not None:
            self.cache.invalidate(previous.domain)

        logger.info(
            "Domain binding requested",
            domain=domain,
            domain_id=binding.id,
            site_id=site_id,
        )
        return self.setup_info(binding)

    def verify(self, domain_id: str) -> VerificationResult:
        """Check DNS for a binding's token and mark it verified on success.

        Verifying an already-verified binding succeeds without a DNS lookup;
        a verified binding is never flipped back.

        Raises:
            NotFoundError: If the binding does not exist.
            UnverifiedError: If the TXT record is missing, wrong, or the
                lookup timed out. Always safe to retry.
        """
        binding = self.get_domain(domain_id)
        if binding.verified:
            return VerificationResult(
                domain_id=binding.id,
                domain=binding.domain,
                verified=True,
                verified_at=binding.verified_at,
                message="Domain already verified",
            )

        result = self.dns_verifier.check(
            binding.domain,
            self.settings.txt_record_name(binding.domain),
            binding.verification_token,
        )
        if not result.verified:
            logger.info("Domain verification failed", domain=binding.domain, reason=result.reason)
            raise UnverifiedError(binding.domain, result.reason)

        verified_at = utc_now()
        try:
            self.domain_repo.transact_write([
                self.domain_repo.mark_verified_operation(binding, verified_at),
                self.site_repo.mark_domain_verified_operation(binding.site_id, binding.domain),
            ])
        except ConflictError:
            current = self.domain_repo.get_by_id(domain_id)
            if current is not None and current.verified:
                verified_at = current.verified_at
            else:
                raise

        # Drop any cached miss so the domain starts routing right away
        self.cache.invalidate(binding.domain)

        logger.info("Domain verified", domain=binding.domain, site_id=binding.site_id)
        return VerificationResult(
            domain_id=binding.id,
            domain=binding.domain,
            verified=True,
            verified_at=verified_at,
            message="Domain verified",
            txt_values=result.txt_values,
            cname_target=result.cname_target,
        )

    def unlink_and_reassign(
        self,
        domain_id: str,
        new_site_id: str,
        new_domain_string: str,
    ) -> DomainSetupInfo:
        """Move a domain from its current site to ``new_site_id``.

        The old record is replaced by a fresh unverified one at the same key,
        the old site's domain fields are cleared and the new site's are set,
        all in one transaction.

        Allowed when the new site's owner also owns the linked site, or when
        the linked binding is still unverified.

        Raises:
            NotFoundError: If the binding or the new site does not exist.
            ValidationError: If the domain does not match the binding.
            ForbiddenError: If another user holds a verified binding.
            ConflictError: If anything changed concurrently; try again.
        """
        domain = self.validate_domain(new_domain_string)
        old = self.get_domain(domain_id)
        if old.domain != domain:
            raise ValidationError(
                message=f"Domain {domain} does not match binding {domain_id}",
                errors=[{"field": "domain", "message": "Domain does not match the linked record"}],
            )

        new_site = self._get_site(new_site_id)
        if old.site_id == new_site_id:
            return self.setup_info(old)

        old_site = self.site_repo.get_by_site_id(old.site_id, consistent_read=True)
        owns_linked_site = old_site is None or old_site.user_id == new_site.user_id
        if old.verified and not owns_linked_site:
            raise ForbiddenError(
                message="This domain is verified by another account",
                resource_type="Domain",
                action="reassign",
            )

        replacement = Domain(domain=domain, site_id=new_site_id, user_id=new_site.user_id)
        operations = [self.domain_repo.replace_operation(replacement, old)]
        if old_site is not None and old_site.custom_domain == domain:
            operations.append(self.site_repo.clear_domain_operation(old_site.site_id, domain))
        operations.append(
            self.site_repo.set_domain_operation(
                new_site_id, domain, previous_domain=new_site.custom_domain
            )
        )
        previous = self._previous_binding(new_site, domain)
        if previous is not None:
            operations.append(self.domain_repo.release_operation(previous))

        self.domain_repo.transact_write(operations)

        self.cache.invalidate(domain)
        if previous is not None:
            self.cache.invalidate(previous.domain)

        logger.info(
            "Domain reassigned",
            domain=domain,
            from_site_id=old.site_id,
            to_site_id=new_site_id,
            old_domain_id=old.id,
            domain_id=replacement.id,
        )
        return self.setup_info(replacement)

    def remove(self, site_id: str) -> None:
        """Delete a site's binding (if any) and clear its domain fields."""
        site = self._get_site(site_id)
        if not site.custom_domain:
            return

        domain = site.custom_domain
        operations = [self.site_repo.clear_domain_operation(site_id, domain)]
        binding = self.domain_repo.get_by_domain(domain, consistent_read=True)
        if binding is not None and binding.site_id == site_id:
            operations.append(self.domain_repo.release_operation(binding))

        self.domain_repo.transact_write(operations)
        self.cache.invalidate(domain)

        logger.info("Domain removed", domain=domain, site_id=site_id)

    def release(self, domain_id: str) -> None:
        """Delete a binding by ID, clearing its site's domain fields if they match."""
        binding = self.get_domain(domain_id)
        operations = [self.domain_repo.release_operation(binding)]

        site = self.site_repo.get_by_site_id(binding.site_id, consistent_read=True)
        if site is not None and site.custom_domain == binding.domain:
            operations.append(self.site_repo.clear_domain_operation(site.site_id, binding.domain))

        self.domain_repo.transact_write(operations)
        self.cache.invalidate(binding.domain)

        logger.info("Domain released", domain=binding.domain, site_id=binding.site_id)

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------

    def _get_site(self, site_id: str) -> Site:
        site = self.site_repo.get_by_site_id(site_id, consistent_read=True)
        if site is None:
            raise NotFoundError("Site", site_id)
        return site

    def _previous_binding(self, site: Site, new_domain: str) -> Domain | None:
        """The site's current binding, when it is switching to another domain."""
        if not site.custom_domain or site.custom_domain == new_domain:
            return None
        previous = self.domain_repo.get_by_domain(site.custom_domain, consistent_read=True)
        if previous is None or previous.site_id != site.site_id:
            return None
        return previous

    def _collision(self, existing: Domain, requesting_site: Site) -> CollisionError:
        linked_site = self.site_repo.get_by_site_id(existing.site_id)
        return CollisionError(
            domain=existing.domain,
            domain_id=existing.id,
            linked_site_id=existing.site_id,
            linked_site_name=linked_site.name if linked_site else "",
            is_owner=linked_site is not None and linked_site.user_id == requesting_site.user_id,
        )
