"""Editor session: one site's in-progress draft with debounced autosave.

Dirtiness is tracked with revision numbers rather than by comparing
content. Every mutation bumps ``revision``; a save records the revision it
captured as ``saved_revision`` once it succeeds. The session is dirty while
the two differ, so a save that completes after newer edits leaves it dirty.

Autosave runs ``quiet_period`` seconds after the last mutation. At most one
save is in flight; a mutation during a save restarts the quiet period
without cancelling the save.

Switching sites with ``load`` waits for an in-flight save to finish, then
discards any edits that were not yet saved.
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable

import structlog

from sitekit.config import get_settings
from sitekit.models.content import NavItem, Page, Section, SiteContent
from sitekit.utils.exceptions import NotFoundError, ValidationError

logger = structlog.get_logger()

SaveDraft = Callable[[str, SiteContent], Awaitable[Any]]


class SessionState(str, Enum):
    """Editor session state."""

    CLEAN = "clean"
    DIRTY = "dirty"


class EditorSession:
    """Holds one site's draft and persists it through ``save_draft``."""

    def __init__(self, save_draft: SaveDraft, quiet_period: float | None = None):
        """Initialize editor session.

        Args:
            save_draft: Coroutine function persisting ``(site_id, content)``.
            quiet_period: Seconds without mutations before autosaving.
                Defaults to the AUTOSAVE_QUIET_PERIOD_SECONDS setting.
        """
        self._save_draft = save_draft
        self.quiet_period = (
            quiet_period if quiet_period is not None else get_settings().autosave_quiet_period
        )

        self.site_id: str | None = None
        self._content = SiteContent()
        self._baseline = SiteContent()
        self.revision = 0
        self.saved_revision = 0
        self.last_error: Exception | None = None

        self._generation = 0
        self._save_lock = asyncio.Lock()
        self._debounce_task: asyncio.Task | None = None
        self._save_task: asyncio.Task | None = None

    # -----------------------------------------------------------------
    # State
    # -----------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return SessionState.DIRTY if self.is_dirty else SessionState.CLEAN

    @property
    def is_dirty(self) -> bool:
        return self.revision != self.saved_revision

    @property
    def content(self) -> SiteContent:
        """The live draft. Mutate it only through the session's methods."""
        return self._content

    @property
    def baseline(self) -> SiteContent:
        """Snapshot of the draft as last persisted (or loaded)."""
        return self._baseline

    @property
    def save_in_flight(self) -> bool:
        return self._save_task is not None and not self._save_task.done()

    async def load(self, site_id: str, content: SiteContent) -> None:
        """Start editing a site; the session begins clean.

        An in-flight save of the previous site is allowed to finish first.
        Edits not yet being saved are discarded.
        """
        await self._settle()

        if self.is_dirty:
            logger.warning(
                "Discarding unsaved edits",
                site_id=self.site_id,
                revision=self.revision,
                saved_revision=self.saved_revision,
            )

        self._generation += 1
        self.site_id = site_id
        self._content = content.snapshot()
        self._baseline = content.snapshot()
        self.revision = 0
        self.saved_revision = 0
        self.last_error = None

    async def flush(self) -> bool:
        """Save immediately instead of waiting for the quiet period.

        Returns:
            True if the session is clean afterwards.
        """
        self._cancel_debounce()
        if self._save_task is not None and not self._save_task.done():
            await self._save_task
        await self._save()
        return not self.is_dirty

    async def close(self) -> None:
        """Flush pending edits and detach from the site."""
        await self.flush()
        self._cancel_debounce()
        self.site_id = None

    # -----------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------

    def add_page(self, page: Page, index: int | None = None) -> Page:
        pages = self._content.pages
        if any(p.id == page.id for p in pages):
            raise ValidationError(f"Page {page.id} already exists")
        pages.insert(len(pages) if index is None else index, page)
        self._mark_dirty()
        return page

    def update_page(self, page_id: str, **changes: Any) -> Page:
        """Update page fields (``title``, ``slug``, ``seo``)."""
        page = self._get_page(page_id)
        unknown = set(changes) - {"title", "slug", "seo"}
        if unknown:
            raise ValidationError(f"Cannot update page fields: {', '.join(sorted(unknown))}")
        for field_name, value in changes.items():
            setattr(page, field_name, value)
        self._mark_dirty()
        return page

    def delete_page(self, page_id: str) -> None:
        page = self._get_page(page_id)
        self._content.pages.remove(page)
        self._mark_dirty()

    def reorder_pages(self, page_ids: list[str]) -> None:
        self._content.pages = self._reordered(self._content.pages, page_ids, "pages")
        self._mark_dirty()

    def add_section(self, page_id: str, section: Section, index: int | None = None) -> Section:
        sections = self._get_page(page_id).sections
        if any(s.id == section.id for s in sections):
            raise ValidationError(f"Section {section.id} already exists on page {page_id}")
        sections.insert(len(sections) if index is None else index, section)
        self._mark_dirty()
        return section

    def update_section(
        self,
        page_id: str,
        section_id: str,
        props: dict[str, Any],
        replace: bool = False,
    ) -> Section:
        """Merge ``props`` into a section's props (or replace them)."""
        section = self._get_section(page_id, section_id)
        section.props = dict(props) if replace else {**section.props, **props}
        self._mark_dirty()
        return section

    def delete_section(self, page_id: str, section_id: str) -> None:
        page = self._get_page(page_id)
        page.sections.remove(self._get_section(page_id, section_id))
        self._mark_dirty()

    def reorder_sections(self, page_id: str, section_ids: list[str]) -> None:
        page = self._get_page(page_id)
        page.sections = self._reordered(page.sections, section_ids, "sections")
        self._mark_dirty()

    def update_theme(self, **changes: Any) -> None:
        """Merge theme keys (``color`` is merged key by key)."""
        theme = self._content.theme.model_dump()
        for key, value in changes.items():
            if key == "color" and isinstance(value, dict):
                theme["color"] = {**theme.get("color", {}), **value}
            else:
                theme[key] = value
        self._content.theme = type(self._content.theme).model_validate(theme)
        self._mark_dirty()

    def update_navigation(self, items: list[NavItem | dict]) -> None:
        self._content.navigation = [NavItem.model_validate(item) for item in items]
        self._mark_dirty()

    def update_footer(self, footer: dict[str, Any]) -> None:
        self._content.footer = dict(footer)
        self._mark_dirty()

    # -----------------------------------------------------------------
    # Autosave
    # -----------------------------------------------------------------

    def _mark_dirty(self) -> None:
        self.revision += 1
        self._schedule_autosave()

    def _schedule_autosave(self) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop: stay dirty until flush() is awaited
            return

        self._cancel_debounce()
        self._debounce_task = asyncio.ensure_future(self._debounce())

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = None

    async def _debounce(self) -> None:
        await asyncio.sleep(self.quiet_period)
        # Separate task, so a later debounce restart cannot cancel the save
        self._save_task = asyncio.ensure_future(self._save())

    async def _save(self) -> None:
        async with self._save_lock:
            if not self.is_dirty or self.site_id is None:
                return

            generation = self._generation
            site_id = self.site_id
            revision = self.revision
            snapshot = self._content.snapshot()

            try:
                await self._save_draft(site_id, snapshot)
            except Exception as e:
                self.last_error = e
                logger.warning(
                    "Autosave failed",
                    site_id=site_id,
                    revision=revision,
                    error=str(e),
                )
                return

            if generation != self._generation:
                return

            # Only advance the baseline; newer edits keep the session dirty
            if revision > self.saved_revision:
                self.saved_revision = revision
                self._baseline = snapshot
            self.last_error = None
            logger.debug(
                "Draft autosaved",
                site_id=site_id,
                revision=revision,
                dirty=self.is_dirty,
            )

    async def _settle(self) -> None:
        """Cancel a pending autosave and wait out the one in flight."""
        self._cancel_debounce()
        if self._save_task is not None and not self._save_task.done():
            await self._save_task
        self._save_task = None

    # -----------------------------------------------------------------
    # Lookups
    # -----------------------------------------------------------------

    def _get_page(self, page_id: str) -> Page:
        page = self._content.get_page(page_id)
        if page is None:
            raise NotFoundError("Page", page_id)
        return page

    def _get_section(self, page_id: str, section_id: str) -> Section:
        for section in self._get_page(page_id).sections:
            if section.id == section_id:
                return section
        raise NotFoundError("Section", section_id)

    @staticmethod
    def _reordered(items: list, ids: list[str], label: str) -> list:
        by_id = {item.id: item for item in items}
        if len(ids) != len(items) or sorted(ids) != sorted(by_id):
            raise ValidationError(f"Reorder must list every one of the {label} exactly once")
        return [by_id[item_id] for item_id in ids]


def site_service_saver(site_service, user_id: str) -> SaveDraft:
    """Adapt the blocking ``SiteService.update_draft`` into a SaveDraft coroutine."""

    async def save(site_id: str, content: SiteContent) -> Any:
        return await asyncio.to_thread(site_service.update_draft, site_id, user_id, content)

    return save
