"""Section rendering registry.

Maps a section ``type`` tag (case-insensitive) to a handler that renders
the section's props to HTML. Unknown tags render a visible notice naming
the type instead of failing the page.
"""

import html as html_module
import re
from typing import Any, Callable

from sitekit.models.content import NavItem, Page, SiteContent

SectionHandler = Callable[[dict[str, Any]], str]


def _escape_html(value: Any) -> str:
    """Escape a value for safe insertion into HTML."""
    if value is None:
        return ""
    return html_module.escape(str(value))


def _sanitize_url(url: Any) -> str:
    """Escape a URL, refusing script-capable schemes."""
    if not url:
        return "#"
    url = str(url).strip()
    if url.lower().startswith(("javascript:", "data:", "vbscript:")):
        return "#"
    return _escape_html(url)


def _sanitize_color(color: Any, default: str = "#7c3aed") -> str:
    if not color:
        return default
    color = str(color).strip()
    if re.match(r"^#[0-9a-fA-F]{3,8}$", color) or re.match(r"^[a-zA-Z]+$", color):
        return color
    return default


def _first(props: dict[str, Any], *keys: str, default: Any = "") -> Any:
    """First non-empty prop among ``keys`` (templates use several aliases)."""
    for key in keys:
        value = props.get(key)
        if value:
            return value
    return default


def _button(text: Any, link: Any, css_class: str = "button") -> str:
    if not text:
        return ""
    return f'<a class="{css_class}" href="{_sanitize_url(link)}">{_escape_html(text)}</a>'


class SectionRegistry:
    """Registry of section renderers keyed by lower-cased type tag."""

    def __init__(self):
        self._handlers: dict[str, SectionHandler] = {}

    def register(self, section_type: str, handler: SectionHandler) -> None:
        self._handlers[section_type.lower()] = handler

    def has(self, section_type: str) -> bool:
        return (section_type or "").lower() in self._handlers

    @property
    def types(self) -> list[str]:
        return sorted(self._handlers)

    def render(self, section_type: str, props: dict[str, Any] | None = None) -> str:
        """Render one section; unknown types render the fallback notice."""
        handler = self._handlers.get((section_type or "").lower())
        if handler is None:
            return render_fallback(section_type)
        return handler(props or {})


def render_fallback(section_type: str) -> str:
    """Visible notice for a section type with no renderer."""
    return (
        '<div class="section-fallback" role="note">'
        f"Unknown section type: <code>{_escape_html(section_type)}</code>"
        "</div>"
    )


def _render_hero(props: dict[str, Any]) -> str:
    headline = _escape_html(_first(props, "headline", "title", default="Build Something Amazing"))
    subheadline = _escape_html(_first(props, "subheadline", "subtitle"))
    description = _escape_html(props.get("description", ""))
    primary = _button(
        _first(props, "primaryButtonText", "cta", default="Get Started"),
        _first(props, "primaryButtonLink", "ctaLink", default="#"),
    )
    secondary = _button(
        props.get("secondaryButtonText"),
        props.get("secondaryButtonLink", "#"),
        "button button-secondary",
    )
    align = props.get("alignment", "center")
    if align not in ("left", "center", "right"):
        align = "center"

    style = ""
    if props.get("backgroundImage"):
        style = f' style="background-image: url({_sanitize_url(props["backgroundImage"])})"'

    subheadline_html = f'<span class="eyebrow">{subheadline}</span>' if subheadline else ""
    description_html = f"<p>{description}</p>" if description else ""

    return f'''
    <section class="hero align-{align}"{style}>
        {subheadline_html}
        <h1>{headline}</h1>
        {description_html}
        <div class="actions">{primary}{secondary}</div>
    </section>'''


def _render_features(props: dict[str, Any]) -> str:
    title = _escape_html(props.get("title", "Features"))
    subtitle = _escape_html(props.get("subtitle", ""))

    items_html = ""
    for item in _first(props, "features", "items", default=[]):
        items_html += f'''
        <div class="feature">
            <h3>{_escape_html(item.get("title", ""))}</h3>
            <p>{_escape_html(item.get("description", ""))}</p>
        </div>'''

    return f'''
    <section class="features">
        <h2>{title}</h2>
        <p class="subtitle">{subtitle}</p>
        <div class="grid">{items_html}</div>
    </section>'''


def _render_cta(props: dict[str, Any]) -> str:
    title = _escape_html(_first(props, "title", "headline", default="Ready to get started?"))
    description = _escape_html(props.get("description", ""))
    primary = _button(
        _first(props, "primaryButtonText", "buttonText", default="Get Started"),
        _first(props, "primaryButtonLink", "buttonLink", default="#"),
    )
    secondary = _button(
        props.get("secondaryButtonText"),
        props.get("secondaryButtonLink", "#"),
        "button button-secondary",
    )
    return f'''
    <section class="cta">
        <h2>{title}</h2>
        <p>{description}</p>
        <div class="actions">{primary}{secondary}</div>
    </section>'''


def _render_content(props: dict[str, Any]) -> str:
    title = _escape_html(props.get("title", ""))
    subtitle = _escape_html(props.get("subtitle", ""))
    paragraphs = [p for p in str(props.get("content", "")).split("\n\n") if p.strip()]
    body = "".join(f"<p>{_escape_html(p.strip())}</p>" for p in paragraphs)

    image_html = ""
    if props.get("image"):
        image_html = f'<img src="{_sanitize_url(props["image"])}" alt="{title}">'

    title_html = f"<h2>{title}</h2>" if title else ""
    subtitle_html = f'<p class="subtitle">{subtitle}</p>' if subtitle else ""

    return f'''
    <section class="content">
        {title_html}
        {subtitle_html}
        {body}
        {image_html}
        {_button(props.get("buttonText"), props.get("buttonLink", "#"))}
    </section>'''


def _render_faq(props: dict[str, Any]) -> str:
    title = _escape_html(props.get("title", "Frequently Asked Questions"))

    items_html = ""
    for item in props.get("items", []):
        items_html += f'''
        <details>
            <summary>{_escape_html(item.get("question", ""))}</summary>
            <div>{_escape_html(item.get("answer", ""))}</div>
        </details>'''

    return f'''
    <section class="faq">
        <h2>{title}</h2>
        {items_html}
    </section>'''


def _render_stats(props: dict[str, Any]) -> str:
    title = _escape_html(props.get("title", ""))

    items_html = ""
    for item in _first(props, "stats", "items", default=[]):
        value = _escape_html(f"{item.get('value', '')}{item.get('suffix', '')}")
        items_html += f'''
        <div class="stat">
            <p class="value">{value}</p>
            <p class="label">{_escape_html(item.get("label", ""))}</p>
        </div>'''

    title_html = f"<h2>{title}</h2>" if title else ""
    return f'''
    <section class="stats">
        {title_html}
        <div class="grid">{items_html}</div>
    </section>'''


def _render_navbar(props: dict[str, Any]) -> str:
    logo = _escape_html(_first(props, "logoText", "logo", default=""))
    links_html = "".join(
        f'<a href="{_sanitize_url(link.get("href"))}">{_escape_html(link.get("label", ""))}</a>'
        for link in props.get("links", [])
    )
    return f'''
    <nav class="navbar">
        <a class="logo" href="/">{logo}</a>
        <div class="links">{links_html}</div>
        {_button(props.get("ctaText"), props.get("ctaLink", "#"))}
    </nav>'''


def _render_footer(props: dict[str, Any]) -> str:
    text = _escape_html(_first(props, "text", "copyright", default=""))
    links_html = "".join(
        f'<a href="{_sanitize_url(link.get("href"))}">{_escape_html(link.get("label", ""))}</a>'
        for link in props.get("links", [])
    )
    return f'''
    <footer class="footer">
        <div class="links">{links_html}</div>
        <p>{text}</p>
    </footer>'''


def create_default_registry() -> SectionRegistry:
    """Registry with the built-in section renderers."""
    registry = SectionRegistry()
    registry.register("hero", _render_hero)
    registry.register("features", _render_features)
    registry.register("cta", _render_cta)
    registry.register("content", _render_content)
    registry.register("faq", _render_faq)
    registry.register("stats", _render_stats)
    registry.register("navbar", _render_navbar)
    registry.register("footer", _render_footer)
    return registry


default_registry = create_default_registry()


def _render_navigation(navigation: list[NavItem]) -> str:
    if not navigation:
        return ""
    links = "".join(
        f'<a href="{_sanitize_url(item.href)}">{_escape_html(item.label)}</a>'
        for item in navigation
    )
    return f'<nav class="site-nav">{links}</nav>'


def render_page_html(
    content: SiteContent,
    page: Page,
    registry: SectionRegistry | None = None,
    site_name: str = "",
) -> str:
    """Render a full HTML document for one page of a site."""
    registry = registry or default_registry

    sections_html = "".join(registry.render(section.type, section.props) for section in page.sections)
    footer_html = _render_footer(content.footer) if content.footer else ""

    seo = page.seo or {}
    title = _escape_html(seo.get("title") or page.title or site_name)
    description = _escape_html(seo.get("description", ""))
    primary_color = _sanitize_color(content.theme.color.get("primary"))
    font = _escape_html(content.theme.font or "Inter")

    return f'''<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
    <meta name="description" content="{description}">
    <style>:root {{ --primary: {primary_color}; --font: "{font}", sans-serif; }}</style>
</head>
<body>
    {_render_navigation(content.navigation)}
    <main>{sections_html}</main>
    {footer_html}
</body>
</html>'''


def render_not_found_html(message: str = "No site is configured for this address.") -> str:
    """Plain not-found page for unresolved hosts and unknown pages."""
    return f'''<!DOCTYPE html>
<html><head><title>Page Not Found</title></head>
<body style="font-family: system-ui; text-align: center; padding: 50px;">
<h1>Page Not Found</h1>
<p>{_escape_html(message)}</p>
</body></html>'''
