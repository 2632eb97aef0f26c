#!/usr/bin/env python3
"""Seed a starter template (and optionally a demo site) into DynamoDB."""

import argparse
import os
import sys

import boto3

# Add the shared layer to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src", "layers", "shared", "python"))

from sitekit.models.content import NavItem, Page, Section, SiteContent, Theme
from sitekit.models.site import Site
from sitekit.models.template import ChangelogEntry, Template, VersionChangelog


def starter_content() -> SiteContent:
    """Content of the starter template."""
    return SiteContent(
        pages=[
            Page(
                id="home",
                slug="/",
                title="Home",
                seo={"title": "Home", "description": "Welcome to our business"},
                sections=[
                    Section(
                        id="hero",
                        type="hero",
                        props={
                            "headline": "Grow your business online",
                            "subheadline": "Starter",
                            "description": "A clean site you can make your own in minutes.",
                            "primaryButtonText": "Contact us",
                            "primaryButtonLink": "/contact",
                        },
                    ),
                    Section(
                        id="features",
                        type="features",
                        props={
                            "title": "What we offer",
                            "features": [
                                {"title": "Fast", "description": "Pages served from the edge."},
                                {"title": "Simple", "description": "Edit everything in the browser."},
                                {"title": "Yours", "description": "Bring your own domain."},
                            ],
                        },
                    ),
                    Section(
                        id="cta",
                        type="cta",
                        props={"title": "Ready to talk?", "buttonText": "Get in touch", "buttonLink": "/contact"},
                    ),
                ],
            ),
            Page(
                id="about",
                slug="about",
                title="About",
                sections=[
                    Section(
                        id="story",
                        type="content",
                        props={"title": "Our story", "content": "Tell visitors who you are.\n\nAnd why it matters."},
                    ),
                ],
            ),
            Page(
                id="contact",
                slug="contact",
                title="Contact",
                sections=[
                    Section(
                        id="faq",
                        type="faq",
                        props={
                            "items": [
                                {"question": "How do I reach you?", "answer": "Email hello@example.com."},
                            ],
                        },
                    ),
                ],
            ),
        ],
        theme=Theme(color={"primary": "#7c3aed", "secondary": "#1e293b"}, font="Inter"),
        navigation=[
            NavItem(label="Home", href="/"),
            NavItem(label="About", href="/about"),
            NavItem(label="Contact", href="/contact"),
        ],
        footer={"text": "© Your Business"},
    )


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Seed development data")
    parser.add_argument("--stage", default="dev", help="Deployment stage")
    parser.add_argument("--region", default="us-east-1", help="AWS region")
    parser.add_argument("--demo-user", help="Also create a demo site owned by this user ID")
    args = parser.parse_args()

    table_name = f"sitekit-{args.stage}"
    print(f"Seeding data to table: {table_name}")

    dynamodb = boto3.resource("dynamodb", region_name=args.region)
    table = dynamodb.Table(table_name)

    template = Template(
        template_id="starter",
        name="Starter",
        template_version="1.0.0",
        description="A three-page site for small businesses",
        category="business",
        config=starter_content(),
        changelog=[
            VersionChangelog(
                version="1.0.0",
                changes=[ChangelogEntry(type="added", description="Home, About and Contact pages")],
            ),
        ],
    )
    put_item(table, template)
    print(f"Created template: {template.name} {template.template_version}")

    if args.demo_user:
        site = Site(
            site_id="demo",
            user_id=args.demo_user,
            template_id=template.template_id,
            template_version=template.template_version,
            name="Demo Site",
            draft_content=template.config.snapshot(),
        )
        put_item(table, site)
        print(f"Created site: {site.site_id} (owner {args.demo_user})")

    print("\nSeeding complete!")
    print(f"\nPreview a published site at:")
    print(f"  https://<site_id>.<BUILDER_DOMAIN>/")


def put_item(table, model):
    """Put a model item into DynamoDB."""
    item = model.to_dynamodb()
    item.update(model.get_keys())
    item.update(model.get_gsi_keys())

    table.put_item(Item=item)


if __name__ == "__main__":
    main()
