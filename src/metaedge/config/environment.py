"""Per-request environment resolution (test vs production upstreams).

The host marker table is an explicit value object so handlers and tests can
swap it out instead of touching module state.
"""

from __future__ import annotations

from dataclasses import dataclass

from .settings import EdgeSettings


@dataclass(frozen=True)
class EnvironmentProfile:
    name: str
    content_api_base: str
    site_base: str


@dataclass(frozen=True)
class EnvironmentTable:
    test_marker: str
    test: EnvironmentProfile
    production: EnvironmentProfile

    @classmethod
    def from_settings(cls, settings: EdgeSettings) -> "EnvironmentTable":
        return cls(
            test_marker=settings.test_host_marker,
            test=EnvironmentProfile(
                name="test",
                content_api_base=settings.content_api_base_test.rstrip("/"),
                site_base=settings.site_base_test.rstrip("/"),
            ),
            production=EnvironmentProfile(
                name="production",
                content_api_base=settings.content_api_base_production.rstrip("/"),
                site_base=settings.site_base_production.rstrip("/"),
            ),
        )


def resolve_environment(hostname: str | None, table: EnvironmentTable) -> EnvironmentProfile:
    """Pick the upstream bases for a request host.

    Anything that does not carry the test marker resolves to production.
    """
    host = (hostname or "").strip().lower()
    if host and table.test_marker and table.test_marker.lower() in host:
        return table.test
    return table.production


@dataclass(frozen=True)
class SiteContext:
    """Branding plus the public URL scheme for one resolved environment."""

    base_url: str
    name: str
    tagline: str
    default_image: str
    logo_url: str
    twitter_site: str = ""

    @classmethod
    def build(cls, settings: EdgeSettings, profile: EnvironmentProfile) -> "SiteContext":
        base = profile.site_base.rstrip("/")
        logo = settings.logo_path if settings.logo_path.startswith("http") else f"{base}{settings.logo_path}"
        return cls(
            base_url=base,
            name=settings.site_name,
            tagline=settings.site_tagline,
            default_image=settings.default_image_url,
            logo_url=logo,
            twitter_site=settings.twitter_site,
        )

    def url(self, path: str = "/") -> str:
        if not path.startswith("/"):
            path = f"/{path}"
        return self.base_url if path == "/" else f"{self.base_url}{path}"

    def work_url(self, uuid: str) -> str:
        return f"{self.base_url}/work/{uuid}"

    def profile_url(self, namespace: str) -> str:
        return f"{self.base_url}/user/{namespace}"

    def collection_url(self, namespace: str) -> str:
        return f"{self.base_url}/treasury/{namespace}"
