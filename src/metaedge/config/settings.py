"""Configuration management using Pydantic Settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class EdgeSettings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service
    service_name: str = "content-metadata-edge"

    # FastAPI
    http_host: str = "0.0.0.0"
    http_port: int = 8080
    forwarded_allow_ips: str = "*"

    # Environment table (host marker -> upstream bases)
    test_host_marker: str = "test."
    content_api_base_production: str = "https://api-prod.copus.network"
    content_api_base_test: str = "https://api-test.copus.network"
    site_base_production: str = "https://copus.network"
    site_base_test: str = "https://test.copus.network"

    # SPA origin that serves the un-augmented documents
    origin_base_url: str = "http://127.0.0.1:5173"
    origin_timeout_seconds: int = 15

    # Content API
    upstream_timeout_seconds: int = 10

    # Branding used in injected tags
    site_name: str = "Copus"
    site_tagline: str = "The Internet Treasure Map"
    default_image_url: str = "https://copus.network/og-image.jpg"
    logo_path: str = "/logo.png"
    twitter_site: str = "@copus_network"

    # Metadata synthesis
    html_description_length: int = 160
    structured_description_length: int = 300

    # Crawlers get the same markup as humans; the list only drives response policy + logs.
    bot_user_agents: list[str] = [
        "facebookexternalhit",
        "Facebot",
        "Twitterbot",
        "LinkedInBot",
        "WhatsApp",
        "Slackbot",
        "TelegramBot",
        "Discordbot",
        "Pinterest",
        "Googlebot",
        "bingbot",
        "Applebot",
        "GPTBot",
        "ChatGPT-User",
        "Claude-Web",
        "PerplexityBot",
    ]

    # robots.txt explicit allow blocks
    robots_ai_user_agents: list[str] = [
        "GPTBot",
        "ChatGPT-User",
        "Claude-Web",
        "Anthropic-AI",
        "PerplexityBot",
        "Bytespider",
    ]

    # Discovery (system-level caps)
    discovery_default_limit: int = 10
    discovery_max_limit: int = 20
    discovery_search_cap: int = 100
    discovery_collections_page_size: int = 20
    discovery_max_collections: int = 5

    # Sitemap walk
    sitemap_page_size: int = 100
    sitemap_max_pages: int = 50

    # Home page hidden listing
    home_recent_content_size: int = 50

    # Cache policy (seconds)
    json_entity_max_age: int = 300
    discovery_max_age: int = 600
    sitemap_max_age: int = 3600
    sitemap_stale_while_revalidate: int = 86400
    static_text_max_age: int = 86400

    # Logging ("json" or "console")
    log_level: str = "INFO"
    log_format: str = "json"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def validate(self) -> None:
        if self.http_port <= 0:
            raise ValueError("http_port must be > 0")
        if self.log_format not in ("json", "console"):
            raise ValueError("log_format must be json or console")
        if not self.test_host_marker:
            raise ValueError("test_host_marker must not be empty")
        if self.upstream_timeout_seconds <= 0:
            raise ValueError("upstream_timeout_seconds must be > 0")
        if self.origin_timeout_seconds <= 0:
            raise ValueError("origin_timeout_seconds must be > 0")
        if self.html_description_length <= 0:
            raise ValueError("html_description_length must be > 0")
        if self.structured_description_length <= 0:
            raise ValueError("structured_description_length must be > 0")
        if self.discovery_default_limit <= 0:
            raise ValueError("discovery_default_limit must be > 0")
        if self.discovery_max_limit < self.discovery_default_limit:
            raise ValueError("discovery_max_limit must be >= discovery_default_limit")
        if self.discovery_search_cap <= 0:
            raise ValueError("discovery_search_cap must be > 0")
        if self.discovery_max_collections <= 0:
            raise ValueError("discovery_max_collections must be > 0")
        if self.sitemap_page_size <= 0:
            raise ValueError("sitemap_page_size must be > 0")
        if self.sitemap_max_pages <= 0:
            raise ValueError("sitemap_max_pages must be > 0")
        if self.home_recent_content_size <= 0:
            raise ValueError("home_recent_content_size must be > 0")


_settings: EdgeSettings | None = None


def get_settings() -> EdgeSettings:
    global _settings
    if _settings is None:
        _settings = EdgeSettings()
        _settings.validate()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None
