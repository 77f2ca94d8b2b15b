"""Configuration handling for the feed aggregator."""

import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import yaml
from croniter import croniter
from dotenv import load_dotenv


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes")


def _env_ms_as_sec(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    return float(value) / 1000.0


def _merge_section(section: Any, values: Dict[str, Any]) -> None:
    """Copy known keys from a YAML mapping onto a dataclass instance."""
    known = {f.name for f in fields(section)}
    for key, value in values.items():
        if key in known:
            setattr(section, key, value)


@dataclass
class RedditConfig:
    """Reddit OAuth credentials and fetch tunables."""

    client_id: str = ""
    client_secret: str = ""
    username: str = ""
    password: str = ""
    user_agent: str = "ShortFormFlux/1.0 (contact: you@example.com)"
    timeout_sec: float = 20.0
    max_errors_before_cooldown: int = 3
    cooldown_sec: float = 15 * 60.0
    base_delay_sec: float = 0.25
    cache_ttl_sec: float = 30.0
    token_refresh_margin_sec: int = 60
    disabled: bool = False
    debug: bool = False


@dataclass
class RedGifsConfig:
    """RedGifs fetch tunables."""

    timeout_sec: float = 10.0
    cache_ttl_sec: float = 5 * 60.0
    token_ttl_sec: float = 23 * 60 * 60.0
    delay_between_requests_sec: float = 2.0
    max_items_cap: int = 1000
    trending_aliases: List[str] = field(default_factory=lambda: ["trending", "hot"])
    media_types: List[str] = field(default_factory=lambda: ["gif", "video"])
    proxy: Optional[str] = None
    debug: bool = False


@dataclass
class FeedConfig:
    """Live feed (infinite scroll) behaviour."""

    subreddit_pool: List[str] = field(default_factory=lambda: [
        "NSFW_GIF", "porn_gifs", "nsfw", "RealGirls", "adorableporn",
        "LegalTeens", "collegesluts", "ass", "boobbounce", "tiktoknsfw",
        "TikTokNude", "nsfwhardcore",
    ])
    initial_pool: List[str] = field(default_factory=lambda: [
        "NSFW_GIF", "porn_gifs", "nsfw", "RealGirls", "adorableporn",
        "LegalTeens", "tiktoknsfw", "nsfwhardcore",
    ])
    initial_subreddit_count: int = 5
    initial_limit_per_sub: int = 15
    page_size: int = 20
    lookahead: int = 10
    sort_methods: List[str] = field(default_factory=lambda: ["hot", "top", "rising", "new"])
    empty_streak_threshold: int = 5
    duplicate_retry_delay_sec: float = 0.4
    max_duplicate_retries: int = 3
    fetch_timeout_sec: float = 20.0
    fallback_tags: List[str] = field(default_factory=lambda: ["amateur", "blowjob", "ass", "boobs"])
    fallback_limit: int = 24
    fallback_timeout_sec: float = 30.0


@dataclass
class ScraperConfig:
    """Scheduled scraper batch settings."""

    subreddits: List[str] = field(default_factory=lambda: [
        "funnyvideos", "videos", "unexpected", "PublicFreakout", "ContagiousLaughter",
    ])
    limit_per_sub: int = 20
    sort: str = "hot"
    redgifs_limit: int = 40
    redgifs_tags: List[str] = field(default_factory=list)
    cron: str = "0 */4 * * *"  # every 4 hours


@dataclass
class StorageConfig:
    """Video store selection."""

    backend: str = "sqlalchemy"
    url: str = "sqlite:///data/videos.db"
    seed_demo_videos: bool = False


@dataclass
class MonitoringConfig:
    """Monitoring configuration."""

    enable_prometheus: bool = False
    prometheus_port: int = 8000


@dataclass
class Config:
    """Application configuration combining environment variables and YAML config."""

    reddit: RedditConfig = field(default_factory=RedditConfig)
    redgifs: RedGifsConfig = field(default_factory=RedGifsConfig)
    feed: FeedConfig = field(default_factory=FeedConfig)
    scraper: ScraperConfig = field(default_factory=ScraperConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    @classmethod
    def from_files(cls, config_path: Optional[str] = None, env_path: Optional[str] = None) -> "Config":
        """
        Load configuration from a YAML file and environment variables.

        YAML values are applied first; environment variables win over them.

        Args:
            config_path: Optional path to YAML configuration file
            env_path: Optional path to .env file (defaults to .env in current directory)

        Returns:
            Config instance with merged configuration
        """
        if env_path:
            load_dotenv(env_path)
        else:
            load_dotenv()

        config = cls()

        if config_path and os.path.exists(config_path):
            with open(config_path, "r", encoding="utf-8") as file:
                yaml_config = yaml.safe_load(file) or {}
            for name in ("reddit", "redgifs", "feed", "scraper", "storage", "monitoring"):
                section = yaml_config.get(name)
                if isinstance(section, dict):
                    _merge_section(getattr(config, name), section)

        config.apply_env()
        return config

    def apply_env(self) -> None:
        """Override values with any recognised environment variables."""
        reddit = self.reddit
        reddit.client_id = os.getenv("REDDIT_CLIENT_ID", reddit.client_id)
        reddit.client_secret = os.getenv("REDDIT_CLIENT_SECRET", reddit.client_secret)
        reddit.username = os.getenv("REDDIT_USERNAME", reddit.username)
        reddit.password = os.getenv("REDDIT_PASSWORD", reddit.password)
        reddit.user_agent = os.getenv("REDDIT_USER_AGENT", reddit.user_agent)
        reddit.timeout_sec = _env_ms_as_sec("REDDIT_TIMEOUT_MS", reddit.timeout_sec)
        reddit.max_errors_before_cooldown = int(
            os.getenv("REDDIT_MAX_ERRORS", reddit.max_errors_before_cooldown)
        )
        reddit.cooldown_sec = _env_ms_as_sec("REDDIT_COOLDOWN_MS", reddit.cooldown_sec)
        reddit.base_delay_sec = _env_ms_as_sec("REDDIT_BASE_DELAY_MS", reddit.base_delay_sec)
        reddit.disabled = _env_bool("REDDIT_DISABLE", reddit.disabled)
        reddit.debug = _env_bool("REDDIT_DEBUG", reddit.debug)

        self.redgifs.timeout_sec = _env_ms_as_sec("REDGIFS_TIMEOUT_MS", self.redgifs.timeout_sec)
        self.redgifs.proxy = os.getenv("REDGIFS_PROXY", self.redgifs.proxy)
        self.redgifs.debug = _env_bool("REDGIFS_DEBUG", self.redgifs.debug)

        scraper = self.scraper
        if os.getenv("SCRAPER_SUBREDDITS"):
            scraper.subreddits = _split_list(os.environ["SCRAPER_SUBREDDITS"])
        scraper.limit_per_sub = int(os.getenv("SCRAPER_LIMIT", scraper.limit_per_sub))
        scraper.sort = os.getenv("SCRAPER_SORT", scraper.sort)
        scraper.redgifs_limit = int(os.getenv("SCRAPER_REDGIFS_LIMIT", scraper.redgifs_limit))
        if os.getenv("SCRAPER_REDGIFS_TAGS") is not None:
            scraper.redgifs_tags = _split_list(os.environ["SCRAPER_REDGIFS_TAGS"])
        scraper.cron = os.getenv("SCRAPER_CRON", scraper.cron)

        self.storage.backend = os.getenv("STORAGE_BACKEND", self.storage.backend)
        self.storage.url = os.getenv("DATABASE_URL", self.storage.url)

    @property
    def has_reddit_credentials(self) -> bool:
        return all([
            self.reddit.client_id,
            self.reddit.client_secret,
            self.reddit.username,
            self.reddit.password,
        ])

    def validate(self) -> List[str]:
        """
        Validate configuration and return a list of validation errors.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if not self.reddit.disabled:
            if not self.reddit.client_id:
                errors.append("Missing REDDIT_CLIENT_ID in environment")
            if not self.reddit.client_secret:
                errors.append("Missing REDDIT_CLIENT_SECRET in environment")
            if not self.reddit.username:
                errors.append("Missing REDDIT_USERNAME in environment")
            if not self.reddit.password:
                errors.append("Missing REDDIT_PASSWORD in environment")

        if self.reddit.max_errors_before_cooldown <= 0:
            errors.append("max_errors_before_cooldown must be greater than 0")
        if self.reddit.cooldown_sec < 0:
            errors.append("cooldown_sec must not be negative")
        if self.reddit.timeout_sec <= 0 or self.redgifs.timeout_sec <= 0:
            errors.append("Upstream timeouts must be greater than 0")

        if not self.feed.subreddit_pool:
            errors.append("feed.subreddit_pool must not be empty")
        if not self.feed.sort_methods:
            errors.append("feed.sort_methods must not be empty")
        if self.feed.empty_streak_threshold <= 0:
            errors.append("feed.empty_streak_threshold must be greater than 0")

        if self.scraper.limit_per_sub <= 0:
            errors.append("SCRAPER_LIMIT must be greater than 0")
        if not croniter.is_valid(self.scraper.cron):
            errors.append(f"Invalid SCRAPER_CRON expression: {self.scraper.cron!r}")

        if self.storage.backend not in ("memory", "sqlalchemy"):
            errors.append("STORAGE_BACKEND must be 'memory' or 'sqlalchemy'")

        return errors
