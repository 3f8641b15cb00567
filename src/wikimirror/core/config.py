from pathlib import Path
from typing import Any, Dict, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


def wiki_base(url: str) -> str:
    """Confluence Cloud site base; the REST API and the web UI both live under /wiki."""
    base = url.rstrip("/")
    if not base.endswith("/wiki"):
        base = base + "/wiki"
    return base


class Settings(BaseSettings):
    # Cache location
    WIKIMIRROR_ROOT_PATH: Optional[str] = None  # <root>/<spaceKey>/<title>.html

    # Confluence (content API + render endpoint, Basic auth)
    CONFLUENCE_BASE_URL: Optional[str] = None
    CONFLUENCE_RETRIEVAL_URL: Optional[str] = None  # defaults to CONFLUENCE_BASE_URL
    CONFLUENCE_USERNAME: Optional[str] = None
    CONFLUENCE_PASSWORD: Optional[str] = None

    # Regeneration
    MIRROR_DEBOUNCE_SECONDS: float = 10.0  # upstream commits lag the change event
    MIRROR_NOCACHE_LABEL: str = "nocache"
    MIRROR_EXTENSION: str = ".html"
    MIRROR_HIDDEN_ELEMENT_ID: str = "user-menu-link"

    # HTTP
    HTTP_TIMEOUT_SECONDS: float = 30.0
    HTTP_VERIFY_TLS: bool = True

    # Observability
    LOG_FORMAT: str = "auto"  # json|plain|auto

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @property
    def site_base(self) -> str:
        return wiki_base(self.CONFLUENCE_BASE_URL) if self.CONFLUENCE_BASE_URL else ""

    @property
    def retrieval_url(self) -> str:
        """Base URL that page URL paths (webui links) are appended to when fetching."""
        if self.CONFLUENCE_RETRIEVAL_URL:
            return self.CONFLUENCE_RETRIEVAL_URL.rstrip("/")
        return self.site_base

    @property
    def root_path(self) -> Optional[Path]:
        return Path(self.WIKIMIRROR_ROOT_PATH) if self.WIKIMIRROR_ROOT_PATH else None

    def is_configured(self) -> bool:
        return bool(self.WIKIMIRROR_ROOT_PATH and self.retrieval_url and self.CONFLUENCE_USERNAME)

    def redacted(self) -> Dict[str, Any]:
        """Settings as a dict with the password masked."""
        data = self.model_dump()
        if data.get("CONFLUENCE_PASSWORD"):
            data["CONFLUENCE_PASSWORD"] = "********"
        return data

    @classmethod
    def load_config(cls, config_file: Optional[str] = None) -> "Settings":
        """Load settings with config file -> env -> CLI precedence."""
        config_data: Dict[str, Any] = {}

        # Find config file
        if config_file:
            config_path = Path(config_file)
        else:
            # Auto-discover .wikimirror.{yaml,yml,toml}
            for ext in ["yaml", "yml", "toml"]:
                config_path = Path(f".wikimirror.{ext}")
                if config_path.exists():
                    break
            else:
                config_path = None

        if config_path and config_path.exists():
            if config_path.suffix in [".yaml", ".yml"]:
                import yaml  # type: ignore[import-untyped]

                with open(config_path) as f:
                    config_data = yaml.safe_load(f) or {}
            elif config_path.suffix == ".toml":
                import tomllib

                with open(config_path, "rb") as f:
                    config_data = tomllib.load(f)

        # Init kwargs outrank env in pydantic-settings, so only keep file
        # values that the environment does not already provide
        env_overrides = cls()
        explicit = env_overrides.model_fields_set
        merged = {k: v for k, v in config_data.items() if k not in explicit}
        return cls(**merged)


# Default settings - will be replaced by load_config() during CLI startup
SETTINGS = Settings()
