"""
Configuration Management for the Assistant Context Service

Loads configuration from ~/.seed-assistant/config.json and environment variables.
Per-client-kind limits are validated at load time.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field, fields
from typing import Dict

logger = logging.getLogger("assistant.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".seed-assistant"
CONFIG_PATH = CONFIG_DIR / "config.json"

WIDGET = "widget"
ASSISTANT = "assistant"


class ConfigError(ValueError):
    """Invalid configuration detected at startup."""
    pass


@dataclass
class ClientLimits:
    """Resource limits for one client kind"""
    max_files: int
    max_depth: int
    max_scan: int
    max_total_chars: int
    per_doc_chars: int
    top_k: int

    def validate(self, kind: str) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigError(f"limits.{kind}.{f.name} must be a positive integer, got {value!r}")
        if self.max_scan < self.max_files:
            raise ConfigError(
                f"limits.{kind}: max_scan ({self.max_scan}) must be >= max_files ({self.max_files})"
            )


def default_limits() -> Dict[str, ClientLimits]:
    return {
        # Embedded widget: small, fast context
        WIDGET: ClientLimits(
            max_files=3,
            max_depth=1,
            max_scan=40,
            max_total_chars=15_000,
            per_doc_chars=6_000,
            top_k=6,
        ),
        ASSISTANT: ClientLimits(
            max_files=8,
            max_depth=3,
            max_scan=200,
            max_total_chars=60_000,
            per_doc_chars=12_000,
            top_k=12,
        ),
    }


@dataclass
class BoxConfig:
    """Box document repository configuration"""
    api_base_url: str = "https://api.box.com/2.0"
    access_token: str = ""
    root_folder_id: str = ""  # every read is scoped under this folder
    page_size: int = 1000
    timeout_seconds: float = 30.0


@dataclass
class CacheConfig:
    """Cache tiers and TTLs (seconds)"""
    redis_url: str = ""  # empty disables the shared tier
    namespace: str = "seed:"
    local_text_ttl: int = 6 * 60 * 60
    shared_text_ttl: int = 24 * 60 * 60
    listing_ttl: int = 15 * 60
    auth_check_ttl: int = 15 * 60
    local_max_entries: int = 10_000


@dataclass
class ExtractionConfig:
    """Document extraction configuration"""
    max_file_bytes: int = 5 * 1024 * 1024
    ocr_enabled: bool = True
    ocr_dpi: int = 200
    ocr_max_pages: int = 20
    ocr_language: str = "eng"


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8090


@dataclass
class AssistantConfig:
    """Main service configuration"""
    box: BoxConfig = field(default_factory=BoxConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    limits: Dict[str, ClientLimits] = field(default_factory=default_limits)
    request_timeout_seconds: float = 45.0

    def limits_for(self, client_kind: str) -> ClientLimits:
        return self.limits[resolve_client_kind(client_kind)]

    @property
    def max_doc_chars(self) -> int:
        """Largest per-document budget across client kinds (cache ceiling)."""
        return max(l.per_doc_chars for l in self.limits.values())


def resolve_client_kind(value) -> str:
    """Only the literal "widget" selects the widget profile."""
    return WIDGET if value == WIDGET else ASSISTANT


def validate_limits(limits: Dict[str, ClientLimits]) -> None:
    """Raise ConfigError unless both client kinds are present and consistent."""
    for kind in (WIDGET, ASSISTANT):
        if kind not in limits:
            raise ConfigError(f"Missing limits for client kind '{kind}'")
    for kind, client_limits in limits.items():
        client_limits.validate(kind)


def _section(data: dict, name: str) -> dict:
    """Return a config section, which must be a JSON object when present."""
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' section must be a mapping, got {type(section).__name__}")
    return section


def _parse_box_config(data: dict) -> BoxConfig:
    """Parse box section from config dict"""
    box_data = _section(data, "box")
    return BoxConfig(
        api_base_url=box_data.get("api_base_url", "https://api.box.com/2.0"),
        access_token=box_data.get("access_token", ""),
        root_folder_id=str(box_data.get("root_folder_id", "")),
        page_size=box_data.get("page_size", 1000),
        timeout_seconds=box_data.get("timeout_seconds", 30.0),
    )


def _parse_cache_config(data: dict) -> CacheConfig:
    """Parse cache section from config dict"""
    cache_data = _section(data, "cache")
    defaults = CacheConfig()
    return CacheConfig(
        redis_url=cache_data.get("redis_url", ""),
        namespace=cache_data.get("namespace", defaults.namespace),
        local_text_ttl=cache_data.get("local_text_ttl", defaults.local_text_ttl),
        shared_text_ttl=cache_data.get("shared_text_ttl", defaults.shared_text_ttl),
        listing_ttl=cache_data.get("listing_ttl", defaults.listing_ttl),
        auth_check_ttl=cache_data.get("auth_check_ttl", defaults.auth_check_ttl),
        local_max_entries=cache_data.get("local_max_entries", defaults.local_max_entries),
    )


def _parse_extraction_config(data: dict) -> ExtractionConfig:
    """Parse extraction section from config dict"""
    extraction_data = _section(data, "extraction")
    defaults = ExtractionConfig()
    return ExtractionConfig(
        max_file_bytes=extraction_data.get("max_file_bytes", defaults.max_file_bytes),
        ocr_enabled=extraction_data.get("ocr_enabled", True),
        ocr_dpi=extraction_data.get("ocr_dpi", defaults.ocr_dpi),
        ocr_max_pages=extraction_data.get("ocr_max_pages", defaults.ocr_max_pages),
        ocr_language=extraction_data.get("ocr_language", defaults.ocr_language),
    )


def _parse_limits(data: dict) -> Dict[str, ClientLimits]:
    """Parse limits section, overlaying each client kind on its defaults.

    Unknown keys inside a profile are rejected so that a typo does not
    silently fall back to the default value.
    """
    limits = default_limits()
    limits_data = _section(data, "limits")
    known = {f.name for f in fields(ClientLimits)}

    for kind, overrides in limits_data.items():
        if not isinstance(overrides, dict):
            raise ConfigError(f"limits.{kind} must be a mapping")
        unknown = set(overrides) - known
        if unknown:
            raise ConfigError(f"limits.{kind} has unknown keys: {sorted(unknown)}")
        base = limits.get(kind)
        if base is None:
            missing = known - set(overrides)
            if missing:
                raise ConfigError(f"limits.{kind} is missing keys: {sorted(missing)}")
            limits[kind] = ClientLimits(**overrides)
        else:
            for key, value in overrides.items():
                setattr(base, key, value)
    return limits


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_number(name: str, cast):
    value = os.getenv(name)
    try:
        return cast(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


def load_config() -> AssistantConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.seed-assistant/config.json)
    3. Default values

    Raises:
        ConfigError: if a section, an env override or the resulting limits are invalid
    """
    config = AssistantConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ConfigError(f"{CONFIG_PATH} must contain a JSON object")

            config.box = _parse_box_config(data)
            config.cache = _parse_cache_config(data)
            config.extraction = _parse_extraction_config(data)
            config.limits = _parse_limits(data)
            server_data = _section(data, "server")
            config.server = ServerConfig(
                host=server_data.get("host", "0.0.0.0"),
                port=server_data.get("port", 8090),
            )
            config.request_timeout_seconds = data.get("request_timeout_seconds", 45.0)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    # Environment variable overrides
    if os.getenv("BOX_API_BASE_URL"):
        config.box.api_base_url = os.getenv("BOX_API_BASE_URL")
    if os.getenv("BOX_ACCESS_TOKEN"):
        config.box.access_token = os.getenv("BOX_ACCESS_TOKEN")
    if os.getenv("BOX_CLIENT_FOLDERS_PARENT_ID"):
        config.box.root_folder_id = os.getenv("BOX_CLIENT_FOLDERS_PARENT_ID")

    if os.getenv("REDIS_URL"):
        config.cache.redis_url = os.getenv("REDIS_URL")

    if os.getenv("ASSISTANT_MAX_FILE_BYTES"):
        config.extraction.max_file_bytes = _env_number("ASSISTANT_MAX_FILE_BYTES", int)
    if os.getenv("ASSISTANT_OCR_ENABLED"):
        config.extraction.ocr_enabled = _env_bool(os.getenv("ASSISTANT_OCR_ENABLED"))

    if os.getenv("ASSISTANT_HOST"):
        config.server.host = os.getenv("ASSISTANT_HOST")
    if os.getenv("ASSISTANT_PORT"):
        config.server.port = _env_number("ASSISTANT_PORT", int)
    if os.getenv("ASSISTANT_REQUEST_TIMEOUT"):
        config.request_timeout_seconds = _env_number("ASSISTANT_REQUEST_TIMEOUT", float)

    validate_limits(config.limits)
    if config.extraction.max_file_bytes <= 0:
        raise ConfigError("extraction.max_file_bytes must be positive")
    if config.request_timeout_seconds <= 0:
        raise ConfigError("request_timeout_seconds must be positive")

    return config
