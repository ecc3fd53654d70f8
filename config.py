from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List
import os

VERSION = os.getenv("APP_VERSION", "0.1.0")

DEFAULT_RESOLVER_URL = "https://api.crafty.gg/api/v2/players/{nick}"


def _split_origins(raw: str) -> List[str]:
    return [o.strip() for o in raw.split(",") if o.strip()]


@dataclass
class Settings:
    """Runtime configuration for the lookup service."""

    data_dir: Path = field(default_factory=lambda: Path("./wycieki"))
    static_dir: Path = field(default_factory=lambda: Path("./public"))

    cache_ttl_sec: float = 3600.0  # 1 hour

    resolver_url: str = DEFAULT_RESOLVER_URL
    resolver_timeout_sec: float = 10.0

    allowed_origins: List[str] = field(default_factory=lambda: ["*"])

    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            data_dir=Path(os.getenv("DATA_DIR", "./wycieki")).resolve(),
            static_dir=Path(os.getenv("STATIC_DIR", "./public")).resolve(),
            cache_ttl_sec=float(os.getenv("CACHE_TTL_SEC", "3600")),
            resolver_url=os.getenv("RESOLVER_URL", DEFAULT_RESOLVER_URL),
            resolver_timeout_sec=float(os.getenv("RESOLVER_TIMEOUT_SEC", "10")),
            allowed_origins=_split_origins(os.getenv("ALLOWED_ORIGINS", "*")),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
