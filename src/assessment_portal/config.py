"""
Assessment portal configuration.

Defaults are overridden by a YAML file (``from_yaml``) or by environment
variables (``from_env``).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

MB = 1024 * 1024


@dataclass
class PortalConfig:
    """Configuration for the Assessment Portal."""

    # Network settings
    port: int = 8084
    host: str = "0.0.0.0"

    # Database
    db_path: Path = field(
        default_factory=lambda: Path("/var/lib/assessment-portal/assessments.db")
    )

    # Practice catalog (None = packaged default)
    catalog_path: Optional[Path] = None

    # Upload limits
    max_upload_bytes: int = 100 * MB
    max_chunk_bytes: int = 5 * MB
    max_chunks: int = 10_000

    # Reports
    organization_name: str = "Organization"
    report_title_prefix: str = "CMMC Level 1 Assessment Report"

    # CORS
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, base: Optional["PortalConfig"] = None) -> "PortalConfig":
        """Load configuration from environment variables."""
        config = base or cls()

        if port := os.environ.get("ASSESSMENT_PORTAL_PORT"):
            config.port = int(port)

        if host := os.environ.get("ASSESSMENT_PORTAL_HOST"):
            config.host = host

        if db_path := os.environ.get("ASSESSMENT_DB_PATH"):
            config.db_path = Path(db_path)

        if catalog_path := os.environ.get("PRACTICE_CATALOG_PATH"):
            config.catalog_path = Path(catalog_path)

        if max_upload := os.environ.get("MAX_UPLOAD_MB"):
            config.max_upload_bytes = int(max_upload) * MB

        if max_chunk := os.environ.get("MAX_CHUNK_MB"):
            config.max_chunk_bytes = int(max_chunk) * MB

        if max_chunks := os.environ.get("MAX_CHUNKS"):
            config.max_chunks = int(max_chunks)

        if org := os.environ.get("ORGANIZATION_NAME"):
            config.organization_name = org

        if prefix := os.environ.get("REPORT_TITLE_PREFIX"):
            config.report_title_prefix = prefix

        if origins := os.environ.get("CORS_ORIGINS"):
            config.cors_origins = [o.strip() for o in origins.split(",") if o.strip()]

        if log_level := os.environ.get("LOG_LEVEL"):
            config.log_level = log_level

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "PortalConfig":
        """Load configuration from YAML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}, using defaults")
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        config = cls()

        if "server" in data:
            s = data["server"]
            config.host = s.get("host", config.host)
            config.port = s.get("port", config.port)
            if "cors_origins" in s:
                config.cors_origins = list(s["cors_origins"])

        if "paths" in data:
            p = data["paths"]
            if "db" in p:
                config.db_path = Path(p["db"])
            if "catalog" in p:
                config.catalog_path = Path(p["catalog"])

        if "uploads" in data:
            u = data["uploads"]
            if "max_upload_mb" in u:
                config.max_upload_bytes = int(u["max_upload_mb"]) * MB
            if "max_chunk_mb" in u:
                config.max_chunk_bytes = int(u["max_chunk_mb"]) * MB
            if "max_chunks" in u:
                config.max_chunks = int(u["max_chunks"])

        if "reports" in data:
            r = data["reports"]
            config.organization_name = r.get("organization_name", config.organization_name)
            config.report_title_prefix = r.get("title_prefix", config.report_title_prefix)

        config.log_level = data.get("log_level", "INFO")

        return config

    def validate(self) -> list[str]:
        """Validate configuration, returning list of errors."""
        errors = []

        if not 0 < self.port < 65536:
            errors.append(f"Invalid port: {self.port}")

        if self.max_upload_bytes <= 0:
            errors.append("max_upload_bytes must be positive")

        if self.max_chunk_bytes <= 0:
            errors.append("max_chunk_bytes must be positive")
        elif self.max_chunk_bytes > self.max_upload_bytes:
            errors.append("max_chunk_bytes cannot exceed max_upload_bytes")

        if self.max_chunks <= 0:
            errors.append("max_chunks must be positive")

        if self.catalog_path is not None and not self.catalog_path.exists():
            errors.append(f"Practice catalog not found: {self.catalog_path}")

        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"Invalid log level: {self.log_level}")

        return errors


# Example assessment_portal.yaml:
"""
server:
  host: "0.0.0.0"
  port: 8084
  cors_origins:
    - "http://localhost:5173"

paths:
  db: "/var/lib/assessment-portal/assessments.db"
  catalog: "/etc/assessment-portal/practices.yaml"

uploads:
  max_upload_mb: 100
  max_chunk_mb: 5
  max_chunks: 10000

reports:
  organization_name: "North Valley Machining"
  title_prefix: "CMMC Level 1 Assessment Report"

log_level: "INFO"
"""
