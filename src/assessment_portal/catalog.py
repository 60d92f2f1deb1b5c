"""
Practice catalog loading.

The catalog is static reference data kept in YAML and copied into the
practices table on startup. Seeding is idempotent: practices are keyed by
practice_id and existing rows are updated in place.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import yaml

from ._types import Practice
from .db import AssessmentDatabase
from .exceptions import CatalogError

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).parent / "data" / "practices.yaml"

REQUIRED_PRACTICE_KEYS = ("practice_id", "name")


def load_catalog(path: Optional[Path] = None) -> list[Practice]:
    """
    Load practices from a catalog YAML file.

    Expected layout::

        domains:
          - name: Access Control
            practices:
              - practice_id: AC.L1-3.1.1
                name: Authorized Access Control
                description: ...
                assessment: ...

    Practices get a position matching their order in the file.
    """
    path = path or DEFAULT_CATALOG_PATH
    if not path.exists():
        raise CatalogError(f"Practice catalog not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise CatalogError(f"Invalid practice catalog {path}: {e}") from e

    if not isinstance(data, dict):
        raise CatalogError(f"Practice catalog {path} must be a mapping with a 'domains' key")

    domains = data.get("domains")
    if not isinstance(domains, list) or not domains:
        raise CatalogError(f"Practice catalog {path} defines no domains")

    practices: list[Practice] = []
    seen: set[str] = set()

    for domain in domains:
        if not isinstance(domain, dict):
            raise CatalogError(f"Catalog domain entry must be a mapping: {domain!r}")

        domain_name = domain.get("name")
        if not domain_name:
            raise CatalogError("Catalog domain is missing a name")

        entries = domain.get("practices") or []
        if not isinstance(entries, list):
            raise CatalogError(f"Practices of domain '{domain_name}' must be a list")

        for entry in entries:
            if not isinstance(entry, dict):
                raise CatalogError(
                    f"Practice in domain '{domain_name}' must be a mapping: {entry!r}"
                )

            missing = [k for k in REQUIRED_PRACTICE_KEYS if not entry.get(k)]
            if missing:
                raise CatalogError(
                    f"Practice in domain '{domain_name}' missing: {', '.join(missing)}"
                )

            practice_id = str(entry["practice_id"])
            if practice_id in seen:
                raise CatalogError(f"Duplicate practice_id in catalog: {practice_id}")
            seen.add(practice_id)

            practices.append(Practice(
                practice_id=practice_id,
                domain=str(domain_name),
                name=str(entry["name"]),
                description=str(entry.get("description") or ""),
                assessment=str(entry.get("assessment") or ""),
                position=len(practices),
            ))

    logger.info(f"Loaded {len(practices)} practices in {len(domains)} domains from {path}")
    return practices


def seed_practices(db: AssessmentDatabase, practices: list[Practice]) -> int:
    """Upsert catalog practices into the database. Returns count of new ones."""
    created = 0
    for practice in practices:
        if db.upsert_practice(practice):
            created += 1

    logger.info(f"Seeded practice catalog: {created} new, {len(practices) - created} updated")
    return created
