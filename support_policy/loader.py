"""Loading and validation of support policy documents.

A policy can come from three places:

- the built-in table in ``policy_data`` (source ``None`` or ``"builtin"``)
- a local JSON or YAML file
- an HTTP(S) URL serving JSON or YAML

Every document is checked against ``schemas/support-policy.schema.json`` and
then semantically (range syntax, duplicate ranges, tiers and dates) before it
becomes an immutable SupportPolicy. Any problem raises ConfigLoadError.

Usage:
    from support_policy.loader import load_policy

    policy = load_policy("support-policy.yaml")
"""

import json
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import jsonschema
import requests
import yaml

from .exceptions import ConfigLoadError
from .http_client import DEFAULT_TIMEOUT, get_default_headers
from .logging_config import logger
from .models import (
    DEFAULT_CRITICAL_CVSS_THRESHOLD,
    DEFAULT_EOL_WARNING_DAYS,
    SupportEntry,
    SupportPolicy,
    SupportTier,
)
from .policy_data import END_OF_LIFE_TBD, get_default_policy_document
from .versions import VersionRange

BUILTIN_SOURCE = "builtin"

PACKAGE_DIR = Path(__file__).parent
POLICY_SCHEMA_PATH = PACKAGE_DIR / "schemas" / "support-policy.schema.json"

YAML_SUFFIXES = {".yaml", ".yml"}

# Cache for loaded schema and policies, keyed by source
_schema_cache: Dict[str, dict] = {}
_policy_cache: Dict[str, SupportPolicy] = {}


def clear_cache() -> None:
    """Clear cached policies (used by tests and long-lived callers)."""
    _policy_cache.clear()


def _load_schema() -> dict:
    cache_key = str(POLICY_SCHEMA_PATH)
    if cache_key not in _schema_cache:
        with open(POLICY_SCHEMA_PATH, encoding="utf-8") as f:
            _schema_cache[cache_key] = json.load(f)
    return _schema_cache[cache_key]


def is_remote_source(source: str) -> bool:
    return source.startswith("http://") or source.startswith("https://")


def _stringify_yaml_dates(document: Any) -> Any:
    """YAML turns unquoted 2025-12-31 into a date; the schema expects strings."""
    if isinstance(document, dict):
        entries = document.get("entries")
        if not isinstance(entries, list):
            return document
        for entry in entries:
            if isinstance(entry, dict) and isinstance(entry.get("end_of_life"), date):
                entry["end_of_life"] = entry["end_of_life"].isoformat()
    return document


def _parse_document(text: str, is_yaml: bool, source: str) -> Any:
    try:
        if is_yaml:
            return _stringify_yaml_dates(yaml.safe_load(text))
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigLoadError(f"Invalid JSON in policy {source}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Invalid YAML in policy {source}: {e}") from e


def _read_local(source: str) -> Any:
    path = Path(source).expanduser()
    if not path.is_file():
        raise ConfigLoadError(f"Policy file not found: {source}")

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigLoadError(f"Error reading policy file {source}: {e}") from e

    logger.debug(f"Read policy file {path}")
    return _parse_document(text, path.suffix.lower() in YAML_SUFFIXES, source)


def _fetch_remote(source: str, token: Optional[str] = None) -> Any:
    headers = get_default_headers(token=token, accept="application/json, application/yaml")
    try:
        response = requests.get(source, headers=headers, timeout=DEFAULT_TIMEOUT)
    except requests.exceptions.Timeout as e:
        raise ConfigLoadError(f"Timed out fetching policy from {source}") from e
    except requests.exceptions.RequestException as e:
        raise ConfigLoadError(f"Failed to fetch policy from {source}: {e}") from e

    if not response.ok:
        raise ConfigLoadError(f"Failed to fetch policy from {source} (HTTP {response.status_code})")

    content_type = response.headers.get("Content-Type", "")
    is_yaml = "yaml" in content_type or Path(source.split("?", 1)[0]).suffix.lower() in YAML_SUFFIXES
    try:
        text = response.text
    except UnicodeDecodeError as e:
        raise ConfigLoadError(f"Policy from {source} is not valid text: {e}") from e

    logger.info(f"Fetched support policy from {source}")
    return _parse_document(text, is_yaml, source)


def _parse_end_of_life(value: Optional[str], version_range: str) -> Optional[date]:
    if value is None:
        return None
    text = value.strip()
    if not text or text.upper() == END_OF_LIFE_TBD:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError as e:
        raise ConfigLoadError(
            f"Invalid end_of_life '{value}' for version range '{version_range}': expected YYYY-MM-DD or TBD"
        ) from e


def _build_entry(raw: Dict[str, Any]) -> SupportEntry:
    pattern = raw["version_range"]
    try:
        version_range = VersionRange.parse(pattern)
    except ValueError as e:
        raise ConfigLoadError(str(e)) from e

    try:
        tier = SupportTier.parse(raw["tier"])
    except ValueError as e:
        raise ConfigLoadError(f"{e} (version range '{pattern}')") from e

    end_of_life = _parse_end_of_life(raw.get("end_of_life"), pattern)
    if tier == SupportTier.NO_SUPPORT and end_of_life is not None:
        logger.debug(f"Ignoring end_of_life for unsupported range '{pattern}'")
        end_of_life = None

    return SupportEntry(version_range=version_range, tier=tier, end_of_life=end_of_life, notes=raw.get("notes"))


def _warn_on_tier_inversions(entries: List[SupportEntry]) -> None:
    """Log when an older release line is promised more than a newer one."""
    newest_first = sorted(entries, key=lambda entry: entry.version_range.recency_key, reverse=True)
    for newer, older in zip(newest_first, newest_first[1:]):
        if older.tier.rank > newer.tier.rank:
            logger.warning(
                f"Version range '{older.version_range}' ({older.tier.value}) has a higher tier than "
                f"newer range '{newer.version_range}' ({newer.tier.value})"
            )


def build_policy(document: Any, source: str = BUILTIN_SOURCE) -> SupportPolicy:
    """
    Validate a raw policy document and build a SupportPolicy.

    Args:
        document: Parsed JSON/YAML document
        source: Where the document came from, for messages

    Returns:
        Immutable SupportPolicy

    Raises:
        ConfigLoadError: If the document is invalid
    """
    try:
        jsonschema.validate(instance=document, schema=_load_schema())
    except jsonschema.ValidationError as e:
        error_path = ".".join(str(p) for p in e.absolute_path) if e.absolute_path else None
        location = f" at {error_path}" if error_path else ""
        raise ConfigLoadError(f"Invalid support policy {source}{location}: {e.message}") from e

    entries = [_build_entry(raw) for raw in document["entries"]]

    seen: Dict[str, str] = {}
    for entry in entries:
        key = entry.version_range.normalized
        if key in seen:
            raise ConfigLoadError(
                f"Duplicate version range in {source}: '{entry.version_range}' and '{seen[key]}'"
            )
        seen[key] = str(entry.version_range)

    _warn_on_tier_inversions(entries)

    return SupportPolicy(
        entries=tuple(entries),
        critical_cvss_threshold=float(document.get("critical_cvss_threshold", DEFAULT_CRITICAL_CVSS_THRESHOLD)),
        eol_warning_days=int(document.get("eol_warning_days", DEFAULT_EOL_WARNING_DAYS)),
        source=source,
    )


def load_policy(source: Optional[str] = None, token: Optional[str] = None) -> SupportPolicy:
    """
    Load the support policy from the built-in table, a file or a URL.

    Args:
        source: None or "builtin", a file path, or an http(s) URL
        token: Optional bearer token for remote sources

    Returns:
        Immutable SupportPolicy (cached per source)

    Raises:
        ConfigLoadError: If the policy cannot be read or is invalid
    """
    key = source or BUILTIN_SOURCE
    if key in _policy_cache:
        return _policy_cache[key]

    if key == BUILTIN_SOURCE:
        document = get_default_policy_document()
    elif is_remote_source(key):
        document = _fetch_remote(key, token=token)
    else:
        document = _read_local(key)

    policy = build_policy(document, source=key)
    logger.info(f"Loaded support policy from {key} ({len(policy.entries)} entries)")
    _policy_cache[key] = policy
    return policy
