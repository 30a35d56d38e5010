"""
Backoffice Admin - Activity Description Translator

Renders an activity's stored translation key plus its property bag into a
localized sentence at read time. Catalogues are flat JSON files under
app/lang/<locale>.json with ``{placeholder}`` markers.

Lookup order: requested locale, fallback locale, then the raw key itself.
Rendering never raises.
"""

import json
import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from app.config import settings
from app.models.activity import Activity

logger = logging.getLogger(__name__)


LANG_DIR = Path(__file__).resolve().parent.parent / "lang"
EMPTY = "empty"

_LOCALE_PATTERN = re.compile(r"^[A-Za-z]{2,3}([_-][A-Za-z0-9]{2,8})?$")
_PLACEHOLDER = re.compile(r"\{(\w+)\}")

# Properties with dedicated handling below
_SPECIAL_KEYS = {"issuer", "credentials", "changes", "old", "new", "field"}


# ===========================================
# CATALOGUES
# ===========================================

@lru_cache(maxsize=16)
def load_catalogue(locale: str) -> Dict[str, str]:
    """Load the flat key -> template map for a locale (empty when unknown)."""
    if not _LOCALE_PATTERN.match(locale or ""):
        return {}

    path = LANG_DIR / f"{locale}.json"
    if not path.is_file():
        return {}

    try:
        with path.open(encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError) as e:
        logger.error(f"Could not load activity catalogue {path}: {e}")
        return {}

    return {str(key): str(value) for key, value in data.items()}


def resolve_template(key: str, locale: Optional[str] = None) -> Optional[str]:
    for candidate in (locale or settings.default_locale, settings.fallback_locale):
        template = load_catalogue(candidate).get(key)
        if template is not None:
            return template
    return None


# ===========================================
# REPLACEMENTS
# ===========================================

def _identifier(data: Mapping[str, Any]) -> Optional[str]:
    """Most human friendly label of a nested mapping: name, then email, then id."""
    for field in ("name", "email", "id"):
        value = data.get(field)
        if value is not None and value != "":
            return str(value)
    return None


def _scalar(value: Any) -> str:
    if value is None:
        return EMPTY
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _change_value(value: Any) -> str:
    if value is None:
        return EMPTY
    if isinstance(value, Mapping):
        for field in ("label", "name"):
            if value.get(field) is not None:
                return str(value[field])
        return json.dumps(value, default=str)
    if isinstance(value, (list, tuple)):
        return json.dumps(value, default=str)
    return _scalar(value)


def build_replacements(properties: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """
    Derive placeholder values from a property bag.

    - ``old`` / ``new`` (null becomes "empty") and ``field``
    - every other scalar property, stringified
    - nested mappings reduced to name, else email, else id
    - ``issuer`` -> issuer name; ``email`` from the issuer when unset
    - ``target`` from target, else user, else client
    - ``email`` from credentials when still unset (failed sign-ins)
    """
    properties = properties or {}
    replacements: Dict[str, str] = {}

    if "old" in properties:
        replacements["old"] = _change_value(properties["old"])
    if "new" in properties:
        replacements["new"] = _change_value(properties["new"])
    if properties.get("field"):
        replacements["field"] = str(properties["field"]).replace("_", " ")

    for key, value in properties.items():
        if key in _SPECIAL_KEYS:
            continue
        if isinstance(value, Mapping):
            identifier = _identifier(value)
            if identifier is not None:
                replacements[key] = identifier
        elif isinstance(value, (list, tuple)):
            continue
        else:
            replacements[key] = _scalar(value)

    issuer = properties.get("issuer")
    if isinstance(issuer, Mapping):
        if issuer.get("name") is not None:
            replacements["issuer"] = str(issuer["name"])
        if issuer.get("email") and "email" not in replacements:
            replacements["email"] = str(issuer["email"])

    for key in ("target", "user", "client"):
        if properties.get(key) is not None and key in replacements:
            replacements["target"] = replacements[key]
            break

    credentials = properties.get("credentials")
    if isinstance(credentials, Mapping) and credentials.get("email") and "email" not in replacements:
        replacements["email"] = str(credentials["email"])

    return replacements


# ===========================================
# RENDERING
# ===========================================

def render(template: str, replacements: Mapping[str, str]) -> str:
    """Substitute ``{name}`` markers; unknown markers are left as written."""
    return _PLACEHOLDER.sub(lambda m: replacements.get(m.group(1), m.group(0)), template)


def translation_payload(activity: Activity) -> Dict[str, Any]:
    """Key plus replacements, for clients that translate on their own."""
    return {
        "key": activity.description,
        "replacements": build_replacements(activity.properties),
    }


def describe(activity: Activity, locale: Optional[str] = None) -> str:
    """Human readable description of an activity in the given locale."""
    payload = translation_payload(activity)
    template = resolve_template(payload["key"], locale)
    if template is None:
        return payload["key"]
    return render(template, payload["replacements"])
