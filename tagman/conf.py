from __future__ import annotations

from django.conf import settings
from django.utils.module_loading import import_string


TAGMAN_DEFAULTS = {
    "CACHE_ENABLED": True,
    "CACHE_TTL": 3600,
    "CACHE_ALIAS": "default",
    "MAX_RETRIES": 3,
    "RETRY_BACKOFF": 0.01,
    "LOCK_TIMEOUT": 10,
    "FALLBACK_PREFIX": "TAG",
    "DEBUG": None,
    "MAX_TAG_LENGTH": 255,
    "TAG_VALUE_PATTERN": r"^[A-Za-z0-9_./-]+$",
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.IsAuthenticated"],
}


def get_tagman_setting(key: str):
    """Retrieve a Tagman setting, falling back to TAGMAN_DEFAULTS."""
    user_settings = getattr(settings, "TAGMAN", {})
    value = user_settings.get(key, TAGMAN_DEFAULTS.get(key))
    if isinstance(value, list) and value and isinstance(value[0], str):
        return [import_string(cls) for cls in value]
    return value


def is_debug() -> bool:
    """Modo debug: erros de alocação propagam em vez de virar fallback."""
    value = get_tagman_setting("DEBUG")
    if value is None:
        return bool(settings.DEBUG)
    return bool(value)
