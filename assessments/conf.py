from django.conf import settings

DEFAULTS = {
    "AUTOSAVE_DEBOUNCE_SECONDS": 0.5,
    "AUTOSAVE_MAX_RETRIES": 3,
    "AUTOSAVE_BACKOFF_SECONDS": 0.1,
    "AUTOSAVE_WORKERS": 4,
    "AUTOSAVE_ASYNC": True,
    "EARLY_ENTRY_MINUTES": 0,
    "MAX_TEXT_ANSWER_LENGTH": 10000,
    "AUTOSAVE_FLUSH_TIMEOUT_SECONDS": 2.0,
}


def engine_setting(name):
    """Read one EXAM_ENGINE value from settings, falling back to DEFAULTS."""
    overrides = getattr(settings, "EXAM_ENGINE", None) or {}
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]
