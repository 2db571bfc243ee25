"""
Runtime widget settings.

Values saved from the /manage page live in a small key/value store and are
layered over the environment defaults on every request.
"""
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass

from whosthat.cycle import is_known_timezone
from whosthat.resolver import IMAGE_STYLES

logger = logging.getLogger(__name__)

SETTING_KEYS = ("pool_size", "timezone", "cycle_minutes", "image_style")


@dataclass(frozen=True)
class WidgetConfig:
    pool_size: int
    timezone: str
    cycle_minutes: int
    image_style: str


class MemorySettingsStore:
    """Dict-backed store, used in tests and when nothing should touch disk."""

    def __init__(self, initial=None):
        self._values = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key, default=None):
        return self._values.get(key, default)

    def set(self, key, value):
        self.update({key: value})

    def update(self, values: dict):
        with self._lock:
            self._values.update(values)

    def snapshot(self) -> dict:
        return dict(self._values)


class JsonFileSettingsStore(MemorySettingsStore):
    """Store persisted as a JSON object; writes replace the file atomically."""

    def __init__(self, path):
        self.path = path
        super().__init__(self._load())

    def _load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable settings file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring settings file {self.path}: not a JSON object")
            return {}
        return data

    def update(self, values: dict):
        with self._lock:
            merged = {**self._values, **values}
            directory = os.path.dirname(os.path.abspath(self.path))
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(merged, f, indent=2)
                os.replace(tmp_path, self.path)
            except OSError:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
            self._values = merged


def current_config(store, defaults) -> WidgetConfig:
    """Stored values win over the environment ``defaults`` (a ``Settings``).

    Stored values are re-validated, so a hand-edited file cannot break the
    schedule.
    """
    raw = {key: str(store.get(key)) for key in SETTING_KEYS if store.get(key) is not None}
    stored = validate_update(raw, log_level=logging.DEBUG)
    return WidgetConfig(
        pool_size=stored.get("pool_size", defaults.POOL_SIZE),
        timezone=stored.get("timezone", defaults.TIMEZONE),
        cycle_minutes=stored.get("cycle_minutes", defaults.CYCLE_MINUTES),
        image_style=stored.get("image_style", defaults.IMAGE_STYLE),
    )


def _positive_int(raw):
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def validate_update(form, log_level=logging.INFO) -> dict:
    """Keep only the well-formed settings from a submitted form.

    Blank fields are skipped; anything malformed is dropped so the previous
    value stays in effect.
    """
    accepted = {}
    rejected = []
    for key in ("pool_size", "cycle_minutes"):
        raw = (form.get(key) or "").strip()
        if not raw:
            continue
        value = _positive_int(raw)
        if value is None:
            rejected.append(key)
        else:
            accepted[key] = value

    style = (form.get("image_style") or "").strip()
    if style:
        if style in IMAGE_STYLES:
            accepted["image_style"] = style
        else:
            rejected.append("image_style")

    tz_name = (form.get("timezone") or "").strip()
    if tz_name:
        if is_known_timezone(tz_name):
            accepted["timezone"] = tz_name
        else:
            rejected.append("timezone")

    if rejected:
        logger.log(log_level, f"Ignoring invalid settings: {', '.join(rejected)}")
    return accepted


def apply_update(store, form) -> dict:
    """Validate ``form`` and write the accepted values in a single update."""
    accepted = validate_update(form)
    if accepted:
        store.update(accepted)
        logger.info(f"Settings updated: {accepted}")
    return accepted
