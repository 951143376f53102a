"""Reader for ``key = value`` configuration files."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from mosaic_stream.core.logging_utils import get_module_logger

logger = get_module_logger(__name__)

_TRUE_WORDS = frozenset(("true", "yes", "on", "1"))
_BOOL_WORDS = _TRUE_WORDS | frozenset(("false", "no", "off", "0"))


class ConfigLoader:
    """Loads flat ``key = value`` files.

    ``#`` starts a comment, on its own line or after a value. Values for
    keys that have a default are converted to the default's type; other
    values are guessed (bool words, int, float, else str).
    """

    @staticmethod
    def load(
        config_path: Path,
        defaults: Optional[Mapping[str, Any]] = None,
        strict: bool = False,
    ) -> Dict[str, Any]:
        values: Dict[str, Any] = dict(defaults or {})
        path = Path(config_path)
        if not path.exists():
            logger.debug("No config file at %s, using defaults", path)
            return values

        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Cannot read config file %s: %s", path, exc)
            return dict(defaults or {})

        for line_num, key, raw in ConfigLoader._entries(text):
            if defaults is not None and key in defaults:
                values[key] = ConfigLoader._coerce(raw, defaults[key], key)
            elif strict and defaults is not None:
                logger.warning("Ignoring unknown config key '%s' (line %d)", key, line_num)
            else:
                values[key] = ConfigLoader._guess(raw)

        logger.info("Loaded config from %s", path)
        return values

    @staticmethod
    def _entries(text: str) -> Iterator[Tuple[int, str, str]]:
        for line_num, line in enumerate(text.splitlines(), 1):
            line = line.split("#", 1)[0].strip()
            if not line:
                continue
            key, sep, raw = line.partition("=")
            if not sep:
                logger.warning("Config line %d has no '=': %s", line_num, line)
                continue
            yield line_num, key.strip(), raw.strip()

    @staticmethod
    def _guess(raw: str) -> Any:
        lowered = raw.lower()
        if lowered in _BOOL_WORDS - {"0", "1"}:
            return lowered in _TRUE_WORDS
        for convert in (int, float):
            try:
                return convert(raw)
            except ValueError:
                pass
        return raw

    @staticmethod
    def _coerce(raw: str, default: Any, key: str) -> Any:
        if isinstance(default, bool):
            return raw.lower() in _TRUE_WORDS
        if isinstance(default, Path):
            return Path(raw)
        if isinstance(default, (int, float)):
            try:
                # int(..., 0) accepts 0x, 0o and 0b prefixes
                return int(raw, 0) if isinstance(default, int) else float(raw)
            except ValueError:
                logger.warning("Bad value '%s' for %s, keeping %r", raw, key, default)
                return default
        return raw

    @staticmethod
    def format_value(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)


__all__ = ["ConfigLoader"]
