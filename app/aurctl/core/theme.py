"""Console colors.

The bundled ``data/theme.toml`` defines every color; a user file at
~/.config/aurctl/theme.toml may override any subset of them under
``[colors]``. An invalid user theme is ignored with a warning.
"""

import logging
import re
import tomllib
from functools import cache
from importlib import resources
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from rich.theme import Theme

from aurctl.core.paths import get_theme_path

logger = logging.getLogger(__name__)

_HEX_DIGITS = re.compile(r"[0-9a-fA-F]+")

# Extra attributes per style; styles not listed use the plain color
_MODIFIERS: dict[str, str] = {
    "error": "bold",
    "source_aur": "bold",
    "source_virtual": "italic",
    "package_explicit": "bold",
}


class ThemeColors(BaseModel):
    """Hex colors (#RGB or #RRGGBB) for every named console style."""

    model_config = ConfigDict(extra="forbid")

    text: str = "#ffffff"
    muted: str = "#b2bec3"
    header: str = "#69B9A1"
    border: str = "#29526d"

    success: str = "#03b971"
    warning: str = "#f5b332"
    error: str = "#f53263"
    info: str = "#0ec1c8"

    # Restore plans
    added: str = "#c1ff62"
    removed: str = "#f53263"
    changed: str = "#0e8ac8"

    # Build plans and graphs
    source_repo: str = "#0e8ac8"
    source_aur: str = "#69B9A1"
    source_virtual: str = "#b2bec3"
    package_explicit: str = "#69B9A1"
    package_dependency: str = "#226666"

    @field_validator("*", mode="before")
    @classmethod
    def validate_hex_color(cls, v: object, info: Any) -> str:
        """Accept only ``#`` followed by three or six hex digits."""
        if not isinstance(v, str):
            raise ValueError(f"{info.field_name}: color must be a string")
        color = v.strip()
        if not color.startswith("#"):
            raise ValueError(f"{info.field_name}: color must start with '#'")
        digits = color[1:]
        if len(digits) not in (3, 6):
            raise ValueError(f"{info.field_name}: color must be #RGB or #RRGGBB format")
        if not _HEX_DIGITS.fullmatch(digits):
            raise ValueError(f"{info.field_name}: invalid hex color '{color}'")
        return color


def _load_toml_colors(path: Path) -> dict[str, str] | None:
    """The string entries of a file's ``[colors]`` table.

    Returns:
        The colors, or None if the file is missing or unreadable.
    """
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        return None
    except (tomllib.TOMLDecodeError, OSError) as e:
        logger.warning("Ignoring theme file %s: %s", path, e)
        return None

    colors = data.get("colors", {})
    if not isinstance(colors, dict):
        logger.warning("Ignoring theme file %s: [colors] is not a table", path)
        return None
    return {key: value for key, value in colors.items() if isinstance(value, str)}


def load_theme() -> ThemeColors:
    """Bundled colors merged with the user's overrides."""
    bundled = resources.files("aurctl.data").joinpath("theme.toml")
    colors = _load_toml_colors(Path(str(bundled)))
    if colors is None:
        logger.error("Bundled theme is missing; the installation may be broken")
        colors = {}

    user_path = get_theme_path()
    overrides = _load_toml_colors(user_path)
    if overrides:
        logger.debug("Applying theme overrides from %s", user_path)
        colors = {**colors, **overrides}

    try:
        return ThemeColors(**colors)
    except ValidationError as e:
        logger.warning("Invalid theme, using the default colors: %s", e)
        return ThemeColors()


def get_rich_theme(colors: ThemeColors | None = None) -> Theme:
    """Rich styles named after the theme's fields, plus ``bold_header``."""
    colors = colors or load_theme()
    styles = {
        name: f"{_MODIFIERS[name]} {color}" if name in _MODIFIERS else color
        for name, color in colors.model_dump().items()
    }
    styles["bold_header"] = f"bold {colors.header}"
    return Theme(styles)


@cache
def get_theme() -> Theme:
    """The Rich theme, loaded once per process."""
    return get_rich_theme()
