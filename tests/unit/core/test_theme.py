"""Unit tests for theme module.

Tests for theme loading, validation, and Rich theme generation.
"""

# pyright: reportPrivateUsage=false

from pathlib import Path
from unittest.mock import patch

import pytest
from rich.theme import Theme

from aurctl.core.theme import ThemeColors, _load_toml_colors, get_rich_theme, get_theme, load_theme


class TestThemeColors:
    """Tests for ThemeColors Pydantic model."""

    def test_default_values(self) -> None:
        colors = ThemeColors()
        assert colors.header == "#69B9A1"
        assert colors.source_aur == "#69B9A1"

    def test_short_hex(self) -> None:
        assert ThemeColors(muted="#abc").muted == "#abc"

    @pytest.mark.parametrize(
        ("value", "message"),
        [
            ("ffffff", "must start with '#'"),
            ("#ff", "must be #RGB or #RRGGBB"),
            ("#gggggg", "invalid hex color"),
        ],
    )
    def test_invalid_colors(self, value: str, message: str) -> None:
        with pytest.raises(ValueError, match=message):
            ThemeColors(text=value)

    def test_extra_fields_forbidden(self) -> None:
        with pytest.raises(ValueError):
            ThemeColors(package_manual="#ffffff")  # type: ignore[call-arg]


class TestLoadTomlColors:
    """Tests for _load_toml_colors."""

    def test_loads_colors(self, tmp_path: Path) -> None:
        theme_file = tmp_path / "theme.toml"
        theme_file.write_text('[colors]\ntext = "#000000"\nwidth = 3\n')
        assert _load_toml_colors(theme_file) == {"text": "#000000"}

    def test_missing_file(self, tmp_path: Path) -> None:
        assert _load_toml_colors(tmp_path / "absent.toml") is None

    def test_invalid_toml(self, tmp_path: Path) -> None:
        theme_file = tmp_path / "theme.toml"
        theme_file.write_text("not valid [ toml")
        assert _load_toml_colors(theme_file) is None


class TestLoadTheme:
    """Tests for load_theme."""

    def test_bundled_theme(self, tmp_path: Path) -> None:
        """The bundled theme defines every color."""
        with patch("aurctl.core.theme.get_theme_path", return_value=tmp_path / "none.toml"):
            colors = load_theme()
        assert colors == ThemeColors()

    def test_user_overrides(self, tmp_path: Path) -> None:
        """A partial user theme overrides only the colors it names."""
        user_theme = tmp_path / "theme.toml"
        user_theme.write_text('[colors]\nsource_aur = "#ff0000"\n')

        with patch("aurctl.core.theme.get_theme_path", return_value=user_theme):
            colors = load_theme()

        assert colors.source_aur == "#ff0000"
        assert colors.source_repo == ThemeColors().source_repo

    def test_invalid_user_theme_falls_back(self, tmp_path: Path) -> None:
        user_theme = tmp_path / "theme.toml"
        user_theme.write_text('[colors]\nerror = "red"\n')

        with patch("aurctl.core.theme.get_theme_path", return_value=user_theme):
            colors = load_theme()

        assert colors == ThemeColors()


class TestRichTheme:
    """Tests for Rich theme generation."""

    def test_styles_used_by_the_cli(self) -> None:
        theme = get_rich_theme(ThemeColors())
        for style in ("bold_header", "source_repo", "source_aur", "source_virtual", "border"):
            assert style in theme.styles

    def test_cached(self) -> None:
        get_theme.cache_clear()
        first = get_theme()
        assert isinstance(first, Theme)
        assert get_theme() is first
