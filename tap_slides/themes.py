"""Theme catalog for the presentation frontend."""
import logging
from typing import List

from .models import Theme

logger = logging.getLogger(__name__)

DEFAULT_THEME = "paper"

# Ordered: this is the order shown in the theme picker.
AVAILABLE_THEMES: List[Theme] = [
    Theme("paper", "Clean Apple-style aesthetics with white background"),
    Theme("noir", "Professional style with subtle shadows"),
    Theme("aurora", "Modern colorful gradients with glassmorphism"),
    Theme("phosphor", "Hacker aesthetic with dark background and green text"),
    Theme("poster", "Bold, geometric, high contrast design"),
]

# Old theme names still accepted in frontmatter.
LEGACY_THEME_MAPPING = {
    "minimal": "paper",
    "keynote": "noir",
    "gradient": "aurora",
    "terminal": "phosphor",
    "brutalist": "poster",
}


def list_available_themes() -> List[str]:
    """
    List all available theme names in catalog order.

    Returns:
        List of theme names
    """
    return [theme.name for theme in AVAILABLE_THEMES]


def validate_theme(theme: str) -> bool:
    """
    Check if a theme exists in the catalog.

    Args:
        theme: Theme name to validate

    Returns:
        True if theme exists, False otherwise
    """
    return theme in list_available_themes()


def normalize_theme(theme: str) -> str:
    """
    Convert legacy theme names to current ones.

    Args:
        theme: Theme name as written by the user

    Returns:
        The catalog name, or an empty string if the theme is unknown
    """
    if validate_theme(theme):
        return theme

    if theme in LEGACY_THEME_MAPPING:
        new_name = LEGACY_THEME_MAPPING[theme]
        logger.warning(f"Theme '{theme}' is deprecated, please use '{new_name}' instead")
        return new_name

    return ""


def theme_index(theme: str) -> int:
    """Position of *theme* in the catalog, 0 when it is not listed."""
    for i, candidate in enumerate(AVAILABLE_THEMES):
        if candidate.name == theme:
            return i
    return 0
