"""
Session configuration: environment, presentation frontmatter and logging.
"""
import logging
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import quote

from dotenv import load_dotenv

from .errors import ConfigError
from .markdown_parser import parse_frontmatter
from .models import DevConfig
from .themes import DEFAULT_THEME, normalize_theme

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3000
DEFAULT_LOG_FILE = Path(tempfile.gettempdir()) / "tap-slides-dev.log"
LOG_FORMAT = "%(levelname)s  %(message)s"


def load_env(directory: Union[str, Path, None] = None) -> bool:
    """
    Load a ``.env`` file from *directory* (or the working directory).

    Variables already set in the environment win.

    Returns:
        True if a file was loaded
    """
    env_file = Path(directory) / ".env" if directory is not None else Path(".env")
    if not env_file.is_file():
        logger.debug(f"No .env file at {env_file}")
        return False

    load_dotenv(env_file, override=False)
    logger.debug(f"Loaded .env file from {env_file}")
    return True


def read_frontmatter(markdown_file: Union[str, Path]) -> Dict[str, Any]:
    """
    Read the YAML frontmatter of a presentation file.

    Raises:
        ConfigError: If the file cannot be read
    """
    path = Path(markdown_file)
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"failed to read {path}: {e}") from e
    return parse_frontmatter(content)


def resolve_theme(requested: Optional[str]) -> str:
    """
    Map a theme name from the command line or frontmatter to a catalog theme.

    Unknown names fall back to the default theme with a warning.
    """
    if not requested:
        return DEFAULT_THEME

    theme = normalize_theme(str(requested))
    if not theme:
        logger.warning(f"Unknown theme '{requested}', using '{DEFAULT_THEME}'")
        return DEFAULT_THEME
    return theme


def build_dev_config(
    markdown_file: Union[str, Path],
    port: int = DEFAULT_PORT,
    presenter_password: str = "",
    theme: Optional[str] = None,
    qr_code_ascii: str = "",
) -> DevConfig:
    """
    Build the configuration for a dev session.

    Args:
        markdown_file: Presentation file
        port: Port the local server listens on
        presenter_password: Optional key protecting the presenter view
        theme: Theme override; the frontmatter ``theme`` is used when None
        qr_code_ascii: Pre-rendered QR code for the audience URL. Rendering it
            belongs to the HTTP server layer that embeds the session; the
            command line has no such layer and leaves it empty, so the
            dashboard omits the QR block.

    Returns:
        DevConfig for the session
    """
    if theme is None:
        theme = read_frontmatter(markdown_file).get("theme")

    audience_url = f"http://localhost:{port}"
    presenter_url = f"http://localhost:{port}/presenter"
    if presenter_password:
        presenter_url += "?key=" + quote(presenter_password, safe="")

    return DevConfig(
        audience_url=audience_url,
        presenter_url=presenter_url,
        markdown_file=str(markdown_file),
        current_theme=resolve_theme(theme),
        port=port,
        presenter_password=presenter_password,
        qr_code_ascii=qr_code_ascii,
    )


def setup_logging(debug: bool = False, log_file: Union[str, Path, None] = None) -> Path:
    """
    Send log records to a file so they never draw over the full-screen view.

    Returns:
        Path of the log file
    """
    path = Path(log_file) if log_file else DEFAULT_LOG_FILE
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        filename=str(path),
        force=True,
    )
    return path
