# folio/config.py
import tomllib
import attrs
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


RESOURCE_CLASSES = ("image", "video", "audio", "text")

# Upper bound on the length of a trail. A parent chain longer than this is
# treated as a cycle in the tree store.
DEFAULT_MAX_DEPTH = 2048


@attrs.define(slots=True)
class Config:
    """Structured configuration for the folio application."""
    database_path: str = "folio.db"
    max_depth: int = DEFAULT_MAX_DEPTH
    supported_classes: List[str] = attrs.field(factory=lambda: ["image"])
    page_size: int = 24
    handle_dir: Optional[str] = None
    log_file: str = "folio.log"


def find_config_path() -> Optional[Path]:
    """Looks for 'folio.toml' in the current directory, then beside this module."""
    for p in [Path.cwd(), Path(__file__).parent]:
        if (p / "folio.toml").is_file():
            return p / "folio.toml"
    return None


def load_config_with_path() -> Tuple[Config, Optional[Path]]:
    """
    Loads configuration from 'folio.toml'.
    If not found, it returns a default configuration and None for the path.
    """
    config_path = find_config_path()
    config_data: Dict[str, Any] = {}

    if config_path:
        with config_path.open("rb") as f:
            config_data = tomllib.load(f)

    # Get the [tool.folio] table from the TOML file
    folio_config = config_data.get("tool", {}).get("folio", {})

    # Relative database paths are resolved against the config file's location
    db_path_str = folio_config.get("database_path", "folio.db")
    base_dir = config_path.parent if config_path else Path.cwd()
    if not Path(db_path_str).is_absolute():
        db_path_str = str((base_dir / db_path_str).resolve())

    classes = folio_config.get("supported_classes", ["image"])
    unknown = [c for c in classes if c not in RESOURCE_CLASSES]
    if unknown:
        raise ValueError(f"Unknown resource classes in folio.toml: {', '.join(unknown)}")

    loaded_config = Config(
        database_path=db_path_str,
        max_depth=int(folio_config.get("max_depth", DEFAULT_MAX_DEPTH)),
        supported_classes=list(classes),
        page_size=int(folio_config.get("page_size", 24)),
        handle_dir=folio_config.get("handle_dir"),
        log_file=folio_config.get("log_file", "folio.log"),
    )
    return loaded_config, config_path


def load_config() -> Config:
    """
    Loads configuration from 'folio.toml'.
    This is a convenience wrapper around load_config_with_path.
    """
    return load_config_with_path()[0]
