import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Optional

from .errors import ConfigError

CONFIG_FILENAME = "artshelf_config.json"

DEFAULT_EXTENSIONS = frozenset({
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".mp4", ".webm", ".mkv", ".mov"
})

DEFAULT_PAGE_SIZE = 12


def normalize_extensions(extensions: Iterable[str]) -> FrozenSet[str]:
    out = set()
    for ext in extensions:
        ext_norm = str(ext).strip().lower()
        if not ext_norm:
            continue
        if not ext_norm.startswith("."):
            ext_norm = "." + ext_norm
        out.add(ext_norm)
    return frozenset(out)


@dataclass
class LibraryConfig:
    root_directory: str
    allowed_tags: FrozenSet[str] = field(default_factory=frozenset)
    allowed_extensions: FrozenSet[str] = DEFAULT_EXTENSIONS
    page_size: int = DEFAULT_PAGE_SIZE
    data_dir: str = "."

    def __post_init__(self) -> None:
        self.root_directory = os.path.abspath(self.root_directory)
        self.allowed_tags = frozenset(str(t).strip() for t in self.allowed_tags if str(t).strip())
        self.allowed_extensions = normalize_extensions(self.allowed_extensions)
        if self.page_size < 1:
            self.page_size = DEFAULT_PAGE_SIZE

    def is_allowed_file(self, name: str) -> bool:
        _, ext = os.path.splitext(name)
        return ext.lower() in self.allowed_extensions

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LibraryConfig":
        if not isinstance(data, dict):
            raise ConfigError("config must be a JSON object")
        root = data.get("root_directory") or data.get("rootDirectory")
        if not root:
            raise ConfigError("config is missing 'root_directory'")
        extensions = data.get("allowed_extensions", data.get("allowedExtensions"))
        try:
            page_size = int(data.get("page_size", DEFAULT_PAGE_SIZE))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"invalid page_size: {data.get('page_size')!r}") from exc
        return cls(
            root_directory=str(root),
            allowed_tags=frozenset(data.get("allowed_tags", data.get("allowedTags")) or ()),
            allowed_extensions=DEFAULT_EXTENSIONS if extensions is None else frozenset(extensions),
            page_size=page_size,
            data_dir=str(data.get("data_dir") or "."),
        )


def read_config_file(path: str) -> Dict[str, Any]:
    """Return the raw JSON object stored at ``path`` ({} when missing)."""
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as exc:
        raise ConfigError(f"cannot read config {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"config {path} must hold a JSON object")
    return data


def write_config_file(path: str, data: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def load_config(path: Optional[str] = None) -> LibraryConfig:
    path = path or os.environ.get("ARTSHELF_CONFIG") or CONFIG_FILENAME
    if not os.path.exists(path):
        raise ConfigError(f"config file not found: {path}")
    return LibraryConfig.from_dict(read_config_file(path))
