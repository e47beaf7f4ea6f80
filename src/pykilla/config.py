"""Configuration system for pykilla."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

from pykilla.signals import DEFAULT_MIN_PHRASE_LENGTH
from pykilla.sorting import ColumnKind, SortDirection, SortSpec


@dataclass
class CollectorConfig:
    """Background collection configuration."""

    poll_rate: float = 0.5  # Seconds between snapshots


@dataclass
class SearchConfig:
    """Search and signal guard configuration."""

    min_signal_phrase_length: int = DEFAULT_MIN_PHRASE_LENGTH


@dataclass
class UIConfig:
    """Presentation configuration."""

    tick_interval: float = 0.25  # Seconds between polls of the collector
    sort_column: str = ColumnKind.CPU.value
    sort_direction: str = SortDirection.DESCENDING.value

    def sort_spec(self) -> SortSpec:
        """Return the initial sort.

        Raises:
            ValueError: If the column or direction name is unknown.
        """
        try:
            column = ColumnKind(self.sort_column)
        except ValueError:
            valid = [c.value for c in ColumnKind]
            raise ValueError(f"Unknown sort column: {self.sort_column!r}. Valid: {valid}") from None
        try:
            direction = SortDirection(self.sort_direction)
        except ValueError:
            valid = [d.value for d in SortDirection]
            raise ValueError(
                f"Unknown sort direction: {self.sort_direction!r}. Valid: {valid}"
            ) from None
        return SortSpec(column, direction)


@dataclass
class LoggingConfig:
    """Log file configuration."""

    level: str = "INFO"
    max_bytes: int = 2 * 1024 * 1024  # Max log file size (2MB)
    backup_count: int = 2  # Number of backup log files to keep


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


def _load_section(cls: type, data: dict) -> object:
    """Build a section dataclass from TOML data, defaulting missing keys."""
    defaults = cls()
    return cls(**{f.name: data.get(f.name, getattr(defaults, f.name)) for f in fields(cls)})


_SECTIONS = {
    "collector": CollectorConfig,
    "search": SearchConfig,
    "ui": UIConfig,
    "logging": LoggingConfig,
}


@dataclass
class Config:
    """Main configuration container."""

    collector: CollectorConfig = field(default_factory=CollectorConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "pykilla"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "pykilla"

    @property
    def log_path(self) -> Path:
        """Path to the JSON log file."""
        return self.state_dir / "pykilla.log"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in _SECTIONS:
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values."""
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f).unwrap()
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        # Use dataclass defaults for any missing values
        sections = {
            name: _load_section(section, data.get(name, {})) for name, section in _SECTIONS.items()
        }
        return cls(**sections)
