"""Runtime configuration for the geotrack host."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel


class GpsConfig(BaseModel):
    """Serial GPS receiver settings."""
    port: str = "/dev/ttyUSB0"
    baudrate: int = 9600
    timeout_s: float = 1.0


class AppConfig(BaseModel):
    """Top-level configuration."""
    data_dir: Path = Path.home() / ".geotrack"
    settings_file: str = "settings.json"   # key-value config bundle
    tracks_subdir: str = "tracks"          # private track file directory
    export_dir: Path | None = None         # share outbox, default <data_dir>/export
    gps: GpsConfig = GpsConfig()
    log_level: str = "INFO"

    @property
    def settings_path(self) -> Path:
        return self.data_dir / self.settings_file

    @property
    def tracks_dir(self) -> Path:
        return self.data_dir / self.tracks_subdir

    @property
    def outbox_dir(self) -> Path:
        return self.export_dir if self.export_dir is not None else self.data_dir / "export"


def load_config(path: Path | None = None) -> AppConfig:
    """Load config from a JSON file, or defaults if there is none."""
    if path is not None and path.exists():
        return AppConfig.model_validate_json(path.read_text())
    return AppConfig()
