"""Configuration loading and saving.

Config file location: ~/.config/note-render/config.toml

Schema:
    [service]
    base_url = "https://profiles.example"  # optional, enables resolution
    timeout = 10.0

    [recognition]
    window_days = 90  # 0 = never blink, -1 = always blink

    [blink]
    interval = 2.0
    transition = 0.3
    cycles = 3

    [render]
    default_avatar = "/assets/default-avatar.svg"
    profile_path = "/profile/"
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import tomli_w

CONFIG_DIR = Path.home() / ".config" / "note-render"
CONFIG_FILE = CONFIG_DIR / "config.toml"

DEFAULT_AVATAR = "/assets/default-avatar.svg"
DEFAULT_WINDOW_DAYS = 90


@dataclass
class RenderSettings:
    default_avatar: str = DEFAULT_AVATAR
    profile_path: str = "/profile/"
    loading_label: str = "…"
    # characters inspected before a bare npub to detect an existing anchor
    mention_lookback: int = 60


@dataclass
class BlinkSettings:
    interval: float = 2.0
    transition: float = 0.3
    cycles: int = 3


@dataclass
class AppConfig:
    service_url: str | None = None
    service_timeout: float = 10.0
    window_days: int = DEFAULT_WINDOW_DAYS
    blink: BlinkSettings = field(default_factory=BlinkSettings)
    render: RenderSettings = field(default_factory=RenderSettings)


def load_config(config_path: Path = CONFIG_FILE) -> AppConfig:
    """Load and validate config from TOML file."""
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    service_data = data.get("service", {})
    recognition_data = data.get("recognition", {})
    blink_data = data.get("blink", {})
    render_data = data.get("render", {})

    window_days = int(recognition_data.get("window_days", DEFAULT_WINDOW_DAYS))
    if window_days < -1:
        raise ValueError("recognition.window_days must be -1, 0 or a positive number of days")

    blink = BlinkSettings(
        interval=float(blink_data.get("interval", 2.0)),
        transition=float(blink_data.get("transition", 0.3)),
        cycles=int(blink_data.get("cycles", 3)),
    )
    if blink.interval <= 0 or blink.transition < 0 or blink.cycles < 1:
        raise ValueError("blink.interval must be > 0, transition >= 0 and cycles >= 1")

    profile_path = render_data.get("profile_path", "/profile/")
    if not profile_path.endswith("/"):
        profile_path += "/"

    return AppConfig(
        service_url=service_data.get("base_url") or None,
        service_timeout=float(service_data.get("timeout", 10.0)),
        window_days=window_days,
        blink=blink,
        render=RenderSettings(
            default_avatar=render_data.get("default_avatar", DEFAULT_AVATAR),
            profile_path=profile_path,
        ),
    )


def save_config(config: AppConfig, config_path: Path = CONFIG_FILE) -> None:
    """Write config to TOML file with restricted permissions."""
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data = {
        "service": {
            "timeout": config.service_timeout,
        },
        "recognition": {
            "window_days": config.window_days,
        },
        "blink": {
            "interval": config.blink.interval,
            "transition": config.blink.transition,
            "cycles": config.blink.cycles,
        },
        "render": {
            "default_avatar": config.render.default_avatar,
            "profile_path": config.render.profile_path,
        },
    }

    if config.service_url:
        data["service"]["base_url"] = config.service_url

    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)

    # service URL may embed an API key
    os.chmod(config_path, 0o600)


def config_exists(config_path: Path = CONFIG_FILE) -> bool:
    """Check if config file exists."""
    return config_path.exists()


def load_config_or_default(config_path: Path = CONFIG_FILE) -> AppConfig:
    """Load the config file if present, otherwise return defaults."""
    if not config_exists(config_path):
        return AppConfig()
    return load_config(config_path)
