"""Configuration management for pointtiles.

Settings are loaded with Dynaconf from multiple locations in order of
increasing priority:

1. Global settings (/etc/pointtiles/)
2. User settings (~/.config/pointtiles/)
3. Current directory settings (./)
4. Environment variable specified file (POINTTILES_SETTINGS_FILE_FOR_DYNACONF)
5. ``POINTTILES_*`` environment variables

Attributes
----------
DEFAULTS : dict
    Fallback values for every key the package reads.
settings : Dynaconf
    The Dynaconf settings object with loaded configuration.
"""
import os
import pathlib

from dynaconf import Dynaconf

USER_DIR = pathlib.Path("~/.config/pointtiles").expanduser()
GLOB_DIR = pathlib.Path("/etc/pointtiles/")
CURR_DIR = pathlib.Path("./").absolute()
settings_files = [
    GLOB_DIR / "settings.toml",
    GLOB_DIR / ".secrets.toml",
    USER_DIR / "settings.toml",
    USER_DIR / ".secrets.toml",
    CURR_DIR / "settings.toml",
    CURR_DIR / ".secrets.toml"
    ]
extra_file = os.getenv("POINTTILES_SETTINGS_FILE_FOR_DYNACONF")
if extra_file:
    settings_files.append(pathlib.Path(extra_file).absolute())

settings = Dynaconf(
    merge_enabled=True,
    envvar_prefix="POINTTILES",
    settings_files=settings_files,
    environments=True,
    load_dotenv=True,
)

DEFAULTS = {
    "tile_dir": "out",
    "zoom_levels": [8, 9, 10, 11],
    "tile_size": 256,
    "crs": "EPSG:3006",
    "category_field": "KKOD",
    "encoding": "cp1252",
    "category_colors": {"355": "#ff0000", "351": "#00ff00"},
    "default_color": "#0000ff",
    "host": "127.0.0.1",
    "port": 8080,
    "verbose": False,
}


def get(key):
    """Return a setting, falling back to the package default.

    Parameters
    ----------
    key : str
        Setting name, one of ``DEFAULTS``.
    """
    return settings.get(key, DEFAULTS[key])


def change_env(new_env):
    """Change the active Dynaconf environment.

    Parameters
    ----------
    new_env : str
        The environment name to switch to (e.g., 'development', 'production').
    """
    settings.setenv(new_env)
    settings.reload()
