import json
import os

from tidytabs.models.config import AppConfig

_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

CONFIG_PATH = os.getenv("TIDYTABS_CONFIG", os.path.join(_project_root, "config.json"))
OUTPUT_DIR = os.getenv("TIDYTABS_OUTPUT_DIR", os.path.join(_project_root, "output"))

DEFAULT_CONFIG = AppConfig().model_dump()


def load_config(path=None):
    """Saved settings merged over the defaults."""
    path = path or CONFIG_PATH
    if os.path.exists(path):
        with open(path) as f:
            return AppConfig(**{**DEFAULT_CONFIG, **json.load(f)})
    return AppConfig()


def save_config(config, path=None):
    path = path or CONFIG_PATH
    if isinstance(config, AppConfig):
        config = config.model_dump()
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "w") as f:
        json.dump(config, f, indent=2)
