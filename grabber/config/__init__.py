from .settings import CONFIG_PATH, Config, config, load_config

__all__ = ["CONFIG_PATH", "Config", "config", "load_config"]
