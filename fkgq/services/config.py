"""
Service configuration, loaded from the packaged config.yaml
with individual settings overridable by environment variables.
"""
from typing import Any, Optional
import os
import yaml


class Config(dict):

    def __init__(self, config_file: str):
        """
        Constructor for the Config dictionary.
        :param config_file: str, name of the YAML settings file, relative to this module
        """
        super().__init__()
        config_path = self.get_resource_path(config_file)
        with open(config_path) as config_stream:
            settings = yaml.load(config_stream, Loader=yaml.SafeLoader)
        if settings:
            self.update(settings)

    def get(self, key: str, default: Optional[Any] = None) -> Optional[Any]:
        """
        Returns the value of a setting, the environment taking precedence over the YAML file.
        :param key: str, setting name (looked up in the environment in upper case)
        :param default: value returned if the setting is absent or empty
        :return: the setting value
        """
        value = os.environ.get(key.upper(), os.environ.get(key))
        if value is None:
            value = super().get(key)
        if value is None or value == "":
            return default
        return value

    def get_boolean(self, key: str, default: bool = False) -> bool:
        value = self.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() not in ["false", "0", "no", "off"]

    @staticmethod
    def get_resource_path(resource_name: str) -> str:
        return os.path.join(os.path.dirname(__file__), resource_name)


config = Config('config.yaml')
