"""config-mirror's configuration loader and manager

This loads every YAML file in the `configuration_files/` directory into one dictionary that the entrypoints use.

:Module: configmirror.utils.configuration
:Copyright: (c) 2024 by Gemini Trust Company, LLC., see AUTHORS for more info
:License: See the LICENSE file for details
:Author: Mike Grima <michael.grima@gemini.com>
"""

import logging
import os
from typing import Any, Dict

import yaml

from configmirror.utils.config_schema import BaseConfigurationSchema
from configmirror.utils.logging import LOGGER
import configmirror

CONFIGURATION_FILE_DIR_NAME = "configuration_files"
PRE_LOGGER_LEVEL = os.environ.get("PRE_LOGGER_LEVEL", "DEBUG")


class BadConfigurationError(Exception):
    """Exception for bad config-mirror configuration"""


class MirrorConfigurationLoader:
    """Class that loads the config-mirror configuration files."""

    # Defined here for testability purposes:
    _configuration_path = f"{configmirror.__path__[0]}/{CONFIGURATION_FILE_DIR_NAME}"

    def __init__(self):
        self._app_config: Dict[str, Any] = None  # noqa

    def load_base_configuration(self) -> None:
        """This will load the base configuration for the application."""
        self._app_config = {}

        # There is no configured log level yet, so use the pre-logger level until the files are loaded:
        LOGGER.setLevel(PRE_LOGGER_LEVEL)
        LOGGER.debug(f"[📄] Loading the base configuration from {self._configuration_path}...")

        try:
            for file in sorted(os.listdir(self._configuration_path)):
                if file.endswith(".yaml"):
                    LOGGER.debug(f"[⚙️] Processing configuration file: {file}...")

                    with open(f"{self._configuration_path}/{file}", "r", encoding="utf-8") as stream:
                        loaded = yaml.safe_load(stream)

                    self._app_config.update(loaded or {})

                    LOGGER.debug(f"[⚙️] Successfully loaded configuration file: {file}")

        except Exception as exc:
            LOGGER.error("[💥] Major error encountered loading configuration. Cannot proceed.")
            LOGGER.exception(exc)
            raise

        # Verify that the required components are in the configuration:
        try:
            errors = BaseConfigurationSchema().validate(self._app_config)
            if errors:
                raise BadConfigurationError(errors)

        except BadConfigurationError as bce:
            LOGGER.error("[💥] The config-mirror configuration is invalid. See the stacktrace for more details.")
            LOGGER.exception(bce)
            raise

        LOGGER.debug("[🪵] Configuring the logger for the rest of the application...")
        LOGGER.setLevel(self._app_config["MIRROR"].get("LogLevel", "INFO"))

        for logger_name, level in self._app_config["MIRROR"].get("ThirdPartyLoggerLevels", {}).items():
            logging.getLogger(logger_name).setLevel(level)

        LOGGER.debug("[🆗️] Base configuration loaded successfully")

    @property
    def config(self) -> Dict[str, Any]:
        """Lazy-loads the application configuration. If not already loaded it will load the base configuration and then return it."""
        if not self._app_config:
            self.load_base_configuration()

        return self._app_config

    @property
    def mirror_section(self) -> Dict[str, Any]:
        """The `MIRROR` section loaded through the schema so that all the defaults are filled in."""
        return BaseConfigurationSchema().load(self.config)["mirror"]


MIRROR_CONFIGURATION = MirrorConfigurationLoader()
