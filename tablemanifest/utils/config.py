# Licensed to the Apache Software Foundation (ASF) under one
# or more contributor license agreements.  See the NOTICE file
# distributed with this work for additional information
# regarding copyright ownership.  The ASF licenses this file
# to you under the Apache License, Version 2.0 (the
# "License"); you may not use this file except in compliance
# with the License.  You may obtain a copy of the License at
#
#   http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing,
# software distributed under the License is distributed on an
# "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY
# KIND, either express or implied.  See the License for the
# specific language governing permissions and limitations
# under the License.
import logging
import os
from typing import Any, Dict, List, Optional

import yaml

from tablemanifest.typedef import FrozenDict, Properties, RecursiveDict

DEFAULT_CONFIG_FILE = ".tablemanifest.yaml"
CONFIG_HOME_ENV = "TABLEMANIFEST_HOME"
ENV_PREFIX = "TABLEMANIFEST_"
IO = "io"
MANIFEST = "manifest"
FORMAT_VERSION = "format-version"
AVRO_CODEC = "avro-codec"
DEFAULT_FORMAT_VERSION = 1
DEFAULT_AVRO_CODEC = "null"

logger = logging.getLogger(__name__)


def merge_config(lhs: RecursiveDict, rhs: RecursiveDict) -> RecursiveDict:
    """Merges right-hand side into the left-hand side."""
    new_config = lhs.copy()
    for rhs_key, rhs_value in rhs.items():
        if rhs_key in new_config:
            lhs_value = new_config[rhs_key]
            if isinstance(lhs_value, dict) and isinstance(rhs_value, dict):
                # If they are both dicts, then we have to go deeper
                new_config[rhs_key] = merge_config(lhs_value, rhs_value)
            else:
                # Take the non-null value, with precedence on rhs
                new_config[rhs_key] = rhs_value or lhs_value
        else:
            # New key
            new_config[rhs_key] = rhs_value

    return new_config


def _lowercase_dictionary_keys(input_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Lowers all the keys of a dictionary in a recursive manner, to make the lookup case-insensitive."""
    return {k.lower(): _lowercase_dictionary_keys(v) if isinstance(v, dict) else v for k, v in input_dict.items()}


class Config:
    """Configuration of the library, read from `.tablemanifest.yaml` and the environment.

    Environment variables take the form TABLEMANIFEST_MANIFEST__AVRO_CODEC, where the double
    underscore separates levels and a single underscore becomes a dash, giving
    {"manifest": {"avro-codec": ...}}.
    """

    config: RecursiveDict

    def __init__(self) -> None:
        config = self._from_configuration_files() or {}
        config = merge_config(config, self._from_environment_variables(config))
        self.config = FrozenDict(**config)

    @staticmethod
    def _from_configuration_files() -> Optional[RecursiveDict]:
        """Loads the first configuration file that it finds.

        Will first look in the TABLEMANIFEST_HOME env variable, then the home directory,
        and finally the current working directory.
        """

        def _load_yaml(directory: Optional[str]) -> Optional[RecursiveDict]:
            if directory:
                path = os.path.join(directory, DEFAULT_CONFIG_FILE)
                if os.path.isfile(path):
                    with open(path, encoding="utf-8") as f:
                        logger.debug("Loading configuration from %s", path)
                        file_config = yaml.safe_load(f)
                        return _lowercase_dictionary_keys(file_config) if file_config else None
            return None

        # Give priority to the TABLEMANIFEST_HOME directory
        if tablemanifest_home_config := _load_yaml(os.environ.get(CONFIG_HOME_ENV)):
            return tablemanifest_home_config
        # Look into the home directory
        if home_config := _load_yaml(os.path.expanduser("~")):
            return home_config
        # Fall back to the working directory
        if cwd_config := _load_yaml(os.getcwd()):
            return cwd_config

        return None

    @staticmethod
    def _from_environment_variables(config: RecursiveDict) -> RecursiveDict:
        """Reads the environment variables, to check if there are any prepended by TABLEMANIFEST_.

        Args:
            config: Existing configuration that's being amended with configuration from environment variables.

        Returns:
            Amended configuration.
        """

        def set_property(_config: RecursiveDict, path: List[str], config_value: str) -> None:
            while len(path) > 0:
                element = path.pop(0)
                if len(path) == 0:
                    # We're at the end
                    _config[element] = config_value
                else:
                    # We have to go deeper
                    if element not in _config or not isinstance(_config[element], dict):
                        _config[element] = {}
                    _config = _config[element]  # type: ignore

        for env_var, config_value in os.environ.items():
            # Make it lowercase to make it case-insensitive
            env_var_lower = env_var.lower()
            if env_var_lower.startswith(ENV_PREFIX.lower()) and env_var != CONFIG_HOME_ENV:
                key = env_var_lower[len(ENV_PREFIX) :]
                parts = key.split("__")
                parts_normalized = [part.replace("_", "-") for part in parts]
                set_property(config, parts_normalized, config_value)

        return config

    def _get_section(self, name: str) -> Properties:
        section = self.config.get(name)
        if isinstance(section, dict):
            return {key: str(value) for key, value in section.items() if not isinstance(value, dict)}
        return {}

    def get_io_config(self) -> Properties:
        """The FileIO properties, layered under the properties passed to load_file_io."""
        return self._get_section(IO)

    def get_manifest_config(self) -> Dict[str, Any]:
        """The manifest writer defaults: the format version and the Avro codec."""
        section = self.config.get(MANIFEST)
        section = section if isinstance(section, dict) else {}
        return {
            FORMAT_VERSION: int(section.get(FORMAT_VERSION, DEFAULT_FORMAT_VERSION)),
            AVRO_CODEC: str(section.get(AVRO_CODEC, DEFAULT_AVRO_CODEC)),
        }
