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
import os
from unittest import mock

import pytest
import yaml

from tablemanifest.utils.config import Config, _lowercase_dictionary_keys, merge_config

EXAMPLE_ENV = {"TABLEMANIFEST_IO__PY_IO_IMPL": "tablemanifest.io.memory.MemoryFileIO"}


def test_config() -> None:
    """To check if all the file lookups go well without any mocking"""
    assert Config()


@mock.patch.dict(os.environ, EXAMPLE_ENV)
def test_from_environment_variables() -> None:
    assert Config().get_io_config() == {"py-io-impl": "tablemanifest.io.memory.MemoryFileIO"}


@mock.patch.dict(os.environ, {"TABLEMANIFEST_MANIFEST__FORMAT_VERSION": "2", "TABLEMANIFEST_MANIFEST__AVRO_CODEC": "deflate"})
def test_manifest_config_from_environment_variables() -> None:
    assert Config().get_manifest_config() == {"format-version": 2, "avro-codec": "deflate"}


def test_manifest_config_defaults(tmp_path_factory: pytest.TempPathFactory) -> None:
    empty_home = str(tmp_path_factory.mktemp("empty"))
    with mock.patch.dict(os.environ, {"TABLEMANIFEST_HOME": empty_home}):
        for key in [key for key in os.environ if key.startswith("TABLEMANIFEST_MANIFEST__")]:
            del os.environ[key]
        with mock.patch("os.path.expanduser", return_value=empty_home), mock.patch("os.getcwd", return_value=empty_home):
            assert Config().get_manifest_config() == {"format-version": 1, "avro-codec": "null"}


def test_from_configuration_files(tmp_path_factory: pytest.TempPathFactory) -> None:
    config_path = str(tmp_path_factory.mktemp("config"))
    with open(f"{config_path}/.tablemanifest.yaml", "w", encoding="utf-8") as file:
        yaml.dump({"manifest": {"avro-codec": "deflate"}, "io": {"s3.region": "eu-west-1"}}, file)

    with mock.patch.dict(os.environ, {"TABLEMANIFEST_HOME": config_path}):
        config = Config()
        assert config.get_manifest_config()["avro-codec"] == "deflate"
        assert config.get_io_config() == {"s3.region": "eu-west-1"}


def test_environment_overrides_configuration_file(tmp_path_factory: pytest.TempPathFactory) -> None:
    config_path = str(tmp_path_factory.mktemp("config"))
    with open(f"{config_path}/.tablemanifest.yaml", "w", encoding="utf-8") as file:
        yaml.dump({"MANIFEST": {"FORMAT-VERSION": 1}}, file)

    with mock.patch.dict(
        os.environ, {"TABLEMANIFEST_HOME": config_path, "TABLEMANIFEST_MANIFEST__FORMAT_VERSION": "3"}
    ):
        assert Config().get_manifest_config()["format-version"] == 3


def test_lowercase_dictionary_keys() -> None:
    uppercase_keys = {"UPPER": {"NESTED_UPPER": {"YES"}}}
    expected = {"upper": {"nested_upper": {"YES"}}}
    assert _lowercase_dictionary_keys(uppercase_keys) == expected  # type: ignore


def test_merge_config() -> None:
    lhs = {"manifest": {"avro-codec": "null", "format-version": "1"}, "io": {"warehouse": "s3://bucket"}}
    rhs = {"manifest": {"avro-codec": "deflate"}, "extra": "value"}
    assert merge_config(lhs, rhs) == {  # type: ignore
        "manifest": {"avro-codec": "deflate", "format-version": "1"},
        "io": {"warehouse": "s3://bucket"},
        "extra": "value",
    }
