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
# pylint:disable=redefined-outer-name
"""This contains global pytest configurations.

Fixtures contained in this file will be automatically used if provided as an argument
to any pytest function.
"""
from typing import Any, Callable, Dict, Optional

import pytest

from tablemanifest.io.memory import MemoryFileIO
from tablemanifest.manifest import DataFile, FileFormat
from tablemanifest.partitioning import PartitionField, PartitionSpec
from tablemanifest.schema import Schema
from tablemanifest.transforms import IdentityTransform
from tablemanifest.typedef import Record
from tablemanifest.types import (
    BooleanType,
    DoubleType,
    IntegerType,
    ListType,
    LongType,
    MapType,
    NestedField,
    StringType,
    StructType,
)


@pytest.fixture(scope="session")
def table_schema_simple() -> Schema:
    return Schema(
        NestedField(field_id=1, name="foo", field_type=StringType(), required=False),
        NestedField(field_id=2, name="bar", field_type=IntegerType(), required=True),
        NestedField(field_id=3, name="baz", field_type=BooleanType(), required=False),
        schema_id=1,
        identifier_field_ids=[2],
    )


@pytest.fixture(scope="session")
def table_schema_nested() -> Schema:
    return Schema(
        NestedField(field_id=1, name="foo", field_type=StringType(), required=False),
        NestedField(field_id=2, name="bar", field_type=IntegerType(), required=True),
        NestedField(field_id=3, name="baz", field_type=BooleanType(), required=False),
        NestedField(
            field_id=4,
            name="qux",
            field_type=ListType(element_id=5, element_type=StringType(), element_required=True),
            required=True,
        ),
        NestedField(
            field_id=6,
            name="quux",
            field_type=MapType(
                key_id=7,
                key_type=StringType(),
                value_id=8,
                value_type=MapType(key_id=9, key_type=StringType(), value_id=10, value_type=IntegerType(), value_required=True),
                value_required=True,
            ),
            required=True,
        ),
        NestedField(
            field_id=11,
            name="location",
            field_type=ListType(
                element_id=12,
                element_type=StructType(
                    NestedField(field_id=13, name="latitude", field_type=DoubleType(), required=False),
                    NestedField(field_id=14, name="longitude", field_type=DoubleType(), required=False),
                ),
                element_required=True,
            ),
            required=True,
        ),
        NestedField(
            field_id=15,
            name="person",
            field_type=StructType(
                NestedField(field_id=16, name="name", field_type=StringType(), required=False),
                NestedField(field_id=17, name="age", field_type=IntegerType(), required=True),
            ),
            required=False,
        ),
        schema_id=1,
        identifier_field_ids=[2],
    )


@pytest.fixture(scope="session")
def table_schema_manifest() -> Schema:
    return Schema(
        NestedField(field_id=1, name="id", field_type=LongType(), required=True),
        NestedField(field_id=2, name="category", field_type=StringType(), required=False),
        NestedField(field_id=3, name="score", field_type=DoubleType(), required=False),
        schema_id=0,
    )


@pytest.fixture(scope="session")
def partition_spec_category() -> PartitionSpec:
    return PartitionSpec(
        PartitionField(source_id=2, field_id=1000, transform=IdentityTransform(), name="category"),
        spec_id=1,
    )


@pytest.fixture
def memory_io() -> MemoryFileIO:
    return MemoryFileIO()


@pytest.fixture
def data_file_factory() -> Callable[..., DataFile]:
    def _data_file(
        file_path: str = "s3://bucket/data/00000.parquet",
        record_count: int = 10,
        category: Optional[str] = "a",
        file_size_in_bytes: int = 1024,
        **kwargs: Any,
    ) -> DataFile:
        return DataFile(
            file_path=file_path,
            file_format=FileFormat.PARQUET,
            partition=Record(category=category),
            record_count=record_count,
            file_size_in_bytes=file_size_in_bytes,
            **kwargs,
        )

    return _data_file


@pytest.fixture
def example_column_statistics() -> Dict[str, Any]:
    return {
        "column_sizes": {1: 53, 2: 98153},
        "value_counts": {1: 19513, 2: 19513},
        "null_value_counts": {1: 0, 2: 19513},
        "nan_value_counts": {3: 0},
        "lower_bounds": {1: b"\x01\x00\x00\x00\x00\x00\x00\x00", 2: b"a"},
        "upper_bounds": {1: b"\x02\x00\x00\x00\x00\x00\x00\x00", 2: b"z"},
        "split_offsets": [4],
        "sort_order_id": 0,
    }
