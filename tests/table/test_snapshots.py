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
from typing import Callable

import pytest

from tablemanifest.manifest import DataFile
from tablemanifest.partitioning import UNPARTITIONED_PARTITION_SPEC, PartitionSpec
from tablemanifest.schema import Schema
from tablemanifest.table.snapshots import Operation, SnapshotSummaryCollector, Summary
from tablemanifest.typedef import Record


def test_serialize_summary() -> None:
    assert Summary(Operation.APPEND).model_dump_json() == """{"operation":"append"}"""


def test_serialize_summary_with_properties() -> None:
    summary = Summary(Operation.APPEND, property="yes")
    assert summary.model_dump_json() == """{"operation":"append","property":"yes"}"""
    assert summary.additional_properties == {"property": "yes"}


def test_summary_repr() -> None:
    assert repr(Summary(Operation.APPEND)) == "Summary(Operation.APPEND)"
    assert repr(Summary(Operation.DELETE, foo="bar")) == "Summary(Operation.DELETE, **{'foo': 'bar'})"


@pytest.fixture
def collector(table_schema_manifest: Schema) -> SnapshotSummaryCollector:
    return SnapshotSummaryCollector(table_schema_manifest)


def test_empty_collector(collector: SnapshotSummaryCollector) -> None:
    assert collector.build() == {"changed-partition-count": "0"}
    assert collector.build(Operation.APPEND) == {"operation": "append", "changed-partition-count": "0"}


def test_collector_totals(
    collector: SnapshotSummaryCollector,
    partition_spec_category: PartitionSpec,
    data_file_factory: Callable[..., DataFile],
) -> None:
    collector.added_file(partition_spec_category, data_file_factory(file_path="s3://b/1.parquet", record_count=10, category="a"))
    collector.added_file(partition_spec_category, data_file_factory(file_path="s3://b/2.parquet", record_count=5, category="b"))
    collector.deleted_file(
        partition_spec_category, data_file_factory(file_path="s3://b/3.parquet", record_count=7, file_size_in_bytes=100)
    )

    assert collector.build(Operation.OVERWRITE) == {
        "operation": "overwrite",
        "added-data-files": "2",
        "deleted-data-files": "1",
        "added-records": "15",
        "deleted-records": "7",
        "added-files-size": "2048",
        "removed-files-size": "100",
        "changed-partition-count": "2",
    }


def test_zero_counters_are_omitted(
    collector: SnapshotSummaryCollector,
    partition_spec_category: PartitionSpec,
    data_file_factory: Callable[..., DataFile],
) -> None:
    collector.added_file(partition_spec_category, data_file_factory(record_count=0, file_size_in_bytes=0))
    assert collector.build() == {"added-data-files": "1", "changed-partition-count": "1"}


def test_partition_summaries_within_limit(
    collector: SnapshotSummaryCollector,
    partition_spec_category: PartitionSpec,
    data_file_factory: Callable[..., DataFile],
) -> None:
    collector.set_partition_summary_limit(2)
    collector.added_file(partition_spec_category, data_file_factory(file_path="s3://b/1.parquet", category="a"))
    collector.deleted_file(partition_spec_category, data_file_factory(file_path="s3://b/2.parquet", category="b"))

    properties = collector.build()
    assert properties["changed-partition-count"] == "2"
    assert properties["partition-summaries-included"] == "true"
    assert properties["partitions.category=a"] == "added-data-files=1,added-records=10,added-files-size=1024"
    assert properties["partitions.category=b"] == "deleted-data-files=1,deleted-records=10,removed-files-size=1024"


def test_partition_summaries_over_limit(
    collector: SnapshotSummaryCollector,
    partition_spec_category: PartitionSpec,
    data_file_factory: Callable[..., DataFile],
) -> None:
    collector.set_partition_summary_limit(1)
    collector.added_file(partition_spec_category, data_file_factory(file_path="s3://b/1.parquet", category="a"))
    collector.added_file(partition_spec_category, data_file_factory(file_path="s3://b/2.parquet", category="b"))

    properties = collector.build()
    assert properties["changed-partition-count"] == "2"
    assert "partition-summaries-included" not in properties
    assert not [key for key in properties if key.startswith("partitions.")]


def test_null_partition_value(
    collector: SnapshotSummaryCollector,
    partition_spec_category: PartitionSpec,
    data_file_factory: Callable[..., DataFile],
) -> None:
    collector.set_partition_summary_limit(10)
    collector.added_file(partition_spec_category, data_file_factory(category=None))
    assert collector.build()["partitions.category=null"] == "added-data-files=1,added-records=10,added-files-size=1024"


def test_unpartitioned_summary(collector: SnapshotSummaryCollector) -> None:
    collector.set_partition_summary_limit(1)
    data_file = DataFile(file_path="s3://b/1.parquet", file_format="PARQUET", partition=Record(), record_count=3, file_size_in_bytes=30)
    collector.added_file(UNPARTITIONED_PARTITION_SPEC, data_file)
    collector.added_file(UNPARTITIONED_PARTITION_SPEC, data_file)

    assert collector.build(Operation.APPEND) == {
        "operation": "append",
        "added-data-files": "2",
        "added-records": "6",
        "added-files-size": "60",
        "changed-partition-count": "1",
        "partition-summaries-included": "true",
        "partitions.": "added-data-files=2,added-records=6,added-files-size=60",
    }
