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
from enum import Enum
from typing import (
    Any,
    Dict,
    Optional,
)

from pydantic import Field, PrivateAttr, model_serializer

from tablemanifest.partitioning import PartitionSpec
from tablemanifest.schema import Schema
from tablemanifest.typedef import IcebergBaseModel

OPERATION = "operation"
ADDED_DATA_FILES = "added-data-files"
ADDED_FILE_SIZE = "added-files-size"
ADDED_RECORDS = "added-records"
DELETED_DATA_FILES = "deleted-data-files"
DELETED_RECORDS = "deleted-records"
REMOVED_FILE_SIZE = "removed-files-size"
CHANGED_PARTITION_COUNT = "changed-partition-count"
CHANGED_PARTITION_PREFIX = "partitions."
PARTITION_SUMMARIES_INCLUDED = "partition-summaries-included"


class Operation(Enum):
    """Describes the operation.

    Possible operation values are:
        - append: Only data files were added and no files were removed.
        - replace: Data files were added and removed without changing table data; i.e., compaction, changing the data file format, or relocating data files.
        - overwrite: Data files were added and removed in a logical overwrite operation.
        - delete: Data files were removed and their contents logically deleted.
    """

    APPEND = "append"
    REPLACE = "replace"
    OVERWRITE = "overwrite"
    DELETE = "delete"

    def __repr__(self) -> str:
        """Returns the string representation of the Operation class."""
        return f"Operation.{self.name}"


class Summary(IcebergBaseModel):
    """A class that stores the summary information for a Snapshot.

    The snapshot summary's operation field is used by some operations,
    like snapshot expiration, to skip processing certain snapshots.
    """

    operation: Operation = Field()
    _additional_properties: Dict[str, str] = PrivateAttr()

    def __init__(self, operation: Operation, **data: Any) -> None:
        super().__init__(operation=operation, **data)
        self._additional_properties = data

    @model_serializer
    def ser_model(self) -> Dict[str, str]:
        return {
            "operation": str(self.operation.value),
            **self._additional_properties,
        }

    @property
    def additional_properties(self) -> Dict[str, str]:
        return self._additional_properties

    def __repr__(self) -> str:
        """Returns the string representation of the Summary class."""
        repr_properties = f", **{repr(self._additional_properties)}" if self._additional_properties else ""
        return f"Summary({repr(self.operation)}{repr_properties})"


class _UpdateMetrics:
    added_files: int
    added_size: int
    added_records: int
    removed_files: int
    removed_size: int
    removed_records: int

    def __init__(self) -> None:
        self.added_files = 0
        self.added_size = 0
        self.added_records = 0
        self.removed_files = 0
        self.removed_size = 0
        self.removed_records = 0

    def add_file(self, data_file: Any) -> None:
        self.added_files += 1
        self.added_size += data_file.file_size_in_bytes
        self.added_records += data_file.record_count

    def remove_file(self, data_file: Any) -> None:
        self.removed_files += 1
        self.removed_size += data_file.file_size_in_bytes
        self.removed_records += data_file.record_count

    def to_dict(self) -> Dict[str, str]:
        properties: Dict[str, str] = {}
        _set_when_positive(properties, self.added_files, ADDED_DATA_FILES)
        _set_when_positive(properties, self.removed_files, DELETED_DATA_FILES)
        _set_when_positive(properties, self.added_records, ADDED_RECORDS)
        _set_when_positive(properties, self.removed_records, DELETED_RECORDS)
        _set_when_positive(properties, self.added_size, ADDED_FILE_SIZE)
        _set_when_positive(properties, self.removed_size, REMOVED_FILE_SIZE)
        return properties


def _set_when_positive(properties: Dict[str, str], num: int, property_name: str) -> None:
    if num > 0:
        properties[property_name] = str(num)


class SnapshotSummaryCollector:
    """Collects the files that a commit adds and removes, and renders them as snapshot summary properties.

    Changes are also tracked per partition. The per-partition properties are only included
    when the number of changed partitions does not exceed the limit, which is 0 by default.

    Example:
        >>> collector = SnapshotSummaryCollector(schema)  # doctest: +SKIP
        >>> collector.added_file(spec, data_file)  # doctest: +SKIP
        >>> Summary(Operation.APPEND, **collector.build())  # doctest: +SKIP
    """

    metrics: _UpdateMetrics
    partition_metrics: Dict[str, _UpdateMetrics]
    max_changed_partitions_for_summaries: int

    def __init__(self, schema: Schema) -> None:
        self._schema = schema
        self.metrics = _UpdateMetrics()
        self.partition_metrics = {}
        self.max_changed_partitions_for_summaries = 0

    def set_partition_summary_limit(self, limit: int) -> None:
        self.max_changed_partitions_for_summaries = limit

    def added_file(self, spec: PartitionSpec, data_file: Any) -> None:
        self.metrics.add_file(data_file)
        self._partition_metrics(spec, data_file).add_file(data_file)

    def deleted_file(self, spec: PartitionSpec, data_file: Any) -> None:
        self.metrics.remove_file(data_file)
        self._partition_metrics(spec, data_file).remove_file(data_file)

    def _partition_metrics(self, spec: PartitionSpec, data_file: Any) -> _UpdateMetrics:
        partition_path = spec.partition_to_path(data_file.partition, self._schema)
        if (metrics := self.partition_metrics.get(partition_path)) is None:
            metrics = self.partition_metrics[partition_path] = _UpdateMetrics()
        return metrics

    def build(self, operation: Optional[Operation] = None) -> Dict[str, str]:
        """Returns the summary properties, with the operation when one is given."""
        properties: Dict[str, str] = {OPERATION: operation.value} if operation is not None else {}
        properties.update(self.metrics.to_dict())

        changed_partitions_size = len(self.partition_metrics)
        properties[CHANGED_PARTITION_COUNT] = str(changed_partitions_size)

        if 0 < changed_partitions_size <= self.max_changed_partitions_for_summaries:
            properties[PARTITION_SUMMARIES_INCLUDED] = "true"
            for partition_path, update_metrics in self.partition_metrics.items():
                if summary := ",".join(f"{key}={value}" for key, value in update_metrics.to_dict().items()):
                    properties[CHANGED_PARTITION_PREFIX + partition_path] = summary

        return properties
