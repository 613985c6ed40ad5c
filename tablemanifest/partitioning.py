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
"""Partition specs: how the partition tuple of a data file derives from the table columns."""
import json
from typing import (
    Annotated,
    Any,
    Optional,
    Tuple,
)
from urllib.parse import quote_plus

from pydantic import BeforeValidator, Field, PlainSerializer

from tablemanifest.schema import Schema
from tablemanifest.transforms import Transform, parse_transform
from tablemanifest.typedef import IcebergBaseModel, StructProtocol
from tablemanifest.types import NestedField, StructType

INITIAL_PARTITION_SPEC_ID = 0


class PartitionField(IcebergBaseModel):
    """One value of the partition tuple, `transform` applied to the column `source_id`.

    The `field_id` numbers the value within the partition struct, `name` is its key in
    partition paths.
    """

    source_id: int = Field(alias="source-id")
    field_id: int = Field(alias="field-id")
    transform: Annotated[Transform, BeforeValidator(parse_transform), PlainSerializer(str, return_type=str)] = Field()
    name: str = Field()

    def __init__(
        self,
        source_id: Optional[int] = None,
        field_id: Optional[int] = None,
        transform: Optional[Transform] = None,
        name: Optional[str] = None,
        **data: Any,
    ):
        positional = {"source-id": source_id, "field-id": field_id, "transform": transform, "name": name}
        data.update((alias, value) for alias, value in positional.items() if value is not None)
        super().__init__(**data)

    def __str__(self) -> str:
        return f"{self.field_id}: {self.name}: {self.transform}({self.source_id})"


class PartitionSpec(IcebergBaseModel):
    """An ordered list of partition fields, identified by `spec_id`.

    Every manifest is written for exactly one spec and records its id and field list in
    the file metadata.

    Example:
        >>> from tablemanifest.transforms import IdentityTransform
        >>> str(PartitionSpec(PartitionField(2, 1000, IdentityTransform(), "category"), spec_id=1))
        '[\\n  1000: category: identity(2)\\n]'
    """

    spec_id: int = Field(alias="spec-id", default=INITIAL_PARTITION_SPEC_ID)
    fields: Tuple[PartitionField, ...] = Field(default_factory=tuple)

    def __init__(self, *fields: PartitionField, **data: Any):
        if fields:
            data["fields"] = fields
        super().__init__(**data)

    def __str__(self) -> str:
        if not self.fields:
            return "[]"
        return "[\n" + "".join(f"  {field}\n" for field in self.fields) + "]"

    def __repr__(self) -> str:
        fields = "".join(f"{field!r}, " for field in self.fields)
        return f"PartitionSpec({fields}spec_id={self.spec_id})"

    def is_unpartitioned(self) -> bool:
        return not self.fields

    def partition_type(self, schema: Schema) -> StructType:
        """The struct of the partition tuple, with the result type of every transform.

        All partition fields are optional: a transform of a null source value is null, and
        files written before a field was added to the spec have no value for it.
        """
        return StructType(
            *[
                NestedField(field.field_id, field.name, field.transform.result_type(schema.find_type(field.source_id)), False)
                for field in self.fields
            ]
        )

    def partition_to_path(self, data: StructProtocol, schema: Schema) -> str:
        """Renders a partition tuple as a url-encoded path, e.g. `day=2023-01-01/bucket=3`."""
        segments = []
        for pos, field in enumerate(self.fields):
            value = field.transform.to_human_string(schema.find_type(field.source_id), data[pos])
            segments.append(f"{quote_plus(field.name)}={quote_plus(value)}")
        return "/".join(segments)

    def fields_json(self) -> str:
        """The JSON list of partition fields stored under the `partition-spec` metadata key."""
        return json.dumps([field.model_dump() for field in self.fields])


UNPARTITIONED_PARTITION_SPEC = PartitionSpec(spec_id=0)


def partition_spec_from_json(fields_json: str, spec_id: int) -> PartitionSpec:
    """Rebuilds a spec from its `partition-spec` metadata and `partition-spec-id`."""
    return PartitionSpec(*[PartitionField(**field) for field in json.loads(fields_json)], spec_id=spec_id)
