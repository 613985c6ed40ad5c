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
"""Table schemas and the indexes that look up their fields by id or by dotted name."""
from __future__ import annotations

from typing import (
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    Literal,
    Tuple,
    Union,
)

from pydantic import Field, PrivateAttr

from tablemanifest.typedef import IcebergBaseModel
from tablemanifest.types import (
    IcebergType,
    ListType,
    MapType,
    NestedField,
    StructType,
)

INITIAL_SCHEMA_ID = 0


def _children(field_type: IcebergType) -> Tuple[NestedField, ...]:
    if isinstance(field_type, StructType):
        return field_type.fields
    if isinstance(field_type, ListType):
        return (field_type.element_field,)
    if isinstance(field_type, MapType):
        return (field_type.key_field, field_type.value_field)
    return ()


def _walk(fields: Iterable[NestedField], path: Tuple[str, ...] = ()) -> Iterator[Tuple[Tuple[str, ...], NestedField]]:
    """Yields every field with the names leading to it, a parent before its children."""
    for field in fields:
        field_path = (*path, field.name)
        yield field_path, field
        yield from _walk(_children(field.field_type), field_path)


def index_by_id(struct: Union[Schema, StructType]) -> Dict[int, NestedField]:
    """Maps every field id, nested ones included, to its field."""
    return {field.field_id: field for _, field in _walk(struct.fields)}


def index_by_name(struct: Union[Schema, StructType]) -> Dict[str, int]:
    """Maps dotted names such as `location.element.latitude` to field ids.

    Raises:
        ValueError: When two fields end up with the same dotted name.
    """
    index: Dict[str, int] = {}
    for path, field in _walk(struct.fields):
        name = ".".join(path)
        if name in index:
            raise ValueError(f"Invalid schema, multiple fields for name {name}: {index[name]} and {field.field_id}")
        index[name] = field.field_id
    return index


class Schema(IcebergBaseModel):
    """A table schema, written into every manifest as the `schema` metadata key.

    Example:
        >>> from tablemanifest.types import LongType
        >>> Schema(NestedField(1, "id", LongType()), schema_id=1).find_field("id").field_id
        1
    """

    type: Literal["struct"] = "struct"
    fields: Tuple[NestedField, ...] = Field(default_factory=tuple)
    schema_id: int = Field(alias="schema-id", default=INITIAL_SCHEMA_ID)
    identifier_field_ids: List[int] = Field(alias="identifier-field-ids", default_factory=list)

    _id_to_field: Dict[int, NestedField] = PrivateAttr()
    _name_to_id: Dict[str, int] = PrivateAttr()

    def __init__(self, *fields: NestedField, **data: Any):
        if fields:
            data["fields"] = fields
        super().__init__(**data)
        self._name_to_id = index_by_name(self)
        self._id_to_field = index_by_id(self)

    def __str__(self) -> str:
        columns = "\n".join(f"  {column}" for column in self.columns)
        return f"table {{\n{columns}\n}}"

    def __repr__(self) -> str:
        columns = ", ".join(map(repr, self.columns))
        return f"Schema({columns}, schema_id={self.schema_id}, identifier_field_ids={self.identifier_field_ids})"

    def __len__(self) -> int:
        return len(self.fields)

    def __eq__(self, other: Any) -> bool:
        """Schemas are equal when their columns and identifier fields are, whatever their ids."""
        if not isinstance(other, Schema):
            return False
        return self.columns == other.columns and self.identifier_field_ids == other.identifier_field_ids

    def __hash__(self) -> int:
        return hash(self.columns)

    @property
    def columns(self) -> Tuple[NestedField, ...]:
        return self.fields

    def as_struct(self) -> StructType:
        return StructType(*self.fields)

    def find_field(self, name_or_id: Union[str, int]) -> NestedField:
        """Looks a field up by id, or by its dotted name.

        Raises:
            ValueError: When there is no such field.
        """
        if isinstance(name_or_id, int):
            field_id = name_or_id
            if field_id not in self._id_to_field:
                raise ValueError(f"Could not find field with id: {field_id}")
        elif (field_id := self._name_to_id.get(name_or_id)) is None:  # type: ignore
            raise ValueError(f"Could not find field with name {name_or_id}")
        return self._id_to_field[field_id]

    def find_type(self, name_or_id: Union[str, int]) -> IcebergType:
        return self.find_field(name_or_id).field_type
