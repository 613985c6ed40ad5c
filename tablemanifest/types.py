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
"""Types used to describe table schemas, partition types and manifest records.

Every type serializes to the JSON form stored in the manifest file metadata. Primitive
types are plain strings (`"long"`, `"decimal(9, 2)"`, `"fixed[16]"`), nested types are
objects dispatched on their `type` key.

Example:
    >>> str(StructType(
    ...     NestedField(1, "required_field", StringType(), True),
    ...     NestedField(2, "optional_field", IntegerType(), False)
    ... ))
    'struct<1: required_field: required string, 2: optional_field: optional int>'
"""
from __future__ import annotations

import re
from typing import (
    Any,
    Callable,
    Dict,
    Literal,
    Optional,
    Pattern,
    Tuple,
)

from pydantic import (
    Field,
    SerializeAsAny,
    model_serializer,
    model_validator,
)
from pydantic_core.core_schema import ValidatorFunctionWrapHandler

from tablemanifest.exceptions import ValidationError
from tablemanifest.typedef import IcebergBaseModel, IcebergRootModel

DECIMAL_REGEX = re.compile(r"decimal\((\d+),\s*(\d+)\)")


class ParseNumberFromBrackets:
    """Reads the number out of a string like `fixed[16]` or `bucket[8]`."""

    regex: Pattern[str]
    prefix: str

    def __init__(self, prefix: str):
        self.prefix = prefix
        self.regex = re.compile(rf"{prefix}\[(\d+)\]")

    def match(self, str_repr: str) -> int:
        if matches := self.regex.search(str_repr):
            return int(matches.group(1))
        raise ValidationError(f"Could not match {str_repr}, expected format {self.prefix}[22]")


FIXED_PARSER = ParseNumberFromBrackets("fixed")


def _with_aliases(data: Dict[str, Any], **by_alias: Any) -> Dict[str, Any]:
    # Positional arguments fill the aliased keys unless the caller passed them by alias.
    for alias, value in by_alias.items():
        data.setdefault(alias, value)
    return data


def _primitive_from_string(type_str: str) -> PrimitiveType:
    if (primitive := _PRIMITIVE_TYPES.get(type_str)) is not None:
        return primitive()
    if type_str.startswith("fixed"):
        return FixedType(FIXED_PARSER.match(type_str))
    if type_str.startswith("decimal"):
        if matches := DECIMAL_REGEX.search(type_str):
            return DecimalType(int(matches.group(1)), int(matches.group(2)))
        raise ValidationError(f"Could not parse {type_str} into a DecimalType")
    raise ValueError(f"Unknown type: {type_str}")


class IcebergType(IcebergBaseModel):
    """Base of all types.

    Validating a string yields a primitive type, and validating a dict against the base
    class picks the nested type named by its `type` key. That is how `NestedField(1, "id", "long")`
    and the field types inside a schema JSON resolve.
    """

    @model_validator(mode="wrap")
    @classmethod
    def parse_type(cls, v: Any, handler: ValidatorFunctionWrapHandler) -> IcebergType:
        if isinstance(v, str):
            return _primitive_from_string(v)
        if isinstance(v, dict) and cls is IcebergType:
            kind = v.get("type")
            nested = _NESTED_TYPES.get(kind) if isinstance(kind, str) else None
            return (nested or NestedField)(**v)
        return handler(v)


class PrimitiveType(IcebergRootModel[str], IcebergType):
    """A type without children. Its string form is also its JSON form."""

    root: Any = Field()

    @model_serializer
    def ser_model(self) -> str:
        return str(self)

    def __str__(self) -> str:
        return self.root

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class FixedType(PrimitiveType):
    """A byte array of a fixed length.

    Example:
        >>> FixedType(8)
        FixedType(length=8)
        >>> FixedType(8) == FixedType(8)
        True
    """

    root: int = Field()

    def __init__(self, length: int) -> None:
        super().__init__(root=length)

    def __len__(self) -> int:
        return self.root

    def __str__(self) -> str:
        return f"fixed[{self.root}]"

    def __repr__(self) -> str:
        return f"FixedType(length={self.root})"


class DecimalType(PrimitiveType):
    """A fixed point decimal with a precision and a scale.

    Example:
        >>> str(DecimalType(32, 3))
        'decimal(32, 3)'
    """

    root: Tuple[int, int]

    def __init__(self, precision: int, scale: int) -> None:
        super().__init__(root=(precision, scale))

    @property
    def precision(self) -> int:
        return self.root[0]

    @property
    def scale(self) -> int:
        return self.root[1]

    def __str__(self) -> str:
        return f"decimal({self.precision}, {self.scale})"

    def __repr__(self) -> str:
        return f"DecimalType(precision={self.precision}, scale={self.scale})"


class NestedField(IcebergType):
    """A named and numbered field of a struct, or the element, key or value of a collection.

    Example:
        >>> str(NestedField(1, "foo", StringType(), required=False, doc="Just a field"))
        '1: foo: optional string (Just a field)'
    """

    field_id: int = Field(alias="id")
    name: str = Field()
    field_type: SerializeAsAny[IcebergType] = Field(alias="type")
    required: bool = Field(default=True)
    doc: Optional[str] = Field(default=None, repr=False)

    def __init__(
        self,
        field_id: Optional[int] = None,
        name: Optional[str] = None,
        field_type: Optional[IcebergType] = None,
        required: bool = True,
        doc: Optional[str] = None,
        **data: Any,
    ):
        super().__init__(**_with_aliases(data, id=field_id, name=name, type=field_type, required=required, doc=doc))

    @property
    def optional(self) -> bool:
        return not self.required

    def __str__(self) -> str:
        doc = f" ({self.doc})" if self.doc else ""
        return f"{self.field_id}: {self.name}: {'required' if self.required else 'optional'} {self.field_type}{doc}"


class StructType(IcebergType):
    """An ordered tuple of nested fields."""

    type: Literal["struct"] = Field(default="struct")
    fields: Tuple[NestedField, ...] = Field(default_factory=tuple)

    def __init__(self, *fields: NestedField, **data: Any):
        if fields:
            data["fields"] = fields
        super().__init__(**data)

    def field(self, field_id: int) -> Optional[NestedField]:
        return next((field for field in self.fields if field.field_id == field_id), None)

    def __len__(self) -> int:
        return len(self.fields)

    def __str__(self) -> str:
        return f"struct<{', '.join(map(str, self.fields))}>"

    def __repr__(self) -> str:
        return f"StructType(fields=({', '.join(map(repr, self.fields))},))"


class ListType(IcebergType):
    """A list whose element has its own field id.

    Example:
        >>> str(ListType(3, StringType(), element_required=False))
        'list<string>'
    """

    type: Literal["list"] = Field(default="list")
    element_id: int = Field(alias="element-id")
    element_type: SerializeAsAny[IcebergType] = Field(alias="element")
    element_required: bool = Field(alias="element-required", default=True)

    def __init__(
        self,
        element_id: Optional[int] = None,
        element_type: Optional[IcebergType] = None,
        element_required: bool = True,
        **data: Any,
    ):
        super().__init__(
            **_with_aliases(data, **{"element-id": element_id, "element": element_type, "element-required": element_required})
        )

    @property
    def element_field(self) -> NestedField:
        return NestedField(self.element_id, "element", self.element_type, self.element_required)

    def __str__(self) -> str:
        return f"list<{self.element_type}>"


class MapType(IcebergType):
    """A map from a required key to a value, each with its own field id.

    Example:
        >>> str(MapType(1, StringType(), 2, IntegerType(), False))
        'map<string, int>'
    """

    type: Literal["map"] = Field(default="map")
    key_id: int = Field(alias="key-id")
    key_type: SerializeAsAny[IcebergType] = Field(alias="key")
    value_id: int = Field(alias="value-id")
    value_type: SerializeAsAny[IcebergType] = Field(alias="value")
    value_required: bool = Field(alias="value-required", default=True)

    def __init__(
        self,
        key_id: Optional[int] = None,
        key_type: Optional[IcebergType] = None,
        value_id: Optional[int] = None,
        value_type: Optional[IcebergType] = None,
        value_required: bool = True,
        **data: Any,
    ):
        super().__init__(
            **_with_aliases(
                data,
                **{"key-id": key_id, "key": key_type, "value-id": value_id, "value": value_type, "value-required": value_required},
            )
        )

    @property
    def key_field(self) -> NestedField:
        return NestedField(self.key_id, "key", self.key_type, True)

    @property
    def value_field(self) -> NestedField:
        return NestedField(self.value_id, "value", self.value_type, self.value_required)

    def __str__(self) -> str:
        return f"map<{self.key_type}, {self.value_type}>"


class BooleanType(PrimitiveType):
    root: Literal["boolean"] = Field(default="boolean")


class IntegerType(PrimitiveType):
    """A signed 32-bit integer."""

    root: Literal["int"] = Field(default="int")


class LongType(PrimitiveType):
    """A signed 64-bit integer."""

    root: Literal["long"] = Field(default="long")


class FloatType(PrimitiveType):
    """A 32-bit IEEE 754 float."""

    root: Literal["float"] = Field(default="float")


class DoubleType(PrimitiveType):
    """A 64-bit IEEE 754 float."""

    root: Literal["double"] = Field(default="double")


class DateType(PrimitiveType):
    """A calendar date without a time zone, stored as days since the epoch."""

    root: Literal["date"] = Field(default="date")


class TimeType(PrimitiveType):
    """A time of day without a date, stored as microseconds since midnight."""

    root: Literal["time"] = Field(default="time")


class TimestampType(PrimitiveType):
    """A timestamp without a time zone, stored as microseconds since the epoch."""

    root: Literal["timestamp"] = Field(default="timestamp")


class TimestamptzType(PrimitiveType):
    """A timestamp in UTC, stored as microseconds since the epoch."""

    root: Literal["timestamptz"] = Field(default="timestamptz")


class StringType(PrimitiveType):
    root: Literal["string"] = Field(default="string")


class UUIDType(PrimitiveType):
    root: Literal["uuid"] = Field(default="uuid")


class BinaryType(PrimitiveType):
    """A byte array of any length."""

    root: Literal["binary"] = Field(default="binary")


_PRIMITIVE_TYPES: Dict[str, Callable[[], PrimitiveType]] = {
    "boolean": BooleanType,
    "int": IntegerType,
    "long": LongType,
    "float": FloatType,
    "double": DoubleType,
    "date": DateType,
    "time": TimeType,
    "timestamp": TimestampType,
    "timestamptz": TimestamptzType,
    "string": StringType,
    "uuid": UUIDType,
    "binary": BinaryType,
}

_NESTED_TYPES: Dict[str, Callable[..., IcebergType]] = {
    "struct": StructType,
    "list": ListType,
    "map": MapType,
}
