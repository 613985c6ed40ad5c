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
"""Conversion between table schemas and the Avro schemas of manifest files.

Avro has no field ids, so every converted field carries a `field-id` attribute, lists an
`element-id` and maps a `key-id` and `value-id`. Optional values are unions with null.
"""
from __future__ import annotations

from functools import singledispatch
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Tuple,
    Type,
    Union,
)

from tablemanifest.schema import Schema
from tablemanifest.types import (
    BinaryType,
    BooleanType,
    DateType,
    DecimalType,
    DoubleType,
    FixedType,
    FloatType,
    IcebergType,
    IntegerType,
    ListType,
    LongType,
    MapType,
    NestedField,
    PrimitiveType,
    StringType,
    StructType,
    TimestampType,
    TimestamptzType,
    TimeType,
    UUIDType,
)
from tablemanifest.utils.decimal import decimal_required_bytes

AvroType = Union[str, Dict[str, Any], List[Any]]

_FROM_AVRO_PRIMITIVE: Dict[str, Callable[[], PrimitiveType]] = {
    "boolean": BooleanType,
    "bytes": BinaryType,
    "double": DoubleType,
    "float": FloatType,
    "int": IntegerType,
    "long": LongType,
    "string": StringType,
    "enum": StringType,
}

_FROM_AVRO_LOGICAL: Dict[Tuple[str, str], Callable[[], PrimitiveType]] = {
    ("date", "int"): DateType,
    ("time-millis", "int"): TimeType,
    ("time-micros", "long"): TimeType,
    ("timestamp-millis", "long"): TimestampType,
    ("timestamp-micros", "long"): TimestampType,
    ("uuid", "fixed"): UUIDType,
    ("uuid", "string"): UUIDType,
}

_TO_AVRO: Dict[Type[PrimitiveType], AvroType] = {
    BooleanType: "boolean",
    IntegerType: "int",
    LongType: "long",
    FloatType: "float",
    DoubleType: "double",
    StringType: "string",
    BinaryType: "bytes",
    DateType: {"type": "int", "logicalType": "date"},
    TimeType: {"type": "long", "logicalType": "time-micros"},
    TimestampType: {"type": "long", "logicalType": "timestamp-micros", "adjust-to-utc": False},
    TimestamptzType: {"type": "long", "logicalType": "timestamp-micros", "adjust-to-utc": True},
}


class AvroSchemaConversion:
    def avro_to_iceberg(self, avro_schema: Dict[str, Any]) -> Schema:
        """Converts an Avro record schema, as found in the header of a manifest, into a table schema.

        Example:
            >>> AvroSchemaConversion().avro_to_iceberg({
            ...     "type": "record",
            ...     "name": "manifest_entry",
            ...     "fields": [
            ...         {"name": "status", "type": "int", "field-id": 0},
            ...         {"name": "snapshot_id", "type": ["null", "long"], "default": None, "field-id": 1},
            ...     ]
            ... }) == Schema(
            ...     NestedField(field_id=0, name="status", field_type=IntegerType(), required=True),
            ...     NestedField(field_id=1, name="snapshot_id", field_type=LongType(), required=False),
            ... )
            True

        Raises:
            ValueError: When a field lacks its field id, or a logical type is unknown.
            TypeError: When a type has no table equivalent, such as a union of two non-null types.
        """
        return Schema(*[_field_from_avro(field) for field in avro_schema["fields"]])

    def iceberg_to_avro(self, schema: Union[Schema, StructType], schema_name: str = "table") -> Dict[str, Any]:
        """Converts a table schema into an Avro record schema named `schema_name`.

        Nested records are named after the field id of the field that holds them (`r102`), and maps
        with non-string keys are written as arrays of key/value records (`k117_v118`) annotated with
        the `map` logical type. Optional fields are unions with null that default to null.
        """
        return {"type": "record", "name": schema_name, "fields": [_field_to_avro(field) for field in schema.fields]}


def _split_optional(avro_type: AvroType) -> Tuple[AvroType, bool]:
    """Unwraps `["null", type]` into the type and whether the value is required."""
    if not isinstance(avro_type, list):
        return avro_type, True
    if len(avro_type) > 2:
        raise TypeError(f"Non-optional types aren't part of the table format: {avro_type}")
    # The default of an optional field is null, and a union default must match its first branch
    if avro_type[0] != "null":
        raise TypeError("Only null-unions are supported")
    return avro_type[-1], False


def _field_from_avro(field: Dict[str, Any]) -> NestedField:
    if "field-id" not in field:
        raise ValueError(f"Cannot convert field, missing field-id: {field}")
    avro_type, required = _split_optional(field["type"])
    return NestedField(field["field-id"], field["name"], _type_from_avro(avro_type), required, doc=field.get("doc"))


def _type_from_avro(avro_type: AvroType) -> IcebergType:
    if isinstance(avro_type, str) and avro_type in _FROM_AVRO_PRIMITIVE:
        return _FROM_AVRO_PRIMITIVE[avro_type]()
    if not isinstance(avro_type, dict):
        raise TypeError(f"Unknown type: {avro_type}")
    if "logicalType" in avro_type:
        return _logical_type_from_avro(avro_type)

    kind = avro_type["type"]
    if isinstance(kind, dict):
        return _type_from_avro(kind)
    if kind == "record":
        return StructType(*[_field_from_avro(field) for field in avro_type["fields"]])
    if kind == "array":
        if "element-id" not in avro_type:
            raise ValueError(f"Cannot convert array-type, missing element-id: {avro_type}")
        element_type, element_required = _split_optional(avro_type["items"])
        return ListType(avro_type["element-id"], _type_from_avro(element_type), element_required)
    if kind == "map":
        value_type, value_required = _split_optional(avro_type["values"])
        # Avro map keys are always strings
        return MapType(avro_type["key-id"], StringType(), avro_type["value-id"], _type_from_avro(value_type), value_required)
    if kind == "fixed":
        return FixedType(avro_type["size"])
    if kind in _FROM_AVRO_PRIMITIVE:
        return _FROM_AVRO_PRIMITIVE[kind]()
    raise TypeError(f"Unknown type: {avro_type}")


def _logical_type_from_avro(avro_type: Dict[str, Any]) -> IcebergType:
    logical_type, physical_type = avro_type["logicalType"], avro_type["type"]
    if logical_type == "decimal":
        return DecimalType(avro_type["precision"], avro_type.get("scale", 0))
    if logical_type == "map":
        # A map without string keys is an array of key/value records
        fields = {field["name"]: _field_from_avro(field) for field in avro_type["items"]["fields"]}
        if set(fields) != {"key", "value"}:
            raise ValueError(f"Invalid key-value pair schema: {avro_type['items']}")
        key, value = fields["key"], fields["value"]
        return MapType(key.field_id, key.field_type, value.field_id, value.field_type, value.required)
    if logical_type in {"timestamp-micros", "timestamp-millis"} and avro_type.get("adjust-to-utc") is True:
        return TimestamptzType()
    if (logical_type, physical_type) in _FROM_AVRO_LOGICAL:
        return _FROM_AVRO_LOGICAL[(logical_type, physical_type)]()
    raise ValueError(f"Unknown logical/physical type combination: {avro_type}")


def _optional(avro_type: AvroType, required: bool) -> AvroType:
    return avro_type if required else ["null", avro_type]


def _field_to_avro(field: NestedField) -> Dict[str, Any]:
    avro_field: Dict[str, Any] = {
        "name": field.name,
        "field-id": field.field_id,
        "type": _optional(_type_to_avro(field.field_type, field.field_id), field.required),
    }
    if field.optional:
        avro_field["default"] = None
    if field.doc is not None:
        avro_field["doc"] = field.doc
    return avro_field


@singledispatch
def _type_to_avro(iceberg_type: IcebergType, field_id: int) -> AvroType:
    """Converts the type of the field `field_id`. Avro names must be unique, so named types embed the id."""
    raise TypeError(f"Cannot convert to Avro: {iceberg_type}")


@_type_to_avro.register(StructType)
def _(struct: StructType, field_id: int) -> AvroType:
    return {"type": "record", "name": f"r{field_id}", "fields": [_field_to_avro(field) for field in struct.fields]}


@_type_to_avro.register(ListType)
def _(list_type: ListType, _: int) -> AvroType:
    return {
        "type": "array",
        "element-id": list_type.element_id,
        "items": _optional(_type_to_avro(list_type.element_type, list_type.element_id), list_type.element_required),
    }


@_type_to_avro.register(MapType)
def _(map_type: MapType, _: int) -> AvroType:
    values = _optional(_type_to_avro(map_type.value_type, map_type.value_id), map_type.value_required)
    if isinstance(map_type.key_type, StringType):
        return {"type": "map", "key-id": map_type.key_id, "value-id": map_type.value_id, "values": values}
    return {
        "type": "array",
        "logicalType": "map",
        "items": {
            "type": "record",
            "name": f"k{map_type.key_id}_v{map_type.value_id}",
            "fields": [
                {"name": "key", "type": _type_to_avro(map_type.key_type, map_type.key_id), "field-id": map_type.key_id},
                {"name": "value", "type": values, "field-id": map_type.value_id},
            ],
        },
    }


@_type_to_avro.register(PrimitiveType)
def _(primitive: PrimitiveType, _: int) -> AvroType:
    if (avro_type := _TO_AVRO.get(type(primitive))) is None:
        raise TypeError(f"Cannot convert to Avro: {primitive}")
    return dict(avro_type) if isinstance(avro_type, dict) else avro_type


@_type_to_avro.register(UUIDType)
def _(_: UUIDType, field_id: int) -> AvroType:
    return {"type": "fixed", "size": 16, "logicalType": "uuid", "name": f"uuid_fixed_{field_id}"}


@_type_to_avro.register(FixedType)
def _(fixed: FixedType, field_id: int) -> AvroType:
    return {"type": "fixed", "size": len(fixed), "name": f"fixed_{len(fixed)}_{field_id}"}


@_type_to_avro.register(DecimalType)
def _(decimal: DecimalType, field_id: int) -> AvroType:
    return {
        "type": "fixed",
        "size": decimal_required_bytes(decimal.precision),
        "logicalType": "decimal",
        "precision": decimal.precision,
        "scale": decimal.scale,
        "name": f"decimal_{decimal.precision}_{decimal.scale}_{field_id}",
    }
