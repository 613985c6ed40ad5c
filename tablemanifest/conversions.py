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
"""Single-value binary serialization of primitive values.

This is the encoding of the partition summary bounds and of the lower and upper bounds
of a data file. Fixed width types are little-endian, strings are UTF-8, UUIDs are their
16 big-endian bytes and decimals the two's complement of their unscaled value.

Example:
    >>> to_bytes(IntegerType(), 34)
    b'"\\x00\\x00\\x00'
    >>> from_bytes(StringType(), b"foo")
    'foo'
"""
import uuid
from decimal import Decimal
from functools import singledispatch
from struct import Struct
from typing import Any, Dict, Type, Union

from tablemanifest.types import (
    BinaryType,
    BooleanType,
    DateType,
    DecimalType,
    DoubleType,
    FixedType,
    FloatType,
    IntegerType,
    LongType,
    PrimitiveType,
    StringType,
    TimestampType,
    TimestamptzType,
    TimeType,
    UUIDType,
)
from tablemanifest.utils.decimal import decimal_to_bytes, unscaled_to_decimal

_INT = Struct("<i")
_LONG = Struct("<q")

# Note that Python floats are doubles, so packing a FloatType rounds to single precision.
_FIXED_WIDTH: Dict[Type[PrimitiveType], Struct] = {
    BooleanType: Struct("<?"),
    IntegerType: _INT,
    DateType: _INT,
    LongType: _LONG,
    TimeType: _LONG,
    TimestampType: _LONG,
    TimestamptzType: _LONG,
    FloatType: Struct("<f"),
    DoubleType: Struct("<d"),
}


@singledispatch
def to_bytes(primitive_type: PrimitiveType, value: Union[bool, bytes, Decimal, float, int, str, uuid.UUID]) -> bytes:
    """Serializes a single value of `primitive_type`."""
    if (packer := _FIXED_WIDTH.get(type(primitive_type))) is not None:
        return packer.pack(value)
    raise TypeError(f"Cannot serialize value, type not supported: {primitive_type}")


@to_bytes.register(StringType)
def _(_: StringType, value: str) -> bytes:
    return value.encode("UTF-8")


@to_bytes.register(UUIDType)
def _(_: UUIDType, value: Union[uuid.UUID, bytes]) -> bytes:
    return value if isinstance(value, bytes) else value.bytes


@to_bytes.register(BinaryType)
@to_bytes.register(FixedType)
def _(_: PrimitiveType, value: bytes) -> bytes:
    return value


@to_bytes.register(DecimalType)
def _(primitive_type: DecimalType, value: Decimal) -> bytes:
    """Serializes a decimal that fits the precision and scale of the type.

    Raises:
        ValueError: When the scale differs from the type, or there are more digits than its precision.
    """
    _, digits, exponent = value.as_tuple()
    scale = abs(int(exponent))
    if scale != primitive_type.scale:
        raise ValueError(f"Cannot serialize value, scale of value does not match type {primitive_type}: {scale}")
    if len(digits) > primitive_type.precision:
        raise ValueError(
            f"Cannot serialize value, precision of value is greater than precision of type {primitive_type}: {len(digits)}"
        )
    return decimal_to_bytes(value)


@singledispatch
def from_bytes(primitive_type: PrimitiveType, b: bytes) -> Any:
    """Reads back a value written by `to_bytes`."""
    if (packer := _FIXED_WIDTH.get(type(primitive_type))) is not None:
        return packer.unpack(b)[0]
    raise TypeError(f"Cannot deserialize bytes, type {primitive_type} not supported: {b!r}")


@from_bytes.register(StringType)
def _(_: StringType, b: bytes) -> str:
    return bytes(b).decode("UTF-8")


@from_bytes.register(UUIDType)
def _(_: UUIDType, b: bytes) -> uuid.UUID:
    return uuid.UUID(bytes=bytes(b))


@from_bytes.register(BinaryType)
@from_bytes.register(FixedType)
def _(_: PrimitiveType, b: bytes) -> bytes:
    return b


@from_bytes.register(DecimalType)
def _(primitive_type: DecimalType, b: bytes) -> Decimal:
    return unscaled_to_decimal(int.from_bytes(b, "big", signed=True), primitive_type.scale)
