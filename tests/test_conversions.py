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
"""Tests for the single-value binary encoding of bounds.

The expected bytes follow the table format encoding: little-endian for numbers, UTF-8 for
strings, big-endian for uuids and the unscaled value of decimals.
"""
import uuid
from decimal import Decimal
from typing import Any

import pytest

from tablemanifest import conversions
from tablemanifest.types import (
    BinaryType,
    BooleanType,
    DateType,
    DecimalType,
    DoubleType,
    FixedType,
    FloatType,
    IntegerType,
    ListType,
    LongType,
    PrimitiveType,
    StringType,
    TimestampType,
    TimestamptzType,
    TimeType,
    UUIDType,
)


@pytest.mark.parametrize(
    "primitive_type, value, expected_bytes",
    [
        (BooleanType(), True, b"\x01"),
        (BooleanType(), False, b"\x00"),
        (IntegerType(), 34, b"\x22\x00\x00\x00"),
        (IntegerType(), -1, b"\xff\xff\xff\xff"),
        (DateType(), 17486, b"\x4e\x44\x00\x00"),
        (LongType(), 34, b"\x22\x00\x00\x00\x00\x00\x00\x00"),
        (TimeType(), 100000000000, b"\x00\xe8vH\x17\x00\x00\x00"),
        (TimestampType(), 400000, b"\x80\x1a\x06\x00\x00\x00\x00\x00"),
        (TimestamptzType(), 100000000000, b"\x00\xe8vH\x17\x00\x00\x00"),
        (FloatType(), 1.0, b"\x00\x00\x80\x3f"),
        (DoubleType(), 1.0, b"\x00\x00\x00\x00\x00\x00\xf0\x3f"),
        (StringType(), "iceberg", b"iceberg"),
        (StringType(), "", b""),
        (BinaryType(), b"\x01\x02", b"\x01\x02"),
        (FixedType(3), b"foo", b"foo"),
        (
            UUIDType(),
            uuid.UUID("f79c3e09-677c-4bbd-a479-3f349cb785e7"),
            b"\xf7\x9c\x3e\x09\x67\x7c\x4b\xbd\xa4\x79\x3f\x34\x9c\xb7\x85\xe7",
        ),
        (DecimalType(5, 2), Decimal("123.45"), b"\x30\x39"),
        (DecimalType(5, 2), Decimal("-123.45"), b"\xcf\xc7"),
        (DecimalType(7, 4), Decimal("0.0000"), b"\x00"),
        (DecimalType(7, 4), Decimal("-123.4567"), b"\xed)y"),
    ],
)
def test_round_trip_conversion(primitive_type: PrimitiveType, value: Any, expected_bytes: bytes) -> None:
    value_bytes = conversions.to_bytes(primitive_type, value)
    assert value_bytes == expected_bytes
    assert conversions.from_bytes(primitive_type, value_bytes) == value


def test_uuid_from_raw_bytes() -> None:
    raw = b"\xf7\x9c\x3e\x09\x67\x7c\x4b\xbd\xa4\x79\x3f\x34\x9c\xb7\x85\xe7"
    assert conversions.to_bytes(UUIDType(), raw) == raw


def test_float_imprecision_is_kept() -> None:
    value_bytes = conversions.to_bytes(FloatType(), 0.1)
    assert conversions.from_bytes(FloatType(), value_bytes) == pytest.approx(0.1)
    assert conversions.from_bytes(FloatType(), value_bytes) != 0.1


def test_decimal_with_wrong_scale() -> None:
    with pytest.raises(ValueError, match="Cannot serialize value, scale of value does not match type decimal\\(5, 2\\): 3"):
        conversions.to_bytes(DecimalType(5, 2), Decimal("12.345"))


def test_decimal_with_too_many_digits() -> None:
    with pytest.raises(ValueError, match="precision of value is greater than precision of type decimal\\(4, 2\\): 5"):
        conversions.to_bytes(DecimalType(4, 2), Decimal("123.45"))


def test_nested_type_is_not_serializable() -> None:
    with pytest.raises(TypeError, match="Cannot serialize value, type not supported: list<string>"):
        conversions.to_bytes(ListType(1, StringType()), ["a"])  # type: ignore
    with pytest.raises(TypeError, match="Cannot deserialize bytes"):
        conversions.from_bytes(ListType(1, StringType()), b"a")  # type: ignore
