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
"""Partition transforms.

A partition spec stores each transform by its string form: `identity`, `bucket[16]`,
`truncate[4]`, `year`, `month`, `day`, `hour` or `void`. Manifests need two things from
a transform: the type it produces, which lays out the partition tuple and picks the
bound encoding, and the human string of a partition value, used in partition paths.
Unrecognized transform names are kept as `UnknownTransform` so the spec round-trips.
"""
import base64
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Type
from typing import Literal as LiteralType

from pydantic import Field

from tablemanifest.typedef import IcebergRootModel
from tablemanifest.types import (
    DateType,
    IcebergType,
    IntegerType,
    ParseNumberFromBrackets,
    StringType,
    TimestampType,
    TimestamptzType,
    TimeType,
)
from tablemanifest.utils import datetime

BUCKET = "bucket"
TRUNCATE = "truncate"

BUCKET_PARSER = ParseNumberFromBrackets(BUCKET)
TRUNCATE_PARSER = ParseNumberFromBrackets(TRUNCATE)


def parse_transform(v: Any) -> Any:
    """Turns the string form of a transform into a Transform, other values pass through."""
    if not isinstance(v, str):
        return v
    if v.startswith(f"{BUCKET}["):
        return BucketTransform(BUCKET_PARSER.match(v))
    if v.startswith(f"{TRUNCATE}["):
        return TruncateTransform(TRUNCATE_PARSER.match(v))
    if (transform := _TRANSFORMS_WITHOUT_ARGUMENTS.get(v)) is not None:
        return transform()
    return UnknownTransform(v)


def _base64(value: bytes) -> str:
    return base64.b64encode(value).decode("ISO-8859-1")


# Dates and times are stored as ordinals, identity partitions render them readable.
_ORDINAL_TO_HUMAN: Dict[Type[IcebergType], Callable[[int], str]] = {
    DateType: datetime.to_human_day,
    TimeType: datetime.to_human_time,
    TimestampType: datetime.to_human_timestamp,
    TimestamptzType: datetime.to_human_timestamptz,
}


class Transform(IcebergRootModel[str], ABC):
    """Derives a partition value from a source column.

    The root holds the string form, which is also the serialized form.
    """

    root: str = Field()

    @abstractmethod
    def result_type(self, source: IcebergType) -> IcebergType:
        """The type of the partition values produced from a `source` column."""

    def to_human_string(self, source: IcebergType, value: Any) -> str:
        """Renders a partition value for a partition path, `null` when it is absent."""
        if value is None:
            return "null"
        if isinstance(value, bytes):
            return _base64(value)
        return str(value)

    def __str__(self) -> str:
        return self.root


class IdentityTransform(Transform):
    """Uses the source value as the partition value."""

    root: LiteralType["identity"] = Field(default="identity")  # noqa: F821

    def result_type(self, source: IcebergType) -> IcebergType:
        return source

    def to_human_string(self, source: IcebergType, value: Any) -> str:
        render = _ORDINAL_TO_HUMAN.get(type(source))
        if render is not None and isinstance(value, int):
            return render(value)
        return super().to_human_string(source, value)

    def __repr__(self) -> str:
        return "IdentityTransform()"


class BucketTransform(Transform):
    """Hashes the source value into one of `num_buckets` buckets, the bucket number is the partition value."""

    def __init__(self, num_buckets: int, **data: Any) -> None:
        super().__init__(f"{BUCKET}[{num_buckets}]", **data)

    @property
    def num_buckets(self) -> int:
        return BUCKET_PARSER.match(self.root)

    def result_type(self, source: IcebergType) -> IcebergType:
        return IntegerType()

    def __repr__(self) -> str:
        return f"BucketTransform(num_buckets={self.num_buckets})"


class TruncateTransform(Transform):
    """Truncates numbers down to a multiple of `width`, and strings or binary to `width` characters or bytes."""

    def __init__(self, width: int, **data: Any) -> None:
        super().__init__(f"{TRUNCATE}[{width}]", **data)

    @property
    def width(self) -> int:
        return TRUNCATE_PARSER.match(self.root)

    def result_type(self, source: IcebergType) -> IcebergType:
        return source

    def __repr__(self) -> str:
        return f"TruncateTransform(width={self.width})"


class TimeTransform(Transform):
    """Reduces a date or a timestamp to an ordinal: years, months, days or hours since the epoch."""

    def result_type(self, source: IcebergType) -> IcebergType:
        return IntegerType()

    def to_human_string(self, source: IcebergType, value: Any) -> str:
        if value is None:
            return "null"
        return _ORDINAL_RENDERERS[self.root](value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class YearTransform(TimeTransform):
    """Years since 1970, rendered as `2023`."""

    root: LiteralType["year"] = Field(default="year")  # noqa: F821


class MonthTransform(TimeTransform):
    """Months since 1970-01, rendered as `2023-01`."""

    root: LiteralType["month"] = Field(default="month")  # noqa: F821


class DayTransform(TimeTransform):
    """Days since 1970-01-01, rendered as `2023-01-01`.

    The result is a date, so the partition tuple stores it the way a date column would be.
    """

    root: LiteralType["day"] = Field(default="day")  # noqa: F821

    def result_type(self, source: IcebergType) -> IcebergType:
        return DateType()


class HourTransform(TimeTransform):
    """Hours since 1970-01-01 00:00, rendered as `2023-01-01-10`."""

    root: LiteralType["hour"] = Field(default="hour")  # noqa: F821


class VoidTransform(Transform):
    """Drops the value, every partition value is null."""

    root: LiteralType["void"] = Field(default="void")  # noqa: F821

    def result_type(self, source: IcebergType) -> IcebergType:
        return source

    def to_human_string(self, source: IcebergType, value: Optional[Any]) -> str:
        return "null"

    def __repr__(self) -> str:
        return "VoidTransform()"


class UnknownTransform(Transform):
    """A transform this library does not know. Its values are treated as strings."""

    def __init__(self, transform: str, **data: Any) -> None:
        super().__init__(transform, **data)

    def result_type(self, source: IcebergType) -> IcebergType:
        return StringType()

    def __repr__(self) -> str:
        return f"UnknownTransform(transform={self.root!r})"


_ORDINAL_RENDERERS: Dict[str, Callable[[int], str]] = {
    "year": datetime.to_human_year,
    "month": datetime.to_human_month,
    "day": datetime.to_human_day,
    "hour": datetime.to_human_hour,
}

_TRANSFORMS_WITHOUT_ARGUMENTS: Dict[str, Callable[[], Transform]] = {
    "identity": IdentityTransform,
    "year": YearTransform,
    "month": MonthTransform,
    "day": DayTransform,
    "hour": HourTransform,
    "void": VoidTransform,
}
