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
"""Small shared types: frozen dictionaries, the pydantic base models and positional records."""
from __future__ import annotations

from abc import abstractmethod
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Generic,
    Optional,
    Protocol,
    TypeVar,
    Union,
    runtime_checkable,
)

from pydantic import BaseModel, ConfigDict, RootModel

if TYPE_CHECKING:
    from tablemanifest.types import StructType


class FrozenDict(Dict[Any, Any]):
    """A dictionary that refuses changes, safe to share as a default argument."""

    def __setitem__(self, key: Any, value: Any) -> None:
        raise AttributeError("FrozenDict does not support assignment")

    def update(self, *args: Any, **kwargs: Any) -> None:
        raise AttributeError("FrozenDict does not support .update()")


EMPTY_DICT = FrozenDict()

Properties = Dict[str, str]
RecursiveDict = Dict[str, Union[str, "RecursiveDict"]]


@runtime_checkable
class StructProtocol(Protocol):  # pragma: no cover
    """Anything that can be read and written by position, such as a partition tuple."""

    @abstractmethod
    def __getitem__(self, pos: int) -> Any:
        ...

    @abstractmethod
    def __setitem__(self, pos: int, value: Any) -> None:
        ...


class IcebergBaseModel(BaseModel):
    """Base of the frozen metadata models.

    Metadata keys contain dashes, so models are dumped by alias. Fields that are None,
    such as a field without a doc, are left out of the dump.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def model_dump(self, exclude_none: bool = True, by_alias: bool = True, **kwargs: Any) -> Dict[str, Any]:
        return super().model_dump(exclude_none=exclude_none, by_alias=by_alias, **kwargs)

    def model_dump_json(self, exclude_none: bool = True, by_alias: bool = True, **kwargs: Any) -> str:
        return super().model_dump_json(exclude_none=exclude_none, by_alias=by_alias, **kwargs)


T = TypeVar("T")


class IcebergRootModel(RootModel[T], Generic[T]):
    """A frozen root model, usable as a dictionary key."""

    model_config = ConfigDict(frozen=True)


class Record(StructProtocol):
    """A positional record, where every position maps onto a named attribute.

    Records are what the Avro layer produces and consumes. Passing a struct lines the
    positions up with its fields; keyword arguments name the positions in order.
    """

    _position_to_field_name: Dict[int, str]

    def __init__(self, *data: Any, struct: Optional[StructType] = None, **named_data: Any) -> None:
        if struct is not None:
            names = [field.name for field in struct.fields]
        elif named_data:
            names = list(named_data)
        else:
            names = [f"field{pos + 1}" for pos in range(len(data))]
        self._position_to_field_name = dict(enumerate(names))

        for pos, value in enumerate(data):
            self[pos] = value
        for name, value in named_data.items():
            setattr(self, name, value)

    def __setitem__(self, pos: int, value: Any) -> None:
        setattr(self, self._position_to_field_name[pos], value)

    def __getitem__(self, pos: int) -> Any:
        return getattr(self, self._position_to_field_name[pos])

    def __len__(self) -> int:
        return len(self._position_to_field_name)

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Record) and self.__dict__ == other.__dict__

    def __repr__(self) -> str:
        values = ", ".join(f"{name}={value!r}" for name, value in self.__dict__.items() if not name.startswith("_"))
        return f"{type(self).__name__}[{values}]"
