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
"""
Manifests: the Avro files that track, for a snapshot, which data files were added, kept or removed.

A manifest is written by a ManifestWriter, which is created for one partition spec and one
snapshot. Each entry carries a status and the data file it applies to, while the writer counts
files and rows per status and rolls up the bounds of the partition values. Once the writer is
closed it produces a ManifestFile, the descriptor that is stored in the snapshot.

Sequence numbers are not known while writing and are written as UNASSIGNED_SEQ. The same goes
for the snapshot id of new manifests, which is left empty and inherited from the descriptor when
the entries are read back.
"""
from __future__ import annotations

import json
import logging
import math
from abc import ABC, abstractmethod
from enum import Enum
from types import TracebackType
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    Iterator,
    List,
    Optional,
    Protocol,
    Tuple,
    Type,
)

from pydantic import ConfigDict, Field

from tablemanifest.avro.file import AvroFile, AvroOutputFile
from tablemanifest.conversions import to_bytes
from tablemanifest.exceptions import (
    InvalidEntryStatusError,
    ManifestIOError,
    ManifestReaderStateError,
    ManifestWriterStateError,
    UnsupportedFormatVersionError,
)
from tablemanifest.io import FileIO, InputFile, OutputFile
from tablemanifest.metrics import Metrics
from tablemanifest.partitioning import INITIAL_PARTITION_SPEC_ID, PartitionSpec, partition_spec_from_json
from tablemanifest.schema import Schema
from tablemanifest.typedef import IcebergBaseModel, Record, StructProtocol
from tablemanifest.types import (
    BinaryType,
    IntegerType,
    ListType,
    LongType,
    MapType,
    NestedField,
    PrimitiveType,
    StringType,
    StructType,
)
from tablemanifest.utils.config import AVRO_CODEC, FORMAT_VERSION, Config

logger = logging.getLogger(__name__)

UNASSIGNED_SEQ = -1
DEFAULT_BLOCK_SIZE = 67108864  # 64 * 1024 * 1024


class ManifestEntryStatus(int, Enum):
    EXISTING = 0
    ADDED = 1
    DELETED = 2

    def __repr__(self) -> str:
        """Returns the string representation of the ManifestEntryStatus class."""
        return f"ManifestEntryStatus.{self.name}"


class FileFormat(str, Enum):
    AVRO = "AVRO"
    PARQUET = "PARQUET"
    ORC = "ORC"

    def __repr__(self) -> str:
        """Returns the string representation of the FileFormat class."""
        return f"FileFormat.{self.name}"


DATA_FILE_TYPE = StructType(
    NestedField(field_id=100, name="file_path", field_type=StringType(), required=True, doc="Location URI with FS scheme"),
    NestedField(
        field_id=101,
        name="file_format",
        field_type=StringType(),
        required=True,
        doc="File format name: avro, orc, or parquet",
    ),
    NestedField(
        field_id=102,
        name="partition",
        field_type=StructType(),
        required=True,
        doc="Partition data tuple, schema based on the partition spec",
    ),
    NestedField(field_id=103, name="record_count", field_type=LongType(), required=True, doc="Number of records in the file"),
    NestedField(field_id=104, name="file_size_in_bytes", field_type=LongType(), required=True, doc="Total file size in bytes"),
    NestedField(
        field_id=105,
        name="block_size_in_bytes",
        field_type=LongType(),
        required=True,
        doc="Deprecated. Always write a default in v1.",
    ),
    NestedField(
        field_id=108,
        name="column_sizes",
        field_type=MapType(key_id=117, key_type=IntegerType(), value_id=118, value_type=LongType()),
        required=False,
        doc="Map of column id to total size on disk",
    ),
    NestedField(
        field_id=109,
        name="value_counts",
        field_type=MapType(key_id=119, key_type=IntegerType(), value_id=120, value_type=LongType()),
        required=False,
        doc="Map of column id to total count, including null and NaN",
    ),
    NestedField(
        field_id=110,
        name="null_value_counts",
        field_type=MapType(key_id=121, key_type=IntegerType(), value_id=122, value_type=LongType()),
        required=False,
        doc="Map of column id to null value count",
    ),
    NestedField(
        field_id=137,
        name="nan_value_counts",
        field_type=MapType(key_id=138, key_type=IntegerType(), value_id=139, value_type=LongType()),
        required=False,
        doc="Map of column id to number of NaN values in the column",
    ),
    NestedField(
        field_id=125,
        name="lower_bounds",
        field_type=MapType(key_id=126, key_type=IntegerType(), value_id=127, value_type=BinaryType()),
        required=False,
        doc="Map of column id to lower bound",
    ),
    NestedField(
        field_id=128,
        name="upper_bounds",
        field_type=MapType(key_id=129, key_type=IntegerType(), value_id=130, value_type=BinaryType()),
        required=False,
        doc="Map of column id to upper bound",
    ),
    NestedField(field_id=131, name="key_metadata", field_type=BinaryType(), required=False, doc="Encryption key metadata blob"),
    NestedField(
        field_id=132,
        name="split_offsets",
        field_type=ListType(element_id=133, element_type=LongType(), element_required=True),
        required=False,
        doc="Splittable offsets",
    ),
    NestedField(field_id=140, name="sort_order_id", field_type=IntegerType(), required=False, doc="Sort order ID"),
)


def data_file_with_partition(partition_type: StructType) -> StructType:
    """Returns the data file struct with the partition tuple typed after a partition spec."""
    return StructType(
        *[
            NestedField(
                field_id=102,
                name="partition",
                field_type=partition_type,
                required=True,
                doc="Partition data tuple, schema based on the partition spec",
            )
            if field.field_id == 102
            else field
            for field in DATA_FILE_TYPE.fields
        ]
    )


class DataFile(Record):
    """A physical data file together with its partition tuple and column statistics.

    Data files are compared and hashed by their path.
    """

    file_path: str
    file_format: FileFormat
    partition: Record
    record_count: int
    file_size_in_bytes: int
    block_size_in_bytes: int
    column_sizes: Optional[Dict[int, int]]
    value_counts: Optional[Dict[int, int]]
    null_value_counts: Optional[Dict[int, int]]
    nan_value_counts: Optional[Dict[int, int]]
    lower_bounds: Optional[Dict[int, bytes]]
    upper_bounds: Optional[Dict[int, bytes]]
    key_metadata: Optional[bytes]
    split_offsets: Optional[List[int]]
    sort_order_id: Optional[int]

    def __setattr__(self, name: str, value: Any) -> None:
        """Assigns a key/value to a DataFile."""
        # The file_format is written as a string, so we need to cast it to the Enum
        if name == "file_format" and value is not None:
            value = FileFormat(value)
        super().__setattr__(name, value)

    def __init__(self, *data: Any, **named_data: Any) -> None:
        super().__init__(*data, **{"struct": DATA_FILE_TYPE, **named_data})
        for name in self._position_to_field_name.values():
            if name not in self.__dict__:
                self.__setattr__(name, None)
        if self.partition is None:
            self.partition = Record()
        if self.block_size_in_bytes is None:
            self.block_size_in_bytes = DEFAULT_BLOCK_SIZE

    def __hash__(self) -> int:
        """Returns the hash of the file path."""
        return hash(self.file_path)

    def __eq__(self, other: Any) -> bool:
        """Compares the datafile with another object.

        If it is a datafile, it will compare based on the file_path.
        """
        return self.file_path == other.file_path if isinstance(other, DataFile) else False


def manifest_entry_schema(partition_type: StructType) -> Schema:
    """Returns the schema of the entries of a manifest that is written for the given partition type."""
    return Schema(
        NestedField(0, "status", IntegerType(), required=True),
        NestedField(1, "snapshot_id", LongType(), required=False),
        NestedField(3, "sequence_number", LongType(), required=False),
        NestedField(2, "data_file", data_file_with_partition(partition_type), required=True),
    )


MANIFEST_ENTRY_SCHEMA = manifest_entry_schema(StructType())

MANIFEST_ENTRY_SCHEMA_STRUCT = MANIFEST_ENTRY_SCHEMA.as_struct()


class ManifestEntry(Record):
    status: ManifestEntryStatus
    snapshot_id: Optional[int]
    sequence_number: int
    data_file: DataFile

    def __setattr__(self, name: str, value: Any) -> None:
        """Assigns a key/value to a ManifestEntry."""
        if name == "status" and value is not None:
            value = ManifestEntryStatus(value)
        super().__setattr__(name, value)

    def __init__(self, *data: Any, **named_data: Any) -> None:
        super().__init__(*data, **{"struct": MANIFEST_ENTRY_SCHEMA_STRUCT, **named_data})
        if self.__dict__.get("snapshot_id") is None:
            self.snapshot_id = None
        # Manifests written without a sequence number read back as unassigned
        if self.__dict__.get("sequence_number") is None:
            self.sequence_number = UNASSIGNED_SEQ


class PartitionFieldSummary(IcebergBaseModel):
    """The roll-up of one partition field over all the entries of a manifest.

    The bounds are the single-value binary encoding of the partition field's result type.
    """

    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    contains_null: bool = Field(alias="contains-null")
    contains_nan: Optional[bool] = Field(alias="contains-nan", default=None)
    lower_bound: Optional[bytes] = Field(alias="lower-bound", default=None)
    upper_bound: Optional[bytes] = Field(alias="upper-bound", default=None)


class PartitionFieldStats:
    _type: PrimitiveType
    _contains_null: bool
    _contains_nan: bool
    _min: Optional[Any]
    _max: Optional[Any]

    def __init__(self, iceberg_type: PrimitiveType) -> None:
        self._type = iceberg_type
        self._contains_null = False
        self._contains_nan = False
        self._min = None
        self._max = None

    def to_summary(self) -> PartitionFieldSummary:
        return PartitionFieldSummary(
            contains_null=self._contains_null,
            contains_nan=self._contains_nan,
            lower_bound=to_bytes(self._type, self._min) if self._min is not None else None,
            upper_bound=to_bytes(self._type, self._max) if self._max is not None else None,
        )

    def update(self, value: Any) -> None:
        if value is None:
            self._contains_null = True
        elif isinstance(value, float) and math.isnan(value):
            self._contains_nan = True
        else:
            if self._min is None:
                self._min = value
                self._max = value
            else:
                self._max = max(self._max, value)
                self._min = min(self._min, value)


class PartitionSummary:
    """Rolls up the partition tuples of the entries of one manifest, one PartitionFieldStats per partition field.

    Raises:
        ValueError: When a partition field does not have a primitive result type.
    """

    _stats: List[PartitionFieldStats]

    def __init__(self, spec: PartitionSpec, schema: Schema) -> None:
        self._stats = []
        for field in spec.partition_type(schema).fields:
            if not isinstance(field.field_type, PrimitiveType):
                raise ValueError(f"Expected a primitive type for the partition field, got {field.field_type}")
            self._stats.append(PartitionFieldStats(field.field_type))

    def update(self, partition: StructProtocol) -> PartitionSummary:
        for pos, stats in enumerate(self._stats):
            stats.update(partition[pos])
        return self

    def summaries(self) -> List[PartitionFieldSummary]:
        return [stats.to_summary() for stats in self._stats]


class ManifestFile(IcebergBaseModel):
    """The descriptor of a written manifest, as it is stored in a snapshot.

    Example:
        >>> manifest = ManifestFile(manifest_path="s3://bucket/m0.avro", manifest_length=1024, partition_spec_id=0)
        >>> manifest.sequence_number
        -1
    """

    manifest_path: str = Field(alias="manifest-path")
    manifest_length: int = Field(alias="manifest-length")
    partition_spec_id: int = Field(alias="partition-spec-id")
    sequence_number: int = Field(alias="sequence-number", default=UNASSIGNED_SEQ)
    min_sequence_number: int = Field(alias="min-sequence-number", default=UNASSIGNED_SEQ)
    added_snapshot_id: Optional[int] = Field(alias="added-snapshot-id", default=None)
    added_files_count: int = Field(alias="added-files-count", default=0)
    added_rows_count: int = Field(alias="added-rows-count", default=0)
    existing_files_count: int = Field(alias="existing-files-count", default=0)
    existing_rows_count: int = Field(alias="existing-rows-count", default=0)
    deleted_files_count: int = Field(alias="deleted-files-count", default=0)
    deleted_rows_count: int = Field(alias="deleted-rows-count", default=0)
    partitions: Tuple[PartitionFieldSummary, ...] = Field(default_factory=tuple)

    def has_added_files(self) -> bool:
        return self.added_files_count > 0

    def has_existing_files(self) -> bool:
        return self.existing_files_count > 0

    def has_deleted_files(self) -> bool:
        return self.deleted_files_count > 0

    def fetch_manifest_entry(self, io: FileIO, discard_deleted: bool = True) -> List[ManifestEntry]:
        """
        Reads the manifest entries from the manifest file.

        Args:
            io: The FileIO to fetch the file.
            discard_deleted: Filter on live entries.

        Returns:
            A list of manifest entries, with the snapshot id inherited from this manifest.
        """
        with ManifestReader(io.new_input(self.manifest_path)) as reader:
            return [
                _inherit_snapshot_id(entry, self)
                for entry in reader.entries()
                if not discard_deleted or entry.status != ManifestEntryStatus.DELETED
            ]


def _inherit_snapshot_id(entry: ManifestEntry, manifest: ManifestFile) -> ManifestEntry:
    # Entries of an appended manifest are written before the snapshot id is known
    if entry.snapshot_id is None:
        entry.snapshot_id = manifest.added_snapshot_id
    return entry


class ManifestReader:
    """Reads the entries of a manifest, once.

    The schema and the partition spec are taken from the file metadata. The spec can also be
    looked up by id, for example from the table metadata, by passing `spec_lookup`.

    Example:
        >>> with ManifestReader(io.new_input(location)) as reader:  # doctest: +SKIP
        ...     for entry in reader.entries():
        ...         print(entry.status, entry.data_file.file_path)
    """

    input_file: InputFile
    schema: Schema
    spec: PartitionSpec
    format_version: int

    def __init__(self, input_file: InputFile, spec_lookup: Optional[Callable[[int], PartitionSpec]] = None) -> None:
        self.input_file = input_file
        self._spec_lookup = spec_lookup
        self._avro_file: Optional[AvroFile[ManifestEntry]] = None
        self._consumed = False

    def __enter__(self) -> ManifestReader:
        """Opens the manifest and reads the file metadata."""
        avro_file = AvroFile[ManifestEntry](
            self.input_file,
            read_types={-1: ManifestEntry, 2: DataFile},
            read_enums={0: ManifestEntryStatus},
        )
        try:
            avro_file.__enter__()
        except (OSError, EOFError, ValueError) as e:
            raise ManifestIOError(
                f"Failed to open manifest: {self.input_file.location}", location=self.input_file.location, operation="open"
            ) from e

        try:
            metadata = avro_file.metadata
            self.schema = Schema(**json.loads(metadata["schema"]))
            spec_id = int(metadata.get("partition-spec-id", INITIAL_PARTITION_SPEC_ID))
            if self._spec_lookup is not None:
                self.spec = self._spec_lookup(spec_id)
            else:
                self.spec = partition_spec_from_json(metadata.get("partition-spec", "[]"), spec_id)
            self.format_version = int(metadata.get(FORMAT_VERSION, "1"))
        except (KeyError, ValueError) as e:
            avro_file.__exit__(None, None, None)
            raise ManifestIOError(
                f"Invalid manifest metadata: {self.input_file.location}", location=self.input_file.location, operation="open"
            ) from e
        except BaseException:
            avro_file.__exit__(None, None, None)
            raise

        self._avro_file = avro_file
        return self

    def __exit__(
        self, exctype: Optional[Type[BaseException]], excinst: Optional[BaseException], exctb: Optional[TracebackType]
    ) -> None:
        """Closes the manifest."""
        if self._avro_file is not None:
            self._avro_file.__exit__(exctype, excinst, exctb)
            self._avro_file = None

    def partition_spec(self) -> PartitionSpec:
        return self.spec

    def entries(self) -> Iterator[ManifestEntry]:
        """Returns a lazy iterator over the entries, which can only be consumed once.

        Raises:
            ManifestReaderStateError: When the reader is not open, or the entries were already requested.
        """
        if self._avro_file is None:
            raise ManifestReaderStateError(f"Cannot read entries, manifest is not open: {self.input_file.location}")
        if self._consumed:
            raise ManifestReaderStateError(f"Entries of the manifest can only be read once: {self.input_file.location}")
        self._consumed = True
        return self._read_entries(self._avro_file)

    def _read_entries(self, avro_file: AvroFile[ManifestEntry]) -> Iterator[ManifestEntry]:
        try:
            yield from avro_file
        except (OSError, EOFError, ValueError) as e:
            raise ManifestIOError(
                f"Failed to read manifest: {self.input_file.location}", location=self.input_file.location, operation="read"
            ) from e


def read_manifest(input_file: InputFile) -> Iterator[ManifestEntry]:
    """
    Reads the entries from a manifest.

    Args:
        input_file: The input file where the stream can be read from.

    Returns:
        An iterator of the ManifestEntries in the manifest.
    """
    with ManifestReader(input_file) as reader:
        yield from reader.entries()


class ManifestWriter(ABC):
    """Writes the entries of a single manifest, and builds its descriptor once closed.

    The underlying Avro file is created right away, in overwrite mode. Writing to a closed
    writer raises a ManifestWriterStateError, and so does asking for the descriptor before
    the writer is closed.
    """

    closed: bool
    _spec: PartitionSpec
    _schema: Schema
    _output_file: OutputFile
    _writer: AvroOutputFile[ManifestEntry]
    _snapshot_id: Optional[int]
    _meta: Dict[str, str]
    _added_files: int
    _added_rows: int
    _existing_files: int
    _existing_rows: int
    _deleted_files: int
    _deleted_rows: int

    def __init__(
        self,
        spec: PartitionSpec,
        schema: Schema,
        output_file: OutputFile,
        snapshot_id: Optional[int],
        meta: Dict[str, str],
        codec: Optional[str] = None,
    ):
        self.closed = False
        self._closed_cleanly = False
        self._spec = spec
        self._schema = schema
        self._output_file = output_file
        self._snapshot_id = snapshot_id
        self._meta = meta

        self._added_files = 0
        self._added_rows = 0
        self._existing_files = 0
        self._existing_rows = 0
        self._deleted_files = 0
        self._deleted_rows = 0
        self._partition_summary = PartitionSummary(spec, schema)

        if codec is None:
            codec = Config().get_manifest_config()[AVRO_CODEC]
        try:
            self._writer = self.new_writer(codec)
        except OSError as e:
            raise ManifestIOError(
                f"Failed to create manifest: {output_file.location}", location=output_file.location, operation="create"
            ) from e

    def __enter__(self) -> ManifestWriter:
        """Returns the writer, which is open from the moment it is constructed."""
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        """Closes the writer, without masking an exception that is already propagating."""
        if exc_value is None:
            self.close()
            return
        try:
            self.close()
        except Exception:
            logger.warning("Suppressed failure while closing manifest %s", self._output_file.location, exc_info=True)

    @property
    def location(self) -> str:
        return self._output_file.location

    @property
    def output_file(self) -> OutputFile:
        return self._output_file

    @property
    def snapshot_id(self) -> Optional[int]:
        return self._snapshot_id

    @abstractmethod
    def new_writer(self, codec: str) -> AvroOutputFile[ManifestEntry]:
        ...

    @abstractmethod
    def prepare_entry(self, entry: ManifestEntry) -> ManifestEntry:
        ...

    def add(self, data_file: DataFile) -> ManifestWriter:
        """Adds a data file that is new in this snapshot."""
        return self._append(
            ManifestEntry(
                status=ManifestEntryStatus.ADDED,
                snapshot_id=self._snapshot_id,
                sequence_number=UNASSIGNED_SEQ,
                data_file=data_file,
            )
        )

    def existing(self, data_file: DataFile, origin_snapshot_id: int, sequence_number: int = UNASSIGNED_SEQ) -> ManifestWriter:
        """Adds a data file that was added by an earlier snapshot, and keeps its snapshot id."""
        return self._append(
            ManifestEntry(
                status=ManifestEntryStatus.EXISTING,
                snapshot_id=origin_snapshot_id,
                sequence_number=sequence_number,
                data_file=data_file,
            )
        )

    def delete(self, data_file: DataFile) -> ManifestWriter:
        """Marks a data file as removed in this snapshot."""
        return self._append(
            ManifestEntry(
                status=ManifestEntryStatus.DELETED,
                snapshot_id=self._snapshot_id,
                sequence_number=UNASSIGNED_SEQ,
                data_file=data_file,
            )
        )

    def add_entry(self, entry: ManifestEntry) -> ManifestWriter:
        """Appends an entry that was read from another manifest.

        Added and deleted entries are bound to the snapshot of this writer. Existing entries
        keep the snapshot id and sequence number they were added with.

        Raises:
            ValueError: When an existing entry has no snapshot id to keep.
        """
        if entry.status == ManifestEntryStatus.EXISTING:
            if entry.snapshot_id is None:
                raise ValueError(f"Cannot add existing entry without a snapshot id: {entry.data_file.file_path}")
            return self.existing(entry.data_file, entry.snapshot_id, entry.sequence_number)
        return self._append(
            ManifestEntry(
                status=entry.status,
                snapshot_id=self._snapshot_id,
                sequence_number=UNASSIGNED_SEQ,
                data_file=entry.data_file,
            )
        )

    def _append(self, entry: ManifestEntry) -> ManifestWriter:
        if self.closed:
            raise ManifestWriterStateError(f"Cannot add entry to closed manifest writer: {self.location}")

        try:
            self._writer.add(self.prepare_entry(entry))
        except OSError as e:
            raise ManifestIOError(
                f"Failed to add entry to manifest: {self.location}", location=self.location, operation="add"
            ) from e

        if entry.status == ManifestEntryStatus.ADDED:
            self._added_files += 1
            self._added_rows += entry.data_file.record_count
        elif entry.status == ManifestEntryStatus.EXISTING:
            self._existing_files += 1
            self._existing_rows += entry.data_file.record_count
        elif entry.status == ManifestEntryStatus.DELETED:
            self._deleted_files += 1
            self._deleted_rows += entry.data_file.record_count

        self._partition_summary.update(entry.data_file.partition)
        return self

    def metrics(self) -> Metrics:
        return self._writer.metrics()

    def length(self) -> int:
        return self._writer.length()

    def close(self) -> None:
        """Flushes and closes the manifest, only the first call has an effect.

        Raises:
            ManifestIOError: When the last block cannot be written or the file cannot be closed.
        """
        if self.closed:
            return
        self.closed = True
        try:
            self._writer.close()
        except OSError as e:
            raise ManifestIOError(f"Failed to close manifest: {self.location}", location=self.location, operation="close") from e
        self._closed_cleanly = True
        logger.debug("Closed manifest %s: %d entries, %d bytes", self.location, self.metrics().record_count, self.length())

    def to_manifest_file(self) -> ManifestFile:
        """Returns the descriptor of the manifest.

        Raises:
            ManifestWriterStateError: When the writer is not closed, or failed to close.
        """
        if not self.closed:
            raise ManifestWriterStateError("Cannot build ManifestFile, writer is not closed")
        if not self._closed_cleanly:
            raise ManifestWriterStateError(f"Cannot build ManifestFile, writer failed to close: {self.location}")
        return ManifestFile(
            manifest_path=self.location,
            manifest_length=self.length(),
            partition_spec_id=self._spec.spec_id,
            sequence_number=UNASSIGNED_SEQ,
            min_sequence_number=UNASSIGNED_SEQ,
            added_snapshot_id=self._snapshot_id,
            added_files_count=self._added_files,
            added_rows_count=self._added_rows,
            existing_files_count=self._existing_files,
            existing_rows_count=self._existing_rows,
            deleted_files_count=self._deleted_files,
            deleted_rows_count=self._deleted_rows,
            partitions=tuple(self._partition_summary.summaries()),
        )

    to_manifest_descriptor = to_manifest_file


class ManifestWriterV1(ManifestWriter):
    def __init__(
        self,
        spec: PartitionSpec,
        schema: Schema,
        output_file: OutputFile,
        snapshot_id: Optional[int],
        codec: Optional[str] = None,
    ):
        super().__init__(
            spec,
            schema,
            output_file,
            snapshot_id,
            {
                "schema": schema.model_dump_json(),
                "partition-spec": spec.fields_json(),
                "partition-spec-id": str(spec.spec_id),
                "format-version": "1",
            },
            codec,
        )

    def new_writer(self, codec: str) -> AvroOutputFile[ManifestEntry]:
        v1_manifest_entry_schema = manifest_entry_schema(self._spec.partition_type(self._schema))
        return AvroOutputFile[ManifestEntry](
            self._output_file, v1_manifest_entry_schema, "manifest_entry", self._meta, codec=codec, overwrite=True
        )

    def prepare_entry(self, entry: ManifestEntry) -> ManifestEntry:
        if entry.data_file.block_size_in_bytes is None:
            entry.data_file.block_size_in_bytes = DEFAULT_BLOCK_SIZE
        return entry


_MANIFEST_WRITERS: Dict[int, Type[ManifestWriter]] = {
    1: ManifestWriterV1,
}


def write_manifest(
    format_version: int,
    spec: PartitionSpec,
    schema: Schema,
    output_file: OutputFile,
    snapshot_id: Optional[int],
    codec: Optional[str] = None,
) -> ManifestWriter:
    """Creates the manifest writer for a table format version.

    Raises:
        UnsupportedFormatVersionError: When there is no writer for the format version.
    """
    if (writer_class := _MANIFEST_WRITERS.get(format_version)) is None:
        raise UnsupportedFormatVersionError(format_version)
    return writer_class(spec, schema, output_file, snapshot_id, codec)  # type: ignore


def new_manifest_writer(spec: PartitionSpec, schema: Schema, output_file: OutputFile) -> ManifestWriter:
    """Creates a writer for an appended manifest, of which the snapshot id is assigned on commit."""
    format_version = Config().get_manifest_config()[FORMAT_VERSION]
    return write_manifest(format_version, spec, schema, output_file, snapshot_id=None)


class SummaryBuilder(Protocol):
    """Receives the data files that a copy adds and deletes, see SnapshotSummaryCollector."""

    def added_file(self, spec: PartitionSpec, data_file: DataFile) -> None:
        ...

    def deleted_file(self, spec: PartitionSpec, data_file: DataFile) -> None:
        ...


def _discard_copy(io: FileIO, writer: ManifestWriter) -> None:
    """Closes and deletes the manifest of a failed copy, logging what fails so the original error propagates."""
    try:
        writer.close()
    except Exception:
        logger.warning("Suppressed failure while closing manifest %s", writer.location, exc_info=True)
    try:
        if writer.output_file.exists():
            io.delete(writer.output_file)
    except OSError:
        logger.warning("Suppressed failure while deleting manifest %s", writer.location, exc_info=True)


def copy_manifest(
    io: FileIO,
    reader: ManifestReader,
    output_file: OutputFile,
    snapshot_id: Optional[int],
    summary_builder: SummaryBuilder,
    allowed_entry_statuses: Iterable[ManifestEntryStatus],
    format_version: int = 1,
) -> ManifestFile:
    """Rewrites the entries of a manifest into a new manifest for another snapshot.

    Added and deleted entries are reported to the summary builder through `added_file` and
    `deleted_file`, and are bound to the new snapshot. Existing entries are copied as they are.

    The new manifest is always closed. When copying or closing fails, the new manifest is
    deleted with `io` and the original error propagates; failures to close or delete after
    that are logged. No descriptor is returned unless the manifest closed cleanly.

    Raises:
        InvalidEntryStatusError: When the manifest has an entry with a status that is not allowed.
        ManifestIOError: When reading the entries or writing the new manifest fails.
    """
    allowed: FrozenSet[ManifestEntryStatus] = frozenset(allowed_entry_statuses)
    spec = reader.spec
    writer = write_manifest(format_version, spec, reader.schema, output_file, snapshot_id)
    try:
        for entry in reader.entries():
            if entry.status not in allowed:
                raise InvalidEntryStatusError(entry.status, allowed)
            if entry.status == ManifestEntryStatus.ADDED:
                summary_builder.added_file(spec, entry.data_file)
            elif entry.status == ManifestEntryStatus.DELETED:
                summary_builder.deleted_file(spec, entry.data_file)
            writer.add_entry(entry)
        writer.close()
    except BaseException:
        _discard_copy(io, writer)
        raise

    manifest = writer.to_manifest_file()
    logger.debug(
        "Copied manifest %s to %s: %d added, %d existing, %d deleted",
        reader.input_file.location,
        manifest.manifest_path,
        manifest.added_files_count,
        manifest.existing_files_count,
        manifest.deleted_files_count,
    )
    return manifest


def copy_append_manifest(
    io: FileIO,
    reader: ManifestReader,
    output_file: OutputFile,
    snapshot_id: Optional[int],
    summary_builder: SummaryBuilder,
) -> ManifestFile:
    """Copies a manifest that only holds newly added files, see copy_manifest."""
    return copy_manifest(io, reader, output_file, snapshot_id, summary_builder, {ManifestEntryStatus.ADDED})
