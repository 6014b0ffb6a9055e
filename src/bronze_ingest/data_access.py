import logging
import uuid
from dataclasses import dataclass
from typing import Protocol

import pyarrow as pa
import pyarrow.csv as pv
import pyarrow.fs as pafs
import pyarrow.parquet as pq

from core import settings
from bronze_ingest.errors import SourceNotFoundError, SourceParseError, SourceReadError, WriteError
from bronze_ingest.transform import rename_duplicate_column_headers

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadOptions:
    header: bool = True
    delimiter: str = ","
    encoding: str = "utf8"


@dataclass(frozen=True)
class StorageCredentials:
    access_key: str
    secret_key: str
    region: str | None = None


class DataAccess(Protocol):
    def read_table(self, path: str, options: ReadOptions) -> pa.Table:
        ...

    def write_table(self, table: pa.Table, path: str) -> None:
        ...


class ArrowDataAccess:
    """
    Reads CSV and writes Parquet through pyarrow filesystems.

    Paths are opaque URIs (file://, s3://, gs://, ...) or absolute local paths.
    Writes overwrite the destination directory with a single part file:

      <destination_path>/part-00000.parquet
    """

    def __init__(
        self,
        *,
        credentials: StorageCredentials | None = None,
        file_name: str = settings.DESTINATION_FILE_NAME,
        compression: str = settings.PARQUET_COMPRESSION,
    ):
        self.credentials = credentials
        self.file_name = file_name
        self.compression = compression

    # ----------------------------
    # Filesystem resolution
    # ----------------------------
    def _filesystem_for(self, uri: str) -> tuple[pafs.FileSystem, str]:
        if uri.startswith("s3://") and self.credentials is not None:
            bucket_and_key = uri[len("s3://"):]
            filesystem = pafs.S3FileSystem(
                access_key=self.credentials.access_key,
                secret_key=self.credentials.secret_key,
                region=self.credentials.region or settings.S3_REGION,
                connect_timeout=settings.S3_CONNECT_TIMEOUT_SECONDS,
                request_timeout=settings.S3_REQUEST_TIMEOUT_SECONDS,
            )
            return filesystem, bucket_and_key
        return pafs.FileSystem.from_uri(uri)

    # ----------------------------
    # Read
    # ----------------------------
    def read_table(self, path: str, options: ReadOptions) -> pa.Table:
        try:
            filesystem, fs_path = self._filesystem_for(path)
            info = filesystem.get_file_info(fs_path)
        except (pa.ArrowException, OSError, ValueError) as e:
            raise SourceReadError(f"Cannot access source {path}: {e}") from e

        if info.type == pafs.FileType.NotFound:
            raise SourceNotFoundError(f"Source file not found: {path}")
        if info.type != pafs.FileType.File:
            raise SourceReadError(f"Source path is not a file: {path}")

        try:
            with filesystem.open_input_stream(fs_path) as stream:
                data = stream.read()
        except (pa.ArrowException, OSError) as e:
            raise SourceReadError(f"Failed reading {path}: {e}") from e

        return self._parse_csv(data, path, options)

    def _parse_csv(self, data: bytes, path: str, options: ReadOptions) -> pa.Table:
        parse_options = pv.ParseOptions(delimiter=options.delimiter)
        column_names = self._get_header(data, path, options, parse_options)
        if not column_names:
            return pa.table({})
        if options.header and not _has_data_rows(data):
            return pa.table({name: pa.array([], type=pa.string()) for name in column_names})

        read_options = pv.ReadOptions(
            use_threads=True,
            column_names=column_names,
            skip_rows=1 if options.header else 0,
            encoding=options.encoding,
        )
        # Bronze keeps raw text; typing happens when the target schema is applied.
        convert_options = pv.ConvertOptions(
            column_types={name: pa.string() for name in column_names},
            strings_can_be_null=True,
        )

        try:
            table = pv.read_csv(
                pa.BufferReader(data),
                read_options=read_options,
                parse_options=parse_options,
                convert_options=convert_options,
            )
        except (pa.ArrowInvalid, UnicodeDecodeError, LookupError) as e:
            raise SourceParseError(f"Failed parsing CSV {path}: {e}") from e
        except pa.ArrowException as e:
            raise SourceReadError(f"Failed reading CSV {path}: {e}") from e

        logger.debug("Read %s rows x %s columns from %s", table.num_rows, table.num_columns, path)
        return table

    @staticmethod
    def _get_header(data: bytes, path: str, options: ReadOptions, parse_options: pv.ParseOptions) -> list[str]:
        if not data.strip():
            return []

        # pyarrow detects the header row itself (a UTF-8 BOM is dropped there).
        try:
            reader = pv.open_csv(
                pa.BufferReader(data),
                read_options=pv.ReadOptions(encoding=options.encoding, autogenerate_column_names=not options.header),
                parse_options=parse_options,
            )
        except (pa.ArrowInvalid, UnicodeDecodeError, LookupError) as e:
            raise SourceParseError(f"Cannot parse header of {path} as {options.encoding}: {e}") from e
        except pa.ArrowException as e:
            raise SourceReadError(f"Failed reading header of {path}: {e}") from e
        header = reader.schema.names

        if not options.header:
            # Same naming convention as header-less Spark reads.
            return [f"_c{i}" for i in range(len(header))]

        if any(not name.strip() for name in header):
            raise SourceParseError(f"Header of {path} contains blank column names: {header}")

        # pyarrow rejects duplicate names in column_types, so dedupe exact repeats here.
        return rename_duplicate_column_headers(header)

    # ----------------------------
    # Write
    # ----------------------------
    def write_table(self, table: pa.Table, path: str) -> None:
        """
        Overwrites `path` with `table`.

        The new part file is written under a temporary name first, then the old
        contents are removed and the part file is moved into place.
        """
        try:
            filesystem, fs_path = self._filesystem_for(path)
            fs_path = fs_path.rstrip("/")
            filesystem.create_dir(fs_path, recursive=True)

            tmp_name = f"_tmp-{uuid.uuid4().hex}.parquet"
            tmp_path = f"{fs_path}/{tmp_name}"
            final_path = f"{fs_path}/{self.file_name}"

            with filesystem.open_output_stream(tmp_path) as sink:
                pq.write_table(table, sink, compression=self.compression)

            for entry in filesystem.get_file_info(pafs.FileSelector(fs_path)):
                if entry.base_name == tmp_name:
                    continue
                if entry.type == pafs.FileType.Directory:
                    filesystem.delete_dir(entry.path)
                else:
                    filesystem.delete_file(entry.path)

            filesystem.move(tmp_path, final_path)
        except (pa.ArrowException, OSError, ValueError) as e:
            raise WriteError(f"Failed writing {path}: {e}") from e

        logger.debug("Wrote %s rows to %s", table.num_rows, path)


def _has_data_rows(data: bytes) -> bool:
    _, _, rest = data.partition(b"\n")
    return bool(rest.strip())
