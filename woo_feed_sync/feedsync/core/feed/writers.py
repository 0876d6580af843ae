"""
Feed file writers (CSV and JSON).

Every writer produces its output in a temporary file next to the public
file and promotes it with an atomic rename, so readers of the public file
only ever see a complete generation.
"""

import csv
import os
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, IO, List, Optional, Sequence, Union

from .errors import FileOpenError, FileWriteError


logger = logging.getLogger(__name__)


PROTECTION_FILES = {
    "index.html": "",
    ".htaccess": "deny from all",
}


class AbstractFeedFileWriter(ABC):
    """
    Base class for feed file writers.

    Path layout::

        {base_dir}/{feed_name}/{feed_name}_feed_{secret}.{ext}
        {base_dir}/{feed_name}/temp_{feed_name}_feed_{secret}.{ext}
    """

    FILE_NAME = "%s_feed_%s.%s"
    FILE_EXTENSION = ""

    def __init__(
        self,
        feed_name: str,
        base_dir: Union[str, Path],
        secret_getter: Optional[Callable[[], str]] = None,
        header_row: Optional[Union[str, Sequence[str]]] = None,
        delimiter: str = ",",
        enclosure: str = '"'
    ):
        """
        Initialize writer.

        Args:
            feed_name: Feed type key, used for the directory and file names
            base_dir: Root directory holding one sub-directory per feed
            secret_getter: Returns the feed secret embedded in file names
            header_row: Header columns, as a list or a delimited string
            delimiter: CSV field delimiter
            enclosure: CSV quote character, doubled inside quoted cells
        """
        self.feed_name = feed_name
        self.base_dir = Path(base_dir)
        self.secret_getter = secret_getter
        self.delimiter = delimiter
        self.enclosure = enclosure
        self.header_row = self._parse_header(header_row)

    def _parse_header(self, header_row: Optional[Union[str, Sequence[str]]]) -> List[str]:
        if not header_row:
            return []
        if isinstance(header_row, str):
            return [column.strip() for column in header_row.strip().split(self.delimiter)]
        return list(header_row)

    def _get_secret(self) -> str:
        return self.secret_getter() if self.secret_getter else ""

    def get_file_directory(self) -> str:
        return str(self.base_dir / self.feed_name)

    def get_file_name(self) -> str:
        return self.FILE_NAME % (self.feed_name, self._get_secret(), self.FILE_EXTENSION)

    def get_temp_file_name(self) -> str:
        return "temp_" + self.get_file_name()

    def get_file_path(self) -> str:
        return os.path.join(self.get_file_directory(), self.get_file_name())

    def get_temp_file_path(self) -> str:
        return os.path.join(self.get_file_directory(), self.get_temp_file_name())

    def create_feed_directory(self) -> None:
        """Create the feed directory and its protection files if missing."""
        directory = self.get_file_directory()
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            raise FileWriteError(f"Could not create feed directory at {directory}: {e}") from e

        for file_name, content in PROTECTION_FILES.items():
            path = os.path.join(directory, file_name)
            if os.path.exists(path):
                continue
            try:
                with open(path, "w", encoding="utf-8") as f:
                    f.write(content)
            except OSError as e:
                raise FileWriteError(f"Could not create {file_name} in {directory}: {e}") from e

    def create_files_to_protect_feed_directory(self) -> None:
        """Ensure the feed directory exists and cannot be listed."""
        self.create_feed_directory()

    def prepare_temporary_feed_file(self) -> IO[str]:
        """
        Truncate the temporary file and write the format header.

        Returns:
            Open handle positioned after the header; the caller closes it
        """
        temp_path = self.get_temp_file_path()
        try:
            handle = open(temp_path, "w", encoding="utf-8", newline="")
        except OSError as e:
            raise FileOpenError(f"Unable to open temporary file {temp_path} for writing.") from e

        try:
            self._write_header(handle)
        except OSError as e:
            handle.close()
            raise FileWriteError(f"Unable to write header to temporary file {temp_path}.") from e
        return handle

    def _write_header(self, handle: IO[str]) -> None:
        pass

    def write_temp_feed_file(self, items: Any) -> None:
        """Append one batch of items to the temporary file."""
        temp_path = self.get_temp_file_path()
        try:
            handle = open(temp_path, "a", encoding="utf-8", newline="")
        except OSError as e:
            raise FileWriteError(f"Unable to open temporary file {temp_path} for appending.") from e

        with handle:
            try:
                self._write_items(handle, items)
            except (OSError, csv.Error) as e:
                raise FileWriteError(f"Failed to write to temporary file {temp_path}: {e}") from e

    @abstractmethod
    def _write_items(self, handle: IO[str], items: Any) -> None:
        """Serialize items onto an open handle."""

    def promote_temp_file(self) -> None:
        """Atomically replace the public file with the temporary file."""
        temp_path = self.get_temp_file_path()
        file_path = self.get_file_path()

        if not os.path.isfile(temp_path):
            raise FileWriteError(f"Temporary feed file {temp_path} does not exist.")

        self._before_promote(temp_path)
        try:
            os.replace(temp_path, file_path)
        except OSError as e:
            raise FileWriteError(
                f"Could not rename the temporary feed file {temp_path} to {file_path}: {e}"
            ) from e
        logger.info(f"Feed file promoted: {file_path}")

    def _before_promote(self, temp_path: str) -> None:
        pass

    def write_feed_file(self, items: Any) -> None:
        """Write a complete feed in one call."""
        self.create_feed_directory()
        self.prepare_temporary_feed_file().close()
        self.write_temp_feed_file(items)
        self.promote_temp_file()


class CsvFeedFileWriter(AbstractFeedFileWriter):
    """Writes one CSV row per item under a fixed header row."""

    FILE_EXTENSION = "csv"

    def _csv_writer(self, handle: IO[str]):
        return csv.writer(
            handle,
            delimiter=self.delimiter,
            quotechar=self.enclosure,
            lineterminator="\n"
        )

    def _write_header(self, handle: IO[str]) -> None:
        if self.header_row:
            self._csv_writer(handle).writerow(self.header_row)

    def _write_items(self, handle: IO[str], items: Any) -> None:
        writer = self._csv_writer(handle)
        for item in items:
            writer.writerow(self.format_row(item))

    def format_row(self, item: Any) -> List[str]:
        """Convert an item (mapping or sequence) into CSV cells."""
        if isinstance(item, dict):
            values = [item.get(column) for column in self.header_row]
        else:
            values = list(item)
        return [self._format_cell(value) for value in values]

    @staticmethod
    def _format_cell(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (dict, list, tuple)):
            return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        return str(value)


def encode_json_html_safe(data: Any) -> str:
    """
    Encode data as compact JSON with HTML-sensitive characters escaped.

    ``<``, ``>``, ``&`` and ``'`` become ``\\u003C``, ``\\u003E``,
    ``\\u0026`` and ``\\u0027``; other non-ASCII text is kept as UTF-8.
    """
    encoded = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
    return (
        encoded.replace("<", "\\u003C")
        .replace(">", "\\u003E")
        .replace("&", "\\u0026")
        .replace("'", "\\u0027")
    )


class JsonFeedFileWriter(AbstractFeedFileWriter):
    """Writes each batch as one JSON document."""

    FILE_EXTENSION = "json"

    def _write_items(self, handle: IO[str], items: Any) -> None:
        handle.write(encode_json_html_safe(items))

    def _before_promote(self, temp_path: str) -> None:
        # A run without any batch still publishes a valid document.
        if os.path.getsize(temp_path) == 0:
            with open(temp_path, "w", encoding="utf-8") as f:
                f.write("[]")
