"""In-flight artifact records and stored-artifact metadata."""

from __future__ import annotations

import re
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict

BUILD_DATE_FORMAT = "%Y%m%d"

# An 8-digit tag not glued to other digits, e.g. "...-redhat-20190813-add-ons.zip".
_BUILD_TAG = re.compile(r"(?<!\d)(\d{8})(?!\d)")


def parse_build_date(value: str) -> date:
    """Parse a ``YYYYMMDD`` build tag into a date.

    Raises ``ValueError`` if *value* is not a valid 8-digit calendar date.
    """
    return datetime.strptime(value, BUILD_DATE_FORMAT).date()


def format_build_date(value: date) -> str:
    """Render a date back into its ``YYYYMMDD`` build tag."""
    return value.strftime(BUILD_DATE_FORMAT)


def extract_build_date(file_name: str) -> date:
    """Return the first valid build date tag embedded in *file_name*."""
    for match in _BUILD_TAG.finditer(file_name):
        try:
            return parse_build_date(match.group(1))
        except ValueError:
            continue
    raise ValueError(f"No YYYYMMDD build tag found in {file_name!r}")


class ArtifactRecord(BaseModel):
    """A build artifact that has been discovered but not yet committed.

    The record is mutable: ``checksum`` starts empty and is filled in
    once the artifact has been persisted and hashed.
    """

    model_config = ConfigDict(validate_assignment=True)

    file_name: str
    build_date: date
    checksum: str = ""

    @classmethod
    def from_file_name(cls, file_name: str, checksum: str = "") -> ArtifactRecord:
        """Build a record whose build date is parsed from the file name."""
        return cls(
            file_name=file_name,
            build_date=extract_build_date(file_name),
            checksum=checksum,
        )

    @property
    def build_tag(self) -> str:
        return format_build_date(self.build_date)

    @property
    def has_checksum(self) -> bool:
        return bool(self.checksum)


class StoredArtifact(BaseModel):
    """Metadata for a file held in the checksum-keyed artifact store."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    checksum: str
    size_bytes: int = 0
