from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class FileEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="Name")
    size: int = Field(alias="Size")
    modified: datetime = Field(alias="Modified")


class DirectoryEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="Name")
    modified: datetime = Field(alias="Modified")


class DirectoryListing(BaseModel):
    """Immediate children of a directory, in filesystem enumeration order."""
    model_config = ConfigDict(populate_by_name=True)

    files: List[FileEntry] = Field(default_factory=list, alias="Files")
    directories: List[DirectoryEntry] = Field(default_factory=list, alias="Directories")
