"""Package identity, lifecycle states and registry records."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DesiredState(str, Enum):
    ABSENT = "absent"
    PRESENT = "present"         # Uploaded, not unpacked
    INSTALLED = "installed"     # Uploaded and unpacked
    PURGED = "purged"           # Uninstalled first, then removed


class ObservedState(str, Enum):
    ABSENT = "absent"
    PRESENT = "present"
    INSTALLED = "installed"


class PackageIdentity(BaseModel):
    """Uniquely identifies a package within the registry."""

    model_config = ConfigDict(frozen=True)

    group: str
    name: str
    version: str

    @property
    def path(self) -> str:
        """Registry path of this exact package version."""
        return f"/etc/packages/{self.group}/{self.name}-{self.version}.zip"

    @property
    def lookup_path(self) -> str:
        """Registry path matching every version of this package."""
        return f"/etc/packages/{self.group}/{self.name}-.zip"

    def __str__(self) -> str:
        return f"{self.group}:{self.name}:{self.version}"


class PackageRecord(BaseModel):
    """One entry of a registry list query."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    group: str = ""
    version: str = ""
    path: Optional[str] = None
    download_name: Optional[str] = Field(default=None, alias="downloadName")
    size: Optional[int] = None
    last_modified: Optional[int] = Field(default=None, alias="lastModified")
    last_unpacked: Optional[int] = Field(default=None, alias="lastUnpacked")

    @property
    def unpacked(self) -> bool:
        return bool(self.last_unpacked)


class Observation(BaseModel):
    """Package lifecycle state as found in the registry during one run."""

    identity: PackageIdentity
    state: ObservedState
    version: Optional[str] = None           # Matched registry version; None when absent
