from __future__ import annotations
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict

"""
Persistent drive identity, keyed by filesystem UUID.

Field names match the on-disk registry document ({"drives": [...]}).
Extra fields from manual entry forms are kept and written back untouched.
"""


class DriveRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    uuid: str
    label: str = ""
    size: str = ""              # Size at registration, e.g. "29.7GB"
    type: str = ""              # Category, e.g. "SD Card"
    purpose: str = ""
    device: Optional[str] = None  # Device path at registration (informational)
    first_seen: Optional[str] = None
    last_seen: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DriveRecord":
        return cls.model_validate(data)

    @property
    def extra_fields(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})
