# minecraft_world_manager/web/schemas.py
"""
Pydantic models for the JSON bodies returned by the web API.

Fields are snake_case in Python and camelCase on the wire.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ActionResponse(CamelModel):
    success: bool
    message: str
    code: Optional[str] = None


class ErrorResponse(ActionResponse):
    success: bool = False
    backup_path: Optional[str] = None


class WorldInfoResponse(CamelModel):
    exists: bool
    name: str
    size: int
    size_formatted: str
    busy: bool = False


class ImportResponse(ActionResponse):
    world_name: Optional[str] = None
    backup_path: Optional[str] = None
    service_restarted: bool = False
    degraded: bool = False
    warning_code: Optional[str] = None


class BackupEntry(CamelModel):
    name: str
    path: str
    created_at: datetime
    size: int
    size_formatted: str


class BackupListResponse(CamelModel):
    success: bool = True
    backups: List[BackupEntry] = []


class ServiceStatusResponse(CamelModel):
    service: str
    state: str
    running: Optional[bool] = None


class ServiceActionResponse(ActionResponse):
    service: str
    state: str
    changed: bool = False
