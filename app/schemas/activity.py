"""
Backoffice Admin - Activity Log Schemas
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ActivityCauser(BaseModel):
    id: str
    name: str
    email: str


class TranslationPayload(BaseModel):
    key: str
    replacements: Dict[str, str]


class ActivityResponse(BaseModel):
    id: str
    log_name: str
    event: str
    description: str
    translation: TranslationPayload
    subject_type: Optional[str] = None
    subject_id: Optional[str] = None
    causer_type: Optional[str] = None
    causer_id: Optional[str] = None
    causer: Optional[ActivityCauser] = None
    properties: Dict[str, Any]
    created_at: Optional[str] = None


class ActivityListResponse(BaseModel):
    activities: List[ActivityResponse]
    total: int
    page: int
    per_page: int
    total_pages: int
