from typing import Any, Dict, Optional
from pydantic import BaseModel, Field
from datetime import datetime


class CompareRequest(BaseModel):
    user_id_1: int = Field(alias="userId1")
    user_id_2: int = Field(alias="userId2")
    refresh: bool = False  # recompute a cached comparison

    class Config:
        populate_by_name = True


class ComparisonResponse(BaseModel):
    id: int
    user1_id: int
    user2_id: int
    analysis: Dict[str, Any]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
