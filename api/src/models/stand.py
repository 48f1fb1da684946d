import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

# Stand names become GitLab branch and environment names
STAND_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

class StandCreate(BaseModel):
    name: str
    products: List[str]
    user_id: int
    ref: str = "master"

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        value = value.strip()
        if not STAND_NAME_PATTERN.match(value) or ".." in value or value.endswith(".lock"):
            raise ValueError("stand name must be a valid branch name")
        return value

    @field_validator("products")
    @classmethod
    def validate_products(cls, value: List[str]) -> List[str]:
        products = [p.strip() for p in value if p.strip()]
        if not products:
            raise ValueError("at least one product is required")
        return products

    @field_validator("ref")
    @classmethod
    def validate_ref(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("ref must not be empty")
        return value

class StandResponse(BaseModel):
    id: int
    name: str
    user_id: int
    products: List[str]
    ref: str
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class UserResponse(BaseModel):
    id: int
    name: str
    role: str

    class Config:
        from_attributes = True

class NotificationResponse(BaseModel):
    id: int
    stand_name: str
    step_name: str
    user_id: int
    status: str
    step_order: int
    delivered: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
