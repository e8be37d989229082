from datetime import datetime
from pydantic import BaseModel, ConfigDict


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class AdminOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    full_name: str | None = None
    is_active: bool
    last_login: datetime | None = None


class LoginResponse(BaseModel):
    success: bool = True
    admin: AdminOut
    message: str = "Login successful"
