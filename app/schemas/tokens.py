from datetime import datetime

from pydantic import BaseModel

from app.schemas.users import CamelModel, UserSummary


class LoginData(CamelModel):
    token: str
    expires_at: datetime
    user: UserSummary


class LoginResponse(BaseModel):
    success: bool = True
    message: str = "Login successful"
    data: LoginData


class IdentityData(CamelModel):
    account_id: int
    email: str


class VerifyResponse(BaseModel):
    success: bool = True
    message: str = "Token is valid"
    data: IdentityData
