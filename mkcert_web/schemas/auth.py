from pydantic import BaseModel
from typing import Optional

class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None

class AuthStatus(BaseModel):
    authenticated: bool
    username: Optional[str] = None
    authEnabled: bool
