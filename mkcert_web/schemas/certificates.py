from pydantic import BaseModel, Field, field_validator
from typing import Optional

class ExecuteRequest(BaseModel):
    command: str = Field(..., min_length=1)
    input: Optional[str] = None

    @field_validator("command")
    @classmethod
    def command_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Command is required and must be a non-empty string")
        return v.strip()

class PfxRequest(BaseModel):
    password: str = Field(default="", max_length=128, pattern=r"^[\w.@%+=!-]*$")
    includeCA: bool = False
    legacy: bool = False
