from pydantic import BaseModel, Field
from typing import Optional

class MonitoringConfigUpdate(BaseModel):
    warningDays: Optional[int] = Field(None, ge=1, le=365)
    criticalDays: Optional[int] = Field(None, ge=1, le=365)
    checkInterval: Optional[str] = None
    includeUploaded: Optional[bool] = None
