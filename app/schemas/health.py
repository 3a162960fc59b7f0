from datetime import datetime

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    service: str
    version: str
    environment: str
    stores: dict[str, str]
    timestamp: datetime
