# covid_odata/schemas/health_schemas.py
from pydantic import BaseModel
from typing import Dict, Optional


class ComponentStatus(BaseModel):
    status: str  # operational | degraded | down | disabled
    detail: Optional[str] = None
    latency_ms: Optional[float] = None


class HealthResponse(BaseModel):
    service: str
    version: str
    status: str
    checked_at: str
    components: Dict[str, ComponentStatus]
    row_counts: Dict[str, int] = {}
