from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional
from datetime import datetime

class QualityAlertInDB(BaseModel):
    """
    Pydantic model representing a stored quality alert.
    """
    id: int
    severity: str = Field(..., description="info, warning or critical.")
    title: str = Field(..., description="Alert title; one open alert exists per title.")
    description: Optional[str] = None
    status: str = Field(..., description="open or resolved.")
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="alert_metadata", description="Check-specific counters.")
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

class AlertMessageSchema(BaseModel):
    """
    An alert raised by the latest evaluation pass.
    """
    title: str
    severity: str
    description: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)

class HealthResponse(BaseModel):
    """
    Reachability of the services the sync pipeline depends on.
    """
    status: str = Field(..., description="'ok' when every configured dependency responds, else 'degraded'.")
    database: str
    podcastIndex: str
    queue: str
