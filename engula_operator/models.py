"""
Pydantic models for custom resources and the status API.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from engula_operator.errors import SerializationError


class ObjectMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    namespace: Optional[str] = None
    uid: Optional[str] = None
    deletionTimestamp: Optional[str] = None
    finalizers: Optional[List[str]] = None


class ResourceSpec(BaseModel):
    model_config = ConfigDict(extra="ignore")

    template: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Pod template fragment (PodTemplateSpec) for the managed Deployment",
    )


class ResourceStatus(BaseModel):
    model_config = ConfigDict(extra="ignore")

    deployment_status: Optional[Dict[str, Any]] = None
    last_reconciled: Optional[str] = None


class CustomResource(BaseModel):
    """A Journal or Storage instance as delivered by the watch feed."""
    model_config = ConfigDict(extra="ignore")

    apiVersion: Optional[str] = None
    kind: Optional[str] = None
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: ResourceSpec = Field(default_factory=ResourceSpec)
    status: Optional[ResourceStatus] = None

    @classmethod
    def parse(cls, body: Any) -> "CustomResource":
        """Parse a raw body; raises SerializationError on malformed documents."""
        try:
            return cls.model_validate(dict(body))
        except (TypeError, ValueError, ValidationError) as e:
            raise SerializationError(str(e)) from e


class ProcessStateResponse(BaseModel):
    """In-memory controller state exposed on /."""
    last_event: datetime
    reporter: str


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str


class ErrorResponse(BaseModel):
    detail: str
    code: str = "UNKNOWN_ERROR"
