"""Normalized response envelope shared by every operation."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ResultEnvelope(BaseModel):
    success: bool
    message: Optional[str] = None
    data: Any = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    links: Optional[Dict[str, Optional[str]]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Error envelopes carry nothing but the flag and the message."""
        if not self.success:
            return {"success": False, "error": self.error or "Unknown error"}
        payload: Dict[str, Any] = {"success": True}
        if self.message:
            payload["message"] = self.message
        payload["data"] = self.data
        payload["metadata"] = dict(self.metadata)
        if self.links is not None:
            payload["links"] = dict(self.links)
        return payload


def success(
    data: Any,
    metadata: Optional[Dict[str, Any]] = None,
    message: Optional[str] = None,
    links: Optional[Dict[str, Optional[str]]] = None,
) -> Dict[str, Any]:
    return ResultEnvelope(
        success=True,
        message=message,
        data=data,
        metadata=metadata or {},
        links=links,
    ).to_dict()


def failure(error: str) -> Dict[str, Any]:
    return ResultEnvelope(success=False, error=error).to_dict()
