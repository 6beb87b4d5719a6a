"""Common DTOs for API responses."""
from __future__ import annotations

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Health status", examples=["healthy"])


class RootResponse(BaseModel):
    """Root endpoint response model."""
    status: str = Field(..., description="API status", examples=["ok"])
    service: str = Field(..., description="Service name", examples=["rasteredit"])
    version: str = Field(..., description="API version", examples=["0.1.0"])


class HistogramResponse(BaseModel):
    """Histogram of the current image."""
    histogram: dict[str, list[int]] = Field(
        ...,
        description="256-bin frequency arrays keyed by channel name",
        examples=[{"red": [0, 5, 10], "green": [0, 3, 8], "blue": [0, 2, 6]}],
    )


class OperationInfo(BaseModel):
    id: str = Field(..., examples=["sharpen"])
    name: str = Field(..., examples=["Sharpen"])
    remote: bool = Field(False, description="Whether the operation can use a remote provider")


class OperationListResponse(BaseModel):
    operations: list[OperationInfo]


class ImageInfoResponse(BaseModel):
    """Basic facts about an uploaded image."""
    width: int = Field(..., gt=0, examples=[1920])
    height: int = Field(..., gt=0, examples=[1080])
    size: int = Field(..., description="Upload size in bytes", examples=[482133])
    format: str = Field(..., description="Detected format", examples=["jpeg"])
    aspect_ratio: float = Field(..., examples=[1.7778])
    recommended_format: str = Field(
        ..., description="Suggested output format for this image", examples=["webp"]
    )
