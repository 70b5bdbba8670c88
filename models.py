from pydantic import BaseModel, Field
from typing import List, Optional

# --- Upstream (Google Books volumes) ---

class VolumeInfo(BaseModel):
    model_config = {"frozen": True}

    title: Optional[str] = None
    authors: List[str] = Field(default_factory=list)
    publishedDate: Optional[str] = None
    description: Optional[str] = None

class SearchRecord(BaseModel):
    model_config = {"frozen": True}

    id: str
    volumeInfo: VolumeInfo = Field(default_factory=VolumeInfo)

class VolumesPage(BaseModel):
    totalItems: int = 0
    items: List[SearchRecord] = Field(default_factory=list)


# --- Outward contract ---

class DisplayItem(BaseModel):
    id: str
    label: str
    authors: List[str] = Field(default_factory=list)
    title: str
    description: Optional[str] = None
    publishedDate: Optional[str] = None

class StatsSummary(BaseModel):
    mostCommonAuthor: Optional[str] = None
    earliestYear: Optional[int] = None
    latestYear: Optional[int] = None
    recordsScanned: int = 0
    chunksRequested: int = 0
    chunksFailed: int = 0

class SearchResponse(BaseModel):
    items: List[DisplayItem]
    totalItems: int
    mostCommonAuthor: Optional[str] = None
    earliestPublicationYear: Optional[int] = None
    latestPublicationYear: Optional[int] = None
    responseTimeMs: int

class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
    responseTimeMs: Optional[int] = None

class ServiceHealth(BaseModel):
    name: str
    status: str
    detail: Optional[str] = None

class HealthResponse(BaseModel):
    status: str
    services: List[ServiceHealth]
