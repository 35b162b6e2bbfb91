"""Movie project and scene schemas (camelCase for FE contract)."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SceneResponse(BaseModel):
    id: UUID
    sceneNumber: int
    sceneTitle: Optional[str] = None
    videoPrompt: str
    narrationText: Optional[str] = None
    status: str
    retryCount: int
    creditCost: Optional[int] = None
    generationMode: Optional[str] = None
    videoUrl: Optional[str] = None
    publicVideoUrl: Optional[str] = None
    lastFrameUrl: Optional[str] = None
    durationSeconds: Optional[float] = None
    errorMessage: Optional[str] = None
    completedAt: Optional[datetime] = None


class ProjectResponse(BaseModel):
    id: UUID
    userId: UUID
    title: str
    description: Optional[str] = None
    status: str
    model: str
    style: Optional[str] = None
    voiceId: Optional[str] = None
    sourceText: Optional[str] = None
    targetDurationMinutes: int = 10
    currentScene: int
    totalScenes: int
    completedScenes: int
    estimatedCredits: int
    spentCredits: int
    finalVideoUrl: Optional[str] = None
    totalDurationSeconds: Optional[float] = None
    errorMessage: Optional[str] = None
    createdAt: datetime
    updatedAt: datetime
    completedAt: Optional[datetime] = None
    scenes: Optional[list[SceneResponse]] = None


class ProjectCreateBody(BaseModel):
    userId: UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    model: str = "kling-2.6"
    style: Optional[str] = None  # cinematic, anime, realistic, abstract, noir, retro, neon
    voiceId: Optional[str] = None
    sourceText: Optional[str] = None
    targetDurationMinutes: int = Field(10, ge=1, le=180)


class ScenePlanItem(BaseModel):
    videoPrompt: str = Field(..., min_length=1)
    sceneTitle: Optional[str] = None
    narrationText: Optional[str] = None


class ScenePlanBody(BaseModel):
    scenes: list[ScenePlanItem] = Field(..., min_length=1)


class ScriptPreviewBody(BaseModel):
    sourceText: str = Field(..., min_length=1)
    model: str = "kling-2.6"
    style: Optional[str] = None
    voiceId: Optional[str] = None
    targetDurationMinutes: int = Field(10, ge=1, le=180)


class ScriptPreviewResponse(BaseModel):
    scenes: list[ScenePlanItem]
    summary: str = ""
    estimatedDurationSeconds: float
    estimatedCredits: int
