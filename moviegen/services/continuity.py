"""Scene-to-scene continuity and storage key construction.

Scene N (N > 1) is seeded with the last frame of scene N-1 when one was stored;
otherwise it falls back to text-to-video. Keys are built here and nowhere else.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from moviegen.db.models.enums import GenerationMode
from moviegen.db.models.scene import MovieScene


@dataclass(frozen=True)
class GenerationSeed:
    prompt: str
    mode: GenerationMode = GenerationMode.TEXT_TO_VIDEO
    image_url: Optional[str] = None


def _scene_slug(scene_number: int) -> str:
    return f"scene_{scene_number:03d}"


def frame_key(project_id: uuid.UUID, scene_number: int) -> str:
    return f"{project_id}/frames/{_scene_slug(scene_number)}.jpg"


def video_key(project_id: uuid.UUID, scene_number: int) -> str:
    return f"{project_id}/{_scene_slug(scene_number)}.mp4"


def narrated_video_key(project_id: uuid.UUID, scene_number: int) -> str:
    return f"{project_id}/{_scene_slug(scene_number)}_narrated.mp4"


def final_video_key(project_id: uuid.UUID) -> str:
    return f"{project_id}/final.mp4"


def build_seed(prompt: str, scene_number: int, previous_frame_url: Optional[str]) -> GenerationSeed:
    if scene_number > 1 and previous_frame_url:
        return GenerationSeed(
            prompt=prompt,
            mode=GenerationMode.IMAGE_TO_VIDEO,
            image_url=previous_frame_url,
        )
    return GenerationSeed(prompt=prompt)


def previous_frame_url(db: Session, project_id: uuid.UUID, scene_number: int) -> Optional[str]:
    if scene_number <= 1:
        return None
    return db.execute(
        select(MovieScene.last_frame_url).where(
            MovieScene.project_id == project_id,
            MovieScene.scene_number == scene_number - 1,
        )
    ).scalar_one_or_none()


def seed_for_scene(db: Session, scene: MovieScene) -> GenerationSeed:
    frame = previous_frame_url(db, scene.project_id, scene.scene_number)
    return build_seed(scene.video_prompt, scene.scene_number, frame)
