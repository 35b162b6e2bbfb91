"""Unit tests for continuity seeding and storage keys"""

import uuid

from moviegen.db.models.enums import GenerationMode
from moviegen.services.continuity import (
    build_seed,
    final_video_key,
    frame_key,
    narrated_video_key,
    previous_frame_url,
    seed_for_scene,
    video_key,
)
from tests.mocks.fixtures import make_project, make_user, scene

PROJECT_ID = uuid.UUID("11111111-2222-3333-4444-555555555555")


class TestKeys:

    def test_frame_key_has_single_extension(self):
        key = frame_key(PROJECT_ID, 3)
        assert key == f"{PROJECT_ID}/frames/scene_003.jpg"
        assert key.count(".jpg") == 1

    def test_video_keys(self):
        assert video_key(PROJECT_ID, 12) == f"{PROJECT_ID}/scene_012.mp4"
        assert narrated_video_key(PROJECT_ID, 1) == f"{PROJECT_ID}/scene_001_narrated.mp4"
        assert final_video_key(PROJECT_ID) == f"{PROJECT_ID}/final.mp4"


class TestBuildSeed:

    def test_first_scene_is_text_to_video(self):
        seed = build_seed("a storm", 1, "https://cdn.test/frame.jpg")
        assert seed.mode == GenerationMode.TEXT_TO_VIDEO
        assert seed.image_url is None

    def test_later_scene_uses_previous_frame(self):
        seed = build_seed("a storm", 2, "https://cdn.test/frame.jpg")
        assert seed.mode == GenerationMode.IMAGE_TO_VIDEO
        assert seed.image_url == "https://cdn.test/frame.jpg"
        assert seed.prompt == "a storm"

    def test_missing_frame_falls_back_to_text(self):
        seed = build_seed("a storm", 2, None)
        assert seed.mode == GenerationMode.TEXT_TO_VIDEO


class TestSeedFromDatabase:

    def test_reads_previous_scene_frame(self, db):
        user = make_user(db)
        project = make_project(db, user, scenes=2)
        first = scene(db, project, 1)
        first.last_frame_url = "https://cdn.test/frames/scene_001.jpg"
        db.commit()

        assert previous_frame_url(db, project.id, 1) is None
        assert previous_frame_url(db, project.id, 2) == "https://cdn.test/frames/scene_001.jpg"
        seed = seed_for_scene(db, scene(db, project, 2))
        assert seed.mode == GenerationMode.IMAGE_TO_VIDEO
        assert seed.prompt == "Shot 2: a lighthouse at dusk"
