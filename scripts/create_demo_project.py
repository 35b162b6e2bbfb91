"""One-off script: create a demo user with credits and a 3-scene project ready to start."""
import sys
import os

# Ensure moviegen is on path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from moviegen.db.base import SessionLocal
from moviegen.db.models.user import User
from moviegen.services import credit_ledger
from moviegen.services.project_commands import create_project, finalize_scene_plan

DEMO_EMAIL = "demo@moviegen.local"

SCENES = [
    {
        "scene_title": "Arrival",
        "video_prompt": "A lone lighthouse on a cliff at dusk, waves crashing below, slow aerial push-in",
        "narration_text": "Every night for forty years, the light had never failed.",
    },
    {
        "scene_title": "The keeper",
        "video_prompt": "An old keeper climbs the spiral staircase with a lantern, warm light on stone walls",
        "narration_text": "Until the night the keeper found the door already open.",
    },
    {
        "scene_title": "The storm",
        "video_prompt": "Lightning splits the sky above the lighthouse, the beam sweeping across a dark sea",
        "narration_text": None,
    },
]


def main():
    db = SessionLocal()
    try:
        user = db.execute(select(User).where(User.email == DEMO_EMAIL)).scalar_one_or_none()
        if not user:
            user = User(email=DEMO_EMAIL, name="Demo")
            db.add(user)
            db.commit()
            db.refresh(user)
        balance = credit_ledger.grant(db, user.id, 100, "demo top-up")
        project = create_project(
            db,
            user_id=user.id,
            title="The Lighthouse",
            model="kling-2.6",
            style="cinematic",
            voice_id="onyx",
        )
        project = finalize_scene_plan(db, project, SCENES)
        print("Created project:")
        print(f"  id: {project.id}")
        print(f"  status: {project.status.value}")
        print(f"  scenes: {project.total_scenes}")
        print(f"  estimatedCredits: {project.estimated_credits}")
        print(f"  balance: {balance}")
        print(f"Start it with POST /api/v1/projects/{project.id}/start")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
