"""Test data factories for consistent test setup"""

from typing import Optional

from sqlalchemy.orm import Session

from moviegen.db.models.enums import ProjectStatus, SceneStatus
from moviegen.db.models.project import MovieProject
from moviegen.db.models.scene import MovieScene
from moviegen.db.models.user import User

_counter = {"users": 0}


def make_user(db: Session, balance: int = 100, email: Optional[str] = None) -> User:
    """Factory for User rows with a starting balance"""
    _counter["users"] += 1
    user = User(email=email or f"user{_counter['users']}@example.com", name="Test", balance_credits=balance)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_project(
    db: Session,
    user: User,
    scenes: int = 3,
    status: ProjectStatus = ProjectStatus.GENERATING,
    model: str = "kling-2.6",
    voice_id: Optional[str] = None,
    narration: bool = False,
    **kwargs,
) -> MovieProject:
    """Factory for a project with `scenes` pending scenes, started at scene 1"""
    project = MovieProject(
        user_id=user.id,
        title=kwargs.pop("title", "Test Movie"),
        model=model,
        voice_id=voice_id,
        status=status,
        total_scenes=scenes,
        current_scene=1 if status == ProjectStatus.GENERATING else 0,
        **kwargs,
    )
    db.add(project)
    db.flush()
    for n in range(1, scenes + 1):
        db.add(
            MovieScene(
                project_id=project.id,
                scene_number=n,
                scene_title=f"Scene {n}",
                video_prompt=f"Shot {n}: a lighthouse at dusk",
                narration_text=f"Line {n}" if narration else None,
                status=SceneStatus.PENDING,
            )
        )
    db.commit()
    db.refresh(project)
    return project


def scene(db: Session, project: MovieProject, number: int) -> MovieScene:
    db.expire_all()
    return next(s for s in project.scenes if s.scene_number == number)
