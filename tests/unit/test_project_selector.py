"""Unit tests for project selection"""

from datetime import timedelta

from moviegen.db.models.enums import ProjectStatus
from moviegen.services.project_selector import current_scene, select_generating_projects
from tests.conftest import NOW
from tests.mocks.fixtures import make_project, make_user


class TestSelectGeneratingProjects:

    def test_least_recently_updated_first(self, db):
        user = make_user(db)
        fresh = make_project(db, user, scenes=1, updated_at=NOW)
        stale = make_project(db, user, scenes=1, updated_at=NOW - timedelta(hours=1))
        middle = make_project(db, user, scenes=1, updated_at=NOW - timedelta(minutes=5))

        selected = select_generating_projects(db, 10)

        assert [p.id for p in selected] == [stale.id, middle.id, fresh.id]

    def test_only_generating_projects(self, db):
        user = make_user(db)
        make_project(db, user, scenes=1, status=ProjectStatus.PAUSED)
        make_project(db, user, scenes=1, status=ProjectStatus.COMPLETED)
        active = make_project(db, user, scenes=1)

        assert [p.id for p in select_generating_projects(db, 10)] == [active.id]

    def test_batch_limit(self, db):
        user = make_user(db)
        for _ in range(4):
            make_project(db, user, scenes=1)

        assert len(select_generating_projects(db, 3)) == 3
        assert select_generating_projects(db, 0) == []


def test_current_scene_follows_pointer(db):
    user = make_user(db)
    project = make_project(db, user, scenes=3)
    assert current_scene(db, project).scene_number == 1

    project.current_scene = 3
    db.commit()
    assert current_scene(db, project).scene_number == 3

    project.current_scene = 4
    db.commit()
    assert current_scene(db, project) is None
