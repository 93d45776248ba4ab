import pytest

from code_architect.errors import ConstraintViolation, NotFound
from code_architect.storage import Storage


@pytest.fixture
def storage(db):
    return Storage(db)


@pytest.fixture
def owner(storage):
    return storage.create_user(username="dana", email="dana@example.com", password_hash="x")


def test_get_returns_none_on_absence(storage):
    assert storage.get_user(1) is None
    assert storage.get_project(1) is None
    assert storage.get_chat_session(1) is None
    assert storage.get_chat_message(1) is None
    assert storage.get_generated_file(1) is None


def test_unique_username_and_email(storage, owner):
    with pytest.raises(ConstraintViolation):
        storage.create_user(username="dana", email="other@example.com", password_hash="x")
    with pytest.raises(ConstraintViolation):
        storage.create_user(username="other", email="dana@example.com", password_hash="x")
    # session still usable after the rollback
    assert storage.get_user_by_username("dana").id == owner.id


def test_update_missing_project(storage):
    with pytest.raises(NotFound):
        storage.update_project(12, {"name": "x"})


def test_update_project_stamps_later_time(storage, owner):
    project = storage.create_project(owner_id=owner.id, name="p")
    created_at, first = project.created_at, project.updated_at
    for _ in range(3):
        project = storage.update_project(project.id, {"status": "building"})
        assert project.updated_at > first
        first = project.updated_at
    assert project.created_at == created_at


def test_session_must_reference_existing_project(storage, owner):
    with pytest.raises(ConstraintViolation):
        storage.create_chat_session(owner_id=owner.id, title="t", project_id=404)


def test_messages_in_insertion_order(storage, owner):
    session = storage.create_chat_session(owner_id=owner.id, title="t")
    for i in range(5):
        storage.create_chat_message(session_id=session.id, role="user", content=str(i))
    contents = [m.content for m in storage.list_chat_messages_by_session(session.id)]
    assert contents == ["0", "1", "2", "3", "4"]


def test_empty_file_batch(storage, owner):
    project = storage.create_project(owner_id=owner.id, name="p")
    assert storage.create_generated_files(project.id, []) == []
    assert storage.list_generated_files_by_project(project.id) == []
