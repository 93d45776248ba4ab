from code_architect.models import Users
from code_architect.routers.auth import verify_password
from code_architect.seed import seed


def test_seed_is_idempotent(db):
    assert seed(db) == 2
    assert seed(db) == 0
    users = db.query(Users).order_by(Users.id).all()
    assert [u.username for u in users] == ["Alice", "Bob"]
    assert verify_password("password123", users[0].password_hash)


def test_seeded_user_can_log_in(db, client):
    seed(db)
    resp = client.post("/api/login", json={"email": "bob@example.com", "password": "password123"})
    assert resp.status_code == 200
    assert resp.json()["user"]["username"] == "Bob"
