"""Tests for the audiotext-admin command-line tool."""

from datetime import timedelta

import pytest

from audiotext import cli
from audiotext.db import ActivityLogRepository, UserRepository, make_engine, make_session_factory
from audiotext.db.models import ActivityLog, Role, utcnow
from audiotext.passwords import verify_password


def test_hash_password_generate_prints_verifiable_hash(capsys):
    assert cli.main(["hash-password", "--generate"]) == 0
    lines = capsys.readouterr().out.strip().splitlines()
    password = lines[0].split(": ", 1)[1]
    assert verify_password(password, lines[1])


def test_hash_password_prompts_twice(monkeypatch, capsys):
    answers = iter(["Abc12345!", "Abc12345!"])
    monkeypatch.setattr(cli.getpass, "getpass", lambda prompt="": next(answers))
    assert cli.main(["hash-password"]) == 0
    assert verify_password("Abc12345!", capsys.readouterr().out.strip())


def test_create_admin_then_promote_existing(tmp_path, monkeypatch, capsys):
    db_url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("AUDIOTEXT_DB_URL", db_url)

    assert cli.main(["create-admin", "Root@Example.com", "Root", "--generate"]) == 0
    assert "Created admin root@example.com" in capsys.readouterr().out

    db = make_session_factory(make_engine(db_url))()
    try:
        users = UserRepository(db)
        user = users.find_by_email("root@example.com")
        assert user.role == Role.admin
        users.update(user, role=Role.student, is_active=False)
    finally:
        db.close()

    assert cli.main(["create-admin", "root@example.com", "Root"]) == 0
    assert "Promoted" in capsys.readouterr().out

    db = make_session_factory(make_engine(db_url))()
    try:
        user = UserRepository(db).find_by_email("root@example.com")
        assert user.role == Role.admin and user.is_active
    finally:
        db.close()


def test_prune_activity_removes_old_entries(tmp_path, monkeypatch, capsys):
    db_url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("AUDIOTEXT_DB_URL", db_url)
    assert cli.main(["create-admin", "root@example.com", "Root", "--generate"]) == 0

    db = make_session_factory(make_engine(db_url))()
    try:
        user_id = UserRepository(db).find_by_email("root@example.com").id
        db.add(ActivityLog(user_id=user_id, type="login", timestamp=utcnow() - timedelta(days=200)))
        db.add(ActivityLog(user_id=user_id, type="login", timestamp=utcnow() - timedelta(days=5)))
        db.commit()
    finally:
        db.close()
    capsys.readouterr()

    assert cli.main(["prune-activity", "--days", "30", "--email", "root@example.com"]) == 0
    assert "Removed 1 activity entries" in capsys.readouterr().out

    db = make_session_factory(make_engine(db_url))()
    try:
        assert len(ActivityLogRepository(db).find_by_user(user_id)) == 1
    finally:
        db.close()


def test_prune_activity_unknown_user_exits(tmp_path, monkeypatch):
    monkeypatch.setenv("AUDIOTEXT_DB_URL", f"sqlite:///{tmp_path / 'cli.db'}")
    with pytest.raises(SystemExit, match="No user with email"):
        cli.main(["prune-activity", "--email", "ghost@example.com"])
