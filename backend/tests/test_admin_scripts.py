"""
Admin recovery script: set_admin matches email case-insensitively and reports
missing users.
"""
import asyncio

from fakes import FakeDatabase, make_user
from scripts.set_admin_by_email import set_admin


def test_set_admin_grants_and_revokes():
    db = FakeDatabase()
    db.users.docs.append(make_user(email="ops@example.com", is_admin=False))

    assert asyncio.run(set_admin(db, "  OPS@example.com ")) is True
    assert db.users.docs[0]["is_admin"] is True

    assert asyncio.run(set_admin(db, "ops@example.com", is_admin=False)) is True
    assert db.users.docs[0]["is_admin"] is False


def test_set_admin_unknown_email():
    assert asyncio.run(set_admin(FakeDatabase(), "ghost@example.com")) is False
