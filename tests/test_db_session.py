import asyncio
from types import SimpleNamespace
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.db.session import ACTING_USER_KEY, _SET_USER_SQL, _apply_acting_user, user_context


class RecordingConnection:
    def __init__(self):
        self.executed = []

    def execute(self, statement, params):
        self.executed.append((str(statement), params))


def test_acting_user_is_set_transaction_locally():
    conn = RecordingConnection()
    _apply_acting_user(SimpleNamespace(info={ACTING_USER_KEY: "u-1"}), None, conn)
    _apply_acting_user(SimpleNamespace(info={}), None, conn)

    assert conn.executed == [(str(_SET_USER_SQL), {"user_id": "u-1"})]
    assert "true" in str(_SET_USER_SQL)


def test_user_context_forgets_user_on_exit():
    session = AsyncSession()
    user_id = uuid4()

    async def scenario():
        async with user_context(session, user_id):
            inside = session.info.get(ACTING_USER_KEY)
        return inside

    assert asyncio.run(scenario()) == str(user_id)
    assert ACTING_USER_KEY not in session.info
