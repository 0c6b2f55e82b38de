from datetime import datetime, timedelta, timezone

import pytest

from relaydesk.models import Admin, Agent, AgentSession, MessageMapping
from relaydesk.services import directory_store


class TestAdd:
    def test_new_agent_is_inactive(self, db_session, pool):
        result = pool.add(db_session, 111, "Ann")

        assert result.ok is True
        assert result.value.is_active is False
        assert result.value.external_id == 111

    def test_duplicate_external_id_fails(self, db_session, pool):
        pool.add(db_session, 111, "Ann")
        result = pool.add(db_session, 111, "Ann again")

        assert result.ok is False
        assert result.error_code == "already_exists"
        assert db_session.query(Agent).count() == 1


class TestActivate:
    def test_activate_then_activate_other_keeps_single_active(self, db_session, pool, make_agent):
        a = make_agent(111, "Ann")
        b = make_agent(222, "Bob")

        pool.activate(db_session, a.id)
        pool.activate(db_session, b.id)

        assert pool.get_active(db_session).id == b.id
        assert directory_store.get_agent(db_session, a.id).is_active is False
        assert db_session.query(Agent).filter(Agent.is_active.is_(True)).count() == 1

    def test_any_activation_sequence_keeps_at_most_one_active(self, db_session, pool, make_agent):
        agents = [make_agent(100 + i, f"Agent {i}") for i in range(4)]

        for index in [0, 2, 2, 1, 3, 0]:
            pool.activate(db_session, agents[index].id)
            assert db_session.query(Agent).filter(Agent.is_active.is_(True)).count() == 1

        assert pool.get_active(db_session).id == agents[0].id

    def test_activate_is_idempotent(self, db_session, pool, make_agent):
        a = make_agent(111, "Ann")

        first = pool.activate(db_session, a.id)
        second = pool.activate(db_session, a.id)

        assert first.ok and second.ok
        assert pool.get_active(db_session).id == a.id

    def test_activate_missing_agent_is_not_found(self, db_session, pool, make_agent):
        a = make_agent(111, "Ann", active=True)

        result = pool.activate(db_session, 999)

        assert result.ok is False
        assert result.error_code == "not_found"
        assert pool.get_active(db_session).id == a.id


class TestDeactivate:
    def test_deactivate_clears_only_target(self, db_session, pool, make_agent):
        a = make_agent(111, "Ann", active=True)
        b = make_agent(222, "Bob")

        result = pool.deactivate(db_session, b.id)

        assert result.ok is True
        assert pool.get_active(db_session).id == a.id

    def test_deactivating_active_agent_empties_pool(self, db_session, pool, make_agent):
        a = make_agent(111, "Ann", active=True)

        pool.deactivate(db_session, a.id)

        assert pool.get_active(db_session) is None

    def test_deactivate_missing_agent_is_not_found(self, db_session, pool):
        result = pool.deactivate(db_session, 42)
        assert result.error_code == "not_found"


class TestGetActive:
    def test_empty_pool_returns_none(self, db_session, pool):
        assert pool.get_active(db_session) is None

    def test_all_offline_returns_none(self, db_session, pool, make_agent):
        make_agent(111, "Ann")
        make_agent(222, "Bob")
        assert pool.get_active(db_session) is None


class TestRemove:
    def test_remove_deletes_session_and_admin_entry(self, db_session, pool, make_agent):
        a = make_agent(111, "Ann", active=True)
        pool.add_admin(db_session, 111)
        directory_store.set_agent_session(db_session, 111, 555, "User")
        db_session.commit()

        result = pool.remove(db_session, a.id)

        assert result.ok is True
        assert result.value == "Ann"
        assert db_session.query(Agent).count() == 0
        assert db_session.query(AgentSession).count() == 0
        assert db_session.query(Admin).count() == 0

    def test_remove_deletes_message_mappings(self, db_session, pool, make_agent):
        a = make_agent(111, "Ann")
        directory_store.put_message_mapping(db_session, 111, 1000, 555, "User")
        directory_store.put_message_mapping(db_session, 222, 1000, 777, "Other")
        db_session.commit()

        pool.remove(db_session, a.id)
        readded = make_agent(111, "Ann")

        assert directory_store.get_message_mapping(db_session, readded.external_id, 1000) is None
        assert directory_store.get_message_mapping(db_session, 222, 1000).user_id == 777

    def test_remove_keeps_other_agents_state(self, db_session, pool, make_agent):
        a = make_agent(111, "Ann")
        make_agent(222, "Bob")
        pool.add_admin(db_session, 222)
        directory_store.set_agent_session(db_session, 222, 555, "User")
        db_session.commit()

        pool.remove(db_session, a.id)

        assert directory_store.get_agent_session(db_session, 222) is not None
        assert directory_store.is_admin(db_session, 222) is True

    def test_remove_rolls_back_as_a_unit(self, db_session, pool, make_agent, monkeypatch):
        a = make_agent(111, "Ann")
        pool.add_admin(db_session, 111)
        directory_store.set_agent_session(db_session, 111, 555, "User")
        db_session.commit()

        def failing_delete(instance):
            raise RuntimeError("disk full")

        monkeypatch.setattr(db_session, "delete", failing_delete)
        with pytest.raises(RuntimeError):
            pool.remove(db_session, a.id)
        monkeypatch.undo()

        assert db_session.query(Agent).count() == 1
        assert db_session.query(AgentSession).count() == 1
        assert db_session.query(Admin).count() == 1

    def test_remove_missing_agent_is_not_found(self, db_session, pool):
        result = pool.remove(db_session, 7)
        assert result.ok is False
        assert result.error_code == "not_found"


class TestAdmins:
    def test_add_and_remove_admin(self, db_session, pool):
        assert pool.add_admin(db_session, 1).ok is True
        assert pool.add_admin(db_session, 1).error_code == "already_exists"
        assert pool.remove_admin(db_session, 1).ok is True
        assert pool.remove_admin(db_session, 1).error_code == "not_found"


class TestPruneMappings:
    def test_prunes_only_old_mappings(self, db_session, pool):
        directory_store.put_message_mapping(db_session, 111, 1, 555, "Old")
        directory_store.put_message_mapping(db_session, 111, 2, 556, "New")
        old = directory_store.get_message_mapping(db_session, 111, 1)
        old.created_at = datetime.now(timezone.utc) - timedelta(days=40)
        db_session.commit()

        deleted = pool.prune_mappings(db_session, ttl_days=30)

        assert deleted == 1
        assert db_session.query(MessageMapping).count() == 1
        assert directory_store.get_message_mapping(db_session, 111, 2) is not None
