from relaydesk.services.identity_service import SenderKind, classify


class TestClassify:
    def test_unknown_id_is_end_user(self, db_session):
        identity = classify(db_session, 555)
        assert identity.kind == SenderKind.END_USER
        assert identity.agent is None

    def test_agent(self, db_session, make_agent):
        make_agent(111, "Ann")

        identity = classify(db_session, 111)

        assert identity.kind == SenderKind.AGENT
        assert identity.is_agent is True
        assert identity.agent.name == "Ann"

    def test_admin(self, db_session, pool):
        pool.add_admin(db_session, 1)
        identity = classify(db_session, 1)
        assert identity.is_admin is True

    def test_admin_wins_over_agent(self, db_session, pool, make_agent):
        make_agent(111, "Ann", active=True)
        pool.add_admin(db_session, 111)

        identity = classify(db_session, 111)

        assert identity.kind == SenderKind.ADMIN
        assert identity.agent is None
