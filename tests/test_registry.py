from conftest import make_socket


class TestMembership:
    def test_register_assigns_unique_ids(self, registry):
        first = registry.register(make_socket())
        second = registry.register(make_socket())

        assert first.id != second.id
        assert registry.get(first.id) is first
        assert registry.stats()["connections"] == 2

    def test_join_and_members_of(self, registry):
        a = registry.register(make_socket())
        b = registry.register(make_socket())

        registry.join(a.id, "chat-1")
        registry.join(b.id, "chat-1")
        registry.join(b.id, "chat-2")

        assert registry.members_of("chat-1") == {a.id, b.id}
        assert registry.members_of("chat-2") == {b.id}
        assert registry.rooms_of(b.id) == {"chat-1", "chat-2"}

    def test_join_is_idempotent(self, registry):
        a = registry.register(make_socket())

        registry.join(a.id, "chat-1")
        registry.join(a.id, "chat-1")

        assert registry.members_of("chat-1") == {a.id}

    def test_join_unknown_connection_is_ignored(self, registry):
        assert registry.join("missing", "chat-1") is False
        assert registry.members_of("chat-1") == set()

    def test_members_of_returns_a_copy(self, registry):
        a = registry.register(make_socket())
        registry.join(a.id, "chat-1")

        registry.members_of("chat-1").clear()

        assert registry.members_of("chat-1") == {a.id}

    def test_leave_prunes_empty_rooms(self, registry):
        a = registry.register(make_socket())
        registry.join(a.id, "chat-1")

        registry.leave(a.id, "chat-1")

        assert registry.members_of("chat-1") == set()
        assert "chat-1" not in registry.rooms
        assert registry.rooms_of(a.id) == set()


class TestDisconnect:
    def test_unregister_releases_every_room(self, registry):
        a = registry.register(make_socket())
        b = registry.register(make_socket())
        for room in ("u1", "chat-1", "chat-2"):
            registry.join(a.id, room)
        registry.join(b.id, "chat-1")

        registry.unregister(a.id)

        assert registry.get(a.id) is None
        assert registry.members_of("u1") == set()
        assert registry.members_of("chat-1") == {b.id}
        assert registry.members_of("chat-2") == set()
        assert registry.stats() == {"connections": 1, "rooms": 1, "identified_connections": 0}

    def test_unregister_twice_is_harmless(self, registry):
        a = registry.register(make_socket())
        registry.unregister(a.id)
        registry.unregister(a.id)

        assert registry.stats()["connections"] == 0
