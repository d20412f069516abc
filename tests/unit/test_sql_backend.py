"""Unit tests for the SQLAlchemy option backend."""

from role_control.kernel.permissions import ConfigStore, PermissionResolver


class TestSqlOptionBackend:
    """Option rows in SQLite."""

    async def test_missing_option_returns_default(self, sql_backend):
        assert await sql_backend.get("rbec_role_permissions") is None
        assert await sql_backend.get("rbec_role_permissions", {}) == {}

    async def test_set_and_get(self, sql_backend):
        await sql_backend.set("rbec_user_overrides", {"7": {"edit": False}})
        assert await sql_backend.get("rbec_user_overrides") == {"7": {"edit": False}}

    async def test_overwrite(self, sql_backend):
        await sql_backend.set("rbec_version", "1.0.0")
        await sql_backend.set("rbec_version", "1.1.0")
        assert await sql_backend.get("rbec_version") == "1.1.0"

    async def test_set_many_and_delete_many(self, sql_backend):
        await sql_backend.set_many({"a": 1, "b": [1, 2], "c": True})
        await sql_backend.delete_many(["a", "b", "missing"])

        assert await sql_backend.get("a") is None
        assert await sql_backend.get("b") is None
        assert await sql_backend.get("c") is True

    async def test_store_over_sql(self, sql_backend):
        """ConfigStore and resolver work unchanged over SQL."""
        store = ConfigStore(sql_backend)
        await store.set_role_permissions("editor", {"elementor": True})
        await store.set_user_override("9", {"edit": True})

        resolver = PermissionResolver(store)
        assert await resolver.can("7", ["editor"], "elementor") is True
        assert await resolver.can("9", ["subscriber"], "edit") is True

        await store.reset_to_defaults()
        assert await resolver.can("7", ["editor"], "elementor") is False
