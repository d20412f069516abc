"""Unit tests for permission resolution."""

import pytest

from role_control.kernel.permissions import ConfigStore, PermissionResolver
from role_control.kernel.storage import InMemoryOptionBackend
from role_control.logging_config import get_batch_id


class TestResolution:
    """Override -> first matching role -> deny."""

    @pytest.mark.parametrize("capability", ["edit", "elementor", "publish"])
    async def test_unknown_role_denies(self, resolver, capability):
        """Unknown roles resolve to False for any capability."""
        assert await resolver.can("1", ["ghost"], capability) is False

    async def test_no_roles_denies(self, resolver):
        assert await resolver.can("1", [], "edit") is False

    async def test_anonymous_identity(self, resolver):
        """No user id still resolves through roles."""
        assert await resolver.can(None, ["administrator"], "elementor") is True

    async def test_invalid_capability_denies(self, resolver):
        assert await resolver.can("1", ["administrator"], "") is False
        assert await resolver.can("1", ["administrator"], None) is False

    async def test_editor_scenario(self, store, resolver):
        """Editor may edit but not use the page builder."""
        await store.import_permissions({
            "role_permissions": {
                "editor": {"edit": True, "elementor": False, "description": "Editors"},
            },
        })

        assert await resolver.can("u", ["editor"], "edit") is True
        assert await resolver.can("u", ["editor"], "elementor") is False

    async def test_override_falls_through_per_capability(self, store, resolver):
        """An override only decides the capabilities it sets."""
        await store.import_permissions({
            "role_permissions": {
                "editor": {"edit": True, "elementor": False, "description": "Editors"},
            },
        })
        await store.set_user_override("u", {"edit": False})

        assert await resolver.can("u", ["editor"], "edit") is False
        assert await resolver.can("u", ["editor"], "elementor") is False

    @pytest.mark.parametrize("roles", [["administrator"], ["subscriber"], ["ghost"], []])
    async def test_override_precedence(self, store, resolver, roles):
        """An explicitly set override capability wins over any role."""
        await store.set_user_override("u", {"edit": True, "elementor": False})

        assert await resolver.can("u", roles, "edit") is True
        assert await resolver.can("u", roles, "elementor") is False

    async def test_first_matching_role_wins(self, resolver):
        """Roles are checked in order and the first known role decides."""
        mixed = await resolver.can("u", ["subscriber", "administrator"], "edit")
        alone = await resolver.can("u", ["subscriber"], "edit")

        assert mixed == alone
        assert mixed is False
        assert await resolver.can("u", ["administrator", "subscriber"], "edit") is True

    async def test_unknown_roles_are_skipped_before_match(self, resolver):
        """Roles missing from the configuration do not stop the search."""
        assert await resolver.can("u", ["ghost", "editor"], "edit") is True

    async def test_known_role_without_capability_denies(self, store, resolver):
        """The first known role decides even when it lacks the capability."""
        await store.set_role_permissions("editor", {"publish": True})

        assert await resolver.can("u", ["administrator", "editor"], "publish") is False
        assert await resolver.can("u", ["editor", "administrator"], "publish") is True

    async def test_resolution_never_writes(self, backend, resolver):
        await resolver.can("u", ["editor"], "edit")
        await resolver.effective_permissions("u", ["ghost"])
        assert backend.snapshot() == {}


class TestEffectivePermissions:
    """Resolved capability maps."""

    async def test_matches_can(self, store, resolver):
        """Every entry agrees with can() for the same identity."""
        await store.set_user_override("u", {"elementor": True})
        roles = ["editor"]

        effective = await resolver.effective_permissions("u", roles)

        assert effective == {"edit": True, "elementor": True}
        for capability, value in effective.items():
            assert await resolver.can("u", roles, capability) is value

    async def test_includes_override_only_capabilities(self, store, resolver):
        """A capability set only by the user's override still appears."""
        await store.set_user_override("7", {"publish": True})

        effective = await resolver.effective_permissions("7", ["editor"])

        assert effective == {"edit": True, "elementor": False, "publish": True}
        assert await resolver.can("7", ["editor"], "publish") is True
        assert "publish" not in await resolver.effective_permissions("8", ["editor"])

    async def test_includes_extra_capabilities(self, store, resolver):
        await store.set_role_permissions("editor", {"publish": True})
        effective = await resolver.effective_permissions("u", ["editor"])
        assert effective == {"edit": True, "elementor": False, "publish": True}


class TestResolutionBatch:
    """Per-batch caching and snapshots."""

    async def test_memoises_per_user_and_capability(self, store, resolver):
        async with resolver.batch() as batch:
            assert await batch.can("u", ["editor"], "edit") is True
            assert len(batch.cache) == 1
            assert await batch.can("u", ["editor"], "edit") is True
            assert len(batch.cache) == 1

    async def test_anonymous_identities_not_memoised(self, resolver):
        """Checks without a user id are answered from their own roles."""
        async with resolver.batch() as batch:
            assert await batch.can(None, ["administrator"], "edit") is True
            assert await batch.can(None, ["subscriber"], "edit") is False
            assert len(batch.cache) == 0

    async def test_batch_snapshots_configuration(self, store, resolver):
        """Writes made during a batch are not seen until the next batch."""
        async with resolver.batch() as batch:
            assert await batch.can("u", ["editor"], "elementor") is False
            await store.set_role_permissions("editor", {"elementor": True})
            assert await batch.can("u", ["editor"], "elementor") is False

        assert await resolver.can("u", ["editor"], "elementor") is True

    async def test_cache_cleared_on_exit(self, resolver):
        async with resolver.batch() as batch:
            await batch.can("u", ["editor"], "edit")
        assert len(batch.cache) == 0

    async def test_batch_id_set_inside_batch(self, resolver):
        assert get_batch_id() is None
        async with resolver.batch() as batch:
            assert get_batch_id() == batch.batch_id
        assert get_batch_id() is None

    async def test_separate_batches_do_not_share_cache(self, store, resolver):
        assert await resolver.can("u", ["editor"], "elementor") is False
        await store.set_role_permissions("editor", {"elementor": True})
        assert await resolver.can("u", ["editor"], "elementor") is True


class TestInterceptors:
    """Host-registered result interceptors."""

    async def test_interceptor_can_replace_result(self, resolver):
        resolver.add_interceptor(lambda context, result: True if context.user_id == "vip" else None)

        assert await resolver.can("vip", ["subscriber"], "edit") is True
        assert await resolver.can("other", ["subscriber"], "edit") is False

    async def test_interceptors_run_in_order(self, store):
        seen = []

        def first(context, result):
            seen.append(("first", result))
            return True

        def second(context, result):
            seen.append(("second", result))
            return None

        resolver = PermissionResolver(store, [first, second])
        assert await resolver.can("u", ["subscriber"], "edit") is True
        assert seen == [("first", False), ("second", True)]

    async def test_interceptor_sees_resolution_source(self, store):
        contexts = []
        resolver = PermissionResolver(store, [lambda context, result: contexts.append(context)])
        await store.set_user_override("u", {"edit": False})

        await resolver.can("u", ["editor"], "edit")
        await resolver.can("u", ["ghost", "editor"], "elementor")
        await resolver.can("x", ["ghost"], "edit")

        assert [c.source for c in contexts] == ["override", "role", "default"]
        assert contexts[1].matched_role == "editor"


class TestRoundTrip:
    """Export/import preserves every resolved answer."""

    async def test_import_of_export_keeps_answers(self, store, resolver):
        await store.set_role_permissions("subscriber", {"elementor": True})
        await store.set_user_override("9", {"edit": True})
        pairs = [
            (user_id, roles, capability)
            for user_id, roles in [("1", ["administrator"]), ("9", ["subscriber"]), ("12", ["subscriber", "editor"])]
            for capability in ("edit", "elementor")
        ]
        before = [await resolver.can(*pair) for pair in pairs]

        fresh = ConfigStore(InMemoryOptionBackend())
        await fresh.import_permissions(await store.export_permissions())
        fresh_resolver = PermissionResolver(fresh)

        assert [await fresh_resolver.can(*pair) for pair in pairs] == before
