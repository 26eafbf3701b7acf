"""
Tests for HandleRegistry.

Covers the handle contract:
1. Fresh handles are distinct while live
2. Released handles stop resolving
3. Double release is detected
4. Typed lookup rejects values of the wrong type
5. Reused slots never alias the old entry
"""

import pytest

from handlebridge import NULL_HANDLE, InvalidHandleError, TypeMismatchError
from handlebridge.registry import INDEX_BITS, INDEX_MASK


class TestAllocate:
    """Tests for allocate()."""

    def test_handles_are_distinct(self, registry):
        """Handles from allocations with no release in between are pairwise distinct."""
        handles = [registry.allocate(i) for i in range(1000)]

        assert len(set(handles)) == 1000

    def test_handle_is_never_null(self, registry):
        """Handle 0 is reserved as the failure sentinel."""
        handles = [registry.allocate(object()) for _ in range(100)]

        assert NULL_HANDLE not in handles
        assert all(h > 0 for h in handles)

    def test_handles_fit_in_signed_64_bits(self, registry):
        """Handles cross the boundary as 64-bit integers."""
        handle = registry.allocate("x")

        assert 0 < handle < 2**63

    def test_registry_keeps_value_alive(self, registry):
        """The registry holds a strong reference to the value."""
        import gc
        import weakref

        class Payload:
            pass

        payload = Payload()
        ref = weakref.ref(payload)
        handle = registry.allocate(payload)
        del payload
        gc.collect()

        assert ref() is not None
        assert registry.lookup(handle) is ref()

    def test_release_drops_reference(self, registry):
        """After release the registry no longer keeps the value alive."""
        import gc
        import weakref

        class Payload:
            pass

        payload = Payload()
        ref = weakref.ref(payload)
        handle = registry.allocate(payload)
        del payload
        registry.release(handle)
        gc.collect()

        assert ref() is None


class TestLookup:
    """Tests for lookup()."""

    def test_round_trip_returns_same_value(self, registry):
        """lookup(allocate(v)) returns v."""
        values = [0, "gopher", b"\x00\x01", {"age": 10}, [1, 2, 3], None, 3.5]

        for value in values:
            handle = registry.allocate(value)
            assert registry.lookup(handle) == value

    def test_round_trip_preserves_identity(self, registry):
        """The stored object itself is returned, not a copy."""
        value = {"name": "gopher"}
        handle = registry.allocate(value)

        assert registry.lookup(handle) is value

    def test_unknown_handle_raises(self, registry):
        """A handle that was never allocated is invalid."""
        with pytest.raises(InvalidHandleError):
            registry.lookup(12345)

    def test_null_handle_raises(self, registry):
        """The null handle never resolves."""
        with pytest.raises(InvalidHandleError):
            registry.lookup(NULL_HANDLE)

    def test_negative_handle_raises(self, registry):
        """Negative integers are not handles."""
        with pytest.raises(InvalidHandleError):
            registry.lookup(-1)

    def test_non_integer_handle_raises(self, registry):
        """Only integers are handles."""
        with pytest.raises(InvalidHandleError):
            registry.lookup("1")

    def test_typed_lookup_accepts_matching_type(self, registry):
        """Typed lookup returns the value when the type matches."""
        handle = registry.allocate({"a": 1})

        assert registry.lookup(handle, dict) == {"a": 1}

    def test_typed_lookup_accepts_subclass(self, registry):
        """Typed lookup follows isinstance semantics."""

        class Base:
            pass

        class Derived(Base):
            pass

        value = Derived()
        handle = registry.allocate(value)

        assert registry.lookup(handle, Base) is value

    def test_typed_lookup_rejects_other_type(self, registry):
        """A handle holding another type fails with TypeMismatchError."""
        handle = registry.allocate("not a dict")

        with pytest.raises(TypeMismatchError) as exc_info:
            registry.lookup(handle, dict)

        assert exc_info.value.details["expected"] == "dict"
        assert exc_info.value.details["actual"] == "str"

    def test_type_mismatch_leaves_entry_live(self, registry):
        """A failed typed lookup does not disturb the entry."""
        handle = registry.allocate(42)

        with pytest.raises(TypeMismatchError):
            registry.lookup(handle, str)

        assert registry.lookup(handle) == 42


class TestRelease:
    """Tests for release()."""

    def test_release_returns_value(self, registry):
        """release() hands back the stored value."""
        handle = registry.allocate("gopher")

        assert registry.release(handle) == "gopher"

    def test_lookup_after_release_raises(self, registry):
        """After release(h), lookup(h) fails."""
        handle = registry.allocate("gopher")
        registry.release(handle)

        with pytest.raises(InvalidHandleError):
            registry.lookup(handle)

    def test_double_release_raises(self, registry):
        """A second release of the same handle is detected."""
        handle = registry.allocate("gopher")
        registry.release(handle)

        with pytest.raises(InvalidHandleError):
            registry.release(handle)

    def test_double_release_does_not_corrupt_other_entries(self, registry):
        """A double release leaves every other live entry intact."""
        keep = [registry.allocate(i) for i in range(10)]
        victim = registry.allocate("victim")
        registry.release(victim)

        with pytest.raises(InvalidHandleError):
            registry.release(victim)

        assert [registry.lookup(h) for h in keep] == list(range(10))
        assert len(registry) == 10

    def test_double_release_after_slot_reuse_raises(self, registry):
        """Releasing a stale handle fails even after its slot is reused."""
        old = registry.allocate("old")
        registry.release(old)
        new = registry.allocate("new")

        with pytest.raises(InvalidHandleError):
            registry.release(old)

        assert registry.lookup(new) == "new"


class TestSlotReuse:
    """Tests for the free-list allocation policy."""

    def test_released_slot_is_reused(self, registry):
        """A released slot index is handed out again."""
        old = registry.allocate("old")
        registry.release(old)
        new = registry.allocate("new")

        assert new & INDEX_MASK == old & INDEX_MASK
        assert registry.stats().slots == 1

    def test_reused_slot_gets_new_handle(self, registry):
        """Slot reuse bumps the generation, so the numeric handle differs."""
        old = registry.allocate("old")
        registry.release(old)
        new = registry.allocate("new")

        assert new != old
        assert (new >> INDEX_BITS) == (old >> INDEX_BITS) + 1

    def test_stale_handle_does_not_alias_new_value(self, registry):
        """A stale handle never resolves to the slot's new occupant."""
        old = registry.allocate("old")
        registry.release(old)
        registry.allocate("new")

        with pytest.raises(InvalidHandleError):
            registry.lookup(old)

    def test_live_handles_distinct_across_reuse(self, registry):
        """Interleaved allocate/release never yields two equal live handles."""
        live = set()
        for i in range(500):
            handle = registry.allocate(i)
            assert handle not in live
            live.add(handle)
            if i % 3 == 0:
                released = live.pop()
                registry.release(released)

        assert set(registry.handles()) == live


class TestRetain:
    """Tests for retain() and shared handles."""

    def test_retain_increments_uses(self, registry):
        """Each retain adds a use."""
        handle = registry.allocate("shared")

        assert registry.retain(handle) == 2
        assert registry.retain(handle) == 3

    def test_entry_survives_until_last_release(self, registry):
        """A retained handle needs one release per use."""
        handle = registry.allocate("shared")
        registry.retain(handle)

        registry.release(handle)
        assert registry.lookup(handle) == "shared"

        registry.release(handle)
        with pytest.raises(InvalidHandleError):
            registry.lookup(handle)

    def test_retain_released_handle_raises(self, registry):
        """A released handle cannot be revived."""
        handle = registry.allocate("gone")
        registry.release(handle)

        with pytest.raises(InvalidHandleError):
            registry.retain(handle)


class TestIntrospection:
    """Tests for len(), membership, handles() and stats()."""

    def test_len_counts_live_entries(self, registry):
        handles = [registry.allocate(i) for i in range(5)]
        registry.release(handles[0])

        assert len(registry) == 4

    def test_contains(self, registry):
        handle = registry.allocate("x")

        assert handle in registry
        registry.release(handle)
        assert handle not in registry

    def test_handles_snapshot(self, registry):
        handles = {registry.allocate(i) for i in range(5)}

        assert set(registry.handles()) == handles
        assert set(registry) == handles

    def test_stats(self, registry):
        a = registry.allocate("a")
        registry.allocate("b")
        registry.release(a)

        stats = registry.stats()

        assert stats.live == 1
        assert stats.slots == 2
        assert stats.allocated_total == 2
        assert stats.released_total == 1


class TestProcessRegistry:
    """Tests for the process-wide registry."""

    def test_get_registry_is_singleton(self):
        """get_registry() always returns the same instance."""
        from handlebridge import get_registry

        assert get_registry() is get_registry()

    def test_module_helpers_use_process_registry(self):
        """allocate/lookup/retain/release delegate to get_registry()."""
        import handlebridge

        handle = handlebridge.allocate("global")
        try:
            assert handle in handlebridge.get_registry()
            assert handlebridge.lookup(handle, str) == "global"
            assert handlebridge.retain(handle) == 2
            handlebridge.release(handle)
        finally:
            assert handlebridge.release(handle) == "global"

        assert handle not in handlebridge.get_registry()
