"""
Construction/destruction pairing across both directions.

Every native block and every registry entry created during a test must be
gone at the end of it, whether the proxy was closed explicitly, by a
context manager, or by garbage collection.
"""

import gc
import weakref

import pytest

from handlebridge import Buffer, ConstructionFailureError, PersonBox, PersonRef, get_registry


class TestBufferPairing:
    def test_explicit_close(self, heap_leak_check):
        buffers = [Buffer(128) for _ in range(50)]
        for buf in buffers:
            buf.close()

    def test_collected_without_close(self, heap_leak_check):
        """A dropped Buffer is destroyed by its finalizer."""
        buf = Buffer(128)
        ref = weakref.ref(buf)
        del buf
        gc.collect()

        assert ref() is None

    def test_reference_cycle(self, heap_leak_check):
        """A Buffer inside a cycle is destroyed once the cycle is collected."""

        class Holder:
            pass

        holder = Holder()
        holder.buf = Buffer(64)
        holder.self = holder
        del holder
        gc.collect()

    def test_failed_construction_leaves_nothing(self, bridge_config, heap_leak_check):
        bridge_config(max_allocation=64)

        for _ in range(20):
            with pytest.raises(ConstructionFailureError):
                Buffer(1024)

    def test_stats_balance(self, heap):
        before = heap.stats()

        with Buffer(10):
            pass

        after = heap.stats()
        # The object struct and its data block
        assert after.total_allocations - before.total_allocations == 2
        assert after.total_frees - before.total_frees == 2
        assert after.live_bytes == before.live_bytes


class TestPersonPairing:
    @pytest.mark.parametrize("proxy_type", [PersonBox, PersonRef])
    def test_registry_returns_to_baseline(self, proxy_type, heap_leak_check):
        registry = get_registry()
        baseline = len(registry)

        proxies = [proxy_type(f"p{i}", i) for i in range(100)]
        clones = [p.clone() for p in proxies[::2]]
        assert len(registry) == baseline + 100

        for proxy in proxies + clones:
            proxy.free()

        assert len(registry) == baseline

    @pytest.mark.parametrize("proxy_type", [PersonBox, PersonRef])
    def test_collected_proxy_releases_handle(self, proxy_type, heap_leak_check):
        registry = get_registry()
        baseline = len(registry)

        proxies = [proxy_type("gopher", 10) for _ in range(10)]
        del proxies
        gc.collect()

        assert len(registry) == baseline

    def test_registry_keeps_object_alive(self):
        """The stored object survives every other reference being dropped."""

        class Payload:
            pass

        registry = get_registry()
        payload = Payload()
        ref = weakref.ref(payload)
        handle = registry.allocate(payload)
        del payload
        gc.collect()

        assert ref() is not None
        registry.release(handle)
        gc.collect()
        assert ref() is None


@pytest.mark.slow
class TestStress:
    """High-volume create/destroy cycles."""

    def test_buffer_churn(self, heap_leak_check):
        for i in range(5000):
            with Buffer(i % 512) as buf:
                buf.write(b"x" * (i % 16))

    def test_person_churn(self, heap_leak_check):
        registry = get_registry()
        baseline = len(registry)
        slots = registry.stats().slots

        for i in range(5000):
            proxy_type = PersonBox if i % 2 else PersonRef
            with proxy_type(f"person-{i}", i % 120) as person:
                assert person.age == i % 120

        assert len(registry) == baseline
        # Slots are reused, so the table does not grow with churn
        assert registry.stats().slots <= slots + 1
