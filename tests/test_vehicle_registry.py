# tests/test_vehicle_registry.py
"""Registry behaviour on both backends, plus the same-plate race in memory."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from platelink.domain import WheelCategory, PlateFamily
from platelink.errors import ConflictError, NotFoundError, NotOwnerError
from platelink.services.plate_normalizer import normalize

FOUR = WheelCategory.FOUR_WHEELER


class TestRegistration:
    def test_register_and_find(self, backend):
        vehicle = backend.registry.register_vehicle("owner-a", normalize("MH12AB1234"), FOUR)

        assert vehicle.plate == "MH12AB1234"
        assert vehicle.plate_family == PlateFamily.STANDARD
        assert vehicle.verified is False
        assert backend.registry.find_by_plate("MH12AB1234") == vehicle
        assert backend.registry.find_by_id(vehicle.vehicle_id) == vehicle

    def test_new_vehicle_starts_with_zero_stats(self, backend):
        vehicle = backend.registry.register_vehicle("owner-a", normalize("MH12AB1234"), FOUR)
        stats = backend.registry.get_stats(vehicle.vehicle_id)
        assert stats.total_searches == 0
        assert stats.contact_requests == 0
        assert stats.last_searched_at is None

    def test_duplicate_by_self(self, backend):
        backend.registry.register_vehicle("owner-a", normalize("MH12AB1234"), FOUR)
        with pytest.raises(ConflictError) as exc:
            backend.registry.register_vehicle("owner-a", normalize("mh 12 ab 1234"), FOUR)
        assert exc.value.reason == "AlreadyRegisteredBySelf"

    def test_duplicate_by_other(self, backend):
        backend.registry.register_vehicle("owner-a", normalize("MH12AB1234"), FOUR)
        with pytest.raises(ConflictError) as exc:
            backend.registry.register_vehicle("owner-b", normalize("MH12AB1234"), FOUR)
        assert exc.value.reason == "AlreadyRegisteredByOther"

    def test_unknown_lookups_return_none(self, backend):
        assert backend.registry.find_by_plate("MH12AB1234") is None
        assert backend.registry.find_by_id("missing") is None
        assert backend.registry.get_stats("missing") is None

    def test_list_by_owner(self, backend):
        backend.registry.register_vehicle("owner-a", normalize("MH12AB1234"), FOUR)
        backend.registry.register_vehicle("owner-a", normalize("26BH1234AA"), WheelCategory.TWO_WHEELER)
        backend.registry.register_vehicle("owner-b", normalize("KA05PQ3456"), FOUR)

        plates = {v.plate for v in backend.registry.list_by_owner("owner-a")}
        assert plates == {"MH12AB1234", "26BH1234AA"}
        assert backend.registry.list_by_owner("nobody") == []


class TestRemoval:
    def test_remove_then_reregister_by_other_owner(self, backend):
        first = backend.registry.register_vehicle("owner-a", normalize("MH12AB1234"), FOUR)
        with pytest.raises(ConflictError) as exc:
            backend.registry.register_vehicle("owner-b", normalize("MH12AB1234"), FOUR)
        assert exc.value.reason == "AlreadyRegisteredByOther"

        backend.registry.remove_vehicle("owner-a", first.vehicle_id)
        second = backend.registry.register_vehicle("owner-b", normalize("MH12AB1234"), FOUR)

        assert second.owner_id == "owner-b"
        assert second.vehicle_id != first.vehicle_id
        assert backend.registry.find_by_plate("MH12AB1234") == second

    def test_remove_deletes_stats(self, backend):
        vehicle = backend.registry.register_vehicle("owner-a", normalize("MH12AB1234"), FOUR)
        backend.registry.increment_stats(vehicle.vehicle_id, searches=2)
        backend.registry.remove_vehicle("owner-a", vehicle.vehicle_id)

        assert backend.registry.find_by_id(vehicle.vehicle_id) is None
        assert backend.registry.get_stats(vehicle.vehicle_id) is None

    def test_only_owner_can_remove(self, backend):
        vehicle = backend.registry.register_vehicle("owner-a", normalize("MH12AB1234"), FOUR)
        with pytest.raises(NotOwnerError):
            backend.registry.remove_vehicle("owner-b", vehicle.vehicle_id)
        assert backend.registry.find_by_id(vehicle.vehicle_id) is not None

    def test_remove_unknown(self, backend):
        with pytest.raises(NotFoundError):
            backend.registry.remove_vehicle("owner-a", "missing")


class TestStats:
    def test_increments_accumulate(self, backend):
        vehicle = backend.registry.register_vehicle("owner-a", normalize("MH12AB1234"), FOUR)
        backend.registry.increment_stats(vehicle.vehicle_id, searches=1)
        stats = backend.registry.increment_stats(vehicle.vehicle_id, searches=1, contacts=1)
        assert stats.total_searches == 2
        assert stats.contact_requests == 1

    def test_increment_on_removed_vehicle_returns_none(self, backend):
        assert backend.registry.increment_stats("missing", searches=1) is None


class TestConcurrency:
    def test_same_plate_race_has_one_winner(self, memory_backend):
        registry = memory_backend.registry
        barrier = threading.Barrier(2)

        def attempt(owner_id):
            barrier.wait()
            try:
                return registry.register_vehicle(owner_id, normalize("MH12AB1234"), FOUR)
            except ConflictError as e:
                return e

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(attempt, ["owner-a", "owner-b"]))

        winners = [r for r in results if not isinstance(r, ConflictError)]
        losers = [r for r in results if isinstance(r, ConflictError)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert losers[0].reason == "AlreadyRegisteredByOther"

    def test_concurrent_searches_are_all_counted(self, memory_backend):
        registry = memory_backend.registry
        vehicle = registry.register_vehicle("owner-a", normalize("MH12AB1234"), FOUR)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda _: registry.increment_stats(vehicle.vehicle_id, searches=1), range(200)))

        assert registry.get_stats(vehicle.vehicle_id).total_searches == 200
