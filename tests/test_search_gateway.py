# tests/test_search_gateway.py
"""Lookup with masked owner, and paid, idempotent contact reveal."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from platelink.domain import ContactMethods, EntryKind, EntryReason, NotificationKind
from platelink.errors import InsufficientBalanceError, NotContactableError, NotFoundError, ValidationError
from platelink.services import vehicle_service
from platelink.services.search_gateway import SearchGateway, mask_name


@pytest.mark.parametrize("name, masked", [
    ("Riyaansh Mittal", "Riyaansh M."),
    ("Asha Rani Verma", "Asha V."),
    ("Madonna", "Madonna"),
    ("  ravi   kumar ", "ravi k."),
    ("", ""),
])
def test_mask_name(name, masked):
    assert mask_name(name) == masked


@pytest.fixture
def owner(make_user):
    return make_user("Riyaansh Mittal")


@pytest.fixture
def vehicle(backend, owner):
    return vehicle_service.register_vehicle(backend, owner.user_id, "MH 12 AB 1234", "four_wheeler")


@pytest.fixture
def searcher(backend, make_user):
    user = make_user("Searcher One", phone="9000000001", email="s1@example.com")
    backend.ledger.credit(user.user_id, 5, EntryReason.ADJUSTMENT)
    return user


class TestSearch:
    def test_found_masks_owner(self, gateway, vehicle, searcher):
        result = gateway.search("mh12ab1234", searcher_id=searcher.user_id)

        assert result.found is True
        assert result.plate == "MH12AB1234"
        assert result.plate_family == "Standard"
        assert result.vehicle.vehicle_id == vehicle.vehicle_id
        assert result.owner.masked_name == "Riyaansh M."
        assert result.owner.contactable is True
        assert result.total_searches == 1

    def test_search_counts_every_lookup(self, gateway, backend, vehicle):
        for _ in range(3):
            gateway.search("MH12AB1234")
        stats = backend.activity.vehicle_stats(vehicle.vehicle_id)
        assert stats.total_searches == 3
        assert stats.contact_requests == 0
        assert stats.last_searched_at is not None

    def test_not_found_is_a_normal_result(self, gateway, searcher):
        result = gateway.search("KA05P1234", searcher_id=searcher.user_id)
        assert result.found is False
        assert result.plate == "KA05P1234"
        assert result.owner is None

    def test_search_is_recorded_in_history(self, gateway, backend, vehicle, searcher):
        gateway.search("MH12AB1234", searcher_id=searcher.user_id)
        gateway.search("KA05P1234", searcher_id=searcher.user_id)

        history = backend.activity.search_history(searcher.user_id)
        assert sorted((e.plate, e.found) for e in history) == [("KA05P1234", False), ("MH12AB1234", True)]

    def test_invalid_plate(self, gateway):
        with pytest.raises(ValidationError):
            gateway.search("hello")


class TestReveal:
    def test_charges_and_returns_enabled_channels(self, gateway, backend, vehicle, searcher):
        contact = gateway.reveal(searcher.user_id, vehicle.vehicle_id, "req-1")

        assert contact.owner_name == "Riyaansh Mittal"
        assert contact.channels == {"phone": "9876543210"}
        assert contact.cost == 1
        assert contact.balance == 4
        assert contact.replayed is False
        assert backend.activity.vehicle_stats(vehicle.vehicle_id).contact_requests == 1

        spent = [e for e in backend.ledger.history(searcher.user_id) if e.kind == EntryKind.SPENT]
        assert [e.entry_id for e in spent] == [contact.entry_id]
        assert spent[0].related_vehicle_id == vehicle.vehicle_id

    def test_retry_with_same_key_charges_once(self, gateway, backend, vehicle, searcher):
        first = gateway.reveal(searcher.user_id, vehicle.vehicle_id, "req-1")
        again = gateway.reveal(searcher.user_id, vehicle.vehicle_id, "req-1")

        assert again.entry_id == first.entry_id
        assert again.replayed is True
        assert backend.ledger.get_balance(searcher.user_id) == 4
        assert backend.activity.vehicle_stats(vehicle.vehicle_id).contact_requests == 1

    def test_new_key_charges_again(self, gateway, backend, vehicle, searcher):
        gateway.reveal(searcher.user_id, vehicle.vehicle_id, "req-1")
        gateway.reveal(searcher.user_id, vehicle.vehicle_id, "req-2")
        assert backend.ledger.get_balance(searcher.user_id) == 3

    def test_zero_balance(self, gateway, backend, vehicle, make_user):
        broke = make_user("Broke User", phone="9000000002", email="b@example.com")

        with pytest.raises(InsufficientBalanceError):
            gateway.reveal(broke.user_id, vehicle.vehicle_id, "req-1")

        assert backend.ledger.history(broke.user_id) == []
        assert backend.activity.vehicle_stats(vehicle.vehicle_id).contact_requests == 0

    def test_owner_with_nothing_enabled(self, gateway, backend, make_user, searcher):
        hidden = make_user("Hidden Owner", phone="9111111111", email="h@example.com",
                           methods=ContactMethods(phone=False))
        parked = vehicle_service.register_vehicle(backend, hidden.user_id, "KA05P1234", "two_wheeler")

        assert gateway.search("KA05P1234").owner.contactable is False
        with pytest.raises(NotContactableError):
            gateway.reveal(searcher.user_id, parked.vehicle_id, "req-1")
        assert backend.ledger.get_balance(searcher.user_id) == 5

    def test_owner_without_phone_is_never_charged_for(self, gateway, backend, searcher):
        owner = backend.users.create_user("No Phone Owner")
        car = vehicle_service.register_vehicle(backend, owner.user_id, "KA05P1234", "four_wheeler")

        with pytest.raises(NotContactableError):
            gateway.reveal(searcher.user_id, car.vehicle_id, "req-1")

        assert backend.ledger.get_balance(searcher.user_id) == 5
        assert backend.activity.notifications(owner.user_id) == []
        assert backend.activity.vehicle_stats(car.vehicle_id).contact_requests == 0

    def test_only_enabled_methods_are_revealed(self, gateway, backend, make_user, searcher):
        owner = make_user("Multi Channel", phone="9222222222", email="m@example.com",
                          methods=ContactMethods(phone=False, whatsapp=True, email=True))
        car = vehicle_service.register_vehicle(backend, owner.user_id, "22BH0001C", "four_wheeler")

        contact = gateway.reveal(searcher.user_id, car.vehicle_id, "req-1")
        assert contact.channels == {"whatsapp": "9222222222", "email": "m@example.com"}

    def test_unknown_vehicle(self, gateway, searcher):
        with pytest.raises(NotFoundError):
            gateway.reveal(searcher.user_id, "no-such-vehicle", "req-1")

    def test_unknown_user(self, gateway, vehicle):
        with pytest.raises(NotFoundError):
            gateway.reveal("ghost", vehicle.vehicle_id, "req-1")

    def test_notifies_owner_and_warns_on_low_balance(self, gateway, backend, owner, vehicle, searcher):
        gateway.reveal(searcher.user_id, vehicle.vehicle_id, "req-1")
        assert not [n for n in backend.activity.notifications(searcher.user_id)
                    if n.kind == NotificationKind.LOW_BALANCE]

        gateway.reveal(searcher.user_id, vehicle.vehicle_id, "req-2")
        gateway.reveal(searcher.user_id, vehicle.vehicle_id, "req-3")

        kinds = [n.kind for n in backend.activity.notifications(searcher.user_id)]
        assert kinds.count(NotificationKind.LOW_BALANCE) == 1       # only when balance dips below 3
        owner_kinds = [n.kind for n in backend.activity.notifications(owner.user_id)]
        assert owner_kinds.count(NotificationKind.CONTACT_REQUEST) == 3


def test_concurrent_reveals_with_same_key(memory_backend):
    backend = memory_backend
    gateway = SearchGateway(backend, contact_cost=1)
    owner = backend.users.create_user("Riyaansh Mittal", phone="9876543210")
    searcher = backend.users.create_user("Searcher One", phone="9000000001")
    backend.ledger.credit(searcher.user_id, 5, EntryReason.ADJUSTMENT)
    car = vehicle_service.register_vehicle(backend, owner.user_id, "MH12AB1234", "four_wheeler")
    barrier = threading.Barrier(8)

    def attempt(_):
        barrier.wait()
        return gateway.reveal(searcher.user_id, car.vehicle_id, "tap-1")

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(attempt, range(8)))

    assert len({r.entry_id for r in results}) == 1
    assert [r.replayed for r in results].count(False) == 1
    assert backend.ledger.get_balance(searcher.user_id) == 4
    assert backend.activity.vehicle_stats(car.vehicle_id).contact_requests == 1


def test_vehicle_removed_mid_reveal_is_logged(memory_backend, caplog):
    backend = memory_backend
    gateway = SearchGateway(backend, contact_cost=1)
    owner = backend.users.create_user("Riyaansh Mittal", phone="9876543210")
    searcher = backend.users.create_user("Searcher One", phone="9000000001")
    backend.ledger.credit(searcher.user_id, 5, EntryReason.ADJUSTMENT)
    car = vehicle_service.register_vehicle(backend, owner.user_id, "MH12AB1234", "four_wheeler")

    debit = backend.ledger.debit_idempotent

    def remove_then_debit(*args, **kwargs):
        vehicle_service.remove_vehicle(backend, owner.user_id, car.vehicle_id)
        return debit(*args, **kwargs)

    backend.ledger.debit_idempotent = remove_then_debit
    with caplog.at_level("WARNING"):
        contact = gateway.reveal(searcher.user_id, car.vehicle_id, "tap-1")

    assert contact.channels == {"phone": "9876543210"}
    assert backend.ledger.get_balance(searcher.user_id) == 4
    assert any("was removed" in r.getMessage() and r.levelname == "WARNING" for r in caplog.records)
