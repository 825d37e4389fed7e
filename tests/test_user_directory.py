# tests/test_user_directory.py
"""Users and their contact profile: an enabled method always has something to reach."""

import pytest

from platelink.domain import ContactMethods, User
from platelink.errors import NotFoundError, ValidationError
from platelink.utils.ids import utcnow


class TestCreateUser:
    def test_phone_enabled_by_default_when_given(self, backend):
        user = backend.users.create_user("Riyaansh Mittal", phone="9876543210")
        assert user.contact_methods.enabled() == ["phone"]
        assert user.contactable is True
        assert backend.users.get(user.user_id) == user

    def test_no_phone_means_not_contactable(self, backend):
        user = backend.users.create_user("No Phone Owner")
        assert user.contact_methods.enabled() == []
        assert user.contactable is False
        assert user.reachable() == {}

    def test_blank_phone_counts_as_missing(self, backend):
        user = backend.users.create_user("Blank Phone", phone="   ")
        assert user.phone is None
        assert user.contactable is False

    @pytest.mark.parametrize("methods, phone, email", [
        (ContactMethods(phone=True), None, None),
        (ContactMethods(phone=False, whatsapp=True), None, "a@example.com"),
        (ContactMethods(phone=False, email=True), "9876543210", None),
    ])
    def test_enabled_method_needs_a_value(self, backend, methods, phone, email):
        with pytest.raises(ValidationError) as exc:
            backend.users.create_user("Half Filled", phone=phone, email=email, contact_methods=methods)
        assert exc.value.reason == "MissingContactValue"

    def test_rejected_user_gets_no_account(self, memory_backend):
        with pytest.raises(ValidationError):
            memory_backend.users.create_user("Half Filled", contact_methods=ContactMethods(phone=True),
                                             user_id="u1")
        assert memory_backend.users.get("u1") is None
        with pytest.raises(NotFoundError):
            memory_backend.ledger.get_account("u1")

    def test_blank_name(self, backend):
        with pytest.raises(ValidationError) as exc:
            backend.users.create_user("   ", phone="9876543210")
        assert exc.value.reason == "InvalidName"


class TestUpdateContact:
    def test_switch_methods(self, backend):
        user = backend.users.create_user("Riyaansh Mittal", phone="9876543210", email="r@example.com")
        updated = backend.users.update_contact(
            user.user_id, contact_methods=ContactMethods(phone=False, whatsapp=True, email=True),
        )
        assert updated.reachable() == {"whatsapp": "9876543210", "email": "r@example.com"}
        assert backend.users.get(user.user_id).reachable() == updated.reachable()

    def test_enabling_email_without_address(self, backend):
        user = backend.users.create_user("Riyaansh Mittal", phone="9876543210")
        with pytest.raises(ValidationError) as exc:
            backend.users.update_contact(user.user_id, contact_methods=ContactMethods(email=True))
        assert exc.value.reason == "MissingContactValue"
        assert backend.users.get(user.user_id).contact_methods.email is False

    def test_clearing_phone_while_enabled(self, backend):
        user = backend.users.create_user("Riyaansh Mittal", phone="9876543210")
        with pytest.raises(ValidationError):
            backend.users.update_contact(user.user_id, phone="")
        assert backend.users.get(user.user_id).phone == "9876543210"

    def test_unknown_user(self, backend):
        with pytest.raises(NotFoundError):
            backend.users.update_contact("ghost", phone="9876543210")


def test_flag_without_value_is_not_reachable():
    user = User(user_id="u1", full_name="Old Record", phone=None, email="o@example.com",
                contact_methods=ContactMethods(phone=True, email=True), created_at=utcnow())
    assert user.reachable() == {"email": "o@example.com"}
    assert user.contactable is True

    phone_only = User(user_id="u2", full_name="Old Record", phone=None, email=None,
                      contact_methods=ContactMethods(phone=True), created_at=utcnow())
    assert phone_only.contactable is False
