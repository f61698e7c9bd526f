"""Tests for role-account request parsing."""

from __future__ import annotations

import pytest

from apps.merchant_auth.http.schemas import (
    SchemaValidationError,
    parse_check_exists,
    parse_invite,
    parse_reset,
    parse_set_credential,
    parse_set_pin,
    parse_signin,
    parse_signout,
)


def test_parse_invite_normalizes_email():
    request = parse_invite({"role": "staff", "email": " Sam@LankaQR.lk ", "displayName": " Sam "})

    assert request.role == "staff"
    assert request.email == "sam@lankaqr.lk"
    assert request.name == "Sam"


def test_parse_invite_name_is_optional():
    assert parse_invite({"role": "admin", "email": "a@lankaqr.lk"}).name == ""


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"role": "staff"},
        {"role": "staff", "email": "nope"},
        {"role": "owner", "email": "a@lankaqr.lk"},
        {"role": 7, "email": "a@lankaqr.lk"},
    ],
)
def test_parse_invite_rejects(payload):
    with pytest.raises(SchemaValidationError):
        parse_invite(payload)


def test_parse_set_credential_pin_role():
    request = parse_set_credential({"role": "cashier", "token": "t" * 43, "pin": "0042"})

    assert request.secret == "0042"


def test_parse_set_credential_password_role_respects_minimum():
    payload = {"role": "admin", "token": "t" * 43, "password": "twelve-chars"}

    assert parse_set_credential(payload).secret == "twelve-chars"
    with pytest.raises(SchemaValidationError):
        parse_set_credential(payload, password_min_length=16)


def test_parse_set_credential_requires_token():
    with pytest.raises(SchemaValidationError):
        parse_set_credential({"role": "admin", "password": "long-enough"})


def test_parse_signin_identifier_aliases():
    assert parse_signin({"role": "cashier", "username": "acme-colombo-1", "pin": "1234"}).identifier == "acme-colombo-1"
    assert parse_signin({"role": "admin", "email": "a@lankaqr.lk", "password": "x"}).identifier == "a@lankaqr.lk"
    assert parse_signin({"role": "admin", "identifier": " a ", "secret": "x"}).identifier == "a"


def test_parse_signin_requires_secret():
    with pytest.raises(SchemaValidationError):
        parse_signin({"role": "admin", "email": "a@lankaqr.lk", "password": ""})


def test_parse_check_exists_and_reset():
    assert parse_check_exists({"role": "staff", "email": "S@lankaqr.lk"}).email == "s@lankaqr.lk"
    assert parse_reset({"role": "branch-manager", "email": "m@acme.lk"}).role == "branch-manager"


def test_parse_signout_fallback_role():
    assert parse_signout({}, fallback_role="cashier").role == "cashier"
    assert parse_signout({"role": "admin"}, fallback_role="cashier").role == "admin"
    with pytest.raises(SchemaValidationError):
        parse_signout({})


def test_parse_set_pin_only_for_self_service_roles():
    request = parse_set_pin({"role": "company-owner", "pin": " 2468 "})

    assert (request.role, request.pin) == ("company-owner", "2468")
    with pytest.raises(SchemaValidationError):
        parse_set_pin({"role": "branch-manager", "pin": "2468"})
    with pytest.raises(SchemaValidationError):
        parse_set_pin({"role": "individual", "pin": "24"})
