"""Tests for the credential gate."""

import pytest

from showroom.auth.credentials import (
    check_password,
    require_login_fields,
    require_strong_password,
    validate_email_shape,
    validate_password_strength,
)
from showroom.core import ErrorCode, ValidationError


class TestEmailShape:
    @pytest.mark.parametrize("email", ["admin@dealer.com", "a.b+c@sub.example.org"])
    def test_accepts_well_formed(self, email):
        assert validate_email_shape(email) is None

    @pytest.mark.parametrize("email", ["", "admin", "admin@dealer", "ad min@dealer.com", "@dealer.com"])
    def test_rejects_malformed(self, email):
        assert validate_email_shape(email) == "Please enter a valid email address."


class TestPasswordStrength:
    def test_short_lowercase_password_reports_four_violations(self):
        errors = validate_password_strength("abc")

        assert len(errors) == 4
        assert any("at least 8" in e for e in errors)
        assert any("uppercase" in e for e in errors)
        assert any("numbers" in e for e in errors)
        assert any("special" in e for e in errors)
        assert not any("lowercase" in e for e in errors)

    def test_strong_password_has_no_violations(self):
        assert validate_password_strength("Abc12345!") == []

    def test_symbol_outside_allowed_set_does_not_count(self):
        errors = validate_password_strength("Abc12345#")
        assert errors == ["Password must contain special characters (@$!%*?&)"]

    def test_custom_min_length(self):
        assert validate_password_strength("Ab1!", min_length=4) == []

    def test_check_password_result(self):
        assert check_password("Abc12345!").is_valid
        assert not check_password("abc").is_valid

    def test_require_strong_password_lists_all_errors(self):
        with pytest.raises(ValidationError) as exc:
            require_strong_password("abc")
        assert exc.value.code == ErrorCode.VALIDATION_ERROR
        assert len(exc.value.details["errors"]) == 4


class TestLoginFields:
    def test_trims_email(self):
        assert require_login_fields("  admin@dealer.com ", "x") == "admin@dealer.com"

    def test_missing_password(self):
        with pytest.raises(ValidationError) as exc:
            require_login_fields("admin@dealer.com", "")
        assert exc.value.message == "Please enter both email and password."

    def test_bad_email(self):
        with pytest.raises(ValidationError) as exc:
            require_login_fields("admin", "secret")
        assert exc.value.details == {"field": "email"}
