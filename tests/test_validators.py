"""Test form validation helpers"""

import pytest

from console_core.data.validators import INVALID_INSTANCE_URL, is_url, validate_instance_url


class TestIsUrl:

    @pytest.mark.parametrize("value", [
        "https://acme.my.salesforce.com",
        "http://localhost:8080",
        "https://acme--sandbox.sandbox.my.salesforce.com/path?x=1",
    ])
    def test_valid(self, value):
        assert is_url(value) is True

    @pytest.mark.parametrize("value", [
        "",
        "acme.my.salesforce.com",
        "ftp://acme.com",
        "https://acme",
        "https://acme .com",
        "https://-acme.com",
        "https://acme.com:99999",
    ])
    def test_invalid(self, value):
        assert is_url(value) is False


class TestValidateInstanceUrl:

    def test_empty_is_only_an_error_when_required(self):
        assert validate_instance_url("").is_valid is True
        assert validate_instance_url("", required=True).as_dict() == {"instance_url": INVALID_INSTANCE_URL}

    def test_invalid(self):
        result = validate_instance_url("not a url")
        assert result.is_valid is False
        assert result.as_dict() == {"instance_url": INVALID_INSTANCE_URL}
