import pytest

from config import Settings


@pytest.mark.parametrize("environment, allow, expected", [
    ("sandbox", False, False),
    ("sandbox", True, True),
    ("production", True, False),
    ("PRODUCTION", True, False),
])
def test_webhook_allow_unsigned_gate(environment, allow, expected):
    settings = Settings(_env_file=None, CASHFREE_ENVIRONMENT=environment, WEBHOOK_ALLOW_UNSIGNED=allow)

    assert settings.webhook_allow_unsigned is expected


def test_gateway_api_base_follows_environment():
    assert Settings(_env_file=None).gateway_api_base == "https://sandbox.cashfree.com/pg"
    assert (Settings(_env_file=None, CASHFREE_ENVIRONMENT="production").gateway_api_base
            == "https://api.cashfree.com/pg")
