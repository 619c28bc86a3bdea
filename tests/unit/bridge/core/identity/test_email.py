from src.bridge.core.services.identity.email import (
    claim_rule,
    extract_email,
    placeholder_email,
)


class TestExtractEmail:
    def test_prefers_email_claim(self):
        claims = {"email": "a@example.com", "email_address": "b@example.com"}
        assert extract_email(claims) == "a@example.com"

    def test_falls_through_rules_in_order(self):
        assert extract_email({"email_address": "b@example.com"}) == "b@example.com"
        assert extract_email({"primary_email_address": "c@example.com"}) == "c@example.com"
        assert extract_email({"preferred_username": "d@example.com"}) == "d@example.com"

    def test_ignores_values_that_are_not_addresses(self):
        claims = {"email": "", "email_address": 42, "preferred_username": "dave"}
        assert extract_email(claims) is None

    def test_custom_rules(self):
        assert extract_email({"mail": " x@example.com "}, [claim_rule("mail")]) == "x@example.com"


def test_placeholder_email_is_non_routable_and_sanitized():
    email = placeholder_email("auth0|abc 123", prefix="idp", domain="example.invalid")
    assert email == "idp+auth0_abc_123@example.invalid"
    assert email.endswith(".invalid")
