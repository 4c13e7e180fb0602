"""
Unit tests for the license settings form and its POST handler.
"""
import pytest

from exceptions import InvalidNonceError


def submission(client, key=None, action=None, nonce=None):
    form = client.license_form()
    data = {form.nonce_field: nonce if nonce is not None else form.nonce}
    if key is not None:
        data[form.key_field] = key
    if action is not None:
        data[form.action_field] = action
    return data


class TestLicenseForm:
    """Tests for LicenseClient.license_form."""

    def test_field_names_use_prefix(self, client):
        form = client.license_form()

        assert form.key_field == "my-plugin_license_key"
        assert form.nonce_field == "my-plugin_license_nonce"
        assert form.action_field == "my-plugin_license_action"

    def test_nonce_is_verifiable(self, client, nonces):
        form = client.license_form()
        assert nonces.verify(form.nonce_field, form.nonce)

    def test_obfuscates_long_key(self, client):
        client.set_key("abcdef123456")

        form = client.license_form()

        assert form.visible_key == "********3456"
        assert not form.readonly

    def test_short_key_shown_in_clear(self, client):
        client.set_key("abc12")
        assert client.license_form().visible_key == "abc12"

    @pytest.mark.parametrize("status", ["invalid", "expired", "site_inactive"])
    def test_refused_key_shown_in_clear(self, client, status):
        client.set_key("abcdef123456")
        client.set_status(status)

        assert client.remote_activation_failed
        assert client.license_form().visible_key == "abcdef123456"

    def test_deactivated_key_stays_obfuscated(self, client):
        client.set_key("abcdef123456")
        client.set_status("deactivated")

        assert client.license_form().visible_key == "********3456"

    def test_valid_license_is_readonly(self, client):
        client.set_key("abcdef123456")
        client.set_status("valid")

        form = client.license_form()

        assert form.readonly
        assert form.is_valid
        assert form.visible_key == "********3456"

    def test_pinned_key_is_readonly(self, make_client):
        client = make_client(environ={"MYPLUGIN_LICENSE": "env-key-1234"})

        form = client.license_form()

        assert form.readonly
        assert form.key_pinned
        assert form.visible_key == "********1234"


@pytest.mark.asyncio
class TestHandleFormSubmission:
    """Tests for LicenseClient.handle_form_submission."""

    async def test_ignores_posts_without_key_field(self, client, server):
        assert await client.handle_form_submission({"other": "value"}) is None
        assert server.requests == []

    async def test_rejects_bad_nonce(self, client, server):
        data = submission(client, key="abc123", nonce="1700000000.forged")

        with pytest.raises(InvalidNonceError):
            await client.handle_form_submission(data)

        assert client.get_key() == ""
        assert server.requests == []

    async def test_rejects_missing_nonce(self, client):
        form = client.license_form()

        with pytest.raises(InvalidNonceError):
            await client.handle_form_submission({form.key_field: "abc123"})

    async def test_saves_sanitized_key_and_auto_activates(self, client, server):
        server.body = {"license": "valid", "site_count": 1, "license_limit": 10}

        result = await client.handle_form_submission(submission(client, key="  ABC-123_x!  "))

        assert result is True
        assert client.get_key() == "abc-123_x"
        assert server.params["license"] == "abc-123_x"
        assert client.get_status() == "valid"

    async def test_obfuscated_key_is_not_saved(self, client, server):
        client.set_key("abcdef123456")
        server.body = {"license": "valid", "site_count": 1, "license_limit": 10}

        await client.handle_form_submission(submission(client, key="********3456"))

        assert client.get_key() == "abcdef123456"
        assert server.params["license"] == "abcdef123456"

    async def test_pinned_key_is_not_overwritten(self, make_client, server):
        client = make_client(environ={"MYPLUGIN_LICENSE": "env-key"})
        server.body = {"license": "valid", "site_count": 1, "license_limit": 10}

        await client.handle_form_submission(submission(client, key="typed"))

        assert client.get_key() == "env-key"
        assert server.params["license"] == "env-key"

    async def test_auto_activation_ignores_requested_action(self, client, server):
        server.body = {"license": "invalid"}

        result = await client.handle_form_submission(
            submission(client, key="abc123", action="deactivate")
        )

        assert result is False
        assert server.params["edd_action"] == "activate_license"

    async def test_deactivate_action_on_valid_license(self, client, server):
        client.set_key("abc123")
        client.set_status("valid")
        server.body = {"license": "deactivated"}

        result = await client.handle_form_submission(
            submission(client, key="abc123", action="deactivate")
        )

        assert result is True
        assert server.params["edd_action"] == "deactivate_license"
        assert client.get_status() == "deactivated"

    async def test_activate_action_on_valid_license(self, client, server):
        client.set_key("abc123")
        client.set_status("valid")
        server.body = {"license": "valid", "site_count": 2, "license_limit": 10}

        result = await client.handle_form_submission(
            submission(client, key="abc123", action=" activate ")
        )

        assert result is True
        assert len(server.requests) == 1

    async def test_valid_license_without_action(self, client, server):
        client.set_key("abc123")
        client.set_status("valid")

        assert await client.handle_form_submission(submission(client, key="abc123")) is None
        assert server.requests == []
