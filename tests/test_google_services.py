"""Tests for Google OAuth credentials and the service factory."""

from unittest.mock import MagicMock, patch

from threadkeep.integrations.google_services import SCOPES, GoogleServiceFactory, get_credentials

_MODULE = "threadkeep.integrations.google_services"


class TestGetCredentials:
    def test_valid_token_is_reused(self, tmp_path):
        token = tmp_path / "token.json"
        token.write_text("{}")
        creds = MagicMock(valid=True)

        with patch(f"{_MODULE}.Credentials.from_authorized_user_file", return_value=creds) as load, \
                patch(f"{_MODULE}.InstalledAppFlow") as flow:
            assert get_credentials(tmp_path / "client.json", token) is creds

        load.assert_called_once_with(str(token), SCOPES)
        flow.from_client_secrets_file.assert_not_called()

    def test_expired_token_is_refreshed_and_saved(self, tmp_path):
        token = tmp_path / "token.json"
        token.write_text("{}")
        creds = MagicMock(valid=False, expired=True, refresh_token="r")
        creds.to_json.return_value = '{"refreshed": true}'

        with patch(f"{_MODULE}.Credentials.from_authorized_user_file", return_value=creds):
            get_credentials(tmp_path / "client.json", token)

        creds.refresh.assert_called_once()
        assert token.read_text() == '{"refreshed": true}'

    def test_no_token_runs_consent_flow(self, tmp_path):
        token = tmp_path / "secrets" / "token.json"
        creds = MagicMock()
        creds.to_json.return_value = "{}"

        with patch(f"{_MODULE}.InstalledAppFlow") as flow:
            flow.from_client_secrets_file.return_value.run_local_server.return_value = creds
            assert get_credentials(tmp_path / "client.json", token) is creds

        assert token.exists()


class TestServiceFactory:
    def test_services_built_once(self):
        factory = GoogleServiceFactory("client.json", "token.json")
        creds = MagicMock(valid=True)

        with patch(f"{_MODULE}.get_credentials", return_value=creds) as get_creds, \
                patch(f"{_MODULE}.build") as build:
            gmail = factory.gmail
            assert factory.gmail is gmail
            factory.tasks

        get_creds.assert_called_once()
        assert build.call_count == 2
        build.assert_any_call("gmail", "v1", credentials=creds, cache_discovery=False)
        build.assert_any_call("tasks", "v1", credentials=creds, cache_discovery=False)
