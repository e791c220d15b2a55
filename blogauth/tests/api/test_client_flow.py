"""
End-to-end flows through AdminAuthClient and the CLI against the app
"""
import argparse

import httpx
import pytest

from blogauth.client import AdminAuthClient, AdminAuthClientError, KeyPairProvider, MemoryKeyStore
from blogauth.client.cli import build_parser, run
from blogauth.client.keystore import FileKeyStore
from blogauth.core.audit import AuditEventKind


@pytest.fixture
def provider():
    return KeyPairProvider(MemoryKeyStore())


@pytest.fixture
def admin_client(client, provider):
    return AdminAuthClient(provider=provider, http=client)


class TestAdminAuthClient:

    def test_setup_login_rotate(self, admin_client, provider, admin_user, audit_sink):
        first = admin_client.setup_keys("admin@example.com")
        assert provider.export_private_key() == first.private_key

        session = admin_client.login("admin@example.com")
        assert session.user["id"] == admin_user.id
        assert admin_client.me(session)["email"] == "admin@example.com"

        second = admin_client.rotate_keys("admin@example.com")
        assert provider.export_private_key() == second.private_key
        assert second.public_key != first.public_key

        session = admin_client.login("admin@example.com")
        stats = admin_client.audit_stats(session, window="1h")
        assert stats["byEvent"]["key_generation"] == 1
        assert stats["byEvent"]["key_rotation"] == 1

        events = admin_client.audit_events(session, event="login_success")
        assert events["count"] == 2

    def test_refused_registration_keeps_no_key(self, admin_client, provider, regular_user):
        with pytest.raises(AdminAuthClientError) as exc_info:
            admin_client.setup_keys("reader@example.com")
        assert exc_info.value.status_code == 403
        assert exc_info.value.kind == "not_admin"
        assert not provider.has_private_key()

    def test_refused_rotation_keeps_old_key(self, client, admin_with_key, audit_sink):
        # Local key does not match the registered one
        provider = KeyPairProvider(MemoryKeyStore())
        stale = provider.generate_key_pair()
        admin_client = AdminAuthClient(provider=provider, http=client)

        with pytest.raises(AdminAuthClientError) as exc_info:
            admin_client.rotate_keys("admin@example.com")

        assert exc_info.value.kind == "invalid_signature"
        assert provider.export_private_key() == stale.private_key
        assert audit_sink.events[-1].event_kind == AuditEventKind.ROTATION_FAILURE

    def test_login_not_eligible(self, admin_client, admin_user):
        admin_client.provider.generate_key_pair()
        with pytest.raises(AdminAuthClientError) as exc_info:
            admin_client.login("admin@example.com")
        assert exc_info.value.status_code == 401
        assert exc_info.value.kind == "not_eligible"

    def test_connection_failure(self, provider):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        http = httpx.Client(base_url="http://blog.invalid", transport=httpx.MockTransport(refuse))
        with AdminAuthClient(provider=provider, http=http) as admin_client:
            with pytest.raises(AdminAuthClientError) as exc_info:
                admin_client.request_challenge("admin@example.com")
        assert exc_info.value.status_code is None
        assert exc_info.value.kind == "request_failed"


class TestCli:

    def _args(self, tmp_path, *argv) -> argparse.Namespace:
        return build_parser().parse_args(["--key-dir", str(tmp_path), *argv])

    def test_setup_login_status(self, client, admin_user, tmp_path, capsys):
        provider = KeyPairProvider(FileKeyStore(tmp_path))

        def factory():
            return AdminAuthClient(provider=provider, http=client)

        assert run(self._args(tmp_path, "setup", "admin@example.com"), provider, factory) == 0
        assert (tmp_path / "admin-private-key.pem").exists()

        assert run(self._args(tmp_path, "login", "admin@example.com"), provider, factory) == 0
        token = capsys.readouterr().out.strip().splitlines()[-1]
        assert token.count(".") == 2

        assert run(self._args(tmp_path, "status"), provider) == 0
        assert "Local key: present" in capsys.readouterr().out

    def test_setup_refuses_to_overwrite(self, tmp_path, capsys):
        provider = KeyPairProvider(FileKeyStore(tmp_path))
        provider.generate_key_pair()
        assert run(self._args(tmp_path, "setup", "admin@example.com"), provider) == 1
        assert "already exists" in capsys.readouterr().err

    def test_export_and_import(self, tmp_path):
        source = KeyPairProvider(FileKeyStore(tmp_path / "a"))
        pair = source.generate_key_pair()
        backup = tmp_path / "backup.pem"

        assert run(self._args(tmp_path / "a", "export", "-o", str(backup)), source) == 0
        assert backup.read_text() == pair.private_key

        target = KeyPairProvider(FileKeyStore(tmp_path / "b"))
        assert run(self._args(tmp_path / "b", "import", str(backup)), target) == 0
        assert target.public_key_pem() == pair.public_key

    def test_export_without_key(self, tmp_path):
        provider = KeyPairProvider(FileKeyStore(tmp_path))
        assert run(self._args(tmp_path, "export"), provider) == 1

    def test_status_without_key(self, tmp_path, capsys):
        provider = KeyPairProvider(FileKeyStore(tmp_path))
        assert run(self._args(tmp_path, "status"), provider) == 0
        assert "none" in capsys.readouterr().out
