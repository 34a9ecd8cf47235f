"""Unit tests for the command line entry point."""

import keyring.errors
import pytest
from unittest.mock import patch
from dshare.cli import app
from dshare.share import link


class MemoryKeyring:
    """Stands in for the OS keyring backend, one per test."""

    priority = 1
    errors = keyring.errors

    def __init__(self):
        self.secrets = {}

    def get_keyring(self):
        return self

    def get_password(self, service, account):
        return self.secrets.get((service, account))

    def set_password(self, service, account, secret):
        self.secrets[(service, account)] = secret

    def delete_password(self, service, account):
        if self.secrets.pop((service, account), None) is None:
            raise keyring.errors.PasswordDeleteError(account)


@pytest.fixture
def local_env(tmp_path, monkeypatch):
    monkeypatch.setenv("DSHARE_STORAGE_ROOT", str(tmp_path / "store"))
    monkeypatch.setenv("DSHARE_BASE_URL", "https://share.example")
    monkeypatch.delenv("DSHARE_KEYRING_SERVICE", raising=False)
    monkeypatch.setattr("dshare.security.keystore.keyring", MemoryKeyring())
    return tmp_path


def _share(capsys, *argv):
    assert app.main(["share", *argv]) == 0
    return capsys.readouterr().out.strip()


def test_share_then_view(local_env, capsys):
    src = local_env / "notes.txt"
    src.write_bytes(b"0123456789")

    url = _share(capsys, str(src))
    parsed = link.parse(url)
    assert url.startswith("https://share.example/view?")
    assert parsed.filename == "notes.txt"
    assert parsed.mime_type == "text/plain"

    out = local_env / "out.txt"
    assert app.main(["view", url, "--out", str(out)]) == 0
    assert out.read_bytes() == b"0123456789"


def test_password_share_with_flag(local_env, capsys):
    src = local_env / "secret.bin"
    src.write_bytes(b"\x00\x01\x02")
    url = _share(capsys, str(src), "--password", "hunter2")

    out = local_env / "out.bin"
    assert app.main(["view", url, "--password", "hunter2", "--out", str(out)]) == 0
    assert out.read_bytes() == b"\x00\x01\x02"


def test_wrong_password_flag_exits_with_category(local_env, capsys):
    src = local_env / "secret.bin"
    src.write_bytes(b"data")
    url = _share(capsys, str(src), "--password", "hunter2")

    assert app.main(["view", url, "--password", "nope", "--out", str(local_env / "o")]) == 1
    assert "Decryption failed" in capsys.readouterr().err


def test_password_prompt(local_env, capsys):
    src = local_env / "secret.bin"
    src.write_bytes(b"data")
    url = _share(capsys, str(src), "--password", "hunter2")

    out = local_env / "o"
    with patch("dshare.cli.app.getpass.getpass", side_effect=["wrong", "hunter2"]) as prompt:
        assert app.main(["view", url, "--out", str(out)]) == 0
    assert prompt.call_count == 2
    assert out.read_bytes() == b"data"


def test_restricted_share_refused_for_other_identity(local_env, capsys):
    src = local_env / "a.txt"
    src.write_bytes(b"for someone else")
    url = _share(capsys, str(src), "--audience", "did:key:z123")

    assert app.main(["view", url, "--out", str(local_env / "o")]) == 1
    assert "Not authorized" in capsys.readouterr().err
    assert not (local_env / "o").exists()


def test_expired_share(local_env, capsys):
    src = local_env / "a.txt"
    src.write_bytes(b"old")
    url = _share(capsys, str(src), "--expires", "2000-01-01T00:00:00")

    assert app.main(["view", url]) == 1
    assert "Link expired" in capsys.readouterr().err


def test_invalid_audience_is_reported(local_env, capsys):
    src = local_env / "a.txt"
    src.write_bytes(b"x")
    assert app.main(["share", str(src), "--audience", "bob@example.com"]) == 1
    assert "not a DID" in capsys.readouterr().err


def test_missing_parameters(local_env, capsys):
    assert app.main(["view", "https://share.example/view?cid=abc"]) == 1
    assert "Missing required parameters" in capsys.readouterr().err


def test_copy_flag_uses_clipboard(local_env, capsys):
    src = local_env / "a.txt"
    src.write_bytes(b"x")
    with patch("dshare.cli.app.copy_to_clipboard", return_value=True) as copy:
        url = _share(capsys, str(src), "--copy")
    copy.assert_called_once_with(url)


def test_whoami_prints_did(local_env, capsys):
    assert app.main(["whoami"]) == 0
    assert capsys.readouterr().out.startswith("did:key:z")


def test_bad_configuration(monkeypatch, capsys):
    monkeypatch.setenv("DSHARE_HTTP_TIMEOUT", "soon")
    assert app.main(["whoami"]) == 1
    assert "Configuration error" in capsys.readouterr().err


def test_whoami_is_stable_across_runs(local_env, capsys):
    assert app.main(["whoami"]) == 0
    first = capsys.readouterr().out.strip()
    assert app.main(["whoami"]) == 0
    assert capsys.readouterr().out.strip() == first


def test_share_restricted_to_whoami_opens(local_env, capsys):
    assert app.main(["whoami"]) == 0
    me = capsys.readouterr().out.strip()

    src = local_env / "mine.txt"
    src.write_bytes(b"just for me")
    url = _share(capsys, str(src), "--audience", me)

    out = local_env / "out.txt"
    assert app.main(["view", url, "--out", str(out)]) == 0
    assert out.read_bytes() == b"just for me"


def test_whoami_without_keyring_is_configuration_error(local_env, monkeypatch, capsys):
    monkeypatch.setenv("DSHARE_KEYRING_SERVICE", "none")
    assert app.main(["whoami"]) == 1
    assert "Configuration error" in capsys.readouterr().err


def test_restricted_view_without_keyring_is_configuration_error(local_env, monkeypatch, capsys):
    src = local_env / "a.txt"
    src.write_bytes(b"x")
    url = _share(capsys, str(src), "--audience", "did:key:z123")

    monkeypatch.setenv("DSHARE_KEYRING_SERVICE", "none")
    assert app.main(["view", url, "--out", str(local_env / "o")]) == 1
    assert "Configuration error" in capsys.readouterr().err


@pytest.mark.parametrize("filename", ["..", ".", "../../etc/passwd"])
def test_view_writes_only_a_plain_filename(local_env, monkeypatch, capsys, filename):
    src = local_env / "a.txt"
    src.write_bytes(b"payload")
    parsed = link.parse(_share(capsys, str(src)))
    url = link.compose(parsed.locator, parsed.encoded_token, filename, parsed.mime_type)

    workdir = local_env / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    assert app.main(["view", url]) == 0
    written = [p.name for p in workdir.iterdir()]
    assert written == ["passwd" if filename.endswith("passwd") else "file"]


def test_unwritable_output_is_reported(local_env, capsys):
    src = local_env / "a.txt"
    src.write_bytes(b"x")
    url = _share(capsys, str(src))

    assert app.main(["view", url, "--out", str(local_env / "missing" / "o")]) == 1
    assert "Error:" in capsys.readouterr().err


def test_missing_source_file_is_reported(local_env, capsys):
    assert app.main(["share", str(local_env / "nope.txt")]) == 1
    assert "Error:" in capsys.readouterr().err
