import io
import json
import struct
from pathlib import Path
from types import SimpleNamespace

import pytest

from i18n_native_host import config as config_module
from i18n_native_host import main as main_module
from i18n_native_host.main import main, strip_browser_args
from i18n_native_host.transport.host import NativeMessagingHost


@pytest.fixture(autouse=True)
def isolate(tmp_path, monkeypatch):
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", tmp_path / "absent.yaml")
    monkeypatch.delenv("I18N_HOST_CONFIG", raising=False)
    monkeypatch.delenv("I18N_HOST_NAMESPACES", raising=False)
    monkeypatch.setattr(NativeMessagingHost, "install_signal_handlers", lambda self: None)


def _locales(tmp_path: Path) -> Path:
    lang_dir = tmp_path / "locales" / "de"
    lang_dir.mkdir(parents=True)
    (lang_dir / "reviewed.json").write_text(
        json.dumps({"common": {"logout": "Abmelden"}}, indent=4), encoding="utf-8"
    )
    return lang_dir


class _Output(io.BytesIO):
    captured = b""

    def close(self):
        if not self.closed:
            self.captured = self.getvalue()
        super().close()


@pytest.mark.unit
def test_strip_browser_args():
    argv = ["chrome-extension://abcdefghijklmnopabcdefghijklmnop/", "--parent-window=0", "serve"]
    assert strip_browser_args(argv) == ["serve"]


@pytest.mark.unit
def test_apply_command_from_file(tmp_path: Path, capsys):
    lang_dir = _locales(tmp_path)
    request = tmp_path / "request.json"
    request.write_text(
        json.dumps(
            {
                "root": "ignored",
                "lang": "de",
                "payload": [{"key": "common.logout", "old": "Abmelden", "new": "Ausloggen"}],
            }
        ),
        encoding="utf-8",
    )
    code = main(["apply", "--input", str(request), "--root", str(tmp_path / "locales")])
    assert code == 0
    output = json.loads(capsys.readouterr().out)
    assert output["success"] is True
    assert output["updatedFiles"] == [str(lang_dir / "reviewed.json")]


@pytest.mark.unit
def test_apply_command_reports_failure(tmp_path: Path, capsys):
    _locales(tmp_path)
    request = tmp_path / "request.json"
    request.write_text(
        json.dumps(
            {
                "root": str(tmp_path / "locales"),
                "lang": "de",
                "payload": {"key": "common.logout", "old": "Falsch", "new": "X"},
            }
        ),
        encoding="utf-8",
    )
    code = main(["apply", "--input", str(request)])
    assert code == 1
    output = json.loads(capsys.readouterr().out)
    assert output["errors"] == ['Mismatch for common.logout: current="Abmelden", expected="Falsch"']


@pytest.mark.unit
def test_apply_command_force_flag(tmp_path: Path, capsys):
    lang_dir = _locales(tmp_path)
    request = tmp_path / "request.json"
    request.write_text(
        json.dumps(
            {
                "root": str(tmp_path / "locales"),
                "lang": "de",
                "payload": [{"key": "common.logout", "old": "Falsch", "new": "X"}],
            }
        ),
        encoding="utf-8",
    )
    assert main(["apply", "--input", str(request), "--force"]) == 0
    assert json.loads((lang_dir / "reviewed.json").read_text(encoding="utf-8"))["common"]["logout"] == "X"


@pytest.mark.unit
def test_apply_command_bad_json(tmp_path: Path, capsys):
    request = tmp_path / "request.json"
    request.write_text("{oops", encoding="utf-8")
    assert main(["apply", "--input", str(request)]) == 1
    output = json.loads(capsys.readouterr().out)
    assert output["error"].startswith("Failed to read request:")


@pytest.mark.unit
def test_install_manifest_dry_run(capsys):
    code = main(
        [
            "install-manifest",
            "--extension-id",
            "abcdefghijklmnopabcdefghijklmnop",
            "--host-path",
            "/opt/i18n-native-host",
            "--dry-run",
        ]
    )
    assert code == 0
    manifest = json.loads(capsys.readouterr().out)
    assert manifest["path"] == "/opt/i18n-native-host"
    assert manifest["allowed_origins"] == ["chrome-extension://abcdefghijklmnopabcdefghijklmnop/"]


@pytest.mark.unit
def test_install_manifest_bad_id(capsys):
    assert main(["install-manifest", "--extension-id", "nope", "--dry-run"]) == 1


@pytest.mark.unit
def test_serve_with_browser_origin_argument(tmp_path: Path, monkeypatch):
    _locales(tmp_path)
    request = {
        "root": str(tmp_path / "locales"),
        "lang": "de",
        "payload": [{"key": "common.logout", "old": "Abmelden", "new": "Tschüss"}],
    }
    payload = json.dumps(request, ensure_ascii=False).encode("utf-8")
    out = _Output()
    monkeypatch.setattr(main_module.sys, "stdin", SimpleNamespace(buffer=io.BytesIO(struct.pack("<I", len(payload)) + payload)))
    monkeypatch.setattr(main_module.sys, "stdout", SimpleNamespace(buffer=out))

    code = main(["chrome-extension://abcdefghijklmnopabcdefghijklmnop/"])

    assert code == 0
    (length,) = struct.unpack("<I", out.captured[:4])
    response = json.loads(out.captured[4 : 4 + length].decode("utf-8"))
    assert response["success"] is True


@pytest.mark.unit
def test_serve_with_broken_config_still_answers(tmp_path: Path, monkeypatch):
    bad = tmp_path / "bad.yaml"
    bad.write_text("namespaces: [unclosed\n", encoding="utf-8")
    payload = b'{"root":"/x","lang":"de","payload":[]}'
    out = _Output()
    monkeypatch.setattr(main_module.sys, "stdin", SimpleNamespace(buffer=io.BytesIO(struct.pack("<I", len(payload)) + payload)))
    monkeypatch.setattr(main_module.sys, "stdout", SimpleNamespace(buffer=out))

    assert main(["--config", str(bad)]) == 0

    (length,) = struct.unpack("<I", out.captured[:4])
    response = json.loads(out.captured[4 : 4 + length].decode("utf-8"))
    assert response["success"] is False
    assert response["error"].startswith("Configuration error:")


@pytest.mark.unit
def test_serve_ignores_unknown_launch_arguments(tmp_path: Path, monkeypatch):
    _locales(tmp_path)
    request = {
        "root": str(tmp_path / "locales"),
        "lang": "de",
        "payload": [{"key": "common.logout", "old": "Abmelden", "new": "Raus"}],
    }
    payload = json.dumps(request).encode("utf-8")
    out = _Output()
    monkeypatch.setattr(main_module.sys, "stdin", SimpleNamespace(buffer=io.BytesIO(struct.pack("<I", len(payload)) + payload)))
    monkeypatch.setattr(main_module.sys, "stdout", SimpleNamespace(buffer=out))

    code = main(["/usr/lib/mozilla/native-messaging-hosts/host.json", "editor@example.org", "--unknown-flag"])

    assert code == 0
    (length,) = struct.unpack("<I", out.captured[:4])
    response = json.loads(out.captured[4 : 4 + length].decode("utf-8"))
    assert response["success"] is True


@pytest.mark.unit
def test_apply_command_still_rejects_unknown_options(tmp_path: Path):
    with pytest.raises(SystemExit) as excinfo:
        main(["apply", "--input", str(tmp_path / "r.json"), "--bogus"])
    assert excinfo.value.code == 2
