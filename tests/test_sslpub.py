import pytest

from mqttsamples.sslpub import (
    KEY_STORE,
    TRUST_STORE,
    MissingStoreError,
    find_store,
    main,
)


def test_find_store_returns_existing_path(tmp_path):
    (tmp_path / TRUST_STORE).write_text("cert")
    path = find_store(tmp_path, TRUST_STORE)
    assert path == tmp_path / TRUST_STORE
    assert path.read_text() == "cert"


def test_find_store_missing_raises_with_path(tmp_path):
    with pytest.raises(MissingStoreError) as info:
        find_store(tmp_path, KEY_STORE)
    assert info.value.path == tmp_path / KEY_STORE


def test_main_without_trust_store(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert main([]) == 1
    out = capsys.readouterr().out
    assert "trust store file does not exist" in out
    assert TRUST_STORE in out


def test_main_without_key_store(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / TRUST_STORE).write_text("cert")
    assert main([]) == 1
    out = capsys.readouterr().out
    assert "key store file does not exist" in out
    assert KEY_STORE in out


def test_main_with_bad_uri_reports_error(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / TRUST_STORE).write_text("cert")
    (tmp_path / KEY_STORE).write_text("key")
    assert main(["foo://localhost"]) == 0
    captured = capsys.readouterr()
    assert "Connecting to host: 'foo://localhost'" in captured.out
    assert "unsupported URI scheme" in captured.err