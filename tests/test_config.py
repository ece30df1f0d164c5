import importlib
import os

from homemarket_firestoredb.utils import config


def test_dotenv_fills_unset_settings(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text("STORAGE_BUCKET=homemarket-uploads\nFIRESTORE_DEFAULT_QUERY_LIMIT=25\nLOG_LEVEL=debug\n")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LOG_LEVEL", "warning")
    for name in ("STORAGE_BUCKET", "FIRESTORE_DEFAULT_QUERY_LIMIT"):
        monkeypatch.delenv(name, raising=False)

    try:
        reloaded = importlib.reload(config)
        assert reloaded.STORAGE_BUCKET == "homemarket-uploads"
        assert reloaded.DEFAULT_QUERY_LIMIT == 25
        assert reloaded.LOG_LEVEL == "WARNING"
    finally:
        for name in ("STORAGE_BUCKET", "FIRESTORE_DEFAULT_QUERY_LIMIT"):
            os.environ.pop(name, None)
        monkeypatch.undo()
        importlib.reload(config)


def test_invalid_limit_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("FIRESTORE_DEFAULT_QUERY_LIMIT", "-3")
    assert config._env_int("FIRESTORE_DEFAULT_QUERY_LIMIT", 100) == 100
    monkeypatch.setenv("FIRESTORE_DEFAULT_QUERY_LIMIT", "many")
    assert config._env_int("FIRESTORE_DEFAULT_QUERY_LIMIT", 100) == 100
