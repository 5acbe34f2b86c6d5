import pytest


@pytest.fixture(autouse=True)
def isolate_home_config(monkeypatch, tmp_path):
    """Point the home directory at a temporary folder for every test.

    The API key and color environment variables are cleared as well, so
    a developer's own ``~/.zcommit/config.json`` or shell settings never
    leak into the results.
    """
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    for name in ("CEREBRAS_API_KEY", "NO_COLOR", "FORCE_COLOR"):
        monkeypatch.delenv(name, raising=False)
    yield home
