import pytest

from pqtool.execution.config import CommandConfig, ConfigLoader, Settings
from pqtool.utils.exceptions import InvalidConfig, NotFound


def test_defaults_without_config_file():
    assert ConfigLoader().load() == Settings()


def test_explicit_config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("output: json\nrows: 25\nstats_source: scan\n")

    settings = ConfigLoader(str(path)).load()

    assert settings.output == "json"
    assert settings.rows == 25
    assert settings.stats_source == "scan"
    assert settings.batch_size == 65536


def test_env_config_path(tmp_path, monkeypatch):
    path = tmp_path / "env.yaml"
    path.write_text("workers: 3\n")
    monkeypatch.setenv("PQTOOL_CONFIG", str(path))

    assert ConfigLoader().load().workers == 3


def test_default_location_is_read(tmp_path, monkeypatch):
    home = tmp_path / "home"
    (home / ".config" / "pqtool").mkdir(parents=True)
    (home / ".config" / "pqtool" / "config.yaml").write_text("log_level: info\n")
    monkeypatch.setenv("HOME", str(home))

    assert ConfigLoader().load().log_level == "info"


def test_explicit_missing_file():
    with pytest.raises(NotFound):
        ConfigLoader("/definitely/not/here.yaml").load()


@pytest.mark.parametrize(
    "content",
    [
        "colour: red\n",
        "output: xml\n",
        "rows: -1\n",
        "- just\n- a list\n",
        "output: [unclosed\n",
        "timeout_seconds: soon\n",
        "rows: true\n",
        "batch_size: 1.5\n",
        "workers: yes\n",
        "log_color: maybe\n",
    ],
)
def test_invalid_config(tmp_path, content):
    path = tmp_path / "bad.yaml"
    path.write_text(content)

    with pytest.raises(InvalidConfig):
        ConfigLoader(str(path)).load()


def test_overrides_skip_unset_values():
    settings = Settings(rows=5).with_overrides(rows=None, workers=2)

    assert settings.rows == 5
    assert settings.workers == 2

    with pytest.raises(InvalidConfig):
        Settings().with_overrides(batch_size=0)


def test_command_config_validation():
    with pytest.raises(InvalidConfig):
        CommandConfig(command="explode", inputs=("a.parquet",))
    with pytest.raises(InvalidConfig):
        CommandConfig(command="head", inputs=("a.parquet",), rows=-1)
