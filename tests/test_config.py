import pytest

from minidfs.config import Args, Configs, parse_args
from minidfs.packets import Action
from minidfs.roles import Role

ENV_KEYS = ("IP_DNS", "PORT_DNS", "HEARTBEAT_INTERVAL_SECOND", "TIMEOUT_CHANNEL_WAIT", "LOG_LEVEL")


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    return monkeypatch


@pytest.fixture
def full_env(clean_env):
    clean_env.setenv("IP_DNS", "127.0.0.1")
    clean_env.setenv("PORT_DNS", "7000")
    clean_env.setenv("HEARTBEAT_INTERVAL_SECOND", "5")
    return clean_env


def test_parse_args_defaults():
    args = parse_args(["--role", "data"])
    assert args == Args(role=Role.DATA, port=7888, dir_data="./data")


def test_parse_args_client_options():
    args = parse_args(["-r", "Client", "-p", "9001", "--action", "WRITE", "--name", "f", "--path", "/tmp/f"])
    assert args.role is Role.CLIENT
    assert args.port == 9001
    assert args.action is Action.WRITE
    assert (args.name, args.path) == ("f", "/tmp/f")


def test_parse_args_dir_data():
    assert parse_args(["-r", "master", "-d", "/srv/x"]).dir_data == "/srv/x"


@pytest.mark.parametrize(
    "argv",
    [[], ["--role", "nobody"], ["--role", "data", "--port", "70000"], ["--role", "client", "--action", "x"]],
)
def test_parse_args_invalid_exits(argv):
    with pytest.raises(SystemExit) as info:
        parse_args(argv)
    assert info.value.code == 2


def test_initialize_reads_env(full_env):
    configs = Configs.initialize(["--role", "dns"])
    assert configs.ip_dns == "127.0.0.1"
    assert configs.port_dns == 7000
    assert configs.interval_heartbeat == 5
    assert configs.timeout_chan_wait == 1
    assert configs.args.role is Role.DNS


def test_initialize_timeout_override(full_env):
    full_env.setenv("TIMEOUT_CHANNEL_WAIT", "3")
    assert Configs.initialize(["--role", "data"]).timeout_chan_wait == 3


def test_initialize_reads_dotenv_file(clean_env, tmp_path):
    (tmp_path / ".env").write_text("IP_DNS=10.0.0.9\nPORT_DNS=7001\nHEARTBEAT_INTERVAL_SECOND=2\n")
    configs = Configs.initialize(["--role", "master"])
    assert (configs.ip_dns, configs.port_dns, configs.interval_heartbeat) == ("10.0.0.9", 7001, 2)


@pytest.mark.parametrize("missing", ["IP_DNS", "PORT_DNS", "HEARTBEAT_INTERVAL_SECOND"])
def test_initialize_missing_env(full_env, missing):
    full_env.delenv(missing)
    with pytest.raises(KeyError):
        Configs.initialize(["--role", "data"])


def test_initialize_bad_ip(full_env):
    full_env.setenv("IP_DNS", "not-an-ip")
    with pytest.raises(ValueError):
        Configs.initialize(["--role", "data"])


def test_initialize_bad_port(full_env):
    full_env.setenv("PORT_DNS", "99999")
    with pytest.raises(ValueError):
        Configs.initialize(["--role", "data"])


@pytest.mark.parametrize(
    "argv",
    [
        ["--role", "client", "--name", "f", "--path", "p"],
        ["--role", "client", "--action", "write", "--path", "p"],
        ["--role", "client", "--action", "write", "--name", "f"],
    ],
)
def test_initialize_client_missing_argument(full_env, argv):
    with pytest.raises(SystemExit) as info:
        Configs.initialize(argv)
    assert info.value.code == 1


def test_initialize_client_complete(full_env):
    configs = Configs.initialize(["--role", "client", "--action", "read", "--name", "f", "--path", "p"])
    assert configs.args.action is Action.READ
    assert configs.args.name == "f"