"""
Test the kubestrap command line
"""
#  pylint: disable=redefined-outer-name
import os
from unittest import mock

import pytest
import yaml

from kubestrap import __version__
from kubestrap.cli import copy_kubeconfig
from kubestrap.cloud.provider import ExitStatus
from kubestrap.deploy.kubeconfig import KubeconfigArtifact
from kubestrap.kubestrap import Kubestrap
from kubestrap.util.logger import DEFAULT_LOG_LEVEL, Logger


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("KUBESTRAP_CONFIG", raising=False)
    monkeypatch.delenv("KUBECONFIG", raising=False)
    yield
    Logger.set_global_level(DEFAULT_LOG_LEVEL)


@pytest.fixture
def config(tmp_path):
    path = tmp_path / "cluster.yml"
    path.write_text(yaml.safe_dump({
        'provider': 'dummy',
        'workers': 2,
        'workdir': str(tmp_path / "work"),
        'retry-delay': 0,
        'kubeconfig-destinations': [str(tmp_path / "kubeconfig"),
                                    str(tmp_path / "home" / ".kube" /
                                        "config")],
    }))
    return str(path)


def run(*args):
    with pytest.raises(SystemExit) as exit_:
        Kubestrap().run(list(args))
    return exit_.value.code


def test_version(capsys):
    assert run("--version") == 0
    assert __version__ in capsys.readouterr().out


def test_plan(capsys):
    assert run("plan", "--workers", "2", "--master-ip", "10.0.0.10") == 0
    report = yaml.safe_load(capsys.readouterr().out)
    topology = report['topology']
    assert topology['master']['ip'] == "10.0.0.10"
    assert [w['ip'] for w in topology['workers']] == ["10.0.0.11",
                                                      "10.0.0.12"]


def test_underscore_options_are_accepted():
    assert run("plan", "--master_ip", "10.0.0.10", "-w", "1") == 0


def test_plan_overflow():
    assert run("plan", "--workers", "10", "--master-ip", "192.168.56.250") \
        == 2


def test_apply_overflow_provisions_nothing(config, tmp_path):
    with mock.patch("kubestrap.kubestrap.get_provider") as get_provider:
        assert run("apply", "--config", config, "--workers", "10",
                   "--master-ip", "192.168.56.250") == 2

    get_provider.assert_not_called()
    assert not (tmp_path / "work").exists()
    assert not (tmp_path / "kubeconfig").exists()


def test_invalid_master_ip():
    assert run("plan", "--master-ip", "192.168.56.300") == 2


def test_invalid_config_value():
    assert run("apply", "--provider", "openstack") == 2


def test_missing_config_file(tmp_path):
    assert run("apply", "--config", str(tmp_path / "missing.yml")) == 2


def test_unknown_option():
    assert run("apply", "--no-such-option") == 2


def test_verbosity():
    assert run("-v", "debug", "plan") == 0
    assert Logger.LOG_LEVEL == 4


def test_apply_dummy_cluster(config, tmp_path):
    assert run("apply", "--config", config) == 0

    kubeconfig = tmp_path / "kubeconfig"
    assert kubeconfig.exists()
    assert (tmp_path / "home" / ".kube" / "config").read_text() == \
        kubeconfig.read_text()
    assert yaml.safe_load(kubeconfig.read_text())['kind'] == "Config"


def test_apply_backs_up_existing_kubeconfig(config, tmp_path):
    (tmp_path / "kubeconfig").write_text("old")
    assert run("apply", "--config", config) == 0
    backups = [p for p in os.listdir(tmp_path)
               if p.startswith("kubeconfig.backup.")]
    assert len(backups) == 1
    assert (tmp_path / backups[0]).read_text() == "old"


def test_apply_exports_join_command(config, tmp_path):
    join = tmp_path / "join.sh"
    assert run("apply", "--config", config, "--export-join", str(join)) == 0
    assert "kubeadm join" in join.read_text()


def test_apply_reports_failure(config, tmp_path, capsys):
    with mock.patch("kubestrap.cloud.provider.DummyProvider.run_privileged",
                    autospec=True) as run_privileged:
        run_privileged.return_value = ExitStatus(1, "", "kubeadm init failed")
        assert run("apply", "--config", config) == 1

    out = capsys.readouterr().out
    assert "state: Failed" in out
    assert not (tmp_path / "kubeconfig").exists()


def test_kubeconfig_command(tmp_path):
    source = tmp_path / "admin.conf"
    source.write_text("kind: Config\n")
    dest = tmp_path / "out" / "config"

    assert run("kubeconfig", "--source", str(source),
               "--destinations", str(dest)) == 0
    assert dest.read_text() == "kind: Config\n"


def test_kubeconfig_command_missing_source(tmp_path):
    assert run("kubeconfig", "--source", str(tmp_path / "admin.conf"),
               "--destinations", str(tmp_path / "config")) == 1
    assert not (tmp_path / "config").exists()


def test_kubeconfig_command_failed_destination(tmp_path):
    source = tmp_path / "admin.conf"
    source.write_text("kind: Config\n")
    blocker = tmp_path / "file"
    blocker.write_text("")

    assert run("kubeconfig", "--source", str(source), "--destinations",
               "%s,%s" % (blocker / "config", tmp_path / "config")) == 1
    assert (tmp_path / "config").exists()


def test_status(capsys):
    with mock.patch("kubestrap.kubestrap.K8S") as k8s:
        k8s.return_value.is_ready = True
        k8s.return_value.nodes_status.return_value = {
            "k8s-master": "Ready", "k8s-worker-1": "Ready"}
        assert run("status", "--kubeconfig", "admin.conf") == 0

    k8s.assert_called_once_with("admin.conf")
    names = k8s.return_value.nodes_status.call_args[0][0]
    assert names == ["k8s-master", "k8s-worker-1", "k8s-worker-2",
                     "k8s-worker-3"]


def test_status_not_ready():
    with mock.patch("kubestrap.kubestrap.K8S") as k8s:
        k8s.return_value.is_ready = True
        k8s.return_value.nodes_status.return_value = {
            "k8s-master": "Ready", "k8s-worker-1": None}
        assert run("status", "--kubeconfig", "admin.conf") == 1


def test_status_unreachable():
    with mock.patch("kubestrap.kubestrap.K8S") as k8s:
        k8s.return_value.is_ready = False
        assert run("status", "--kubeconfig", "admin.conf") == 1


def test_status_bad_kubeconfig(tmp_path):
    assert run("status", "--kubeconfig", str(tmp_path / "missing")) == 1


def test_copy_kubeconfig_artifact(tmp_path):
    source = tmp_path / "admin.conf"
    source.write_text("kind: Config\n")
    dest = tmp_path / "config"
    dest.write_text("old")

    results = copy_kubeconfig(KubeconfigArtifact(
        str(source), [str(dest)], backup_suffix=lambda: "saved"))

    assert results[0].ok
    assert (tmp_path / "config.backup.saved").read_text() == "old"
    assert dest.read_text() == "kind: Config\n"
