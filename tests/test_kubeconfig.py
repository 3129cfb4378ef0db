"""
Test kubestrap.deploy.kubeconfig
"""
import os
import stat
from pathlib import Path
from unittest import mock

import pytest

from kubestrap.deploy.kubeconfig import (KubeconfigArtifact,
                                         KubeconfigDistributor, backup_path,
                                         default_destinations, describe)
from kubestrap.errors import ErrorKind, SourceMissing
from kubestrap.util.util import get_kubeconfig_yaml

SUFFIX = "20240131_120000"

KUBECONFIG = get_kubeconfig_yaml("https://192.168.56.10:6443", "Q0E=",
                                 "kubernetes-admin", "Y2VydA==", "a2V5")


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "admin.conf"
    path.write_text(KUBECONFIG)
    return path


@pytest.fixture
def distributor():
    return KubeconfigDistributor(backup_suffix=lambda: SUFFIX)


def test_fresh_destinations(tmp_path, source, distributor):
    local = tmp_path / "work" / "kubeconfig"
    home = tmp_path / "home" / ".kube" / "config"

    results = distributor.distribute(str(source), [str(local), str(home)])

    assert [r.ok for r in results] == [True, True]
    assert [r.backup_path for r in results] == [None, None]
    assert local.read_text() == KUBECONFIG
    assert home.read_text() == KUBECONFIG
    assert stat.S_IMODE(os.stat(home).st_mode) == 0o600


def test_existing_destination_is_backed_up(tmp_path, source, distributor):
    dest = tmp_path / "kubeconfig"
    dest.write_text("old config")

    result, = distributor.distribute(str(source), [str(dest)])

    backup = tmp_path / ("kubeconfig.backup.%s" % SUFFIX)
    assert result.ok
    assert result.backup_path == str(backup)
    assert backup.read_text() == "old config"
    assert dest.read_text() == KUBECONFIG


def test_existing_and_new_destination(tmp_path, source, distributor):
    existing = tmp_path / "kubeconfig"
    existing.write_text("old config")
    new = tmp_path / "home" / ".kube" / "config"

    results = distributor.distribute(str(source), [str(existing), str(new)])

    assert [r.ok for r in results] == [True, True]
    backup = tmp_path / ("kubeconfig.backup.%s" % SUFFIX)
    assert results[0].backup_path == str(backup)
    assert backup.read_text() == "old config"
    assert existing.read_text() == KUBECONFIG
    assert new.read_text() == KUBECONFIG
    assert results[1].backup_path is None
    assert list(new.parent.glob("config.backup.*")) == []


def test_backup_name_collision(tmp_path, source, distributor):
    dest = tmp_path / "kubeconfig"
    dest.write_text("old config")
    taken = tmp_path / ("kubeconfig.backup.%s" % SUFFIX)
    taken.write_text("older config")

    result, = distributor.distribute(str(source), [str(dest)])

    assert result.backup_path == str(taken) + ".1"
    assert taken.read_text() == "older config"
    assert Path(result.backup_path).read_text() == "old config"


def test_missing_source_writes_nothing(tmp_path, distributor):
    dest = tmp_path / "kubeconfig"
    with pytest.raises(SourceMissing) as err:
        distributor.distribute(str(tmp_path / "admin.conf"), [str(dest)])

    assert err.value.kind is ErrorKind.SOURCE_MISSING
    assert not dest.exists()
    assert os.listdir(tmp_path) == []


def test_failing_destination_does_not_stop_others(tmp_path, source,
                                                  distributor):
    blocker = tmp_path / "file"
    blocker.write_text("")
    bad = blocker / "kubeconfig"
    good = tmp_path / "kubeconfig"

    results = distributor.distribute(str(source), [str(bad), str(good)])

    assert not results[0].ok
    assert results[0].error_kind is ErrorKind.DESTINATION_WRITE_FAILED
    assert results[1].ok
    assert good.read_text() == KUBECONFIG


def test_failed_backup_skips_overwrite(tmp_path, source, distributor):
    dest = tmp_path / "kubeconfig"
    dest.write_text("old config")

    with mock.patch("kubestrap.deploy.kubeconfig.shutil.copy2",
                    side_effect=PermissionError("denied")):
        result, = distributor.distribute(str(source), [str(dest)])

    assert not result.ok
    assert result.error_kind is ErrorKind.BACKUP_FAILED
    assert dest.read_text() == "old config"


def test_for_artifact(tmp_path, source):
    artifact = KubeconfigArtifact(str(source), [str(tmp_path / "a")],
                                  backup_suffix=lambda: "x")
    distributor = KubeconfigDistributor.for_artifact(artifact)
    assert distributor.backup_path(source).name == "admin.conf.backup.x"


def test_backup_path_counter(tmp_path):
    path = tmp_path / "Vagrantfile"
    assert backup_path(path, "x").name == "Vagrantfile.backup.x"
    (tmp_path / "Vagrantfile.backup.x").write_text("")
    assert backup_path(path, "x").name == "Vagrantfile.backup.x.1"


def test_default_destinations(tmp_path):
    local, home = default_destinations(cwd=tmp_path / "cwd",
                                       home=tmp_path / "home")
    assert local == tmp_path / "cwd" / "kubeconfig"
    assert home == tmp_path / "home" / ".kube" / "config"


def test_describe():
    assert describe(KUBECONFIG) == {
        "server": "https://192.168.56.10:6443",
        "context": "kubernetes-admin@kubernetes"}
    assert describe("just: yaml") is None
    assert describe("[") is None


def test_result_as_dict(tmp_path, source, distributor):
    result, = distributor.distribute(str(source),
                                     [str(tmp_path / "kubeconfig")])
    assert result.as_dict() == {'destination': str(tmp_path / "kubeconfig"),
                                'ok': True, 'backup': None, 'error': None,
                                'message': None}
