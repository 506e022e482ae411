import pytest

from vm_bootstrap.models.stack_spec import StackSpec
from vm_bootstrap.utils.infra_writer import (
    backend_config,
    env_for_openstack,
    prepare_tf_workdir,
    write_generated,
)
from vm_bootstrap.utils.preflight import missing_local_inputs


def test_prepare_workdir_local_state(spec, tmp_path):
    workdir = prepare_tf_workdir(spec)
    assert workdir == (tmp_path / "work").resolve()
    assert 'resource "openstack_compute_instance_v2" "instance"' in (workdir / "main.tf").read_text()
    tfvars = (workdir / "terraform.tfvars").read_text()
    assert 'instance_name = "web-01"' in tfvars
    assert "s3cret" not in tfvars
    assert not (workdir / "backend.tfvars").exists()


def test_spec_change_reaches_main_tf(spec_data):
    prepare_tf_workdir(StackSpec.model_validate(spec_data))
    spec_data["stackSetup"]["imageName"] = "debian-12"
    workdir = prepare_tf_workdir(StackSpec.model_validate(spec_data))
    main_tf = (workdir / "main.tf").read_text()
    assert '"debian-12"' in main_tf
    assert "ubuntu-22.04" not in main_tf


def test_hand_edited_main_tf_is_regenerated(spec):
    workdir = prepare_tf_workdir(spec)
    (workdir / "main.tf").write_text("# edited by hand\n")
    prepare_tf_workdir(spec)
    assert "openstack_compute_instance_v2" in (workdir / "main.tf").read_text()


def test_write_generated_reports_change(tmp_path):
    path = tmp_path / "main.tf"
    assert write_generated(path, "a\n")
    assert not write_generated(path, "a\n")
    assert write_generated(path, "b\n")
    assert path.read_text() == "b\n"


def test_relative_inputs_resolved_from_invocation_dir(spec_data, secrets, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    s = spec_data["stackSetup"]
    s["workdir"] = "build/web-01"
    s["keys"] = {
        "publicKeyFile": "./secrets/id_rsa.pub",
        "authorizedKeysFile": "secrets/authorized_keys.pub",
    }
    s["provisioning"] = {"setupScript": "./secrets/setup.sh", "privateKeyFile": "secrets/id_rsa.pub"}
    spec = StackSpec.model_validate(spec_data)
    assert missing_local_inputs(spec.stackSetup) == []

    workdir = prepare_tf_workdir(spec)
    assert workdir == (tmp_path / "build" / "web-01").resolve()
    main_tf = (workdir / "main.tf").read_text()
    for key in ("pub", "keys", "script"):
        assert f'"{secrets[key].resolve()}"' in main_tf
    assert 'file("secrets/' not in main_tf
    assert '"secrets/setup.sh"' not in main_tf
    assert '"./secrets' not in main_tf


def test_prepare_workdir_remote_state(spec_data):
    spec_data["stackSetup"]["stateBackend"] = {"container": "web-01-tfstate", "stateName": "web-01.tfstate"}
    workdir = prepare_tf_workdir(StackSpec.model_validate(spec_data))
    assert 'backend "swift" {}' in (workdir / "main.tf").read_text()
    backend = (workdir / "backend.tfvars").read_text()
    assert 'container         = "web-01-tfstate"' in backend
    assert 'archive_container = "web-01-tfstate-archive"' in backend
    assert 'state_name        = "web-01.tfstate"' in backend


def test_backend_config(spec, spec_data):
    assert backend_config(spec) == {}
    assert backend_config(spec, container="ops-state") == {
        "container": "ops-state",
        "archive_container": "ops-state-archive",
    }
    spec_data["stackSetup"]["stateBackend"] = {"container": "c1", "archiveContainer": "c1-old"}
    assert backend_config(StackSpec.model_validate(spec_data)) == {
        "container": "c1",
        "archive_container": "c1-old",
    }


def test_env_for_openstack(spec):
    env = env_for_openstack(spec)
    assert env["TF_VAR_password"] == "s3cret"
    assert env["OS_PASSWORD"] == "s3cret"
    assert env["OS_AUTH_URL"] == "https://keystone.example.org:5000/v3"
    assert env["OS_USER_DOMAIN_NAME"] == "Default"


def test_env_password_from_environment(spec_data, monkeypatch):
    del spec_data["stackSetup"]["openstack"]["password"]
    spec = StackSpec.model_validate(spec_data)
    monkeypatch.setenv("OS_PASSWORD", "from-env")
    assert env_for_openstack(spec)["TF_VAR_password"] == "from-env"
    monkeypatch.delenv("OS_PASSWORD")
    with pytest.raises(ValueError, match="OS_PASSWORD"):
        env_for_openstack(spec)
