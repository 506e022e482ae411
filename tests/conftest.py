import pytest
import yaml

from vm_bootstrap.models.stack_spec import StackSetup, StackSpec


@pytest.fixture
def secrets(tmp_path):
    d = tmp_path / "secrets"
    d.mkdir()
    files = {
        "pub": d / "id_rsa.pub",
        "keys": d / "authorized_keys.pub",
        "script": d / "setup.sh",
    }
    files["pub"].write_text("ssh-rsa AAAA user@laptop\n")
    files["keys"].write_text("ssh-ed25519 BBBB ops@bastion\n")
    files["script"].write_text("#!/bin/sh\napt-get update\n")
    return files


@pytest.fixture
def spec_data(tmp_path, secrets):
    return {
        "stackSetup": {
            "workdir": str(tmp_path / "work"),
            "instanceName": "web-01",
            "imageName": "ubuntu-22.04",
            "flavorName": "m1.small",
            "externalNetworkId": "ext-net-uuid",
            "keys": {
                "publicKeyFile": str(secrets["pub"]),
                "authorizedKeysFile": str(secrets["keys"]),
            },
            "provisioning": {"setupScript": str(secrets["script"])},
            "openstack": {
                "authUrl": "https://keystone.example.org:5000/v3",
                "region": "RegionOne",
                "userName": "deployer",
                "password": "s3cret",
                "tenantId": "tenant-1",
                "domainName": "Default",
            },
        }
    }


@pytest.fixture
def spec(spec_data) -> StackSpec:
    return StackSpec.model_validate(spec_data)


@pytest.fixture
def stack_setup(spec) -> StackSetup:
    return spec.stackSetup


@pytest.fixture
def spec_file(tmp_path, spec_data):
    path = tmp_path / "stack.yaml"
    path.write_text(yaml.safe_dump(spec_data))
    return path
