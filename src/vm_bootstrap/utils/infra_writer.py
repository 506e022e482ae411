import logging
import os
from pathlib import Path
from typing import Dict, Optional
from rich import print as rprint
from vm_bootstrap.graph.stack import build_stack
from vm_bootstrap.models.stack_spec import StackSpec
from vm_bootstrap.utils.hcl import render_main_tf, render_tfvars

log = logging.getLogger(__name__)

BACKEND_FILE = "backend.tfvars"

def ensure_workdir(path: Path):
    path.mkdir(parents=True, exist_ok=True)

def write_generated(path: Path, content: str) -> bool:
    """Write a generated file; return True when its content changed."""
    if path.exists() and path.read_text() == content:
        log.info("Unchanged %s", path)
        return False
    if path.exists():
        log.warning("Regenerating %s from the stack spec", path)
    path.write_text(content)
    return True

def write_tfvars(path: Path, spec: StackSpec):
    s = spec.stackSetup
    # password is NOT written here; provided via ENV TF_VAR_password
    path.write_text(render_tfvars({
        "instance_name": s.instanceName,
        "auth_url": s.openstack.authUrl,
        "region": s.openstack.region,
        "user_name": s.openstack.userName,
        "tenant_id": s.openstack.tenantId,
        "domain_name": s.openstack.domainName,
    }))

def backend_config(spec: StackSpec, container: Optional[str] = None) -> Dict[str, str]:
    """Values for ``terraform init -backend-config``; empty when state stays local.

    ``container`` overrides the stack spec, e.g. when a setup script picks the state
    container just before init.
    """
    b = spec.stackSetup.stateBackend
    if not b and not container:
        return {}
    if container:
        cfg = {"container": container, "archive_container": f"{container}-archive"}
    else:
        cfg = {"container": b.container, "archive_container": b.archiveContainer}
    if b and b.stateName:
        cfg["state_name"] = b.stateName
    return cfg

def write_backend_config(path: Path, cfg: Dict[str, str]):
    path.write_text(render_tfvars(cfg))

def env_for_openstack(spec: StackSpec) -> Dict[str, str]:
    """Return env dict with TF_VAR_* and OS_* for Terraform/OpenStack provider."""
    s = spec.stackSetup
    password = s.openstack.password or os.environ.get("OS_PASSWORD")
    if not password:
        raise ValueError("OpenStack password not provided: set 'stackSetup.openstack.password' in YAML or export OS_PASSWORD")
    env = {}
    env["TF_VAR_password"] = password
    env["OS_AUTH_URL"] = s.openstack.authUrl
    env["OS_USERNAME"] = s.openstack.userName
    env["OS_PASSWORD"] = password
    env["OS_TENANT_ID"] = s.openstack.tenantId
    env["OS_REGION_NAME"] = s.openstack.region
    env["OS_USER_DOMAIN_NAME"] = s.openstack.domainName
    return env

def workdir_of(spec: StackSpec) -> Path:
    return Path(spec.stackSetup.workdir).expanduser().resolve()

def prepare_tf_workdir(spec: StackSpec, container: Optional[str] = None) -> Path:
    """Create workdir and write main.tf, terraform.tfvars and backend config; return workdir."""
    workdir = workdir_of(spec)
    ensure_workdir(workdir)
    cfg = backend_config(spec, container)
    graph = build_stack(spec.stackSetup)
    # main.tf carries spec values (image, flavor, paths): always follow the spec
    write_generated(workdir / "main.tf", render_main_tf(graph, remote_state=bool(cfg)))
    write_tfvars(workdir / "terraform.tfvars", spec)
    if cfg:
        write_backend_config(workdir / BACKEND_FILE, cfg)
    rprint(f"[cyan]Terraform workdir:[/] {workdir}")
    return workdir
