from pathlib import Path
from typing import Optional

import typer
import yaml
from pydantic import ValidationError
from rich import print as rprint

from vm_bootstrap.graph.dag import GraphError
from vm_bootstrap.graph.stack import INSTANCE, PUBLIC_IP_OUTPUT, build_stack
from vm_bootstrap.models.stack_spec import StackSpec
from vm_bootstrap.utils.infra_writer import (
    backend_config,
    env_for_openstack,
    prepare_tf_workdir,
    workdir_of,
)
from vm_bootstrap.utils.plan import replacement_scope, summarize_plan
from vm_bootstrap.utils.preflight import check_local_inputs
from vm_bootstrap.utils.terraform import PLAN_CHANGES, PLAN_NO_CHANGES, TerraformClient
from vm_bootstrap.utils.wait_ssh import wait_ssh_all


app = typer.Typer(no_args_is_help=True)

PLAN_FILE = "stack.tfplan"

SpecFile = typer.Option(..., "--file", "-f", exists=True, readable=True, help="Stack spec YAML")
StateContainer = typer.Option(
    None, "--state-container",
    help="Swift container for remote state (overrides stackSetup.stateBackend.container)",
)

# --------------------------
# Helpers
# --------------------------

def _load_spec(file: Path) -> StackSpec:
    try:
        data = yaml.safe_load(file.read_text())
        spec = StackSpec.model_validate(data)
        build_stack(spec.stackSetup)
    except (yaml.YAMLError, ValidationError, GraphError) as e:
        rprint(f"[bold red]Spec validation error:[/] {e}")
        raise typer.Exit(code=2)
    return spec

def _preflight(spec: StackSpec):
    try:
        check_local_inputs(spec.stackSetup)
    except FileNotFoundError as e:
        rprint(f"[bold red]Preflight failed:[/] {e}")
        raise typer.Exit(code=2)

def _client(spec: StackSpec, workdir: Path) -> TerraformClient:
    try:
        extra_env = env_for_openstack(spec)
    except ValueError as e:
        rprint(f"[bold red]{e}[/]")
        raise typer.Exit(code=2)
    return TerraformClient(workdir=workdir, extra_env=extra_env)

def _check(rc: int):
    if rc != 0:
        raise typer.Exit(code=rc)

def _init(spec: StackSpec, tf: TerraformClient, container: Optional[str]):
    _check(tf.init(backend_config=backend_config(spec, container)))

def _print_public_ip(tf: TerraformClient):
    try:
        outputs = tf.output_json()
    except RuntimeError as e:
        rprint(f"[bold red]{e}[/]")
        raise typer.Exit(code=1)
    ip = outputs.get(PUBLIC_IP_OUTPUT, {}).get("value")
    if not ip:
        rprint(f"[yellow]Output '{PUBLIC_IP_OUTPUT}' not available yet.[/]")
        raise typer.Exit(code=1)
    rprint(f"[green]{PUBLIC_IP_OUTPUT}:[/] {ip}")
    return ip


# ----------------------
# Offline commands
# ----------------------

@app.command()
def validate(file: Path = SpecFile):
    """
    Validate the stack spec and local input files, and print the creation order.
    """
    spec = _load_spec(file)
    _preflight(spec)
    graph = build_stack(spec.stackSetup)
    for i, address in enumerate(graph.topological_order(), start=1):
        print(f"{i:2d}. {address}")
    rprint(f"[green]Stack '{spec.stackSetup.instanceName}' is valid ({len(graph)} resources).[/]")

@app.command()
def graph(
    file: Path = SpecFile,
    destroy: bool = typer.Option(False, "--destroy", help="Show teardown order instead of creation waves"),
):
    """
    Print the dependency graph as creation waves (resources in a wave can be created in parallel).
    """
    spec = _load_spec(file)
    g = build_stack(spec.stackSetup)
    if destroy:
        for i, address in enumerate(g.destroy_order(), start=1):
            print(f"{i:2d}. {address}")
        return
    for i, wave in enumerate(g.levels()):
        rprint(f"[bold cyan]wave {i}[/]")
        for address in wave:
            deps = g.dependencies(address)
            print(f"  {address}" + (f"  <- {', '.join(deps)}" if deps else ""))

@app.command()
def render(
    file: Path = SpecFile,
    state_container: Optional[str] = StateContainer,
):
    """
    Write main.tf, terraform.tfvars and the backend config without running terraform.
    """
    spec = _load_spec(file)
    prepare_tf_workdir(spec, container=state_container)


# ----------------------
# Terraform-driven
# ----------------------

@app.command()
def plan(
    file: Path = SpecFile,
    state_container: Optional[str] = StateContainer,
):
    """
    Plan against the remembered state. Exit 0 when nothing would change, 2 when changes are pending.
    """
    spec = _load_spec(file)
    _preflight(spec)
    workdir = prepare_tf_workdir(spec, container=state_container)
    tf = _client(spec, workdir)
    _init(spec, tf, state_container)

    rc = tf.plan(out=PLAN_FILE, detailed_exitcode=True)
    if rc not in (PLAN_NO_CHANGES, PLAN_CHANGES):
        raise typer.Exit(code=rc)
    try:
        summary = summarize_plan(tf.show_json(PLAN_FILE))
    except RuntimeError as e:
        rprint(f"[bold red]{e}[/]")
        raise typer.Exit(code=1)
    if summary.is_noop:
        rprint("[green]No changes. Infrastructure matches the stack.[/]")
        raise typer.Exit(code=0)
    rprint(summary.as_table())
    rprint(f"[yellow]Plan:[/] {summary.headline()}")
    raise typer.Exit(code=2)

@app.command()
def up(
    file: Path = SpecFile,
    dry_run: bool = typer.Option(False, "--dry-run", help="Run 'terraform plan' instead of 'apply'"),
    auto_approve: bool = typer.Option(True, "--auto-approve/--no-auto-approve", help="Pass -auto-approve to 'apply'"),
    wait_ssh: bool = typer.Option(False, "--wait-ssh/--no-wait-ssh", help="Wait for SSH on the public IP after apply"),
    ssh_timeout: int = typer.Option(300, "--ssh-timeout", help="Max seconds to wait for SSH readiness"),
    state_container: Optional[str] = StateContainer,
):
    """
    Generate the Terraform working dir from the stack spec and run init + plan/apply.
    """
    spec = _load_spec(file)
    # 1) Secret files first: nothing is created when one is missing
    _preflight(spec)

    # 2) main.tf, terraform.tfvars, backend.tfvars
    workdir = prepare_tf_workdir(spec, container=state_container)

    # 3) Terraform client with proper env (secrets via ENV)
    tf = _client(spec, workdir)
    rprint(f"[bold cyan]Stack up[/]  instance: {spec.stackSetup.instanceName}  workdir: {workdir}")
    _init(spec, tf, state_container)

    if dry_run:
        _check(tf.plan())
        rprint("[green]Plan complete (dry-run).[/]")
        raise typer.Exit(code=0)

    _check(tf.apply(auto_approve=auto_approve))
    rprint("[green]Apply complete.[/]")
    ip = _print_public_ip(tf)

    if wait_ssh:
        p = spec.stackSetup.provisioning
        key = Path(p.privateKeyFile).expanduser().resolve() if p.privateKeyFile else None
        if not wait_ssh_all([ip], p.sshUser, key, timeout_total_s=ssh_timeout):
            raise typer.Exit(code=3)

@app.command("replace-instance")
def replace_instance(
    file: Path = SpecFile,
    auto_approve: bool = typer.Option(True, "--auto-approve/--no-auto-approve", help="Pass -auto-approve to 'apply'"),
    state_container: Optional[str] = StateContainer,
):
    """
    Recreate the compute instance; the floating IP is kept and re-associated.
    """
    spec = _load_spec(file)
    _preflight(spec)
    g = build_stack(spec.stackSetup)
    scope = replacement_scope(g, INSTANCE)
    rprint("[bold cyan]Replacement scope:[/]")
    for address in scope:
        print(f"  {address}")

    workdir = prepare_tf_workdir(spec, container=state_container)
    tf = _client(spec, workdir)
    _init(spec, tf, state_container)
    _check(tf.apply(auto_approve=auto_approve, replace=[INSTANCE]))
    rprint("[green]Instance replaced.[/]")
    _print_public_ip(tf)

@app.command()
def output(file: Path = SpecFile):
    """
    Print the public IP of the stack.
    """
    spec = _load_spec(file)
    workdir = workdir_of(spec)
    if not workdir.exists():
        rprint(f"[yellow]Workdir not found: {workdir}[/]")
        raise typer.Exit(code=1)
    # remote state is read from Swift, which needs the OpenStack credentials
    _print_public_ip(_client(spec, workdir))

@app.command()
def down(
    file: Path = SpecFile,
    auto_approve: bool = typer.Option(True, "--auto-approve/--no-auto-approve", help="Pass -auto-approve to 'destroy'"),
    state_container: Optional[str] = StateContainer,
):
    """
    Destroy every resource of the stack (reverse dependency order, owned by terraform).
    """
    spec = _load_spec(file)
    workdir = workdir_of(spec)
    if not workdir.exists():
        rprint(f"[yellow]Workdir not found: {workdir}[/]")
        raise typer.Exit(code=0)

    tf = _client(spec, workdir)
    rprint(f"[bold cyan]Stack down[/]  workdir: {workdir}")
    if not (workdir / ".terraform").exists():
        _init(spec, tf, state_container)
    _check(tf.destroy(auto_approve=auto_approve))
    rprint("[green]Destroy complete.[/]")
