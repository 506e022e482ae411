import typer
from vm_bootstrap.utils.logging import setup_logging
from vm_bootstrap.commands import stack
from vm_bootstrap.utils import deps_installer

app = typer.Typer(no_args_is_help=True, add_completion=False)
app.add_typer(stack.app, name="stack",
    help=(
        "Provision a single virtual machine, its private network, router, "
        "floating IP and security group on OpenStack using Terraform."
    )
)


@app.callback()
def main(verbose: int = typer.Option(0, "--verbose", "-v", count=True)):
    setup_logging(verbosity=verbose)

def run():
    app()

@app.command("deps")
def deps(
    install: bool = typer.Option(
        False,
        "--install",
        "-i",
        help="Automatically install any missing tools (Linux only, uses sudo).",
    )
):
    """
    Check (and optionally install) external CLI dependencies required by vm_bootstrap:
    terraform, ssh.
    """
    missing = deps_installer.get_missing_tools()
    if not missing:
        print("All required tools are already installed.")
        return

    print("Missing tools:\n")
    for t in missing:
        print(f"- {t.name}: {t.description}")

    if not install:
        print(
            "\nRun again with --install to automatically install these tools "
            "(will use sudo where needed)."
        )
        return

    deps_installer.ensure_linux()
    arch = deps_installer.detect_arch()
    print(f"\nDetected Linux architecture: {arch}")
    print("Starting installation of missing tools...\n")
    for t in missing:
        print(f"[*] Installing {t.name}...")
        deps_installer.install_tool(t, arch)
        print(f"[+] {t.name} installation completed.\n")

if __name__ == "__main__":
    run()
