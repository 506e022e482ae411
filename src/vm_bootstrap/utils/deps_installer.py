import platform
import shutil
import subprocess
from dataclasses import dataclass
from typing import List


@dataclass
class Tool:
    name: str
    description: str


REQUIRED_TOOLS: List[Tool] = [
    Tool(
        name="terraform",
        description="Terraform infrastructure-as-code CLI (reconciles the stack)",
    ),
    Tool(
        name="ssh",
        description="OpenSSH client, used to check the instance is reachable",
    ),
]


def ensure_linux() -> None:
    if platform.system().lower() != "linux":
        raise RuntimeError("This installer is only supported on Linux hosts.")


def detect_arch() -> str:
    """
    Return 'amd64' or 'arm64' depending on the CPU architecture.
    """
    machine = platform.machine().lower()
    if machine in ("x86_64", "amd64"):
        return "amd64"
    if machine in ("aarch64", "arm64"):
        return "arm64"
    raise RuntimeError(f"Unsupported CPU architecture: {machine}")


def is_installed(name: str) -> bool:
    return shutil.which(name) is not None


def get_missing_tools() -> List[Tool]:
    return [t for t in REQUIRED_TOOLS if not is_installed(t.name)]


def _run_shell(cmd: str) -> None:
    """
    Run a shell command, streaming output.
    Raise if it fails.
    """
    print(f"\n[+] Running:\n{cmd}\n")
    result = subprocess.run(cmd, shell=True)
    if result.returncode != 0:
        raise RuntimeError(f"Command failed with exit code {result.returncode}")


def install_terraform() -> None:
    """
    Install Terraform using the official HashiCorp APT repository
    (Debian/Ubuntu-style). Requires sudo.
    """
    cmd = (
        # 1) Prerequisites
        "sudo apt-get update && "
        "sudo apt-get install -y gnupg software-properties-common && "

        # 2) HashiCorp's GPG key
        "wget -O- https://apt.releases.hashicorp.com/gpg | "
        "gpg --dearmor | "
        "sudo tee /usr/share/keyrings/hashicorp-archive-keyring.gpg > /dev/null && "

        # 3) HashiCorp repo for this arch and Ubuntu codename
        "echo \"deb [arch=$(dpkg --print-architecture) "
        "signed-by=/usr/share/keyrings/hashicorp-archive-keyring.gpg] "
        "https://apt.releases.hashicorp.com "
        "$(grep -oP '(?<=UBUNTU_CODENAME=).*' /etc/os-release || lsb_release -cs) main\" "
        "| sudo tee /etc/apt/sources.list.d/hashicorp.list > /dev/null && "

        # 4) Terraform itself
        "sudo apt-get update && "
        "sudo apt-get install -y terraform"
    )
    _run_shell(cmd)


def install_ssh_client() -> None:
    _run_shell("sudo apt-get update && sudo apt-get install -y openssh-client")


def install_tool(tool: Tool, arch: str) -> None:
    if tool.name == "terraform":
        install_terraform()
    elif tool.name == "ssh":
        install_ssh_client()
    else:
        raise RuntimeError(f"No installer defined for tool: {tool.name} ({arch})")
