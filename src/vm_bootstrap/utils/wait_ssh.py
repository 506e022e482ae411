import subprocess, time
from pathlib import Path
from typing import Iterable, List, Optional
from rich import print as rprint

def ssh_command(host: str, user: str, key: Optional[Path] = None) -> List[str]:
    cmd = [
        "ssh",
        "-o", "BatchMode=yes",
        "-o", "StrictHostKeyChecking=no",
        "-o", "UserKnownHostsFile=/dev/null",
    ]
    if key:
        cmd += ["-i", str(key)]
    return cmd + [f"{user}@{host}", "true"]

def ssh_ready(host: str, user: str, key: Optional[Path] = None, timeout_s: int = 10) -> bool:
    try:
        proc = subprocess.run(ssh_command(host, user, key), stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, timeout=timeout_s, check=False)
        return proc.returncode == 0
    except (subprocess.TimeoutExpired, OSError):
        return False

def wait_ssh_all(hosts: Iterable[str], user: str, key: Optional[Path] = None, timeout_total_s: int = 300, every_s: int = 5) -> bool:
    """Poll all hosts until SSH success or timeout. Returns True if all became ready."""
    deadline = time.time() + timeout_total_s
    pending = set(hosts)
    while time.time() < deadline and pending:
        ready = [h for h in list(pending) if ssh_ready(h, user, key, timeout_s=10)]
        for h in ready:
            pending.remove(h)
            rprint(f"[green]SSH ready:[/] {h}")
        if pending:
            time.sleep(every_s)
    if pending:
        rprint(f"[red]Timed out waiting SSH on:[/] {', '.join(sorted(pending))}")
        return False
    return True
