import subprocess
import os
import json
import logging
from pathlib import Path
from typing import Dict, Iterable, Optional
from rich import print as rprint

log = logging.getLogger(__name__)

# `terraform plan -detailed-exitcode`: 0 = no changes, 1 = error, 2 = changes present
PLAN_NO_CHANGES = 0
PLAN_CHANGES = 2


class TerraformClient:
    """
    Wrapper around the terraform CLI: init, plan, apply, destroy, output and show.
    Commands return terraform's exit code; JSON readers raise on failure.
    """

    def __init__(self, workdir: Path, extra_env: Optional[Dict[str, str]] = None):
        self.workdir = Path(workdir)
        self.env = os.environ.copy()
        if extra_env:
            self.env.update(extra_env)

    def _run(self, args, capture_output=True) -> int:
        cmd = ["terraform"] + args
        rprint(f"{self.workdir}$ {' '.join(cmd)}")
        proc = subprocess.Popen(
            cmd,
            cwd=self.workdir,
            env=self.env,
            stdout=(subprocess.PIPE if capture_output else None),
            stderr=(subprocess.PIPE if capture_output else None),
        )
        out, err = proc.communicate()
        if capture_output and out:
            print(out.decode())
        if capture_output and err:
            print(err.decode())
        log.debug("terraform %s exited with %s", args[0], proc.returncode)
        return proc.returncode

    def _run_json(self, args) -> dict:
        cmd = ["terraform"] + args
        proc = subprocess.Popen(
            cmd, cwd=self.workdir, env=self.env,
            stdout=subprocess.PIPE, stderr=subprocess.PIPE
        )
        out, err = proc.communicate()
        if proc.returncode != 0:
            raise RuntimeError(f"terraform {args[0]} failed: {err.decode()}")
        return json.loads(out.decode())

    def init(self, backend_config: Optional[Dict[str, str]] = None) -> int:
        """terraform init, with -backend-config pairs for remote state"""
        args = ["init", "-input=false"]
        for key, value in (backend_config or {}).items():
            args.append(f"-backend-config={key}={value}")
        return self._run(args)

    def plan(self, out: Optional[str] = None, detailed_exitcode: bool = False, destroy: bool = False) -> int:
        """terraform plan; with detailed_exitcode, 2 means changes are pending"""
        args = ["plan", "-input=false"]
        if destroy:
            args.append("-destroy")
        if detailed_exitcode:
            args.append("-detailed-exitcode")
        if out:
            args.append(f"-out={out}")
        return self._run(args)

    def apply(self, auto_approve: bool = False, replace: Iterable[str] = (), plan_file: Optional[str] = None) -> int:
        """terraform apply, optionally forcing replacement of some addresses"""
        args = ["apply", "-input=false"]
        if auto_approve:
            args.append("-auto-approve")
        for address in replace:
            args.append(f"-replace={address}")
        if plan_file:
            args.append(plan_file)
        return self._run(args)

    def destroy(self, auto_approve: bool = False) -> int:
        """terraform destroy"""
        args = ["destroy", "-input=false"]
        if auto_approve:
            args.append("-auto-approve")
        return self._run(args)

    def output_json(self) -> dict:
        """Outputs as JSON (terraform output -json)"""
        return self._run_json(["output", "-json"])

    def show_json(self, plan_file: str) -> dict:
        """Saved plan as JSON (terraform show -json <plan>)"""
        return self._run_json(["show", "-json", plan_file])
