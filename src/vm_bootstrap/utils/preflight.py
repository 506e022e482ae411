from pathlib import Path
from typing import List, Tuple
from vm_bootstrap.models.stack_spec import StackSetup

def local_inputs(setup: StackSetup) -> List[Tuple[str, Path]]:
    """Secret files read by the engine while building the stack."""
    inputs = [
        ("keys.publicKeyFile", setup.keys.publicKeyFile),
        ("keys.authorizedKeysFile", setup.keys.authorizedKeysFile),
        ("provisioning.setupScript", setup.provisioning.setupScript),
    ]
    if setup.provisioning.privateKeyFile:
        inputs.append(("provisioning.privateKeyFile", setup.provisioning.privateKeyFile))
    return [(what, Path(p).expanduser().resolve()) for what, p in inputs]

def missing_local_inputs(setup: StackSetup) -> List[Tuple[str, Path]]:
    return [(what, p) for what, p in local_inputs(setup) if not p.is_file()]

def check_local_inputs(setup: StackSetup) -> None:
    """
    Fail before terraform runs when a secret file is absent, so that no
    network or compute resource gets created for a stack that cannot be
    provisioned.
    """
    missing = missing_local_inputs(setup)
    if missing:
        listing = ", ".join(f"{what}={p}" for what, p in missing)
        raise FileNotFoundError(f"Missing local input file(s): {listing}")
