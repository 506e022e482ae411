"""The single-VM stack: an instance behind a private network, a router and a floating IP."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Tuple

from vm_bootstrap.graph.dag import ResourceGraph
from vm_bootstrap.graph.expressions import Block, Func, Interp, Ref, Var, evaluate
from vm_bootstrap.graph.resources import Output, Resource
from vm_bootstrap.models.stack_spec import StackSetup

INSTANCE_NAME = Var("instance_name")

KEYPAIR = "openstack_compute_keypair_v2.keypair"
NETWORK = "openstack_networking_network_v2.network"
SUBNET = "openstack_networking_subnet_v2.subnet"
ROUTER = "openstack_networking_router_v2.router"
ROUTER_INTERFACE = "openstack_networking_router_interface_v2.router_interface"
SECGROUP = "openstack_networking_secgroup_v2.secgroup"
INSTANCE = "openstack_compute_instance_v2.instance"
FLOATING_IP = "openstack_networking_floatingip_v2.floating_ip"
FLOATING_IP_ASSOCIATION = "openstack_compute_floatingip_associate_v2.floating_ip_association"
PROVISION = "null_resource.provision"

PUBLIC_IP_OUTPUT = "public_ip"

# (label, direction, port)
SECURITY_RULES: List[Tuple[str, str, int]] = [
    ("ingress_ssh", "ingress", 22),
    ("ingress_https", "ingress", 443),
    ("egress_http", "egress", 80),
    ("egress_https", "egress", 443),
]

ANYWHERE_V4 = "0.0.0.0/0"


def _named(suffix: str) -> Interp:
    return Interp(INSTANCE_NAME, f"-{suffix}")


def _local(path: str) -> str:
    # terraform runs inside the workdir, relative paths would point there
    return str(Path(path).expanduser().resolve())


def _rule_address(label: str) -> str:
    return f"openstack_networking_secgroup_rule_v2.{label}"


def _connection(setup: StackSetup) -> Block:
    p = setup.provisioning
    attrs = {
        "type": "ssh",
        "host": Ref(FLOATING_IP_ASSOCIATION, "floating_ip"),
        "user": p.sshUser,
    }
    if p.privateKeyFile:
        attrs["private_key"] = Func("file", _local(p.privateKeyFile))
    else:
        attrs["agent"] = True
    return Block("connection", attrs)


def build_stack(setup: StackSetup) -> ResourceGraph:
    """Declare every resource of the stack and return the validated graph."""
    g = ResourceGraph(variables={"instance_name": setup.instanceName})

    g.add(Resource(
        "openstack_compute_keypair_v2", "keypair",
        {
            "name": _named("keypair"),
            "public_key": Func("join", "", [
                Func("file", _local(setup.keys.publicKeyFile)),
                Func("file", _local(setup.keys.authorizedKeysFile)),
            ]),
        },
        description="Keypair built from the local public key and the extra authorized keys",
    ))

    # --- Private L3 topology ---
    g.add(Resource(
        "openstack_networking_network_v2", "network",
        {"name": _named("network"), "admin_state_up": True},
    ))
    g.add(Resource(
        "openstack_networking_subnet_v2", "subnet",
        {
            "name": _named("subnet"),
            "network_id": Ref(NETWORK, "id"),
            "cidr": setup.subnetCidr,
            "ip_version": 4,
            "dns_nameservers": list(setup.dnsNameservers),
        },
    ))
    g.add(Resource(
        "openstack_networking_router_v2", "router",
        {
            "name": _named("router"),
            "admin_state_up": True,
            "external_network_id": setup.externalNetworkId,
        },
    ))
    g.add(Resource(
        "openstack_networking_router_interface_v2", "router_interface",
        {"router_id": Ref(ROUTER, "id"), "subnet_id": Ref(SUBNET, "id")},
    ))

    # --- Security group: default rules removed, only the four below remain ---
    g.add(Resource(
        "openstack_networking_secgroup_v2", "secgroup",
        {
            "name": _named("secgroup"),
            "description": Interp("Perimeter of ", INSTANCE_NAME),
            "delete_default_rules": True,
        },
    ))
    for label, direction, port in SECURITY_RULES:
        g.add(Resource(
            "openstack_networking_secgroup_rule_v2", label,
            {
                "direction": direction,
                "ethertype": "IPv4",
                "protocol": "tcp",
                "port_range_min": port,
                "port_range_max": port,
                "remote_ip_prefix": ANYWHERE_V4,
                "security_group_id": Ref(SECGROUP, "id"),
            },
        ))

    # --- Compute ---
    g.add(Resource(
        "openstack_compute_instance_v2", "instance",
        {
            "name": INSTANCE_NAME,
            "image_name": setup.imageName,
            "flavor_name": setup.flavorName,
            "key_pair": Ref(KEYPAIR, "name"),
            "security_groups": [Ref(SECGROUP, "name")],
        },
        blocks=[Block("network", {"uuid": Ref(NETWORK, "id")})],
        # the provider rejects instances in a subnet that is not ready yet
        depends_on=[SUBNET] + [_rule_address(label) for label, _, _ in SECURITY_RULES],
    ))

    # --- Public address ---
    g.add(Resource(
        "openstack_networking_floatingip_v2", "floating_ip",
        {"pool": setup.floatingIpPool},
        depends_on=[ROUTER_INTERFACE],
    ))
    g.add(Resource(
        "openstack_compute_floatingip_associate_v2", "floating_ip_association",
        {
            "floating_ip": Ref(FLOATING_IP, "address"),
            "instance_id": Ref(INSTANCE, "id"),
        },
        description="Kept apart from the floating IP so a replaced instance reuses the address",
    ))

    # --- Provisioning, strictly after the association ---
    g.add(Resource(
        "null_resource", "provision",
        {"triggers": {"instance_id": Ref(FLOATING_IP_ASSOCIATION, "instance_id")}},
        blocks=[
            _connection(setup),
            Block(
                "provisioner",
                {"script": _local(setup.provisioning.setupScript)},
                labels=["remote-exec"],
            ),
        ],
    ))

    g.add_output(Output(
        PUBLIC_IP_OUTPUT,
        Ref(FLOATING_IP_ASSOCIATION, "floating_ip"),
        description="Public address of the instance",
    ))

    g.validate()
    return g


def resource_names(graph: ResourceGraph, instance_name: str) -> Dict[str, str]:
    """Evaluate the ``name`` attribute of every named resource for a given instance name."""
    variables = dict(graph.variables, instance_name=instance_name)
    names = {}
    for r in graph.resources:
        if "name" not in r.attributes:
            continue
        value = evaluate(r.attributes["name"], variables)
        if value is not None:
            names[r.address] = value
    return names


def security_rules(graph: ResourceGraph) -> List[Tuple[str, str, int, int, str]]:
    """(direction, protocol, port_min, port_max, remote_ip_prefix) of the security group rules."""
    rules = []
    for r in graph.resources:
        if r.type != "openstack_networking_secgroup_rule_v2":
            continue
        a = r.attributes
        rules.append((
            a["direction"], a["protocol"],
            a["port_range_min"], a["port_range_max"],
            a["remote_ip_prefix"],
        ))
    return rules
