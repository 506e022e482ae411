import pytest

from vm_bootstrap.graph import stack as s
from vm_bootstrap.graph.stack import build_stack, resource_names, security_rules
from vm_bootstrap.utils.plan import replacement_scope

RULES = [f"openstack_networking_secgroup_rule_v2.{label}" for label, _, _ in s.SECURITY_RULES]


@pytest.fixture
def graph(stack_setup):
    return build_stack(stack_setup)


def _before(order, first, then):
    assert order.index(first) < order.index(then), f"{first} must precede {then}"


def test_resource_set(graph):
    assert len(graph) == 14
    assert set(graph.addresses()) == {
        s.KEYPAIR, s.NETWORK, s.SUBNET, s.ROUTER, s.ROUTER_INTERFACE, s.SECGROUP,
        s.INSTANCE, s.FLOATING_IP, s.FLOATING_IP_ASSOCIATION, s.PROVISION, *RULES,
    }
    assert [o.name for o in graph.outputs] == ["public_ip"]
    assert graph.variables == {"instance_name": "web-01"}


def test_ordering_contract(graph):
    order = graph.topological_order()
    chain = [s.ROUTER, s.ROUTER_INTERFACE, s.FLOATING_IP, s.FLOATING_IP_ASSOCIATION, s.PROVISION]
    for first, then in zip(chain, chain[1:]):
        _before(order, first, then)
    _before(order, s.NETWORK, s.SUBNET)
    _before(order, s.SUBNET, s.INSTANCE)
    _before(order, s.SUBNET, s.ROUTER_INTERFACE)
    _before(order, s.INSTANCE, s.FLOATING_IP_ASSOCIATION)
    for r in [s.KEYPAIR, s.SECGROUP, *RULES]:
        _before(order, r, s.INSTANCE)


def test_explicit_edges(graph):
    assert s.SUBNET in graph[s.INSTANCE].depends_on
    assert graph[s.FLOATING_IP].depends_on == [s.ROUTER_INTERFACE]
    assert graph.dependencies(s.ROUTER_INTERFACE) == [s.SUBNET, s.ROUTER]
    assert graph.dependencies(s.FLOATING_IP_ASSOCIATION) == [s.INSTANCE, s.FLOATING_IP]


def test_keypair_has_no_upstream(graph):
    assert graph.upstream(s.KEYPAIR) == set()


def test_security_group_independent_of_network(graph):
    network_side = {s.NETWORK, s.SUBNET, s.ROUTER, s.ROUTER_INTERFACE}
    assert not graph.upstream(s.SECGROUP) & network_side
    for rule in RULES:
        assert graph.upstream(rule) == {s.SECGROUP}


def test_provisioning_follows_association(graph):
    assert graph.dependencies(s.PROVISION) == [s.FLOATING_IP_ASSOCIATION]
    connection = next(b for b in graph[s.PROVISION].blocks if b.type == "connection")
    assert connection.attributes["host"].address == s.FLOATING_IP_ASSOCIATION
    assert connection.attributes["agent"] is True
    trigger = graph[s.PROVISION].attributes["triggers"]["instance_id"]
    assert (trigger.address, trigger.attribute) == (s.FLOATING_IP_ASSOCIATION, "instance_id")


def test_single_path_to_reachable_instance(graph):
    # every resource is on the way to the provisioned, reachable instance
    assert graph.upstream(s.PROVISION) | {s.PROVISION} == set(graph.addresses())
    assert graph.levels()[-1] == [s.PROVISION]
    assert graph.output_dependencies("public_ip") == set(graph.addresses()) - {s.PROVISION}


def test_waves(graph):
    waves = graph.levels()
    assert waves[0] == [s.KEYPAIR, s.NETWORK, s.ROUTER, s.SECGROUP]
    assert waves[1] == [s.SUBNET, *RULES]
    assert waves[2] == [s.ROUTER_INTERFACE, s.INSTANCE]


def test_replacing_instance_keeps_floating_ip(graph):
    scope = replacement_scope(graph, s.INSTANCE)
    assert scope == [s.INSTANCE, s.FLOATING_IP_ASSOCIATION, s.PROVISION]
    assert s.FLOATING_IP not in scope


def test_names_are_namespaced(graph):
    names = resource_names(graph, "web-01")
    assert names == {
        s.KEYPAIR: "web-01-keypair",
        s.NETWORK: "web-01-network",
        s.SUBNET: "web-01-subnet",
        s.ROUTER: "web-01-router",
        s.SECGROUP: "web-01-secgroup",
        s.INSTANCE: "web-01",
    }


@pytest.mark.parametrize("a,b", [("web-01", "web-02"), ("app", "app-db"), ("x", "x_1")])
def test_names_do_not_collide(graph, a, b):
    names_a = set(resource_names(graph, a).values())
    names_b = set(resource_names(graph, b).values())
    assert len(names_a) == len(resource_names(graph, a))
    assert not names_a & names_b


def test_security_rules_exact(graph):
    assert sorted(security_rules(graph)) == sorted([
        ("ingress", "tcp", 22, 22, "0.0.0.0/0"),
        ("ingress", "tcp", 443, 443, "0.0.0.0/0"),
        ("egress", "tcp", 80, 80, "0.0.0.0/0"),
        ("egress", "tcp", 443, 443, "0.0.0.0/0"),
    ])
    assert graph[s.SECGROUP].attributes["delete_default_rules"] is True


def test_subnet_and_router_attributes(graph):
    subnet = graph[s.SUBNET].attributes
    assert subnet["cidr"] == "10.0.0.0/24"
    assert len(subnet["dns_nameservers"]) == 2
    assert graph[s.ROUTER].attributes["external_network_id"] == "ext-net-uuid"
    assert graph[s.FLOATING_IP].attributes["pool"] == "public"


def test_keypair_concatenates_both_key_files(graph, secrets):
    key = graph[s.KEYPAIR].attributes["public_key"]
    assert key.name == "join"
    files = key.args[1]
    assert [f.name for f in files] == ["file", "file"]
    assert [f.args[0] for f in files] == [str(secrets["pub"].resolve()), str(secrets["keys"].resolve())]


def test_private_key_connection(spec_data, secrets):
    from vm_bootstrap.models.stack_spec import StackSpec
    spec_data["stackSetup"]["provisioning"]["privateKeyFile"] = str(secrets["pub"])
    g = build_stack(StackSpec.model_validate(spec_data).stackSetup)
    connection = next(b for b in g[s.PROVISION].blocks if b.type == "connection")
    assert "agent" not in connection.attributes
    assert connection.attributes["private_key"].name == "file"
