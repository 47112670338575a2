from dpctl.core.ingress import build_ingress, expand_hosts


def _backends(rule):
    return {p.path: p.backend.service.name for p in rule.http.paths}


def test_expand_hosts():
    assert expand_hosts(()) == [""]
    assert expand_hosts(("example.com",)) == ["example.com", "localhost", "host.docker.internal"]
    assert expand_hosts(("localhost", "a.test")) == ["localhost", "a.test", "host.docker.internal"]


def test_catch_all_rule():
    ingress = build_ingress("1.1.0")
    assert ingress.metadata.name == "ingress-dpctl"
    assert ingress.metadata.namespace == "airbyte-abctl"
    assert ingress.spec.ingress_class_name == "nginx"
    [rule] = ingress.spec.rules
    assert rule.host is None


def test_v1_routes_to_webapp():
    [rule] = build_ingress("1.1.0").spec.rules
    assert _backends(rule) == {
        "/api/v1/connector_builder": "airbyte-abctl-airbyte-connector-builder-server-svc",
        "/": "airbyte-abctl-airbyte-webapp-svc",
    }


def test_v2_routes_to_server():
    [rule] = build_ingress("2.0.0").spec.rules
    assert _backends(rule)["/"] == "airbyte-abctl-airbyte-server-svc"


def test_one_rule_per_host():
    ingress = build_ingress("1.1.0", ("example.com",))
    assert [r.host for r in ingress.spec.rules] == ["example.com", "localhost", "host.docker.internal"]
    assert all(p.path_type == "Prefix" for r in ingress.spec.rules for p in r.http.paths)
