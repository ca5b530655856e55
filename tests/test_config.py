from svcexpose.config import OperatorConfig


def test_from_env_defaults(monkeypatch):
    for name in (
        "OPERATOR_NAMESPACE",
        "IS_DEFAULT_LOADBALANCER",
        "CLUSTER_DOMAIN",
        "ALLOCATION_SEED",
        "ALLOCATION_RETRIES",
    ):
        monkeypatch.delenv(name, raising=False)

    config = OperatorConfig.from_env()

    assert config.namespace == "tailscale"
    assert config.is_default_load_balancer is False
    assert config.cluster_domain is None
    assert config.allocation_seed is None
    assert config.allocation_retries == 3


def test_from_env_overrides(monkeypatch):
    monkeypatch.setenv("OPERATOR_NAMESPACE", "ts")
    monkeypatch.setenv("IS_DEFAULT_LOADBALANCER", "True")
    monkeypatch.setenv("CLUSTER_DOMAIN", "k8s.internal")
    monkeypatch.setenv("ALLOCATION_SEED", "5")

    config = OperatorConfig.from_env()

    assert config.namespace == "ts"
    assert config.is_default_load_balancer is True
    assert config.cluster_domain == "k8s.internal"
    assert config.allocation_seed == 5
