"""Discovery of the cluster DNS domain from the pod's resolver configuration.

Kubelet writes the search domains ``<namespace>.svc.<domain>``,
``svc.<domain>`` and ``<domain>`` (in that order) into every pod's
resolv.conf. Anything else is treated as a non-standard environment and the
ubiquitous ``cluster.local`` is used instead.
"""

import logging

logger = logging.getLogger(__name__)

RESOLV_CONF_PATH = "/etc/resolv.conf"
DEFAULT_CLUSTER_DOMAIN = "cluster.local"


def parse_search_domains(text):
    """Return the search domains from resolv.conf contents.

    As with the glibc resolver, the last ``search`` line wins.
    """
    search_domains = []
    for line in text.splitlines():
        for marker in ("#", ";"):
            line = line.split(marker, 1)[0]
        fields = line.split()
        if fields and fields[0] == "search":
            search_domains = fields[1:]
    return search_domains


def _without_trailing_dot(domain):
    return domain[:-1] if domain.endswith(".") else domain


def cluster_domain_from_search_domains(search_domains, namespace):
    """Infer the cluster domain from an ordered list of search domains.

    Returns the default domain whenever the first three entries do not
    follow the kubelet layout.
    """
    if len(search_domains) < 3:
        logger.info(
            f"[unexpected] resolver config contains only {len(search_domains)} search domains, "
            f"at least three expected. Defaulting cluster domain to '{DEFAULT_CLUSTER_DOMAIN}'."
        )
        return DEFAULT_CLUSTER_DOMAIN

    first, second, third = search_domains[:3]
    if not first.startswith(f"{namespace}.svc"):
        logger.info(
            f"[unexpected] first search domain in resolver config is {first}; "
            f"expected {namespace}.svc.<cluster-domain>. "
            f"Defaulting cluster domain to '{DEFAULT_CLUSTER_DOMAIN}'."
        )
        return DEFAULT_CLUSTER_DOMAIN

    if not second.startswith("svc"):
        logger.info(
            f"[unexpected] second search domain in resolver config is {second}; "
            f"expected 'svc.<cluster-domain>'. "
            f"Defaulting cluster domain to '{DEFAULT_CLUSTER_DOMAIN}'."
        )
        return DEFAULT_CLUSTER_DOMAIN

    # Trailing dot is dropped; the domain used to be hardcoded without one.
    candidate = _without_trailing_dot(second)
    if candidate.startswith("svc."):
        candidate = candidate[len("svc."):]

    if _without_trailing_dot(third).lower() != candidate.lower():
        logger.info(
            "[unexpected] expected resolver config to contain search domains "
            "<namespace>.svc.<cluster-domain>, svc.<cluster-domain>, <cluster-domain>; "
            f"got {first} {second} {third}. "
            f"Defaulting cluster domain to '{DEFAULT_CLUSTER_DOMAIN}'."
        )
        return DEFAULT_CLUSTER_DOMAIN

    logger.info(f"Cluster domain {candidate!r} extracted from resolver config")
    return candidate


def retrieve_cluster_domain(namespace, path=RESOLV_CONF_PATH):
    """Determine the cluster domain this pod runs in.

    Falls back to ``cluster.local`` if the resolver config cannot be read.
    """
    logger.info("Attempting to retrieve cluster domain...")
    try:
        with open(path, "r") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        # The vast majority of clusters use cluster.local.
        logger.info(
            f"[unexpected] error reading {path} to determine cluster domain ({e}), "
            f"defaulting to '{DEFAULT_CLUSTER_DOMAIN}'."
        )
        return DEFAULT_CLUSTER_DOMAIN

    return cluster_domain_from_search_domains(parse_search_domains(text), namespace)
