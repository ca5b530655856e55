import sys

import typer
from typing_extensions import Annotated

from dotenv import load_dotenv, find_dotenv

from svcexpose.cluster_domain import RESOLV_CONF_PATH, retrieve_cluster_domain
from svcexpose.exposure import Annotation, ServiceExposureRequest, dns_name_for_svc

load_dotenv(find_dotenv())

app = typer.Typer(
    help="svcexpose: expose Kubernetes Services on the tailnet",
    add_completion=False,
)


@app.command("operator")
def run_operator():
    """Run the Kubernetes operator (connects to cluster)."""
    from svcexpose.main import main

    main()


@app.command("generate-crds")
def generate_crds(
    output: Annotated[
        str, typer.Option("-o", "--output", help="Output directory")
    ] = "crds/generated",
):
    """Generate CRD YAML files from pydantic models."""
    from svcexpose.crd.generator import CRDManager

    try:
        written = CRDManager(output_dir=output).generate_all_crds()
    except Exception as e:
        typer.echo(f"Failed to generate CRDs: {e}")
        sys.exit(1)

    for path in written:
        typer.echo(f"  - {path}")
    typer.echo(f"Generated {len(written)} CRDs in {output}")


@app.command("cluster-domain")
def cluster_domain(
    namespace: Annotated[
        str, typer.Option("-n", "--namespace", help="Namespace the pod runs in")
    ] = "default",
    resolv_conf: Annotated[
        str, typer.Option("--resolv-conf", help="Resolver configuration file")
    ] = RESOLV_CONF_PATH,
):
    """Print the cluster domain inferred from the resolver configuration."""
    typer.echo(retrieve_cluster_domain(namespace, resolv_conf))


@app.command("dns-name")
def dns_name(
    name: Annotated[str, typer.Argument(help="Service name")],
    namespace: Annotated[str, typer.Argument(help="Service namespace")],
    annotation: Annotated[
        str,
        typer.Option(
            "--annotation", help=f"Value of the {Annotation.SERVICE_DNS_NAME.value} annotation"
        ),
    ] = "",
    domain: Annotated[
        str, typer.Option("--domain", help="Cluster domain")
    ] = "cluster.local",
):
    """Print the DNS name a Service would be recorded under."""
    annotations = {Annotation.SERVICE_DNS_NAME.value: annotation} if annotation else {}
    svc = ServiceExposureRequest(name=name, namespace=namespace, annotations=annotations)
    typer.echo(dns_name_for_svc(svc, domain))


if __name__ == "__main__":
    app()
