import yaml

from svcexpose.crd.generator import CRDManager


def test_cluster_config_crd():
    crds = CRDManager().get_crds_as_dict()
    crd = crds["clusterconfigs.tailscale.com"]

    assert crd["spec"]["scope"] == "Cluster"
    assert crd["spec"]["names"]["kind"] == "ClusterConfig"

    version = crd["spec"]["versions"][0]
    assert version["name"] == "v1alpha1"
    spec_schema = version["schema"]["openAPIV3Schema"]["properties"]["spec"]
    assert spec_schema["properties"]["domain"]["type"] == "string"
    classes = spec_schema["properties"]["classes"]
    assert classes["type"] == "array"
    assert classes["items"]["required"] == ["name", "cidrv4"]


def test_generate_all_crds_writes_yaml(tmp_path):
    written = CRDManager(output_dir=tmp_path).generate_all_crds()

    assert [p.name for p in written] == ["clusterconfigs.tailscale.com.yaml"]
    doc = yaml.safe_load(written[0].read_text())
    assert doc["kind"] == "CustomResourceDefinition"
