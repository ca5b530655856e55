"""CRD generation from the registered pydantic models."""

import logging
from pathlib import Path

import yaml

from .registry import CRDRegistry

logger = logging.getLogger(__name__)

CONDITION_SCHEMA = {
    "type": "object",
    "properties": {
        "type": {"type": "string"},
        "status": {"type": "string", "enum": ["True", "False", "Unknown"]},
        "reason": {"type": "string"},
        "message": {"type": "string"},
        "observedGeneration": {"type": "integer"},
        "lastTransitionTime": {"type": "string", "format": "date-time"},
    },
    "required": ["type", "status", "reason"],
}


class OpenAPIConverter:
    """Convert pydantic schemas to OpenAPI v3 compatible schemas for CRDs."""

    @staticmethod
    def convert_schema(pydantic_schema):
        defs = pydantic_schema.get("$defs", {})
        openapi_schema = {
            "type": "object",
            "properties": {
                name: OpenAPIConverter._convert_property(prop, defs)
                for name, prop in pydantic_schema.get("properties", {}).items()
            },
        }
        if "required" in pydantic_schema:
            openapi_schema["required"] = pydantic_schema["required"]
        return openapi_schema

    @staticmethod
    def _convert_property(prop_schema, defs):
        if "$ref" in prop_schema:
            def_name = prop_schema["$ref"].replace("#/$defs/", "")
            return OpenAPIConverter.convert_schema(defs.get(def_name, {}))

        # Optional[X] is rendered by pydantic as anyOf [X, null]
        if "anyOf" in prop_schema:
            options = [s for s in prop_schema["anyOf"] if s.get("type") != "null"]
            converted = OpenAPIConverter._convert_property(options[0], defs) if options else {}
            if "description" in prop_schema:
                converted["description"] = prop_schema["description"]
            return converted

        if prop_schema.get("type") == "array":
            converted = {"type": "array"}
            if "items" in prop_schema:
                converted["items"] = OpenAPIConverter._convert_property(
                    prop_schema["items"], defs
                )
            if "description" in prop_schema:
                converted["description"] = prop_schema["description"]
            return converted

        result = {"type": prop_schema.get("type", "object")}
        for key in ("description", "default", "enum"):
            if key in prop_schema:
                result[key] = prop_schema[key]
        return result


class CRDManager:
    """Renders registered models into CustomResourceDefinitions."""

    def __init__(self, output_dir=None):
        self.output_dir = Path(output_dir or "crds/generated")
        self.registry = CRDRegistry()
        self.converter = OpenAPIConverter()

    def generate_crd_definition(self, model_info):
        """Generate a single CRD definition from model info."""
        group = model_info["group"]
        plural = model_info["plural"]
        spec_schema = self.converter.convert_schema(
            model_info["model"].model_json_schema()
        )

        return {
            "apiVersion": "apiextensions.k8s.io/v1",
            "kind": "CustomResourceDefinition",
            "metadata": {"name": f"{plural}.{group}"},
            "spec": {
                "group": group,
                "versions": [
                    {
                        "name": model_info["version"],
                        "served": True,
                        "storage": True,
                        "schema": {
                            "openAPIV3Schema": {
                                "type": "object",
                                "properties": {
                                    "spec": spec_schema,
                                    "status": {
                                        "type": "object",
                                        "properties": {
                                            "conditions": {
                                                "type": "array",
                                                "items": CONDITION_SCHEMA,
                                            },
                                        },
                                    },
                                },
                            }
                        },
                        "subresources": {"status": {}},
                    }
                ],
                "scope": model_info["scope"],
                "names": {
                    "plural": plural,
                    "singular": model_info["singular"],
                    "kind": model_info["kind"],
                },
            },
        }

    def get_crds_as_dict(self):
        """Return all CRDs keyed by name."""
        self.registry.discover_models()
        crds = {}
        for model_info in self.registry.get_all_models().values():
            crd_def = self.generate_crd_definition(model_info)
            crds[crd_def["metadata"]["name"]] = crd_def
        return crds

    def generate_all_crds(self):
        """Write every CRD to ``output_dir`` and return the file paths."""
        self.output_dir.mkdir(parents=True, exist_ok=True)

        written = []
        for crd_name, crd_def in sorted(self.get_crds_as_dict().items()):
            file_path = self.output_dir / f"{crd_name}.yaml"
            with open(file_path, "w") as f:
                yaml.safe_dump(crd_def, f, default_flow_style=False, sort_keys=False)
            logger.info(f"Generated CRD: {file_path.name}")
            written.append(file_path)
        return written

    def apply_crds_to_cluster(self, api_client=None):
        """Create or replace the CRDs in the cluster.

        Returns:
            int: number of CRDs applied
        """
        from kubernetes import client

        api = client.ApiextensionsV1Api(api_client)
        applied = 0
        for crd_name, crd_def in self.get_crds_as_dict().items():
            try:
                existing = api.read_custom_resource_definition(crd_name)
                crd_def["metadata"]["resourceVersion"] = existing.metadata.resource_version
                api.replace_custom_resource_definition(name=crd_name, body=crd_def)
                logger.info(f"Updated CRD: {crd_name}")
            except client.exceptions.ApiException as e:
                if e.status != 404:
                    raise
                api.create_custom_resource_definition(body=crd_def)
                logger.info(f"Created CRD: {crd_name}")
            applied += 1
        return applied
