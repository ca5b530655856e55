"""CRD Registry system for automatic CRD discovery."""

import importlib
import pkgutil
import logging

logger = logging.getLogger(__name__)


class CRDRegistry:
    """Global registry for CRD models with auto-discovery."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._models = {}
        return cls._instance

    @classmethod
    def register(cls, group, version, kind, plural=None, scope="Namespaced"):
        """Decorator to register CRD models.

        Args:
            group: API group (e.g., 'tailscale.com')
            version: API version (e.g., 'v1alpha1')
            kind: Kind name (e.g., 'ClusterConfig')
            plural: Plural name (defaults to kind.lower() + 's')
            scope: 'Namespaced' or 'Cluster'
        """

        def decorator(model_class):
            if not hasattr(model_class, "__annotations__"):
                raise ValueError(
                    f"CRD model {model_class.__name__} must have type annotations"
                )

            model_class._crd_group = group
            model_class._crd_version = version
            model_class._crd_kind = kind
            model_class._crd_plural = plural or f"{kind.lower()}s"
            model_class._crd_scope = scope

            key = f"{group}/{version}/{kind}"
            cls()._models[key] = {
                "model": model_class,
                "group": group,
                "version": version,
                "kind": kind,
                "plural": model_class._crd_plural,
                "scope": scope,
                "singular": kind.lower(),
            }

            logger.debug(f"Registered CRD: {key}")
            return model_class

        return decorator

    def discover_models(self, package_paths=None):
        """Import model packages so their decorators run.

        Args:
            package_paths: List of package paths to search (e.g., ['svcexpose.models'])
        """
        for package_path in package_paths or ["svcexpose.models"]:
            try:
                package = importlib.import_module(package_path)
            except ImportError as e:
                logger.warning(f"Could not discover models in {package_path}: {e}")
                continue

            for _, module_name, _ in pkgutil.iter_modules(getattr(package, "__path__", [])):
                full_module_name = f"{package_path}.{module_name}"
                try:
                    importlib.import_module(full_module_name)
                    logger.debug(f"Discovered models in {full_module_name}")
                except ImportError as e:
                    logger.warning(f"Could not import {full_module_name}: {e}")

    def get_all_models(self):
        """Get all registered CRD models."""
        return self._models.copy()

    def get_model_by_key(self, group, version, kind):
        """Get a specific CRD model by its key."""
        return self._models.get(f"{group}/{version}/{kind}")
