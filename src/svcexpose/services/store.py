"""Interfaces to the collaborators the service reconciler talks to."""

from abc import ABC, abstractmethod


class ResourceStore(ABC):
    """Read and write access to the API objects a reconcile touches."""

    @abstractmethod
    def get_service(self, namespace, name):
        """Return a ServiceExposureRequest, or None if the Service is gone."""

    @abstractmethod
    def add_finalizer(self, svc, finalizer):
        """Add ``finalizer`` to the Service."""

    @abstractmethod
    def remove_finalizer(self, svc, finalizer):
        """Remove ``finalizer`` from the Service."""

    @abstractmethod
    def update_service_conditions(self, svc, conditions):
        """Persist ``conditions`` as the Service's status conditions."""

    @abstractmethod
    def get_cluster_config(self):
        """Return the ClusterConfigSpec to use, or None if none exists."""

    @abstractmethod
    def read_records(self):
        """Return ``(records, version)`` for the shared service records.

        ``version`` identifies the stored revision and is passed back to
        :meth:`write_records`.
        """

    @abstractmethod
    def write_records(self, records, version):
        """Persist ``records`` if the stored revision is still ``version``.

        Raises:
            RecordConflictError: the records changed since they were read
        """


class ProxyCleaner(ABC):
    """Removes the proxy workloads created for a parent object."""

    @abstractmethod
    def cleanup(self, labels):
        """Delete resources matching ``labels``.

        Returns:
            bool: True once nothing matching ``labels`` is left
        """
