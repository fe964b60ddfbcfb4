import threading
from typing import Any, Callable, Dict, Type, TypeVar

T = TypeVar('T')


class DependencyContainer:
    """
    Per-application registry of the Database handle, Config and services

    Services are stateless apart from the handles they are built with, so a
    factory runs at most once and its result is shared by every request
    thread.
    """

    def __init__(self):
        self._instances: Dict[type, Any] = {}
        self._factories: Dict[type, Callable[[], Any]] = {}
        self._lock = threading.Lock()

    def register_singleton(self, service_class: Type[T], instance: T) -> None:
        self._instances[service_class] = instance
        self._factories.pop(service_class, None)

    def register_factory(self, service_class: Type[T], factory: Callable[[], T]) -> None:
        """Build lazily on first lookup"""
        self._factories[service_class] = factory
        self._instances.pop(service_class, None)

    def __contains__(self, service_class: type) -> bool:
        return service_class in self._instances or service_class in self._factories

    def get(self, service_class: Type[T]) -> T:
        instance = self._instances.get(service_class)
        if instance is not None:
            return instance

        with self._lock:
            if service_class in self._instances:
                return self._instances[service_class]
            factory = self._factories.get(service_class)
            if factory is None:
                raise LookupError(f"{service_class.__name__} is not registered")
            instance = self._instances[service_class] = factory()
            return instance
