"""
Capability servers and the provider that routes capability calls to them.

Server discovery happens outside the engine: whoever builds the
EngineContext registers the servers it knows about on a CapabilityProvider.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Set

from .protocol import (
    INTERNAL_ERROR,
    METHOD_NOT_FOUND,
    CapabilityRequest,
    CapabilityResponse,
)

logger = logging.getLogger(__name__)


class CapabilityServer(ABC):
    """A tool server exposing a fixed set of named capabilities."""

    def __init__(self, server_id: str, enabled: bool = True):
        self.server_id = server_id
        self.enabled = enabled

    @abstractmethod
    def capabilities(self) -> Set[str]:
        ...

    def has_capability(self, name: str) -> bool:
        return name in self.capabilities()

    @abstractmethod
    def handle(self, request: CapabilityRequest) -> CapabilityResponse:
        ...


class FunctionCapabilityServer(CapabilityServer):
    """
    In-process server backed by plain callables, each taking the request params.

    A handler's return value becomes the result; an exception becomes an
    INTERNAL_ERROR response.
    """

    def __init__(self, server_id: str, handlers: Dict[str, Callable[[Dict[str, Any]], Any]],
                 enabled: bool = True):
        super().__init__(server_id, enabled)
        self._handlers = dict(handlers)

    def capabilities(self) -> Set[str]:
        return set(self._handlers)

    def handle(self, request: CapabilityRequest) -> CapabilityResponse:
        handler = self._handlers.get(request.method)
        if handler is None:
            return CapabilityResponse.fail(
                request.id, METHOD_NOT_FOUND,
                f"Server {self.server_id} does not support capability: {request.method}",
            )
        try:
            return CapabilityResponse.ok(request.id, handler(request.params))
        except Exception as e:  # handler code is foreign; report, don't propagate
            logger.error("Capability %s failed on %s", request.method, self.server_id, exc_info=True)
            return CapabilityResponse.fail(request.id, INTERNAL_ERROR, f"{type(e).__name__}: {e}")


class CapabilityProvider:
    """
    Registry of capability servers. `execute_capability` always answers with
    a response; routing problems come back as error responses.
    """

    def __init__(self, servers: Optional[List[CapabilityServer]] = None):
        self._lock = threading.Lock()
        self._servers: Dict[str, CapabilityServer] = {}
        for server in servers or []:
            self.register_server(server)

    def register_server(self, server: CapabilityServer) -> None:
        with self._lock:
            self._servers[server.server_id] = server
        logger.info("Capability server registered: %s (%s)",
                    server.server_id, ", ".join(sorted(server.capabilities())))

    def unregister_server(self, server_id: str) -> None:
        with self._lock:
            self._servers.pop(server_id, None)

    def get_server(self, server_id: str) -> Optional[CapabilityServer]:
        with self._lock:
            return self._servers.get(server_id)

    def servers_for(self, capability: str) -> List[CapabilityServer]:
        """Enabled servers supporting `capability`, in registration order."""
        with self._lock:
            servers = list(self._servers.values())
        return [s for s in servers if s.enabled and s.has_capability(capability)]

    def has_capability(self, name: str) -> bool:
        return bool(self.servers_for(name))

    def available_capabilities(self) -> Set[str]:
        with self._lock:
            servers = list(self._servers.values())
        return set().union(*(s.capabilities() for s in servers if s.enabled))

    def execute_capability(self, capability: str, params: Optional[Dict[str, Any]] = None,
                           server_id: Optional[str] = None) -> CapabilityResponse:
        request = CapabilityRequest.method_call(capability, params)

        if server_id is not None:
            server = self.get_server(server_id)
            if server is None or not server.enabled:
                return CapabilityResponse.fail(request.id, METHOD_NOT_FOUND,
                                               f"Server not found or disabled: {server_id}")
            if not server.has_capability(capability):
                return CapabilityResponse.fail(
                    request.id, METHOD_NOT_FOUND,
                    f"Server {server_id} does not support capability: {capability}",
                )
        else:
            candidates = self.servers_for(capability)
            if not candidates:
                return CapabilityResponse.fail(request.id, METHOD_NOT_FOUND,
                                               f"No servers support capability: {capability}")
            server = candidates[0]

        logger.debug("Dispatching %s to %s", capability, server.server_id)
        try:
            response = server.handle(request)
        except Exception as e:  # misbehaving server implementation
            logger.error("Server %s raised on %s", server.server_id, capability, exc_info=True)
            return CapabilityResponse.fail(request.id, INTERNAL_ERROR, f"{type(e).__name__}: {e}")
        return response
