"""
HTTP 远程存储客户端

RemoteStore implementation over a small REST protocol:

    GET  /domains                                     -> {"domains": [...]}
    PUT  /domains/{domain}                            -> 2xx, 409 if it exists
    GET  /domains/{domain}/items/{namespace}?attribute={key}
                                                      -> {"attributes": [{"name", "value"}]}
                                                         404 if the item is missing
    PUT  /domains/{domain}/items/{namespace}          <- {"attributes": [{"name", "value", "replace"}]}

Requests use HTTP basic auth with the access/secret key pair. Every failure,
transport or status, is raised as RemoteStoreError.
"""

from typing import Any, Dict, Optional, Set
from urllib.parse import quote

import httpx

from ..errors import RemoteStoreError
from ..log import log


def _segment(name: str) -> str:
    return quote(name, safe="")


class HttpRemoteStore:
    """
    RemoteStore backed by an HTTP key-value service

    Usage:
        store = HttpRemoteStore("https://config.internal", "AKIA...", "secret")
        store.put_attribute("prod", "billing", "currency", "EUR")
        store.get_attribute("prod", "billing", "currency")   # "EUR"
        store.close()
    """

    def __init__(
        self,
        base_url: str,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Args:
            base_url: Service root, e.g. "http://127.0.0.1:8080"
            access_key: Basic auth user name
            secret_key: Basic auth password
            timeout: Per-request timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        auth = None
        if access_key is not None and secret_key is not None:
            auth = httpx.BasicAuth(access_key, secret_key)
        elif access_key is not None or secret_key is not None:
            log.warning("[HTTP_REMOTE] Only one of access/secret key configured, sending no credentials")

        client_kwargs: Dict[str, Any] = {
            "base_url": base_url.rstrip("/"),
            "timeout": timeout,
            "auth": auth,
            "headers": {"Accept": "application/json"},
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.Client(**client_kwargs)
        self.base_url = base_url

    def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        ok_statuses: tuple = (),
        **kwargs: Any
    ) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteStoreError(
                f"{operation} failed: {type(e).__name__}: {e}", operation=operation
            ) from e

        if response.is_success or response.status_code in ok_statuses:
            return response

        raise RemoteStoreError(
            f"{operation} failed: HTTP {response.status_code}: {response.text[:200]}",
            status_code=response.status_code,
            operation=operation,
        )

    @staticmethod
    def _json(response: httpx.Response, operation: str) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteStoreError(
                f"{operation} returned invalid JSON: {e}",
                status_code=response.status_code,
                operation=operation,
            ) from e
        if not isinstance(data, dict):
            raise RemoteStoreError(
                f"{operation} returned {type(data).__name__}, expected an object",
                status_code=response.status_code,
                operation=operation,
            )
        return data

    def list_domains(self) -> Set[str]:
        response = self._request("list_domains", "GET", "/domains")
        data = self._json(response, "list_domains")
        return {str(name) for name in data.get("domains", [])}

    def create_domain(self, domain: str) -> None:
        response = self._request(
            "create_domain", "PUT", f"/domains/{_segment(domain)}", ok_statuses=(409,)
        )
        if response.status_code == 409:
            log.debug(f"[HTTP_REMOTE] Domain already exists: {domain!r}")
        else:
            log.success(f"[HTTP_REMOTE] Created domain {domain!r}")

    def get_attribute(self, domain: str, namespace: str, key: str) -> Optional[str]:
        response = self._request(
            "get_attribute",
            "GET",
            f"/domains/{_segment(domain)}/items/{_segment(namespace)}",
            params={"attribute": key},
            ok_statuses=(404,),
        )
        if response.status_code == 404:
            return None

        data = self._json(response, "get_attribute")
        value = None
        # A multi-valued attribute yields several entries; the last one wins
        for attribute in data.get("attributes", []):
            if isinstance(attribute, dict) and attribute.get("name") == key:
                value = attribute.get("value")
        return None if value is None else str(value)

    def put_attribute(
        self,
        domain: str,
        namespace: str,
        key: str,
        value: str,
        replace: bool = True
    ) -> None:
        self._request(
            "put_attribute",
            "PUT",
            f"/domains/{_segment(domain)}/items/{_segment(namespace)}",
            json={"attributes": [{"name": key, "value": value, "replace": replace}]},
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpRemoteStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
