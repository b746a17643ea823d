from typing import Any, Dict, List, Optional
import functools

import requests


class ClientError(Exception):
    def __init__(self, code, message):
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


def retry(fn):
    """
    Retries the decorated method up to `retry` times (default 0) on ClientError
    """
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        retry = int(kwargs.get("retry", 0) or 0)
        last_exc: Exception | None = None

        for _ in range(retry + 1):  # total attempts = 1 + retry
            try:
                return fn(*args, **kwargs)
            except ClientError as e:
                last_exc = e

        assert last_exc is not None
        raise last_exc
    return wrapper


def _error_message(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict) and "error" in data:
        return str(data["error"])
    return response.text


class RpcClient:
    """
    A simple client API for interacting with an RPC gateway.

    Methods can be called explicitly, `client.call("add", 1, 2)`, or as
    attributes, `client.add(1, 2)`.
    """
    def __init__(self, base_url: str, timeout: Optional[float] = 30):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @retry
    def call(self, method: str, *args: Any, retry: int = 0) -> Any:
        """
        Invoke `method` with positional `args` and return its result.
        """
        url = f"{self.base_url}/rpc"
        payload = {"method": method, "args": list(args)}
        response = requests.post(url, json=payload, timeout=self.timeout)
        if response.status_code == 200:
            output = response.json()
            return output["result"]
        else:
            raise ClientError(response.status_code, _error_message(response))

    @retry
    def methods(self, retry: int = 0) -> List[Dict[str, Any]]:
        """
        Fetch the discovery description of every exposed method.
        """
        url = f"{self.base_url}/rpc/methods"
        response = requests.get(url, timeout=self.timeout)
        if response.status_code == 200:
            return response.json()["methods"]
        else:
            raise ClientError(response.status_code, response.text)

    def method_names(self) -> List[str]:
        return [m["name"] for m in self.methods()]

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)
        return functools.partial(self.call, name)
