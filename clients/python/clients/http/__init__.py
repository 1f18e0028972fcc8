import asyncio
import json
import urllib.error
import urllib.request
from typing import Any, Dict, Optional


class HttpError(Exception):
    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"HTTP Error {status}: {body}")
        self.status = status
        self.body = body


async def request(
    method: str,
    url: str,
    headers: Optional[Dict[str, str]] = None,
    json_data: Optional[Dict[str, Any]] = None,
    timeout: float = 10.0,
) -> Any:
    """Run a JSON HTTP request on a worker thread and return the decoded body."""
    headers = dict(headers or {})
    data = None
    if json_data is not None:
        data = json.dumps(json_data).encode("utf-8")
        headers["Content-Type"] = "application/json"
    headers.setdefault("Accept", "application/json")

    req = urllib.request.Request(url, data=data, headers=headers, method=method)
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, _perform_request, req, timeout)


async def get_json(url: str, timeout: float = 10.0) -> Any:
    return await request("GET", url, timeout=timeout)


def _perform_request(req: urllib.request.Request, timeout: float) -> Any:
    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            body = response.read()
    except urllib.error.HTTPError as e:
        raise HttpError(e.code, e.read().decode("utf-8", errors="replace")) from e
    if not body:
        return None
    return json.loads(body)
