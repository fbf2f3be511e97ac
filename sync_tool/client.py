"""
HTTP client for the iBroadcast service.

Covers the three calls the sync needs: login (which also reports the
supported file types), the list of MD5 sums already in the user's library,
and the multipart upload of a single file.
"""

import logging
import mimetypes
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Union

import requests

from shared.constants import (
    CLIENT_NAME, CLIENT_VERSION, DEFAULT_NETWORK_TIMEOUT, DEFAULT_PARALLEL_UPLOADS,
    JSON_API_URL, SYNC_URL, UPLOAD_METHOD, UPLOAD_READ_TIMEOUT, USER_AGENT
)
from shared.exceptions import AuthenticationError, SetupError, TransportError
from shared.models import Session

logger = logging.getLogger(__name__)


class IBroadcastClient:
    """Thin wrapper around a requests session talking to iBroadcast."""

    def __init__(self, pool_size: int = DEFAULT_PARALLEL_UPLOADS,
                 json_url: str = JSON_API_URL, sync_url: str = SYNC_URL,
                 timeout: float = DEFAULT_NETWORK_TIMEOUT):
        self.json_url = json_url
        self.sync_url = sync_url
        self.timeout = timeout
        self._session = requests.Session()
        # One pooled connection per upload worker
        adapter = requests.adapters.HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
        self._session.mount('https://', adapter)
        self._session.mount('http://', adapter)
        self._session.headers['User-Agent'] = USER_AGENT

    def close(self):
        self._session.close()

    def __enter__(self) -> 'IBroadcastClient':
        return self

    def __exit__(self, *args):
        self.close()

    def _post_for_json(self, url: str, **kwargs) -> Dict[str, Any]:
        """
        POST and return the decoded JSON response.

        Raises:
            TransportError: On connection problems, HTTP errors or a body
                that is not a JSON object
        """
        try:
            response = self._session.post(url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise TransportError(f"POST {url} failed: {e}") from e
        except ValueError as e:
            raise TransportError(f"POST {url} returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise TransportError(f"POST {url} returned unexpected JSON")
        return data

    def post_json(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._post_for_json(url, json=payload)

    def post_form(self, url: str, fields: Dict[str, str]) -> Dict[str, Any]:
        return self._post_for_json(url, data=fields)

    def login(self, email: str, password: str) -> Session:
        """
        Verify the credentials and fetch the supported file types.

        Returns:
            Session with user id, token and the accepted extensions

        Raises:
            AuthenticationError: If the service does not return a user
            SetupError: If the service cannot be reached
        """
        payload = {
            "mode": "status",
            "email_address": email,
            "password": password,
            "version": CLIENT_VERSION,
            "client": CLIENT_NAME,
            "supported_types": 1,
        }
        try:
            data = self.post_json(self.json_url + payload["mode"], payload)
        except TransportError as e:
            raise SetupError(f"Login request failed: {e}") from e

        user = data.get("user")
        if not isinstance(user, dict) or not user.get("id") or not user.get("token"):
            raise AuthenticationError(
                "Login failed. Please check your email address, password combination"
            )

        extensions = []
        for item in data.get("supported") or []:
            if isinstance(item, dict) and item.get("extension"):
                extensions.append(str(item["extension"]))

        logger.debug(f"Logged in as user {user['id']}, {len(extensions)} supported types")
        return Session(
            user_id=str(user["id"]),
            token=str(user["token"]),
            supported_extensions=frozenset(extensions),
        )

    def fetch_manifest(self, session: Session) -> FrozenSet[str]:
        """
        Get the MD5 sums of all files already in the user's library.

        Raises:
            SetupError: If the list cannot be fetched
        """
        try:
            data = self.post_form(self.sync_url, {"user_id": session.user_id, "token": session.token})
        except TransportError as e:
            raise SetupError(f"Could not fetch library checksums: {e}") from e

        sums = data.get("md5")
        if not isinstance(sums, list):
            raise SetupError("Could not fetch library checksums: no md5 list in response")
        manifest = frozenset(s.lower() for s in sums if isinstance(s, str))
        logger.debug(f"Server knows {len(manifest)} files")
        return manifest

    def upload_file(self, session: Session, path: Union[str, Path], relative_path: str,
                    content_type: Optional[str] = None) -> int:
        """
        Upload one file as multipart/form-data.

        Returns:
            HTTP status code of the response

        Raises:
            TransportError: If the request could not be completed
            OSError: If the file cannot be opened
        """
        path = Path(path)
        if content_type is None:
            content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        fields = {
            "file_path": relative_path,
            "method": UPLOAD_METHOD,
            "user_id": session.user_id,
            "token": session.token,
        }
        with open(path, 'rb') as f:
            try:
                response = self._session.post(
                    self.sync_url,
                    data=fields,
                    files={"file": (path.name, f, content_type)},
                    timeout=(self.timeout, UPLOAD_READ_TIMEOUT),
                )
            except requests.RequestException as e:
                raise TransportError(f"Upload of {relative_path} failed: {e}") from e
        logger.debug(f"Upload {relative_path}: HTTP {response.status_code}")
        return response.status_code
