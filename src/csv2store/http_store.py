"""HTTP document store client (CouchDB-style REST API) built on requests."""

import logging
import threading
from typing import Any
from urllib.parse import quote, urlsplit, urlunsplit

import requests
from requests.auth import HTTPBasicAuth

from csv2store.store.service import DocumentStore
from csv2store.store.types import EXISTS, OK, StoreResult, other, permanent, transient

logger = logging.getLogger(__name__)

TRANSIENT_STATUSES = {429, 503}
PERMANENT_STATUSES = {507}
CREATED_STATUSES = {201, 202}


class HttpDocumentStore(DocumentStore):
    """Document store reached over HTTP at ``<scheme>://host[:port]/<bucket>``.

    Documents are created with ``PUT /<bucket>/<key>``; the server answers
    409 for a key that already exists, so writes never overwrite. Each
    worker thread gets its own requests.Session.
    """

    def __init__(self, url: str, password: str | None = None, timeout: float = 10.0):
        parts = urlsplit(url)
        bucket = parts.path.strip("/")
        if not bucket or "/" in bucket:
            raise ValueError(f"Store URL must name exactly one bucket: {url}")
        netloc = parts.hostname or ""
        if ":" in netloc:
            netloc = f"[{netloc}]"
        if parts.port:
            netloc = f"{netloc}:{parts.port}"
        self._base_url = urlunsplit((parts.scheme, netloc, "/" + bucket, "", ""))
        self._bucket = bucket
        self._auth = None
        if password is not None or parts.password is not None:
            self._auth = HTTPBasicAuth(
                parts.username or bucket,
                password if password is not None else parts.password,
            )
        self._timeout = timeout
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

    @property
    def base_url(self) -> str:
        return self._base_url

    def _session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.auth = self._auth
            session.headers["Content-Type"] = "application/json"
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def _url(self, key: str) -> str:
        return f"{self._base_url}/{quote(key, safe='')}"

    def connect(self) -> None:
        resp = self._session().get(self._base_url, timeout=self._timeout)
        resp.raise_for_status()

    def close(self) -> None:
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._local = threading.local()

    def add(self, key: str, document: str) -> StoreResult:
        try:
            resp = self._session().put(
                self._url(key), data=document.encode("utf-8"), timeout=self._timeout
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            return transient(type(e).__name__, str(e))
        except requests.RequestException as e:
            return other(type(e).__name__, str(e))
        return classify_response(resp)

    def get(self, key: str) -> dict[str, Any] | None:
        resp = self._session().get(self._url(key), timeout=self._timeout)
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        data = resp.json()
        data.pop("_id", None)
        data.pop("_rev", None)
        return data

    def remove(self, key: str) -> bool:
        session = self._session()
        resp = session.get(self._url(key), timeout=self._timeout)
        if resp.status_code == 404:
            return False
        resp.raise_for_status()
        rev = resp.json().get("_rev")
        params = {"rev": rev} if rev else None
        resp = session.delete(self._url(key), params=params, timeout=self._timeout)
        if resp.status_code == 404:
            return False
        resp.raise_for_status()
        return True


def classify_response(resp: requests.Response) -> StoreResult:
    """Map an HTTP response to a create request onto a StoreResult."""
    status = resp.status_code
    if status in CREATED_STATUSES:
        return OK
    message = resp.text[:200]
    if status == 409:
        return other(EXISTS, message)
    if status in TRANSIENT_STATUSES:
        return transient(status, message)
    if status in PERMANENT_STATUSES:
        return permanent(status, message)
    return other(status, message)
