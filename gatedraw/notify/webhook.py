import os
import logging
from urllib.parse import urljoin
from typing import Any, Mapping, Optional

import requests
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class WebhookNotifier:
    """Deliver announcement and private-notice intents to an HTTP webhook.

    The endpoint receives JSON bodies on two paths:

    - ``POST {base_url}/announcements`` with ``{"scope_id", "message"}``
    - ``POST {base_url}/notices`` with ``{"user", "title", "message"}``
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        token: Optional[str] = None,
        timeout: int = 10,
        session: Optional[requests.Session] = None,
    ):
        load_dotenv()
        url = base_url or os.getenv("DRAW_WEBHOOK_URL")
        if not url:
            raise ValueError("Environment variable 'DRAW_WEBHOOK_URL' is not set")

        self.base_url = url.rstrip("/")
        self.token = token if token is not None else os.getenv("DRAW_WEBHOOK_TOKEN")
        self.timeout = timeout
        self.session = session or requests.Session()

    # -------- headers --------
    @property
    def headers(self) -> Mapping[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    # -------- core request --------
    def _post(self, path: str, payload: dict) -> Any:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        r = self.session.post(
            url,
            json=payload,
            headers=self.headers,
            timeout=self.timeout,
        )
        r.raise_for_status()
        # Do not log message bodies; they may contain user names.
        logger.debug(f"Webhook POST {path} -> {r.status_code}")
        return r.json() if r.content else None

    # -------- NotifierAdapter --------
    def announce(self, scope_id: str, message: str) -> None:
        self._post("/announcements", {"scope_id": scope_id, "message": message})

    def notify_user(self, user: str, title: str, message: str) -> None:
        self._post("/notices", {"user": user, "title": title, "message": message})
