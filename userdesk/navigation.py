from __future__ import annotations

import logging
from typing import List


logger = logging.getLogger(__name__)


class Navigator:
    """Client-side location. Views read `location`, operations push redirects."""

    def __init__(self, start: str = "/"):
        self.location = start
        self.history: List[str] = [start]

    def redirect(self, path: str) -> None:
        if path == self.location:
            return
        logger.info("Redirect %s -> %s", self.location, path)
        self.location = path
        self.history.append(path)
