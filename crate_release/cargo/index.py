"""crates.io sparse index lookups.

The sparse index serves one file per crate, one JSON object per line for
every published version. Responses are cached per crate for the run;
``update`` forgets a crate so the next lookup goes back to the network.
"""

import json
import logging
import time
import urllib.error
import urllib.request
from collections.abc import Callable

from crate_release import __version__
from crate_release.exceptions import PublishTimeoutError, RegistryIndexError

logger = logging.getLogger(__name__)

DEFAULT_INDEX_URL = "https://index.crates.io"


def index_path(name: str) -> str:
    """Relative path of a crate's index file."""
    name = name.lower()
    if len(name) <= 2:
        return f"{len(name)}/{name}"
    if len(name) == 3:
        return f"3/{name[0]}/{name}"
    return f"{name[0:2]}/{name[2:4]}/{name}"


class CratesIndex:
    """Cached view of the default registry's sparse index."""

    def __init__(self, url: str = DEFAULT_INDEX_URL, timeout: int = 30) -> None:
        self.url = url.rstrip("/")
        self.timeout = timeout
        self._cache: dict[str, set[str] | None] = {}

    def _fetch(self, name: str) -> set[str] | None:
        url = f"{self.url}/{index_path(name)}"
        request = urllib.request.Request(
            url, headers={"User-Agent": f"crate-release/{__version__}"}
        )
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                body = response.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            if e.code in (403, 404, 410):
                return None
            raise RegistryIndexError(
                f"Failed to query the registry index for {name}",
                details=f"HTTP {e.code} from {url}",
            ) from e
        except (urllib.error.URLError, TimeoutError) as e:
            raise RegistryIndexError(
                f"Failed to query the registry index for {name}",
                details=str(e),
                fix_hint="Check network connectivity",
            ) from e

        versions = set()
        for line in body.splitlines():
            if not line.strip():
                continue
            try:
                versions.add(json.loads(line)["vers"])
            except (json.JSONDecodeError, KeyError) as e:
                raise RegistryIndexError(
                    f"Malformed index entry for {name}", details=str(e)
                ) from e
        return versions

    def _versions(self, name: str) -> set[str] | None:
        if name not in self._cache:
            self._cache[name] = self._fetch(name)
        return self._cache[name]

    def has_crate(self, name: str) -> bool:
        return self._versions(name) is not None

    def is_published(self, name: str, version: str) -> bool:
        versions = self._versions(name)
        return versions is not None and version in versions

    def update(self, name: str | None = None) -> None:
        """Drop cached entries for ``name`` (or everything)."""
        if name is None:
            self._cache.clear()
        else:
            self._cache.pop(name, None)


def wait_for_publish(
    index: CratesIndex,
    name: str,
    version: str,
    timeout: float,
    dry_run: bool,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """Poll the index until ``name`` ``version`` appears.

    Raises:
        PublishTimeoutError: If it does not appear within ``timeout`` seconds
    """
    if dry_run:
        return
    start = clock()
    logged = False
    while True:
        index.update(name)
        if index.is_published(name, version):
            return
        if clock() - start > timeout:
            raise PublishTimeoutError(details=f"{name} {version} after {timeout}s")
        if not logged:
            logger.info("waiting for %s %s to propagate...", name, version)
            logged = True
        sleep(1)
