"""
Detection of the GitHub product and version behind an API base URL.

Projects (v2) behave differently across GitHub.com, GitHub Enterprise Cloud
with data residency and GitHub Enterprise Server. The minimum versions below
have moved between releases, so they are plain constants.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final
from urllib.parse import urlparse

from packaging.version import Version

from .exceptions import UnsupportedVersionError
from .github_utils import DOTCOM_API_URL

if TYPE_CHECKING:
    from .github_utils import GitHubClient

logger: logging.Logger = logging.getLogger(__name__)

MINIMUM_GHES_VERSION_FOR_EXPORTS: Final[Version] = Version("3.12.0")
MINIMUM_GHES_VERSION_FOR_IMPORTS: Final[Version] = Version("3.12.0")
MINIMUM_GHES_VERSION_FOR_STATUS_FIELD_MIGRATION: Final[Version] = Version("3.17.0")

_DATA_RESIDENCY_HOST_SUFFIX: Final[str] = "ghe.com"


class GitHubProduct(enum.Enum):
    DOTCOM = "GitHub.com"
    DATA_RESIDENCY = "GitHub Enterprise Cloud with Data Residency"
    GHES = "GitHub Enterprise Server"


@dataclass(frozen=True)
class ProductInformation:
    """The product behind a client and, for GHES, its installed version."""

    product: GitHubProduct
    server_version: Version | None = None

    def __str__(self) -> str:
        if self.product is GitHubProduct.GHES:
            return f"{self.product.value} {self.server_version}"
        return self.product.value


def get_product_from_base_url(base_url: str) -> GitHubProduct:
    if base_url == DOTCOM_API_URL:
        return GitHubProduct.DOTCOM
    host = urlparse(base_url).hostname or ""
    if host.endswith(_DATA_RESIDENCY_HOST_SUFFIX):
        return GitHubProduct.DATA_RESIDENCY
    return GitHubProduct.GHES


def get_server_version(client: GitHubClient) -> Version:
    """Read the installed GHES version from ``GET /meta``."""
    meta = client.request("GET", "/meta")
    return Version(meta["installed_version"])


def get_product_information(client: GitHubClient) -> ProductInformation:
    product = get_product_from_base_url(client.base_url)
    if product is GitHubProduct.GHES:
        return ProductInformation(product, get_server_version(client))
    return ProductInformation(product)


def supports_automatic_status_field_migration(
    product: GitHubProduct,
    version: Version | str | None = None,
) -> bool:
    """Whether the Status field's options can be rewritten to mirror the source.

    Invalid version strings raise ``packaging.version.InvalidVersion``.
    Pre-releases such as ``3.17.0-rc1`` sort below the release.
    """
    if product is not GitHubProduct.GHES:
        return True
    if version is None:
        return False
    if isinstance(version, str):
        version = Version(version)
    return version >= MINIMUM_GHES_VERSION_FOR_STATUS_FIELD_MIGRATION


def ensure_supported(info: ProductInformation, *, action: str) -> None:
    """Fail fast when a GHES instance is below the floor for ``action``.

    Args:
        info: Product information for the connected instance
        action: Either "export" or "import"

    Raises:
        UnsupportedVersionError: If the server version is below the floor
    """
    floor = MINIMUM_GHES_VERSION_FOR_IMPORTS if action == "import" else MINIMUM_GHES_VERSION_FOR_EXPORTS

    if info.product is GitHubProduct.GHES:
        if info.server_version is None or info.server_version < floor:
            version = info.server_version or "of unknown version"
            msg = (
                f"You are trying to {action} using GitHub Enterprise Server {version}, "
                f"but only {floor} onwards is supported."
            )
            raise UnsupportedVersionError(msg)
        logger.info(f"Running {action} in GitHub Enterprise Server {info.server_version} mode")
    else:
        logger.info(f"Running {action} in {info.product.value} mode")
