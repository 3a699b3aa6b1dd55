from dataclasses import dataclass
from typing import Literal

from filestore.core.config import Settings
from filestore.services.naming import NAMING_POLICIES, NamingPolicy

ResponseMode = Literal["redirect", "json"]


@dataclass(frozen=True)
class BucketNamespace:
    """
    One independently listed and deleted set of files.

    ``prefix`` is where its routes are mounted, ``naming`` turns upload names
    into stored names and ``response_mode`` decides whether uploads and
    deletes redirect to the listing view or answer with JSON.
    """

    bucket: str
    prefix: str
    naming: NamingPolicy
    response_mode: ResponseMode = "json"

    def stored_name(self, original_name: str) -> str:
        return self.naming(original_name)


def build_namespaces(settings: Settings) -> list[BucketNamespace]:
    return [
        BucketNamespace(
            bucket=settings.UPLOADS_BUCKET,
            prefix="",
            naming=NAMING_POLICIES[settings.UPLOADS_NAMING],
            response_mode=settings.UPLOADS_RESPONSE,
        ),
        # Unlisted path only, there is no access control on it
        BucketNamespace(
            bucket=settings.SAFE_UPLOADS_BUCKET,
            prefix=settings.SAFE_UPLOADS_PATH.rstrip("/"),
            naming=NAMING_POLICIES[settings.SAFE_UPLOADS_NAMING],
            response_mode="json",
        ),
    ]
