"""Naming policies: map an uploaded file's original name to its stored name."""

import os
import secrets
from typing import Callable, Final

RANDOM_NAME_BYTES: Final = 16

NamingPolicy = Callable[[str], str]


def randomized_name(
    original_name: str,
    token_hex: Callable[[int], str] = secrets.token_hex,
) -> str:
    """Return a random hex name that keeps the original extension.

    Args:
        original_name: Name the client sent with the upload.
        token_hex: Random source, replaceable in tests.

    Returns:
        32 hex characters followed by the original extension, if any.
    """
    extension = os.path.splitext(original_name)[1]
    return token_hex(RANDOM_NAME_BYTES) + extension


def preserve_original_name(original_name: str) -> str:
    """Return the client-supplied name unchanged."""
    return original_name


NAMING_POLICIES: Final[dict[str, NamingPolicy]] = {
    'random': randomized_name,
    'original': preserve_original_name,
}
