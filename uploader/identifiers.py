"""Unique identifier generation for admitted items."""

import inspect
import re
from typing import Awaitable, Callable, Optional, Union

from uploader.exceptions import IdentifierGenerationError
from uploader.items import UploadItem

_UNSAFE_CHARACTERS = re.compile(r'[^0-9a-zA-Z_-]')

IdentifierGenerator = Callable[[UploadItem], Union[str, Awaitable[str]]]


def default_identifier(item: UploadItem) -> str:
    """
    Build the stable fingerprint `"{size}-{sanitized relative path}"`.

    Args:
        item: Item to fingerprint

    Returns:
        Identifier string (e.g., "2621440-videosclipmp4")
    """
    return f"{item.size}-{_UNSAFE_CHARACTERS.sub('', item.relative_path)}"


async def generate_unique_identifier(
    item: UploadItem,
    custom_generator: Optional[IdentifierGenerator] = None
) -> str:
    """
    Produce the identifier for an item, awaiting custom generators that return awaitables.

    Args:
        item: Item to identify
        custom_generator: Optional caller-supplied generator (sync or async)

    Returns:
        Identifier string

    Raises:
        IdentifierGenerationError: If the custom generator fails or returns nothing
    """
    if custom_generator is None:
        return default_identifier(item)

    try:
        result = custom_generator(item)
        if inspect.isawaitable(result):
            result = await result
    except Exception as e:
        raise IdentifierGenerationError(f"Identifier generation failed for {item.name}: {e}", item=item) from e

    if not result:
        raise IdentifierGenerationError(f"Identifier generator returned no value for {item.name}", item=item)
    return str(result)
