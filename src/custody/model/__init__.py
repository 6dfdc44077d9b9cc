"""Records handled by the custody core."""

from custody.model.document import Document
from custody.model.signature import DocumentSignature, current_signature
from custody.model.signing_key import KeyState, SigningKey, latest_usable, usable_keys

__all__ = [
    "Document",
    "DocumentSignature",
    "current_signature",
    "KeyState",
    "SigningKey",
    "latest_usable",
    "usable_keys",
]
