"""Bech32 codec and key identifier helpers.

Attributes:
    nip19: Bech32 encode/decode with strict and lenient decoding of the
        NIP-19 and versioned payload layouts.
    keys: ``npub``/``note`` conversions, key normalization and validation,
        and extraction of ``nostr:`` references from note content.

Note:
    The utils layer depends on [nostrview.models][nostrview.models] and on
    [nostrview.core.exceptions][nostrview.core.exceptions] only. It never
    imports ``nostrview.client`` or ``nostrview.services``.

Examples:
    ```python
    from nostrview.utils.keys import decode_reference

    ref = decode_reference("note1...")
    ```
"""
