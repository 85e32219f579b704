"""Exceptions raised inside the resolution flow.

None of these escape a resolution: probes turn them into failed results and
the host resolver logs asset failures and carries on.
"""


class ProbeError(Exception):
    """A candidate host failed its check (transport or protocol)."""

    def __init__(self, reason: str, detail: str = ""):
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason}: {detail}" if detail else reason)


class AssetError(Exception):
    """An advert image could not be fetched or decrypted."""
