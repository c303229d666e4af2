from __future__ import annotations


class DiskmgtError(Exception):
    """Base error for the drive registry core."""
    pass


class ScanFailure(DiskmgtError):
    """Raised by a DeviceSource when the block-device query fails or is unparseable."""
    pass


class StoreCorruption(DiskmgtError):
    """Raised by a store backend when the registry document cannot be parsed."""
    pass
