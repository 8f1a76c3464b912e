"""
Error taxonomy for the scan pipeline.

Every error here is recoverable except `DecoderFault`, which halts the
scanner session until it is restarted.
"""


class ScanError(Exception):
    """Base class for scan pipeline failures."""


class InvalidPayload(ScanError):
    """Decoded text is malformed or carries no student identifier."""


class StoreError(ScanError):
    """The attendance store could not complete a round trip."""


class DuplicateRecordError(StoreError):
    """The store rejected an insert on the (student_id, host_id) uniqueness constraint."""


class InsertFailed(ScanError):
    def __init__(self, message: str, *, duplicate: bool = False):
        super().__init__(message)
        self.duplicate = duplicate


class DecoderFault(ScanError):
    """Camera or permission failure; fatal to the scanning session."""
