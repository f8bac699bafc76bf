"""Error taxonomy for the intake workflow.

ParseError and StoreError abort a request. ProvisionError and NotifyError are
turned into results at their own boundary and never reach the router.
"""


class BackofficeError(Exception):
    """Base class for all intake errors."""


class ParseError(BackofficeError):
    """Inbound payload could not be decoded."""


class SheetBackendError(BackofficeError):
    """The spreadsheet service (Google Sheets or the SQL stand-in) rejected a call."""


class StoreError(BackofficeError):
    """A lead row could not be written."""


class ProvisionError(BackofficeError):
    """Template workbook creation failed."""


class NotifyError(BackofficeError):
    """A notification could not be delivered."""
