"""Exception hierarchy for blink resolution, transaction execution and API access."""

from typing import Optional


class BlinksError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(BlinksError):
    """Required configuration is missing and no usable default exists."""


class HttpStatusError(BlinksError):
    """A remote HTTP server answered with a non-2xx status."""

    def __init__(self, message: str, status: int, detail: str):
        super().__init__(message)
        self.status = status
        self.detail = detail


class MetadataFetchError(HttpStatusError):
    """The action server rejected the describe (GET) request."""

    def __init__(self, status: int, status_text: str):
        super().__init__(
            f"Failed to fetch blink metadata: {status} {status_text}", status, status_text
        )


class TransactionBuildError(HttpStatusError):
    """The action server did not return a transaction for the build (POST) request."""

    def __init__(self, status: int, detail: str):
        super().__init__(f"Failed to get blink transaction: {status} - {detail}", status, detail)


class DialectApiError(HttpStatusError):
    def __init__(self, status: int, detail: str):
        super().__init__(f"Dialect API error ({status}): {detail}", status, detail)


class DecodeError(BlinksError):
    """The payload is neither a versioned nor a legacy transaction."""


class BroadcastError(BlinksError):
    """sendTransaction failed after the transport-level retries were used up."""


class ConfirmationError(BlinksError):
    """
    The transaction was not confirmed.

    ``landed`` is False when the blockhash expired before the signature was seen at
    ``confirmed`` (a transaction only seen at ``processed`` counts as not landed),
    True when it landed but failed on-chain, and None when the RPC node stopped
    answering after the broadcast so the outcome is unknown.
    Resubmitting is left to the caller: the pipeline gives no idempotency guarantee.
    """

    def __init__(self, signature: str, landed: Optional[bool], error: Optional[str] = None):
        if landed is None:
            message = f"Transaction {signature} was sent but its status is unknown: {error}"
        elif landed:
            message = f"Transaction {signature} failed on-chain: {error}"
        else:
            message = f"Transaction {signature} was not confirmed before its blockhash expired"
            if error:
                message = f"{message}: {error}"
        super().__init__(message)
        self.signature = signature
        self.landed = landed
        self.error = error
