"""
Blink execution pipeline.

    FETCHED -> DECODED -> (SIMULATED | SIGNED) -> SENT -> CONFIRMED

One unsigned transaction is fetched per execution. Broadcasting relies on the RPC
node's own retries (``max_retries=3``); the pipeline never re-fetches or re-signs.
"""

import inspect
import json
from typing import Any, Awaitable, Callable, Optional, Union

import httpx
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.core import RPCException, TransactionExpiredBlockheightExceededError
from solana.rpc.types import TxOpts
from solders.signature import Signature

from mcp.server.fastmcp.utilities.logging import get_logger

from .blinks import ActionFetcher
from .config import SEND_MAX_RETRIES
from .errors import BroadcastError, ConfirmationError
from .models import BlinkAction, BlinkMetadata, BlinkTransaction, InspectResult, SimulationResult
from .transactions import DecodedTransaction, TransactionVariant, decode_transaction

logger = get_logger(__name__)

SignFn = Callable[[TransactionVariant], Union[TransactionVariant, Awaitable[TransactionVariant]]]
RPC_TRANSPORT_ERRORS = (RPCException, SolanaRpcException, httpx.HTTPError)


def rpc_result(resp: Any) -> Any:
    """
    The `result` member of an RPC response as plain JSON values.

    solders error objects lose their variant names when converted field by field
    (`{"InstructionError": [0, {"Custom": 6001}]}` comes back as `[0, 6001]`), so
    errors are read from the response's own JSON encoding instead.
    """
    return json.loads(resp.to_json())["result"]


def error_json(err: Any) -> Optional[str]:
    return None if err is None else json.dumps(err)


class BlinksExecutor:
    """Fetches, simulates, signs and broadcasts blink transactions on one RPC connection."""

    def __init__(self, connection: AsyncClient, fetcher: Optional[ActionFetcher] = None):
        self.connection = connection
        self.fetcher = fetcher or ActionFetcher()

    async def close(self) -> None:
        await self.fetcher.close()

    # --- Action server exchange ---

    async def get_metadata(self, blink_url: str) -> BlinkMetadata:
        return await self.fetcher.describe(blink_url)

    async def get_transaction(self, blink_url: str, wallet_address: str, params=None) -> BlinkTransaction:
        return await self.fetcher.build(blink_url, wallet_address, params)

    async def inspect(self, blink_url: str) -> InspectResult:
        return await self.fetcher.inspect(blink_url)

    # --- Pipeline ---

    def decode_transaction(self, blink_tx: BlinkTransaction) -> DecodedTransaction:
        decoded = decode_transaction(blink_tx.transaction)
        logger.debug(f"Decoded {decoded.kind.value} transaction")
        return decoded

    async def simulate(self, blink_tx: BlinkTransaction) -> SimulationResult:
        """
        Dry-runs the transaction without broadcasting it.

        An on-chain failure is reported as ``success=False``; only transport and
        decoding failures raise.
        """
        decoded = self.decode_transaction(blink_tx)
        resp = await self.connection.simulate_transaction(decoded.transaction)
        value = resp.value
        err = rpc_result(resp)["value"]["err"]

        result = SimulationResult(
            success=err is None,
            logs=list(value.logs) if value.logs is not None else None,
            error=error_json(err),
            units_consumed=value.units_consumed,
        )
        logger.info(f"Simulation finished: success={result.success}, units={result.units_consumed}")
        return result

    async def sign_and_send(self, blink_tx: BlinkTransaction, sign_fn: SignFn) -> str:
        """Signs with ``sign_fn``, broadcasts and waits for ``confirmed``. Returns the signature."""
        decoded = self.decode_transaction(blink_tx)

        signed = sign_fn(decoded.transaction)
        if inspect.isawaitable(signed):
            signed = await signed
        signed_tx = DecodedTransaction.wrap(signed)
        logger.debug(f"Signed {signed_tx.kind.value} transaction")

        signature = await self._broadcast(signed_tx)
        logger.info(f"Transaction sent: {signature}")

        await self._confirm(signature)
        logger.info(f"Transaction confirmed: {signature}")
        return signature

    async def execute(
        self,
        action: BlinkAction,
        account: str,
        sign_fn: Optional[SignFn] = None,
        dry_run: bool = False,
    ) -> Union[SimulationResult, str]:
        """Builds the action's transaction once, then simulates it or signs and sends it."""
        if not dry_run and sign_fn is None:
            raise ValueError("A signing function is required unless dry_run is set")
        blink_tx = await self.fetcher.fetch(action, account)
        if dry_run:
            return await self.simulate(blink_tx)
        return await self.sign_and_send(blink_tx, sign_fn)

    async def _broadcast(self, signed_tx: DecodedTransaction) -> str:
        opts = TxOpts(skip_preflight=False, max_retries=SEND_MAX_RETRIES)
        try:
            resp = await self.connection.send_raw_transaction(signed_tx.serialize(), opts=opts)
        except RPC_TRANSPORT_ERRORS as e:
            raise BroadcastError(f"Failed to send transaction: {e}") from e
        return str(resp.value)

    async def _confirm(self, signature: str) -> None:
        """
        Waits for ``confirmed`` until the current blockhash expires.

        Every failure after the broadcast carries the signature: the transaction may
        already be on chain, so callers must look it up before resubmitting.
        """
        try:
            latest = (await self.connection.get_latest_blockhash()).value
            resp = await self.connection.confirm_transaction(
                Signature.from_string(signature),
                commitment=Confirmed,
                last_valid_block_height=latest.last_valid_block_height,
            )
        except TransactionExpiredBlockheightExceededError as e:
            raise ConfirmationError(signature, landed=False, error=str(e)) from e
        except RPC_TRANSPORT_ERRORS as e:
            raise ConfirmationError(signature, landed=None, error=str(e) or type(e).__name__) from e

        statuses = rpc_result(resp)["value"]
        status = statuses[0] if statuses else None
        if status is None:
            raise ConfirmationError(signature, landed=False)
        if status.get("err") is not None:
            raise ConfirmationError(signature, landed=True, error=error_json(status["err"]))
