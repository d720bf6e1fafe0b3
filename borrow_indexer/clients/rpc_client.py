# borrow_indexer/clients/rpc_client.py

from typing import Any, Dict, List, Optional, Sequence

import msgspec
import requests
from web3 import Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError, TransactionNotFound

from ..core.exceptions import TransientExtractionError
from ..core.logging import LoggingMixin
from ..types import EvmLog
from ..types.configs.config import RpcConfig
from .interfaces import LogClientInterface, ChainReaderInterface

RATE_LIMIT_CODES = {429, -32005, -32029}
RATE_LIMIT_MARKERS = ("rate limit", "too many requests", "limit exceeded", "throttl")
RANGE_TOO_LARGE_MARKERS = ("more than", "range too large", "block range", "too many results", "response size")


class LogRangeTooLargeError(TransientExtractionError):
    """The node refused the range; the caller should split it."""


class Web3RpcClient(LogClientInterface, ChainReaderInterface, LoggingMixin):
    """
    A client for reading logs and contract state over JSON-RPC.
    """

    def __init__(self, config: RpcConfig):
        self.config = config
        self.w3 = Web3(Web3.HTTPProvider(config.endpoint_url, request_kwargs={'timeout': config.timeout}))
        self._log_decoder = msgspec.json.Decoder(List[EvmLog])

        self.log_info("RPC client initialized", endpoint_host=self._endpoint_host())

    def _endpoint_host(self) -> str:
        url = self.config.endpoint_url
        return url.split('//')[-1].split('/')[0]

    def get_latest_block_number(self) -> int:
        try:
            return self.w3.eth.block_number
        except requests.exceptions.RequestException as e:
            raise TransientExtractionError(f"Failed to read head block: {e}") from e

    def get_logs(self,
                 address: Optional[str],
                 topics: Optional[Sequence[str]],
                 from_block: int,
                 to_block: int) -> List[EvmLog]:
        params: Dict[str, Any] = {
            'fromBlock': hex(from_block),
            'toBlock': hex(to_block),
        }
        if address:
            params['address'] = Web3.to_checksum_address(address)
        if topics:
            params['topics'] = [list(topics)]

        try:
            response = self.w3.provider.make_request("eth_getLogs", [params])
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise TransientExtractionError(
                f"eth_getLogs HTTP error: {e}", from_block, to_block,
                rate_limited=status in RATE_LIMIT_CODES,
            ) from e
        except requests.exceptions.RequestException as e:
            raise TransientExtractionError(f"eth_getLogs failed: {e}", from_block, to_block) from e

        if 'error' in response:
            self._raise_rpc_error(response['error'], from_block, to_block)

        # Re-encode so msgspec validates the raw JSON-RPC shape
        return self._log_decoder.decode(msgspec.json.encode(response.get('result') or []))

    def _raise_rpc_error(self, error: Dict[str, Any], from_block: int, to_block: int) -> None:
        code = error.get('code')
        message = str(error.get('message', ''))
        lowered = message.lower()

        if any(marker in lowered for marker in RANGE_TOO_LARGE_MARKERS):
            raise LogRangeTooLargeError(message, from_block, to_block)

        rate_limited = code in RATE_LIMIT_CODES or any(m in lowered for m in RATE_LIMIT_MARKERS)
        raise TransientExtractionError(
            f"eth_getLogs error {code}: {message}", from_block, to_block, rate_limited=rate_limited
        )

    def call(self, address: str, abi: List[Dict[str, Any]], function_name: str,
             args: Sequence[Any], block_number: int) -> Any:
        contract = self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)
        try:
            return contract.functions[function_name](*args).call(block_identifier=block_number)
        except (BadFunctionCallOutput, ContractLogicError) as e:
            # no code at the address yet, or the call reverted
            self.log_debug("Contract call returned nothing",
                           address=address,
                           function_name=function_name,
                           block_number=block_number,
                           error=str(e))
            return None
        except requests.exceptions.RequestException as e:
            raise TransientExtractionError(f"{function_name} call failed: {e}") from e

    def get_gas_price(self, tx_hash: str) -> Optional[int]:
        try:
            tx = self.w3.eth.get_transaction(tx_hash)
        except TransactionNotFound:
            return None
        except requests.exceptions.RequestException as e:
            raise TransientExtractionError(f"get_transaction failed: {e}") from e
        return tx.get('gasPrice')
