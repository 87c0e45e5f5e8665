"""Nodit blockchain-data API client.

Auth is the caller's own Nodit key, sent as ``X-API-KEY``. Each request opens
its own httpx.AsyncClient, so one NoditClient can be shared freely.

Two calling conventions:
  call_api(...)            — generic POST /{network}/{operation}; raises NoditError
  get_token_price(...) etc — convenience GETs; return {"error", "details"} instead of raising
"""

import logging
from typing import Any, Optional

import httpx

from blockflow.config import config
from blockflow.exceptions import NoditError

logger = logging.getLogger(__name__)


# ── Discovery data ────────────────────────────────────────────────────────────

API_CATEGORIES = [
    {
        "name": "Node APIs",
        "description": "Direct blockchain node access and RPC calls",
        "operations": ["eth_getBalance", "eth_sendRawTransaction", "eth_call", "eth_getTransactionReceipt"],
    },
    {
        "name": "Data APIs",
        "description": "High-level processed blockchain data",
        "operations": ["getTokensOwnedByAccount", "getTokenTransfersByAccount", "getNftsOwnedByAccount"],
    },
    {
        "name": "Analytics APIs",
        "description": "Advanced blockchain analytics and insights",
        "operations": ["getTokenPrice", "getPortfolioAnalysis", "getRiskAssessment"],
    },
]


def _param(type_: str, required: bool, description: str) -> dict:
    return {"type": type_, "required": required, "description": description}


NODE_APIS = [
    {
        "operationId": "eth_getBalance",
        "summary": "Get account balance",
        "description": "Get the balance of an account",
        "parameters": {"accountAddress": _param("string", True, "Ethereum address")},
        "responses": {"200": {"description": "Balance in wei"}},
    },
    {
        "operationId": "eth_sendRawTransaction",
        "summary": "Send raw transaction",
        "description": "Broadcast a signed transaction",
        "parameters": {"signedTransaction": _param("string", True, "Signed transaction hex")},
        "responses": {"200": {"description": "Transaction hash"}},
    },
    {
        "operationId": "eth_call",
        "summary": "Call contract function",
        "description": "Execute a contract function call",
        "parameters": {
            "to": _param("string", True, "Contract address"),
            "data": _param("string", True, "Encoded function call"),
        },
        "responses": {"200": {"description": "Function result"}},
    },
]

DATA_APIS = [
    {
        "operationId": "getNativeBalanceByAccount",
        "summary": "Get native token balance",
        "description": "Get native token balance for an account",
        "parameters": {"accountAddress": _param("string", True, "Account address")},
        "responses": {"200": {"description": "Native balance"}},
    },
    {
        "operationId": "getTokensOwnedByAccount",
        "summary": "Get owned tokens",
        "description": "Get all tokens owned by an account",
        "parameters": {
            "accountAddress": _param("string", True, "Account address"),
            "withMetadata": _param("boolean", False, "Include token metadata"),
        },
        "responses": {"200": {"description": "List of owned tokens"}},
    },
    {
        "operationId": "getTokenTransfersByAccount",
        "summary": "Get token transfers",
        "description": "Get token transfer history for an account",
        "parameters": {
            "accountAddress": _param("string", True, "Account address"),
            "page": _param("number", False, "Page number"),
            "rpp": _param("number", False, "Results per page"),
        },
        "responses": {"200": {"description": "Token transfer history"}},
    },
    {
        "operationId": "getNftsOwnedByAccount",
        "summary": "Get owned NFTs",
        "description": "Get all NFTs owned by an account",
        "parameters": {
            "accountAddress": _param("string", True, "Account address"),
            "withMetadata": _param("boolean", False, "Include NFT metadata"),
        },
        "responses": {"200": {"description": "List of owned NFTs"}},
    },
]


class NoditClient:
    """Thin async wrapper around the Nodit REST API."""

    def __init__(self, api_key: str, base_url: str = None, timeout: float = None):
        self.api_key = api_key
        self.base_url = (base_url or config.nodit_base_url).rstrip("/")
        self.timeout = config.nodit_timeout_seconds if timeout is None else timeout

    def _headers(self) -> dict:
        return {
            "X-API-KEY": self.api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, headers=self._headers(), timeout=self.timeout)

    # ── Discovery ──

    async def list_api_categories(self) -> list[dict]:
        return API_CATEGORIES

    async def list_node_apis(self) -> list[dict]:
        return NODE_APIS

    async def list_data_apis(self) -> list[dict]:
        return DATA_APIS

    async def get_api_spec(self, operation_id: str) -> dict:
        """Spec for *operation_id*: the known entry if listed, else a generic one."""
        for op in NODE_APIS + DATA_APIS:
            if op["operationId"] == operation_id:
                return op
        return {
            "operationId": operation_id,
            "summary": f"Operation {operation_id}",
            "description": f"Execute {operation_id} operation",
            "parameters": {},
            "responses": {"200": {"description": "Operation successful"}},
        }

    # ── Generic call ──

    async def call_api(self, operation_id: str, parameters: dict[str, Any], network: str) -> dict:
        """POST ``/{network}/{operation_id}`` with *parameters* as the JSON body.

        Raises:
            NoditError: transport failure or non-2xx response
        """
        logger.info("[nodit] calling %s on %s", operation_id, network)
        try:
            async with self._client() as client:
                response = await client.post(f"/{network}/{operation_id}", json=parameters)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error("[nodit] %s failed with HTTP %s", operation_id, e.response.status_code)
            raise NoditError(
                f"Nodit {operation_id} failed: HTTP {e.response.status_code}",
                operation_id=operation_id,
                status_code=e.response.status_code,
                details={"network": network, "body": e.response.text[:500]},
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.error("[nodit] %s failed: %s", operation_id, e)
            raise NoditError(
                f"Nodit {operation_id} failed: {e}",
                operation_id=operation_id,
                details={"network": network},
            )

    # ── Convenience reads ──

    async def _get(self, path: str, what: str, params: Optional[dict] = None, extra: Optional[dict] = None) -> dict:
        try:
            async with self._client() as client:
                response = await client.get(path, params=params or None)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("[nodit] %s fetch failed: %s", what, e)
            result = {"error": f"Failed to fetch {what}", "details": str(e)}
            if extra:
                result.update(extra)
            return result

    async def get_token_price(self, network: str, token_address: str) -> dict:
        return await self._get(f"/{network}/token/{token_address}/price", "token price")

    async def get_native_balance(self, network: str, account_address: str) -> dict:
        return await self._get(f"/{network}/account/{account_address}/balance", "native balance")

    async def get_transactions_by_account(
        self, network: str, account_address: str, page: int = None, rpp: int = None,
    ) -> dict:
        params = {k: v for k, v in (("page", page), ("rpp", rpp)) if v}
        return await self._get(
            f"/{network}/account/{account_address}/transactions", "transaction history", params=params,
        )

    async def get_tokens_owned(self, network: str, account_address: str, with_metadata: bool = True) -> dict:
        return await self._get(
            f"/{network}/account/{account_address}/tokens",
            "owned tokens",
            params={"withMetadata": str(with_metadata).lower()},
        )

    async def get_nfts_owned(self, network: str, account_address: str, with_metadata: bool = True) -> dict:
        return await self._get(
            f"/{network}/account/{account_address}/nfts",
            "owned NFTs",
            params={"withMetadata": str(with_metadata).lower()},
        )

    async def get_portfolio_analysis(self, network: str, account_address: str) -> dict:
        return await self._get(
            f"/{network}/account/{account_address}/portfolio",
            "portfolio analysis",
            extra={"mock_data": {"total_value": 0, "tokens": [], "nfts": [], "risk_score": "unknown"}},
        )

    async def get_risk_assessment(self, network: str, account_address: str) -> dict:
        return await self._get(
            f"/{network}/account/{account_address}/risk",
            "risk assessment",
            extra={"mock_data": {"risk_level": "unknown", "factors": [], "recommendations": []}},
        )

    async def get_latest_block(self, network: str) -> dict:
        return await self._get(f"/{network}/block/latest", "latest block")

    async def get_block_by_number(self, network: str, block_number: str) -> dict:
        return await self._get(f"/{network}/block/{block_number}", "block")

    async def get_transaction_by_hash(self, network: str, tx_hash: str) -> dict:
        return await self._get(f"/{network}/transaction/{tx_hash}", "transaction")

    async def get_transaction_receipt(self, network: str, tx_hash: str) -> dict:
        return await self._get(f"/{network}/transaction/{tx_hash}/receipt", "transaction receipt")
