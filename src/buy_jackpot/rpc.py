from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, TypeVar

import httpx

from .errors import RpcError

T = TypeVar("T")

# what a malformed ``result`` raises while being unpacked
_SHAPE_ERRORS = (KeyError, IndexError, TypeError, ValueError, AttributeError)


class RpcClient:
    """Minimal async Solana JSON-RPC client.

    Anything but a well-formed answer (an ``error`` member, a body that is
    not JSON, a ``result`` of the wrong shape) raises RpcError.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout_s: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.client = httpx.AsyncClient(timeout=timeout_s, transport=transport)

    async def close(self) -> None:
        await self.client.aclose()

    async def _post(self, method: str, params: Any) -> Dict[str, Any]:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        resp = await self.client.post(self.rpc_url, json=payload)
        resp.raise_for_status()
        try:
            data = resp.json()
        except ValueError as e:
            raise RpcError(f"RPC error: {method} returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise RpcError(f"RPC error: {method} returned {type(data).__name__}, not an object")
        if "error" in data:
            err = data["error"]
            message = err.get("message", err) if isinstance(err, dict) else err
            raise RpcError(f"RPC error: {message}")
        return data

    async def _call(self, method: str, params: Any, unpack: Callable[[Any], T]) -> T:
        data = await self._post(method, params)
        try:
            return unpack(data["result"])
        except _SHAPE_ERRORS as e:
            raise RpcError(f"RPC error: malformed {method} result: {e!r}") from e

    async def get_version(self) -> str:
        return await self._call(
            "getVersion", [], lambda r: str(r.get("solana-core", "unknown"))
        )

    async def get_balance(self, pubkey: str, commitment: str = "confirmed") -> int:
        """Returns the balance in lamports."""
        return await self._call(
            "getBalance", [pubkey, {"commitment": commitment}], lambda r: int(r["value"])
        )

    async def get_latest_blockhash(self, commitment: str = "confirmed") -> str:
        return await self._call(
            "getLatestBlockhash",
            [{"commitment": commitment}],
            lambda r: str(r["value"]["blockhash"]),
        )

    async def get_fee_for_message(
        self, message_b64: str, commitment: str = "confirmed"
    ) -> Optional[int]:
        return await self._call(
            "getFeeForMessage",
            [message_b64, {"commitment": commitment}],
            lambda r: None if r["value"] is None else int(r["value"]),
        )

    async def send_transaction(
        self, tx_b64: str, preflight_commitment: str = "confirmed"
    ) -> str:
        def signature(r: Any) -> str:
            if not isinstance(r, str) or not r:
                raise ValueError(f"expected a signature string, got {r!r}")
            return r

        return await self._call(
            "sendTransaction",
            [
                tx_b64,
                {"encoding": "base64", "preflightCommitment": preflight_commitment},
            ],
            signature,
        )

    async def get_signature_status(self, signature: str) -> Optional[Dict[str, Any]]:
        """Returns the status object for one signature, or None if unknown yet."""

        def first(r: Any) -> Optional[Dict[str, Any]]:
            values = r["value"]
            status = values[0] if values else None
            if status is not None and not isinstance(status, dict):
                raise TypeError(f"status is {type(status).__name__}")
            return status

        return await self._call(
            "getSignatureStatuses",
            [[signature], {"searchTransactionHistory": False}],
            first,
        )

    async def get_token_accounts_page(
        self, mint: str, page: int, limit: int = 1000
    ) -> List[Dict[str, Any]]:
        """One page of the Helius DAS ``getTokenAccounts`` listing."""
        data = await self._post(
            "getTokenAccounts",
            {"page": page, "limit": limit, "displayOptions": {}, "mint": mint},
        )
        result = data.get("result") or {}
        if not isinstance(result, dict):
            raise RpcError("RPC error: malformed getTokenAccounts result")
        return [a for a in result.get("token_accounts") or [] if isinstance(a, dict)]

    async def get_program_accounts_base64(
        self,
        program_id: str,
        mint: str,
        classic_token_program: bool,
    ) -> List[str]:
        """
        Base64 account data of every token account holding ``mint``.
        Classic SPL Token accounts are exactly 165 bytes; Token-2022 ones
        grow with extensions, so only the mint filter applies there.
        """
        filters: List[Dict[str, Any]] = [{"memcmp": {"offset": 0, "bytes": mint}}]
        if classic_token_program:
            filters.append({"dataSize": 165})

        # item['account']['data'] is [base64_str, "base64"]
        return await self._call(
            "getProgramAccounts",
            [program_id, {"encoding": "base64", "filters": filters}],
            lambda r: [item["account"]["data"][0] for item in r or []],
        )
