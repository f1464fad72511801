"""
REST wallet service backend.

Talks to a BitGo-Express-style JSON API (``/api/v2/{coin}/...``). Keys are held
by the service; every spending call passes the wallet passphrase so the
service can sign.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from walletpool.backends.base import AddressPage, UnspentPage, Wallet, WalletClient, WalletPage
from walletpool.constants import DEFAULT_SEND_TIMEOUT
from walletpool.models import Address, Recipient, SendResult, Unspent

# Timeout for regular API calls (seconds)
DEFAULT_API_TIMEOUT = 60.0

ENVIRONMENT_URLS = {
    "test": "https://app.bitgo-test.com",
    "dev": "https://app.bitgo-dev.com",
}


class RestWallet(Wallet):
    """Wallet handle backed by the JSON document returned by the service."""

    def __init__(self, client: RestWalletClient, data: dict[str, Any]):
        self._client = client
        self._data = data

    @property
    def id(self) -> str:
        return self._data["id"]

    @property
    def label(self) -> str:
        return self._data.get("label", "")

    @property
    def balance(self) -> int:
        return int(self._data.get("balance", 0))

    @property
    def spendable_balance(self) -> int:
        return int(self._data.get("spendableBalance", self.balance))

    @property
    def receive_address(self) -> str:
        receive = self._data.get("receiveAddress") or {}
        return receive.get("address", "")

    def _path(self, suffix: str = "") -> str:
        return f"wallet/{self.id}{suffix}"

    async def create_address(self, chain: int) -> Address:
        data = await self._client._api_call("POST", self._path("/address"), data={"chain": chain})
        return Address.from_dict(data)

    async def unspents(self, limit: int = 100, prev_id: str | None = None) -> UnspentPage:
        params: dict[str, Any] = {"limit": limit}
        if prev_id is not None:
            params["prevId"] = prev_id
        data = await self._client._api_call("GET", self._path("/unspents"), params=params)
        return UnspentPage(
            unspents=[Unspent.from_dict(u) for u in data.get("unspents", [])],
            next_batch_prev_id=data.get("nextBatchPrevId"),
        )

    async def addresses(self, limit: int = 100, prev_id: str | None = None) -> AddressPage:
        params: dict[str, Any] = {"limit": limit}
        if prev_id is not None:
            params["prevId"] = prev_id
        data = await self._client._api_call("GET", self._path("/addresses"), params=params)
        return AddressPage(
            addresses=[Address.from_dict(a) for a in data.get("addresses", [])],
            next_batch_prev_id=data.get("nextBatchPrevId"),
        )

    async def send_many(
        self,
        recipients: list[Recipient],
        wallet_passphrase: str,
        fee_rate: int | None = None,
        unspents: list[str] | None = None,
        change_address: str | None = None,
    ) -> SendResult:
        payload: dict[str, Any] = {
            "recipients": [r.to_dict() for r in recipients],
            "walletPassphrase": wallet_passphrase,
        }
        if fee_rate is not None:
            # The service expects sat/kvB
            payload["feeRate"] = fee_rate * 1000
        if unspents is not None:
            payload["unspents"] = unspents
        if change_address is not None:
            payload["changeAddress"] = change_address

        data = await self._client._api_call(
            "POST", self._path("/sendmany"), data=payload, timeout=self._client.send_timeout
        )
        result = SendResult.from_dict(data)
        logger.info(
            f"sendMany from {self.label}: {len(recipients)} recipient(s), txid={result.txid}"
        )
        return result

    async def sweep(
        self, address: str, wallet_passphrase: str, fee_rate: int | None = None
    ) -> SendResult:
        payload: dict[str, Any] = {"address": address, "walletPassphrase": wallet_passphrase}
        if fee_rate is not None:
            payload["feeRate"] = fee_rate * 1000
        data = await self._client._api_call(
            "POST", self._path("/sweep"), data=payload, timeout=self._client.send_timeout
        )
        return SendResult.from_dict(data)

    async def consolidate_unspents(self, wallet_passphrase: str, **params: Any) -> SendResult:
        payload = {"walletPassphrase": wallet_passphrase, **params}
        data = await self._client._api_call(
            "POST",
            self._path("/consolidateUnspents"),
            data=payload,
            timeout=self._client.send_timeout,
        )
        return SendResult.from_dict(data)

    async def fanout_unspents(self, wallet_passphrase: str, **params: Any) -> SendResult:
        payload = {"walletPassphrase": wallet_passphrase, **params}
        data = await self._client._api_call(
            "POST", self._path("/fanoutUnspents"), data=payload, timeout=self._client.send_timeout
        )
        return SendResult.from_dict(data)


class RestWalletClient(WalletClient):
    """
    Wallet service client using the REST API.

    Authenticates with a pre-issued access token.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        coin: str = "tbtc",
        client_id: str = "",
        timeout: float = DEFAULT_API_TIMEOUT,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.coin = coin
        self.client_id = client_id
        self.send_timeout = send_timeout
        self.network = "mainnet" if coin == "btc" else "testnet"
        headers = {"Authorization": f"Bearer {access_token}"}
        if client_id:
            headers["User-Agent"] = f"walletpool ({client_id})"
        self.client = httpx.AsyncClient(timeout=timeout, headers=headers)

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}/api/v2/{self.coin}/{endpoint}"

    async def _api_call(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """
        Make an API call to the wallet service.

        Raises:
            ValueError: On error responses carrying a service error message
            httpx.HTTPError: On connection/timeout errors
        """
        url = self._url(endpoint)
        kwargs: dict[str, Any] = {}
        if timeout is not None:
            kwargs["timeout"] = timeout

        try:
            response = await self.client.request(method, url, params=params, json=data, **kwargs)
            if response.status_code >= 400:
                try:
                    error = response.json().get("error")
                except ValueError:
                    error = None
                if error:
                    raise ValueError(f"API error {response.status_code}: {error}")
            response.raise_for_status()
            if not response.content:
                return {}
            return response.json()

        except httpx.TimeoutException as e:
            logger.error(f"API call timed out: {method} {endpoint} - {e}")
            raise
        except httpx.HTTPError as e:
            logger.error(f"API call failed: {method} {endpoint} - {e}")
            raise

    async def list_wallets(self, prev_id: str | None = None, limit: int = 100) -> WalletPage:
        params: dict[str, Any] = {"limit": limit}
        if prev_id is not None:
            params["prevId"] = prev_id
        data = await self._api_call("GET", "wallet", params=params)
        return WalletPage(
            wallets=[RestWallet(self, w) for w in data.get("wallets", [])],
            next_batch_prev_id=data.get("nextBatchPrevId"),
        )

    async def get_wallet(self, wallet_id: str) -> Wallet:
        data = await self._api_call("GET", f"wallet/{wallet_id}")
        return RestWallet(self, data)

    async def generate_wallet(self, label: str, passphrase: str) -> Wallet:
        data = await self._api_call(
            "POST", "wallet/generate", data={"label": label, "passphrase": passphrase}
        )
        logger.info(f"Generated wallet {label}")
        return RestWallet(self, data.get("wallet", data))

    async def rename_wallet(self, wallet_id: str, label: str) -> None:
        await self._api_call("PUT", f"wallet/{wallet_id}", data={"label": label})

    async def remove_wallet(self, wallet_id: str) -> None:
        await self._api_call("DELETE", f"wallet/{wallet_id}")
        logger.info(f"Removed wallet {wallet_id}")

    async def get_block_height(self) -> int:
        data = await self._api_call("GET", "public/block/latest")
        height = int(data["height"])
        logger.debug(f"Current block height: {height}")
        return height

    async def close(self) -> None:
        await self.client.aclose()
