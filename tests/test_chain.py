"""Tests for the REST chain client using httpx's mock transport."""

import base64
import json

import httpx
import pytest

from clawpurse.accounts import derive_signer
from clawpurse.chain import BroadcastResult, RestChainClient
from clawpurse.config import NEUTARO
from clawpurse.errors import ChainError, NetworkError


ADDRESS = "neutaro1" + "q" * 38


def _client(handler, **kwargs):
    http = httpx.Client(transport=httpx.MockTransport(handler), base_url=NEUTARO.rest_endpoint)
    return RestChainClient(http=http, **kwargs)


class TestQueries:
    def test_get_balance(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["denom"] = request.url.params.get("denom")
            return httpx.Response(200, json={"balance": {"denom": "uneutaro", "amount": "123456789012345678901"}})

        with _client(handler) as client:
            balance = client.get_balance(ADDRESS)

        assert seen == {"path": f"/cosmos/bank/v1beta1/balances/{ADDRESS}/by_denom", "denom": "uneutaro"}
        assert balance.amount == 123456789012345678901
        assert balance.display_amount == "123456789012345.678901 NTMPI"

    def test_balance_http_error(self):
        with _client(lambda request: httpx.Response(500)) as client:
            with pytest.raises(ChainError, match="HTTP 500"):
                client.get_balance(ADDRESS)

    def test_connection_failure_is_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with _client(handler) as client:
            with pytest.raises(NetworkError):
                client.get_balance(ADDRESS)

    def test_chain_info(self):
        payload = {"block": {"header": {"chain_id": "Neutaro-1", "height": "4242"}}}
        with _client(lambda request: httpx.Response(200, json=payload)) as client:
            info = client.get_chain_info()
        assert info.connected
        assert info.chain_id == "Neutaro-1"
        assert info.height == 4242

    def test_chain_info_reports_failure_instead_of_raising(self):
        def handler(request):
            raise httpx.ConnectTimeout("slow", request=request)

        with _client(handler) as client:
            info = client.get_chain_info()
        assert not info.connected
        assert info.height == 0
        assert "timeout" in info.error.lower()


class TestBroadcast:
    def test_broadcast_sync(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"tx_response": {
                "code": 0, "txhash": "ABCDEF", "height": "17", "gas_used": "81234", "raw_log": "",
            }})

        with _client(handler) as client:
            result = client.broadcast_tx(b"\x0a\x01signed")

        assert seen["path"] == "/cosmos/tx/v1beta1/txs"
        assert seen["body"]["mode"] == "BROADCAST_MODE_SYNC"
        assert base64.b64decode(seen["body"]["tx_bytes"]) == b"\x0a\x01signed"
        assert result == BroadcastResult(status_code=0, transaction_hash="ABCDEF", height=17, gas_used=81234)
        assert result.succeeded

    def test_rejection_code_is_reported(self):
        body = {"tx_response": {"code": 5, "txhash": "FF", "raw_log": "insufficient funds"}}
        with _client(lambda request: httpx.Response(200, json=body)) as client:
            result = client.broadcast_tx(b"tx")
        assert not result.succeeded
        assert result.status_code == 5
        assert result.raw_log == "insufficient funds"

    def test_send_tokens_requires_encoder(self):
        signer = derive_signer(" ".join(["abandon"] * 11 + ["about"]))
        with _client(lambda request: httpx.Response(200, json={})) as client:
            with pytest.raises(ChainError, match="encoder"):
                client.send_tokens(signer, signer.address, ADDRESS, 1, "")

    def test_send_tokens_uses_encoder(self):
        signer = derive_signer(" ".join(["abandon"] * 11 + ["about"]))
        calls = []

        def encoder(client, tx_signer, from_address, to_address, amount, memo):
            calls.append((from_address, to_address, amount, memo))
            return tx_signer.sign(b"body")

        def handler(request):
            return httpx.Response(200, json={"tx_response": {"code": 0, "txhash": "AA", "height": "1"}})

        with _client(handler, encoder=encoder) as client:
            result = client.send_tokens(signer, signer.address, ADDRESS, 5_000_000, "hi")

        assert calls == [(signer.address, ADDRESS, 5_000_000, "hi")]
        assert result.transaction_hash == "AA"
