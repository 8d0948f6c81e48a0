from __future__ import annotations

import base58
import pytest
from solders.keypair import Keypair

from kingtiles_relayer.domain.exceptions import KeypairError
from kingtiles_relayer.infrastructure.ledger.explorer import ExplorerLinks
from kingtiles_relayer.infrastructure.ledger.keypair import load_custody_keypair


def test_full_keypair_is_loaded() -> None:
    keypair = Keypair()
    secret = base58.b58encode(bytes(keypair)).decode("ascii")

    assert load_custody_keypair(secret).pubkey() == keypair.pubkey()


def test_seed_is_loaded() -> None:
    seed = bytes(range(32))

    loaded = load_custody_keypair(base58.b58encode(seed).decode("ascii"))

    assert loaded.pubkey() == Keypair.from_seed(seed).pubkey()


@pytest.mark.parametrize("secret", [None, "", "   ", "0OIl", base58.b58encode(b"short").decode("ascii")])
def test_unusable_secret_is_rejected(secret: str | None) -> None:
    with pytest.raises(KeypairError):
        load_custody_keypair(secret)


def test_explorer_link_carries_cluster() -> None:
    links = ExplorerLinks(tx_base_url="https://solscan.io/tx/", cluster="devnet")

    assert links.transaction("abc") == "https://solscan.io/tx/abc?cluster=devnet"
    assert ExplorerLinks(cluster=None).transaction("abc") == "https://solscan.io/tx/abc"
