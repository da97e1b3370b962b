from eth_account import Account
from eth_account.messages import encode_defunct
from fastapi.testclient import TestClient

from app.core.wallet_auth import build_challenge_message

# Well-known throwaway keys, never used outside tests
PRIVATE_KEY_A = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
PRIVATE_KEY_B = "0x8f2a55949038a9610f50fb23b5883af3b4ecb3c3bb792cbcefbd1542c692be63"


class FakeClock:
    """Manually advanced clock shared by the cache and the nonce store"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Wallet:
    """Test wallet that signs messages the way a browser wallet would"""

    def __init__(self, private_key: str):
        self.account = Account.from_key(private_key)
        self.address = self.account.address  # checksummed

    def sign(self, message: str) -> str:
        signed = Account.sign_message(encode_defunct(text=message), private_key=self.account.key)
        return "0x" + bytes(signed.signature).hex()

    def sign_nonce(self, nonce: str) -> str:
        return self.sign(build_challenge_message(nonce))


def login(client: TestClient, wallet: Wallet, user_agent: str = "pytest") -> dict:
    """Run connect-wallet + verify-signature and return the auth payload"""
    nonce = client.post("/auth/connect-wallet", json={"walletAddress": wallet.address}).json()["nonce"]
    response = client.post(
        "/auth/verify-signature",
        json={
            "walletAddress": wallet.address,
            "signature": wallet.sign_nonce(nonce),
            "nonce": nonce,
        },
        headers={"User-Agent": user_agent},
    )
    assert response.status_code == 200, response.text
    return response.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
