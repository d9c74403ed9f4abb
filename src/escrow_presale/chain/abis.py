"""
Presale, Authorizer and ERC20 Contract ABI Module

Minimal ABI fragments for the contracts the purchase flow talks to.
Each getter returns a fresh list so callers may combine fragments freely.

Usage:
    from escrow_presale.chain.abis import get_presale_abi, get_erc20_abi

    presale = w3.eth.contract(address=presale_address, abi=get_presale_abi())
    price, active, decimals = await presale.functions.getTokenPrice(token).call()
"""

from typing import Any, Dict, List


def _view(name: str, inputs: List[Dict[str, str]], outputs: List[Dict[str, str]]) -> Dict[str, Any]:
    return {
        "name": name,
        "type": "function",
        "stateMutability": "view",
        "inputs": inputs,
        "outputs": outputs,
    }


_VOUCHER_TUPLE: Dict[str, Any] = {
    "name": "voucher",
    "type": "tuple",
    "internalType": "struct Voucher",
    "components": [
        {"name": "buyer", "type": "address"},
        {"name": "beneficiary", "type": "address"},
        {"name": "paymentToken", "type": "address"},
        {"name": "usdLimit", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
        {"name": "presale", "type": "address"},
    ],
}


def get_erc20_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the ERC20 calls used by the purchase flow.

    Covers ``balanceOf``, ``allowance``, ``decimals`` and ``approve``.

    Example:
        token = w3.eth.contract(address=token_address, abi=get_erc20_abi())
        allowance = await token.functions.allowance(owner, spender).call()
    """
    return [
        _view("balanceOf", [{"name": "account", "type": "address"}], [{"name": "", "type": "uint256"}]),
        _view(
            "allowance",
            [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}],
            [{"name": "", "type": "uint256"}],
        ),
        _view("decimals", [], [{"name": "", "type": "uint8"}]),
        {
            "name": "approve",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "spender", "type": "address"},
                {"name": "amount", "type": "uint256"},
            ],
            "outputs": [{"name": "", "type": "bool"}],
        },
    ]


def get_authorizer_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the voucher authorizer's ``nonces(address)`` view.

    The nonce read here must be the one sent to the backend as ``usernonce``.
    """
    return [
        _view("nonces", [{"name": "buyer", "type": "address"}], [{"name": "", "type": "uint256"}]),
    ]


def get_presale_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the presale contract.

    Views:
        getTokenPrice(token) -> (priceUSD * 1e8, isActive, decimals)
        totalTokensMinted(), maxTokensToMint(), canClaim(), presaleRate()
        totalPurchased(buyer)

    Writes:
        buyWithNativeVoucher(beneficiary, voucher, signature) payable
        buyWithTokenVoucher(token, amount, beneficiary, voucher, signature)
        claimTokens()
    """
    return [
        _view(
            "getTokenPrice",
            [{"name": "token", "type": "address"}],
            [
                {"name": "priceUSD", "type": "uint256"},
                {"name": "isActive", "type": "bool"},
                {"name": "decimals", "type": "uint8"},
            ],
        ),
        _view("totalTokensMinted", [], [{"name": "", "type": "uint256"}]),
        _view("maxTokensToMint", [], [{"name": "", "type": "uint256"}]),
        _view("canClaim", [], [{"name": "", "type": "bool"}]),
        _view("presaleRate", [], [{"name": "", "type": "uint256"}]),
        _view("totalPurchased", [{"name": "buyer", "type": "address"}], [{"name": "", "type": "uint256"}]),
        {
            "name": "buyWithNativeVoucher",
            "type": "function",
            "stateMutability": "payable",
            "inputs": [
                {"name": "beneficiary", "type": "address"},
                dict(_VOUCHER_TUPLE),
                {"name": "signature", "type": "bytes"},
            ],
            "outputs": [],
        },
        {
            "name": "buyWithTokenVoucher",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "token", "type": "address"},
                {"name": "amount", "type": "uint256"},
                {"name": "beneficiary", "type": "address"},
                dict(_VOUCHER_TUPLE),
                {"name": "signature", "type": "bytes"},
            ],
            "outputs": [],
        },
        {
            "name": "claimTokens",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [],
            "outputs": [],
        },
    ]
