import asyncio
import logging

from escrow_presale.clients import PresaleClient
from escrow_presale.config import load_settings
from escrow_presale.engine.events import PhaseChangedEvent, PurchaseFailedEvent, PurchaseSettledEvent

wpk = "0xxxx"  # Replace with actual wallet private key

logging.basicConfig(level=logging.INFO)


async def on_phase(event: PhaseChangedEvent, deps):
    print("Phase:", event.phase.value)


async def on_settled(event: PurchaseSettledEvent, deps):
    print("Purchase confirmed:", event.tx_hash)


async def on_failed(event: PurchaseFailedEvent, deps):
    print(f"Purchase failed during {event.phase.value}: {event.reason}")


async def main():
    async with PresaleClient(load_settings()) as client:
        client.bus.subscribe(PhaseChangedEvent, on_phase)
        client.bus.subscribe(PurchaseSettledEvent, on_settled)
        client.bus.subscribe(PurchaseFailedEvent, on_failed)

        await client.start()
        await client.connect(wpk)

        await client.select_currency("USDC")
        intent = client.set_amount("250")
        print(f"Paying {intent.amount} USDC (${intent.usd_value}) for ~{intent.token_amount} tokens "
              f"at ${client.session.supply.display_price}")

        attempt = await client.buy()
        print("Escrowed:", client.session.balances.display_escrow_balance)
        return attempt


if __name__ == "__main__":
    attempt = asyncio.run(main())
    print("Result:", attempt.phase.value, attempt.tx_hash or attempt.error)
