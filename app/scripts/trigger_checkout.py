# app/scripts/trigger_checkout.py
"""
Posts a sample checkout to a running gateway and polls the order until the saga settles.

    python -m app.scripts.trigger_checkout [--card 4242424242424242] [--url http://localhost:8000]

Card numbers ending in 0000, 1111 or 9999 are declined by the mock gateway.
"""
import argparse
import asyncio
import logging
import uuid

import httpx

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("trigger_checkout")

FINAL_STATUSES = {"CONFIRMED", "PAYMENT_FAILED"}


def sample_checkout(card_number: str) -> dict:
    return {
        "shippingAddress": {
            "fullName": "Jane Doe",
            "streetAddress": "123 Main Street",
            "city": "San Francisco",
            "stateProvince": "CA",
            "postalCode": "94102",
            "country": "US",
        },
        "paymentDetails": {
            "cardNumber": card_number,
            "expiryDate": "12/30",
            "cvv": "123",
            "cardholderName": "Jane Doe",
        },
        "metadata": "trigger-script",
    }


async def trigger(base_url: str, card_number: str, attempts: int = 20) -> None:
    async with httpx.AsyncClient(base_url=base_url, timeout=10.0) as client:
        response = await client.post(
            "/api/v1/checkout/payment",
            json=sample_checkout(card_number),
            headers={"Idempotency-Key": str(uuid.uuid4()), "X-Correlation-ID": str(uuid.uuid4())},
        )
        response.raise_for_status()
        order_id = response.json()["data"]["orderId"]
        log.info(f"Checkout accepted: order {order_id}")

        for _ in range(attempts):
            await asyncio.sleep(1)
            order = await client.get(f"/api/v1/orders/{order_id}")
            if order.status_code == 404:
                log.info("Order not created yet...")
                continue
            status = order.json()["data"]["status"]
            log.info(f"Order {order_id}: {status}")
            if status in FINAL_STATUSES:
                return
        log.warning(f"Order {order_id} did not settle after {attempts}s")


def main() -> None:
    parser = argparse.ArgumentParser(description="Trigger a sample checkout.")
    parser.add_argument("--url", default="http://localhost:8000")
    parser.add_argument("--card", default="4242424242424242")
    args = parser.parse_args()
    asyncio.run(trigger(args.url, args.card))


if __name__ == "__main__":
    main()
