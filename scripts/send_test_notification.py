#!/usr/bin/env python3
"""
Script to send a test message through the notification chain.

Prints every channel attempt (status, latency, error) so a broken webhook
can be spotted without registering a delivery.

Usage:
    python scripts/send_test_notification.py 5511999999999
    python scripts/send_test_notification.py 5511999999999 --message "Olá"
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from portaria.messaging.dispatcher import NotificationDispatcher  # noqa: E402
from portaria.messaging.templates import build_test_message  # noqa: E402


async def run(phone: str, text: str) -> bool:
    dispatcher = NotificationDispatcher.from_settings()
    if not dispatcher.transports:
        print("❌ No NOTIFICATION_*_URL configured")
        return False

    message = build_test_message(phone, text)
    print(f"📤 Sending test message to {message.to}...")
    outcome = await dispatcher.dispatch(message)

    for attempt in outcome.attempts:
        mark = "✅" if attempt.success else "❌"
        print(
            f"  {mark} {attempt.channel}: status={attempt.status_code} "
            f"latency={attempt.latency_ms:.0f}ms"
            + (f" error={attempt.error}" if attempt.error else "")
        )

    if outcome.success:
        print(f"🎉 Delivered via {outcome.channel}")
    else:
        print("⚠️  All channels failed")
    return outcome.success


def main():
    parser = argparse.ArgumentParser(description="Send a test notification")
    parser.add_argument("phone", help="Recipient phone, e.g. 5511999999999")
    parser.add_argument(
        "--message",
        default="🧪 Teste de notificação",
        help="Text to send"
    )
    args = parser.parse_args()

    success = asyncio.run(run(args.phone, args.message))
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
