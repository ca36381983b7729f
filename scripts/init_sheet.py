#!/usr/bin/env python3
"""
Script to verify the Google Sheets delivery store.

Checks that the deliveries worksheet exists and that its first row holds
every column the service reads and writes. Run it once after creating the
sheet; it never modifies data.

Usage:
    python scripts/init_sheet.py
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger  # noqa: E402

from portaria.config import settings  # noqa: E402
from portaria.models.delivery import DELIVERY_COLUMNS  # noqa: E402
from portaria.storage.sheets_client import SheetsClient  # noqa: E402


def main():
    """Verify the deliveries sheet."""
    print("🚀 Verifying Google Sheets delivery store...")

    try:
        client = SheetsClient()
        success = client.initialize_sheet(
            settings.deliveries_sheet_name, DELIVERY_COLUMNS
        )

        if success:
            print("✅ Sheet verified successfully!")
            print(f"📊 Sheet URL: https://docs.google.com/spreadsheets/d/{client.spreadsheet_id}/edit")
        else:
            print("❌ Sheet verification failed")
            print("\nThe first row must contain these columns:")
            print("  " + ", ".join(DELIVERY_COLUMNS))
            sys.exit(1)

    except Exception as e:
        logger.error(f"Error verifying sheet: {e}")
        print(f"❌ Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
