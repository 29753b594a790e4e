"""Point a Twilio phone number's status callback and messaging webhook at this service.

Usage: python scripts/configure_twilio_webhooks.py +15550001111
"""

import asyncio
import os
import sys

import httpx

# Add parent dir to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.config import get_settings


async def configure_webhooks(phone_number: str):
    settings = get_settings()
    base_url = settings.PUBLIC_BASE_URL.rstrip("/")
    if not base_url:
        print("PUBLIC_BASE_URL is not set; Twilio needs a public URL to call back.")
        return

    api = f"{settings.TWILIO_API_URL.rstrip('/')}/Accounts/{settings.TWILIO_ACCOUNT_SID}"
    auth = (settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)

    print(f"Configuring webhooks for number: {phone_number}")
    print(f"Target base URL: {base_url}")

    async with httpx.AsyncClient(auth=auth, timeout=15) as client:
        # 1. Look up the number's sid
        resp = await client.get(f"{api}/IncomingPhoneNumbers.json", params={"PhoneNumber": phone_number})
        if resp.status_code != 200:
            print(f"Error fetching numbers: {resp.status_code} - {resp.text}")
            return

        numbers = resp.json().get("incoming_phone_numbers", [])
        if not numbers:
            print(f"Number {phone_number} not found on this account.")
            return
        number_sid = numbers[0]["sid"]

        # 2. Status callback drives missed-call detection, SmsUrl drives replies
        payload = {
            "StatusCallback": f"{base_url}/webhooks/voice/status",
            "StatusCallbackMethod": "POST",
            "SmsUrl": f"{base_url}/webhooks/messaging/twilio",
            "SmsMethod": "POST",
        }
        resp = await client.post(f"{api}/IncomingPhoneNumbers/{number_sid}.json", data=payload)
        print(f"Webhook configuration result: {resp.status_code} - {resp.text[:200]}")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)
    asyncio.run(configure_webhooks(sys.argv[1]))
