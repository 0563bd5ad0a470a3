"""x402 Solana E2E Test Client with Kora fee abstraction.

One-shot client that fetches a paid HTTP resource, pays the 402 challenge
in USDC (through Kora when KORA_RPC_URL is set), and outputs a structured
JSON result for the e2e test framework to parse.
"""

import asyncio
import json
import os
import sys

from dotenv import load_dotenv

load_dotenv()

# Get environment variables
server_url = os.getenv("RESOURCE_SERVER_URL", "")
endpoint_path = os.getenv("ENDPOINT_PATH", "")  # e.g. "/weather"
solana_private_key = os.getenv("SOLANA_PRIVATE_KEY", "")

if not server_url or not solana_private_key:
    result = {
        "success": False,
        "error": "Missing required environment variables: RESOURCE_SERVER_URL, SOLANA_PRIVATE_KEY",
    }
    print(json.dumps(result))
    sys.exit(1)


async def main() -> dict:
    """Fetch the paid resource. Returns the e2e result dict."""
    from kora_x402 import X402Client, load_config

    url = server_url.rstrip("/") + endpoint_path
    kora = None

    try:
        config = load_config()
        kora = config.create_kora_client()

        async with X402Client(
            config.signer(),
            rpc_url=config.solana_rpc_url,
            kora_client=kora,
        ) as client:
            result = await client.fetch(url)

        e2e_result = {
            "success": result.success,
            "data": result.response,
            "status_code": result.status,
            "fee_payer": "kora" if kora else "holder",
        }
        if result.error:
            e2e_result["error"] = result.error
        return e2e_result

    except Exception as e:
        return {
            "success": False,
            "error": str(e),
            "status_code": 500,
        }
    finally:
        if kora is not None:
            await kora.close()


if __name__ == "__main__":
    e2e_result = asyncio.run(main())
    print(json.dumps(e2e_result))
    sys.exit(0 if e2e_result.get("success") else 1)
