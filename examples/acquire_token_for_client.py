import asyncio
import contextlib
import os
import sys

# Add src to path for running directly
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))

from anyio import create_task_group
from pydantic import SecretStr

from coreason_oauth_client import (
    ConfidentialClientApplicationAsync,
    CoreasonOAuthConfig,
    CoreasonOAuthError,
)


async def main() -> None:
    """
    Acquires application tokens for two resources concurrently.

    Both requests share one authority cache, so the discovery document is fetched once
    and reused. The internal httpx client is instrumented with OpenTelemetry.
    """
    print(">>> Starting client credentials example")

    config = CoreasonOAuthConfig(
        client_id=os.getenv("COREASON_OAUTH_CLIENT_ID", "00000000-0000-0000-0000-000000000000"),
        client_secret=SecretStr(os.getenv("COREASON_OAUTH_CLIENT_SECRET", "not-a-real-secret")),
        authority="https://login.microsoftonline.com/contoso.onmicrosoft.com",
        http_timeout=5.0,
    )

    async with ConfidentialClientApplicationAsync(config) as app:

        async def acquire(scope: str) -> None:
            try:
                result = await app.acquire_token_for_client([scope])
                print(f"    - {scope}: {result}")
            except CoreasonOAuthError as e:
                # Without real credentials the provider rejects the client.
                print(f"    - {scope}: {type(e).__name__} ({e.error_code})")

        async with create_task_group() as tg:
            tg.start_soon(acquire, "https://graph.microsoft.com/.default")
            tg.start_soon(acquire, "https://management.azure.com/.default")

        print(f">>> Cached authorities: {len(app.authority_cache)}")


if __name__ == "__main__":
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(main())
