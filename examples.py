#!/usr/bin/env python3
"""
Examples of programmatic usage of the hacienda client.

Reads credentials and tuning from ~/.hacienda/config.yaml, a .env file or
HACIENDA_* environment variables, authenticates against the configured
environment (sandbox by default) and runs a few calls.

Usage:
    python examples.py                      # list recent comprobantes
    python examples.py signed-invoice.json  # submit a prepared request and wait
    python examples.py --lookup 3101234567  # look up a taxpayer's economic activities
"""

import asyncio
import json
import sys
from pathlib import Path

from hacienda import (
    ApiError,
    AuthError,
    DuplicateSubmissionError,
    HaciendaClient,
    SubmissionTimeoutError,
    SubmitAndWaitOptions,
)
from hacienda.infrastructure.config.settings import load_configuration
from hacienda.infrastructure.monitoring.logger_setup import setup_logging


def print_poll(status, attempt):
    print(f"  poll #{attempt}: {status.status}")


async def example_list_comprobantes(client):
    """Example of querying the most recent comprobantes.

    Args:
        client: An authenticated HaciendaClient.
    """
    print("\n\n===== Example: List Comprobantes =====")
    try:
        data = await client.list_comprobantes({"offset": 0, "limit": 5})
        print(json.dumps(data, indent=2, ensure_ascii=False))
    except ApiError as e:
        print(f"Error listing comprobantes (status {e.status_code}): {e}")


async def example_lookup_taxpayer(client, identificacion):
    """Example of the public taxpayer lookup; no authentication needed.

    Args:
        client: A HaciendaClient.
        identificacion: Cedula to look up.
    """
    print("\n\n===== Example: Lookup Taxpayer =====")
    try:
        info = await client.lookup_taxpayer(identificacion)
    except ApiError as e:
        print(f"Lookup failed (status {e.status_code}): {e}")
        return
    print(f"{info.nombre} (tipo {info.tipo_identificacion})")
    for actividad in info.actividades:
        print(f"  {actividad.codigo} [{actividad.estado}] {actividad.descripcion}")


async def example_submit_and_wait(client, request_path):
    """Example of submitting a prepared request and waiting for the verdict.

    The JSON file must already hold a signed, base64-encoded comprobanteXml.

    Args:
        client: An authenticated HaciendaClient.
        request_path: Path to the submission request JSON.
    """
    print("\n\n===== Example: Submit And Wait =====")
    request = json.loads(Path(request_path).read_text(encoding="utf-8"))
    options = SubmitAndWaitOptions(poll_interval=3.0, timeout=90.0, on_poll=print_poll)
    try:
        result = await client.submit_and_wait(request, options)
    except DuplicateSubmissionError as e:
        print(f"Already submitted: {e}")
        return
    except SubmissionTimeoutError as e:
        print(f"Still processing after {e.poll_attempts} polls; check again later with get_status().")
        return

    if result.accepted:
        print(f"Accepted after {result.poll_attempts} polls ({result.date})")
    else:
        print(f"Final status {result.status}: {result.rejection_reason or 'no reason given'}")


async def main():
    """Run the examples."""
    load_configuration()
    setup_logging()

    try:
        async with HaciendaClient.from_config() as client:
            if len(sys.argv) > 2 and sys.argv[1] == "--lookup":
                await example_lookup_taxpayer(client, sys.argv[2])
                return
            await client.authenticate()
            if len(sys.argv) > 1:
                await example_submit_and_wait(client, sys.argv[1])
            else:
                await example_list_comprobantes(client)
    except AuthError as e:
        print(f"Authentication failed ({e.auth_code.value}): {e}")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
