"""
Script to register a coworking space, or replace its settings, in storage.
Use this to set up a space before its admins open the UI.

Example:
    python -m scripts.register_space my-space <access-token> \
        --map wallbox-1=resource-1 --map wallbox-2=resource-2 --price 0.45
"""

import argparse
import asyncio
from loguru import logger

from wallbox_bridge.clients.cobot import get_cobot_client
from wallbox_bridge.models.settings import CobotSpaceSettings
from wallbox_bridge.storage import get_space_settings_store, get_storage


def parse_mapping(entries):
    mapping = {}
    for entry in entries:
        charger_id, separator, resource_id = entry.partition("=")
        if not separator or not charger_id or not resource_id:
            raise argparse.ArgumentTypeError(f"Invalid mapping '{entry}', expected charger=resource")
        mapping[charger_id] = resource_id
    return mapping


async def register_space(space_subdomain, access_token, resource_mapping, price_per_kwh):
    """Look up the space and write its settings."""
    cobot_client = get_cobot_client()
    try:
        space_result = await cobot_client.get_space_details(space_subdomain)
        if not space_result["ok"]:
            logger.error(f"Failed to fetch space {space_subdomain}: {space_result['error']}")
            return False
        space = space_result["value"]

        settings = CobotSpaceSettings(
            access_token=access_token,
            space_id=space.id,
            space_subdomain=space.subdomain,
            resource_mapping=resource_mapping,
            price_per_kwh=price_per_kwh,
        )
        result = await get_space_settings_store().set(settings)
        if not result["ok"]:
            logger.error(f"Failed to save settings: {result['error']}")
            return False

        logger.info(f"Space {space.name} ({space.id}) registered with {len(resource_mapping)} wallboxes")
        return True
    finally:
        await cobot_client.aclose()
        await get_storage().close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Register a space with the wallbox bridge")
    parser.add_argument("space_subdomain")
    parser.add_argument("access_token", help="Space access token for the membership backend")
    parser.add_argument(
        "--map", action="append", default=[], dest="mapping", help="charger=resource pair"
    )
    parser.add_argument("--price", type=float, default=0, help="Price per kWh")
    args = parser.parse_args()

    success = asyncio.run(
        register_space(
            args.space_subdomain, args.access_token, parse_mapping(args.mapping), args.price
        )
    )
    if success:
        print("✅ Space registered successfully!")
    else:
        print("❌ Failed to register space.")
