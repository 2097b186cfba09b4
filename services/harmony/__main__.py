"""Harmony Bridge Service entry point.

Run with: python -m services.harmony
"""

from services.harmony.service import HarmonyBridgeService, HarmonyServiceConfig


def main() -> None:
    """Run the Harmony bridge service."""
    config = HarmonyServiceConfig.from_env()
    service = HarmonyBridgeService(config)
    service.run_forever()


if __name__ == "__main__":
    main()
