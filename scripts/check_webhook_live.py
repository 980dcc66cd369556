#!/usr/bin/env python3
"""Quick live check of the dashboard webhook.

Run:
  poetry run python scripts/check_webhook_live.py                      # CRM_DASHBOARD_ENDPOINT or default
  poetry run python scripts/check_webhook_live.py https://host/webhook  # explicit endpoint
"""

import sys

from crm_dashboard.connectors.webhook import WebhookConnector
from crm_dashboard.errors import DashboardError
from crm_dashboard.models.settings import DashboardSettings


def main() -> None:
    settings = DashboardSettings().with_env_overrides()
    endpoint = sys.argv[1] if len(sys.argv) > 1 else settings.endpoint_url
    connector = WebhookConnector(endpoint, timeout=settings.timeout_seconds)
    print(f"Fetching from {endpoint}...")

    try:
        batch = connector.fetch_all()
    except DashboardError as e:
        print(f"\n❌ {e}")
        raise SystemExit(1)
    finally:
        connector.close()

    if batch is None:
        print("\n⚠️ Empty response. Check the automation flow.")
        return
    print(f"Got {len(batch.cards)} cards, {len(batch.steps)} steps, {len(batch.catalog.by_id)} tags")
    for i, card in enumerate(batch.cards[:5], 1):
        print(f"  {i}. [{card.stage_name or card.stage_id or '?'}] {card.display_title} ({card.monetary_amount})")
    print("\n✅ Fetch + normalize succeeded.")


if __name__ == "__main__":
    main()
