#!/usr/bin/env python3
"""
Full Tenant Sync Script

Runs one full sync (customers, orders, products) outside the scheduler:

    python scripts/full_sync.py                      # every tenant
    python scripts/full_sync.py --domain acme.myshopify.com
"""
import sys
import argparse
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from shopsync.models.base import SessionLocal, init_db, utcnow
from shopsync.services.ingestion_service import SyncState, get_ingestion_service
from shopsync.services.tenant_service import TenantNotFoundError, get_tenant_by_domain


# ANSI colors for terminal output
class Colors:
    HEADER = '\033[95m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    RED = '\033[91m'
    BOLD = '\033[1m'
    END = '\033[0m'


def log(message: str, color: str = ''):
    """Log with timestamp and optional color"""
    timestamp = utcnow().strftime('%Y-%m-%d %H:%M:%S UTC')
    print(f"{color}[{timestamp}] {message}{Colors.END}")


def log_header(title: str):
    """Log section header"""
    print()
    print(f"{Colors.BOLD}{Colors.HEADER}{'='*70}")
    print(f"  {title}")
    print(f"{'='*70}{Colors.END}")
    print()


def sync_one(domain: str) -> int:
    service = get_ingestion_service()

    db = SessionLocal()
    try:
        tenant = get_tenant_by_domain(db, domain)
    except TenantNotFoundError as e:
        log(str(e), Colors.RED)
        return 1
    finally:
        db.close()

    try:
        result = service.sync_tenant(tenant)
    except Exception as e:
        log(f"Sync failed for {tenant.shop_domain}: {type(e).__name__}: {e}", Colors.RED)
        return 1

    log(
        f"{tenant.shop_domain}: {result.customers} customers, {result.orders} orders, "
        f"{result.products} products ({result.skipped} skipped) from {result.source} data",
        Colors.GREEN,
    )
    return 0


def sync_all() -> int:
    states = get_ingestion_service().sync_all_tenants()
    if not states:
        log("No tenants registered", Colors.CYAN)
        return 0

    failed = [tenant_id for tenant_id, state in states.items() if state is SyncState.FAILED]
    for tenant_id, state in states.items():
        color = Colors.RED if state is SyncState.FAILED else Colors.GREEN
        log(f"{tenant_id}: {state.value}", color)

    log(f"{len(states) - len(failed)}/{len(states)} tenant(s) synced", Colors.BOLD)
    return 1 if failed else 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a full Shopify sync for one or all tenants")
    parser.add_argument(
        "--domain", type=str, default=None,
        help="Sync only this shop domain (default: every tenant)"
    )
    args = parser.parse_args()

    log_header("shopsync full sync")
    init_db()

    start = time.time()
    exit_code = sync_one(args.domain) if args.domain else sync_all()
    log(f"Finished in {time.time() - start:.1f}s", Colors.CYAN)
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
