"""Print the audit trail of one order (or payment) as JSON."""

import argparse
import json

from closetshare.common.db import make_engine, make_session_factory
from closetshare.common.config import settings
from closetshare.services.orders.service import OrderService


def main() -> None:
    """CLI entrypoint for audit trail lookups."""

    parser = argparse.ArgumentParser(description="Dump audit rows for one entity, newest first.")
    parser.add_argument("entity_id", type=int)
    parser.add_argument("--entity-type", default="ORDER", choices=["ORDER", "ORDER_PAYMENT", "PAYMENT"])
    parser.add_argument("--database-dsn", default=settings.database_dsn)
    args = parser.parse_args()

    service = OrderService(make_session_factory(make_engine(args.database_dsn)))
    rows = service.audit_trail(args.entity_type, args.entity_id)
    print(
        json.dumps(
            [
                {
                    "id": row.id,
                    "action": row.action,
                    "actor_id": row.actor_id,
                    "old_value": row.old_value,
                    "new_value": row.new_value,
                    "created_at": row.created_at.isoformat() if row.created_at else None,
                }
                for row in rows
            ],
            indent=2,
        )
    )


if __name__ == "__main__":
    main()
