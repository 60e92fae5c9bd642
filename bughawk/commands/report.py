"""
bughawk report - Project issue statistics.
"""

import json
from dataclasses import asdict

from bughawk.workflow.reports import project_report


def cmd_report(args, ctx) -> int:
    membership = ctx.registry.get(args.project, args.actor)
    stats = project_report(ctx.store.list_issues(args.project), membership, args.project)

    if args.json:
        print(json.dumps(asdict(stats), indent=2))
        return 0

    print(f"Report for {args.project}")
    print("-" * 40)
    print(f"  Total:     {stats.total}")
    print(f"  Open:      {stats.open_count}")
    print(f"  Resolved:  {stats.resolved_count}")
    print(f"  Avg time to resolve: {stats.avg_resolution_hours:.1f}h")
    for title, counts in (
        ("By status", stats.by_status),
        ("By priority", stats.by_priority),
        ("By severity", stats.by_severity),
        ("By type", stats.by_type),
    ):
        print()
        print(title)
        for key, n in counts.items():
            if n:
                print(f"  {key:<14} {n}")
    return 0
