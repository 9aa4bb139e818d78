"""
Queue Document Verification Script

Checks the file backend's queue document for integrity: drain order,
unique ids across queue and conflicts, retry budgets.
Run from project root: python scripts/verify.py [path]

Author: Khalil Bannouri
Version: 1.0.0
"""

import json
import os
import sys
from datetime import datetime

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from offline_sync.core.config import get_settings
from offline_sync.services.storage.base import decode_document


def verify_queue(path: str) -> bool:
    """Verify the persisted queue document."""

    print("=" * 60)
    print("🔍 OFFLINE QUEUE VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📄 File: {path}")
    print("=" * 60)

    if not os.path.exists(path):
        print("\n❌ Queue document not found!")
        print("   Start the API with STORAGE_BACKEND=file and queue something first")
        return False

    try:
        with open(path, "r", encoding="utf-8") as f:
            state = decode_document(json.load(f))
        print("\n✅ Document loaded successfully!")
    except ValueError as e:
        print(f"\n❌ Could not read queue document: {e}")
        return False

    ok = True

    print("\n📊 STATISTICS:")
    print(f"   Queued Actions: {len(state.actions)}")
    print(f"   Conflicts: {len(state.conflicts)}")
    print(f"   Sync State: {state.sync_state.value}")
    print(f"   Last Sync: {state.last_sync_time or 'never'}")

    # Drain order
    ranks = [a.priority.rank for a in state.actions]
    if ranks != sorted(ranks):
        print("\n⚠️ Queue is not in priority order!")
        ok = False
    else:
        print("\n✅ Queue is in priority order")

    # Unique ids
    ids = [a.id for a in state.actions] + [c.action_id for c in state.conflicts]
    duplicates = len(ids) - len(set(ids))
    if duplicates:
        print(f"⚠️ {duplicates} duplicate action IDs found!")
        ok = False
    else:
        print("✅ No duplicate action IDs")

    # Retry budgets (also enforced on load, kept for readability)
    over_budget = [a.id for a in state.actions if a.retry_count > a.max_retries]
    if over_budget:
        print(f"⚠️ Actions over retry budget: {over_budget}")
        ok = False
    else:
        print("✅ All retry counts within budget")

    print("\n📋 NEXT TO SYNC:")
    print("-" * 60)
    for action in state.actions[:5]:
        print(
            f"   {action.priority.value:<6} {action.type.value:<15} "
            f"retry {action.retry_count}/{action.max_retries}  {action.id}"
        )
    if not state.actions:
        print("   (queue empty)")

    print("\n" + "=" * 60)
    print("✅ VERIFICATION COMPLETE" if ok else "❌ VERIFICATION FOUND ISSUES")
    print("=" * 60)

    return ok


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else str(get_settings().queue_file_path)
    sys.exit(0 if verify_queue(target) else 1)
