import asyncio
import json
import os
import sys

from dotenv import load_dotenv

from dashboard.config import dlog, load_client_config
from dashboard.credentials import resolve_route
from dashboard.state import DashboardState, init_dashboard_state


load_dotenv()


def token_page_summary(state: DashboardState) -> dict:
    store = state.tokens
    return {
        "page": store.page,
        "page_size": store.page_size,
        "total_pages": store.total_pages,
        "filter_group": store.filter_group,
        "backend_loading": store.is_backend_loading,
        "error": store.error,
        "pool_stats": {
            "total_tokens": store.pool_stats.total_tokens,
            "active_tokens": store.pool_stats.active_tokens,
            "global_in_flight": store.global_in_flight,
            "tokens_with_in_flight": store.tokens_with_in_flight,
        },
        "tokens": [
            {
                "index": t.index,
                "name": t.name,
                "group": t.group,
                "status": t.status,
                "in_flight": t.in_flight,
                "avg_latency": t.avg_latency,
            }
            for t in store.tokens
        ],
    }


async def main() -> int:
    state = init_dashboard_state(load_client_config())
    try:
        if resolve_route("/tokens", state.credentials.has_credential) != "/tokens":
            print("No dashboard credential: set DASHBOARD_API_TOKEN or DASHBOARD_CREDENTIAL_FILE.", file=sys.stderr)
            return 1
        group = os.environ.get("DASHBOARD_GROUP") or None
        if group:
            await state.tokens.set_filter_group(group)
        else:
            await state.tokens.fetch()
        dlog("token_page_loaded", {"page": state.tokens.page, "error": state.tokens.error})
        print(json.dumps(token_page_summary(state), indent=2, ensure_ascii=False))
        return 1 if state.tokens.error else 0
    finally:
        await state.aclose()


if __name__ == "__main__":
    # Convenience for local runs: python pool_dashboard.py --dashboard-debug
    sys.exit(asyncio.run(main()))
