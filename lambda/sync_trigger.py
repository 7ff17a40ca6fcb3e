"""
AWS Lambda function to trigger the daily sync via the API endpoint.

Deploy this to Lambda and schedule with EventBridge.
"""

import json
import os
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Dict


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Trigger /cron/daily (or /cron/sync-history) on the API.

    Environment Variables:
        API_URL: The service URL (e.g., https://xxx.awsapprunner.com)
        CRON_KEY: Shared secret expected by the API
        SYNC_TIMEOUT: Request timeout in seconds (default: 300)

    Event fields (all optional):
        job: "daily" (default) or "history"
        day: "today" (default) or "yesterday", daily only

    EventBridge Rule Example:
        Schedule: cron(0 23 * * ? *)  # today, before local midnight
        Schedule: cron(0 9 * * ? *)   # yesterday, with {"day": "yesterday"}
    """
    api_url = os.environ.get("API_URL")
    if not api_url:
        return {"statusCode": 500, "body": json.dumps({"error": "API_URL environment variable not set"})}

    timeout = int(os.environ.get("SYNC_TIMEOUT", "300"))
    job = (event or {}).get("job", "daily")
    path = "/cron/sync-history" if job == "history" else "/cron/daily"

    params = {}
    if job != "history":
        params["day"] = (event or {}).get("day", "today")
    endpoint = f"{api_url.rstrip('/')}{path}"
    if params:
        endpoint = f"{endpoint}?{urllib.parse.urlencode(params)}"

    headers = {"Content-Type": "application/json", "User-Agent": "PlantSyncTrigger/1.0"}
    if os.environ.get("CRON_KEY"):
        headers["X-Cron-Key"] = os.environ["CRON_KEY"]

    request = urllib.request.Request(endpoint, method="POST", headers=headers)

    try:
        print(f"Triggering sync at: {endpoint}")

        with urllib.request.urlopen(request, timeout=timeout) as response:
            result = json.loads(response.read().decode("utf-8"))

            print(f"Sync completed: saved={result.get('saved')} skipped={result.get('skipped')} failed={result.get('failed')}")

            return {"statusCode": 200, "body": json.dumps({"success": bool(result.get("ok")), "sync_result": result})}

    except urllib.error.HTTPError as e:
        error_body = e.read().decode("utf-8") if e.fp else str(e)
        print(f"Sync request failed with HTTP {e.code}: {error_body}")

        return {"statusCode": e.code, "body": json.dumps({"success": False, "error": f"HTTP {e.code}: {error_body}"})}

    except urllib.error.URLError as e:
        print(f"Sync request failed: {str(e)}")

        return {"statusCode": 500, "body": json.dumps({"success": False, "error": f"Connection error: {str(e)}"})}


# For local testing
if __name__ == "__main__":
    import sys

    if len(sys.argv) > 1:
        os.environ["API_URL"] = sys.argv[1]

    result = lambda_handler({"day": sys.argv[2]} if len(sys.argv) > 2 else {}, None)
    print(json.dumps(result, indent=2))
