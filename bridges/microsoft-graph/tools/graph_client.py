"""
Microsoft Graph REST API v1.0 Client for license source auditing

Provides authenticated access to the directory and licensing parts of the
Microsoft Graph API: users with their license assignment states, groups
with their assigned licenses, the tenant SKU catalog, and license removal.

Authentication uses MSAL client_credentials flow:
  - POST to Entra ID token endpoint with client_id + client_secret
  - Tokens are valid for ~1 hour
  - Tokens are cached and auto-refreshed 5 minutes before expiry

Environment variables (or bridges/microsoft-graph/.env):
  AZURE_TENANT_ID        - Entra ID tenant ID
  GRAPH_CLIENT_ID        - App registration client ID
  GRAPH_CLIENT_SECRET    - App registration client secret
  LICENSE_AUDIT_LOG_DIR  - Directory for run logs and the skip file (optional)

Required application permissions: User.ReadWrite.All (license removal),
Group.Read.All, Organization.Read.All (subscribedSkus).
"""

import os
import sys
import time
import urllib.parse
import requests
from pathlib import Path

from dotenv import load_dotenv

_env_path = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(_env_path)

TENANT_ID = os.getenv("AZURE_TENANT_ID", "")
CLIENT_ID = os.getenv("GRAPH_CLIENT_ID", "")
CLIENT_SECRET = os.getenv("GRAPH_CLIENT_SECRET", "")

TOKEN_URL_TEMPLATE = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"
API_BASE = "https://graph.microsoft.com/v1.0"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"

TOKEN_REFRESH_BUFFER_SECS = 300

USER_LICENSE_SELECT = (
    "id,userPrincipalName,displayName,mail,"
    "assignedLicenses,licenseAssignmentStates"
)
GROUP_LICENSE_SELECT = "id,displayName,assignedLicenses"


def _path_segment(value: str) -> str:
    """Encode an ID or UPN for a URL path; guest UPNs contain '#'."""
    return urllib.parse.quote(value, safe="@")


class GraphClient:
    """Microsoft Graph REST API v1.0 client with MSAL token management."""

    def __init__(
        self,
        tenant_id: str = None,
        client_id: str = None,
        client_secret: str = None,
    ):
        self.tenant_id = tenant_id or TENANT_ID
        self.client_id = client_id or CLIENT_ID
        self.client_secret = client_secret or CLIENT_SECRET

        if not all([self.tenant_id, self.client_id, self.client_secret]):
            print(
                "ERROR: Missing Microsoft Graph credentials.\n"
                "\n"
                "Required environment variables:\n"
                "  AZURE_TENANT_ID\n"
                "  GRAPH_CLIENT_ID\n"
                "  GRAPH_CLIENT_SECRET\n"
                "\n"
                "Create an App Registration in Entra ID with the application\n"
                "permissions User.ReadWrite.All, Group.Read.All and\n"
                "Organization.Read.All for Microsoft Graph.\n",
                file=sys.stderr,
            )
            sys.exit(1)

        self._access_token = None
        self._token_expires_at = 0
        self.session = requests.Session()

    # ── OAuth Token Management ─────────────────────────────────────────

    def _get_token(self) -> str:
        """Obtain or refresh the MSAL client_credentials token."""
        now = time.time()
        if self._access_token and now < self._token_expires_at:
            return self._access_token

        token_url = TOKEN_URL_TEMPLATE.format(tenant=self.tenant_id)
        resp = requests.post(
            token_url,
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "scope": GRAPH_SCOPE,
            },
            timeout=30,
        )

        if resp.status_code != 200:
            print(
                f"ERROR: Token request failed ({resp.status_code}): {resp.text}",
                file=sys.stderr,
            )
            sys.exit(1)

        token_data = resp.json()
        self._access_token = token_data["access_token"]
        expires_in = token_data.get("expires_in", 3600)
        self._token_expires_at = now + expires_in - TOKEN_REFRESH_BUFFER_SECS

        return self._access_token

    def _auth_headers(self) -> dict:
        """Return headers with a valid Bearer token."""
        token = self._get_token()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "ConsistencyLevel": "eventual",
        }

    # ── Core HTTP Methods ──────────────────────────────────────────────

    def _request(
        self, method: str, endpoint: str, **kwargs
    ) -> requests.Response:
        """Make an API request with auth, rate-limit wait, and token refresh."""
        url = endpoint if endpoint.startswith("http") else f"{API_BASE}/{endpoint.lstrip('/')}"
        max_attempts = 3

        for attempt in range(max_attempts):
            kwargs["headers"] = self._auth_headers()
            resp = self.session.request(method, url, timeout=60, **kwargs)

            if resp.status_code == 429:
                retry_after = int(resp.headers.get("Retry-After", 5))
                print(f"  Rate limited. Waiting {retry_after}s...", file=sys.stderr)
                time.sleep(retry_after)
                continue

            if resp.status_code == 401:
                self._access_token = None
                self._token_expires_at = 0
                continue

            return resp

        return resp

    def get(self, endpoint: str, params: dict = None) -> requests.Response:
        return self._request("GET", endpoint, params=params)

    def post(self, endpoint: str, json_data: dict = None) -> requests.Response:
        return self._request("POST", endpoint, json=json_data)

    # ── Pagination Helper ──────────────────────────────────────────────

    def get_all(
        self,
        endpoint: str,
        key: str = "value",
        params: dict = None,
        top: int = 100,
        max_pages: int = None,
    ) -> list:
        """
        Paginate through all results for a list endpoint.

        Graph uses @odata.nextLink for cursor-based pagination.
        `key` is the JSON key containing the array (usually 'value').
        Pages are followed until nextLink is absent unless `max_pages` is set.
        A failed page raises requests.HTTPError; no partial list is returned.
        """
        params = dict(params or {})
        if "$top" not in params and top:
            params["$top"] = top
        results = []
        url = endpoint

        pages = 0
        while max_pages is None or pages < max_pages:
            resp = self.get(url, params=params if not url.startswith("http") else None)
            pages += 1
            if resp.status_code != 200:
                print(f"  Error fetching {url}: {resp.status_code} {resp.text}", file=sys.stderr)
                resp.raise_for_status()
                raise requests.HTTPError(f"Unexpected status {resp.status_code} for {url}", response=resp)

            data = resp.json()
            items = data.get(key, [])
            results.extend(items)

            next_link = data.get("@odata.nextLink")
            if not next_link:
                break

            url = next_link
            params = None

        return results

    # ── Users ──────────────────────────────────────────────────────────

    def list_users(self, select: str = None, filter_expr: str = None, top: int = 100) -> list:
        """List all users in the tenant, with license assignment states by default."""
        params = {"$select": select or USER_LICENSE_SELECT}
        if filter_expr:
            params["$filter"] = filter_expr
        return self.get_all("users", params=params, top=top)

    def get_user(self, user_id: str, select: str = None) -> dict:
        """Get a single user by ID, UPN, or email."""
        params = {"$select": select or USER_LICENSE_SELECT}
        resp = self.get(f"users/{_path_segment(user_id)}", params=params)
        resp.raise_for_status()
        return resp.json()

    # ── Groups ─────────────────────────────────────────────────────────

    def get_group(self, group_id: str, select: str = None) -> dict:
        """Get a group with its display name and assigned licenses."""
        params = {"$select": select or GROUP_LICENSE_SELECT}
        resp = self.get(f"groups/{_path_segment(group_id)}", params=params)
        resp.raise_for_status()
        return resp.json()

    # ── Licenses ───────────────────────────────────────────────────────

    def list_subscribed_skus(self) -> list:
        """List all subscribed license SKUs with their service plans."""
        resp = self.get("subscribedSkus")
        resp.raise_for_status()
        return resp.json().get("value", [])

    def get_user_licenses(self, user_id: str) -> list:
        """Get license details (per-plan provisioning status) for a user."""
        resp = self.get(f"users/{_path_segment(user_id)}/licenseDetails")
        resp.raise_for_status()
        return resp.json().get("value", [])

    def remove_license(self, user_id: str, sku_id: str) -> dict:
        """Remove a directly assigned license from a user."""
        body = {"addLicenses": [], "removeLicenses": [sku_id]}
        resp = self.post(f"users/{_path_segment(user_id)}/assignLicense", json_data=body)
        if resp.status_code == 200:
            return {"ok": True}
        return {"error": resp.status_code, "body": resp.text}
