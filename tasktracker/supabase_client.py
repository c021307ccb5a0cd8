"""
Supabase API Client for the hosted task and time session tables.

This client talks to the PostgREST interface Supabase exposes for every
table (`/rest/v1/<table>`) and to the auth endpoint for the current user.
Row-level security on the backend restricts every query to the signed-in
user; the client only adds filters the UI asks for.

Errors:
- Unreachable backend (connection error, timeout) → NetworkError
- Any other HTTP error → BackendError with the status code
- Single-row lookups that match nothing → None
"""
import os
import requests
from typing import Optional, Dict, List
from dotenv import load_dotenv

from tasktracker.errors import BackendError, NetworkError

load_dotenv()


class SupabaseAPIClient:
    """Client for the Supabase REST and auth APIs."""

    REST_PATH = "/rest/v1"
    AUTH_PATH = "/auth/v1"
    DEFAULT_TIMEOUT = 10

    def __init__(self, url: Optional[str] = None, api_key: Optional[str] = None,
                 access_token: Optional[str] = None, timeout: Optional[float] = None):
        """
        Initialize Supabase API client.

        Args:
            url: Project URL (defaults to SUPABASE_URL)
            api_key: Anon/public API key (defaults to SUPABASE_ANON_KEY)
            access_token: User JWT (defaults to SUPABASE_ACCESS_TOKEN, then the API key)
            timeout: Request timeout in seconds
        """
        self.url = (url or os.getenv('SUPABASE_URL') or '').rstrip('/')
        self.api_key = api_key or os.getenv('SUPABASE_ANON_KEY')
        self.access_token = access_token or os.getenv('SUPABASE_ACCESS_TOKEN') or self.api_key
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self._user_id = None

        if not self.url:
            raise ValueError(
                "Supabase URL not found. Please set SUPABASE_URL in the environment."
            )
        if not self.api_key:
            raise ValueError(
                "Supabase API key not found. Please set SUPABASE_ANON_KEY in the environment."
            )

    def _headers(self, prefer: Optional[str] = None) -> Dict:
        headers = {
            'apikey': self.api_key,
            'Authorization': f'Bearer {self.access_token}',
            'Content-Type': 'application/json',
        }
        if prefer:
            headers['Prefer'] = prefer
        return headers

    def _make_request(
        self,
        endpoint: str,
        method: str = 'GET',
        params=None,
        json: Optional[Dict] = None,
        prefer: Optional[str] = None,
    ):
        """
        Make an authenticated request to the Supabase API.

        Args:
            endpoint: Path below the project URL (e.g., '/rest/v1/tasks')
            method: HTTP method (default: GET)
            params: Query parameters (dict or list of pairs, PostgREST filters)
            json: Request body
            prefer: Value of the Prefer header (e.g., 'return=representation')

        Returns:
            Response JSON data, or None for empty responses
        """
        url = f"{self.url}{endpoint}"

        try:
            response = requests.request(
                method, url,
                headers=self._headers(prefer),
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise NetworkError(f"Supabase unreachable: {e}") from e

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise BackendError(str(e), status_code=response.status_code) from e

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def get_current_user_id(self) -> str:
        """
        Fetch the id of the signed-in user (cached for the client's lifetime).

        Returns:
            User id string
        """
        if self._user_id is None:
            user = self._make_request(f'{self.AUTH_PATH}/user')
            if not user or not user.get('id'):
                raise BackendError("Authentication required", status_code=401)
            self._user_id = user['id']
        return self._user_id

    def select(self, table: str, params=None) -> List[Dict]:
        """Fetch the rows of `table` matching PostgREST `params`."""
        return self._make_request(f'{self.REST_PATH}/{table}', params=params) or []

    def select_one(self, table: str, params=None) -> Optional[Dict]:
        """Fetch a single row, or None when nothing matches."""
        rows = self.select(table, params=params)
        return rows[0] if rows else None

    def insert(self, table: str, data: Dict) -> Optional[Dict]:
        """Insert a row and return it as stored by the backend."""
        rows = self._make_request(
            f'{self.REST_PATH}/{table}',
            method='POST',
            json=data,
            prefer='return=representation',
        )
        return rows[0] if rows else None

    def update(self, table: str, filters, data: Dict) -> Optional[Dict]:
        """
        Update the rows matching `filters`.

        Returns:
            The first updated row, or None if no row matched
        """
        rows = self._make_request(
            f'{self.REST_PATH}/{table}',
            method='PATCH',
            params=filters,
            json=data,
            prefer='return=representation',
        )
        return rows[0] if rows else None
