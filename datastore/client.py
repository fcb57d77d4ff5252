#Purpose: The data-store "adapter/client".
#Sole responsibility: talk to the platform's REST data API via HTTP and return
#plain python rows.
#Encapsulates REST-specific details:
#URL construction (/rest/v1/<table>, /rest/v1/rpc/<function>)
#auth headers (apikey + bearer service key)
#row counting via the Content-Range header
#turning non-2xx responses into DataStoreError
#It should not contain dispatch rules or scoring.


from dotenv import load_dotenv
import os
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
import requests

# Read data store URL/key from environment
# Example in .env:
# SUPABASE_URL=https://<project>.supabase.co
# SUPABASE_SERVICE_ROLE_KEY=...
load_dotenv()

Params = Union[Dict[str, Any], Sequence[Tuple[str, Any]]]


class DataStoreError(Exception):
    """Raised when the data store answers with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DataStoreClient:
    """
    REST data API client

    Sole responsibility:
    - Talk to the data API via HTTP
    - Return rows as lists of dicts
    """
    def __init__(self, base_url: Optional[str] = None, service_key: Optional[str] = None, timeout: int = 5,
                 session: Optional[requests.Session] = None):
        self.base_url = (base_url or os.getenv("SUPABASE_URL") or "").rstrip("/")
        self.service_key = service_key or os.getenv("SUPABASE_SERVICE_ROLE_KEY")
        self.timeout = timeout #seconds to wait for the data store before giving up
        self.session = session or requests.Session()

        if not self.base_url:
            raise ValueError("Data store URL not set. Please set SUPABASE_URL in the .env file.")
        if not self.service_key:
            raise ValueError("Data store key not set. Please set SUPABASE_SERVICE_ROLE_KEY in the .env file.")

    #----------------
    # Internal helpers
    #----------------
    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def _url(self, path: str) -> str:
        return f"{self.base_url}/rest/v1/{path}"

    def _check(self, response: requests.Response) -> None:
        if 200 <= response.status_code < 300:
            return
        try:
            message = response.json().get("message", response.text)
        except ValueError:
            message = response.text
        raise DataStoreError(f"Data store error {response.status_code}: {message}", status_code=response.status_code)

    #----------------
    # Public methods
    #----------------
    def rpc(self, function: str, params: Dict[str, Any]) -> Any:
        """
        Calls a stored procedure: POST /rest/v1/rpc/<function>
        """
        response = self.session.post(
            self._url(f"rpc/{function}"),
            json=params,
            headers=self._headers(),
            timeout=self.timeout,
        )
        self._check(response)
        return response.json() if response.content else None

    def select(self, table: str, params: Params) -> List[Dict[str, Any]]:
        """
        GET /rest/v1/<table> with filter params, e.g. ("status", "eq.pending").
        Pass a list of tuples to filter the same column twice.
        """
        response = self.session.get(
            self._url(table),
            params=params,
            headers=self._headers(),
            timeout=self.timeout,
        )
        self._check(response)
        return response.json()

    def count(self, table: str, params: Params) -> int:
        """
        Exact row count for a filtered table without fetching the rows.
        Parses the total out of `Content-Range: 0-24/57` (or `*/0`).
        """
        response = self.session.head(
            self._url(table),
            params=params,
            headers=self._headers({"Prefer": "count=exact"}),
            timeout=self.timeout,
        )
        self._check(response)

        content_range = response.headers.get("Content-Range", "")
        total = content_range.rsplit("/", 1)[-1]
        if not total.isdigit():
            raise DataStoreError(f"Data store returned no row count (Content-Range: {content_range!r})")
        return int(total)

    def insert(self, table: str, rows: List[Dict[str, Any]]) -> None:
        """
        POST /rest/v1/<table>; rows are not echoed back.
        """
        if not rows:
            return #nothing to write

        response = self.session.post(
            self._url(table),
            json=rows,
            headers=self._headers({"Prefer": "return=minimal"}),
            timeout=self.timeout,
        )
        self._check(response)
