"""
Spotify Web API client.

Implements PlaybackSource over plain HTTPS with requests. Access tokens
are refreshed from a long-lived refresh token whenever they expire or the
API answers 401.
"""

from __future__ import annotations

import base64
import logging
import threading
import time
from typing import Any
from urllib.parse import urlencode

import requests

from ..errors import AuthError, PlaybackSourceError
from ..sync.intervals import AudioAnalysis
from ..sync.source import Playback, TrackInfo

logger = logging.getLogger(__name__)

API_URL = "https://api.spotify.com/v1"
ACCOUNTS_URL = "https://accounts.spotify.com"
SCOPES = ("user-read-playback-state", "user-read-currently-playing")


class SpotifyClient:
    """
    Minimal Spotify client for playback state, tracks and audio analysis.

    Args:
        client_id: Spotify app client id
        client_secret: Spotify app client secret
        refresh_token: Long-lived token from the authorization code flow
        access_token: Optional access token to start with
        timeout: Per-request timeout in seconds
        market: Optional market for track lookups
        session: requests.Session to use (one is created if omitted)
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str = "",
        access_token: str | None = None,
        timeout: float = 5.0,
        market: str | None = None,
        session: requests.Session | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.timeout = timeout
        self.market = market
        self.session = session or requests.Session()

        self._access_token = access_token
        # Unknown lifetime for a supplied token: trust it until a 401
        self._expires_at = float("inf") if access_token else 0.0
        self._token_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def authorize_url(self, redirect_uri: str, state: str | None = None) -> str:
        """URL the user opens to grant playback access."""
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": redirect_uri,
            "scope": " ".join(SCOPES),
        }
        if state:
            params["state"] = state
        return f"{ACCOUNTS_URL}/authorize?{urlencode(params)}"

    def exchange_code(self, code: str, redirect_uri: str) -> dict[str, Any]:
        """
        Trade an authorization code for access + refresh tokens.

        Returns:
            The token response; refresh_token is also stored on the client
        """
        data = self._token_request({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
        })
        if data.get("refresh_token"):
            self.refresh_token = data["refresh_token"]
        return data

    def refresh_access_token(self) -> str:
        """Get a new access token from the refresh token."""
        if not self.refresh_token:
            raise AuthError("no refresh token configured")
        data = self._token_request({
            "grant_type": "refresh_token",
            "refresh_token": self.refresh_token,
        })
        # Spotify may rotate the refresh token
        if data.get("refresh_token"):
            self.refresh_token = data["refresh_token"]
        logger.debug("Refreshed Spotify access token")
        return self._access_token

    def _token_request(self, form: dict[str, str]) -> dict[str, Any]:
        credentials = f"{self.client_id}:{self.client_secret}".encode()
        headers = {"Authorization": "Basic " + base64.b64encode(credentials).decode()}
        try:
            response = self.session.post(
                f"{ACCOUNTS_URL}/api/token",
                data=form,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise AuthError(f"token request failed: {e}") from e

        if response.status_code != 200:
            raise AuthError(f"token request failed: HTTP {response.status_code} {response.text[:200]}")
        try:
            data = response.json()
        except ValueError as e:
            raise AuthError("token response is not JSON") from e

        with self._token_lock:
            self._access_token = data.get("access_token")
            # Refresh a minute early
            self._expires_at = time.monotonic() + float(data.get("expires_in", 3600)) - 60
        if not self._access_token:
            raise AuthError("token response has no access_token")
        return data

    def _token(self) -> str:
        with self._token_lock:
            token, expires_at = self._access_token, self._expires_at
        if token and time.monotonic() < expires_at:
            return token
        return self.refresh_access_token()

    # ------------------------------------------------------------------
    # API calls
    # ------------------------------------------------------------------

    def _get(self, path: str, params: dict[str, Any] | None = None) -> requests.Response:
        for attempt in range(2):
            try:
                response = self.session.get(
                    f"{API_URL}{path}",
                    params=params,
                    headers={"Authorization": f"Bearer {self._token()}"},
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                raise PlaybackSourceError(f"GET {path} failed: {e}") from e

            if response.status_code != 401:
                break
            if attempt > 0:
                raise AuthError(f"GET {path} unauthorized after token refresh")
            logger.info("Spotify access token rejected, refreshing")
            self.refresh_access_token()

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After", "?")
            raise PlaybackSourceError(f"GET {path} rate limited (retry after {retry_after}s)")
        if response.status_code >= 400:
            raise PlaybackSourceError(f"GET {path} failed: HTTP {response.status_code}")
        return response

    def _get_json(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        response = self._get(path, params)
        try:
            data = response.json()
        except ValueError as e:
            raise PlaybackSourceError(f"GET {path} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise PlaybackSourceError(f"GET {path} returned {type(data).__name__}, expected object")
        return data

    def current_playback(self) -> Playback | None:
        """Currently playing item, or None when the player is idle."""
        response = self._get("/me/player/currently-playing")
        if response.status_code == 204 or not response.content:
            return None
        try:
            data = response.json()
        except ValueError as e:
            raise PlaybackSourceError("currently-playing returned invalid JSON") from e

        item = data.get("item") or {}
        return Playback(
            track_id=item.get("id"),
            is_playing=bool(data.get("is_playing")),
            progress_ms=data.get("progress_ms"),
        )

    def track(self, track_id: str) -> TrackInfo:
        params = {"market": self.market} if self.market else None
        data = self._get_json(f"/tracks/{track_id}", params)
        try:
            return TrackInfo(
                id=data["id"],
                duration_ms=float(data["duration_ms"]),
                name=data.get("name", ""),
                artists=tuple(a.get("name", "") for a in data.get("artists", [])),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise PlaybackSourceError(f"malformed track {track_id}") from e

    def audio_analysis(self, track_id: str) -> AudioAnalysis:
        """
        Raises:
            PlaybackSourceError: Transient fetch failure
            AnalysisError: Payload is missing a granularity
        """
        return AudioAnalysis.from_dict(self._get_json(f"/audio-analysis/{track_id}"))
