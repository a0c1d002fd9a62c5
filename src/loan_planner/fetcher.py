"""Online reference-rate fetcher — BCRP statistics API.

Only fetches a single annual rate series (e.g. the average mortgage TEA
published by the central bank). All fetches are user-triggered.
"""
from __future__ import annotations

import logging
import os
from decimal import Decimal, InvalidOperation
from typing import Optional

import requests

logger = logging.getLogger(__name__)

# Timeout for HTTP calls (seconds)
_TIMEOUT = 10

SERIES_ENV_VAR = "LOAN_PLANNER_BCRP_SERIES"

# BCRP statistics API: /series/api/{series}/json returns
# {"config": {...}, "periods": [{"name": "Ene.2025", "values": ["7.12"]}, ...]}
_BCRP_URL = "https://estadisticas.bcrp.gob.pe/estadisticas/series/api/{series}/json"

# Placeholder BCRP uses for missing observations
_MISSING = "n.d."


class FetchError(Exception):
    """Raised when an online rate fetch fails for any reason."""


def fetch_reference_rate(series: Optional[str] = None) -> Decimal:
    """Fetch the latest observation of a BCRP annual rate series.

    The series code comes from *series* or the LOAN_PLANNER_BCRP_SERIES
    environment variable. Returns the rate as a Decimal fraction
    (e.g. 0.085 for 8.5%). Raises FetchError on any error.
    """
    code = series or os.environ.get(SERIES_ENV_VAR)
    if not code:
        raise FetchError(
            f"No BCRP series configured. Pass a series code or set {SERIES_ENV_VAR}."
        )

    url = _BCRP_URL.format(series=code)
    logger.info("Fetching reference rate series %s", code)
    try:
        resp = requests.get(url, timeout=_TIMEOUT)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise FetchError(f"BCRP API request failed: {exc}") from exc

    try:
        data = resp.json()
        periods = data["periods"]
        last_value = None
        last_period = None
        for period in periods:
            value = str(period["values"][0]).strip()
            if value and value != _MISSING:
                last_value = value
                last_period = period.get("name")
        if last_value is None:
            raise FetchError(f"BCRP returned no observations for series {code}.")
        # BCRP publishes percentages
        rate = Decimal(last_value) / Decimal("100")
    except (KeyError, IndexError, TypeError, ValueError, InvalidOperation) as exc:
        raise FetchError(f"Failed to parse BCRP response for {code}: {exc}") from exc

    logger.info("Series %s, period %s: %s", code, last_period, rate)
    return rate
