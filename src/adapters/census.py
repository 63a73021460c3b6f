"""
Census Adapters

Population/income (TAM), household connectivity (SAM) and Business Dynamics
Statistics (SOM and growth), all from api.census.gov. Census answers with a
header row followed by data rows; values are looked up by header name.
"""
import asyncio
from typing import Any, Dict, List, Sequence

from src.adapters.base import SourceAdapter
from src.config import Settings
from src.models.source_result import SourceResult
from src.utils.errors import UpstreamResponseError
from src.utils.fallback_responses import (
    DEFAULT_GROWTH_RATE,
    DEFAULT_MARKET_SHARE,
    GROWTH_RATE_BOUNDS,
)
from src.utils.resilient_http import ResilientHttpClient


def census_rows(source: str, table: Any) -> List[Dict[str, str]]:
    """Turn [[header...], [row...], ...] into a list of dicts."""
    if not isinstance(table, list) or len(table) < 2 or not isinstance(table[0], list):
        raise UpstreamResponseError(source, "unexpected Census table shape")
    header = table[0]
    return [dict(zip(header, row)) for row in table[1:] if isinstance(row, list)]


def census_number(source: str, row: Dict[str, str], column: str) -> float:
    try:
        return float(row[column])
    except (KeyError, TypeError, ValueError) as e:
        raise UpstreamResponseError(source, f"missing or non-numeric {column}") from e


class _CensusAdapter(SourceAdapter):

    def __init__(self, http: ResilientHttpClient, settings: Settings):
        self.http = http
        self.settings = settings

    async def _table(self, path: str, get: str, **params) -> List[Dict[str, str]]:
        url = f"{self.settings.census_api_base}/{path}"
        query = {"get": get, "for": "us:*", "key": self.settings.census_api_key, **params}
        table = await self.http.get_json(url, source=self.name, params=query)
        return census_rows(self.name, table)


class PopulationIncomeAdapter(_CensusAdapter):
    """Total US population and median household income."""

    name = "population_income"

    async def _fetch_payload(self, query: str, context: Sequence[SourceResult]) -> Dict[str, Any]:
        population_rows, income_rows = await asyncio.gather(
            self._table(f"{self.settings.census_population_year}/dec/pl", "P1_001N"),
            self._table(f"{self.settings.census_acs_year}/acs/acs1", "B19013_001E"),
        )
        population = int(census_number(self.name, population_rows[0], "P1_001N"))
        median_income = int(census_number(self.name, income_rows[0], "B19013_001E"))

        return {
            "population": population,
            "medianIncome": median_income,
            # Millions of USD
            "addressableValue": population * (median_income / 1_000_000),
        }


class ConnectivityAdapter(_CensusAdapter):
    """Share of US households with an internet subscription."""

    name = "connectivity"

    async def _fetch_payload(self, query: str, context: Sequence[SourceResult]) -> Dict[str, Any]:
        rows = await self._table(
            f"{self.settings.census_acs_year}/acs/acs1", "B28002_001E,B28002_002E"
        )
        total = census_number(self.name, rows[0], "B28002_001E")
        with_internet = census_number(self.name, rows[0], "B28002_002E")
        if total <= 0:
            raise UpstreamResponseError(self.name, "zero households reported")

        return {
            "totalHouseholds": int(total),
            "householdsWithInternet": int(with_internet),
            "internetPenetration": with_internet / total,
        }


class BusinessSurveyAdapter(_CensusAdapter):
    """
    Establishment and employment counts from the BDS time series.

    Growth is the year-over-year employment change, bounded so one unusual
    year cannot dominate the score. marketShare stays at its documented
    default: the survey has no per-idea share.
    """

    name = "business_survey"

    async def _fetch_payload(self, query: str, context: Sequence[SourceResult]) -> Dict[str, Any]:
        year = self.settings.census_bds_year
        rows = await self._table(
            "timeseries/bds", "ESTAB,EMP,YEAR", time=f"from {year - 1} to {year}"
        )
        by_year = {}
        for row in rows:
            try:
                by_year[int(row.get("YEAR") or row.get("time"))] = row
            except (TypeError, ValueError):
                continue

        current = by_year.get(year) or (by_year[max(by_year)] if by_year else None)
        if current is None:
            raise UpstreamResponseError(self.name, "no BDS rows returned")
        current_year = int(current.get("YEAR") or current.get("time"))

        establishments = int(census_number(self.name, current, "ESTAB"))
        employment = int(census_number(self.name, current, "EMP"))

        previous = by_year.get(current_year - 1)
        previous_employment = None
        growth_rate = DEFAULT_GROWTH_RATE
        if previous is not None:
            previous_employment = int(census_number(self.name, previous, "EMP"))
            if previous_employment > 0:
                low, high = GROWTH_RATE_BOUNDS
                raw = (employment - previous_employment) / previous_employment
                growth_rate = min(high, max(low, raw))

        return {
            "year": current_year,
            "establishments": establishments,
            "employment": employment,
            "previousEmployment": previous_employment,
            "marketShare": DEFAULT_MARKET_SHARE,
            "growthRate": growth_rate,
        }
