"""
St. Mary's County Collector

Scrapes the St. Mary's County, MD treasurer tax sale listing. The page is a
single HTML table whose column titles have changed over the years, so columns
are mapped through COLUMN_ALIASES.

Records can optionally be enriched with assessment details from the Maryland
State Department of Assessments and Taxation (SDAT) property search.
"""
import asyncio
import re
from typing import Any, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from config.settings import settings
from src.parcelflow.exceptions import CollectionError, CollectionErrorType
from src.parcelflow.models.property import RawRecord
from src.parcelflow.models.source import SourceConfig
from src.parcelflow.collectors.base import BaseCollector
from src.parcelflow.transformers.standardizers import ST_MARYS_SOURCE_TYPE, text, to_float
from src.parcelflow.utils.logger import get_logger

logger = get_logger(__name__)

# Raw record key -> table column titles, first present wins
COLUMN_ALIASES: Dict[str, Tuple[str, ...]] = {
    "accountNumber": ("Tax Acct#", "Account Number", "Tax Account", "Account"),
    "ownerName": ("Owner", "Owner Name"),
    "propertyLocation": ("Address", "Property Address", "Property Location", "Location"),
    "amountDue": ("Amount Due", "Total Due", "Sale Amount"),
    "taxYear": ("Tax Year", "Year"),
    "taxStatus": ("Status", "Tax Status"),
    "landValue": ("Land Value",),
    "improvementValue": ("Improvement Value", "Improvements"),
    "totalValue": ("Total Value", "Assessment"),
    "acreage": ("Acreage", "Acres"),
    "zoning": ("Zoning",),
}

_NUMERIC_FIELDS = ("amountDue", "landValue", "improvementValue", "totalValue", "acreage")

_CURRENCY = re.compile(r'\$?([\d,]+)')


def parse_table(html: str) -> List[Dict[str, str]]:
    """
    Extract the rows of the first table on the page.

    Args:
        html: Page content

    Returns:
        One dict per data row, keyed by column title
    """
    soup = BeautifulSoup(html, "html.parser")
    table = soup.find("table")

    if table is None:
        logger.error("table_not_found")
        return []

    headers = [th.get_text(strip=True) for th in table.find_all("th")]
    logger.info("table_headers_extracted", headers=headers)

    rows = []
    for tr in table.find_all("tr"):
        cells = tr.find_all("td")
        row = {
            headers[j]: cell.get_text(strip=True)
            for j, cell in enumerate(cells)
            if j < len(headers)
        }
        if row:
            rows.append(row)

    logger.info("table_rows_extracted", rows=len(rows))
    return rows


def map_row(row: Dict[str, str]) -> RawRecord:
    """Rename table columns to raw record keys; unknown columns are dropped."""
    record: RawRecord = {}
    for key, titles in COLUMN_ALIASES.items():
        for title in titles:
            value = row.get(title)
            if value:
                record[key] = to_float(value) if key in _NUMERIC_FIELDS else value
                break
    return record


def _find_containing(soup: BeautifulSoup, class_name: str, label: str):
    for element in soup.find_all(class_=class_name):
        if label in element.get_text():
            return element
    return None


def _value_after(soup: BeautifulSoup, label: str) -> str:
    element = _find_containing(soup, "SDAT_Value", label)
    sibling = element.find_next_sibling() if element is not None else None
    return sibling.get_text(strip=True) if sibling is not None else ''


def _label_amount(soup: BeautifulSoup, label: str) -> Optional[float]:
    element = _find_containing(soup, "SDAT_Label", label)
    if element is None:
        return None
    siblings = " ".join(s.get_text(" ", strip=True) for s in element.find_next_siblings())
    match = _CURRENCY.search(siblings)
    return to_float(match.group(1)) if match else None


def _repeater_value(soup: BeautifulSoup, label: str) -> str:
    element = _find_containing(soup, "SDAT_DataRepeater", label)
    if element is None:
        return ''
    return " ".join(v.get_text(strip=True) for v in element.find_all(class_="SDAT_Value")).strip()


def parse_sdat_page(html: str) -> Dict[str, Any]:
    """
    Extract assessment details from an SDAT property detail page.

    Args:
        html: SDAT viewdetails page content

    Returns:
        sdat* keys for every value found on the page
    """
    soup = BeautifulSoup(html, "html.parser")

    details = {
        "sdatPremisesAddress": _value_after(soup, "Premise Address"),
        "sdatLegalDescription": _value_after(soup, "Legal Description"),
        "sdatOwnerName": _value_after(soup, "Owner Name"),
        "sdatLandValue": _label_amount(soup, "Land:"),
        "sdatImprovementValue": _label_amount(soup, "Improvements:"),
        "sdatTotalValue": _label_amount(soup, "Total:"),
        "sdatYearBuilt": _repeater_value(soup, "Year Built"),
        "sdatLandArea": _repeater_value(soup, "Land Area"),
        "sdatZoning": _repeater_value(soup, "Zoning"),
    }
    return {key: value for key, value in details.items() if value not in (None, '')}


def sdat_params(account_number: str, county_code: str) -> Dict[str, str]:
    """Query string for an SDAT account lookup (district = first two characters)."""
    return {
        "County": county_code,
        "SearchType": "ACCT",
        "District": account_number[:2],
        "AccountNumber": account_number[-6:],
    }


class StMarysCountyCollector(BaseCollector):
    """
    Collector for St. Mary's County, Maryland tax sale properties.

    Source metadata options:
        limit: Keep only the first N rows
        enrichWithSDAT: Look up each account on SDAT and merge the details
    """

    collector_type = ST_MARYS_SOURCE_TYPE
    name = "St. Mary's County Tax Sale Collector"
    supported_source_types = ("county-website",)

    def __init__(
        self,
        base_url: Optional[str] = None,
        sdat_url: Optional[str] = None,
        sdat_delay: Optional[float] = None,
        **kwargs,
    ):
        """
        Initialize the collector.

        Args:
            base_url: Treasurer page, probed on initialize and used for
                sources without a url (default from settings)
            sdat_url: SDAT property detail page (default from settings)
            sdat_delay: Seconds to wait after each SDAT lookup (default from settings)
        """
        self.base_url = base_url or settings.st_marys_base_url
        self.sdat_url = sdat_url or settings.sdat_details_url
        self.sdat_delay = settings.sdat_request_delay if sdat_delay is None else sdat_delay
        kwargs.setdefault("probe_url", self.base_url)
        super().__init__(**kwargs)

    def validate_source(self, source: SourceConfig) -> Tuple[bool, Optional[str]]:
        valid, message = super().validate_source(source)
        if not valid:
            return valid, message

        if source.region.state != "MD":
            return False, "State must be MD for St. Mary's County collector"

        if source.region.county != "St. Mary's":
            return False, "County must be St. Mary's for this collector"

        return True, None

    async def fetch_records(self, source: SourceConfig) -> List[RawRecord]:
        url = source.url or self.base_url
        logger.info("fetching_tax_sale_page", source_id=source.id, url=url)

        response = await asyncio.to_thread(self.fetch, url)
        rows = parse_table(response.text)

        if not rows:
            raise CollectionError(
                "No data found in the table",
                CollectionErrorType.PARSING_ERROR,
                self.collector_type,
            )

        limit = source.metadata.get("limit")
        if limit:
            rows = rows[:int(limit)]

        records = []
        skipped = 0
        for row in rows:
            record = map_row(row)
            if not text(record.get("accountNumber")) and not text(record.get("propertyLocation")):
                skipped += 1
                continue
            records.append({**self.base_record(source), **record})

        if skipped:
            logger.warning("rows_skipped", source_id=source.id, skipped=skipped, kept=len(records))

        if source.metadata.get("enrichWithSDAT"):
            records = await self.enrich_with_sdat(records)

        return records

    async def enrich_with_sdat(self, records: List[RawRecord]) -> List[RawRecord]:
        """
        Merge SDAT assessment details into each record.

        A record whose lookup fails, or that has no account number, is kept
        unenriched.
        """
        enriched = []
        for record in records:
            account_number = text(record.get("accountNumber"))
            if not account_number:
                logger.warning("sdat_account_missing", property_location=record.get("propertyLocation"))
                enriched.append(record)
                continue

            params = sdat_params(account_number, settings.sdat_county_code)
            try:
                response = await asyncio.to_thread(self.fetch, self.sdat_url, params)
            except CollectionError as e:
                logger.warning("sdat_enrichment_failed", account_number=account_number, error=str(e))
                enriched.append(record)
                continue

            enriched.append({**record, **parse_sdat_page(response.text)})

            if self.sdat_delay:
                await asyncio.sleep(self.sdat_delay)

        logger.info("sdat_enrichment_completed", records=len(enriched))
        return enriched
