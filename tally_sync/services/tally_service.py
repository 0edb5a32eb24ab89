"""
Tally Service Module
====================
Handles HTTP/XML communication with the Tally Gateway Server.

TALLY GATEWAY:
-------------
Tally exposes an HTTP endpoint (default port 9000, or a tunnelled URL)
that accepts XML envelopes via POST and answers with XML.

CONNECTION:
----------
- URL: tally.url or http://{tally.server}:{tally.port} (config.yaml)
- Content-Type: application/xml
- Timeout: tally.timeout (30s) for exports and imports,
  health.tally_timeout (5s) for pings

RESPONSE HANDLING:
-----------------
- Bodies may be UTF-16 (with BOM) or UTF-8; decoding falls back to latin-1
- Imports succeed only on HTTP 200 with <STATUS>1</STATUS> and <ERRORS>0</ERRORS>

ERRORS:
------
Transport failures, timeouts and non-2xx answers raise TallyRequestError.
Retrying is governed by config.retry (a single attempt by default).
"""

import codecs
from typing import Any, Dict, Optional

import httpx

from ..config import config
from ..models.transaction import TallyImportResult, VoucherImportRequest
from ..utils.logger import logger
from ..utils.decorators import retry, timed
from ..utils.exceptions import TallyRequestError
from ..utils.helpers import parse_tally_amount
from .xml_builder import XMLBuilder, xml_builder
from .xml_extractor import xml_extractor

PING_ENVELOPE = (
    "<ENVELOPE><HEADER><VERSION>1</VERSION><TALLYREQUEST>Export</TALLYREQUEST>"
    "<TYPE>Data</TYPE><ID>List of Companies</ID></HEADER><BODY><DESC><STATICVARIABLES>"
    "<SVEXPORTFORMAT>$$SysName:XML</SVEXPORTFORMAT></STATICVARIABLES></DESC></BODY></ENVELOPE>"
)


def decode_tally_response(content: bytes) -> str:
    """Decode a Tally response body whatever encoding it came in"""
    if content.startswith(codecs.BOM_UTF16_LE) or content.startswith(codecs.BOM_UTF16_BE):
        return content.decode("utf-16")
    if b"\x00" in content[:200]:
        try:
            return content.decode("utf-16-le")
        except UnicodeDecodeError:
            pass
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")


class TallyService:
    """Service for communicating with Tally via XML"""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        builder: Optional[XMLBuilder] = None
    ):
        self._endpoint = endpoint
        self._timeout = timeout
        self.transport = transport
        self.builder = builder or xml_builder

    @property
    def url(self) -> str:
        return self._endpoint or config.tally.endpoint

    @property
    def timeout(self) -> float:
        return self._timeout or config.tally.timeout

    async def _post(self, xml_request: str, timeout: Optional[float] = None) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=timeout or self.timeout, transport=self.transport) as client:
                return await client.post(
                    self.url,
                    content=xml_request.encode("utf-8"),
                    headers={"Content-Type": "application/xml; charset=utf-8"}
                )
        except httpx.TimeoutException as e:
            raise TallyRequestError(f"Tally request timed out after {timeout or self.timeout}s") from e
        except httpx.HTTPError as e:
            raise TallyRequestError(f"Tally connection error: {e}") from e

    @retry(
        max_attempts=config.retry.max_attempts,
        initial_delay=config.retry.initial_delay,
        backoff_multiplier=config.retry.backoff_multiplier,
        max_delay=config.retry.max_delay,
        exceptions=(TallyRequestError,)
    )
    @timed
    async def send_xml(self, xml_request: str, timeout: Optional[float] = None) -> str:
        """POST an envelope and return the decoded body"""
        response = await self._post(xml_request, timeout)
        if response.status_code != 200:
            raise TallyRequestError(f"Tally answered HTTP {response.status_code}", response.status_code)
        return decode_tally_response(response.content)

    async def export(self, category: str, from_date: Optional[str] = None, to_date: Optional[str] = None) -> str:
        """Fetch one category (groups, ledgers, vouchers, ...) as raw XML"""
        xml_request = self.builder.build_export_request(category, from_date, to_date)
        logger.info(f"Requesting {category} from Tally at {self.url}")
        response = await self.send_xml(xml_request)
        logger.debug(f"Tally returned {len(response)} characters for {category}")
        return response

    async def import_voucher(self, voucher: VoucherImportRequest) -> TallyImportResult:
        """Create one voucher in Tally"""
        xml_request = self.builder.build_voucher_import(voucher)
        try:
            response = await self._post(xml_request)
        except TallyRequestError as e:
            logger.error(f"Voucher import failed: {e}")
            return TallyImportResult(success=False, status_code=0, line_error=str(e))

        body = decode_tally_response(response.content)
        find = xml_extractor.find_field
        success = (
            response.status_code == 200
            and "<STATUS>1</STATUS>" in body
            and "<ERRORS>0</ERRORS>" in body
        )
        result = TallyImportResult(
            success=success,
            status_code=response.status_code,
            created=int(parse_tally_amount(find(body, "CREATED"))),
            altered=int(parse_tally_amount(find(body, "ALTERED"))),
            errors=int(parse_tally_amount(find(body, "ERRORS"))),
            line_error=find(body, "LINEERROR")
        )
        if success:
            logger.info(f"Voucher '{voucher.voucher_type}' created in Tally")
        else:
            logger.warning(f"Tally rejected voucher '{voucher.voucher_type}': {result.line_error or body[:200]}")
        return result

    async def test_connection(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Ping Tally with a small export request"""
        try:
            response = await self._post(PING_ENVELOPE, timeout or config.health.tally_timeout)
            return {
                "connected": response.status_code == 200,
                "url": self.url,
                "status_code": response.status_code,
                "response_length": len(response.content)
            }
        except TallyRequestError as e:
            return {
                "connected": False,
                "url": self.url,
                "error": str(e)
            }


# Global service instance
tally_service = TallyService()
