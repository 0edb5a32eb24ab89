import httpx
import pytest

from tally_sync.models.transaction import LedgerLine, VoucherImportRequest
from tally_sync.services.tally_service import TallyService, decode_tally_response
from tally_sync.utils.exceptions import TallyRequestError

IMPORT_OK = (
    "<ENVELOPE><HEADER><VERSION>1</VERSION><STATUS>1</STATUS></HEADER><BODY><DATA><IMPORTRESULT>"
    "<CREATED>1</CREATED><ALTERED>0</ALTERED><ERRORS>0</ERRORS></IMPORTRESULT></DATA></BODY></ENVELOPE>"
)

IMPORT_REJECTED = (
    "<ENVELOPE><HEADER><VERSION>1</VERSION><STATUS>1</STATUS></HEADER><BODY><DATA><IMPORTRESULT>"
    "<CREATED>0</CREATED><ALTERED>0</ALTERED><ERRORS>1</ERRORS>"
    "<LINEERROR>Ledger &apos;Cash&apos; does not exist!</LINEERROR></IMPORTRESULT></DATA></BODY></ENVELOPE>"
)


def _service(handler):
    return TallyService(endpoint="http://tally.test:9000", transport=httpx.MockTransport(handler))


def _voucher():
    return VoucherImportRequest(
        voucher_type="Receipt",
        date="2024-04-01",
        ledger_entries=[LedgerLine(ledger_name="Cash", amount=-100), LedgerLine(ledger_name="Sales", amount=100)],
    )


async def test_export_posts_the_category_envelope():
    seen = {}

    def handler(request):
        seen["body"] = request.content.decode("utf-8")
        seen["content_type"] = request.headers["content-type"]
        return httpx.Response(200, content=b"<ENVELOPE><LEDGER><NAME>Cash</NAME></LEDGER></ENVELOPE>")

    body = await _service(handler).export("ledgers")

    assert "<ID>ListOfLedgers</ID>" in seen["body"]
    assert seen["content_type"].startswith("application/xml")
    assert "<NAME>Cash</NAME>" in body


async def test_export_decodes_utf16_bodies():
    def handler(request):
        return httpx.Response(200, content="<ENVELOPE><NAME>Café</NAME></ENVELOPE>".encode("utf-16"))

    body = await _service(handler).export("ledgers")

    assert body == "<ENVELOPE><NAME>Café</NAME></ENVELOPE>"


async def test_non_200_raises_with_status():
    def handler(request):
        return httpx.Response(500, content=b"oops")

    with pytest.raises(TallyRequestError) as exc:
        await _service(handler).export("groups")
    assert exc.value.status_code == 500


async def test_unreachable_tally_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    with pytest.raises(TallyRequestError):
        await _service(handler).export("groups")


async def test_timeout_raises():
    def handler(request):
        raise httpx.ReadTimeout("too slow")

    with pytest.raises(TallyRequestError) as exc:
        await _service(handler).export("vouchers")
    assert "timed out" in str(exc.value)


async def test_import_success():
    def handler(request):
        assert "<TALLYREQUEST>Import</TALLYREQUEST>" in request.content.decode("utf-8")
        return httpx.Response(200, content=IMPORT_OK.encode("utf-8"))

    result = await _service(handler).import_voucher(_voucher())

    assert result.success
    assert result.created == 1
    assert result.errors == 0


async def test_import_reports_line_error():
    def handler(request):
        return httpx.Response(200, content=IMPORT_REJECTED.encode("utf-8"))

    result = await _service(handler).import_voucher(_voucher())

    assert not result.success
    assert result.errors == 1
    assert result.line_error == "Ledger 'Cash' does not exist!"


async def test_import_fails_on_http_error_status():
    def handler(request):
        return httpx.Response(500, content=IMPORT_OK.encode("utf-8"))

    result = await _service(handler).import_voucher(_voucher())

    assert not result.success
    assert result.status_code == 500


async def test_import_fails_when_unreachable():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    result = await _service(handler).import_voucher(_voucher())

    assert not result.success
    assert result.status_code == 0


async def test_connection_check():
    up = await _service(lambda request: httpx.Response(200, content=b"<ENVELOPE/>")).test_connection()
    assert up["connected"] is True
    assert up["url"] == "http://tally.test:9000"

    def refuse(request):
        raise httpx.ConnectError("connection refused")

    down = await _service(refuse).test_connection()
    assert down["connected"] is False
    assert "error" in down


def test_decode_handles_bom_and_fallbacks():
    assert decode_tally_response("\ufeff<A/>".encode("utf-8")) == "<A/>"
    assert decode_tally_response("<A/>".encode("utf-16-le")) == "<A/>"
    assert decode_tally_response(b"<A>\xe9</A>") == "<A>\xe9</A>"
