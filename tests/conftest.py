import httpx
import pytest

from tally_sync.models.tenant import TenantScope
from tally_sync.services.database_service import DatabaseService


LEDGERS_XML = """<ENVELOPE><BODY><DATA><COLLECTION>
<LEDGER NAME="Cash" RESERVEDNAME="">
  <GUID>g-cash</GUID>
  <NAME>Cash</NAME>
  <PARENT>Cash-in-Hand</PARENT>
  <OPENINGBALANCE>1500.00</OPENINGBALANCE>
</LEDGER>
<LEDGER NAME="Bank">
  <GUID>g-bank</GUID>
  <NAME>Bank</NAME>
  <PARENT>Bank Accounts</PARENT>
  <OPENINGBALANCE>-2,500.50</OPENINGBALANCE>
</LEDGER>
<LEDGER NAME="Sales">
  <GUID>g-sales</GUID>
  <NAME>Sales</NAME>
</LEDGER>
</COLLECTION></DATA></BODY></ENVELOPE>"""

GROUPS_XML = """<ENVELOPE>
<GROUP NAME="Capital Account"><GUID>grp-1</GUID><NAME>Capital Account</NAME><PARENT>Primary</PARENT></GROUP>
<GROUP NAME="Reserves"><GUID>grp-2</GUID><NAME>Reserves</NAME><PARENT>Capital Account</PARENT></GROUP>
<GROUP NAME="Current Assets"><GUID>grp-3</GUID><NAME>Current Assets</NAME><ISREVENUE>No</ISREVENUE></GROUP>
</ENVELOPE>"""

VOUCHERS_XML = """<ENVELOPE><BODY><DATA>
<VOUCHER REMOTEID="x" VCHTYPE="Sales" ACTION="Create">
  <GUID>vg-1</GUID>
  <DATE>20240415</DATE>
  <VOUCHERNUMBER>V001</VOUCHERNUMBER>
  <PARTYLEDGERNAME>Cash</PARTYLEDGERNAME>
  <NARRATION>Counter sale &amp; delivery</NARRATION>
  <ALLLEDGERENTRIES.LIST>
    <LEDGERNAME>Cash</LEDGERNAME>
    <ISDEEMEDPOSITIVE>Yes</ISDEEMEDPOSITIVE>
    <AMOUNT>500.00</AMOUNT>
  </ALLLEDGERENTRIES.LIST>
  <ALLLEDGERENTRIES.LIST>
    <LEDGERNAME>Sales</LEDGERNAME>
    <ISDEEMEDPOSITIVE>No</ISDEEMEDPOSITIVE>
    <AMOUNT>-500.00</AMOUNT>
  </ALLLEDGERENTRIES.LIST>
  <ALLINVENTORYENTRIES.LIST>
    <STOCKITEMNAME>Widget</STOCKITEMNAME>
    <RATE>50.00/Nos</RATE>
    <ACTUALQTY> 10 Nos</ACTUALQTY>
    <AMOUNT>-500.00</AMOUNT>
    <GODOWNNAME>Main Location</GODOWNNAME>
  </ALLINVENTORYENTRIES.LIST>
</VOUCHER>
<VOUCHER VCHTYPE="Payment">
  <GUID>vg-2</GUID>
  <DATE>20240416</DATE>
  <VOUCHERTYPENAME>Payment</VOUCHERTYPENAME>
  <VOUCHERNUMBER>V002</VOUCHERNUMBER>
  <LEDGERENTRIES.LIST>
    <LEDGERNAME>Rent</LEDGERNAME>
    <AMOUNT>-1200.00</AMOUNT>
  </LEDGERENTRIES.LIST>
  <LEDGERENTRIES.LIST>
    <LEDGERNAME>Bank</LEDGERNAME>
    <AMOUNT>1200.00</AMOUNT>
  </LEDGERENTRIES.LIST>
</VOUCHER>
</DATA></BODY></ENVELOPE>"""


@pytest.fixture
def tenant():
    return TenantScope(company_id="company-1", division_id="division-1")


@pytest.fixture
def other_tenant():
    return TenantScope(company_id="company-2", division_id="division-9")


@pytest.fixture
async def db(tmp_path):
    service = DatabaseService(str(tmp_path / "tally_sync_test.db"))
    await service.create_tables()
    yield service
    await service.disconnect()


@pytest.fixture
def tally_responses():
    """Report ID -> response body (str) or exception to raise"""
    return {
        "ListOfGroups": GROUPS_XML,
        "ListOfLedgers": LEDGERS_XML,
        "ListOfVouchers": VOUCHERS_XML,
    }


@pytest.fixture
def tally_transport(tally_responses):
    def handler(request: httpx.Request) -> httpx.Response:
        body = request.content.decode("utf-8")
        for report_id, answer in tally_responses.items():
            if f"<ID>{report_id}</ID>" in body:
                if isinstance(answer, Exception):
                    raise answer
                return httpx.Response(200, content=answer.encode("utf-8"))
        return httpx.Response(200, content=b"<ENVELOPE></ENVELOPE>")

    return httpx.MockTransport(handler)
