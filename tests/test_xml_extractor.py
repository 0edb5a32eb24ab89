import pytest

from tally_sync.services.export_config import export_definitions
from tally_sync.services.xml_extractor import CHILDREN_KEY, XMLExtractor

from conftest import GROUPS_XML, LEDGERS_XML, VOUCHERS_XML


@pytest.fixture
def extractor():
    return XMLExtractor()


def test_every_ledger_block_becomes_a_record(extractor):
    records = extractor.extract(LEDGERS_XML, export_definitions.get("ledgers"))

    assert [r["name"] for r in records] == ["Cash", "Bank", "Sales"]
    assert records[0]["guid"] == "g-cash"
    assert records[0]["opening_balance"] == 1500.0
    assert records[1]["opening_balance"] == -2500.5


def test_missing_fields_get_defaults(extractor):
    sales = extractor.extract(LEDGERS_XML, export_definitions.get("ledgers"))[2]

    assert sales["opening_balance"] == 0.0
    assert sales["closing_balance"] == 0.0
    assert sales["parent"] == ""
    assert sales["is_bill_wise"] == 0


def test_group_parent_defaults_to_primary(extractor):
    groups = extractor.extract(GROUPS_XML, export_definitions.get("groups"))

    assert len(groups) == 3
    assert groups[2]["name"] == "Current Assets"
    assert groups[2]["parent"] == "Primary"
    assert groups[2]["is_revenue"] == 0


def test_stock_item_unit_defaults_to_pcs(extractor):
    xml = "<STOCKITEM NAME=\"Widget\"><GUID>s-1</GUID><OPENINGBALANCE> 12 Nos</OPENINGBALANCE></STOCKITEM>"
    item = extractor.extract(xml, export_definitions.get("stockItems"))[0]

    assert item["name"] == "Widget"
    assert item["unit"] == "PCS"
    assert item["opening_balance"] == 12.0


def test_non_numeric_amount_becomes_zero(extractor):
    xml = "<LEDGER><NAME>Odd</NAME><OPENINGBALANCE>n/a</OPENINGBALANCE></LEDGER>"
    record = extractor.extract(xml, export_definitions.get("ledgers"))[0]

    assert record["opening_balance"] == 0.0


def test_name_attribute_is_used_when_element_missing(extractor):
    xml = '<LEDGER NAME="Petty &amp; Cash"><PARENT>Cash-in-Hand</PARENT></LEDGER>'
    record = extractor.extract(xml, export_definitions.get("ledgers"))[0]

    assert record["name"] == "Petty & Cash"
    assert record["parent"] == "Cash-in-Hand"


def test_record_tag_does_not_match_longer_tags(extractor):
    records = extractor.extract(VOUCHERS_XML, export_definitions.get("ledgers"))

    assert records == []


def test_self_closing_record_does_not_swallow_the_next(extractor):
    xml = (
        '<ENVELOPE><LEDGER NAME="Empty"/>'
        '<LEDGER NAME="Cash"><PARENT>Cash-in-Hand</PARENT></LEDGER>'
        '<LEDGER NAME="Bank"><PARENT>Bank Accounts</PARENT></LEDGER></ENVELOPE>'
    )
    records = extractor.extract(xml, export_definitions.get("ledgers"))

    assert [r["name"] for r in records] == ["Cash", "Bank"]
    assert records[0]["parent"] == "Cash-in-Hand"


@pytest.mark.parametrize("xml", [
    "",
    None,
    "<ENVELOPE><LEDGER><NAME>Cash</NAME>",
    "not xml at all <<<>>>",
    "<ENVELOPE><LEDGER><NAME>Cash</NAME></LEDG",
])
def test_malformed_input_yields_no_records(extractor, xml):
    assert extractor.extract(xml, export_definitions.get("ledgers")) == []


def test_vouchers_carry_line_items(extractor):
    vouchers = extractor.extract(VOUCHERS_XML, export_definitions.get("vouchers"))

    assert len(vouchers) == 2
    first, second = vouchers
    assert first["guid"] == "vg-1"
    assert first["voucher_number"] == "V001"
    assert first["voucher_type"] == "Sales"
    assert first["date"] == "2024-04-15"
    assert first["narration"] == "Counter sale & delivery"

    accounting = first[CHILDREN_KEY]["trn_accounting"]
    assert [(e["ledger"], e["amount"]) for e in accounting] == [("Cash", 500.0), ("Sales", -500.0)]
    assert accounting[0]["is_deemed_positive"] == 1

    inventory = first[CHILDREN_KEY]["trn_inventory"]
    assert len(inventory) == 1
    assert inventory[0]["stock_item"] == "Widget"
    assert inventory[0]["quantity"] == 10.0
    assert inventory[0]["rate"] == 50.0
    assert inventory[0]["godown"] == "Main Location"

    assert second["voucher_type"] == "Payment"
    assert len(second[CHILDREN_KEY]["trn_accounting"]) == 2
    assert second[CHILDREN_KEY]["trn_inventory"] == []
