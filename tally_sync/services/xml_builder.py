"""
XML Builder Module
Generates Tally XML envelopes: export requests per category and voucher
import requests. Pure string templating, no I/O.
"""

from datetime import date
from html import escape as html_escape
from typing import List, Optional

from ..config import config
from ..models.transaction import VoucherImportRequest
from ..utils.helpers import normalize_education_date, to_tally_date
from .export_config import ExportDefinitions, export_definitions


def _esc(value) -> str:
    return html_escape(str(value)) if value is not None else ""


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


class XMLBuilder:
    """Builds Tally XML envelopes"""

    def __init__(self, definitions: ExportDefinitions = None):
        self.definitions = definitions or export_definitions

    def build_export_request(
        self,
        category: str,
        from_date: Optional[str] = None,
        to_date: Optional[str] = None,
        company: Optional[str] = None
    ) -> str:
        """Build the export envelope for one category (ListOfGroups, ListOfVouchers, ...)"""
        definition = self.definitions.get(category)
        target_company = config.tally.company if company is None else company

        static_vars = ["<SVEXPORTFORMAT>$$SysName:XML</SVEXPORTFORMAT>"]
        if definition.date_range:
            static_vars.append(f"<SVFROMDATE>{_esc(from_date or config.tally.from_date)}</SVFROMDATE>")
            static_vars.append(f"<SVTODATE>{_esc(to_date or config.tally.to_date)}</SVTODATE>")
        if target_company:
            static_vars.append(f"<SVCURRENTCOMPANY>{_esc(target_company)}</SVCURRENTCOMPANY>")

        return (
            "<ENVELOPE>"
            "<HEADER>"
            "<VERSION>1</VERSION>"
            "<TALLYREQUEST>Export</TALLYREQUEST>"
            "<TYPE>Data</TYPE>"
            f"<ID>{definition.report}</ID>"
            "</HEADER>"
            "<BODY><DESC><STATICVARIABLES>"
            f"{''.join(static_vars)}"
            "</STATICVARIABLES></DESC></BODY>"
            "</ENVELOPE>"
        )

    def build_voucher_import(
        self,
        voucher: VoucherImportRequest,
        company: Optional[str] = None,
        education_mode: Optional[bool] = None
    ) -> str:
        """Build the import envelope that creates one voucher in Tally"""
        target_company = config.tally.company if company is None else company
        if education_mode is None:
            education_mode = config.tally.education_mode

        if education_mode:
            voucher_date = normalize_education_date(voucher.date)
        else:
            voucher_date = to_tally_date(voucher.date) or date.today().strftime("%Y%m%d")

        obj_view = "Invoice Voucher View" if voucher.inventory_entries else "Accounting Voucher View"

        parts: List[str] = [
            f'<VOUCHER VCHTYPE="{_esc(voucher.voucher_type)}" ACTION="Create" OBJVIEW="{obj_view}">',
            f"<DATE>{voucher_date}</DATE>",
            f"<EFFECTIVEDATE>{voucher_date}</EFFECTIVEDATE>",
            f"<VOUCHERTYPENAME>{_esc(voucher.voucher_type)}</VOUCHERTYPENAME>",
        ]
        if voucher.voucher_number:
            parts.append(f"<VOUCHERNUMBER>{_esc(voucher.voucher_number)}</VOUCHERNUMBER>")
        if voucher.party_ledger_name:
            parts.append(f"<PARTYLEDGERNAME>{_esc(voucher.party_ledger_name)}</PARTYLEDGERNAME>")
        parts.append(f"<NARRATION>{_esc(voucher.narration)}</NARRATION>")

        for entry in voucher.ledger_entries:
            parts.append(
                "<ALLLEDGERENTRIES.LIST>"
                f"<LEDGERNAME>{_esc(entry.ledger_name)}</LEDGERNAME>"
                f"<ISDEEMEDPOSITIVE>{_yes_no(entry.is_deemed_positive)}</ISDEEMEDPOSITIVE>"
                f"<ISPARTYLEDGER>{_yes_no(entry.is_party_ledger)}</ISPARTYLEDGER>"
                f"<AMOUNT>{entry.amount:.2f}</AMOUNT>"
                "</ALLLEDGERENTRIES.LIST>"
            )

        for item in voucher.inventory_entries:
            quantity = f"{item.quantity:g} {_esc(item.unit)}"
            parts.append(
                "<ALLINVENTORYENTRIES.LIST>"
                f"<STOCKITEMNAME>{_esc(item.stock_item_name)}</STOCKITEMNAME>"
                f"<RATE>{item.rate:.2f}/{_esc(item.unit)}</RATE>"
                f"<ACTUALQTY>{quantity}</ACTUALQTY>"
                f"<BILLEDQTY>{quantity}</BILLEDQTY>"
                f"<AMOUNT>{item.amount:.2f}</AMOUNT>"
                f"<GODOWNNAME>{_esc(item.godown_name)}</GODOWNNAME>"
                "</ALLINVENTORYENTRIES.LIST>"
            )

        parts.append("</VOUCHER>")

        static_vars = ""
        if target_company:
            static_vars = f"<STATICVARIABLES><SVCURRENTCOMPANY>{_esc(target_company)}</SVCURRENTCOMPANY></STATICVARIABLES>"

        return (
            "<ENVELOPE>"
            "<HEADER>"
            "<VERSION>1</VERSION>"
            "<TALLYREQUEST>Import</TALLYREQUEST>"
            "<TYPE>Data</TYPE>"
            "<ID>Vouchers</ID>"
            "</HEADER>"
            "<BODY>"
            f"<DESC>{static_vars}<IMPORTDUPS>@@DUPCOMBINE</IMPORTDUPS></DESC>"
            "<DATA><TALLYMESSAGE>"
            f"{''.join(parts)}"
            "</TALLYMESSAGE></DATA>"
            "</BODY>"
            "</ENVELOPE>"
        )


# Global builder instance
xml_builder = XMLBuilder()
