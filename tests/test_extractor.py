"""
Tests for the invoice field extractor.
"""

import pytest

from invoice_engine.model_inference.extraction_result import ExtractionResult, InvoiceTotals, LineItem
from invoice_engine.model_inference.extractor import InvoiceFieldExtractor
from invoice_engine.postprocessor.normalizers import normalize_text
from invoice_engine.utils.exceptions import ExtractionError


@pytest.fixture
def extractor():
    return InvoiceFieldExtractor()


class TestHeaderFields:
    """Tests for vendor, date, number, currency and address extraction."""

    def test_simple_invoice(self, extractor, simple_invoice):
        result = extractor.extract(simple_invoice)
        assert result.vendor == "ACME Supply Co"
        assert result.vendor_key is None
        assert result.date_raw == "01/15/2024"
        assert result.date == "2024-01-15"
        assert result.invoice_number == "INV-1001"
        assert result.currency == "USD"
        assert result.address.startswith("123 Main St")

    def test_labelled_vendor(self, extractor):
        text = "Vendor: Blue Ridge Foods\nInvoice No. 55821\nTotal $40.00"
        result = extractor.extract(text)
        assert result.vendor == "Blue Ridge Foods"
        assert result.invoice_number == "55821"

    def test_currency(self, extractor):
        assert extractor.extract_currency("Total EUR 12.00 ($13.10)") == "EUR"
        assert extractor.extract_currency("Total 12.00") == "USD"

    def test_address_block(self, extractor):
        lines = ["Bill To:", "Jane Doe", "42 Oak Avenue", "Portland, OR 97201", "Widget 2.00"]
        assert extractor.extract_address(lines, "\n".join(lines)) == (
            "Jane Doe, 42 Oak Avenue, Portland, OR 97201"
        )

    def test_known_vendor_key_passed_through(self, extractor, simple_invoice):
        result = extractor.extract(simple_invoice, vendor_key='sysco')
        assert result.vendor_key == 'sysco'

    def test_detected_vendor_key(self, extractor):
        text = "SYSCO FOOD SERVICES OF CHICAGO\nInvoice # 778812\nINVOICE TOTAL $1,234.00"
        assert extractor.extract(text).vendor_key == 'sysco'


class TestTotals:
    """Tests for totals extraction."""

    def test_simple_invoice(self, extractor, simple_invoice):
        totals = extractor.extract(simple_invoice).totals
        assert totals.subtotal == 10000
        assert totals.tax == 850
        assert totals.tax_rate == 8.5
        assert totals.total == 10850

    def test_total_source(self, extractor, simple_invoice):
        assert extractor.extract(simple_invoice).total_source == 'parser'

    def test_shipping_and_discount(self, extractor):
        text = "Subtotal $90.00\nShipping $12.00\nDiscount -$2.00\nTotal $100.00"
        totals = extractor.extract(text).totals
        assert totals.shipping == 1200
        assert totals.discount == 200
        assert totals.total == 10000

    def test_tax_rate_between_label_and_amount(self, extractor):
        text = "Subtotal $100.00\nSales Tax 8.5% $8.50\nTotal $108.50"
        totals = extractor.extract(text).totals
        assert totals.tax == 850
        assert totals.tax_rate == 8.5
        assert totals.total == 10850

    @pytest.mark.parametrize("label", ["Sub Total", "Sub-Total"])
    def test_spaced_subtotal_is_not_total(self, extractor, label):
        totals = extractor.extract(f"Total $108.50\n{label} $100.00").totals
        assert totals.total == 10850
        assert totals.subtotal == 10000


class TestLineItems:
    """Tests for line-item extraction."""

    def test_quantity_rows(self, extractor, simple_invoice):
        result = extractor.extract(simple_invoice)
        assert len(result.line_items) == 2
        assert result.line_items[0] == LineItem(
            description="Widget", quantity=2.0, unit_price_cents=2500, total_cents=5000,
        )
        assert result.line_item_sum_cents == 10000
        assert not result.ambiguous
        assert "Line items: 2 via table" in result.notes

    def test_table_rows(self, extractor, table_invoice):
        result = extractor.extract(table_invoice)
        assert [item.description for item in result.line_items] == [
            "Widget A", "Widget B", "Bracket Set",
        ]
        assert result.line_item_sum_cents == 24500
        assert result.totals.total == 24500
        assert not result.ambiguous

    def test_sum_mismatch_is_ambiguous(self, extractor, table_invoice):
        text = table_invoice.replace("Total: $245.00", "Total: $400.00")
        result = extractor.extract(text)
        assert result.ambiguous
        assert any(note.startswith("Warning: Line items sum") for note in result.notes)

    def test_sku_rows(self, extractor):
        text = "Parts Invoice\nA-1001 Hex bolts 10 0.50 5.00\nB-2002 Washers 20 0.25 5.00\nTotal $10.00"
        items = extractor.extract(text).line_items
        assert [item.sku for item in items] == ["A-1001", "B-2002"]
        assert items[0].quantity == 10.0

    def test_price_anchored_rows_are_ambiguous(self, extractor):
        text = "Corner Cafe\nCappuccino $4.50\nBlueberry muffin $3.25\nTotal $7.75"
        result = extractor.extract(text)
        assert [item.total_cents for item in result.line_items] == [450, 325]
        assert result.ambiguous

    def test_summary_lines_are_not_items(self, extractor, simple_invoice):
        descriptions = [item.description for item in extractor.extract(simple_invoice).line_items]
        assert not any('total' in d.lower() or 'tax' in d.lower() for d in descriptions)

    def test_digits_in_description_are_not_price(self, extractor):
        items = extractor._qty_desc_price_items(["2 x Widget Pro 3000 @ $5.00"])
        assert items == [LineItem(
            description="Widget Pro 3000", quantity=2.0, unit_price_cents=500, total_cents=1000,
        )]

    def test_quantity_line_needs_price_marker(self, extractor):
        assert extractor._qty_desc_price_items(["2 Widget Pro 3000"]) == []


class TestExtractEdgeCases:
    """Tests for degenerate input."""

    def test_short_text(self, extractor):
        result = extractor.extract("Total $5")
        assert result == ExtractionResult(notes=('Text too short for extraction',))

    def test_accepts_normalized_text(self, extractor, simple_invoice):
        assert extractor.extract(normalize_text(simple_invoice)) == extractor.extract(simple_invoice)

    def test_rejects_non_text(self, extractor):
        with pytest.raises(ExtractionError) as excinfo:
            extractor.extract(b"Total $5.00")
        assert excinfo.value.details["stage"] == "input"


class TestExtractionResult:
    """Tests for the ExtractionResult record."""

    def test_missing_fields(self):
        result = ExtractionResult(vendor="ACME", totals=InvoiceTotals(total=100))
        assert result.missing_fields == ['date', 'invoice_number', 'line_items']

    def test_to_dict(self, extractor, simple_invoice):
        data = extractor.extract(simple_invoice).to_dict()
        assert data['totals']['total_cents'] == 10850
        assert data['line_items'][1]['description'] == "Gadget"
        assert isinstance(data['notes'], list)
