"""
Tests for vendor detection.
"""

from invoice_engine.model_inference.vendor_detector import (
    UNKNOWN_VENDOR,
    detect_vendor,
    get_supported_vendors,
)


class TestDetectVendor:
    """Tests for detect_vendor."""

    def test_sysco(self):
        match = detect_vendor("SYSCO FOOD SERVICES OF CHICAGO\nINVOICE TOTAL $1,234.00")
        assert match.vendor_key == 'sysco'
        assert match.is_known
        assert match.confidence >= 50

    def test_cintas_multiple_signals(self):
        text = "CINTAS CORPORATION NO. 2\nUNIFORM ADVANTAGE\nTOTAL USD 512.40"
        match = detect_vendor(text)
        assert match.vendor_key == 'cintas'
        assert match.matched_patterns >= 3
        assert match.confidence <= 99

    def test_unknown(self, simple_invoice):
        assert detect_vendor(simple_invoice) == UNKNOWN_VENDOR
        assert not detect_vendor(simple_invoice).is_known

    def test_empty(self):
        assert detect_vendor("") is UNKNOWN_VENDOR
        assert detect_vendor(None) is UNKNOWN_VENDOR


class TestSupportedVendors:
    """Tests for get_supported_vendors."""

    def test_lists_known_vendors(self):
        keys = {vendor['key'] for vendor in get_supported_vendors()}
        assert {'cintas', 'sysco', 'usfoods', 'aramark', 'unifirst'} <= keys
