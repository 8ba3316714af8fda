"""
Unit tests for the command line interface.
"""

import json
import os
import shutil
import tempfile
from unittest.mock import Mock, patch

import pytest

from price_verification.cli import build_ai_layer, build_rate_provider, main, read_rows
from price_verification.currency.rate_providers import ExchangeRateAPIProvider, StaticRateProvider
from price_verification.models import MatchingSettings, RateAPIConnectionConfig, ValidationError

CATALOGUE_CSV = """id,product_name,sku,price
C1,Widget A,WA-1,10.00
C2,Gadget B,,50.00
"""

INVOICE_CSV = """product_name,quantity,unit_price
Widget A,3,12.00
Gadget B,1,50.00
Kumquat Jam,2,4.00
"""


class TestReadRows:
    """Test cases for reading item files."""

    def setup_method(self):
        """Setup test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Cleanup test environment."""
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def write(self, name, content):
        path = os.path.join(self.temp_dir, name)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)
        return path

    def test_csv_cells_read_as_text(self):
        """Test that CSV cells keep their text and blanks become None."""
        rows = read_rows(self.write("catalogue.csv", CATALOGUE_CSV))

        assert rows[0] == {'id': 'C1', 'product_name': 'Widget A', 'sku': 'WA-1', 'price': '10.00'}
        assert rows[1]['sku'] is None

    def test_json_records(self):
        """Test reading a JSON array of records."""
        path = self.write("invoice.json", json.dumps([{'productName': 'Widget A', 'unitPrice': '12.00'}]))

        assert read_rows(path) == [{'productName': 'Widget A', 'unitPrice': '12.00'}]

    def test_empty_csv(self):
        """Test an empty file."""
        assert read_rows(self.write("empty.csv", "")) == []

    def test_unsupported_and_missing_files(self):
        """Test file errors."""
        with pytest.raises(ValidationError, match="Unsupported file type"):
            read_rows(self.write("items.txt", "x"))

        with pytest.raises(ValidationError, match="Unsupported file type"):
            read_rows(self.write("items.xls", "x"))

        with pytest.raises(ValidationError, match="File not found"):
            read_rows(os.path.join(self.temp_dir, "missing.csv"))


class TestCommands:
    """Test cases for the compare and search commands."""

    def setup_method(self):
        """Setup test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.catalogue = os.path.join(self.temp_dir, "catalogue.csv")
        self.invoice = os.path.join(self.temp_dir, "invoice.csv")
        with open(self.catalogue, 'w', encoding='utf-8') as f:
            f.write(CATALOGUE_CSV)
        with open(self.invoice, 'w', encoding='utf-8') as f:
            f.write(INVOICE_CSV)

        self.config_manager = Mock()
        self.config_manager.load_matching_settings.return_value = MatchingSettings()
        self.config_manager.load_ai_config.return_value = None
        self.config_manager.load_rate_api_config.return_value = RateAPIConnectionConfig()
        self.patcher = patch('price_verification.cli.get_config_manager', return_value=self.config_manager)
        self.patcher.start()

    def teardown_method(self):
        """Cleanup test environment."""
        self.patcher.stop()
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_compare_summary(self, capsys):
        """Test the compare command's printed summary."""
        exit_code = main(['compare', '--catalogue', self.catalogue, '--invoice', self.invoice])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "Lines compared:   3" in out
        assert "Matched:          2 (67%)" in out
        assert "Overcharged:      1 (total $2.00)" in out
        assert "  + Widget A: $2.00 per unit" in out

    def test_compare_json_and_csv_output(self, capsys):
        """Test JSON output and the CSV report file."""
        output = os.path.join(self.temp_dir, "report.csv")

        exit_code = main(['compare', '--catalogue', self.catalogue, '--invoice', self.invoice,
                          '--invoice-currency', 'eur', '--catalogue-currency', 'USD',
                          '--json', '--output', output])

        report = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert report['invoice_currency'] == 'EUR'
        assert report['total_items'] == 3
        with open(output, encoding='utf-8') as f:
            assert f.readline() == "# Invoice Currency: EUR\n"

    def test_compare_bad_currency(self, capsys):
        """Test that a malformed currency code fails the command."""
        exit_code = main(['compare', '--catalogue', self.catalogue, '--invoice', self.invoice,
                          '--invoice-currency', 'EURO'])

        assert exit_code == 1
        assert "Invalid currency code" in capsys.readouterr().err

    def test_search(self, capsys):
        """Test the search command."""
        exit_code = main(['search', '--catalogue', self.catalogue, 'widget a'])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert out.startswith("C1: Widget A [WA-1] - 100% (HIGH, productName)")

    def test_search_json(self, capsys):
        """Test JSON search output."""
        main(['search', '--catalogue', self.catalogue, '--json', 'WA-1'])

        suggestions = json.loads(capsys.readouterr().out)
        assert suggestions[0]['catalogue_item_id'] == 'C1'
        assert suggestions[0]['matched_on'] == 'sku'

    def test_rate_provider_choice(self):
        """Test selecting the exchange-rate source."""
        assert isinstance(build_rate_provider('static'), StaticRateProvider)
        assert isinstance(build_rate_provider('live'), ExchangeRateAPIProvider)

    def test_ai_layer_needs_credentials(self):
        """Test that the AI layer is skipped without credentials."""
        assert build_ai_layer(MatchingSettings()) is None
        assert build_ai_layer(MatchingSettings(enable_ai_matching=True)) is None
        self.config_manager.load_ai_config.assert_called_once()
